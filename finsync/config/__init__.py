"""
Configuration for sync runs (environment, .env files, YAML extensions).
"""

from .settings import CrmSettings, ErpSettings, SyncSettings, load_environment

__all__ = [
    "SyncSettings",
    "ErpSettings",
    "CrmSettings",
    "load_environment",
]
