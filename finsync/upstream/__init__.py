"""
Upstream client adapters (ERP and CRM).
"""

from .base import HttpUpstreamClient, UpstreamClient, UpstreamPage, clamp_page_size
from .crm_client import CrmClient
from .erp_client import ErpClient
from .oauth import OAuth1Auth

__all__ = [
    "UpstreamClient",
    "UpstreamPage",
    "HttpUpstreamClient",
    "ErpClient",
    "CrmClient",
    "OAuth1Auth",
    "clamp_page_size",
]
