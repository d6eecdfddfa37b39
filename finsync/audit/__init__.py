"""
Audit trail of sync runs.
"""

from .backup_writer import BackupWriter, format_field, snapshot_timestamp, to_csv

__all__ = [
    "BackupWriter",
    "format_field",
    "snapshot_timestamp",
    "to_csv",
]
