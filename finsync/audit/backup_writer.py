"""
Audit snapshots: flat CSV copies of the raw and transformed data of a run.

Snapshots allow forensic replay of a run independently of the warehouse.
One file per dataset, named `{label}_{timestamp}.csv`.
"""

import json
import re
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from finsync.observability.logger import get_logger
from finsync.observability.metrics import backup_files_total, increment_counter

logger = get_logger(__name__)

_UNSAFE_LABEL_CHARS = re.compile(r"[^A-Za-z0-9_.\-]")


def snapshot_timestamp(moment: datetime) -> str:
    """
    UTC ISO-8601 timestamp with ':' and '.' replaced by '-'.

    Examples:
        >>> snapshot_timestamp(datetime(2024, 4, 1, 8, 0, 5, 123456, tzinfo=timezone.utc))
        '2024-04-01T08-00-05-123Z'
    """
    moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H-%M-%S-") + f"{moment.microsecond // 1000:03d}Z"


def _quote(text: str) -> str:
    return '"' + text.replace('"', '""') + '"'


def format_header(name: str) -> str:
    """Field name, quoted only when it holds CSV special characters."""
    if any(char in name for char in ',"\r\n'):
        return _quote(name)
    return name


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def format_field(value: Any) -> str:
    """
    Render one CSV field.

    None is empty, strings are quoted with embedded quotes doubled, nested
    structures are quoted JSON, numbers and booleans are bare.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, str):
        return _quote(value)
    if isinstance(value, (dict, list, tuple)):
        return _quote(json.dumps(value, default=_json_default, ensure_ascii=False))
    if isinstance(value, (datetime, date)):
        return _quote(value.isoformat())
    return _quote(str(value))


def _as_dict(row: BaseModel | dict[str, Any]) -> dict[str, Any]:
    if isinstance(row, BaseModel):
        return row.model_dump()
    return row


def header_for(rows: Iterable[dict[str, Any]]) -> list[str]:
    """Union of keys across rows, in first-seen order."""
    header: dict[str, None] = {}
    for row in rows:
        for key in row:
            header.setdefault(key, None)
    return list(header)


def to_csv(rows: Sequence[BaseModel | dict[str, Any]]) -> str:
    """Render rows as CSV text with a header line."""
    dicts = [_as_dict(row) for row in rows]
    header = header_for(dicts)
    lines = [",".join(format_header(name) for name in header)]
    for row in dicts:
        lines.append(",".join(format_field(row.get(column)) for column in header))
    return "\n".join(lines) + "\n"


class BackupWriter:
    """
    Writes audit snapshots to a directory.

    Attributes:
        backup_dir: Target directory, created on first write
    """

    def __init__(
        self,
        backup_dir: str | Path = "backups",
        clock: Callable[[], datetime] | None = None,
    ):
        self.backup_dir = Path(backup_dir)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def path_for(self, label: str) -> Path:
        safe_label = _UNSAFE_LABEL_CHARS.sub("_", label) or "snapshot"
        return self.backup_dir / f"{safe_label}_{snapshot_timestamp(self._clock())}.csv"

    def snapshot(self, rows: Sequence[BaseModel | dict[str, Any]], label: str) -> str | None:
        """
        Write rows to a new snapshot file.

        Args:
            rows: Raw records (dicts) or canonical models
            label: Dataset label, e.g. "payments_raw_2024-01-01_to_2024-03-31"

        Returns:
            Path of the written file, or None when rows is empty

        Raises:
            OSError: If the directory or file cannot be written
        """
        if not rows:
            return None

        path = self.path_for(label)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(to_csv(rows), encoding="utf-8")
        except OSError as e:
            increment_counter(backup_files_total, status="failed")
            logger.error(
                "Failed to write snapshot",
                extra={"label": label, "path": str(path), "error_message": str(e)},
            )
            raise

        increment_counter(backup_files_total, status="written")
        logger.info("Snapshot written", extra={"label": label, "path": str(path), "rows": len(rows)})
        return str(path)
