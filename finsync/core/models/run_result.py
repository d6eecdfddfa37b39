"""
RunResult model: the frozen summary of one sync invocation.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

RunStatus = Literal["succeeded", "partial", "aborted"]


class RunError(BaseModel):
    """Structured reason for an aborted run."""

    code: str
    message: str
    timestamp: datetime

    class Config:
        frozen = True


class RunResult(BaseModel):
    """
    Outcome of one sync run.

    Attributes:
        status: succeeded (no failures), partial (some rows failed), aborted
        total_processed: Upstream records fetched and transformed
        succeeded: Canonical rows persisted
        failed: Canonical rows that could not be persisted
        relationships_persisted: Related rows persisted
        relationships_failed: Related rows that could not be persisted
        backup_locations: Snapshot label -> file path
        backup_errors: Snapshot failures (never abort a run)
        error: Reason the run was aborted
        run_id: Correlation id carried by every log line of the run
    """

    entity: str
    tenant_id: str
    date_from: str
    date_to: str
    status: RunStatus
    total_processed: int = Field(default=0, ge=0)
    succeeded: int = Field(default=0, ge=0)
    failed: int = Field(default=0, ge=0)
    relationships_persisted: int = Field(default=0, ge=0)
    relationships_failed: int = Field(default=0, ge=0)
    backup_locations: dict[str, str] = Field(default_factory=dict)
    backup_errors: list[str] = Field(default_factory=list)
    error: RunError | None = None
    started_at: datetime
    finished_at: datetime
    run_id: str | None = None

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "entity": "payments",
                "tenant_id": "acme",
                "date_from": "2024-01-01",
                "date_to": "2024-03-31",
                "status": "partial",
                "total_processed": 137,
                "succeeded": 112,
                "failed": 25,
                "relationships_persisted": 140,
                "relationships_failed": 0,
                "backup_locations": {
                    "raw": "backups/payments_raw_2024-01-01_to_2024-03-31_2024-04-01T08-00-00-000Z.csv"
                },
                "backup_errors": [],
                "error": None,
                "started_at": "2024-04-01T08:00:00Z",
                "finished_at": "2024-04-01T08:01:12Z",
                "run_id": "9f1c2ab4e07d"
            }
        }

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()

    @staticmethod
    def status_for(failed: int, aborted: bool = False) -> RunStatus:
        """Summary status from the failure count."""
        if aborted:
            return "aborted"
        return "partial" if failed else "succeeded"
