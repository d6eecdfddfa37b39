"""
SyncRequest model: the parameters of one sync invocation.
"""

from datetime import date, timedelta

from pydantic import BaseModel, Field, model_validator

from finsync.utils.validation import validate_date_range


class SyncRequest(BaseModel):
    """
    Date window and record cap for a sync run.

    Either both `date_from` and `date_to` are given, or neither is and the
    window ends today and starts `days_back` days earlier.

    Attributes:
        date_from: Inclusive start date (YYYY-MM-DD)
        date_to: Inclusive end date (YYYY-MM-DD)
        days_back: Window length when no explicit dates are given
        limit: Maximum number of upstream records to process
    """

    date_from: str | None = None
    date_to: str | None = None
    days_back: int = Field(default=365, ge=1, le=2000)
    limit: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def check_date_window(self) -> "SyncRequest":
        """Explicit dates come in pairs and must be ordered."""
        if (self.date_from is None) != (self.date_to is None):
            raise ValueError("date_from and date_to must be given together")
        if self.date_from is not None:
            validate_date_range(self.date_from, self.date_to)
        return self

    class Config:
        json_schema_extra = {
            "example": {
                "date_from": "2024-01-01",
                "date_to": "2024-03-31",
                "limit": 500
            }
        }

    def effective_range(self, today: date | None = None) -> tuple[str, str]:
        """
        Resolve the date window.

        Args:
            today: Reference date for relative windows (defaults to date.today())

        Returns:
            (date_from, date_to) as ISO strings
        """
        if self.date_from is not None and self.date_to is not None:
            return self.date_from, self.date_to
        today = today or date.today()
        start = today - timedelta(days=self.days_back)
        return start.isoformat(), today.isoformat()
