"""
Runtime settings for sync runs.

Settings are read from environment variables, optionally seeded from a
`.env` file via python-dotenv. Upstream credentials live in their own models
so a run against one system does not require credentials for the other.
"""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, model_validator

from finsync.sync.errors import ConfigurationError

DEFAULT_CRM_API_VERSION = "v62.0"


def load_environment(env_file: str | Path | None = None) -> None:
    """
    Load variables from a .env file into the process environment.

    Existing environment variables win over values from the file.

    Args:
        env_file: Path to the .env file (defaults to ./.env when present)
    """
    if env_file is not None:
        load_dotenv(env_file, override=False)
    elif Path(".env").exists():
        load_dotenv(".env", override=False)


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}") from e


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError as e:
        raise ConfigurationError(f"{name} must be a number, got {value!r}") from e


class SyncSettings(BaseModel):
    """
    Tunables for the orchestrator and upserter.

    Attributes:
        page_size: Records requested per upstream page (1..100)
        sub_batch_size: Rows written per storage call (1..50)
        retry_attempts: Total attempts per sub-batch, first try included
        retry_base_delay_s: Linear backoff base; attempt n waits n * base
        inter_batch_delay_s: Pause between sub-batches
        page_delay_s: Pause between upstream pages
        detail_delay_s: Pause between per-record upstream detail calls
        run_timeout_s: Wall-clock budget for one run
        backup_dir: Directory for audit snapshots
        currency_config: Optional YAML file extending the currency table
    """

    page_size: int = Field(default=50, ge=1, le=100)
    sub_batch_size: int = Field(default=25, ge=1, le=50)
    retry_attempts: int = Field(default=3, ge=1, le=10)
    retry_base_delay_s: float = Field(default=1.0, ge=0)
    inter_batch_delay_s: float = Field(default=0.1, ge=0)
    page_delay_s: float = Field(default=0.1, ge=0)
    detail_delay_s: float = Field(default=0.05, ge=0)
    run_timeout_s: float = Field(default=1800.0, gt=0)
    backup_dir: str = "backups"
    currency_config: str | None = None

    class Config:
        json_schema_extra = {
            "example": {
                "page_size": 50,
                "sub_batch_size": 25,
                "retry_attempts": 3,
                "retry_base_delay_s": 1.0,
                "inter_batch_delay_s": 0.1,
                "page_delay_s": 0.1,
                "detail_delay_s": 0.05,
                "run_timeout_s": 1800.0,
                "backup_dir": "backups",
                "currency_config": "config/currencies.yaml"
            }
        }

    @classmethod
    def from_env(cls) -> "SyncSettings":
        """
        Build settings from SYNC_* environment variables.

        Raises:
            ConfigurationError: If a variable is malformed or out of range
        """
        try:
            return cls(
                page_size=_env_int("SYNC_PAGE_SIZE", 50),
                sub_batch_size=_env_int("SYNC_SUB_BATCH_SIZE", 25),
                retry_attempts=_env_int("SYNC_RETRY_ATTEMPTS", 3),
                retry_base_delay_s=_env_float("SYNC_RETRY_BASE_DELAY", 1.0),
                inter_batch_delay_s=_env_float("SYNC_INTER_BATCH_DELAY", 0.1),
                page_delay_s=_env_float("SYNC_PAGE_DELAY", 0.1),
                detail_delay_s=_env_float("SYNC_DETAIL_DELAY", 0.05),
                run_timeout_s=_env_float("SYNC_RUN_TIMEOUT", 1800.0),
                backup_dir=os.getenv("SYNC_BACKUP_DIR", "backups"),
                currency_config=os.getenv("SYNC_CURRENCY_CONFIG") or None,
            )
        except ValidationError as e:
            raise ConfigurationError(f"Invalid sync settings: {e}") from e


class ErpSettings(BaseModel):
    """Token-based credentials for the ERP REST API."""

    account_id: str = Field(..., min_length=1)
    consumer_key: str = Field(..., min_length=1)
    consumer_secret: str = Field(..., min_length=1)
    token_id: str = Field(..., min_length=1)
    token_secret: str = Field(..., min_length=1)

    @property
    def realm(self) -> str:
        """OAuth realm; the account id exactly as configured."""
        return self.account_id

    @property
    def base_url(self) -> str:
        """Host names use the lowercased account with '_' replaced by '-'."""
        host = self.account_id.lower().replace("_", "-")
        return f"https://{host}.suitetalk.api.netsuite.com/services/rest/record/v1"

    @classmethod
    def from_env(cls) -> "ErpSettings":
        """
        Raises:
            ConfigurationError: If any ERP_* credential is missing
        """
        names = {
            "account_id": "ERP_ACCOUNT_ID",
            "consumer_key": "ERP_CONSUMER_KEY",
            "consumer_secret": "ERP_CONSUMER_SECRET",
            "token_id": "ERP_TOKEN_ID",
            "token_secret": "ERP_TOKEN_SECRET",
        }
        values = {field: os.getenv(var) for field, var in names.items()}
        missing = [names[field] for field, value in values.items() if not value]
        if missing:
            raise ConfigurationError(
                f"Missing ERP credentials: {', '.join(missing)}"
            )
        return cls(**values)


class CrmSettings(BaseModel):
    """Bearer-token access to the CRM query API."""

    instance_url: str = Field(..., min_length=1)
    access_token: str = Field(..., min_length=1)
    api_version: str = DEFAULT_CRM_API_VERSION

    @model_validator(mode="after")
    def strip_trailing_slash(self) -> "CrmSettings":
        self.instance_url = self.instance_url.rstrip("/")
        return self

    @classmethod
    def from_env(cls) -> "CrmSettings":
        """
        Raises:
            ConfigurationError: If CRM_INSTANCE_URL or CRM_ACCESS_TOKEN is missing
        """
        instance_url = os.getenv("CRM_INSTANCE_URL")
        access_token = os.getenv("CRM_ACCESS_TOKEN")
        missing = [
            name for name, value in (
                ("CRM_INSTANCE_URL", instance_url),
                ("CRM_ACCESS_TOKEN", access_token),
            ) if not value
        ]
        if missing:
            raise ConfigurationError(f"Missing CRM credentials: {', '.join(missing)}")
        return cls(
            instance_url=instance_url,
            access_token=access_token,
            api_version=os.getenv("CRM_API_VERSION") or DEFAULT_CRM_API_VERSION,
        )
