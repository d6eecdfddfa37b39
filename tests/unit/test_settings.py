"""
Unit tests for environment-driven settings.
"""

import pytest

from finsync.config import CrmSettings, ErpSettings, SyncSettings, load_environment
from finsync.sync.errors import ConfigurationError

SYNC_VARS = [
    "SYNC_PAGE_SIZE", "SYNC_SUB_BATCH_SIZE", "SYNC_RETRY_ATTEMPTS", "SYNC_RETRY_BASE_DELAY",
    "SYNC_INTER_BATCH_DELAY", "SYNC_PAGE_DELAY", "SYNC_DETAIL_DELAY", "SYNC_RUN_TIMEOUT",
    "SYNC_BACKUP_DIR", "SYNC_CURRENCY_CONFIG",
]
ERP_VARS = {
    "ERP_ACCOUNT_ID": "1234567_SB1",
    "ERP_CONSUMER_KEY": "ck",
    "ERP_CONSUMER_SECRET": "cs",
    "ERP_TOKEN_ID": "tid",
    "ERP_TOKEN_SECRET": "ts",
}


@pytest.fixture
def clean_env(monkeypatch):
    for var in SYNC_VARS + list(ERP_VARS) + ["CRM_INSTANCE_URL", "CRM_ACCESS_TOKEN", "CRM_API_VERSION"]:
        # setenv first so teardown also removes values loaded from .env files
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    return monkeypatch


@pytest.mark.unit
class TestSyncSettings:
    """Tests for SyncSettings"""

    def test_defaults(self, clean_env):
        settings = SyncSettings.from_env()
        assert settings.page_size == 50
        assert settings.sub_batch_size == 25
        assert settings.retry_attempts == 3
        assert settings.retry_base_delay_s == 1.0
        assert settings.run_timeout_s == 1800.0
        assert settings.backup_dir == "backups"
        assert settings.currency_config is None

    def test_from_env(self, clean_env):
        clean_env.setenv("SYNC_PAGE_SIZE", "100")
        clean_env.setenv("SYNC_SUB_BATCH_SIZE", "50")
        clean_env.setenv("SYNC_RUN_TIMEOUT", "60")
        clean_env.setenv("SYNC_BACKUP_DIR", "/var/backups/finsync")

        settings = SyncSettings.from_env()

        assert settings.page_size == 100
        assert settings.sub_batch_size == 50
        assert settings.run_timeout_s == 60.0
        assert settings.backup_dir == "/var/backups/finsync"

    def test_malformed_number(self, clean_env):
        clean_env.setenv("SYNC_PAGE_SIZE", "fifty")
        with pytest.raises(ConfigurationError, match="SYNC_PAGE_SIZE"):
            SyncSettings.from_env()

    @pytest.mark.parametrize("var,value", [
        ("SYNC_PAGE_SIZE", "101"),
        ("SYNC_SUB_BATCH_SIZE", "51"),
        ("SYNC_RUN_TIMEOUT", "0"),
    ])
    def test_out_of_range(self, clean_env, var, value):
        clean_env.setenv(var, value)
        with pytest.raises(ConfigurationError, match="Invalid sync settings"):
            SyncSettings.from_env()


@pytest.mark.unit
class TestUpstreamSettings:
    """Tests for ERP and CRM credentials"""

    def test_erp_from_env(self, clean_env):
        for var, value in ERP_VARS.items():
            clean_env.setenv(var, value)

        settings = ErpSettings.from_env()

        assert settings.realm == "1234567_SB1"
        assert settings.base_url == "https://1234567-sb1.suitetalk.api.netsuite.com/services/rest/record/v1"

    def test_erp_missing_vars_listed(self, clean_env):
        clean_env.setenv("ERP_ACCOUNT_ID", "1234567")

        with pytest.raises(ConfigurationError) as exc_info:
            ErpSettings.from_env()

        message = exc_info.value.message
        assert "ERP_CONSUMER_KEY" in message
        assert "ERP_TOKEN_SECRET" in message
        assert "ERP_ACCOUNT_ID" not in message

    def test_crm_from_env(self, clean_env):
        clean_env.setenv("CRM_INSTANCE_URL", "https://acme.my.salesforce.com/")
        clean_env.setenv("CRM_ACCESS_TOKEN", "token")

        settings = CrmSettings.from_env()

        assert settings.instance_url == "https://acme.my.salesforce.com"
        assert settings.api_version == "v62.0"

    def test_crm_missing_token(self, clean_env):
        clean_env.setenv("CRM_INSTANCE_URL", "https://acme.my.salesforce.com")
        with pytest.raises(ConfigurationError, match="CRM_ACCESS_TOKEN"):
            CrmSettings.from_env()


@pytest.mark.unit
class TestLoadEnvironment:
    """Tests for .env loading"""

    def test_env_file_does_not_override(self, clean_env, tmp_path):
        env_file = tmp_path / "test.env"
        env_file.write_text("SYNC_PAGE_SIZE=20\nSYNC_BACKUP_DIR=/tmp/from-file\n")
        clean_env.setenv("SYNC_BACKUP_DIR", "/tmp/from-env")

        load_environment(env_file)

        settings = SyncSettings.from_env()
        assert settings.page_size == 20
        assert settings.backup_dir == "/tmp/from-env"
