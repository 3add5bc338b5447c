"""
Tests for environment-based configuration
"""

import pytest

from repayment_engine.config import RepaymentConfig, get_config, reload_config
from repayment_engine.api.deps import RepaymentSystem
from repayment_engine.storage import InMemoryStorage, SQLiteStorage


class TestRepaymentConfig:
    """Test configuration defaults and environment overrides"""

    def test_defaults(self, monkeypatch):
        for name in ("REPAY_STORAGE_BACKEND", "REPAY_API_PORT", "REPAY_LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)

        config = RepaymentConfig(_env_file=None)

        assert config.storage_backend == "sqlite"
        assert config.ledgers_table == "ledgers"
        assert config.api_port == 8090
        assert config.log_format == "json"
        assert config.enable_audit_logging is True

    def test_environment_overrides(self, monkeypatch):
        """Test that REPAY_-prefixed variables override defaults"""
        monkeypatch.setenv("REPAY_STORAGE_BACKEND", "memory")
        monkeypatch.setenv("REPAY_API_PORT", "9100")
        monkeypatch.setenv("repay_enable_audit_logging", "false")

        config = RepaymentConfig(_env_file=None)

        assert config.storage_backend == "memory"
        assert config.api_port == 9100
        assert config.enable_audit_logging is False

    def test_invalid_port(self, monkeypatch):
        monkeypatch.setenv("REPAY_API_PORT", "not-a-port")
        with pytest.raises(ValueError):
            RepaymentConfig(_env_file=None)

    def test_reload_config(self, monkeypatch):
        original = get_config()
        monkeypatch.setenv("REPAY_LOG_LEVEL", "DEBUG")
        try:
            reloaded = reload_config()
            assert reloaded.log_level == "DEBUG"
            assert get_config() is reloaded
        finally:
            monkeypatch.delenv("REPAY_LOG_LEVEL")
            reload_config()
            assert get_config() is not original


class TestRepaymentSystem:
    """Test service wiring from configuration"""

    def test_memory_system_with_audit(self):
        system = RepaymentSystem(RepaymentConfig(storage_backend="memory"))
        assert isinstance(system.storage, InMemoryStorage)
        assert system.audit_trail is not None
        assert system.repayment_manager.audit_trail is system.audit_trail

    def test_sqlite_system_without_audit(self, tmp_path):
        config = RepaymentConfig(
            storage_backend="sqlite",
            sqlite_path=str(tmp_path / "repayments.db"),
            enable_audit_logging=False,
            ledgers_table="report_ledgers"
        )
        system = RepaymentSystem(config)

        assert isinstance(system.storage, SQLiteStorage)
        assert system.audit_trail is None
        assert system.repayment_manager.ledgers_table == "report_ledgers"
        system.storage.close()

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            RepaymentSystem(RepaymentConfig(storage_backend="postgres"))
