"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings


class RepaymentConfig(BaseSettings):
    """Repayment engine service configuration"""

    # Storage configuration
    storage_backend: str = "sqlite"  # sqlite or memory
    sqlite_path: str = "repayments.db"
    terms_table: str = "loan_terms"
    ledgers_table: str = "ledgers"
    audit_table: str = "audit_events"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Feature flags
    enable_audit_logging: bool = True

    class Config:
        env_prefix = "REPAY_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = RepaymentConfig()


def get_config() -> RepaymentConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> RepaymentConfig:
    """Reload configuration from environment"""
    global config
    config = RepaymentConfig()
    return config
