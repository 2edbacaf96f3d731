"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from decimal import Decimal

from pydantic_settings import BaseSettings


class LedgerConfig(BaseSettings):
    """FX ledger service configuration"""

    # Storage configuration
    database_url: str = "sqlite:///fx_ledger.db"  # memory://, sqlite:///path or postgresql://...

    # Fee policy
    fee_rate: str = "0.01"  # Decimal as string, 1%

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Provision demo accounts on startup
    seed_demo_data: bool = False

    class Config:
        env_prefix = "FX_LEDGER_"
        env_file = ".env"
        case_sensitive = False

    @property
    def fee_rate_decimal(self) -> Decimal:
        return Decimal(self.fee_rate)


# Global configuration instance
config = LedgerConfig()


def get_config() -> LedgerConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> LedgerConfig:
    """Reload configuration from environment"""
    global config
    config = LedgerConfig()
    return config
