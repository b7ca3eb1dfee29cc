"""
Application Settings
Load from environment variables
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment"""

    # ======================
    # Application
    # ======================
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # ======================
    # Ledger storage
    # ======================
    LEDGER_BACKEND: str = "memory"  # memory | sql
    DATABASE_URL: str = "sqlite:///./mf_ledger.db"
    DB_ECHO: bool = False

    # ======================
    # Portfolio configuration
    # ======================
    PORTFOLIO_CONFIG_FILE: str = "config/portfolios.yml"
    DEFAULT_REBALANCE_THRESHOLD_PCT: float = 5.0

    # ======================
    # Cache
    # ======================
    CACHE_TTL_SECONDS: int = 300
    REDIS_ENABLED: bool = False
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_PREFIX: str = "mf:"

    # ======================
    # ATH buy signals
    # ======================
    ATH_CONSIDER_PCT: float = 5.0
    ATH_GOOD_BUY_PCT: float = 10.0
    ATH_STRONG_BUY_PCT: float = 20.0
    MIN_PCT_BELOW_ATH: float = 0.0

    # ======================
    # Pydantic v2 config
    # ======================
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )


settings = Settings()
