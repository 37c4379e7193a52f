"""
Centralized application configuration implementing the 12-Factor App methodology.
Every tunable of the payoff engine lives here so it can be overridden per environment.
"""
from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Immutable configuration schema backed by environment variables."""

    APP_NAME: str = "DebtPilot"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    # SQLite by default; any SQLAlchemy URL (e.g. PostgreSQL) is accepted
    DATABASE_URL: str = "sqlite:///./debtpilot.db"

    SECRET_KEY: str = "your-secret-key-change-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 10080

    LOG_LEVEL: str = "INFO"

    # Payoff engine: hard stop for a simulation (100 years)
    MAX_SIMULATION_MONTHS: int = 1200
    # Consecutive months without any balance going down before a run is declared non-convergent
    STAGNATION_MONTHS: int = 12

    # Snowball is recommended only when both strategies differ by less than these amounts
    RECOMMENDATION_MONTHS_THRESHOLD: int = 1
    RECOMMENDATION_INTEREST_THRESHOLD: Decimal = Decimal("1.00")

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True)


settings = Settings()
