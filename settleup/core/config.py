from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    LOG_LEVEL: str = "INFO"

    # API Settings
    PROJECT_NAME: str = "SettleUp API"
    API_V1_STR: str = "/api/v1"
    PROJECT_VERSION: str = "0.1.0"
    DESCRIPTION: str = "Split validation, pairwise balances and debt simplification"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Money
    DEFAULT_CURRENCY: str = "INR"
    MAX_AMOUNT_MAJOR: int = 999_999_999  # Matches Transaction.amount upper bound

    # Ledger
    LEDGER_BACKEND: str = "memory"  # memory | mongo
    LEDGER_MAX_RETRIES: int = 3

    # MongoDB
    MONGODB_URL: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "settleup"

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env"
    )

settings = Settings()
