import warnings

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    MONGODB_URI: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "spot_exchange"
    API_KEY: str = "changeme"
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:8000"
    DOCS_ENABLED: bool = True
    LOG_LEVEL: str = "INFO"

    DEFAULT_PER_PAGE: int = 20  # used when a search doesn't set per_page

    # Query monitor thresholds
    MONITOR_HISTORY_SIZE: int = 1000
    RAPID_QUERY_THRESHOLD: int = 100  # queries per user per minute
    SQL_INJECTION_THRESHOLD: int = 3  # attempts per 10 minutes before rate limiting

    model_config = {"env_file": ".env"}


settings = Settings()

if settings.API_KEY == "changeme":
    warnings.warn(
        "API_KEY is set to the default value 'changeme'. "
        "Set a strong API_KEY in your .env file for production.",
        stacklevel=1,
    )
