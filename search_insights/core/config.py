from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

DATA_DIR = Path(__file__).resolve().parent.parent / "data"

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    SOURCEGRAPH_URL: str = "https://sourcegraph.com"
    SOURCEGRAPH_TOKEN: str | None = None
    GRAPHQL_TIMEOUT: float = 60.0     # seconds; batched searches can be slow

    # Retries
    SEARCH_RETRIES: int = 3           # count-search batch, timeout-class failures only
    COMMIT_RESOLUTION_RETRIES: int = 0

    COUNT_CEILING: int = 99999

    # Insight settings document
    INSIGHTS_FILE: str = str(DATA_DIR / "insights.yaml")
    SETTINGS_POLL_INTERVAL: float = 5.0   # seconds; 0 disables polling

    TIMEZONE: str | None = None       # IANA name, e.g. "Europe/Berlin"; host zone if unset

    # Repository scope expansion
    ALL_REPOSITORIES_LIMIT: int = 1000
    REPOSITORY_PATTERN_LIMIT: int = 100

    LOG_LEVEL: str = "INFO"

settings = Settings()
