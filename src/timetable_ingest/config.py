"""Ingestion configuration loaded from environment variables.

Every knob the overnight run needs lives here: where the generation database
is written, how politely the booking site is scraped, and how logs look.
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
)


class IngestConfig(BaseSettings):
    """Ingestion configuration loaded from environment variables.

    Settings are loaded from TIMETABLE_* environment variables with sensible
    defaults. For local development, create a .env file in the project root.
    """

    # Paths
    data_dir: str = Field(
        default="data",
        description="Directory holding the current events database and its archives",
    )
    db_filename: str = Field(
        default="events.db",
        description="File name of the current generation's SQLite database",
    )
    rooms_csv: str = Field(
        default="out/rooms_grouped.csv",
        description="Room list CSV (building code, room name, URL) used by scripts",
    )

    # Scrape pacing (the booking site has informal rate limits)
    request_delay_seconds: float = Field(
        default=3.0,
        ge=0,
        description="Delay between consecutive room requests within a pass",
    )
    retry_backoff_seconds: float = Field(
        default=6.0,
        ge=0,
        description="Extra delay before each retry pass over remaining rooms",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per room before it is marked failed for this run",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="HTTP timeout for a single timetable page",
    )
    user_agent: str = Field(
        default=DEFAULT_USER_AGENT,
        description="Browser-like User-Agent sent with every request",
    )

    # Downstream readers
    lecturer_cache_ttl_seconds: float = Field(
        default=900.0,
        ge=0,
        description="How long the aggregated lecturer index stays fresh",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for scheduled runs)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "TIMETABLE_",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir) / self.db_filename


# Singleton pattern
_config: IngestConfig | None = None


def get_config() -> IngestConfig:
    """Get the ingestion configuration singleton.

    Returns:
        IngestConfig: Ingestion configuration instance
    """
    global _config
    if _config is None:
        _config = IngestConfig()
    return _config
