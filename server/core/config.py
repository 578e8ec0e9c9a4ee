"""Environment-driven configuration with Pydantic v2."""

from typing import List, Literal, Optional
from pathlib import Path
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from constants import CACHE_WARNING_THRESHOLD, DEFAULT_CLEANUP_CRON


class Settings(BaseSettings):
    """Application settings driven entirely by environment variables."""

    # Server Configuration
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=3010, ge=1024, le=65535)
    debug: bool = Field(default=False)

    # Security
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    # Database Configuration
    database_url: str = Field(default="sqlite+aiosqlite:///./data/solution_cache.db")
    database_echo: bool = Field(default=False)
    database_pool_size: int = Field(default=5, ge=1, le=100)
    database_max_overflow: int = Field(default=10, ge=0, le=100)

    # Remote Solution Resolver
    resolver_url: str = Field(default="http://localhost:54321/functions/v1")
    resolver_api_key: Optional[str] = Field(default=None)
    resolver_timeout: int = Field(default=60, ge=5, le=300)

    # Solution Cache
    cache_warning_threshold: int = Field(default=CACHE_WARNING_THRESHOLD, ge=1)
    cache_cleanup_enabled: bool = Field(default=True)
    cache_cleanup_cron: str = Field(default=DEFAULT_CLEANUP_CRON)

    # Logging
    log_level: str = Field(default="INFO")
    log_format: Literal["json", "console"] = Field(default="json")
    log_file: Optional[str] = Field(default=None)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v):
        """Ensure database directory exists for SQLite."""
        if v and v.startswith("sqlite") and ":memory:" not in v:
            if ":///" in v:
                db_path = v.split("///")[1]
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        return v

    @field_validator("cache_cleanup_cron")
    @classmethod
    def validate_cleanup_cron(cls, v):
        """Cron expressions must have 5 or 6 fields."""
        if len(v.split()) not in (5, 6):
            raise ValueError("cache_cleanup_cron must have 5 or 6 fields")
        return v

    @property
    def is_memory_database(self) -> bool:
        """Check if the database lives in process memory."""
        return ":memory:" in self.database_url

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "env_parse_none_str": "none",
        "env_nested_delimiter": "__",
    }
