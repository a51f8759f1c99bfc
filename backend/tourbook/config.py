# backend/tourbook/config.py

from pathlib import Path
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[2]  # project root


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./data/tourbook.db"
    redis_url: str | None = None

    availability_cache_ttl_seconds: int = 300
    lock_timeout_seconds: float = 10.0
    log_level: str = "INFO"
    create_tables_on_startup: bool = True

    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @property
    def resolved_database_url(self) -> str:
        url = self.database_url
        prefix = "sqlite+aiosqlite:///./"
        if url.startswith(prefix):
            # Relative sqlite path is anchored at the project root
            relative_path = url.replace(prefix, "")
            absolute_path = BASE_DIR / relative_path
            return f"sqlite+aiosqlite:///{absolute_path}"
        return url


settings = Settings()
