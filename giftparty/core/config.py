from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import PostgresDsn, computed_field
from typing import Optional

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_ignore_empty=True, extra="ignore")

    # Optional PostgreSQL deployment; SQLite is used when POSTGRES_USER is unset
    POSTGRES_USER: Optional[str] = None
    POSTGRES_PASSWORD: Optional[str] = None
    POSTGRES_DB: str = "giftparty"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432

    SQLITE_PATH: str = "live_data/giftparty.db"

    @computed_field
    def DATABASE_URL(self) -> str:
        if self.POSTGRES_USER:
            return str(PostgresDsn.build(
                scheme="postgresql+asyncpg",
                username=self.POSTGRES_USER,
                password=self.POSTGRES_PASSWORD,
                host=self.POSTGRES_HOST,
                port=self.POSTGRES_PORT,
                path=self.POSTGRES_DB,
            ))
        return f"sqlite+aiosqlite:///{self.SQLITE_PATH}"

    DB_ECHO: bool = False

    # Storage calls are cancelled after this many seconds
    STORAGE_TIMEOUT_SECONDS: float = 10.0

    # Failed resolutions are re-armed this many seconds later
    RESOLUTION_RETRY_SECONDS: int = 60
    RESOLUTION_MAX_RETRIES: int = 5

    SCHEDULER_TIMEZONE: str = "UTC"
    LOG_LEVEL: str = "INFO"

settings = Settings()
