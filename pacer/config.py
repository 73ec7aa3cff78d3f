from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PACER_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    database_url: str = "sqlite:///pacer.db"
    sqlite_wal: bool = True
    tick_interval_seconds: float = 1.0
    log_level: str | None = None  # DEBUG, INFO, WARNING, ERROR or CRITICAL

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


settings = Settings()
