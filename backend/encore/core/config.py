import json
from typing import Union

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_cors_origins(v: Union[str, list[str]]) -> list[str]:
    """Parse CORS_ORIGINS from env: JSON array, comma-separated, or single URL."""
    if isinstance(v, list):
        return [str(x).strip() for x in v if x]
    s = str(v).strip()
    if not s:
        return []
    if s.startswith("["):
        try:
            return [x.strip() for x in json.loads(s) if x]
        except json.JSONDecodeError:
            pass
    return [x.strip() for x in s.split(",") if x.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Database ──────────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./encore.db"
    DB_ECHO: bool = False
    # Create tables at startup when migrations have not been applied
    AUTO_CREATE_TABLES: bool = True

    # ── Catalog (iTunes Search API) ───────────────────────────────────────────
    CATALOG_BASE_URL: str = "https://itunes.apple.com"
    CATALOG_COUNTRY: str = "US"
    CATALOG_TIMEOUT_SECONDS: float = 10.0
    CATALOG_RESULT_LIMIT: int = 25

    # ── Server ────────────────────────────────────────────────────────────────
    PORT: int = 8000

    # ── CORS ──────────────────────────────────────────────────────────────────
    # Env: comma-separated (https://a.com,https://b.com) or JSON ["https://a.com"]
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors(cls, v: object) -> list[str]:
        if v is None:
            return []
        return _parse_cors_origins(v)

    # ── Ranking ───────────────────────────────────────────────────────────────
    # None = fail fast in development, auto-repair in production
    STRICT_INVARIANTS: bool | None = None
    # Snapshot writes: tries per snapshot and pause between tries
    PERSIST_WRITE_ATTEMPTS: int = 3
    PERSIST_RETRY_DELAY_SECONDS: float = 0.5

    # ── Logging ───────────────────────────────────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    LOG_FILE: str = ""

    # ── App ───────────────────────────────────────────────────────────────────
    APP_ENV: str = "development"  # development | production
    ENABLE_DOCS: bool = True  # Set to False to disable /docs in production

    @property
    def is_dev(self) -> bool:
        return self.APP_ENV == "development"

    @property
    def fail_fast_invariants(self) -> bool:
        if self.STRICT_INVARIANTS is None:
            return self.is_dev
        return self.STRICT_INVARIANTS


settings = Settings()
