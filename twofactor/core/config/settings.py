from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[3]

DEFAULT_HOME_DIR = Path.home() / ".twofactor"
DEFAULT_DB_PATH = DEFAULT_HOME_DIR / "store.db"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TWOFACTOR_",
        env_file=(BASE_DIR / ".env", BASE_DIR / ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = f"sqlite+aiosqlite:///{DEFAULT_DB_PATH}"
    encryption_key: SecretStr | None = None
    totp_issuer: str = "JobTracker Pro"
    backup_code_count: int = Field(default=10, gt=0)
    pending_setup_ttl_seconds: int = Field(default=10 * 60, gt=0)
    pending_setup_sweep_enabled: bool = True
    pending_setup_sweep_interval_seconds: int = Field(default=60, gt=0)

    @field_validator("database_url")
    @classmethod
    def _expand_database_url(cls, value: str) -> str:
        for prefix in ("sqlite+aiosqlite:///", "sqlite:///"):
            if value.startswith(prefix):
                path = value[len(prefix) :]
                if path.startswith("~"):
                    return f"{prefix}{Path(path).expanduser()}"
        return value

    @field_validator("encryption_key", mode="before")
    @classmethod
    def _blank_encryption_key_is_missing(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("totp_issuer")
    @classmethod
    def _require_issuer(cls, value: str) -> str:
        stripped = value.strip()
        if not stripped:
            raise ValueError("totp_issuer must not be blank")
        return stripped


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
