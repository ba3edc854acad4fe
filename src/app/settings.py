# src/app/settings.py
from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Compute project root: repo/ (two levels up from this file: repo/src/app/settings.py)
PROJECT_ROOT = Path(__file__).resolve().parents[2]
DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_DB = DATA_DIR / "cellar.db"


class Settings(BaseSettings):
    """
    Central application configuration.

    Sources (highest precedence first):
      1. Environment variables (prefixed with CELLAR_, e.g. CELLAR_DB_PATH)
      2. .env file at data/.env
      3. Defaults below
    """

    model_config = SettingsConfigDict(
        env_file=str(DATA_DIR / ".env"),
        env_prefix="CELLAR_",
        extra="ignore",
    )

    # App/server
    debug: bool = Field(default=False, description="Enable debug mode")
    host: str = Field(default="127.0.0.1", description="Server host to bind")
    port: int = Field(default=8000, description="Server port to bind")
    log_level: str = Field(default="INFO", description="Logging level name")

    # Paths
    db_path: Path = Field(default=DEFAULT_DB, description="SQLite DB path")

    # Storage defaults
    default_bin_capacity: int = Field(
        default=10, ge=1, description="Bottles per bin cell when a bin rack omits capacity"
    )

    # Remote inventory (lot ledger); local lots table is used when unset
    inventory_api_base_url: str | None = Field(
        default=None, description="Base URL of the inventory API, e.g. https://cellar.example"
    )
    inventory_api_token: str | None = Field(default=None, description="Bearer token")
    inventory_api_timeout: int = Field(default=30, description="Request timeout (seconds)")
    inventory_api_max_retries: int = Field(
        default=5, ge=1, description="Total attempts for transient errors"
    )

    # --- Validators / normalizers ---
    @field_validator("db_path", mode="before")
    @classmethod
    def _expand_user_and_env(cls, v):
        if isinstance(v, str | Path):
            return Path(str(v)).expanduser()
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def _normalize_level(cls, v):
        if isinstance(v, str):
            return v.strip().upper() or "INFO"
        return v

    # --- Helpers ---
    def ensure_directories(self) -> None:
        """Create the parent dir for the DB (idempotent)."""
        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Singleton-style accessor so imports are cheap and consistent system-wide.
    Also ensures directories exist on first access.
    """
    s = Settings()
    s.ensure_directories()
    return s


if __name__ == "__main__":
    # Handy for a quick sanity check:
    s = get_settings()
    print("PROJECT_ROOT:", PROJECT_ROOT)
    print("debug:", s.debug)
    print("host:", s.host, "port:", s.port)
    print("log_level:", s.log_level)
    print("db_path:", s.db_path)
    print("default_bin_capacity:", s.default_bin_capacity)
    print("inventory_api_base_url:", s.inventory_api_base_url or "(local lots table)")
    print("inventory_api_token set?:", bool(s.inventory_api_token))
