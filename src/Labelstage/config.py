"""Settings loader for Labelstage."""

from pathlib import Path
from typing import Any, Literal

import tomllib
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _toml_settings_source() -> dict[str, Any]:
    """Load settings from config.toml with keys mapped to Settings fields.

    This source has LOWER priority than env/.env so those can override TOML.
    """
    cfg_path = Path("config.toml")
    if not cfg_path.exists():
        return {}
    with cfg_path.open("rb") as f:
        t = tomllib.load(f)
    out: dict[str, Any] = {
        "env": t.get("app", {}).get("env", "dev"),
        # Logging config
        "logging_enabled": t.get("logging", {}).get("enabled", True),
        "logging_level": t.get("logging", {}).get("level", "INFO"),
        "logging_file_path": t.get("logging", {}).get("file_path", "logs/labelstage.jsonl"),
        "logging_max_bytes": t.get("logging", {}).get("max_bytes", 5_000_000),
        "logging_backup_count": t.get("logging", {}).get("backup_count", 5),
    }

    db_cfg = t.get("database", {}) or {}
    if db_cfg.get("url"):
        out["database_url"] = db_cfg["url"]

    # [materializer]
    # flush_policy = "deferred"   # or "eager"
    # max_nesting_depth = 32
    # max_concurrency = 4
    mat_cfg = t.get("materializer", {}) or {}
    if "flush_policy" in mat_cfg:
        out["materializer_flush_policy"] = str(mat_cfg["flush_policy"]).lower()
    if "max_nesting_depth" in mat_cfg:
        out["materializer_max_nesting_depth"] = int(mat_cfg["max_nesting_depth"])
    if "max_concurrency" in mat_cfg:
        out["materializer_max_concurrency"] = int(mat_cfg["max_concurrency"])

    log_cfg = t.get("logging", {}) or {}
    overall = out["logging_level"]

    def _norm_level(v, default):
        if isinstance(v, str):
            return v.upper()
        if isinstance(v, bool):
            return default if v else "NONE"
        return default

    out["logging_console"] = _norm_level(log_cfg.get("console"), overall)
    out["logging_file"] = _norm_level(log_cfg.get("to_file"), overall)
    return out


class Settings(BaseSettings):
    env: str = Field(default="dev")
    database_url: str = Field(default="sqlite+aiosqlite:///./labelstage.sqlite3")

    # --- Materializer ---
    materializer_flush_policy: Literal["deferred", "eager"] = "deferred"
    materializer_max_nesting_depth: int = Field(default=32, ge=1)
    materializer_max_concurrency: int = Field(default=4, ge=1)

    # --- Logging ---
    logging_enabled: bool = True
    logging_level: str = "INFO"
    logging_console: str = "INFO"
    logging_file: str = "NONE"
    logging_file_path: str = "logs/labelstage.jsonl"
    logging_max_bytes: int = 5_000_000
    logging_backup_count: int = 5

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # Precedence (highest to lowest):
        # 1) init_settings (explicit overrides in code/tests)
        # 2) dotenv (.env in cwd)
        # 3) env_settings (OS env)
        # 4) TOML (config.toml) project defaults
        # 5) file_secret_settings
        return (
            init_settings,
            dotenv_settings,
            env_settings,
            _toml_settings_source,
            file_secret_settings,
        )


def load_settings() -> Settings:
    return Settings()
