# app/core/settings.py
"""
Application settings.

Read once from the environment; every value has a default so the app
starts against a local SQLite file with no configuration at all.
"""
from __future__ import annotations
from dataclasses import dataclass, field
import os

from core.constants import DEFAULT_TARGET_THRESHOLD


@dataclass(frozen=True)
class DBSettings:
    url: str = "sqlite:///obe.db"
    echo: bool = False


@dataclass(frozen=True)
class AppSettings:
    title: str = "OBE Marks Management"
    default_threshold: int = DEFAULT_TARGET_THRESHOLD
    # Created as super admin when the users table is empty
    bootstrap_admin_email: str = "admin@example.com"


@dataclass(frozen=True)
class Settings:
    db: DBSettings = field(default_factory=DBSettings)
    app: AppSettings = field(default_factory=AppSettings)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_settings() -> Settings:
    try:
        threshold = int(os.environ.get("OBE_DEFAULT_THRESHOLD", DEFAULT_TARGET_THRESHOLD))
    except ValueError:
        threshold = DEFAULT_TARGET_THRESHOLD

    return Settings(
        db=DBSettings(
            url=os.environ.get("OBE_DB_URL", DBSettings.url),
            echo=_env_bool("OBE_DB_ECHO", False),
        ),
        app=AppSettings(
            title=os.environ.get("OBE_APP_TITLE", AppSettings.title),
            default_threshold=threshold,
            bootstrap_admin_email=os.environ.get("OBE_ADMIN_EMAIL", AppSettings.bootstrap_admin_email),
        ),
    )
