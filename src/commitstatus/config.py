from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

import dotenv
import pydantic

dotenv.load_dotenv()


def _bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(pydantic.BaseModel):
    model_config = pydantic.ConfigDict(extra="forbid", frozen=True)

    DB_PATH: Path = Path("commitstatus.sqlite3")

    POLICY_FILE: Path | None = None
    POLICY_CACHE_SECONDS: float = 60.0

    BUILD_NUMBER_VAR: str = "JX_BUILD_NUMBER"
    PULL_REQUESTS_ONLY: bool = False

    RECONCILE_MAX_ATTEMPTS: int = 3
    EVENT_TIMEOUT_SECONDS: float = 30.0
    DEBOUNCE_SECONDS: float = 0.0

    GITHUB_TOKEN: str | None = None
    GITHUB_API_URL: str = "https://api.github.com"
    STATUS_TARGET_URL: str | None = None
    DRY_RUN: bool = False

    OVERRIDE_LOGGING: int = logging.WARNING
    TELEGRAM_TOKEN: str | None = None
    TELEGRAM_CHAT_ID: str | None = None

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        policy_file = env.get("POLICY_FILE")
        return cls(
            DB_PATH=Path(env.get("DB_PATH", "commitstatus.sqlite3")),
            POLICY_FILE=Path(policy_file) if policy_file else None,
            POLICY_CACHE_SECONDS=float(env.get("POLICY_CACHE_SECONDS", 60)),
            BUILD_NUMBER_VAR=env.get("BUILD_NUMBER_VAR", "JX_BUILD_NUMBER"),
            PULL_REQUESTS_ONLY=_bool(env.get("PULL_REQUESTS_ONLY")),
            RECONCILE_MAX_ATTEMPTS=max(1, int(env.get("RECONCILE_MAX_ATTEMPTS", 3))),
            EVENT_TIMEOUT_SECONDS=float(env.get("EVENT_TIMEOUT_SECONDS", 30)),
            DEBOUNCE_SECONDS=float(env.get("DEBOUNCE_SECONDS", 0)),
            GITHUB_TOKEN=env.get("GITHUB_TOKEN"),
            GITHUB_API_URL=env.get("GITHUB_API_URL", "https://api.github.com"),
            STATUS_TARGET_URL=env.get("STATUS_TARGET_URL"),
            DRY_RUN=_bool(env.get("DRY_RUN")),
            OVERRIDE_LOGGING=logging.getLevelName(
                env.get("OVERRIDE_LOGGING", "WARNING").upper()
            ),
            TELEGRAM_TOKEN=env.get("TELEGRAM_TOKEN"),
            TELEGRAM_CHAT_ID=env.get("TELEGRAM_CHAT_ID"),
        )


SETTINGS = Settings.from_env()
