# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, TypeVar

from credstore.errors import ConfigError

# Anchor the default users.yml path to the project root, not the current working directory.
BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_USERS_PATH = BASE_DIR / "data" / "users.yml"

_TRUE = {"1", "true", "yes", "y"}

T = TypeVar("T")


def env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUE


def env_number(name: str, default: str, cast: Callable[[str], T]) -> Optional[T]:
    """Parse a numeric variable; an empty value yields None."""
    raw = os.getenv(name, default).strip()
    if not raw:
        return None
    try:
        return cast(raw)
    except ValueError as e:
        raise ConfigError(f"{name}={raw!r} no es un número válido") from e


@dataclass(frozen=True)
class Settings:
    users_path: Path
    allow_overwrite: bool = True
    backup_on_save: bool = False
    drain_timeout: Optional[float] = None
    session_max_age: int = 28800  # 8 hours
    cookie_name: str = "credstore_session"
    cookie_secure: bool = False
    secret_key: str = ""
    session_salt: str = "credstore.session.v1"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            users_path=Path(os.getenv("CREDSTORE_USERS_PATH", str(DEFAULT_USERS_PATH))).resolve(),
            allow_overwrite=env_flag("CREDSTORE_ALLOW_OVERWRITE", "true"),
            backup_on_save=env_flag("CREDSTORE_BACKUP_ON_SAVE"),
            drain_timeout=env_number("CREDSTORE_DRAIN_TIMEOUT", "", float),
            session_max_age=env_number("CREDSTORE_SESSION_MAX_AGE", "28800", int) or cls.session_max_age,
            cookie_name=os.getenv("CREDSTORE_COOKIE_NAME", "credstore_session"),
            cookie_secure=env_flag("CREDSTORE_COOKIE_SECURE"),
            secret_key=os.getenv("SECRET_KEY") or os.getenv("CREDSTORE_SECRET_KEY") or "",
            session_salt=os.getenv("CREDSTORE_SESSION_SALT", "credstore.session.v1"),
        )
