"""
Settings
========
Centralised, cached access to environment configuration.
Values from a local `.env` file are loaded once, before the first lookup.
"""
from __future__ import annotations

import os
from typing import Any, ClassVar, Dict, List

from dotenv import load_dotenv

from docvec.errors import ConfigError


class Settings:
    _CACHE: ClassVar[Dict[str, Any]] = {}
    _DOTENV_LOADED: ClassVar[bool] = False

    @classmethod
    def get(cls, key: str, default: Any | None = None) -> Any:
        if not cls._DOTENV_LOADED:
            load_dotenv()
            cls._DOTENV_LOADED = True
        if key not in cls._CACHE:
            cls._CACHE[key] = os.getenv(key, default)
        return cls._CACHE[key]

    @classmethod
    def get_int(cls, key: str, default: int) -> int:
        raw = cls.get(key)
        if raw is None or raw == "":
            return default
        try:
            return int(raw)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"{key} must be an integer, got {raw!r}") from exc

    @classmethod
    def get_bool(cls, key: str, default: bool) -> bool:
        raw = cls.get(key)
        if raw is None or raw == "":
            return default
        value = str(raw).strip().lower()
        if value in ("1", "true", "yes", "on"):
            return True
        if value in ("0", "false", "no", "off"):
            return False
        raise ConfigError(f"{key} must be a boolean, got {raw!r}")

    @classmethod
    def get_list(cls, key: str, default: List[str]) -> List[str]:
        raw = cls.get(key)
        if raw is None or raw == "":
            return list(default)
        return [part.strip() for part in str(raw).split(",") if part.strip()]

    @classmethod
    def clear(cls) -> None:
        """Forget cached values (used by tests that patch the environment)."""
        cls._CACHE.clear()
