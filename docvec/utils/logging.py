# -*- coding: utf-8 -*-
"""
SimpleLogger: tiny logging facade for docvec.

- One class with classmethods, printing one line per message to stdout.
- A minimum level and an on/off switch, both initialised from Settings
  (DOCVEC_LOG_LEVEL, DOCVEC_LOG) and adjustable at runtime.
"""

from __future__ import annotations

import datetime
import sys
from typing import ClassVar, Dict

from docvec.config.settings import Settings

_LEVELS: Dict[str, int] = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}


class SimpleLogger:
    """
    Usage:
        SimpleLogger.info("indexed 'a.md' (12 chunks)")
        SimpleLogger.debug("batch 2/3: 7 inputs")
    """

    _enabled: ClassVar[bool] = Settings.get_bool("DOCVEC_LOG", True)
    _prefix: ClassVar[str] = "docvec"
    _min_level: ClassVar[int] = _LEVELS.get(
        str(Settings.get("DOCVEC_LOG_LEVEL", "INFO")).upper(), _LEVELS["INFO"]
    )

    @classmethod
    def _log(cls, level: str, msg: str) -> None:
        if not cls._enabled or _LEVELS[level] < cls._min_level:
            return
        now = datetime.datetime.now().strftime("%H:%M:%S")
        line = f"{cls._prefix} | {level:5s} | {now} | {msg}"
        print(line, file=sys.stdout, flush=True)

    @classmethod
    def debug(cls, msg: str) -> None:
        cls._log("DEBUG", msg)

    @classmethod
    def info(cls, msg: str) -> None:
        cls._log("INFO", msg)

    @classmethod
    def warning(cls, msg: str) -> None:
        cls._log("WARN", msg)

    @classmethod
    def error(cls, msg: str) -> None:
        cls._log("ERROR", msg)

    @classmethod
    def set_enabled(cls, enabled: bool) -> None:
        cls._enabled = enabled

    @classmethod
    def set_level(cls, level: str) -> None:
        key = level.upper()
        if key == "WARNING":
            key = "WARN"
        if key not in _LEVELS:
            raise ValueError(f"unknown log level: {level!r}")
        cls._min_level = _LEVELS[key]
