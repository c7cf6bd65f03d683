# -*- coding: utf-8 -*-
"""
source_config.py

Purpose:
    The saved list of sources (files or folders) and extensions that make
    up one document index. It lives as `config.json` in the docvec home
    folder, beside (not inside) the index folder, so dropping and
    recreating the index keeps it.

What this module provides:
    1) empty_config() -> SourceConfig
    2) load_config(config_path) -> SourceConfig
       - StorageError if the file is missing, unreadable or malformed.
    3) publish_config(config, config_path) -> None
       - Writes the whole file atomically: *.tmp then os.replace.
    4) add_sources / remove_sources
       - Return a NEW config; the input is left unchanged. Order is kept
         and duplicates are ignored. Extensions are stored lower-case
         without the leading dot.

Config JSON written to disk:
    {
      "version":    1,
      "sources":    ["src", "README.md"],
      "extensions": ["py", "md"]          # empty list = every extension
    }
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Iterable, List, Optional, TypedDict

from docvec.errors import StorageError

CONFIG_NAME = "config.json"


class SourceConfig(TypedDict):
    version: int
    sources: List[str]
    extensions: List[str]


def empty_config() -> SourceConfig:
    return {"version": 1, "sources": [], "extensions": []}


def load_config(config_path: str | Path) -> SourceConfig:
    cp = Path(config_path)
    if not cp.exists():
        raise StorageError(f"No source config at {cp}; create the index first.")
    try:
        with cp.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise StorageError(f"Source config is not valid JSON: {cp}") from e
    except OSError as e:
        raise StorageError(f"Cannot read source config {cp}: {e}") from e

    if not isinstance(data, dict) \
            or not isinstance(data.get("sources", []), list) \
            or not isinstance(data.get("extensions") or [], list):
        raise StorageError(f"Source config has an unexpected shape: {cp}")
    return {
        "version": int(data.get("version", 1)),
        "sources": [str(s) for s in data.get("sources", [])],
        "extensions": [_extension(e) for e in data.get("extensions") or []],
    }


def publish_config(config: SourceConfig, config_path: str | Path) -> None:
    cp = Path(config_path)
    tmp_path = cp.with_suffix(cp.suffix + ".tmp")
    try:
        cp.parent.mkdir(parents=True, exist_ok=True)
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(config, f, ensure_ascii=False, indent=2)
        os.replace(str(tmp_path), str(cp))
    except OSError as e:
        raise StorageError(f"Error saving source config {cp}: {e}") from e


def add_sources(
    config: SourceConfig,
    sources: Iterable[str | Path] = (),
    extensions: Iterable[str] = (),
) -> SourceConfig:
    new_sources = list(config["sources"])
    for source in sources:
        if str(source) not in new_sources:
            new_sources.append(str(source))
    new_extensions = list(config["extensions"])
    for extension in extensions:
        if _extension(extension) not in new_extensions:
            new_extensions.append(_extension(extension))
    return {"version": config["version"], "sources": new_sources, "extensions": new_extensions}


def remove_sources(
    config: SourceConfig,
    sources: Iterable[str | Path] = (),
    extensions: Iterable[str] = (),
) -> SourceConfig:
    dropped_sources = {str(s) for s in sources}
    dropped_extensions = {_extension(e) for e in extensions}
    return {
        "version": config["version"],
        "sources": [s for s in config["sources"] if s not in dropped_sources],
        "extensions": [e for e in config["extensions"] if e not in dropped_extensions],
    }


def extension_filter(config: SourceConfig) -> Optional[List[str]]:
    """The loader's whitelist: None when the config names no extensions."""
    return list(config["extensions"]) or None


def _extension(extension: str) -> str:
    return str(extension).lower().lstrip(".")
