from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml
from jsonschema import ValidationError, validate

from ..errors import ConfigurationError
from ..logging_config import get_logger
from .table import ConfigTable, deep_merge

logger = get_logger(__name__)

SCHEMA_PATH = Path(__file__).resolve().parents[1] / "schemas" / "modules_config.schema.json"


def _read_yaml(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {path}", {"path": path})
    return raw


def _load_schema() -> Dict[str, Any]:
    with SCHEMA_PATH.open("r", encoding="utf-8") as f:
        return json.load(f)


def build_table(base: Dict[str, Any], overrides: Optional[Dict[str, Any]] = None) -> ConfigTable:
    """Merge overrides over the base table, validate the result, freeze it."""
    merged = deep_merge(base, overrides or {})
    try:
        validate(instance=merged, schema=_load_schema())
    except ValidationError as e:
        path = ".".join(str(p) for p in e.absolute_path)
        raise ConfigurationError(f"Invalid configuration at '{path}': {e.message}", {"path": path}) from e
    return ConfigTable(merged)


@dataclass(frozen=True)
class LoadedConfig:
    table: ConfigTable
    mtimes: Tuple[int, int]


class ConfigProvider:
    """
    Static constants table + optional override layer, hot reloaded from disk (thread-safe).

    - Keeps the last known-good table active
    - On each snapshot(): checks mtime_ns of both files; if changed -> reload + validate
    - If reload fails: logs the error and keeps the old table
    - A snapshot is an immutable ConfigTable; runs in flight keep theirs
    """

    def __init__(self, base_path: str, overrides_path: Optional[str] = None):
        self.base_path = str(base_path)
        self.overrides_path = str(overrides_path) if overrides_path else None
        self._lock = threading.Lock()
        self._loaded: Optional[LoadedConfig] = None

        # eager initial load (fail-fast if missing or invalid)
        self._loaded = self._load_from_disk_or_raise()

    def snapshot(self) -> ConfigTable:
        try:
            current = self._stat_mtimes()
        except FileNotFoundError:
            if self._loaded is None:
                raise
            logger.warning("config file missing, keeping previous table base={}", self.base_path)
            return self._loaded.table

        loaded = self._loaded
        if loaded is not None and current == loaded.mtimes:
            return loaded.table

        with self._lock:
            loaded = self._loaded
            # double-check after acquiring lock
            try:
                current = self._stat_mtimes()
            except FileNotFoundError:
                if loaded is None:
                    raise
                return loaded.table

            if loaded is not None and current == loaded.mtimes:
                return loaded.table

            try:
                new_loaded = self._load_from_disk_or_raise(expected_mtimes=current)
            except (ConfigurationError, yaml.YAMLError, OSError) as e:
                if loaded is None:
                    raise
                logger.error("config reload failed, keeping previous table: {!r}", e)
                return loaded.table

            self._loaded = new_loaded
            logger.info("config reloaded version={} mtimes={}", new_loaded.table.version, current)
            return new_loaded.table

    # -----------------
    # internals
    # -----------------

    def _stat_mtimes(self) -> Tuple[int, int]:
        base = os.stat(self.base_path).st_mtime_ns
        overrides = 0
        if self.overrides_path:
            try:
                overrides = os.stat(self.overrides_path).st_mtime_ns
            except FileNotFoundError:
                # overrides are optional; a removed file means "no overrides"
                overrides = 0
        return base, overrides

    def _load_from_disk_or_raise(self, expected_mtimes: Optional[Tuple[int, int]] = None) -> LoadedConfig:
        if expected_mtimes is None:
            expected_mtimes = self._stat_mtimes()

        base = _read_yaml(self.base_path)
        overrides: Dict[str, Any] = {}
        if self.overrides_path and expected_mtimes[1]:
            overrides = _read_yaml(self.overrides_path)

        return LoadedConfig(table=build_table(base, overrides), mtimes=expected_mtimes)
