from __future__ import annotations

import copy
from decimal import Decimal, InvalidOperation
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Tuple

from ..calculators.tiered_rate import RateBand
from ..errors import ConfigurationError

D = Decimal

_MISSING = object()


def freeze(value: Any) -> Any:
    """Read-only deep copy: mappings become MappingProxyType, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({str(k): freeze(v) for k, v in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(freeze(v) for v in value)
    return value


def deep_merge(base: Mapping[str, Any], overrides: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Leaf-level merge: nested mappings are merged key by key, every other value
    (scalars, lists) in `overrides` replaces the base value.
    """
    merged: Dict[str, Any] = copy.deepcopy(dict(base))
    for key, value in (overrides or {}).items():
        current = merged.get(key)
        if isinstance(current, Mapping) and isinstance(value, Mapping):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class ConfigTable:
    """
    Read-only snapshot of the tunable constants, addressed by dotted key path.

    One instance is held by a pipeline run for its whole duration; a reload in
    the provider produces a new instance and never touches this one.
    Missing keys and wrong types raise ConfigurationError: a deployment defect,
    never silently replaced by a guess.
    """

    def __init__(self, data: Mapping[str, Any]):
        self._raw: Dict[str, Any] = copy.deepcopy(dict(data))
        self._data = freeze(self._raw)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ConfigTable):
            return NotImplemented
        return self._raw == other._raw

    def __hash__(self) -> int:
        return hash(self.version)

    def __repr__(self) -> str:
        return f"ConfigTable(version={self.version!r})"

    @property
    def version(self) -> str:
        return str(self._raw.get("version") or "unversioned")

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._raw)

    def get(self, path: str, default: Any = _MISSING) -> Any:
        node: Any = self._data
        for part in path.split("."):
            if isinstance(node, Mapping) and part in node:
                node = node[part]
                continue
            if default is not _MISSING:
                return default
            raise ConfigurationError(
                f"Missing configuration key '{path}'", {"path": path, "missingPart": part}
            )
        return node

    def section(self, path: str) -> Mapping[str, Any]:
        value = self.get(path)
        if not isinstance(value, Mapping):
            raise ConfigurationError(f"Configuration key '{path}' is not a section", {"path": path})
        return value

    def decimal(self, path: str) -> D:
        value = self.get(path)
        return self._to_decimal(path, value)

    def optional_decimal(self, path: str) -> Optional[D]:
        value = self.get(path)
        if value is None:
            return None
        return self._to_decimal(path, value)

    def integer(self, path: str) -> int:
        value = self.get(path)
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationError(
                f"Configuration key '{path}' must be an integer", {"path": path, "value": repr(value)}
            )
        return value

    def text(self, path: str) -> str:
        value = self.get(path)
        if not isinstance(value, str) or not value:
            raise ConfigurationError(
                f"Configuration key '{path}' must be a non-empty string", {"path": path}
            )
        return value

    def bands(self, path: str) -> Tuple[RateBand, ...]:
        raw = self.get(path)
        if not isinstance(raw, tuple) or not raw:
            raise ConfigurationError(f"Configuration key '{path}' must be a list of bands", {"path": path})

        out = []
        for i, band in enumerate(raw):
            if not isinstance(band, Mapping) or "rate" not in band:
                raise ConfigurationError(
                    f"Band {i} of '{path}' needs 'up_to' and 'rate'", {"path": path, "index": i}
                )
            up_to = band.get("up_to")
            out.append(
                RateBand(
                    up_to=None if up_to is None else self._to_decimal(f"{path}[{i}].up_to", up_to),
                    rate=self._to_decimal(f"{path}[{i}].rate", band["rate"]),
                )
            )
        return tuple(out)

    @staticmethod
    def _to_decimal(path: str, value: Any) -> D:
        if isinstance(value, bool):
            raise ConfigurationError(f"Configuration key '{path}' must be numeric", {"path": path})
        try:
            return D(str(value))
        except (InvalidOperation, ValueError):
            raise ConfigurationError(
                f"Configuration key '{path}' must be numeric", {"path": path, "value": repr(value)}
            )
