"""
Host settings access.

Settings are a flat mapping of dotted keys, e.g. ``metrics.graphite.hostname``.
Nested JSON documents are flattened on load so both shapes work.
"""

import json
import re
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional

from .exceptions import ConfigurationError

_DURATION_RE = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h|d)?\s*$', re.IGNORECASE)

_DURATION_UNITS = {
    'ms': 0.001,
    's': 1.0,
    'm': 60.0,
    'h': 3600.0,
    'd': 86400.0,
}

_TRUE_VALUES = {'true', '1', 'yes', 'on'}
_FALSE_VALUES = {'false', '0', 'no', 'off'}


def parse_duration(value: Any) -> float:
    """
    Parse a duration into seconds.

    Accepts numbers (seconds) or strings such as ``500ms``, ``30s``, ``1m``,
    ``2h`` and ``1d``. A bare numeric string is read as seconds.

    Raises:
        ConfigurationError: If the value cannot be parsed.
    """
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        return float(value)

    match = _DURATION_RE.match(str(value))
    if not match:
        raise ConfigurationError(f"Invalid duration: {value!r}")

    amount, unit = match.groups()
    return float(amount) * _DURATION_UNITS[(unit or 's').lower()]


def flatten(data: Mapping[str, Any], parent: str = '') -> Dict[str, Any]:
    """Flatten nested mappings into dotted keys."""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        full_key = f"{parent}.{key}" if parent else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten(value, full_key))
        else:
            flat[full_key] = value
    return flat


class Settings:
    """
    Read-only view over host settings.

    Usage:
        settings = Settings({'metrics': {'graphite': {'hostname': 'gr.test'}}})
        component = settings.component('metrics')
        component.get('graphite.hostname')      # 'gr.test'
        component.get_as_int('graphite.port', 2003)
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None):
        self._values = flatten(values or {})

    @classmethod
    def load(cls, path) -> "Settings":
        """Load settings from a JSON file."""
        path = Path(path)
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Could not read settings file {path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Settings file {path} must contain a JSON object")
        return cls(data)

    def component(self, name: str) -> "Settings":
        """Return the settings under ``name.`` with the prefix stripped."""
        prefix = name + '.'
        return Settings({
            key[len(prefix):]: value
            for key, value in self._values.items()
            if key.startswith(prefix)
        })

    def with_overrides(self, overrides: Mapping[str, Any]) -> "Settings":
        """Return a copy with the given keys replaced. ``None`` values are ignored."""
        merged = dict(self._values)
        merged.update({k: v for k, v in flatten(overrides).items() if v is not None})
        return Settings(merged)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def get_as_int(self, key: str, default: Optional[int] = None) -> Optional[int]:
        value = self._values.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Setting [{key}] must be an integer, got {value!r}") from e

    def get_as_bool(self, key: str, default: bool = False) -> bool:
        value = self._values.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        text = str(value).strip().lower()
        if text in _TRUE_VALUES:
            return True
        if text in _FALSE_VALUES:
            return False
        raise ConfigurationError(f"Setting [{key}] must be a boolean, got {value!r}")

    def get_as_time(self, key: str, default: float) -> float:
        """Return a duration setting in seconds."""
        value = self._values.get(key)
        if value is None:
            return default
        try:
            return parse_duration(value)
        except ConfigurationError as e:
            raise ConfigurationError(f"Setting [{key}]: {e}") from e

    def get_as_list(self, key: str) -> List[str]:
        """
        Return a list setting.

        Lists are returned as-is, comma separated strings are split, and
        ``key.0``, ``key.1`` ... entries (flattened arrays) are collected.
        """
        value = self._values.get(key)
        if value is None:
            indexed = []
            i = 0
            while f"{key}.{i}" in self._values:
                indexed.append(str(self._values[f"{key}.{i}"]))
                i += 1
            return indexed
        if isinstance(value, (list, tuple)):
            return [str(v) for v in value]
        return [part.strip() for part in str(value).split(',') if part.strip()]

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._values)

    def __contains__(self, key: str) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)


class SettingsFilter:
    """
    Registration point for filters that strip sensitive keys before settings
    are shown in diagnostics.

    A filter receives a mutable flat dict and removes what it must.
    """

    def __init__(self):
        self._filters: List[Callable[[Dict[str, Any]], None]] = []

    def add_filter(self, settings_filter: Callable[[Dict[str, Any]], None]) -> None:
        self._filters.append(settings_filter)

    def remove_filter(self, settings_filter: Callable[[Dict[str, Any]], None]) -> None:
        if settings_filter in self._filters:
            self._filters.remove(settings_filter)

    def filter_settings(self, settings: Settings) -> Dict[str, Any]:
        """Return a filtered copy of the settings as a flat dict."""
        values = settings.as_dict()
        for settings_filter in self._filters:
            settings_filter(values)
        return values


class MetricsSettingsFilter:
    """Removes Graphite endpoint details and statistics credentials."""

    PREFIXES = ('metrics.graphite.',)
    KEYS = ('metrics.stats.username', 'metrics.stats.password')

    def __call__(self, values: Dict[str, Any]) -> None:
        for key in list(values):
            if key.startswith(self.PREFIXES) or key in self.KEYS:
                del values[key]
