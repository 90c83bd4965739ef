"""Hierarchical configuration reader."""

from __future__ import annotations

import copy
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from cisl_io.errors import ConfigurationError

DEFAULT_COG_FILE = "cog.json"
_MISSING = object()


class Config:
    """Read-only view over a nested mapping addressed by ``:``-separated keys.

    ``get("rabbit:exchange")`` walks nested sections. A literal key that
    itself contains ``:`` takes precedence over walking. An ``mq`` section is
    accepted as an alias for ``rabbit``.
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        config: Dict[str, Any] = copy.deepcopy(dict(data or {}))
        if config.get("mq") and not config.get("rabbit"):
            config["rabbit"] = config["mq"]
        self._config = config

    @classmethod
    def load(cls, path: Union[str, Path, None] = None) -> Config:
        """Load a JSON cog file.

        The file is taken from ``path``, then ``$COG_FILE``, then ``./cog.json``
        when it exists. ``$RABBITMQ_URL`` fills ``rabbit.url`` when the file
        does not set it.
        """
        candidate = path or os.getenv("COG_FILE")
        logger = logging.getLogger(__name__)
        data: Dict[str, Any] = {}
        if candidate:
            logger.debug("Loading configuration from %s", candidate)
            data = _read_json(Path(candidate))
        elif Path(DEFAULT_COG_FILE).is_file():
            logger.debug("Loading configuration from %s", DEFAULT_COG_FILE)
            data = _read_json(Path(DEFAULT_COG_FILE))

        url = (os.getenv("RABBITMQ_URL") or "").strip()
        if url:
            section = data.get("rabbit", data.get("mq"))
            if not isinstance(section, dict):
                section = {}
            section.setdefault("url", url)
            data["rabbit"] = section

        return cls(data)

    def get(self, key: str, default: Any = _MISSING) -> Any:
        if key in self._config:
            return self._config[key]
        pieces = key.split(":")
        if pieces == [""]:
            raise ConfigurationError("Search key cannot be empty")

        value: Any = self._config
        while pieces:
            for end in range(len(pieces), 0, -1):
                candidate = ":".join(pieces[:end])
                if isinstance(value, Mapping) and candidate in value:
                    value = value[candidate]
                    pieces = pieces[end:]
                    break
            else:
                if default is not _MISSING:
                    return default
                raise ConfigurationError(f"Could not find key: {key}")
        return value

    def has(self, key: str) -> bool:
        try:
            self.get(key)
        except ConfigurationError:
            return False
        return True

    def has_value(self, key: str) -> bool:
        value = self.get(key, False)
        return value is not False and value is not None

    def defaults(self, defaults: Mapping[str, Any]) -> None:
        """Fill in missing keys recursively; a key set to ``True`` takes the default."""
        self._config = _recursive_defaults(self._config, defaults)

    def required(self, keys: Iterable[str]) -> None:
        for key in keys:
            if not self.get(key, None):
                raise ConfigurationError(f"Value required for key: {key}")

    def as_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)


def _recursive_defaults(config: Dict[str, Any], defaults: Mapping[str, Any]) -> Dict[str, Any]:
    for key, default in defaults.items():
        if key not in config or config[key] is True:
            config[key] = copy.deepcopy(default)
        elif isinstance(config[key], dict) and isinstance(default, Mapping):
            config[key] = _recursive_defaults(config[key], default)
    return config


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Unable to read configuration file: {path}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file must contain an object: {path}")
    return data
