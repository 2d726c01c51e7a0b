"""
Package metadata and configuration.

``Properties`` can be built from a plain mapping or parsed from a
YAML, JSON or TOML file.
"""

from __future__ import annotations

import json
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final, TypeAlias, final

import yaml

JsonScalar: TypeAlias = str | int | float | bool | None
JsonValue: TypeAlias = JsonScalar | list["JsonValue"] | dict[str, "JsonValue"]

_ALIASES: Final[Mapping[str, str]] = {
    "baseName": "base_name",
    "basePath": "base_path",
    "isDebug": "is_debug",
    "debug": "is_debug",
    "authorUri": "author_uri",
}


@final
@dataclass(frozen=True, kw_only=True, slots=True, weakref_slot=True)
class Properties:
    base_name: str
    """Package identifier. Used as package name and inside hook names."""

    base_path: Path | None = None
    name: str = ""
    """Human readable name, defaults to ``base_name``."""

    version: str = ""
    description: str = ""
    author: str = ""
    author_uri: str = ""
    uri: str = ""
    tags: tuple[str, ...] = ()
    is_debug: bool = False
    extra: Mapping[str, JsonValue] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.base_name:
            raise ValueError("Properties require a non-empty base_name")
        if not self.name:
            object.__setattr__(self, "name", self.base_name)
        tags = (self.tags,) if isinstance(self.tags, str) else tuple(self.tags)
        object.__setattr__(self, "tags", tags)
        object.__setattr__(self, "extra", MappingProxyType(dict(self.extra)))

    def get(self, key: str, default: Any = None) -> Any:
        key = _ALIASES.get(key, key)
        if key != "extra" and key in _FIELD_NAMES:
            return getattr(self, key)
        return self.extra.get(key, default)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], /, **overrides: Any) -> Properties:
        """
        Build properties from a mapping.

        Known keys (snake_case or their camelCase aliases) become fields, any
        other key lands in ``extra``. ``overrides`` win over ``mapping``.

        :raises ValueError: If ``base_name`` is missing or the debug flag is
            not a recognisable boolean.
        """
        known: dict[str, Any] = {}
        extra: dict[str, JsonValue] = {}
        for key, value in {**mapping, **overrides}.items():
            name = _ALIASES.get(key, key)
            if name in _FIELD_NAMES and name != "extra":
                known[name] = value
            else:
                extra[key] = value
        known.setdefault("base_name", "")
        if known.get("base_path") is not None:
            known["base_path"] = Path(known["base_path"])
        if "is_debug" in known:
            known["is_debug"] = _parse_flag(known["is_debug"])
        return cls(**known, extra=extra)

    @classmethod
    def from_file(cls, path: Path | str, /, **overrides: Any) -> Properties:
        """
        Parse a ``.yaml``/``.yml``, ``.json`` or ``.toml`` file.

        ``base_name`` defaults to the file stem and ``base_path`` to the
        file's directory.

        :raises ValueError: If the suffix is unsupported or the document is
            not a mapping.
        """
        path = Path(path)
        data = parse_properties_file(path)
        defaults = {"base_name": path.stem, "base_path": path.parent}
        return cls.from_mapping({**defaults, **data}, **overrides)


_FIELD_NAMES: Final[frozenset[str]] = frozenset(f.name for f in fields(Properties))

_FLAG_STRINGS: Final[Mapping[str, bool]] = {
    "true": True,
    "false": False,
    "1": True,
    "0": False,
    "yes": True,
    "no": False,
    "on": True,
    "off": False,
    "": False,
}


def _parse_flag(value: object) -> bool:
    """
    Accept booleans, 0/1 and their usual string spellings.

    :raises ValueError: For anything else, e.g. ``"maybe"`` or ``2``.
    """
    match value:
        case bool():
            return value
        case 0 | 1:
            return bool(value)
        case str() if value.strip().lower() in _FLAG_STRINGS:
            return _FLAG_STRINGS[value.strip().lower()]
        case _:
            raise ValueError(f"Expected a boolean flag, got {value!r}")


def parse_properties_file(path: Path) -> Mapping[str, JsonValue]:
    suffix = path.suffix.lower()
    match suffix:
        case ".yaml" | ".yml":
            with path.open(encoding="utf-8") as file:
                data = yaml.safe_load(file)
        case ".json":
            with path.open(encoding="utf-8") as file:
                data = json.load(file)
        case ".toml":
            with path.open("rb") as file:
                data = tomllib.load(file)
        case _:
            raise ValueError(f"Unsupported properties file format: {path}")

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError(
            f"Expected a mapping at top level of {path}, got {type(data).__name__}"
        )
    return data
