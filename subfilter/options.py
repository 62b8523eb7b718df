"""
Middleware configuration.

The host hands us a mapping shaped like

    lastModified: false
    filters:
      - regex: "foo"
        replacement: "bar"

either directly or as YAML/JSON text. It is validated once and frozen into a
`MiddlewareConfig`, which is then shared by every request the middleware serves.
"""

from __future__ import annotations

import typing
from collections.abc import Mapping
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

import ruamel.yaml

from subfilter import exceptions


class FilterSpec(typing.NamedTuple):
    # None when the config entry has no regex, such a filter is dropped with a warning.
    pattern: str | None
    replacement: str = ""

    @classmethod
    def from_dict(cls, data: typing.Any) -> FilterSpec:
        if not isinstance(data, Mapping):
            raise exceptions.OptionsError(
                f"Filter must be a mapping, not {type(data).__name__}: {data!r}"
            )
        unknown = set(data) - {"regex", "replacement"}
        if unknown:
            raise exceptions.OptionsError(
                f"Unknown filter keys: {', '.join(sorted(map(str, unknown)))}"
            )
        pattern = data.get("regex")
        replacement = data.get("replacement", "")
        if replacement is None:
            replacement = ""
        bad_pattern = pattern is not None and not isinstance(pattern, str)
        if bad_pattern or not isinstance(replacement, str):
            raise exceptions.OptionsError(
                f"Filter regex and replacement must be strings: {dict(data)!r}"
            )
        return cls(pattern, replacement)


@dataclass(frozen=True)
class MiddlewareConfig:
    last_modified: bool = False
    filters: tuple[FilterSpec, ...] = field(default_factory=tuple)

    def __post_init__(self):
        # Accept any iterable of specs or (regex, replacement) pairs, store a tuple.
        object.__setattr__(
            self, "filters", tuple(FilterSpec(*f) for f in self.filters)
        )

    @classmethod
    def from_dict(cls, data: typing.Any) -> MiddlewareConfig:
        if data is None:
            return cls()
        if not isinstance(data, Mapping):
            raise exceptions.OptionsError(
                f"Configuration must be a mapping, not {type(data).__name__}."
            )
        unknown = set(data) - {"lastModified", "filters"}
        if unknown:
            raise exceptions.OptionsError(
                f"Unknown options: {', '.join(sorted(map(str, unknown)))}"
            )

        last_modified = data.get("lastModified", False)
        if last_modified is None:
            last_modified = False
        if not isinstance(last_modified, bool):
            raise exceptions.OptionsError(
                f"lastModified must be a boolean, not {last_modified!r}"
            )

        filters = data.get("filters") or []
        if not isinstance(filters, list):
            raise exceptions.OptionsError(
                f"filters must be a list, not {type(filters).__name__}."
            )

        return cls(
            last_modified=last_modified,
            filters=tuple(FilterSpec.from_dict(f) for f in filters),
        )


def create_config() -> MiddlewareConfig:
    """
    Default configuration: keep nothing, rewrite nothing.
    """
    return MiddlewareConfig()


def parse(text: str) -> dict:
    """
    Turn config text into a plain mapping. JSON is valid YAML, so both work.
    An empty document is an empty config.
    """
    if not text:
        return {}
    yaml = ruamel.yaml.YAML(typ="safe", pure=True)
    try:
        data = yaml.load(text)
    except ruamel.yaml.error.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        if mark is None:
            raise exceptions.OptionsError(f"Could not parse config: {e}") from e
        raise exceptions.OptionsError(
            f"Config error at line {mark.line + 1}: {getattr(e, 'problem', '')}\n"
            f"{mark.get_snippet()}"
        ) from e
    if data is None:
        return {}
    if isinstance(data, str):
        raise exceptions.OptionsError("Config error - no keys found.")
    return data


def load(text: str) -> MiddlewareConfig:
    """
    Load configuration from YAML or JSON text.
    May raise OptionsError if the config is invalid.
    """
    return MiddlewareConfig.from_dict(parse(text))


def load_paths(*paths: Path | str) -> MiddlewareConfig:
    """
    Load the first path that exists. Paths that don't exist are skipped,
    errors raise an OptionsError. Without any file, the default configuration
    is returned.
    """
    for p in paths:
        p = Path(p).expanduser()
        if p.exists() and p.is_file():
            with p.open(encoding="utf8") as f:
                try:
                    txt = f.read()
                except UnicodeDecodeError as e:
                    raise exceptions.OptionsError(f"Error reading {p}: {e}")
            try:
                return load(txt)
            except exceptions.OptionsError as e:
                raise exceptions.OptionsError(f"Error reading {p}: {e}")
    return create_config()
