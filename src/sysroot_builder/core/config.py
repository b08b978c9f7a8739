"""
Run configuration.

A sysroot build is described either by command line options or by a JSON
file carrying the same fields. Both are validated the same way before any
network work starts.
"""

import json
import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from urllib.parse import urlparse

from sysroot_builder.errors import ConfigurationError
from sysroot_builder.models.package import Source

logger = logging.getLogger(__name__)

DEFAULT_ARCH = "amd64"
DEFAULT_HTTP_TIMEOUT = 100
DEFAULT_COMPONENTS = ("main",)

DEFAULT_BANNED_PACKAGES = (
    "linux-base",
    "linux-image-",
    "linux-headers-",
    "linux-modules-",
    "linux-firmware",
)


def is_absolute_uri(uri: str) -> bool:
    parsed = urlparse(uri)
    return bool(parsed.scheme) and bool(parsed.netloc)


def split_list(value: str | None) -> list[str]:
    """Split a comma-separated option value, dropping empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_sources(value: str | None) -> list[Source]:
    """
    Parse the ``--sources`` option.

    The value is a whitespace-separated list of ``uri`` or
    ``uri|component1,component2`` items. URIs are validated later by
    ``SysrootConfig.validate``.

    Raises:
        ConfigurationError: If an item has more than one ``|`` or an
            empty component.
    """
    sources = []
    for item in (value or "").split():
        parts = item.split("|")
        if len(parts) > 2:
            raise ConfigurationError(
                f"Invalid source argument: '{item}'. "
                "It needs to be in format 'uri1|component1,component2'."
            )

        components: tuple[str, ...] = ()
        if len(parts) == 2:
            components = tuple(c.strip() for c in parts[1].split(","))
            if any(not c for c in components):
                raise ConfigurationError(f"Invalid source argument: '{item}'. Empty component.")

        sources.append(Source(uri=parts[0], components=components))

    return sources


def _normalize_key(key: str) -> str:
    return key.replace("_", "").replace("-", "").lower()


@dataclass
class SysrootConfig:
    """Everything a sysroot build needs to know."""

    path: str | None = None
    distribution: str | None = None
    arch: str | None = None
    cache_path: str | None = None
    packages: list[str] = field(default_factory=list)
    banned_packages: list[str] = field(default_factory=list)
    no_default_banned_packages: bool = False
    sources: list[Source] = field(default_factory=list)
    purge: bool = False
    purge_cache: bool = False
    no_usr_merge: bool = False
    no_bins: bool = False
    no_dependencies: bool = False
    http_timeout: int = DEFAULT_HTTP_TIMEOUT
    store_install_state: bool = False

    @property
    def effective_banned_packages(self) -> list[str]:
        """User supplied banned prefixes plus the defaults unless disabled."""
        banned = list(self.banned_packages)
        if not self.no_default_banned_packages:
            banned.extend(DEFAULT_BANNED_PACKAGES)
        return banned

    @property
    def databases_path(self) -> Path:
        return Path(self.cache_path) / "databases"

    @property
    def packages_path(self) -> Path:
        return Path(self.cache_path) / "packages"

    def validate(self) -> "SysrootConfig":
        """
        Check required fields and fill in defaults, in place.

        Returns:
            self, to allow chaining.

        Raises:
            ConfigurationError: On the first invalid or missing field.
        """
        if not self.path:
            raise ConfigurationError("Path is empty.")
        self.path = os.path.abspath(self.path)

        if not self.cache_path:
            self.cache_path = os.path.join(self.path, "tmp")
            logger.warning(f"Cache path is empty. Will use '{self.cache_path}'")
        self.cache_path = os.path.abspath(self.cache_path)

        if not self.distribution:
            raise ConfigurationError("Distribution is empty.")

        if not self.arch:
            logger.warning(f"Arch configuration is empty. Using default arch ({DEFAULT_ARCH})")
            self.arch = DEFAULT_ARCH

        if self.http_timeout <= 0:
            raise ConfigurationError(
                f"Http timeout is invalid: {self.http_timeout}. Must be greater than 0."
            )

        if not self.packages:
            raise ConfigurationError("Packages configuration is empty.")

        if not self.sources:
            raise ConfigurationError("Sources configuration is empty.")

        validated = []
        for index, source in enumerate(self.sources):
            if not source.uri:
                raise ConfigurationError(f"Uri of source #{index} is not defined.")
            if not is_absolute_uri(source.uri):
                raise ConfigurationError(
                    f"Uri of source #{index} is not a valid absolute URI: '{source.uri}'."
                )
            if not source.components:
                logger.warning(
                    f"Components of source '{source.uri}' are empty. Using default component (main)"
                )
                source = Source(uri=source.uri, components=DEFAULT_COMPONENTS)
            elif any(not isinstance(c, str) or not c.strip() for c in source.components):
                raise ConfigurationError(
                    f"Components of source '{source.uri}' contain an empty component."
                )
            validated.append(source)
        self.sources = validated

        return self

    # ──────────────────────────────────────────────
    # Loading
    # ──────────────────────────────────────────────

    @classmethod
    def from_dict(cls, data: dict) -> "SysrootConfig":
        """
        Build a configuration from a JSON object.

        Keys are matched case-insensitively and ignoring ``_``/``-``, so
        ``CachePath``, ``cache_path`` and ``cache-path`` are the same field.
        Sources may be ``{"uri": ..., "components": [...]}`` objects or
        ``"uri|comp1,comp2"`` strings.
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Configuration must be a JSON object.")

        known = {_normalize_key(f.name): f.name for f in fields(cls)}
        values = {}
        for key, value in data.items():
            name = known.get(_normalize_key(key))
            if name is None:
                logger.warning(f"Unknown configuration key '{key}'. Ignoring.")
                continue
            values[name] = value

        if "sources" in values:
            values["sources"] = _sources_from_json(values["sources"])
        for name in ("packages", "banned_packages"):
            if isinstance(values.get(name), str):
                values[name] = split_list(values[name])
            elif values.get(name) is None:
                values.pop(name, None)
        if "http_timeout" in values:
            try:
                values["http_timeout"] = int(values["http_timeout"])
            except (TypeError, ValueError) as e:
                raise ConfigurationError(f"Http timeout is invalid: {values['http_timeout']}") from e

        return cls(**values)

    @classmethod
    def from_file(cls, path: Path) -> "SysrootConfig":
        """Load a configuration from a JSON file."""
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except OSError as e:
            raise ConfigurationError(f"Unable to read configuration file '{path}': {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid JSON in configuration file '{path}': {e}") from e

        if not data:
            raise ConfigurationError(f"File is empty: '{path}'.")
        return cls.from_dict(data)

    def to_dict(self) -> dict:
        """Serialize to the JSON layout accepted by ``from_dict``."""
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["sources"] = [
            {"uri": source.uri, "components": list(source.components)} for source in self.sources
        ]
        return data


def _sources_from_json(raw) -> list[Source]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigurationError("Sources configuration must be a list.")

    sources = []
    for item in raw:
        if isinstance(item, str):
            sources.extend(parse_sources(item))
        elif isinstance(item, dict):
            entry = {_normalize_key(k): v for k, v in item.items()}
            components = entry.get("components") or ()
            if isinstance(components, str):
                components = split_list(components)
            sources.append(Source(uri=entry.get("uri") or "", components=tuple(components)))
        else:
            raise ConfigurationError(f"Invalid source entry: {item!r}")
    return sources
