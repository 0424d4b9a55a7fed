"""
Property sources and their layered composition.

Layers are ordered from highest to lowest priority: API writes, command line,
environment, profile files, default files and built-in defaults.
"""
import logging
import os
import re
import sys
import threading
from collections.abc import Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

import yaml

from .properties import Properties
from .readers import supported_extensions
from .settings import AppSettings, CONFIG_EXTENSIONS_KEY, CONFIG_LOCATIONS_KEY, PROFILE_KEY
from .tags import resolve_string
from ..errors import BindError, FileFormatError, PropertyConflictError, TagSyntaxError

logger = logging.getLogger(__name__)

CONFIG_MAP_SCHEME = "k8s:"

_MISSING: Any = object()


@runtime_checkable
class PropertySource(Protocol):
    """A named layer producing properties, optionally for a profile."""
    name: str

    def load(self, profile: Optional[str] = None) -> Properties:
        ...  # pragma: no cover


class MapPropertySource:
    def __init__(self, data: Mapping[str, Any], name: str = "map") -> None:
        self.name = name
        self._data = dict(data)

    def load(self, profile: Optional[str] = None) -> Properties:
        return Properties(self._data)


class FilePropertySource:
    """
    Loads ``<name>[-<profile>]<ext>`` from a directory.

    Every existing extension is read, later extensions overriding earlier
    ones. A missing directory or file contributes nothing.
    """

    def __init__(
            self,
            location: str | Path,
            name: str = "application",
            extensions: Optional[Sequence[str]] = None
    ) -> None:
        self.location = Path(location)
        self.name = name
        self.extensions = list(extensions) if extensions is not None else supported_extensions()

    def load(self, profile: Optional[str] = None) -> Properties:
        filename = f"{self.name}-{profile}" if profile else self.name
        result = Properties()
        for ext in self.extensions:
            path = self.location / f"{filename}{ext}"
            if not path.is_file():
                continue
            logger.info("Load properties from file %s", path)
            result.merge(Properties.from_file(path))
        return result


class ConfigMapPropertySource:
    """
    Loads configuration embedded in a Kubernetes ConfigMap YAML file.

    The ``data`` map holds one entry per file name, e.g.
    ``application.yaml: |`` followed by the file contents.
    """

    def __init__(
            self,
            path: str | Path,
            name: str = "application",
            extensions: Optional[Sequence[str]] = None
    ) -> None:
        self.path = Path(path)
        self.name = name
        self.extensions = list(extensions) if extensions is not None else supported_extensions()

    def load(self, profile: Optional[str] = None) -> Properties:
        try:
            doc = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise FileFormatError(f"malformed config-map {self.path}: {e}") from e

        data = doc.get("data") if isinstance(doc, dict) else None
        if not isinstance(data, dict):
            raise FileFormatError(f"data not found in config-map {self.path}")

        filename = f"{self.name}-{profile}" if profile else self.name
        result = Properties()
        for ext in self.extensions:
            key = f"{filename}{ext}"
            value = data.get(key)
            if not value:
                continue
            logger.info("Load properties from config-map %s:%s", self.path, key)
            layer = Properties()
            layer.read(str(value).encode("utf-8"), ext)
            result.merge(layer)
        return result


class EnvironmentPropertySource:
    """
    Imports environment variables selected by a regex allow-list.

    Variables starting with ``prefix`` are renamed to lower case dotted keys,
    ``PYSPRING_PROP_SERVER_PORT`` becoming ``server.port``. Variables whose
    name isn't a valid key are skipped with a warning.
    """

    def __init__(
            self,
            patterns: Iterable[str] = (".*",),
            excludes: Iterable[str] = (),
            prefix: str = "PYSPRING_PROP_",
            environ: Optional[Mapping[str, str]] = None,
            name: str = "environment"
    ) -> None:
        self.name = name
        self.patterns = [re.compile(p) for p in patterns]
        self.excludes = [re.compile(p) for p in excludes]
        self.prefix = prefix
        self._environ = environ

    def load(self, profile: Optional[str] = None) -> Properties:
        environ = self._environ if self._environ is not None else os.environ
        result = Properties()
        for k in sorted(environ):
            v = environ[k]
            if not k:
                continue
            if self.prefix and k.startswith(self.prefix):
                key = k[len(self.prefix):].replace("_", ".").lower()
            elif any(r.search(k) for r in self.excludes) or not any(r.search(k) for r in self.patterns):
                continue
            else:
                key = k
            try:
                result.set(key, v)
            except (TagSyntaxError, PropertyConflictError) as e:
                logger.warning("Skip environment variable '%s': %s", k, e)
        return result


class CommandLinePropertySource:
    """
    Parses ``-name value`` pairs.

    A flag followed by another flag, or by nothing, gets the empty string.
    Arguments not starting with ``-`` are ignored.
    """

    def __init__(self, args: Optional[Sequence[str]] = None, name: str = "command-line") -> None:
        self.name = name
        self.args = list(args) if args is not None else sys.argv[1:]

    def load(self, profile: Optional[str] = None) -> Properties:
        result = Properties()
        i = 0
        while i < len(self.args):
            arg = self.args[i]
            i += 1
            if not arg.startswith("-") or arg in ("-", "--"):
                continue
            key, value = arg[1:], ""
            if i < len(self.args) and not self.args[i].startswith("-"):
                value = self.args[i]
                i += 1
            try:
                result.set(key, value)
            except (TagSyntaxError, PropertyConflictError) as e:
                logger.warning("Skip command line flag '%s': %s", arg, e)
        return result


def source_for_location(location: str, name: str, extensions: Sequence[str]) -> PropertySource:
    """A file source for a directory, a config-map source for ``k8s:<file>``."""
    if location.startswith(CONFIG_MAP_SCHEME):
        return ConfigMapPropertySource(location[len(CONFIG_MAP_SCHEME):], name, extensions)
    return FilePropertySource(location, name, extensions)


class CompositeProperties:
    """
    An ordered list of layers, highest priority first.

    Lookups return the first hit. :meth:`replace` swaps the whole list at
    once so readers observe either the old or the new layers.
    """

    def __init__(self, layers: Iterable[Properties] = ()) -> None:
        self._layers: tuple[Properties, ...] = tuple(layers)
        self._lock = threading.Lock()

    @property
    def layers(self) -> tuple[Properties, ...]:
        return self._layers

    def replace(self, layers: Iterable[Properties]) -> None:
        new_layers = tuple(layers)
        with self._lock:
            self._layers = new_layers

    def has(self, key: str) -> bool:
        return any(layer.has(key) for layer in self._layers)

    def has_value(self, key: str) -> bool:
        return any(layer.has_value(key) for layer in self._layers)

    def get(self, key: str, default: Optional[str] = None) -> str:
        for layer in self._layers:
            value = layer.get(key, _MISSING)
            if value is not _MISSING:
                return value
        return default if default is not None else ""

    def keys(self) -> list[str]:
        keys: set[str] = set()
        for layer in self._layers:
            keys.update(layer.keys())
        return sorted(keys)

    def sub_keys(self, key: str) -> list[str]:
        keys: set[str] = set()
        for layer in self._layers:
            try:
                keys.update(layer.sub_keys(key))
            except BindError:
                if not keys:
                    raise
        return sorted(keys)

    def resolve(self, s: str) -> str:
        return resolve_string(self, s)

    def snapshot(self) -> Properties:
        """
        Flatten the layers into one store.

        Entries of a lower layer whose shape conflicts with a higher layer
        are dropped with a warning.
        """
        result = Properties()
        for layer in self._layers:
            for k, v in layer.items():
                if result.get(k, _MISSING) is not _MISSING:
                    continue
                try:
                    result.set(k, {} if layer.is_interior(k) else v)
                except PropertyConflictError as e:
                    logger.warning("Drop property '%s' shadowed by a higher layer: %s", k, e)
        return result


def active_profiles(props: CompositeProperties, keys: Sequence[str]) -> list[str]:
    for k in keys:
        value = props.get(k, _MISSING)
        if value is not _MISSING and value.strip():
            return [p.strip() for p in value.split(",") if p.strip()]
    return []


def load_files(sources: Sequence[PropertySource], profile: Optional[str]) -> Properties:
    """Load every source for a profile; earlier sources win."""
    return CompositeProperties(s.load(profile) for s in sources).snapshot()


def bootstrap_properties(
        app_settings: AppSettings,
        api: Properties,
        args: Optional[Sequence[str]] = None,
        environ: Optional[Mapping[str, str]] = None,
        defaults: Optional[Properties] = None
) -> CompositeProperties:
    """
    Assemble the layered properties of an application.

    The profile is read from a provisional composite without profile files.
    When one is active its files are inserted above the default files.

    :param app_settings: Locations, names and filters.
    :param api: Properties set through the registration API.
    :param args: Command line arguments; ``sys.argv[1:]`` when omitted.
    :param environ: Environment; ``os.environ`` when omitted.
    :param defaults: Built-in defaults, the lowest layer.
    :return: The assembled composite.
    """
    cmd = CommandLinePropertySource(args).load()
    env = EnvironmentPropertySource(
        app_settings.env_patterns,
        app_settings.env_excludes,
        app_settings.env_property_prefix,
        environ
    ).load()
    defaults = defaults or Properties()

    overrides = CompositeProperties([api, cmd, env])
    locations = app_settings.config_locations
    if overrides.has(CONFIG_LOCATIONS_KEY):
        locations = [s.strip() for s in overrides.get(CONFIG_LOCATIONS_KEY).split(",") if s.strip()]
    extensions = app_settings.config_extensions
    if overrides.has(CONFIG_EXTENSIONS_KEY):
        extensions = [s.strip() for s in overrides.get(CONFIG_EXTENSIONS_KEY).split(",") if s.strip()]

    sources = [source_for_location(loc, app_settings.config_name, extensions) for loc in locations]
    default_files = load_files(sources, None)

    composite = CompositeProperties([api, cmd, env, default_files, defaults])
    if app_settings.profile:
        profiles = [p.strip() for p in app_settings.profile.split(",") if p.strip()]
    else:
        profiles = active_profiles(composite, app_settings.profile_keys)
    if not profiles:
        logger.debug("No active profile")
        return composite

    logger.info("Active profiles: %s", ", ".join(profiles))
    profile_layers = [load_files(sources, p) for p in reversed(profiles)]

    if not api.has(PROFILE_KEY):
        api = api.copy()
        api.set(PROFILE_KEY, ",".join(profiles))

    composite.replace([api, cmd, env, *profile_layers, default_files, defaults])
    return composite

