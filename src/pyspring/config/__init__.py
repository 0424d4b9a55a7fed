from .binder import BindParam, Binder, bind_properties, register_converter
from .converters import format_duration, format_time, parse_duration, parse_time
from .expression import check, evaluate
from .path import is_sub_key, join_path, split_path
from .properties import Properties, to_string
from .readers import load_file, read_data, register_reader, supported_extensions
from .settings import CONFIG_EXTENSIONS_KEY, CONFIG_LOCATIONS_KEY, PROFILE_KEY, AppSettings
from .setup import apply_logging_levels, setup_logging
from .sources import (
    CommandLinePropertySource,
    CompositeProperties,
    ConfigMapPropertySource,
    EnvironmentPropertySource,
    FilePropertySource,
    MapPropertySource,
    PropertySource,
    bootstrap_properties,
)
from .tags import ParsedTag, parse_tag, register_splitter, resolve_string, split_value

__all__ = [
    "BindParam",
    "Binder",
    "bind_properties",
    "register_converter",
    "format_duration",
    "format_time",
    "parse_duration",
    "parse_time",
    "check",
    "evaluate",
    "is_sub_key",
    "join_path",
    "split_path",
    "Properties",
    "to_string",
    "load_file",
    "read_data",
    "register_reader",
    "supported_extensions",
    "CONFIG_EXTENSIONS_KEY",
    "CONFIG_LOCATIONS_KEY",
    "PROFILE_KEY",
    "AppSettings",
    "apply_logging_levels",
    "setup_logging",
    "CommandLinePropertySource",
    "CompositeProperties",
    "ConfigMapPropertySource",
    "EnvironmentPropertySource",
    "FilePropertySource",
    "MapPropertySource",
    "PropertySource",
    "bootstrap_properties",
    "ParsedTag",
    "parse_tag",
    "register_splitter",
    "resolve_string",
    "split_value",
]
