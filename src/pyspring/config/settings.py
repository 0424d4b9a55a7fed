from typing import Optional

import pydantic
import pydantic_settings as settings

from ..utils import expanded_path

PROFILE_KEY = "spring.profiles.active"
CONFIG_LOCATIONS_KEY = "spring.config.locations"
CONFIG_EXTENSIONS_KEY = "spring.config.extensions"


class AppSettings(settings.BaseSettings):
    """
    Bootstrap options of the framework itself.

    Read from ``PYSPRING_*`` environment variables and an optional ``.env``
    file, e.g. ``PYSPRING_CONFIG_NAME=service``.
    """
    model_config = settings.SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PYSPRING_",
        extra="ignore",
        validate_default=True
    )

    config_locations: list[str] = pydantic.Field(
        default_factory=lambda: ["config/"],
        description="Directories (or k8s:<file> config maps) holding configuration files"
    )

    config_name: str = pydantic.Field(
        default="application",
        description="Base name of configuration files, without profile or extension"
    )

    config_extensions: list[str] = pydantic.Field(
        default_factory=lambda: [".properties", ".yaml", ".yml", ".toml"],
        description="Configuration file extensions, lowest priority first"
    )

    env_patterns: list[str] = pydantic.Field(
        default_factory=lambda: [".*"],
        description="Regular expressions selecting environment variables to import"
    )

    env_excludes: list[str] = pydantic.Field(
        default_factory=list,
        description="Regular expressions rejecting environment variables"
    )

    env_property_prefix: str = pydantic.Field(
        default="PYSPRING_PROP_",
        description="Variables with this prefix become lower case dotted keys"
    )

    profile_keys: list[str] = pydantic.Field(
        default_factory=lambda: [PROFILE_KEY, "SPRING_PROFILES_ACTIVE"],
        description="Keys read, in order, to find the active profile"
    )

    profile: Optional[str] = pydantic.Field(
        default=None,
        description="Active profile, overriding the profile keys"
    )

    @pydantic.field_validator("config_locations", mode="after")
    @classmethod
    def validate_config_locations(cls, v: list[str]) -> list[str]:
        return [loc if loc.startswith("k8s:") else str(expanded_path(loc)) for loc in v]

    @pydantic.field_validator("config_extensions", mode="after")
    @classmethod
    def validate_config_extensions(cls, v: list[str]) -> list[str]:
        return [ext if ext.startswith(".") else f".{ext}" for ext in v]
