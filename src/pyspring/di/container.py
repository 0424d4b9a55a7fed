import logging
from typing import TYPE_CHECKING, Any

from dependency_injector import containers, providers

if TYPE_CHECKING:
    from ..container import Container


class BeanLookup:
    """``lookup[selector]`` returns the bean a container selects."""

    def __init__(self, container: "Container") -> None:
        self._container = container

    def __getitem__(self, selector: Any) -> Any:
        return self._container.get(selector)


class PropertyLookup:
    """
    ``lookup[key]`` or ``lookup[key, default]`` reads the current property
    snapshot of a container.
    """

    def __init__(self, container: "Container") -> None:
        self._container = container

    def __getitem__(self, item: Any) -> str:
        key, default = item if isinstance(item, tuple) else (item, None)
        return self._container.properties.get(key, default)


class LoggerLookup:
    """``lookup[name]`` returns a child of the framework logger."""

    def __init__(self, base: logging.Logger) -> None:
        self._base = base

    def __getitem__(self, name: str) -> logging.Logger:
        return self._base.getChild(name)


class AppContainer(containers.DeclarativeContainer):
    """
    Dependency-injector view of a :class:`~pyspring.container.Container`.

    ``api`` holds the container itself, ``properties`` its current property
    snapshot and ``logger`` the framework logger; the lookups resolve beans,
    property values and child loggers by item access.
    """
    __self__ = providers.Self()
    api = providers.Object(None)

    beans = providers.Object(None)
    properties = providers.Object(None)
    property_values = providers.Object(None)
    logger = providers.Object(None)
    loggers = providers.Object(None)


def bind_container(raw: containers.Container, container: "Container", logger: logging.Logger) -> None:
    """Point the providers of ``raw`` at ``container``."""
    raw.api.override(providers.Object(container))
    raw.beans.override(providers.Object(BeanLookup(container)))
    raw.properties.override(providers.Callable(lambda: container.properties))
    raw.property_values.override(providers.Object(PropertyLookup(container)))
    raw.logger.override(providers.Object(logger))
    raw.loggers.override(providers.Object(LoggerLookup(logger)))
