from .container import AppContainer, bind_container
from .providers import (
    get_bean,
    get_property,
    get_properties,
    get_container_api,
    get_raw_container,
    get_logger,
)
from .wiring import wire, unwire

__all__ = [
    "AppContainer",
    "bind_container",
    "get_bean",
    "get_property",
    "get_properties",
    "get_container_api",
    "get_raw_container",
    "get_logger",
    "wire",
    "unwire",
]
