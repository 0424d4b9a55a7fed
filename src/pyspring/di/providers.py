import inspect
from logging import Logger
from typing import Any, Optional, TypeVar, overload

from dependency_injector.wiring import Provide, provided

from ..config.properties import Properties
from ..utils import clean_module_name
from .container import AppContainer

_Bean_type = TypeVar("_Bean_type")


@overload
def get_bean(selector: type[_Bean_type]) -> _Bean_type:  # pragma: no cover
    ...


@overload
def get_bean(selector: Any) -> Any:  # pragma: no cover
    ...


def get_bean(selector: Any) -> Any:
    return Provide["beans", provided()[selector]]


def get_property(key: str, default: Optional[str] = None) -> str:
    return Provide["property_values", provided()[key, default]]


def get_properties() -> Properties:
    return Provide["properties", provided()]


def get_container_api() -> Any:
    return Provide["api", provided()]


def get_raw_container() -> AppContainer:
    return Provide["__self__", provided()]


@overload
def get_logger() -> Logger:  # pragma: no cover
    ...


@overload
def get_logger(*name: str) -> Logger:  # pragma: no cover
    ...


def get_logger(*name: str) -> Logger:
    if not name:
        calling_frame = inspect.stack()[1]
        mod = inspect.getmodule(calling_frame[0])
        name = clean_module_name(mod.__name__) if mod else "logger"
    else:
        name = ".".join(name)

    return Provide["loggers", provided()[name]]
