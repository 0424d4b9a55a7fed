"""
Module level facade over a default :class:`~pyspring.app.App`::

    from pyspring import api

    api.set_property("server.port", 9090)
    api.register_provider(Server, "${server.port}")
    raise SystemExit(api.run())
"""
import asyncio
import logging
import sys
import threading
from collections.abc import Callable, Sequence
from typing import Any, Optional

from .app import App
from .assembly import Configurer
from .beans import BeanDefinition
from .utils import caller_location

logger = logging.getLogger(__name__)

_default_app: Optional[App] = None
_default_lock = threading.Lock()


def default_app() -> App:
    """The application the facade functions register into, created on first use."""
    global _default_app
    with _default_lock:
        if _default_app is None:
            _default_app = App()
            logger.debug("Created default application")
        return _default_app


def reset_default_app() -> None:
    """Forget the default application; the next call creates a new one."""
    global _default_app
    with _default_lock:
        _default_app = None


def set_property(key: str, value: Any) -> None:
    default_app().property(key, value)


def register_object(obj: Any, bean_type: Any = None) -> BeanDefinition:
    file, line, _, _ = caller_location()
    return default_app().register(BeanDefinition(obj, bean_type=bean_type, file=file, line=line))


def register_provider(factory: Callable, *args: Any, bean_type: Any = None, **kwargs: Any) -> BeanDefinition:
    file, line, _, _ = caller_location()
    return default_app().register(BeanDefinition(
        factory=factory, args=args, kwargs=kwargs, bean_type=bean_type, file=file, line=line
    ))


def register_config(fn: Callable, *args: Any, **kwargs: Any) -> Configurer:
    file, line, _, _ = caller_location()
    return default_app().container.add_configurer(Configurer(fn, args, kwargs, file=file, line=line))


def run(args: Optional[Sequence[str]] = None) -> int:
    """
    Run the default application until it's asked to stop.

    :param args: Command line flags; ``sys.argv[1:]`` when omitted.
    :return: The exit code.
    """
    app = default_app()
    app.args = list(args) if args is not None else sys.argv[1:]
    return asyncio.run(app.run())
