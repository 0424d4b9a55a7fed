"""
Application events.

Handlers are registered per application and may be sync or async::

    @app.on_event(AppEvent.START)
    async def warm_up(app):
        ...

Start handlers run in registration order, stop handlers in reverse.
"""
import enum
import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Optional, Union

if TYPE_CHECKING:
    from .app import App

logger = logging.getLogger(__name__)

EventHandler = Callable[["App"], Union[None, Awaitable[None]]]


class AppEvent(enum.Enum):
    """Events emitted during the application lifecycle."""
    START = "start"
    STOP = "stop"


@dataclass
class _RegisteredHandler:
    handler: EventHandler
    name: str


async def maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class EventBus:
    """Event handlers of one application."""

    def __init__(self) -> None:
        self._handlers: dict[AppEvent, list[_RegisteredHandler]] = {}

    def on(
            self,
            event: AppEvent,
            handler: Optional[EventHandler] = None
    ) -> Union[EventHandler, Callable[[EventHandler], EventHandler]]:
        """
        Register a handler, directly or as a decorator.

        :param event: The event to listen for.
        :param handler: The callback; a decorator is returned when omitted.
        """

        def _register(h: EventHandler) -> EventHandler:
            name = getattr(h, "__qualname__", repr(h))
            self._handlers.setdefault(event, []).append(_RegisteredHandler(h, name))
            logger.debug("Registered handler %s for %s", name, event.value)
            return h

        if handler is None:
            return _register
        return _register(handler)

    def handlers(self, event: AppEvent) -> list[EventHandler]:
        return [r.handler for r in self._handlers.get(event, [])]

    async def emit(
            self,
            event: AppEvent,
            app: "App",
            reverse: bool = False,
            return_exceptions: bool = False
    ) -> list[Exception]:
        """
        Call the handlers of an event one after another.

        :param event: The event being emitted.
        :param app: Passed to every handler.
        :param reverse: Call them in reverse registration order.
        :param return_exceptions: Log and collect failures instead of raising
            the first one.
        :return: The collected failures.
        """
        registered = list(self._handlers.get(event, []))
        if reverse:
            registered.reverse()
        if not registered:
            return []

        logger.debug("Emitting %s (%d handlers)", event.value, len(registered))
        errors: list[Exception] = []
        for r in registered:
            try:
                await maybe_await(r.handler(app))
            except Exception as e:
                logger.exception("Error in %s handler %s: %s", event.value, r.name, e)
                if not return_exceptions:
                    raise
                errors.append(e)
        return errors
