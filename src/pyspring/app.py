"""
Application lifecycle.

An :class:`App` owns a :class:`~pyspring.container.Container` and drives it
through ``Created -> Configuring -> Resolving -> Wiring -> Running ->
Stopping -> Stopped``::

    app = App()
    app.provide(Server, "${server.port:=8080}").destroy("close")
    exit_code = asyncio.run(app.run())

:meth:`App.run` installs SIGINT and SIGTERM handlers, waits for a shutdown
request and returns ``0``, or ``1`` when startup fails.
"""
import asyncio
import builtins
import enum
import logging
import signal
import threading
from collections.abc import Callable, Mapping, Sequence
from typing import Any, Optional, Union

from .assembly import Configurer
from .beans import BeanDefinition
from .config.properties import Properties
from .config.settings import AppSettings
from .config.setup import apply_logging_levels
from .config.sources import CompositeProperties, bootstrap_properties
from .container import CancelContext, Container
from .errors import ContainerFrozenError
from .events import AppEvent, EventBus, EventHandler, maybe_await
from .protocols import ApplicationListener, ApplicationRunner
from .utils import caller_location

logger = logging.getLogger(__name__)


class AppState(enum.IntEnum):
    CREATED = 0
    CONFIGURING = 1
    RESOLVING = 2
    WIRING = 3
    RUNNING = 4
    STOPPING = 5
    STOPPED = 6


_PHASE_STATES = {
    "resolve": AppState.RESOLVING,
    "wire": AppState.WIRING,
}


class App:
    """
    A runnable application.

    :param settings: Bootstrap options; read from ``PYSPRING_*`` environment
        variables and ``.env`` when omitted.
    :param args: Command line flags, ``-name value`` pairs.
    :param environ: Environment variables; ``os.environ`` when omitted.
    """

    def __init__(
            self,
            settings: Optional[AppSettings] = None,
            args: Optional[Sequence[str]] = None,
            environ: Optional[Mapping[str, str]] = None
    ) -> None:
        self.settings = settings if settings is not None else AppSettings()
        self.args: list[str] = list(args) if args is not None else []
        self.environ = environ

        self._api = Properties()
        self._defaults = Properties()
        self.container = Container(self._api)
        self._events = EventBus()
        self._composite: Optional[CompositeProperties] = None

        self._state = AppState.CREATED
        self._state_lock = threading.Lock()
        self._listeners: list[Any] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop: Optional[asyncio.Event] = None
        self._shutdown_requested = False

    @property
    def state(self) -> AppState:
        return self._state

    def _advance(self, state: AppState) -> None:
        with self._state_lock:
            if state <= self._state:
                raise RuntimeError(f"can't move from {self._state.name} to {state.name}")
            logger.debug("Application state: %s -> %s", self._state.name, state.name)
            self._state = state

    # registration

    def property(self, key: str, value: Any) -> None:
        """Set a property above every other source."""
        self.container.property(key, value)

    def default_property(self, key: str, value: Any) -> None:
        """Set a built-in default, below every other source."""
        if self._state >= AppState.RESOLVING:
            raise ContainerFrozenError("can't set default property after refresh started")
        self._defaults.set(key, value)

    def register(self, definition: BeanDefinition) -> BeanDefinition:
        return self.container.register(definition)

    def object(self, obj: Any, bean_type: Any = None) -> BeanDefinition:
        file, line, _, _ = caller_location()
        return self.register(BeanDefinition(obj, bean_type=bean_type, file=file, line=line))

    def provide(self, factory: Callable, *args: Any, bean_type: Any = None, **kwargs: Any) -> BeanDefinition:
        file, line, _, _ = caller_location()
        return self.register(BeanDefinition(
            factory=factory, args=args, kwargs=kwargs, bean_type=bean_type, file=file, line=line
        ))

    def config(self, fn: Callable, *args: Any, **kwargs: Any) -> Configurer:
        file, line, _, _ = caller_location()
        return self.container.add_configurer(Configurer(fn, args, kwargs, file=file, line=line))

    def on_event(
            self,
            event: AppEvent,
            handler: Optional[EventHandler] = None
    ) -> Union[EventHandler, Callable[[EventHandler], EventHandler]]:
        """Register a start or stop handler, directly or as a decorator."""
        return self._events.on(event, handler)

    def go(self, fn: Callable[[CancelContext], Any], name: Optional[str] = None) -> threading.Thread:
        """Run ``fn(context)`` in a background thread until the application stops."""
        return self.container.go(fn, name)

    # lifecycle

    def _load_properties(self) -> CompositeProperties:
        return bootstrap_properties(self.settings, self._api, self.args, self.environ, self._defaults)

    def _beans(self, proto: type) -> list[Any]:
        return [d.instance for d in self.container.find(proto)]

    async def start(self) -> None:
        """
        Load properties, wire the beans, run the runners and fire the start
        handlers.

        On failure the caller should :meth:`close` the application.
        """
        self._advance(AppState.CONFIGURING)
        self._composite = self._load_properties()

        def on_phase(phase: str) -> None:
            state = _PHASE_STATES.get(phase)
            if state is not None:
                self._advance(state)

        snapshot = self._composite.snapshot()
        apply_logging_levels(snapshot)
        self.container.refresh(snapshot, on_phase)

        for runner in self._beans(ApplicationRunner):
            logger.debug("Running %s", type(runner).__qualname__)
            await maybe_await(runner.run(self))

        await self._events.emit(AppEvent.START, self)
        for listener in self._beans(ApplicationListener):
            await maybe_await(listener.on_app_start(self))
            self._listeners.append(listener)

        self._advance(AppState.RUNNING)
        logger.info("Application started")

    def shutdown(self, reason: str = "") -> None:
        """Ask a running :meth:`run` to stop; safe from any thread."""
        logger.info("Shutdown requested%s", f": {reason}" if reason else "")
        self._shutdown_requested = True
        if self._loop is not None and self._stop is not None:
            self._loop.call_soon_threadsafe(self._stop.set)

    async def close(self) -> None:
        """
        Stop the application: cancel background tasks, fire the stop
        handlers in reverse, run the destroy hooks and wait for the tasks.
        Later calls do nothing.
        """
        with self._state_lock:
            if self._state >= AppState.STOPPING:
                return
            previous = self._state
            self._state = AppState.STOPPING
        logger.info("Application stopping")

        self.container.context.cancel()
        errors: list[Exception] = []
        if previous is AppState.RUNNING:
            for listener in reversed(self._listeners):
                try:
                    await maybe_await(listener.on_app_stop(self))
                except Exception as e:
                    logger.exception("Stop listener %s failed", type(listener).__qualname__)
                    errors.append(e)
            errors.extend(await self._events.emit(AppEvent.STOP, self, reverse=True, return_exceptions=True))

        await asyncio.to_thread(self.container.close)
        self._advance(AppState.STOPPED)
        if errors:
            logger.warning("Application stopped with %d errors", len(errors))
        else:
            logger.info("Application stopped")

    async def run(self) -> int:
        """
        Start, wait for SIGINT, SIGTERM or :meth:`shutdown`, then close.

        :return: ``0`` after a graceful shutdown, ``1`` when startup failed.
        """
        self._loop = asyncio.get_running_loop()
        self._stop = asyncio.Event()
        try:
            await self.start()
        except Exception:
            logger.exception("Application failed to start")
            await self.close()
            return 1

        installed = self._install_signal_handlers()
        try:
            if not self._shutdown_requested:
                await self._stop.wait()
        finally:
            for sig in installed:
                self._loop.remove_signal_handler(sig)
            await self.close()
        return 0

    def _install_signal_handlers(self) -> list[signal.Signals]:
        installed = []
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                self._loop.add_signal_handler(sig, self.shutdown, sig.name)
                installed.append(sig)
            except (NotImplementedError, RuntimeError, ValueError):
                logger.debug("Can't handle %s in this event loop", sig.name)
        return installed

    def reload(self) -> list[Exception]:
        """
        Re-read every property source and refresh the dynamic values.

        :return: The errors of the values that kept their previous state.
        """
        if self._state is not AppState.RUNNING or self._composite is None:
            raise RuntimeError("application isn't running")
        fresh = self._load_properties()
        self._composite.replace(fresh.layers)
        snapshot = self._composite.snapshot()
        apply_logging_levels(snapshot)
        return self.container.refresh_properties(snapshot)

    @builtins.property
    def properties(self) -> Properties:
        return self.container.properties
