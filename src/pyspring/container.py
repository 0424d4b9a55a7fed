import builtins
import inspect
import logging
import threading
import time
from collections.abc import Callable, Mapping
from typing import Any, Optional, Union

from dependency_injector import containers

from .assembly import Assembler, Configurer, WiringStack
from .beans import ArgList, BeanDefinition, BeanRegistry, collection_type, make_arg
from .config.properties import Properties
from .config.sources import CompositeProperties
from .di.container import AppContainer, bind_container
from .dynamic import DynamicProperties
from .errors import ContainerFrozenError
from .markers import Autowired
from .utils import caller_location, type_name

logger = logging.getLogger(__name__)


class CancelContext:
    """Cancellation signal shared with background tasks."""

    def __init__(self) -> None:
        self._event = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until cancelled or until ``timeout`` seconds passed.

        :return: Whether the context is cancelled.
        """
        return self._event.wait(timeout)


class Container:
    """
    The IoC container.

    Properties, beans and configurers are registered first. :meth:`refresh`
    then filters the beans by their conditions, runs the configurers and
    wires every accepted bean; registering afterwards raises
    :class:`~pyspring.errors.ContainerFrozenError`.

    Example::

        c = Container()
        c.property("db.url", "sqlite://")
        c.provide(Database, "${db.url}").destroy("close")
        c.refresh()
        db = c.get(Database)

    :param properties: Properties written through the API, as a store or a
        mapping. They take precedence over the properties given to
        :meth:`refresh`.
    """

    def __init__(self, properties: Union[Properties, Mapping[str, Any], None] = None) -> None:
        if properties is None:
            properties = Properties()
        elif not isinstance(properties, Properties):
            properties = Properties.from_mapping(properties)
        self._api_properties = properties

        self._registry = BeanRegistry()
        self._configurers: list[Configurer] = []
        self._lock = threading.RLock()
        self._frozen = False
        self._refreshed = False
        self._closed = False

        self._dynamic: Optional[DynamicProperties] = None
        self._assembler: Optional[Assembler] = None
        self._context = CancelContext()
        self._tasks: list[threading.Thread] = []

        self._raw: containers.Container = AppContainer()
        bind_container(self._raw, self, logging.getLogger("pyspring"))

    # registration

    def _check_frozen(self, what: str) -> None:
        if self._frozen:
            raise ContainerFrozenError(f"can't {what} after refresh started")

    def property(self, key: str, value: Any) -> None:
        """Set a property; API writes win over every other source."""
        with self._lock:
            self._check_frozen("set property")
            self._api_properties.set(key, value)

    def register(self, definition: BeanDefinition) -> BeanDefinition:
        with self._lock:
            self._check_frozen("register beans")
            return self._registry.register(definition)

    def object(self, obj: Any, bean_type: Any = None) -> BeanDefinition:
        """Register a ready object as a bean."""
        file, line, _, _ = caller_location()
        return self.register(BeanDefinition(obj, bean_type=bean_type, file=file, line=line))

    def provide(self, factory: Callable, *args: Any, bean_type: Any = None, **kwargs: Any) -> BeanDefinition:
        """
        Register a bean built by a class or a factory function.

        :param factory: The class or function.
        :param args: Positional argument descriptors.
        :param bean_type: The produced type, when the factory doesn't annotate it.
        :param kwargs: Keyword argument descriptors.
        """
        file, line, _, _ = caller_location()
        return self.register(BeanDefinition(
            factory=factory, args=args, kwargs=kwargs, bean_type=bean_type, file=file, line=line
        ))

    def config(self, fn: Callable, *args: Any, **kwargs: Any) -> Configurer:
        """Register a configurer run before beans are wired."""
        file, line, _, _ = caller_location()
        return self.add_configurer(Configurer(fn, args, kwargs, file=file, line=line))

    def add_configurer(self, configurer: Configurer) -> Configurer:
        with self._lock:
            self._check_frozen("register configurers")
            self._configurers.append(configurer)
            return configurer

    # refresh

    def _layered(self, properties: Optional[Properties]) -> Properties:
        if properties is None:
            return self._api_properties.copy()
        return CompositeProperties([self._api_properties, properties]).snapshot()

    def refresh(
            self,
            properties: Optional[Properties] = None,
            on_phase: Optional[Callable[[str], Any]] = None
    ) -> None:
        """
        Resolve, configure and wire the registered beans.

        A second call does nothing. On failure the destroy hooks of the beans
        initialized so far run in reverse order and the error is re-raised.

        :param properties: Properties loaded from the other sources.
        :param on_phase: Called with ``"resolve"``, ``"configure"`` and
            ``"wire"`` as each phase starts.
        """
        with self._lock:
            if self._frozen:
                logger.debug("Container already refreshed")
                return
            self._frozen = True
            for d in self._registry:
                d.frozen = True
            for c in self._configurers:
                c.frozen = True

            props = self._layered(properties)
            self._dynamic = DynamicProperties(props)
            assembler = Assembler(self._registry, self._dynamic, {
                Container: self,
                type(self): self,
                CancelContext: self._context,
            })
            self._assembler = assembler

        start = time.monotonic()
        try:
            _notify(on_phase, "resolve")
            assembler.resolve_all()
            _notify(on_phase, "configure")
            assembler.run_configurers(self._configurers)
            _notify(on_phase, "wire")
            assembler.wire_all()
        except Exception:
            logger.error("Container refresh failed, destroying %d initialized beans",
                         len(assembler.destroyers))
            assembler.destroy_all()
            raise

        self._refreshed = True
        logger.info("Container refreshed: %d beans wired in %.3fs",
                    len(self._registry.accepted()), time.monotonic() - start)

    def refresh_properties(self, properties: Properties) -> list[Exception]:
        """
        Publish new properties and re-bind the dynamic values they affect.

        :return: The errors of the values that kept their previous state.
        """
        if self._dynamic is None:
            raise RuntimeError("container isn't refreshed")
        props = self._layered(properties)
        errors = self._dynamic.refresh(props)
        logger.info("Properties refreshed with %d errors", len(errors))
        return errors

    @builtins.property
    def properties(self) -> Properties:
        """The current property snapshot."""
        if self._dynamic is not None:
            return self._dynamic.properties
        return self._api_properties

    @builtins.property
    def refreshed(self) -> bool:
        return self._refreshed

    @builtins.property
    def context(self) -> CancelContext:
        return self._context

    # lookup

    def _ready(self) -> Assembler:
        if not self._refreshed or self._assembler is None:
            raise RuntimeError("container isn't refreshed")
        return self._assembler

    def get(self, selector: Any) -> Any:
        """
        The bean a selector chooses.

        A collection type such as ``list[Filter]`` or ``dict[str, Filter]``
        returns every matching bean, ordered.

        :raises BeanNotFoundError: If no bean matches a non optional selector.
        :raises AmbiguousBeanError: If several beans match and none is primary.
        """
        assembler = self._ready()
        if inspect.isclass(selector) or collection_type(selector) is not None:
            arg = make_arg(type_name(selector), selector, Autowired())
        else:
            arg = make_arg(str(selector), Any, Autowired(selector))
        return assembler.resolve_bean_arg(arg, WiringStack())

    def find(self, selector: Any) -> list[BeanDefinition]:
        """Accepted bean definitions matching a selector, in registration order."""
        if self._assembler is not None:
            return self._assembler.find(selector)
        return self._registry.find(selector)

    def wire(self, obj: Any) -> Any:
        """Inject the ``Autowired`` and ``Value`` attributes of an object built elsewhere."""
        assembler = self._ready()
        assembler.wire_attributes(obj, WiringStack(), type_name(type(obj)))
        return obj

    def invoke(self, fn: Callable, *args: Any, **kwargs: Any) -> Any:
        """Call ``fn`` with its arguments resolved like factory arguments."""
        assembler = self._ready()
        plan = ArgList(fn, args, kwargs)
        return plan.call(lambda a: assembler.resolve_arg(a, WiringStack(), plan.fn_name))

    # tasks

    def go(self, fn: Callable[[CancelContext], Any], name: Optional[str] = None) -> threading.Thread:
        """
        Run ``fn(context)`` in a background thread.

        The task should return once the context is cancelled. Its exceptions
        are logged and don't stop the container.
        """
        task_name = name or getattr(fn, "__qualname__", "task")

        def __run() -> None:
            logger.debug("Task started: %s", task_name)
            try:
                fn(self._context)
            except Exception:
                logger.exception("Task %s failed", task_name)
            finally:
                logger.debug("Task finished: %s", task_name)

        with self._lock:
            if self._closed:
                raise RuntimeError("container is closed")
            thread = threading.Thread(target=__run, name=task_name, daemon=True)
            self._tasks = [t for t in self._tasks if t.is_alive()]
            self._tasks.append(thread)
        thread.start()
        return thread

    def close(self) -> None:
        """
        Cancel background tasks, run destroy hooks in reverse initialization
        order and wait for the tasks to return. Later calls do nothing.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            tasks = list(self._tasks)

        self._context.cancel()
        if self._assembler is not None:
            self._assembler.destroy_all()
        for t in tasks:
            t.join()
        logger.info("Container closed")

    @builtins.property
    def closed(self) -> bool:
        return self._closed

    def raw_container(self) -> containers.Container:
        """The dependency-injector container bound to this one."""
        return self._raw


def _notify(on_phase: Optional[Callable[[str], Any]], phase: str) -> None:
    logger.debug("Container phase: %s", phase)
    if on_phase is not None:
        on_phase(phase)
