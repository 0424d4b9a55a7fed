import enum
import inspect
import logging
import typing
from collections.abc import Callable
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional, Union, get_args, get_origin

from ..conditions import Condition, Conditional
from ..errors import ContainerFrozenError
from ..markers import split_annotated
from ..utils import type_name
from .arguments import ArgList

if TYPE_CHECKING:
    from .registry import BeanRegistry

logger = logging.getLogger(__name__)

HIGHEST_ORDER = -(2 ** 31)
LOWEST_ORDER = 2 ** 31 - 1


class BeanStatus(enum.Enum):
    UNRESOLVED = "unresolved"
    RESOLVING = "resolving"
    RESOLVED = "resolved"
    WIRING = "wiring"
    WIRED = "wired"
    DELETED = "deleted"


LifecycleHook = Union[str, Callable[[Any], Any]]


def default_bean_name(type_: Any) -> str:
    """Lower camel case name of a type, ``MyService`` giving ``myService``."""
    name = getattr(type_, "__name__", None) or str(type_)
    return name[:1].lower() + name[1:]


def _unwrap_return_type(type_: Any) -> Any:
    type_, _ = split_annotated(type_)
    origin = get_origin(type_)
    if origin is Union:
        args = [a for a in get_args(type_) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return type_


def factory_return_type(fn: Callable) -> Any:
    """
    The type a factory produces.

    Classes produce themselves, functions declare their return annotation.

    :raises TypeError: If a function has no return annotation.
    """
    if inspect.isclass(fn):
        return fn
    try:
        hints = typing.get_type_hints(fn, include_extras=True)
    except (NameError, TypeError) as e:
        raise TypeError(f"can't read annotations of factory {fn!r}: {e}") from e
    ret = hints.get("return")
    if ret is None or ret is type(None):
        raise TypeError(
            f"factory {getattr(fn, '__qualname__', fn)!r} needs a return annotation or an explicit bean_type"
        )
    return _unwrap_return_type(ret)


def _is_protocol(t: Any) -> bool:
    return bool(getattr(t, "_is_protocol", False))


def _protocol_members(proto: type) -> set[str]:
    members: set[str] = set()
    for klass in proto.__mro__:
        if klass is object or not _is_protocol(klass) or klass.__name__ in ("Protocol", "Generic"):
            continue
        members.update(inspect.get_annotations(klass))
        members.update(n for n in vars(klass) if not n.startswith("_"))
    return members


def implements(type_: Any, iface: Any) -> bool:
    """
    Whether values of ``type_`` can stand for ``iface``.

    Protocols are checked structurally, other classes by subclassing.
    """
    if type_ is iface:
        return True
    if not inspect.isclass(type_) or not inspect.isclass(iface):
        return False
    if iface in type_.__mro__:
        return True
    if _is_protocol(iface):
        return all(
            hasattr(type_, m) or any(m in inspect.get_annotations(k) for k in type_.__mro__)
            for m in _protocol_members(iface)
        )
    try:
        return issubclass(type_, iface)
    except TypeError:
        return False


class BeanDefinition:
    """
    A declared component: a ready object or a factory producing one.

    Definitions are created by the container's ``object`` and ``provide``
    methods and configured fluently::

        container.provide(create_pool, "${db.url}").name("pool").destroy("close")

    :param obj: The bean instance, for object beans.
    :param factory: A class or callable producing the bean.
    :param args: Positional argument descriptors of the factory.
    :param kwargs: Keyword argument descriptors of the factory.
    :param bean_type: The produced type, when the factory doesn't annotate it.
    """

    def __init__(
            self,
            obj: Any = None,
            factory: Optional[Callable] = None,
            args: tuple = (),
            kwargs: Optional[dict[str, Any]] = None,
            bean_type: Any = None,
            file: Optional[str] = None,
            line: Optional[int] = None,
    ) -> None:
        if obj is None and factory is None:
            raise ValueError("bean can't be None")

        self.instance: Any = obj
        self.factory = factory
        self.args: Optional[ArgList] = None

        if factory is not None:
            self.bean_type = bean_type if bean_type is not None else factory_return_type(factory)
            self.args = ArgList(factory, args, kwargs or {})
        else:
            self.bean_type = bean_type if bean_type is not None else type(obj)

        self.type_name = type_name(self.bean_type)
        self._name = default_bean_name(self.bean_type)
        self.status = BeanStatus.UNRESOLVED
        self.conditions: list[Condition] = []
        self.exports: list[type] = []
        self.dependencies: list[Any] = []
        self.init_hook: Optional[LifecycleHook] = None
        self.destroy_hook: Optional[LifecycleHook] = None
        self.sort_order = 0
        self.is_primary = False

        self.file = file
        self.line = line
        self.registered_at = datetime.now()
        self.index = -1
        self.frozen = False
        self._registry: Optional["BeanRegistry"] = None

    @property
    def bean_name(self) -> str:
        return self._name

    @property
    def id(self) -> str:
        return f"{self.type_name}:{self._name}"

    @property
    def location(self) -> str:
        if self.file is None:
            return "unknown"
        return f"{self.file}:{self.line}"

    @property
    def wired(self) -> bool:
        return self.status is BeanStatus.WIRED

    @property
    def is_factory(self) -> bool:
        return self.factory is not None

    def _check_frozen(self) -> None:
        if self.frozen:
            raise ContainerFrozenError(f"bean '{self.id}' can't be changed after refresh started")

    def name(self, name: str) -> "BeanDefinition":
        """Set the bean name; the ``(type, name)`` pair must stay unique."""
        self._check_frozen()
        if self._registry is not None:
            self._registry.rename(self, f"{self.type_name}:{name}")
        self._name = name
        return self

    def export(self, *types: type) -> "BeanDefinition":
        """
        Make the bean selectable by interface types.

        :raises TypeError: If the bean type doesn't implement one of them.
        """
        self._check_frozen()
        for t in types:
            if not inspect.isclass(t):
                raise TypeError(f"should export a class or protocol, got {t!r}")
            if not implements(self.bean_type, t):
                raise TypeError(f"{self.type_name} doesn't implement {type_name(t)}")
            if t not in self.exports:
                self.exports.append(t)
        return self

    def on(self, cond: Condition) -> "BeanDefinition":
        """Add a condition; all conditions must match for the bean to be kept."""
        self._check_frozen()
        self.conditions.append(cond)
        return self

    def depends_on(self, *selectors: Any) -> "BeanDefinition":
        """Beans wired before this one although it doesn't inject them."""
        self._check_frozen()
        self.dependencies.extend(selectors)
        return self

    def init(self, hook: LifecycleHook) -> "BeanDefinition":
        """Call ``hook(bean)``, or the named method, once the bean is wired."""
        self._check_frozen()
        self.init_hook = hook
        return self

    def destroy(self, hook: LifecycleHook) -> "BeanDefinition":
        """Call ``hook(bean)``, or the named method, when the container closes."""
        self._check_frozen()
        self.destroy_hook = hook
        return self

    def order(self, order: int) -> "BeanDefinition":
        """Position in collections; lower comes first."""
        self._check_frozen()
        self.sort_order = order
        return self

    def primary(self, primary: bool = True) -> "BeanDefinition":
        """Prefer this bean when a single-bean selector matches several."""
        self._check_frozen()
        self.is_primary = primary
        return self

    def condition(self) -> Optional[Condition]:
        if not self.conditions:
            return None
        if len(self.conditions) == 1:
            return self.conditions[0]
        chain = Conditional()
        for c in self.conditions:
            chain.on(c)
        return chain

    def is_type(self, t: Any) -> bool:
        """
        Whether the bean is of type ``t``, a subclass of it or exports it.

        A protocol matches only when exported or explicitly subclassed.
        """
        if _is_protocol(t):
            return any(t in getattr(c, "__mro__", (c,)) for c in (self.bean_type, *self.exports))
        if implements(self.bean_type, t):
            return True
        return any(implements(e, t) for e in self.exports)

    def match(self, type_name_: str, bean_name: str) -> bool:
        """
        Whether the bean matches a type name and a bean name; either may be
        empty to match anything.
        """
        if type_name_:
            names = {self.type_name, getattr(self.bean_type, "__qualname__", ""), getattr(self.bean_type, "__name__", "")}
            for e in self.exports:
                names.update((type_name(e), e.__qualname__, e.__name__))
            if type_name_ not in names:
                return False
        return not bean_name or self._name == bean_name

    def __repr__(self) -> str:
        kind = "factory bean" if self.is_factory else "object bean"
        return f"{kind} name:{self._name!r} type:{self.type_name} {self.location}"
