"""
Bean assembly.

Refreshing a container runs three phases over its registry:

1. conditions are evaluated once per definition, in registration order.
   Bean conditions resolve their candidates on demand and definitions still
   being resolved are invisible to them;
2. configurers run in their before/after order;
3. accepted beans are wired recursively: factory arguments and
   ``Autowired`` attributes are injected, ``Value`` attributes are bound,
   then the init hook runs.
"""
import inspect
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional, Union

from cachetools import LRUCache, cached

from .beans import (
    Arg,
    ArgKind,
    ArgList,
    BeanDefinition,
    BeanRegistry,
    BeanStatus,
    Selector,
    collection_type,
    make_arg,
    parse_selector,
)
from .conditions import Condition, Conditional
from .config.binder import BindParam, Binder, struct_fields
from .dynamic import DynamicProperties
from .errors import (
    AmbiguousBeanError,
    BeanNotFoundError,
    BindError,
    ConditionError,
    ContainerFrozenError,
    CyclicDependencyError,
    FactoryError,
)
from .markers import Autowired, Value, find_marker, split_annotated
from .utils import sort_triple, type_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InjectionPoint:
    """An attribute receiving a bean or a property value."""
    name: str
    hint: Any
    marker: Union[Value, Autowired]


def _raw_fields(cls: type) -> list[tuple[str, Any, tuple]]:
    result = []
    for klass in reversed(cls.__mro__):
        for name, hint in inspect.get_annotations(klass).items():
            if name.startswith("_") or isinstance(hint, str):
                continue
            inner, metadata = split_annotated(hint)
            result.append((name, inner, metadata))
    return result


@cached(cache=LRUCache(maxsize=512))
def injection_points(cls: type) -> tuple[InjectionPoint, ...]:
    """
    Attributes of a class marked with :class:`Value` or :class:`Autowired`,
    through ``Annotated`` metadata or as their class default.

    Annotations that can't be evaluated are skipped.
    """
    try:
        fields = struct_fields(cls)
    except BindError:
        fields = _raw_fields(cls)

    points = []
    seen = set()
    for name, hint, metadata in fields:
        seen.add(name)
        marker = find_marker(metadata, Value, Autowired)
        if marker is None:
            default = inspect.getattr_static(cls, name, None)
            if isinstance(default, (Value, Autowired)):
                marker = default
        if marker is not None:
            points.append(InjectionPoint(name, hint, marker))

    for klass in reversed(cls.__mro__):
        for name, attr in vars(klass).items():
            if name in seen or name.startswith("_") or not isinstance(attr, (Value, Autowired)):
                continue
            seen.add(name)
            points.append(InjectionPoint(name, str if isinstance(attr, Value) else Any, attr))
    return tuple(points)


def _is_opaque(obj: Any) -> bool:
    return inspect.isclass(obj) or inspect.ismodule(obj) or type(obj).__module__ == "builtins"


class WiringStack:
    """The beans being wired, outermost first."""

    def __init__(self) -> None:
        self.beans: list[BeanDefinition] = []
        self.failed_path: Optional[str] = None

    def push(self, d: BeanDefinition) -> None:
        logger.debug("push %s", d.id)
        self.beans.append(d)

    def pop(self) -> None:
        d = self.beans.pop()
        logger.debug("pop %s", d.id)

    def path(self, last: Optional[BeanDefinition] = None) -> str:
        beans = [*self.beans, last] if last is not None else self.beans
        return " -> ".join(b.id for b in beans) or "<none>"


class Configurer:
    """
    A callable run after conditions are evaluated and before beans are
    wired; its arguments are resolved like factory arguments.

    :param fn: The configurer function.
    :param args: Positional argument descriptors.
    :param kwargs: Keyword argument descriptors.
    """

    def __init__(
            self,
            fn: Callable,
            args: tuple = (),
            kwargs: Optional[dict[str, Any]] = None,
            file: Optional[str] = None,
            line: Optional[int] = None
    ) -> None:
        self.fn = fn
        self.args = ArgList(fn, args, kwargs or {})
        self.config_name = getattr(fn, "__qualname__", repr(fn))
        self.run_before: list[str] = []
        self.run_after: list[str] = []
        self.conditions: list[Condition] = []
        self.file = file
        self.line = line
        self.frozen = False

    def _check_frozen(self) -> None:
        if self.frozen:
            raise ContainerFrozenError(f"configurer '{self.config_name}' can't be changed after refresh started")

    def name(self, name: str) -> "Configurer":
        self._check_frozen()
        self.config_name = name
        return self

    def before(self, *names: str) -> "Configurer":
        """Run before the configurers with these names."""
        self._check_frozen()
        self.run_before.extend(names)
        return self

    def after(self, *names: str) -> "Configurer":
        """Run after the configurers with these names."""
        self._check_frozen()
        self.run_after.extend(names)
        return self

    def on(self, cond: Condition) -> "Configurer":
        self._check_frozen()
        self.conditions.append(cond)
        return self

    def condition(self) -> Optional[Condition]:
        if not self.conditions:
            return None
        chain = Conditional()
        for c in self.conditions:
            chain.on(c)
        return chain

    def __str__(self) -> str:
        return self.config_name

    def __repr__(self) -> str:
        return f"configurer name:{self.config_name!r} {self.file or 'unknown'}:{self.line}"


def _configurers_before(items: list[Configurer], current: Configurer) -> list[Configurer]:
    return [
        c for c in items
        if c is not current and (c.config_name in current.run_after or current.config_name in c.run_before)
    ]


class Assembler:
    """
    Resolves and wires the beans of a registry.

    Also serves as the context conditions are evaluated against.

    :param registry: The bean definitions.
    :param properties: The property snapshot and its dynamic cells.
    :param builtins: Objects injected by exact type without being beans.
    """

    def __init__(
            self,
            registry: BeanRegistry,
            properties: DynamicProperties,
            builtins: Optional[dict[type, Any]] = None
    ) -> None:
        self.registry = registry
        self.properties = properties
        self.builtins = builtins or {}
        self.destroyers: list[BeanDefinition] = []

    # condition context

    def has(self, key: str) -> bool:
        return self.properties.properties.has(key)

    def prop(self, key: str, default: Optional[str] = None) -> str:
        return self.properties.properties.get(key, default)

    def find(self, selector: Any) -> list[BeanDefinition]:
        """
        Accepted definitions matching a selector, in registration order.

        Unresolved candidates are resolved first; definitions being resolved
        are skipped.
        """
        s = parse_selector(selector)
        result = []
        for d in self.registry:
            if d.status in (BeanStatus.RESOLVING, BeanStatus.DELETED) or not s.matches(d):
                continue
            self.resolve_bean(d)
            if d.status is not BeanStatus.DELETED:
                result.append(d)
        return result

    # phase 1

    def _matches(self, cond: Condition, owner: Any) -> bool:
        try:
            return cond.matches(self)
        except ConditionError:
            raise
        except Exception as e:
            raise ConditionError(f"condition {cond!r} of {owner!r} failed: {e}") from e

    def resolve_bean(self, d: BeanDefinition) -> None:
        if d.status is not BeanStatus.UNRESOLVED:
            return
        d.status = BeanStatus.RESOLVING
        cond = d.condition()
        if cond is not None and not self._matches(cond, d):
            self.registry.mark_deleted(d)
            return
        d.status = BeanStatus.RESOLVED
        logger.debug("Resolved %s", d.id)

    def resolve_all(self) -> None:
        for d in self.registry:
            self.resolve_bean(d)

    # phase 2

    def run_configurers(self, configurers: list[Configurer]) -> None:
        accepted = []
        for c in configurers:
            cond = c.condition()
            if cond is not None and not self._matches(cond, c):
                logger.debug("Skip %r", c)
                continue
            accepted.append(c)

        for c in sort_triple(accepted, _configurers_before):
            logger.debug("Running %r", c)
            stack = WiringStack()
            c.args.call(lambda a: self.resolve_arg(a, stack, c.config_name))

    # phase 3

    def wire_all(self) -> None:
        for d in self.registry.accepted():
            stack = WiringStack()
            try:
                self.wire_bean(d, stack)
            except Exception as e:
                logger.error("Wiring %s failed, path: %s", d.id, stack.failed_path)
                e.add_note(f"wiring path: {stack.failed_path}")
                raise

    def wire_bean(self, d: BeanDefinition, stack: WiringStack) -> Any:
        """Wire a bean and its dependencies, returning its instance."""
        if d.status is BeanStatus.UNRESOLVED:
            self.resolve_bean(d)
        if d.status is BeanStatus.DELETED:
            raise BeanNotFoundError(f"bean '{d.id}' was rejected by its conditions")
        if d.status is BeanStatus.WIRED:
            return d.instance
        if d.status is BeanStatus.WIRING:
            if d.instance is not None:
                logger.debug("Circular reference to %s, inject its current instance", d.id)
                return d.instance
            raise CyclicDependencyError(f"found circular autowire: {stack.path(d)}")

        d.status = BeanStatus.WIRING
        stack.push(d)
        try:
            for selector in d.dependencies:
                for dep in self._select_many(parse_selector(selector), Any, f"{d.id} depends on"):
                    self.wire_bean(dep, stack)

            if d.is_factory:
                d.instance = self._call_factory(d, stack)
            self.wire_attributes(d.instance, stack, d.id)

            if d.init_hook is not None:
                logger.debug("Init %s", d.id)
                _call_hook(d.init_hook, d.instance, d)
            if d.destroy_hook is not None:
                self.destroyers.append(d)

            d.status = BeanStatus.WIRED
            logger.debug("Wired %s", d.id)
            return d.instance
        except Exception:
            if stack.failed_path is None:
                stack.failed_path = stack.path()
            raise
        finally:
            stack.pop()

    def _call_factory(self, d: BeanDefinition, stack: WiringStack) -> Any:
        args, kwargs = d.args.resolve(lambda a: self.resolve_arg(a, stack, d.id))
        try:
            result = d.factory(*args, **kwargs)
        except Exception as e:
            raise FactoryError(f"factory of {d!r} raised {type(e).__name__}: {e}") from e
        if inspect.iscoroutine(result):
            result.close()
            raise FactoryError(f"factory of {d!r} is a coroutine function")
        if result is None:
            raise FactoryError(f"factory of {d!r} returned None")
        return result

    def wire_attributes(self, obj: Any, stack: WiringStack, owner: str) -> None:
        """Inject the ``Autowired`` and ``Value`` attributes of an object."""
        if _is_opaque(obj):
            return
        for p in injection_points(type(obj)):
            if isinstance(p.marker, Value):
                param = BindParam(type=p.hint, path=f"{owner}.{p.name}").bind_tag(p.marker.tag, p.marker.validate)
                current = getattr(obj, p.name, None)
                value = self.binder().bind_value(p.hint, param, current)
            else:
                value = self.resolve_bean_arg(make_arg(p.name, p.hint, p.marker), stack)
            setattr(obj, p.name, value)

    def binder(self) -> Binder:
        return Binder(self.properties.properties, watcher=self.properties)

    # arguments

    def resolve_arg(self, arg: Arg, stack: WiringStack, owner: str) -> Any:
        if arg.kind is ArgKind.CONST:
            return arg.value
        if arg.kind is ArgKind.VALUE:
            marker = arg.value
            param = BindParam(type=arg.hint, path=f"{owner}.{arg.name}").bind_tag(marker.tag, marker.validate)
            return self.binder().bind_value(arg.hint, param)
        return self.resolve_bean_arg(arg, stack)

    def resolve_bean_arg(self, arg: Arg, stack: WiringStack) -> Any:
        if arg.selector is arg.hint and inspect.isclass(arg.hint) and arg.hint in self.builtins:
            return self.builtins[arg.hint]
        if arg.collection is not None:
            return self._collect(arg, stack)
        d = self.select_one(arg.selector, arg.hint, arg.optional, arg.name)
        if d is None:
            return None
        return self.wire_bean(d, stack)

    def select_one(self, selector: Any, hint: Any = Any, optional: bool = False,
                   what: str = "") -> Optional[BeanDefinition]:
        """
        The single accepted bean matching a selector.

        When several match, the only primary one wins.

        :raises BeanNotFoundError: If none match and the selection isn't optional.
        :raises AmbiguousBeanError: If several match.
        """
        s = parse_selector(selector)
        if s.type is Any:
            raise TypeError(f"can't select a bean for '{what}'; annotate its type or give a selector")
        optional = optional or s.optional
        candidates = self.find(s.with_type(hint))
        if not candidates:
            if optional:
                return None
            raise BeanNotFoundError(f"can't find bean, bean:'{s}' type:'{type_name(hint)}' for '{what}'")
        if len(candidates) > 1:
            primary = [d for d in candidates if d.is_primary]
            if len(primary) != 1:
                ids = ", ".join(d.id for d in candidates)
                raise AmbiguousBeanError(f"found {len(candidates)} beans, bean:'{s}' type:'{type_name(hint)}' [{ids}]")
            return primary[0]
        return candidates[0]

    def _select_many(self, s: Selector, elem: Any, what: str) -> list[BeanDefinition]:
        found = self.find(s.with_type(elem))
        if not found and not s.optional:
            raise BeanNotFoundError(f"can't find bean, bean:'{s}' type:'{type_name(elem)}' for '{what}'")
        return found

    def _collect(self, arg: Arg, stack: WiringStack) -> Any:
        coll = collection_type(arg.hint)
        elem = coll[1] if coll is not None else Any

        if arg.selectors:
            beans = self._collect_listed(arg.selectors, elem, arg.name)
        else:
            s = parse_selector(arg.selector)
            if s.type is Any:
                s = Selector(optional=s.optional)
            beans = _ordered(self.find(s.with_type(elem)))

        if not beans and not arg.optional:
            raise BeanNotFoundError(f"no beans collected for '{arg.name}' of {type_name(elem)}")

        wired = [(d, self.wire_bean(d, stack)) for d in beans]
        if arg.collection is dict:
            return {d.bean_name: obj for d, obj in wired}
        if arg.collection is set:
            return {obj for _, obj in wired}
        if arg.collection is tuple:
            return tuple(obj for _, obj in wired)
        return [obj for _, obj in wired]

    def _collect_listed(self, selectors: tuple, elem: Any, what: str) -> list[BeanDefinition]:
        picked: list[BeanDefinition] = []
        rest_at = None
        for selector in selectors:
            if selector == "*":
                rest_at = len(picked)
                continue
            for d in self._select_many(parse_selector(selector), elem, what):
                if d not in picked:
                    picked.append(d)
        if rest_at is not None:
            rest = [d for d in _ordered(self.find(Selector().with_type(elem))) if d not in picked]
            picked[rest_at:rest_at] = rest
        return picked

    # shutdown

    def destroy_all(self) -> list[Exception]:
        """Run destroy hooks in reverse initialization order."""
        errors: list[Exception] = []
        while self.destroyers:
            d = self.destroyers.pop()
            try:
                _call_hook(d.destroy_hook, d.instance, d)
                logger.debug("Destroyed %s", d.id)
            except Exception as e:
                logger.exception("Destroy hook of %s failed", d.id)
                errors.append(e)
        return errors


def _ordered(beans: list[BeanDefinition]) -> list[BeanDefinition]:
    return sorted(beans, key=lambda d: (d.sort_order, d.index))


def _call_hook(hook: Any, obj: Any, d: BeanDefinition) -> None:
    result = getattr(obj, hook)() if isinstance(hook, str) else hook(obj)
    if inspect.iscoroutine(result):
        result.close()
        raise TypeError(f"hook {hook!r} of {d.id} is a coroutine function")
