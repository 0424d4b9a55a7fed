"""
Argument descriptors of bean factories.

Each factory parameter is filled from a descriptor given at registration or
inferred from its annotation and default:

* :class:`Const` passes a literal value;
* :class:`~pyspring.markers.Value` or a ``"${key:=default}"`` string binds
  a property;
* a bean selector (name, ``"type:name"``, class, definition) or
  :class:`~pyspring.markers.Autowired` injects a bean;
* a list of selectors injects those beans as a collection, ``"*"`` standing
  for every remaining match.

Without a descriptor, ``Annotated[T, Value(...)]`` and
``Annotated[T, Autowired(...)]`` are honored, a class annotation injects a
bean of that type and a parameter with a plain default keeps its default.
"""
import enum
import inspect
import sys
import types
from collections.abc import Callable, Mapping, Sequence
from collections.abc import Set as AbstractSet
from dataclasses import dataclass, field, replace
from typing import Any, Optional, Union, get_args, get_origin

from ..config.binder import is_simple_type
from ..markers import Autowired, Value, find_marker, split_annotated

_MISSING: Any = object()


@dataclass(frozen=True)
class Const:
    """A literal argument value."""
    value: Any


class ArgKind(enum.Enum):
    CONST = "const"
    VALUE = "value"
    BEAN = "bean"


@dataclass(frozen=True)
class Arg:
    """A resolved plan for one parameter."""
    name: str
    kind: ArgKind
    hint: Any = Any
    value: Any = None
    selector: Any = None
    selectors: tuple = ()
    collection: Any = None
    optional: bool = False
    positional: bool = False
    variadic: bool = False


def unwrap_optional(hint: Any) -> tuple[Any, bool]:
    origin = get_origin(hint)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(hint) if a is not type(None)]
        if len(args) == 1 and len(args) < len(get_args(hint)):
            return args[0], True
    return hint, False


def collection_type(hint: Any) -> Optional[tuple[Any, Any]]:
    """
    Split a collection annotation into its kind and element type.

    :return: ``(list, T)`` for ``list[T]`` and sequences, ``(tuple, T)`` for
        ``tuple[T, ...]``, ``(set, T)`` for sets, ``(dict, T)`` for
        ``dict[str, T]``, else ``None``.
    """
    origin = get_origin(hint)
    args = get_args(hint)
    if origin in (list, Sequence) and args:
        return list, args[0]
    if origin is tuple and len(args) == 2 and args[1] is Ellipsis:
        return tuple, args[0]
    if origin in (set, frozenset, AbstractSet) and args:
        return set, args[0]
    if origin in (dict, Mapping) and len(args) == 2:
        return dict, args[1]
    return None


def owner_class(fn: Callable) -> Optional[type]:
    """The class defining a plain function, found through its qualified name."""
    qualname = getattr(fn, "__qualname__", "")
    parts = qualname.split(".")[:-1]
    if not parts or "<locals>" in parts:
        return None
    obj: Any = sys.modules.get(getattr(fn, "__module__", ""), None)
    for part in parts:
        obj = getattr(obj, part, None)
        if obj is None:
            return None
    return obj if inspect.isclass(obj) else None


def make_arg(name: str, hint: Any, descriptor: Any = _MISSING, default: Any = _MISSING, **flags: Any) -> Optional[Arg]:
    """
    Plan one injection point.

    :param name: Parameter or attribute name.
    :param hint: Its annotation, possibly ``Annotated``.
    :param descriptor: An explicit descriptor, if any.
    :param default: Its default value, if any.
    :return: The plan, or ``None`` when the default should be kept.
    :raises TypeError: If nothing can be inferred.
    """
    if hint is inspect.Parameter.empty:
        hint = Any
    inner, metadata = split_annotated(hint)

    if descriptor is _MISSING:
        descriptor = find_marker(metadata, Value, Autowired)
        if descriptor is None and isinstance(default, (Value, Autowired)):
            descriptor = default
        if descriptor is None:
            if default is not _MISSING:
                return None
            if inner is Any or is_simple_type(inner):
                raise TypeError(f"can't infer a value for '{name}'; add a Value, a selector or a default")
            descriptor = Autowired()

    if isinstance(descriptor, Const):
        return Arg(name, ArgKind.CONST, inner, value=descriptor.value, **flags)

    if isinstance(descriptor, str) and descriptor.startswith("${"):
        descriptor = Value(descriptor)

    if isinstance(descriptor, Value):
        return Arg(name, ArgKind.VALUE, inner, value=descriptor, **flags)

    target, optional = unwrap_optional(inner)
    coll = collection_type(target)

    if isinstance(descriptor, (list, tuple)) and not isinstance(descriptor, str):
        if coll is None:
            raise TypeError(f"'{name}' takes a list of selectors but isn't a collection")
        return Arg(name, ArgKind.BEAN, target, selectors=tuple(descriptor),
                   collection=coll[0], optional=optional, **flags)

    if isinstance(descriptor, Autowired):
        optional = optional or descriptor.optional
        selector = descriptor.selector
        if isinstance(selector, str) and selector.endswith("?"):
            optional = True
        if selector in ("", "?", None):
            selector = coll[1] if coll is not None else target
        return Arg(name, ArgKind.BEAN, target, selector=selector,
                   collection=coll[0] if coll else None, optional=optional, **flags)

    if isinstance(descriptor, str) or inspect.isclass(descriptor) or _is_definition(descriptor):
        if isinstance(descriptor, str) and descriptor.endswith("?"):
            optional = True
        return Arg(name, ArgKind.BEAN, target, selector=descriptor,
                   collection=coll[0] if coll else None, optional=optional, **flags)

    return Arg(name, ArgKind.CONST, inner, value=descriptor, **flags)


def _is_definition(obj: Any) -> bool:
    from .definition import BeanDefinition
    return isinstance(obj, BeanDefinition)


@dataclass
class ArgList:
    """
    The parameter plan of a factory, configurer or hook.

    :param fn: The callable.
    :param args: Positional descriptors, matched to parameters in order.
    :param kwargs: Keyword descriptors, matched by parameter name.
    """
    fn: Callable
    args: tuple = ()
    kwargs: dict[str, Any] = field(default_factory=dict)
    items: list[Arg] = field(init=False)
    receiver: Optional[type] = field(init=False, default=None)

    def __post_init__(self) -> None:
        self.items = self._plan()

    @property
    def fn_name(self) -> str:
        return getattr(self.fn, "__qualname__", repr(self.fn))

    def _plan(self) -> list[Arg]:
        try:
            sig = inspect.signature(self.fn, eval_str=True)
        except (NameError, TypeError, ValueError) as e:
            raise TypeError(f"can't inspect {self.fn_name}: {e}") from e

        params = list(sig.parameters.values())
        if params and params[0].name == "self" and inspect.isfunction(self.fn):
            self.receiver = owner_class(self.fn)

        unknown = set(self.kwargs) - {p.name for p in params}
        if unknown and not any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params):
            raise TypeError(f"{self.fn_name} has no parameters {sorted(unknown)}")

        positional = list(self.args)
        items: list[Arg] = []
        for i, p in enumerate(params):
            if p.kind is inspect.Parameter.VAR_POSITIONAL:
                for j, d in enumerate(positional):
                    items.append(make_arg(f"{p.name}[{j}]", p.annotation, d, positional=True, variadic=True))
                positional = []
                continue
            if p.kind is inspect.Parameter.VAR_KEYWORD:
                for k in sorted(unknown):
                    items.append(make_arg(k, p.annotation, self.kwargs[k]))
                continue

            descriptor = _MISSING
            if p.name in self.kwargs:
                descriptor = self.kwargs[p.name]
            elif positional and p.kind is not inspect.Parameter.KEYWORD_ONLY:
                descriptor = positional.pop(0)
            elif i == 0 and self.receiver is not None:
                descriptor = self.receiver

            default = p.default if p.default is not inspect.Parameter.empty else _MISSING
            try:
                arg = make_arg(p.name, p.annotation, descriptor, default,
                               positional=p.kind is inspect.Parameter.POSITIONAL_ONLY)
            except TypeError as e:
                raise TypeError(f"{self.fn_name}: {e}") from e
            if arg is not None:
                items.append(arg)
            elif p.kind is inspect.Parameter.POSITIONAL_ONLY and any(
                    q.kind is inspect.Parameter.POSITIONAL_ONLY for q in params[i + 1:]):
                raise TypeError(f"{self.fn_name}: positional-only '{p.name}' needs a descriptor")

        if positional:
            raise TypeError(f"{self.fn_name} got {len(positional)} extra argument descriptors")

        first_var = next((i for i, a in enumerate(items) if a.variadic), None)
        if first_var is not None:
            leading = [p for p in params if p.kind in (
                inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)]
            if len(leading) != first_var:
                raise TypeError(f"{self.fn_name}: parameters before *{params[len(leading)].name} need descriptors")
            items[:first_var] = [replace(a, positional=True) for a in items[:first_var]]
        return items

    def resolve(self, resolve: Callable[[Arg], Any]) -> tuple[list, dict[str, Any]]:
        """Resolve every argument with ``resolve``, returning ``(args, kwargs)``."""
        args = []
        kwargs = {}
        for item in self.items:
            value = resolve(item)
            if item.positional:
                args.append(value)
            else:
                kwargs[item.name] = value
        return args, kwargs

    def call(self, resolve: Callable[[Arg], Any]) -> Any:
        """Resolve every argument with ``resolve`` and call the function."""
        args, kwargs = self.resolve(resolve)
        return self.fn(*args, **kwargs)
