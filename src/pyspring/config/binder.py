"""
Binding of properties into typed values.

The binder walks a target type and reads each piece from the property store:
primitives are converted with pydantic, sequences come from comma lists or
``key[i]`` entries, dicts from sub keys and annotated classes field by field.
Fields opt in with ``Annotated[T, Value("${key:=default}")]``.
"""
import dataclasses
import enum
import inspect
import logging
import types
import typing
from collections.abc import Callable, Mapping, MutableSequence, Sequence
from collections.abc import Set as AbstractSet
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from pathlib import Path
from typing import Any, Optional, Protocol, TypeVar, Union, get_args, get_origin

import pydantic
from cachetools import cached

from .converters import parse_duration, parse_time
from .expression import check
from .tags import ParsedTag, parse_tag, resolve_string, split_value
from ..dynamic import Dynamic
from ..errors import BindError, PropertyNotFoundError, ValidationFailedError
from ..markers import Autowired, Value, find_marker, split_annotated
from ..utils import type_name

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

_converters: dict[Any, Callable[[str], Any]] = {}

_PRIMITIVES = (bool, int, float, str, complex, bytes, Decimal, Path, date, time)

_NONE_TYPES = (type(None),)


class PropertyReader(Protocol):
    def has(self, key: str) -> bool: ...

    def has_value(self, key: str) -> bool: ...

    def get(self, key: str, default: Optional[str] = None) -> str: ...

    def sub_keys(self, key: str) -> list[str]: ...


class Watcher(Protocol):
    def watch(self, value: Dynamic) -> None: ...


def register_converter(type_: Any, fn: Callable[[str], Any]) -> None:
    """
    Register a string converter for a target type.

    Converters are consulted before any built-in conversion.
    """
    _converters[type_] = fn
    logger.debug("Registered converter for %s", type_)


register_converter(timedelta, parse_duration)
register_converter(datetime, parse_time)


@dataclass(frozen=True)
class BindParam:
    """Where a value is read from and how it's reported."""
    type: Any = None
    key: str = ""
    path: str = ""
    tag: ParsedTag = field(default_factory=lambda: ParsedTag(""))
    validate: str = ""

    def bind_tag(self, tag: str, validate: str = "") -> "BindParam":
        """
        Compose a child parameter from a ``${key:=default}`` tag.

        The tag key is appended to this parameter's key; ``${ROOT}`` binds at
        this key and ``${:=default}`` binds the default only.
        """
        parsed = parse_tag(tag)
        if not parsed.key:
            if not parsed.has_default:
                raise BindError(f"bind {self.path} error: tag '{tag}' needs a key or a default")
            return replace(self, key="", tag=parsed, validate=validate)

        key = parsed.key
        if key == "ROOT":
            key = ""
        if self.key and key:
            key = f"{self.key}.{key}"
        elif self.key:
            key = self.key
        return replace(self, key=key, tag=parsed, validate=validate)

    def child(self, key: str, path: str, type_: Any = None) -> "BindParam":
        return BindParam(type=type_, key=key, path=path)


@cached(cache={})
def _adapter(type_: Any) -> pydantic.TypeAdapter:
    return pydantic.TypeAdapter(type_)


def _unwrap_optional(type_: Any) -> tuple[Any, bool]:
    origin = get_origin(type_)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(type_) if a not in _NONE_TYPES]
        if len(args) == 1 and len(args) < len(get_args(type_)):
            return args[0], True
    return type_, False


def is_simple_type(type_: Any) -> bool:
    """Whether values of ``type_`` come from a single property string."""
    type_, _ = split_annotated(type_)
    type_, _ = _unwrap_optional(type_)
    if type_ in _converters or type_ in _PRIMITIVES or type_ is Any:
        return True
    if get_origin(type_) is typing.Literal:
        return True
    return inspect.isclass(type_) and issubclass(type_, enum.Enum)


def is_struct_type(type_: Any) -> bool:
    """Whether ``type_`` is a class bound field by field."""
    if not inspect.isclass(type_) or is_simple_type(type_):
        return False
    if issubclass(type_, pydantic.BaseModel) or dataclasses.is_dataclass(type_):
        return True
    return any(inspect.get_annotations(c) for c in type_.__mro__ if c is not object)


def _zero_value(type_: Any) -> Any:
    type_, _ = split_annotated(type_)
    if type_ in (bool, int, float, str, complex, bytes, Decimal):
        return type_()
    return None


class Binder:
    """
    Populates values from a property store.

    :param properties: The store values are read from.
    :param watcher: Receives every :class:`Dynamic` cell that gets bound.
    """

    def __init__(self, properties: PropertyReader, watcher: Optional[Watcher] = None) -> None:
        self.properties = properties
        self.watcher = watcher

    def bind(self, target: Any, param: Optional[BindParam] = None) -> Any:
        """
        Bind into a target.

        :param target: A type, for which a new value is built, or an
            instance, which is populated in place.
        :param param: Where to read from; the whole store when omitted.
        :return: The bound value.
        """
        if isinstance(target, Dynamic):
            param = param or BindParam()
            if param.type is None:
                raise BindError(f"bind {param.path} error: dynamic value needs a target type")
            return self._bind_dynamic(param.type, param, target)

        if inspect.isclass(target) or get_origin(target) is not None:
            param = param or BindParam(path=_path_of(target))
            _, metadata = split_annotated(target)
            marker = find_marker(metadata, Value)
            if marker is not None:
                param = param.bind_tag(marker.tag, marker.validate)
            return self.bind_value(target, replace(param, type=target))

        param = param or BindParam(path=_path_of(target))
        values = self._bind_fields(type(target), param, current=target)
        for name, value in values.items():
            setattr(target, name, value)
        return target

    def bind_value(self, type_: Any, param: BindParam, current: Any = None) -> Any:
        """Build a value of ``type_`` from the store; validates the result."""
        value = self._bind_value(type_, param, current)
        if param.validate and not isinstance(value, Dynamic):
            if not check(param.validate, value):
                raise ValidationFailedError(
                    f"bind {param.path} error: validate failed on '{param.validate}' for value {value!r}"
                )
        return value

    def _bind_value(self, type_: Any, param: BindParam, current: Any = None) -> Any:
        type_, _ = split_annotated(type_)
        type_, optional = _unwrap_optional(type_)
        origin = get_origin(type_)

        if origin is Dynamic or isinstance(current, Dynamic):
            inner = get_args(type_)[0] if origin is Dynamic and get_args(type_) else Any
            return self._bind_dynamic(inner, param, current if isinstance(current, Dynamic) else None)

        if optional and param.key and not self.properties.has(param.key) and not param.tag.has_default:
            return None

        if type_ in _converters:
            return self._convert(type_, self.get_value(param), param)

        if is_simple_type(type_):
            return self._convert(type_, self.get_value(param), param)

        if origin is tuple:
            args = get_args(type_)
            if len(args) == 2 and args[1] is Ellipsis:
                return tuple(self._bind_sequence(args[0], param))
            return self._bind_array(args, param)

        if type_ in (list, tuple, set, frozenset):
            return type_(self._bind_sequence(Any, param))

        if origin in (list, set, frozenset) or origin in (Sequence, MutableSequence, AbstractSet):
            args = get_args(type_)
            items = self._bind_sequence(args[0] if args else Any, param)
            if origin in (set, frozenset):
                return origin(items)
            if origin is AbstractSet:
                return set(items)
            return items

        if type_ is dict or origin in (dict, Mapping):
            args = get_args(type_)
            return self._bind_map(args[1] if len(args) == 2 else Any, args[0] if args else str, param)

        if is_struct_type(type_):
            return self._bind_struct(type_, param, current)

        raise BindError(f"bind {param.path} error: unsupported target type {type_!r}")

    def get_value(self, param: BindParam) -> str:
        """
        Read the resolved string for a parameter.

        :raises PropertyNotFoundError: If the key is absent and has no default.
        """
        if param.key and self.properties.has_value(param.key):
            return resolve_string(self.properties, self.properties.get(param.key))
        if param.tag.has_default:
            return resolve_string(self.properties, param.tag.default)
        raise PropertyNotFoundError(param.key)

    def _convert(self, type_: Any, s: str, param: BindParam) -> Any:
        try:
            fn = _converters.get(type_)
            if fn is not None:
                return fn(s)
            if type_ is Any or type_ is str:
                return s
            if s == "" and type_ in (bool, int, float, complex, Decimal, bytes):
                return type_()
            if type_ is complex:
                return complex(s.replace(" ", ""))
            return _adapter(type_).validate_python(s)
        except (ValueError, TypeError) as e:
            raise BindError(f"bind {param.path} error: can't convert {s!r} to {type_name(type_)}: {e}") from e

    def _bind_dynamic(self, type_: Any, param: BindParam, cell: Optional[Dynamic]) -> Dynamic:
        cell = cell if cell is not None else Dynamic()

        def rebind(props: PropertyReader) -> Any:
            return Binder(props).bind_value(type_, param)

        cell.init(param, rebind, self.properties)
        if self.watcher is not None:
            self.watcher.watch(cell)
        return cell

    def _items(self, elem_type: Any, param: BindParam) -> tuple[list[str], bool]:
        """Return raw string items and whether they come from ``key[i]`` entries."""
        if param.key and self.properties.has(f"{param.key}[0]"):
            return [], True

        if param.key and self.properties.has_value(param.key):
            raw = self.properties.get(param.key)
        elif param.tag.has_default:
            raw = param.tag.default
        else:
            raise PropertyNotFoundError(param.key)

        if raw == "":
            return [], False
        if not is_simple_type(elem_type):
            raise BindError(f"bind {param.path} error: {type_name(elem_type)} items should have an empty default")

        raw = resolve_string(self.properties, raw)
        return split_value(raw, param.tag.splitter), False

    def _bind_sequence(self, elem_type: Any, param: BindParam) -> list:
        if not param.key and not param.tag.has_default:
            raise BindError(f"bind {param.path} error: a sequence needs a key")

        items, indexed = self._items(elem_type, param)
        if not indexed:
            return [self._convert_item(elem_type, s, param, i) for i, s in enumerate(items)]

        result = []
        i = 0
        while self.properties.has(f"{param.key}[{i}]"):
            sub = param.child(f"{param.key}[{i}]", f"{param.path}[{i}]")
            result.append(self.bind_value(elem_type, sub))
            i += 1
        return result

    def _bind_array(self, elem_types: tuple, param: BindParam) -> tuple:
        n = len(elem_types)
        simple = all(is_simple_type(t) for t in elem_types)
        items, indexed = self._items(elem_types[0] if simple else object, param)

        result: list = []
        if not indexed:
            if len(items) > n:
                raise BindError(f"bind {param.path} error: got {len(items)} items for a tuple of {n}")
            result = [self._convert_item(t, s, param, i) for i, (t, s) in enumerate(zip(elem_types, items))]
        else:
            for i, t in enumerate(elem_types):
                sub_key = f"{param.key}[{i}]"
                if not self.properties.has(sub_key):
                    break
                result.append(self.bind_value(t, param.child(sub_key, f"{param.path}[{i}]")))

        result.extend(_zero_value(t) for t in elem_types[len(result):])
        return tuple(result)

    def _convert_item(self, elem_type: Any, s: str, param: BindParam, i: int) -> Any:
        elem_type, _ = split_annotated(elem_type)
        elem_type, _ = _unwrap_optional(elem_type)
        return self._convert(elem_type, s, replace(param, path=f"{param.path}[{i}]"))

    def _bind_map(self, value_type: Any, key_type: Any, param: BindParam) -> dict:
        if param.tag.has_default and param.tag.default != "":
            raise BindError(f"bind {param.path} error: map can't have a non-empty default value")

        if param.key and not self.properties.has(param.key):
            if param.tag.has_default:
                return {}
            raise PropertyNotFoundError(param.key)

        result = {}
        for k in self.properties.sub_keys(param.key):
            sub_key = f"{param.key}.{k}" if param.key else k
            if param.key and k.isdigit() and self.properties.has(f"{param.key}[{k}]"):
                sub_key = f"{param.key}[{k}]"
            map_key = self._convert(key_type, k, param) if key_type not in (str, Any) else k
            result[map_key] = self.bind_value(value_type, param.child(sub_key, f"{param.path}.{k}"))
        return result

    def _bind_struct(self, cls: type, param: BindParam, current: Any = None) -> Any:
        if current is not None and isinstance(current, cls):
            values = self._bind_fields(cls, param, current=current)
            for name, value in values.items():
                setattr(current, name, value)
            return current

        values = self._bind_fields(cls, param)
        try:
            return _construct(cls, values)
        except (TypeError, pydantic.ValidationError) as e:
            raise BindError(f"bind {param.path} error: can't build {type_name(cls)}: {e}") from e

    def _bind_fields(self, cls: type, param: BindParam, current: Any = None) -> dict[str, Any]:
        values: dict[str, Any] = {}
        for name, hint, metadata in struct_fields(cls):
            marker = find_marker(metadata, Value, Autowired)
            default = _class_default(cls, name)
            if marker is None and isinstance(default, (Value, Autowired)):
                marker = default
            if isinstance(marker, Autowired):
                continue

            existing = getattr(current, name, None) if current is not None else None
            sub_path = f"{param.path}.{name}"

            if isinstance(marker, Value):
                sub = replace(param, path=sub_path, type=hint).bind_tag(marker.tag, marker.validate)
                values[name] = self.bind_value(hint, sub, existing)
                continue

            sub_key = f"{param.key}.{name}" if param.key else ""
            if not sub_key or not self.properties.has(sub_key):
                continue
            if is_simple_type(hint) or is_struct_type(hint) or get_origin(hint) is not None:
                values[name] = self.bind_value(hint, param.child(sub_key, sub_path, hint), existing)
        return values


def struct_fields(cls: type) -> list[tuple[str, Any, tuple]]:
    """
    Public, non ``ClassVar`` fields of a class with their ``Annotated``
    metadata, base class fields first.
    """
    if issubclass(cls, pydantic.BaseModel):
        return [
            (name, info.annotation, tuple(info.metadata))
            for name, info in cls.model_fields.items()
            if not name.startswith("_")
        ]

    try:
        hints = typing.get_type_hints(cls, include_extras=True)
    except (NameError, TypeError) as e:
        raise BindError(f"can't read fields of {type_name(cls)}: {e}") from e

    result = []
    for name, hint in hints.items():
        if name.startswith("_"):
            continue
        inner, metadata = split_annotated(hint)
        if inner is typing.ClassVar or get_origin(inner) is typing.ClassVar:
            continue
        result.append((name, inner, metadata))
    return result


def _class_default(cls: type, name: str) -> Any:
    if issubclass(cls, pydantic.BaseModel):
        info = cls.model_fields.get(name)
        if info is not None and not info.is_required():
            return info.default
        return None
    if dataclasses.is_dataclass(cls):
        for f in dataclasses.fields(cls):
            if f.name == name and f.default is not dataclasses.MISSING:
                return f.default
        return None
    return inspect.getattr_static(cls, name, None)


def _construct(cls: type, values: dict[str, Any]) -> Any:
    if issubclass(cls, pydantic.BaseModel):
        return cls.model_construct(**values)

    if dataclasses.is_dataclass(cls):
        init_names = {f.name for f in dataclasses.fields(cls) if f.init}
        obj = cls(**{k: v for k, v in values.items() if k in init_names})
        for k, v in values.items():
            if k not in init_names:
                setattr(obj, k, v)
        return obj

    try:
        obj = cls()
    except TypeError:
        obj = object.__new__(cls)
    for k, v in values.items():
        setattr(obj, k, v)
    return obj


def _path_of(target: Any) -> str:
    if inspect.isclass(target):
        return type_name(target)
    if get_origin(target) is not None:
        return repr(target)
    return type_name(type(target))


def bind_properties(properties: PropertyReader, target: Any, key: str = "", tag: str = "") -> Any:
    """
    Bind ``properties`` into ``target`` at ``key`` or through ``tag``.

    :param properties: The property store.
    :param target: A type or an instance.
    :param key: Root key.
    :param tag: A ``${key:=default}`` tag, used instead of ``key``.
    """
    param = BindParam(path=_path_of(target))
    if tag:
        param = param.bind_tag(tag)
    else:
        param = replace(param, key=key, tag=ParsedTag(key))
    return Binder(properties).bind(target, param)
