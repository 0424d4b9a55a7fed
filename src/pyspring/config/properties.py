"""
Flat key/value property store with a tree overlay.

Values are kept as strings under keys such as ``a.b[0].c``. A parallel tree
records which keys are values and which are interior nodes, so a key can never
hold a value and sub keys at the same time.
"""
import enum
import logging
from collections.abc import Callable, Iterator, Mapping, Set
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Any, Optional, TypeVar, Union

from .converters import format_duration, format_time
from .path import join_path, split_path
from .readers import load_file, read_data
from .tags import resolve_string
from ..errors import BindError, PropertyConflictError, TagSyntaxError

logger = logging.getLogger(__name__)

_T = TypeVar("_T")

# Tree leaf marker; interior nodes are plain dicts.
_VALUE = object()


def to_string(value: Any) -> str:
    """
    Convert a scalar to its stored string form.

    Booleans become ``true``/``false``, durations use the ``1h30m`` form and
    ``None`` becomes the empty string.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return value
    if isinstance(value, enum.Enum):
        return to_string(value.value)
    if isinstance(value, timedelta):
        return format_duration(value)
    if isinstance(value, datetime):
        return format_time(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8")
    return str(value)


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple, Set)) and not isinstance(value, (str, bytes))


def _is_structure(value: Any) -> bool:
    return isinstance(value, Mapping) or _is_sequence(value)


def _copy_tree(tree: dict) -> dict:
    return {k: (_copy_tree(v) if isinstance(v, dict) else v) for k, v in tree.items()}


class Properties:
    """
    A single layer of properties.

    >>> p = Properties({"app": {"name": "demo", "ports": [80, 443]}})
    >>> p.get("app.ports")
    '80,443'
    """

    def __init__(self, data: Optional[Mapping[str, Any]] = None) -> None:
        self._data: dict[str, str] = {}
        self._tree: dict = {}
        if data:
            self.update(data)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Properties":
        return cls(data)

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Properties":
        p = cls()
        p.load(path)
        return p

    def load(self, path: Union[str, Path]) -> None:
        """
        Load a configuration file, choosing the reader by extension.

        :raises FileFormatError: If the extension is unsupported or the file
            is malformed.
        """
        self.update(load_file(Path(path)))

    def read(self, data: bytes, ext: str) -> None:
        """Load raw file contents of the given extension."""
        self.update(read_data(data, ext))

    def update(self, data: Mapping[str, Any]) -> None:
        for k in sorted(data, key=str):
            self.set(str(k), data[k])

    def keys(self) -> list[str]:
        """All keys holding a value, sorted."""
        return sorted(self._data)

    def items(self) -> Iterator[tuple[str, str]]:
        for k in self.keys():
            yield k, self._data[k]

    def to_dict(self) -> dict[str, str]:
        return dict(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def __repr__(self) -> str:
        return f"Properties({self._data!r})"

    def has(self, key: str) -> bool:
        """Whether ``key`` holds a value or is an interior node."""
        try:
            path = split_path(key)
        except TagSyntaxError:
            return False
        node = self._tree
        for i, elem in enumerate(path):
            if elem not in node:
                return False
            child = node[elem]
            if child is _VALUE:
                return i == len(path) - 1
            node = child
        return True

    def has_value(self, key: str) -> bool:
        """Whether ``key`` holds a value; interior nodes don't."""
        return key in self._data

    def get(self, key: str, default: Optional[str] = None) -> str:
        """
        Return the stored value of ``key``, never interpolated.

        :param key: The property key.
        :param default: Returned when the key holds no value.
        :return: The value, else ``default``, else the empty string.
        """
        if key in self._data:
            return self._data[key]
        return default if default is not None else ""

    def sub_keys(self, key: str) -> list[str]:
        """
        Direct children of an interior key, sorted.

        An empty key lists the top level keys.

        :raises BindError: If ``key`` holds a value.
        """
        node = self._tree
        if key:
            path = split_path(key)
            for i, elem in enumerate(path):
                child = node.get(elem)
                if child is None:
                    return []
                if child is _VALUE:
                    raise BindError(f"property '{join_path(path[:i + 1])}' is value")
                node = child
        return sorted(node)

    def is_interior(self, key: str) -> bool:
        node = self._node(key)
        return isinstance(node, dict)

    def _node(self, key: str) -> Any:
        node: Any = self._tree
        for elem in split_path(key):
            if not isinstance(node, dict) or elem not in node:
                return None
            node = node[elem]
        return node

    def set(self, key: str, value: Any) -> None:
        """
        Store a value, flattening mappings and sequences.

        A mapping becomes ``key.k`` entries; a sequence of scalars is joined
        with commas at ``key``; a sequence holding structures becomes
        ``key[i]`` entries. An empty container stores ``""`` at ``key`` and
        marks it as an interior node.

        :raises PropertyConflictError: If the write mixes a value and sub keys.
        :raises TagSyntaxError: If the key is malformed.
        """
        if isinstance(value, Mapping):
            self._set_collection(key, [(f"{key}.{k}", v) for k, v in value.items()])
            return

        if _is_sequence(value):
            items = list(value)
            if items and any(_is_structure(v) for v in items):
                self._set_collection(key, [(f"{key}[{i}]", v) for i, v in enumerate(items)])
                return
            if not items:
                self._set_collection(key, [])
                return
            value = ",".join(to_string(v) for v in items)

        path = self._check_key(key, collection=False)
        self._drop_ancestor_markers(path)
        self._data[key] = to_string(value)

    def _set_collection(self, key: str, entries: list[tuple[str, Any]]) -> None:
        path = split_path(key)
        exists = self._node(key) is not None
        self._check_key(key, collection=True)
        if not entries:
            if not exists:
                self._drop_ancestor_markers(path)
                self._data[key] = ""
            return
        for sub_key, sub_value in entries:
            self.set(sub_key, sub_value)
        self._data.pop(key, None)

    def _drop_ancestor_markers(self, path: list[str]) -> None:
        for i in range(1, len(path)):
            self._data.pop(join_path(path[:i]), None)

    def _check_key(self, key: str, collection: bool) -> list[str]:
        path = split_path(key)
        node = self._tree
        for i, elem in enumerate(path):
            last = i == len(path) - 1
            child = node.get(elem)
            if child is None:
                if not last or collection:
                    node[elem] = {}
                    node = node[elem]
                else:
                    node[elem] = _VALUE
                continue
            if isinstance(child, dict):
                if not last or collection:
                    node = child
                    continue
                raise PropertyConflictError(
                    f"property '{key}' want a value but has sub keys {sorted(child)}"
                )
            if last and not collection:
                continue
            raise PropertyConflictError(
                f"property '{join_path(path[:i + 1])}' has a value but want another sub key '{key}'"
            )
        return path

    def merge(
            self,
            other: "Properties",
            on_conflict: Optional[Callable[[str, PropertyConflictError], None]] = None
    ) -> None:
        """
        Copy every entry of ``other`` into this store.

        :param other: The properties to copy.
        :param on_conflict: Called with the key and error when an entry
            conflicts; when omitted the conflict is raised.
        """
        for k, v in other.items():
            value: Any = {} if other.is_interior(k) else v
            try:
                self.set(k, value)
            except PropertyConflictError as e:
                if on_conflict is None:
                    raise
                on_conflict(k, e)

    def copy(self) -> "Properties":
        p = Properties()
        p._data = dict(self._data)
        p._tree = _copy_tree(self._tree)
        return p

    snapshot = copy

    def resolve(self, s: str) -> str:
        """
        Interpolate every ``${key:=default}`` segment of ``s``.

        :raises PropertyNotFoundError: If a key is missing and has no default.
        """
        return resolve_string(self, s)

    def bind(self, target: Union[type[_T], _T], key: str = "", tag: str = "") -> _T:
        """
        Bind properties into a type or an instance.

        :param target: A type to build, or an instance to populate in place.
        :param key: Root key; the whole store when empty.
        :param tag: A ``${key:=default}`` tag, used instead of ``key``.
        :return: The bound value.
        """
        from .binder import bind_properties

        return bind_properties(self, target, key=key, tag=tag)
