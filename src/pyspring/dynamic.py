"""
Values that follow property reloads.

A :class:`Dynamic` cell is bound like any other field but keeps its bind
parameters. When :meth:`DynamicProperties.refresh` publishes a new snapshot,
cells whose key changed are re-bound and their callbacks invoked.
"""
import logging
import threading
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Generic, Optional, TypeVar

from .config.path import is_sub_key

if TYPE_CHECKING:
    from .config.binder import BindParam
    from .config.properties import Properties

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


class Dynamic(Generic[_T]):
    """
    An atomically swappable value.

    Declare it as ``Annotated[Dynamic[int], Value("${n:=3}")]`` and read
    ``.value``; readers observe either the old or the new value.
    """

    def __init__(self, value: Optional[_T] = None) -> None:
        self._value = value
        self._param: Optional["BindParam"] = None
        self._rebind: Optional[Callable[["Properties"], _T]] = None
        self._callbacks: list[Callable[[_T], Any]] = []

    @property
    def value(self) -> Optional[_T]:
        return self._value

    @property
    def param(self) -> Optional["BindParam"]:
        return self._param

    def on_change(self, callback: Callable[[_T], Any]) -> "Dynamic[_T]":
        """Register a callback invoked with the new value after each re-bind."""
        self._callbacks.append(callback)
        return self

    def init(self, param: "BindParam", rebind: Callable[["Properties"], _T], props: "Properties") -> None:
        """Bind the initial value; callbacks don't fire."""
        self._param = param
        self._rebind = rebind
        self._value = rebind(props)

    def refresh(self, props: "Properties") -> bool:
        """
        Re-bind against ``props`` and notify callbacks.

        A key that disappeared without a default keeps the current value.

        :return: Whether the value was re-bound.
        :raises Exception: Whatever the binding raised; the value is kept.
        """
        if self._rebind is None or self._param is None:
            return False

        key = self._param.key
        if key and not props.has(key) and not self._param.tag.has_default:
            logger.warning("Property '%s' removed, keeping last value of %s", key, self._param.path)
            return False

        value = self._rebind(props)
        self._value = value
        for cb in self._callbacks:
            cb(value)
        return True

    def __repr__(self) -> str:
        return f"Dynamic({self._value!r})"


class DynamicProperties:
    """
    Current property snapshot plus every bound :class:`Dynamic` cell.

    :param props: The initial snapshot.
    """

    def __init__(self, props: "Properties") -> None:
        self._props = props
        self._values: list[Dynamic] = []
        self._lock = threading.Lock()

    @property
    def properties(self) -> "Properties":
        return self._props

    @property
    def values(self) -> list[Dynamic]:
        return list(self._values)

    def watch(self, value: Dynamic) -> None:
        with self._lock:
            if not any(v is value for v in self._values):
                self._values.append(value)

    def refresh(self, props: "Properties") -> list[Exception]:
        """
        Publish a new snapshot and re-bind the affected cells.

        Cells are re-bound in registration order. A failing cell keeps its
        value; its error is logged and returned, and the others still refresh.

        :param props: The new snapshot.
        :return: Errors raised while re-binding.
        """
        with self._lock:
            old = self._props
            changed = changed_keys(old, props)
            dirty = [
                v for v in self._values
                if v.param is not None and any(is_sub_key(k, v.param.key) for k in changed)
            ]
            self._props = props

        logger.debug("Refreshing %d of %d dynamic values, changed keys: %s",
                     len(dirty), len(self._values), sorted(changed))

        errors: list[Exception] = []
        for v in dirty:
            try:
                v.refresh(props)
            except Exception as e:
                logger.error("Refresh of %s failed, keeping last value: %s", v.param.path, e)
                errors.append(e)
        return errors


def changed_keys(old: "Properties", new: "Properties") -> set[str]:
    """Keys added, removed or holding a different value."""
    old_keys = set(old.keys())
    new_keys = set(new.keys())
    changed = old_keys ^ new_keys
    for k in old_keys & new_keys:
        if old.get(k) != new.get(k):
            changed.add(k)
    return changed
