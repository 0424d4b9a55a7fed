import inspect
import os
from collections.abc import Callable, Hashable, Iterable
from datetime import datetime
from pathlib import Path
from typing import TypeVar, Union

from .errors import CyclicConfigurersError

_T = TypeVar("_T")


def expanded_path(path: Union[str, Path]) -> Path:
    """
    A config location or logging file path with ``~`` and ``$VAR``
    expanded.
    """
    return Path(os.path.expandvars(os.path.expanduser(str(path))))


def clean_module_name(name: str) -> str:
    """
    Module name used for loggers and registration points, without
    ``__init__`` and ``__main__`` parts.

    :param name: The raw module name, e.g. "billing.__init__".
    :return: The display name, e.g. "billing".
    """
    if not name:
        return "unknown"
    parts = [p for p in name.split(".") if p not in ("__init__", "__main__")]
    return ".".join(parts) if parts else name


def caller_location(stack_level: int = 2) -> tuple[str, int, str, datetime]:
    """
    Capture the file, line and module of a caller frame.

    :param stack_level: How many frames above this function to look.
    :return: Tuple of (file, line, module, timestamp).
    """
    frame = inspect.currentframe()
    try:
        for _ in range(stack_level):
            if frame is None or frame.f_back is None:
                break
            frame = frame.f_back
        if frame is None:  # pragma: no cover
            return "unknown", 0, "unknown", datetime.now()
        module_name = frame.f_globals.get("__name__", "unknown")
        return frame.f_code.co_filename, frame.f_lineno, clean_module_name(module_name), datetime.now()
    finally:
        del frame


def type_name(type_: type) -> str:
    """Fully qualified name of a type, ``module.QualName``."""
    module = getattr(type_, "__module__", None)
    qualname = getattr(type_, "__qualname__", None) or getattr(type_, "__name__", repr(type_))
    if module in (None, "builtins"):
        return qualname
    return f"{module}.{qualname}"


def sort_triple(
        items: Iterable[_T],
        get_before: Callable[[list[_T], _T], list[_T]],
        key: Callable[[_T], Hashable] = id
) -> list[_T]:
    """
    Stable topological sort.

    ``get_before(items, item)`` returns the items that must come before
    ``item``. Items keep their original order unless a constraint moves them.

    :raises CyclicConfigurersError: If the constraints form a cycle.
    """
    items = list(items)
    sorted_items: list[_T] = []
    done: set = set()
    processing: list[_T] = []

    def visit(item: _T) -> None:
        if key(item) in done:
            return
        if any(key(p) == key(item) for p in processing):
            path = " -> ".join(str(p) for p in (*processing, item))
            raise CyclicConfigurersError(f"found sorting cycle: {path}")
        processing.append(item)
        for before in get_before(items, item):
            visit(before)
        processing.pop()
        done.add(key(item))
        sorted_items.append(item)

    for i in items:
        visit(i)
    return sorted_items
