"""
Injection markers placed in ``typing.Annotated`` metadata or used as
attribute defaults::

    class Server:
        port: Annotated[int, Value("${server.port:=8080}", validate="$ > 0")]
        db: Annotated[Database, Autowired()]
        filters: Annotated[list[Filter], Autowired()]
"""
from dataclasses import dataclass
from typing import Any, Annotated, Optional, get_args, get_origin


@dataclass(frozen=True)
class Value:
    """Bind a property tag such as ``${key:=default}``."""
    tag: str
    validate: str = ""


@dataclass(frozen=True)
class Autowired:
    """
    Inject a bean.

    The selector may be a bean name, ``"type:name"``, a class or empty to
    select by the annotated type. A trailing ``?`` on a string selector, or
    ``optional=True``, allows the bean to be missing.
    """
    selector: Any = ""
    optional: bool = False


def split_annotated(tp: Any) -> tuple[Any, tuple]:
    """Strip ``Annotated`` returning the inner type and its metadata."""
    if get_origin(tp) is Annotated:
        args = get_args(tp)
        return args[0], tuple(args[1:])
    return tp, ()


def find_marker(metadata: tuple, *kinds: type) -> Optional[Any]:
    for m in metadata:
        if isinstance(m, kinds):
            return m
    return None
