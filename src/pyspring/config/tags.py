"""
``${key:=default}`` tags and string interpolation.

A tag names a property key, optionally followed by ``:=`` and a default that
may itself contain tags, e.g. ``${dir:=${app.dir}}``. A tag used to bind a
sequence may name a splitter after the closing brace: ``${hosts}|lines``.
"""
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from cachetools import LRUCache, cached

from ..errors import BindError, PropertyNotFoundError, TagSyntaxError

logger = logging.getLogger(__name__)

MAX_RESOLVE_DEPTH = 64

_splitters: dict[str, Callable[[str], list[str]]] = {}


class PropertyReader(Protocol):
    def has(self, key: str) -> bool: ...

    def has_value(self, key: str) -> bool: ...

    def get(self, key: str, default: str | None = None) -> str: ...


@dataclass(frozen=True)
class ParsedTag:
    key: str
    default: str = ""
    has_default: bool = False
    splitter: str = ""

    def __str__(self) -> str:
        out = "${" + self.key
        if self.has_default:
            out += ":=" + self.default
        out += "}"
        if self.splitter:
            out += "|" + self.splitter
        return out


@cached(cache=LRUCache(maxsize=1024))
def parse_tag(tag: str) -> ParsedTag:
    """
    Parse a ``${key:=default}|splitter`` tag.

    :param tag: The tag text.
    :return: The parsed tag.
    :raises TagSyntaxError: If the tag has no ``${`` or no closing brace.
    """
    end = tag.rfind("}")
    if end <= 0:
        raise TagSyntaxError(f"parse tag '{tag}' error: invalid syntax")
    start = tag.find("${")
    if start < 0:
        raise TagSyntaxError(f"parse tag '{tag}' error: invalid syntax")

    splitter = ""
    rest = tag[end + 1:]
    if rest:
        parts = rest.split("|")
        if len(parts) == 2:
            splitter = parts[1].strip()

    body = tag[start + 2:end].split(":=", 1)
    if len(body) > 1:
        return ParsedTag(key=body[0].strip(), default=body[1], has_default=True, splitter=splitter)
    return ParsedTag(key=body[0].strip(), splitter=splitter)


def is_tag(s: str) -> bool:
    return s.startswith("${")


def resolve_string(props: PropertyReader, s: str, _depth: int = 0) -> str:
    """
    Replace every ``${...}`` segment of ``s`` with its property value.

    Stored values and defaults are themselves resolved, so references chain.

    :param props: Where keys are looked up.
    :param s: The string to interpolate.
    :raises PropertyNotFoundError: If a key is missing and has no default.
    :raises TagSyntaxError: On an unclosed segment or a reference cycle.
    """
    if _depth > MAX_RESOLVE_DEPTH:
        raise TagSyntaxError(f"resolve '{s}' error: too deep, possibly a reference cycle")

    count = 0
    start = -1
    end = -1
    i = 0
    while i < len(s):
        c = s[i]
        if c == "$":
            if i < len(s) - 1 and s[i + 1] == "{":
                if count == 0:
                    start = i
                count += 1
        elif c == "}":
            if count > 0:
                count -= 1
                if count == 0:
                    end = i
                    break
        i += 1

    if start < 0:
        return s
    if end < 0:
        raise TagSyntaxError(f"resolve '{s}' error: invalid syntax")

    value = _resolve_tag(props, parse_tag(s[start:end + 1]), _depth + 1)
    tail = resolve_string(props, s[end + 1:], _depth)
    return s[:start] + value + tail


def _resolve_tag(props: PropertyReader, tag: ParsedTag, depth: int) -> str:
    if tag.key and props.has_value(tag.key):
        return resolve_string(props, props.get(tag.key), depth)
    if tag.has_default:
        return resolve_string(props, tag.default, depth)
    raise PropertyNotFoundError(tag.key)


def register_splitter(name: str, fn: Callable[[str], list[str]]) -> None:
    """Register a named splitter usable as ``${key}|name``."""
    _splitters[name] = fn
    logger.debug("Registered splitter '%s'", name)


def split_value(s: str, splitter: str = "") -> list[str]:
    """
    Split a string into list items.

    Without a splitter the string is split on commas and each item stripped.

    :raises BindError: If the splitter is unknown.
    """
    if not splitter:
        return [item.strip() for item in s.split(",")]
    fn = _splitters.get(splitter)
    if fn is None:
        raise BindError(f"unknown splitter '{splitter}'")
    return fn(s)


register_splitter("lines", lambda s: [line for line in s.splitlines() if line.strip()])
