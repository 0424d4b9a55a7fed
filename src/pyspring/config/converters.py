"""
String conversions for duration and time values.

Durations use the ``1h30m``, ``500ms``, ``1.5s`` notation. Times default to
the ``%Y-%m-%d %H:%M:%S %z`` layout; a value may carry its own layout after a
``>>`` separator, e.g. ``"2021-03-04 >> %Y-%m-%d"``.
"""
import re
from datetime import datetime, timedelta
from decimal import Decimal

import pydantic

DEFAULT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S %z"

_UNITS = {
    "ns": Decimal("0.000000001"),
    "us": Decimal("0.000001"),
    "µs": Decimal("0.000001"),
    "ms": Decimal("0.001"),
    "s": Decimal(1),
    "m": Decimal(60),
    "h": Decimal(3600),
}

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_timedelta_adapter = pydantic.TypeAdapter(timedelta)
_datetime_adapter = pydantic.TypeAdapter(datetime)


def parse_duration(s: str) -> timedelta:
    """
    Parse a duration string such as ``"1h30m"`` or ``"-1.5s"``.

    Strings without units fall back to pydantic's timedelta parsing, which
    accepts seconds and ISO 8601 durations.

    :raises ValueError: If the string isn't a duration.
    """
    text = s.strip()
    if not text:
        raise ValueError("empty duration")

    sign = 1
    body = text
    if body[0] in "+-":
        sign = -1 if body[0] == "-" else 1
        body = body[1:]

    if body == "0":
        return timedelta(0)

    pos = 0
    total = Decimal(0)
    for m in _DURATION_PART.finditer(body):
        if m.start() != pos:
            break
        total += Decimal(m.group(1)) * _UNITS[m.group(2)]
        pos = m.end()

    if pos == len(body) and pos > 0:
        return sign * timedelta(seconds=float(total))

    try:
        return _timedelta_adapter.validate_python(text)
    except pydantic.ValidationError as e:
        raise ValueError(f"invalid duration {s!r}") from e


def format_duration(td: timedelta) -> str:
    """Format a timedelta the way :func:`parse_duration` reads it back."""
    micros = (td.days * 86400 + td.seconds) * 1_000_000 + td.microseconds
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)

    if micros < 1_000:
        return f"{sign}{micros}us"
    if micros < 1_000_000:
        return f"{sign}{_trim(Decimal(micros) / 1000)}ms"

    hours, rest = divmod(micros, 3600 * 1_000_000)
    minutes, rest = divmod(rest, 60 * 1_000_000)
    seconds = _trim(Decimal(rest) / 1_000_000)

    out = sign
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return out + f"{seconds}s"


def _trim(d: Decimal) -> str:
    return format(d.normalize(), "f")


def parse_time(s: str) -> datetime:
    """
    Parse a time string, honoring an inline ``>> format`` override.

    :raises ValueError: If the string doesn't match the layout.
    """
    text = s.strip()
    fmt = DEFAULT_TIME_FORMAT
    parts = text.split(">>")
    if len(parts) == 2:
        text = parts[0].strip()
        fmt = parts[1].strip()
        return datetime.strptime(text, fmt)

    try:
        return datetime.strptime(text, fmt)
    except ValueError:
        pass

    try:
        return _datetime_adapter.validate_python(text)
    except pydantic.ValidationError as e:
        raise ValueError(f"invalid time {s!r}") from e


def format_time(dt: datetime) -> str:
    """Format a datetime with the default layout."""
    if dt.tzinfo is None:
        return dt.strftime("%Y-%m-%d %H:%M:%S")
    return dt.strftime(DEFAULT_TIME_FORMAT)
