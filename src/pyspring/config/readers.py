import json
import logging
import tomllib
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from ..errors import FileFormatError

logger = logging.getLogger(__name__)

Reader = Callable[[bytes], dict[str, Any]]

_readers: dict[str, Reader] = {}


def register_reader(fn: Reader, *exts: str) -> None:
    """
    Register a reader for one or more file extensions.

    :param fn: Callable turning raw file contents into a mapping.
    :param exts: Extensions including the leading dot, e.g. ``".yaml"``.
    """
    for ext in exts:
        _readers[ext.lower()] = fn


def supported_extensions() -> list[str]:
    return list(_readers)


def read_data(data: bytes, ext: str) -> dict[str, Any]:
    """
    Parse file contents by extension.

    :param data: Raw file contents.
    :param ext: The file extension, e.g. ``".toml"``.
    :return: Mapping of the file contents, empty for an empty file.
    :raises FileFormatError: If the extension is unsupported or the contents
        are malformed.
    """
    reader = _readers.get(ext.lower())
    if reader is None:
        raise FileFormatError(f"unsupported file type '{ext}'")

    if not data.strip():
        return {}

    try:
        result = reader(data)
    except FileFormatError:
        raise
    except (ValueError, yaml.YAMLError, tomllib.TOMLDecodeError, UnicodeDecodeError) as e:
        raise FileFormatError(f"malformed '{ext}' content: {e}") from e

    if result is None:
        return {}
    if not isinstance(result, dict):
        raise FileFormatError(f"'{ext}' content must be a mapping, got {type(result).__name__}")
    return result


def load_file(path: Path) -> dict[str, Any]:
    """
    Load a configuration file into a mapping.

    :param path: Path to the configuration file.
    :return: Dictionary with configuration data.
    :raises FileNotFoundError: If the file does not exist.
    :raises IsADirectoryError: If the path is a directory.
    :raises FileFormatError: If the file type is unsupported or malformed.
    """
    logger.debug("Loading configuration file: %s", path)

    if not path.exists():
        logger.error("Config file not found: %s", path.absolute())
        raise FileNotFoundError(f"Config file not found: {path.absolute()}")

    if path.is_dir():
        logger.error("Path is a directory, not a file: %s", path.absolute())
        raise IsADirectoryError(path.absolute())

    return read_data(path.read_bytes(), path.suffix)


def read_yaml(data: bytes) -> dict[str, Any]:
    return yaml.safe_load(data)


def read_toml(data: bytes) -> dict[str, Any]:
    return tomllib.loads(data.decode("utf-8"))


def read_json(data: bytes) -> dict[str, Any]:
    return json.loads(data)


def read_properties(data: bytes) -> dict[str, Any]:
    """
    Parse ``.properties`` content.

    Supports ``=``, ``:`` and whitespace separators, ``#`` and ``!`` comments,
    and backslash line continuations.
    """
    result: dict[str, Any] = {}
    lines = data.decode("utf-8").splitlines()

    i = 0
    while i < len(lines):
        line = lines[i].strip()
        i += 1
        if not line or line[0] in "#!":
            continue

        while line.endswith("\\") and not line.endswith("\\\\"):
            line = line[:-1]
            if i < len(lines):
                line += lines[i].strip()
                i += 1

        key, value = _split_property_line(line)
        result[_unescape(key)] = _unescape(value)

    return result


def _split_property_line(line: str) -> tuple[str, str]:
    escaped = False
    for pos, c in enumerate(line):
        if escaped:
            escaped = False
            continue
        if c == "\\":
            escaped = True
            continue
        if c in "=:":
            return line[:pos].strip(), line[pos + 1:].strip()
        if c.isspace():
            rest = line[pos:].strip()
            if rest and rest[0] in "=:":
                rest = rest[1:].strip()
            return line[:pos], rest
    return line, ""


def _unescape(value: str) -> str:
    if "\\" not in value:
        return value
    replacements = {"n": "\n", "t": "\t", "r": "\r", "f": "\f"}
    out = []
    chars = iter(value)
    for c in chars:
        if c != "\\":
            out.append(c)
            continue
        nxt = next(chars, "")
        out.append(replacements.get(nxt, nxt))
    return "".join(out)


register_reader(read_properties, ".properties")
register_reader(read_yaml, ".yaml", ".yml")
register_reader(read_toml, ".toml")
register_reader(read_json, ".json")
