from ..errors import TagSyntaxError


def split_path(key: str) -> list[str]:
    """
    Split a property key into its path elements.

    ``a.b[0].c`` becomes ``["a", "b", "0", "c"]``.

    :param key: The property key.
    :return: List of path elements.
    :raises TagSyntaxError: If the key is malformed.
    """
    if not key:
        raise TagSyntaxError(f"invalid key '{key}'")

    path: list[str] = []
    last_pos = 0
    last_char = ""
    open_bracket = False

    for i, c in enumerate(key):
        if c == " ":
            raise TagSyntaxError(f"invalid key '{key}'")
        if c == ".":
            if open_bracket:
                raise TagSyntaxError(f"invalid key '{key}'")
            if last_char == "]":
                last_pos = i + 1
                last_char = c
                continue
            if last_pos == i:
                raise TagSyntaxError(f"invalid key '{key}'")
            path.append(key[last_pos:i])
            last_pos = i + 1
            last_char = c
        elif c == "[":
            if open_bracket:
                raise TagSyntaxError(f"invalid key '{key}'")
            if i == 0 or last_char == "]":
                last_pos = i + 1
                open_bracket = True
                last_char = c
                continue
            if last_char == "." or last_pos == i:
                raise TagSyntaxError(f"invalid key '{key}'")
            path.append(key[last_pos:i])
            last_pos = i + 1
            open_bracket = True
            last_char = c
        elif c == "]":
            if not open_bracket or last_pos == i:
                raise TagSyntaxError(f"invalid key '{key}'")
            index = key[last_pos:i]
            if not index.isdigit():
                raise TagSyntaxError(f"invalid key '{key}'")
            path.append(index)
            last_pos = i + 1
            open_bracket = False
            last_char = c
        else:
            last_char = c

    if open_bracket or last_char == ".":
        raise TagSyntaxError(f"invalid key '{key}'")
    if last_char != "]":
        path.append(key[last_pos:])
    return path


def join_path(path: list[str]) -> str:
    """Inverse of :func:`split_path`; numeric elements become ``[i]``."""
    out = ""
    for i, elem in enumerate(path):
        if elem.isdigit() and i > 0:
            out += f"[{elem}]"
        elif i == 0:
            out = elem
        else:
            out += "." + elem
    return out


def is_sub_key(key: str, base: str) -> bool:
    """Whether ``key`` equals ``base`` or lies underneath it."""
    if not base:
        return True
    return key == base or key.startswith(base + ".") or key.startswith(base + "[")
