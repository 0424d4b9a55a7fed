"""
A small expression language for conditions and validation.

Expressions are parsed with :mod:`ast` and evaluated by walking a whitelist of
node types; nothing reaches :func:`eval`. ``$`` stands for the value under
test, ``&&``, ``||`` and ``!`` alias ``and``, ``or`` and ``not``, and
``true``, ``false`` and ``null`` are literals::

    $ > 0 && $ < 100
    $ in ["dev", "test"]
"""
import ast
import operator
from typing import Any

from cachetools import LRUCache, cached

from ..errors import TagSyntaxError

_VALUE_NAME = "__value__"

_NAMES = {
    "true": True,
    "false": False,
    "null": None,
    "True": True,
    "False": False,
    "None": None,
}

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
}

_UNARY_OPS = {
    ast.Not: operator.not_,
    ast.USub: operator.neg,
    ast.UAdd: operator.pos,
}

_COMPARE_OPS = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}


def _translate(expr: str) -> str:
    out = []
    quote = ""
    i = 0
    while i < len(expr):
        c = expr[i]
        nxt = expr[i + 1] if i + 1 < len(expr) else ""
        if quote:
            out.append(c)
            if c == "\\" and nxt:
                out.append(nxt)
                i += 1
            elif c == quote:
                quote = ""
        elif c in "\"'":
            quote = c
            out.append(c)
        elif c == "$":
            out.append(_VALUE_NAME)
        elif c == "&" and nxt == "&":
            out.append(" and ")
            i += 1
        elif c == "|" and nxt == "|":
            out.append(" or ")
            i += 1
        elif c == "!" and nxt != "=":
            out.append(" not ")
        else:
            out.append(c)
        i += 1
    return "".join(out)


@cached(cache=LRUCache(maxsize=256))
def compile_expression(expr: str) -> ast.Expression:
    """
    Parse and check an expression.

    :raises TagSyntaxError: If the expression is malformed or uses anything
        outside the supported grammar.
    """
    try:
        tree = ast.parse(_translate(expr).strip(), mode="eval")
    except SyntaxError as e:
        raise TagSyntaxError(f"invalid expression '{expr}': {e.msg}") from e

    for node in ast.walk(tree):
        if isinstance(node, ast.Name) and node.id != _VALUE_NAME and node.id not in _NAMES:
            raise TagSyntaxError(f"invalid expression '{expr}': unknown name '{node.id}'")
        if not isinstance(node, _ALLOWED_NODES):
            raise TagSyntaxError(f"invalid expression '{expr}': {type(node).__name__} not allowed")
    return tree


_ALLOWED_NODES = (
    ast.Expression, ast.BoolOp, ast.UnaryOp, ast.BinOp, ast.Compare,
    ast.Constant, ast.Name, ast.Load, ast.List, ast.Tuple,
    ast.And, ast.Or, *_BIN_OPS, *_UNARY_OPS, *_COMPARE_OPS,
)


def evaluate(expr: str, value: Any = None) -> Any:
    """
    Evaluate ``expr`` with ``$`` bound to ``value``.

    :raises TagSyntaxError: If the expression is malformed or can't be
        evaluated for this value.
    """
    tree = compile_expression(expr)
    try:
        return _eval(tree.body, value)
    except (TypeError, ValueError, ArithmeticError) as e:
        raise TagSyntaxError(f"eval '{expr}' error: {e}") from e


def check(expr: str, value: Any = None) -> bool:
    """
    Evaluate a boolean expression.

    :raises TagSyntaxError: If the result isn't a boolean.
    """
    result = evaluate(expr, value)
    if not isinstance(result, bool):
        raise TagSyntaxError(f"eval '{expr}' returns {type(result).__name__}, not bool")
    return result


def _eval(node: ast.AST, value: Any) -> Any:
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.Name):
        return value if node.id == _VALUE_NAME else _NAMES[node.id]
    if isinstance(node, (ast.List, ast.Tuple)):
        return [_eval(e, value) for e in node.elts]
    if isinstance(node, ast.UnaryOp):
        return _UNARY_OPS[type(node.op)](_eval(node.operand, value))
    if isinstance(node, ast.BinOp):
        return _BIN_OPS[type(node.op)](_eval(node.left, value), _eval(node.right, value))
    if isinstance(node, ast.BoolOp):
        if isinstance(node.op, ast.And):
            result: Any = True
            for v in node.values:
                result = _eval(v, value)
                if not result:
                    return result
            return result
        result = False
        for v in node.values:
            result = _eval(v, value)
            if result:
                return result
        return result
    if isinstance(node, ast.Compare):
        left = _eval(node.left, value)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval(comparator, value)
            if not _COMPARE_OPS[type(op)](left, right):
                return False
            left = right
        return True
    raise TagSyntaxError(f"unsupported expression node {type(node).__name__}")
