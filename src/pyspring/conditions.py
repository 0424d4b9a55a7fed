"""
Conditions deciding whether a bean definition is activated.

Conditions are evaluated once while the container resolves its definitions.
They combine with :class:`Not`, :class:`Group` or a :class:`Conditional`
chain::

    on_property("cache.enabled", having_value="true").on_missing_bean(Cache)
    on_profile("dev").or_().on_property("debug")
"""
import abc
import enum
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Optional, Protocol, runtime_checkable

from .config.expression import check
from .config.settings import PROFILE_KEY
from .errors import ConditionError

if TYPE_CHECKING:
    from .beans.definition import BeanDefinition

EXPRESSION_PREFIXES = ("go:", "expr:")


@runtime_checkable
class ConditionContext(Protocol):
    def has(self, key: str) -> bool:
        ...  # pragma: no cover

    def prop(self, key: str, default: Optional[str] = None) -> str:
        ...  # pragma: no cover

    def find(self, selector: Any) -> list["BeanDefinition"]:
        ...  # pragma: no cover


class Condition(abc.ABC):
    @abc.abstractmethod
    def matches(self, ctx: ConditionContext) -> bool:
        """
        Evaluate the condition.

        :param ctx: Access to properties and bean definitions.
        :return: Whether the condition holds.
        """

    def __invert__(self) -> "Condition":
        return Not(self)


class OnMatches(Condition):
    def __init__(self, fn: Callable[[ConditionContext], bool]) -> None:
        self.fn = fn

    def matches(self, ctx: ConditionContext) -> bool:
        return bool(self.fn(ctx))

    def __repr__(self) -> str:
        return f"OnMatches({getattr(self.fn, '__qualname__', self.fn)!r})"


class Not(Condition):
    def __init__(self, cond: Condition) -> None:
        self.cond = cond

    def matches(self, ctx: ConditionContext) -> bool:
        return not self.cond.matches(ctx)

    def __repr__(self) -> str:
        return f"Not({self.cond!r})"


def _coerce(value: str) -> Any:
    lowered = value.strip().lower()
    if lowered in ("true", "false"):
        return lowered == "true"
    for parse in (int, float):
        try:
            return parse(value)
        except ValueError:
            pass
    return value


class OnProperty(Condition):
    """
    Matches when the property exists and, if ``having_value`` is given,
    equals it.

    A ``having_value`` starting with ``go:`` (or ``expr:``) is an expression with ``$``
    standing for the property value, e.g. ``"go:$ > 3"``.
    """

    def __init__(self, name: str, having_value: str = "", match_if_missing: bool = False) -> None:
        self.name = name
        self.having_value = having_value
        self.match_if_missing = match_if_missing

    def matches(self, ctx: ConditionContext) -> bool:
        if not ctx.has(self.name):
            return self.match_if_missing
        if self.having_value == "":
            return True
        value = ctx.prop(self.name)
        for prefix in EXPRESSION_PREFIXES:
            if self.having_value.startswith(prefix):
                return check(self.having_value[len(prefix):], _coerce(value))
        return self._equals(value)

    def _equals(self, value: str) -> bool:
        return value == self.having_value

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, having_value={self.having_value!r})"


class OnProfile(OnProperty):
    """Matches when ``profile`` is one of the active profiles."""

    def __init__(self, profile: str) -> None:
        super().__init__(PROFILE_KEY, having_value=profile)

    def _equals(self, value: str) -> bool:
        return self.having_value in (p.strip() for p in value.split(","))


class OnMissingProperty(Condition):
    def __init__(self, name: str) -> None:
        self.name = name

    def matches(self, ctx: ConditionContext) -> bool:
        return not ctx.has(self.name)

    def __repr__(self) -> str:
        return f"OnMissingProperty({self.name!r})"


class OnBean(Condition):
    """Matches when the selector finds at least one bean."""

    def __init__(self, selector: Any) -> None:
        self.selector = selector

    def matches(self, ctx: ConditionContext) -> bool:
        return len(ctx.find(self.selector)) > 0

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.selector!r})"


class OnMissingBean(OnBean):
    """Matches when the selector finds no bean."""

    def matches(self, ctx: ConditionContext) -> bool:
        return len(ctx.find(self.selector)) == 0


class OnSingleBean(OnBean):
    """Matches when the selector finds exactly one bean."""

    def matches(self, ctx: ConditionContext) -> bool:
        return len(ctx.find(self.selector)) == 1


class OnExpression(Condition):
    def __init__(self, expression: str) -> None:
        self.expression = expression

    def matches(self, ctx: ConditionContext) -> bool:
        raise NotImplementedError("OnExpression is not implemented")


class Operator(enum.Enum):
    OR = 1
    AND = 2
    NONE = 3


class Group(Condition):
    """
    Applies one operator over a flat list of conditions.

    ``OR`` needs one match, ``AND`` needs all and ``NONE`` needs none.
    An empty group fails.
    """

    def __init__(self, op: Operator, *conds: Condition) -> None:
        self.op = op
        self.conds = list(conds)

    def matches(self, ctx: ConditionContext) -> bool:
        if not self.conds:
            raise ConditionError("no condition in group")
        if self.op is Operator.OR:
            return any(c.matches(ctx) for c in self.conds)
        if self.op is Operator.AND:
            return all(c.matches(ctx) for c in self.conds)
        if self.op is Operator.NONE:
            return not any(c.matches(ctx) for c in self.conds)
        raise ConditionError(f"unknown condition operator {self.op!r}")


class _Node:
    def __init__(self) -> None:
        self.cond: Optional[Condition] = None
        self.op: Optional[Operator] = None
        self.next: Optional["_Node"] = None

    def matches(self, ctx: ConditionContext) -> bool:
        if self.cond is None:
            return True
        ok = self.cond.matches(ctx)
        if self.next is None:
            return ok
        if self.next.cond is None:
            raise ConditionError("no condition in last node")
        if self.op is Operator.OR:
            return ok or self.next.matches(ctx)
        if self.op is Operator.AND:
            return ok and self.next.matches(ctx)
        raise ConditionError(f"unknown condition operator {self.op!r}")


class Conditional(Condition):
    """
    A chain of conditions joined by ``and_()`` or ``or_()``.

    Consecutive ``on(...)`` calls are joined with AND. The chain evaluates
    from the left with short circuit, the right side binding first:
    ``a or b and c`` reads as ``a or (b and c)``.
    """

    def __init__(self) -> None:
        self._head = _Node()
        self._curr = self._head

    def matches(self, ctx: ConditionContext) -> bool:
        return self._head.matches(ctx)

    def _join(self, op: Operator) -> "Conditional":
        n = _Node()
        self._curr.op = op
        self._curr.next = n
        self._curr = n
        return self

    def or_(self) -> "Conditional":
        return self._join(Operator.OR)

    def and_(self) -> "Conditional":
        return self._join(Operator.AND)

    def on(self, cond: Condition) -> "Conditional":
        if self._curr.cond is not None:
            self.and_()
        self._curr.cond = cond
        return self

    def on_property(self, name: str, having_value: str = "", match_if_missing: bool = False) -> "Conditional":
        return self.on(OnProperty(name, having_value, match_if_missing))

    def on_missing_property(self, name: str) -> "Conditional":
        return self.on(OnMissingProperty(name))

    def on_bean(self, selector: Any) -> "Conditional":
        return self.on(OnBean(selector))

    def on_missing_bean(self, selector: Any) -> "Conditional":
        return self.on(OnMissingBean(selector))

    def on_single_bean(self, selector: Any) -> "Conditional":
        return self.on(OnSingleBean(selector))

    def on_expression(self, expression: str) -> "Conditional":
        return self.on(OnExpression(expression))

    def on_matches(self, fn: Callable[[ConditionContext], bool]) -> "Conditional":
        return self.on(OnMatches(fn))

    def on_profile(self, profile: str) -> "Conditional":
        return self.on(OnProfile(profile))

    def __repr__(self) -> str:
        parts = []
        n: Optional[_Node] = self._head
        while n is not None:
            parts.append(repr(n.cond))
            if n.op is not None:
                parts.append(n.op.name)
            n = n.next
        return f"Conditional({' '.join(parts)})"


def on(cond: Condition) -> Conditional:
    return Conditional().on(cond)


def on_property(name: str, having_value: str = "", match_if_missing: bool = False) -> Conditional:
    return Conditional().on_property(name, having_value, match_if_missing)


def on_missing_property(name: str) -> Conditional:
    return Conditional().on_missing_property(name)


def on_bean(selector: Any) -> Conditional:
    return Conditional().on_bean(selector)


def on_missing_bean(selector: Any) -> Conditional:
    return Conditional().on_missing_bean(selector)


def on_single_bean(selector: Any) -> Conditional:
    return Conditional().on_single_bean(selector)


def on_expression(expression: str) -> Conditional:
    return Conditional().on_expression(expression)


def on_matches(fn: Callable[[ConditionContext], bool]) -> Conditional:
    return Conditional().on_matches(fn)


def on_profile(profile: str) -> Conditional:
    return Conditional().on_profile(profile)


def ok() -> Condition:
    """A condition that always matches."""
    return OnMatches(lambda ctx: True)
