"""
Bean selectors.

A selector is one of:

* a bean name, ``"dataSource"``;
* a type name and a bean name, ``"app.db.Pool:primary"`` (either side may be
  empty);
* a class, matching beans of that type or exporting it;
* a :class:`~pyspring.beans.definition.BeanDefinition`.

A trailing ``?`` on a string makes the selection optional.
"""
import inspect
from dataclasses import dataclass
from typing import Any, Optional

from ..markers import Autowired
from .definition import BeanDefinition


@dataclass(frozen=True)
class Selector:
    name: str = ""
    type_name: str = ""
    type: Any = None
    definition: Optional[BeanDefinition] = None
    optional: bool = False

    def matches(self, d: BeanDefinition) -> bool:
        if self.definition is not None:
            return d is self.definition
        if self.type is not None and not d.is_type(self.type):
            return False
        return d.match(self.type_name, self.name)

    @property
    def is_empty(self) -> bool:
        return not (self.name or self.type_name or self.type is not None or self.definition is not None)

    def with_type(self, type_: Any) -> "Selector":
        """Restrict a name-only selector to a type."""
        if self.type is not None or self.definition is not None:
            return self
        if not inspect.isclass(type_) or type_ is Any or type_ is object:
            return self
        return Selector(self.name, self.type_name, type_, None, self.optional)

    def __str__(self) -> str:
        if self.definition is not None:
            out = self.definition.id
        elif self.type is not None:
            out = getattr(self.type, "__qualname__", repr(self.type))
            if self.name:
                out += ":" + self.name
        elif self.type_name:
            out = f"{self.type_name}:{self.name}"
        else:
            out = self.name
        return out + ("?" if self.optional else "")


def parse_selector(selector: Any) -> Selector:
    """
    Build a :class:`Selector` from any supported selector form.

    :raises TypeError: If the value can't select beans.
    """
    if isinstance(selector, Selector):
        return selector
    if isinstance(selector, Autowired):
        s = parse_selector(selector.selector)
        if selector.optional and not s.optional:
            return Selector(s.name, s.type_name, s.type, s.definition, True)
        return s
    if isinstance(selector, BeanDefinition):
        return Selector(definition=selector)
    if isinstance(selector, str):
        s = selector.strip()
        optional = s.endswith("?")
        if optional:
            s = s[:-1]
        if ":" in s:
            type_name, name = s.split(":", 1)
            return Selector(name=name, type_name=type_name, optional=optional)
        return Selector(name=s, optional=optional)
    if inspect.isclass(selector):
        return Selector(type=selector)
    raise TypeError(f"{selector!r} isn't a bean selector")
