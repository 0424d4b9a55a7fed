import logging
from collections.abc import Iterator
from typing import Any

from ..errors import DuplicateBeanError
from .definition import BeanDefinition, BeanStatus
from .selectors import parse_selector

logger = logging.getLogger(__name__)


class BeanRegistry:
    """
    Bean definitions in registration order.

    The ``(type, name)`` pair of a definition is unique; deleted definitions
    stay in the registry but are never found.
    """

    def __init__(self) -> None:
        self._beans: list[BeanDefinition] = []
        self._ids: dict[str, BeanDefinition] = {}

    def register(self, definition: BeanDefinition) -> BeanDefinition:
        """
        Add a definition.

        :raises DuplicateBeanError: If a definition with the same type and
            name is already registered.
        """
        self._check_unique(definition.id, definition)
        definition.index = len(self._beans)
        definition._registry = self
        self._beans.append(definition)
        self._ids[definition.id] = definition
        logger.debug("Registered %r", definition)
        return definition

    def rename(self, definition: BeanDefinition, new_id: str) -> None:
        self._check_unique(new_id, definition)
        self._ids.pop(definition.id, None)
        self._ids[new_id] = definition

    def _check_unique(self, bean_id: str, definition: BeanDefinition) -> None:
        existing = self._ids.get(bean_id)
        if existing is not None and existing is not definition:
            raise DuplicateBeanError(
                f"found duplicate bean '{bean_id}' registered at {existing.location} and {definition.location}"
            )

    def find(self, selector: Any) -> list[BeanDefinition]:
        """Non deleted definitions matching a selector, in registration order."""
        s = parse_selector(selector)
        return [d for d in self._beans if d.status is not BeanStatus.DELETED and s.matches(d)]

    def mark_deleted(self, definition: BeanDefinition) -> None:
        definition.status = BeanStatus.DELETED
        logger.debug("Deleted %r", definition)

    def accepted(self) -> list[BeanDefinition]:
        return [d for d in self._beans if d.status is not BeanStatus.DELETED]

    def get(self, bean_id: str) -> BeanDefinition:
        return self._ids[bean_id]

    def __iter__(self) -> Iterator[BeanDefinition]:
        return iter(list(self._beans))

    def __len__(self) -> int:
        return len(self._beans)

    def __contains__(self, definition: object) -> bool:
        return any(d is definition for d in self._beans)
