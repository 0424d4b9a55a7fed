"""
Exceptions raised by the pyspring container.

Every error kind derives from :class:`SpringError` and from the builtin
exception closest to its meaning, so callers may catch either.
"""


class SpringError(Exception):
    """Base class for all pyspring errors."""


class NotFoundError(SpringError, LookupError):
    """A selector or a property key resolved to nothing."""


class BeanNotFoundError(NotFoundError):
    """No accepted bean matches a non optional selector."""


class PropertyNotFoundError(NotFoundError):
    """A property key is missing and no default was given."""

    def __init__(self, key: str) -> None:
        super().__init__(f"property '{key}' not exist")
        self.key = key


class AmbiguousBeanError(SpringError, LookupError):
    """A single-bean selector matched more than one bean."""


class DuplicateBeanError(SpringError, ValueError):
    """Two definitions share the same type and name."""


class CyclicDependencyError(SpringError, RuntimeError):
    """A wiring cycle that can't be broken by attribute injection."""


class CyclicConfigurersError(SpringError, RuntimeError):
    """The before/after order of configurers forms a cycle."""


class ConditionError(SpringError, RuntimeError):
    """A condition raised while being evaluated."""


class ContainerFrozenError(SpringError, RuntimeError):
    """A registration API was called after the container started resolving."""


class BindError(SpringError, ValueError):
    """Type, conversion or structure failure while binding properties."""


class ValidationFailedError(BindError):
    """A bound value didn't satisfy its validation expression."""


class PropertyConflictError(SpringError, ValueError):
    """A write mixes a value and sub keys at the same property key."""


class TagSyntaxError(SpringError, ValueError):
    """Malformed property key, ``${...}`` tag or expression."""


class FileFormatError(SpringError, ValueError):
    """Unsupported configuration file extension or malformed contents."""


class FactoryError(SpringError, RuntimeError):
    """A bean factory raised or returned nothing."""
