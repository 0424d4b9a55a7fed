import importlib
import logging
import sys
from collections.abc import Iterable
from types import ModuleType
from typing import TYPE_CHECKING, Union

if TYPE_CHECKING:
    from ..container import Container

logger = logging.getLogger(__name__)


def _as_module(module: Union[str, ModuleType]) -> Union[ModuleType, None]:
    if isinstance(module, ModuleType):
        return module
    module_obj = sys.modules.get(module)
    if module_obj is None:
        try:
            module_obj = importlib.import_module(module)
        except ImportError as e:
            logger.warning("Could not import module '%s' for wiring: %s", module, e)
            return None
    return module_obj


def wire(
        container: "Container",
        modules: Iterable[Union[str, ModuleType]] = (),
        packages: Iterable[Union[str, ModuleType]] = ()
) -> None:
    """
    Wire modules so their ``Provide`` markers receive beans, properties and
    loggers of a container.

    :param container: The container whose beans are provided.
    :param modules: Modules, or their names, to wire.
    :param packages: Packages, or their names, wired with all their modules.
    """
    module_objects = {m for m in map(_as_module, modules) if m is not None}
    package_objects = {p for p in map(_as_module, packages) if p is not None}

    logger.debug("Wiring %d modules: %s and %d packages: %s",
                 len(module_objects), sorted(m.__name__ for m in module_objects),
                 len(package_objects), sorted(p.__name__ for p in package_objects))
    container.raw_container().wire(modules=module_objects, packages=package_objects)
    logger.debug("Container wiring complete")


def unwire(container: "Container") -> None:
    """Undo :func:`wire`."""
    container.raw_container().unwire()
    logger.debug("Container unwired")
