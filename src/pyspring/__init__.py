"""
pyspring - an IoC container with layered configuration, conditional beans
and dynamic properties.

Consumers should import from here for stable API access.
"""
from dependency_injector.wiring import inject

from .api import (
    default_app,
    register_config,
    register_object,
    register_provider,
    reset_default_app,
    run,
    set_property,
)
from .app import App, AppState
from .assembly import Configurer
from .beans import HIGHEST_ORDER, LOWEST_ORDER, BeanDefinition, BeanStatus, Const
from .conditions import (
    Condition,
    Conditional,
    Group,
    Not,
    OnBean,
    OnMatches,
    OnMissingBean,
    OnMissingProperty,
    OnProfile,
    OnProperty,
    OnSingleBean,
    Operator,
    on,
    on_bean,
    on_matches,
    on_missing_bean,
    on_missing_property,
    on_profile,
    on_property,
    on_single_bean,
)
from .config import AppSettings, Properties, bind_properties, register_converter, setup_logging
from .container import CancelContext, Container
from .di import (
    get_bean,
    get_container_api,
    get_logger,
    get_properties,
    get_property,
    get_raw_container,
    unwire,
    wire,
)
from .dynamic import Dynamic
from .errors import (
    AmbiguousBeanError,
    BeanNotFoundError,
    BindError,
    ConditionError,
    ContainerFrozenError,
    CyclicConfigurersError,
    CyclicDependencyError,
    DuplicateBeanError,
    FactoryError,
    FileFormatError,
    NotFoundError,
    PropertyConflictError,
    PropertyNotFoundError,
    SpringError,
    TagSyntaxError,
    ValidationFailedError,
)
from .events import AppEvent
from .markers import Autowired, Value
from .protocols import ApplicationListener, ApplicationRunner

__all__ = [
    "inject",
    "default_app",
    "register_config",
    "register_object",
    "register_provider",
    "reset_default_app",
    "run",
    "set_property",
    "App",
    "AppState",
    "Configurer",
    "HIGHEST_ORDER",
    "LOWEST_ORDER",
    "BeanDefinition",
    "BeanStatus",
    "Const",
    "Condition",
    "Conditional",
    "Group",
    "Not",
    "OnBean",
    "OnMatches",
    "OnMissingBean",
    "OnMissingProperty",
    "OnProfile",
    "OnProperty",
    "OnSingleBean",
    "Operator",
    "on",
    "on_bean",
    "on_matches",
    "on_missing_bean",
    "on_missing_property",
    "on_profile",
    "on_property",
    "on_single_bean",
    "AppSettings",
    "Properties",
    "bind_properties",
    "register_converter",
    "setup_logging",
    "CancelContext",
    "Container",
    "get_bean",
    "get_container_api",
    "get_logger",
    "get_properties",
    "get_property",
    "get_raw_container",
    "unwire",
    "wire",
    "Dynamic",
    "AmbiguousBeanError",
    "BeanNotFoundError",
    "BindError",
    "ConditionError",
    "ContainerFrozenError",
    "CyclicConfigurersError",
    "CyclicDependencyError",
    "DuplicateBeanError",
    "FactoryError",
    "FileFormatError",
    "NotFoundError",
    "PropertyConflictError",
    "PropertyNotFoundError",
    "SpringError",
    "TagSyntaxError",
    "ValidationFailedError",
    "AppEvent",
    "Autowired",
    "Value",
    "ApplicationListener",
    "ApplicationRunner",
]
