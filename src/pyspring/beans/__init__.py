from .arguments import Arg, ArgKind, ArgList, Const, collection_type, make_arg
from .definition import (
    BeanDefinition,
    BeanStatus,
    HIGHEST_ORDER,
    LOWEST_ORDER,
    default_bean_name,
    implements,
)
from .registry import BeanRegistry
from .selectors import Selector, parse_selector
