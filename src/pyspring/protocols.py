from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .app import App


class ApplicationListener(Protocol):
    """
    A bean told when the application starts and stops.

    Beans take part by subclassing this protocol or exporting it. Methods
    may be coroutines.
    """

    def on_app_start(self, app: "App") -> Any:
        ...

    def on_app_stop(self, app: "App") -> Any:
        ...


class ApplicationRunner(Protocol):
    """
    A bean run once every bean is wired, before start listeners fire.

    Beans take part by subclassing this protocol or exporting it.
    """

    def run(self, app: "App") -> Any:
        ...
