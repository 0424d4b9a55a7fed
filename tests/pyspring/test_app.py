from typing import Annotated

import pytest

from pyspring.app import App, AppState
from pyspring.config.settings import PROFILE_KEY
from pyspring.dynamic import Dynamic
from pyspring.errors import ContainerFrozenError
from pyspring.events import AppEvent
from pyspring.markers import Value
from pyspring.protocols import ApplicationListener, ApplicationRunner


class Recorder(ApplicationListener):
    def __init__(self, log: list) -> None:
        self.log = log

    def on_app_start(self, app) -> None:
        self.log.append("listener start")

    async def on_app_stop(self, app) -> None:
        self.log.append("listener stop")


class Seeder(ApplicationRunner):
    def __init__(self, log: list) -> None:
        self.log = log

    async def run(self, app) -> None:
        self.log.append("runner")


class Resource:
    def __init__(self, log: list) -> None:
        self.log = log

    def close(self) -> None:
        self.log.append("destroy")


class Ports:
    port: Annotated[Dynamic[int], Value("${app.port}")]


class Client:
    pass


@pytest.fixture
def app(settings, config_dir):
    return App(settings=settings, args=[], environ={})


class TestAppProperties:
    """Tests for the layered properties of an application."""

    @pytest.mark.asyncio
    async def test_files_loaded(self, app):
        await app.start()
        assert app.properties.get("app.name") == "demo"
        assert app.properties.get("app.owner") == "ops"
        await app.close()

    @pytest.mark.asyncio
    async def test_api_over_command_line(self, settings, config_dir):
        app = App(settings=settings, args=["-app.name", "cli", "-app.owner", "cli"], environ={})
        app.property("app.name", "api")
        await app.start()
        assert app.properties.get("app.name") == "api"
        assert app.properties.get("app.owner") == "cli"
        await app.close()

    @pytest.mark.asyncio
    async def test_environment_prefix(self, settings, config_dir):
        app = App(settings=settings, args=[], environ={"PYSPRING_PROP_APP_NAME": "env", "HOME": "/root"})
        await app.start()
        assert app.properties.get("app.name") == "env"
        assert not app.properties.has("HOME")
        await app.close()

    @pytest.mark.asyncio
    async def test_profile_from_command_line(self, settings, config_dir):
        app = App(settings=settings, args=["-spring.profiles.active", "dev"], environ={})
        await app.start()
        assert app.properties.get("app.port") == "9090"
        assert app.properties.get("db.url") == "sqlite://dev"
        assert app.properties.get("app.name") == "demo"
        assert app.properties.get(PROFILE_KEY) == "dev"
        await app.close()

    @pytest.mark.asyncio
    async def test_default_property_lowest(self, app):
        app.default_property("app.owner", "nobody")
        app.default_property("app.extra", "x")
        await app.start()
        assert app.properties.get("app.owner") == "ops"
        assert app.properties.get("app.extra") == "x"

        with pytest.raises(ContainerFrozenError):
            app.default_property("app.late", "y")
        await app.close()


class TestAppLifecycle:
    """Tests for starting and stopping an application."""

    @pytest.mark.asyncio
    async def test_hook_order(self, app):
        """Test runners, listeners, events and destroy hooks run in order."""
        log = []
        app.object(Recorder(log))
        app.object(Seeder(log))
        app.object(Resource(log)).destroy("close")
        app.on_event(AppEvent.START, lambda a: log.append("start event"))

        @app.on_event(AppEvent.STOP)
        def first_stop(a):
            log.append("stop 1")

        @app.on_event(AppEvent.STOP)
        async def second_stop(a):
            log.append("stop 2")

        await app.start()
        assert app.state is AppState.RUNNING
        assert log == ["runner", "start event", "listener start"]

        await app.close()
        assert app.state is AppState.STOPPED
        assert log[3:] == ["listener stop", "stop 2", "stop 1", "destroy"]

    @pytest.mark.asyncio
    async def test_phase_states(self, app):
        seen = []

        def make_client() -> Client:
            seen.append(app.state)
            return Client()

        app.config(lambda: seen.append(app.state))
        app.provide(make_client)
        await app.start()
        assert seen == [AppState.RESOLVING, AppState.WIRING]
        await app.close()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self, app):
        log = []
        app.object(Resource(log)).destroy("close")
        await app.start()
        await app.close()
        await app.close()
        assert log == ["destroy"]

    @pytest.mark.asyncio
    async def test_close_before_start(self, app):
        await app.close()
        assert app.state is AppState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_handler_failure_continues(self, app):
        log = []
        app.object(Resource(log)).destroy("close")

        def broken(a):
            raise RuntimeError("stop failed")

        app.on_event(AppEvent.STOP, broken)
        await app.start()
        await app.close()
        assert log == ["destroy"]
        assert app.state is AppState.STOPPED

    @pytest.mark.asyncio
    async def test_state_transitions_logged(self, app, caplog_debug):
        await app.start()
        await app.close()
        assert "Application state: CREATED -> CONFIGURING" in caplog_debug.text
        assert "Application started" in caplog_debug.text


class TestAppRun:
    """Tests for App.run."""

    @pytest.mark.asyncio
    async def test_shutdown_from_start_handler(self, app):
        log = []
        app.object(Resource(log)).destroy("close")
        app.on_event(AppEvent.START, lambda a: a.shutdown("done"))
        assert await app.run() == 0
        assert app.state is AppState.STOPPED
        assert log == ["destroy"]

    @pytest.mark.asyncio
    async def test_startup_failure(self, app):
        """Test a failing factory makes run return 1 after cleanup."""
        log = []

        def broken() -> Client:
            raise ValueError("boom")

        app.object(Resource(log)).destroy("close")
        app.provide(broken)
        assert await app.run() == 1
        assert app.state is AppState.STOPPED
        assert log == ["destroy"]

    @pytest.mark.asyncio
    async def test_start_handler_failure(self, app):
        def broken(a):
            raise RuntimeError("start failed")

        app.on_event(AppEvent.START, broken)
        assert await app.run() == 1


class TestAppReload:
    """Tests for App.reload."""

    @pytest.mark.asyncio
    async def test_reload_updates_dynamic_values(self, app, config_dir):
        ports = Ports()
        changes = []
        app.object(ports)
        await app.start()
        assert ports.port.value == 8080
        ports.port.on_change(changes.append)

        (config_dir / "application.yaml").write_text("app:\n  port: 8181\n")
        assert app.reload() == []
        assert ports.port.value == 8181
        assert changes == [8181]
        assert app.properties.get("app.owner") == "ops"
        await app.close()

    def test_reload_before_start(self, app):
        with pytest.raises(RuntimeError, match="isn't running"):
            app.reload()
