import pytest

from pyspring import api
from pyspring.app import App, AppState
from pyspring.events import AppEvent


class Greeter:
    def __init__(self, greeting: str) -> None:
        self.greeting = greeting


class TestDefaultApp:
    """Tests for the module level application."""

    def test_created_once(self):
        app = api.default_app()
        assert isinstance(app, App)
        assert api.default_app() is app

    def test_reset(self):
        app = api.default_app()
        api.reset_default_app()
        assert api.default_app() is not app

    def test_registration(self):
        api.set_property("greeting", "hello")
        d = api.register_provider(Greeter, "${greeting}")
        obj = api.register_object(object())
        c = api.register_config(lambda: None)

        app = api.default_app()
        assert app.properties.get("greeting") == "hello"
        assert app.container.find(Greeter) == [d]
        assert obj.instance is not None
        assert d.file == __file__
        assert c.file == __file__


class TestRun:
    """Tests for api.run."""

    def test_run_until_shutdown(self, settings, monkeypatch):
        monkeypatch.setattr(api, "_default_app", App(settings=settings, environ={}))
        api.register_provider(Greeter, "${greeting:=hi}")
        seen = []

        def on_start(app):
            seen.append(app.container.get(Greeter).greeting)
            app.shutdown("test")

        api.default_app().on_event(AppEvent.START, on_start)
        assert api.run(["-greeting", "hey"]) == 0
        assert seen == ["hey"]
        assert api.default_app().state is AppState.STOPPED

    def test_run_failure(self, settings, monkeypatch):
        monkeypatch.setattr(api, "_default_app", App(settings=settings, environ={}))

        def broken() -> Greeter:
            raise ValueError("boom")

        api.register_provider(broken)
        assert api.run([]) == 1


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, temp_dir):
    monkeypatch.setenv("PYSPRING_CONFIG_LOCATIONS", f'["{temp_dir / "config"}"]')
    monkeypatch.setenv("PYSPRING_ENV_PATTERNS", "[]")
