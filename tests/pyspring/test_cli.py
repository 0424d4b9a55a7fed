import logging
import textwrap
from unittest.mock import patch

import pytest

from pyspring.__main__ import configure_logging, create_parser, load_target, main
from pyspring.app import App, AppState


@pytest.fixture
def target_module(temp_dir, monkeypatch, reset_sys_modules):
    """A module exposing applications in several shapes."""
    (temp_dir / "demo_target.py").write_text(textwrap.dedent("""
        from pyspring import App, AppEvent, AppSettings

        settings = AppSettings(_env_file=None, config_locations=[], env_patterns=[])

        app = App(settings=settings, environ={})
        app.on_event(AppEvent.START, lambda a: a.shutdown("done"))


        def create_app():
            return App(settings=settings, environ={})


        class Holder:
            app = app


        not_an_app = 42
    """))
    monkeypatch.syspath_prepend(str(temp_dir))
    return "demo_target"


class TestCreateParser:
    """Tests for the argument parser."""

    def test_target_and_verbosity(self):
        args = create_parser().parse_args(["mod:app", "-vv"])
        assert args.target == "mod:app"
        assert args.verbose == 2
        assert args.logging_config is None

    def test_target_required(self):
        with pytest.raises(SystemExit):
            create_parser().parse_args([])


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_quiets_libraries(self):
        configure_logging(verbose=1)
        assert logging.getLogger("dependency_injector").level == logging.WARNING

    def test_logging_config_file(self, temp_dir):
        ini = temp_dir / "logging.ini"
        ini.write_text("[loggers]\nkeys=root\n")
        with patch("logging.config.fileConfig") as file_config:
            configure_logging(verbose=2, logging_config=ini)
        file_config.assert_called_once_with(ini, disable_existing_loggers=False)

    def test_missing_logging_config_falls_back(self, temp_dir):
        with patch("logging.config.fileConfig") as file_config:
            configure_logging(logging_config=temp_dir / "nope.ini")
        file_config.assert_not_called()


class TestLoadTarget:
    """Tests for load_target."""

    def test_default_attribute(self, target_module):
        assert isinstance(load_target(target_module), App)

    def test_factory(self, target_module):
        app = load_target(f"{target_module}:create_app")
        assert isinstance(app, App)
        assert app.state is AppState.CREATED

    def test_nested_attribute(self, target_module):
        assert load_target(f"{target_module}:Holder.app") is load_target(target_module)

    def test_not_an_app(self, target_module):
        with pytest.raises(TypeError, match="isn't an App"):
            load_target(f"{target_module}:not_an_app")
        with pytest.raises(TypeError):
            load_target(f"{target_module}:Holder")

    def test_missing(self, target_module):
        with pytest.raises(AttributeError):
            load_target(f"{target_module}:missing")
        with pytest.raises(ImportError):
            load_target("no_such_module_here")


class TestMain:
    """Tests for main."""

    def test_runs_application(self, target_module):
        assert main([target_module, "-greeting", "hey"]) == 0
        app = load_target(target_module)
        assert app.state is AppState.STOPPED
        assert app.args == ["-greeting", "hey"]
        assert app.properties.get("greeting") == "hey"

    @pytest.mark.parametrize("suffix", [":missing", ":not_an_app"])
    def test_load_errors(self, target_module, suffix):
        assert main([target_module + suffix]) == 2

    def test_unknown_module(self):
        assert main(["no_such_module_here"]) == 2
