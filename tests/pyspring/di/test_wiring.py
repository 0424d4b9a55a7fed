import importlib
import textwrap

import pytest
from dependency_injector.wiring import Provide

from pyspring.config.properties import Properties
from pyspring.container import Container
from pyspring.di import unwire, wire


@pytest.fixture
def wired_module(temp_dir, monkeypatch, reset_sys_modules):
    """A module whose functions take beans, properties and loggers."""
    (temp_dir / "demo_wired.py").write_text(textwrap.dedent("""
        from pyspring import (
            get_bean,
            get_container_api,
            get_logger,
            get_properties,
            get_property,
            get_raw_container,
            inject,
        )


        class Cache:
            pass


        @inject
        def use_bean(cache: Cache = get_bean(Cache), named=get_bean("local")):
            return cache, named


        @inject
        def use_property(name: str = get_property("app.name"), other: str = get_property("app.other", "fallback")):
            return name, other


        @inject
        def use_properties(props=get_properties()):
            return props


        @inject
        def use_container(api=get_container_api(), raw=get_raw_container()):
            return api, raw


        @inject
        def use_logger(log=get_logger("jobs")):
            return log
    """))
    monkeypatch.syspath_prepend(str(temp_dir))
    return importlib.import_module("demo_wired")


@pytest.fixture
def container(wired_module):
    c = Container({"app": {"name": "demo"}})
    c.object(wired_module.Cache()).name("local")
    c.refresh()
    wire(c, modules=[wired_module])
    yield c
    unwire(c)


class TestWire:
    """Tests for wiring modules to a container."""

    def test_beans(self, wired_module, container):
        cache, named = wired_module.use_bean()
        assert cache is container.get(wired_module.Cache)
        assert named is cache

    def test_explicit_argument_wins(self, wired_module, container):
        other = object()
        assert wired_module.use_bean(cache=other)[0] is other

    def test_properties(self, wired_module, container):
        assert wired_module.use_property() == ("demo", "fallback")
        assert wired_module.use_properties().get("app.name") == "demo"

    def test_property_reads_current_snapshot(self, wired_module):
        c = Container()
        c.object(wired_module.Cache())
        c.refresh(Properties({"app": {"name": "first"}}))
        wire(c, modules=["demo_wired"])
        try:
            c.refresh_properties(Properties({"app": {"name": "second"}}))
            assert wired_module.use_property()[0] == "second"
        finally:
            unwire(c)

    def test_container_and_logger(self, wired_module, container):
        api, raw = wired_module.use_container()
        assert api is container
        assert raw is container.raw_container()
        assert wired_module.use_logger().name == "pyspring.jobs"

    def test_unknown_module_skipped(self, container, caplog):
        wire(container, modules=["no_such_module_here"])
        assert "Could not import module" in caplog.text


class TestUnwire:
    """Tests for unwire."""

    def test_markers_after_unwire(self, wired_module):
        c = Container()
        c.object(wired_module.Cache())
        c.refresh()
        wire(c, modules=[wired_module])
        unwire(c)
        assert isinstance(wired_module.use_logger(), Provide)
