import importlib

import pyspring
from pyspring.app import App
from pyspring.container import Container


class TestPackage:
    """Tests for the top level package."""

    def test_exports_resolve(self):
        module = importlib.reload(pyspring)
        for name in module.__all__:
            assert hasattr(module, name), name

    def test_accessors_are_properties(self):
        """Test the set-property methods don't hide the accessors defined after them."""
        for cls, names in ((Container, ("properties", "refreshed", "context", "closed")), (App, ("properties",))):
            assert callable(cls.property)
            for name in names:
                assert isinstance(vars(cls)[name], property), name

    def test_container_property_roundtrip(self):
        c = Container()
        c.property("db.url", "sqlite://")
        assert c.properties.get("db.url") == "sqlite://"
        assert c.refreshed is False
        assert c.closed is False
