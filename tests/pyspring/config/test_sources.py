import pytest

from pyspring.config.properties import Properties
from pyspring.config.settings import AppSettings, PROFILE_KEY
from pyspring.config.sources import (
    CommandLinePropertySource,
    CompositeProperties,
    ConfigMapPropertySource,
    EnvironmentPropertySource,
    FilePropertySource,
    MapPropertySource,
    PropertySource,
    bootstrap_properties,
    source_for_location,
)
from pyspring.errors import FileFormatError


class TestFilePropertySource:
    """Tests for FilePropertySource."""

    def test_later_extensions_override(self, config_dir):
        """Test yaml values win over properties values."""
        props = FilePropertySource(config_dir, extensions=[".properties", ".yaml"]).load()
        assert props.get("app.name") == "demo"
        assert props.get("app.owner") == "ops"

    def test_profile_file(self, config_dir):
        props = FilePropertySource(config_dir).load("dev")
        assert props.get("app.port") == "9090"
        assert not props.has("app.name")

    def test_missing_directory(self, temp_dir):
        assert len(FilePropertySource(temp_dir / "nowhere").load()) == 0

    def test_is_property_source(self, config_dir):
        assert isinstance(FilePropertySource(config_dir), PropertySource)


class TestConfigMapPropertySource:
    """Tests for ConfigMapPropertySource."""

    @pytest.fixture
    def config_map(self, temp_dir):
        path = temp_dir / "config-map.yaml"
        path.write_text("""
apiVersion: v1
kind: ConfigMap
data:
  application.yaml: |
    app:
      name: from-config-map
  application-dev.properties: |
    app.port=7070
""")
        return path

    def test_default_file(self, config_map):
        props = ConfigMapPropertySource(config_map).load()
        assert props.get("app.name") == "from-config-map"

    def test_profile_file(self, config_map):
        props = ConfigMapPropertySource(config_map).load("dev")
        assert props.get("app.port") == "7070"

    def test_missing_data(self, temp_dir):
        path = temp_dir / "bad.yaml"
        path.write_text("kind: ConfigMap\n")
        with pytest.raises(FileFormatError, match="data not found"):
            ConfigMapPropertySource(path).load()

    def test_k8s_scheme(self, config_map):
        source = source_for_location(f"k8s:{config_map}", "application", [".yaml"])
        assert isinstance(source, ConfigMapPropertySource)


class TestEnvironmentPropertySource:
    """Tests for EnvironmentPropertySource."""

    def test_patterns(self):
        environ = {"APP_NAME": "demo", "HOME": "/root", "APP_SECRET": "x"}
        props = EnvironmentPropertySource(["^APP_"], ["SECRET"], environ=environ).load()
        assert props.keys() == ["APP_NAME"]

    def test_prefix_renames(self):
        """Test prefixed variables become dotted lower case keys."""
        environ = {"PYSPRING_PROP_SERVER_PORT": "9000"}
        props = EnvironmentPropertySource([], environ=environ).load()
        assert props.get("server.port") == "9000"

    def test_invalid_keys_skipped(self, caplog):
        environ = {"BAD KEY": "x", "GOOD": "y"}
        props = EnvironmentPropertySource(environ=environ).load()
        assert props.keys() == ["GOOD"]
        assert "Skip environment variable" in caplog.text


class TestCommandLinePropertySource:
    """Tests for CommandLinePropertySource."""

    def test_pairs(self):
        props = CommandLinePropertySource(["-server.port", "9000", "-debug", "-name", "x"]).load()
        assert props.get("server.port") == "9000"
        assert props.has("debug")
        assert props.get("debug") == ""
        assert props.get("name") == "x"

    def test_positional_arguments_ignored(self):
        props = CommandLinePropertySource(["run", "--", "-a", "1"]).load()
        assert props.to_dict() == {"a": "1"}


class TestCompositeProperties:
    """Tests for CompositeProperties."""

    @pytest.fixture
    def composite(self):
        high = Properties({"a": "high", "shape": {"x": "1"}})
        low = Properties({"a": "low", "b": "low", "shape": "scalar"})
        return CompositeProperties([high, low])

    def test_first_hit_wins(self, composite):
        assert composite.get("a") == "high"
        assert composite.get("b") == "low"
        assert composite.get("c", "d") == "d"

    def test_has_and_keys(self, composite):
        assert composite.has("b")
        assert composite.keys() == ["a", "b", "shape", "shape.x"]

    def test_has_value(self, composite):
        assert composite.has_value("b")
        assert composite.has_value("shape.x")
        assert not composite.has_value("c")

    def test_snapshot_drops_conflicts(self, composite):
        """Test lower layers can't change a shape set by a higher one."""
        snap = composite.snapshot()
        assert snap.get("shape.x") == "1"
        assert snap.is_interior("shape")
        assert snap.get("a") == "high"

    def test_replace(self, composite):
        composite.replace([Properties({"a": "new"})])
        assert composite.get("a") == "new"
        assert not composite.has("b")

    def test_resolve_across_layers(self):
        composite = CompositeProperties([Properties({"url": "${host}"}), Properties({"host": "h"})])
        assert composite.resolve("${url}") == "h"


class TestBootstrapProperties:
    """Tests for bootstrap_properties."""

    def test_layer_order(self, config_dir, settings):
        """Test API, command line and environment override files."""
        api = Properties({"app.name": "from-api"})
        environ = {"PYSPRING_PROP_APP_PORT": "1111", "PYSPRING_PROP_DB_URL": "env://"}
        defaults = Properties({"app.version": "1.0", "db.url": "default://"})
        composite = bootstrap_properties(settings, api, ["-app.port", "2222"], environ, defaults)
        snap = composite.snapshot()
        assert snap.get("app.name") == "from-api"
        assert snap.get("app.port") == "2222"
        assert snap.get("db.url") == "env://"
        assert snap.get("app.owner") == "ops"
        assert snap.get("app.version") == "1.0"

    def test_no_profile(self, config_dir, settings):
        snap = bootstrap_properties(settings, Properties(), [], {}).snapshot()
        assert snap.get("app.port") == "8080"
        assert not snap.has(PROFILE_KEY)

    def test_profile_from_command_line(self, config_dir, settings):
        """Test the profile layer sits above the default files."""
        composite = bootstrap_properties(settings, Properties(), [f"-{PROFILE_KEY}", "dev"], {})
        snap = composite.snapshot()
        assert snap.get("app.port") == "9090"
        assert snap.get("db.url") == "sqlite://dev"
        assert snap.get("app.name") == "demo"

    def test_profile_from_settings(self, config_dir, temp_dir):
        settings = AppSettings(_env_file=None, config_locations=[str(config_dir)], env_patterns=[], profile="dev")
        snap = bootstrap_properties(settings, Properties(), [], {}).snapshot()
        assert snap.get("app.port") == "9090"
        assert snap.get(PROFILE_KEY) == "dev"

    def test_profile_from_environment_key(self, config_dir, temp_dir):
        settings = AppSettings(_env_file=None, config_locations=[str(config_dir)],
                               env_patterns=["^SPRING_"])
        snap = bootstrap_properties(settings, Properties(), [], {"SPRING_PROFILES_ACTIVE": "dev"}).snapshot()
        assert snap.get("db.url") == "sqlite://dev"

    def test_locations_override(self, config_dir, temp_dir, settings):
        """Test config locations can be moved through the command line."""
        other = temp_dir / "other"
        other.mkdir()
        (other / "application.toml").write_text('[app]\nname = "other"\n')
        args = ["-spring.config.locations", str(other)]
        snap = bootstrap_properties(settings, Properties(), args, {}).snapshot()
        assert snap.get("app.name") == "other"

    def test_map_source(self):
        assert MapPropertySource({"a": 1}).load().get("a") == "1"
