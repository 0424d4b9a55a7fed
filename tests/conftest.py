import logging
import sys
import tempfile
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config_dir(temp_dir):
    """Create a config directory with default and profile files."""
    config = temp_dir / "config"
    config.mkdir()
    (config / "application.yaml").write_text("""
app:
  name: demo
  port: 8080
  hosts:
    - a.example.com
    - b.example.com
db:
  url: sqlite://default
""")
    (config / "application.properties").write_text("""
# overridden by the yaml file
app.name=from-properties
app.owner=ops
""")
    (config / "application-dev.yaml").write_text("""
app:
  port: 9090
db:
  url: sqlite://dev
""")
    return config


@pytest.fixture
def sample_yaml_config(temp_dir):
    """Create a sample YAML config file."""
    config_path = temp_dir / "config.yaml"
    config_path.write_text("""
server:
  host: localhost
  port: 8080
filters:
  - name: auth
    order: 1
  - name: logging
    order: 2
tags: [a, b, c]
""")
    return config_path


@pytest.fixture
def sample_json_config(temp_dir):
    """Create a sample JSON config file."""
    config_path = temp_dir / "config.json"
    config_path.write_text("""{
    "server": {"host": "localhost", "port": 8080},
    "tags": ["a", "b"]
}""")
    return config_path


@pytest.fixture
def empty_config_file(temp_dir):
    """Create an empty config file."""
    config_path = temp_dir / "empty.yaml"
    config_path.write_text("")
    return config_path


@pytest.fixture
def settings(temp_dir):
    """Bootstrap settings isolated from the process environment."""
    from pyspring.config.settings import AppSettings

    return AppSettings(
        _env_file=None,
        config_locations=[str(temp_dir / "config")],
        env_patterns=[],
    )


@pytest.fixture(autouse=True)
def reset_default_app():
    """Forget the module level application before and after each test."""
    from pyspring.api import reset_default_app as reset

    reset()
    yield
    reset()


@pytest.fixture
def caplog_debug(caplog):
    caplog.set_level(logging.DEBUG, logger="pyspring")
    return caplog


@pytest.fixture
def reset_sys_modules():
    """Reset sys.modules for module loading tests."""
    original_modules = set(sys.modules.keys())
    yield
    new_modules = set(sys.modules.keys()) - original_modules
    for mod in new_modules:
        if not mod.startswith(('pytest', '_pytest', 'pluggy')):
            sys.modules.pop(mod, None)
