import pytest

from pyspring.config.readers import load_file, read_data, register_reader, supported_extensions
from pyspring.errors import FileFormatError


class TestReadProperties:
    """Tests for the .properties reader."""

    def test_separators(self):
        """Test '=', ':' and whitespace separators."""
        data = b"a=1\nb: 2\nc 3\n"
        assert read_data(data, ".properties") == {"a": "1", "b": "2", "c": "3"}

    def test_comments_and_blank_lines(self):
        data = b"# comment\n! also a comment\n\nkey=value\n"
        assert read_data(data, ".properties") == {"key": "value"}

    def test_line_continuation(self):
        data = b"message=hello \\\n    world\n"
        assert read_data(data, ".properties") == {"message": "hello world"}

    def test_escapes(self):
        data = b"tab=a\\tb\nnewline=a\\nb\n"
        assert read_data(data, ".properties") == {"tab": "a\tb", "newline": "a\nb"}

    def test_escaped_separator_in_key(self):
        data = b"a\\=b=c\n"
        assert read_data(data, ".properties") == {"a=b": "c"}


class TestReadData:
    """Tests for read_data."""

    def test_yaml(self):
        assert read_data(b"a:\n  b: 1\n", ".yaml") == {"a": {"b": 1}}

    def test_yml_extension(self):
        assert read_data(b"a: 1\n", ".YML") == {"a": 1}

    def test_toml(self):
        assert read_data(b"[server]\nport = 8080\n", ".toml") == {"server": {"port": 8080}}

    def test_json(self):
        assert read_data(b'{"a": [1, 2]}', ".json") == {"a": [1, 2]}

    def test_empty_content(self):
        assert read_data(b"  \n", ".yaml") == {}

    def test_unsupported_extension(self):
        with pytest.raises(FileFormatError, match="unsupported file type"):
            read_data(b"a=1", ".ini")

    @pytest.mark.parametrize("data,ext", [
        (b"a: [1, 2", ".yaml"),
        (b"a = ", ".toml"),
        (b"{bad json", ".json"),
    ])
    def test_malformed(self, data, ext):
        with pytest.raises(FileFormatError):
            read_data(data, ext)

    def test_non_mapping(self):
        """Test a top level list is rejected."""
        with pytest.raises(FileFormatError, match="must be a mapping"):
            read_data(b"- a\n- b\n", ".yaml")

    def test_register_reader(self):
        """Test a custom reader is used for its extension."""
        register_reader(lambda data: {"raw": data.decode()}, ".raw")
        assert ".raw" in supported_extensions()
        assert read_data(b"content", ".raw") == {"raw": "content"}


class TestLoadFile:
    """Tests for load_file."""

    def test_load(self, sample_yaml_config):
        data = load_file(sample_yaml_config)
        assert data["server"]["port"] == 8080

    def test_missing_file(self, temp_dir):
        with pytest.raises(FileNotFoundError):
            load_file(temp_dir / "missing.yaml")

    def test_directory(self, temp_dir):
        with pytest.raises(IsADirectoryError):
            load_file(temp_dir)
