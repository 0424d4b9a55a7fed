import pytest

from pyspring.config.expression import check, evaluate
from pyspring.errors import TagSyntaxError


class TestEvaluate:
    """Tests for evaluate."""

    def test_arithmetic(self):
        assert evaluate("$ * 2 + 1", 3) == 7

    def test_literals(self):
        assert evaluate("null") is None
        assert evaluate("true") is True

    def test_list_literal(self):
        assert evaluate("[1, 2, $]", 3) == [1, 2, 3]


class TestCheck:
    """Tests for check."""

    @pytest.mark.parametrize("expr,value,expected", [
        ("$ > 0", 5, True),
        ("$ > 0 && $ < 100", 150, False),
        ("$ < 0 || $ > 10", 11, True),
        ("!$", False, True),
        ("$ != 3", 3, False),
        ("$ in ['dev', 'test']", "dev", True),
        ("$ not in ['dev', 'test']", "prod", True),
        ("1 < $ < 3", 2, True),
        ("$ == 'a&&b'", "a&&b", True),
    ])
    def test_boolean_expressions(self, expr, value, expected):
        assert check(expr, value) is expected

    def test_non_boolean_result(self):
        """Test a non boolean result is rejected."""
        with pytest.raises(TagSyntaxError):
            check("$ + 1", 1)

    def test_type_mismatch(self):
        """Test comparing incompatible types is a syntax error."""
        with pytest.raises(TagSyntaxError):
            check("$ > 1", "abc")

    @pytest.mark.parametrize("expr", [
        "__import__('os')",
        "open('x')",
        "$.__class__",
        "[x for x in $]",
        "$ >",
        "lambda: 1",
    ])
    def test_rejected(self, expr):
        """Test expressions outside the grammar are refused."""
        with pytest.raises(TagSyntaxError):
            check(expr, [1])
