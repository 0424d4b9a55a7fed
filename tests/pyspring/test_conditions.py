import pytest

from pyspring.conditions import (
    ConditionContext,
    Group,
    Not,
    OnBean,
    OnExpression,
    OnMissingBean,
    OnMissingProperty,
    OnProfile,
    OnProperty,
    OnSingleBean,
    Operator,
    on,
    on_bean,
    on_matches,
    on_missing_property,
    on_property,
    ok,
)
from pyspring.config.properties import Properties
from pyspring.errors import ConditionError


class FakeContext:
    """A condition context over a property store and named beans."""

    def __init__(self, props=None, beans=None):
        self.props = Properties(props or {})
        self.beans = beans or {}

    def has(self, key):
        return self.props.has(key)

    def prop(self, key, default=None):
        return self.props.get(key, default)

    def find(self, selector):
        return self.beans.get(selector, [])


@pytest.fixture
def ctx():
    return FakeContext(
        props={
            "cache": {"enabled": "true", "size": "5"},
            "spring.profiles.active": "dev,test",
        },
        beans={"one": ["a"], "two": ["a", "b"]},
    )


class TestOnProperty:
    """Tests for property conditions."""

    def test_context_protocol(self, ctx):
        assert isinstance(ctx, ConditionContext)

    def test_present(self, ctx):
        assert OnProperty("cache.enabled").matches(ctx)
        assert OnProperty("cache").matches(ctx)

    def test_having_value(self, ctx):
        assert OnProperty("cache.enabled", having_value="true").matches(ctx)
        assert not OnProperty("cache.enabled", having_value="false").matches(ctx)

    def test_missing(self, ctx):
        assert not OnProperty("db.url").matches(ctx)
        assert OnProperty("db.url", match_if_missing=True).matches(ctx)

    def test_expression_value(self, ctx):
        """Test 'go:' values are evaluated with the coerced value."""
        assert OnProperty("cache.size", having_value="go:$ > 3").matches(ctx)
        assert not OnProperty("cache.size", having_value="go:$ > 10").matches(ctx)
        assert OnProperty("cache.enabled", having_value="go:$ == true").matches(ctx)

    def test_expr_alias(self, ctx):
        assert OnProperty("cache.size", having_value="expr:$ > 3").matches(ctx)
        assert not OnProperty("cache.size", having_value="go:$ < 3 && $ > 0").matches(ctx)

    def test_missing_property(self, ctx):
        assert OnMissingProperty("db.url").matches(ctx)
        assert not OnMissingProperty("cache.size").matches(ctx)

    def test_profile(self, ctx):
        """Test any of the comma separated profiles matches."""
        assert OnProfile("test").matches(ctx)
        assert not OnProfile("prod").matches(ctx)


class TestOnBean:
    """Tests for bean conditions."""

    def test_on_bean(self, ctx):
        assert OnBean("one").matches(ctx)
        assert not OnBean("none").matches(ctx)

    def test_on_missing_bean(self, ctx):
        assert OnMissingBean("none").matches(ctx)
        assert not OnMissingBean("two").matches(ctx)

    def test_on_single_bean(self, ctx):
        assert OnSingleBean("one").matches(ctx)
        assert not OnSingleBean("two").matches(ctx)
        assert not OnSingleBean("none").matches(ctx)

    def test_on_expression_reserved(self, ctx):
        with pytest.raises(NotImplementedError):
            OnExpression("true").matches(ctx)


class TestCombinators:
    """Tests for Not, Group and Conditional chains."""

    def test_not(self, ctx):
        assert Not(OnProperty("db.url")).matches(ctx)
        assert (~OnProperty("cache")).matches(ctx) is False

    @pytest.mark.parametrize("op,expected", [
        (Operator.OR, True),
        (Operator.AND, False),
        (Operator.NONE, False),
    ])
    def test_group(self, ctx, op, expected):
        group = Group(op, OnProperty("cache"), OnProperty("db"))
        assert group.matches(ctx) is expected

    def test_empty_group_fails(self, ctx):
        with pytest.raises(ConditionError):
            Group(Operator.AND).matches(ctx)

    def test_chain_and(self, ctx):
        """Test consecutive predicates are joined with AND."""
        assert on_property("cache").on_profile("dev").matches(ctx)
        assert not on_property("cache").on_missing_bean("one").matches(ctx)

    def test_chain_or(self, ctx):
        assert on_property("db").or_().on_bean("one").matches(ctx)
        assert not on_property("db").or_().on_bean("none").matches(ctx)

    def test_chain_short_circuit(self, ctx):
        """Test the right side isn't evaluated once the result is known."""
        calls = []
        chain = on_property("cache").or_().on_matches(lambda c: calls.append(1) or True)
        assert chain.matches(ctx)
        assert calls == []

    def test_or_binds_looser_than_and(self, ctx):
        """Test 'a or b and c' reads as 'a or (b and c)'."""
        chain = on_property("cache").or_().on_property("db").and_().on_property("nothing")
        assert chain.matches(ctx)

    def test_dangling_operator_fails(self, ctx):
        with pytest.raises(ConditionError, match="last node"):
            on_missing_property("cache").and_().matches(ctx)

    def test_empty_chain_matches(self, ctx):
        from pyspring.conditions import Conditional

        assert Conditional().matches(ctx)

    def test_on_and_ok(self, ctx):
        assert on(ok()).matches(ctx)
        assert on_matches(lambda c: c.has("cache")).matches(ctx)

    def test_repr(self):
        chain = on_property("a").or_().on_bean("b")
        assert "OR" in repr(chain)
        assert "OnBean('b')" in repr(on_bean("b"))
