"""Tests for named-parameter binding."""

import pytest

from shadowit.database.query_builder import bind_named


class TestBindNamed:
    """Tests for converting :name placeholders to asyncpg positions."""

    def test_positions_follow_first_use(self):
        """Each distinct name gets the next $n in order of appearance."""
        query, values = bind_named(
            "SELECT * FROM users WHERE organization_id = :org AND email = :email",
            {"email": "a@acme.com", "org": 7},
        )

        assert query == "SELECT * FROM users WHERE organization_id = $1 AND email = $2"
        assert values == [7, "a@acme.com"]

    def test_repeated_name_reuses_position(self):
        query, values = bind_named("SELECT :a, :b, :a", {"a": 1, "b": 2})

        assert query == "SELECT $1, $2, $1"
        assert values == [1, 2]

    def test_casts_are_left_alone(self):
        """``::text[]`` is a PostgreSQL cast, not a parameter."""
        query, values = bind_named("SELECT :scopes::text[]", {"scopes": ["a"]})

        assert query == "SELECT $1::text[]"
        assert values == [["a"]]

    def test_missing_parameter_raises(self):
        with pytest.raises(ValueError, match="Missing parameter: org"):
            bind_named("SELECT :org", {})
