"""Unit tests for the list search expression parser."""

import pytest

from fleet_manager.db.queryparser import QueryParseError, parse_search


class TestParseSearch:
    def test_simple_equality(self):
        q = parse_search("name = my-kafka")
        assert q.query == "name = :p0"
        assert q.values == {"p0": "my-kafka"}

    def test_not_equal_normalized(self):
        assert parse_search("status != ready").query == "status <> :p0"
        assert parse_search("status <> ready").query == "status <> :p0"

    def test_joined_and_grouped(self):
        q = parse_search("name = a and (region = us-east-1 or region = eu-west-1)")
        assert q.query == "name = :p0 and (region = :p1 or region = :p2)"
        assert q.values == {"p0": "a", "p1": "us-east-1", "p2": "eu-west-1"}

    def test_keywords_case_insensitive(self):
        q = parse_search("Name LIKE 'kaf%' AND owner = bob")
        assert q.query == "name like :p0 and owner = :p1"
        assert q.values["p0"] == "kaf%"

    def test_ilike(self):
        q = parse_search("name ilike '%Prod%'")
        assert q.query == "lower(name) like lower(:p0)"

    def test_in_and_not_in(self):
        q = parse_search("status in (ready, failed) and region not in (eu-west-1)")
        assert q.query == "status in (:p0, :p1) and region not in (:p2)"
        assert q.values == {"p0": "ready", "p1": "failed", "p2": "eu-west-1"}

    def test_quoted_value_with_spaces_and_escapes(self):
        q = parse_search(r"name = 'it\'s a kafka'")
        assert q.values == {"p0": "it's a kafka"}

    def test_values_never_interpolated(self):
        q = parse_search("name = 'x; drop table kafka_requests'")
        assert "drop" not in q.query

    @pytest.mark.parametrize(
        "search",
        [
            "",
            "   ",
            "password = x",
            "name",
            "name =",
            "name = a and",
            "(name = a",
            "name = a)",
            "name between a",
            "name not like a",
            "status in ready",
            "name = a or or name = b",
            "name = =",
        ],
    )
    def test_rejects_malformed(self, search: str):
        with pytest.raises(QueryParseError):
            parse_search(search)
