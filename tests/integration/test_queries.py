"""
Integration tests for queries and counts.

Tests cover:
- Filter DSL evaluation against SQLite
- Type-strict comparisons
- Equality and "in" by JSON value, exact decimals
- Ordering, limit and offset
- Argument validation
"""

from decimal import Decimal

import pytest

from dbaas.docstore_server.app import DocStoreApp
from dbaas.docstore_server.config import QueryConfig, ServerConfig, StorageConfig
from dbaas.docstore_server.errors import NotFoundError, ValidationError
from dbaas.docstore_server.json_util import read_json_string

PEOPLE = {
    "p1": {
        "name": "alice",
        "age": 30,
        "status": "active",
        "tags": ["a", "b"],
        "address": {"city": "Berlin"},
    },
    "p2": {"name": "bob", "age": 17, "status": "pending", "score": 1.5},
    "p3": {"name": "carol", "age": "unknown", "status": "inactive", "nick": None},
}


@pytest.fixture
def people(app, database):
    """Store three documents in one transaction."""
    with app.transaction() as tx:
        for document_id, body in PEOPLE.items():
            tx.documents.create(database, document_id, body)
    return database


def ids(documents):
    return [document["id"] for document in documents]


class TestFilters:
    """Tests for filter evaluation."""

    @pytest.mark.parametrize(
        "filters,expected",
        [
            (None, ["p1", "p2", "p3"]),
            ({"age": {">": 18}}, ["p1"]),
            ({"age": {">=": 17, "<": 30}}, ["p2"]),
            ({"address.city": "Berlin"}, ["p1"]),
            ({"tags[0]": "a"}, ["p1"]),
            ({"tags[1]": "a"}, []),
            ({"status": {"!=": "active"}}, ["p2", "p3"]),
            ({"score": {"!=": 1.5}}, ["p1", "p3"]),
            ({"score": 1.5}, ["p2"]),
            ({"age": 30.0}, ["p1"]),
            ({"nick": None}, ["p3"]),
            ({"nick": {"is": "null"}}, ["p3"]),
            ({"nick": {"is": "undefined"}}, ["p1", "p2"]),
            ({"age": {"is": "number"}}, ["p1", "p2"]),
            ({"address": {"is": "object"}}, ["p1"]),
            ({"tags": {"is": "array"}}, ["p1"]),
            ({"id": {"is": "string"}}, ["p1", "p2", "p3"]),
            ({"name": {"in": ["alice", "carol", 5]}}, ["p1", "p3"]),
            ({"age": {"in": [17, "unknown"]}}, ["p2", "p3"]),
            ({"name": {"in": []}}, []),
            ({"id": {"in": ["p2", 5]}}, ["p2"]),
            ({"id": {">=": "p2"}}, ["p2", "p3"]),
            (["or", {"status": "active"}, {"status": "pending"}], ["p1", "p2"]),
            (["not", {"status": "active"}], ["p2", "p3"]),
            (["not", {"status": "pending"}, {"name": "bob"}], ["p1", "p3"]),
            (["contains", {"tags": ["b"]}], ["p1"]),
            (["contains", {"id": "p2", "status": "pending"}], ["p2"]),
            (["contains", {"id": 3}], []),
            ([{"age": {"<": 100}}, ["or", {"name": "bob"}, {"status": "active"}]], ["p1", "p2"]),
        ],
    )
    def test_filters(self, app, people, filters, expected):
        assert ids(app.query_documents(people, filters)) == expected
        assert app.count_documents(people, filters) == len(expected)

    def test_string_comparison_only_matches_strings(self, app, people):
        """A string operand never matches numeric values."""
        result = ids(app.query_documents(people, {"age": {">": "18"}}))
        assert "p1" not in result
        assert "p2" not in result
        # "unknown" > "18" by codepoint
        assert result == ["p3"]

    def test_version_filter(self, app, people):
        version = app.get_document(people, "p1")["version"]
        assert ids(app.query_documents(people, {"version": version})) == ["p1", "p2", "p3"]
        assert ids(app.query_documents(people, {"version": {">": version}})) == []

    def test_non_ascii_values(self, app, database):
        app.put_document(database, "u", {"city": "Zürich"})
        assert ids(app.query_documents(database, {"city": "Zürich"})) == ["u"]
        assert ids(app.query_documents(database, {"city": {"in": ["Zürich"]}})) == ["u"]

    def test_invalid_filter(self, app, people):
        with pytest.raises(ValidationError, match="unknown operator"):
            app.query_documents(people, {"age": {"~": 1}})

    def test_missing_database(self, app):
        with pytest.raises(NotFoundError):
            app.query_documents("missing")
        with pytest.raises(NotFoundError):
            app.count_documents("missing")

    def test_other_databases_are_invisible(self, app, people):
        app.create_database("other")
        app.put_document("other", "x", {"status": "active"})
        assert ids(app.query_documents(people, {"status": "active"})) == ["p1"]


class TestValueEquality:
    """Tests for "=" and "in" matching by JSON value."""

    @pytest.fixture
    def values(self, app, database):
        with app.transaction() as tx:
            real = read_json_string('{"n": 1.0, "o": {"x": 1, "y": 2}}')
            tx.documents.create(database, "real", real)
            tx.documents.create(database, "int", {"n": 1, "o": {"x": 1}, "tags": ["a", "b"]})
            tx.documents.create(database, "text", {"n": "1", "o": '{"x":1,"y":2}'})
        return database

    @pytest.mark.parametrize(
        "filters,expected",
        [
            ({"n": 1}, ["int", "real"]),
            ({"n": {"in": [1]}}, ["int", "real"]),
            ({"n": {"in": [Decimal("1.00")]}}, ["int", "real"]),
            ({"n": {"in": ["1"]}}, ["text"]),
            ({"o": {"in": [{"y": 2, "x": 1}]}}, ["real"]),
            ({"o": {"in": [{"x": 1.0}, "nothing"]}}, ["int"]),
            ({"tags": {"in": [["a", "b"]]}}, ["int"]),
            ({"tags": {"in": [["b", "a"]]}}, []),
            (["not", {"n": {"in": [1]}}], ["text"]),
        ],
    )
    def test_filters(self, app, values, filters, expected):
        assert ids(app.query_documents(values, filters)) == expected
        assert app.count_documents(values, filters) == len(expected)

    def test_exact_decimal_in_containment(self, app, database):
        app.put_document(database, "d", read_json_string('{"price": 0.10000000000000000000001}'))
        exact = ["contains", {"price": Decimal("0.10000000000000000000001")}]
        rounded = ["contains", {"price": Decimal("0.1")}]
        assert ids(app.query_documents(database, exact)) == ["d"]
        assert ids(app.query_documents(database, rounded)) == []


class TestPaging:
    """Tests for limit and offset."""

    def test_limit_and_offset(self, app, people):
        assert ids(app.query_documents(people, limit=2)) == ["p1", "p2"]
        assert ids(app.query_documents(people, limit=2, offset=2)) == ["p3"]
        assert ids(app.query_documents(people, limit=0)) == []

    def test_default_limit(self, data_dir):
        config = ServerConfig(
            storage=StorageConfig(data_dir=data_dir, wal_mode=False),
            query=QueryConfig(default_limit=2, max_limit=5),
        )
        app = DocStoreApp(config)
        app.initialize()
        app.create_database("db")
        with app.transaction() as tx:
            for i in range(4):
                tx.documents.create("db", f"d{i}", {})
        assert ids(app.query_documents("db")) == ["d0", "d1"]
        with pytest.raises(ValidationError, match="limit too high"):
            app.query_documents("db", limit=6)

    def test_limit_too_high(self, app, people):
        with pytest.raises(ValidationError, match="limit too high"):
            app.query_documents(people, limit=1001)

    @pytest.mark.parametrize("limit", [-1, "10", True])
    def test_invalid_limit(self, app, people, limit):
        with pytest.raises(ValidationError, match="invalid limit"):
            app.query_documents(people, limit=limit)

    @pytest.mark.parametrize("offset", [-1, "1", 1.5])
    def test_invalid_offset(self, app, people, offset):
        with pytest.raises(ValidationError, match="invalid offset"):
            app.query_documents(people, offset=offset)
