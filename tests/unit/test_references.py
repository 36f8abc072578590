"""
Unit tests for reference extraction.

Tests cover:
- Key naming conventions for single ids and id lists
- Recursion into objects and arrays
- The unscanned "data" key
- Error reporting with key paths
"""

from dbaas.docstore_server.service.references import (
    diff_references,
    extract_referenced_ids,
    is_id_key,
    is_ids_key,
)


class TestKeyConventions:
    """Tests for is_id_key / is_ids_key."""

    def test_id_keys(self):
        for key in ("fooId", "foo_id", "FOO_ID", "xId", "a_id"):
            assert is_id_key(key), key

    def test_not_id_keys(self):
        for key in ("id", "Id", "_id", "ID", "fooid", "fooIds"):
            assert not is_id_key(key), key

    def test_ids_keys(self):
        for key in ("fooIds", "foo_ids", "FOO_IDS", "xIds", "a_ids"):
            assert is_ids_key(key), key

    def test_not_ids_keys(self):
        for key in ("Ids", "ids", "_ids", "IDS", "fooId"):
            assert not is_ids_key(key), key


class TestExtractReferencedIds:
    """Tests for extract_referenced_ids()."""

    def test_collects_ids_recursively(self):
        """Nested objects and array elements are scanned."""
        document = {
            "ownerId": "u1",
            "member_ids": ["u2", "u3"],
            "nested": {"items": [{"PRODUCT_ID": "p1"}, {"tagIds": ["t1"]}]},
        }
        ids, errors = extract_referenced_ids(document)
        assert errors == []
        assert ids == {"u1", "u2", "u3", "p1", "t1"}

    def test_null_is_allowed(self):
        ids, errors = extract_referenced_ids({"ownerId": None, "tagIds": None})
        assert ids == set()
        assert errors == []

    def test_data_key_is_not_scanned(self):
        """Free-form payloads under "data" never create references."""
        ids, errors = extract_referenced_ids({"data": {"ownerId": 5, "tagIds": "x"}})
        assert ids == set()
        assert errors == []

    def test_nested_data_key_is_not_scanned(self):
        ids, _ = extract_referenced_ids({"a": [{"data": {"bId": "b"}}], "cId": "c"})
        assert ids == {"c"}

    def test_errors_carry_key_path(self):
        """Every offending key is reported with its path."""
        document = {
            "a": {"fooId": 1},
            "list": [{"barIds": "x"}],
            "bazIds": ["ok", 2],
        }
        ids, errors = extract_referenced_ids(document)
        assert ids == set()
        assert "must be a string: a.fooId" in errors
        assert "must be a list of strings: list[0].barIds" in errors
        assert "must contain only strings: bazIds" in errors
        assert len(errors) == 3

    def test_scalars_have_no_references(self):
        assert extract_referenced_ids({"name": "x", "count": 3}) == (set(), [])


class TestDiffReferences:
    """Tests for diff_references()."""

    def test_diff(self):
        to_add, to_remove = diff_references({"c", "a", "b"}, {"b", "d"})
        assert to_add == ["a", "c"]
        assert to_remove == ["d"]

    def test_unchanged(self):
        assert diff_references({"a"}, {"a"}) == ([], [])
