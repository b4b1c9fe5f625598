"""
Tests for property validation.

Stored properties must read back exactly as written: same tags, same
field names, no defaults filled in.
"""

import pytest

from graphnote.errors import ValidationError
from graphnote.properties import (
    PROPERTY_TYPES,
    unwrap_value,
    validate_properties,
    validate_property_value,
)
from graphnote.types import ObjectType


SAMPLE_PROPERTIES = {
    "summary": {"type": "text", "value": "hello", "config": {"maxLength": 80}},
    "notes": {"type": "long-text", "value": "line one\nline two"},
    "estimate": {"type": "number", "value": 3, "config": {"min": 0, "step": 0.5, "unit": "h"}},
    "ratio": {"type": "number", "value": 0.25},
    "due": {"type": "date", "value": "2025-01-31"},
    "meeting": {"type": "datetime", "value": "2025-01-31T14:00:00Z", "config": {"timezone": "UTC"}},
    "status": {"type": "select", "value": "active", "config": {"options": ["active", "done"]}},
    "labels": {"type": "multi-select", "value": ["a", "b"], "config": {"options": ["a", "b", "c"]}},
    "done": {"type": "checkbox", "value": False},
    "homepage": {"type": "url", "value": "https://example.com/x", "config": {"openInNewTab": True}},
    "contact": {"type": "email", "value": "someone@example.com"},
    "attachment": {"type": "file", "value": {
        "url": "https://example.com/f.pdf", "name": "f.pdf", "size": 1024, "mimeType": "application/pdf",
    }},
    "abstract": {"type": "ai-generated", "value": "A summary", "config": {"prompt": "Summarize"}},
    "cost": {"type": "currency", "value": 12.5, "config": {"currency": "EUR"}},
    "stars": {"type": "rating", "value": 4, "config": {"maxRating": 5}},
}


class TestRoundTrip:

    def test_every_variant_is_sampled(self):
        assert {p["type"] for p in SAMPLE_PROPERTIES.values()} == set(PROPERTY_TYPES)

    def test_validated_form_equals_input(self):
        assert validate_properties(ObjectType.PAGE, SAMPLE_PROPERTIES) == SAMPLE_PROPERTIES

    def test_defaults_not_filled_in(self):
        # currency config has a default currency; leaving it out stays out
        result = validate_properties(ObjectType.FINANCIAL_ENTRY, {
            "amount": {"type": "currency", "value": 10, "config": {"min": 0}},
        })
        assert result["amount"]["config"] == {"min": 0}

    def test_int_stays_int(self):
        result = validate_properties(ObjectType.TASK, {"n": {"type": "number", "value": 5}})
        assert result["n"]["value"] == 5
        assert isinstance(result["n"]["value"], int)

    def test_none_means_empty(self):
        assert validate_properties(ObjectType.TASK, None) == {}


class TestInvalidShapes:

    @pytest.mark.parametrize("prop", [
        {"type": "select", "value": "x"},  # options required
        {"type": "select", "value": "x", "config": {"options": []}},
        {"type": "number", "value": "5"},
        {"type": "checkbox", "value": 1},
        {"type": "date", "value": "2025-02-30"},
        {"type": "date", "value": "2025-01-15T10:00:00"},
        {"type": "datetime", "value": "yesterday"},
        {"type": "url", "value": "example.com"},
        {"type": "email", "value": "not-an-email"},
        {"type": "file", "value": {"url": "https://e.com/f", "name": "f", "size": 0, "mimeType": "x/y"}},
        {"type": "rating", "value": -1},
        {"type": "text", "value": "x", "extra": True},
        {"type": "bogus", "value": 1},
        {"value": "untagged"},
        "bare string",
    ])
    def test_rejected(self, prop):
        with pytest.raises(ValidationError):
            validate_properties(ObjectType.TASK, {"p": prop})

    def test_error_names_the_key(self):
        with pytest.raises(ValidationError, match="priority"):
            validate_properties(ObjectType.TASK, {"priority": {"type": "number", "value": "high"}})

    def test_non_mapping(self):
        with pytest.raises(ValidationError):
            validate_properties(ObjectType.TASK, ["not", "a", "dict"])

    def test_single_value(self):
        assert validate_property_value({"type": "checkbox", "value": True}) == {
            "type": "checkbox", "value": True,
        }
        with pytest.raises(ValidationError):
            validate_property_value({"type": "checkbox", "value": "yes"})


class TestSystemSchemas:

    def test_tag_properties_allow_extra_keys(self):
        props = {"color": "#f00", "icon": "star", "weight": 3}
        assert validate_properties(ObjectType.TAG, props) == props

    def test_tag_color_must_be_string(self):
        with pytest.raises(ValidationError):
            validate_properties(ObjectType.TAG, {"color": 5})

    def test_extra_keys_must_be_json(self):
        with pytest.raises(ValidationError, match="weird|serialize"):
            validate_properties(ObjectType.TAG, {"weird": object()})

    def test_collection_requires_object_type(self):
        with pytest.raises(ValidationError, match="objectType"):
            validate_properties(ObjectType.COLLECTION, {"icon": "box"})

    def test_collection_object_type_must_be_known(self):
        with pytest.raises(ValidationError):
            validate_properties(ObjectType.COLLECTION, {"objectType": "widget"})

    def test_collection_round_trip(self):
        props = {
            "objectType": "project",
            "defaultSort": {"field": "title", "order": "asc"},
            "defaultFilters": {"tags": ["work"]},
        }
        assert validate_properties(ObjectType.COLLECTION, props) == props

    def test_query_properties(self):
        props = {
            "queryType": "object-type",
            "filters": {"objectType": "task", "properties": {"status": "done"}, "tags": ["x"]},
            "sort": {"field": "updatedAt", "order": "asc"},
            "limit": 10,
            "groupBy": "properties.status",
        }
        assert validate_properties(ObjectType.QUERY, props) == props

    def test_query_requires_query_type(self):
        with pytest.raises(ValidationError):
            validate_properties(ObjectType.QUERY, {"filters": {}})

    def test_query_rejects_unknown_filter(self):
        with pytest.raises(ValidationError):
            validate_properties(ObjectType.QUERY, {
                "queryType": "object-type", "filters": {"color": "red"},
            })


class TestUnwrap:

    def test_tagged_value(self):
        assert unwrap_value({"type": "text", "value": "a"}) == "a"

    def test_plain_value(self):
        assert unwrap_value("project") == "project"
        assert unwrap_value({"field": "title"}) == {"field": "title"}
