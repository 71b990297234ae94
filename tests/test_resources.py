"""
Tests for result formatting.

Tests cover:
- Shape detection
- Single / collection / paginated wrapping
- Formatting switched off or without a resource
- Resources without a pydantic schema
"""

from repository import (
    Page,
    Resource,
    ResourceCollection,
    ResultShape,
    SimplePage,
    shape_of,
)

from tests.support import UserRepository, UserResource


class PlainResource(Resource):
    """No schema: column values are used."""


# =============================================================
# TEST: Shape Detection
# =============================================================

class TestShapeOf:

    def test_single(self, users):
        assert shape_of(users["ada"]) is ResultShape.SINGLE

    def test_collection(self, users):
        assert shape_of([users["ada"]]) is ResultShape.COLLECTION
        assert shape_of(()) is ResultShape.COLLECTION

    def test_paginated(self):
        assert shape_of(Page(items=[], total=0, per_page=10)) is ResultShape.PAGINATED
        assert shape_of(SimplePage(items=[], per_page=10)) is ResultShape.PAGINATED


# =============================================================
# TEST: Repository Formatting
# =============================================================

class TestParseResult:
    """Results are wrapped only while formatting is on."""

    def test_formatting_off_returns_raw_entities(self, repo):
        repo.set_resource(UserResource)
        assert not isinstance(repo.first(), Resource)

    def test_no_resource_returns_raw(self, repo):
        repo.as_resource()
        assert not isinstance(repo.first(), Resource)

    def test_single_result_is_wrapped(self, repo, users):
        repo.set_resource(UserResource).as_resource()
        result = repo.find(users["ada"].id)

        assert isinstance(result, UserResource)
        assert result.to_dict() == {"id": users["ada"].id, "name": "ada", "age": 36}

    def test_collection_is_wrapped(self, repo):
        repo.set_resource(UserResource).as_resource()
        result = repo.order_by("name").all()

        assert isinstance(result, ResourceCollection)
        assert len(result) == 4
        payload = result.to_dict()
        assert [row["name"] for row in payload["data"]] == ["ada", "bob", "cy", "dee"]
        assert "meta" not in payload

    def test_page_is_wrapped_with_meta(self, repo):
        repo.set_resource(UserResource).as_resource()
        payload = repo.order_by("name").paginate(limit=3).to_dict()

        assert len(payload["data"]) == 3
        assert payload["meta"] == {
            "total": 4,
            "per_page": 3,
            "current_page": 1,
            "last_page": 2,
        }

    def test_simple_page_meta(self, repo):
        repo.set_resource(UserResource).as_resource()
        payload = repo.simple_paginate(limit=3, page=2).to_dict()

        assert payload["meta"]["has_more_pages"] is False
        assert len(payload["data"]) == 1

    def test_none_is_not_wrapped(self, repo):
        repo.set_resource(UserResource).as_resource()

        assert repo.where("name", "nobody").first() is None
        assert repo.find_without_fail(999) is None

    def test_empty_collection_is_wrapped(self, repo):
        repo.set_resource(UserResource).as_resource()
        result = repo.where("name", "nobody").all()

        assert isinstance(result, ResourceCollection)
        assert result.to_dict() == {"data": []}

    def test_writes_are_formatted(self, repo):
        repo.set_resource(UserResource).as_resource()
        assert isinstance(repo.create({"name": "eve", "age": 20}), UserResource)

    def test_count_and_pluck_are_not_formatted(self, repo):
        repo.set_resource(UserResource).as_resource()

        assert repo.count() == 4
        assert sorted(repo.pluck("name")) == ["ada", "bob", "cy", "dee"]

    def test_formatting_can_be_switched_off(self, repo):
        repo.set_resource(UserResource).as_resource()
        repo.as_resource(False)

        assert not isinstance(repo.first(), Resource)

    def test_class_level_resource(self, session, users):
        class FormattedUsers(UserRepository):
            resource = UserResource

        repo = FormattedUsers(session).as_resource()
        assert isinstance(repo.first(), UserResource)


# =============================================================
# TEST: Resource Without Schema
# =============================================================

class TestPlainResource:

    def test_column_values_are_used(self, users):
        data = PlainResource.make(users["bob"]).to_dict()

        assert data["name"] == "bob"
        assert data["age"] == 17
        assert data["status"] == "active"
        assert "posts" not in data

    def test_collection_without_meta(self, users):
        collection = PlainResource.collection([users["bob"], users["cy"]])

        assert collection.meta is None
        assert [item.item for item in collection] == [users["bob"], users["cy"]]
