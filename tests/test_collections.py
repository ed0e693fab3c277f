# tests/test_collections.py
"""Tests for collection declaration, template registration and collection queries."""

import pytest

from viewcache import ViewCache
from viewcache.config.settings import Role
from viewcache.core.records import ByKeyValue, ByObject, TemplateRecord
from viewcache.exceptions import (
    LoaderError,
    MissingCollectionError,
    MissingTemplateError,
    ValidationError,
)

class TestDeclare:
    def test_defaults(self, views):
        post = views.declare("post", renderable=True)
        assert post.plural == "posts"
        assert views.store.has("posts")
        assert views.collection("posts") is post
        assert "posts" in views.collections.plurals_with_role(Role.RENDERABLE)

    def test_no_roles_means_partial(self, views):
        views.declare("snippet")
        assert views.collections.is_partial("snippet")
        assert views.helpers.has_helper("snippet")
        assert views.helpers.has_async_helper("snippet")

    def test_custom_plural(self, views):
        views.declare("person", "people", renderable=True)
        assert views.collection("people").name == "person"

    def test_redeclare_keeps_templates_and_roles(self, views):
        post = views.declare("post", renderable=True)
        post.add("hello", "hi")
        again = views.declare("post", layout=True)
        assert again is post
        assert "hello" in again
        assert again.collection.roles == frozenset({Role.RENDERABLE})

    def test_plural_clash(self, views):
        views.declare("post")
        with pytest.raises(ValidationError):
            views.declare("article", "posts")

    @pytest.mark.parametrize("name", ["", "bad-name", "1st", None])
    def test_invalid_names(self, views, name):
        with pytest.raises(ValidationError):
            views.declare(name)

    def test_unknown_collection(self, views):
        with pytest.raises(MissingCollectionError):
            views.collection("ghosts")

    def test_default_collections(self, views):
        assert set(views.collections.plurals()) == {"pages", "layouts", "partials"}
        assert views.collections.plurals_with_role(Role.LAYOUT) == ["layouts"]

class TestAdd:
    def test_key_and_string(self, views):
        pages = views.collection("page")
        pages.add("a", "x")
        record = pages.get("a")
        assert (record.key, record.path, record.content, record.collection) == ("a", "a", "x", "page")
        assert record.orig == "x"

    def test_key_and_mapping_with_loose_data(self, views):
        pages = views.collection("page")
        pages.add("b", {"content": "y", "title": "T", "path": "docs/b.md"})
        record = pages.get("b")
        assert record.data == {"title": "T"}
        assert record.path == "docs/b.md"

    def test_mapping_of_templates(self, views):
        pages = views.collection("page")
        pages.add({"c": {"content": "z"}, "d": "w"})
        assert pages.keys() == ["c", "d"]
        assert pages.get("d").content == "w"

    def test_single_template_object(self, views):
        pages = views.collection("page")
        pages.add({"path": "e.hbs", "content": "v"})
        assert "e.hbs" in pages

    def test_tagged_inputs(self, views):
        pages = views.collection("page")
        pages.add(ByKeyValue("f", "u", {"k": 1}))
        pages.add(ByObject({"g": {"content": "t"}}))
        assert pages.get("f").locals == {"k": 1}
        assert len(pages) == 2

    def test_chaining(self, views):
        pages = views.collection("page")
        assert pages.add("a", "x").add("b", "y") is pages

    def test_missing_content(self, views):
        with pytest.raises(ValidationError):
            views.collection("page").add("a")
        with pytest.raises(ValidationError):
            views.collection("page").add("a", {"title": "no content"})

    def test_non_string_content(self, views):
        with pytest.raises(ValidationError):
            views.collection("page").add("a", {"content": 42})

    def test_add_many_with_identity_loader(self, views):
        pages = views.collection("page")
        pages.add_many({"h": {"content": "s"}}, {"lang": "en"})
        assert pages.get("h").locals == {"lang": "en"}

    def test_identity_loader_rejects_patterns(self, views):
        with pytest.raises(LoaderError):
            views.collection("page").add_many("*.hbs")

class TestLookup:
    def test_get_miss(self, views):
        assert views.collection("page").get("nope") is None

    def test_get_miss_strict(self, strict_views):
        with pytest.raises(MissingTemplateError):
            strict_views.collection("page").get("nope")

    def test_get_falls_back_to_glob(self, views):
        pages = views.collection("page")
        pages.add({"a.hbs": {"content": "A"}, "c.j2": {"content": "C"}})
        assert pages.get("*.j2").key == "c.j2"

    def test_render_miss_is_empty(self, views):
        assert views.collection("page").render("nope") == ""

    def test_render_miss_strict(self, strict_views):
        with pytest.raises(MissingTemplateError):
            strict_views.collection("page").render("nope")

    def test_render_through_collection(self, views):
        pages = views.collection("page")
        pages.add("hi.j2", "hi {{ who }}")
        assert pages.render("hi.j2", {"who": "you"}) == "hi you"

    @pytest.mark.asyncio
    async def test_render_async_through_collection(self, views):
        pages = views.collection("page")
        pages.add("hi.j2", "hi {{ who }}")
        assert await pages.render_async("hi.j2", {"who": "you"}) == "hi you"

class TestQueries:
    @pytest.fixture
    def pages(self, views):
        pages = views.collection("page")
        pages.add({
            "a.hbs": {"content": "A", "data": {"tag": "x"}},
            "b.hbs": {"content": "B"},
            "c.j2": {"content": "C", "tag": "y"},
        })
        return pages

    def test_filter_by_data(self, pages):
        assert list(pages.filter("tag")) == ["a.hbs", "c.j2"]
        assert list(pages.filter("tag", "x")) == ["a.hbs"]

    def test_filter_by_key(self, pages):
        assert list(pages.filter("key", "*.hbs")) == ["a.hbs", "b.hbs"]

    def test_find(self, pages):
        assert pages.find("b.*").key == "b.hbs"
        assert pages.find("*.txt") is None

    def test_paginate(self, views, pages):
        listing = TemplateRecord(
            key="list",
            path="list.j2",
            content="{% for item in pagination['items'] %}{{ item.key }};{% endfor %}{{ pagination.num }}/{{ pagination.total }}",
        )
        result = pages.paginate(listing, 2)
        assert [page.key for page in result] == ["list#1", "list#2"]
        assert [len(page.data["pagination"]["items"]) for page in result] == [2, 1]
        assert listing.data == {}
        assert views.render_sync(result[0]) == "a.hbs;b.hbs;1/2"
        assert views.render_sync(result[1]) == "c.j2;2/2"

    def test_paginate_limit(self, pages):
        with pytest.raises(ValidationError):
            pages.paginate(TemplateRecord(key="l", path="l", content=""), 0)

class TestEmptyCollections:
    def test_fresh_instance_finds_empty_collections(self):
        views = ViewCache()
        pages = views.collection("page")
        assert len(pages) == 0
        assert views.collection("pages") is pages

    def test_empty_partial_collection_is_partial(self):
        views = ViewCache()
        views.declare("snippet")
        assert len(views.collection("snippet")) == 0
        assert views.collections.is_partial("snippet")
        assert views.collections.is_partial("partial")
        assert not views.collections.is_partial("page")
