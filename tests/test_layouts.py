# tests/test_layouts.py
"""Tests for nested layout wrapping, cycle detection and default layouts."""

import pytest

from viewcache import ViewCache
from viewcache.exceptions import LayoutCycleError, MissingTemplateError, ValidationError

@pytest.fixture
def layered(views):
    layouts = views.collection("layout")
    layouts.add("a", {"content": "a {%body%} a", "layout": "b"})
    layouts.add("b", {"content": "b {%body%} b", "layout": "base"})
    layouts.add("base", {"content": "outer {%body%} outer"})
    return views

def test_nested_layouts_wrap_innermost_first(layered):
    layered.collection("page").add("home", {"content": "inner", "layout": "a"})
    assert layered.render_sync("home") == "outer b a inner a b outer"

@pytest.mark.asyncio
async def test_nested_layouts_async(layered):
    layered.collection("page").add("home", {"content": "inner", "layout": "a"})
    assert await layered.render_async("home") == "outer b a inner a b outer"

def test_body_tag_tolerates_whitespace(views):
    views.collection("layout").add("spaced", "[{%   body   %}]")
    views.collection("page").add("home", {"content": "x", "layout": "spaced"})
    assert views.render_sync("home") == "[x]"

def test_layout_from_call_locals(layered):
    layered.collection("page").add("home", "inner")
    assert layered.render_sync("home", {"layout": "base"}) == "outer inner outer"

class TestLayoutCycles:
    def test_self_cycle(self, views):
        views.collection("layout").add("a", {"content": "a {% body %} a", "layout": "a"})
        views.collection("page").add("home", {"content": "x", "layout": "a"})
        with pytest.raises(LayoutCycleError) as excinfo:
            views.render_sync("home")
        assert excinfo.value.chain == ["a", "a"]

    def test_two_step_cycle(self, views):
        layouts = views.collection("layout")
        layouts.add("a", {"content": "a {% body %} a", "layout": "b"})
        layouts.add("b", {"content": "b {% body %} b", "layout": "a"})
        views.collection("page").add("home", {"content": "x", "layout": "a"})
        with pytest.raises(LayoutCycleError, match="a -> b -> a"):
            views.render_sync("home")

    @pytest.mark.asyncio
    async def test_cycle_in_async_render(self, views):
        views.collection("layout").add("a", {"content": "{% body %}", "layout": "a"})
        views.collection("page").add("home", {"content": "x", "layout": "a"})
        with pytest.raises(LayoutCycleError):
            await views.render_async("home")

class TestMissingLayouts:
    def test_unknown_layout_passes_content_through(self, views):
        views.collection("page").add("home", {"content": "inner", "layout": "nowhere"})
        assert views.render_sync("home") == "inner"

    def test_unknown_layout_strict(self, strict_views):
        strict_views.collection("page").add("home", {"content": "inner", "layout": "nowhere"})
        with pytest.raises(MissingTemplateError):
            strict_views.render_sync("home")

    def test_layout_without_body_tag(self, views):
        views.collection("layout").add("broken", "no tag here")
        views.collection("page").add("home", {"content": "inner", "layout": "broken"})
        with pytest.raises(ValidationError):
            views.render_sync("home")

class TestDefaultLayout:
    def test_pages_receive_default_layout(self):
        views = ViewCache(layout="default")
        views.collection("layout").add("default", "[{% body %}]")
        views.collection("page").add("home", "main")
        assert views.render_sync("home") == "[main]"

    def test_partials_do_not_receive_default_layout(self):
        views = ViewCache(layout="default")
        views.collection("layout").add("default", "[{% body %}]")
        views.collection("partial").add("sidebar", "side")
        sidebar = views.collection("partial").get("sidebar")
        assert views.render_sync(sidebar) == "side"

    def test_partials_use_partial_layout(self):
        views = ViewCache(layout="default", partial_layout="boxed")
        views.collection("layout").add("default", "[{% body %}]")
        views.collection("layout").add("boxed", "({% body %})")
        views.collection("partial").add("sidebar", "side")
        assert views.render_sync(views.collection("partial").get("sidebar")) == "(side)"

def test_custom_layout_tag_and_delimiters():
    views = ViewCache(layout_tag="content", layout_delims=["<<", ">>"])
    views.collection("layout").add("base", "<main><< content >></main>")
    views.collection("page").add("home", {"content": "hi", "layout": "base"})
    assert views.render_sync("home") == "<main>hi</main>"

def test_layout_collections_limits_search(views):
    views.declare("theme", layout=True)
    views.collection("theme").add("base", "theme {% body %}")
    views.collection("layout").add("base", "layout {% body %}")
    views.config.layout_collections = ["themes"]
    views.collection("page").add("home", {"content": "x", "layout": "base"})
    assert views.render_sync("home") == "theme x"
