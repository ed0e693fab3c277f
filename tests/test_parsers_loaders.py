# tests/test_parsers_loaders.py
"""Tests for front-matter parsing and the glob file loader."""

import pytest
from pathlib import Path

from viewcache import ViewCache
from viewcache.core.loaders import file_loader
from viewcache.core.records import ByGlobPattern
from viewcache.exceptions import ParserError

class TestFrontMatter:
    def test_front_matter_becomes_data(self, views):
        views.collection("page").add("post.md", "---\ntitle: Hello\ntags: [a, b]\n---\n# {{ title }}\n")
        record = views.collection("page").get("post.md")
        assert record.data == {"title": "Hello", "tags": ["a", "b"]}
        assert record.content == "# {{ title }}\n"
        assert record.orig.startswith("---")
        assert views.render_sync("post.md") == "# Hello\n"

    def test_front_matter_wins_over_passed_data(self, views):
        views.collection("page").add("post.md", {"content": "---\ntitle: fm\n---\nx", "data": {"title": "passed", "keep": 1}})
        assert views.collection("page").get("post.md").data == {"title": "fm", "keep": 1}

    def test_front_matter_layout(self, views):
        views.collection("layout").add("base", "<article>{% body %}</article>")
        views.collection("page").add("post.md", "---\nlayout: base\n---\nbody")
        assert views.collection("page").get("post.md").layout == "base"
        assert views.render_sync("post.md") == "<article>body</article>"

    def test_no_front_matter(self, views):
        views.collection("page").add("plain.md", "just markdown")
        assert views.collection("page").get("plain.md").data == {}

    def test_unclosed_front_matter(self, views):
        with pytest.raises(ParserError):
            views.collection("page").add("bad.md", "---\ntitle: x\n")

    def test_malformed_yaml(self, views):
        with pytest.raises(ParserError):
            views.collection("page").add("bad.md", "---\ntitle: [unclosed\n---\nbody")

    def test_non_mapping_front_matter(self, views):
        with pytest.raises(ParserError):
            views.collection("page").add("bad.md", "---\n- a\n- b\n---\nbody")

    def test_custom_parser(self, views):
        def strip(record):
            record.content = record.content.strip()

        views.parser(".txt", strip)
        views.collection("page").add("note.txt", "  padded  ")
        assert views.collection("page").get("note.txt").content == "padded"

    def test_parser_failures_are_wrapped(self, views):
        def broken(record):
            raise KeyError("missing")

        views.parser("txt", broken)
        with pytest.raises(ParserError):
            views.collection("page").add("note.txt", "x")

@pytest.fixture
def template_dir(tmp_path: Path) -> Path:
    views_dir = tmp_path / "views"
    (views_dir / "nested").mkdir(parents=True)
    (views_dir / "hello.hbs").write_text("Hello {{name}}")
    (views_dir / "nested" / "deep.j2").write_text("Deep {{ name }}")
    (views_dir / "notes.txt").write_text("ignored")
    return tmp_path

class TestFileLoader:
    def test_loads_matching_files(self, template_dir):
        loaded = file_loader("views/*.hbs", options={"cwd": str(template_dir)})
        assert loaded == {"hello.hbs": {"content": "Hello {{name}}", "path": "views/hello.hbs"}}

    def test_path_keys_and_multiple_patterns(self, template_dir):
        loaded = file_loader(["views/*.hbs", "views/**/*.j2"], options={"cwd": str(template_dir), "key": "path"})
        assert sorted(loaded) == ["views/hello.hbs", "views/nested/deep.j2"]

    def test_no_matches(self, template_dir):
        assert file_loader("views/*.none", options={"cwd": str(template_dir)}) == {}

    def test_collection_with_file_loader(self, template_dir):
        views = ViewCache(cwd=template_dir)
        docs = views.declare("doc", renderable=True, loader=file_loader)
        docs.add_many("views/*.hbs")
        docs.add(ByGlobPattern("views/**/*.j2"))
        assert sorted(docs.keys()) == ["deep.j2", "hello.hbs"]
        assert views.render_sync("hello.hbs", {"name": "Ada"}) == "Hello Ada"
        assert views.render_sync("deep.j2", {"name": "Ada"}) == "Deep Ada"
