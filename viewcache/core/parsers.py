# viewcache/core/parsers.py
"""
Per-extension parser stacks run on templates as they are added.

A parser is `fn(record) -> None` and mutates the record's content and data.
The `.md` stack extracts YAML front matter; everything else goes through the
`*` stack, which does nothing by default.
"""
import re
from typing import Callable, Dict, List, Optional
import yaml
import structlog

from viewcache.core.records import TemplateRecord
from viewcache.exceptions import ParserError
from viewcache.util import WILDCARD_EXT, arrayify, ext_from_path, merge_dicts, normalize_ext

log = structlog.get_logger(__name__)

FRONTMATTER_RE = re.compile(r"^---\s*$")

Parser = Callable[[TemplateRecord], None]

def parse_front_matter(record: TemplateRecord) -> None:
    # front-matter values win over data passed in when the template was added.
    lines = record.content.splitlines(keepends=True)
    if not lines or not FRONTMATTER_RE.match(lines[0].strip()):
        return

    end_index = None
    for idx in range(1, len(lines)):
        if FRONTMATTER_RE.match(lines[idx].strip()):
            end_index = idx
            break
    if end_index is None:
        raise ParserError(f"front matter in '{record.key}' is missing its closing '---'")

    try:
        front_matter = yaml.safe_load("".join(lines[1:end_index])) or {}
    except yaml.YAMLError as exc:
        raise ParserError(f"invalid front matter in '{record.key}': {exc}") from exc
    if not isinstance(front_matter, dict):
        raise ParserError(f"front matter in '{record.key}' must be a mapping")

    layout = front_matter.pop("layout", None)
    if layout:
        record.layout = layout
    record.data = merge_dicts(record.data, front_matter)
    record.content = "".join(lines[end_index + 1:])

def noop_parser(record: TemplateRecord) -> None:
    return None

class ParserRegistry:
    def __init__(self):
        self._stacks: Dict[str, List[Parser]] = {}

    def register(self, ext: str, parsers) -> None:
        canonical = normalize_ext(ext)
        for parser in arrayify(parsers):
            if not callable(parser):
                raise ParserError(f"parser for '{canonical}' must be callable")
            self._stacks.setdefault(canonical, []).append(parser)

    def get_parsers(self, ext: Optional[str]) -> List[Parser]:
        canonical = normalize_ext(ext)
        if canonical and canonical in self._stacks:
            return self._stacks[canonical]
        return self._stacks.get(WILDCARD_EXT, [])

    def parse(self, record: TemplateRecord, ext: Optional[str] = None) -> TemplateRecord:
        stack = self.get_parsers(ext or ext_from_path(record.path) or record.engine)
        for parser in stack:
            try:
                parser(record)
            except ParserError:
                raise
            except Exception as e:
                raise ParserError(f"parser {getattr(parser, '__name__', parser)!r} failed on '{record.key}': {e}") from e
        log.debug("template_parsed", template_key=record.key, parsers=len(stack))
        return record
