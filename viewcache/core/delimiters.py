# viewcache/core/delimiters.py
"""
Named and per-extension delimiter sets.

A DelimiterSet is the open/close token pair an engine uses to find
interpolation expressions, the regex derived from it, and an optional escape
pair. The escape pair `(from, to)` marks text the engine must not see as a
delimiter: `protect` swaps it for a sentinel before rendering and `restore`
emits `to` in its place afterwards.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Pattern, Sequence, Tuple, Union
import structlog

from viewcache.exceptions import ValidationError
from viewcache.util import WILDCARD_EXT, normalize_ext

log = structlog.get_logger(__name__)

ESCAPE_SENTINEL = "__VIEWCACHE_ESCAPED_DELIM__"

DelimsSpec = Union[str, Sequence[str], "DelimiterSet"]

@dataclass(frozen=True)
class DelimiterSet:
    name: str
    open: str
    close: str
    escape: Optional[Tuple[str, str]] = None
    regex: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        if not self.open or not self.close:
            raise ValidationError(f"delimiter set '{self.name}' needs both an open and a close token")
        pattern = re.compile(re.escape(self.open) + r"\s*(.+?)\s*" + re.escape(self.close), re.DOTALL)
        object.__setattr__(self, "regex", pattern)

    @property
    def pair(self) -> Tuple[str, str]:
        return (self.open, self.close)

    def protect(self, content: str) -> str:
        if not self.escape or self.escape[0] not in content:
            return content
        return content.replace(self.escape[0], ESCAPE_SENTINEL)

    def restore(self, rendered: str) -> str:
        if not self.escape:
            return rendered
        return rendered.replace(ESCAPE_SENTINEL, self.escape[1])

    def expressions(self, content: str):
        # inner expressions of every delimited tag, in document order.
        return [m.group(1) for m in self.regex.finditer(content)]

class DelimiterManager:
    """Stores delimiter sets by name or canonical extension and resolves the set for a render."""

    def __init__(self, default_pair: Sequence[str] = ("{{", "}}")):
        self._sets: Dict[str, DelimiterSet] = {}
        self.add_delims(WILDCARD_EXT, default_pair)

    @staticmethod
    def _name(name: str) -> str:
        # extension-looking names share the canonical dotted form with the engine registry.
        if name == WILDCARD_EXT or name.startswith("."):
            return normalize_ext(name)
        return name

    def add_delims(self, name: str, delims: Sequence[str], escape: Optional[Sequence[str]] = None) -> DelimiterSet:
        if isinstance(delims, str) or len(delims) != 2:
            raise ValidationError(f"delimiters for '{name}' must be an (open, close) pair")
        key = self._name(name)
        escape_pair = tuple(escape) if escape else None
        if escape_pair is not None and len(escape_pair) != 2:
            raise ValidationError(f"escape for '{name}' must be a (from, to) pair")
        delimiter_set = DelimiterSet(key, delims[0], delims[1], escape_pair)
        self._sets[key] = delimiter_set
        log.debug("delimiters_registered", name=key, open=delims[0], close=delims[1])
        return delimiter_set

    def get(self, name: Optional[str]) -> Optional[DelimiterSet]:
        if not name:
            return None
        return self._sets.get(self._name(name))

    @property
    def default(self) -> DelimiterSet:
        return self._sets[WILDCARD_EXT]

    def coerce(self, spec: DelimsSpec) -> DelimiterSet:
        # a registered name, an (open, close) pair, or an existing set.
        if isinstance(spec, DelimiterSet):
            return spec
        if isinstance(spec, str):
            found = self.get(spec)
            if found is None:
                raise ValidationError(f"unknown delimiter set '{spec}'")
            return found
        if len(spec) != 2:
            raise ValidationError(f"explicit delimiters must be an (open, close) pair, got {spec!r}")
        return DelimiterSet("inline", spec[0], spec[1])

    def resolve(
        self,
        explicit: Optional[DelimsSpec] = None,
        ext: Optional[str] = None,
        active: Optional[DelimsSpec] = None,
    ) -> DelimiterSet:
        """
        Picks the delimiter set for one render.

        Precedence: delimiters given explicitly on the template or its locals,
        then the set registered for the resolved extension, then the caller's
        active named set, then the "*" default.
        """
        if explicit:
            return self.coerce(explicit)
        if ext and ext != WILDCARD_EXT:
            engine_set = self.get(ext)
            if engine_set is not None:
                return engine_set
        if active:
            return self.coerce(active)
        return self.default
