# viewcache/core/templating/layouts.py
"""
Wraps content in its chain of layouts.

Starting from the template's own layout key, each layout's body tag is replaced
with the content accumulated so far, then the walk moves on to that layout's
own layout. A layout key seen twice in one walk is a cycle.
"""
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, List, Mapping, Optional, Pattern, Tuple
import structlog

from viewcache.config.settings import ViewCacheConfig
from viewcache.core.records import TemplateRecord
from viewcache.core.store import ViewStore
from viewcache.exceptions import LayoutCycleError, MissingTemplateError, ValidationError

log = structlog.get_logger(__name__)

class LayoutStage(Enum):
    UNWRAPPED = "unwrapped"
    WRAPPING = "wrapping"
    WRAPPED = "wrapped"

@dataclass
class LayoutState:
    # per-call bookkeeping; never stored on the template record.
    content: str
    stage: LayoutStage = LayoutStage.UNWRAPPED
    chain: List[str] = field(default_factory=list)

def body_tag_pattern(tag: str, delims: Tuple[str, str]) -> Pattern:
    return re.compile(re.escape(delims[0]) + r"\s*" + re.escape(tag) + r"\s*" + re.escape(delims[1]))

class LayoutResolver:
    def __init__(
        self,
        store: ViewStore,
        config: ViewCacheConfig,
        layout_plurals: Callable[[], Iterable[str]],
        is_partial_collection: Callable[[Optional[str]], bool],
    ):
        self.store = store
        self.config = config
        self._layout_plurals = layout_plurals
        self._is_partial_collection = is_partial_collection

    @property
    def tag_pattern(self) -> Pattern:
        return body_tag_pattern(self.config.layout_tag, self.config.layout_delims)

    def search_order(self) -> List[str]:
        # explicit ordered subset when configured, declaration order otherwise.
        declared = list(self._layout_plurals())
        if self.config.layout_collections:
            return [plural for plural in self.config.layout_collections if plural in declared]
        return declared

    def find_layout(self, key: str) -> Optional[TemplateRecord]:
        for plural in self.search_order():
            found = self.store.get(plural, key)
            if found is not None:
                return found
        return None

    def resolve_layout_key(self, record: TemplateRecord, locals: Optional[Mapping[str, Any]] = None) -> Optional[str]:
        """
        The first layout to apply: the template's `layout` field, then a
        `layout` value in the template's locals/data or the call locals, then
        the configured default. Templates from partial collections never get
        the global default; they fall back to `partial_layout`.
        """
        locals = locals or {}
        for candidate in (record.layout, locals.get("layout"), record.locals.get("layout"), record.data.get("layout")):
            if candidate:
                return candidate
        if self._is_partial_collection(record.collection):
            return self.config.partial_layout
        return self.config.layout

    def apply(self, record: TemplateRecord, locals: Optional[Mapping[str, Any]] = None) -> LayoutState:
        state = LayoutState(content=record.content)
        current = self.resolve_layout_key(record, locals)
        if not current:
            state.stage = LayoutStage.WRAPPED
            return state

        pattern = self.tag_pattern
        visited = set()
        state.stage = LayoutStage.WRAPPING
        while current:
            if current in visited:
                raise LayoutCycleError(state.chain + [current])
            visited.add(current)

            layout_record = self.find_layout(current)
            if layout_record is None:
                if self.config.strict_errors:
                    raise MissingTemplateError(current, self.search_order())
                log.warning("layout_not_found_passing_content_through", template_key=record.key, layout=current)
                break

            if not pattern.search(layout_record.content):
                raise ValidationError(
                    f"layout '{current}' has no {self.config.layout_delims[0]} {self.config.layout_tag} "
                    f"{self.config.layout_delims[1]} tag")
            wrapped_content = state.content
            state.content = pattern.sub(lambda _m: wrapped_content, layout_record.content)
            state.chain.append(current)
            current = layout_record.layout

        state.stage = LayoutStage.WRAPPED
        log.debug("layouts_applied", template_key=record.key, chain=state.chain)
        return state
