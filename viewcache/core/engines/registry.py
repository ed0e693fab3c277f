# viewcache/core/engines/registry.py
"""
Maps canonical file extensions to engine adapters and resolves which extension
a template renders with.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union
import inspect
import structlog

from viewcache.core.delimiters import DelimiterManager
from viewcache.core.records import TemplateRecord
from viewcache.exceptions import MissingEngineError, ValidationError
from viewcache.util import arrayify, ext_from_path, first_present, normalize_ext

log = structlog.get_logger(__name__)

@dataclass
class EngineEntry:
    """
    A registered engine adapter. Every adapter method is optional, but an
    adapter must provide `render_sync` or `render` to be usable:

    - compile(content, options) -> compiled template (memoized by the pipeline)
    - render_sync(content_or_compiled, options) -> str
    - async render(content_or_compiled, options) -> str

    `options` carries `context`, `helpers`, `partials` and `delims` along with
    the options the engine was registered with.
    """
    ext: str
    adapter: Any
    options: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return getattr(self.adapter, "name", type(self.adapter).__name__)

    @property
    def can_compile(self) -> bool:
        return callable(getattr(self.adapter, "compile", None))

    @property
    def can_render_sync(self) -> bool:
        return callable(getattr(self.adapter, "render_sync", None))

    @property
    def can_render_async(self) -> bool:
        return inspect.iscoroutinefunction(getattr(self.adapter, "render", None))

class EngineRegistry:
    def __init__(self, delimiters: DelimiterManager):
        self.delimiters = delimiters
        self._engines: Dict[str, EngineEntry] = {}

    def register_engine(self, exts: Union[str, List[str]], adapter: Any, **options: Any) -> List[EngineEntry]:
        candidate = EngineEntry("", adapter)
        if not (candidate.can_render_sync or candidate.can_render_async):
            raise ValidationError(f"engine {candidate.name} implements neither render_sync nor an async render")

        entries = []
        for raw_ext in arrayify(exts):
            ext = normalize_ext(raw_ext)
            if not ext:
                raise ValidationError(f"invalid engine extension {raw_ext!r}")
            entry = EngineEntry(ext, adapter, dict(options))
            self._engines[ext] = entry
            delims = options.get("delims")
            if delims:
                self.delimiters.add_delims(ext, delims, options.get("escape"))
            log.debug("engine_registered", ext=ext, engine=entry.name,
                      can_compile=entry.can_compile, sync=entry.can_render_sync, async_=entry.can_render_async)
            entries.append(entry)
        return entries

    def has(self, ext: Optional[str]) -> bool:
        return normalize_ext(ext) in self._engines

    def get_engine(self, ext: Optional[str]) -> EngineEntry:
        canonical = normalize_ext(ext)
        entry = self._engines.get(canonical) if canonical else None
        if entry is None:
            raise MissingEngineError(canonical or str(ext))
        return entry

    def extensions(self) -> List[str]:
        return list(self._engines)

    def resolve_extension(
        self,
        record: TemplateRecord,
        locals: Optional[Mapping[str, Any]] = None,
        override: Optional[str] = None,
        default: Optional[str] = None,
    ) -> Optional[str]:
        """
        Extension a template renders with. First non-empty of: the per-render
        override, the template's `engine` option, `engine`/`ext` from locals,
        the template's own engine field, the extension of its path, and the
        configured default engine.
        """
        locals = locals or {}
        candidate = first_present([
            override,
            record.options.get("engine"),
            locals.get("engine"),
            locals.get("ext"),
            record.engine,
            ext_from_path(record.path),
            default,
        ])
        return normalize_ext(candidate)
