# viewcache/core/templating/renderer.py
"""
Contains the TemplateRenderer class, which takes one template through the
render stages:

    looked-up -> before-middleware -> compiling -> layout-applied ->
    engine-rendering -> helper-resolving -> after-middleware -> done | failed

`render_sync` and `render_async` share every stage except the engine call, the
async-helper resolution and the way middleware is awaited.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Tuple, Union
import structlog

from viewcache.config.settings import Phase, Role
from viewcache.core.delimiters import DelimiterSet, DelimsSpec
from viewcache.core.engines.registry import EngineEntry
from viewcache.core.records import TemplateRecord
from viewcache.exceptions import EngineCapabilityError, EngineRenderError, ValidationError, ViewCacheError
from viewcache.logging_setup import render_log_context
from viewcache.util import first_present

from .helpers import AsyncHelperResolver

if TYPE_CHECKING:
    from viewcache.core.pipeline import ViewCache

log = structlog.get_logger(__name__)

INLINE_TEMPLATE_KEY = "<inline>"

class RenderStage(Enum):
    LOOKED_UP = "looked-up"
    BEFORE_MIDDLEWARE = "before-middleware"
    COMPILING = "compiling"
    LAYOUT_APPLIED = "layout-applied"
    ENGINE_RENDERING = "engine-rendering"
    HELPER_RESOLVING = "helper-resolving"
    AFTER_MIDDLEWARE = "after-middleware"
    DONE = "done"
    FAILED = "failed"

@dataclass
class RenderResult:
    # handed to after-middleware; middleware may rewrite `content`.
    record: TemplateRecord
    content: str
    ext: Optional[str] = None

    @property
    def path(self) -> str:
        return self.record.path

@dataclass
class RenderJob:
    record: TemplateRecord
    source: Optional[TemplateRecord]
    locals: Dict[str, Any]
    mode: str
    engine_override: Optional[str] = None
    active_delims: Optional[DelimsSpec] = None
    stage: RenderStage = RenderStage.LOOKED_UP
    context: Dict[str, Any] = field(default_factory=dict)
    ext: Optional[str] = None
    engine: Optional[EngineEntry] = None
    delims: Optional[DelimiterSet] = None
    cache_hit: bool = False

class TemplateRenderer:
    """Runs templates through layouts, engines, helpers and middleware for one ViewCache."""

    def __init__(self, app: "ViewCache"):
        self.app = app

    # --- stage: lookup ---
    def lookup(self, template: Union[str, TemplateRecord]) -> Tuple[Optional[TemplateRecord], TemplateRecord]:
        """Returns (stored record or None, clone to render). Unknown strings render as inline content."""
        if isinstance(template, TemplateRecord):
            return template, template.clone()
        if not isinstance(template, str):
            raise ValidationError(f"render() expects a template record or a string, got {type(template).__name__}")
        for plural in self.app.collections.plurals_with_role(Role.RENDERABLE):
            stored = self.app.store.get(plural, template)
            if stored is not None:
                return stored, stored.clone()
        log.debug("rendering_string_as_inline_template", length=len(template))
        return None, TemplateRecord(key=INLINE_TEMPLATE_KEY, path=INLINE_TEMPLATE_KEY, content=template)

    def _start(self, template, locals, mode: str, engine: Optional[str], delims: Optional[DelimsSpec]) -> RenderJob:
        source, record = self.lookup(template)
        if record.content is None or not isinstance(record.content, str):
            raise ValidationError(f"template '{record.key}' has no content to render")
        return RenderJob(record, source, dict(locals or {}), mode, engine, delims)

    # --- stage: context, engine and delimiter resolution ---
    def _prepare(self, job: RenderJob) -> None:
        record = job.record
        job.context = self.app.build_context(record, job.locals)
        selector_locals = {**record.locals, **job.locals}
        job.ext = self.app.engines.resolve_extension(
            record, selector_locals, override=job.engine_override, default=self.app.config.default_engine)
        job.engine = self.app.engines.get_engine(job.ext)
        explicit_delims = first_present([record.options.get("delims"), selector_locals.get("delims")])
        job.delims = self.app.delimiters.resolve(explicit_delims, job.ext, job.active_delims)

    # --- stage: layouts + compile (cached) ---
    def _signature(self, job: RenderJob) -> Tuple[Any, ...]:
        layout_key = self.app.layouts.resolve_layout_key(job.record, job.locals)
        return (job.record.content, layout_key, job.ext, id(job.engine.adapter),
                job.delims.pair, job.delims.escape, self.app.store.revision, self.app.config.layout_tag,
                tuple(self.app.config.layout_delims), tuple(self.app.config.layout_collections or ()))

    def _compile(self, job: RenderJob) -> Any:
        job.stage = RenderStage.COMPILING
        signature = self._signature(job)
        cached = job.record.compiled_for(signature)
        if cached is not None:
            job.cache_hit = True
            job.stage = RenderStage.LAYOUT_APPLIED
            log.debug("compiled_template_cache_hit", template_key=job.record.key)
            return cached

        layout_state = self.app.layouts.apply(job.record, job.locals)
        job.stage = RenderStage.LAYOUT_APPLIED
        final_content = job.delims.protect(layout_state.content)
        if not job.engine.can_compile:
            return final_content

        try:
            compiled = job.engine.adapter.compile(final_content, self._engine_options(job, {}))
        except ViewCacheError:
            raise
        except Exception as e:
            raise EngineRenderError(f"engine '{job.engine.name}' failed to compile '{job.record.key}': {e}",
                                    job.record.key) from e
        job.record.cache_compiled(compiled, signature)
        # only persist onto the stored record while the clone still matches it.
        if job.source is not None and job.source.content == job.record.content:
            job.source.cache_compiled(compiled, signature)
        log.debug("template_compiled_successfully", template_key=job.record.key, engine=job.engine.name)
        return compiled

    def _engine_options(self, job: RenderJob, helpers: Dict[str, Any]) -> Dict[str, Any]:
        options = dict(job.engine.options)
        options.update({
            "context": job.context,
            "helpers": helpers,
            "partials": job.context.get("partials", {}),
            "delims": job.delims,
            "helper_missing": self.app.helpers.missing,
        })
        return options

    def _engine_error(self, job: RenderJob, e: Exception) -> EngineRenderError:
        log.error("template_rendering_error_occurred", template_key=job.record.key, engine=job.engine.name,
                  error_message=str(e))
        return EngineRenderError(f"engine '{job.engine.name}' failed to render '{job.record.key}': {e}", job.record.key)

    def _fail(self, job: Optional[RenderJob], e: Exception) -> None:
        stage = job.stage.value if job else RenderStage.LOOKED_UP.value
        if job:
            job.stage = RenderStage.FAILED
        log.warning("render_failed", stage=stage, error_type=type(e).__name__, error=str(e))

    # --- public entry points ---
    def render_sync(self, template: Union[str, TemplateRecord], locals: Optional[Mapping[str, Any]] = None, *,
                    engine: Optional[str] = None, delims: Optional[DelimsSpec] = None) -> str:
        job = None
        try:
            job = self._start(template, locals, "sync", engine, delims)
            with render_log_context(job.record.key, job.mode):
                job.stage = RenderStage.BEFORE_MIDDLEWARE
                self.app.middleware.run_sync(Phase.BEFORE, job.record, job.record.path)

                self._prepare(job)
                compiled = self._compile(job)

                job.stage = RenderStage.ENGINE_RENDERING
                if not job.engine.can_render_sync:
                    raise EngineCapabilityError(
                        f"engine '{job.engine.name}' for '{job.ext}' has no render_sync; use render_async")
                helpers = self.app.helpers.bind_sync(job.context)
                try:
                    rendered = job.engine.adapter.render_sync(compiled, self._engine_options(job, helpers))
                except ViewCacheError:
                    raise
                except Exception as e:
                    raise self._engine_error(job, e) from e

                job.stage = RenderStage.HELPER_RESOLVING
                rendered = job.delims.restore(str(rendered))

                job.stage = RenderStage.AFTER_MIDDLEWARE
                result = RenderResult(job.record, rendered, job.ext)
                self.app.middleware.run_sync(Phase.AFTER, result, result.path)

                job.stage = RenderStage.DONE
                log.debug("template_rendered_successfully", cache_hit=job.cache_hit, ext=job.ext)
                return result.content
        except Exception as e:
            self._fail(job, e)
            raise

    async def render_async(self, template: Union[str, TemplateRecord], locals: Optional[Mapping[str, Any]] = None, *,
                           engine: Optional[str] = None, delims: Optional[DelimsSpec] = None) -> str:
        job = None
        try:
            job = self._start(template, locals, "async", engine, delims)
            with render_log_context(job.record.key, job.mode):
                job.stage = RenderStage.BEFORE_MIDDLEWARE
                await self.app.middleware.run_async(Phase.BEFORE, job.record, job.record.path)

                self._prepare(job)
                compiled = self._compile(job)

                job.stage = RenderStage.ENGINE_RENDERING
                resolver = AsyncHelperResolver()
                helpers = self.app.helpers.bind_async(job.context, resolver)
                options = self._engine_options(job, helpers)
                try:
                    if job.engine.can_render_async:
                        rendered = await job.engine.adapter.render(compiled, options)
                    elif job.engine.can_render_sync:
                        rendered = job.engine.adapter.render_sync(compiled, options)
                    else:
                        raise EngineCapabilityError(
                            f"engine '{job.engine.name}' for '{job.ext}' has neither render nor render_sync")
                except ViewCacheError:
                    raise
                except Exception as e:
                    raise self._engine_error(job, e) from e

                job.stage = RenderStage.HELPER_RESOLVING
                rendered = await resolver.resolve(str(rendered))
                rendered = job.delims.restore(rendered)

                job.stage = RenderStage.AFTER_MIDDLEWARE
                result = RenderResult(job.record, rendered, job.ext)
                await self.app.middleware.run_async(Phase.AFTER, result, result.path)

                job.stage = RenderStage.DONE
                log.debug("template_rendered_successfully", cache_hit=job.cache_hit, ext=job.ext)
                return result.content
        except Exception as e:
            self._fail(job, e)
            raise
