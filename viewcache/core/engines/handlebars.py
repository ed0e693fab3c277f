# viewcache/core/engines/handlebars.py
"""
Handlebars engine adapter backed by pybars.

Partials from the render context are compiled and handed to pybars so that
`{{> sidebar}}` works alongside helper calls such as `{{{partial "sidebar"}}}`.
"""
import functools
from typing import Any, Callable, Dict
from markupsafe import Markup
import pybars # type: ignore
import structlog

from viewcache.exceptions import EngineRenderError

log = structlog.get_logger(__name__)

DEFAULT_PARTIAL_CACHE_SIZE = 256

def _drop_this(helper_fn: Callable[..., Any]) -> Callable[..., Any]:
    # pybars passes the current `this` scope first; viewcache helpers take only their own args.
    def pybars_helper(_this, *args, **kwargs):
        result = helper_fn(*args, **kwargs)
        if isinstance(result, Markup):
            # already-rendered markup goes out unescaped, as it does in async renders.
            return pybars.strlist([str(result)])
        return result
    pybars_helper.__name__ = getattr(helper_fn, "__name__", "helper")
    return pybars_helper

def _missing_helper(handler: Callable[[str], str]) -> Callable[..., Any]:
    # pybars calls helperMissing for plain lookups too; only a call with arguments is a helper miss.
    def helper_missing(_this, name, *args, **kwargs):
        if not args and not kwargs:
            return None
        return handler(name)
    return helper_missing

class HandlebarsEngine:
    name = "handlebars"

    def __init__(self, partial_cache_size: int = DEFAULT_PARTIAL_CACHE_SIZE):
        self.handlebars_compiler = pybars.Compiler()
        # compiled partials keyed by source, least recently used dropped first.
        self._compile_partial = functools.lru_cache(maxsize=partial_cache_size)(self._compile_partial_source)

    def compile(self, content: str, options: Dict[str, Any]):
        try:
            return self.handlebars_compiler.compile(content)
        except Exception as e:
            log.error("template_compilation_failed", engine=self.name, error=str(e))
            raise EngineRenderError(f"Failed to compile handlebars template: {e}") from e

    def _compile_partial_source(self, source: str):
        return self.compile(source, {})

    def _compile_partials(self, partials: Dict[str, str]) -> Dict[str, Any]:
        return {name: self._compile_partial(source)
                for name, source in (partials or {}).items() if isinstance(source, str)}

    def _helpers(self, options: Dict[str, Any]) -> Dict[str, Callable[..., Any]]:
        context = options.get("context") or {}
        helpers = {}
        for name, fn in (options.get("helpers") or {}).items():
            if name in context:
                # pybars tries helpers before data; context data wins over a helper of the same name.
                log.debug("helper_shadowed_by_context", helper=name)
                continue
            helpers[name] = _drop_this(fn)
        if options.get("helper_missing") is not None:
            helpers["helperMissing"] = _missing_helper(options["helper_missing"])
        return helpers

    def render_sync(self, template, options: Dict[str, Any]) -> str:
        compiled_template = self.compile(template, options) if isinstance(template, str) else template
        partials = self._compile_partials(options.get("partials") or {})
        try:
            rendered = compiled_template(options.get("context") or {}, helpers=self._helpers(options),
                                         partials=partials)
        except pybars.PybarsError as e:
            raise EngineRenderError(f"Handlebars render failed: {e}") from e
        return str(rendered)
