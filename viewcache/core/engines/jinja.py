# viewcache/core/engines/jinja.py
"""
Jinja2 engine adapter whose variable syntax follows the resolved delimiter set.

One Environment is kept per (open, close) pair, so templates registered under
`<%= name %>` style delimiters and the default `{{ name }}` style render side
by side. Block and comment syntax keep Jinja's defaults.

Calling a name that is neither in the context nor a registered helper goes
through the `helper_missing` render option, so an unknown helper renders as ""
unless the cache is strict.
"""
from contextvars import ContextVar
from typing import Any, Callable, Dict, Optional, Tuple
from jinja2 import BaseLoader, Environment, TemplateError as JinjaTemplateError, Undefined
import structlog

from viewcache.core.delimiters import DelimiterSet
from viewcache.exceptions import EngineRenderError

log = structlog.get_logger(__name__)

_helper_missing: ContextVar[Optional[Callable[[str], str]]] = ContextVar("viewcache_jinja_helper_missing", default=None)

class HelperMissingUndefined(Undefined):
    """Undefined whose call hands the name to the active render's miss handler."""
    __slots__ = ()
    # Context.call looks this up on the callee; Undefined would raise on the lookup itself.
    jinja_pass_arg = None

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        handler = _helper_missing.get()
        if handler is None or self._undefined_name is None:
            return super().__call__(*args, **kwargs)
        return handler(self._undefined_name)

class JinjaEngine:
    name = "jinja"

    def __init__(self, **env_options: Any):
        self.env_options = {
            "autoescape": False,
            "keep_trailing_newline": True,
            "undefined": HelperMissingUndefined,
            **env_options,
        }
        self._environments: Dict[Tuple[str, str], Environment] = {}

    def environment(self, delims: DelimiterSet = None) -> Environment:
        pair = delims.pair if delims else ("{{", "}}")
        env = self._environments.get(pair)
        if env is None:
            env = Environment(
                loader=BaseLoader(),
                variable_start_string=pair[0],
                variable_end_string=pair[1],
                **self.env_options,
            )
            self._environments[pair] = env
            log.debug("jinja_environment_created", open=pair[0], close=pair[1])
        return env

    def compile(self, content: str, options: Dict[str, Any]):
        try:
            return self.environment(options.get("delims")).from_string(content)
        except JinjaTemplateError as e:
            raise EngineRenderError(f"Failed to compile jinja template: {e}") from e

    def render_sync(self, template, options: Dict[str, Any]) -> str:
        compiled_template = self.compile(template, options) if isinstance(template, str) else template
        # context data wins over a helper of the same name.
        render_vars = {**(options.get("helpers") or {}), **(options.get("context") or {})}
        token = _helper_missing.set(options.get("helper_missing"))
        try:
            return compiled_template.render(render_vars)
        except JinjaTemplateError as e:
            raise EngineRenderError(f"Jinja render failed: {e}") from e
        finally:
            _helper_missing.reset(token)

    async def render(self, template, options: Dict[str, Any]) -> str:
        return self.render_sync(template, options)
