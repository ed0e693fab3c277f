# viewcache/core/middleware.py
"""
Path-routed middleware run at fixed points of a template's life.

    app.route(r"\\.md$").before(fn)   # before rendering, on the render's clone
    app.route(r"\\.md$").after(fn)    # on the RenderResult after rendering
    app.route(r"\\.md$").load(fn)     # when a template is added to a collection
    app.route(r"\\.md$").all(fn)      # every phase

Middleware receives the record (or result) and mutates it in place; it may be
an async function, which is awaited in async renders. Raising plays the role of
`next(err)`: the error is logged and the remaining middleware still runs.
"""
import inspect
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Pattern, Union
import structlog

from viewcache.config.settings import Phase

log = structlog.get_logger(__name__)

@dataclass
class RouteEntry:
    pattern: Optional[Pattern]
    fn: Callable[[Any], Any]

    def matches(self, path: str) -> bool:
        return self.pattern is None or bool(self.pattern.search(path or ""))

class Route:
    def __init__(self, router: "MiddlewareRouter", pattern: Optional[Pattern]):
        self.router = router
        self.pattern = pattern

    def _add(self, phase: Phase, fn: Callable[[Any], Any]) -> "Route":
        self.router.use(phase, fn, self.pattern)
        return self

    def load(self, fn): return self._add(Phase.LOAD, fn)
    def before(self, fn): return self._add(Phase.BEFORE, fn)
    def after(self, fn): return self._add(Phase.AFTER, fn)

    def all(self, fn):
        for phase in Phase:
            self._add(phase, fn)
        return self

class MiddlewareRouter:
    def __init__(self):
        self._stacks: Dict[Phase, List[RouteEntry]] = {phase: [] for phase in Phase}

    def route(self, pattern: Union[str, Pattern, None] = None) -> Route:
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
        return Route(self, compiled)

    def use(self, phase: Phase, fn: Callable[[Any], Any], pattern: Optional[Pattern] = None) -> None:
        self._stacks[phase].append(RouteEntry(pattern, fn))

    def matching(self, phase: Phase, path: str) -> List[RouteEntry]:
        return [entry for entry in self._stacks[phase] if entry.matches(path)]

    def run_sync(self, phase: Phase, target: Any, path: str) -> None:
        for entry in self.matching(phase, path):
            try:
                outcome = entry.fn(target)
                if inspect.isawaitable(outcome):
                    # cannot be awaited from a blocking render; drop it cleanly.
                    if inspect.iscoroutine(outcome):
                        outcome.close()
                    log.warning("async_middleware_skipped_in_sync_render", phase=phase.value, path=path,
                                middleware=getattr(entry.fn, "__name__", repr(entry.fn)))
            except Exception as e:
                log.error("middleware_failed", phase=phase.value, path=path,
                          middleware=getattr(entry.fn, "__name__", repr(entry.fn)), error=str(e), exc_info=True)

    async def run_async(self, phase: Phase, target: Any, path: str) -> None:
        for entry in self.matching(phase, path):
            try:
                outcome = entry.fn(target)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as e:
                log.error("middleware_failed", phase=phase.value, path=path,
                          middleware=getattr(entry.fn, "__name__", repr(entry.fn)), error=str(e), exc_info=True)
