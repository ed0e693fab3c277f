# viewcache/core/templating/helpers.py
"""
The helper registry shared by every engine, plus the placeholder machinery that
lets engines which call helpers synchronously use async helpers.

During an async render each async helper is handed to the engine as a plain
function that records the call and returns a placeholder token. Once the engine
is done, AsyncHelperResolver awaits every recorded call together and swaps each
token for its result, in the order the tokens were handed out.
"""
import asyncio
import functools
import inspect
import re
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple
import structlog

from viewcache.config.settings import ViewCacheConfig
from viewcache.exceptions import HelperError, HelperNotFoundError, ValidationError

log = structlog.get_logger(__name__)

PLACEHOLDER_PREFIX = "__VIEWCACHE_ASYNC_"

@dataclass
class HelperEntry:
    name: str
    fn: Callable[..., Any]
    takes_context: bool = False
    is_async: bool = False

    def bind(self, context: Dict[str, Any]) -> Callable[..., Any]:
        if not self.takes_context:
            return self.fn
        return functools.partial(self.fn, context)

def _empty_helper(*args: Any, **kwargs: Any) -> str:
    return ""

class HelperRegistry:
    def __init__(self, config: Optional[ViewCacheConfig] = None):
        self.config = config or ViewCacheConfig()
        self._sync: Dict[str, HelperEntry] = {}
        self._async: Dict[str, HelperEntry] = {}

    def add_helper(self, name: str, fn: Callable[..., Any], takes_context: bool = False) -> None:
        if not callable(fn):
            raise ValidationError(f"helper '{name}' must be callable")
        self._sync[name] = HelperEntry(name, fn, takes_context)

    def add_async_helper(self, name: str, fn: Callable[..., Any], takes_context: bool = False) -> None:
        if not inspect.iscoroutinefunction(fn):
            raise ValidationError(f"async helper '{name}' must be an async function")
        self._async[name] = HelperEntry(name, fn, takes_context, is_async=True)

    def has_helper(self, name: str) -> bool:
        return name in self._sync

    def has_async_helper(self, name: str) -> bool:
        return name in self._async

    def get_helper(self, name: str) -> Optional[HelperEntry]:
        return self._sync.get(name)

    def get_async_helper(self, name: str) -> Optional[HelperEntry]:
        return self._async.get(name)

    def missing(self, name: str, is_async: bool = False) -> str:
        """
        Called when a template invokes a helper nobody registered. Logs and
        yields "" so the render goes on, or raises HelperNotFoundError in
        strict mode.
        """
        if self.config.strict_errors:
            raise HelperNotFoundError(f"{'async ' if is_async else ''}helper '{name}' is not registered")
        log.warning("helper_not_found", helper=name, is_async=is_async)
        return ""

    def resolve(self, name: str, is_async: bool = False) -> Callable[..., Any]:
        # looks a helper up by name; a miss yields an empty-string helper unless strict.
        entry = (self._async if is_async else self._sync).get(name)
        if entry is not None:
            return entry.fn
        self.missing(name, is_async)
        return _empty_helper

    def names(self) -> List[str]:
        return sorted(set(self._sync) | set(self._async))

    def bind_sync(self, context: Dict[str, Any], extra: Optional[Dict[str, Callable[..., Any]]] = None) -> Dict[str, Callable[..., Any]]:
        bound = {name: entry.bind(context) for name, entry in self._sync.items()}
        bound.update(extra or {})
        return bound

    def bind_async(
        self,
        context: Dict[str, Any],
        resolver: "AsyncHelperResolver",
        extra: Optional[Dict[str, Callable[..., Any]]] = None,
    ) -> Dict[str, Callable[..., Any]]:
        # sync helpers first; an async helper of the same name replaces it with a deferred call.
        bound = self.bind_sync(context, extra)
        for name, entry in self._async.items():
            bound[name] = resolver.defer(name, entry.bind(context))
        return bound

class AsyncHelperResolver:
    """Per-render record of deferred async helper calls and their placeholder tokens."""

    def __init__(self):
        self._namespace = uuid.uuid4().hex[:12]
        self._pending: Dict[str, Tuple[str, Callable[..., Any], tuple, dict]] = {}
        self._values: Dict[str, str] = {}
        self._token_pattern = re.compile(re.escape(f"{PLACEHOLDER_PREFIX}{self._namespace}_") + r"\d+__")

    def defer(self, name: str, fn: Callable[..., Any]) -> Callable[..., str]:
        def deferred_helper(*args: Any, **kwargs: Any) -> str:
            token = f"{PLACEHOLDER_PREFIX}{self._namespace}_{len(self._pending)}__"
            self._pending[token] = (name, fn, args, kwargs)
            log.debug("async_helper_deferred", helper=name, token=token)
            return token
        deferred_helper.__name__ = name
        return deferred_helper

    @property
    def pending_count(self) -> int:
        return len(self._pending) - len(self._values)

    async def _settle_pending(self) -> None:
        unresolved = [token for token in self._pending if token not in self._values]
        while unresolved:
            calls = [self._pending[token] for token in unresolved]
            tasks = [asyncio.ensure_future(fn(*args, **kwargs)) for _name, fn, args, kwargs in calls]
            try:
                results = await asyncio.gather(*tasks)
            except BaseException:
                # the first failure propagates; its siblings must not outlive the render.
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
            for token, value in zip(unresolved, results):
                self._values[token] = "" if value is None else str(value)
            # a helper may itself have deferred further calls on this resolver.
            unresolved = [token for token in self._pending if token not in self._values]

    async def resolve(self, content: str) -> str:
        if not self._pending:
            return content
        await self._settle_pending()

        resolved = content
        for _ in range(len(self._values) + 1):
            if not self._token_pattern.search(resolved):
                break
            resolved = self._token_pattern.sub(lambda m: self._values.get(m.group(0), m.group(0)), resolved)

        leftover = self._token_pattern.findall(resolved)
        if leftover:
            raise HelperError(f"unresolved async helper placeholders: {', '.join(leftover)}")
        log.debug("async_helpers_resolved", count=len(self._values))
        return resolved
