# viewcache/core/pipeline.py
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Union
import structlog

from viewcache.config.loader import apply_settings
from viewcache.config.settings import Role, ViewCacheConfig
from viewcache.core.collections import CollectionRegistry, CollectionView
from viewcache.core.delimiters import DelimiterManager, DelimiterSet, DelimsSpec
from viewcache.core.engines import EngineEntry, EngineRegistry, HandlebarsEngine, JinjaEngine, NoopEngine
from viewcache.core.middleware import MiddlewareRouter, Route
from viewcache.core.parsers import ParserRegistry, noop_parser, parse_front_matter
from viewcache.core.records import TemplateRecord
from viewcache.core.store import ViewStore
from viewcache.core.templating.context_builder import build_template_context
from viewcache.core.templating.helpers import HelperRegistry
from viewcache.core.templating.layouts import LayoutResolver
from viewcache.core.templating.renderer import TemplateRenderer
from viewcache.util import WILDCARD_EXT, merge_dicts

log = structlog.get_logger(__name__)

DEFAULT_COLLECTIONS = (
    ("page", "pages", {"renderable": True}),
    ("layout", "layouts", {"layout": True}),
    ("partial", "partials", {"partial": True}),
)

class ViewCache:
    """
    One self-contained template cache: its collections, engines, helpers,
    middleware and global data. Nothing is shared between instances.

        views = ViewCache(layout="default")
        views.collection("layout").add("default", "<main>{% body %}</main>")
        views.collection("page").add("home.hbs", "Hello {{name}}", {"name": "Ada"})
        views.render_sync("home.hbs")
    """

    def __init__(self, config: Optional[ViewCacheConfig] = None, data: Optional[Mapping[str, Any]] = None,
                 *, defaults: bool = True, **overrides: Any):
        self.config: ViewCacheConfig = config or ViewCacheConfig()
        if overrides:
            apply_settings(self.config, overrides)
        self.log = structlog.get_logger(f"{__name__}.{self.__class__.__name__}")
        self.data: Dict[str, Any] = dict(data or {})

        self.store = ViewStore()
        self.delimiters = DelimiterManager(self.config.default_delims)
        self.engines = EngineRegistry(self.delimiters)
        self.helpers = HelperRegistry(self.config)
        self.parsers = ParserRegistry()
        self.middleware = MiddlewareRouter()
        self.collections = CollectionRegistry(self)
        self.layouts = LayoutResolver(
            self.store,
            self.config,
            layout_plurals=lambda: self.collections.plurals_with_role(Role.LAYOUT),
            is_partial_collection=self.collections.is_partial,
        )
        self.renderer = TemplateRenderer(self)

        if defaults:
            self._register_defaults()

    def _register_defaults(self) -> None:
        self.register_engine(WILDCARD_EXT, NoopEngine())
        self.register_engine([".hbs", ".handlebars"], HandlebarsEngine())
        self.register_engine([".j2", ".jinja", ".html", ".tmpl", ".md"], JinjaEngine())
        self.parsers.register(".md", parse_front_matter)
        self.parsers.register(WILDCARD_EXT, noop_parser)
        for name, plural, roles in DEFAULT_COLLECTIONS:
            self.declare(name, plural, **roles)
        self.log.debug("default_registrations_complete", engines=self.engines.extensions(),
                       collections=self.collections.plurals())

    # --- collections ---
    def declare(self, name: str, plural: Optional[str] = None, *, renderable: bool = False, layout: bool = False,
                partial: bool = False, loader: Optional[Callable[..., Mapping[str, Any]]] = None,
                engine: Optional[str] = None, **options: Any) -> CollectionView:
        return self.collections.declare(name, plural, renderable=renderable, layout=layout, partial=partial,
                                        loader=loader, engine=engine, **options)

    def collection(self, name: str) -> CollectionView:
        return self.collections.get(name)

    # --- engines, delimiters, helpers, parsers, middleware ---
    def register_engine(self, exts: Union[str, List[str]], adapter: Any, **options: Any) -> List[EngineEntry]:
        return self.engines.register_engine(exts, adapter, **options)

    def get_engine(self, ext: str) -> EngineEntry:
        return self.engines.get_engine(ext)

    def add_delims(self, name: str, delims: Sequence[str], escape: Optional[Sequence[str]] = None) -> DelimiterSet:
        return self.delimiters.add_delims(name, delims, escape)

    def add_helper(self, name: str, fn: Callable[..., Any], takes_context: bool = False) -> None:
        self.helpers.add_helper(name, fn, takes_context)

    def add_async_helper(self, name: str, fn: Callable[..., Any], takes_context: bool = False) -> None:
        self.helpers.add_async_helper(name, fn, takes_context)

    def helper(self, name: str, is_async: bool = False) -> Callable[..., Any]:
        return self.helpers.resolve(name, is_async)

    def parser(self, ext: str, fn) -> None:
        self.parsers.register(ext, fn)

    def route(self, pattern=None) -> Route:
        return self.middleware.route(pattern)

    # --- context ---
    def set_data(self, key: Union[str, Mapping[str, Any]], value: Any = None) -> "ViewCache":
        if isinstance(key, Mapping):
            self.data = merge_dicts(self.data, key)
        else:
            self.data[key] = value
        return self

    def build_context(self, record: TemplateRecord, locals: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
        return build_template_context(
            record,
            locals,
            global_data=self.data,
            store=self.store,
            partial_plurals=self.collections.plurals_with_role(Role.PARTIAL),
            layout_plurals=self.collections.plurals_with_role(Role.LAYOUT),
            config=self.config,
        )

    # --- rendering ---
    def render_sync(self, template: Union[str, TemplateRecord], locals: Optional[Mapping[str, Any]] = None, *,
                    engine: Optional[str] = None, delims: Optional[DelimsSpec] = None) -> str:
        return self.renderer.render_sync(template, locals, engine=engine, delims=delims)

    async def render_async(self, template: Union[str, TemplateRecord], locals: Optional[Mapping[str, Any]] = None, *,
                           engine: Optional[str] = None, delims: Optional[DelimsSpec] = None) -> str:
        return await self.renderer.render_async(template, locals, engine=engine, delims=delims)
