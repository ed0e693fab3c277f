# viewcache/core/collections.py
"""
Declares named template collections and the accessors bound to each.

`declare("post", renderable=True)` creates the `posts` store and returns a
CollectionView whose methods (`add`, `add_many`, `get`, `render`,
`render_async`, plus `find`, `filter` and `paginate`) all operate on that one
store. Views are kept in an instance-level registry and looked up by singular
or plural name; nothing is attached to the ViewCache class.
"""
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, FrozenSet, List, Mapping, Optional
from markupsafe import Markup
import pathspec
import structlog

from viewcache.config.settings import Phase, Role
from viewcache.core.loaders import identity_loader
from viewcache.core.records import ByGlobPattern, ByObject, TemplateRecord, coerce_input, normalize_input
from viewcache.exceptions import (
    HelperNotFoundError,
    LoaderError,
    MissingCollectionError,
    MissingTemplateError,
    ValidationError,
)
from viewcache.util import merge_dicts

if TYPE_CHECKING:
    from viewcache.core.pipeline import ViewCache

log = structlog.get_logger(__name__)

GLOB_CHARS = set("*?[")

# context keys that steer how a template renders; a partial must not inherit them.
NON_INHERITED_KEYS = {"partials", "layout", "engine", "ext", "delims"}

@dataclass(frozen=True)
class Collection:
    name: str
    plural: str
    roles: FrozenSet[Role]
    loader: Callable[..., Mapping[str, Any]] = identity_loader
    engine: Optional[str] = None
    options: Mapping[str, Any] = field(default_factory=dict)

    def has_role(self, role: Role) -> bool:
        return role in self.roles

def _compile_match(pattern) -> pathspec.PathSpec:
    patterns = [pattern] if isinstance(pattern, str) else list(pattern)
    return pathspec.PathSpec.from_lines(pathspec.patterns.GitWildMatchPattern, patterns)

class CollectionView:
    def __init__(self, app: "ViewCache", collection: Collection):
        self.app = app
        self.collection = collection

    @property
    def name(self) -> str:
        return self.collection.name

    @property
    def plural(self) -> str:
        return self.collection.plural

    def __repr__(self):
        roles = ",".join(sorted(r.value for r in self.collection.roles))
        return f"<CollectionView {self.name}/{self.plural} roles={roles} templates={len(self.items())}>"

    def items(self) -> Dict[str, TemplateRecord]:
        return self.app.store.all(self.plural)

    def keys(self) -> List[str]:
        return list(self.items())

    def __contains__(self, key: str) -> bool:
        return self.app.store.get(self.plural, key) is not None

    def __len__(self) -> int:
        return len(self.items())

    def add(self, key, value=None, locals: Optional[Mapping[str, Any]] = None) -> "CollectionView":
        template_input = coerce_input(key, value, locals)
        if isinstance(template_input, ByGlobPattern):
            return self.add_many(template_input.pattern, template_input.locals, template_input.options)

        for record in normalize_input(template_input):
            record.collection = self.name
            if not record.engine and self.collection.engine:
                record.engine = self.collection.engine
            self.app.parsers.parse(record)
            self.app.middleware.run_sync(Phase.LOAD, record, record.path)
            self.app.store.set(self.plural, record.key, record)
            log.debug("template_added", collection=self.plural, template_key=record.key, path=record.path)
        return self

    def add_many(self, pattern, locals: Optional[Mapping[str, Any]] = None,
                 options: Optional[Mapping[str, Any]] = None) -> "CollectionView":
        load_options = merge_dicts({"cwd": str(self.app.config.cwd)}, self.collection.options, options)
        loaded = self.collection.loader(pattern, locals, load_options)
        if not isinstance(loaded, Mapping):
            raise LoaderError(f"loader for '{self.plural}' returned {type(loaded).__name__}, expected a mapping")
        if not loaded:
            log.info("loader_returned_no_templates", collection=self.plural)
            return self
        return self.add(ByObject(loaded, locals))

    def find(self, pattern) -> Optional[TemplateRecord]:
        # first template whose key or path matches a glob pattern.
        spec = _compile_match(pattern)
        for key, record in self.items().items():
            if spec.match_file(key) or spec.match_file(record.path):
                return record
        return None

    def get(self, key: str) -> Optional[TemplateRecord]:
        record = self.app.store.get(self.plural, key)
        if record is None and GLOB_CHARS & set(key):
            record = self.find(key)
        if record is None:
            if self.app.config.strict_errors:
                raise MissingTemplateError(key, [self.plural])
            log.debug("template_lookup_missed", collection=self.plural, template_key=key)
        return record

    def filter(self, prop: str, pattern=None) -> Dict[str, TemplateRecord]:
        """
        Templates whose `prop` has a value, optionally matching a glob pattern.

        `prop` is `key`, `path`, or a (dotted) key into the template's data.
        """
        spec = _compile_match(pattern) if pattern else None
        matched: Dict[str, TemplateRecord] = {}
        for key, record in self.items().items():
            if prop == "key":
                value = key
            elif prop == "path":
                value = record.path
            else:
                value = record.data
                for part in prop.split("."):
                    value = value.get(part) if isinstance(value, Mapping) else None
            if value in (None, "", [], {}):
                continue
            if spec is None or spec.match_file(str(value)):
                matched[key] = record
        return matched

    def paginate(self, template: TemplateRecord, limit: int, items: Optional[Mapping[str, TemplateRecord]] = None) -> List[TemplateRecord]:
        """
        Builds list pages from this collection: clones of `template`, each
        carrying `data["pagination"]` with up to `limit` items.
        """
        if limit < 1:
            raise ValidationError("pagination limit must be at least 1")
        source = list((items if items is not None else self.items()).values())
        pages: List[TemplateRecord] = []
        for page_num, start in enumerate(range(0, len(source), limit), start=1):
            page = template.clone()
            page.compiled_fn = None
            page.compiled_signature = None
            page.key = f"{template.key}#{page_num}"
            page.data["pagination"] = {
                "items": source[start:start + limit],
                "collection": self.plural,
                "num": page_num,
                "index": page_num,
                "limit": limit,
                "total": (len(source) + limit - 1) // limit,
            }
            pages.append(page)
        log.debug("collection_paginated", collection=self.plural, pages=len(pages), limit=limit)
        return pages

    def _missing(self, key: str):
        if self.app.config.strict_errors:
            raise MissingTemplateError(key, [self.plural])
        log.warning("template_not_found_for_render", collection=self.plural, template_key=key)

    def render(self, key: str, locals: Optional[Mapping[str, Any]] = None, **render_options: Any) -> str:
        record = self.get(key)
        if record is None:
            self._missing(key)
            return ""
        return self.app.render_sync(record, locals, **render_options)

    async def render_async(self, key: str, locals: Optional[Mapping[str, Any]] = None, **render_options: Any) -> str:
        record = self.get(key)
        if record is None:
            self._missing(key)
            return ""
        return await self.app.render_async(record, locals, **render_options)

    def _helper_locals(self, context: Mapping[str, Any], record: TemplateRecord,
                       locals: Optional[Mapping[str, Any]], kwargs: Mapping[str, Any]) -> Dict[str, Any]:
        # inherited context, then the partial's own data, then explicit helper arguments.
        excluded = NON_INHERITED_KEYS | set(self.app.collections.plurals())
        inherited = {k: v for k, v in context.items() if k not in excluded}
        return merge_dicts(inherited, record.locals, record.data, locals, kwargs)

    def _helper_lookup(self, key: str) -> Optional[TemplateRecord]:
        record = self.app.store.get(self.plural, key)
        if record is None:
            if self.app.config.strict_errors:
                raise HelperNotFoundError(f"helper '{self.name}' could not find '{key}' in {self.plural}")
            log.warning("helper_not_found", helper=self.name, template_key=key, collection=self.plural)
        return record

    def helper(self, context: Mapping[str, Any], key: str, locals: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Markup:
        record = self._helper_lookup(key)
        if record is None:
            return Markup("")
        # rendered output is markup; engines must not escape it a second time.
        return Markup(self.app.render_sync(record, self._helper_locals(context, record, locals, kwargs)))

    async def async_helper(self, context: Mapping[str, Any], key: str, locals: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Markup:
        record = self._helper_lookup(key)
        if record is None:
            return Markup("")
        return Markup(await self.app.render_async(record, self._helper_locals(context, record, locals, kwargs)))

class CollectionRegistry:
    def __init__(self, app: "ViewCache"):
        self.app = app
        self._views: Dict[str, CollectionView] = {}
        self._by_plural: Dict[str, str] = {}

    def declare(
        self,
        name: str,
        plural: Optional[str] = None,
        *,
        renderable: bool = False,
        layout: bool = False,
        partial: bool = False,
        loader: Optional[Callable[..., Mapping[str, Any]]] = None,
        engine: Optional[str] = None,
        **options: Any,
    ) -> CollectionView:
        if not isinstance(name, str) or not name.isidentifier():
            raise ValidationError(f"collection name must be a non-empty identifier, got {name!r}")
        plural = plural or f"{name}s"

        existing = self._views.get(name)
        if existing is not None:
            log.debug("collection_already_declared", collection=name, plural=existing.plural)
            return existing
        if plural in self._by_plural:
            raise ValidationError(f"plural '{plural}' already belongs to collection '{self._by_plural[plural]}'")

        roles = set()
        if renderable: roles.add(Role.RENDERABLE)
        if layout: roles.add(Role.LAYOUT)
        if partial or not roles: roles.add(Role.PARTIAL)

        collection = Collection(name, plural, frozenset(roles), loader or identity_loader, engine, dict(options))
        self.app.store.ensure(plural)
        view = CollectionView(self.app, collection)
        self._views[name] = view
        self._by_plural[plural] = name

        if Role.PARTIAL in roles:
            self.app.helpers.add_helper(name, view.helper, takes_context=True)
            self.app.helpers.add_async_helper(name, view.async_helper, takes_context=True)

        log.info("collection_declared", collection=name, plural=plural, roles=sorted(r.value for r in roles))
        return view

    def get(self, name: str) -> CollectionView:
        view = self._views.get(name)
        if view is None:
            view = self._views.get(self._by_plural.get(name, ""))
        if view is None:
            raise MissingCollectionError(f"no collection named '{name}'")
        return view

    def has(self, name: str) -> bool:
        return name in self._views or name in self._by_plural

    def views(self) -> List[CollectionView]:
        return list(self._views.values())

    def plurals(self) -> List[str]:
        return list(self._by_plural)

    def plurals_with_role(self, role: Role) -> List[str]:
        return [view.plural for view in self._views.values() if role in view.collection.roles]

    def is_partial(self, name: Optional[str]) -> bool:
        view = self._views.get(name) if name else None
        return view is not None and Role.PARTIAL in view.collection.roles
