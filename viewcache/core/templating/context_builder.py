# viewcache/core/templating/context_builder.py
"""
Builds the context dictionary a template is rendered with.

Sources are merged in a fixed order and later sources win on key collisions
(nested mappings are merged recursively):

1. global data
2. template locals, then template data (reversed when `prefer_locals` is set)
3. partial templates: their content under `partials` (or under each
   collection's plural when `merge_partials` is off) and their data
4. data and locals of every layout template
5. call-time locals

Partials and layouts order their own locals and data the same way step 2 does.
"""
from typing import Any, Dict, Iterable, Mapping, Optional
import structlog

from viewcache.config.settings import ViewCacheConfig
from viewcache.core.records import TemplateRecord
from viewcache.core.store import ViewStore
from viewcache.util import merge_dicts

log = structlog.get_logger(__name__)

def _own_data(record: TemplateRecord, prefer_locals: bool) -> Dict[str, Any]:
    if prefer_locals:
        return merge_dicts(record.data, record.locals)
    return merge_dicts(record.locals, record.data)

def _partials_layer(store: ViewStore, partial_plurals: Iterable[str], merge_partials: bool,
                    prefer_locals: bool) -> Dict[str, Any]:
    layer: Dict[str, Any] = {}
    buckets: Dict[str, Dict[str, str]] = {}
    for plural in partial_plurals:
        bucket = buckets.setdefault("partials" if merge_partials else plural, {})
        for key, partial in store.all(plural).items():
            bucket[key] = partial.content
            layer = merge_dicts(layer, _own_data(partial, prefer_locals))
    return merge_dicts(layer, buckets)

def _layouts_layer(store: ViewStore, layout_plurals: Iterable[str], prefer_locals: bool) -> Dict[str, Any]:
    layer: Dict[str, Any] = {}
    for plural in layout_plurals:
        for layout_record in store.all(plural).values():
            layer = merge_dicts(layer, _own_data(layout_record, prefer_locals))
    return layer

def build_template_context(
    record: TemplateRecord,
    call_locals: Optional[Mapping[str, Any]],
    *,
    global_data: Optional[Mapping[str, Any]],
    store: ViewStore,
    partial_plurals: Iterable[str],
    layout_plurals: Iterable[str],
    config: ViewCacheConfig,
) -> Dict[str, Any]:
    """Constructs the merged context for rendering `record`."""
    partial_plurals = list(partial_plurals)
    layout_plurals = list(layout_plurals)
    context = merge_dicts(
        global_data,
        _own_data(record, config.prefer_locals),
        _partials_layer(store, partial_plurals, config.merge_partials, config.prefer_locals),
        _layouts_layer(store, layout_plurals, config.prefer_locals),
        call_locals,
    )
    log.debug("template_context_prepared_with_keys", template_key=record.key, keys=sorted(context.keys()))
    return context
