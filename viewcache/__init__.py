"""
viewcache: named template collections rendered through pluggable engines,
with nested layouts, merged contexts and sync/async helpers.
"""
from viewcache.config import ViewCacheConfig, load_config
from viewcache.core import (
    ByGlobPattern,
    ByKeyValue,
    ByObject,
    CollectionView,
    TemplateRecord,
    ViewCache,
    file_loader,
)
from viewcache.exceptions import ViewCacheError
from viewcache.logging_setup import configure_logging

__all__ = [
    "ViewCache",
    "ViewCacheConfig",
    "ViewCacheError",
    "CollectionView",
    "TemplateRecord",
    "ByKeyValue",
    "ByObject",
    "ByGlobPattern",
    "file_loader",
    "load_config",
    "configure_logging",
]
