# viewcache/core/__init__.py
"""
Collections, the view store, engines and the ViewCache facade tying them together.
"""
from .pipeline import ViewCache
from .collections import CollectionView
from .records import ByGlobPattern, ByKeyValue, ByObject, TemplateRecord
from .loaders import file_loader, identity_loader

__all__ = [
    "ViewCache",
    "CollectionView",
    "TemplateRecord",
    "ByKeyValue",
    "ByObject",
    "ByGlobPattern",
    "file_loader",
    "identity_loader",
]
