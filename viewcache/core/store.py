# viewcache/core/store.py
from typing import Dict, Optional

from viewcache.core.records import TemplateRecord
from viewcache.exceptions import MissingCollectionError

class ViewStore:
    # in-memory map of collection plural -> (template key -> record). storage only.
    def __init__(self):
        self._views: Dict[str, Dict[str, TemplateRecord]] = {}
        # bumped on every write; compiled templates embed it so layout edits invalidate them.
        self.revision = 0

    def ensure(self, plural: str) -> Dict[str, TemplateRecord]:
        return self._views.setdefault(plural, {})

    def has(self, plural: str) -> bool:
        return plural in self._views

    def set(self, plural: str, key: str, record: TemplateRecord) -> None:
        if plural not in self._views:
            raise MissingCollectionError(f"no store for collection '{plural}'")
        self._views[plural][key] = record
        self.revision += 1

    def get(self, plural: str, key: str) -> Optional[TemplateRecord]:
        return self._views.get(plural, {}).get(key)

    def all(self, plural: str) -> Dict[str, TemplateRecord]:
        if plural not in self._views:
            raise MissingCollectionError(f"no store for collection '{plural}'")
        return self._views[plural]

    def plurals(self):
        return list(self._views)
