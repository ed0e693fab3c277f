import copy
import os
from typing import Any, Dict, Iterable, Mapping, Optional

WILDCARD_EXT = "*"

def normalize_ext(ext: Optional[str]) -> Optional[str]:
    # canonical dotted extension: "hbs" and ".HBS" both become ".hbs"; "*" is kept as is.
    if ext is None:
        return None
    ext = str(ext).strip().lower()
    if not ext:
        return None
    if ext in (WILDCARD_EXT, "." + WILDCARD_EXT):
        return WILDCARD_EXT
    return ext if ext.startswith(".") else "." + ext

def ext_from_path(path: Optional[str]) -> Optional[str]:
    if not path:
        return None
    suffix = os.path.splitext(path)[1]
    return normalize_ext(suffix) if suffix else None

def arrayify(value: Any) -> list:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]

def merge_dicts(*sources: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Deep-merges mappings left to right into a new dict.

    Later sources win on key collisions. When both sides hold a mapping for the
    same key the two are merged recursively instead of replaced. Inputs are
    never mutated.
    """
    merged: Dict[str, Any] = {}
    for source in sources:
        if not source:
            continue
        _merge_into(merged, source)
    return merged

def _merge_into(target: Dict[str, Any], source: Mapping[str, Any]) -> None:
    for key, value in source.items():
        existing = target.get(key)
        if isinstance(existing, dict) and isinstance(value, Mapping):
            _merge_into(existing, value)
        elif isinstance(value, Mapping):
            target[key] = merge_dicts(value)
        else:
            target[key] = copy.copy(value) if isinstance(value, list) else value

def first_present(values: Iterable[Any]) -> Any:
    # returns the first value that is neither None nor an empty string.
    for value in values:
        if value is not None and value != "":
            return value
    return None
