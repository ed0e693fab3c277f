# viewcache/core/loaders.py
"""
Loaders turn an `add_many` argument into a mapping of key -> raw template.

Contract: `load(pattern, locals, options) -> {key: {"content": ..., ...}}`.
"""
from pathlib import Path
from typing import Any, Dict, Mapping, Optional
import structlog

from viewcache.exceptions import LoaderError
from viewcache.util import arrayify

log = structlog.get_logger(__name__)

def identity_loader(pattern: Any, locals: Optional[Mapping[str, Any]] = None, options: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    # passes an already-built mapping of templates straight through.
    if not isinstance(pattern, Mapping):
        raise LoaderError(f"the default loader expects a mapping of templates, got {type(pattern).__name__}")
    return dict(pattern)

def file_loader(pattern: Any, locals: Optional[Mapping[str, Any]] = None, options: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Reads every file matching one or more glob patterns, relative to
    `options["cwd"]` (default: the current directory).

    Keys are file names unless `options["key"] == "path"`, in which case the
    path relative to cwd is used.
    """
    if isinstance(pattern, Mapping):
        return dict(pattern)
    options = options or {}
    base_dir = Path(options.get("cwd") or Path.cwd())
    key_style = options.get("key", "name")

    loaded: Dict[str, Any] = {}
    for glob_pattern in arrayify(pattern):
        matches = sorted(p for p in base_dir.glob(str(glob_pattern)) if p.is_file())
        if not matches:
            log.warning("loader_pattern_matched_nothing", pattern=str(glob_pattern), cwd=str(base_dir))
        for file_path in matches:
            try:
                content = file_path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as e:
                raise LoaderError(f"failed to read template file {file_path}: {e}") from e
            rel_path = file_path.relative_to(base_dir).as_posix()
            key = rel_path if key_style == "path" else file_path.name
            loaded[key] = {"content": content, "path": rel_path}
    log.debug("templates_loaded_from_files", count=len(loaded))
    return loaded
