# viewcache/config/loader.py
"""
Loads viewcache options from TOML files and applies them onto a ViewCacheConfig.
"""
import toml
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import fields as dataclass_fields
import structlog

from viewcache.exceptions import ConfigError

from .settings import ViewCacheConfig

log = structlog.get_logger(__name__)

PROJECT_CONFIG_FILENAMES = [".viewcache.toml", "viewcache.toml", "pyproject.toml"]

CONFIG_KEY_TO_ATTR_MAP: Dict[str, str] = {
    "strict_errors": "strict_errors",
    "strict": "strict_errors",
    "prefer_locals": "prefer_locals",
    "merge_partials": "merge_partials",
    "layout": "layout",
    "default_layout": "layout",
    "partial_layout": "partial_layout",
    "layout_tag": "layout_tag",
    "layout_delims": "layout_delims",
    "layout_collections": "layout_collections",
    "default_engine": "default_engine",
    "engine": "default_engine",
    "default_delims": "default_delims",
    "cwd": "cwd",
}

def _load_toml_file_data(file_path: Path) -> Dict[str, Any]:
    if not file_path.is_file(): return {}
    log.debug("loading_toml_config_file", path=str(file_path))
    try:
        data = toml.load(file_path)
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigError(f"could not read config file {file_path}: {e}") from e
    return data.get("tool", {}).get("viewcache", {}) if file_path.name == "pyproject.toml" else data

def find_project_config(search_dir: Optional[Path] = None) -> Optional[Path]:
    # first config file that exists in search_dir, in PROJECT_CONFIG_FILENAMES order.
    base = Path(search_dir) if search_dir else Path.cwd()
    for filename in PROJECT_CONFIG_FILENAMES:
        candidate = base / filename
        if candidate.is_file():
            if filename == "pyproject.toml" and not _load_toml_file_data(candidate):
                continue
            return candidate
    return None

def apply_settings(config: ViewCacheConfig, settings: Dict[str, Any]) -> ViewCacheConfig:
    known_attrs = {f.name for f in dataclass_fields(ViewCacheConfig)}
    for toml_key, value in settings.items():
        attr = CONFIG_KEY_TO_ATTR_MAP.get(toml_key)
        if not attr or attr not in known_attrs:
            log.warning("unknown_config_key_ignored", key=toml_key)
            continue
        setattr(config, attr, value)
    # re-run coercion and validation after assignment.
    config.__post_init__()
    return config

def load_config(path: Optional[Path] = None, **overrides: Any) -> ViewCacheConfig:
    """
    Builds a ViewCacheConfig from the project's TOML settings.

    An explicit `path` is read directly; otherwise the first of
    PROJECT_CONFIG_FILENAMES found in the current directory is used
    (`[tool.viewcache]` inside pyproject.toml). Keyword overrides are applied
    last.
    """
    config = ViewCacheConfig()
    source = Path(path) if path else find_project_config()
    if source:
        if not source.is_file():
            raise ConfigError(f"config file not found: {source}")
        log.info("loading_project_local_config", path=str(source))
        apply_settings(config, _load_toml_file_data(source))
    else:
        log.debug("no_configuration_files_loaded")
    if overrides:
        apply_settings(config, overrides)
    return config
