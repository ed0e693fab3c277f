from .settings import ViewCacheConfig, Role, Phase
from .loader import load_config, apply_settings, find_project_config

__all__ = ["ViewCacheConfig", "Role", "Phase", "load_config", "apply_settings", "find_project_config"]
