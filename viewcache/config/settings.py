from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple
import structlog

from viewcache.exceptions import ConfigError

log = structlog.get_logger(__name__)

class Role(Enum):
    # the parts a collection can play during rendering.
    RENDERABLE = "renderable"
    LAYOUT = "layout"
    PARTIAL = "partial"

    @classmethod
    def from_string(cls, s: Optional[str]) -> Optional["Role"]:
        if not s:
            return None
        try:
            return cls(s.lower())
        except ValueError:
            log.warning("invalid_role_string", input_string=s)
            return None

class Phase(Enum):
    # middleware phases; LOAD runs when a template is added to a collection.
    LOAD = "load"
    BEFORE = "before"
    AFTER = "after"

@dataclass
class ViewCacheConfig:
    # holds every option that shapes registration and rendering for one ViewCache instance.
    strict_errors: bool = False
    prefer_locals: bool = False
    merge_partials: bool = True
    layout: Optional[str] = None
    partial_layout: Optional[str] = None
    layout_tag: str = "body"
    layout_delims: Tuple[str, str] = ("{%", "%}")
    layout_collections: Optional[List[str]] = None
    default_engine: str = "*"
    default_delims: Tuple[str, str] = ("{{", "}}")
    cwd: Path = field(default_factory=Path.cwd)

    def __post_init__(self):
        # coerces values that commonly arrive as lists or strings from toml.
        self.layout_delims = tuple(self.layout_delims)
        self.default_delims = tuple(self.default_delims)
        if len(self.layout_delims) != 2 or len(self.default_delims) != 2:
            raise ConfigError("delimiter options must be [open, close] pairs")
        self.cwd = Path(self.cwd)
