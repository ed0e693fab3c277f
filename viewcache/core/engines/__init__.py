"""
Engine adapters and the extension-keyed registry that selects them.
"""
from .registry import EngineEntry, EngineRegistry
from .noop import NoopEngine
from .handlebars import HandlebarsEngine
from .jinja import JinjaEngine

__all__ = ["EngineEntry", "EngineRegistry", "NoopEngine", "HandlebarsEngine", "JinjaEngine"]
