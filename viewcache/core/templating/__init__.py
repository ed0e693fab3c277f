# viewcache/core/templating/__init__.py
"""
Templating module for viewcache.

Provides the TemplateRenderer that runs a template through its render stages,
the context builder, layout resolution and the helper registry.
"""
from .renderer import RenderResult, RenderStage, TemplateRenderer
from .context_builder import build_template_context
from .helpers import AsyncHelperResolver, HelperRegistry
from .layouts import LayoutResolver

__all__ = [
    "TemplateRenderer",
    "RenderResult",
    "RenderStage",
    "build_template_context",
    "HelperRegistry",
    "AsyncHelperResolver",
    "LayoutResolver",
]
