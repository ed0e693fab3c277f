from typing import Optional

class ViewCacheError(Exception):
    # base exception for all viewcache errors.
    pass

class ConfigError(ViewCacheError):
    # errors related to configuration.
    pass

class ValidationError(ViewCacheError):
    # malformed template record, collection declaration or layout.
    pass

class MissingCollectionError(ViewCacheError):
    # lookup of an undeclared collection.
    pass

class MissingTemplateError(ViewCacheError):
    # lookup of a template key that is not registered.
    def __init__(self, key: str, collections=None):
        self.key = key
        self.collections = list(collections or [])
        where = f" in {', '.join(self.collections)}" if self.collections else ""
        super().__init__(f"template '{key}' not found{where}")

class MissingEngineError(ViewCacheError):
    # no engine registered for the resolved extension.
    def __init__(self, ext: str):
        self.ext = ext
        super().__init__(f"no engine registered for extension '{ext}'")

class EngineCapabilityError(ViewCacheError):
    # the resolved engine cannot serve the requested render mode.
    pass

class EngineRenderError(ViewCacheError):
    # an engine adapter raised while compiling or rendering.
    def __init__(self, message: str, template_key: Optional[str] = None):
        self.template_key = template_key
        super().__init__(message)

class LayoutCycleError(ViewCacheError):
    # a layout chain revisits a layout it already applied.
    def __init__(self, chain):
        self.chain = list(chain)
        super().__init__(f"layout cycle detected: {' -> '.join(self.chain)}")

class HelperError(ViewCacheError):
    # errors raised while running or resolving helpers.
    pass

class HelperNotFoundError(HelperError):
    # a helper name or helper-addressed template could not be found.
    pass

class ParserError(ViewCacheError):
    # errors from a registered parser.
    pass

class LoaderError(ViewCacheError):
    # errors from a template loader.
    pass
