# viewcache/core/records.py
"""
Template records and the normalization of the many ways a caller can hand
templates to a collection.

Every `add` form is first turned into one of three tagged inputs
(ByKeyValue, ByObject, ByGlobPattern) and then into canonical TemplateRecord
objects by `normalize_input`.
"""
import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from viewcache.exceptions import ValidationError

# keys of a raw template object that are record fields rather than data.
RECORD_FIELDS = ("key", "path", "content", "data", "locals", "options", "layout", "engine", "ext", "orig")

@dataclass
class TemplateRecord:
    key: str
    path: str
    content: str
    data: Dict[str, Any] = field(default_factory=dict)
    locals: Dict[str, Any] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    layout: Optional[str] = None
    engine: Optional[str] = None
    collection: Optional[str] = None
    orig: Optional[str] = None
    # derived state; see TemplateRecord.cache_compiled.
    compiled_fn: Optional[Callable[..., Any]] = field(default=None, repr=False, compare=False)
    compiled_signature: Optional[Tuple[Any, ...]] = field(default=None, repr=False, compare=False)

    def clone(self) -> "TemplateRecord":
        # deep copy of the mutable parts; the compiled fn is shared, never copied.
        return TemplateRecord(
            key=self.key,
            path=self.path,
            content=self.content,
            data=copy.deepcopy(self.data),
            locals=copy.deepcopy(self.locals),
            options=copy.deepcopy(self.options),
            layout=self.layout,
            engine=self.engine,
            collection=self.collection,
            orig=self.orig,
            compiled_fn=self.compiled_fn,
            compiled_signature=self.compiled_signature,
        )

    def __deepcopy__(self, memo):
        # records nested in data (pagination items) are cloned rather than copied field by field.
        return self.clone()

    def compiled_for(self, signature: Tuple[Any, ...]) -> Optional[Callable[..., Any]]:
        if self.compiled_fn is not None and self.compiled_signature == signature:
            return self.compiled_fn
        return None

    def cache_compiled(self, compiled_fn: Callable[..., Any], signature: Tuple[Any, ...]) -> None:
        self.compiled_fn = compiled_fn
        self.compiled_signature = signature

@dataclass(frozen=True)
class ByKeyValue:
    key: str
    value: Union[str, Mapping[str, Any]]
    locals: Optional[Mapping[str, Any]] = None

@dataclass(frozen=True)
class ByObject:
    # either {key: {...template...}, ...} or a single template mapping carrying `path`/`key`.
    templates: Mapping[str, Any]
    locals: Optional[Mapping[str, Any]] = None

@dataclass(frozen=True)
class ByGlobPattern:
    pattern: Union[str, List[str]]
    locals: Optional[Mapping[str, Any]] = None
    options: Optional[Mapping[str, Any]] = None

TemplateInput = Union[ByKeyValue, ByObject, ByGlobPattern]

def coerce_input(key: Any, value: Any = None, locals: Optional[Mapping[str, Any]] = None) -> TemplateInput:
    """Maps the positional `add(...)` call forms onto a tagged TemplateInput."""
    if isinstance(key, (ByKeyValue, ByObject, ByGlobPattern)):
        return key
    if isinstance(key, str):
        if value is None:
            raise ValidationError(f"template '{key}' was added without content")
        return ByKeyValue(key, value, locals)
    if isinstance(key, Mapping):
        return ByObject(key, locals)
    raise ValidationError(f"cannot add a template from {type(key).__name__}")

def _is_single_template(obj: Mapping[str, Any]) -> bool:
    return "content" in obj and not all(isinstance(v, Mapping) for v in obj.values())

def _build_record(key: str, raw: Mapping[str, Any], locals: Optional[Mapping[str, Any]]) -> TemplateRecord:
    if not key:
        raise ValidationError("template records need a non-empty key")
    if "content" not in raw or raw["content"] is None:
        raise ValidationError(f"template '{key}' has no content")
    content = raw["content"]
    if not isinstance(content, str):
        raise ValidationError(f"template '{key}' content must be a string, got {type(content).__name__}")

    # loose keys on the raw object are treated as data, as are the add-time locals.
    extra = {k: v for k, v in raw.items() if k not in RECORD_FIELDS}
    data: Dict[str, Any] = {**extra, **dict(raw.get("data") or {})}
    record_locals = dict(locals or {})
    record_locals.update(raw.get("locals") or {})

    return TemplateRecord(
        key=key,
        path=raw.get("path") or key,
        content=content,
        data=data,
        locals=record_locals,
        options=dict(raw.get("options") or {}),
        layout=raw.get("layout") or data.pop("layout", None),
        engine=raw.get("engine") or raw.get("ext"),
        orig=raw.get("orig", content),
    )

def normalize_input(template_input: TemplateInput) -> List[TemplateRecord]:
    """
    Produces canonical TemplateRecord objects from a ByKeyValue or ByObject input.

    ByGlobPattern inputs must be resolved through a loader first; the loader's
    mapping result is normalized as a ByObject.
    """
    if isinstance(template_input, ByKeyValue):
        value = template_input.value
        raw = {"content": value} if isinstance(value, str) else dict(value)
        return [_build_record(template_input.key, raw, template_input.locals)]

    if isinstance(template_input, ByObject):
        templates = template_input.templates
        if _is_single_template(templates):
            key = templates.get("key") or templates.get("path")
            if not key:
                raise ValidationError("cannot find a key for template object without `key` or `path`")
            return [_build_record(key, templates, template_input.locals)]
        records = []
        for key, raw in templates.items():
            if isinstance(raw, str):
                raw = {"content": raw}
            if not isinstance(raw, Mapping):
                raise ValidationError(f"template '{key}' must be a mapping or a string")
            records.append(_build_record(key, raw, template_input.locals))
        return records

    raise ValidationError(f"{type(template_input).__name__} must be loaded before it can be normalized")
