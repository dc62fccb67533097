"""Shader attribute evaluation and material binding resolution for USD stages."""

from .binding import (
    BindingEntry,
    BindingStrength,
    BoundMaterialResult,
    LocalMaterialBinding,
    get_bound_material,
    get_local_material_binding,
)
from .config import RESOLVER_DEFAULTS, ResolverDefaults, load_defaults
from .errors import ErrorKind, ShadeBindError
from .evaluate import (
    AttributeTrace,
    EvaluationResult,
    SurfaceShaderResult,
    evaluate_shader_attribute,
    get_surface_shader,
    get_value_producing_attribute,
)
from .value_types import AttributeForm, classify_attribute, coerce_value, resolve_value_type

__all__ = [
    "evaluate_shader_attribute",
    "get_value_producing_attribute",
    "get_surface_shader",
    "get_local_material_binding",
    "get_bound_material",
    "AttributeForm",
    "AttributeTrace",
    "BindingEntry",
    "BindingStrength",
    "BoundMaterialResult",
    "ErrorKind",
    "EvaluationResult",
    "LocalMaterialBinding",
    "ResolverDefaults",
    "RESOLVER_DEFAULTS",
    "ShadeBindError",
    "SurfaceShaderResult",
    "classify_attribute",
    "coerce_value",
    "load_defaults",
    "resolve_value_type",
]
