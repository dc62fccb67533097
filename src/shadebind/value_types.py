"""Typed access to type-erased USD attribute values.

USD stores attribute values behind ``VtValue``; Python sees whatever the
bindings unwrap (``float``, ``str``, ``Gf.Vec3f``, ``Vt.FloatArray``, ...).
Callers of the evaluator name the type they expect and :func:`coerce_value`
either hands back a *copy* of the value in that type or raises a
``TYPE_MISMATCH`` :class:`~shadebind.errors.ShadeBindError`.

Accepted ``value_type`` forms:

* ``None`` - no conversion, the raw value is copied.
* a Python scalar class - ``float`` (accepts ints), ``int``, ``bool``, ``str``.
* a ``Gf`` vector/matrix class - same-dimension floating point values are
  converted across precisions (``Vec3d`` -> ``Vec3f``).
* ``numpy.ndarray`` - vectors, matrices, arrays and numbers become arrays.
* any other class - plain ``isinstance`` check (``Sdf.AssetPath``, ``Vt`` arrays).

``Sdf.ValueTypeName`` expectations are checked against the attribute's
declared type in :func:`check_type_name`, since the value alone cannot tell
``color3f`` from ``float3``.
"""

from __future__ import annotations

import enum
import numbers
import re
from typing import Any, Optional, Tuple

import numpy as np

from .errors import ErrorKind, ShadeBindError
from .pxr_utils import Gf, Sdf, Usd

# GLSL-like names for the handful of result types shader code tends to ask for.
_GLSL_ALIASES = {
    "vec2": "Vec2f",
    "vec3": "Vec3f",
    "vec4": "Vec4f",
    "mat2": "Matrix2f",
}

_GF_NAME_RE = re.compile(r"^(Vec|Matrix)([234])([dfhi])$")
_FLOATING = {"d", "f", "h"}

_SCALAR_NAMES = {
    "float": float,
    "double": float,
    "half": float,
    "int": int,
    "bool": bool,
    "string": str,
    "token": str,
    "str": str,
}


def __getattr__(name: str):
    if name in _GLSL_ALIASES:
        return getattr(Gf, _GLSL_ALIASES[name])
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


class AttributeForm(enum.Enum):
    """The single active form of an attribute at query time."""

    VALUE = "value"
    TIME_SAMPLED = "time_sampled"
    CONNECTION = "connection"
    EMPTY = "empty"


def classify_attribute(attr) -> AttributeForm:
    # Connections win over any authored value, matching UsdShade's reading of inputs.
    if attr.HasAuthoredConnections():
        return AttributeForm.CONNECTION
    if attr.GetNumTimeSamples() > 0:
        return AttributeForm.TIME_SAMPLED
    if attr.HasValue():
        return AttributeForm.VALUE
    return AttributeForm.EMPTY


def as_time_code(time: Any = None):
    """Normalise ``None``/float/``Usd.TimeCode`` into a ``Usd.TimeCode``."""
    if time is None:
        return Usd.TimeCode.Default()
    if isinstance(time, Usd.TimeCode):
        return time
    return Usd.TimeCode(float(time))


def _gf_signature(cls) -> Optional[Tuple[str, int, str]]:
    if not isinstance(cls, type):
        return None
    if not str(getattr(cls, "__module__", "")).startswith("pxr.Gf"):
        return None
    match = _GF_NAME_RE.match(cls.__name__)
    if not match:
        return None
    kind, dim, scalar = match.groups()
    return kind, int(dim), scalar


def _is_pxr_value(value: Any, module: str) -> bool:
    return str(getattr(type(value), "__module__", "")).startswith(module)


def copy_value(value: Any) -> Any:
    """Return an independent copy of a Gf/Vt value; immutable Python values are returned as-is."""
    if _is_pxr_value(value, "pxr.Gf") or _is_pxr_value(value, "pxr.Vt"):
        return type(value)(value)
    if isinstance(value, np.ndarray):
        return value.copy()
    return value


def to_numpy(value: Any) -> np.ndarray:
    """Convert Gf vectors/matrices, Vt arrays and numbers to a numpy array."""
    signature = _gf_signature(type(value))
    if signature is not None:
        kind, dim, _ = signature
        if kind == "Matrix":
            return np.array([[value[i, j] for j in range(dim)] for i in range(dim)], dtype=float)
        return np.array([value[i] for i in range(dim)], dtype=float)
    if isinstance(value, (str, bytes)) or value is None:
        raise TypeError(f"cannot convert {type(value).__name__} to numpy.ndarray")
    if isinstance(value, numbers.Number):
        return np.asarray(value)
    return np.array(value)


def _mismatch(value: Any, value_type: Any) -> ShadeBindError:
    expected = getattr(value_type, "__name__", repr(value_type))
    return ShadeBindError(
        ErrorKind.TYPE_MISMATCH,
        f"stored value of type {type(value).__name__} cannot be converted to {expected}",
    )


def coerce_value(value: Any, value_type: Any) -> Any:
    """Return a copy of ``value`` as ``value_type`` or raise a TYPE_MISMATCH error."""
    if value_type is None or value_type is object:
        return copy_value(value)

    if value_type is np.ndarray:
        try:
            return to_numpy(value)
        except (TypeError, ValueError) as exc:
            raise _mismatch(value, value_type) from exc

    if value_type is bool:
        if isinstance(value, (bool, np.bool_)):
            return bool(value)
        raise _mismatch(value, value_type)

    if value_type is int:
        if isinstance(value, numbers.Integral) and not isinstance(value, (bool, np.bool_)):
            return int(value)
        raise _mismatch(value, value_type)

    if value_type is float:
        if isinstance(value, numbers.Real) and not isinstance(value, (bool, np.bool_)):
            return float(value)
        raise _mismatch(value, value_type)

    if value_type is str:
        if isinstance(value, str):
            return value
        raise _mismatch(value, value_type)

    wanted = _gf_signature(value_type)
    if wanted is not None:
        if isinstance(value, value_type):
            return value_type(value)
        stored = _gf_signature(type(value))
        if (
            stored is not None
            and stored[:2] == wanted[:2]
            and stored[2] in _FLOATING
            and wanted[2] in _FLOATING
        ):
            return value_type(value)
        raise _mismatch(value, value_type)

    if isinstance(value_type, type):
        if isinstance(value, value_type):
            return copy_value(value)
        raise _mismatch(value, value_type)

    raise TypeError(f"unsupported value_type {value_type!r}")


def is_type_name(value_type: Any) -> bool:
    return isinstance(value_type, Sdf.ValueTypeName)


def check_type_name(attr, type_name) -> None:
    """Raise TYPE_MISMATCH unless ``attr`` is declared with a type compatible with ``type_name``.

    Roles are ignored: ``color3f`` satisfies ``float3`` and vice versa.
    """
    declared = attr.GetTypeName()
    if declared.type != type_name.type:
        raise ShadeBindError(
            ErrorKind.TYPE_MISMATCH,
            f"{attr.GetPath()} is declared as {declared}, not {type_name}",
        )


def resolve_value_type(name: Optional[str]) -> Any:
    """Map a textual type name (CLI/config) to a ``value_type`` accepted by :func:`coerce_value`.

    Understands ``any``, scalar names, ``array``/``numpy``, the GLSL aliases,
    Gf class names (``Vec3f``, ``Matrix4d``) and Sdf value type names
    (``color3f``, ``float3``).
    """
    if name is None:
        return None
    key = name.strip()
    lowered = key.lower()
    if lowered in ("", "any"):
        return None
    if lowered in ("array", "numpy", "ndarray"):
        return np.ndarray
    if lowered in _SCALAR_NAMES:
        return _SCALAR_NAMES[lowered]
    if lowered == "asset":
        return Sdf.AssetPath
    if lowered in _GLSL_ALIASES:
        return getattr(Gf, _GLSL_ALIASES[lowered])
    gf_cls = getattr(Gf, key[:1].upper() + key[1:], None)
    if gf_cls is not None and _gf_signature(gf_cls) is not None:
        return gf_cls
    type_name = Sdf.ValueTypeNames.Find(lowered)
    if str(type_name):
        return type_name
    raise ValueError(f"Unknown value type '{name}'")
