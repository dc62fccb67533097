"""Terminal-value evaluation for shader attributes.

An attribute on a shader prim either holds a value (possibly time-sampled) or
is connected to another attribute, which may itself be connected, and so on.
:func:`evaluate_shader_attribute` follows that chain to the attribute that
actually produces a value and reads it at the requested time.

The walk is iterative and bounded: a revisited attribute is reported as a
cycle and chains longer than ``max_hops`` are rejected, so malformed networks
never recurse without limit.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Tuple

from .config import resolve_max_hops
from .errors import ErrorKind, ResultMixin, ShadeBindError
from .pxr_utils import UsdShade
from .value_types import (
    AttributeForm,
    as_time_code,
    check_type_name,
    classify_attribute,
    coerce_value,
    copy_value,
    is_type_name,
)

LOG = logging.getLogger(__name__)

_INPUTS_PREFIX = "inputs:"
_OUTPUTS_PREFIX = "outputs:"


@dataclass(frozen=True)
class AttributeTrace:
    """The value-producing attribute reached from a starting attribute."""

    attribute: Any
    chain: Tuple[Any, ...]

    @property
    def hops(self) -> int:
        return len(self.chain) - 1

    @property
    def source_path(self):
        return self.chain[-1]


@dataclass(frozen=True)
class EvaluationResult(ResultMixin):
    ok: bool
    value: Any = None
    attribute_path: Optional[Any] = None
    source_path: Optional[Any] = None
    hops: int = 0
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


@dataclass(frozen=True)
class SurfaceShaderResult(ResultMixin):
    ok: bool
    shader: Optional[Any] = None
    output_path: Optional[Any] = None
    source_path: Optional[Any] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


def require_prim(stage, node):
    """Return the ``Usd.Prim`` behind ``node`` after checking it lives on ``stage``.

    ``node`` may be a prim or any schema object (``UsdShade.Shader``,
    ``UsdShade.Material``, ...).  Passing an invalid prim, or one from another
    stage, is a programming error and raises ``ValueError``.
    """
    if node is None:
        raise ValueError("node must not be None")
    prim = node.GetPrim() if hasattr(node, "GetPrim") else node
    if not prim or not prim.IsValid():
        raise ValueError(f"{node!r} is not a valid prim")
    if prim.GetStage() != stage:
        raise ValueError(f"{prim.GetPath()} does not belong to the supplied stage")
    return prim


def _attribute_at(stage, path):
    if not path.IsPropertyPath():
        raise ShadeBindError(
            ErrorKind.DANGLING_CONNECTION,
            f"connection target <{path}> is not a property path",
        )
    prim = stage.GetPrimAtPath(path.GetPrimPath())
    if not prim:
        raise ShadeBindError(
            ErrorKind.DANGLING_CONNECTION,
            f"connection target prim <{path.GetPrimPath()}> does not exist",
        )
    attr = prim.GetAttribute(path.name)
    if not attr:
        raise ShadeBindError(
            ErrorKind.DANGLING_CONNECTION,
            f"connection target attribute <{path}> does not exist",
        )
    return attr


def get_value_producing_attribute(stage, attribute, *, max_hops: Optional[int] = None) -> AttributeTrace:
    """Follow connections from ``attribute`` to the attribute that holds the value.

    Raises :class:`ShadeBindError` for dangling targets, ambiguous (multi-source)
    connections, cycles, and chains longer than ``max_hops``.
    """
    limit = resolve_max_hops(max_hops)
    current = attribute
    chain = [current.GetPath()]
    visited = {current.GetPath()}
    while classify_attribute(current) is AttributeForm.CONNECTION:
        sources = current.GetConnections()
        if not sources:
            # Connections authored then deleted in a stronger layer.
            break
        if len(sources) > 1:
            raise ShadeBindError(
                ErrorKind.MULTIPLE_CONNECTIONS,
                f"{current.GetPath()} has {len(sources)} connection sources; expected exactly one",
            )
        if len(chain) - 1 >= limit:
            raise ShadeBindError(
                ErrorKind.CONNECTION_CHAIN_TOO_LONG,
                f"connection chain from {attribute.GetPath()} exceeds {limit} hops",
            )
        target = sources[0]
        if target in visited:
            LOG.warning("Connection cycle detected at %s (from %s)", target, attribute.GetPath())
            raise ShadeBindError(
                ErrorKind.CONNECTION_CYCLE,
                f"connection cycle: {' -> '.join(str(p) for p in chain)} -> {target}",
            )
        current = _attribute_at(stage, target)
        visited.add(target)
        chain.append(target)
        LOG.debug("Followed connection %s -> %s", chain[-2], target)
    return AttributeTrace(attribute=current, chain=tuple(chain))


def _find_attribute(prim, attr_name: str):
    attr = prim.GetAttribute(attr_name)
    if attr:
        return attr
    if ":" not in attr_name:
        attr = prim.GetAttribute(_INPUTS_PREFIX + attr_name)
        if attr:
            return attr
    raise ShadeBindError(
        ErrorKind.ATTRIBUTE_NOT_FOUND,
        f"attribute '{attr_name}' not found on {prim.GetPath()}",
    )


def _read_terminal_value(attr, time_code):
    form = classify_attribute(attr)
    if form is AttributeForm.EMPTY:
        raise ShadeBindError(
            ErrorKind.NO_VALUE,
            f"{attr.GetPath()} has neither a value nor a connection",
        )
    value = attr.Get(time_code)
    if value is None:
        if form is AttributeForm.TIME_SAMPLED:
            raise ShadeBindError(
                ErrorKind.NO_SAMPLE_AT_TIME,
                f"{attr.GetPath()} has no sample resolvable at time {time_code}",
            )
        raise ShadeBindError(ErrorKind.NO_VALUE, f"{attr.GetPath()} has no value at time {time_code}")
    return value


def evaluate_shader_attribute(
    stage,
    shader,
    attr_name: str,
    value_type: Any,
    time: Any = None,
    *,
    max_hops: Optional[int] = None,
) -> EvaluationResult:
    """Evaluate the terminal value of ``attr_name`` on ``shader``.

    ``value_type`` is the type the caller expects (see
    :mod:`shadebind.value_types`); ``time`` is a ``Usd.TimeCode``, a float, or
    ``None`` for the default (non-animated) value.  The returned value is a copy.
    """
    prim = require_prim(stage, shader)
    time_code = as_time_code(time)
    attribute_path = None
    try:
        attr = _find_attribute(prim, attr_name)
        attribute_path = attr.GetPath()
        trace = get_value_producing_attribute(stage, attr, max_hops=max_hops)
        raw = _read_terminal_value(trace.attribute, time_code)
        if is_type_name(value_type):
            check_type_name(trace.attribute, value_type)
            value = copy_value(raw)
        else:
            value = coerce_value(raw, value_type)
    except ShadeBindError as exc:
        LOG.debug("Evaluation of %s.%s failed: %s", prim.GetPath(), attr_name, exc)
        return EvaluationResult(
            ok=False,
            attribute_path=attribute_path,
            error=exc.message,
            error_kind=exc.kind,
        )
    return EvaluationResult(
        ok=True,
        value=value,
        attribute_path=attribute_path,
        source_path=trace.source_path,
        hops=trace.hops,
    )


def _authored_surface_output(prim, render_context: str):
    contexts = [render_context] if render_context else []
    contexts.append("")
    material = UsdShade.Material(prim) if prim.IsA(UsdShade.Material) else None
    for context in contexts:
        if material is not None:
            attr = material.GetSurfaceOutput(context).GetAttr()
        else:
            attr = prim.GetAttribute(f"{_OUTPUTS_PREFIX}{context}:surface" if context else f"{_OUTPUTS_PREFIX}surface")
        # Material declares outputs:surface in its schema; only authored opinions count.
        if attr and (attr.IsAuthored() or attr.HasAuthoredConnections()):
            return attr
    return None


def get_surface_shader(stage, material, render_context: str = "") -> SurfaceShaderResult:
    """Return the shader whose output drives ``material``'s surface terminal.

    ``outputs:<render_context>:surface`` is tried first, then the universal
    ``outputs:surface``.  Node-graph outputs in between are followed like any
    other connection.
    """
    prim = require_prim(stage, material)
    output = _authored_surface_output(prim, render_context.strip(":"))
    if output is None:
        return SurfaceShaderResult(
            ok=False,
            error=f"{prim.GetPath()} has no surface output",
            error_kind=ErrorKind.ATTRIBUTE_NOT_FOUND,
        )
    try:
        trace = get_value_producing_attribute(stage, output)
    except ShadeBindError as exc:
        return SurfaceShaderResult(
            ok=False, output_path=output.GetPath(), error=exc.message, error_kind=exc.kind
        )
    if trace.hops == 0:
        return SurfaceShaderResult(
            ok=False,
            output_path=output.GetPath(),
            error=f"{output.GetPath()} is not connected to a shader",
            error_kind=ErrorKind.NO_VALUE,
        )
    source_prim = trace.attribute.GetPrim()
    if not source_prim.IsA(UsdShade.Shader):
        return SurfaceShaderResult(
            ok=False,
            output_path=output.GetPath(),
            source_path=trace.source_path,
            error=f"{source_prim.GetPath()} is not a Shader",
            error_kind=ErrorKind.DANGLING_CONNECTION,
        )
    return SurfaceShaderResult(
        ok=True,
        shader=UsdShade.Shader(source_prim),
        output_path=output.GetPath(),
        source_path=trace.source_path,
    )
