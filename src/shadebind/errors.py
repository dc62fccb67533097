"""Failure taxonomy shared by the shader-value and material-binding resolvers.

Walkers raise :class:`ShadeBindError` internally; the public operations catch
it and hand back a result object whose ``ok`` flag is False, so expected
failures (missing attribute, missing binding, unresolved target) never escape
as exceptions.  Contract violations such as passing a prim from another stage
raise ``ValueError`` instead.
"""

from __future__ import annotations

import enum
from typing import Optional


class ErrorKind(str, enum.Enum):
    ATTRIBUTE_NOT_FOUND = "attribute_not_found"
    NODE_NOT_FOUND = "node_not_found"
    TYPE_MISMATCH = "type_mismatch"
    NO_SAMPLE_AT_TIME = "no_sample_at_time"
    NO_VALUE = "no_value"
    DANGLING_CONNECTION = "dangling_connection"
    MULTIPLE_CONNECTIONS = "multiple_connections"
    CONNECTION_CYCLE = "connection_cycle"
    CONNECTION_CHAIN_TOO_LONG = "connection_chain_too_long"
    MALFORMED_BINDING = "malformed_binding"
    MATERIAL_NOT_FOUND = "material_not_found"
    NO_BINDING = "no_binding"


class ShadeBindError(Exception):
    """A reportable resolution failure tagged with its :class:`ErrorKind`."""

    def __init__(self, kind: ErrorKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class ResultMixin:
    """Shared helpers for the frozen result dataclasses."""

    ok: bool
    error: Optional[str]
    error_kind: Optional[ErrorKind]

    def __bool__(self) -> bool:
        return bool(self.ok)

    def raise_for_error(self):
        """Raise :class:`ShadeBindError` when the result reports a failure; return self otherwise."""
        if not self.ok:
            raise ShadeBindError(self.error_kind or ErrorKind.NO_VALUE, self.error or "resolution failed")
        return self
