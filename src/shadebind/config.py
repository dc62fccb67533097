from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

LOG = logging.getLogger(__name__)

ENV_MAX_CONNECTION_HOPS = "SHADEBIND_MAX_CONNECTION_HOPS"
ENV_LOG_LEVEL = "SHADEBIND_LOG_LEVEL"

_FALLBACK_MAX_HOPS = 256
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ResolverDefaults:
    max_connection_hops: int = _FALLBACK_MAX_HOPS
    log_level: str = "INFO"


def _env_positive_int(environ: Mapping[str, str], name: str, fallback: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return fallback
    try:
        value = int(raw.strip())
    except ValueError:
        LOG.debug("Ignoring non-integer %s=%r; using %d", name, raw, fallback)
        return fallback
    if value < 1:
        LOG.debug("Ignoring non-positive %s=%r; using %d", name, raw, fallback)
        return fallback
    return value


def _env_log_level(environ: Mapping[str, str], name: str, fallback: str) -> str:
    raw = (environ.get(name) or "").strip().upper()
    if raw in _LOG_LEVELS:
        return raw
    if raw:
        LOG.debug("Unknown %s=%r; using %s", name, raw, fallback)
    return fallback


def load_defaults(environ: Optional[Mapping[str, str]] = None) -> ResolverDefaults:
    """Build resolver defaults, honouring SHADEBIND_* environment overrides."""
    env = os.environ if environ is None else environ
    base = ResolverDefaults()
    return ResolverDefaults(
        max_connection_hops=_env_positive_int(env, ENV_MAX_CONNECTION_HOPS, base.max_connection_hops),
        log_level=_env_log_level(env, ENV_LOG_LEVEL, base.log_level),
    )


RESOLVER_DEFAULTS = load_defaults()


def resolve_max_hops(max_hops: Optional[int]) -> int:
    if max_hops is None:
        return RESOLVER_DEFAULTS.max_connection_hops
    value = int(max_hops)
    if value < 1:
        raise ValueError(f"max_hops must be >= 1 (got {max_hops!r})")
    return value
