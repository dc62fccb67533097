"""Material binding lookup following the UsdShade binding convention.

Two layers:

* :func:`get_local_material_binding` reads one prim's own
  ``material:binding[:<suffix>]`` relationship and any collection bindings
  (``material:binding:collection[:<suffix>]:<name>``) without looking at
  ancestors.
* :func:`get_bound_material` walks from a prim up to the top of its hierarchy
  and applies binding strength: the nearest binding wins unless an ancestor
  binding is authored ``bindMaterialAs = "strongerThanDescendants"``.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

from .errors import ErrorKind, ResultMixin, ShadeBindError
from .evaluate import require_prim
from .pxr_utils import Sdf, UsdShade

LOG = logging.getLogger(__name__)

BIND_MATERIAL_AS = "bindMaterialAs"


class BindingStrength(str, enum.Enum):
    WEAKER_THAN_DESCENDANTS = "weakerThanDescendants"
    STRONGER_THAN_DESCENDANTS = "strongerThanDescendants"

    @classmethod
    def from_token(cls, token: Optional[str]) -> "BindingStrength":
        if token == cls.STRONGER_THAN_DESCENDANTS.value:
            return cls.STRONGER_THAN_DESCENDANTS
        if token and token != cls.WEAKER_THAN_DESCENDANTS.value:
            LOG.debug("Unknown %s token '%s'; treating as %s", BIND_MATERIAL_AS, token, cls.WEAKER_THAN_DESCENDANTS.value)
        return cls.WEAKER_THAN_DESCENDANTS


def normalize_suffix(suffix: Optional[str]) -> str:
    return (suffix or "").strip().strip(":")


def read_binding_strength(rel) -> str:
    """Return the authored ``bindMaterialAs`` token of ``rel``, or ``""`` when absent."""
    if not rel or not rel.HasAuthoredMetadata(BIND_MATERIAL_AS):
        return ""
    token = rel.GetMetadata(BIND_MATERIAL_AS)
    return str(token) if token else ""


@dataclass(frozen=True)
class BindingEntry:
    relationship: str
    material_path: Any
    material: Optional[Any]
    binding_strength: str = ""
    collection_path: Optional[Any] = None

    @property
    def is_collection(self) -> bool:
        return self.collection_path is not None


@dataclass(frozen=True)
class LocalMaterialBinding(ResultMixin):
    ok: bool
    prim_path: Any
    suffix: str = ""
    entries: Tuple[BindingEntry, ...] = ()
    relationships: Tuple[str, ...] = ()
    binding_strength: str = ""
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def material_paths(self) -> List[Any]:
        return [entry.material_path for entry in self.entries]

    @property
    def materials(self) -> List[Optional[Any]]:
        return [entry.material for entry in self.entries]

    @property
    def has_binding(self) -> bool:
        return bool(self.relationships)

    @property
    def strength(self) -> BindingStrength:
        return BindingStrength.from_token(self.binding_strength)


@dataclass(frozen=True)
class BoundMaterialResult(ResultMixin):
    ok: bool
    prim_path: Any
    suffix: str = ""
    material_path: Optional[Any] = None
    material: Optional[Any] = None
    bound_at: Optional[Any] = None
    binding_strength: str = ""
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None


def _resolve_material(stage, path):
    prim = stage.GetPrimAtPath(path)
    if prim and prim.IsA(UsdShade.Material):
        return UsdShade.Material(prim)
    return None


def _check_material_target(rel, target) -> None:
    if not target.IsAbsolutePath() or not target.IsPrimPath():
        raise ShadeBindError(
            ErrorKind.MALFORMED_BINDING,
            f"{rel.GetPath()} targets <{target}>, which is not an absolute prim path",
        )


def _direct_entry(stage, rel, targets) -> BindingEntry:
    if len(targets) != 1:
        raise ShadeBindError(
            ErrorKind.MALFORMED_BINDING,
            f"{rel.GetPath()} has {len(targets)} targets; a direct binding takes exactly one",
        )
    target = targets[0]
    _check_material_target(rel, target)
    return BindingEntry(
        relationship=rel.GetName(),
        material_path=target,
        material=_resolve_material(stage, target),
        binding_strength=read_binding_strength(rel),
    )


def _collection_is_defined(stage, collection_path) -> bool:
    prim = stage.GetPrimAtPath(collection_path.GetPrimPath())
    if not prim:
        return False
    instance = collection_path.name.split(":", 1)[1]
    if f"CollectionAPI:{instance}" in prim.GetAppliedSchemas():
        return True
    return bool(prim.GetAuthoredPropertiesInNamespace(collection_path.name))


def _collection_entry(stage, rel) -> BindingEntry:
    binding = UsdShade.MaterialBindingAPI.CollectionBinding(rel)
    collection_path = binding.GetCollectionPath()
    target = binding.GetMaterialPath()
    if collection_path.isEmpty or target.isEmpty:
        raise ShadeBindError(
            ErrorKind.MALFORMED_BINDING,
            f"{rel.GetPath()} must target one collection and one material (got {len(rel.GetTargets())} targets)",
        )
    if not _collection_is_defined(stage, collection_path):
        raise ShadeBindError(
            ErrorKind.MALFORMED_BINDING,
            f"collection <{collection_path}> bound by {rel.GetPath()} is not defined",
        )
    _check_material_target(rel, target)
    return BindingEntry(
        relationship=rel.GetName(),
        material_path=target,
        material=_resolve_material(stage, target),
        binding_strength=read_binding_strength(rel),
        collection_path=collection_path,
    )


def get_local_material_binding(
    stage,
    prim,
    suffix: str = "",
    *,
    include_collections: bool = True,
) -> LocalMaterialBinding:
    """Read the material bindings authored directly on ``prim``.

    ``ok`` is True when no binding is authored (empty result) or when every
    bound target resolves to a Material.  A target that is not a Material
    yields an entry with ``material=None`` and ``ok=False``
    (``MATERIAL_NOT_FOUND``); malformed relationships report
    ``MALFORMED_BINDING``.
    """
    prim = require_prim(stage, prim)
    suffix = normalize_suffix(suffix)
    entries: List[BindingEntry] = []
    relationships: List[str] = []
    problems: List[ShadeBindError] = []
    strength = ""

    binding_api = UsdShade.MaterialBindingAPI(prim)
    direct = binding_api.GetDirectBindingRel(suffix)
    targets = direct.GetTargets() if direct else []
    if targets:
        relationships.append(direct.GetName())
        strength = read_binding_strength(direct)
        try:
            entries.append(_direct_entry(stage, direct, targets))
        except ShadeBindError as exc:
            problems.append(exc)

    if include_collections:
        for rel in binding_api.GetCollectionBindingRels(suffix):
            targets = rel.GetTargets()
            if not targets:
                continue
            if not relationships:
                strength = read_binding_strength(rel)
            relationships.append(rel.GetName())
            try:
                entries.append(_collection_entry(stage, rel))
            except ShadeBindError as exc:
                problems.append(exc)

    result = dict(
        prim_path=prim.GetPath(),
        suffix=suffix,
        entries=tuple(entries),
        relationships=tuple(relationships),
        binding_strength=strength,
    )
    if problems:
        first = problems[0]
        LOG.debug("Malformed binding on %s: %s", prim.GetPath(), first)
        return LocalMaterialBinding(ok=False, error=first.message, error_kind=first.kind, **result)
    unresolved = [entry for entry in entries if entry.material is None]
    if unresolved:
        paths = ", ".join(f"<{entry.material_path}>" for entry in unresolved)
        return LocalMaterialBinding(
            ok=False,
            error=f"binding target(s) {paths} on {prim.GetPath()} do not resolve to a Material",
            error_kind=ErrorKind.MATERIAL_NOT_FOUND,
            **result,
        )
    return LocalMaterialBinding(ok=True, **result)


def ancestor_chain(path) -> List[Any]:
    """Prim paths from ``path`` up to its top-level ancestor, nearest first.

    The pseudo-root holds no properties and yields an empty chain.
    """
    return [prefix for prefix in reversed(path.GetPrefixes()) if not prefix.IsAbsoluteRootPath()]


def _read_level(stage, prim_path, suffix: str) -> Optional[LocalMaterialBinding]:
    prim = stage.GetPrimAtPath(prim_path)
    if not prim:
        return None
    binding = get_local_material_binding(stage, prim, suffix, include_collections=False)
    return binding if binding.has_binding else None


def get_bound_material(stage, abs_path, suffix: str = "") -> BoundMaterialResult:
    """Resolve the material that renders the prim at ``abs_path``.

    The nearest ancestor-or-self binding is the candidate; every ancestor
    further out whose binding is ``strongerThanDescendants`` replaces it, the
    outermost such ancestor winning.  ``ok`` is False when no binding exists
    (``NO_BINDING``) or the winning binding is malformed; an unresolvable
    material target keeps ``ok`` True with ``material`` set to None.
    """
    path = abs_path if isinstance(abs_path, Sdf.Path) else Sdf.Path(str(abs_path))
    if not path.IsAbsoluteRootPath() and not (path.IsAbsolutePath() and path.IsPrimPath()):
        raise ValueError(f"<{abs_path}> is not an absolute prim path")
    suffix = normalize_suffix(suffix)
    if not stage.GetPrimAtPath(path):
        return BoundMaterialResult(
            ok=False,
            prim_path=path,
            suffix=suffix,
            error=f"no prim at <{path}>",
            error_kind=ErrorKind.NODE_NOT_FOUND,
        )

    chain = ancestor_chain(path)
    candidate: Optional[LocalMaterialBinding] = None
    candidate_index = 0
    for index, prim_path in enumerate(chain):
        candidate = _read_level(stage, prim_path, suffix)
        if candidate is not None:
            candidate_index = index
            break
    if candidate is None:
        return BoundMaterialResult(
            ok=False,
            prim_path=path,
            suffix=suffix,
            error=f"no material binding (purpose '{suffix}') found on <{path}> or its ancestors",
            error_kind=ErrorKind.NO_BINDING,
        )

    for prim_path in chain[candidate_index + 1:]:
        binding = _read_level(stage, prim_path, suffix)
        if binding is not None and binding.strength is BindingStrength.STRONGER_THAN_DESCENDANTS:
            LOG.debug("Binding on %s overrides %s for %s", prim_path, candidate.prim_path, path)
            candidate = binding

    if candidate.error_kind is ErrorKind.MALFORMED_BINDING or not candidate.entries:
        return BoundMaterialResult(
            ok=False,
            prim_path=path,
            suffix=suffix,
            bound_at=candidate.prim_path,
            binding_strength=candidate.binding_strength,
            error=candidate.error,
            error_kind=ErrorKind.MALFORMED_BINDING,
        )
    entry = candidate.entries[0]
    return BoundMaterialResult(
        ok=True,
        prim_path=path,
        suffix=suffix,
        material_path=entry.material_path,
        material=entry.material,
        bound_at=candidate.prim_path,
        binding_strength=candidate.binding_strength,
    )
