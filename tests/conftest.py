from __future__ import annotations

import pytest
from pxr import Sdf, Usd, UsdShade


@pytest.fixture()
def stage():
    return Usd.Stage.CreateInMemory()


def make_shader(stage, path: str):
    return UsdShade.Shader.Define(stage, path)


def make_input(prim_or_schema, name: str, type_name=None, value=None):
    prim = prim_or_schema.GetPrim()
    attr = prim.CreateAttribute(name, type_name or Sdf.ValueTypeNames.Float)
    if value is not None:
        attr.Set(value)
    return attr


def connect(attr, target: str):
    attr.AddConnection(Sdf.Path(target))
    return attr


def bind(prim, material_path: str, *, suffix: str = "", strength: str | None = None):
    name = f"material:binding:{suffix}" if suffix else "material:binding"
    rel = prim.CreateRelationship(name)
    rel.SetTargets([Sdf.Path(material_path)])
    if strength:
        rel.SetMetadata("bindMaterialAs", strength)
    return rel


@pytest.fixture()
def binding_stage(stage):
    """/World/A/B/C hierarchy plus three materials under /Looks."""
    for path in ("/World", "/World/A", "/World/A/B", "/World/A/B/C"):
        stage.DefinePrim(path, "Xform")
    stage.DefinePrim("/Looks", "Scope")
    for name in ("M1", "M2", "M3"):
        UsdShade.Material.Define(stage, f"/Looks/{name}")
    return stage
