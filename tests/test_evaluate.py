from __future__ import annotations

import numpy as np
import pytest
from pxr import Gf, Sdf, Usd, UsdShade

from shadebind import ErrorKind, ShadeBindError, evaluate_shader_attribute, get_surface_shader
from shadebind.evaluate import get_value_producing_attribute
from shadebind.value_types import vec3

from conftest import connect, make_input, make_shader


def test_direct_value_is_returned_unchanged(stage):
    shader = make_shader(stage, "/Mat/Surface")
    make_input(shader, "inputs:roughness", Sdf.ValueTypeNames.Float, 0.25)

    result = evaluate_shader_attribute(stage, shader, "inputs:roughness", float)

    assert result.ok
    assert result.value == 0.25
    assert result.hops == 0
    assert result.source_path == Sdf.Path("/Mat/Surface.inputs:roughness")


def test_vector_value_is_copied(stage):
    shader = make_shader(stage, "/Mat/Surface")
    stored = Gf.Vec3f(0.5, 0.25, 1.0)
    make_input(shader, "inputs:diffuseColor", Sdf.ValueTypeNames.Color3f, stored)

    result = evaluate_shader_attribute(stage, shader, "inputs:diffuseColor", vec3)

    assert result.ok
    assert isinstance(result.value, Gf.Vec3f)
    assert result.value == stored
    result.value[0] = 9.0
    again = evaluate_shader_attribute(stage, shader, "inputs:diffuseColor", vec3)
    assert again.value == stored


def test_bare_name_falls_back_to_inputs_namespace(stage):
    shader = make_shader(stage, "/Mat/Surface")
    make_input(shader, "inputs:metallic", Sdf.ValueTypeNames.Float, 1.0)

    result = evaluate_shader_attribute(stage, shader, "metallic", float)

    assert result.ok
    assert result.value == 1.0


def test_missing_attribute_is_reported(stage):
    shader = make_shader(stage, "/Mat/Surface")

    result = evaluate_shader_attribute(stage, shader, "inputs:nope", float)

    assert not result.ok
    assert result.error_kind is ErrorKind.ATTRIBUTE_NOT_FOUND
    assert "inputs:nope" in result.error


def test_type_mismatch_is_reported(stage):
    shader = make_shader(stage, "/Mat/Surface")
    make_input(shader, "inputs:file", Sdf.ValueTypeNames.String, "tex.png")

    result = evaluate_shader_attribute(stage, shader, "inputs:file", float)

    assert not result.ok
    assert result.error_kind is ErrorKind.TYPE_MISMATCH


def test_value_type_name_checks_declared_type(stage):
    shader = make_shader(stage, "/Mat/Surface")
    make_input(shader, "inputs:diffuseColor", Sdf.ValueTypeNames.Color3f, Gf.Vec3f(1, 0, 0))

    ok = evaluate_shader_attribute(stage, shader, "inputs:diffuseColor", Sdf.ValueTypeNames.Float3)
    bad = evaluate_shader_attribute(stage, shader, "inputs:diffuseColor", Sdf.ValueTypeNames.Float)

    assert ok.ok and ok.value == Gf.Vec3f(1, 0, 0)
    assert bad.error_kind is ErrorKind.TYPE_MISMATCH


def test_numpy_result_type(stage):
    shader = make_shader(stage, "/Mat/Surface")
    make_input(shader, "inputs:st", Sdf.ValueTypeNames.Float2, Gf.Vec2f(0.5, 0.75))

    result = evaluate_shader_attribute(stage, shader, "inputs:st", np.ndarray)

    assert result.ok
    np.testing.assert_allclose(result.value, [0.5, 0.75])


@pytest.mark.parametrize("length", [1, 2, 5])
def test_connection_chain_returns_terminal_value(stage, length):
    shaders = [make_shader(stage, f"/Mat/Node{i}") for i in range(length + 1)]
    make_input(shaders[-1], "inputs:value", Sdf.ValueTypeNames.Float, 0.5)
    for i in range(length):
        attr = make_input(shaders[i], "inputs:value", Sdf.ValueTypeNames.Float)
        connect(attr, f"/Mat/Node{i + 1}.inputs:value")

    result = evaluate_shader_attribute(stage, shaders[0], "inputs:value", float)

    assert result.ok
    assert result.value == 0.5
    assert result.hops == length
    assert result.source_path == Sdf.Path(f"/Mat/Node{length}.inputs:value")


def test_connection_through_usdshade_api(stage):
    material = UsdShade.Material.Define(stage, "/Mat")
    shader = make_shader(stage, "/Mat/Surface")
    material_input = material.CreateInput("opacity", Sdf.ValueTypeNames.Float)
    material_input.Set(0.75)
    shader.CreateInput("opacity", Sdf.ValueTypeNames.Float).ConnectToSource(material_input)

    result = evaluate_shader_attribute(stage, shader, "inputs:opacity", float)

    assert result.ok
    assert result.value == 0.75
    assert result.source_path == Sdf.Path("/Mat.inputs:opacity")


def test_connection_wins_over_authored_value(stage):
    upstream = make_shader(stage, "/Mat/Upstream")
    make_input(upstream, "inputs:value", Sdf.ValueTypeNames.Float, 0.5)
    shader = make_shader(stage, "/Mat/Surface")
    attr = make_input(shader, "inputs:value", Sdf.ValueTypeNames.Float, 0.25)
    connect(attr, "/Mat/Upstream.inputs:value")

    assert evaluate_shader_attribute(stage, shader, "inputs:value", float).value == 0.5


@pytest.mark.parametrize("cycle_length", [1, 2, 3])
def test_cycle_is_reported(stage, cycle_length):
    shaders = [make_shader(stage, f"/Mat/Node{i}") for i in range(cycle_length)]
    for i, shader in enumerate(shaders):
        attr = make_input(shader, "inputs:value", Sdf.ValueTypeNames.Float)
        connect(attr, f"/Mat/Node{(i + 1) % cycle_length}.inputs:value")

    result = evaluate_shader_attribute(stage, shaders[0], "inputs:value", float)

    assert not result.ok
    assert result.error_kind is ErrorKind.CONNECTION_CYCLE


def test_chain_longer_than_max_hops_is_reported(stage):
    shaders = [make_shader(stage, f"/Mat/Node{i}") for i in range(5)]
    make_input(shaders[-1], "inputs:value", Sdf.ValueTypeNames.Float, 0.5)
    for i in range(4):
        connect(make_input(shaders[i], "inputs:value"), f"/Mat/Node{i + 1}.inputs:value")

    too_short = evaluate_shader_attribute(stage, shaders[0], "inputs:value", float, max_hops=3)
    exact = evaluate_shader_attribute(stage, shaders[0], "inputs:value", float, max_hops=4)

    assert too_short.error_kind is ErrorKind.CONNECTION_CHAIN_TOO_LONG
    assert exact.ok and exact.value == 0.5


def test_dangling_prim_connection(stage):
    shader = make_shader(stage, "/Mat/Surface")
    connect(make_input(shader, "inputs:value"), "/Mat/Missing.inputs:value")

    result = evaluate_shader_attribute(stage, shader, "inputs:value", float)

    assert result.error_kind is ErrorKind.DANGLING_CONNECTION
    assert "/Mat/Missing" in result.error


def test_dangling_attribute_connection(stage):
    make_shader(stage, "/Mat/Upstream")
    shader = make_shader(stage, "/Mat/Surface")
    connect(make_input(shader, "inputs:value"), "/Mat/Upstream.inputs:absent")

    result = evaluate_shader_attribute(stage, shader, "inputs:value", float)

    assert result.error_kind is ErrorKind.DANGLING_CONNECTION


def test_multiple_connection_sources_are_rejected(stage):
    for name in ("A", "B"):
        make_input(make_shader(stage, f"/Mat/{name}"), "inputs:value", Sdf.ValueTypeNames.Float, 0.5)
    shader = make_shader(stage, "/Mat/Surface")
    attr = make_input(shader, "inputs:value")
    connect(attr, "/Mat/A.inputs:value")
    connect(attr, "/Mat/B.inputs:value")

    result = evaluate_shader_attribute(stage, shader, "inputs:value", float)

    assert result.error_kind is ErrorKind.MULTIPLE_CONNECTIONS


def test_unauthored_attribute_has_no_value(stage):
    shader = make_shader(stage, "/Mat/Surface")
    make_input(shader, "inputs:value")

    result = evaluate_shader_attribute(stage, shader, "inputs:value", float)

    assert result.error_kind is ErrorKind.NO_VALUE


def test_time_samples_are_sampled_at_requested_time(stage):
    shader = make_shader(stage, "/Mat/Surface")
    attr = make_input(shader, "inputs:value")
    attr.Set(0.25, Usd.TimeCode(1.0))
    attr.Set(0.75, Usd.TimeCode(10.0))

    first = evaluate_shader_attribute(stage, shader, "inputs:value", float, 1.0)
    last = evaluate_shader_attribute(stage, shader, "inputs:value", float, Usd.TimeCode(10.0))

    assert first.value == 0.25
    assert last.value == 0.75


def test_time_samples_through_connection(stage):
    upstream = make_shader(stage, "/Mat/Upstream")
    attr = make_input(upstream, "inputs:value")
    attr.Set(0.25, Usd.TimeCode(1.0))
    attr.Set(0.75, Usd.TimeCode(2.0))
    shader = make_shader(stage, "/Mat/Surface")
    connect(make_input(shader, "inputs:value"), "/Mat/Upstream.inputs:value")

    assert evaluate_shader_attribute(stage, shader, "inputs:value", float, 2.0).value == 0.75


def test_time_sampled_attribute_without_default_at_default_time(stage):
    shader = make_shader(stage, "/Mat/Surface")
    make_input(shader, "inputs:value").Set(0.5, Usd.TimeCode(1.0))

    result = evaluate_shader_attribute(stage, shader, "inputs:value", float)

    assert result.error_kind is ErrorKind.NO_SAMPLE_AT_TIME


def test_shader_from_another_stage_is_a_contract_violation(stage):
    other = Usd.Stage.CreateInMemory()
    shader = make_shader(other, "/Mat/Surface")

    with pytest.raises(ValueError):
        evaluate_shader_attribute(stage, shader, "inputs:value", float)


def test_raise_for_error(stage):
    shader = make_shader(stage, "/Mat/Surface")
    result = evaluate_shader_attribute(stage, shader, "inputs:value", float)

    with pytest.raises(ShadeBindError) as excinfo:
        result.raise_for_error()
    assert excinfo.value.kind is ErrorKind.ATTRIBUTE_NOT_FOUND


def test_value_producing_attribute_trace(stage):
    make_input(make_shader(stage, "/Mat/B"), "inputs:value", Sdf.ValueTypeNames.Float, 0.5)
    start = connect(make_input(make_shader(stage, "/Mat/A"), "inputs:value"), "/Mat/B.inputs:value")

    trace = get_value_producing_attribute(stage, start)

    assert trace.hops == 1
    assert trace.chain == (Sdf.Path("/Mat/A.inputs:value"), Sdf.Path("/Mat/B.inputs:value"))
    assert trace.attribute.GetPath() == Sdf.Path("/Mat/B.inputs:value")


def _preview_material(stage):
    material = UsdShade.Material.Define(stage, "/Looks/Red")
    shader = make_shader(stage, "/Looks/Red/Preview")
    shader.CreateIdAttr("UsdPreviewSurface")
    surface = shader.CreateOutput("surface", Sdf.ValueTypeNames.Token)
    material.CreateSurfaceOutput().ConnectToSource(surface)
    return material, shader


def test_surface_shader_lookup(stage):
    material, shader = _preview_material(stage)

    result = get_surface_shader(stage, material)

    assert result.ok
    assert result.shader.GetPath() == shader.GetPath()
    assert result.output_path == Sdf.Path("/Looks/Red.outputs:surface")


def test_surface_shader_render_context_falls_back_to_universal_output(stage):
    material, shader = _preview_material(stage)

    result = get_surface_shader(stage, material, "mdl")

    assert result.ok
    assert result.shader.GetPath() == shader.GetPath()


def test_surface_shader_missing_output(stage):
    material = UsdShade.Material.Define(stage, "/Looks/Empty")

    result = get_surface_shader(stage, material)

    assert not result.ok
    assert result.error_kind is ErrorKind.ATTRIBUTE_NOT_FOUND
    assert result.output_path is None


def test_surface_shader_context_output_only_is_not_universal(stage):
    material = UsdShade.Material.Define(stage, "/Looks/MdlOnly")
    shader = make_shader(stage, "/Looks/MdlOnly/Mdl")
    surface = shader.CreateOutput("out", Sdf.ValueTypeNames.Token)
    material.CreateSurfaceOutput("mdl").ConnectToSource(surface)

    universal = get_surface_shader(stage, material)
    mdl = get_surface_shader(stage, material, "mdl")

    assert universal.error_kind is ErrorKind.ATTRIBUTE_NOT_FOUND
    assert mdl.ok
    assert mdl.output_path == Sdf.Path("/Looks/MdlOnly.outputs:mdl:surface")
    assert mdl.shader.GetPath() == shader.GetPath()
