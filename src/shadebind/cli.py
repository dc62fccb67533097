from __future__ import annotations

import argparse
import enum
import json
import logging
import sys
from typing import Any, Sequence

import numpy as np

from .binding import get_bound_material, get_local_material_binding
from .config import RESOLVER_DEFAULTS
from .evaluate import evaluate_shader_attribute, get_surface_shader
from .pxr_utils import Sdf, Usd
from .usd_context import initialize_usd, shutdown_usd_context
from .value_types import resolve_value_type, to_numpy

LOG = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_BAD_INPUT = 2


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="shadebind",
        description="Inspect material bindings and shader attribute values on a USD stage.",
    )
    parser.add_argument("stage", help="Path to a USD layer or stage (usda/usdc/usdz)")
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=("DEBUG", "INFO", "WARNING", "ERROR"),
        default=RESOLVER_DEFAULTS.log_level,
        help="Logging verbosity (default: %(default)s; env SHADEBIND_LOG_LEVEL).",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    bound = commands.add_parser("bound", help="Resolve the material bound to a prim, honouring ancestors.")
    bound.add_argument("prim_path", help="Absolute prim path, e.g. /World/Geom/mesh0")
    bound.add_argument(
        "--suffix",
        dest="suffix",
        default="",
        help="Binding suffix/purpose, e.g. 'preview' reads material:binding:preview (default: unqualified).",
    )

    local = commands.add_parser("local", help="Show the material bindings authored on a single prim.")
    local.add_argument("prim_path", help="Absolute prim path")
    local.add_argument("--suffix", dest="suffix", default="", help="Binding suffix/purpose (default: unqualified).")
    local.add_argument(
        "--no-collections",
        dest="include_collections",
        action="store_false",
        help="Ignore material:binding:collection:* relationships.",
    )

    evaluate = commands.add_parser("eval", help="Evaluate the terminal value of a shader attribute.")
    evaluate.add_argument("shader_path", help="Absolute path of the shader (or material) prim")
    evaluate.add_argument("attr_name", help="Attribute name, e.g. inputs:diffuseColor (bare names imply inputs:)")
    evaluate.add_argument(
        "--type",
        dest="value_type",
        default="any",
        help="Expected type: any, float, int, bool, string, vec2/vec3/vec4/mat2, Gf class or Sdf type name (default: %(default)s).",
    )
    evaluate.add_argument("--time", dest="time", type=float, default=None, help="Time code to sample (default: default time).")
    evaluate.add_argument(
        "--max-hops",
        dest="max_hops",
        type=int,
        default=None,
        help=f"Maximum connection hops to follow (default: {RESOLVER_DEFAULTS.max_connection_hops}).",
    )

    surface = commands.add_parser("surface", help="Find the shader driving a material's surface output.")
    surface.add_argument("material_path", help="Absolute path of the material prim")
    surface.add_argument("--render-context", dest="render_context", default="", help="Render context, e.g. 'mdl'.")

    return parser.parse_args(argv)


def _jsonable(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, Sdf.Path):
        return str(value)
    if isinstance(value, Sdf.AssetPath):
        return value.path
    if hasattr(value, "GetPath"):
        return str(value.GetPath())
    try:
        return to_numpy(value).tolist()
    except (TypeError, ValueError):
        return str(value)


def _prim_or_none(stage, path_text: str):
    prim = stage.GetPrimAtPath(Sdf.Path(path_text))
    if not prim:
        LOG.error("No prim at %s", path_text)
        return None
    return prim


def _run(stage, args: argparse.Namespace) -> tuple[dict, bool]:
    if args.command == "bound":
        result = get_bound_material(stage, Sdf.Path(args.prim_path), args.suffix)
        payload = {
            "prim": result.prim_path,
            "suffix": result.suffix,
            "material_path": result.material_path,
            "material_found": result.material is not None,
            "bound_at": result.bound_at,
            "binding_strength": result.binding_strength,
        }
    elif args.command == "local":
        prim = _prim_or_none(stage, args.prim_path)
        if prim is None:
            return {"prim": args.prim_path, "error": "prim not found"}, False
        result = get_local_material_binding(stage, prim, args.suffix, include_collections=args.include_collections)
        payload = {
            "prim": result.prim_path,
            "suffix": result.suffix,
            "binding_strength": result.binding_strength,
            "bindings": [
                {
                    "relationship": entry.relationship,
                    "material_path": entry.material_path,
                    "material_found": entry.material is not None,
                    "binding_strength": entry.binding_strength,
                    "collection": entry.collection_path,
                }
                for entry in result.entries
            ],
        }
    elif args.command == "eval":
        prim = _prim_or_none(stage, args.shader_path)
        if prim is None:
            return {"shader": args.shader_path, "error": "prim not found"}, False
        result = evaluate_shader_attribute(
            stage,
            prim,
            args.attr_name,
            resolve_value_type(args.value_type),
            args.time,
            max_hops=args.max_hops,
        )
        payload = {
            "attribute": result.attribute_path if result.attribute_path is not None else f"{args.shader_path}.{args.attr_name}",
            "value": result.value,
            "source": result.source_path,
            "hops": result.hops,
        }
    else:
        prim = _prim_or_none(stage, args.material_path)
        if prim is None:
            return {"material": args.material_path, "error": "prim not found"}, False
        result = get_surface_shader(stage, prim, args.render_context)
        payload = {
            "material": prim.GetPath(),
            "output": result.output_path,
            "shader": result.shader,
            "source": result.source_path,
        }
    payload["ok"] = result.ok
    if not result.ok:
        payload["error"] = result.error
        payload["error_kind"] = result.error_kind
    return payload, result.ok


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s: %(message)s")
    try:
        initialize_usd()
    except ImportError as exc:
        LOG.error("%s", exc)
        return EXIT_BAD_INPUT
    try:
        try:
            stage = Usd.Stage.Open(args.stage)
        except Exception as exc:  # Tf.ErrorException carries the layer diagnostics
            LOG.error("Could not open stage %s: %s", args.stage, exc)
            return EXIT_BAD_INPUT
        if stage is None:
            LOG.error("Could not open stage %s", args.stage)
            return EXIT_BAD_INPUT
        try:
            payload, ok = _run(stage, args)
        except ValueError as exc:
            LOG.error("%s", exc)
            return EXIT_BAD_INPUT
        json.dump(_jsonable(payload), sys.stdout, indent=2)
        sys.stdout.write("\n")
        return EXIT_OK if ok else EXIT_FAILED
    finally:
        shutdown_usd_context()

