#!/usr/bin/env python3
"""
main.py – CLI entry point for the Post-fire Environmental Assessment engine.

Usage:
    python main.py --pre-nbr pre.tif --post-nbr post.tif \\
        --bsi bsi.tif --k-factor k.tif --resprouters resp.tif --slope slope.tif \\
        --regeneration vv.tif --aspect aspect.tif --aridity ai.tif \\
        --recurrence recurrence.tif --region fire.geojson

All rasters must be single-band, clipped to the fire and on one grid.

The pipeline:
    1. Burn severity – dNBR, 8-boundary ladder, per-class area table
    2. Soil erosion risk MCE (if its 5 criteria are given)
    3. Vegetation recovery MCE (if its 5 criteria are given)
    4. Situation report (printed, optionally saved as JSON)
"""

import argparse
import json
import os
import sys

from shapely.geometry import shape
from shapely.ops import unary_union

# Ensure project root is on the path so `import config` works
sys.path.insert(0, os.path.dirname(__file__))

import config
from postfire_mce.ahp import aggregate_expert_weights
from postfire_mce.decision_support import generate_report
from postfire_mce.errors import MCEError
from postfire_mce.fire_severity import (
    burn_severity_statistics,
    classify_burn_severity,
    compute_dnbr,
    scale_dnbr,
)
from postfire_mce.mce_model import compute_soil_erosion_risk, compute_vegetation_recovery
from postfire_mce.preprocessing import validate_range
from postfire_mce.raster import RasterLayer


SOIL_INPUTS = ["bsi", "k_factor", "resprouters", "slope"]
VEGETATION_INPUTS = ["regeneration", "aspect", "aridity", "recurrence"]


def parse_args(argv=None):
    p = argparse.ArgumentParser(
        description="Post-fire severity, soil erosion risk and vegetation recovery maps",
    )
    g = p.add_argument_group("burn severity")
    g.add_argument("--dnbr", help="Unscaled dNBR raster (instead of --pre-nbr/--post-nbr)")
    g.add_argument("--pre-nbr", help="Pre-fire NBR raster")
    g.add_argument("--post-nbr", help="Post-fire NBR raster")

    g = p.add_argument_group("soil erosion criteria")
    g.add_argument("--bsi", help="Bare Soil Index raster [-1, 1]")
    g.add_argument("--k-factor", dest="k_factor", help="Soil erodibility (K) raster")
    g.add_argument("--resprouters", help="Resprouting species cover raster (%%)")
    g.add_argument("--slope", help="Slope raster (degrees)")

    g = p.add_argument_group("vegetation recovery criteria")
    g.add_argument("--regeneration", help="Regeneration strategy score raster (1–3)")
    g.add_argument("--aspect", help="Aspect raster (degrees from north)")
    g.add_argument("--aridity", help="Aridity Index raster (× 10 000)")
    g.add_argument("--recurrence", help="Fire recurrence vulnerability score raster (1–3)")

    p.add_argument("--region", help="GeoJSON file with the fire perimeter")
    p.add_argument("--config", help="JSON file overriding pipeline weights")
    p.add_argument("--weights", choices=["expert", "panel"], default="expert",
                   help="Default weights: expert 5's AHP vector, or the mean of "
                        "the five-expert panel (default: expert)")
    p.add_argument("--severity-scale", type=float, default=None,
                   help=f"Sampling scale for severity statistics (default: native, "
                        f"nominal {config.SEVERITY_SCALE} m)")
    p.add_argument("--mce-scale", type=float, default=None,
                   help=f"Sampling scale for MCE statistics (default: native, "
                        f"nominal {config.MCE_SCALE} m)")
    p.add_argument("--report", default=os.path.join(config.OUTPUT_DIR, config.REPORT_JSON),
                   help="Where to save the JSON report ('' to skip)")
    return p.parse_args(argv)


def load_region(path: str):
    """GeoJSON geometry / Feature / FeatureCollection → shapely geometry."""
    if not path:
        return None
    with open(path) as f:
        gj = json.load(f)
    if gj.get("type") == "FeatureCollection":
        return unary_union([shape(feat["geometry"]) for feat in gj["features"]])
    if gj.get("type") == "Feature":
        return shape(gj["geometry"])
    return shape(gj)


def load_overrides(path: str) -> dict:
    if not path:
        return {}
    with open(path) as f:
        overrides = json.load(f)
    print(f"[CFG] Overrides loaded from {path}: {sorted(overrides)}")
    return overrides


def pipeline_weights(overrides: dict, key: str, mode: str, panel: list):
    """--config override first, then the panel mean if asked, else None (config default)."""
    if key in overrides:
        return overrides[key]
    if mode == "panel":
        return aggregate_expert_weights(panel)
    return None


def report_skip(phase: str, dnbr, inputs: dict):
    missing = [k for k, v in inputs.items() if not v]
    if dnbr is None:
        missing.insert(0, "dnbr")
    print(f"[CFG] {phase} skipped – missing inputs: {', '.join(missing)}")


def load_layer(path: str, name: str) -> RasterLayer:
    layer = RasterLayer.open(path, name=name)
    print(f"[IO] {name}: {layer}")
    return layer


def run(args) -> dict:
    region = load_region(args.region)
    overrides = load_overrides(args.config)
    pipelines = []
    severity_stats = None

    # ── Phase 1: Burn Severity ──────────────────────────────────────────
    dnbr = None
    if args.dnbr:
        dnbr = load_layer(args.dnbr, "dnbr")
    elif args.pre_nbr and args.post_nbr:
        dnbr = compute_dnbr(load_layer(args.pre_nbr, "pre_nbr"),
                            load_layer(args.post_nbr, "post_nbr"))

    if dnbr is not None:
        print("\n▶ Phase 1 – Burn Severity")
        validate_range(dnbr, "dnbr")
        classified = classify_burn_severity(scale_dnbr(dnbr))
        severity_stats = burn_severity_statistics(classified, region, args.severity_scale)
    else:
        print("[CFG] Burn severity skipped – give --dnbr or both --pre-nbr and --post-nbr")

    # ── Phase 2: Soil Erosion Risk ──────────────────────────────────────
    soil = {k: getattr(args, k) for k in SOIL_INPUTS}
    if dnbr is not None and all(soil.values()):
        print("\n▶ Phase 2 – Soil Erosion Risk MCE")
        layers = {k: load_layer(v, k) for k, v in soil.items()}
        pipelines.append(compute_soil_erosion_risk(
            dnbr=dnbr,
            weights=pipeline_weights(overrides, "soil_erosion_weights", args.weights,
                                     config.SOIL_EROSION_EXPERT_PANEL),
            region=region,
            scale=args.mce_scale,
            **layers,
        ))
    else:
        report_skip("Soil erosion risk", dnbr, soil)

    # ── Phase 3: Vegetation Recovery ────────────────────────────────────
    veg = {k: getattr(args, k) for k in VEGETATION_INPUTS}
    if dnbr is not None and all(veg.values()):
        print("\n▶ Phase 3 – Vegetation Recovery MCE")
        layers = {k: load_layer(v, k) for k, v in veg.items()}
        pipelines.append(compute_vegetation_recovery(
            dnbr=dnbr,
            weights=pipeline_weights(overrides, "vegetation_weights", args.weights,
                                     config.VEGETATION_EXPERT_PANEL),
            region=region,
            scale=args.mce_scale,
            **layers,
        ))
    else:
        report_skip("Vegetation recovery", dnbr, veg)

    # ── Phase 4: Report ─────────────────────────────────────────────────
    print("\n▶ Phase 4 – Situation Report")
    return generate_report(
        severity=severity_stats,
        pipelines=pipelines,
        params={
            "region": args.region,
            "severity_scale": args.severity_scale,
            "mce_scale": args.mce_scale,
            "weights": args.weights,
        },
        out_path=args.report or None,
    )


def main(argv=None):
    args = parse_args(argv)

    print("=" * 60)
    print("  POST-FIRE ENVIRONMENTAL ASSESSMENT  (AHP MCE)")
    print("=" * 60)

    try:
        run(args)
    except MCEError as e:
        print(f"[ERROR] stage={e.stage or '-'} criterion={e.criterion or '-'}: {e.message}")
        return 1

    print("\n" + "=" * 60)
    print("  Pipeline complete!")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    sys.exit(main())
