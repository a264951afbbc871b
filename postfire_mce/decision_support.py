"""
Decision Support Module – Zonal statistics, range areas and situation report.
"""

import json
import math
import os
from dataclasses import asdict, dataclass

import numpy as np

import config
from postfire_mce.classification import ThresholdLadder
from postfire_mce.errors import ConfigError, DomainError
from postfire_mce.raster import RasterLayer


@dataclass(frozen=True)
class ClassRecord:
    class_index: int
    label: str
    pixels: int
    area: float
    percentage: float


@dataclass(frozen=True)
class ZonalStats:
    total_valid_pixels: int
    cell_area: float
    per_class: tuple

    def as_dict(self) -> dict:
        return {
            "total_valid_pixels": self.total_valid_pixels,
            "cell_area": self.cell_area,
            "per_class": [asdict(r) for r in self.per_class],
        }


@dataclass(frozen=True)
class AreaRange:
    """Open interval (lower, upper) used for ad-hoc area reporting."""
    lower: float
    upper: float
    label: str

    def __post_init__(self):
        if not self.lower < self.upper:
            raise ConfigError(
                f"Area range '{self.label}' is empty: lower={self.lower} >= upper={self.upper}"
            )

    @classmethod
    def from_dict(cls, d: dict) -> "AreaRange":
        return cls(lower=d["min"], upper=d["max"], label=str(d["label"]))


def _round_half_up(x: float) -> float:
    return math.floor(x + 0.5)


def _valid_values(layer: RasterLayer, region, scale):
    """Resampled layer values inside the region, or DomainError when none."""
    sampled = layer.resample(scale)
    inside = sampled.valid_in(region)
    if not inside.any():
        raise DomainError(
            f"Region holds no valid pixels of '{layer.name}'",
            criterion=layer.name,
        )
    return sampled, inside


def zonal_statistics(
    classified: RasterLayer,
    region=None,
    scale: float = None,
    ladder: ThresholdLadder = None,
    classes=None,
) -> ZonalStats:
    """
    Pixel count, area and percentage per class over a region.

    The denominator is the number of valid (unmasked) cells inside the
    region at the sampling scale. Area sums the true area of each counted
    cell (see RasterLayer.cell_areas), so it is in square metres on
    geographic and metre-based projected grids. `cell_area` is the mean
    area of a counted cell. Percentages are rounded to two decimals.
    """
    sampled, inside = _valid_values(classified, region, scale)
    values = sampled.values.data[inside]
    areas = sampled.cell_areas()[inside]
    total = int(inside.sum())
    cell_area = float(areas.mean())

    if classes is None:
        classes = range(ladder.n_classes) if ladder else np.unique(values).tolist()

    records = []
    for c in classes:
        hit = values == c
        pixels = int(np.count_nonzero(hit))
        records.append(ClassRecord(
            class_index=int(c),
            label=ladder.label(int(c)) if ladder else str(int(c)),
            pixels=pixels,
            area=float(areas[hit].sum()),
            percentage=_round_half_up(pixels / total * 10000) / 100,
        ))

    print(f"[DSS] Zonal statistics for '{classified.name}' – {total} valid pixels, "
          f"{len(records)} classes")
    return ZonalStats(total, cell_area, tuple(records))


def min_max(layer: RasterLayer, region=None, scale: float = None) -> tuple:
    """(min, max) of valid cells inside the region."""
    sampled, inside = _valid_values(layer, region, scale)
    values = sampled.values.data[inside]
    return float(values.min()), float(values.max())


def rescale_to_percent(layer: RasterLayer, region=None, scale: float = None):
    """
    (v - min) / (max - min) × 100 using the region's min/max.
    Returns (rescaled layer, (min, max)).
    """
    lo, hi = min_max(layer, region, scale)
    if lo == hi:
        raise DomainError(
            f"Degenerate rescale of '{layer.name}': min == max == {lo}",
            criterion=layer.name,
        )
    rescaled = (layer - lo) / (hi - lo) * 100
    return rescaled.with_values(rescaled.values, name=f"{layer.name}_pct", units="%"), (lo, hi)


def area_in_ranges(
    layer: RasterLayer,
    ranges,
    region=None,
    scale: float = None,
    area_unit: float = config.KM2,
) -> list:
    """
    Area of valid cells with lower < value < upper, per range, in input order.

    Uses the true area of each cell (see RasterLayer.cell_areas), divided by
    `area_unit` (square metres per output unit). Ranges may overlap or leave
    gaps.
    """
    sampled = layer.resample(scale)
    inside = sampled.valid_in(region)
    values = sampled.values.data
    areas = sampled.cell_areas()

    results = []
    for r in ranges:
        r = r if isinstance(r, AreaRange) else AreaRange.from_dict(r)
        hit = inside & (values > r.lower) & (values < r.upper)
        results.append((r.label, float(areas[hit].sum() / area_unit)))

    print(f"[DSS] Range areas for '{layer.name}': "
          + ", ".join(f"{label}={area:.4f}" for label, area in results))
    return results


def generate_report(
    severity: ZonalStats = None,
    pipelines: list = None,
    params: dict = None,
    out_path: str = None,
) -> dict:
    """
    Structured analytical report (JSON-ready) with a plain-text summary.

    `pipelines` holds MCEResult objects; their range areas are reported when
    present. The report is saved to `out_path` if given.
    """
    pipelines = pipelines or []
    report = {
        "title": "Post-fire Environmental Assessment Report",
        "parameters": params or {},
        "burn_severity": severity.as_dict() if severity else None,
        "pipelines": {
            p.name: {
                "weights": dict(p.weights),
                "min": p.min_max[0] if p.min_max else None,
                "max": p.min_max[1] if p.min_max else None,
                "range_areas_km2": [{"range": label, "area": area} for label, area in p.ranges],
            }
            for p in pipelines
        },
    }

    lines = ["═══ POST-FIRE ASSESSMENT REPORT ═══", ""]
    if severity:
        lines.append(f"Burn severity ({severity.total_valid_pixels} valid pixels):")
        for r in severity.per_class:
            hectares = r.area / config.HECTARE
            lines.append(f"• {r.label:26s} {r.percentage:6.2f}%  ({hectares:.2f} ha)")
        lines.append("")

    for p in pipelines:
        lines.append(f"{p.name}: composite range [{p.min_max[0]:.4f}, {p.min_max[1]:.4f}]")
        for label, area in p.ranges:
            lines.append(f"  range {label:12s} {area:.4f} km²")
        lines.append("")

    report["summary_text"] = "\n".join(lines).rstrip()

    if out_path:
        os.makedirs(os.path.dirname(out_path) or ".", exist_ok=True)
        with open(out_path, "w") as f:
            json.dump(report, f, indent=2, default=str)
        print(f"[DSS] Report saved → {out_path}")

    print()
    print(report["summary_text"])
    return report
