"""
MCE Model – weighted-sum overlay of normalised criteria.

Model:
    Composite(x) = Σ wᵢ·Cᵢ(x) / Σ wᵢ

One overlay routine backs both post-fire pipelines; they differ only in
their criteria and weight vectors:
    Soil erosion risk    bsi, k_factor, resprouters, slope, dnbr
    Vegetation recovery  regeneration, aspect, aridity, dnbr, recurrence
"""

import math
import numbers
from collections.abc import Mapping
from dataclasses import dataclass, field

import numpy as np

import config
from postfire_mce.decision_support import area_in_ranges, rescale_to_percent
from postfire_mce.errors import ConfigError, MCEError
from postfire_mce.preprocessing import NormalizationSpec, normalize
from postfire_mce.raster import RasterLayer, require_same_grid


class WeightVector(Mapping):
    """
    Ordered criterion → weight mapping.

    Weights must be finite and non-negative with at least one strictly
    positive. They need not sum to 1; the overlay divides by their sum.
    """

    def __init__(self, weights):
        items = dict(weights)
        if not items:
            raise ConfigError("Weight vector is empty")
        for name, w in items.items():
            if not isinstance(w, numbers.Real) or not math.isfinite(w):
                raise ConfigError(f"Weight for '{name}' is not a finite number: {w!r}",
                                  criterion=name)
            if w < 0:
                raise ConfigError(f"Weight for '{name}' is negative: {w}", criterion=name)
        if not any(w > 0 for w in items.values()):
            raise ConfigError("Weight vector has no strictly positive weight")
        self._weights = {k: float(v) for k, v in items.items()}

    def __getitem__(self, key):
        return self._weights[key]

    def __iter__(self):
        return iter(self._weights)

    def __len__(self):
        return len(self._weights)

    def __repr__(self):
        return f"WeightVector({self._weights})"

    @property
    def total(self) -> float:
        return sum(self._weights.values())

    def normalized(self) -> dict:
        total = self.total
        return {k: v / total for k, v in self._weights.items()}


def overlay(layers, name: str = "composite") -> RasterLayer:
    """
    Cell-wise Σ(layerᵢ·wᵢ) / Σwᵢ over (layer, weight) pairs.

    A cell is valid only where every input layer is valid.
    """
    pairs = list(layers)
    if not pairs:
        raise ConfigError("Overlay needs at least one (layer, weight) pair", stage="overlay")
    grids = [layer for layer, _ in pairs]
    require_same_grid(grids, stage="overlay")

    weights = [float(w) for _, w in pairs]
    if (not all(math.isfinite(w) for w in weights)
            or any(w < 0 for w in weights)
            or not any(w > 0 for w in weights)):
        raise ConfigError(f"Invalid overlay weights {weights}", stage="overlay")

    mask = np.zeros(grids[0].shape, dtype=bool)
    acc = np.zeros(grids[0].shape, dtype=np.float64)
    for layer, w in zip(grids, weights):
        mask |= layer.mask
        acc += layer.values.filled(0).astype(np.float64) * w

    composite = acc / sum(weights)
    return grids[0].with_values(np.ma.MaskedArray(composite, mask=mask), name=name, units="index")


def weighted_overlay(criteria: dict, weights: WeightVector, name: str = "composite") -> RasterLayer:
    """Overlay named criteria; every weighted criterion needs a layer and vice versa."""
    missing = [c for c in weights if c not in criteria]
    if missing:
        raise ConfigError(f"No layer supplied for weighted criteria {missing}",
                          stage=name, criterion=missing[0])
    unweighted = [c for c in criteria if c not in weights]
    if unweighted:
        raise ConfigError(f"Criteria {unweighted} have no weight",
                          stage=name, criterion=unweighted[0])

    result = overlay(((criteria[c], w) for c, w in weights.items()), name=name)
    print(f"[MODEL] {name} overlay computed – weights: {dict(weights)} "
          f"(Σw = {weights.total:.4f})")
    return result


# ── Pipelines ───────────────────────────────────────────────────────────────

@dataclass
class MCEResult:
    name: str
    composite: RasterLayer
    criteria: dict
    weights: WeightVector
    percent: RasterLayer = None
    min_max: tuple = None
    ranges: list = field(default_factory=list)


def specs_from_config(spec_dicts: dict) -> dict:
    """Config dicts → NormalizationSpec (None = criterion is used as given)."""
    specs = {}
    for name, d in spec_dicts.items():
        try:
            specs[name] = NormalizationSpec.from_dict(d) if d else None
        except MCEError as e:
            raise e.with_context(stage="config", criterion=name)
    return specs


def score_k_factor(k_factor: RasterLayer) -> RasterLayer:
    """Discrete 1–3 erodibility score; K >= 1 (no-data code) is masked."""
    spec = NormalizationSpec.from_dict(config.K_FACTOR_SCORE)
    try:
        return normalize(k_factor, spec, name="k_score")
    except MCEError as e:
        raise e.with_context(stage="k_score", criterion="k_factor")


def run_pipeline(
    name: str,
    layers: dict,
    specs: dict,
    weights,
    region=None,
    scale: float = None,
    ranges=None,
) -> MCEResult:
    """
    Normalise every criterion, overlay them, and rescale the composite to
    [0, 100] over the region. Areas per value range are added when `ranges`
    is given.
    """
    if not isinstance(weights, WeightVector):
        try:
            weights = WeightVector(weights)
        except MCEError as e:
            raise e.with_context(stage=f"{name}:weights")

    normalised = {}
    for criterion, layer in layers.items():
        spec = specs.get(criterion)
        try:
            normalised[criterion] = normalize(layer, spec, name=criterion) if spec else layer
        except MCEError as e:
            raise e.with_context(stage=f"{name}:normalize", criterion=criterion)

    try:
        composite = weighted_overlay(normalised, weights, name=name)
    except MCEError as e:
        raise e.with_context(stage=f"{name}:overlay")

    try:
        percent, bounds = rescale_to_percent(composite, region=region, scale=scale)
    except MCEError as e:
        raise e.with_context(stage=f"{name}:rescale")

    print(f"[MODEL] {name} range [{bounds[0]:.4f}, {bounds[1]:.4f}] rescaled to [0, 100]")
    result = MCEResult(name, composite, normalised, weights, percent, bounds)

    if ranges:
        try:
            result.ranges = area_in_ranges(composite, ranges, region=region, scale=scale)
        except MCEError as e:
            raise e.with_context(stage=f"{name}:ranges")
    return result


def compute_soil_erosion_risk(
    bsi: RasterLayer,
    k_factor: RasterLayer,
    resprouters: RasterLayer,
    slope: RasterLayer,
    dnbr: RasterLayer,
    weights=None,
    specs: dict = None,
    region=None,
    scale: float = None,
    ranges=None,
) -> MCEResult:
    """
    Post-fire soil erosion susceptibility.

    K-factor cells at or above the erodibility ceiling are no-data in the
    source map and are masked before scaling.
    """
    k_factor = k_factor.update_mask(k_factor.values < config.K_FACTOR_VALID_MAX)
    layers = {
        "bsi": bsi,
        "k_factor": k_factor,
        "resprouters": resprouters,
        "slope": slope,
        "dnbr": dnbr,
    }
    return run_pipeline(
        "soil_erosion",
        layers,
        specs_from_config(config.SOIL_EROSION_NORMALIZATION) if specs is None else specs,
        config.SOIL_EROSION_WEIGHTS if weights is None else weights,
        region=region,
        scale=scale,
        ranges=config.SOIL_EROSION_RANGES if ranges is None else ranges,
    )


def compute_vegetation_recovery(
    regeneration: RasterLayer,
    aspect: RasterLayer,
    aridity: RasterLayer,
    dnbr: RasterLayer,
    recurrence: RasterLayer,
    weights=None,
    specs: dict = None,
    region=None,
    scale: float = None,
    ranges=None,
) -> MCEResult:
    """
    Vegetation recovery potential from 1–3 criterion scores.

    `regeneration` is the pre-scored strategy raster (1 resprouters,
    2 post-fire seeders, 3 seeders); unmapped cells count as 0.
    `aridity` is the integer-coded Aridity Index (× 10 000).
    """
    layers = {
        "regeneration": regeneration.unmask(0),
        "aspect": aspect,
        "aridity": aridity * config.ARIDITY_SCALE,
        "dnbr": dnbr,
        "recurrence": recurrence,
    }
    return run_pipeline(
        "vegetation_recovery",
        layers,
        specs_from_config(config.VEGETATION_NORMALIZATION) if specs is None else specs,
        config.VEGETATION_WEIGHTS if weights is None else weights,
        region=region,
        scale=scale,
        ranges=config.VEGETATION_RANGES if ranges is None else ranges,
    )
