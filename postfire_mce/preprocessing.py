"""
Preprocessing Module – Normalise raw criterion rasters onto comparable scales.

Three strategies:
    unit-scale             (v - min) / (max - min), not clamped
    capped-invert-scale    (cap - min(v, cap)) / cap
    expression-reclassify  ordered interval rules, first match wins
"""

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from postfire_mce.errors import ConfigError, DomainError
from postfire_mce.raster import RasterLayer


UNIT_SCALE = "unit-scale"
CAPPED_INVERT_SCALE = "capped-invert-scale"
EXPRESSION_RECLASSIFY = "expression-reclassify"

KINDS = (UNIT_SCALE, CAPPED_INVERT_SCALE, EXPRESSION_RECLASSIFY)


@dataclass(frozen=True)
class ReclassRule:
    """
    Interval predicate on the input value plus the score it maps to.

    A rule with neither bound is the catch-all default. A `value` of None
    masks the matched cells instead of scoring them.
    """
    value: Optional[float]
    lower: Optional[float] = None
    upper: Optional[float] = None
    lower_inclusive: bool = True
    upper_inclusive: bool = True

    def __post_init__(self):
        if self.lower is not None and self.upper is not None and self.lower > self.upper:
            raise ConfigError(
                f"Reclass rule bounds inverted: lower={self.lower} > upper={self.upper}"
            )

    @property
    def is_default(self) -> bool:
        return self.lower is None and self.upper is None

    def matches(self, values: np.ndarray) -> np.ndarray:
        hit = np.ones(values.shape, dtype=bool)
        if self.lower is not None:
            hit &= (values >= self.lower) if self.lower_inclusive else (values > self.lower)
        if self.upper is not None:
            hit &= (values <= self.upper) if self.upper_inclusive else (values < self.upper)
        return hit

    @classmethod
    def from_dict(cls, d: dict) -> "ReclassRule":
        return cls(
            value=d.get("value"),
            lower=d.get("lower"),
            upper=d.get("upper"),
            lower_inclusive=d.get("lower_inclusive", True),
            upper_inclusive=d.get("upper_inclusive", True),
        )


@dataclass(frozen=True)
class NormalizationSpec:
    """Immutable per-criterion scaling configuration, validated on construction."""
    kind: str
    min: Optional[float] = None
    max: Optional[float] = None
    cap: Optional[float] = None
    rules: tuple = field(default_factory=tuple)

    def __post_init__(self):
        if self.kind not in KINDS:
            raise ConfigError(f"Unknown normalisation kind '{self.kind}', expected one of {KINDS}")

        if self.kind == UNIT_SCALE:
            if self.min is None or self.max is None:
                raise ConfigError("unit-scale needs both min and max")
            if self.min == self.max:
                raise DomainError(f"Degenerate unit-scale: min == max == {self.min}")

        elif self.kind == CAPPED_INVERT_SCALE:
            if self.cap is None or self.cap <= 0:
                raise ConfigError(f"capped-invert-scale needs a positive cap, got {self.cap}")

        else:
            rules = tuple(
                r if isinstance(r, ReclassRule) else ReclassRule.from_dict(r)
                for r in self.rules
            )
            if not rules:
                raise ConfigError("expression-reclassify needs at least one rule")
            for i, rule in enumerate(rules[:-1]):
                if rule.is_default:
                    raise ConfigError(
                        f"Catch-all rule at position {i} makes the "
                        f"{len(rules) - i - 1} rule(s) after it unreachable"
                    )
            if not rules[-1].is_default:
                raise ConfigError(
                    "expression-reclassify must end with a catch-all rule "
                    "(no lower/upper bound) covering the rest of the input domain"
                )
            object.__setattr__(self, "rules", rules)

    @property
    def has_default(self) -> bool:
        return self.kind == EXPRESSION_RECLASSIFY and self.rules[-1].is_default

    @classmethod
    def from_dict(cls, d: dict) -> "NormalizationSpec":
        return cls(
            kind=d["kind"],
            min=d.get("min"),
            max=d.get("max"),
            cap=d.get("cap"),
            rules=tuple(d.get("rules", ())),
        )


def unit_scale(layer: RasterLayer, min_val: float, max_val: float) -> RasterLayer:
    """
    Linear map to [0, 1] over [min_val, max_val].
    Values outside the envelope are kept (< 0 or > 1), not clamped.
    """
    if min_val == max_val:
        raise DomainError(
            f"Degenerate unit-scale: min == max == {min_val}", criterion=layer.name
        )
    return (layer - min_val) / (max_val - min_val)


def capped_invert_scale(layer: RasterLayer, cap: float) -> RasterLayer:
    """
    Clamp at `cap`, then invert: 0 → 1, cap and above → 0.
    e.g. resprouter cover beyond 40% no longer lowers erosion risk.
    """
    if cap <= 0:
        raise ConfigError(f"capped-invert-scale needs a positive cap, got {cap}",
                          criterion=layer.name)
    capped = layer.with_values(np.ma.minimum(layer.values, cap))
    return (cap - capped) / cap


def expression_reclassify(layer: RasterLayer, rules) -> RasterLayer:
    """
    Map each valid cell to the value of the first rule it matches.

    Invalid input cells stay invalid. A valid cell that matches no rule is a
    DomainError. NormalizationSpec always ends in a catch-all, so only bare
    rule lists can hit that.
    """
    values = layer.values.data.astype(np.float64)
    done = layer.mask.copy()
    out_mask = layer.mask.copy()
    out = np.zeros(layer.shape, dtype=np.float64)

    for rule in rules:
        hit = rule.matches(values) & ~done
        if rule.value is None:
            out_mask |= hit
        else:
            out[hit] = rule.value
        done |= hit

    unmatched = int((~done).sum())
    if unmatched:
        raise DomainError(
            f"{unmatched} valid cell(s) of '{layer.name}' match no reclassification "
            f"rule and no default rule is defined",
            criterion=layer.name,
        )
    return layer.with_values(np.ma.MaskedArray(out, mask=out_mask))


def normalize(layer: RasterLayer, spec: NormalizationSpec, name: str = None) -> RasterLayer:
    """Apply one NormalizationSpec to a layer; returns a new layer."""
    if spec.kind == UNIT_SCALE:
        result = unit_scale(layer, spec.min, spec.max)
    elif spec.kind == CAPPED_INVERT_SCALE:
        result = capped_invert_scale(layer, spec.cap)
    else:
        result = expression_reclassify(layer, spec.rules)
    return result.with_values(result.values, name=name or f"{layer.name}_norm")


def validate_range(layer: RasterLayer, label: str = None) -> dict:
    """Report the min/max of a factor's valid cells."""
    label = label or layer.name
    valid = layer.values.compressed()
    if valid.size == 0:
        stats = {"min": None, "max": None}
    else:
        stats = {"min": float(valid.min()), "max": float(valid.max())}
    print(f"[VAL] {label}: {stats}")
    return stats
