"""
Classification Module – discretise continuous rasters with a threshold ladder.

For K ascending boundaries there are K+1 classes. A value's class is the
number of boundaries it meets or exceeds, i.e. the smallest c with
value < ladder[c] (len(ladder) when it clears every boundary).
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np

from postfire_mce.errors import ConfigError
from postfire_mce.raster import RasterLayer


@dataclass(frozen=True)
class ThresholdLadder:
    boundaries: tuple
    labels: Optional[tuple] = None

    def __post_init__(self):
        bounds = tuple(float(b) for b in self.boundaries)
        if not bounds:
            raise ConfigError("Threshold ladder needs at least one boundary")
        if not all(np.isfinite(bounds)):
            raise ConfigError(f"Threshold ladder boundaries must be finite: {bounds}")
        if any(b >= nxt for b, nxt in zip(bounds, bounds[1:])):
            raise ConfigError(f"Threshold ladder must be strictly ascending: {bounds}")
        object.__setattr__(self, "boundaries", bounds)

        if self.labels is not None:
            labels = tuple(self.labels)
            if len(labels) != len(bounds) + 1:
                raise ConfigError(
                    f"{len(bounds)} boundaries define {len(bounds) + 1} classes, "
                    f"got {len(labels)} labels"
                )
            object.__setattr__(self, "labels", labels)

    @property
    def n_classes(self) -> int:
        return len(self.boundaries) + 1

    def label(self, class_index: int) -> str:
        if self.labels is None:
            return str(class_index)
        return self.labels[class_index]

    def class_of(self, value: float) -> int:
        return int(np.searchsorted(self.boundaries, value, side="right"))


def classify(layer: RasterLayer, ladder: ThresholdLadder, name: str = None) -> RasterLayer:
    """
    Ordinal class raster (int) from a continuous layer.
    Invalid cells stay invalid and get no class.
    """
    if not isinstance(ladder, ThresholdLadder):
        ladder = ThresholdLadder(tuple(ladder))

    data = layer.values.data.astype(np.float64)
    classes = np.searchsorted(np.asarray(ladder.boundaries), data, side="right")
    classes = np.where(layer.mask, 0, classes).astype(np.int32)
    return layer.with_values(
        np.ma.MaskedArray(classes, mask=layer.mask),
        name=name or f"{layer.name}_class",
        units="class",
    )
