"""
Raster Module – single-band grid + spatial footprint + validity mask.

Every criterion entering the engine is a RasterLayer. Layers are treated as
immutable: each transform returns a new layer on the same grid.
"""

import math
import os

import numpy as np
import rasterio
from rasterio.features import geometry_mask
from rasterio.transform import Affine, array_bounds, from_origin
from shapely.geometry import mapping, shape
from shapely.geometry.base import BaseGeometry

from postfire_mce.errors import PreconditionError


# Authalic sphere radius (m), used for true per-cell area on lat/lon grids
EARTH_RADIUS_M = 6_371_007.2

GRID_TOLERANCE = 1e-9


class RasterLayer:
    """
    A 2D grid of cell values over a rectangular extent at fixed resolution.

    Cells that are masked (or non-finite) are invalid and are excluded from
    every computation downstream.
    """

    def __init__(
        self,
        values,
        transform: Affine = None,
        crs=None,
        name: str = "layer",
        units: str = None,
    ):
        data = np.ma.asarray(values)
        if data.ndim != 2:
            raise PreconditionError(
                f"Raster '{name}' must be 2D, got {data.ndim}D", criterion=name
            )
        raw = np.ma.getdata(data).copy()
        mask = np.ma.getmaskarray(data).copy()
        if np.issubdtype(raw.dtype, np.floating):
            mask |= ~np.isfinite(raw)

        self._values = np.ma.MaskedArray(raw, mask=mask)
        self._transform = transform or from_origin(0.0, float(raw.shape[0]), 1.0, 1.0)
        self._crs = crs
        self.name = name
        self.units = units

    # ── Construction ──────────────────────────────────────────────────────

    @classmethod
    def open(cls, path: str, band: int = 1, name: str = None, units: str = None):
        """Read one band of a raster file; nodata cells become masked."""
        with rasterio.open(path) as src:
            values = src.read(band, masked=True).astype("float64")
            transform, crs = src.transform, src.crs
        name = name or os.path.splitext(os.path.basename(path))[0]
        return cls(values, transform=transform, crs=crs, name=name, units=units)

    def with_values(self, values, name: str = None, units: str = None) -> "RasterLayer":
        """New layer on this layer's grid."""
        return RasterLayer(
            values,
            transform=self._transform,
            crs=self._crs,
            name=name or self.name,
            units=units if units is not None else self.units,
        )

    # ── Grid ──────────────────────────────────────────────────────────────

    @property
    def values(self) -> np.ma.MaskedArray:
        return self._values

    @property
    def transform(self) -> Affine:
        return self._transform

    @property
    def crs(self):
        return self._crs

    @property
    def shape(self) -> tuple:
        return self._values.shape

    @property
    def mask(self) -> np.ndarray:
        """True where the cell is invalid."""
        return np.ma.getmaskarray(self._values)

    @property
    def valid(self) -> np.ndarray:
        return ~self.mask

    @property
    def resolution(self) -> tuple:
        return abs(self._transform.a), abs(self._transform.e)

    @property
    def bounds(self) -> tuple:
        """(west, south, east, north)"""
        h, w = self.shape
        return array_bounds(h, w, self._transform)

    def same_grid(self, other: "RasterLayer") -> bool:
        if self.shape != other.shape:
            return False
        if (self._crs is None) != (other.crs is None):
            return False
        if self._crs is not None and self._crs != other.crs:
            return False
        return self._transform.almost_equals(other.transform, precision=GRID_TOLERANCE)

    # ── Pointwise arithmetic ──────────────────────────────────────────────

    def _operand(self, other):
        if isinstance(other, RasterLayer):
            require_same_grid([self, other])
            return other.values
        return other

    def __add__(self, other):
        return self.with_values(self._values + self._operand(other))

    __radd__ = __add__

    def __sub__(self, other):
        return self.with_values(self._values - self._operand(other))

    def __rsub__(self, other):
        return self.with_values(self._operand(other) - self._values)

    def __mul__(self, other):
        return self.with_values(self._values * self._operand(other))

    __rmul__ = __mul__

    def __truediv__(self, other):
        return self.with_values(self._values / self._operand(other))

    def __rtruediv__(self, other):
        return self.with_values(self._operand(other) / self._values)

    def __neg__(self):
        return self.with_values(-self._values)

    # ── Masking ───────────────────────────────────────────────────────────

    def update_mask(self, condition) -> "RasterLayer":
        """Keep cells where `condition` is True; mask the rest."""
        if isinstance(condition, RasterLayer):
            require_same_grid([self, condition])
            condition = condition.values
        keep = np.ma.filled(np.ma.asarray(condition), False).astype(bool)
        if keep.shape != self.shape:
            raise PreconditionError(
                f"Mask shape {keep.shape} does not match raster {self.shape}",
                criterion=self.name,
            )
        return self.with_values(np.ma.MaskedArray(self._values.data, mask=self.mask | ~keep))

    def unmask(self, fill_value=0) -> "RasterLayer":
        """Replace masked cells with `fill_value`."""
        return self.with_values(self._values.filled(fill_value))

    def region_mask(self, region=None) -> np.ndarray:
        """
        Boolean array, True for cells whose centre falls inside `region`.

        `region` may be a shapely geometry, a GeoJSON geometry/Feature
        mapping, or None for the whole grid.
        """
        if region is None:
            return np.ones(self.shape, dtype=bool)
        if not isinstance(region, BaseGeometry):
            if region.get("type") == "Feature":
                region = region["geometry"]
            region = shape(region)
        if region.is_empty:
            return np.zeros(self.shape, dtype=bool)
        return geometry_mask(
            [mapping(region)],
            out_shape=self.shape,
            transform=self._transform,
            invert=True,
        )

    def valid_in(self, region=None) -> np.ndarray:
        return self.valid & self.region_mask(region)

    # ── Sampling ──────────────────────────────────────────────────────────

    def resample(self, scale: float = None) -> "RasterLayer":
        """
        Nearest-neighbour resample onto a north-up grid of `scale` cell size,
        anchored at this layer's north-west corner. Returns self when the
        scale already matches.
        """
        xres, yres = self.resolution
        if scale is None or (math.isclose(scale, xres) and math.isclose(scale, yres)):
            return self
        if scale <= 0:
            raise PreconditionError(f"Sampling scale must be positive, got {scale}")

        west, south, east, north = self.bounds
        width = max(1, math.ceil(round((east - west) / scale, 9)))
        height = max(1, math.ceil(round((north - south) / scale, 9)))
        dst_transform = from_origin(west, north, scale, scale)

        xs = west + (np.arange(width) + 0.5) * scale
        ys = north - (np.arange(height) + 0.5) * scale
        xx, yy = np.meshgrid(xs, ys)
        cols, rows = ~self._transform @ (xx, yy)
        rows = np.floor(rows).astype(int)
        cols = np.floor(cols).astype(int)

        h, w = self.shape
        inside = (rows >= 0) & (rows < h) & (cols >= 0) & (cols < w)
        rows = np.clip(rows, 0, h - 1)
        cols = np.clip(cols, 0, w - 1)

        sampled = self._values.data[rows, cols]
        mask = self.mask[rows, cols] | ~inside
        return RasterLayer(
            np.ma.MaskedArray(sampled, mask=mask),
            transform=dst_transform,
            crs=self._crs,
            name=self.name,
            units=self.units,
        )

    def cell_areas(self) -> np.ndarray:
        """
        True area of every cell in square metres.

        Geographic grids use the spherical band area between row edges, so
        cells shrink towards the poles. Projected grids use the affine
        determinant scaled by the CRS linear unit.
        """
        t = self._transform
        h, w = self.shape
        if self._crs is not None and self._crs.is_geographic:
            edges = t.f + t.e * np.arange(h + 1)
            lat = np.radians(np.clip(edges, -90.0, 90.0))
            band = np.abs(np.diff(np.sin(lat)))
            row_area = EARTH_RADIUS_M ** 2 * math.radians(abs(t.a)) * band
            return np.repeat(row_area[:, np.newaxis], w, axis=1)

        cell = abs(t.a * t.e - t.b * t.d)
        if self._crs is not None and self._crs.is_projected:
            cell *= self._crs.linear_units_factor[1] ** 2
        return np.full(self.shape, cell, dtype=np.float64)

    # ── Equality ──────────────────────────────────────────────────────────

    def __eq__(self, other):
        if not isinstance(other, RasterLayer):
            return NotImplemented
        if not self.same_grid(other):
            return False
        if not np.array_equal(self.mask, other.mask):
            return False
        return bool(np.array_equal(self._values.data[self.valid], other.values.data[other.valid]))

    __hash__ = None

    def __repr__(self):
        h, w = self.shape
        return (f"RasterLayer(name={self.name!r}, shape={h}x{w}, "
                f"res={self.resolution}, valid={int(self.valid.sum())})")


def require_same_grid(layers, stage: str = None) -> None:
    """Raise PreconditionError unless every layer shares the first layer's grid."""
    layers = list(layers)
    if not layers:
        return
    ref = layers[0]
    for layer in layers[1:]:
        if not ref.same_grid(layer):
            raise PreconditionError(
                f"Layer '{layer.name}' (shape {layer.shape}, res {layer.resolution}) "
                f"does not share the grid of '{ref.name}' "
                f"(shape {ref.shape}, res {ref.resolution})",
                stage=stage,
                criterion=layer.name,
            )
