"""Shared raster builders for the test suite."""

import numpy as np
from rasterio.transform import from_origin

from postfire_mce.raster import RasterLayer


def make_layer(values, cell=1.0, name="layer", crs=None, mask=None, west=0.0, north=None):
    values = np.asarray(values, dtype=np.float64)
    if north is None:
        north = values.shape[0] * cell
    data = np.ma.MaskedArray(values, mask=mask if mask is not None else False)
    return RasterLayer(data, transform=from_origin(west, north, cell, cell), crs=crs, name=name)


def uniform(value, shape=(10, 10), **kwargs):
    return make_layer(np.full(shape, value), **kwargs)
