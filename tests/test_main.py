"""End-to-end tests for the CLI on GeoTIFF inputs."""

import io
import json
import os
import tempfile
import unittest
from contextlib import redirect_stdout

import numpy as np
import rasterio
from rasterio.transform import from_origin

import config
import main


def write_tif(path, values, nodata=-9999.0):
    values = np.asarray(values, dtype="float32")
    with rasterio.open(
        path, "w", driver="GTiff",
        height=values.shape[0], width=values.shape[1], count=1, dtype="float32",
        crs="EPSG:25830", transform=from_origin(350000, 4500000, 10, 10), nodata=nodata,
    ) as dst:
        dst.write(values, 1)
    return path


class TestMain(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.dir = self.tmp.name

    def tearDown(self):
        self.tmp.cleanup()

    def _path(self, name):
        return os.path.join(self.dir, name)

    def test_severity_and_soil_erosion(self):
        rng = np.random.default_rng(1)
        shape = (8, 8)
        args = [
            "--dnbr", write_tif(self._path("dnbr.tif"), rng.uniform(-0.2, 0.8, shape)),
            "--bsi", write_tif(self._path("bsi.tif"), rng.uniform(-1, 1, shape)),
            "--k-factor", write_tif(self._path("k.tif"), rng.uniform(0.01, 0.55, shape)),
            "--resprouters", write_tif(self._path("resp.tif"), rng.uniform(0, 100, shape)),
            "--slope", write_tif(self._path("slope.tif"), rng.uniform(0, 45, shape)),
            "--report", self._path("report.json"),
        ]
        self.assertEqual(main.main(args), 0)

        with open(self._path("report.json")) as f:
            report = json.load(f)
        self.assertEqual(report["burn_severity"]["total_valid_pixels"], 64)
        self.assertIn("soil_erosion", report["pipelines"])
        self.assertNotIn("vegetation_recovery", report["pipelines"])

    def test_weight_override(self):
        cfg = self._path("weights.json")
        with open(cfg, "w") as f:
            json.dump({"soil_erosion_weights": {"bsi": -1, "k_factor": 1, "resprouters": 1,
                                                "slope": 1, "dnbr": 1}}, f)
        rng = np.random.default_rng(2)
        shape = (4, 4)
        args = [
            "--dnbr", write_tif(self._path("dnbr.tif"), rng.uniform(-0.2, 0.8, shape)),
            "--bsi", write_tif(self._path("bsi.tif"), rng.uniform(-1, 1, shape)),
            "--k-factor", write_tif(self._path("k.tif"), rng.uniform(0.01, 0.55, shape)),
            "--resprouters", write_tif(self._path("resp.tif"), rng.uniform(0, 100, shape)),
            "--slope", write_tif(self._path("slope.tif"), rng.uniform(0, 45, shape)),
            "--config", cfg,
            "--report", "",
        ]
        self.assertEqual(main.main(args), 1)

    def test_empty_severity_raster_fails(self):
        args = [
            "--dnbr", write_tif(self._path("dnbr.tif"), np.full((3, 3), -9999.0)),
            "--report", "",
        ]
        self.assertEqual(main.main(args), 1)

    def test_region_outside_raster_fails(self):
        region = self._path("region.geojson")
        with open(region, "w") as f:
            json.dump({"type": "FeatureCollection", "features": [{
                "type": "Feature", "properties": {},
                "geometry": {"type": "Polygon", "coordinates": [[
                    [0, 0], [0, 10], [10, 10], [10, 0], [0, 0]]]},
            }]}, f)
        args = [
            "--dnbr", write_tif(self._path("dnbr.tif"), np.full((3, 3), 0.3)),
            "--region", region,
            "--report", "",
        ]
        self.assertEqual(main.main(args), 1)

    def _soil_args(self, seed=3, shape=(4, 4)):
        rng = np.random.default_rng(seed)
        return [
            "--bsi", write_tif(self._path("bsi.tif"), rng.uniform(-1, 1, shape)),
            "--k-factor", write_tif(self._path("k.tif"), rng.uniform(0.01, 0.55, shape)),
            "--resprouters", write_tif(self._path("resp.tif"), rng.uniform(0, 100, shape)),
            "--slope", write_tif(self._path("slope.tif"), rng.uniform(0, 45, shape)),
        ]

    def test_phases_without_dnbr_are_reported_as_skipped(self):
        out = io.StringIO()
        with redirect_stdout(out):
            code = main.main(self._soil_args() + ["--report", ""])
        self.assertEqual(code, 0)
        text = out.getvalue()
        self.assertIn("[CFG] Burn severity skipped", text)
        self.assertIn("[CFG] Soil erosion risk skipped – missing inputs: dnbr", text)
        self.assertIn("[CFG] Vegetation recovery skipped – missing inputs: dnbr, regeneration", text)

    def test_empty_weight_override_fails(self):
        cfg = self._path("weights.json")
        with open(cfg, "w") as f:
            json.dump({"soil_erosion_weights": {}}, f)
        dnbr = write_tif(self._path("dnbr.tif"), np.linspace(-0.2, 0.8, 16).reshape(4, 4))
        args = ["--dnbr", dnbr, "--config", cfg, "--report", ""] + self._soil_args()
        self.assertEqual(main.main(args), 1)

    def test_panel_weights(self):
        dnbr = write_tif(self._path("dnbr.tif"), np.linspace(-0.2, 0.8, 16).reshape(4, 4))
        args = (["--dnbr", dnbr, "--weights", "panel", "--report", self._path("report.json")]
                + self._soil_args())
        self.assertEqual(main.main(args), 0)
        with open(self._path("report.json")) as f:
            report = json.load(f)
        weights = report["pipelines"]["soil_erosion"]["weights"]
        for name, expected in config.SOIL_EROSION_PANEL_WEIGHTS.items():
            self.assertAlmostEqual(weights[name], expected, delta=0.002)
        self.assertEqual(report["parameters"]["weights"], "panel")


if __name__ == "__main__":
    unittest.main()
