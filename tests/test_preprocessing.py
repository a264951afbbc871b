"""Unit tests for the normaliser."""

import unittest

import numpy as np

from postfire_mce.errors import ConfigError, DomainError
from postfire_mce.preprocessing import (
    NormalizationSpec,
    ReclassRule,
    capped_invert_scale,
    expression_reclassify,
    normalize,
    unit_scale,
    validate_range,
)
from tests.helpers import make_layer


class TestUnitScale(unittest.TestCase):

    def test_basic(self):
        result = unit_scale(make_layer([[5.0, 21.5, 38.0]]), 5, 38)
        self.assertTrue(np.allclose(result.values, [[0.0, 0.5, 1.0]]))

    def test_not_clamped(self):
        """Values outside the envelope are preserved."""
        result = unit_scale(make_layer([[-1.0, 2.0]]), 0, 1)
        self.assertTrue(np.allclose(result.values, [[-1.0, 2.0]]))

    def test_inverse_reconstructs_value(self):
        raw = np.array([[-3.7, 0.0, 0.123, 55.5]])
        lo, hi = -1.0, 1.0
        scaled = unit_scale(make_layer(raw), lo, hi)
        restored = scaled.values * (hi - lo) + lo
        self.assertTrue(np.allclose(restored, raw))

    def test_degenerate_scale(self):
        with self.assertRaises(DomainError):
            unit_scale(make_layer([[1.0]]), 3, 3)
        with self.assertRaises(DomainError):
            NormalizationSpec("unit-scale", min=3, max=3)

    def test_masked_cells_stay_masked(self):
        layer = make_layer([[1.0, 2.0]], mask=[[True, False]])
        self.assertTrue(unit_scale(layer, 0, 4).mask[0, 0])


class TestCappedInvertScale(unittest.TestCase):

    def test_resprouter_cap(self):
        result = capped_invert_scale(make_layer([[0.0, 20.0, 40.0, 80.0]]), 40)
        self.assertTrue(np.allclose(result.values, [[1.0, 0.5, 0.0, 0.0]]))

    def test_cap_must_be_positive(self):
        with self.assertRaises(ConfigError):
            NormalizationSpec("capped-invert-scale", cap=0)


class TestExpressionReclassify(unittest.TestCase):

    def setUp(self):
        self.aspect_spec = NormalizationSpec.from_dict({
            "kind": "expression-reclassify",
            "rules": [
                {"value": 1, "lower": 0, "upper": 90},
                {"value": 1, "lower": 270, "upper": 360, "lower_inclusive": False},
                {"value": 2, "lower": 90, "upper": 135, "lower_inclusive": False},
                {"value": 2, "lower": 225, "upper": 270, "lower_inclusive": False},
                {"value": 3, "lower": 135, "upper": 225, "lower_inclusive": False},
                {"value": 0},
            ],
        })

    def test_aspect_scores(self):
        aspect = make_layer([[0.0, 45.0, 90.0, 100.0, 135.0, 180.0, 225.0, 250.0, 300.0, 360.0]])
        result = normalize(aspect, self.aspect_spec)
        self.assertEqual(result.values.tolist(), [[1, 1, 1, 2, 2, 3, 3, 2, 1, 1]])

    def test_default_rule_catches_rest(self):
        result = normalize(make_layer([[-1.0]]), self.aspect_spec)
        self.assertEqual(result.values[0, 0], 0)

    def test_first_match_wins(self):
        rules = [ReclassRule(1, upper=0.269), ReclassRule(2, upper=0.439), ReclassRule(3)]
        result = expression_reclassify(make_layer([[0.269, 0.27, 0.439, 0.9]]), rules)
        self.assertEqual(result.values.tolist(), [[1, 2, 2, 3]])

    def test_none_value_masks_cells(self):
        rules = [ReclassRule(3, upper=1.0, upper_inclusive=False), ReclassRule(None)]
        result = expression_reclassify(make_layer([[0.5, 1.0]]), rules)
        self.assertFalse(result.mask[0, 0])
        self.assertTrue(result.mask[0, 1])

    def test_unmatched_without_default(self):
        """Bare rule lists are checked cell by cell."""
        rules = [ReclassRule(1, lower=0, upper=1)]
        with self.assertRaises(DomainError):
            expression_reclassify(make_layer([[0.5, 2.0]]), rules)

    def test_spec_without_default_rejected(self):
        with self.assertRaises(ConfigError):
            NormalizationSpec.from_dict({
                "kind": "expression-reclassify",
                "rules": [{"value": 1, "upper": 0.5}],
            })

    def test_unmatched_masked_cell_is_ignored(self):
        rules = [ReclassRule(1, lower=0, upper=1)]
        result = expression_reclassify(make_layer([[0.5, 2.0]], mask=[[False, True]]), rules)
        self.assertEqual(result.values[0, 0], 1)
        self.assertTrue(result.mask[0, 1])

    def test_rules_after_default_unreachable(self):
        with self.assertRaises(ConfigError):
            NormalizationSpec("expression-reclassify", rules=(ReclassRule(0), ReclassRule(1, upper=2)))

    def test_empty_rules(self):
        with self.assertRaises(ConfigError):
            NormalizationSpec("expression-reclassify")

    def test_inverted_rule_bounds(self):
        with self.assertRaises(ConfigError):
            ReclassRule(1, lower=5, upper=1)


class TestNormalizationSpec(unittest.TestCase):

    def test_unknown_kind(self):
        with self.assertRaises(ConfigError):
            NormalizationSpec("log-scale", min=0, max=1)

    def test_unit_scale_needs_bounds(self):
        with self.assertRaises(ConfigError):
            NormalizationSpec("unit-scale", min=0)

    def test_from_dict_equality(self):
        a = NormalizationSpec.from_dict({"kind": "unit-scale", "min": -1, "max": 1})
        b = NormalizationSpec("unit-scale", min=-1, max=1)
        self.assertEqual(a, b)

    def test_normalize_names_output(self):
        spec = NormalizationSpec("unit-scale", min=-1, max=1)
        self.assertEqual(normalize(make_layer([[0.0]], name="bsi"), spec).name, "bsi_norm")
        self.assertEqual(normalize(make_layer([[0.0]]), spec, name="bsi").name, "bsi")


class TestValidateRange(unittest.TestCase):

    def test_min_max(self):
        stats = validate_range(make_layer([[1.0, 5.0]], mask=[[False, False]]), "x")
        self.assertEqual(stats, {"min": 1.0, "max": 5.0})

    def test_all_masked(self):
        stats = validate_range(make_layer([[1.0]], mask=[[True]]), "x")
        self.assertEqual(stats, {"min": None, "max": None})


if __name__ == "__main__":
    unittest.main()
