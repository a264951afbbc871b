"""
Configuration constants for the Post-fire Environmental Assessment engine.

Maps produced:
  1. Burn severity (dNBR, 8-boundary ladder)
  2. Soil erosion risk       = AHP-weighted overlay of 5 normalised criteria
  3. Vegetation recovery     = AHP-weighted overlay of 5 criterion scores (1–3)

Weights are the expert-panel AHP vectors of the Ávila (Castilla y León)
post-fire assessment; every pipeline divides by Σw so they need not sum to 1.
"""

# ── Processing ───────────────────────────────────────────────────────────────
SEVERITY_SCALE = 10      # metres – Sentinel-2 dNBR statistics
MCE_SCALE = 5            # metres – DEM / forest map resolution
CRS = "EPSG:25830"       # ETRS89 / UTM 30N

# ── Area units (square metres per unit) ─────────────────────────────────────
HECTARE = 1e4
KM2 = 1e6

# ── Burn Severity (dNBR × 1000, USGS) ───────────────────────────────────────
DNBR_SCALE = 1000
SEVERITY_THRESHOLDS = [-1000, -251, -101, 99, 269, 439, 659, 2000]
# Class index = number of thresholds met or exceeded
SEVERITY_CLASS_NAMES = [
    "NA",                          # < -1000
    "Enhanced Regrowth, High",     # -1000 – -251
    "Enhanced Regrowth, Low",      # -251 – -101
    "Unburned",                    # -101 – 99
    "Low Severity",                # 99 – 269
    "Moderate-low Severity",       # 269 – 439
    "Moderate-high Severity",      # 439 – 659
    "High Severity",               # 659 – 2000
    "NA",                          # >= 2000
]

# ── Soil Erosion Risk ───────────────────────────────────────────────────────
# Expert 5 of the panel (CR = 9%)
SOIL_EROSION_WEIGHTS = {
    "bsi":         0.164,
    "k_factor":    0.267,
    "resprouters": 0.072,
    "slope":       0.408,
    "dnbr":        0.089,
}

# AHP weights of the five-expert panel (expert 5 above); CR 3%, 9%, 8%, 4%, 9%
SOIL_EROSION_EXPERT_PANEL = [
    {"bsi": 0.270, "k_factor": 0.173, "resprouters": 0.033, "slope": 0.423, "dnbr": 0.102},
    {"bsi": 0.048, "k_factor": 0.130, "resprouters": 0.075, "slope": 0.523, "dnbr": 0.225},
    {"bsi": 0.098, "k_factor": 0.462, "resprouters": 0.109, "slope": 0.291, "dnbr": 0.040},
    {"bsi": 0.041, "k_factor": 0.455, "resprouters": 0.137, "slope": 0.307, "dnbr": 0.061},
    {"bsi": 0.164, "k_factor": 0.267, "resprouters": 0.072, "slope": 0.408, "dnbr": 0.089},
]

# Published panel aggregate (CR 7%)
SOIL_EROSION_PANEL_WEIGHTS = {
    "bsi":         0.124,
    "k_factor":    0.297,
    "resprouters": 0.085,
    "slope":       0.390,
    "dnbr":        0.103,
}

# Slope is in degrees: 9% ≈ 5°, 80% ≈ 38°.
# Resprouter cover beyond 40% no longer lowers risk.
SOIL_EROSION_NORMALIZATION = {
    "bsi":         {"kind": "unit-scale", "min": -1.0, "max": 1.0},
    "k_factor":    {"kind": "unit-scale", "min": 0.01, "max": 0.55},
    "resprouters": {"kind": "capped-invert-scale", "cap": 40.0},
    "slope":       {"kind": "unit-scale", "min": 5.0, "max": 38.0},
    "dnbr":        {"kind": "unit-scale", "min": 0.1, "max": 0.66},
}

# K-factor values >= 1 are no-data codes in the erodibility map
K_FACTOR_VALID_MAX = 1.0

K_FACTOR_SCORE = {
    "kind": "expression-reclassify",
    "rules": [
        {"value": 1, "upper": 0.15},
        {"value": 2, "upper": 0.25},
        {"value": 3, "upper": 1.0, "upper_inclusive": False},
        {"value": None},
    ],
}

SOIL_EROSION_RANGES = [
    {"min": -1.0, "max": 0.1, "label": "Range_-1_1"},
    {"min": 0.1,  "max": 0.3, "label": "Range_1_3"},
    {"min": 0.3,  "max": 0.4, "label": "Range_3_4"},
    {"min": 0.4,  "max": 0.6, "label": "Range_4_6"},
    {"min": 0.6,  "max": 1.5, "label": "Range_6_15"},
]

# ── Vegetation Recovery Potential ───────────────────────────────────────────
# Expert 5 of the panel (CR = 6%)
VEGETATION_WEIGHTS = {
    "regeneration": 0.036,
    "aspect":       0.102,
    "aridity":      0.237,
    "dnbr":         0.143,
    "recurrence":   0.482,
}

# CR 1%, 5%, 8%, 4%, 6%
VEGETATION_EXPERT_PANEL = [
    {"regeneration": 0.256, "aspect": 0.081, "aridity": 0.154, "dnbr": 0.154, "recurrence": 0.355},
    {"regeneration": 0.506, "aspect": 0.075, "aridity": 0.060, "dnbr": 0.294, "recurrence": 0.065},
    {"regeneration": 0.426, "aspect": 0.111, "aridity": 0.077, "dnbr": 0.309, "recurrence": 0.078},
    {"regeneration": 0.452, "aspect": 0.076, "aridity": 0.062, "dnbr": 0.048, "recurrence": 0.361},
    {"regeneration": 0.036, "aspect": 0.102, "aridity": 0.237, "dnbr": 0.143, "recurrence": 0.482},
]

VEGETATION_PANEL_WEIGHTS = {
    "regeneration": 0.335,
    "aspect":       0.089,
    "aridity":      0.118,
    "dnbr":         0.190,
    "recurrence":   0.268,
}

# Global Aridity Index is distributed × 10 000
ARIDITY_SCALE = 1e-4

# regeneration and recurrence arrive already scored 1–3 (None = use as is)
VEGETATION_NORMALIZATION = {
    "regeneration": None,
    "aspect": {
        # North-facing slopes keep more moisture → better regeneration
        "kind": "expression-reclassify",
        "rules": [
            {"value": 1, "lower": 0, "upper": 90},
            {"value": 1, "lower": 270, "upper": 360, "lower_inclusive": False},
            {"value": 2, "lower": 90, "upper": 135, "lower_inclusive": False},
            {"value": 2, "lower": 225, "upper": 270, "lower_inclusive": False},
            {"value": 3, "lower": 135, "upper": 225, "lower_inclusive": False},
            {"value": 0},
        ],
    },
    "aridity": {
        # Lower Aridity Index = drier = worse recovery
        "kind": "expression-reclassify",
        "rules": [
            {"value": 3, "upper": 0.2},
            {"value": 2, "upper": 0.5},
            {"value": 1},
        ],
    },
    "dnbr": {
        "kind": "expression-reclassify",
        "rules": [
            {"value": 1, "upper": 0.269},
            {"value": 2, "upper": 0.439},
            {"value": 3},
        ],
    },
    "recurrence": None,
}

VEGETATION_RANGES = [
    {"min": -1.0, "max": 1.0, "label": "1"},
    {"min": 1.0,  "max": 2.0, "label": "2"},
    {"min": 2.0,  "max": 3.5, "label": "3"},
]

# ── Output Paths ────────────────────────────────────────────────────────────
OUTPUT_DIR = "output"
REPORT_JSON = "postfire_report.json"
