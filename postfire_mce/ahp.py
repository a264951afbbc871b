"""
AHP Module – Analytic Hierarchy Process for MCE weight derivation.

Pairwise comparison matrix → priority vector + consistency ratio, and
aggregation of several experts' AHP weight vectors into one panel vector.

References:
    Saaty, T.L. (1980). The Analytic Hierarchy Process.
"""

import numpy as np

from postfire_mce.errors import ConfigError
from postfire_mce.mce_model import WeightVector


# Random Index table for matrices of size 1..10 (Saaty, 1980)
RI_TABLE = {1: 0, 2: 0, 3: 0.58, 4: 0.90, 5: 1.12,
            6: 1.24, 7: 1.32, 8: 1.41, 9: 1.45, 10: 1.49}

CR_LIMIT = 0.1


def compute_ahp_weights(matrix, names: list):
    """
    Compute AHP priority weights from a pairwise comparison matrix.

    Returns:
        weights: dict {criterion: weight}
        ci: Consistency Index
        cr: Consistency Ratio
        is_consistent: bool (CR < 0.1)
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    n = matrix.shape[0]
    if matrix.ndim != 2 or matrix.shape != (n, n):
        raise ConfigError(f"Pairwise matrix must be square, got shape {matrix.shape}")
    if len(names) != n:
        raise ConfigError(f"{len(names)} criterion names for a {n}×{n} matrix")
    if np.any(matrix <= 0):
        raise ConfigError("Pairwise comparisons must be strictly positive")

    # ── Step 1: Normalise columns ────────────────────────────────────────
    col_sums = matrix.sum(axis=0)
    normalised = matrix / col_sums

    # ── Step 2: Compute priority vector (row averages) ───────────────────
    priority = normalised.mean(axis=1)

    # ── Step 3: Consistency check ────────────────────────────────────────
    weighted = matrix @ priority
    lambda_max = (weighted / priority).mean()

    ci = (lambda_max - n) / (n - 1) if n > 1 else 0.0
    ri = RI_TABLE.get(n, 1.49)
    cr = ci / ri if ri > 0 else 0.0

    is_consistent = cr < CR_LIMIT

    weights = {name: round(float(w), 4) for name, w in zip(names, priority)}

    print(f"[AHP] Pairwise matrix ({n}×{n})")
    for name, w in weights.items():
        print(f"       {name:15s} = {w:.4f}")
    print(f"       λ_max = {lambda_max:.4f}")
    print(f"       CI    = {ci:.4f}")
    print(f"       CR    = {cr:.4f}  {'consistent' if is_consistent else 'INCONSISTENT'}")

    return weights, ci, cr, is_consistent


def get_validated_weights(matrix, names: list) -> WeightVector:
    """
    Compute AHP weights and reject inconsistent matrices (CR >= 0.1).
    Rounding drift is removed so the vector sums to 1.
    """
    weights, ci, cr, ok = compute_ahp_weights(matrix, names)
    if not ok:
        raise ConfigError(
            f"AHP pairwise matrix is inconsistent (CR={cr:.4f} >= {CR_LIMIT}). "
            "Adjust the comparison matrix.",
            stage="ahp",
        )
    total = sum(weights.values())
    return WeightVector({k: round(v / total, 4) for k, v in weights.items()})


def aggregate_expert_weights(panel) -> WeightVector:
    """
    Average several experts' weight vectors into one panel vector.

    Every expert must weight the same criteria. Each vector is rescaled to
    sum to 1 first so no expert dominates through scale alone.
    """
    panel = [dict(w) for w in panel]
    if not panel:
        raise ConfigError("Expert panel is empty", stage="ahp")

    names = list(panel[0])
    for i, expert in enumerate(panel[1:], start=1):
        if set(expert) != set(names):
            raise ConfigError(
                f"Expert {i} weights {sorted(expert)} but expert 0 weights {sorted(names)}",
                stage="ahp",
            )

    stacked = np.array([[WeightVector(e).normalized()[n] for n in names] for e in panel])
    mean = stacked.mean(axis=0)

    print(f"[AHP] Aggregated {len(panel)} expert weight vectors")
    return WeightVector({n: round(float(w), 4) for n, w in zip(names, mean)})
