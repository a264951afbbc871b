"""
Fire Severity Module – dNBR differencing and burn severity classes.

dNBR = NBR_pre - NBR_post, scaled × 1000 to USGS units, then binned with
the 8-boundary severity ladder into 9 classes (both open ends are "NA").
"""

import config
from postfire_mce.classification import ThresholdLadder, classify
from postfire_mce.decision_support import zonal_statistics
from postfire_mce.errors import MCEError
from postfire_mce.raster import RasterLayer, require_same_grid


SEVERITY_LADDER = ThresholdLadder(
    tuple(config.SEVERITY_THRESHOLDS),
    labels=tuple(config.SEVERITY_CLASS_NAMES),
)


def compute_dnbr(pre_nbr: RasterLayer, post_nbr: RasterLayer) -> RasterLayer:
    """Unscaled differenced NBR; cells masked in either input stay masked."""
    require_same_grid([pre_nbr, post_nbr], stage="dnbr")
    dnbr = pre_nbr - post_nbr
    return dnbr.with_values(dnbr.values, name="dnbr", units="dNBR")


def scale_dnbr(dnbr: RasterLayer, factor: float = config.DNBR_SCALE) -> RasterLayer:
    scaled = dnbr * factor
    return scaled.with_values(scaled.values, name="dnbr_scaled", units="dNBR×1000")


def classify_burn_severity(dnbr_scaled: RasterLayer) -> RasterLayer:
    classified = classify(dnbr_scaled, SEVERITY_LADDER, name="burn_severity")
    print("[SEV] Burn severity classified "
          f"({SEVERITY_LADDER.n_classes} classes, boundaries {SEVERITY_LADDER.boundaries})")
    return classified


def burn_severity_statistics(classified: RasterLayer, region=None, scale: float = None):
    """ClassRecord table over all severity classes, in ladder order."""
    try:
        return zonal_statistics(classified, region=region, scale=scale, ladder=SEVERITY_LADDER)
    except MCEError as e:
        raise e.with_context(stage="severity:statistics", criterion="dnbr")
