"""
Post-fire MCE engine – normalisation, weighted overlay, classification and
zonal statistics for post-fire decision-support maps.
"""

__version__ = "1.0.0"
