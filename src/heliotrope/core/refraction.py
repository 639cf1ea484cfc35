from __future__ import annotations

"""
refraction.py
=============

Empirical atmospheric refraction correction for the Sun's altitude.

The correction follows Saemundsson's formula with a fixed standard
atmosphere (no pressure or temperature terms):

    R = 0.017 / tan(h + 10.3 / (h + 5.11))      [deg]

The formula diverges a few degrees below the horizon, so the input is
floored at -0.5 deg. Inputs may be floats or numpy arrays.
"""

import numpy as np

REFRACTION_FLOOR_DEG = -0.5


def _scalar_or_array(x):
    return float(x) if np.ndim(x) == 0 else x


def correct_for_refraction(altitude_deg):
    """Return the correction (deg) to add to a geometric altitude."""
    h = np.asarray(altitude_deg, dtype=float)
    # NaN compares false and is floored as well.
    d = np.where(h > REFRACTION_FLOOR_DEG, h, REFRACTION_FLOOR_DEG)
    corr = 0.017 / np.tan(np.radians(d + 10.3 / (d + 5.11)))
    return _scalar_or_array(corr)


def apparent_altitude(altitude_deg):
    """Return geometric altitude plus refraction correction (deg)."""
    h = np.asarray(altitude_deg, dtype=float)
    return _scalar_or_array(h + correct_for_refraction(h))
