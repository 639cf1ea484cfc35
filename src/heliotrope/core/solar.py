from __future__ import annotations

"""
solar.py
========

Low-precision solar ephemeris: Unix time -> right ascension / declination.

The model is the classic two-term equation-of-centre approximation
(Astronomical Almanac, low precision formulae), accurate to about 0.01 deg
within a couple of centuries of J2000. Time is counted in seconds from the
reference epoch 2000-01-01T12:00:00Z, i.e. Unix time 946728000, which is
exactly thirty Julian years (365.25 days) after the Unix epoch.

All public functions accept floats or numpy arrays. Scalars come back as
Python floats.

Reference
---------
http://www.stargazing.net/kepler/sun.html
"""

import numpy as np

from .model import EquatorialPosition

REFERENCE_EPOCH_UNIX = 946728000
SECONDS_PER_DAY = 86400.0


def _scalar_or_array(x):
    return float(x) if np.ndim(x) == 0 else x


def elapsed_seconds(t):
    """Seconds since the reference epoch (negative before it)."""
    if np.ndim(t) == 0:
        return t - REFERENCE_EPOCH_UNIX
    return np.asarray(t) - REFERENCE_EPOCH_UNIX


def mean_longitude_deg(t):
    """Mean ecliptic longitude of the Sun in [0, 360)."""
    days = elapsed_seconds(t) / SECONDS_PER_DAY
    return _scalar_or_array(np.mod(280.461 + 0.9856474 * days, 360.0))


def mean_anomaly_deg(t):
    """Mean anomaly of the Earth's orbit in [0, 360)."""
    days = elapsed_seconds(t) / SECONDS_PER_DAY
    return _scalar_or_array(np.mod(357.528 + 0.9856003 * days, 360.0))


def ecliptic_longitude_deg(t):
    """Ecliptic longitude of the Sun (not normalised)."""
    m = np.radians(mean_anomaly_deg(t))
    lam = mean_longitude_deg(t) + 1.915 * np.sin(m) + 0.020 * np.sin(2.0 * m)
    return _scalar_or_array(lam)


def ecliptic_obliquity_deg(t):
    """Obliquity of the ecliptic, slowly decreasing with time."""
    days = elapsed_seconds(t) / SECONDS_PER_DAY
    return _scalar_or_array(23.439 - 0.0000004 * days)


def compute_equatorial(t) -> EquatorialPosition:
    """Return the Sun's right ascension and declination at Unix time ``t``."""
    lam = np.radians(ecliptic_longitude_deg(t))
    eps = np.radians(ecliptic_obliquity_deg(t))

    y = np.cos(eps) * np.sin(lam) + 0.0
    x = np.cos(lam)
    ra = np.degrees(np.arctan2(y, x))
    dec = np.degrees(np.arcsin(np.sin(eps) * np.sin(lam)))

    return EquatorialPosition(
        right_ascension_deg=_scalar_or_array(ra),
        declination_deg=_scalar_or_array(dec),
    )
