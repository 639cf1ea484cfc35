from __future__ import annotations

"""
horizontal.py
=============

Equatorial -> horizontal transform for an observer on the Earth.

Sidereal time is evaluated in two parts: a slow per-day term taken at the
last day boundary counted from the reference epoch, and a fast intraday term.
Keeping the slow term at the boundary avoids multiplying a large elapsed time
by the sidereal rate.

Azimuth convention: 0 = north, 90 = east, +/-180 = south, -90 = west.
"""

import numpy as np

from .solar import SECONDS_PER_DAY, elapsed_seconds
from .model import EquatorialPosition, HorizontalPosition, Site

GMST_AT_EPOCH_HOURS = 18.697374558
GMST_DAILY_DRIFT_HOURS = 0.06570982441908
SIDEREAL_RATE = 1.00273790935


def _scalar_or_array(x):
    return float(x) if np.ndim(x) == 0 else x


def greenwich_sidereal_hours(t):
    """Greenwich sidereal time in hours [0, 24) at Unix time ``t``."""
    d_sec = elapsed_seconds(t)
    into_day = np.mod(d_sec, SECONDS_PER_DAY)
    day_start = d_sec - into_day
    hours = (
        GMST_AT_EPOCH_HOURS
        + (GMST_DAILY_DRIFT_HOURS * day_start) / SECONDS_PER_DAY
        + (SIDEREAL_RATE * into_day) / 3600.0
    )
    return _scalar_or_array(np.mod(hours, 24.0))


def local_sidereal_deg(t, longitude_deg):
    """Local sidereal time in degrees [0, 360) for an east-positive longitude."""
    gst = np.asarray(greenwich_sidereal_hours(t), dtype=float)
    return _scalar_or_array(np.mod(gst * 15.0 + longitude_deg, 360.0))


def hour_angle_deg(t, right_ascension_deg, longitude_deg):
    """Hour angle in degrees [0, 360) of an object with the given RA."""
    lst = np.asarray(local_sidereal_deg(t, longitude_deg), dtype=float)
    return _scalar_or_array(np.mod(lst - right_ascension_deg, 360.0))


def compute_horizontal(t, eq: EquatorialPosition, site: Site) -> HorizontalPosition:
    """
    Convert the equatorial position ``eq`` at Unix time ``t`` to azimuth and
    geometric altitude (no refraction) for ``site``.

    ``t`` must be the same instant the equatorial position was computed for.
    """
    ha = np.radians(hour_angle_deg(t, eq.right_ascension_deg, site.longitude_deg))
    dec = np.radians(eq.declination_deg)
    lat = np.radians(site.latitude_deg)

    sin_alt = np.sin(dec) * np.sin(lat) + np.cos(dec) * np.cos(lat) * np.cos(ha)
    alt = np.arcsin(np.clip(sin_alt, -1.0, 1.0))
    # Adding 0.0 clears a negative zero so the meridian reads 180, not -180.
    az_y = -(np.cos(dec) * np.cos(lat) * np.sin(ha)) + 0.0
    az_x = np.sin(dec) - np.sin(lat) * np.sin(alt)
    az = np.arctan2(az_y, az_x)

    return HorizontalPosition(
        azimuth_deg=_scalar_or_array(np.degrees(az)),
        altitude_deg=_scalar_or_array(np.degrees(alt)),
    )
