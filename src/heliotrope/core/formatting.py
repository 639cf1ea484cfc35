from __future__ import annotations

"""
formatting.py
=============

Turn a ``SunPosition`` into the named output values reported on every poll.

Variables
---------
RightAscension         raw, (-180, 180]
RightAscension360      raw, [0, 360)
RightAscensionHrs      "<h>h <m>m <s.s>s", 15 deg per hour
RightAscensionRounded  0.1 deg, convention set by ``ra_0to360``
Declination            raw
DeclinationRounded     0.1 deg
Azimuth                raw, (-180, 180]: -90 west, 0 north, 90 east
Azimuth360             raw, [0, 360)
AzimuthRounded         0.1 deg, convention set by ``az_0to360``
Altitude               apparent altitude, raw
AltitudeRounded        0.1 deg

Raw values keep full float precision (``repr``). When equatorial output is
disabled, the right ascension and declination placeholders read ``----``.
"""

import math

import numpy as np

from .model import Report, Settings, SunPosition

DEGREES_PER_HOUR = 15.0
PLACEHOLDER = "----"


def to_360(angle_deg):
    """Map (-180, 180] onto [0, 360): negative values get +360."""
    if np.ndim(angle_deg) == 0:
        return angle_deg + 360.0 if angle_deg < 0 else angle_deg
    a = np.asarray(angle_deg, dtype=float)
    return np.where(a < 0, a + 360.0, a)


def ra_to_hms(ra_deg: float) -> tuple[float, float, float]:
    """Split a right ascension into (hours, minutes, seconds).

    Hours and minutes are whole numbers; seconds keep the fraction. All three
    carry the sign of the input.
    """
    frac, hrs = math.modf(ra_deg / DEGREES_PER_HOUR)
    frac, mins = math.modf(frac * 60.0)
    return hrs, mins, frac * 60.0


def format_hms(ra_deg: float) -> str:
    hrs, mins, secs = ra_to_hms(ra_deg)
    return f"{hrs:.0f}h {mins:.0f}m {secs:.1f}s"


def _raw(x: float) -> str:
    return repr(float(x))


def _rounded(x: float) -> str:
    return f"{x:.1f}"


def build_report(position: SunPosition, settings: Settings) -> Report:
    """Build the named output values for one poll."""
    out: dict[str, str] = {}

    if settings.use_equatorial:
        ra = float(position.equatorial.right_ascension_deg)
        dec = float(position.equatorial.declination_deg)
        ra360 = to_360(ra)
        if settings.report_raw:
            out["RightAscension"] = _raw(ra)
            out["RightAscension360"] = _raw(ra360)
            out["Declination"] = _raw(dec)
        out["RightAscensionRounded"] = _rounded(ra360 if settings.ra_0to360 else ra)
        out["DeclinationRounded"] = _rounded(dec)
        out["RightAscensionHrs"] = format_hms(ra)
    else:
        out["RightAscensionHrs"] = PLACEHOLDER
        out["RightAscensionRounded"] = PLACEHOLDER
        out["DeclinationRounded"] = PLACEHOLDER

    az = float(position.horizontal.azimuth_deg)
    alt = float(position.horizontal.altitude_deg)
    az360 = to_360(az)
    if settings.report_raw:
        out["Azimuth"] = _raw(az)
        out["Azimuth360"] = _raw(az360)
    out["AzimuthRounded"] = _rounded(az360 if settings.az_0to360 else az)
    out["Altitude"] = _raw(alt)
    out["AltitudeRounded"] = _rounded(alt)

    return Report(position=position, variables=out)


def format_report_lines(report: Report) -> list[str]:
    """Render a report as ``name = value`` lines, in a stable order."""
    vars_ = report.as_variables()
    width = max((len(k) for k in vars_), default=0)
    return [f"{k:<{width}} = {v}" for k, v in vars_.items()]
