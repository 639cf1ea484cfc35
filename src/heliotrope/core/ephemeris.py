from __future__ import annotations

"""
ephemeris.py
============

Facade over the sun-position pipeline.

``sun_position`` runs, for one instant and one site:

    compute_equatorial(t) -> compute_horizontal(t, eq, site)
                          -> altitude + correct_for_refraction(altitude)

and allows switching to third-party backends (astropy, pysolar) for
cross-checks. ``sun_track`` evaluates the built-in pipeline on a numpy array
of instants.

Backends
--------
- ``"analytic"``: built-in low-precision model (default, no extra deps).
- ``"astropy"``: ``astropy.coordinates.get_sun`` in an ``AltAz`` frame.
  Right ascension and declination are GCRS (J2000 axes), not of date.
- ``"pysolar"``: ``pysolar.solar``. Only the horizontal position comes from
  pysolar; the equatorial position is the analytic one.

Refraction modes
----------------
- ``"apparent"``: altitude includes atmospheric refraction.
- ``"none"``: geometric altitude.
"""

from datetime import datetime, timezone

import numpy as np

from .horizontal import compute_horizontal
from .model import EquatorialPosition, HorizontalPosition, Site, SunPosition
from .refraction import correct_for_refraction
from .solar import compute_equatorial

BACKENDS = ("analytic", "astropy", "pysolar")
REFRACTION_MODES = ("apparent", "none")

# Pressure used by the third-party backends in "apparent" mode.
STANDARD_PRESSURE_HPA = 1013.25
STANDARD_TEMPERATURE_C = 10.0


def _wrap180(a: float) -> float:
    x = a % 360.0
    return x - 360.0 if x > 180.0 else x


def _check_modes(backend: str, refraction: str) -> tuple[str, str]:
    be = (backend or "analytic").lower()
    if be not in BACKENDS:
        raise ValueError(f"Unsupported ephemeris backend: {backend}")
    rf = (refraction or "apparent").lower()
    if rf not in REFRACTION_MODES:
        raise ValueError(f"Unsupported refraction mode: {refraction}")
    return be, rf


# ----------------------------- analytic ---------------------------------

def _sun_analytic(t, site: Site, refraction: str) -> SunPosition:
    eq = compute_equatorial(t)
    geo = compute_horizontal(t, eq, site)
    if refraction == "none":
        corr = np.zeros_like(geo.altitude_deg) if np.ndim(t) else 0.0
    else:
        corr = correct_for_refraction(geo.altitude_deg)
    return SunPosition(
        timestamp=t,
        equatorial=eq,
        horizontal=HorizontalPosition(
            azimuth_deg=geo.azimuth_deg,
            altitude_deg=geo.altitude_deg + corr,
        ),
        geometric_altitude_deg=geo.altitude_deg,
        refraction_deg=corr,
    )


# ----------------------- third-party backends ---------------------------

def _sun_astropy(t, site: Site, refraction: str) -> SunPosition:
    try:
        from astropy.time import Time
        from astropy.coordinates import EarthLocation, AltAz, get_sun
        import astropy.units as u
    except ImportError as e:
        raise NotImplementedError(
            "Astropy backend requested but astropy is not available."
        ) from e

    obstime = Time(float(t), format="unix", scale="utc")
    loc = EarthLocation(
        lon=site.longitude_deg * u.deg,
        lat=site.latitude_deg * u.deg,
        height=site.elevation_m * u.m,
    )
    sun = get_sun(obstime)

    geo = sun.transform_to(AltAz(obstime=obstime, location=loc, pressure=0 * u.hPa))
    geo_alt = float(geo.alt.to(u.deg).value)
    alt = geo_alt
    if refraction == "apparent":
        frame = AltAz(
            obstime=obstime,
            location=loc,
            pressure=STANDARD_PRESSURE_HPA * u.hPa,
            temperature=STANDARD_TEMPERATURE_C * u.deg_C,
            relative_humidity=0.0,
            obswl=0.55 * u.micron,
        )
        alt = float(sun.transform_to(frame).alt.to(u.deg).value)

    return SunPosition(
        timestamp=t,
        equatorial=EquatorialPosition(
            right_ascension_deg=float(sun.ra.wrap_at(180 * u.deg).deg),
            declination_deg=float(sun.dec.deg),
        ),
        horizontal=HorizontalPosition(
            azimuth_deg=_wrap180(float(geo.az.to(u.deg).value)),
            altitude_deg=alt,
        ),
        geometric_altitude_deg=geo_alt,
        refraction_deg=alt - geo_alt,
    )


def _sun_pysolar(t, site: Site, refraction: str) -> SunPosition:
    try:
        from pysolar.solar import get_altitude, get_azimuth
    except ImportError as e:
        raise NotImplementedError(
            "PySolar backend requested but pysolar is not available."
        ) from e

    lat = site.latitude_deg
    lon = site.longitude_deg
    # PySolar expects a timezone-aware datetime.
    when = datetime.fromtimestamp(float(t), tz=timezone.utc)
    # A zero pressure cancels pysolar's refraction term.
    geo_alt = float(get_altitude(lat, lon, when, elevation=site.elevation_m, pressure=0))
    alt = geo_alt
    if refraction == "apparent":
        alt = float(get_altitude(lat, lon, when, elevation=site.elevation_m))
    # PySolar azimuth is measured eastward from north (0..360).
    az = _wrap180(float(get_azimuth(lat, lon, when, elevation=site.elevation_m)))

    return SunPosition(
        timestamp=t,
        equatorial=compute_equatorial(t),
        horizontal=HorizontalPosition(azimuth_deg=az, altitude_deg=alt),
        geometric_altitude_deg=geo_alt,
        refraction_deg=alt - geo_alt,
    )


# ------------------------------ public ----------------------------------

def sun_position(
    t: float,
    site: Site,
    backend: str = "analytic",
    refraction: str = "apparent",
) -> SunPosition:
    """Return the Sun's position at Unix time ``t`` as seen from ``site``.

    Raises
    ------
    ValueError
        If ``backend`` or ``refraction`` is not recognised.
    NotImplementedError
        If a third-party backend is requested but not installed.
    """
    be, rf = _check_modes(backend, refraction)
    if be == "astropy":
        return _sun_astropy(t, site, rf)
    if be == "pysolar":
        return _sun_pysolar(t, site, rf)
    return _sun_analytic(t, site, rf)


def sun_track(times, site: Site, refraction: str = "apparent") -> SunPosition:
    """
    Evaluate the analytic pipeline on an array of Unix times.

    Every field of the returned ``SunPosition`` is a numpy array aligned with
    ``times``.
    """
    _, rf = _check_modes("analytic", refraction)
    ts = np.atleast_1d(np.asarray(times, dtype=float))
    return _sun_analytic(ts, site, rf)


def track_times(start: float, end: float, step_s: float) -> np.ndarray:
    """Unix times from ``start`` to ``end`` inclusive, every ``step_s`` seconds."""
    if step_s <= 0:
        raise ValueError(f"step must be positive, got: {step_s}")
    if end < start:
        raise ValueError("track end precedes track start")
    n = int(np.floor((end - start) / step_s)) + 1
    return start + step_s * np.arange(n, dtype=float)
