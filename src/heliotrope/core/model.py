from __future__ import annotations

"""
model.py
========
Minimal data models shared across the sun-position pipeline.

This module is intentionally small and stable. The ephemeris, the poller,
the formatting layer and the sinks rely on these types without importing
each other.

All angles are in degrees. Fields may hold a float or, for track evaluation,
a numpy array of floats.
"""

from dataclasses import dataclass, field
from typing import Any, Protocol


# An observer location on the Earth.
@dataclass(frozen=True)
class Site:
    # Human readable site name.
    name: str
    # Latitude in decimal degrees (south negative).
    latitude_deg: float
    # Longitude in decimal degrees (east positive).
    longitude_deg: float
    # Elevation above mean sea level in meters (astropy backend only).
    elevation_m: float = 0.0


# Sun position in the equatorial frame.
@dataclass(frozen=True)
class EquatorialPosition:
    # Right ascension, naturally in (-180, 180].
    right_ascension_deg: Any
    # Declination in [-90, 90].
    declination_deg: Any


# Sun position in the observer's horizontal frame.
@dataclass(frozen=True)
class HorizontalPosition:
    # 0 north, 90 east, +/-180 south, -90 west.
    azimuth_deg: Any
    # Angle above the horizon.
    altitude_deg: Any


# Full result of one pipeline evaluation.
@dataclass(frozen=True)
class SunPosition:
    # Unix seconds the position was computed for.
    timestamp: Any
    equatorial: EquatorialPosition
    # Horizontal position; altitude includes the refraction correction.
    horizontal: HorizontalPosition
    # Altitude before the refraction correction.
    geometric_altitude_deg: Any
    # Correction added to the geometric altitude (0 when disabled).
    refraction_deg: Any = 0.0


# Runtime settings resolved from the TOML profile.
@dataclass(frozen=True)
class Settings:
    site: Site
    # Master switch; a disabled profile computes nothing.
    enabled: bool = True
    # Report right ascension and declination.
    use_equatorial: bool = False
    # Rounded right ascension in [0, 360) instead of (-180, 180].
    ra_0to360: bool = True
    # Rounded azimuth in [0, 360) instead of (-180, 180].
    az_0to360: bool = True
    # Report full-precision values besides the rounded ones.
    report_raw: bool = True
    # Seconds between two polls.
    poll_interval_s: float = 30.0
    # Seconds before the first poll.
    initial_delay_s: float = 4.0
    # Ephemeris backend: "analytic", "astropy" or "pysolar".
    backend: str = "analytic"
    # Refraction mode: "apparent" or "none".
    refraction: str = "apparent"


# Named output values of one poll.
@dataclass(frozen=True)
class Report:
    position: SunPosition
    variables: dict = field(default_factory=dict)

    def as_variables(self) -> dict:
        return dict(self.variables)


class SinkFn(Protocol):
    """Callable that receives one report per poll."""

    def __call__(self, report: Report) -> None: ...


__all__ = [
    "Site",
    "EquatorialPosition",
    "HorizontalPosition",
    "SunPosition",
    "Settings",
    "Report",
    "SinkFn",
]
