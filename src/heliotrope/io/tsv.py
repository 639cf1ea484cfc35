"""
Position TSV writer for sun-position reports.

This module writes a TSV file containing the Sun's position as computed by
the poller or a track run. The output format is a text file with:
  1) A *commented* metadata block in English (lines starting with '#').
  2) A single *header* line with the column names.
  3) One data line per position.

Metadata block
--------------
The commented metadata block records the context passed through the
`Metadata` dataclass:

  - Site information (name, latitude/longitude, height).
  - Computation settings (backend, refraction mode, angle conventions).
  - Software information (package version).
  - Creation timestamp for the metadata block.

Columns
-------
All field separators are tabs. The header is:

  timestamp\tunix\tright_ascension\tdeclination\tazimuth\taltitude\trefraction

Units and conventions
---------------------
- unix: seconds since the Unix epoch
- right_ascension, declination: equatorial angles [deg]
- azimuth: [deg], (-180, 180] or [0, 360) depending on ``az_0to360``
- altitude: apparent altitude [deg]
- refraction: correction included in altitude [deg]

Angles are serialized with six decimals; missing values as "NaN".

Robustness and append mode
--------------------------
When appending, the module validates that the on-disk header *exactly*
matches the expected one. If there is any mismatch, a SchemaMismatchError is
raised to avoid corrupting the dataset. Overwrites use an atomic write via a
temporary file.

Quickstart
----------
>>> md = Metadata(site_name="Greenwich", site_lat=51.4769, site_lon=-0.0005)
>>> rows = [
...     PositionRow(
...         timestamp_iso="2024-06-20T12:02:00Z",
...         unix=1718884920.0,
...         right_ascension_deg=88.9,
...         declination_deg=23.44,
...         azimuth_deg=-179.4,
...         altitude_deg=61.97,
...         refraction_deg=0.0089,
...     )
... ]
>>> write_positions_tsv("example.tsv", md, rows, append=False)
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional, TextIO

from heliotrope.core.formatting import to_360
from heliotrope.core.model import Report, Settings


__all__ = [
    "Metadata",
    "PositionRow",
    "SchemaMismatchError",
    "write_positions_tsv",
    "row_from_report",
    "TsvSink",
]


class SchemaMismatchError(RuntimeError):
    """Raised when the on-disk header does not match the expected schema."""


def iso_utc(t: float) -> str:
    """Format Unix seconds as 'YYYY-MM-DDTHH:MM:SSZ'."""
    return datetime.fromtimestamp(float(t), tz=timezone.utc).strftime(
        "%Y-%m-%dT%H:%M:%SZ"
    )


@dataclass
class Metadata:
    """
    File-level metadata written as a commented block at the top of the file.

    Parameters
    ----------
    site_name : Optional[str]
        Human readable site name.
    site_lat, site_lon : Optional[float]
        Site coordinates in degrees.
    site_height : Optional[float]
        Site height in meters.
    backend : Optional[str]
        Ephemeris backend used ("analytic", "astropy", "pysolar").
    refraction : Optional[str]
        "apparent" or "none".
    az_0to360 : Optional[bool]
        Azimuth convention used in the azimuth column.
    ra_0to360 : Optional[bool]
        Right ascension convention used in the right_ascension column.
    software_version : Optional[str]
        Version string of the producing software.
    created_at_iso : Optional[str]
        ISO-8601 UTC timestamp string for file creation. If None, current UTC
        is used.
    """

    site_name: Optional[str] = None
    site_lat: Optional[float] = None
    site_lon: Optional[float] = None
    site_height: Optional[float] = None
    backend: Optional[str] = None
    refraction: Optional[str] = None
    az_0to360: Optional[bool] = None
    ra_0to360: Optional[bool] = None
    software_version: Optional[str] = None
    created_at_iso: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings, software_version: str | None = None):
        s = settings.site
        return cls(
            site_name=s.name,
            site_lat=s.latitude_deg,
            site_lon=s.longitude_deg,
            site_height=s.elevation_m,
            backend=settings.backend,
            refraction=settings.refraction,
            az_0to360=settings.az_0to360,
            ra_0to360=settings.ra_0to360,
            software_version=software_version,
        )

    def created_iso_or_now(self) -> str:
        """Return created_at_iso if provided, else now in UTC as ISO-8601."""
        if self.created_at_iso:
            return self.created_at_iso
        return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


@dataclass
class PositionRow:
    """
    One sun-position row. All angles are in **degrees**.

    Equatorial values may be None when equatorial output is disabled; they
    are then serialized as "NaN".
    """

    timestamp_iso: str
    unix: float
    right_ascension_deg: Optional[float]
    declination_deg: Optional[float]
    azimuth_deg: float
    altitude_deg: float
    refraction_deg: Optional[float] = None

    def __post_init__(self) -> None:
        # Minimal ISO-8601 shape check to catch obvious mistakes
        if "T" not in self.timestamp_iso:
            raise ValueError(
                "timestamp_iso should look like ISO 8601 (e.g., 'YYYY-MM-DDTHH:MM:SSZ')"
            )


def _write_metadata_block(f: TextIO, md: Metadata) -> None:
    """Write the commented metadata block."""
    metadata_title = "# === Metadata " + 70 * "=" + "\n"
    f.write(metadata_title)

    f.write("# [Site]\n")
    if md.site_name:
        f.write(f"#  Name: {md.site_name}\n")
    if md.site_lat is not None:
        f.write(f"#  Latitude (deg): {md.site_lat}\n")
    if md.site_lon is not None:
        f.write(f"#  Longitude (deg): {md.site_lon}\n")
    if md.site_height is not None:
        f.write(f"#  Height (m): {md.site_height}\n")
    f.write("#\n")

    f.write("# [Ephemeris]\n")
    if md.backend:
        f.write(f"#  Backend: {md.backend}\n")
    if md.refraction:
        f.write(f"#  Refraction: {md.refraction}\n")
    if md.ra_0to360 is not None:
        f.write(f"#  Right ascension range: {_range_label(md.ra_0to360)}\n")
    if md.az_0to360 is not None:
        f.write(f"#  Azimuth range: {_range_label(md.az_0to360)}\n")
    f.write("#\n")

    f.write("# [Software]\n")
    if md.software_version:
        f.write(f"#  Version: {md.software_version}\n")
    f.write("#\n")

    f.write("# [Run]\n")
    f.write(f"#  Created at (UTC): {md.created_iso_or_now()}\n")
    f.write("# " + (len(metadata_title) - 2) * "=" + "\n")


def _range_label(use_360: bool) -> str:
    return "0 to 360" if use_360 else "-180 to 180"


def _expected_columns() -> List[str]:
    """Return the expected header token list."""
    return [
        "timestamp",
        "unix",
        "right_ascension",
        "declination",
        "azimuth",
        "altitude",
        "refraction",
    ]


def _write_column_header(f: TextIO) -> None:
    f.write("\t".join(_expected_columns()) + "\n")


def _fmt_6dec_or_nan(x: Optional[float]) -> str:
    """Format a float with 6 decimals, or 'NaN' if None or non-finite."""
    if x is None or not math.isfinite(x):
        return "NaN"
    return f"{x:.6f}"


def _row_to_line(r: PositionRow) -> str:
    """Serialize a position into a single line."""
    fields = [
        r.timestamp_iso,
        f"{r.unix:.3f}",
        _fmt_6dec_or_nan(r.right_ascension_deg),
        _fmt_6dec_or_nan(r.declination_deg),
        _fmt_6dec_or_nan(r.azimuth_deg),
        _fmt_6dec_or_nan(r.altitude_deg),
        _fmt_6dec_or_nan(r.refraction_deg),
    ]
    return "\t".join(fields) + "\n"


def _read_header_tokens(path: Path) -> List[str]:
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.lstrip("\ufeff")

            if not line.strip():
                continue

            if line.lstrip().startswith("#"):
                continue

            return line.rstrip("\n").split("\t")

    raise SchemaMismatchError("No header line found in existing file")


def write_positions_tsv(
    path: str | Path,
    metadata: Metadata,
    rows: Iterable[PositionRow],
    append: bool = True,
) -> None:
    """
    Write (or append) a TSV file of sun positions with metadata and header.

    Parameters
    ----------
    path : str or Path
        Output path.
    metadata : Metadata
        File-level metadata (written only when creating/overwriting the file).
    rows : Iterable[PositionRow]
        Sequence of positions to write.
    append : bool, default True
        If True and the file exists, validate schema and append rows.
        If False, overwrite the file atomically (write to temp, then replace).

    Raises
    ------
    SchemaMismatchError
        If in append mode the existing header does not match the expected one.
    """
    p = Path(path)

    if append and p.exists():
        try:
            on_disk = _read_header_tokens(p)
        except SchemaMismatchError:
            # File exists but has no valid header (e.g. empty or only comments)
            append = False
        else:
            expected = _expected_columns()
            if on_disk != expected:
                raise SchemaMismatchError(
                    f"Header mismatch when appending. On disk: {on_disk} ; "
                    f"expected: {expected}"
                )
            with p.open("a", encoding="utf-8") as f:
                for r in rows:
                    f.write(_row_to_line(r))
            return

    # Overwrite (or create new) atomically
    tmp = p.with_suffix(p.suffix + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8", newline="\n") as f:
            _write_metadata_block(f, metadata)
            _write_column_header(f)
            for r in rows:
                f.write(_row_to_line(r))
        tmp.replace(p)
    finally:
        if tmp.exists():
            tmp.unlink()


def row_from_report(report: Report, settings: Settings) -> PositionRow:
    """Convert a poll report into a TSV row honoring the angle conventions."""
    pos = report.position
    ra = dec = None
    if settings.use_equatorial:
        ra = float(pos.equatorial.right_ascension_deg)
        dec = float(pos.equatorial.declination_deg)
        if settings.ra_0to360:
            ra = to_360(ra)
    az = float(pos.horizontal.azimuth_deg)
    if settings.az_0to360:
        az = to_360(az)
    return PositionRow(
        timestamp_iso=iso_utc(pos.timestamp),
        unix=float(pos.timestamp),
        right_ascension_deg=ra,
        declination_deg=dec,
        azimuth_deg=az,
        altitude_deg=float(pos.horizontal.altitude_deg),
        refraction_deg=float(pos.refraction_deg),
    )


class TsvSink:
    """
    Sink that appends one row per report. The first call (re)creates the
    file with a fresh metadata block unless ``append`` is True.
    """

    def __init__(self, path: str | Path, settings: Settings, metadata: Metadata,
                 append: bool = False):
        self.path = Path(path)
        self._settings = settings
        self._metadata = metadata
        self._first_write = not append

    def __call__(self, report: Report) -> None:
        row = row_from_report(report, self._settings)
        write_positions_tsv(
            self.path, self._metadata, [row], append=not self._first_write
        )
        self._first_write = False
