"""
sun_position_example.py
=======================

Purpose
-------
Minimal example showing how to use `heliotrope.core` to compute the Sun's
position for a site, build the named report values and write a short track
to a TSV file.

What this example does
----------------------
1) Computes the position at a fixed instant with the built-in model.
2) Builds the report (rounded and raw values) with equatorial output on.
3) Evaluates a 12-hour track every 30 minutes and writes it to TSV.

Usage
-----
Run the example:

    python examples/sun_position_example.py

Adapt `site` and `when` as needed. All angles are in **degrees**.
"""

from datetime import datetime, timezone

from heliotrope.core.ephemeris import sun_position, sun_track, track_times
from heliotrope.core.formatting import build_report, format_report_lines
from heliotrope.core.model import Settings, Site
from heliotrope.io.tsv import Metadata, PositionRow, iso_utc, write_positions_tsv

# 1) Site and instant (Unix seconds, UTC).
site = Site(name="Greenwich", latitude_deg=51.4769, longitude_deg=-0.0005)
when = datetime(2024, 6, 20, 12, 2, tzinfo=timezone.utc).timestamp()

pos = sun_position(when, site)
print(f"Geometric altitude: {pos.geometric_altitude_deg:.4f} deg")
print(f"Refraction:         {pos.refraction_deg:.4f} deg")

# 2) Report values, as a poll would produce them.
settings = Settings(site=site, use_equatorial=True)
for line in format_report_lines(build_report(pos, settings)):
    print(line)

# 3) Track over half a day, one row every 30 minutes.
times = track_times(when - 6 * 3600.0, when + 6 * 3600.0, 1800.0)
track = sun_track(times, site)
rows = [
    PositionRow(
        timestamp_iso=iso_utc(t),
        unix=float(t),
        right_ascension_deg=float(track.equatorial.right_ascension_deg[i]),
        declination_deg=float(track.equatorial.declination_deg[i]),
        azimuth_deg=float(track.horizontal.azimuth_deg[i]),
        altitude_deg=float(track.horizontal.altitude_deg[i]),
        refraction_deg=float(track.refraction_deg[i]),
    )
    for i, t in enumerate(times)
]
md = Metadata.from_settings(settings, software_version="example")
write_positions_tsv("sun_track_example.tsv", md, rows, append=False)
print(f"Wrote {len(rows)} rows to sun_track_example.tsv")
