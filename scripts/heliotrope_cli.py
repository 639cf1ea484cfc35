#!/usr/bin/env python3
r"""
Report the Sun's position for a site: once, along a track, or periodically.

This CLI is a thin driver around `heliotrope.core`. It loads an optional TOML
profile, applies `--set` overrides, resolves the settings (falling back to
defaults for invalid flags), and then runs one of three modes:

- one-shot (default): compute the position for `--time` (or now);
- track: evaluate every `--step` seconds between `--track-start` and
  `--track-end` and write a TSV;
- poll: report every `heliotrope.poll_interval_s` seconds until interrupted
  or until `--count` reports have been produced.

Reports go to stdout as `name = value` lines, or to a TSV file with `--out`.

-------------------------------------------------------------------------------
Command-line usage examples
-------------------------------------------------------------------------------
1) Position now, at a given site:
   python scripts/heliotrope_cli.py --lat 51.4769 --lon -0.0005

2) Position at a given instant (ISO-8601 or Unix seconds):
   python scripts/heliotrope_cli.py --lat 51.4769 --lon -0.0005 \
       --time 2024-06-20T12:02:00Z

3) Use a profile and enable equatorial output:
   python scripts/heliotrope_cli.py --config config/home.toml \
       --set heliotrope.use_equatorial=true

4) Repair invalid flags in a profile and print the effective settings:
   python scripts/heliotrope_cli.py --config config/home.toml \
       --write-back --dump-effective-config

5) One day of positions every 10 minutes, to a TSV:
   python scripts/heliotrope_cli.py --config config/home.toml \
       --track-start 2024-06-20T00:00:00Z --track-end 2024-06-21T00:00:00Z \
       --step 600 --out track.tsv

6) Poll every 30 s (profile default) and append to a TSV, stop after 10:
   python scripts/heliotrope_cli.py --config config/home.toml \
       --poll --count 10 --out positions.tsv

7) Show only this example block and exit:
   python scripts/heliotrope_cli.py --examples

-------------------------------------------------------------------------------
Notes
-------------------------------------------------------------------------------
- `--lat/--lon/--name/--height` describe the fallback site, used when the
  profile has no (or a non-numeric) site.latitude_deg / site.longitude_deg.
- A profile with `heliotrope.enabled = false` exits immediately with status 0.
- Track mode always uses the built-in analytic model.
- With `--out`, poll mode appends to an existing file (its header must match);
  one-shot and track modes replace it.
"""

from __future__ import annotations

import argparse
import logging
import threading
import time
from datetime import datetime, timezone
from importlib.metadata import PackageNotFoundError, version
from typing import Optional

from heliotrope.core.config_loader import (
    dump_effective_config,
    load_profile,
    load_settings,
    profile_repairs,
    settings_to_dict,
    write_back,
)
from heliotrope.core.ephemeris import sun_track, track_times
from heliotrope.core.formatting import format_report_lines, to_360
from heliotrope.core.model import Report, SinkFn, Site
from heliotrope.core.poller import SunPoller
from heliotrope.io.tsv import (
    Metadata,
    PositionRow,
    TsvSink,
    iso_utc,
    write_positions_tsv,
)

logger = logging.getLogger("heliotrope.cli")


def _software_version() -> str:
    try:
        return version("heliotrope")
    except PackageNotFoundError:
        return "dev"


def parse_time(s: str) -> float:
    """Parse Unix seconds or an ISO-8601 instant (naive means UTC)."""
    try:
        return float(s)
    except ValueError:
        pass
    dt = datetime.fromisoformat(s.strip().replace("Z", "+00:00"))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="heliotrope_cli",
        description="Compute the Sun's equatorial and horizontal position.",
    )
    p.add_argument("--config", help="TOML profile path")
    p.add_argument(
        "--set",
        action="append",
        default=[],
        help="Override config key=value (repeatable), e.g. heliotrope.az_0to360=false",
    )
    p.add_argument(
        "--dump-effective-config",
        action="store_true",
        help="Print the resolved settings and exit.",
    )
    p.add_argument(
        "--write-back",
        action="store_true",
        help="Write defaults for invalid or missing values back to --config.",
    )
    p.add_argument("--examples", action="store_true", help="Show usage examples and exit.")

    p.add_argument("--name", default="Unknown", help="Fallback site name.")
    p.add_argument(
        "--lat", type=float, default=0.0, help="Fallback latitude in degrees (default: 0)."
    )
    p.add_argument(
        "--lon",
        type=float,
        default=0.0,
        help="Fallback longitude in degrees, east positive (default: 0).",
    )
    p.add_argument(
        "--height", type=float, default=0.0, help="Fallback site height in meters."
    )

    p.add_argument(
        "--time",
        type=parse_time,
        default=None,
        help="Instant for one-shot mode: Unix seconds or ISO-8601 (default: now).",
    )
    p.add_argument("--track-start", type=parse_time, default=None, help="Track start.")
    p.add_argument("--track-end", type=parse_time, default=None, help="Track end (inclusive).")
    p.add_argument(
        "--step", type=float, default=600.0, help="Track step in seconds (default: 600)."
    )

    p.add_argument("--poll", action="store_true", help="Report periodically.")
    p.add_argument(
        "--count", type=int, default=None, help="Stop polling after N reports."
    )
    p.add_argument("--out", default=None, help="Write reports to this TSV file.")
    p.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING).",
    )
    return p


def extract_examples_from_docstring() -> str:
    """Return the 'Command-line usage examples' section of the module docstring."""
    doc = __doc__ or ""
    title = "Command-line usage examples"
    start = doc.find(title)
    if start == -1:
        return "No examples available."
    lines = doc[start:].splitlines()[2:]
    body = []
    for line in lines:
        if "-" * 10 in line:
            break
        body.append(line)
    return f"{title}\n{'-' * len(title)}\n" + "\n".join(body).strip()


def print_sink(report: Report) -> None:
    print(f"[{iso_utc(report.position.timestamp)}]")
    for line in format_report_lines(report):
        print(f"  {line}")


def _run_track(args, settings, md) -> int:
    if settings.backend != "analytic":
        logger.warning("Track mode ignores backend %r and uses 'analytic'", settings.backend)
    times = track_times(args.track_start, args.track_end, args.step)
    track = sun_track(times, settings.site, refraction=settings.refraction)

    ra = track.equatorial.right_ascension_deg
    dec = track.equatorial.declination_deg
    az = track.horizontal.azimuth_deg
    if settings.ra_0to360:
        ra = to_360(ra)
    if settings.az_0to360:
        az = to_360(az)

    rows = [
        PositionRow(
            timestamp_iso=iso_utc(t),
            unix=float(t),
            right_ascension_deg=float(ra[i]) if settings.use_equatorial else None,
            declination_deg=float(dec[i]) if settings.use_equatorial else None,
            azimuth_deg=float(az[i]),
            altitude_deg=float(track.horizontal.altitude_deg[i]),
            refraction_deg=float(track.refraction_deg[i]),
        )
        for i, t in enumerate(times)
    ]
    if args.out:
        write_positions_tsv(args.out, md, rows, append=False)
        print(f"Track: {len(rows)} rows -> {args.out}")
    else:
        for r in rows:
            print(
                f"{r.timestamp_iso}\taz={r.azimuth_deg:.4f}\talt={r.altitude_deg:.4f}"
            )
    return 0


def _run_poll(args, settings, sink: SinkFn) -> int:
    done = threading.Event()
    produced = 0

    def counting_sink(report: Report) -> None:
        nonlocal produced
        if done.is_set():
            return
        sink(report)
        produced += 1
        if args.count is not None and produced >= args.count:
            done.set()

    poller = SunPoller(settings, counting_sink)
    poller.start()
    try:
        while not done.wait(0.1):
            pass
    except KeyboardInterrupt:
        print("Interrupted.")
    finally:
        poller.stop(timeout=5.0)
    print(f"Done: {produced} report(s).")
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.examples:
        print(extract_examples_from_docstring())
        return 0

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    if args.write_back and not args.config:
        parser.error("--write-back requires --config")
    if (args.track_start is None) != (args.track_end is None):
        parser.error("--track-start and --track-end go together")
    if args.count is not None and args.count < 1:
        parser.error("--count must be >= 1")

    fallback = Site(
        name=args.name,
        latitude_deg=args.lat,
        longitude_deg=args.lon,
        elevation_m=args.height,
    )
    try:
        cfg = load_profile(args.config, args.set)
        settings, _ = load_settings(cfg, fallback)
        repairs = profile_repairs(args.config, fallback) if args.write_back else {}
    except (FileNotFoundError, ValueError) as e:
        parser.error(str(e))

    if repairs:
        write_back(args.config, repairs)
        print(f"Repaired {len(repairs)} value(s) in {args.config}")

    if args.dump_effective_config:
        print(dump_effective_config(settings_to_dict(settings)).rstrip())
        return 0

    if not settings.enabled:
        logger.info("heliotrope.enabled is false; nothing to do")
        print("Disabled by configuration.")
        return 0

    md = Metadata.from_settings(settings, software_version=_software_version())

    if args.track_start is not None:
        try:
            return _run_track(args, settings, md)
        except ValueError as e:
            parser.error(str(e))

    sink: SinkFn = print_sink
    if args.out:
        # Poll mode keeps adding to an existing file; one-shot replaces it.
        sink = TsvSink(args.out, settings, md, append=args.poll)

    if args.poll:
        return _run_poll(args, settings, sink)

    t = args.time if args.time is not None else time.time()
    try:
        SunPoller(settings, sink, clock=lambda: t).poll_once()
    except NotImplementedError as e:
        parser.error(str(e))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
