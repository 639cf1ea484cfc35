from __future__ import annotations

"""
config_loader.py
================

Load a TOML profile, apply ``--set`` overrides and resolve ``Settings``.

Profile layout::

    [site]
    name = "Home"
    latitude_deg = 51.4769
    longitude_deg = -0.0005

    [heliotrope]
    enabled = true
    use_equatorial = false
    ra_0to360 = true
    az_0to360 = true

Flags accept real booleans as well as the legacy ``"0"``/``"1"`` strings.
An invalid or missing flag falls back to its default; a non-numeric latitude
or longitude falls back to the caller's site. Each fallback is logged and
returned as a repair so it can be written back to the profile.
"""

import logging
import math
import os
import tomllib
from typing import Any, Dict, Iterable, Optional, Tuple

import tomli_w

from .ephemeris import BACKENDS, REFRACTION_MODES
from .model import Settings, Site

logger = logging.getLogger(__name__)

FLAG_DEFAULTS: Dict[str, bool] = {
    "enabled": True,
    # Equatorial output is opt-in.
    "use_equatorial": False,
    "ra_0to360": True,
    "az_0to360": True,
    "report_raw": True,
}

DEFAULT_POLL_INTERVAL_S = 30.0
DEFAULT_INITIAL_DELAY_S = 4.0


def load_toml(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Config file not found: {path}")
    with open(path, "rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML config: {path}\n{e}") from e


def merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(a)
    for k, v in b.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = merge_dicts(out[k], v)
        else:
            out[k] = v
    return out


def apply_sets(cfg: Dict[str, Any], sets: Iterable[str]) -> Dict[str, Any]:
    for item in sets:
        if "=" not in item:
            raise ValueError(f"--set requires key=value, got: {item}")
        key, val = item.split("=", 1)
        _assign(cfg, key.strip(), parse_scalar(val.strip()))
    return cfg


def _assign(cfg: Dict[str, Any], dotted: str, value: Any) -> None:
    path = dotted.split(".")
    cursor = cfg
    for p in path[:-1]:
        if p not in cursor or not isinstance(cursor[p], dict):
            cursor[p] = {}
        cursor = cursor[p]
    cursor[path[-1]] = value


def parse_scalar(s: str):
    sl = s.lower()
    if sl in ("true", "false"):
        return sl == "true"
    try:
        if "." in s or "e" in sl:
            return float(s)
        return int(s)
    except ValueError:
        return s


def parse_flag(value: Any) -> Optional[bool]:
    """Return the boolean meaning of a flag, or None if it is not valid."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        v = value.strip().lower()
        if v in ("1", "true"):
            return True
        if v in ("0", "false"):
            return False
    return None


def _parse_coord(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        x = float(value)
    except (TypeError, ValueError):
        return None
    return x if math.isfinite(x) else None


def load_settings(
    cfg: Dict[str, Any],
    fallback_site: Site,
) -> Tuple[Settings, Dict[str, Any]]:
    """
    Resolve ``Settings`` from a merged configuration dict.

    Returns ``(settings, repairs)`` where ``repairs`` maps dotted keys (e.g.
    ``"heliotrope.use_equatorial"``) to the default written in place of an
    invalid or missing value. A disabled profile is only checked for its
    ``enabled`` flag; nothing else is repaired.

    Raises
    ------
    ValueError
        On an unknown backend or refraction mode, or a non-positive interval.
    """
    repairs: Dict[str, Any] = {}
    site_cfg = cfg.get("site", {}) or {}
    opts = cfg.get("heliotrope", {}) or {}

    flags = {}
    for key, default in FLAG_DEFAULTS.items():
        # "enabled" comes first; a disabled profile only gets that one repaired.
        record = key == "enabled" or flags["enabled"]
        val = parse_flag(opts.get(key))
        if val is None:
            if record:
                if key in opts:
                    logger.warning(
                        "heliotrope.%s has invalid value %r; using %s",
                        key, opts[key], default,
                    )
                else:
                    logger.info("heliotrope.%s not set; using %s", key, default)
                repairs[f"heliotrope.{key}"] = default
            val = default
        flags[key] = val

    coords = {}
    for key, fallback in (
        ("latitude_deg", fallback_site.latitude_deg),
        ("longitude_deg", fallback_site.longitude_deg),
    ):
        val = _parse_coord(site_cfg.get(key))
        if val is None:
            val = float(fallback)
            if flags["enabled"]:
                if key in site_cfg:
                    logger.warning(
                        "site.%s is not a number (%r); using %s",
                        key, site_cfg[key], fallback,
                    )
                else:
                    logger.info("site.%s not set; using %s", key, fallback)
                repairs[f"site.{key}"] = val
        coords[key] = val

    elev = _parse_coord(site_cfg.get("elevation_m", fallback_site.elevation_m))
    site = Site(
        name=str(site_cfg.get("name", fallback_site.name)),
        latitude_deg=coords["latitude_deg"],
        longitude_deg=coords["longitude_deg"],
        elevation_m=elev if elev is not None else 0.0,
    )

    interval = float(opts.get("poll_interval_s", DEFAULT_POLL_INTERVAL_S))
    if interval <= 0:
        raise ValueError(f"heliotrope.poll_interval_s must be positive, got: {interval}")
    delay = float(opts.get("initial_delay_s", DEFAULT_INITIAL_DELAY_S))
    if delay < 0:
        raise ValueError(f"heliotrope.initial_delay_s must be >= 0, got: {delay}")

    backend = str(opts.get("backend", "analytic")).lower()
    if backend not in BACKENDS:
        raise ValueError(f"Unsupported ephemeris backend: {backend}")
    refraction = str(opts.get("refraction", "apparent")).lower()
    if refraction not in REFRACTION_MODES:
        raise ValueError(f"Unsupported refraction mode: {refraction}")

    settings = Settings(
        site=site,
        poll_interval_s=interval,
        initial_delay_s=delay,
        backend=backend,
        refraction=refraction,
        **flags,
    )
    return settings, repairs


def load_profile(
    path: Optional[str],
    set_overrides: Iterable[str] = (),
) -> Dict[str, Any]:
    """Load the profile at ``path`` (or start empty) and apply ``--set`` last."""
    cfg: Dict[str, Any] = load_toml(path) if path else {}
    cfg = merge_dicts(cfg, apply_sets({}, set_overrides))
    cfg.setdefault("site", {})
    cfg.setdefault("heliotrope", {})
    return cfg


def profile_repairs(path: str, fallback_site: Site) -> Dict[str, Any]:
    """Repairs needed by the profile file itself, ignoring ``--set`` overrides."""
    _, repairs = load_settings(load_profile(path), fallback_site)
    return repairs


def write_back(path: str, repairs: Dict[str, Any]) -> Dict[str, Any]:
    """
    Write repaired values into the profile at ``path``.

    Only the file content is updated; ``--set`` overrides never reach the
    disk. Returns the dict that was written.
    """
    cfg = load_toml(path) if os.path.exists(path) else {}
    for key, value in repairs.items():
        _assign(cfg, key, value)
    tmp = path + ".tmp"
    with open(tmp, "wb") as f:
        tomli_w.dump(cfg, f)
    os.replace(tmp, path)
    logger.info("Wrote %d repaired value(s) back to %s", len(repairs), path)
    return cfg


def dump_effective_config(cfg: Dict[str, Any]) -> str:
    return tomli_w.dumps(cfg)


def settings_to_dict(settings: Settings) -> Dict[str, Any]:
    """Render resolved settings in the profile layout."""
    s = settings.site
    return {
        "site": {
            "name": s.name,
            "latitude_deg": s.latitude_deg,
            "longitude_deg": s.longitude_deg,
            "elevation_m": s.elevation_m,
        },
        "heliotrope": {
            "enabled": settings.enabled,
            "use_equatorial": settings.use_equatorial,
            "ra_0to360": settings.ra_0to360,
            "az_0to360": settings.az_0to360,
            "report_raw": settings.report_raw,
            "poll_interval_s": settings.poll_interval_s,
            "initial_delay_s": settings.initial_delay_s,
            "backend": settings.backend,
            "refraction": settings.refraction,
        },
    }
