from __future__ import annotations
import pytest

from heliotrope.core.model import Settings, Site
from heliotrope.io.tsv import Metadata

# ---------- Shared fixtures ----------


@pytest.fixture
def greenwich() -> Site:
    """Royal Observatory, Greenwich."""
    return Site(name="Greenwich", latitude_deg=51.4769, longitude_deg=-0.0005)


@pytest.fixture
def sydney() -> Site:
    return Site(name="Sydney", latitude_deg=-33.87, longitude_deg=151.21)


@pytest.fixture
def settings(greenwich) -> Settings:
    return Settings(site=greenwich)


@pytest.fixture
def md() -> Metadata:
    """Provide a fixed Metadata object for reproducible tests."""
    return Metadata(
        site_name="Greenwich",
        site_lat=51.4769,
        site_lon=-0.0005,
        site_height=0.0,
        backend="analytic",
        refraction="apparent",
        az_0to360=True,
        ra_0to360=True,
        software_version="0.1.0",
        created_at_iso="2024-06-20T12:00:00Z",
    )


@pytest.fixture
def parse_noncomment_header_and_rows():
    """Return first non-comment header and data rows from TSV text."""

    def _parser(text: str) -> tuple[str, list[str]]:
        lines = [ln.rstrip("\r\n") for ln in text.splitlines()]
        header = None
        rows: list[str] = []
        for ln in lines:
            stripped = ln.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if header is None:
                header = stripped
            else:
                rows.append(stripped)
        if header is None:
            raise AssertionError("no header found in provided text")
        return header, rows

    return _parser

