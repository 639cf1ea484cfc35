from __future__ import annotations
from datetime import datetime
import numpy as np
import pytest
from hypothesis import given, strategies as st

from heliotrope.core.solar import (
    REFERENCE_EPOCH_UNIX,
    compute_equatorial,
    ecliptic_obliquity_deg,
    elapsed_seconds,
    mean_anomaly_deg,
    mean_longitude_deg,
)

TROPICAL_YEAR_S = 31556925.0


def _utc(s: str) -> float:
    return datetime.fromisoformat(s.replace("Z", "+00:00")).timestamp()


def _unix_time():
    # 1900-01-01 .. 2100-01-01
    return st.floats(
        min_value=-2208988800.0,
        max_value=4102444800.0,
        allow_nan=False,
        allow_infinity=False,
    )


def _circular_diff(a: float, b: float) -> float:
    d = (a - b) % 360.0
    return min(d, 360.0 - d)


def test_reference_epoch_is_j2000_noon():
    assert REFERENCE_EPOCH_UNIX == _utc("2000-01-01T12:00:00Z")
    assert elapsed_seconds(REFERENCE_EPOCH_UNIX) == 0


def test_elapsed_seconds_negative_before_epoch():
    assert elapsed_seconds(0.0) == -946728000.0


def test_mean_elements_at_epoch():
    assert mean_longitude_deg(REFERENCE_EPOCH_UNIX) == pytest.approx(280.461)
    assert mean_anomaly_deg(REFERENCE_EPOCH_UNIX) == pytest.approx(357.528)
    assert ecliptic_obliquity_deg(REFERENCE_EPOCH_UNIX) == pytest.approx(23.439)


def test_mean_elements_are_normalised_before_epoch():
    # 1970 lies before the reference epoch; the modulo must stay positive.
    assert 0.0 <= mean_longitude_deg(0.0) < 360.0
    assert 0.0 <= mean_anomaly_deg(0.0) < 360.0


def test_scalar_in_scalar_out():
    eq = compute_equatorial(1718884920.0)
    assert isinstance(eq.right_ascension_deg, float)
    assert isinstance(eq.declination_deg, float)


def test_array_in_array_out_matches_scalars():
    ts = np.array([0.0, 946728000.0, 1718884920.0])
    eq = compute_equatorial(ts)
    assert eq.right_ascension_deg.shape == (3,)
    for i, t in enumerate(ts):
        one = compute_equatorial(float(t))
        assert eq.right_ascension_deg[i] == pytest.approx(one.right_ascension_deg)
        assert eq.declination_deg[i] == pytest.approx(one.declination_deg)


def test_march_equinox_2024():
    eq = compute_equatorial(_utc("2024-03-20T03:06:00Z"))
    assert eq.declination_deg == pytest.approx(0.0, abs=0.05)
    assert eq.right_ascension_deg == pytest.approx(0.0, abs=0.1)


def test_june_solstice_2024():
    eq = compute_equatorial(_utc("2024-06-20T20:51:00Z"))
    assert eq.declination_deg == pytest.approx(23.44, abs=0.05)
    assert eq.right_ascension_deg == pytest.approx(90.0, abs=0.1)


def test_december_solstice_2024():
    eq = compute_equatorial(_utc("2024-12-21T09:20:00Z"))
    assert eq.declination_deg == pytest.approx(-23.44, abs=0.05)
    assert eq.right_ascension_deg == pytest.approx(-90.0, abs=0.1)


@given(_unix_time())
def test_equatorial_ranges(t):
    eq = compute_equatorial(t)
    assert -180.0 < eq.right_ascension_deg <= 180.0
    assert -23.5 <= eq.declination_deg <= 23.5


@given(_unix_time())
def test_position_repeats_after_a_tropical_year(t):
    a = compute_equatorial(t)
    b = compute_equatorial(t + TROPICAL_YEAR_S)
    assert _circular_diff(a.right_ascension_deg, b.right_ascension_deg) < 1.0
    assert abs(a.declination_deg - b.declination_deg) < 1.0
