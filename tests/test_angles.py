from __future__ import annotations

import pytest

from lunisolar.angles import cubic_interpolate, find_crossing, normalize_angle


@pytest.mark.parametrize(
    "delta, expected",
    [(0.0, 0.0), (190.0, -170.0), (-190.0, 170.0), (180.0, -180.0), (-180.0, -180.0), (725.0, 5.0)],
)
def test_normalize_angle(delta: float, expected: float) -> None:
    assert normalize_angle(delta) == pytest.approx(expected)


def test_cubic_interpolate_passes_through_middle_samples() -> None:
    samples = (3.0, -1.0, 4.0, 2.5)
    assert cubic_interpolate(*samples, 0.0) == pytest.approx(-1.0)
    assert cubic_interpolate(*samples, 1.0) == pytest.approx(4.0)


def test_cubic_interpolate_is_exact_for_linear_data() -> None:
    assert cubic_interpolate(-3.0, -1.0, 1.0, 3.0, 0.25) == pytest.approx(-0.5)


def test_find_crossing_rising_and_falling() -> None:
    assert find_crossing(-3.0, -1.0, 1.0, 3.0) == pytest.approx(0.5, abs=1e-12)
    assert find_crossing(2.5, 0.5, -1.5, -3.5) == pytest.approx(0.25, abs=1e-12)


def test_find_crossing_on_curved_samples() -> None:
    # y = x**2 - 2 sampled at x = 0..3 crosses zero at sqrt(2).
    fraction = find_crossing(-2.0, -1.0, 2.0, 7.0)
    assert 1.0 + fraction == pytest.approx(2 ** 0.5, abs=1e-3)
