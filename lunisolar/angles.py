"""Angle normalisation and sub-sample crossing search."""

from __future__ import annotations

import math

__all__ = ["normalize_angle", "cubic_interpolate", "find_crossing", "BISECTION_ITERATIONS"]

BISECTION_ITERATIONS = 50


def normalize_angle(delta: float) -> float:
    """Reduce an angular difference in degrees to ``[-180, 180)``."""
    return (delta + 180.0) % 360.0 - 180.0


def cubic_interpolate(y0: float, y1: float, y2: float, y3: float, mu: float) -> float:
    """Evaluate the Catmull-Rom cubic through four equally spaced samples.

    ``mu`` runs from 0 at ``y1`` to 1 at ``y2``.
    """
    mu2 = mu * mu
    a0 = -0.5 * y0 + 1.5 * y1 - 1.5 * y2 + 0.5 * y3
    a1 = y0 - 2.5 * y1 + 2.0 * y2 - 0.5 * y3
    a2 = -0.5 * y0 + 0.5 * y2
    a3 = y1
    return a0 * mu * mu2 + a1 * mu2 + a2 * mu + a3


def find_crossing(y0: float, y1: float, y2: float, y3: float) -> float:
    """Locate the fraction between ``y1`` and ``y2`` where the fitted cubic crosses zero.

    The samples must change sign once between the two middle points. The
    search is a fixed-length bisection whose direction follows the sign of
    ``y2 - y1``, which resolves well below one second at a 12 hour step.
    """
    low, high = 0.0, 1.0
    direction = math.copysign(1.0, y2 - y1) if y2 != y1 else 0.0
    for _ in range(BISECTION_ITERATIONS):
        mid = 0.5 * (low + high)
        if cubic_interpolate(y0, y1, y2, y3, mid) * direction > 0:
            high = mid
        else:
            low = mid
    return 0.5 * (low + high)
