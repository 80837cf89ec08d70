"""Utility helpers."""

from __future__ import annotations

import math
from decimal import ROUND_DOWN, Decimal, localcontext

TWO_PI = 2.0 * math.pi


def wrap_angle(angle: float) -> float:
    """Wrap *angle* (radians) into ``(-pi, pi]``."""
    angle = math.fmod(angle, TWO_PI)
    if angle <= -math.pi:
        return angle + TWO_PI
    if angle > math.pi:
        return angle - TWO_PI
    return angle


def truncate(value: float, digits: int) -> float:
    """Truncate toward zero at *digits* decimals.

    Works on the shortest decimal repr of the float so that values such as
    ``2.00001`` are not pulled down by binary representation error.
    """
    value = float(value)
    if not math.isfinite(value):
        raise ValueError(f"Cannot truncate non-finite value {value!r}")
    exact = Decimal(repr(value))
    if exact.as_tuple().exponent >= -digits:
        return value + 0.0
    with localcontext() as ctx:
        # enough precision for every integer digit plus the kept decimals
        ctx.prec = max(1, exact.adjusted() + 1) + digits
        result = float(exact.quantize(Decimal(1).scaleb(-digits), rounding=ROUND_DOWN))
    # Decimal keeps the sign of -0.0
    return result + 0.0
