"""Numeric helpers shared by the aggregators and the alert engine."""

from __future__ import annotations

import math
from typing import Iterable

import numpy as np


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def mean_count(counts: Iterable[int]) -> float:
    """Arithmetic mean of person counts; 0.0 for an empty sequence."""
    arr = np.fromiter(counts, dtype=np.float64)
    if arr.size == 0:
        return 0.0
    return float(arr.mean())


def peak_count(counts: Iterable[int]) -> int:
    arr = np.fromiter(counts, dtype=np.int64)
    if arr.size == 0:
        return 0
    return int(arr.max())


def percentage(part: float, whole: float) -> float:
    """``100 * part / whole``, or 0.0 when ``whole`` is not positive."""
    if not whole or whole <= 0:
        return 0.0
    return 100.0 * part / whole
