"""
Statistics Primitives
=====================

Small numeric helpers shared by the streak, convergence, spectrum and
backtest modules. Every function accepts a plain sequence of numbers and
returns a neutral value (0, [] ...) on empty input instead of raising.
"""

from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy import stats


# Smoothing factor per sport for exponentially weighted averages
EWMA_ALPHA: Dict[str, float] = {
    'nba': 0.85,  # role shifts fast, B2B effect decays in ~3 games
    'mlb': 0.70,  # daily play, lower per-game variance
    'nfl': 0.90,  # 17 games, every game is high-information
}


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0.0 for an empty sequence."""
    if len(values) == 0:
        return 0.0
    return float(np.mean(np.asarray(values, dtype=float)))


def median(values: Sequence[float]) -> float:
    if len(values) == 0:
        return 0.0
    return float(np.median(np.asarray(values, dtype=float)))


def std_dev(values: Sequence[float]) -> float:
    """Population standard deviation (ddof=0), 0.0 for fewer than 2 values."""
    if len(values) <= 1:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float)))


def percentile(values: Sequence[float], p: float) -> float:
    """
    Percentile with linear interpolation between closest ranks.

    Args:
        values: Observations
        p: Percentile in [0, 100]

    Returns:
        Interpolated value, 0.0 for an empty sequence
    """
    if len(values) == 0:
        return 0.0
    return float(np.percentile(np.asarray(values, dtype=float), p))


def moving_average(values: Sequence[float], window: int) -> List[float]:
    """
    Trailing moving average.

    Index i averages values[max(0, i - window + 1) .. i], so the first
    entries use a shrinking window rather than padding. Output length
    always equals input length.
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")
    if len(values) == 0:
        return []

    arr = np.asarray(values, dtype=float)
    cumsum = np.concatenate([[0.0], np.cumsum(arr)])
    idx = np.arange(len(arr))
    start = np.maximum(0, idx - window + 1)
    sums = cumsum[idx + 1] - cumsum[start]
    counts = idx + 1 - start
    return (sums / counts).tolist()


def silverman_bandwidth(values: Sequence[float]) -> float:
    """
    Silverman's rule of thumb: 0.9 * min(sd, IQR / 1.34) * n^-0.2.

    Falls back to the standard deviation when the IQR collapses, and to
    1.0 when the sample has no spread at all.
    """
    n = len(values)
    if n == 0:
        return 1.0

    sd = std_dev(values)
    iqr = percentile(values, 75) - percentile(values, 25)
    spread = min(sd, iqr / 1.34) if iqr > 0 else sd
    if spread <= 0:
        return 1.0
    return 0.9 * spread * n ** -0.2


def kde(values: Sequence[float],
        bandwidth: Optional[float] = None,
        x_min: Optional[float] = None,
        x_max: Optional[float] = None,
        points: int = 100) -> List[Tuple[float, float]]:
    """
    Gaussian kernel density estimate on an evenly spaced grid.

    Only used for display (Prop Spectrum), so no attempt is made at
    boundary correction.

    Args:
        values: Observations
        bandwidth: Kernel bandwidth, Silverman's rule when omitted
        x_min: Left edge of the grid, min(values) when omitted
        x_max: Right edge of the grid, max(values) when omitted
        points: Grid size

    Returns:
        List of (x, density) pairs, empty for empty input
    """
    if len(values) == 0 or points < 1:
        return []

    data = np.asarray(values, dtype=float)
    bw = bandwidth if bandwidth and bandwidth > 0 else silverman_bandwidth(values)
    lo = float(data.min()) if x_min is None else x_min
    hi = float(data.max()) if x_max is None else x_max
    if hi <= lo:
        hi = lo + bw

    grid = np.linspace(lo, hi, points)
    # (points, n) matrix of kernel contributions
    density = stats.norm.pdf((grid[:, None] - data[None, :]) / bw).sum(axis=1) / (len(data) * bw)

    return [(float(x), float(y)) for x, y in zip(grid, density)]


def volatility_score(values: Sequence[float]) -> float:
    """
    0-100 spread score: coefficient of variation in percent, doubled.

    CV 10% (minutes) scores 20, 30% (points) 60, 50% and up caps at 100.
    Non-positive means and fewer than 2 values score 0.
    """
    m = mean(values)
    if len(values) <= 1 or m <= 0:
        return 0.0
    cv = std_dev(values) / m * 100
    return min(100.0, cv * 2)


def ewma(values: Sequence[float], alpha: float) -> float:
    """
    Exponentially weighted moving average.

    Args:
        values: Stat values, oldest first
        alpha: Weight on the newest value (0-1)
    """
    if len(values) == 0:
        return 0.0
    acc = float(values[0])
    for v in values[1:]:
        acc = alpha * float(v) + (1 - alpha) * acc
    return acc
