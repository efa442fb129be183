"""
Prop Spectrum

Distribution view of a player's stat against a line: summary stats, a
KDE curve, over/under share, a volatility label and split overlays
(home, away, vs top-10 defenses, vs bottom-10 defenses).

Display only; nothing here feeds the verdict.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

from .models import GameLogEntry, Serializable
from .stats import kde, mean, median, silverman_bandwidth, std_dev, volatility_score

KDE_POINTS = 100
MIN_OVERLAY_GAMES = 3
MIN_SILVERMAN_GAMES = 5


@dataclass
class KDEOverlay(Serializable):
    kde: List[Tuple[float, float]] = field(default_factory=list)
    mean: float = 0.0
    games: int = 0


@dataclass
class Distribution(Serializable):
    values: List[float] = field(default_factory=list)
    mean: float = 0.0
    median: float = 0.0
    std_dev: float = 0.0
    min: float = 0.0
    max: float = 0.0
    kde: List[Tuple[float, float]] = field(default_factory=list)


@dataclass
class SpectrumResult(Serializable):
    distribution: Distribution = field(default_factory=Distribution)
    over_pct: float = 0.0
    under_pct: float = 0.0
    volatility: str = 'low'  # low | medium | high
    volatility_score: float = 0.0  # 0-100
    overlays: Dict[str, KDEOverlay] = field(default_factory=lambda: {
        'home': KDEOverlay(),
        'away': KDEOverlay(),
        'vs_top_defense': KDEOverlay(),
        'vs_bottom_defense': KDEOverlay(),
    })


def _bandwidth(values: Sequence[float], fallback: float) -> float:
    if len(values) >= MIN_SILVERMAN_GAMES:
        return silverman_bandwidth(values)
    return fallback


def _overlay(games: List[GameLogEntry], stat: str, bandwidth: float,
             x_min: float, x_max: float) -> KDEOverlay:
    values = [g.stat(stat) for g in games]
    if len(values) < MIN_OVERLAY_GAMES:
        return KDEOverlay(kde=[], mean=mean(values), games=len(values))

    bw = _bandwidth(values, bandwidth)
    return KDEOverlay(
        kde=kde(values, bw, x_min, x_max, KDE_POINTS),
        mean=mean(values),
        games=len(values),
    )


def classify_volatility(score: float) -> str:
    if score < 30:
        return 'low'
    if score < 60:
        return 'medium'
    return 'high'


def compute_spectrum(games: List[GameLogEntry], stat: str, line: float) -> SpectrumResult:
    """
    Build the spectrum for one stat and line.

    Missing stat values count as 0. Returns an empty SpectrumResult when
    there are no games.
    """
    values = [g.stat(stat) for g in games]
    if not values:
        return SpectrumResult()

    m = mean(values)
    sd = std_dev(values)
    lo, hi = min(values), max(values)

    bandwidth = _bandwidth(values, sd * 0.5 or 1.0)
    kde_min = max(0.0, lo - bandwidth * 2)
    kde_max = hi + bandwidth * 2

    over_pct = sum(1 for v in values if v > line) / len(values)

    spread_score = volatility_score(values)

    overlays = {
        'home': [g for g in games if g.is_home],
        'away': [g for g in games if not g.is_home],
        'vs_top_defense': [g for g in games if g.opponent_def_rank <= 10],
        'vs_bottom_defense': [g for g in games if g.opponent_def_rank >= 21],
    }

    return SpectrumResult(
        distribution=Distribution(
            values=values,
            mean=m,
            median=median(values),
            std_dev=sd,
            min=lo,
            max=hi,
            kde=kde(values, bandwidth, kde_min, kde_max, KDE_POINTS),
        ),
        over_pct=over_pct,
        under_pct=1 - over_pct,
        volatility=classify_volatility(spread_score),
        volatility_score=spread_score,
        overlays={name: _overlay(split, stat, bandwidth, kde_min, kde_max)
                  for name, split in overlays.items()},
    )
