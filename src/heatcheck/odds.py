"""
Odds and payout helpers.

Props are simulated as flat 1-unit stakes at a fixed American price
(-110 by default), so these conversions drive ROI, Kelly sizing and the
break-even hit rate a filter has to beat.
"""

from typing import Optional


DEFAULT_ODDS = -110

# fair_odds() clamps certain outcomes to this price
MAX_PRICE = 10000


def implied_probability(odds: float) -> float:
    """Win probability priced into an American line (-110 -> 0.5238, +150 -> 0.4)."""
    if odds < 0:
        return -odds / (100 - odds)
    return 100 / (100 + odds)


def fair_odds(prob: float) -> float:
    """
    No-vig American price for a win probability.

    Favorites (prob > 0.5) come back negative, underdogs positive, and an
    even 50% as +100. Probabilities of 0 or 1 clamp to +/-MAX_PRICE.
    """
    if prob <= 0:
        return float(MAX_PRICE)
    if prob >= 1:
        return float(-MAX_PRICE)
    if prob > 0.5:
        return -100 * prob / (1 - prob)
    return 100 * (1 - prob) / prob


def payout_multiplier(odds: float) -> float:
    """
    Profit per unit staked on a win.

    -110 -> 0.909, +150 -> 1.5
    """
    if odds < 0:
        return 100 / abs(odds)
    return odds / 100


def breakeven_probability(odds: float) -> float:
    """Hit rate needed to break even at the given price; the implied probability."""
    if payout_multiplier(odds) <= 0:
        return 1.0
    return implied_probability(odds)


def kelly_fraction(prob: float, payout: float, cap: Optional[float] = None) -> float:
    """
    Kelly criterion stake as a fraction of bankroll.

    f* = (p * (b + 1) - 1) / b, floored at 0 (no short positions).

    Args:
        prob: Win probability
        payout: Profit per unit on a win (see payout_multiplier)
        cap: Optional upper bound on the fraction
    """
    if payout <= 0:
        return 0.0
    kelly = (prob * (payout + 1) - 1) / payout
    kelly = max(kelly, 0.0)  # Don't bet negative
    if cap is not None:
        kelly = min(kelly, cap)
    return kelly
