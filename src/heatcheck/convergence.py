"""
Convergence Scorer

Evaluates a prop line against ten independent, explainable rules and
tallies how many of them point the same way.

FACTORS (in order):
1. recent_trend      - L10 hit rate and EWMA margin vs the line
2. season_avg        - season average vs the line
3. matchup           - opponent defensive rank
4. venue             - home/away split
5. rest              - back-to-back / rest days
6. h2h               - history against this opponent
7. momentum          - active over/under run
8. minutes_trend     - L5 vs L6-10 minutes
9. game_environment  - game total vs sport median
10. weather          - wind/temperature/precipitation (outdoor MLB/NFL)

Each factor yields a signal (over/under/neutral), a strength in [0, 1]
and a detail string that is shown to the user verbatim. The verdict is a
plain majority vote over non-neutral signals.

Alongside the vote, each sport weights the factors (weights sum to 1.0)
and the weighted lean is |sum(weight * direction * strength)| * 100:
>= 65 STRONG, >= 50 MODERATE, below that NEUTRAL; under 10 is a toss-up.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Tuple

from .models import (
    ConvergenceFactor,
    GameLogEntry,
    Serializable,
    WeatherConditions,
)
from .spectrum import compute_spectrum
from .stats import EWMA_ALPHA, ewma, mean
from .streaks import hit_rate_l10


@dataclass
class ConvergenceConfig:
    """Rule thresholds. Defaults mirror the production tuning."""
    trend_over_rate: float = 0.55
    trend_under_rate: float = 0.45
    season_gap_pct: float = 0.15  # of the line, min 1 unit
    venue_gap_pct: float = 0.12  # of the line, min 0.8 units
    weak_defense_rank: int = 21  # rank >= this -> over
    strong_defense_rank: int = 10  # rank <= this -> under
    h2h_min_games: int = 3
    h2h_over_rate: float = 0.6
    h2h_under_rate: float = 0.4
    momentum_min_run: int = 3
    minutes_min_games: int = 5
    minutes_shift: float = 2.0
    pace_threshold_pct: float = 0.05
    weather_min_signal: float = 0.15
    lean_toss_up: float = 10.0  # |score| below this has no direction
    lean_moderate: float = 50.0
    lean_strong: float = 65.0
    sport_median_totals: Dict[str, float] = field(default_factory=lambda: {
        'nba': 224.0,
        'mlb': 8.5,
        'nfl': 44.0,
    })


@dataclass
class PropContext:
    """Everything the rules need to evaluate one prop."""
    stat: str
    line: float
    games: List[GameLogEntry]  # newest first
    season_avg: float
    sport: str = 'nba'
    opponent: str = ''
    opponent_def_rank: int = 15
    opponent_stat_allowed: Optional[float] = None
    position: str = ''
    is_home: bool = False
    home_team: str = ''  # for ballpark orientation
    game_total: Optional[float] = None
    spread: Optional[float] = None
    weather: Optional[WeatherConditions] = None
    # upcoming game schedule; falls back to the latest logged game
    is_back_to_back: Optional[bool] = None
    rest_days: Optional[int] = None


@dataclass
class WeightedLean(Serializable):
    direction: str  # 'over' | 'under' | 'toss-up'
    score: float  # signed, -100..100
    confidence: int  # 1-99
    tier: str  # STRONG | MODERATE | NEUTRAL


@dataclass
class ConvergenceResult(Serializable):
    factors: List[ConvergenceFactor]
    over_count: int
    under_count: int
    neutral_count: int
    lean: Optional[WeightedLean] = None

    @property
    def total(self) -> int:
        return len(self.factors)


@dataclass
class Verdict(Serializable):
    direction: str  # 'over' | 'under' | 'toss-up'
    convergence_score: int
    confidence: int  # 0-100
    label: str
    hit_rate_l10: float
    avg_margin_l10: float
    season_avg: float


@dataclass
class PropCheckResult(Serializable):
    player_name: str
    stat: str
    line: float
    convergence: ConvergenceResult
    verdict: Verdict
    lean: Optional[WeightedLean] = None
    spectrum: Optional[Dict] = None


def _signal(value: float, over_cut: float, under_cut: float) -> str:
    if value > over_cut:
        return 'over'
    if value < under_cut:
        return 'under'
    return 'neutral'


def _values(games: List[GameLogEntry], stat: str) -> List[float]:
    return [g.stat(stat) for g in games]


# ---- FACTOR RULES ----

def recent_trend_factor(ctx: PropContext, cfg: ConvergenceConfig) -> ConvergenceFactor:
    last10 = _values(ctx.games[:10], ctx.stat)
    rate = hit_rate_l10(last10, ctx.line) if last10 else 0.5
    # oldest first, newest weighted heaviest
    alpha = EWMA_ALPHA.get(ctx.sport, EWMA_ALPHA['nba'])
    trend = ewma(last10[::-1], alpha) if last10 else ctx.line
    margin = trend - ctx.line

    signal = _signal(rate, cfg.trend_over_rate, cfg.trend_under_rate)
    # blend hit-rate distance from 50% with the EWMA margin
    rate_strength = abs(rate - 0.5) * 2
    margin_strength = min(1.0, abs(margin) / max(1.0, ctx.line * 0.3))
    strength = min(1.0, rate_strength * 0.6 + margin_strength * 0.4)
    over = sum(1 for v in last10 if v > ctx.line)

    return ConvergenceFactor(
        key='recent_trend',
        name='Recent Trend',
        signal=signal,
        strength=strength,
        detail=f"{round(rate * 100)}% hit rate in last {len(last10)} games (EWMA {trend:.1f})",
        data_point=f"{over}/{len(last10)} over",
    )


def season_avg_factor(ctx: PropContext, cfg: ConvergenceConfig) -> ConvergenceFactor:
    gap = ctx.season_avg - ctx.line
    # proportional: 2 points matter more on a line of 4 than on 25
    threshold = max(1.0, ctx.line * cfg.season_gap_pct)

    return ConvergenceFactor(
        key='season_avg',
        name='Season Average',
        signal=_signal(gap, threshold, -threshold),
        strength=min(1.0, abs(gap) / (threshold * 2.5)),
        detail=f"Season average: {ctx.season_avg:.1f} vs line {ctx.line:g}",
        data_point=f"{gap:+.1f} vs line",
    )


def matchup_factor(ctx: PropContext, cfg: ConvergenceConfig) -> ConvergenceFactor:
    rank = ctx.opponent_def_rank
    if rank >= cfg.weak_defense_rank:
        signal, strength = 'over', min(1.0, (rank - cfg.weak_defense_rank + 1) / 10)
    elif rank <= cfg.strong_defense_rank:
        signal, strength = 'under', min(1.0, (cfg.strong_defense_rank + 1 - rank) / 10)
    else:
        signal, strength = 'neutral', 0.2

    who = f"{ctx.position}s" if ctx.position else 'this stat'
    allowed = (f"{ctx.opponent_stat_allowed:.1f} {ctx.stat}/game allowed"
               if ctx.opponent_stat_allowed is not None else f"Rank #{rank}")

    return ConvergenceFactor(
        key='matchup',
        name='Opponent Defense',
        signal=signal,
        strength=strength,
        detail=f"Opponent ranks #{rank} defending {who}",
        data_point=allowed,
    )


def venue_factor(ctx: PropContext, cfg: ConvergenceConfig) -> ConvergenceFactor:
    home = _values([g for g in ctx.games if g.is_home], ctx.stat)
    away = _values([g for g in ctx.games if not g.is_home], ctx.stat)
    home_avg = mean(home) if home else ctx.season_avg
    away_avg = mean(away) if away else ctx.season_avg
    venue_avg = home_avg if ctx.is_home else away_avg
    gap = venue_avg - ctx.line
    threshold = max(0.8, ctx.line * cfg.venue_gap_pct)

    return ConvergenceFactor(
        key='venue',
        name='Home/Away Split',
        signal=_signal(gap, threshold, -threshold),
        strength=min(1.0, abs(gap) / (threshold * 2.5)),
        detail=(f"{'Home' if ctx.is_home else 'Away'} avg: {venue_avg:.1f} "
                f"(H: {home_avg:.1f} / A: {away_avg:.1f})"),
        data_point=f"{venue_avg:.1f} avg",
    )


def rest_factor(ctx: PropContext, cfg: ConvergenceConfig) -> ConvergenceFactor:
    latest = ctx.games[0] if ctx.games else None
    is_b2b = ctx.is_back_to_back
    if is_b2b is None:
        is_b2b = latest.is_back_to_back if latest else False
    rest_days = ctx.rest_days
    if rest_days is None:
        rest_days = latest.rest_days if latest else 1

    b2b = _values([g for g in ctx.games if g.is_back_to_back], ctx.stat)
    rested = _values([g for g in ctx.games if g.rest_days >= 2], ctx.stat)
    b2b_avg = mean(b2b) if b2b else ctx.season_avg
    rested_avg = mean(rested) if rested else ctx.season_avg

    if is_b2b:
        signal = 'under'
        strength = min(1.0, abs(ctx.season_avg - b2b_avg) / 4)
        detail = f"Back-to-back. B2B avg: {b2b_avg:.1f} vs season {ctx.season_avg:.1f}"
    elif rest_days >= 2:
        signal = 'over'
        strength = min(1.0, abs(rested_avg - ctx.season_avg) / 4)
        detail = f"{rest_days} days rest. Rested avg: {rested_avg:.1f}"
    else:
        signal = 'neutral'
        strength = 0.1
        detail = f"{rest_days} day(s) rest. Rested avg: {rested_avg:.1f}"

    return ConvergenceFactor(
        key='rest',
        name='Rest / Fatigue',
        signal=signal,
        strength=strength,
        detail=detail,
        data_point='B2B' if is_b2b else f"{rest_days}d rest",
    )


def h2h_factor(ctx: PropContext, cfg: ConvergenceConfig) -> ConvergenceFactor:
    h2h = _values([g for g in ctx.games if ctx.opponent and g.opponent == ctx.opponent], ctx.stat)
    n = len(h2h)

    if n < cfg.h2h_min_games:
        return ConvergenceFactor(
            key='h2h',
            name='Head-to-Head',
            signal='neutral',
            strength=0.0,
            detail=f"Limited H2H data ({n} games)",
            data_point='N/A',
        )

    over = sum(1 for v in h2h if v > ctx.line)
    rate = over / n
    return ConvergenceFactor(
        key='h2h',
        name='Head-to-Head',
        signal=_signal(rate, cfg.h2h_over_rate, cfg.h2h_under_rate),
        strength=abs(rate - 0.5) * 2,
        detail=f"{round(rate * 100)}% hit rate vs {ctx.opponent} ({n} games)",
        data_point=f"{over}/{n} over",
    )


def run_length(values: List[float], line: float) -> int:
    """
    Signed length of the active run, newest first.

    Positive = consecutive overs, negative = consecutive unders (at or
    below the line), 0 with no games.
    """
    run = 0
    for v in values:
        if run == 0:
            run = 1 if v > line else -1
        elif run > 0 and v > line:
            run += 1
        elif run < 0 and v <= line:
            run -= 1
        else:
            break
    return run


def momentum_factor(ctx: PropContext, cfg: ConvergenceConfig) -> ConvergenceFactor:
    run = run_length(_values(ctx.games, ctx.stat), ctx.line)

    if run > 0:
        detail = f"{run}-game over streak"
    elif run < 0:
        detail = f"{abs(run)}-game under streak"
    else:
        detail = 'No active streak'

    return ConvergenceFactor(
        key='momentum',
        name='Momentum',
        signal=_signal(run, cfg.momentum_min_run - 1, -(cfg.momentum_min_run - 1)),
        strength=min(1.0, abs(run) / 7),
        detail=detail,
        data_point=f"{abs(run)} games",
    )


def minutes_trend_factor(ctx: PropContext, cfg: ConvergenceConfig) -> ConvergenceFactor:
    minutes = [g.minutes_played for g in ctx.games[:10]
               if g.minutes_played is not None and g.minutes_played > 0]

    if ctx.stat in ('min', 'minutes') or len(minutes) < cfg.minutes_min_games:
        return ConvergenceFactor(
            key='minutes_trend',
            name='Minutes Trend',
            signal='neutral',
            strength=0.0,
            detail=('N/A (analyzing minutes prop)' if ctx.stat in ('min', 'minutes')
                    else 'Insufficient minutes data'),
            data_point='N/A',
        )

    recent = mean(minutes[:5])
    older = mean(minutes[5:]) if len(minutes) > 5 else recent
    season_minutes = [g.minutes_played for g in ctx.games
                      if g.minutes_played is not None and g.minutes_played > 0]
    season = mean(season_minutes)
    delta = recent - older

    return ConvergenceFactor(
        key='minutes_trend',
        name='Minutes Trend',
        signal=_signal(delta, cfg.minutes_shift, -cfg.minutes_shift),
        strength=min(1.0, abs(delta) / 5),
        detail=f"L5 avg: {recent:.1f} min vs prior: {older:.1f} min (szn: {season:.1f})",
        data_point=f"{delta:+.1f} min shift",
    )


def game_environment_factor(ctx: PropContext, cfg: ConvergenceConfig) -> ConvergenceFactor:
    median_total = cfg.sport_median_totals.get(ctx.sport, cfg.sport_median_totals['nba'])

    if ctx.game_total is None or ctx.game_total <= 0:
        return ConvergenceFactor(
            key='game_environment',
            name='Game Environment',
            signal='neutral',
            strength=0.0,
            detail='Game total unavailable',
            data_point='N/A',
        )

    delta = ctx.game_total - median_total
    threshold = median_total * cfg.pace_threshold_pct
    spread = ctx.spread or 0.0
    # spread is from this team's perspective (negative = favored)
    implied = ctx.game_total / 2 - spread / 2

    return ConvergenceFactor(
        key='game_environment',
        name='Game Environment',
        signal=_signal(delta, threshold, -threshold),
        strength=min(1.0, abs(delta) / (threshold * 3)),
        detail=f"Game total: {ctx.game_total:g} (median: {median_total:g}). Team implied: {implied:.1f}",
        data_point=f"O/U {ctx.game_total:g} / Implied {implied:.1f}",
    )


# Compass direction -> degrees
DIRECTION_DEGREES: Dict[str, float] = {
    'N': 0, 'NNE': 22.5, 'NE': 45, 'ENE': 67.5,
    'E': 90, 'ESE': 112.5, 'SE': 135, 'SSE': 157.5,
    'S': 180, 'SSW': 202.5, 'SW': 225, 'WSW': 247.5,
    'W': 270, 'WNW': 292.5, 'NW': 315, 'NNW': 337.5,
}

# Approximate bearing from home plate to center field; 0 for domes/roofs
MLB_OUTFIELD_ORIENTATION: Dict[str, float] = {
    'ARI': 0, 'ATL': 225, 'BAL': 225, 'BOS': 200, 'CHC': 220,
    'CWS': 210, 'CIN': 225, 'CLE': 175, 'COL': 230, 'DET': 195,
    'HOU': 0, 'KC': 180, 'LAA': 200, 'LAD': 225, 'MIA': 0,
    'MIL': 0, 'MIN': 205, 'NYM': 225, 'NYY': 195, 'OAK': 195,
    'PHI': 210, 'PIT': 180, 'SD': 195, 'SF': 210, 'SEA': 0,
    'STL': 200, 'TB': 0, 'TEX': 0, 'TOR': 0, 'WSH': 215,
}

NFL_PASSING_STATS = {'passYd', 'passTd', 'recYd', 'rec', 'recTd'}
NFL_RUSHING_STATS = {'rushYd', 'rushTd'}
PRECIPITATION = ('rain', 'drizzle', 'thunderstorm', 'snow')


def wind_bearing(direction: str) -> Optional[float]:
    """
    Degrees for a compass point ('SW') or a numeric bearing ('225').

    None when the direction cannot be read.
    """
    text = str(direction).strip().upper()
    if text in DIRECTION_DEGREES:
        return DIRECTION_DEGREES[text]
    try:
        degrees = float(text)
    except ValueError:
        return None
    if math.isnan(degrees) or math.isinf(degrees):
        return None
    return degrees % 360


def effective_wind(speed_mph: float, wind_deg: float, field_deg: float) -> float:
    """Wind component toward the outfield; positive = blowing out."""
    relative = ((wind_deg - field_deg) + 360) % 360
    return speed_mph * math.cos(math.radians(relative))


def weather_signal(weather: Optional[WeatherConditions],
                   sport: str,
                   stat: str,
                   home_team: str = '') -> Tuple[float, str]:
    """
    Weather impact in [-1, 1] (negative favors under) plus a detail string.

    Indoor games and missing data return 0.
    """
    if weather is None:
        return 0.0, 'Weather data unavailable'
    if weather.is_indoor:
        return 0.0, 'Indoor / dome: no weather effect'

    signal = 0.0
    details = []

    bearing = wind_bearing(weather.wind_direction)
    if sport == 'mlb' and home_team and bearing is None and weather.wind_speed_mph > 0:
        details.append('Wind direction unknown')
    elif sport == 'mlb' and home_team:
        orientation = MLB_OUTFIELD_ORIENTATION.get(home_team, 200)
        wind = effective_wind(weather.wind_speed_mph, bearing or 0.0, orientation)
        if wind > 15:
            signal += 0.7
            details.append('Strong wind blowing out')
        elif wind > 10:
            signal += 0.4
            details.append('Wind blowing out')
        elif wind > 5:
            signal += 0.2
            details.append('Mild wind out')
        elif wind < -15:
            signal -= 0.8
            details.append('Strong wind blowing in')
        elif wind < -10:
            signal -= 0.5
            details.append('Wind blowing in')
        elif wind < -5:
            signal -= 0.2
            details.append('Mild wind in')

    if sport == 'nfl':
        if stat in NFL_PASSING_STATS:
            if weather.wind_speed_mph > 30:
                signal -= 0.8
                details.append('Extreme wind, major passing impact')
            elif weather.wind_speed_mph > 20:
                signal -= 0.5
                details.append('High wind, passing suppressed')
            elif weather.wind_speed_mph > 15:
                signal -= 0.25
                details.append('Notable wind for passing')
        if stat in NFL_RUSHING_STATS and weather.wind_speed_mph > 20:
            signal += 0.3
            details.append('High wind, teams run more')

    if sport == 'mlb':
        if weather.temp_f < 45:
            signal -= 0.35
            details.append(f"Cold ({weather.temp_f:g}F)")
        elif weather.temp_f < 55:
            signal -= 0.20
            details.append(f"Cool ({weather.temp_f:g}F)")
        elif weather.temp_f > 85:
            signal += 0.15
            details.append(f"Hot ({weather.temp_f:g}F)")
    elif sport == 'nfl':
        if weather.temp_f < 30:
            signal -= 0.20
            details.append(f"Freezing ({weather.temp_f:g}F)")
        elif weather.temp_f < 40:
            signal -= 0.10
            details.append(f"Cold ({weather.temp_f:g}F)")

    if any(p in weather.condition.lower() for p in PRECIPITATION):
        signal -= 0.20 if sport == 'mlb' else 0.15
        details.append(weather.condition)

    signal = max(-1.0, min(1.0, signal))
    wind_str = f"{weather.wind_speed_mph:g} mph {weather.wind_direction}".strip()
    detail = ' | '.join(details) if details else f"{weather.temp_f:g}F, {wind_str}: no significant impact"
    return signal, detail


def weather_factor(ctx: PropContext, cfg: ConvergenceConfig) -> ConvergenceFactor:
    if ctx.sport not in ('mlb', 'nfl'):
        return ConvergenceFactor(
            key='weather',
            name='Weather',
            signal='neutral',
            strength=0.0,
            detail='N/A (indoor sport)',
            data_point='N/A',
        )

    value, detail = weather_signal(ctx.weather, ctx.sport, ctx.stat, ctx.home_team)
    return ConvergenceFactor(
        key='weather',
        name='Weather',
        signal=_signal(value, cfg.weather_min_signal, -cfg.weather_min_signal),
        strength=min(1.0, abs(value)),
        detail=detail,
        data_point=f"{value:+.2f}",
    )


FactorRule = Callable[[PropContext, ConvergenceConfig], ConvergenceFactor]

FACTOR_RULES: List[FactorRule] = [
    recent_trend_factor,
    season_avg_factor,
    matchup_factor,
    venue_factor,
    rest_factor,
    h2h_factor,
    momentum_factor,
    minutes_trend_factor,
    game_environment_factor,
    weather_factor,
]


# Lean weights per sport. MLB lists only the factors it shares with the
# ten rules here (pitcher quality scored through the defense rank); its
# platoon, ballpark and lineup-spot weight is spread by normalization.
FACTOR_WEIGHTS: Dict[str, Dict[str, float]] = {
    'nba': {
        'recent_trend': 0.26,
        'season_avg': 0.20,
        'matchup': 0.18,
        'minutes_trend': 0.14,
        'rest': 0.10,
        'game_environment': 0.07,
        'venue': 0.03,
        'h2h': 0.01,
        'momentum': 0.01,
    },
    'mlb': {
        'recent_trend': 0.20,
        'season_avg': 0.16,
        'matchup': 0.22,
        'weather': 0.11,
        'game_environment': 0.01,
        'momentum': 0.01,
    },
    'nfl': {
        'recent_trend': 0.25,
        'season_avg': 0.18,
        'matchup': 0.17,
        'minutes_trend': 0.15,  # snap share proxy
        'rest': 0.10,
        'game_environment': 0.08,
        'weather': 0.05,
        'venue': 0.01,
        'momentum': 0.01,
    },
}


def factor_weights(sport: str) -> Dict[str, float]:
    """Weights for a sport, normalized to sum to 1.0. Unknown sports use NBA's."""
    weights = FACTOR_WEIGHTS.get(sport, FACTOR_WEIGHTS['nba'])
    total = sum(weights.values())
    return {key: w / total for key, w in weights.items()}


def compute_lean(factors: List[ConvergenceFactor],
                 config: Optional[ConvergenceConfig] = None) -> WeightedLean:
    """
    Weighted lean over already-weighted factors.

    score = sum(weight * direction * strength) * 100, so a unanimous
    full-strength board scores +/-100. Confidence is |score| clamped to
    1-99.
    """
    cfg = config or ConvergenceConfig()
    score = sum(f.weight * f.direction * f.strength for f in factors) * 100
    magnitude = abs(score)

    if magnitude < cfg.lean_toss_up:
        direction = 'toss-up'
    else:
        direction = 'over' if score > 0 else 'under'

    if magnitude >= cfg.lean_strong:
        tier = 'STRONG'
    elif magnitude >= cfg.lean_moderate:
        tier = 'MODERATE'
    else:
        tier = 'NEUTRAL'

    return WeightedLean(
        direction=direction,
        score=round(score, 2),
        confidence=int(min(99, max(1, round(magnitude)))),
        tier=tier,
    )


def evaluate_convergence(ctx: PropContext,
                         config: Optional[ConvergenceConfig] = None) -> ConvergenceResult:
    """Run every factor rule in order, tally the signals and weigh the lean."""
    cfg = config or ConvergenceConfig()
    weights = factor_weights(ctx.sport)
    factors = [
        replace(f, weight=weights.get(f.key, 0.0))
        for f in (rule(ctx, cfg) for rule in FACTOR_RULES)
    ]

    return ConvergenceResult(
        factors=factors,
        over_count=sum(1 for f in factors if f.signal == 'over'),
        under_count=sum(1 for f in factors if f.signal == 'under'),
        neutral_count=sum(1 for f in factors if f.signal == 'neutral'),
        lean=compute_lean(factors, cfg),
    )


def verdict_label(direction: str, score: int, total: int) -> str:
    if direction == 'toss-up':
        return 'Toss-Up'
    share = score / total if total else 0
    side = direction.upper()
    if share >= 0.7:
        return f"Strong {side}"
    if share >= 0.5:
        return f"Lean {side}"
    return f"Slight {side}"


def synthesize_verdict(result: ConvergenceResult,
                       hit_rate: float,
                       avg_margin: float,
                       season_avg: float) -> Verdict:
    """
    Majority vote over non-neutral factors.

    Confidence blends the share of agreeing factors (60%) with the share
    of total strength they carry (40%), plus up to 10 points for an L10
    hit rate far from 50%. A toss-up is pinned at 50.
    """
    if result.over_count > result.under_count:
        direction, score = 'over', result.over_count
    elif result.under_count > result.over_count:
        direction, score = 'under', result.under_count
    else:
        direction, score = 'toss-up', result.over_count

    total = result.total
    if direction == 'toss-up' or total == 0:
        confidence = 50
    else:
        total_strength = sum(f.strength for f in result.factors)
        aligned_strength = sum(f.strength for f in result.factors if f.signal == direction)
        count_conf = score / total * 100
        strength_conf = aligned_strength / total_strength * 100 if total_strength > 0 else 50
        hit_rate_bonus = abs(hit_rate - 0.5) * 20
        confidence = round(count_conf * 0.6 + strength_conf * 0.4 + hit_rate_bonus)

    return Verdict(
        direction=direction,
        convergence_score=score,
        confidence=int(max(0, min(100, confidence))),
        label=verdict_label(direction, score, total),
        hit_rate_l10=hit_rate,
        avg_margin_l10=avg_margin,
        season_avg=season_avg,
    )


def check_prop(ctx: PropContext,
               player_name: str = '',
               config: Optional[ConvergenceConfig] = None,
               include_spectrum: bool = True) -> PropCheckResult:
    """Convergence + verdict (+ distribution) for one prop line."""
    result = evaluate_convergence(ctx, config)
    last10 = _values(ctx.games[:10], ctx.stat)
    rate = hit_rate_l10(last10, ctx.line)
    avg_margin = mean(last10) - ctx.line if last10 else 0.0

    verdict = synthesize_verdict(result, rate, avg_margin, ctx.season_avg)
    spectrum = compute_spectrum(ctx.games, ctx.stat, ctx.line).to_dict() if include_spectrum else None

    return PropCheckResult(
        player_name=player_name,
        stat=ctx.stat,
        line=ctx.line,
        convergence=result,
        verdict=verdict,
        lean=result.lean,
        spectrum=spectrum,
    )
