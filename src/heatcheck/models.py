"""
Core data model shared across the engine.

Game logs come out of heatcheck.ingest and are treated as read-only
snapshots. Result objects expose to_dict() so the web layer can return
them as JSON or persist them as cache rows.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional


Signal = str  # 'over' | 'under' | 'neutral'

SIGNALS = ('over', 'under', 'neutral')
DIRECTIONS = ('over', 'under')
SPORTS = ('nba', 'mlb', 'nfl')


class Serializable:
    """Mixin for dataclasses that cross the JSON boundary."""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


# ---- GAME LOGS ----

@dataclass(frozen=True)
class WeatherConditions(Serializable):
    wind_speed_mph: float = 0.0
    wind_direction: str = ''  # compass: N, NE, E, ...
    temp_f: float = 70.0
    humidity: float = 0.0
    condition: str = ''
    is_indoor: bool = False


@dataclass(frozen=True)
class GameLogEntry(Serializable):
    """One player's statistical line for one game."""
    date: str  # ISO YYYY-MM-DD
    opponent: str  # team abbrev
    stats: Dict[str, float] = field(default_factory=dict)
    is_home: bool = False
    is_back_to_back: bool = False
    rest_days: int = 1
    opponent_def_rank: int = 15  # 1 = best defense, 30 = worst
    minutes_played: Optional[float] = None
    result: Optional[str] = None  # 'W' or 'L'
    game_id: Optional[str] = None

    def stat(self, key: str, default: float = 0.0) -> float:
        """Stat value, `default` when the player did not log it."""
        return self.stats.get(key, default)


@dataclass(frozen=True)
class EnrichedGameLog(GameLogEntry):
    """Game log with the pre-computed context the filter registry reads."""
    player_id: str = ''
    player_name: str = ''
    team: str = ''
    primary_stat_key: str = 'pts'
    prop_lines: Dict[str, float] = field(default_factory=dict)

    # Pre-computed rolling context
    stat_avg_l5: Optional[float] = None
    stat_avg_l10: Optional[float] = None
    hit_rate_l10: Optional[float] = None  # 0-1
    season_game_number: Optional[int] = None

    # Betting lines
    game_total: Optional[float] = None
    team_spread: Optional[float] = None
    team_implied_total: Optional[float] = None

    # NBA
    opponent_pace_rank: Optional[int] = None
    key_teammate_out: Optional[bool] = None

    # MLB
    opposing_pitcher_hand: Optional[str] = None
    opposing_pitcher_era: Optional[float] = None
    is_day_game: Optional[bool] = None
    ballpark_factor: Optional[float] = None
    weather: Optional[WeatherConditions] = None

    # NFL
    is_indoor: Optional[bool] = None
    is_primetime: Optional[bool] = None
    week_number: Optional[int] = None
    is_divisional: Optional[bool] = None

    @property
    def prop_line(self) -> Optional[float]:
        """Line for the primary stat, None when no line was posted."""
        return self.prop_lines.get(self.primary_stat_key)


# ---- FILTERS ----

@dataclass
class FilterCondition(Serializable):
    """One AND-combined clause of a custom filter."""
    field: str  # registry key, e.g. 'home_away', 'opponent_def_rank'
    operator: str  # eq | neq | gt | gte | lt | lte | between | in | not_in
    value: Any = None
    field_label: Optional[str] = None


@dataclass
class CustomFilter(Serializable):
    id: str
    name: str
    sport: str = 'nba'
    direction: str = 'over'
    conditions: List[FilterCondition] = field(default_factory=list)
    owner_id: str = ''
    description: str = ''
    prop_type: Optional[str] = None


# ---- CONVERGENCE ----

@dataclass
class ConvergenceFactor(Serializable):
    key: str
    name: str
    signal: Signal
    strength: float  # 0-1
    detail: str
    data_point: str = ''
    weight: float = 0.0  # share of the weighted lean, per sport

    @property
    def direction(self) -> int:
        return {'over': 1, 'under': -1}.get(self.signal, 0)

    @property
    def fired(self) -> bool:
        """Non-neutral with more than token strength."""
        return self.signal != 'neutral' and self.strength > 0.1


# ---- BACKTEST ----

@dataclass
class EquityCurvePoint(Serializable):
    date: str
    game_number: int
    cumulative_profit: float
    cumulative_roi: float
    result: str  # 'hit' | 'miss'
    player_name: str = ''
    stat: str = ''
    line: float = 0.0
    actual_value: float = 0.0


@dataclass
class BacktestResult(Serializable):
    filter_id: str
    filter_name: str
    seasons: List[str] = field(default_factory=list)

    # Core metrics
    total_games: int = 0
    hits: int = 0
    misses: int = 0
    hit_rate: float = 0.0  # 0-1

    # Betting simulation (flat 1-unit stakes)
    total_units_wagered: float = 0.0
    total_profit: float = 0.0
    roi: float = 0.0

    # Risk metrics
    max_drawdown: float = 0.0
    longest_win_streak: int = 0
    longest_loss_streak: int = 0
    sharpe_ratio: float = 0.0
    kelly_fraction: float = 0.0

    # Confidence assessment
    sample_size: str = 'insufficient'  # insufficient | low | moderate | high
    confidence_warning: Optional[str] = None
    breakeven_rate: float = 0.0
    fair_odds: Optional[float] = None  # American price the hit rate justifies
    edge_p_value: float = 1.0

    equity_curve: List[EquityCurvePoint] = field(default_factory=list)
    monthly_breakdown: List[Dict[str, Any]] = field(default_factory=list)
    season_breakdown: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class LivePerformance(Serializable):
    season: str = ''
    games: int = 0
    hits: int = 0
    hit_rate: float = 0.0
    roi: float = 0.0
    last_match_date: str = ''


# ---- AUTOPSY ----

@dataclass
class AutopsyCause(Serializable):
    type: str
    label: str
    detail: str
    was_knowable: bool
    severity: str  # primary | contributing | minor


@dataclass
class BetAutopsy(Serializable):
    root_causes: List[AutopsyCause]
    process_grade: str  # A-F
    process_assessment: str
    was_unlucky: bool
    unluck_score: int  # 0-100
    would_bet_again: bool
    lessons_learned: List[str] = field(default_factory=list)


# ---- COMMUNITY ----

@dataclass
class StrategyAuthor(Serializable):
    id: str = ''
    display_name: str = 'Unknown'
    avatar_url: Optional[str] = None
    reputation: int = 0
    total_published: int = 0


@dataclass
class BacktestSummary(Serializable):
    """Cached slice of a BacktestResult stored with a published strategy."""
    seasons: List[str] = field(default_factory=list)
    total_games: int = 0
    hit_rate: float = 0.0
    roi: float = 0.0
    max_drawdown: float = 0.0
    sharpe_ratio: float = 0.0
    sample_size: str = 'insufficient'

    @classmethod
    def from_result(cls, result: BacktestResult) -> 'BacktestSummary':
        return cls(
            seasons=list(result.seasons),
            total_games=result.total_games,
            hit_rate=result.hit_rate,
            roi=result.roi,
            max_drawdown=result.max_drawdown,
            sharpe_ratio=result.sharpe_ratio,
            sample_size=result.sample_size,
        )


@dataclass
class PublicStrategy(Serializable):
    id: str
    name: str
    description: str = ''
    sport: str = 'nba'
    prop_type: str = ''
    direction: str = 'both'  # over | under | both
    conditions: List[FilterCondition] = field(default_factory=list)
    author: StrategyAuthor = field(default_factory=StrategyAuthor)
    backtest: Optional[BacktestSummary] = None
    live_performance: LivePerformance = field(default_factory=LivePerformance)
    equity_sparkline: List[Dict[str, Any]] = field(default_factory=list)

    # Social
    follower_count: int = 0
    fork_count: int = 0
    comment_count: int = 0
    vote_score: int = 0

    forked_from: Optional[Dict[str, str]] = None
    published_at: str = ''  # ISO timestamp
    updated_at: str = ''
    tags: List[str] = field(default_factory=list)
