"""
Hit-Rate / Streak Evaluator

Recomputes hit rates and streaks for any stat / threshold / window the
user picks on the streak tracker. Players carry their raw per-game stats
(newest first) so rows can be rebuilt locally without refetching.

Hit definition: value > threshold (strict; a tie is not a hit).
Missing stat values (player did not log the stat) are read as 0.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .models import GameLogEntry, Serializable
from .stats import mean


SORT_OPTIONS = ('hit_rate', 'streak', 'window_avg', 'season_avg', 'name')


@dataclass
class TrackedPlayer:
    """A player row as delivered to the streak tracker."""
    id: str
    name: str
    team: str
    position: str = ''
    games: List[GameLogEntry] = field(default_factory=list)  # newest first
    season_avg: Dict[str, float] = field(default_factory=dict)
    playing_today: bool = False
    opponent: Optional[str] = None


@dataclass
class HitRateRow(Serializable):
    """
    One player's hit-rate summary for a stat/threshold/window.

    Display lists (window_games, hit_games, stat_values) run oldest to
    newest, left to right.
    """
    player: TrackedPlayer
    window_games: List[GameLogEntry]
    hit_games: List[bool]
    hit_count: int
    hit_rate: float  # 0-1
    window_avg: float
    season_avg: float
    stat_values: List[float]
    consecutive_streak: int  # hits in a row ending at the most recent game


@dataclass
class StreakFilterOptions:
    team: Optional[str] = None  # None or 'All' = every team
    search: Optional[str] = None
    playing_today_only: bool = False
    min_hit_rate: float = 0.0
    sort_by: str = 'hit_rate'


def current_streak(flags: Sequence[bool]) -> int:
    """Consecutive True values from the start (most recent first)."""
    count = 0
    for flag in flags:
        if not flag:
            break
        count += 1
    return count


def current_cold_streak(flags: Sequence[bool]) -> int:
    """Consecutive False values from the start (most recent first)."""
    return current_streak([not f for f in flags])


def longest_streak(flags: Sequence[bool]) -> int:
    best = run = 0
    for flag in flags:
        run = run + 1 if flag else 0
        best = max(best, run)
    return best


def hit_rate_l10(values: Sequence[float], line: float) -> float:
    """Share of the 10 most recent values strictly over the line (0 when empty)."""
    last10 = list(values)[:10]
    if not last10:
        return 0.0
    return sum(1 for v in last10 if v > line) / len(last10)


def compute_player_row(player: TrackedPlayer,
                       stat_key: str,
                       threshold: float,
                       window: int) -> Optional[HitRateRow]:
    """
    Compute a single player's hit-rate row.

    Args:
        player: Player with games ordered newest first
        stat_key: Canonical stat key ('pts', 'h', 'passYd', ...)
        threshold: Line to beat (strictly greater counts as a hit)
        window: Number of most recent games to consider; players with
            fewer games use what they have

    Returns:
        HitRateRow, or None when the player has no games
    """
    if window < 1:
        raise ValueError(f"window must be >= 1, got {window}")

    window_games = player.games[:window]
    if not window_games:
        return None

    stat_values = [g.stat(stat_key) for g in window_games]
    hit_games = [v > threshold for v in stat_values]
    hit_count = sum(hit_games)

    if stat_key in player.season_avg:
        season_avg = player.season_avg[stat_key]
    else:
        season_avg = mean([g.stat(stat_key) for g in player.games])

    return HitRateRow(
        player=player,
        window_games=list(reversed(window_games)),
        hit_games=list(reversed(hit_games)),
        hit_count=hit_count,
        hit_rate=hit_count / len(window_games),
        window_avg=mean(stat_values),
        season_avg=season_avg,
        stat_values=list(reversed(stat_values)),
        consecutive_streak=current_streak(hit_games),
    )


def _passes_prefilter(player: TrackedPlayer, options: StreakFilterOptions, query: str) -> bool:
    if options.team and options.team != 'All' and player.team != options.team:
        return False
    if options.playing_today_only and not player.playing_today:
        return False
    if query and query not in player.name.lower() and query not in player.team.lower():
        return False
    return True


def sort_rows(rows: List[HitRateRow], sort_by: str) -> List[HitRateRow]:
    if sort_by == 'hit_rate':
        key = lambda r: (-r.hit_rate, -r.consecutive_streak, -r.window_avg)
    elif sort_by == 'streak':
        key = lambda r: (-r.consecutive_streak, -r.hit_rate)
    elif sort_by == 'window_avg':
        key = lambda r: -r.window_avg
    elif sort_by == 'season_avg':
        key = lambda r: -r.season_avg
    elif sort_by == 'name':
        key = lambda r: r.player.name.lower()
    else:
        raise ValueError(f"Unknown sort option: {sort_by!r}")
    return sorted(rows, key=key)


def filter_and_sort(players: Sequence[TrackedPlayer],
                    stat_key: str,
                    threshold: float,
                    window: int,
                    options: Optional[StreakFilterOptions] = None) -> List[HitRateRow]:
    """
    Full streak-tracker pipeline.

    Team / search / playing-today filters drop players before any row is
    computed; each remaining player's streak comes from that player's own
    game history. The min hit-rate cut and the sort run afterwards.
    """
    options = options or StreakFilterOptions()
    query = (options.search or '').strip().lower()

    rows = []
    for player in players:
        if not _passes_prefilter(player, options, query):
            continue
        row = compute_player_row(player, stat_key, threshold, window)
        if row is None or row.hit_rate < options.min_hit_rate:
            continue
        rows.append(row)

    return sort_rows(rows, options.sort_by)


# ---- Hot / cold streak detection ----

@dataclass
class StreakCategory:
    """A yes/no per-game condition tracked for streaks."""
    name: str
    label: str
    stat_key: str
    min_value: float  # game counts when stat >= min_value


# Per-sport categories; each is a "did X in this game" test
STREAK_CATEGORIES: Dict[str, List[StreakCategory]] = {
    'nba': [
        StreakCategory('Scoring', '20+ Points', 'pts', 20),
        StreakCategory('Rebounding', '8+ Rebounds', 'reb', 8),
        StreakCategory('Playmaking', '6+ Assists', 'ast', 6),
        StreakCategory('Shooting', '3+ Threes', '3pm', 3),
    ],
    'mlb': [
        StreakCategory('Hitting', 'Games with Hit', 'h', 1),
        StreakCategory('Multi-Hit', 'Multi-Hit Games', 'h', 2),
        StreakCategory('Power', 'HR Games', 'hr', 1),
        StreakCategory('RBI', 'Games with RBI', 'rbi', 1),
        StreakCategory('Runs', 'Games Scoring', 'r', 1),
        StreakCategory('Speed', 'Games with SB', 'sb', 1),
    ],
    'nfl': [
        StreakCategory('Passing', '250+ Pass Yds', 'passYd', 250),
        StreakCategory('Rushing', '75+ Rush Yds', 'rushYd', 75),
        StreakCategory('Receiving', '5+ Receptions', 'rec', 5),
        StreakCategory('Touchdowns', 'Rec TD Games', 'recTd', 1),
    ],
}

HOT_MIN_HITS = 7
COLD_MAX_HITS = 3
COLD_MIN_GAMES = 7
MIN_GAMES = 5


@dataclass
class StreakResult(Serializable):
    player_id: str
    player_name: str
    team: str
    streak_type: str  # 'hot' | 'cold'
    category: str
    stat_label: str
    description: str
    recent_games: List[bool]  # oldest to newest
    current_streak: int
    hit_count: int
    games: int


def detect_streaks(player: TrackedPlayer, sport: str) -> List[StreakResult]:
    """
    Flag hot and cold streaks over the player's last 10 games.

    Hot: condition met in at least 7 of the last 10. Cold: met in at most
    3, with at least 7 games played. Players with fewer than 5 games are
    skipped.
    """
    last10 = player.games[:10]
    if len(last10) < MIN_GAMES:
        return []

    results = []
    for cat in STREAK_CATEGORIES.get(sport, []):
        flags = [g.stat(cat.stat_key) >= cat.min_value for g in last10]
        count = sum(flags)
        n = len(last10)

        if count >= HOT_MIN_HITS:
            streak_type = 'hot'
            streak = current_streak(flags)
            description = f"{cat.label} in {count} of last {n} games"
        elif count <= COLD_MAX_HITS and n >= COLD_MIN_GAMES:
            streak_type = 'cold'
            streak = current_cold_streak(flags)
            description = f"Only {count} of last {n} games with {cat.label.lower()}"
        else:
            continue

        results.append(StreakResult(
            player_id=player.id,
            player_name=player.name,
            team=player.team,
            streak_type=streak_type,
            category=cat.name,
            stat_label=cat.label,
            description=description,
            recent_games=list(reversed(flags)),
            current_streak=streak,
            hit_count=count,
            games=n,
        ))

    return results
