"""
Normalization boundary for upstream game logs.

Scraped provider payloads (ESPN, MLB Stats API, stats.nba.com) arrive as
loosely typed dicts. Everything in this module converts them into the
strict GameLogEntry / EnrichedGameLog shapes; the rest of the engine never
touches a raw payload.

Raw record shape accepted by ingest_game_log:

    {
        "date": "2024-01-15T00:30Z",
        "opponent": "BOS",            # or {"abbreviation": "BOS"}
        "homeAway": "home",           # or "isHome": true
        "minutes": "34",
        "result": "W",
        "stats": {"PTS": "27", "FG": "10-18", "3PT": "3-7", ...}
    }
"""

import logging
from dataclasses import replace
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd

from .models import EnrichedGameLog, GameLogEntry, WeatherConditions


logger = logging.getLogger(__name__)


class IngestError(ValueError):
    """A raw record cannot be turned into a game log."""


# Provider label -> canonical stat key, per sport
STAT_ALIASES: Dict[str, Dict[str, str]] = {
    'nba': {
        'PTS': 'pts', 'POINTS': 'pts',
        'REB': 'reb', 'REBOUNDS': 'reb',
        'AST': 'ast', 'ASSISTS': 'ast',
        '3PM': '3pm', 'THREEPM': '3pm', 'FG3M': '3pm',
        'STL': 'stl', 'STEALS': 'stl',
        'BLK': 'blk', 'BLOCKS': 'blk',
        'TO': 'to', 'TOV': 'to', 'TURNOVERS': 'to',
        'MIN': 'min', 'MINUTES': 'min',
    },
    'mlb': {
        'H': 'h', 'HITS': 'h',
        'HR': 'hr', 'HOMERUNS': 'hr',
        'RBI': 'rbi',
        'R': 'r', 'RUNS': 'r',
        'SB': 'sb', 'STOLENBASES': 'sb',
        'TB': 'tb', 'TOTALBASES': 'tb',
        'K': 'k', 'SO': 'k', 'STRIKEOUTS': 'k',
        'BB': 'bb', 'BASEONBALLS': 'bb',
        '2B': '2b', 'DOUBLES': '2b',
        '3B': '3b', 'TRIPLES': '3b',
    },
    'nfl': {
        'PASSYD': 'passYd', 'PASSING_YARDS': 'passYd', 'PYDS': 'passYd',
        'PASSTD': 'passTd', 'PASSING_TDS': 'passTd', 'PTD': 'passTd',
        'RUSHYD': 'rushYd', 'RUSHING_YARDS': 'rushYd', 'RYDS': 'rushYd',
        'RUSHTD': 'rushTd', 'RUSHING_TDS': 'rushTd',
        'RECYD': 'recYd', 'RECEIVING_YARDS': 'recYd',
        'REC': 'rec', 'RECEPTIONS': 'rec',
        'RECTD': 'recTd', 'RECEIVING_TDS': 'recTd',
    },
}

_CANONICAL_KEYS = {key for aliases in STAT_ALIASES.values() for key in aliases.values()}

# "made-attempted" columns and the keys they split into
SHOOTING_SPLITS: Dict[str, Tuple[str, str]] = {
    'FG': ('fgm', 'fga'),
    '3PT': ('3pm', '3pa'),
    'FT': ('ftm', 'fta'),
}


def to_float(value: Any, default: float = 0.0) -> float:
    """Coerce a provider value to float; unparseable values become `default`."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value).strip().replace(',', ''))
    except ValueError:
        return default


def split_made_attempted(value: Any) -> Optional[Tuple[float, float]]:
    """Parse '8-15' into (8.0, 15.0); None when the value is not a split."""
    text = str(value).strip()
    if '-' not in text or text.startswith('-'):
        return None
    made, _, attempted = text.partition('-')
    return to_float(made), to_float(attempted)


def canonical_stat_key(label: str, sport: str) -> str:
    """Canonical key for a provider stat label ('PTS' -> 'pts')."""
    upper = str(label).upper().replace(' ', '')
    alias = STAT_ALIASES.get(sport, {}).get(upper)
    if alias is not None:
        return alias
    if str(label) in _CANONICAL_KEYS:
        return str(label)
    return str(label).lower()


def normalize_stats(raw_stats: Mapping[str, Any], sport: str) -> Dict[str, float]:
    """
    Map provider stat labels onto canonical keys.

    Unknown labels are kept (lower-cased) so sport-specific extras survive.
    Unparseable values are stored as 0.0.
    """
    stats: Dict[str, float] = {}

    for label, value in raw_stats.items():
        upper = str(label).upper()

        split = split_made_attempted(value) if upper in SHOOTING_SPLITS else None
        if split is not None:
            made_key, att_key = SHOOTING_SPLITS[upper]
            stats[made_key], stats[att_key] = split
            continue

        stats[canonical_stat_key(label, sport)] = to_float(value)

    return stats


def parse_date(value: Any) -> Optional[str]:
    """Normalize a provider date/timestamp to YYYY-MM-DD."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        return pd.Timestamp(str(value)).date().isoformat()
    except (ValueError, TypeError):
        return None


def _opponent(raw: Mapping[str, Any]) -> str:
    opp = raw.get('opponent', '')
    if isinstance(opp, Mapping):
        return str(opp.get('abbreviation', '') or '')
    return str(opp or '')


def _is_home(raw: Mapping[str, Any]) -> bool:
    if 'isHome' in raw:
        return bool(raw['isHome'])
    return str(raw.get('homeAway', '')).lower() == 'home'


def ingest_game_log(raw: Mapping[str, Any], sport: str) -> GameLogEntry:
    """
    Convert one raw provider record into a GameLogEntry.

    Raises:
        IngestError: when the record has no usable date
    """
    game_date = parse_date(raw.get('date') or raw.get('gameDate'))
    if game_date is None:
        raise IngestError(f"game log has no usable date: {raw.get('date')!r}")

    stats = normalize_stats(raw.get('stats') or {}, sport)
    minutes = raw.get('minutes', stats.get('min'))

    return GameLogEntry(
        date=game_date,
        opponent=_opponent(raw),
        stats=stats,
        is_home=_is_home(raw),
        is_back_to_back=bool(raw.get('isBackToBack', False)),
        rest_days=int(to_float(raw.get('restDays'), 1)),
        opponent_def_rank=int(to_float(raw.get('opponentDefRank'), 15)) or 15,
        minutes_played=to_float(minutes) if minutes is not None else None,
        result=raw.get('result'),
        game_id=str(raw['gameId']) if raw.get('gameId') is not None else None,
    )


def enrich_rest_days(entries: List[GameLogEntry]) -> List[GameLogEntry]:
    """
    Fill rest_days / is_back_to_back from consecutive game dates.

    Args:
        entries: One player's games, newest first

    Returns:
        New list (entries are immutable); the oldest game keeps its values
    """
    enriched = list(entries)
    for i in range(len(enriched) - 1):
        current = date.fromisoformat(enriched[i].date)
        previous = date.fromisoformat(enriched[i + 1].date)
        diff_days = (current - previous).days
        enriched[i] = replace(
            enriched[i],
            rest_days=max(0, diff_days - 1),
            is_back_to_back=diff_days <= 1,
        )
    return enriched


def ingest_game_logs(raws: Iterable[Mapping[str, Any]], sport: str) -> List[GameLogEntry]:
    """
    Ingest one player's raw game log, newest first, with rest enrichment.

    Records without a date are skipped and logged; All-Star exhibitions
    are dropped.
    """
    entries = []
    for raw in raws:
        if 'All-Star' in str(raw.get('eventNote', '')):
            continue
        try:
            entries.append(ingest_game_log(raw, sport))
        except IngestError as e:
            logger.warning("Skipping %s game log: %s", sport, e)

    entries.sort(key=lambda g: g.date, reverse=True)
    return enrich_rest_days(entries)


def ingest_weather(raw: Optional[Mapping[str, Any]]) -> Optional[WeatherConditions]:
    if not raw:
        return None
    return WeatherConditions(
        wind_speed_mph=to_float(raw.get('windSpeed', raw.get('windSpeedMph'))),
        wind_direction=str(raw.get('windDirection', '') or ''),
        temp_f=to_float(raw.get('temp', raw.get('tempF')), 70.0),
        humidity=to_float(raw.get('humidity')),
        condition=str(raw.get('condition', '') or ''),
        is_indoor=bool(raw.get('isIndoor', False)),
    )


def _optional(raw: Mapping[str, Any], key: str, cast):
    value = raw.get(key)
    if value is None:
        return None
    return cast(value)


def ingest_enriched_log(raw: Mapping[str, Any], sport: str) -> EnrichedGameLog:
    """
    Convert a raw backtest corpus row into an EnrichedGameLog.

    Accepts the same base keys as ingest_game_log plus player/prop context
    (playerId, playerName, team, primaryStatKey, propLines, gameTotal, ...).
    """
    base = ingest_game_log(raw, sport)
    prop_lines = {
        canonical_stat_key(k, sport): to_float(v)
        for k, v in (raw.get('propLines') or {}).items()
        if v is not None
    }
    primary = canonical_stat_key(raw.get('primaryStatKey', 'pts'), sport)

    return EnrichedGameLog(
        date=base.date,
        opponent=base.opponent,
        stats=base.stats,
        is_home=base.is_home,
        is_back_to_back=base.is_back_to_back,
        rest_days=base.rest_days,
        opponent_def_rank=base.opponent_def_rank,
        minutes_played=base.minutes_played,
        result=base.result,
        game_id=base.game_id,
        player_id=str(raw.get('playerId', '') or ''),
        player_name=str(raw.get('playerName', '') or ''),
        team=str(raw.get('team', raw.get('teamAbbrev', '')) or ''),
        primary_stat_key=primary,
        prop_lines=prop_lines,
        stat_avg_l5=_optional(raw, 'statAvgL5', to_float),
        stat_avg_l10=_optional(raw, 'statAvgL10', to_float),
        hit_rate_l10=_optional(raw, 'hitRateL10', to_float),
        season_game_number=_optional(raw, 'seasonGameNumber', lambda v: int(to_float(v))),
        game_total=_optional(raw, 'gameTotal', to_float),
        team_spread=_optional(raw, 'teamSpread', to_float),
        team_implied_total=_optional(raw, 'teamImpliedTotal', to_float),
        opponent_pace_rank=_optional(raw, 'opponentPaceRank', lambda v: int(to_float(v))),
        key_teammate_out=_optional(raw, 'keyTeammateOut', bool),
        opposing_pitcher_hand=_optional(raw, 'opposingPitcherHand', str),
        opposing_pitcher_era=_optional(raw, 'opposingPitcherERA', to_float),
        is_day_game=_optional(raw, 'isDayGame', bool),
        ballpark_factor=_optional(raw, 'ballparkFactor', to_float),
        weather=ingest_weather(raw.get('weather')),
        is_indoor=_optional(raw, 'isIndoor', bool),
        is_primetime=_optional(raw, 'isPrimetime', bool),
        week_number=_optional(raw, 'weekNumber', lambda v: int(to_float(v))),
        is_divisional=_optional(raw, 'isDivisional', bool),
    )


def attach_rolling_context(logs: List[EnrichedGameLog]) -> List[EnrichedGameLog]:
    """
    Compute stat_avg_l5 / stat_avg_l10 / hit_rate_l10 per player and stat.

    Each (player, primary stat) pair is its own series. Only games on
    earlier dates feed a record's rolling values, so rows sharing a game
    date never see each other (no look-ahead). Records whose primary stat
    has no line do not count toward hit_rate_l10. Existing pre-computed
    values are overwritten. Output order matches input order.
    """
    if not logs:
        return []

    df = pd.DataFrame({
        'pos': range(len(logs)),
        'player_id': [g.player_id for g in logs],
        'stat_key': [g.primary_stat_key for g in logs],
        'date': [g.date for g in logs],
        'value': [g.stat(g.primary_stat_key) for g in logs],
        'hit': [
            (1.0 if g.stat(g.primary_stat_key) > g.prop_line else 0.0)
            if g.prop_line is not None else float('nan')
            for g in logs
        ],
    }).sort_values(['player_id', 'stat_key', 'date', 'pos'])

    series = ['player_id', 'stat_key']
    grouped = df.groupby(series, sort=False)
    df['avg_l5'] = grouped['value'].transform(lambda s: s.shift(1).rolling(5, min_periods=1).mean())
    df['avg_l10'] = grouped['value'].transform(lambda s: s.shift(1).rolling(10, min_periods=1).mean())
    df['hit_l10'] = grouped['hit'].transform(lambda s: s.shift(1).rolling(10, min_periods=1).mean())
    # same-date rows share the window of the first row on that date
    same_day = df.groupby(series + ['date'], sort=False)
    for col in ('avg_l5', 'avg_l10', 'hit_l10'):
        df[col] = same_day[col].transform(lambda s: s.iloc[0])
    df = df.sort_values('pos')

    def _clean(v):
        return None if pd.isna(v) else float(v)

    return [
        replace(
            g,
            stat_avg_l5=_clean(row.avg_l5),
            stat_avg_l10=_clean(row.avg_l10),
            hit_rate_l10=_clean(row.hit_l10),
        )
        for g, row in zip(logs, df.itertuples(index=False))
    ]
