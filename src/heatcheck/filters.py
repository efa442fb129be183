"""
Filter Registry & Evaluation

Every field a user can build a filter condition from is declared once
here as a FieldDef with a typed accessor. Conditions are evaluated
against EnrichedGameLog records and AND-combined.

Malformed conditions (unknown field, unknown operator, value of the
wrong shape, non-numeric comparison) fail closed: the condition is False
and the record is excluded. One bad clause never aborts a backtest.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .models import CustomFilter, EnrichedGameLog, FilterCondition


logger = logging.getLogger(__name__)


OPERATORS = ('eq', 'neq', 'gt', 'gte', 'lt', 'lte', 'between', 'in', 'not_in')


@dataclass(frozen=True)
class FieldDef:
    key: str
    label: str
    category: str
    description: str
    sport: str  # 'all' | 'nba' | 'mlb' | 'nfl'
    type: str  # select | number | range | boolean
    default_operator: str
    accessor: Callable[[EnrichedGameLog], Any]
    options: Tuple[Tuple[Any, str], ...] = ()
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None
    unit: Optional[str] = None

    def evaluate(self, log: EnrichedGameLog) -> Any:
        return self.accessor(log)


def _or(value: Any, default: Any) -> Any:
    return default if value is None else value


# ---- UNIVERSAL FIELDS (all sports) ----

UNIVERSAL_FIELDS: List[FieldDef] = [
    FieldDef('home_away', 'Home / Away', 'Venue',
             'Whether the player is at home or on the road',
             'all', 'select', 'eq',
             lambda g: 'home' if g.is_home else 'away',
             options=(('home', 'Home'), ('away', 'Away'))),
    FieldDef('is_back_to_back', 'Back-to-Back', 'Rest',
             'Whether the game is on a back-to-back',
             'all', 'boolean', 'eq',
             lambda g: g.is_back_to_back),
    FieldDef('rest_days', 'Days of Rest', 'Rest',
             'Number of days since last game',
             'all', 'number', 'gte',
             lambda g: g.rest_days,
             min=0, max=14, step=1, unit='days'),
    FieldDef('opponent_def_rank', 'Opponent Defense Rank', 'Matchup',
             'Opponent defense ranking for this stat/position (1=best, 30=worst)',
             'all', 'range', 'between',
             lambda g: g.opponent_def_rank,
             min=1, max=30, step=1),
    FieldDef('stat_avg_l5', 'Average (Last 5)', 'Performance',
             'Player average for this stat over the last 5 games',
             'all', 'number', 'gte',
             lambda g: _or(g.stat_avg_l5, 0.0),
             min=0, max=100, step=0.5),
    FieldDef('stat_avg_l10', 'Average (Last 10)', 'Performance',
             'Player average for this stat over the last 10 games',
             'all', 'number', 'gte',
             lambda g: _or(g.stat_avg_l10, 0.0),
             min=0, max=100, step=0.5),
    FieldDef('hit_rate_l10', 'Hit Rate (Last 10)', 'Performance',
             'Percentage of last 10 games where the line was hit',
             'all', 'number', 'gte',
             lambda g: _or(g.hit_rate_l10, 0.0) * 100,
             min=0, max=100, step=5, unit='%'),
    FieldDef('season_game_number', 'Season Game Number', 'Team Context',
             'How far into the season (e.g., game 40 of 82)',
             'all', 'range', 'between',
             lambda g: _or(g.season_game_number, 0),
             min=1, max=162, step=1),
    FieldDef('game_total', 'Vegas Game Total', 'Betting Lines',
             'The Vegas over/under total for the game',
             'all', 'number', 'gte',
             lambda g: _or(g.game_total, 0.0),
             min=0, max=300, step=0.5),
    FieldDef('team_implied_total', 'Team Implied Total', 'Betting Lines',
             'The implied team total derived from spread + game total',
             'all', 'number', 'gte',
             lambda g: _or(g.team_implied_total, 0.0),
             min=0, max=150, step=0.5),
    FieldDef('team_spread', 'Team Spread', 'Betting Lines',
             'Point spread for the team (negative = favored)',
             'all', 'number', 'between',
             lambda g: _or(g.team_spread, 0.0),
             min=-30, max=30, step=0.5),
]

# ---- NBA ----

NBA_FIELDS: List[FieldDef] = [
    FieldDef('opponent_pace_rank', 'Opponent Pace Rank', 'Matchup',
             'Opponent pace ranking (1=fastest, 30=slowest)',
             'nba', 'range', 'between',
             lambda g: _or(g.opponent_pace_rank, 15),
             min=1, max=30, step=1),
    FieldDef('key_teammate_out', 'Key Teammate Out', 'Team Context',
             'Whether a key teammate is missing from the lineup',
             'nba', 'boolean', 'eq',
             lambda g: _or(g.key_teammate_out, False)),
]

# ---- MLB ----

MLB_FIELDS: List[FieldDef] = [
    FieldDef('opposing_pitcher_hand', 'Opposing Pitcher Hand', 'Matchup',
             'Handedness of the opposing pitcher',
             'mlb', 'select', 'eq',
             lambda g: _or(g.opposing_pitcher_hand, 'R'),
             options=(('L', 'Left-handed'), ('R', 'Right-handed'))),
    FieldDef('opposing_pitcher_era', 'Opposing Pitcher ERA', 'Matchup',
             'ERA of the opposing starting pitcher',
             'mlb', 'number', 'gte',
             lambda g: _or(g.opposing_pitcher_era, 4.0),
             min=0, max=10, step=0.1),
    FieldDef('is_day_game', 'Day Game', 'Venue',
             'Whether it is a day game or night game',
             'mlb', 'boolean', 'eq',
             lambda g: _or(g.is_day_game, False)),
    FieldDef('ballpark_factor', 'Ballpark Factor', 'Venue',
             'Park factor for the stat (>100 = hitter-friendly)',
             'mlb', 'number', 'gte',
             lambda g: _or(g.ballpark_factor, 100.0),
             min=80, max=120, step=1),
    FieldDef('wind_speed', 'Wind Speed', 'Weather',
             'Wind speed at the ballpark (mph)',
             'mlb', 'number', 'gte',
             lambda g: g.weather.wind_speed_mph if g.weather else 0.0,
             min=0, max=40, step=1, unit='mph'),
]

# ---- NFL ----

NFL_FIELDS: List[FieldDef] = [
    FieldDef('is_indoor', 'Indoor Game', 'Venue',
             'Whether the game is played indoors (dome/retractable roof)',
             'nfl', 'boolean', 'eq',
             lambda g: _or(g.is_indoor, False)),
    FieldDef('is_primetime', 'Primetime Game', 'Team Context',
             'Sunday Night, Monday Night, or Thursday Night game',
             'nfl', 'boolean', 'eq',
             lambda g: _or(g.is_primetime, False)),
    FieldDef('week_number', 'Week Number', 'Team Context',
             'NFL week number (1-18 regular season)',
             'nfl', 'range', 'between',
             lambda g: _or(g.week_number, 0),
             min=1, max=22, step=1),
    FieldDef('is_divisional', 'Divisional Game', 'Matchup',
             'Whether the opponent is in the same division',
             'nfl', 'boolean', 'eq',
             lambda g: _or(g.is_divisional, False)),
]


def build_registry(*field_groups: Sequence[FieldDef]) -> Dict[str, FieldDef]:
    """Key -> FieldDef; a duplicate key is a programming error."""
    registry: Dict[str, FieldDef] = {}
    for group in field_groups:
        for fd in group:
            if fd.key in registry:
                raise ValueError(f"Duplicate filter field: {fd.key}")
            registry[fd.key] = fd
    return registry


FIELD_REGISTRY: Dict[str, FieldDef] = build_registry(
    UNIVERSAL_FIELDS, NBA_FIELDS, MLB_FIELDS, NFL_FIELDS
)


def get_field_def(key: str) -> Optional[FieldDef]:
    return FIELD_REGISTRY.get(key)


def get_fields_for_sport(sport: str) -> List[FieldDef]:
    return [fd for fd in FIELD_REGISTRY.values() if fd.sport in ('all', sport)]


def get_fields_by_category(sport: str) -> Dict[str, List[FieldDef]]:
    grouped: Dict[str, List[FieldDef]] = {}
    for fd in get_fields_for_sport(sport):
        grouped.setdefault(fd.category, []).append(fd)
    return grouped


def get_categories(sport: str) -> List[str]:
    return list(get_fields_by_category(sport).keys())


# ---- EVALUATION ----

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def evaluate_condition(operator: str, actual: Any, expected: Any) -> bool:
    """
    Evaluate a single operator against an accessor value.

    Never raises; anything it cannot compare is False. `not_in` with a
    non-sequence expected value is also False.
    """
    if operator == 'eq':
        return actual == expected
    if operator == 'neq':
        return actual != expected

    if operator in ('gt', 'gte', 'lt', 'lte'):
        if not (_is_number(actual) and _is_number(expected)):
            return False
        if operator == 'gt':
            return actual > expected
        if operator == 'gte':
            return actual >= expected
        if operator == 'lt':
            return actual < expected
        return actual <= expected

    if operator == 'between':
        if (not _is_number(actual)
                or not isinstance(expected, (list, tuple))
                or len(expected) != 2
                or not all(_is_number(v) for v in expected)):
            return False
        lo, hi = expected
        return lo <= actual <= hi

    if operator in ('in', 'not_in'):
        if not isinstance(expected, (list, tuple, set, frozenset)):
            return False
        contained = actual in expected
        return contained if operator == 'in' else not contained

    return False


def format_threshold(operator: str, value: Any) -> str:
    """Human-readable threshold ('>= 5', '20-30', 'not BOS, NYK')."""
    symbols = {'eq': '=', 'neq': '!=', 'gt': '>', 'gte': '>=', 'lt': '<', 'lte': '<='}
    if operator in symbols:
        return f"{symbols[operator]} {value}"
    if operator == 'between' and isinstance(value, (list, tuple)) and len(value) == 2:
        return f"{value[0]}-{value[1]}"
    if operator in ('in', 'not_in'):
        text = ', '.join(str(v) for v in value) if isinstance(value, (list, tuple)) else str(value)
        return text if operator == 'in' else f"not {text}"
    return str(value)


@dataclass
class FilterEvaluation:
    matches: bool
    matched_conditions: List[Dict[str, str]] = field(default_factory=list)


def evaluate_filter(custom_filter: CustomFilter, log: EnrichedGameLog) -> FilterEvaluation:
    """
    Check a log against every condition (AND).

    Returns the matched-condition breakdown on success, an empty one on
    the first failing or malformed condition. A filter with no conditions
    matches every log.
    """
    matched = []
    for condition in custom_filter.conditions:
        fd = get_field_def(condition.field)
        if fd is None:
            logger.debug("Filter %s: unknown field %r, condition fails closed",
                         custom_filter.id, condition.field)
            return FilterEvaluation(matches=False)
        if condition.operator not in OPERATORS:
            logger.debug("Filter %s: unknown operator %r on %s, condition fails closed",
                         custom_filter.id, condition.operator, condition.field)
            return FilterEvaluation(matches=False)

        actual = fd.evaluate(log)
        if not evaluate_condition(condition.operator, actual, condition.value):
            return FilterEvaluation(matches=False)

        matched.append({
            'field': condition.field,
            'label': condition.field_label or fd.label,
            'value': str(actual),
            'threshold': format_threshold(condition.operator, condition.value),
        })

    return FilterEvaluation(matches=True, matched_conditions=matched)


def evaluate_filter_batch(custom_filter: CustomFilter,
                          logs: Sequence[EnrichedGameLog]) -> Tuple[List[EnrichedGameLog], List[EnrichedGameLog]]:
    """Split logs into (matches, non_matches), preserving order."""
    matches, non_matches = [], []
    for log in logs:
        if evaluate_filter(custom_filter, log).matches:
            matches.append(log)
        else:
            non_matches.append(log)
    return matches, non_matches


def validate_filter(custom_filter: CustomFilter) -> List[str]:
    """Errors that should block saving a filter; empty list when valid."""
    errors = []

    if not (custom_filter.name or '').strip():
        errors.append('Filter name is required')

    if not custom_filter.conditions:
        errors.append('At least one condition is required')

    for condition in custom_filter.conditions:
        fd = get_field_def(condition.field)
        if fd is None:
            errors.append(f"Unknown field: {condition.field}")
            continue
        if fd.sport not in ('all', custom_filter.sport):
            errors.append(f'"{fd.label}" is not available for {custom_filter.sport.upper()}')
        if condition.operator not in OPERATORS:
            errors.append(f'Unknown operator "{condition.operator}" for "{fd.label}"')
        if condition.value is None:
            errors.append(f'Value is required for "{fd.label}"')
        elif condition.operator == 'between' and not (
                isinstance(condition.value, (list, tuple)) and len(condition.value) == 2):
            errors.append(f'"{fd.label}" with \'between\' operator requires [min, max] array')
        elif condition.operator in ('in', 'not_in') and not isinstance(condition.value, (list, tuple)):
            errors.append(f'"{fd.label}" with \'{condition.operator}\' operator requires a list')

    return errors


def summarize_filter(custom_filter: CustomFilter) -> str:
    if not custom_filter.conditions:
        return 'No conditions set'

    parts = []
    for c in custom_filter.conditions:
        fd = get_field_def(c.field)
        label = c.field_label or (fd.label if fd else c.field)
        parts.append(f"{label} {format_threshold(c.operator, c.value)}")

    direction = f" ({custom_filter.direction})" if custom_filter.direction else ''
    return ' AND '.join(parts) + direction


def condition_from_dict(raw: Dict[str, Any]) -> FilterCondition:
    """Deserialize a persisted condition row (camelCase or snake_case)."""
    value = raw.get('value')
    return FilterCondition(
        field=str(raw.get('field', '')),
        operator=str(raw.get('operator', '')),
        value=value,
        field_label=raw.get('fieldLabel', raw.get('field_label')),
    )
