"""
Community Strategy Library

Leaderboard ranking, publish validation, author reputation and the
mappers that turn database rows into PublicStrategy objects.

All time-dependent scoring takes an explicit `now` so rankings can be
reproduced.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import pandas as pd

from .filters import condition_from_dict
from .models import (
    BacktestSummary,
    LivePerformance,
    PublicStrategy,
    Serializable,
    StrategyAuthor,
)

logger = logging.getLogger(__name__)

SORT_OPTIONS = ('hot', 'rising', 'top_roi', 'most_followed', 'newest')

SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400


@dataclass
class RankingConfig:
    """Hot / rising tuning. Empirical weights, not derived."""
    vote_weight: float = 2.0
    follower_weight: float = 1.0
    comment_weight: float = 0.5
    decay_exponent: float = 1.5
    age_offset_hours: float = 2.0
    roi_min_games: int = 10  # live games before ROI counts
    rising_window_days: float = 30.0


@dataclass
class LeaderboardEntry(Serializable):
    rank: int
    strategy: PublicStrategy
    metric: float


@dataclass
class CommunityLeaderboard(Serializable):
    period: str = 'all_time'
    entries: List[LeaderboardEntry] = field(default_factory=list)


@dataclass
class PublishValidation(Serializable):
    valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


@dataclass
class AuthorProfile(Serializable):
    id: str
    display_name: str
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    reputation: int = 0
    joined_at: str = ''
    total_strategies_published: int = 0
    total_followers: int = 0
    total_following: int = 0  # populated from the follows table
    avg_strategy_roi: float = 0.0
    best_strategy_roi: float = 0.0
    strategies: List[PublicStrategy] = field(default_factory=list)


@dataclass
class StrategyBadge(Serializable):
    type: str
    label: str
    description: str
    earned: bool


@dataclass
class StrategyComment(Serializable):
    id: str
    author_id: str = ''
    author_display_name: str = 'Unknown'
    author_avatar_url: Optional[str] = None
    body: str = ''
    parent_id: Optional[str] = None
    upvotes: int = 0
    created_at: str = ''
    replies: List['StrategyComment'] = field(default_factory=list)


# ---- Time helpers ----

def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """ISO timestamp (trailing 'Z' allowed) as an aware UTC datetime; None if unusable."""
    if not value:
        return None
    try:
        ts = pd.Timestamp(value)
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None
    if ts is pd.NaT:
        return None
    if ts.tzinfo is None:
        ts = ts.tz_localize('UTC')
    return ts.tz_convert('UTC').to_pydatetime()


def _aware(now: Optional[datetime]) -> datetime:
    if now is None:
        return utc_now()
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def age_seconds(strategy: PublicStrategy, now: datetime) -> Optional[float]:
    published = parse_timestamp(strategy.published_at)
    if published is None:
        return None
    return (now - published).total_seconds()


# ---- Leaderboard algorithms ----

def hot_score(strategy: PublicStrategy,
              now: Optional[datetime] = None,
              config: Optional[RankingConfig] = None) -> float:
    """
    Engagement plus live performance, decayed by age.

    (votes*2 + followers + comments*0.5 + max(0, roi*100)) / (age_h + 2)^1.5
    The ROI bonus only applies with at least 10 live games.
    """
    cfg = config or RankingConfig()
    age = age_seconds(strategy, _aware(now))
    if age is None:
        return 0.0

    age_hours = max(0.0, age / SECONDS_PER_HOUR)
    signal = (strategy.vote_score * cfg.vote_weight
              + strategy.follower_count * cfg.follower_weight
              + strategy.comment_count * cfg.comment_weight)
    live = strategy.live_performance
    performance = max(0.0, live.roi * 100) if live.games >= cfg.roi_min_games else 0.0
    return (signal + performance) / (age_hours + cfg.age_offset_hours) ** cfg.decay_exponent


def rising_score(strategy: PublicStrategy,
                 now: Optional[datetime] = None,
                 config: Optional[RankingConfig] = None) -> float:
    """Votes plus followers per day of age; 0 past the rising window."""
    cfg = config or RankingConfig()
    age = age_seconds(strategy, _aware(now))
    if age is None:
        return 0.0

    age_days = age / SECONDS_PER_DAY
    if age_days > cfg.rising_window_days:
        return 0.0
    return (strategy.vote_score + strategy.follower_count) / max(age_days, 1.0)


def published_epoch(strategy: PublicStrategy) -> float:
    published = parse_timestamp(strategy.published_at)
    return published.timestamp() if published else float('-inf')


def sort_strategies(strategies: Sequence[PublicStrategy],
                    sort: str,
                    now: Optional[datetime] = None,
                    config: Optional[RankingConfig] = None) -> List[PublicStrategy]:
    """
    Return a new list ordered by the leaderboard algorithm.

    top_roi drops strategies with fewer than 10 live games before
    sorting. Ties keep input order.
    """
    cfg = config or RankingConfig()
    now = _aware(now)

    if sort == 'hot':
        return sorted(strategies, key=lambda s: hot_score(s, now, cfg), reverse=True)
    if sort == 'rising':
        return sorted(strategies, key=lambda s: rising_score(s, now, cfg), reverse=True)
    if sort == 'top_roi':
        eligible = [s for s in strategies if s.live_performance.games >= cfg.roi_min_games]
        return sorted(eligible, key=lambda s: s.live_performance.roi, reverse=True)
    if sort == 'most_followed':
        return sorted(strategies, key=lambda s: s.follower_count, reverse=True)
    if sort == 'newest':
        return sorted(strategies, key=published_epoch, reverse=True)
    raise ValueError(f"Unknown sort option: {sort!r}")


def leaderboard_metric(strategy: PublicStrategy, sort: str,
                       now: datetime, config: RankingConfig) -> float:
    if sort == 'top_roi':
        return strategy.live_performance.roi
    if sort == 'most_followed':
        return float(strategy.follower_count)
    if sort == 'hot':
        return hot_score(strategy, now, config)
    if sort == 'rising':
        return rising_score(strategy, now, config)
    return published_epoch(strategy)


def build_leaderboard(strategies: Sequence[PublicStrategy],
                      sort: str,
                      limit: int = 25,
                      now: Optional[datetime] = None,
                      config: Optional[RankingConfig] = None) -> CommunityLeaderboard:
    """Top `limit` strategies with 1-based consecutive ranks."""
    cfg = config or RankingConfig()
    now = _aware(now)
    ranked = sort_strategies(strategies, sort, now, cfg)[:max(0, limit)]

    return CommunityLeaderboard(
        period='all_time',
        entries=[
            LeaderboardEntry(rank=i + 1, strategy=s,
                             metric=leaderboard_metric(s, sort, now, cfg))
            for i, s in enumerate(ranked)
        ],
    )


# ---- Publishing ----

def _field(strategy: Union[PublicStrategy, Mapping[str, Any]], key: str) -> Any:
    if isinstance(strategy, Mapping):
        return strategy.get(key)
    return getattr(strategy, key, None)


def _backtest_value(backtest: Any, key: str, camel: str, default: Any) -> Any:
    if isinstance(backtest, Mapping):
        return backtest.get(key, backtest.get(camel, default))
    return getattr(backtest, key, default)


def validate_for_publishing(strategy: Union[PublicStrategy, Mapping[str, Any]]) -> PublishValidation:
    """
    Hard requirements go to `errors` and block publishing; soft issues go
    to `warnings` only. Accepts a PublicStrategy or a partial dict.
    """
    errors = []
    warnings = []

    name = _field(strategy, 'name') or ''
    description = _field(strategy, 'description') or ''
    conditions = _field(strategy, 'conditions') or []
    tags = _field(strategy, 'tags') or []
    backtest = _field(strategy, 'backtest')

    if not name.strip():
        errors.append('Strategy name is required')
    if len(name) > 60:
        errors.append('Name must be 60 characters or less')
    if not description.strip():
        errors.append('Description is required')
    if len(description) < 20:
        errors.append('Description must be at least 20 characters')
    if not conditions:
        errors.append('At least one filter condition is required')
    if not tags:
        errors.append('At least one tag is required')
    if len(tags) > 5:
        errors.append('Maximum 5 tags allowed')

    total_games = _backtest_value(backtest, 'total_games', 'totalGames', 0) if backtest else 0
    if not backtest or total_games < 20:
        errors.append('A backtest with at least 20 games is required before publishing')

    if backtest:
        if _backtest_value(backtest, 'sample_size', 'sampleSize', '') == 'low':
            warnings.append('Low sample size: results may not be reliable')
        if _backtest_value(backtest, 'hit_rate', 'hitRate', 0.0) < 0.48:
            warnings.append('Hit rate is below 48%. Consider refining your strategy')

    return PublishValidation(valid=not errors, errors=errors, warnings=warnings)


# ---- Reputation & profiles ----

def compute_reputation(strategies: Sequence[PublicStrategy]) -> int:
    """
    votes*2 + followers*3, +50 per strategy profitable over 20+ live
    games, +20 per strategy backtested on 200+ games.
    """
    rep = 0
    for s in strategies:
        rep += s.vote_score * 2
        rep += s.follower_count * 3
        if s.live_performance.games >= 20 and s.live_performance.roi > 0:
            rep += 50
        if s.backtest is not None and s.backtest.total_games >= 200:
            rep += 20
    return int(round(rep))


def build_author_profile(author: Mapping[str, Any],
                         strategies: Sequence[PublicStrategy],
                         config: Optional[RankingConfig] = None) -> AuthorProfile:
    cfg = config or RankingConfig()
    roi_values = [s.live_performance.roi for s in strategies
                  if s.live_performance.games >= cfg.roi_min_games]

    return AuthorProfile(
        id=author.get('id', ''),
        display_name=author.get('display_name', 'Unknown'),
        avatar_url=author.get('avatar_url'),
        bio=author.get('bio'),
        reputation=compute_reputation(strategies),
        joined_at=author.get('joined_at', ''),
        total_strategies_published=len(strategies),
        total_followers=sum(s.follower_count for s in strategies),
        avg_strategy_roi=sum(roi_values) / len(roi_values) if roi_values else 0.0,
        best_strategy_roi=max(roi_values) if roi_values else 0.0,
        strategies=list(strategies),
    )


def get_strategy_badges(strategy: PublicStrategy) -> List[StrategyBadge]:
    backtest_games = strategy.backtest.total_games if strategy.backtest else 0
    live = strategy.live_performance
    return [
        StrategyBadge('backtested', 'Backtested', 'Backtest with 50+ games',
                      backtest_games >= 50),
        StrategyBadge('high_sample', 'High Sample', 'Backtest with 200+ games',
                      backtest_games >= 200),
        StrategyBadge('live_verified', 'Live Verified', '20+ live season matches tracked',
                      live.games >= 20),
        StrategyBadge('profitable', 'Profitable', 'Live season ROI > 0% with 20+ games',
                      live.games >= 20 and live.roi > 0),
        # needs per-season results, which the cached summary does not carry
        StrategyBadge('consistent', 'Consistent', 'Profitable in 2+ of last 3 seasons',
                      False),
    ]


# ---- DB row mappers ----

_CAMEL = re.compile(r'(?<!^)(?=[A-Z])')


def _snake_keys(raw: Mapping[str, Any]) -> Dict[str, Any]:
    return {_CAMEL.sub('_', k).lower(): v for k, v in raw.items()}


def _json_column(value: Any, default: Any, column: str) -> Any:
    """JSON columns arrive as text or already decoded. Malformed text gives `default`."""
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Malformed JSON in column %s; using default", column)
            return default
    return default if value is None else value


def _build(cls, raw: Mapping[str, Any]):
    known = cls.__dataclass_fields__
    return cls(**{k: v for k, v in _snake_keys(raw).items() if k in known})


def map_row_to_strategy(row: Mapping[str, Any]) -> PublicStrategy:
    """Database row (snake_case columns, JSON blobs) to PublicStrategy."""
    backtest = _json_column(row.get('backtest_json'), None, 'backtest_json')
    live = _json_column(row.get('live_performance_json'), {}, 'live_performance_json')
    conditions = _json_column(row.get('conditions_json'), [], 'conditions_json')
    sparkline = _json_column(row.get('equity_sparkline_json'), [], 'equity_sparkline_json')
    tags = _json_column(row.get('tags'), [], 'tags')

    forked_from = None
    if row.get('forked_from_id'):
        forked_from = {
            'id': row['forked_from_id'],
            'name': row.get('forked_from_name') or '',
            'author_name': row.get('forked_from_author') or '',
        }

    return PublicStrategy(
        id=row['id'],
        name=row['name'],
        description=row.get('description') or '',
        sport=row.get('sport') or 'nba',
        prop_type=row.get('prop_type') or '',
        direction=row.get('direction') or 'both',
        conditions=[condition_from_dict(c) for c in conditions],
        author=StrategyAuthor(
            id=row.get('author_id') or '',
            display_name=row.get('author_display_name') or 'Unknown',
            avatar_url=row.get('author_avatar_url'),
            reputation=row.get('author_reputation') or 0,
            total_published=row.get('author_total_published') or 0,
        ),
        backtest=_build(BacktestSummary, backtest) if backtest else BacktestSummary(),
        live_performance=_build(LivePerformance, live),
        equity_sparkline=list(sparkline),
        follower_count=row.get('follower_count') or 0,
        fork_count=row.get('fork_count') or 0,
        comment_count=row.get('comment_count') or 0,
        vote_score=row.get('vote_score') or 0,
        forked_from=forked_from,
        published_at=row.get('published_at') or '',
        updated_at=row.get('updated_at') or '',
        tags=list(tags),
    )


def map_row_to_comment(row: Mapping[str, Any]) -> StrategyComment:
    return StrategyComment(
        id=row['id'],
        author_id=row.get('author_id') or '',
        author_display_name=row.get('author_display_name') or 'Unknown',
        author_avatar_url=row.get('author_avatar_url'),
        body=row.get('body') or '',
        parent_id=row.get('parent_id'),
        upvotes=row.get('upvotes') or 0,
        created_at=row.get('created_at') or '',
    )
