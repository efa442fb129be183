"""
Backtest Engine for custom prop filters

Replays a filter over historical enriched game logs and simulates a flat
1-unit bet on every match:
1. Filter matching (AND-combined conditions, see heatcheck.filters)
2. Hit/miss resolution against the posted prop line
3. Equity curve, drawdown and streaks
4. Sharpe, Kelly and sample-size confidence
5. Monthly and season breakdowns
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy import stats

from .filters import evaluate_filter
from .models import (
    BacktestResult,
    CustomFilter,
    EnrichedGameLog,
    EquityCurvePoint,
    LivePerformance,
)
from .odds import (
    DEFAULT_ODDS,
    breakeven_probability,
    fair_odds,
    kelly_fraction,
    payout_multiplier,
)

logger = logging.getLogger(__name__)


@dataclass
class BacktestConfig:
    """Configuration for backtesting."""
    # Pricing: every bet is a flat 1-unit stake at this American price
    assumed_odds: float = DEFAULT_ODDS

    # Risk metrics
    annualize_sharpe: bool = False  # per-bet scale unless set
    periods_per_year: int = 250  # betting days per year
    kelly_cap: Optional[float] = None

    # Sample-size classification (games)
    low_sample_min: int = 20
    moderate_sample_min: int = 50
    high_sample_min: int = 200


COLUMNS = ['date', 'player_name', 'stat', 'line', 'actual_value', 'result', 'profit']


class Backtester:
    """
    Runs a custom filter over historical game logs.
    """

    def __init__(self, config: Optional[BacktestConfig] = None):
        self.config = config or BacktestConfig()
        self.payout = payout_multiplier(self.config.assumed_odds)

    def resolve_bets(self,
                     custom_filter: CustomFilter,
                     logs: Sequence[EnrichedGameLog]) -> pd.DataFrame:
        """
        One row per matched log with a posted line, in chronological order.

        Records with no actual value for the primary stat are skipped.
        Over hits when actual > line, under hits when actual < line; a push
        is a miss.
        """
        direction = custom_filter.direction or 'over'
        rows = []

        for log in logs:
            if not evaluate_filter(custom_filter, log).matches:
                continue

            line = log.prop_line
            if line is None:
                continue

            actual = log.stats.get(log.primary_stat_key)
            if actual is None:
                logger.debug("Skipping %s %s on %s: no %s value",
                             custom_filter.id, log.player_name, log.date, log.primary_stat_key)
                continue

            is_hit = actual > line if direction == 'over' else actual < line

            rows.append({
                'date': log.date,
                'player_name': log.player_name,
                'stat': log.primary_stat_key,
                'line': line,
                'actual_value': actual,
                'result': 'hit' if is_hit else 'miss',
                'profit': self.payout if is_hit else -1.0,
            })

        bets = pd.DataFrame(rows, columns=COLUMNS)
        # stable so same-day bets keep input order
        return bets.sort_values('date', kind='mergesort').reset_index(drop=True)

    def run_backtest(self,
                     custom_filter: CustomFilter,
                     logs: Sequence[EnrichedGameLog],
                     seasons: Optional[List[str]] = None) -> BacktestResult:
        """
        Run backtest on historical data.

        Args:
            custom_filter: Filter to replay
            logs: Enriched game logs, any order
            seasons: Season labels covered by the logs ('2023-24', ...)

        Returns:
            BacktestResult with all metrics; all zeros when nothing matches
        """
        seasons = list(seasons or [])
        bets = self.resolve_bets(custom_filter, logs)
        result = self._compute_results(custom_filter, bets, seasons)

        logger.info(
            "Backtest %s: %d games, hit rate %.1f%%, ROI %+.1f%%, sample %s",
            custom_filter.id, result.total_games, result.hit_rate * 100,
            result.roi * 100, result.sample_size,
        )
        return result

    def _compute_results(self,
                         custom_filter: CustomFilter,
                         bets: pd.DataFrame,
                         seasons: List[str]) -> BacktestResult:
        """Compute backtest metrics from resolved bets."""
        total_games = len(bets)
        sample_size = self.classify_sample_size(total_games)
        breakeven = breakeven_probability(self.config.assumed_odds)

        if total_games == 0:
            return BacktestResult(
                filter_id=custom_filter.id,
                filter_name=custom_filter.name,
                seasons=seasons,
                sample_size=sample_size,
                confidence_warning=self.confidence_warning(0),
                breakeven_rate=breakeven,
            )

        hit_flags = bets['result'] == 'hit'
        hits = int(hit_flags.sum())
        hit_rate = hits / total_games

        cumulative_profit = bets['profit'].cumsum()
        cumulative_roi = cumulative_profit / np.arange(1, total_games + 1)
        total_profit = float(cumulative_profit.iloc[-1])

        equity_curve = [
            EquityCurvePoint(
                date=row.date,
                game_number=i + 1,
                cumulative_profit=float(cumulative_profit.iloc[i]),
                cumulative_roi=float(cumulative_roi.iloc[i]),
                result=row.result,
                player_name=row.player_name,
                stat=row.stat,
                line=float(row.line),
                actual_value=float(row.actual_value),
            )
            for i, row in enumerate(bets.itertuples(index=False))
        ]

        return BacktestResult(
            filter_id=custom_filter.id,
            filter_name=custom_filter.name,
            seasons=seasons,
            total_games=total_games,
            hits=hits,
            misses=total_games - hits,
            hit_rate=hit_rate,
            total_units_wagered=float(total_games),
            total_profit=total_profit,
            roi=total_profit / total_games,
            max_drawdown=self.calculate_max_drawdown(bets['profit']),
            longest_win_streak=longest_run(hit_flags.tolist(), True),
            longest_loss_streak=longest_run(hit_flags.tolist(), False),
            sharpe_ratio=self.calculate_sharpe(bets['profit']),
            kelly_fraction=kelly_fraction(hit_rate, self.payout, self.config.kelly_cap),
            sample_size=sample_size,
            confidence_warning=self.confidence_warning(total_games),
            breakeven_rate=breakeven,
            fair_odds=round(fair_odds(hit_rate), 1),
            edge_p_value=edge_p_value(hits, total_games, breakeven),
            equity_curve=equity_curve,
            monthly_breakdown=monthly_breakdown(bets),
            season_breakdown=season_breakdown(bets, seasons),
        )

    def calculate_sharpe(self, returns: pd.Series) -> float:
        """
        Mean over population std of per-bet returns.

        0 for fewer than 2 bets or zero variance.
        """
        if len(returns) < 2:
            return 0.0
        sd = float(returns.std(ddof=0))
        if sd < 1e-12:
            return 0.0
        sharpe = float(returns.mean()) / sd
        if self.config.annualize_sharpe:
            sharpe *= np.sqrt(self.config.periods_per_year)
        return float(sharpe)

    @staticmethod
    def calculate_max_drawdown(returns: pd.Series) -> float:
        """Largest peak-to-trough decline of cumulative profit (peak starts at 0)."""
        if len(returns) == 0:
            return 0.0
        cumulative = returns.cumsum()
        running_max = cumulative.cummax().clip(lower=0.0)
        drawdown = running_max - cumulative
        return float(drawdown.max())

    def classify_sample_size(self, games: int) -> str:
        if games < self.config.low_sample_min:
            return 'insufficient'
        if games < self.config.moderate_sample_min:
            return 'low'
        if games < self.config.high_sample_min:
            return 'moderate'
        return 'high'

    def confidence_warning(self, games: int) -> Optional[str]:
        if games < self.config.low_sample_min:
            return (f"Fewer than {self.config.low_sample_min} matches: "
                    "results are not statistically reliable")
        if games < self.config.moderate_sample_min:
            return 'Sample size is limited. Results may not reflect true edge.'
        return None


def longest_run(flags: Sequence[bool], value: bool) -> int:
    best = run = 0
    for flag in flags:
        run = run + 1 if flag == value else 0
        best = max(best, run)
    return best


def edge_p_value(hits: int, games: int, breakeven: float) -> float:
    """
    One-sided binomial p-value of hitting at least `hits` times when the
    true hit rate is only break-even.
    """
    if games == 0:
        return 1.0
    return float(stats.binom.sf(hits - 1, games, breakeven))


def _grouped(bets: pd.DataFrame, key: pd.Series) -> pd.DataFrame:
    return bets.assign(
        period=key,
        hit=(bets['result'] == 'hit').astype(int),
    ).groupby('period', sort=True).agg(
        games=('hit', 'size'),
        hits=('hit', 'sum'),
        profit=('profit', 'sum'),
    )


def monthly_breakdown(bets: pd.DataFrame) -> List[Dict]:
    """Games, hits, hit rate and profit per YYYY-MM."""
    if bets.empty:
        return []
    grouped = _grouped(bets, bets['date'].str[:7])
    return [
        {
            'month': month,
            'games': int(row.games),
            'hits': int(row.hits),
            'hit_rate': float(row.hits / row.games),
            'profit': round(float(row.profit), 2),
        }
        for month, row in grouped.iterrows()
    ]


def season_for_date(date: str, seasons: Sequence[str]) -> str:
    """
    Season label a game date belongs to.

    Split-year labels ('2023-24') run July through June; single-year
    labels ('2024') match the calendar year. Otherwise the first label
    containing the year wins, else the year itself.
    """
    year = date[:4]
    month = int(date[5:7]) if len(date) >= 7 else 1

    for season in seasons:
        start, _, end = season.partition('-')
        if end and start.isdigit():
            start_year = int(start)
            if (int(year) == start_year and month >= 7) or (int(year) == start_year + 1 and month < 7):
                return season
        elif season == year:
            return season

    for season in seasons:
        if year in season:
            return season
    return year


def season_breakdown(bets: pd.DataFrame, seasons: Sequence[str]) -> List[Dict]:
    """Games, hits, hit rate, profit and ROI per season label."""
    if bets.empty:
        return []
    labels = bets['date'].map(lambda d: season_for_date(d, seasons))
    grouped = _grouped(bets, labels)
    return [
        {
            'season': season,
            'games': int(row.games),
            'hits': int(row.hits),
            'hit_rate': float(row.hits / row.games),
            'profit': round(float(row.profit), 2),
            'roi': float(row.profit / row.games),
        }
        for season, row in grouped.iterrows()
    ]


def run_backtest(custom_filter: CustomFilter,
                 logs: Sequence[EnrichedGameLog],
                 seasons: Optional[List[str]] = None,
                 config: Optional[BacktestConfig] = None) -> BacktestResult:
    """Convenience wrapper around Backtester.run_backtest."""
    return Backtester(config).run_backtest(custom_filter, logs, seasons)


def compute_live_performance(custom_filter: CustomFilter,
                             logs: Sequence[EnrichedGameLog],
                             season: str,
                             config: Optional[BacktestConfig] = None) -> LivePerformance:
    """
    Current-season record for a published strategy.

    `logs` should already be limited to games played since publishing.
    """
    bets = Backtester(config).resolve_bets(custom_filter, logs)
    if bets.empty:
        return LivePerformance(season=season)

    hits = int((bets['result'] == 'hit').sum())
    games = len(bets)
    return LivePerformance(
        season=season,
        games=games,
        hits=hits,
        hit_rate=hits / games,
        roi=float(bets['profit'].sum()) / games,
        last_match_date=str(bets['date'].iloc[-1]),
    )


def summarize_backtest(result: BacktestResult, title: str = "Backtest Results") -> str:
    """Formatted multi-line report."""
    lines = [
        '=' * 60,
        f"{title}: {result.filter_name}",
        '=' * 60,
        '',
        'Overall Performance:',
        f"  Total Games:         {result.total_games}",
        f"  Record:              {result.hits}-{result.misses}",
        f"  Hit Rate:            {result.hit_rate:.1%} (break-even {result.breakeven_rate:.1%})",
    ]
    if result.fair_odds is not None:
        lines.append(f"  Fair Price:          {result.fair_odds:+.0f}")
    lines += [
        f"  Total Profit:        {result.total_profit:+.2f} units",
        f"  ROI:                 {result.roi:+.1%}",
        f"  Max Drawdown:        {result.max_drawdown:.2f} units",
        f"  Sharpe Ratio:        {result.sharpe_ratio:.2f}",
        f"  Kelly Fraction:      {result.kelly_fraction:.3f}",
        f"  Edge p-value:        {result.edge_p_value:.3f}",
        f"  Streaks (W/L):       {result.longest_win_streak}/{result.longest_loss_streak}",
        f"  Sample Size:         {result.sample_size}",
    ]
    if result.confidence_warning:
        lines.append(f"  Warning:             {result.confidence_warning}")

    if result.season_breakdown:
        lines.extend(['', 'Performance by Season:'])
        for row in result.season_breakdown:
            lines.append(f"  {row['season']}: {row['hits']}/{row['games']} "
                         f"({row['hit_rate']:.1%}), P&L={row['profit']:+.2f}")

    return '\n'.join(lines)


def print_backtest_summary(result: BacktestResult, title: str = "Backtest Results"):
    """Print formatted backtest summary."""
    print()
    print(summarize_backtest(result, title))
