"""
HeatCheck analytics engine.

Pure, in-process computation behind the prop research product: streak
tracking, convergence scoring, filter backtests, loss autopsies and the
community leaderboard. Raw provider payloads enter through
heatcheck.ingest; everything downstream works on the dataclasses in
heatcheck.models.
"""

import logging

from .autopsy import AutopsyInput, analyze_loss_patterns, generate_autopsy
from .backtest import (
    BacktestConfig,
    Backtester,
    compute_live_performance,
    print_backtest_summary,
    run_backtest,
    summarize_backtest,
)
from .community import (
    RankingConfig,
    build_leaderboard,
    compute_reputation,
    sort_strategies,
    validate_for_publishing,
)
from .convergence import (
    ConvergenceConfig,
    PropContext,
    check_prop,
    compute_lean,
    evaluate_convergence,
    synthesize_verdict,
)
from .filters import FIELD_REGISTRY, evaluate_filter, validate_filter
from .ingest import IngestError, ingest_enriched_log, ingest_game_logs
from .models import (
    BacktestResult,
    CustomFilter,
    EnrichedGameLog,
    FilterCondition,
    GameLogEntry,
    PublicStrategy,
)
from .spectrum import compute_spectrum
from .streaks import compute_player_row, detect_streaks, filter_and_sort

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = '0.1.0'
