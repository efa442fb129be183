import unittest

import pandas as pd

from heatcheck.backtest import (
    BacktestConfig,
    Backtester,
    compute_live_performance,
    edge_p_value,
    run_backtest,
    season_for_date,
    summarize_backtest,
)
from heatcheck.models import CustomFilter, EnrichedGameLog, FilterCondition
from heatcheck.odds import payout_multiplier

PAYOUT = payout_multiplier(-110)


def make_log(date, actual, line=20.5, is_home=True, player="Player One", stat="pts"):
    lines = {stat: line} if line is not None else {}
    return EnrichedGameLog(date=date, opponent="BOS", stats={stat: actual}, is_home=is_home,
                           player_name=player, primary_stat_key=stat, prop_lines=lines)


def home_filter(direction="over"):
    return CustomFilter(id="home-overs", name="Home overs", direction=direction,
                        conditions=[FilterCondition("home_away", "eq", "home")])


class TestZeroMatches(unittest.TestCase):
    def test_no_matching_games(self):
        logs = [make_log("2024-01-01", 25, is_home=False)]
        result = run_backtest(home_filter(), logs, ["2023-24"])

        self.assertEqual(result.total_games, 0)
        self.assertEqual(result.sample_size, "insufficient")
        self.assertEqual(result.hit_rate, 0)
        self.assertEqual(result.roi, 0)
        self.assertEqual(result.equity_curve, [])
        self.assertEqual(result.edge_p_value, 1.0)
        self.assertIsNone(result.fair_odds)
        self.assertIsNotNone(result.confidence_warning)

    def test_empty_corpus(self):
        self.assertEqual(run_backtest(home_filter(), []).total_games, 0)

    def test_unknown_actual_value_is_skipped(self):
        unplayed = EnrichedGameLog(date="2024-01-02", opponent="BOS", stats={}, is_home=True,
                                   player_name="Player One", primary_stat_key="pts",
                                   prop_lines={"pts": 20.5})
        result = run_backtest(home_filter(), [make_log("2024-01-01", 25), unplayed])

        self.assertEqual(result.total_games, 1)
        self.assertEqual(result.misses, 0)
        self.assertAlmostEqual(result.total_profit, PAYOUT)


class TestSimulation(unittest.TestCase):
    def setUp(self):
        # deliberately out of order
        self.logs = [
            make_log("2024-01-03", 18),  # miss
            make_log("2024-01-01", 25),  # hit
            make_log("2024-01-02", 30),  # hit
            make_log("2024-01-04", 20.5),  # push counts as a miss
            make_log("2024-01-05", 28, is_home=False),  # filtered out
            make_log("2024-01-06", 40, line=None),  # no line posted
            make_log("2024-02-01", 22),  # hit
        ]

    def test_conservation(self):
        result = run_backtest(home_filter(), self.logs, ["2023-24"])

        self.assertEqual(result.total_games, 5)
        self.assertEqual(result.hits + result.misses, result.total_games)
        self.assertEqual(len(result.equity_curve), result.total_games)
        self.assertEqual(result.hits, 3)
        self.assertAlmostEqual(result.total_profit, 3 * PAYOUT - 2)
        self.assertAlmostEqual(result.equity_curve[-1].cumulative_profit, result.total_profit)
        self.assertAlmostEqual(result.roi, result.total_profit / 5)
        self.assertEqual(result.total_units_wagered, 5.0)

    def test_chronological_equity_curve(self):
        result = run_backtest(home_filter(), self.logs)
        dates = [p.date for p in result.equity_curve]
        self.assertEqual(dates, sorted(dates))
        self.assertEqual([p.game_number for p in result.equity_curve], [1, 2, 3, 4, 5])
        self.assertAlmostEqual(result.equity_curve[1].cumulative_roi, PAYOUT)

    def test_risk_metrics(self):
        result = run_backtest(home_filter(), self.logs)
        # +P, +P, -1, -1: peak 2P, trough 2P - 2
        self.assertAlmostEqual(result.max_drawdown, 2.0)
        self.assertEqual(result.longest_win_streak, 2)
        self.assertEqual(result.longest_loss_streak, 2)
        self.assertGreater(result.kelly_fraction, 0)
        self.assertAlmostEqual(result.breakeven_rate, 110 / 210)
        # 3 of 5 hit, 60% is worth -150
        self.assertAlmostEqual(result.fair_odds, -150.0)

    def test_under_direction(self):
        result = run_backtest(home_filter("under"), self.logs)
        self.assertEqual(result.hits, 1)

    def test_breakdowns(self):
        result = run_backtest(home_filter(), self.logs, ["2023-24"])
        self.assertEqual([m["month"] for m in result.monthly_breakdown], ["2024-01", "2024-02"])
        self.assertEqual(result.monthly_breakdown[0]["games"], 4)
        self.assertEqual(result.monthly_breakdown[1]["profit"], round(PAYOUT, 2))
        self.assertEqual(len(result.season_breakdown), 1)
        self.assertEqual(result.season_breakdown[0]["season"], "2023-24")
        self.assertEqual(result.season_breakdown[0]["games"], 5)

    def test_to_dict(self):
        payload = run_backtest(home_filter(), self.logs).to_dict()
        self.assertEqual(payload["filter_id"], "home-overs")
        self.assertEqual(len(payload["equity_curve"]), 5)

    def test_idempotent(self):
        self.assertEqual(run_backtest(home_filter(), self.logs), run_backtest(home_filter(), self.logs))


class TestBacktesterHelpers(unittest.TestCase):
    def test_sample_size_thresholds(self):
        bt = Backtester()
        self.assertEqual(bt.classify_sample_size(19), "insufficient")
        self.assertEqual(bt.classify_sample_size(20), "low")
        self.assertEqual(bt.classify_sample_size(50), "moderate")
        self.assertEqual(bt.classify_sample_size(200), "high")
        self.assertIsNone(bt.confidence_warning(50))

    def test_sharpe(self):
        returns = pd.Series([PAYOUT, -1.0, PAYOUT, PAYOUT])
        per_bet = Backtester().calculate_sharpe(returns)
        annual = Backtester(BacktestConfig(annualize_sharpe=True)).calculate_sharpe(returns)
        self.assertAlmostEqual(annual, per_bet * 250 ** 0.5)
        self.assertEqual(Backtester().calculate_sharpe(pd.Series([1.0])), 0.0)
        self.assertEqual(Backtester().calculate_sharpe(pd.Series([PAYOUT] * 5)), 0.0)

    def test_drawdown_from_zero_peak(self):
        self.assertAlmostEqual(Backtester.calculate_max_drawdown(pd.Series([-1.0, -1.0, 0.5])), 2.0)

    def test_kelly_cap(self):
        logs = [make_log(f"2024-01-{d:02d}", 30) for d in range(1, 11)]
        result = run_backtest(home_filter(), logs, config=BacktestConfig(kelly_cap=0.25))
        self.assertEqual(result.kelly_fraction, 0.25)

    def test_edge_p_value(self):
        self.assertLess(edge_p_value(70, 100, 0.5238), 0.01)
        self.assertGreater(edge_p_value(50, 100, 0.5238), 0.5)

    def test_season_label_lookup(self):
        self.assertEqual(season_for_date("2024-03-01", ["2022-23", "2023-24"]), "2023-24")
        self.assertEqual(season_for_date("2021-03-01", ["2023-24"]), "2021")


class TestLivePerformance(unittest.TestCase):
    def test_live_record(self):
        logs = [make_log("2024-11-02", 25), make_log("2024-11-01", 10)]
        live = compute_live_performance(home_filter(), logs, "2024-25")
        self.assertEqual(live.games, 2)
        self.assertEqual(live.hits, 1)
        self.assertEqual(live.last_match_date, "2024-11-02")
        self.assertAlmostEqual(live.roi, (PAYOUT - 1) / 2)

    def test_no_matches(self):
        live = compute_live_performance(home_filter(), [], "2024-25")
        self.assertEqual(live.games, 0)
        self.assertEqual(live.season, "2024-25")


class TestSummary(unittest.TestCase):
    def test_summary_text(self):
        result = run_backtest(home_filter(), [make_log("2024-01-01", 25)])
        text = summarize_backtest(result)
        self.assertIn("Home overs", text)
        self.assertIn("1-0", text)
        self.assertIn("Fair Price", text)
        self.assertIn("Warning:", text)


if __name__ == "__main__":
    unittest.main()
