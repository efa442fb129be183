import unittest

from heatcheck.convergence import (
    FACTOR_RULES,
    ConvergenceConfig,
    ConvergenceResult,
    PropContext,
    check_prop,
    compute_lean,
    evaluate_convergence,
    effective_wind,
    factor_weights,
    run_length,
    synthesize_verdict,
    weather_signal,
    wind_bearing,
)
from heatcheck.models import ConvergenceFactor, GameLogEntry, WeatherConditions

FACTOR_KEYS = [
    "recent_trend", "season_avg", "matchup", "venue", "rest",
    "h2h", "momentum", "minutes_trend", "game_environment", "weather",
]


def make_games(values, opponent="NYK", minutes=None, **kwargs):
    """`values` newest first."""
    return [
        GameLogEntry(
            date=f"2024-02-{28 - i:02d}",
            opponent=opponent,
            stats={"pts": v},
            minutes_played=(minutes[i] if minutes else 34.0),
            **kwargs
        )
        for i, v in enumerate(values)
    ]


def factor(result, key):
    return next(f for f in result.factors if f.key == key)


class TestEvaluateConvergence(unittest.TestCase):
    def test_all_factors_in_order(self):
        ctx = PropContext(stat="pts", line=20.5, games=make_games([22] * 10), season_avg=22.0)
        result = evaluate_convergence(ctx)

        self.assertEqual([f.key for f in result.factors], FACTOR_KEYS)
        self.assertEqual(len(FACTOR_RULES), 10)
        self.assertEqual(result.over_count + result.under_count + result.neutral_count, 10)
        for f in result.factors:
            self.assertIn(f.signal, ("over", "under", "neutral"))
            self.assertGreaterEqual(f.strength, 0.0)
            self.assertLessEqual(f.strength, 1.0)
            self.assertTrue(f.detail)

    def test_hot_player_vs_weak_defense_leans_over(self):
        games = make_games([30, 28, 31, 27, 29, 26, 33, 30, 28, 25], opponent="WAS")
        ctx = PropContext(stat="pts", line=22.5, games=games, season_avg=28.0,
                          opponent="WAS", opponent_def_rank=28, game_total=238.0)
        result = evaluate_convergence(ctx)

        self.assertEqual(factor(result, "recent_trend").signal, "over")
        self.assertEqual(factor(result, "season_avg").signal, "over")
        self.assertEqual(factor(result, "matchup").signal, "over")
        self.assertEqual(factor(result, "h2h").signal, "over")
        self.assertEqual(factor(result, "momentum").signal, "over")
        self.assertEqual(factor(result, "game_environment").signal, "over")
        self.assertEqual(factor(result, "weather").signal, "neutral")
        self.assertGreater(result.over_count, result.under_count)

    def test_empty_history_is_neutral_not_an_error(self):
        ctx = PropContext(stat="pts", line=20.5, games=[], season_avg=0.0)
        result = evaluate_convergence(ctx)
        self.assertEqual(factor(result, "h2h").signal, "neutral")
        self.assertEqual(factor(result, "momentum").signal, "neutral")
        self.assertEqual(factor(result, "minutes_trend").signal, "neutral")

    def test_back_to_back_leans_under(self):
        ctx = PropContext(stat="pts", line=20.5, games=make_games([20] * 6), season_avg=21.0,
                          is_back_to_back=True)
        self.assertEqual(factor(evaluate_convergence(ctx), "rest").signal, "under")

    def test_minutes_trend(self):
        minutes = [38, 37, 38, 36, 38, 30, 31, 29, 30, 30]
        ctx = PropContext(stat="pts", line=20.5, games=make_games([21] * 10, minutes=minutes),
                          season_avg=21.0)
        self.assertEqual(factor(evaluate_convergence(ctx), "minutes_trend").signal, "over")

    def test_custom_thresholds(self):
        ctx = PropContext(stat="pts", line=20.5, games=[], season_avg=0.0, opponent_def_rank=18)
        config = ConvergenceConfig(weak_defense_rank=16)
        self.assertEqual(factor(evaluate_convergence(ctx, config), "matchup").signal, "over")

    def test_idempotent(self):
        ctx = PropContext(stat="pts", line=20.5, games=make_games([18, 25, 21, 30]), season_avg=22.0)
        self.assertEqual(evaluate_convergence(ctx), evaluate_convergence(ctx))


class TestWeather(unittest.TestCase):
    def test_indoor_and_missing(self):
        self.assertEqual(weather_signal(None, "mlb", "hr")[0], 0.0)
        dome = WeatherConditions(wind_speed_mph=25, is_indoor=True)
        self.assertEqual(weather_signal(dome, "nfl", "passYd")[0], 0.0)

    def test_wind_blowing_out_at_wrigley(self):
        # CHC faces 220 degrees; a SW wind blows toward the outfield
        weather = WeatherConditions(wind_speed_mph=18, wind_direction="SW", temp_f=75)
        value, detail = weather_signal(weather, "mlb", "hr", "CHC")
        self.assertGreater(value, 0.5)
        self.assertIn("blowing out", detail)

    def test_nfl_wind_and_cold_suppress_passing(self):
        weather = WeatherConditions(wind_speed_mph=32, temp_f=20, condition="Snow")
        value, _ = weather_signal(weather, "nfl", "passYd")
        self.assertEqual(value, -1.0)

    def test_numeric_bearing_matches_compass_point(self):
        compass = WeatherConditions(wind_speed_mph=18, wind_direction="SW", temp_f=75)
        degrees = WeatherConditions(wind_speed_mph=18, wind_direction="225", temp_f=75)
        self.assertEqual(weather_signal(degrees, "mlb", "hr", "CHC"),
                         weather_signal(compass, "mlb", "hr", "CHC"))

    def test_unreadable_direction_skips_wind(self):
        weather = WeatherConditions(wind_speed_mph=18, wind_direction="VRB", temp_f=75)
        value, detail = weather_signal(weather, "mlb", "hr", "CHC")
        self.assertEqual(value, 0.0)
        self.assertIn("Wind direction unknown", detail)

    def test_wind_bearing(self):
        self.assertEqual(wind_bearing("sw"), 225)
        self.assertEqual(wind_bearing("585"), 225)
        self.assertEqual(wind_bearing("90.0"), 90)
        self.assertIsNone(wind_bearing("VRB"))
        self.assertIsNone(wind_bearing(""))

    def test_effective_wind(self):
        self.assertAlmostEqual(effective_wind(10, 90, 90), 10.0)
        self.assertAlmostEqual(effective_wind(10, 270, 90), -10.0)

    def test_nba_weather_factor_is_neutral(self):
        ctx = PropContext(stat="pts", line=20.5, games=[], season_avg=0.0,
                          weather=WeatherConditions(wind_speed_mph=40))
        self.assertEqual(factor(evaluate_convergence(ctx), "weather").strength, 0.0)


class TestRecentTrend(unittest.TestCase):
    def test_ewma_weights_latest_game_by_sport(self):
        # one 40-point game after four quiet ones, line 30
        games = make_games([40, 10, 10, 10, 10])
        nba = factor(evaluate_convergence(
            PropContext(stat="pts", line=30, games=games, season_avg=16.0, sport="nba")), "recent_trend")
        mlb = factor(evaluate_convergence(
            PropContext(stat="pts", line=30, games=games, season_avg=16.0, sport="mlb")), "recent_trend")

        self.assertEqual(nba.signal, "under")
        self.assertIn("EWMA 35.5", nba.detail)
        self.assertIn("EWMA 31.0", mlb.detail)
        self.assertGreater(nba.strength, mlb.strength)


class TestWeightedLean(unittest.TestCase):
    def test_weights_sum_to_one(self):
        for sport in ("nba", "mlb", "nfl", "wnba"):
            self.assertAlmostEqual(sum(factor_weights(sport).values()), 1.0)

    def test_factors_carry_sport_weights(self):
        games = make_games([22] * 10)
        nba = evaluate_convergence(PropContext(stat="pts", line=20.5, games=games, season_avg=22.0))
        self.assertAlmostEqual(factor(nba, "recent_trend").weight, 0.26)
        self.assertEqual(factor(nba, "weather").weight, 0.0)

        mlb = evaluate_convergence(PropContext(stat="h", line=0.5, games=[], season_avg=1.0,
                                               sport="mlb"))
        self.assertAlmostEqual(factor(mlb, "matchup").weight, 0.22 / 0.71)
        self.assertEqual(factor(mlb, "h2h").weight, 0.0)

    def test_unanimous_board_is_strong(self):
        factors = [ConvergenceFactor(key=k, name="", signal="over", strength=1.0, detail="", weight=w)
                   for k, w in factor_weights("nba").items()]
        lean = compute_lean(factors)
        self.assertEqual(lean.direction, "over")
        self.assertEqual(lean.tier, "STRONG")
        self.assertEqual(lean.confidence, 99)

    def test_tiers(self):
        def lean_for(signal, weight):
            return compute_lean([ConvergenceFactor(key="k", name="", signal=signal, strength=1.0,
                                                   detail="", weight=weight)])

        moderate = lean_for("over", 0.6)
        self.assertEqual((moderate.direction, moderate.tier, moderate.confidence),
                         ("over", "MODERATE", 60))
        weak = lean_for("under", 0.3)
        self.assertEqual((weak.direction, weak.tier, weak.confidence), ("under", "NEUTRAL", 30))
        self.assertAlmostEqual(weak.score, -30.0)
        self.assertEqual(lean_for("over", 0.05).direction, "toss-up")
        self.assertEqual(lean_for("neutral", 1.0).confidence, 1)

    def test_lean_reported_with_verdict(self):
        games = make_games([30, 28, 31, 27, 29, 26, 33, 30, 28, 25], opponent="WAS")
        ctx = PropContext(stat="pts", line=22.5, games=games, season_avg=28.0,
                          opponent="WAS", opponent_def_rank=28, game_total=238.0)
        checked = check_prop(ctx, include_spectrum=False)

        self.assertEqual(checked.lean, checked.convergence.lean)
        self.assertEqual(checked.lean.direction, "over")
        self.assertIn(checked.lean.tier, ("STRONG", "MODERATE", "NEUTRAL"))
        self.assertIn("lean", checked.to_dict())


class TestRunLength(unittest.TestCase):
    def test_signed_runs(self):
        self.assertEqual(run_length([25, 26, 18], 20), 2)
        self.assertEqual(run_length([20, 18, 25], 20), -2)
        self.assertEqual(run_length([], 20), 0)


def _result(signals, strengths=None):
    strengths = strengths or [0.5] * len(signals)
    factors = [ConvergenceFactor(key=f"f{i}", name="", signal=s, strength=w, detail="")
               for i, (s, w) in enumerate(zip(signals, strengths))]
    return ConvergenceResult(
        factors=factors,
        over_count=signals.count("over"),
        under_count=signals.count("under"),
        neutral_count=signals.count("neutral"),
    )


class TestVerdict(unittest.TestCase):
    def test_majority_over(self):
        verdict = synthesize_verdict(_result(["over"] * 6 + ["under"] * 2 + ["neutral"] * 2),
                                     0.7, 3.1, 24.0)
        self.assertEqual(verdict.direction, "over")
        self.assertEqual(verdict.convergence_score, 6)
        # 0.6 * 60 + 0.4 * 60 + 0.2 * 20
        self.assertEqual(verdict.confidence, 64)

    def test_toss_up_is_fifty(self):
        verdict = synthesize_verdict(_result(["over", "under", "neutral"]), 0.9, 0.0, 20.0)
        self.assertEqual(verdict.direction, "toss-up")
        self.assertEqual(verdict.confidence, 50)
        self.assertEqual(verdict.convergence_score, 1)

    def test_confidence_clamped(self):
        verdict = synthesize_verdict(_result(["under"] * 10, [1.0] * 10), 0.0, -5.0, 10.0)
        self.assertEqual(verdict.confidence, 100)

    def test_check_prop_bundles_spectrum(self):
        ctx = PropContext(stat="pts", line=20.5,
                          games=make_games([25, 22, 18, 27, 30, 19, 24]), season_avg=23.0)
        checked = check_prop(ctx, "Test Player")
        self.assertEqual(checked.player_name, "Test Player")
        self.assertIn(checked.verdict.direction, ("over", "under", "toss-up"))
        self.assertEqual(len(checked.spectrum["distribution"]["values"]), 7)
        self.assertIsNone(check_prop(ctx, include_spectrum=False).spectrum)


if __name__ == "__main__":
    unittest.main()
