import unittest

from heatcheck.ingest import (
    IngestError,
    attach_rolling_context,
    canonical_stat_key,
    ingest_enriched_log,
    ingest_game_log,
    ingest_game_logs,
    normalize_stats,
    to_float,
)


class TestNormalization(unittest.TestCase):
    def test_to_float_coerces_garbage_to_default(self):
        self.assertEqual(to_float("27"), 27.0)
        self.assertEqual(to_float("1,204"), 1204.0)
        self.assertEqual(to_float("--"), 0.0)
        self.assertEqual(to_float(None, 1.0), 1.0)

    def test_stat_aliases(self):
        self.assertEqual(canonical_stat_key("PTS", "nba"), "pts")
        self.assertEqual(canonical_stat_key("SO", "mlb"), "k")
        self.assertEqual(canonical_stat_key("passYd", "nfl"), "passYd")
        self.assertEqual(canonical_stat_key("Custom", "nba"), "custom")

    def test_made_attempted_splits(self):
        stats = normalize_stats({"FG": "10-18", "3PT": "3-7", "PTS": "27"}, "nba")
        self.assertEqual(stats["fgm"], 10.0)
        self.assertEqual(stats["fga"], 18.0)
        self.assertEqual(stats["3pm"], 3.0)
        self.assertEqual(stats["pts"], 27.0)


class TestIngestGameLog(unittest.TestCase):
    def test_basic_record(self):
        entry = ingest_game_log({
            "date": "2024-01-15T00:30Z",
            "opponent": {"abbreviation": "BOS"},
            "homeAway": "home",
            "minutes": "34",
            "result": "W",
            "stats": {"PTS": "27", "REB": "9"},
        }, "nba")
        self.assertEqual(entry.date, "2024-01-15")
        self.assertEqual(entry.opponent, "BOS")
        self.assertTrue(entry.is_home)
        self.assertEqual(entry.minutes_played, 34.0)
        self.assertEqual(entry.stat("pts"), 27.0)
        self.assertEqual(entry.stat("ast"), 0.0)

    def test_missing_date_raises(self):
        with self.assertRaises(IngestError):
            ingest_game_log({"opponent": "BOS", "stats": {}}, "nba")
        self.assertTrue(issubclass(IngestError, ValueError))

    def test_batch_skips_bad_records_and_enriches_rest(self):
        raws = [
            {"date": "2024-01-10", "opponent": "NYK", "stats": {"PTS": 20}},
            {"date": "2024-01-11", "opponent": "BOS", "stats": {"PTS": 25}},
            {"date": "2024-01-14", "opponent": "MIA", "stats": {"PTS": 30}},
            {"opponent": "LAL", "stats": {"PTS": 99}},
            {"date": "2024-02-18", "eventNote": "NBA All-Star Game", "stats": {"PTS": 40}},
        ]
        with self.assertLogs("heatcheck.ingest", level="WARNING"):
            games = ingest_game_logs(raws, "nba")

        self.assertEqual([g.date for g in games], ["2024-01-14", "2024-01-11", "2024-01-10"])
        self.assertEqual(games[0].rest_days, 2)
        self.assertFalse(games[0].is_back_to_back)
        self.assertEqual(games[1].rest_days, 0)
        self.assertTrue(games[1].is_back_to_back)


def _enriched(date, value, line, player="p1", stat="pts"):
    return ingest_enriched_log({
        "date": date,
        "opponent": "BOS",
        "playerId": player,
        "primaryStatKey": stat,
        "propLines": {stat: line},
        "stats": {stat: value},
    }, "nba")


class TestRollingContext(unittest.TestCase):
    def test_enriched_fields(self):
        log = ingest_enriched_log({
            "date": "2024-03-01",
            "opponent": "DEN",
            "playerName": "Test Player",
            "primaryStatKey": "PTS",
            "propLines": {"PTS": "24.5"},
            "gameTotal": 231.5,
            "teamSpread": -4.5,
            "stats": {"PTS": 30},
        }, "nba")
        self.assertEqual(log.primary_stat_key, "pts")
        self.assertEqual(log.prop_line, 24.5)
        self.assertEqual(log.game_total, 231.5)
        self.assertIsNone(log.stat_avg_l5)

    def test_no_look_ahead(self):
        logs = [
            _enriched("2024-01-03", 30, 20),
            _enriched("2024-01-01", 10, 20),
            _enriched("2024-01-02", 20, 20),
            _enriched("2024-01-01", 50, 20, player="p2"),
        ]
        out = attach_rolling_context(logs)

        self.assertEqual([g.date for g in out], [g.date for g in logs])
        # first game of each player has no history
        self.assertIsNone(out[1].stat_avg_l5)
        self.assertIsNone(out[3].stat_avg_l10)
        self.assertAlmostEqual(out[2].stat_avg_l5, 10.0)
        self.assertAlmostEqual(out[0].stat_avg_l5, 15.0)
        self.assertAlmostEqual(out[0].hit_rate_l10, 0.0)

    def test_each_stat_is_its_own_series(self):
        logs = [
            _enriched("2024-01-01", 30, 25.5),
            _enriched("2024-01-01", 5, 7.5, stat="reb"),
            _enriched("2024-01-02", 30, 25.5),
            _enriched("2024-01-02", 5, 7.5, stat="reb"),
        ]
        out = attach_rolling_context(logs)

        self.assertIsNone(out[0].stat_avg_l5)
        self.assertIsNone(out[1].stat_avg_l5)
        self.assertAlmostEqual(out[2].stat_avg_l5, 30.0)
        self.assertAlmostEqual(out[2].hit_rate_l10, 1.0)
        self.assertAlmostEqual(out[3].stat_avg_l10, 5.0)
        self.assertAlmostEqual(out[3].hit_rate_l10, 0.0)

    def test_same_date_rows_do_not_feed_each_other(self):
        logs = [
            _enriched("2024-05-01", 2, 1.5),
            _enriched("2024-05-02", 4, 1.5),
            _enriched("2024-05-02", 0, 1.5),
        ]
        out = attach_rolling_context(logs)

        self.assertAlmostEqual(out[1].stat_avg_l5, 2.0)
        self.assertAlmostEqual(out[2].stat_avg_l5, 2.0)
        self.assertAlmostEqual(out[2].hit_rate_l10, 1.0)

    def test_empty(self):
        self.assertEqual(attach_rolling_context([]), [])


if __name__ == "__main__":
    unittest.main()
