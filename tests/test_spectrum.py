import unittest

from heatcheck.models import GameLogEntry
from heatcheck.spectrum import classify_volatility, compute_spectrum


def game(value, is_home=False, rank=15):
    return GameLogEntry(date="2024-01-01", opponent="BOS", stats={"reb": value},
                        is_home=is_home, opponent_def_rank=rank)


class TestSpectrum(unittest.TestCase):
    def test_empty(self):
        result = compute_spectrum([], "reb", 8.5)
        self.assertEqual(result.distribution.values, [])
        self.assertEqual(result.over_pct, 0.0)
        self.assertEqual(result.overlays["home"].games, 0)

    def test_distribution_and_overlays(self):
        games = [
            game(10, True, 5), game(7, True, 25), game(12, True, 3),
            game(6, False, 22), game(9, False, 28), game(8, False, 14),
        ]
        result = compute_spectrum(games, "reb", 8.5)

        self.assertAlmostEqual(result.over_pct, 0.5)
        self.assertAlmostEqual(result.under_pct, 0.5)
        self.assertEqual(result.distribution.min, 6)
        self.assertEqual(result.distribution.max, 12)
        self.assertEqual(len(result.distribution.kde), 100)
        self.assertGreaterEqual(result.distribution.kde[0][0], 0.0)

        self.assertEqual(result.overlays["home"].games, 3)
        self.assertEqual(len(result.overlays["home"].kde), 100)
        # fewer than 3 games: mean only
        self.assertEqual(result.overlays["vs_top_defense"].games, 2)
        self.assertEqual(result.overlays["vs_top_defense"].kde, [])
        self.assertAlmostEqual(result.overlays["vs_top_defense"].mean, 11.0)
        self.assertEqual(result.overlays["vs_bottom_defense"].games, 3)

    def test_volatility_labels(self):
        self.assertEqual(classify_volatility(10), "low")
        self.assertEqual(classify_volatility(45), "medium")
        self.assertEqual(classify_volatility(80), "high")
        steady = compute_spectrum([game(30)] * 5, "reb", 25.5)
        self.assertEqual(steady.volatility, "low")
        self.assertEqual(steady.volatility_score, 0.0)


if __name__ == "__main__":
    unittest.main()
