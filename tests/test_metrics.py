import math
import unittest

import pytest

from value_engine.domains.backtesting.entities import EvaluationRecord
from value_engine.domains.backtesting.metrics import (
    EPSILON,
    bucket_key,
    calculate_accuracy,
    calculate_brier_score,
    calculate_log_loss,
    calibration_buckets,
    evaluate_predictions,
)
from value_engine.domains.shared.value_objects import Outcome, Probabilities


def record(home, draw, away, actual):
    return EvaluationRecord(Probabilities(home=home, draw=draw, away=away), actual)


class TestScoringRules(unittest.TestCase):
    def test_perfect_prediction_has_zero_brier(self):
        records = [record(1.0, 0.0, 0.0, Outcome.HOME)]

        self.assertEqual(calculate_brier_score(records), 0.0)

    def test_uniform_brier_baseline(self):
        records = [record(1 / 3, 1 / 3, 1 / 3, Outcome.DRAW)]

        self.assertAlmostEqual(calculate_brier_score(records), 2 / 3)

    def test_log_loss_of_realised_outcome(self):
        records = [
            record(0.5, 0.3, 0.2, Outcome.HOME),
            record(0.5, 0.3, 0.2, Outcome.AWAY),
        ]

        expected = -(math.log(0.5) + math.log(0.2)) / 2
        self.assertAlmostEqual(calculate_log_loss(records), expected, places=9)

    def test_log_loss_is_floored_for_zero_probability(self):
        records = [record(1.0, 0.0, 0.0, Outcome.AWAY)]

        self.assertAlmostEqual(
            calculate_log_loss(records), -math.log(EPSILON), places=6
        )

    def test_accuracy_uses_home_then_draw_tie_break(self):
        records = [
            record(0.4, 0.4, 0.2, Outcome.HOME),
            record(0.2, 0.4, 0.4, Outcome.DRAW),
            record(0.2, 0.3, 0.5, Outcome.HOME),
            record(0.6, 0.2, 0.2, Outcome.HOME),
        ]

        self.assertEqual(calculate_accuracy(records), 0.75)

    def test_empty_input(self):
        self.assertIsNone(calculate_brier_score([]))
        self.assertIsNone(calculate_log_loss([]))
        self.assertIsNone(calculate_accuracy([]))
        self.assertEqual(evaluate_predictions([])["n"], 0)


@pytest.mark.parametrize(
    "probability, key",
    [
        (0.19, "0-20"),
        (0.20, "20-40"),
        (0.39, "20-40"),
        (0.45, "40-60"),
        (0.60, "60-80"),
        (0.80, "80-100"),
        (1.00, "80-100"),
    ],
)
def test_bucket_key(probability, key):
    assert bucket_key(probability) == key


def test_calibration_buckets_count_top_pick_hits():
    records = [
        record(0.5, 0.3, 0.2, Outcome.HOME),
        record(0.5, 0.3, 0.2, Outcome.DRAW),
        record(0.1, 0.2, 0.7, Outcome.AWAY),
    ]

    buckets = calibration_buckets(records)

    assert buckets["40-60"].count == 2
    assert buckets["40-60"].actual_hits == 1
    assert buckets["40-60"].mean_predicted == pytest.approx(0.5)
    assert buckets["40-60"].hit_rate == 0.5
    assert buckets["60-80"].hit_rate == 1.0
    assert buckets["0-20"].count == 0
    assert buckets["0-20"].hit_rate is None
