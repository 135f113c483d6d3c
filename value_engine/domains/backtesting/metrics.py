"""
Proper scoring rules and calibration buckets for home/draw/away forecasts.

Brier score: sum over the three classes of squared errors against the one-hot
outcome, averaged over matches. ~0.667 is the uniform baseline, below 0.5 is
usable. Log-loss: negative log of the probability given to the realised
outcome, floored at EPSILON. Lower is better for both.
"""

from typing import Dict, Optional, Sequence, Tuple

import numpy as np
from sklearn.metrics import accuracy_score, log_loss

from .entities import CalibrationBucket, EvaluationRecord

EPSILON = 1e-15

CALIBRATION_BUCKETS = ("0-20", "20-40", "40-60", "60-80", "80-100")


def _as_arrays(records: Sequence[EvaluationRecord]) -> Tuple[np.ndarray, np.ndarray]:
    probs = np.array([r.probabilities.as_array() for r in records], dtype=float)
    actual = np.array([r.actual_outcome.position for r in records], dtype=int)
    return probs, actual


def _one_hot(actual: np.ndarray) -> np.ndarray:
    return np.eye(3)[actual]


def calculate_brier_score(records: Sequence[EvaluationRecord]) -> Optional[float]:
    if not records:
        return None
    probs, actual = _as_arrays(records)
    return float(np.mean(np.sum((probs - _one_hot(actual)) ** 2, axis=1)))


def calculate_log_loss(records: Sequence[EvaluationRecord]) -> Optional[float]:
    if not records:
        return None
    probs, actual = _as_arrays(records)
    # Floor before sklearn sees the values so log(0) is bounded by -log(EPSILON)
    probs = np.clip(probs, EPSILON, 1.0)
    return float(log_loss(actual, probs, labels=[0, 1, 2]))


def calculate_accuracy(records: Sequence[EvaluationRecord]) -> Optional[float]:
    """Share of matches where the most probable outcome happened."""
    if not records:
        return None
    probs, actual = _as_arrays(records)
    # argmax keeps the first maximum: HOME, then DRAW, then AWAY
    return float(accuracy_score(actual, np.argmax(probs, axis=1)))


def evaluate_predictions(records: Sequence[EvaluationRecord]) -> Dict:
    return {
        "n": len(records),
        "brier_score": calculate_brier_score(records),
        "log_loss": calculate_log_loss(records),
        "accuracy": calculate_accuracy(records),
    }


def bucket_key(max_probability: float) -> str:
    pct = max_probability * 100
    if pct < 20:
        return "0-20"
    if pct < 40:
        return "20-40"
    if pct < 60:
        return "40-60"
    if pct < 80:
        return "60-80"
    return "80-100"


def calibration_buckets(
    records: Sequence[EvaluationRecord],
) -> Dict[str, CalibrationBucket]:
    """Bucket predictions by top probability and count how often the top pick hit."""
    buckets = {key: CalibrationBucket() for key in CALIBRATION_BUCKETS}
    for record in records:
        top = record.probabilities.max_probability
        buckets[bucket_key(top)].add(top, record.is_hit)
    return buckets
