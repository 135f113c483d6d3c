import math

import numpy as np
import pytest
from scipy.stats import poisson

from value_engine.domains.shared.value_objects import Probabilities
from value_engine.models.core import ModelConfig, TeamStrength, TrainedModel
from value_engine.models.predictors import (
    DixonColesCalculator,
    calculate_lambdas,
    fit_rho,
    match_probabilities,
)


@pytest.fixture
def symmetric_model():
    return TrainedModel(
        teams={
            "TeamA": TeamStrength(attack=0.0, defense=0.0),
            "TeamB": TeamStrength(attack=0.0, defense=0.0),
        },
        home_advantage=0.0,
    )


@pytest.mark.parametrize(
    "lambda_home, lambda_away, rho",
    [
        (1.5, 1.1, 0.0),
        (0.3, 2.8, 0.0),
        (1.2, 1.2, -0.1),
        (2.0, 0.6, 0.1),
        (4.5, 3.9, 0.05),
        (0.05, 0.05, -0.2),
    ],
)
def test_match_probabilities_sum_to_one(lambda_home, lambda_away, rho):
    probs = match_probabilities(lambda_home, lambda_away, rho)

    assert probs.home + probs.draw + probs.away == pytest.approx(1.0, abs=1e-9)
    for p in (probs.home, probs.draw, probs.away):
        assert 0.0 <= p <= 1.0


def test_zero_rho_equals_plain_poisson():
    lambda_home, lambda_away = 1.7, 0.9
    goals = np.arange(0, 9)
    grid = np.outer(poisson.pmf(goals, lambda_home), poisson.pmf(goals, lambda_away))
    total = grid.sum()

    probs = match_probabilities(lambda_home, lambda_away, 0.0)

    assert probs.home == pytest.approx(np.tril(grid, -1).sum() / total, abs=1e-12)
    assert probs.draw == pytest.approx(np.trace(grid) / total, abs=1e-12)
    assert probs.away == pytest.approx(np.triu(grid, 1).sum() / total, abs=1e-12)


def test_negative_rho_raises_draw_probability():
    plain = match_probabilities(1.3, 1.1, 0.0)
    adjusted = match_probabilities(1.3, 1.1, -0.1)

    assert adjusted.draw > plain.draw


def test_score_matrix_shape_and_low_score_adjustment():
    calculator = DixonColesCalculator(max_goals=8)
    plain = calculator.score_matrix(1.2, 1.0, 0.0)
    adjusted = calculator.score_matrix(1.2, 1.0, 0.1)

    assert plain.shape == (9, 9)
    assert adjusted[0, 0] == pytest.approx(plain[0, 0] * (1 - 0.1 * 1.2 * 1.0))
    assert adjusted[1, 1] == pytest.approx(plain[1, 1] * 0.9)
    assert adjusted[2, 3] == pytest.approx(plain[2, 3])


def test_extreme_rho_cells_are_floored_at_zero():
    matrix = DixonColesCalculator().score_matrix(3.0, 3.0, 0.2)

    assert (matrix >= 0).all()


@pytest.mark.parametrize("bad", [float("nan"), float("inf"), 0.0, -1.0, None])
def test_invalid_lambdas_fall_back_to_defaults(bad):
    calculator = DixonColesCalculator()

    probs = calculator.match_probabilities(bad, bad)

    assert probs == calculator.match_probabilities(1.3, 1.0)


def test_zero_total_grid_returns_uniform():
    probs = DixonColesCalculator.matrix_to_outcomes(np.zeros((9, 9)))

    assert probs == Probabilities.uniform()


def test_symmetric_teams_have_equal_lambdas_and_win_chances(symmetric_model):
    expected = calculate_lambdas(symmetric_model, "TeamA", "TeamB")
    probs = match_probabilities(expected.lambda_home, expected.lambda_away)

    assert expected.lambda_home == expected.lambda_away
    assert probs.home == pytest.approx(probs.away, abs=1e-12)
    assert probs.draw < probs.home
    assert probs.draw < probs.away


def test_calculate_lambdas_uses_home_advantage():
    model = TrainedModel(
        teams={
            "TeamA": TeamStrength(attack=0.2, defense=0.1),
            "TeamB": TeamStrength(attack=-0.1, defense=-0.05),
        },
        home_advantage=0.25,
    )

    expected = calculate_lambdas(model, "TeamA", "TeamB")

    assert expected.lambda_home == pytest.approx(math.exp(0.2 + 0.05 + 0.25))
    assert expected.lambda_away == pytest.approx(math.exp(-0.1 - 0.1))


def test_unknown_team_cannot_be_priced(symmetric_model):
    assert calculate_lambdas(symmetric_model, "TeamA", "Unknown") is None
    assert calculate_lambdas(TrainedModel.neutral(), "TeamA", "TeamB") is None


def test_calculator_from_config():
    config = ModelConfig(max_goals=5, default_lambda_home=1.5, default_lambda_away=1.1)
    calculator = DixonColesCalculator.from_config(config)

    assert calculator.score_matrix(1.0, 1.0).shape == (6, 6)
    assert calculator.default_lambda_home == 1.5


class TestFitRho:
    def test_no_low_scoring_matches_gives_zero(self, symmetric_model):
        rho = fit_rho(
            ["TeamA", "TeamB"], ["TeamB", "TeamA"], [3, 4], [2, 3], symmetric_model
        )

        assert rho == 0.0

    def test_fitted_rho_stays_within_bounds(self, symmetric_model):
        # Many 0-0 and 1-1 draws push rho negative
        home_goals = [0, 1, 0, 1, 2, 0, 1, 3]
        away_goals = [0, 1, 0, 1, 1, 0, 1, 0]
        homes = ["TeamA", "TeamB"] * 4
        aways = ["TeamB", "TeamA"] * 4

        rho = fit_rho(
            homes, aways, home_goals, away_goals, symmetric_model, bounds=(-0.2, 0.2)
        )

        assert -0.2 <= rho <= 0.2
        assert rho < 0
