import unittest
from datetime import datetime

import numpy as np
import pytest

from value_engine.domains.data.entities import MatchRecord, MatchStatus
from value_engine.models.core import ModelConfig, TrainedModel
from value_engine.models.predictors import calculate_lambdas
from value_engine.models.rating_model import RatingModelTrainer, train

from .match_schedule_generator import generate_matches

TEAMS = ["TeamA", "TeamB", "TeamC", "TeamD", "TeamE", "TeamF"]
RATES = {
    "TeamA": 2.4,
    "TeamB": 1.8,
    "TeamC": 1.4,
    "TeamD": 1.1,
    "TeamE": 0.8,
    "TeamF": 0.5,
}


@pytest.fixture(scope="module")
def matches():
    return generate_matches(TEAMS, seed=7, rates=RATES, seasons=4)


@pytest.fixture(scope="module")
def model(matches):
    return RatingModelTrainer().train(matches)


def test_ratings_are_centred_on_zero(model):
    attack = np.array([s.attack for s in model.teams.values()])
    defense = np.array([s.defense for s in model.teams.values()])

    assert attack.mean() == pytest.approx(0.0, abs=1e-9)
    assert defense.mean() == pytest.approx(0.0, abs=1e-9)


def test_gradient_descent_output_is_normalized(matches):
    trainer = RatingModelTrainer(ModelConfig(iterations=20))
    home_idx = np.array([TEAMS.index(m.home_team) for m in matches])
    away_idx = np.array([TEAMS.index(m.away_team) for m in matches])
    home_goals = np.array([m.home_goals for m in matches], dtype=float)
    away_goals = np.array([m.away_goals for m in matches], dtype=float)

    attack, defense, _ = trainer._gradient_descent(
        home_idx, away_idx, home_goals, away_goals, np.ones(len(matches)), len(TEAMS)
    )

    assert attack.mean() == pytest.approx(0.0, abs=1e-12)
    assert defense.mean() == pytest.approx(0.0, abs=1e-12)


def test_implied_goals_match_league_average(matches, model):
    implied = []
    for m in matches:
        expected = calculate_lambdas(model, m.home_team, m.away_team)
        implied.append(expected.lambda_home + expected.lambda_away)

    assert np.mean(implied) == pytest.approx(model.league_average_goals, rel=0.05)


def test_stronger_teams_rate_higher(model):
    ratings = model.to_dataframe()

    nets = ratings.set_index("Team")["Net"]

    assert "TeamA" in list(ratings["Team"].head(2))
    assert "TeamF" in list(ratings["Team"].tail(2))
    assert nets["TeamA"] > nets["TeamD"] > nets["TeamF"]
    assert list(ratings.columns) == ["Team", "Attack", "Defense", "Net"]


def test_home_advantage_is_positive(model):
    assert model.home_advantage > 0


def test_anchoring_residual_is_absorbed_by_home_advantage():
    trainer = RatingModelTrainer()
    attack = np.array([0.3, -0.3])
    defense = np.array([0.2, -0.2])
    home_idx = np.array([0, 1])
    away_idx = np.array([1, 0])

    new_attack, new_defense, home_advantage, factor = trainer._anchor_goals(
        attack, defense, 0.1, home_idx, away_idx, league_average_goals=4.0
    )

    np.testing.assert_allclose(new_attack, attack * factor)
    np.testing.assert_allclose(new_defense, defense * factor)
    implied = trainer.implied_average_goals(
        new_attack, new_defense, home_advantage, home_idx, away_idx
    )
    assert implied == pytest.approx(4.0)
    # Away rates only see the rescale; the remaining gap lands on home sides
    assert home_advantage > 0.5


def test_training_is_deterministic(matches):
    config = ModelConfig(iterations=50)
    first = train(matches, config)
    second = train(matches, config)

    assert dict(first.teams) == dict(second.teams)
    assert first.home_advantage == second.home_advantage


def test_as_of_defaults_to_latest_match_date(matches):
    config = ModelConfig(iterations=50)
    latest = max(m.match_date for m in matches)

    assert train(matches, config) == train(matches, config, as_of=latest)
    assert train(matches, config).trained_at == latest


def test_fit_rho_sets_rho_within_bounds(matches):
    config = ModelConfig(iterations=50, fit_rho=True, rho_bounds=(-0.15, 0.15))
    model = train(matches, config)

    assert -0.15 <= model.rho <= 0.15


def test_model_owns_its_team_mapping(model):
    with pytest.raises(TypeError):
        model.teams["TeamZ"] = None


class TestDegenerateInput(unittest.TestCase):
    def test_empty_input_returns_neutral_model(self):
        model = RatingModelTrainer().train([])

        self.assertTrue(model.is_neutral)
        self.assertEqual(model, TrainedModel.neutral())
        self.assertEqual(model.home_advantage, 0.1)

    def test_unfinished_and_malformed_matches_are_ignored(self):
        when = datetime(2025, 8, 9)
        matches = [
            MatchRecord("TeamA", "TeamB", None, None, when, MatchStatus.SCHEDULED),
            MatchRecord("TeamA", "TeamB", 1.5, 0, when),
            MatchRecord("TeamA", "TeamB", -1, 0, when),
            MatchRecord("TeamA", "TeamB", True, 0, when),
        ]

        model = RatingModelTrainer().train(matches)

        self.assertTrue(model.is_neutral)

    def test_single_match_trains_both_teams(self):
        match = MatchRecord("TeamA", "TeamB", 2, 0, datetime(2025, 8, 9))

        model = RatingModelTrainer(ModelConfig(iterations=10)).train([match])

        self.assertTrue(model.has_team("TeamA"))
        self.assertTrue(model.has_team("TeamB"))
        self.assertEqual(model.n_matches, 1)
        self.assertGreater(model.teams["TeamA"].net, model.teams["TeamB"].net)
