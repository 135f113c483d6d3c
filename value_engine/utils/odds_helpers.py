import math
from typing import Dict, List, Optional, Sequence, Tuple

from ..domains.shared.value_objects import BestOdds, MarketProbabilities

H2H_MARKET = "h2h"
DRAW_OUTCOME = "Draw"


def _as_price(value) -> Optional[float]:
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(price) or price <= 1:
        return None
    return price


def _entries(container: Dict, key: str) -> List[Dict]:
    """Mapping entries under key; malformed feed entries are skipped."""
    entries = container.get(key)
    if not isinstance(entries, (list, tuple)):
        return []
    return [entry for entry in entries if isinstance(entry, dict)]


def extract_best_odds(odds_event: Dict) -> Optional[BestOdds]:
    """
    Best decimal price per outcome across every bookmaker's h2h market.

    :param odds_event: Event with home_team, away_team and bookmakers.markets.
    :return: BestOdds, or None when any of the three outcomes has no valid price.
    """
    if not isinstance(odds_event, dict) or not odds_event.get("bookmakers"):
        return None

    home_name = odds_event.get("home_team")
    away_name = odds_event.get("away_team")
    if not home_name or not away_name:
        return None
    best = {"home": 0.0, "draw": 0.0, "away": 0.0}

    for bookmaker in _entries(odds_event, "bookmakers"):
        for market in _entries(bookmaker, "markets"):
            if market.get("key") != H2H_MARKET:
                continue
            for outcome in _entries(market, "outcomes"):
                price = _as_price(outcome.get("price"))
                if price is None:
                    continue
                name = outcome.get("name")
                if name == home_name:
                    best["home"] = max(best["home"], price)
                elif name == away_name:
                    best["away"] = max(best["away"], price)
                elif name == DRAW_OUTCOME:
                    best["draw"] = max(best["draw"], price)

    if not all(best.values()):
        return None

    return BestOdds(
        best_home=best["home"], best_draw=best["draw"], best_away=best["away"]
    )


def implied_probability(odd: float) -> float:
    """1 / odd, or 0 for non-finite and non-positive prices."""
    try:
        odd = float(odd)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(odd) or odd <= 0:
        return 0.0
    return 1 / odd


def normalize_probs(
    p_home: float, p_draw: float, p_away: float
) -> MarketProbabilities:
    """Proportional margin removal; overround is the raw implied-probability sum."""
    total = p_home + p_draw + p_away
    if not math.isfinite(total) or total <= 0:
        return MarketProbabilities(home=1 / 3, draw=1 / 3, away=1 / 3, overround=1.0)

    return MarketProbabilities(
        home=p_home / total,
        draw=p_draw / total,
        away=p_away / total,
        overround=total,
    )


def get_no_vig_probabilities_multiway(
    odds: Sequence[float], accuracy: int = 6, max_iterations: int = 100
) -> Tuple[float, ...]:
    """
    Fair probabilities via the power method: find c such that sum((1/o)**c) == 1.

    :param odds: Decimal bookmaker prices for a multi-way market.
    :return: Tuple of no-vig probabilities, in the same order as the odds.
    """
    c, max_error = 1.0, (10 ** (-accuracy)) / 2
    inverse = [1 / o for o in odds]

    for _ in range(max_iterations):
        f = sum(p**c for p in inverse) - 1
        if abs(f) <= max_error:
            break
        f_dash = sum((p**c) * math.log(p) for p in inverse)
        if f_dash == 0:
            break
        c -= f / f_dash

    probs = [p**c for p in inverse]
    total = sum(probs)
    return tuple(p / total for p in probs)


def market_probabilities(
    best_odds: BestOdds, method: str = "proportional"
) -> MarketProbabilities:
    """Margin-free market probabilities for a three-way quote."""
    implied = [
        implied_probability(best_odds.best_home),
        implied_probability(best_odds.best_draw),
        implied_probability(best_odds.best_away),
    ]
    proportional = normalize_probs(*implied)
    if method == "proportional" or not best_odds.is_valid():
        return proportional

    if method == "power":
        home, draw, away = get_no_vig_probabilities_multiway(
            [best_odds.best_home, best_odds.best_draw, best_odds.best_away]
        )
        return MarketProbabilities(
            home=home, draw=draw, away=away, overround=proportional.overround
        )

    raise ValueError(f"Unknown margin removal method: {method}")


def calculate_ev(prob_model: float, odd: float) -> float:
    """Expected value of a unit stake: p * odd - 1."""
    if not (math.isfinite(prob_model) and math.isfinite(odd)):
        return -math.inf
    return prob_model * odd - 1


def calculate_edge(prob_model: float, prob_market: float) -> float:
    """Model probability minus margin-free market probability."""
    if not (math.isfinite(prob_model) and math.isfinite(prob_market)):
        return -math.inf
    return prob_model - prob_market

