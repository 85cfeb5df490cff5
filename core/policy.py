from __future__ import annotations

import random
from typing import Optional, Sequence, Tuple

from .cards import Card
from .evaluator import hand_strength
from .models import ActionType


_RNG = random.Random()

# Share of the decision score driven by hand strength; the rest is noise.
_STRENGTH_WEIGHT = 0.8


def raise_target(round_bet: int, raise_step: int) -> int:
    if round_bet >= raise_step:
        return round_bet + raise_step
    return 2 * raise_step


def _decision_score(strength: float, roll: float) -> float:
    return _STRENGTH_WEIGHT * strength + (1 - _STRENGTH_WEIGHT) * roll


def _thresholds(to_call: int, pot: int, aggression: float) -> Tuple[float, float, float]:
    # Expensive calls relative to the pot make folding more attractive.
    pressure = to_call / (pot + to_call) if pot + to_call > 0 else 0.0
    aggression = max(aggression, 0.1)
    fold_below = 0.12 + 0.25 * pressure
    raise_above = max(fold_below, 0.5 / aggression)
    compare_above = max(raise_above, 0.72 / aggression)
    return fold_below, raise_above, compare_above


def choose_action(
    cards: Sequence[Card],
    to_call: int,
    pot: int,
    chips: int,
    round_bet: int,
    aggression: float = 1.0,
    roll: Optional[float] = None,
    rng: Optional[random.Random] = None,
    raise_step: int = 1_000,
) -> Tuple[ActionType, Optional[int]]:
    """Heuristic opponent: stronger hands lean toward RAISE/COMPARE, weaker toward CALL/FOLD.

    With a fixed ``roll`` the result is a pure, monotonic function of hand
    strength. The returned action is always one the engine accepts for a seat
    holding ``chips``.
    """
    if chips <= 0:
        # Already all-in; comparing costs nothing.
        return ActionType.COMPARE_INIT, None
    if roll is None:
        roll = (rng or _RNG).random()

    score = _decision_score(hand_strength(cards), roll)
    fold_below, raise_above, compare_above = _thresholds(to_call, pot, aggression)

    if score < fold_below and to_call > 0:
        return ActionType.FOLD, None

    if score >= compare_above:
        if chips >= round_bet:
            return ActionType.COMPARE_INIT, None
        return ActionType.ALL_IN, None

    if score >= raise_above:
        amount = raise_target(round_bet, raise_step)
        if amount <= chips:
            return ActionType.RAISE, amount
        return ActionType.ALL_IN, None

    if chips < to_call:
        return ActionType.ALL_IN, None
    return ActionType.CALL, None


def choose_compare_target(candidates: Sequence[int], rng: Optional[random.Random] = None) -> int:
    if not candidates:
        raise ValueError("No opponent to compare against")
    return (rng or _RNG).choice(list(candidates))
