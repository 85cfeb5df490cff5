"""Three-card game engine primitives shared by the host server and local play."""

from .cards import Card, RANKS, SUITS, build_deck, deal, parse_cards
from .evaluator import compare_hands, describe_hand, evaluate_hand
from .game import GameEngine, HandContext
from .models import ActionRejected, ActionRequest, ActionType, HandCategory, Phase, PlayerSeat, PlayerStatus, TableConfig
from .policy import choose_action

__all__ = [
    "Card",
    "RANKS",
    "SUITS",
    "build_deck",
    "deal",
    "parse_cards",
    "compare_hands",
    "describe_hand",
    "evaluate_hand",
    "GameEngine",
    "HandContext",
    "ActionRejected",
    "ActionRequest",
    "ActionType",
    "HandCategory",
    "Phase",
    "PlayerSeat",
    "PlayerStatus",
    "TableConfig",
    "choose_action",
]
