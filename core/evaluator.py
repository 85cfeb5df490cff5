from __future__ import annotations

from typing import List, Sequence, Tuple

from .cards import Card
from .models import HandCategory

RANK_ORDER = "23456789TJQKA"
RANK_VALUE = {rank: idx for idx, rank in enumerate(RANK_ORDER, start=2)}
# Only used to break exact rank ties: spades > hearts > clubs > diamonds.
SUIT_VALUE = {"s": 3, "h": 2, "c": 1, "d": 0}

# A-2-3 counts as the lowest straight; K-A-2 does not wrap.
_ACE_LOW_STRAIGHT = [14, 3, 2]


def evaluate_hand(cards: Sequence[Card]) -> Tuple[HandCategory, List[int]]:
    """Return ``(category, ranks)`` for a three-card hand. Higher compares better."""
    if len(cards) != 3:
        raise ValueError("A hand has exactly three cards")

    ranks = sorted((RANK_VALUE[card.rank] for card in cards), reverse=True)
    is_flush = len({card.suit for card in cards}) == 1

    counts = {}
    for value in ranks:
        counts[value] = counts.get(value, 0) + 1

    if len(counts) == 1:
        return HandCategory.TRIPLE, ranks

    straight = _straight_ranks(ranks)
    if straight and is_flush:
        return HandCategory.STRAIGHT_FLUSH, straight
    if is_flush:
        return HandCategory.FLUSH, ranks
    if straight:
        return HandCategory.STRAIGHT, straight
    if len(counts) == 2:
        pair = next(value for value, count in counts.items() if count == 2)
        kicker = next(value for value, count in counts.items() if count == 1)
        return HandCategory.PAIR, [pair, pair, kicker]
    return HandCategory.HIGH_CARD, ranks


def _straight_ranks(ranks: List[int]) -> List[int]:
    if ranks == _ACE_LOW_STRAIGHT:
        return [3, 2, 1]
    if ranks[0] - ranks[1] == 1 and ranks[1] - ranks[2] == 1:
        return list(ranks)
    return []


def _suit_key(cards: Sequence[Card]) -> List[Tuple[int, int]]:
    return sorted(((RANK_VALUE[card.rank], SUIT_VALUE[card.suit]) for card in cards), reverse=True)


def compare_hands(hand_a: Sequence[Card], hand_b: Sequence[Card]) -> int:
    """Three-way comparison: 1 if A wins, -1 if B wins, 0 only for identical cards.

    Category first, then the rank sequence. Equal rank sequences fall back to
    suits, card by card from the highest rank down.
    """
    score_a = evaluate_hand(hand_a)
    score_b = evaluate_hand(hand_b)
    if score_a != score_b:
        return 1 if score_a > score_b else -1

    suits_a = _suit_key(hand_a)
    suits_b = _suit_key(hand_b)
    if suits_a == suits_b:
        return 0
    return 1 if suits_a > suits_b else -1


def describe_hand(cards: Sequence[Card]) -> str:
    category, _ = evaluate_hand(cards)
    return category.name.lower()


def hand_strength(cards: Sequence[Card]) -> float:
    """Rough 0..1 strength, ordered by category then top card."""
    category, ranks = evaluate_hand(cards)
    return (int(category) + (ranks[0] - 1) / 14) / len(HandCategory)
