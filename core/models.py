from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, List, Optional

from .cards import Card


class Phase(str, Enum):
    IDLE = "IDLE"
    DEALING = "DEALING"
    BETTING = "BETTING"
    COMPARING = "COMPARING"
    RESOLVING = "RESOLVING"
    SHOWDOWN = "SHOWDOWN"


class PlayerStatus(str, Enum):
    WAITING = "WAITING"
    PLAYING = "PLAYING"
    FOLDED = "FOLDED"
    LOST = "LOST"


class ActionType(str, Enum):
    FOLD = "FOLD"
    CALL = "CALL"
    RAISE = "RAISE"
    ALL_IN = "ALL_IN"
    SEE_CARDS = "SEE_CARDS"
    COMPARE_INIT = "COMPARE_INIT"
    COMPARE_TARGET = "COMPARE_TARGET"


class HandCategory(IntEnum):
    HIGH_CARD = 0
    PAIR = 1
    STRAIGHT = 2
    FLUSH = 3
    STRAIGHT_FLUSH = 4
    TRIPLE = 5


class ActionRejected(ValueError):
    """Raised when an action cannot be applied; state is left untouched."""

    def __init__(self, code: str, msg: str) -> None:
        super().__init__(msg)
        self.code = code
        self.msg = msg


@dataclass
class TableConfig:
    seats: int = 3
    starting_chips: int = 10_000
    ante: int = 100
    raise_step: int = 1_000
    aggression: float = 1.0
    log_limit: int = 50
    deal_delay_ms: int = 150
    bot_delay_ms: int = 1_500
    compare_delay_ms: int = 3_000
    next_hand_delay_ms: int = 0
    host_is_human: bool = True

    def validate(self) -> None:
        if not 2 <= self.seats <= 3:
            raise ValueError("Table supports two or three seats")
        if self.ante <= 0:
            raise ValueError("Ante must be positive")
        if self.starting_chips < 0:
            raise ValueError("Starting chips cannot be negative")


@dataclass
class PlayerSeat:
    seat: int
    name: str
    is_human: bool
    chips: int
    connected: bool = False
    cards: List[Card] = field(default_factory=list)
    has_seen_cards: bool = False
    status: PlayerStatus = PlayerStatus.WAITING
    current_bet: int = 0
    is_dealer: bool = False
    last_action: Optional[str] = None

    def reset_for_hand(self) -> None:
        self.cards.clear()
        self.has_seen_cards = False
        self.status = PlayerStatus.WAITING
        self.current_bet = 0
        self.is_dealer = False
        self.last_action = None

    @property
    def is_playing(self) -> bool:
        return self.status == PlayerStatus.PLAYING


@dataclass
class ActionRequest:
    seat: int
    action: ActionType
    amount: Optional[int] = None
    target: Optional[int] = None

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> "ActionRequest":
        """Validate an ``ACTION`` payload; raises ActionRejected on bad schema."""
        seat = message.get("seat")
        if not isinstance(seat, int) or isinstance(seat, bool):
            raise ActionRejected("BAD_SCHEMA", "seat required")
        try:
            action = ActionType(message.get("kind"))
        except ValueError:
            raise ActionRejected("BAD_SCHEMA", "Unknown action kind") from None

        amount = message.get("amount")
        target = message.get("target")
        if action == ActionType.RAISE and (not isinstance(amount, int) or isinstance(amount, bool)):
            raise ActionRejected("BAD_SCHEMA", "amount required for raise")
        if action == ActionType.COMPARE_TARGET and (not isinstance(target, int) or isinstance(target, bool)):
            raise ActionRejected("BAD_SCHEMA", "target required for compare")
        return cls(
            seat=seat,
            action=action,
            amount=amount if action == ActionType.RAISE else None,
            target=target if action == ActionType.COMPARE_TARGET else None,
        )

    def to_message(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"seat": self.seat, "kind": self.action.value}
        if self.amount is not None:
            payload["amount"] = self.amount
        if self.target is not None:
            payload["target"] = self.target
        return payload
