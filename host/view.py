from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from core.models import ActionType

# Read-only replica of a STATE_SNAPSHOT plus the terminal helpers shared by the
# remote client and local practice play.


@dataclass
class PlayerView:
    seat: int
    name: str
    chips: int = 0
    is_human: bool = False
    connected: bool = False
    cards: List[str] = field(default_factory=list)
    card_count: int = 0
    has_seen_cards: bool = False
    status: str = "WAITING"
    current_bet: int = 0
    is_dealer: bool = False
    last_action: Optional[str] = None

    @classmethod
    def from_payload(cls, data: Dict[str, Any]) -> "PlayerView":
        return cls(
            seat=int(data.get("seat", 0)),
            name=str(data.get("name", "")),
            chips=int(data.get("chips", 0)),
            is_human=bool(data.get("is_human", False)),
            connected=bool(data.get("connected", False)),
            cards=list(data.get("cards") or []),
            card_count=int(data.get("card_count", 0)),
            has_seen_cards=bool(data.get("has_seen_cards", False)),
            status=str(data.get("status", "WAITING")),
            current_bet=int(data.get("current_bet", 0)),
            is_dealer=bool(data.get("is_dealer", False)),
            last_action=data.get("last_action"),
        )


@dataclass
class TableView:
    phase: str = "IDLE"
    pot: int = 0
    round_bet: int = 0
    turn_seat: Optional[int] = None
    winner_seat: Optional[int] = None
    compare_initiator: Optional[int] = None
    hand_id: Optional[str] = None
    generation: int = 0
    players: List[PlayerView] = field(default_factory=list)
    log: List[str] = field(default_factory=list)
    event: Optional[Dict[str, Any]] = None
    log_line: Optional[str] = None
    legal: List[ActionType] = field(default_factory=list)

    @classmethod
    def from_snapshot(cls, payload: Dict[str, Any]) -> "TableView":
        """Build a fresh view; nothing from any earlier view survives."""
        return cls(
            phase=str(payload.get("phase", "IDLE")),
            pot=int(payload.get("pot", 0)),
            round_bet=int(payload.get("round_bet", 0)),
            turn_seat=payload.get("turn_seat"),
            winner_seat=payload.get("winner_seat"),
            compare_initiator=payload.get("compare_initiator"),
            hand_id=payload.get("hand_id"),
            generation=int(payload.get("generation", 0)),
            players=[PlayerView.from_payload(item) for item in payload.get("players") or []],
            log=list(payload.get("log") or []),
            event=payload.get("event"),
            log_line=payload.get("log_line"),
            legal=_parse_actions(payload.get("legal_actions")),
        )

    def player(self, seat: int) -> Optional[PlayerView]:
        for player in self.players:
            if player.seat == seat:
                return player
        return None

    def legal_actions(self) -> List[ActionType]:
        """What the authority accepts from this view's seat right now."""
        return list(self.legal)

    def compare_targets(self, seat: int) -> List[int]:
        return [player.seat for player in self.players if player.status == "PLAYING" and player.seat != seat]


def _parse_actions(values: Any) -> List[ActionType]:
    actions = []
    for value in values or []:
        try:
            actions.append(ActionType(value))
        except ValueError:
            continue
    return actions


COMMANDS = {
    "F": ActionType.FOLD,
    "C": ActionType.CALL,
    "R": ActionType.RAISE,
    "A": ActionType.ALL_IN,
    "S": ActionType.SEE_CARDS,
    "P": ActionType.COMPARE_INIT,
    "T": ActionType.COMPARE_TARGET,
}

HELP = "f=fold c=call r <amount>=raise a=all-in s=see cards p=compare t <seat>=pick compare target"


def parse_command(text: str, legal: List[ActionType]) -> Tuple[ActionType, Optional[int], Optional[int]]:
    """Turn a terminal command into (action, amount, target); raises ValueError if unusable."""
    parts = text.strip().upper().split()
    if not parts:
        raise ValueError("Empty command")
    action = COMMANDS.get(parts[0][0])
    if action is None:
        raise ValueError(f"Unknown command {parts[0]!r}")
    if action not in legal:
        raise ValueError(f"{action.value} is not available now")

    amount = target = None
    if action in (ActionType.RAISE, ActionType.COMPARE_TARGET):
        if len(parts) < 2:
            raise ValueError(f"{action.value} needs a number")
        try:
            number = int(parts[1])
        except ValueError:
            raise ValueError("Enter a valid integer") from None
        if action == ActionType.RAISE:
            amount = number
        else:
            target = number
    return action, amount, target


def render_table(view: TableView, seat: Optional[int] = None) -> str:
    lines = [f"--- {view.hand_id or 'no hand'} | {view.phase} | pot {view.pot} | round bet {view.round_bet} ---"]
    for player in view.players:
        marker = ">" if view.turn_seat == player.seat else " "
        dealer = " (D)" if player.is_dealer else ""
        you = " <you>" if player.seat == seat else ""
        if player.cards:
            cards = " ".join(player.cards)
        elif player.card_count:
            cards = "[hidden x%d]" % player.card_count
        else:
            cards = "-"
        action = f" [{player.last_action}]" if player.last_action else ""
        lines.append(
            f"{marker} {player.seat}: {player.name}{dealer}{you} chips={player.chips} "
            f"{player.status} {cards}{action}"
        )
    if view.winner_seat is not None:
        winner = view.player(view.winner_seat)
        lines.append(f"Winner: {winner.name if winner else view.winner_seat}")
    if view.log_line:
        lines.append(f"* {view.log_line}")
    return "\n".join(lines)
