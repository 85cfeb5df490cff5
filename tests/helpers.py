from __future__ import annotations

import json
from typing import Iterable, List, Optional

from core.cards import parse_cards
from core.game import GameEngine, HandContext
from core.models import Phase, TableConfig


def create_engine(
    *,
    seats: int = 3,
    starting_chips: int = 10_000,
    ante: int = 100,
    host_is_human: bool = True,
    **overrides: object,
) -> GameEngine:
    """Instantiate an engine; seat 0 is the host, the rest start as bots."""
    config = TableConfig(
        seats=seats,
        starting_chips=starting_chips,
        ante=ante,
        host_is_human=host_is_human,
        **overrides,
    )
    return GameEngine(config)


def start_betting(engine: GameEngine, seed: int = 42, turn: Optional[int] = None) -> HandContext:
    """Start a hand, skip the dealing pause and optionally force who acts first."""
    ctx = engine.start_hand(seed=seed)
    engine.consume_pre_events()
    if turn is not None:
        ctx.turn_seat = turn
    engine.open_betting()
    assert ctx.phase == Phase.BETTING
    return ctx


def rig_cards(engine: GameEngine, seat_idx: int, labels: Iterable[str]) -> None:
    seat = engine.seats[seat_idx]
    seat.cards.clear()
    seat.cards.extend(parse_cards(list(labels)))


def play_out(engine: GameEngine, max_steps: int = 2_000) -> List[dict]:
    """Drive the current hand to showdown with the automated policy, checking chips after every step."""
    events: List[dict] = []
    for _ in range(max_steps):
        ctx = engine.hand
        assert ctx is not None
        if ctx.phase == Phase.SHOWDOWN:
            return events
        if ctx.phase == Phase.DEALING:
            events.extend(engine.consume_pre_events())
            events.extend(engine.open_betting())
        elif ctx.phase == Phase.RESOLVING:
            events.extend(engine.finish_compare())
        elif ctx.phase == Phase.COMPARING:
            events.extend(engine.choose_compare_target(ctx.compare_initiator))
        else:
            seat_idx = ctx.turn_seat
            action, amount = engine.automated_decision(seat_idx)
            events.extend(engine.apply_action(seat_idx, action, amount))
        assert engine.chips_in_play() == ctx.chips_in_play, "chips leaked"
    raise AssertionError("Hand did not finish")


# Fake sockets so we can exercise async paths without opening real connections.
class DummyWebSocket:
    def __init__(self) -> None:
        self.sent: List[str] = []
        self.closed = False

    async def send(self, message: str) -> None:
        self.sent.append(message)

    async def close(self, *args, **kwargs) -> None:
        self.closed = True

    def messages(self) -> List[dict]:
        return [json.loads(raw) for raw in self.sent]
