from __future__ import annotations

import argparse
import logging
from typing import Callable, Dict, List, Optional

from core.game import GameEngine
from core.models import ActionRejected, ActionType, Phase, TableConfig
from host.view import HELP, TableView, parse_command, render_table

LOGGER = logging.getLogger("zjh_practice")

HUMAN_SEAT = 0


class LocalTable:
    """One table played in-process: no replication, automated seats act inline.

    Scheduled steps of the networked host (dealing pace, bot think time,
    compare reveal) collapse into immediate calls here.
    """

    def __init__(self, config: TableConfig, log_event: Optional[Callable[[str], None]] = None) -> None:
        self.engine = GameEngine(config)
        self.log_event = log_event or (lambda message: LOGGER.info("%s", message))

    def start_hand(self, seed: Optional[int] = None) -> bool:
        if not self.engine.can_start_hand():
            LOGGER.info("Cannot start a hand: phase=%s", self.engine.phase.value)
            return False
        if self.engine.hand:
            self.engine.finish_hand()
        self.engine.start_hand(seed)
        self._emit(self.engine.consume_pre_events())
        self._emit(self.engine.open_betting())
        self.run_automated()
        return True

    def submit_action(
        self,
        seat_idx: int,
        action: ActionType,
        amount: Optional[int] = None,
        target: Optional[int] = None,
    ) -> bool:
        try:
            events = self.engine.apply_action(seat_idx, action, amount, target)
        except ActionRejected as exc:
            LOGGER.warning("Rejected %s from seat %s: %s", action.value, seat_idx, exc)
            return False
        self._emit(events)
        self.run_automated()
        return True

    def run_automated(self) -> None:
        """Advance the hand until a human must act or the hand is over."""
        engine = self.engine
        while engine.hand is not None:
            ctx = engine.hand
            if ctx.phase == Phase.RESOLVING:
                self._emit(engine.finish_compare())
            elif ctx.phase == Phase.COMPARING and ctx.compare_initiator is not None and engine.is_automated(
                ctx.compare_initiator
            ):
                self._emit(engine.choose_compare_target(ctx.compare_initiator))
            elif ctx.phase == Phase.BETTING and ctx.turn_seat is not None and engine.is_automated(ctx.turn_seat):
                self._emit(self._bot_turn(ctx.turn_seat))
            else:
                return

    def _bot_turn(self, seat_idx: int) -> List[Dict[str, object]]:
        action, amount = self.engine.automated_decision(seat_idx)
        try:
            return self.engine.apply_action(seat_idx, action, amount)
        except ActionRejected as exc:
            LOGGER.warning("Bot action %s rejected for seat %s (%s); folding", action.value, seat_idx, exc)
            return self.engine.apply_action(seat_idx, ActionType.FOLD)

    def waiting_for(self) -> Optional[int]:
        """Seat whose human input the hand is waiting on, if any."""
        ctx = self.engine.hand
        if ctx is None:
            return None
        if ctx.phase == Phase.COMPARING:
            return ctx.compare_initiator
        if ctx.phase == Phase.BETTING:
            return ctx.turn_seat
        return None

    def view(self, seat: int = HUMAN_SEAT) -> TableView:
        return TableView.from_snapshot(self.engine.snapshot_payload(viewer=seat))

    def _emit(self, events: List[Dict[str, object]]) -> None:
        for event in events:
            msg = event.get("msg")
            if msg:
                self.log_event(str(msg))


def play(table: LocalTable) -> None:
    while True:
        if not table.start_hand():
            print("Not enough chips left to play another hand.")
            return
        while table.waiting_for() == HUMAN_SEAT:
            view = table.view()
            print()
            print(render_table(view, HUMAN_SEAT))
            text = input("Your move (h=help): ")
            if text.strip().lower() in ("h", "help"):
                print(HELP)
                continue
            try:
                action, amount, target = parse_command(text, table.engine.legal_actions(HUMAN_SEAT))
            except ValueError as exc:
                print(exc)
                continue
            table.submit_action(HUMAN_SEAT, action, amount, target)
        print()
        print(render_table(table.view(), HUMAN_SEAT))
        if input("Another hand? [Y/n] ").strip().lower().startswith("n"):
            return


def main() -> None:
    parser = argparse.ArgumentParser(description="Play a local three-card table against two bots")
    parser.add_argument("--starting-chips", type=int, default=10_000)
    parser.add_argument("--ante", type=int, default=100)
    parser.add_argument("--aggression", type=float, default=1.0)
    args = parser.parse_args()

    config = TableConfig(starting_chips=args.starting_chips, ante=args.ante, aggression=args.aggression)
    play(LocalTable(config, log_event=print))


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
