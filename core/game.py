from __future__ import annotations

import random
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List, Optional, Tuple

from .cards import Card, build_deck, cards_to_labels, deal
from .evaluator import compare_hands, describe_hand
from .models import ActionRejected, ActionType, Phase, PlayerSeat, PlayerStatus, TableConfig
from .policy import choose_action, choose_compare_target

# GameEngine keeps all table state in memory. No networking lives here, only
# betting rules, chip accounting, turn order and the compare sub-protocol.

BOT_NAMES = {1: "Alex (Bot)", 2: "Bella (Bot)"}
HAND_SIZE = 3


@dataclass
class CompareResult:
    initiator: int
    target: int
    winner: int
    loser: int


@dataclass
class HandContext:
    # All mutable info about the current hand (deck, pot, turn, compare state).
    hand_id: str
    seed: int
    rng: random.Random
    deck: List[Card]
    phase: Phase = Phase.DEALING
    pot: int = 0
    round_bet: int = 0
    turn_seat: Optional[int] = None
    dealer: Optional[int] = None
    compare_initiator: Optional[int] = None
    compare: Optional[CompareResult] = None
    winner_seat: Optional[int] = None
    chips_in_play: int = 0
    log: Deque[str] = field(default_factory=deque)
    pre_events: List[Dict[str, object]] = field(default_factory=list)


class GameEngine:
    """Three-card comparing game ("Zha Jin Hua") for a single table of up to three seats."""

    def __init__(self, config: TableConfig) -> None:
        config.validate()
        self.config = config
        self.seats: List[PlayerSeat] = [self._house_seat(idx) for idx in range(config.seats)]
        self.hand_counter = 0
        self.generation = 0
        self.hand: Optional[HandContext] = None

    @property
    def phase(self) -> Phase:
        return self.hand.phase if self.hand else Phase.IDLE

    # Seat management -------------------------------------------------

    def _house_seat(self, idx: int) -> PlayerSeat:
        if idx == 0:
            return PlayerSeat(
                seat=0,
                name="Host" if self.config.host_is_human else "House (Bot)",
                is_human=self.config.host_is_human,
                chips=self.config.starting_chips,
            )
        return PlayerSeat(seat=idx, name=self._bot_name(idx), is_human=False, chips=self.config.starting_chips)

    def _bot_name(self, idx: int) -> str:
        return BOT_NAMES.get(idx, f"Bot {idx}")

    def claim_remote_seat(self, name: Optional[str] = None) -> PlayerSeat:
        """Hand the lowest automated remote seat to a newly connected participant."""
        for seat in self.seats[1:]:
            if seat.connected:
                continue
            seat.connected = True
            seat.is_human = True
            display = name.strip() if isinstance(name, str) else ""
            seat.name = display or f"Player {seat.seat}"
            self._touch()
            return seat
        raise RuntimeError("Table is full")

    def release_remote_seat(self, seat_idx: int) -> None:
        if seat_idx <= 0 or seat_idx >= len(self.seats):
            return
        seat = self.seats[seat_idx]
        if not seat.connected:
            return
        # The seat keeps its chips and hand; the house bot plays it from here on.
        seat.connected = False
        seat.is_human = False
        seat.name = self._bot_name(seat_idx)
        self._touch()

    def remote_seats(self) -> List[int]:
        return [seat.seat for seat in self.seats if seat.connected]

    # Hand lifecycle --------------------------------------------------

    def can_start_hand(self) -> bool:
        if self.hand and self.hand.phase != Phase.SHOWDOWN:
            return False
        eligible = [seat for seat in self.seats if seat.chips >= self.config.ante]
        return len(eligible) >= 2

    def start_hand(self, seed: Optional[int] = None) -> HandContext:
        if self.hand and self.hand.phase != Phase.SHOWDOWN:
            raise RuntimeError("Hand already in progress")
        eligible = [seat for seat in self.seats if seat.chips >= self.config.ante]
        if len(eligible) < 2:
            raise RuntimeError("Not enough players with chips for the ante")

        if seed is None:
            seed = int(time.time() * 1000) & 0xFFFFFFFF

        hand_id = f"H-{time.strftime('%Y%m%d')}-{self.hand_counter:05d}"
        self.hand_counter += 1

        ctx = HandContext(
            hand_id=hand_id,
            seed=seed,
            rng=random.Random(f"table-{seed}"),
            deck=build_deck(seed),
            phase=Phase.DEALING,
            round_bet=self.config.ante,
            log=deque(maxlen=self.config.log_limit),
        )
        self.hand = ctx
        self._log(ctx, "Hand started. Dealing cards...")

        self._collect_antes(ctx)
        dealer = ctx.rng.choice(eligible)
        dealer.is_dealer = True
        ctx.dealer = dealer.seat
        self._deal_cards(ctx)
        ctx.turn_seat = ctx.rng.choice(eligible).seat
        ctx.chips_in_play = self.chips_in_play()

        ctx.pre_events.append(
            {
                "ev": "DEAL",
                "dealer": ctx.dealer,
                "ante": self.config.ante,
                "seats": [seat.seat for seat in eligible],
                "msg": self._log(ctx, f"{dealer.name} deals. Ante {self.config.ante} collected, pot {ctx.pot}."),
            }
        )
        self._touch()
        return ctx

    def _collect_antes(self, ctx: HandContext) -> None:
        ante = self.config.ante
        for seat in self.seats:
            seat.reset_for_hand()
            if seat.chips >= ante:
                self._commit_chips(seat, ante, ctx)
                seat.current_bet = 0
                seat.status = PlayerStatus.PLAYING
            else:
                seat.status = PlayerStatus.LOST
                self._log(ctx, f"{seat.name} cannot cover the ante and sits this hand out.")

    def _deal_cards(self, ctx: HandContext) -> None:
        assert ctx.dealer is not None
        ordered = [idx for idx in self._rotation_from(ctx.dealer + 1) if self.seats[idx].is_playing]
        for _ in range(HAND_SIZE):
            for seat_idx in ordered:
                self.seats[seat_idx].cards.extend(deal(ctx.deck, 1))

    def consume_pre_events(self) -> List[Dict[str, object]]:
        if not self.hand:
            return []
        events = list(self.hand.pre_events)
        self.hand.pre_events.clear()
        return events

    def open_betting(self) -> List[Dict[str, object]]:
        ctx = self._require_hand()
        if ctx.phase != Phase.DEALING:
            raise ActionRejected("BAD_PHASE", "Cards are not being dealt")
        ctx.phase = Phase.BETTING
        events = [self._event(ctx, "BETTING_OPEN", "Betting started.", seat=ctx.turn_seat)]
        events.extend(self._check_lone_survivor(ctx))
        self._touch()
        return events

    def finish_hand(self) -> None:
        if self.hand and self.hand.phase != Phase.SHOWDOWN:
            raise RuntimeError("Hand still in progress")
        self.hand = None
        for seat in self.seats:
            seat.reset_for_hand()
        self._touch()

    # Action handling -------------------------------------------------

    def legal_actions(self, seat_idx: int) -> List[ActionType]:
        ctx = self.hand
        if ctx is None or not 0 <= seat_idx < len(self.seats):
            return []
        seat = self.seats[seat_idx]
        if ctx.phase == Phase.COMPARING and ctx.compare_initiator == seat_idx:
            return [ActionType.COMPARE_TARGET]
        if ctx.phase != Phase.BETTING or ctx.turn_seat != seat_idx or not seat.is_playing:
            return []

        # A broke seat stays in: CALL and ALL_IN pass for free, COMPARE costs nothing.
        legal = [ActionType.FOLD, ActionType.SEE_CARDS, ActionType.CALL]
        if seat.chips > ctx.round_bet:
            legal.append(ActionType.RAISE)
        legal.append(ActionType.ALL_IN)
        if self._compare_fee(ctx, seat) <= seat.chips and self.compare_candidates(seat_idx):
            legal.append(ActionType.COMPARE_INIT)
        return legal

    def compare_candidates(self, seat_idx: int) -> List[int]:
        return [seat.seat for seat in self.seats if seat.is_playing and seat.seat != seat_idx]

    def apply_action(
        self,
        seat_idx: int,
        action: ActionType,
        amount: Optional[int] = None,
        target: Optional[int] = None,
    ) -> List[Dict[str, object]]:
        ctx = self.hand
        if ctx is None:
            raise ActionRejected("NO_HAND", "Hand not active")
        if not 0 <= seat_idx < len(self.seats):
            raise ActionRejected("OUT_OF_TURN", f"Unknown seat {seat_idx}")
        seat = self.seats[seat_idx]

        # Each branch records what happened so the server can broadcast it.
        if action == ActionType.COMPARE_TARGET:
            events = self._select_target(ctx, seat, target)
        else:
            self._require_turn(ctx, seat)
            if action == ActionType.FOLD:
                events = self._fold(ctx, seat)
            elif action == ActionType.CALL:
                events = self._call(ctx, seat)
            elif action == ActionType.RAISE:
                events = self._raise(ctx, seat, amount)
            elif action == ActionType.ALL_IN:
                events = self._all_in(ctx, seat)
            elif action == ActionType.SEE_CARDS:
                events = self._see_cards(ctx, seat)
            elif action == ActionType.COMPARE_INIT:
                events = self._initiate_compare(ctx, seat)
            else:
                raise ActionRejected("BAD_SCHEMA", f"Unsupported action {action}")

        self._touch()
        return events

    def _require_turn(self, ctx: HandContext, seat: PlayerSeat) -> None:
        if ctx.phase != Phase.BETTING:
            raise ActionRejected("BAD_PHASE", f"Cannot act during {ctx.phase.value}")
        if ctx.turn_seat != seat.seat:
            raise ActionRejected("OUT_OF_TURN", "Not your turn")
        if not seat.is_playing:
            raise ActionRejected("NOT_PLAYING", "Seat is out of the hand")

    def _fold(self, ctx: HandContext, seat: PlayerSeat) -> List[Dict[str, object]]:
        seat.status = PlayerStatus.FOLDED
        seat.last_action = "FOLD"
        events = [self._event(ctx, "FOLD", f"{seat.name} folds.", seat=seat.seat)]
        events.extend(self._end_turn(ctx, seat.seat))
        return events

    def _call(self, ctx: HandContext, seat: PlayerSeat) -> List[Dict[str, object]]:
        to_call = max(ctx.round_bet - seat.current_bet, 0)
        if seat.chips < to_call:
            return self._all_in(ctx, seat)

        self._commit_chips(seat, to_call, ctx)
        if to_call:
            seat.last_action = f"CALL {to_call}"
            msg = f"{seat.name} calls {to_call}."
        else:
            seat.last_action = "CALL"
            msg = f"{seat.name} is already settled."
        events = [self._event(ctx, "CALL", msg, seat=seat.seat, amount=to_call)]
        events.extend(self._end_turn(ctx, seat.seat))
        return events

    def _raise(self, ctx: HandContext, seat: PlayerSeat, amount: Optional[int]) -> List[Dict[str, object]]:
        if amount is None:
            raise ActionRejected("BAD_SCHEMA", "Raise requires amount")
        if amount <= ctx.round_bet:
            raise ActionRejected("BAD_AMOUNT", "Raise must exceed the round bet")
        if amount > seat.chips:
            raise ActionRejected("INSUFFICIENT_CHIPS", "Raise exceeds chips")

        self._commit_chips(seat, amount, ctx)
        ctx.round_bet = amount
        seat.last_action = f"RAISE {amount}"
        events = [self._event(ctx, "RAISE", f"{seat.name} raises to {amount}.", seat=seat.seat, amount=amount)]
        events.extend(self._end_turn(ctx, seat.seat))
        return events

    def _all_in(self, ctx: HandContext, seat: PlayerSeat) -> List[Dict[str, object]]:
        amount = seat.chips
        if amount == 0:
            seat.last_action = "ALL IN"
            events = [self._event(ctx, "ALL_IN", f"{seat.name} is all-in and stays in.", seat=seat.seat, amount=0)]
            events.extend(self._end_turn(ctx, seat.seat))
            return events

        self._commit_chips(seat, amount, ctx)
        if amount > ctx.round_bet:
            ctx.round_bet = amount
        seat.last_action = "ALL IN"
        events = [self._event(ctx, "ALL_IN", f"{seat.name} goes all-in ({amount})!", seat=seat.seat, amount=amount)]
        events.extend(self._end_turn(ctx, seat.seat))
        return events

    def _see_cards(self, ctx: HandContext, seat: PlayerSeat) -> List[Dict[str, object]]:
        # Looking is free and keeps the turn.
        seat.has_seen_cards = True
        seat.last_action = "LOOK"
        return [self._event(ctx, "SEE_CARDS", f"{seat.name} looks at their cards.", seat=seat.seat)]

    # Compare ("PK") --------------------------------------------------

    def _initiate_compare(self, ctx: HandContext, seat: PlayerSeat) -> List[Dict[str, object]]:
        fee = self._compare_fee(ctx, seat)
        if fee > seat.chips:
            raise ActionRejected("INSUFFICIENT_CHIPS", "Cannot afford the compare fee")
        candidates = self.compare_candidates(seat.seat)
        if not candidates:
            raise ActionRejected("BAD_TARGET", "Nobody left to compare against")

        self._commit_chips(seat, fee, ctx)
        ctx.phase = Phase.COMPARING
        ctx.compare_initiator = seat.seat
        seat.last_action = "COMPARE"
        events = [
            self._event(ctx, "COMPARE_INIT", f"{seat.name} pays {fee} to compare...", seat=seat.seat, amount=fee)
        ]
        if not seat.is_human:
            target = choose_compare_target(candidates, ctx.rng)
            events.extend(self._resolve_compare(ctx, seat.seat, target))
        return events

    def _compare_fee(self, ctx: HandContext, seat: PlayerSeat) -> int:
        # A seat that is already all-in compares for free.
        return ctx.round_bet if seat.chips > 0 else 0

    def choose_compare_target(self, seat_idx: int) -> List[Dict[str, object]]:
        """Pick a random target for an initiator that can no longer choose one itself."""
        ctx = self._require_hand()
        if ctx.phase != Phase.COMPARING or ctx.compare_initiator != seat_idx:
            raise ActionRejected("BAD_PHASE", "No compare awaiting a target")
        target = choose_compare_target(self.compare_candidates(seat_idx), ctx.rng)
        events = self._resolve_compare(ctx, seat_idx, target)
        self._touch()
        return events

    def _select_target(self, ctx: HandContext, seat: PlayerSeat, target: Optional[int]) -> List[Dict[str, object]]:
        if ctx.phase != Phase.COMPARING:
            raise ActionRejected("BAD_PHASE", "No compare awaiting a target")
        if ctx.compare_initiator != seat.seat:
            raise ActionRejected("OUT_OF_TURN", "Only the compare initiator picks a target")
        if target is None:
            raise ActionRejected("BAD_SCHEMA", "Compare requires a target")
        if target not in self.compare_candidates(seat.seat):
            raise ActionRejected("BAD_TARGET", f"Seat {target} cannot be challenged")
        return self._resolve_compare(ctx, seat.seat, target)

    def _resolve_compare(self, ctx: HandContext, initiator_idx: int, target_idx: int) -> List[Dict[str, object]]:
        ctx.phase = Phase.RESOLVING
        initiator = self.seats[initiator_idx]
        target = self.seats[target_idx]

        # Identical hands cannot occur within one deck; if they did, the challenger loses.
        outcome = compare_hands(initiator.cards, target.cards)
        winner, loser = (initiator, target) if outcome > 0 else (target, initiator)
        loser.status = PlayerStatus.LOST
        loser.last_action = "LOST PK"
        winner.last_action = "WON PK"
        ctx.compare = CompareResult(
            initiator=initiator_idx,
            target=target_idx,
            winner=winner.seat,
            loser=loser.seat,
        )

        self._log(ctx, f"{initiator.name} challenges {target.name}...")
        return [
            self._event(
                ctx,
                "COMPARE_START",
                f"Result: {winner.name} wins the comparison!",
                initiator=initiator_idx,
                target=target_idx,
                winner=winner.seat,
                loser=loser.seat,
                hands=[
                    {
                        "seat": seat.seat,
                        "cards": cards_to_labels(seat.cards),
                        "rank": describe_hand(seat.cards),
                    }
                    for seat in (initiator, target)
                ],
            )
        ]

    def finish_compare(self) -> List[Dict[str, object]]:
        ctx = self._require_hand()
        if ctx.phase != Phase.RESOLVING or ctx.compare is None:
            raise ActionRejected("BAD_PHASE", "No compare to resolve")
        result = ctx.compare
        ctx.phase = Phase.BETTING
        ctx.compare_initiator = None
        ctx.compare = None
        events: List[Dict[str, object]] = [
            {"ev": "COMPARE_DONE", "winner": result.winner, "loser": result.loser}
        ]
        events.extend(self._end_turn(ctx, result.initiator))
        self._touch()
        return events

    # Turn rotation / settlement --------------------------------------

    def _end_turn(self, ctx: HandContext, from_seat: int) -> List[Dict[str, object]]:
        events = self._check_lone_survivor(ctx)
        if events:
            return events
        next_seat = self._next_playing_seat(from_seat)
        ctx.turn_seat = next_seat
        player = self.seats[next_seat]
        player.current_bet = 0
        player.last_action = None
        return events

    def _check_lone_survivor(self, ctx: HandContext) -> List[Dict[str, object]]:
        if ctx.phase in (Phase.DEALING, Phase.RESOLVING, Phase.SHOWDOWN):
            return []
        playing = [seat for seat in self.seats if seat.is_playing]
        if len(playing) != 1:
            return []
        return self._declare_winner(ctx, playing[0])

    def _declare_winner(self, ctx: HandContext, winner: PlayerSeat) -> List[Dict[str, object]]:
        amount = ctx.pot
        winner.chips += amount
        ctx.pot = 0
        ctx.phase = Phase.SHOWDOWN
        ctx.winner_seat = winner.seat
        ctx.turn_seat = None
        ctx.compare_initiator = None
        ctx.compare = None
        for seat in self.seats:
            if seat.cards:
                seat.has_seen_cards = True
        return [
            self._event(
                ctx,
                "POT_AWARD",
                f"*** {winner.name} wins the pot ({amount}) ***",
                seat=winner.seat,
                amount=amount,
            )
        ]

    def _rotation_from(self, start: int) -> List[int]:
        count = len(self.seats)
        return [(start + step) % count for step in range(count)]

    def _next_playing_seat(self, start: int) -> int:
        for idx in self._rotation_from(start + 1):
            if self.seats[idx].is_playing:
                return idx
        raise RuntimeError("No playing seats left")

    def _commit_chips(self, seat: PlayerSeat, amount: int, ctx: HandContext) -> None:
        amount = min(amount, seat.chips)
        seat.chips -= amount
        seat.current_bet += amount
        ctx.pot += amount

    # Automated seats ---------------------------------------------------

    def is_automated(self, seat_idx: int) -> bool:
        return not self.seats[seat_idx].is_human

    def automated_decision(self, seat_idx: int) -> Tuple[ActionType, Optional[int]]:
        ctx = self._require_hand()
        seat = self.seats[seat_idx]
        return choose_action(
            seat.cards,
            to_call=max(ctx.round_bet - seat.current_bet, 0),
            pot=ctx.pot,
            chips=seat.chips,
            round_bet=ctx.round_bet,
            aggression=self.config.aggression,
            rng=ctx.rng,
            raise_step=self.config.raise_step,
        )

    # Public/Snapshot helpers -----------------------------------------

    def chips_in_play(self) -> int:
        pot = self.hand.pot if self.hand else 0
        return pot + sum(seat.chips for seat in self.seats)

    def snapshot_payload(
        self,
        viewer: Optional[int] = None,
        event: Optional[Dict[str, object]] = None,
        log_line: Optional[str] = None,
    ) -> Dict[str, object]:
        """Full table state as seen by ``viewer`` (None = the authority, sees every card)."""
        ctx = self.hand
        phase = self.phase
        payload: Dict[str, object] = {
            "hand_id": ctx.hand_id if ctx else None,
            "generation": self.generation,
            "phase": phase.value,
            "pot": ctx.pot if ctx else 0,
            "round_bet": ctx.round_bet if ctx else 0,
            "turn_seat": ctx.turn_seat if ctx else None,
            "winner_seat": ctx.winner_seat if ctx else None,
            "compare_initiator": ctx.compare_initiator if ctx else None,
            "players": [self._player_payload(seat, viewer, phase) for seat in self.seats],
            "log": list(ctx.log) if ctx else [],
        }
        if viewer is not None:
            payload["legal_actions"] = [action.value for action in self.legal_actions(viewer)]
        if event is not None:
            payload["event"] = event
        if log_line is not None:
            payload["log_line"] = log_line
        return payload

    def _player_payload(self, seat: PlayerSeat, viewer: Optional[int], phase: Phase) -> Dict[str, object]:
        visible = viewer is None or phase == Phase.SHOWDOWN or (seat.seat == viewer and seat.has_seen_cards)
        return {
            "seat": seat.seat,
            "name": seat.name,
            "is_human": seat.is_human,
            "connected": seat.connected,
            "chips": seat.chips,
            "cards": cards_to_labels(seat.cards) if visible else [],
            "card_count": len(seat.cards),
            "has_seen_cards": seat.has_seen_cards,
            "status": seat.status.value,
            "current_bet": seat.current_bet,
            "is_dealer": seat.is_dealer,
            "last_action": seat.last_action,
        }

    # Internals -------------------------------------------------------

    def _require_hand(self) -> HandContext:
        if not self.hand:
            raise ActionRejected("NO_HAND", "Hand not active")
        return self.hand

    def _touch(self) -> None:
        self.generation += 1

    def _log(self, ctx: HandContext, message: str) -> str:
        ctx.log.append(message)
        return message

    def _event(self, ctx: HandContext, ev: str, msg: str, **data: object) -> Dict[str, object]:
        event: Dict[str, object] = {"ev": ev, "msg": self._log(ctx, msg)}
        event.update(data)
        return event
