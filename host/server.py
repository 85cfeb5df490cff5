from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import websockets

from core.game import HAND_SIZE, GameEngine
from core.models import ActionRejected, ActionRequest, ActionType, Phase, TableConfig

from . import protocol

LOGGER = logging.getLogger("zjh_host")

# HostServer glues the game engine to remote participants. It is the only
# writer of game state: every mutation happens under ``self.lock`` and is
# followed by a full snapshot to every remote seat before the lock is released.

Events = List[Dict[str, object]]


@dataclass
class RemoteSession:
    seat: int
    websocket: Any


@dataclass
class ScheduledStep:
    name: str
    generation: int
    task: asyncio.Task


class HostServer:
    def __init__(self, config: TableConfig) -> None:
        self.engine = GameEngine(config)
        self.config = config
        self.sessions: Dict[int, RemoteSession] = {}
        self.lock = asyncio.Lock()
        self.scheduled: Optional[ScheduledStep] = None

    async def start(self, host: str = "0.0.0.0", port: int = 8765) -> None:
        # websockets.serve keeps accepting participants until the process stops.
        async with websockets.serve(self._handle_connection, host, port):
            LOGGER.info("Host listening on %s:%s", host, port)
            await asyncio.Future()

    async def _handle_connection(self, websocket: Any) -> None:
        seat = await self.connect_remote(websocket)
        if seat is None:
            return
        try:
            async for raw in websocket:
                await self.handle_message(websocket, raw)
        except websockets.ConnectionClosed:
            pass
        finally:
            await self.disconnect_remote(websocket)

    # Connections -------------------------------------------------------

    async def connect_remote(self, websocket: Any) -> Optional[int]:
        """Seat a new participant; returns the seat or None when the table is full."""
        async with self.lock:
            try:
                seat = self.engine.claim_remote_seat()
            except RuntimeError:
                seat = None
            if seat is not None:
                self.sessions[seat.seat] = RemoteSession(seat=seat.seat, websocket=websocket)
                # The seat message goes out before this channel can see any snapshot.
                await self._send(websocket, protocol.seat_assign(seat.seat))
                LOGGER.info("Seat %s claimed by remote participant", seat.seat)
                await self._broadcast_locked([], log_line=f"{seat.name} joined seat {seat.seat}.")
                self._schedule_followup_locked()

        if seat is None:
            LOGGER.warning("Refusing connection: all remote seats are taken")
            try:
                await websocket.close(code=4001, reason="Table is full")
            except Exception:  # noqa: BLE001
                LOGGER.debug("Close of refused channel failed", exc_info=True)
            return None
        return seat.seat

    async def disconnect_remote(self, websocket: Any) -> None:
        async with self.lock:
            session = self._session_for(websocket)
            if session is None:
                return
            self.sessions.pop(session.seat, None)
            self.engine.release_remote_seat(session.seat)
            LOGGER.info("Seat %s disconnected; house bot takes over", session.seat)
            await self._broadcast_locked([], log_line=f"Seat {session.seat} left; a bot takes over.")
            self._schedule_followup_locked()

    def _session_for(self, websocket: Any) -> Optional[RemoteSession]:
        for session in self.sessions.values():
            if session.websocket is websocket:
                return session
        return None

    # Inbound -----------------------------------------------------------

    async def handle_message(self, websocket: Any, raw: Any) -> None:
        message = protocol.decode(raw)
        if protocol.message_type(message) != protocol.MessageType.ACTION:
            LOGGER.debug("Ignoring message type=%s", message.get("type"))
            return
        session = self._session_for(websocket)
        if session is None:
            LOGGER.warning("Action from a channel without a seat; ignoring")
            return
        try:
            request = ActionRequest.from_message(message)
        except ActionRejected as exc:
            LOGGER.warning("Rejected malformed action from seat %s: %s", session.seat, exc)
            return
        if request.seat != session.seat:
            LOGGER.warning("Seat %s tried to act for seat %s", session.seat, request.seat)
            return
        await self.submit_action(request.seat, request.action, request.amount, request.target)

    async def submit_action(
        self,
        seat_idx: int,
        action: ActionType,
        amount: Optional[int] = None,
        target: Optional[int] = None,
    ) -> bool:
        async with self.lock:
            try:
                events = self.engine.apply_action(seat_idx, action, amount, target)
            except ActionRejected as exc:
                LOGGER.warning(
                    "Rejected action seat=%s action=%s amount=%s target=%s reason=%s",
                    seat_idx,
                    action,
                    amount,
                    target,
                    exc,
                )
                return False
            LOGGER.debug("Applied action seat=%s action=%s amount=%s target=%s", seat_idx, action, amount, target)
            await self._commit_locked(events)
        return True

    async def start_hand(self, seed: Optional[int] = None) -> bool:
        async with self.lock:
            return await self._start_hand_locked(seed)

    async def _start_hand_locked(self, seed: Optional[int] = None) -> bool:
        if not self.engine.can_start_hand():
            LOGGER.warning("Cannot start a hand now (phase=%s)", self.engine.phase.value)
            return False
        if self.engine.hand:
            self.engine.finish_hand()
        ctx = self.engine.start_hand(seed)
        LOGGER.info("Hand %s started; dealer=%s pot=%s", ctx.hand_id, ctx.dealer, ctx.pot)
        await self._commit_locked(self.engine.consume_pre_events())
        return True

    # Outbound ----------------------------------------------------------

    async def _commit_locked(self, events: Events) -> None:
        for event in events:
            if event.get("ev") == "POT_AWARD" and self.engine.hand:
                LOGGER.info(
                    "Hand %s won by seat %s (%s chips)",
                    self.engine.hand.hand_id,
                    event.get("seat"),
                    event.get("amount"),
                )
        await self._broadcast_locked(events)
        self._schedule_followup_locked()

    async def _broadcast_locked(self, events: Events, log_line: Optional[str] = None) -> None:
        event = events[-1] if events else None
        if log_line is None:
            lines = [str(item["msg"]) for item in events if item.get("msg")]
            log_line = lines[-1] if lines else None
        targets = list(self.sessions.values())
        if not targets:
            return
        await asyncio.gather(
            *(
                self._send(
                    session.websocket,
                    protocol.state_snapshot(
                        self.engine.snapshot_payload(viewer=session.seat, event=event, log_line=log_line)
                    ),
                )
                for session in targets
            ),
            return_exceptions=True,
        )

    async def _send(self, websocket: Any, message: str) -> None:
        try:
            await websocket.send(message)
        except websockets.ConnectionClosed:
            LOGGER.debug("Skipping send to a closed channel")

    # Scheduled steps ---------------------------------------------------

    def _schedule_followup_locked(self) -> None:
        """Queue whatever the table needs next; earlier queued steps become stale."""
        self._cancel_scheduled()
        engine = self.engine
        ctx = engine.hand
        phase = engine.phase

        if phase == Phase.DEALING and ctx:
            dealt = sum(1 for seat in engine.seats if seat.cards)
            self._schedule("open_betting", self.config.deal_delay_ms * HAND_SIZE * dealt, self._step_open_betting)
        elif phase == Phase.RESOLVING:
            self._schedule("finish_compare", self.config.compare_delay_ms, self._step_finish_compare)
        elif phase == Phase.COMPARING and ctx and ctx.compare_initiator is not None:
            if engine.is_automated(ctx.compare_initiator):
                self._schedule("pick_target", self.config.bot_delay_ms, self._step_pick_target)
        elif phase == Phase.BETTING and ctx and ctx.turn_seat is not None:
            if engine.is_automated(ctx.turn_seat):
                self._schedule("bot_turn", self.config.bot_delay_ms, self._step_bot_turn)
        elif phase in (Phase.IDLE, Phase.SHOWDOWN):
            if self.config.next_hand_delay_ms > 0 and self.sessions:
                self._schedule("next_hand", self.config.next_hand_delay_ms, self._step_next_hand)

    def _schedule(self, name: str, delay_ms: int, step: Callable[[], Optional[Events]]) -> None:
        generation = self.engine.generation
        task = asyncio.create_task(self._run_step(name, generation, delay_ms, step))
        self.scheduled = ScheduledStep(name=name, generation=generation, task=task)

    def _cancel_scheduled(self) -> None:
        step = self.scheduled
        self.scheduled = None
        if step and not step.task.done() and step.task is not asyncio.current_task():
            step.task.cancel()

    async def _run_step(
        self,
        name: str,
        generation: int,
        delay_ms: int,
        step: Callable[[], Optional[Events]],
    ) -> None:
        await asyncio.sleep(delay_ms / 1000)
        async with self.lock:
            if self.engine.generation != generation:
                LOGGER.debug("Skipping stale step %s (generation %s, now %s)", name, generation, self.engine.generation)
                return
            events = step()
            if events is None:
                return
            await self._commit_locked(events)

    def _step_open_betting(self) -> Optional[Events]:
        if self.engine.phase != Phase.DEALING:
            return None
        return self.engine.open_betting()

    def _step_finish_compare(self) -> Optional[Events]:
        if self.engine.phase != Phase.RESOLVING:
            return None
        return self.engine.finish_compare()

    def _step_pick_target(self) -> Optional[Events]:
        ctx = self.engine.hand
        if ctx is None or ctx.phase != Phase.COMPARING or ctx.compare_initiator is None:
            return None
        if not self.engine.is_automated(ctx.compare_initiator):
            return None
        return self.engine.choose_compare_target(ctx.compare_initiator)

    def _step_bot_turn(self) -> Optional[Events]:
        ctx = self.engine.hand
        if ctx is None or ctx.phase != Phase.BETTING or ctx.turn_seat is None:
            return None
        seat_idx = ctx.turn_seat
        if not self.engine.is_automated(seat_idx):
            return None
        action, amount = self.engine.automated_decision(seat_idx)
        try:
            return self.engine.apply_action(seat_idx, action, amount)
        except ActionRejected as exc:
            LOGGER.warning("Bot action %s rejected for seat %s (%s); folding", action, seat_idx, exc)
            return self.engine.apply_action(seat_idx, ActionType.FOLD)

    def _step_next_hand(self) -> Optional[Events]:
        if not self.engine.can_start_hand():
            LOGGER.info("Not enough players can cover the ante; waiting")
            return None
        if self.engine.hand:
            self.engine.finish_hand()
        ctx = self.engine.start_hand()
        LOGGER.info("Hand %s started; dealer=%s pot=%s", ctx.hand_id, ctx.dealer, ctx.pot)
        return self.engine.consume_pre_events()

    async def wait_idle(self) -> None:
        """Run queued steps until nothing is pending (used by tests and shutdown)."""
        while self.scheduled is not None and not self.scheduled.task.done():
            await asyncio.gather(self.scheduled.task, return_exceptions=True)

    async def close(self) -> None:
        async with self.lock:
            self._cancel_scheduled()
