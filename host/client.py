from __future__ import annotations

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional

import websockets
from websockets.asyncio.client import ClientConnection

from core.models import ActionRequest, ActionType

from . import protocol
from .view import HELP, TableView, parse_command, render_table

LOGGER = logging.getLogger("zjh_client")

# RemoteParticipant keeps a replica of the authority's table. It never changes
# game state itself: it only replaces its view with each snapshot and forwards
# the player's intents as ACTION messages.

UpdateHook = Callable[["RemoteParticipant"], Awaitable[None]]


class RemoteParticipant:
    def __init__(self, url: str) -> None:
        self.url = url
        self.websocket: Optional[ClientConnection] = None
        self.seat: Optional[int] = None
        self.table: Optional[TableView] = None
        self.recent_logs: Deque[str] = deque(maxlen=8)

    async def run(self, on_update: Optional[UpdateHook] = None) -> None:
        async with websockets.connect(self.url) as ws:
            self.websocket = ws
            try:
                async for raw in ws:
                    kind = self.apply_message(protocol.decode(raw))
                    if kind is not None and on_update is not None:
                        await on_update(self)
            except websockets.ConnectionClosed:
                LOGGER.info("Connection to host closed")
            finally:
                self.websocket = None

    def apply_message(self, message: Dict[str, Any]) -> Optional[protocol.MessageType]:
        kind = protocol.message_type(message)
        if kind == protocol.MessageType.SEAT_ASSIGN:
            seat = message.get("seat")
            if isinstance(seat, int):
                self.seat = seat
                LOGGER.info("Assigned seat %s", seat)
            return kind
        if kind == protocol.MessageType.STATE_SNAPSHOT:
            self.table = TableView.from_snapshot(message)
            if self.table.log_line:
                self.recent_logs.append(self.table.log_line)
            return kind
        LOGGER.debug("Ignoring message type=%s", message.get("type"))
        return None

    def is_my_turn(self) -> bool:
        return bool(self.legal_actions())

    def legal_actions(self) -> List[ActionType]:
        if self.table is None:
            return []
        return self.table.legal_actions()

    async def send_action(
        self,
        action: ActionType,
        amount: Optional[int] = None,
        target: Optional[int] = None,
    ) -> bool:
        """Best effort: the authority may still reject it, in which case nothing changes."""
        if self.websocket is None or self.seat is None:
            LOGGER.warning("Not seated yet; dropping %s", action.value)
            return False
        request = ActionRequest(seat=self.seat, action=action, amount=amount, target=target)
        try:
            await self.websocket.send(protocol.action(request))
        except websockets.ConnectionClosed:
            LOGGER.warning("Connection closed before %s could be sent", action.value)
            return False
        return True


async def prompt_turn(participant: RemoteParticipant) -> None:
    table = participant.table
    if table is None:
        return
    print()
    print(render_table(table, participant.seat))
    legal = participant.legal_actions()
    if not legal:
        return
    while True:
        text = await asyncio.to_thread(input, "Your move (h=help): ")
        if text.strip().lower() in ("h", "help"):
            print(HELP)
            targets = table.compare_targets(participant.seat) if participant.seat is not None else []
            print(f"Available: {', '.join(a.value for a in legal)}; compare targets: {targets}")
            continue
        try:
            action, amount, target = parse_command(text, legal)
        except ValueError as exc:
            print(exc)
            continue
        await participant.send_action(action, amount, target)
        return


async def run_terminal(url: str) -> None:
    participant = RemoteParticipant(url)
    await participant.run(prompt_turn)
