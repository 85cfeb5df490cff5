"""Wire messages exchanged between the authority and remote participants.

Every message is one JSON object: ``{"type": ..., "v": 1, "ts": ..., **payload}``.
Only three kinds exist; anything else is ignored by both ends.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from core.models import ActionRequest

PROTOCOL_VERSION = 1


class MessageType(str, Enum):
    SEAT_ASSIGN = "SEAT_ASSIGN"
    STATE_SNAPSHOT = "STATE_SNAPSHOT"
    ACTION = "ACTION"


def envelope(msg_type: MessageType, payload: Dict[str, Any]) -> str:
    body: Dict[str, Any] = {
        "type": msg_type.value,
        "v": PROTOCOL_VERSION,
        "ts": datetime.now(timezone.utc).isoformat(),
    }
    body.update(payload)
    return json.dumps(body)


def decode(raw: Union[str, bytes]) -> Dict[str, Any]:
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        return {}
    return message if isinstance(message, dict) else {}


def message_type(message: Dict[str, Any]) -> Optional[MessageType]:
    try:
        return MessageType(message.get("type"))
    except ValueError:
        return None


def seat_assign(seat: int) -> str:
    return envelope(MessageType.SEAT_ASSIGN, {"seat": seat})


def state_snapshot(snapshot: Dict[str, Any]) -> str:
    return envelope(MessageType.STATE_SNAPSHOT, snapshot)


def action(request: ActionRequest) -> str:
    return envelope(MessageType.ACTION, request.to_message())
