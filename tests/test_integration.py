import asyncio
import json

from core.models import ActionRequest, ActionType, Phase, TableConfig
from host import protocol
from host.server import HostServer

from .helpers import DummyWebSocket


def make_server(**overrides) -> HostServer:
    settings = dict(deal_delay_ms=0, bot_delay_ms=0, compare_delay_ms=0)
    settings.update(overrides)
    return HostServer(TableConfig(**settings))


def action_message(seat: int, kind: ActionType, **extra) -> str:
    return protocol.action(ActionRequest(seat=seat, action=kind, **extra))


def test_remote_seats_are_assigned_in_order_and_third_is_refused():
    async def scenario():
        server = make_server()
        sockets = [DummyWebSocket() for _ in range(3)]
        seats = [await server.connect_remote(ws) for ws in sockets]
        await server.wait_idle()
        return server, sockets, seats

    server, sockets, seats = asyncio.run(scenario())

    assert seats == [1, 2, None]
    first = sockets[0].messages()
    assert first[0]["type"] == "SEAT_ASSIGN" and first[0]["seat"] == 1
    assert first[0]["v"] == 1
    assert all(msg["type"] == "STATE_SNAPSHOT" for msg in first[1:])
    second = sockets[1].messages()[0]
    assert (second["type"], second["seat"]) == ("SEAT_ASSIGN", 2)
    assert sockets[2].sent == []
    assert sockets[2].closed
    assert server.engine.seats[1].name == "Player 1"
    assert set(server.sessions) == {1, 2}


def test_hand_runs_until_a_human_must_act():
    async def scenario():
        server = make_server()
        ws = DummyWebSocket()
        await server.connect_remote(ws)
        assert await server.start_hand(seed=77)
        await server.wait_idle()
        return server, ws

    server, ws = asyncio.run(scenario())

    ctx = server.engine.hand
    assert ctx.phase == Phase.BETTING
    assert ctx.turn_seat in (0, 1)
    snapshot = ws.messages()[-1]
    assert snapshot["type"] == "STATE_SNAPSHOT"
    assert snapshot["phase"] == "BETTING"
    assert snapshot["generation"] == server.engine.generation
    assert snapshot["players"][2]["cards"] == []
    assert "Betting started." in snapshot["log"]


def test_out_of_turn_and_spoofed_actions_are_ignored():
    async def scenario():
        server = make_server()
        ws = DummyWebSocket()
        await server.connect_remote(ws)
        await server.start_hand(seed=5)
        await server.wait_idle()
        server.engine.hand.turn_seat = 0
        generation = server.engine.generation
        sent = len(ws.sent)

        await server.handle_message(ws, action_message(1, ActionType.CALL))
        await server.handle_message(ws, action_message(2, ActionType.FOLD))
        await server.handle_message(ws, "not json")
        await server.handle_message(ws, json.dumps({"type": "ACTION", "seat": 1, "kind": "DANCE"}))
        await server.handle_message(ws, json.dumps({"type": "HELLO"}))
        return server, ws, generation, sent

    server, ws, generation, sent = asyncio.run(scenario())

    assert server.engine.generation == generation
    assert len(ws.sent) == sent


def test_remote_action_is_applied_and_broadcast():
    async def scenario():
        server = make_server()
        ws = DummyWebSocket()
        await server.connect_remote(ws)
        await server.start_hand(seed=5)
        await server.wait_idle()
        server.engine.hand.turn_seat = 1
        sent = len(ws.sent)
        await server.handle_message(ws, action_message(1, ActionType.SEE_CARDS))
        await server.wait_idle()
        return server, ws, sent

    server, ws, sent = asyncio.run(scenario())

    new = ws.messages()[sent:]
    assert len(new) == 1
    snapshot = new[0]
    assert snapshot["players"][1]["has_seen_cards"]
    assert len(snapshot["players"][1]["cards"]) == 3
    assert snapshot["event"]["ev"] == "SEE_CARDS"
    assert snapshot["log_line"].endswith("looks at their cards.")


def test_host_submit_action_rejects_without_mutation():
    async def scenario():
        server = make_server()
        await server.start_hand(seed=9)
        await server.wait_idle()
        ctx = server.engine.hand
        ctx.turn_seat = 2
        generation = server.engine.generation
        ok = await server.submit_action(0, ActionType.CALL)
        return server, ok, generation

    server, ok, generation = asyncio.run(scenario())
    assert not ok
    assert server.engine.generation == generation


def test_stale_scheduled_step_is_a_no_op():
    calls = []

    async def scenario():
        server = make_server()
        async with server.lock:
            server._schedule("probe", 10, lambda: calls.append("stale"))
            server.engine._touch()
        await server.wait_idle()

        async with server.lock:
            server._schedule("probe", 0, lambda: calls.append("fresh"))
        await server.wait_idle()

    asyncio.run(scenario())
    assert calls == ["fresh"]


def test_scheduled_steps_recheck_phase_and_turn():
    async def scenario():
        server = make_server()
        assert server._step_bot_turn() is None
        assert server._step_finish_compare() is None
        assert server._step_open_betting() is None

        await server.start_hand(seed=3)
        await server.wait_idle()
        return server

    server = asyncio.run(scenario())
    ctx = server.engine.hand
    if ctx.phase == Phase.BETTING:
        generation = server.engine.generation
        assert ctx.turn_seat == 0
        assert server._step_bot_turn() is None
        assert server._step_pick_target() is None
        assert server.engine.generation == generation


def test_disconnect_hands_seat_back_to_a_bot():
    async def scenario():
        server = make_server()
        ws_a = DummyWebSocket()
        ws_b = DummyWebSocket()
        await server.connect_remote(ws_a)
        await server.connect_remote(ws_b)
        await server.disconnect_remote(ws_a)
        await server.wait_idle()
        return server, ws_b

    server, ws_b = asyncio.run(scenario())

    assert set(server.sessions) == {2}
    assert server.engine.seats[1].name == "Alex (Bot)"
    assert not server.engine.seats[1].is_human
    last = ws_b.messages()[-1]
    assert last["players"][1]["connected"] is False
    assert "bot takes over" in last["log_line"]


def test_auto_start_begins_next_hand_once_someone_is_seated():
    async def scenario():
        server = make_server(next_hand_delay_ms=1, host_is_human=False)
        ws = DummyWebSocket()
        await server.connect_remote(ws)
        for _ in range(50):
            if server.engine.hand is not None:
                break
            await asyncio.sleep(0.01)
        await server.close()
        return server, ws

    server, ws = asyncio.run(scenario())
    assert server.engine.hand is not None
    assert any(msg.get("event", {}).get("ev") == "DEAL" for msg in ws.messages()[1:])
