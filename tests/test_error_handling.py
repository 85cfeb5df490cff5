import pytest

from core.models import ActionRejected, ActionRequest, ActionType, PlayerStatus, TableConfig

from .helpers import create_engine, start_betting


def _assert_rejected(engine, code, *args, **kwargs):
    before = engine.snapshot_payload()
    with pytest.raises(ActionRejected) as exc:
        engine.apply_action(*args, **kwargs)
    assert exc.value.code == code
    assert engine.snapshot_payload() == before


def test_action_without_hand_is_rejected():
    engine = create_engine()
    with pytest.raises(ActionRejected) as exc:
        engine.apply_action(0, ActionType.CALL)
    assert exc.value.code == "NO_HAND"


def test_out_of_turn_action_leaves_state_untouched():
    engine = create_engine()
    start_betting(engine, seed=3, turn=0)
    _assert_rejected(engine, "OUT_OF_TURN", 1, ActionType.CALL)
    _assert_rejected(engine, "OUT_OF_TURN", 2, ActionType.SEE_CARDS)


def test_actions_during_dealing_are_rejected():
    engine = create_engine()
    ctx = engine.start_hand(seed=3)
    _assert_rejected(engine, "BAD_PHASE", ctx.turn_seat, ActionType.CALL)


def test_raise_must_exceed_round_bet_and_fit_the_stack():
    engine = create_engine()
    start_betting(engine, seed=3, turn=0)
    _assert_rejected(engine, "BAD_AMOUNT", 0, ActionType.RAISE, 100)
    _assert_rejected(engine, "INSUFFICIENT_CHIPS", 0, ActionType.RAISE, 50_000)
    _assert_rejected(engine, "BAD_SCHEMA", 0, ActionType.RAISE, None)


def test_raise_is_not_offered_to_a_broke_seat():
    engine = create_engine()
    start_betting(engine, seed=3, turn=0)
    engine.seats[0].chips = 0
    assert ActionType.RAISE not in engine.legal_actions(0)
    _assert_rejected(engine, "BAD_AMOUNT", 0, ActionType.RAISE, 100)
    _assert_rejected(engine, "INSUFFICIENT_CHIPS", 0, ActionType.RAISE, 200)


def test_compare_fee_must_be_affordable():
    engine = create_engine()
    ctx = start_betting(engine, seed=3, turn=0)
    ctx.round_bet = 5_000
    engine.seats[0].chips = 4_000
    _assert_rejected(engine, "INSUFFICIENT_CHIPS", 0, ActionType.COMPARE_INIT)


def test_compare_target_checks():
    engine = create_engine()
    start_betting(engine, seed=3, turn=2)
    engine.apply_action(2, ActionType.FOLD)
    _assert_rejected(engine, "BAD_PHASE", 0, ActionType.COMPARE_TARGET, target=1)

    engine.apply_action(0, ActionType.COMPARE_INIT)
    _assert_rejected(engine, "BAD_TARGET", 0, ActionType.COMPARE_TARGET, target=2)
    _assert_rejected(engine, "BAD_TARGET", 0, ActionType.COMPARE_TARGET, target=0)
    _assert_rejected(engine, "BAD_SCHEMA", 0, ActionType.COMPARE_TARGET)
    _assert_rejected(engine, "OUT_OF_TURN", 1, ActionType.COMPARE_TARGET, target=0)
    _assert_rejected(engine, "BAD_PHASE", 0, ActionType.CALL)


def test_folded_seat_is_never_offered_as_target():
    engine = create_engine()
    start_betting(engine, seed=3, turn=1)
    engine.apply_action(1, ActionType.FOLD)
    assert engine.seats[1].status == PlayerStatus.FOLDED
    assert engine.compare_candidates(2) == [0]


def test_legal_actions_follow_turn_and_phase():
    engine = create_engine()
    start_betting(engine, seed=3, turn=0)
    assert engine.legal_actions(1) == []
    legal = engine.legal_actions(0)
    for action in (ActionType.FOLD, ActionType.CALL, ActionType.RAISE, ActionType.SEE_CARDS, ActionType.COMPARE_INIT):
        assert action in legal

    engine.apply_action(0, ActionType.COMPARE_INIT)
    assert engine.legal_actions(0) == [ActionType.COMPARE_TARGET]


def test_action_request_schema_validation():
    request = ActionRequest.from_message({"seat": 1, "kind": "RAISE", "amount": 2_000})
    assert request.action == ActionType.RAISE
    assert request.amount == 2_000
    assert ActionRequest.from_message(request.to_message()) == request

    bad_messages = [
        {"kind": "CALL"},
        {"seat": "1", "kind": "CALL"},
        {"seat": 1, "kind": "DANCE"},
        {"seat": 1, "kind": "RAISE"},
        {"seat": 1, "kind": "RAISE", "amount": "lots"},
        {"seat": 1, "kind": "COMPARE_TARGET"},
    ]
    for message in bad_messages:
        with pytest.raises(ActionRejected) as exc:
            ActionRequest.from_message(message)
        assert exc.value.code == "BAD_SCHEMA", message


def test_table_config_validation():
    with pytest.raises(ValueError):
        TableConfig(seats=4).validate()
    with pytest.raises(ValueError):
        TableConfig(ante=0).validate()
    with pytest.raises(ValueError):
        create_engine(seats=1)
