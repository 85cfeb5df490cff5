from core.models import Phase

from .helpers import create_engine, play_out


def test_many_bot_hands_finish_and_conserve_chips():
    engine = create_engine(host_is_human=False, starting_chips=5_000)
    hands = 0
    for seed in range(300):
        if not engine.can_start_hand():
            break
        engine.start_hand(seed=seed)
        events = play_out(engine)
        hands += 1

        assert engine.phase == Phase.SHOWDOWN
        assert events[-1]["ev"] == "POT_AWARD"
        assert engine.chips_in_play() == 15_000
        assert sum(1 for seat in engine.seats if seat.is_playing) == 1
    assert hands > 0


def test_two_seat_tables_play_out():
    engine = create_engine(seats=2, host_is_human=False)
    for seed in range(100):
        if not engine.can_start_hand():
            break
        engine.start_hand(seed=seed)
        play_out(engine)
        assert engine.chips_in_play() == 20_000
