import pytest

from scorekeeper.engine import MatchEngine, Rejection
from scorekeeper.models import EventKind, Outcome, Side
from scorekeeper.rules import Mode


def create_engine(make_match, mode=Mode.POINTS, **kw):
    return MatchEngine(make_match(mode, **kw))


def score_many(engine, side, times):
    for _ in range(times):
        engine.score(side)


def count_events(match, kind):
    return sum(1 for e in match.events if e.kind is kind)


# ---------- POINTS ----------

def test_points_target_reached_without_win_by_two(make_match):
    engine = create_engine(make_match, target=11, win_by_two=False)

    score_many(engine, Side.B, 10)
    score_many(engine, Side.A, 11)

    assert engine.match.winner is Side.A
    assert engine.is_finished is True
    assert engine.outcome is Outcome.A_WON
    assert engine.current_score_tuple == (11, 10)


def test_points_win_by_two_needs_margin(make_match):
    engine = create_engine(make_match, target=21, win_by_two=True)

    for _ in range(20):
        engine.score(Side.A)
        engine.score(Side.B)
    engine.score(Side.A)

    assert engine.current_score_tuple == (21, 20)
    assert engine.is_finished is False

    engine.score(Side.A)

    assert engine.current_score_tuple == (22, 20)
    assert engine.match.winner is Side.A
    assert count_events(engine.match, EventKind.MATCH_END) == 1


def test_points_tie_never_finishes(make_match):
    engine = create_engine(make_match, target=5, win_by_two=False)

    engine.set_score(7, 7)

    assert engine.is_finished is False
    assert engine.outcome is Outcome.IN_PROGRESS


def test_points_set_score_can_finish(make_match):
    engine = create_engine(make_match, target=13)

    result = engine.set_score(13, 4)

    assert result.applied
    assert engine.match.winner is Side.A
    assert engine.match.events[0].text == "Score set to 13:4"


def test_negative_delta_floors_at_zero(make_match):
    engine = create_engine(make_match)

    engine.score(Side.B, 2)
    engine.score(Side.B, -5)

    assert engine.current_score_tuple == (0, 0)
    assert [e.kind for e in engine.match.events] == [EventKind.SCORE, EventKind.UNSCORE]
    assert engine.match.events[-1].value == -5


def test_progress_description_points(make_match):
    engine = create_engine(make_match)
    engine.score(Side.A, 3)
    assert engine.progress_description == "3 : 0"


# ---------- SETS ----------

def test_two_straight_sets(make_match):
    engine = create_engine(make_match, Mode.SETS, sets_to_win=2, points_per_set=25, win_by_two=True)

    score_many(engine, Side.A, 25)
    score_many(engine, Side.A, 25)

    state = engine.match.state
    assert (state.sets_won_a, state.sets_won_b) == (2, 0)
    assert engine.match.winner is Side.A
    assert count_events(engine.match, EventKind.SET_WIN) == 2
    assert count_events(engine.match, EventKind.MATCH_END) == 1


def test_set_win_by_two_deuce(make_match):
    engine = create_engine(make_match, Mode.SETS, sets_to_win=2, points_per_set=11, win_by_two=True)

    for _ in range(10):
        engine.score(Side.A)
        engine.score(Side.B)
    engine.score(Side.A)  # 11-10
    assert engine.match.state.sets_won_a == 0

    engine.score(Side.B)  # 11-11
    engine.score(Side.B)  # 11-12
    engine.score(Side.B)  # 11-13

    state = engine.match.state
    assert state.sets_won_b == 1
    assert state.scores_a == (11, 0)
    assert state.scores_b == (13, 0)
    assert state.index == 1
    assert engine.is_finished is False


def test_set_without_win_by_two(make_match):
    engine = create_engine(make_match, Mode.SETS, sets_to_win=1, points_per_set=3, win_by_two=False)

    score_many(engine, Side.B, 2)
    score_many(engine, Side.A, 3)

    assert engine.match.winner is Side.A


@pytest.mark.parametrize("sequence, expected_winner", [
    ("AA", Side.A),
    ("ABA", Side.A),
    ("BAB", Side.B),
    ("BB", Side.B),
])
def test_best_of_three_outcomes(make_match, sequence, expected_winner):
    engine = create_engine(make_match, Mode.SETS, sets_to_win=2, points_per_set=5)

    for winner in sequence:
        score_many(engine, Side.A if winner == "A" else Side.B, 5)

    assert engine.match.winner is expected_winner
    assert len(engine.match.state.scores_a) == len(sequence)


def test_no_extra_set_after_match_finish(make_match):
    engine = create_engine(make_match, Mode.SETS, sets_to_win=2, points_per_set=5)

    score_many(engine, Side.A, 10)
    result = engine.score(Side.B)

    assert not result
    assert result.reason is Rejection.FINISHED
    assert len(engine.match.state.scores_a) == 2


def test_set_score_overrides_current_set(make_match):
    engine = create_engine(make_match, Mode.SETS)

    engine.score(Side.A)
    engine.set_score(12, 9)

    assert engine.current_score_tuple == (12, 9)
    assert engine.match.events[-1].text == "Set score set to 12:9"


def test_reset_current_set(make_match):
    engine = create_engine(make_match, Mode.SETS, points_per_set=5)

    score_many(engine, Side.A, 5)  # set 1 to A
    score_many(engine, Side.B, 3)

    assert engine.reset_current_set().applied
    state = engine.match.state
    assert state.current == (0, 0)
    assert state.scores_a[0] == 5
    assert state.sets_won_a == 1
    assert engine.match.events[-1].text == "Current set reset"


def test_progress_description_sets(make_match):
    engine = create_engine(make_match, Mode.SETS, sets_to_win=2, points_per_set=5)

    score_many(engine, Side.A, 5)
    engine.score(Side.B)

    assert engine.progress_description == "Set 2 - 0 : 1  (W 1-0, Bo3)"
