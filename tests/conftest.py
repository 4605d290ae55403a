import pytest

from scorekeeper.models import Match
from scorekeeper.rules import Mode, RulesConfig
from scorekeeper.sports import SportKind
from scorekeeper.storage import JsonStorage
from scorekeeper.teams import Team


@pytest.fixture
def team_a():
    return Team("Red Dragons", SportKind.VOLLEYBALL, id="team-a")


@pytest.fixture
def team_b():
    return Team("Blue Sharks", SportKind.VOLLEYBALL, id="team-b")


@pytest.fixture
def storage(tmp_path):
    return JsonStorage(tmp_path / "data")


@pytest.fixture
def make_match(team_a, team_b):
    """
    make_match(Mode.POINTS, target=21, win_by_two=True)
    make_match(Mode.SETS, sets_to_win=2, points_per_set=25, win_by_two=True)
    make_match(Mode.TIMED, periods=2, seconds_per_period=2700, allow_draw=True)
    """
    def _make(mode, sport=SportKind.VOLLEYBALL, **kw):
        base = RulesConfig.validate(RulesConfig(Mode.POINTS, sport))
        if mode is Mode.POINTS:
            rules = base.with_points(kw.get("target", 21), kw.get("win_by_two", False))
        elif mode is Mode.SETS:
            rules = base.with_sets(
                kw.get("sets_to_win", 2),
                kw.get("points_per_set", 25),
                kw.get("win_by_two", True),
            )
        else:
            rules = base.with_time(
                kw.get("periods", 2),
                kw.get("seconds_per_period", 45 * 60),
                kw.get("allow_draw", True),
                kw.get("overtime_seconds"),
            )
        return Match.create(sport, team_a, team_b, rules)

    return _make
