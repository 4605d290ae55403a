import json

from scorekeeper.models import Side
from scorekeeper.repositories import (
    MatchesRepository,
    TeamsRepository,
    dedup_by_id,
    sort_teams_by_name,
)
from scorekeeper.rules import default_for
from scorekeeper.sports import SportKind
from scorekeeper.storage import CollectionKey
from scorekeeper.teams import Player, Team


# ---------------------------------------------------------
# Helpers
# ---------------------------------------------------------

def test_dedup_keeps_first():
    first = Team("First", id="x")
    second = Team("Second", id="x")
    other = Team("Other", id="y")

    assert dedup_by_id([first, second, other]) == [first, other]


def test_sort_teams_by_name_case_insensitive():
    teams = [Team("beta"), Team("Alpha"), Team("alpha", SportKind.HOCKEY)]
    names = [(t.name, t.sport.label) for t in sort_teams_by_name(teams)]
    assert names == [("Alpha", "Football"), ("alpha", "Hockey"), ("beta", "Football")]


# ---------------------------------------------------------
# Matches
# ---------------------------------------------------------

def test_create_match_persists(storage, team_a, team_b):
    repo = MatchesRepository(storage)
    match = repo.create_match(SportKind.VOLLEYBALL, team_a, team_b)

    reopened = MatchesRepository(storage)
    assert [m.id for m in reopened.history] == [match.id]
    assert reopened.match_by_id(match.id).rules == default_for(SportKind.VOLLEYBALL)


def test_runtime_controls_persist(storage, team_a, team_b):
    repo = MatchesRepository(storage)
    match = repo.create_match(SportKind.ESPORTS_CS, team_a, team_b)

    repo.score(match.id, Side.A)
    repo.score(match.id, Side.A)
    repo.undo(match.id)
    repo.add_note(match.id, "timeout")

    stored = MatchesRepository(storage).match_by_id(match.id)
    assert stored.current_score_tuple == (1, 0)
    assert stored.events[-1].text == "timeout"
    assert stored.can_undo is True
    assert stored.can_redo is False


def test_timed_controls(storage, team_a, team_b):
    repo = MatchesRepository(storage)
    match = repo.create_match(SportKind.FOOTBALL, team_a, team_b)

    repo.tick(match.id, 60)
    repo.end_period(match.id)
    repo.set_score(match.id, 2, 2)
    repo.end_period(match.id)

    stored = MatchesRepository(storage).match_by_id(match.id)
    assert stored.is_draw is True
    assert repo.finished() == [repo.match_by_id(match.id)]


def test_reset_and_redo_by_id(storage, team_a, team_b):
    repo = MatchesRepository(storage)
    match = repo.create_match(SportKind.VOLLEYBALL, team_a, team_b)

    repo.score(match.id, Side.B, 25)
    repo.score(match.id, Side.A, 3)
    repo.reset_current_set(match.id)
    assert repo.match_by_id(match.id).current_score_tuple == (0, 0)

    repo.reset_all(match.id)
    assert repo.match_by_id(match.id).events == []

    repo.undo(match.id)
    repo.redo(match.id)
    assert repo.match_by_id(match.id).events == []


def test_unknown_id_returns_none(storage):
    repo = MatchesRepository(storage)

    assert repo.score("missing", Side.A) is None
    assert repo.rematch("missing") is None
    assert repo.match_by_id("missing") is None


def test_rejected_operation_does_not_persist(storage, team_a, team_b):
    repo = MatchesRepository(storage)
    match = repo.create_match(SportKind.VOLLEYBALL, team_a, team_b)
    saved = []
    storage.subscribe(saved.append)

    repo.tick(match.id, 10)

    assert saved == []


def test_rematch_and_queries(storage, team_a, team_b):
    repo = MatchesRepository(storage)
    first = repo.create_match(SportKind.ESPORTS_CS, team_a, team_b)
    repo.score(first.id, Side.A, 13)

    second = repo.rematch(first.id, swapped=True)

    assert second.team_a == team_b
    assert repo.recent(1) == [second]
    assert repo.last_head_to_head(team_b.id, team_a.id) == second
    assert repo.finished() == [repo.match_by_id(first.id)]
    assert repo.finished(False) == [second]
    assert len(repo.for_team(team_a.id)) == 2
    assert repo.for_sport(SportKind.HOCKEY) == []
    assert len(repo.search("cs")) == 2
    assert len(repo.search("dragons")) == 2
    assert repo.search("  ") == repo.history


def test_delete_and_replace_all(storage, team_a, team_b):
    repo = MatchesRepository(storage)
    one = repo.create_match(SportKind.ESPORTS_CS, team_a, team_b)
    two = repo.create_match(SportKind.ESPORTS_CS, team_a, team_b)

    repo.delete(one.id)
    assert [m.id for m in repo.history] == [two.id]

    repo.replace_all([one, one, two])
    assert sorted(m.id for m in repo.history) == sorted([one.id, two.id])

    repo.remove_all()
    assert MatchesRepository(storage).history == []


def test_corrupt_file_starts_empty(storage, caplog):
    path = storage.path_for(CollectionKey.MATCHES)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"version": 1, "payload": "oops"}), encoding="utf-8")

    with caplog.at_level("WARNING"):
        repo = MatchesRepository(storage)

    assert repo.history == []
    assert "matches" in caplog.text
    assert storage.backup_path_for(CollectionKey.MATCHES).exists()


def test_one_bad_match_keeps_the_rest(storage, team_a, team_b):
    repo = MatchesRepository(storage)
    kept = repo.create_match(SportKind.ESPORTS_CS, team_a, team_b)
    repo.score(kept.id, Side.A, 5)
    repo.close()

    path = storage.path_for(CollectionKey.MATCHES)
    data = json.loads(path.read_text(encoding="utf-8"))
    broken = dict(data["payload"][0], id="broken")
    broken["rules"] = dict(broken["rules"], mode="timed", time={"periods": 2, "bogus": 1})
    data["payload"].append(broken)
    path.write_text(json.dumps(data), encoding="utf-8")

    reopened = MatchesRepository(storage)
    assert [m.id for m in reopened.history] == [kept.id]

    reopened.create_match(SportKind.ESPORTS_CS, team_b, team_a)

    on_disk = MatchesRepository(storage)
    assert on_disk.match_by_id(kept.id).current_score_tuple == (5, 0)
    backup = json.loads(storage.backup_path_for(CollectionKey.MATCHES).read_text(encoding="utf-8"))
    assert "broken" in [m["id"] for m in backup["payload"]]


def test_naive_timestamps_load_and_sort(storage, team_a, team_b):
    repo = MatchesRepository(storage)
    fresh = repo.create_match(SportKind.ESPORTS_CS, team_a, team_b)
    repo.close()

    path = storage.path_for(CollectionKey.MATCHES)
    data = json.loads(path.read_text(encoding="utf-8"))
    legacy = dict(data["payload"][0], id="legacy",
                  created_at="2024-01-01T10:00:00", updated_at="2024-01-01T10:05:00")
    data["payload"].append(legacy)
    path.write_text(json.dumps(data), encoding="utf-8")

    reopened = MatchesRepository(storage)

    assert [m.id for m in reopened.history] == [fresh.id, "legacy"]
    assert reopened.match_by_id("legacy").created_at.tzinfo is not None


def test_reload_on_external_change(storage, team_a, team_b):
    left = MatchesRepository(storage)
    right = MatchesRepository(storage)

    match = left.create_match(SportKind.ESPORTS_CS, team_a, team_b)

    assert right.match_by_id(match.id) is not None

    right.close()
    left.delete(match.id)
    assert right.match_by_id(match.id) is not None


# ---------------------------------------------------------
# Teams
# ---------------------------------------------------------

def test_create_team_suggests_unused_color(storage):
    repo = TeamsRepository(storage)

    first = repo.create_team("Alpha", SportKind.HOCKEY)
    second = repo.create_team("Beta", SportKind.HOCKEY)

    assert first.color_index == 0
    assert second.color_index == 1
    assert repo.suggest_color_index() == 2


def test_team_edits(storage):
    repo = TeamsRepository(storage)
    team = repo.create_team("Alpha", SportKind.HOCKEY)
    player = Player("  Ann\nLee ")

    repo.rename(team.id, "Zeta")
    repo.set_sport(team.id, SportKind.TENNIS)
    repo.set_badge(team.id, "sf:star")
    repo.set_color(team.id, 25)
    repo.add_player(team.id, player)
    repo.update_player(team.id, player.with_nickname("AL"))

    stored = TeamsRepository(storage).team_by_id(team.id)
    assert stored.name == "Zeta"
    assert stored.sport is SportKind.TENNIS
    assert stored.badge_name == "sf:star"
    assert stored.color_index == 1
    assert [p.display_name for p in stored.players] == ["AL"]

    repo.remove_player(team.id, player.id)
    assert repo.team_by_id(team.id).player_count == 0
    assert repo.rename("missing", "x") is None


def test_duplicate_team(storage):
    repo = TeamsRepository(storage)
    team = repo.create_team("Alpha", SportKind.HOCKEY, players=[Player("Ann")])

    copy = repo.duplicate(team.id)

    assert copy.id != team.id
    assert copy.name == "Alpha Copy"
    assert copy.players == team.players
    assert [t.name for t in repo.teams] == ["Alpha", "Alpha Copy"]
    assert repo.duplicate("missing") is None


def test_team_queries(storage):
    repo = TeamsRepository(storage)
    repo.create_team("Red Wings", SportKind.HOCKEY)
    repo.create_team("Spurs", SportKind.BASKETBALL, players=[Player("Tim", "Big Fundamental")])

    assert [t.name for t in repo.for_sport(SportKind.HOCKEY)] == ["Red Wings"]
    assert [t.name for t in repo.search("fundamental")] == ["Spurs"]
    assert [t.name for t in repo.search("hockey")] == ["Red Wings"]

    repo.delete(repo.search("spurs")[0].id)
    assert len(repo.teams) == 1

    repo.replace_all([Team("A", id="1"), Team("B", id="1")])
    assert [t.name for t in repo.teams] == ["A"]

    repo.remove_all()
    assert repo.teams == []
