import logging
from typing import Callable, Iterable, List, Optional, TypeVar

from scorekeeper.config import DEFAULT_BADGE, PALETTE_SIZE
from scorekeeper.engine import MatchEngine
from scorekeeper.exceptions import StorageDecodeError
from scorekeeper.models import Match, Side
from scorekeeper.rules import RulesConfig
from scorekeeper.sports import SportKind
from scorekeeper.storage import CollectionKey, JsonStorage
from scorekeeper.teams import Player, Team, new_id, utc_now, wrap_color_index

logger = logging.getLogger(__name__)

T = TypeVar("T")


def dedup_by_id(items: Iterable[T]) -> List[T]:
    """Keep the first record seen for each id."""
    seen = set()
    out = []
    for item in items:
        if item.id in seen:
            continue
        seen.add(item.id)
        out.append(item)
    return out


def sorted_by_date_desc(items: Iterable[T]) -> List[T]:
    return sorted(items, key=lambda x: (x.updated_at, x.created_at), reverse=True)


class _Repository:
    """
    Shared load/persist plumbing. The in-memory list is the working copy;
    every change is written back whole and external changes to the same
    collection trigger a reload.
    """

    key: CollectionKey
    decode: Callable
    encode: Callable

    def __init__(self, storage: JsonStorage):
        self.storage = storage
        self._writing = False
        self._items: List = self._load()
        storage.subscribe(self._on_storage_change)

    def close(self):
        self.storage.unsubscribe(self._on_storage_change)

    def _load(self) -> List:
        try:
            loaded = self.storage.load_collection(self.key, type(self).decode)
        except StorageDecodeError as e:
            # Keep the unreadable file; the next save would overwrite it
            self.storage.quarantine(self.key)
            logger.warning("%s; starting with an empty %s collection", e, self.key.value)
            return []
        return self._normalize(loaded)

    def _normalize(self, items: Iterable) -> List:
        return dedup_by_id(items)

    def _persist(self):
        self._writing = True
        try:
            self.storage.save_collection(self.key, self._items, type(self).encode)
        finally:
            self._writing = False

    def _on_storage_change(self, key: CollectionKey):
        if key is not self.key or self._writing:
            return
        logger.debug("Reloading %s after external change", self.key.value)
        self._items = self._load()


# =========================================================
# MATCHES
# =========================================================

class MatchesRepository(_Repository):
    """
    Match history (newest first) plus runtime controls by match id.

    Runtime controls run one ``MatchEngine`` call on the stored match,
    replace it by id and persist. Unknown ids return ``None``.
    """

    key = CollectionKey.MATCHES
    decode = staticmethod(Match.from_dict)
    encode = staticmethod(Match.to_dict)

    def _normalize(self, items):
        return sorted_by_date_desc(dedup_by_id(items))

    @property
    def history(self) -> List[Match]:
        return list(self._items)

    # ---------------------------------------------------------
    # Creation
    # ---------------------------------------------------------

    def create_match(
        self,
        sport: SportKind,
        team_a: Team,
        team_b: Team,
        rules: Optional[RulesConfig] = None,
    ) -> Match:
        match = Match.create(sport, team_a, team_b, rules)
        self._items.insert(0, match)
        self._persist()
        logger.info("Created %s match %s: %s vs %s", sport.value, match.id, team_a.name, team_b.name)
        return match

    def add(self, match: Match) -> Match:
        """Insert an existing match, keeping its id and timestamps."""
        self._items = self._normalize([match] + self._items)
        self._persist()
        return match

    # ---------------------------------------------------------
    # Runtime controls
    # ---------------------------------------------------------

    def score(self, match_id: str, side: Side, delta: int = 1) -> Optional[Match]:
        return self._run(match_id, lambda e: e.score(side, delta))

    def set_score(self, match_id: str, score_a: int, score_b: int) -> Optional[Match]:
        return self._run(match_id, lambda e: e.set_score(score_a, score_b))

    def tick(self, match_id: str, seconds: int = 1) -> Optional[Match]:
        return self._run(match_id, lambda e: e.tick(seconds))

    def end_period(self, match_id: str) -> Optional[Match]:
        return self._run(match_id, lambda e: e.end_period())

    def add_note(self, match_id: str, text: str) -> Optional[Match]:
        return self._run(match_id, lambda e: e.add_note(text))

    def reset_current_set(self, match_id: str) -> Optional[Match]:
        return self._run(match_id, lambda e: e.reset_current_set())

    def reset_all(self, match_id: str) -> Optional[Match]:
        return self._run(match_id, lambda e: e.reset_all())

    def undo(self, match_id: str) -> Optional[Match]:
        return self._run(match_id, lambda e: e.undo())

    def redo(self, match_id: str) -> Optional[Match]:
        return self._run(match_id, lambda e: e.redo())

    def rematch(self, match_id: str, swapped: bool = False) -> Optional[Match]:
        match = self.match_by_id(match_id)
        if match is None:
            return None
        fresh = match.rematch(swapped=swapped)
        self._items.insert(0, fresh)
        self._persist()
        return fresh

    def _run(self, match_id: str, operation) -> Optional[Match]:
        match = self.match_by_id(match_id)
        if match is None:
            logger.warning("Match %s not found", match_id)
            return None

        result = operation(MatchEngine(match))
        if result.applied:
            self._replace(match)
        return match

    # ---------------------------------------------------------
    # Replacement / deletion
    # ---------------------------------------------------------

    def update(self, match: Match) -> Match:
        return self._replace(match)

    def _replace(self, match: Match) -> Match:
        items = [m for m in self._items if m.id != match.id]
        items.append(match)
        self._items = sorted_by_date_desc(items)
        self._persist()
        return match

    def delete(self, match_id: str):
        self._items = [m for m in self._items if m.id != match_id]
        self._persist()

    def remove_all(self):
        self._items = []
        self._persist()

    def replace_all(self, matches: Iterable[Match]):
        self._items = self._normalize(matches)
        self._persist()

    # ---------------------------------------------------------
    # Queries
    # ---------------------------------------------------------

    def match_by_id(self, match_id: str) -> Optional[Match]:
        return next((m for m in self._items if m.id == match_id), None)

    def recent(self, limit: int = 10) -> List[Match]:
        return self._items[:max(0, limit)]

    def for_sport(self, sport: SportKind) -> List[Match]:
        return [m for m in self._items if m.sport is sport]

    def for_team(self, team_id: str) -> List[Match]:
        return [m for m in self._items if m.involves(team_id)]

    def finished(self, is_finished: bool = True) -> List[Match]:
        return [m for m in self._items if m.is_finished == is_finished]

    def search(self, query: str) -> List[Match]:
        """Match team names and sport labels, case-insensitive."""
        q = query.strip().lower()
        if not q:
            return self.history
        return [
            m for m in self._items
            if q in m.team_a.name.lower()
            or q in m.team_b.name.lower()
            or q in m.sport.label.lower()
            or q in m.sport.short_label.lower()
        ]

    def last_head_to_head(self, team_a_id: str, team_b_id: str) -> Optional[Match]:
        pair = {team_a_id, team_b_id}
        return next((m for m in self._items if {m.team_a.id, m.team_b.id} == pair), None)


# =========================================================
# TEAMS
# =========================================================

class TeamsRepository(_Repository):
    key = CollectionKey.TEAMS
    decode = staticmethod(Team.from_dict)
    encode = staticmethod(Team.to_dict)

    def _normalize(self, items):
        return sort_teams_by_name(dedup_by_id(items))

    @property
    def teams(self) -> List[Team]:
        return list(self._items)

    def create_team(
        self,
        name: str,
        sport: SportKind,
        color_index: Optional[int] = None,
        badge_name: str = DEFAULT_BADGE,
        players: Iterable[Player] = (),
    ) -> Team:
        if color_index is None:
            color_index = self.suggest_color_index()
        team = Team(name=name, sport=sport, color_index=color_index, badge_name=badge_name,
                    players=tuple(players))
        return self.add(team)

    def add(self, team: Team) -> Team:
        self._items = self._normalize(self._items + [team])
        self._persist()
        return team

    def update(self, team: Team) -> Team:
        self._items = self._normalize([team] + [t for t in self._items if t.id != team.id])
        self._persist()
        return team

    def _modify(self, team_id: str, change) -> Optional[Team]:
        team = self.team_by_id(team_id)
        if team is None:
            logger.warning("Team %s not found", team_id)
            return None
        return self.update(change(team))

    def rename(self, team_id: str, name: str) -> Optional[Team]:
        return self._modify(team_id, lambda t: t.with_name(name))

    def set_sport(self, team_id: str, sport: SportKind) -> Optional[Team]:
        return self._modify(team_id, lambda t: t.with_sport(sport))

    def set_badge(self, team_id: str, badge_name: str) -> Optional[Team]:
        return self._modify(team_id, lambda t: t.with_badge_name(badge_name))

    def set_color(self, team_id: str, color_index: int) -> Optional[Team]:
        return self._modify(team_id, lambda t: t.with_color_index(color_index))

    def add_player(self, team_id: str, player: Player) -> Optional[Team]:
        return self._modify(team_id, lambda t: t.adding_player(player))

    def update_player(self, team_id: str, player: Player) -> Optional[Team]:
        return self._modify(team_id, lambda t: t.updating_player(player))

    def remove_player(self, team_id: str, player_id: str) -> Optional[Team]:
        return self._modify(team_id, lambda t: t.removing_player(player_id))

    def duplicate(self, team_id: str, name_suffix: str = " Copy") -> Optional[Team]:
        team = self.team_by_id(team_id)
        if team is None:
            return None
        now = utc_now()
        copy = Team(
            name=team.name + name_suffix,
            sport=team.sport,
            color_index=team.color_index,
            badge_name=team.badge_name,
            players=team.players,
            id=new_id(),
            created_at=now,
            updated_at=now,
        )
        return self.add(copy)

    def delete(self, team_id: str):
        self._items = [t for t in self._items if t.id != team_id]
        self._persist()

    def remove_all(self):
        self._items = []
        self._persist()

    def replace_all(self, teams: Iterable[Team]):
        self._items = self._normalize(teams)
        self._persist()

    # ---------------------------------------------------------
    # Queries
    # ---------------------------------------------------------

    def team_by_id(self, team_id: str) -> Optional[Team]:
        return next((t for t in self._items if t.id == team_id), None)

    def for_sport(self, sport: SportKind) -> List[Team]:
        return [t for t in self._items if t.sport is sport]

    def search(self, query: str) -> List[Team]:
        return [t for t in self._items if t.matches(query)]

    def suggest_color_index(self) -> int:
        """Least used palette slot; lowest index wins ties."""
        usage = [0] * PALETTE_SIZE
        for t in self._items:
            usage[wrap_color_index(t.color_index)] += 1
        return usage.index(min(usage))


def sort_teams_by_name(teams: Iterable[Team]) -> List[Team]:
    return sorted(teams, key=lambda t: (t.name.casefold(), t.sport.label.casefold()))
