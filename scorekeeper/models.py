from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple, Union

from scorekeeper.rules import Mode, RulesConfig, default_for
from scorekeeper.sports import SportKind
from scorekeeper.teams import Team, new_id, parse_timestamp, utc_now


class Side(str, Enum):
    A = "a"
    B = "b"

    @property
    def other(self) -> "Side":
        return Side.B if self is Side.A else Side.A


class EventKind(str, Enum):
    SCORE = "score"
    UNSCORE = "unscore"
    SET_WIN = "set_win"
    PERIOD_START = "period_start"
    PERIOD_END = "period_end"
    MATCH_END = "match_end"
    NOTE = "note"


class Outcome(str, Enum):
    IN_PROGRESS = "in_progress"
    A_WON = "a_won"
    B_WON = "b_won"
    DRAW = "draw"


@dataclass(frozen=True)
class MatchEvent:
    kind: EventKind
    side: Optional[Side] = None
    value: Optional[int] = None
    text: Optional[str] = None
    id: str = field(default_factory=new_id)
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "side": self.side.value if self.side else None,
            "value": self.value,
            "text": self.text,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "MatchEvent":
        side = d.get("side")
        return MatchEvent(
            id=str(d["id"]),
            timestamp=parse_timestamp(d.get("timestamp")),
            kind=EventKind(d["kind"]),
            side=Side(side) if side else None,
            value=d.get("value"),
            text=d.get("text"),
        )


# =========================================================
# SCORING STATE (one shape per rules mode)
# =========================================================

@dataclass(frozen=True)
class PointsState:
    mode: ClassVar[Mode] = Mode.POINTS

    score_a: int = 0
    score_b: int = 0


@dataclass(frozen=True)
class SetsState:
    mode: ClassVar[Mode] = Mode.SETS

    index: int = 0
    scores_a: Tuple[int, ...] = (0,)
    scores_b: Tuple[int, ...] = (0,)
    sets_won_a: int = 0
    sets_won_b: int = 0

    @property
    def current(self) -> Tuple[int, int]:
        a = self.scores_a[self.index] if self.index < len(self.scores_a) else 0
        b = self.scores_b[self.index] if self.index < len(self.scores_b) else 0
        return a, b


@dataclass(frozen=True)
class TimedState:
    mode: ClassVar[Mode] = Mode.TIMED

    current_period: int = 0
    remaining_seconds: Tuple[int, ...] = ()
    score_a: int = 0
    score_b: int = 0

    @property
    def current_remaining(self) -> int:
        if 0 <= self.current_period < len(self.remaining_seconds):
            return max(0, self.remaining_seconds[self.current_period])
        return 0


ScoringState = Union[PointsState, SetsState, TimedState]

_STATE_TYPES = {cls.mode: cls for cls in (PointsState, SetsState, TimedState)}


def initial_state(rules: RulesConfig) -> ScoringState:
    if rules.mode is Mode.POINTS:
        return PointsState()
    if rules.mode is Mode.SETS:
        return SetsState()
    t = rules.time
    return TimedState(remaining_seconds=(max(0, t.seconds_per_period),) * max(1, t.periods))


def state_to_dict(state: ScoringState) -> Dict[str, Any]:
    d = {"mode": state.mode.value}
    for key, value in state.__dict__.items():
        d[key] = list(value) if isinstance(value, tuple) else value
    return d


def state_from_dict(d: Dict[str, Any]) -> ScoringState:
    cls = _STATE_TYPES[Mode(d["mode"])]
    kwargs = {k: (tuple(v) if isinstance(v, list) else v) for k, v in d.items() if k != "mode"}
    return cls(**kwargs)


# =========================================================
# UNDO SNAPSHOT
# =========================================================

@dataclass(frozen=True)
class Snapshot:
    """
    Match state captured before a change.

    Restoring keeps the first ``events_count - len(tail)`` events of the
    live log and appends ``tail``; ``tail`` is empty unless the change it
    guards removed events.
    """

    state: ScoringState
    winner: Optional[Side]
    events_count: int
    updated_at: datetime
    tail: Tuple[MatchEvent, ...] = ()

    @property
    def kept(self) -> int:
        return self.events_count - len(self.tail)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": state_to_dict(self.state),
            "winner": self.winner.value if self.winner else None,
            "events_count": self.events_count,
            "updated_at": self.updated_at.isoformat(),
            "tail": [e.to_dict() for e in self.tail],
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Snapshot":
        winner = d.get("winner")
        return Snapshot(
            state=state_from_dict(d["state"]),
            winner=Side(winner) if winner else None,
            events_count=int(d["events_count"]),
            updated_at=parse_timestamp(d.get("updated_at")),
            tail=tuple(MatchEvent.from_dict(e) for e in d.get("tail", [])),
        )


# =========================================================
# MATCH
# =========================================================

@dataclass
class Match:
    """
    A single contest between two teams.

    Sport, rules and teams are fixed at creation. Scoring state, winner,
    event log and undo/redo stacks change only through ``MatchEngine``.
    """

    sport: SportKind
    rules: RulesConfig
    team_a: Team
    team_b: Team
    state: Optional[ScoringState] = None
    winner: Optional[Side] = None
    events: List[MatchEvent] = field(default_factory=list)
    undo_stack: List[Snapshot] = field(default_factory=list)
    redo_stack: List[Snapshot] = field(default_factory=list)
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        self.sport = SportKind(self.sport)
        self.rules = RulesConfig.validate(self.rules)
        if self.state is None or self.state.mode is not self.rules.mode:
            self.state = initial_state(self.rules)

    @classmethod
    def create(
        cls,
        sport: SportKind,
        team_a: Team,
        team_b: Team,
        rules: Optional[RulesConfig] = None,
    ) -> "Match":
        return cls(
            sport=sport,
            rules=rules if rules is not None else default_for(sport),
            team_a=team_a,
            team_b=team_b,
        )

    def rematch(self, swapped: bool = False) -> "Match":
        """Fresh match with the same sport, rules and teams."""
        return Match.create(
            self.sport,
            self.team_b if swapped else self.team_a,
            self.team_a if swapped else self.team_b,
            self.rules,
        )

    # -----------------------------------------------------
    # Derived state
    # -----------------------------------------------------

    @property
    def mode(self) -> Mode:
        return self.rules.mode

    @property
    def periods_exhausted(self) -> bool:
        """Timed only: regular time is over and the running period has no time left."""
        if self.mode is not Mode.TIMED:
            return False
        t = self.state
        return t.current_period >= self.rules.time.periods - 1 and t.current_remaining == 0

    @property
    def is_finished(self) -> bool:
        if self.winner is not None:
            return True
        if self.periods_exhausted:
            t = self.state
            return t.score_a != t.score_b or self.rules.time.allow_draw
        return False

    @property
    def is_draw(self) -> bool:
        if self.winner is not None or self.mode is not Mode.TIMED:
            return False
        t = self.state
        return self.is_finished and self.rules.time.allow_draw and t.score_a == t.score_b

    @property
    def outcome(self) -> Outcome:
        if self.winner is Side.A:
            return Outcome.A_WON
        if self.winner is Side.B:
            return Outcome.B_WON
        if self.is_draw:
            return Outcome.DRAW
        return Outcome.IN_PROGRESS

    @property
    def current_score_tuple(self) -> Tuple[int, int]:
        """Score of the running context (current set in sets mode)."""
        if self.mode is Mode.SETS:
            return self.state.current
        return self.state.score_a, self.state.score_b

    @property
    def progress_description(self) -> str:
        if self.mode is Mode.POINTS:
            return f"{self.state.score_a} : {self.state.score_b}"

        if self.mode is Mode.SETS:
            s = self.state
            a, b = s.current
            return (
                f"Set {s.index + 1} - {a} : {b}  "
                f"(W {s.sets_won_a}-{s.sets_won_b}, Bo{self.rules.best_of})"
            )

        t = self.state
        periods = self.rules.time.periods
        if t.current_period < periods:
            label = f"P{t.current_period + 1}/{periods}"
        else:
            label = f"OT{t.current_period - periods + 1}"
        mm, ss = divmod(t.current_remaining, 60)
        return f"{label}  {mm:02d}:{ss:02d} - {t.score_a} : {t.score_b}"

    @property
    def can_undo(self) -> bool:
        return bool(self.undo_stack)

    @property
    def can_redo(self) -> bool:
        return bool(self.redo_stack)

    def involves(self, team_id: str) -> bool:
        return self.team_a.id == team_id or self.team_b.id == team_id

    def team_for(self, side: Side) -> Team:
        return self.team_a if side is Side.A else self.team_b

    # -----------------------------------------------------
    # Serialization
    # -----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "sport": self.sport.value,
            "rules": self.rules.to_dict(),
            "team_a": self.team_a.to_dict(),
            "team_b": self.team_b.to_dict(),
            "state": state_to_dict(self.state),
            "winner": self.winner.value if self.winner else None,
            "events": [e.to_dict() for e in self.events],
            "undo_stack": [s.to_dict() for s in self.undo_stack],
            "redo_stack": [s.to_dict() for s in self.redo_stack],
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Match":
        winner = d.get("winner")
        state = d.get("state")
        return Match(
            id=str(d["id"]),
            created_at=parse_timestamp(d.get("created_at")),
            updated_at=parse_timestamp(d.get("updated_at")),
            sport=SportKind.from_key(d.get("sport", SportKind.FOOTBALL.value)),
            rules=RulesConfig.from_dict(d["rules"]),
            team_a=Team.from_dict(d["team_a"]),
            team_b=Team.from_dict(d["team_b"]),
            state=state_from_dict(state) if state else None,
            winner=Side(winner) if winner else None,
            events=[MatchEvent.from_dict(e) for e in d.get("events", [])],
            undo_stack=[Snapshot.from_dict(s) for s in d.get("undo_stack", [])],
            redo_stack=[Snapshot.from_dict(s) for s in d.get("redo_stack", [])],
        )
