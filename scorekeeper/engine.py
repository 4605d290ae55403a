import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from scorekeeper.config import FALLBACK_OVERTIME_SECONDS, MIN_PERIOD_SECONDS, UNDO_LIMIT
from scorekeeper.models import (
    EventKind,
    Match,
    MatchEvent,
    Outcome,
    Side,
    Snapshot,
    initial_state,
)
from scorekeeper.rules import Mode
from scorekeeper.teams import utc_now

logger = logging.getLogger(__name__)


class Rejection(str, Enum):
    FINISHED = "finished"
    ZERO_DELTA = "zero_delta"
    WRONG_MODE = "wrong_mode"
    NON_POSITIVE_SECONDS = "non_positive_seconds"
    PERIOD_OUT_OF_RANGE = "period_out_of_range"
    EMPTY_STACK = "empty_stack"


@dataclass(frozen=True)
class OperationResult:
    """Whether an engine call changed the match. Truthy when applied."""

    applied: bool
    reason: Optional[Rejection] = None

    def __bool__(self) -> bool:
        return self.applied


APPLIED = OperationResult(applied=True)


class MatchEngine:
    """
    Sole mutator of a match's scoring state.

    Responsibilities:
    - Apply score / timer / period events per rules mode
    - Detect set and match completion
    - Keep the append-only event log
    - Bounded undo/redo over value snapshots

    Invalid calls never raise: they leave the match untouched and return a
    rejected ``OperationResult``.
    """

    def __init__(self, match: Match):
        self.match = match

    # =========================================================
    # PUBLIC API
    # =========================================================

    def score(self, side: Side, delta: int = 1) -> OperationResult:
        """Add ``delta`` points to ``side`` (negative to take points away)."""
        side = Side(side)

        if delta == 0:
            return self._reject("score", Rejection.ZERO_DELTA)
        if self.match.is_finished:
            return self._reject("score", Rejection.FINISHED)

        self._checkpoint()

        mode = self.match.mode
        if mode is Mode.POINTS:
            self._score_points(side, delta)
        elif mode is Mode.SETS:
            self._score_sets(side, delta)
        else:
            self._score_timed(side, delta)

        self._touch()
        return APPLIED

    def set_score(self, score_a: int, score_b: int) -> OperationResult:
        """Override the score of the running context (current set in sets mode)."""
        if self.match.is_finished:
            return self._reject("set_score", Rejection.FINISHED)

        self._checkpoint()

        a, b = max(0, int(score_a)), max(0, int(score_b))
        state = self.match.state
        mode = self.match.mode

        if mode is Mode.POINTS:
            self.match.state = replace(state, score_a=a, score_b=b)
            self._append(EventKind.NOTE, text=f"Score set to {a}:{b}")
            self._check_points_finish()
        elif mode is Mode.SETS:
            self.match.state = self._with_current_set(state, a, b)
            self._append(EventKind.NOTE, text=f"Set score set to {a}:{b}")
        else:
            self.match.state = replace(state, score_a=a, score_b=b)
            self._append(EventKind.NOTE, text=f"Timed score set to {a}:{b}")

        self._touch()
        return APPLIED

    def tick(self, seconds: int = 1) -> OperationResult:
        """
        Advance the game clock. Driven by an external timer; the engine
        only counts logical seconds.
        """
        if self.match.mode is not Mode.TIMED:
            return self._reject("tick", Rejection.WRONG_MODE)
        if seconds <= 0:
            return self._reject("tick", Rejection.NON_POSITIVE_SECONDS)
        if self.match.is_finished:
            return self._reject("tick", Rejection.FINISHED)
        if not self._period_in_range():
            return self._reject("tick", Rejection.PERIOD_OUT_OF_RANGE)

        self._checkpoint()

        t = self.match.state
        remaining = list(t.remaining_seconds)
        remaining[t.current_period] = max(0, remaining[t.current_period] - seconds)
        self.match.state = replace(t, remaining_seconds=tuple(remaining))

        if remaining[t.current_period] == 0:
            self._end_current_period()

        self._touch()
        return APPLIED

    def end_period(self) -> OperationResult:
        """Close the running period now, whatever time is left."""
        if self.match.mode is not Mode.TIMED:
            return self._reject("end_period", Rejection.WRONG_MODE)
        if self.match.is_finished:
            return self._reject("end_period", Rejection.FINISHED)
        if not self._period_in_range():
            return self._reject("end_period", Rejection.PERIOD_OUT_OF_RANGE)

        self._checkpoint()
        self._end_current_period()
        self._touch()
        return APPLIED

    def add_note(self, text: str) -> OperationResult:
        """Append a free-form note. Allowed on finished matches too."""
        self._checkpoint()
        self._append(EventKind.NOTE, text=str(text))
        self._touch()
        return APPLIED

    def reset_current_set(self) -> OperationResult:
        if self.match.mode is not Mode.SETS:
            return self._reject("reset_current_set", Rejection.WRONG_MODE)
        if self.match.is_finished:
            return self._reject("reset_current_set", Rejection.FINISHED)

        self._checkpoint()
        self.match.state = self._with_current_set(self.match.state, 0, 0)
        self._append(EventKind.NOTE, text="Current set reset")
        self._touch()
        return APPLIED

    def reset_all(self) -> OperationResult:
        """Back to a zero state with an empty log. Works on finished matches."""
        self._checkpoint(keep=0)
        self.match.state = initial_state(self.match.rules)
        self.match.winner = None
        self.match.events.clear()
        self._touch()
        return APPLIED

    def rematch(self, swapped: bool = False) -> Match:
        return self.match.rematch(swapped=swapped)

    # =========================================================
    # UNDO / REDO
    # =========================================================

    def undo(self) -> OperationResult:
        if not self.match.undo_stack:
            return self._reject("undo", Rejection.EMPTY_STACK)

        snap = self.match.undo_stack.pop()
        self._push(self.match.redo_stack, self._snapshot(keep=snap.kept))
        self._restore(snap)
        return APPLIED

    def redo(self) -> OperationResult:
        if not self.match.redo_stack:
            return self._reject("redo", Rejection.EMPTY_STACK)

        snap = self.match.redo_stack.pop()
        self._push(self.match.undo_stack, self._snapshot(keep=snap.kept))
        self._restore(snap)
        return APPLIED

    # =========================================================
    # DERIVED
    # =========================================================

    @property
    def is_finished(self) -> bool:
        return self.match.is_finished

    @property
    def outcome(self) -> Outcome:
        return self.match.outcome

    @property
    def current_score_tuple(self) -> Tuple[int, int]:
        return self.match.current_score_tuple

    @property
    def progress_description(self) -> str:
        return self.match.progress_description

    # =========================================================
    # POINTS LOGIC
    # =========================================================

    def _score_points(self, side: Side, delta: int):
        s = self.match.state
        if side is Side.A:
            s = replace(s, score_a=max(0, s.score_a + delta))
        else:
            s = replace(s, score_b=max(0, s.score_b + delta))
        self.match.state = s
        self._log_score(side, delta)
        self._check_points_finish()

    def _check_points_finish(self):
        cfg = self.match.rules.points
        a, b = self.match.state.score_a, self.match.state.score_b

        if a < cfg.target and b < cfg.target:
            return
        if a == b:
            return
        if cfg.win_by_two and abs(a - b) < 2:
            return

        self._finish(Side.A if a > b else Side.B)

    # =========================================================
    # SET LOGIC
    # =========================================================

    def _score_sets(self, side: Side, delta: int):
        cfg = self.match.rules.sets
        s = self.match.state
        a, b = s.current

        if side is Side.A:
            a = max(0, a + delta)
        else:
            b = max(0, b + delta)

        s = self._with_current_set(s, a, b)
        self._log_score(side, delta)

        if not self._is_set_won(a, b):
            self.match.state = s
            return

        set_winner = Side.A if a > b else Side.B
        if set_winner is Side.A:
            s = replace(s, sets_won_a=s.sets_won_a + 1)
        else:
            s = replace(s, sets_won_b=s.sets_won_b + 1)
        self._append(EventKind.SET_WIN, side=set_winner)

        won = s.sets_won_a if set_winner is Side.A else s.sets_won_b
        if won >= cfg.sets_to_win:
            self.match.state = s
            self._finish(set_winner)
            return

        # Next set
        self.match.state = replace(
            s,
            index=s.index + 1,
            scores_a=s.scores_a + (0,),
            scores_b=s.scores_b + (0,),
        )

    def _is_set_won(self, a: int, b: int) -> bool:
        cfg = self.match.rules.sets
        if a == b or max(a, b) < cfg.points_per_set:
            return False
        return not cfg.win_by_two or abs(a - b) >= 2

    @staticmethod
    def _with_current_set(s, a: int, b: int):
        scores_a = list(s.scores_a)
        scores_b = list(s.scores_b)
        while len(scores_a) <= s.index:
            scores_a.append(0)
        while len(scores_b) <= s.index:
            scores_b.append(0)
        scores_a[s.index] = a
        scores_b[s.index] = b
        return replace(s, scores_a=tuple(scores_a), scores_b=tuple(scores_b))

    # =========================================================
    # TIMED LOGIC
    # =========================================================

    def _score_timed(self, side: Side, delta: int):
        t = self.match.state
        if side is Side.A:
            t = replace(t, score_a=max(0, t.score_a + delta))
        else:
            t = replace(t, score_b=max(0, t.score_b + delta))
        self.match.state = t
        self._log_score(side, delta)

    def _period_in_range(self) -> bool:
        t = self.match.state
        return 0 <= t.current_period < len(t.remaining_seconds)

    def _end_current_period(self):
        cfg = self.match.rules.time
        t = self.match.state
        period = t.current_period

        remaining = list(t.remaining_seconds)
        remaining[period] = 0
        self._append(EventKind.PERIOD_END, value=period)

        if period + 1 < cfg.periods:
            period += 1
            self.match.state = replace(t, current_period=period, remaining_seconds=tuple(remaining))
            self._append(EventKind.PERIOD_START, value=period)
            return

        self.match.state = replace(t, remaining_seconds=tuple(remaining))

        if t.score_a != t.score_b:
            self._finish(Side.A if t.score_a > t.score_b else Side.B)
            return

        if cfg.allow_draw:
            # Drawn: winner stays None, exhaustion marks the match finished
            return

        overtime = max(MIN_PERIOD_SECONDS, cfg.overtime_seconds or FALLBACK_OVERTIME_SECONDS)
        remaining.append(overtime)
        period += 1
        self.match.state = replace(t, current_period=period, remaining_seconds=tuple(remaining))
        self._append(EventKind.PERIOD_START, value=period)

    # =========================================================
    # MATCH LOGIC
    # =========================================================

    def _finish(self, side: Side):
        self.match.winner = side
        self._append(EventKind.MATCH_END, side=side)

    def _log_score(self, side: Side, delta: int):
        kind = EventKind.SCORE if delta > 0 else EventKind.UNSCORE
        self._append(kind, side=side, value=delta)

    def _append(self, kind: EventKind, side: Optional[Side] = None, value: Optional[int] = None,
                text: Optional[str] = None):
        self.match.events.append(MatchEvent(kind=kind, side=side, value=value, text=text))

    def _touch(self):
        self.match.updated_at = utc_now()

    def _reject(self, operation: str, reason: Rejection) -> OperationResult:
        logger.debug("Rejected %s on match %s: %s", operation, self.match.id, reason.value)
        return OperationResult(applied=False, reason=reason)

    # =========================================================
    # SNAPSHOT
    # =========================================================

    def _snapshot(self, keep: int) -> Snapshot:
        events = self.match.events
        return Snapshot(
            state=self.match.state,
            winner=self.match.winner,
            events_count=len(events),
            updated_at=self.match.updated_at,
            tail=tuple(events[keep:]),
        )

    def _checkpoint(self, keep: Optional[int] = None):
        """
        Record the pre-change state for undo and drop redo history.
        ``keep`` is how many leading events the change leaves in place.
        """
        if keep is None:
            keep = len(self.match.events)
        self._push(self.match.undo_stack, self._snapshot(keep))
        self.match.redo_stack.clear()

    @staticmethod
    def _push(stack, snap: Snapshot):
        stack.append(snap)
        if len(stack) > UNDO_LIMIT:
            del stack[0]

    def _restore(self, snap: Snapshot):
        self.match.state = snap.state
        self.match.winner = snap.winner
        del self.match.events[snap.kept:]
        self.match.events.extend(snap.tail)
        self.match.updated_at = snap.updated_at
