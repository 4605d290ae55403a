"""
Statistics over the match history.

``build_summary`` folds a collection of matches into per-team (per sport)
records and per-sport overviews. It keeps no state between calls: the
summary is rebuilt from scratch every time the history changes.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple

from scorekeeper.models import Match, Side
from scorekeeper.rules import Mode
from scorekeeper.sports import SportKind
from scorekeeper.storage import CollectionKey
from scorekeeper.teams import Team, utc_now

logger = logging.getLogger(__name__)


# =========================================================
# SUMMARY TYPES
# =========================================================

@dataclass
class TeamRecord:
    """
    One team's results in one sport.

    ``points_for`` / ``points_against`` are in the mode's own unit: points,
    sets won, or goals. ``current_streak`` is positive for consecutive wins
    and negative for consecutive losses.
    """

    team_id: str
    team_name: str
    sport: SportKind
    games: int = 0
    wins: int = 0
    losses: int = 0
    draws: int = 0
    points_for: int = 0
    points_against: int = 0
    current_streak: int = 0
    longest_win_streak: int = 0

    @property
    def win_rate(self) -> float:
        return self.wins / self.games if self.games else 0.0

    @property
    def avg_for(self) -> float:
        return self.points_for / self.games if self.games else 0.0

    @property
    def avg_against(self) -> float:
        return self.points_against / self.games if self.games else 0.0

    @property
    def avg_margin(self) -> float:
        return self.avg_for - self.avg_against


@dataclass
class SportOverview:
    sport: SportKind
    matches: int = 0
    finished: int = 0
    draws: int = 0
    avg_total_points: float = 0.0
    mode_share: Dict[Mode, float] = field(default_factory=dict)


@dataclass
class StatsSummary:
    team_records: List[TeamRecord] = field(default_factory=list)
    sport_overviews: List[SportOverview] = field(default_factory=list)
    generated_at: datetime = field(default_factory=utc_now, compare=False)

    def record_for(self, team_id: str, sport: SportKind) -> Optional[TeamRecord]:
        return next(
            (r for r in self.team_records if r.team_id == team_id and r.sport is sport),
            None,
        )

    def records_for_team(self, team_id: str) -> List[TeamRecord]:
        return [r for r in self.team_records if r.team_id == team_id]

    def overview_for(self, sport: SportKind) -> Optional[SportOverview]:
        return next((o for o in self.sport_overviews if o.sport is sport), None)


class MatchResult(NamedTuple):
    """Mode-independent view of a match used by the aggregator."""

    score_a: int
    score_b: int
    finished: bool
    is_draw: bool


# =========================================================
# BUILD
# =========================================================

def match_result(match: Match) -> MatchResult:
    """
    Normalized score pair: raw points, sets won, or running timed score.
    """
    state = match.state
    if match.mode is Mode.SETS:
        a, b = state.sets_won_a, state.sets_won_b
    else:
        a, b = state.score_a, state.score_b

    finished = match.is_finished
    is_draw = (
        match.mode is Mode.TIMED
        and finished
        and a == b
        and match.rules.time.allow_draw
    )
    return MatchResult(a, b, finished, is_draw)


def build_summary(
    matches: Iterable[Match],
    include_in_progress: bool = True,
    generated_at: Optional[datetime] = None,
) -> StatsSummary:
    ordered = sorted(matches, key=lambda m: m.created_at)

    teams: Dict[Tuple[str, SportKind], TeamRecord] = {}
    sports: Dict[SportKind, _SportAccumulator] = {}
    skipped = 0

    for match in ordered:
        result = match_result(match)
        if not result.finished and not include_in_progress:
            skipped += 1
            continue

        acc = sports.setdefault(match.sport, _SportAccumulator(match.sport))
        acc.feed(match.mode, result)

        _feed_team(teams, match, Side.A, result)
        _feed_team(teams, match, Side.B, result)

    if skipped:
        logger.debug("Skipped %d in-progress match(es)", skipped)

    return StatsSummary(
        team_records=sorted(
            teams.values(),
            key=lambda r: (r.team_name.casefold(), r.sport.label.casefold()),
        ),
        sport_overviews=sorted(
            (acc.finish() for acc in sports.values()),
            key=lambda o: o.sport.label,
        ),
        generated_at=generated_at or utc_now(),
    )


def _feed_team(
    teams: Dict[Tuple[str, SportKind], TeamRecord],
    match: Match,
    side: Side,
    result: MatchResult,
):
    team: Team = match.team_for(side)
    key = (team.id, match.sport)
    rec = teams.get(key)
    if rec is None:
        rec = teams[key] = TeamRecord(team_id=team.id, team_name=team.name, sport=match.sport)

    if side is Side.A:
        mine, theirs = result.score_a, result.score_b
    else:
        mine, theirs = result.score_b, result.score_a

    # Running totals count for unfinished matches as well
    rec.points_for += max(0, mine)
    rec.points_against += max(0, theirs)

    if not result.finished:
        return

    rec.games += 1

    if result.is_draw:
        rec.draws += 1
        rec.current_streak = 0
        return

    won = match.winner is side or (match.winner is None and mine > theirs)
    if won:
        rec.wins += 1
        rec.current_streak = rec.current_streak + 1 if rec.current_streak > 0 else 1
        rec.longest_win_streak = max(rec.longest_win_streak, rec.current_streak)
    else:
        rec.losses += 1
        rec.current_streak = rec.current_streak - 1 if rec.current_streak < 0 else -1


class _SportAccumulator:

    def __init__(self, sport: SportKind):
        self.sport = sport
        self.matches = 0
        self.finished = 0
        self.draws = 0
        self.total_points = 0
        self.mode_count: Dict[Mode, int] = {}

    def feed(self, mode: Mode, result: MatchResult):
        self.matches += 1
        if result.finished:
            self.finished += 1
        if result.is_draw:
            self.draws += 1
        self.total_points += max(0, result.score_a + result.score_b)
        self.mode_count[mode] = self.mode_count.get(mode, 0) + 1

    def finish(self) -> SportOverview:
        total = max(1, self.matches)
        return SportOverview(
            sport=self.sport,
            matches=self.matches,
            finished=self.finished,
            draws=self.draws,
            avg_total_points=self.total_points / self.matches if self.matches else 0.0,
            mode_share={mode: count / total for mode, count in self.mode_count.items()},
        )


# =========================================================
# LEADERBOARDS
# =========================================================

def rank_records(
    records: Iterable[TeamRecord],
    metric: Callable[[TeamRecord], float],
) -> List[TeamRecord]:
    """Metric descending, then games descending, then name (case-insensitive)."""
    return sorted(records, key=lambda r: (-metric(r), -r.games, r.team_name.casefold()))


def _filter(summary: StatsSummary, sport: Optional[SportKind]) -> List[TeamRecord]:
    if sport is None:
        return list(summary.team_records)
    return [r for r in summary.team_records if r.sport is sport]


def top_teams_by_win_rate(
    summary: StatsSummary,
    limit: int = 10,
    sport: Optional[SportKind] = None,
    min_games: int = 1,
) -> List[TeamRecord]:
    records = [r for r in _filter(summary, sport) if r.games >= min_games]
    return rank_records(records, lambda r: r.win_rate)[:max(0, limit)]


def top_win_streaks(
    summary: StatsSummary,
    limit: int = 10,
    sport: Optional[SportKind] = None,
) -> List[TeamRecord]:
    """Teams currently on a winning run."""
    records = [r for r in _filter(summary, sport) if r.current_streak > 0]
    return rank_records(records, lambda r: r.current_streak)[:max(0, limit)]


def top_longest_streaks(
    summary: StatsSummary,
    limit: int = 10,
    sport: Optional[SportKind] = None,
) -> List[TeamRecord]:
    records = [r for r in _filter(summary, sport) if r.longest_win_streak > 0]
    return rank_records(records, lambda r: r.longest_win_streak)[:max(0, limit)]


def sport_digest(summary: StatsSummary) -> List[Tuple[SportKind, int, float, Dict[Mode, float]]]:
    return [
        (o.sport, o.matches, o.avg_total_points, o.mode_share)
        for o in sorted(summary.sport_overviews, key=lambda o: o.sport.label)
    ]


# =========================================================
# LIVE SERVICE
# =========================================================

class StatsService:
    """
    Keeps a summary in step with a matches repository.

    The summary is recomputed on ``refresh`` and whenever the repository's
    storage reports a change to the matches collection.
    """

    def __init__(self, repository, include_in_progress: bool = True):
        self.repository = repository
        self.include_in_progress = include_in_progress
        self.summary = build_summary(repository.history, include_in_progress)
        repository.storage.subscribe(self._on_storage_change)

    def close(self):
        self.repository.storage.unsubscribe(self._on_storage_change)

    def refresh(self, matches: Optional[Iterable[Match]] = None) -> StatsSummary:
        source = self.repository.history if matches is None else matches
        self.summary = build_summary(source, self.include_in_progress)
        return self.summary

    def record_for(self, team_id: str, sport: SportKind) -> Optional[TeamRecord]:
        return self.summary.record_for(team_id, sport)

    def overview_for(self, sport: SportKind) -> Optional[SportOverview]:
        return self.summary.overview_for(sport)

    def _on_storage_change(self, key: CollectionKey):
        if key is CollectionKey.MATCHES:
            self.refresh()
