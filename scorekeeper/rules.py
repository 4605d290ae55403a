from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from scorekeeper.config import (
    DEFAULT_OVERTIME_SECONDS,
    HARD_MAX_PERIOD_SECONDS,
    HARD_MAX_PERIODS,
    HARD_MAX_POINTS,
    HARD_MAX_SETS,
    MIN_PERIOD_SECONDS,
)
from scorekeeper.sports import SportKind


class Mode(str, Enum):
    POINTS = "points"
    SETS = "sets"
    TIMED = "timed"


def _clamp(value: int, lo: int, hi: int) -> int:
    return min(max(int(value), lo), hi)


# =========================================================
# SUB-CONFIGS
# =========================================================

@dataclass(frozen=True)
class PointsRule:
    target: int = 21
    win_by_two: bool = False


@dataclass(frozen=True)
class SetsRule:
    sets_to_win: int = 2
    points_per_set: int = 25
    win_by_two: bool = True


@dataclass(frozen=True)
class TimeRule:
    """
    ``stop_on_score`` is a hint for the external clock driver (pause the
    timer after a goal). It is validated and stored; the engine ignores it.
    """

    periods: int = 2
    seconds_per_period: int = 45 * 60
    allow_draw: bool = True
    overtime_seconds: Optional[int] = None
    stop_on_score: bool = False


# =========================================================
# RULES
# =========================================================

@dataclass(frozen=True)
class RulesConfig:
    """
    How a match is won.

    Exactly one of ``points`` / ``sets`` / ``time`` is populated and it
    always matches ``mode``. Instances built through the constructor are
    not normalized on their own; use ``RulesConfig.validate`` (all builders
    and ``from_dict`` do).
    """

    mode: Mode
    sport: SportKind = SportKind.FOOTBALL
    points: Optional[PointsRule] = None
    sets: Optional[SetsRule] = None
    time: Optional[TimeRule] = None

    # -----------------------------------------------------
    # Validation
    # -----------------------------------------------------

    @staticmethod
    def validate(rules: "RulesConfig") -> "RulesConfig":
        """
        Normalize a rules config. Never fails: out-of-range values are
        clamped and a missing sub-config is replaced by a default one.
        """
        mode = Mode(rules.mode)

        if mode is Mode.POINTS:
            p = rules.points or PointsRule()
            p = replace(p, target=_clamp(p.target, 1, HARD_MAX_POINTS), win_by_two=bool(p.win_by_two))
            return RulesConfig(mode=mode, sport=rules.sport, points=p)

        if mode is Mode.SETS:
            s = rules.sets or SetsRule()
            s = replace(
                s,
                sets_to_win=_clamp(s.sets_to_win, 1, HARD_MAX_SETS),
                points_per_set=_clamp(s.points_per_set, 1, HARD_MAX_POINTS),
                win_by_two=bool(s.win_by_two),
            )
            return RulesConfig(mode=mode, sport=rules.sport, sets=s)

        t = rules.time or TimeRule()
        if t.allow_draw:
            overtime = None
        elif t.overtime_seconds is None:
            overtime = DEFAULT_OVERTIME_SECONDS
        else:
            overtime = _clamp(t.overtime_seconds, MIN_PERIOD_SECONDS, HARD_MAX_PERIOD_SECONDS)

        t = replace(
            t,
            periods=_clamp(t.periods, 1, HARD_MAX_PERIODS),
            seconds_per_period=_clamp(t.seconds_per_period, MIN_PERIOD_SECONDS, HARD_MAX_PERIOD_SECONDS),
            allow_draw=bool(t.allow_draw),
            overtime_seconds=overtime,
            stop_on_score=bool(t.stop_on_score),
        )
        return RulesConfig(mode=mode, sport=rules.sport, time=t)

    # -----------------------------------------------------
    # Builders
    # -----------------------------------------------------

    def with_mode(self, mode: Mode) -> "RulesConfig":
        return RulesConfig.validate(replace(self, mode=Mode(mode)))

    def with_points(self, target: int, win_by_two: bool) -> "RulesConfig":
        return RulesConfig.validate(
            replace(self, mode=Mode.POINTS, points=PointsRule(target, win_by_two))
        )

    def with_sets(self, sets_to_win: int, points_per_set: int, win_by_two: bool) -> "RulesConfig":
        return RulesConfig.validate(
            replace(self, mode=Mode.SETS, sets=SetsRule(sets_to_win, points_per_set, win_by_two))
        )

    def with_time(
        self,
        periods: int,
        seconds_per_period: int,
        allow_draw: bool,
        overtime_seconds: Optional[int] = None,
        stop_on_score: bool = False,
    ) -> "RulesConfig":
        rule = TimeRule(periods, seconds_per_period, allow_draw, overtime_seconds, stop_on_score)
        return RulesConfig.validate(replace(self, mode=Mode.TIMED, time=rule))

    # -----------------------------------------------------
    # Derived traits
    # -----------------------------------------------------

    @property
    def uses_timer(self) -> bool:
        return self.mode is Mode.TIMED

    @property
    def uses_sets(self) -> bool:
        return self.mode is Mode.SETS

    @property
    def race_to_points(self) -> bool:
        return self.mode is Mode.POINTS

    @property
    def allows_draw(self) -> bool:
        if self.mode is Mode.TIMED:
            return self.time.allow_draw if self.time else True
        return False

    @property
    def best_of(self) -> Optional[int]:
        if self.mode is Mode.SETS and self.sets:
            return self.sets.sets_to_win * 2 - 1
        return None

    @property
    def short_description(self) -> str:
        if self.mode is Mode.POINTS:
            if self.points is None:
                return "Race to N"
            p = self.points
            return f"To {p.target} (win by 2)" if p.win_by_two else f"To {p.target}"

        if self.mode is Mode.SETS:
            if self.sets is None:
                return "Best-of sets"
            s = self.sets
            suffix = ", +2" if s.win_by_two else ""
            return f"Bo{self.best_of}, set {s.points_per_set}{suffix}"

        if self.time is None:
            return "Timed"
        t = self.time
        base = f"{t.periods}×{t.seconds_per_period // 60}m"
        return base if t.allow_draw else f"{base} + OT"

    # -----------------------------------------------------
    # Serialization
    # -----------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "sport": self.sport.value,
            "points": _rule_dict(self.points),
            "sets": _rule_dict(self.sets),
            "time": _rule_dict(self.time),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "RulesConfig":
        points = d.get("points")
        sets = d.get("sets")
        time = d.get("time")
        return RulesConfig.validate(
            RulesConfig(
                mode=Mode(d.get("mode", Mode.POINTS.value)),
                sport=SportKind.from_key(d.get("sport", SportKind.FOOTBALL.value)),
                points=PointsRule(**points) if points else None,
                sets=SetsRule(**sets) if sets else None,
                time=TimeRule(**time) if time else None,
            )
        )


def _rule_dict(rule) -> Optional[Dict[str, Any]]:
    if rule is None:
        return None
    return dict(rule.__dict__)


# =========================================================
# PRESETS
# =========================================================

def default_for(sport: SportKind) -> RulesConfig:
    """Preset rules per sport."""
    sport = SportKind(sport)

    if sport is SportKind.VOLLEYBALL:
        raw = RulesConfig(Mode.SETS, sport, sets=SetsRule(3, 25, True))
    elif sport is SportKind.TABLE_TENNIS:
        raw = RulesConfig(Mode.SETS, sport, sets=SetsRule(3, 11, True))
    elif sport is SportKind.BADMINTON:
        raw = RulesConfig(Mode.SETS, sport, sets=SetsRule(2, 21, True))
    elif sport is SportKind.TENNIS:
        # simplified: sets to 6 games, win by two
        raw = RulesConfig(Mode.SETS, sport, sets=SetsRule(2, 6, True))
    elif sport is SportKind.FOOTBALL:
        raw = RulesConfig(Mode.TIMED, sport, time=TimeRule(2, 45 * 60, True))
    elif sport is SportKind.BASKETBALL:
        raw = RulesConfig(Mode.TIMED, sport, time=TimeRule(4, 10 * 60, False, 5 * 60))
    elif sport is SportKind.HOCKEY:
        raw = RulesConfig(Mode.TIMED, sport, time=TimeRule(3, 20 * 60, False, 5 * 60))
    elif sport is SportKind.ESPORTS_CS:
        raw = RulesConfig(Mode.POINTS, sport, points=PointsRule(13, False))
    else:
        # Dota / LoL: best-of-3 series, one "point" per game
        raw = RulesConfig(Mode.SETS, sport, sets=SetsRule(2, 1, False))

    return RulesConfig.validate(raw)


def generic_presets() -> List[RulesConfig]:
    return [
        RulesConfig.validate(RulesConfig(Mode.POINTS, SportKind.FOOTBALL, points=PointsRule(11, True))),
        RulesConfig.validate(RulesConfig(Mode.SETS, SportKind.VOLLEYBALL, sets=SetsRule(2, 15, True))),
        RulesConfig.validate(
            RulesConfig(Mode.TIMED, SportKind.BASKETBALL, time=TimeRule(4, 8 * 60, False, 3 * 60))
        ),
    ]
