import logging

from scorekeeper.config import LOG_FORMAT, LOG_LEVEL
from scorekeeper.engine import MatchEngine
from scorekeeper.models import Match, Side
from scorekeeper.rules import default_for
from scorekeeper.sports import SportKind
from scorekeeper.stats import build_summary, top_teams_by_win_rate
from scorekeeper.teams import Team

logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)

red = Team("Red Dragons", SportKind.VOLLEYBALL)
blue = Team("Blue Sharks", SportKind.VOLLEYBALL)

# Points: race to 21, win by two -> 22:20
points = Match.create(SportKind.VOLLEYBALL, red, blue, default_for(SportKind.VOLLEYBALL).with_points(21, True))
engine = MatchEngine(points)

for _ in range(20):
    engine.score(Side.A)
    engine.score(Side.B)

engine.score(Side.A)  # 21-20, not yet
engine.score(Side.A)  # 22-20 -> A wins
print("Points:", points.progress_description, points.outcome.value)

# Sets: default volleyball (best of 5, 25 per set)
sets = Match.create(SportKind.VOLLEYBALL, red, blue)
engine = MatchEngine(sets)

for winner in (Side.A, Side.B, Side.A, Side.A):
    for _ in range(25):
        engine.score(winner)
    print("Sets:", sets.progress_description)
print("Sets:", sets.outcome.value)

# Timed: football 2x45, draw allowed
football_a = Team("City", SportKind.FOOTBALL)
football_b = Team("United", SportKind.FOOTBALL)
timed = Match.create(SportKind.FOOTBALL, football_a, football_b)
engine = MatchEngine(timed)

engine.tick(20 * 60)
engine.score(Side.A)
engine.tick(25 * 60)
print("Timed:", timed.progress_description)
engine.score(Side.B)
engine.end_period()
print("Timed:", timed.progress_description, timed.outcome.value)

print("\nUndo last change...")
engine.undo()
print("Timed:", timed.progress_description, timed.outcome.value)
engine.redo()

print("\nTrying to score after full time...")
print("Result:", engine.score(Side.A))

summary = build_summary([points, sets, timed])
print("\nWin rate:")
for rec in top_teams_by_win_rate(summary):
    print(f"  {rec.team_name:<12} {rec.sport.label:<10} {rec.wins}-{rec.losses}-{rec.draws}  {rec.win_rate:.0%}")
