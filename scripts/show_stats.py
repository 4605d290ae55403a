# scripts/show_stats.py
from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from scorekeeper.config import DATA_DIR, LOG_FORMAT
from scorekeeper.repositories import MatchesRepository
from scorekeeper.sports import SportKind
from scorekeeper.stats import (
    StatsSummary,
    TeamRecord,
    build_summary,
    sport_digest,
    top_longest_streaks,
    top_teams_by_win_rate,
    top_win_streaks,
)
from scorekeeper.storage import JsonStorage


# ----------------------------
# Formatting
# ----------------------------
def format_record(rank: int, rec: TeamRecord) -> str:
    return (
        f"{rank:>2}. {rec.team_name:<20} {rec.sport.short_label:<10} "
        f"G{rec.games:<3} {rec.wins}-{rec.losses}-{rec.draws}  "
        f"win {rec.win_rate:6.1%}  streak {rec.current_streak:+d}  "
        f"margin {rec.avg_margin:+.1f}"
    )


def print_board(title: str, records: List[TeamRecord]):
    print(f"\n== {title} ==")
    if not records:
        print("   (none)")
        return
    for i, rec in enumerate(records, start=1):
        print(format_record(i, rec))


def print_sports(summary: StatsSummary):
    print("\n== Sports ==")
    for sport, matches, avg_total, share in sport_digest(summary):
        modes = ", ".join(f"{mode.value} {value:.0%}" for mode, value in sorted(share.items()))
        print(f"   {sport.label:<14} matches {matches:<4} avg total {avg_total:6.1f}  [{modes}]")


# ----------------------------
# Main
# ----------------------------
def main(argv: Optional[List[str]] = None) -> int:
    p = argparse.ArgumentParser(description="Print leaderboards from the stored match history.")
    p.add_argument("--data-dir", type=str, default=str(DATA_DIR), help="Directory holding matches.json")
    p.add_argument("--sport", type=str, default=None, help="Sport key, e.g. volleyball or esports.cs")
    p.add_argument("--limit", type=int, default=10)
    p.add_argument("--min-games", type=int, default=1)
    p.add_argument("--include-in-progress", action="store_true",
                   help="Count unfinished matches in totals")
    p.add_argument("--debug", action="store_true")

    args = p.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.WARNING, format=LOG_FORMAT)

    sport = SportKind.from_key(args.sport) if args.sport else None

    repo = MatchesRepository(JsonStorage(Path(args.data_dir)))
    matches = repo.history if sport is None else repo.for_sport(sport)
    print(f"[INFO] Matches: {len(matches)}  from {repo.storage.path_for(repo.key)}")

    summary = build_summary(matches, include_in_progress=bool(args.include_in_progress))

    print_board("Win rate", top_teams_by_win_rate(summary, args.limit, sport, args.min_games))
    print_board("Current win streaks", top_win_streaks(summary, args.limit, sport))
    print_board("Longest win streaks", top_longest_streaks(summary, args.limit, sport))
    print_sports(summary)

    repo.close()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
