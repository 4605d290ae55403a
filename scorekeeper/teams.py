from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from scorekeeper.config import DEFAULT_BADGE, PALETTE_SIZE
from scorekeeper.sports import SportKind


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid.uuid4().hex


def parse_timestamp(raw: Optional[str]) -> datetime:
    """ISO-8601 to an aware datetime; timestamps without an offset are taken as UTC."""
    if not raw:
        return utc_now()
    dt = datetime.fromisoformat(raw)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


# ---------------------------------------------------------
# Text helpers
# ---------------------------------------------------------

def sanitize(raw: str) -> str:
    """Drop newlines, trim and collapse inner whitespace."""
    return " ".join(str(raw).replace("\r", " ").replace("\n", " ").split())


def sanitize_or_none(raw: Optional[str]) -> Optional[str]:
    if raw is None:
        return None
    cleaned = sanitize(raw)
    return cleaned or None


def initials(text: str) -> str:
    """First and last word initials, e.g. "Red Dragons" -> "RD"."""
    parts = text.split()
    letters = []
    if parts:
        letters.append(parts[0][:1])
    if len(parts) > 1:
        letters.append(parts[-1][:1])
    result = "".join(letters).upper()
    if not result and text:
        return text[:1].upper()
    return result


def wrap_color_index(index: int, palette_size: int = PALETTE_SIZE) -> int:
    return int(index) % max(1, palette_size)


def fnv1a64(text: str) -> int:
    h = 0xCBF29CE484222325
    for b in text.encode("utf-8"):
        h ^= b
        h = (h * 0x100000001B3) & 0xFFFFFFFFFFFFFFFF
    return h


def stable_color_index(entity_id: str, palette_size: int = PALETTE_SIZE) -> int:
    return fnv1a64(entity_id) % max(1, palette_size)


# =========================================================
# PLAYER
# =========================================================

@dataclass(frozen=True)
class Player:
    name: str
    nickname: Optional[str] = None
    id: str = field(default_factory=new_id)
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        object.__setattr__(self, "name", sanitize(self.name))
        object.__setattr__(self, "nickname", sanitize_or_none(self.nickname))

    @property
    def display_name(self) -> str:
        return self.nickname or self.name

    @property
    def initials(self) -> str:
        return initials(self.display_name)

    @property
    def is_valid(self) -> bool:
        return bool(self.name)

    @property
    def color_index(self) -> int:
        return stable_color_index(self.id)

    def matches(self, query: str) -> bool:
        q = query.lower()
        return q in self.name.lower() or q in (self.nickname or "").lower()

    def with_name(self, name: str) -> "Player":
        return replace(self, name=name, updated_at=utc_now())

    def with_nickname(self, nickname: Optional[str]) -> "Player":
        return replace(self, nickname=nickname, updated_at=utc_now())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "nickname": self.nickname,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Player":
        return Player(
            id=str(d["id"]),
            name=str(d.get("name", "")),
            nickname=d.get("nickname"),
            created_at=parse_timestamp(d.get("created_at")),
            updated_at=parse_timestamp(d.get("updated_at")),
        )


# =========================================================
# TEAM
# =========================================================

@dataclass(frozen=True)
class Team:
    """
    Participant snapshot. Matches keep their own copy; the engine never
    modifies it.
    """

    name: str
    sport: SportKind = SportKind.FOOTBALL
    id: str = field(default_factory=new_id)
    color_index: Optional[int] = None
    badge_name: str = DEFAULT_BADGE
    players: Tuple[Player, ...] = ()
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    def __post_init__(self):
        object.__setattr__(self, "name", sanitize(self.name))
        object.__setattr__(self, "sport", SportKind(self.sport))
        raw_index = self.color_index if self.color_index is not None else stable_color_index(self.id)
        object.__setattr__(self, "color_index", wrap_color_index(raw_index))
        object.__setattr__(self, "badge_name", sanitize(self.badge_name) or DEFAULT_BADGE)
        object.__setattr__(self, "players", tuple(self.players))

    # ---------------------------------------------------------
    # Derived
    # ---------------------------------------------------------

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def player_count(self) -> int:
        return len(self.players)

    @property
    def initials(self) -> str:
        return initials(self.name)

    @property
    def is_valid(self) -> bool:
        return bool(self.name)

    @property
    def slug(self) -> str:
        return "-".join(p for p in re.split(r"[^0-9a-z]+", self.name.lower()) if p)

    # ---------------------------------------------------------
    # Membership / search
    # ---------------------------------------------------------

    def has_player(self, player_id: str) -> bool:
        return any(p.id == player_id for p in self.players)

    def has_player_named(self, query: str) -> bool:
        q = query.lower()
        return any(q in p.display_name.lower() for p in self.players)

    def matches(self, query: str) -> bool:
        q = query.strip().lower()
        if not q:
            return True
        if q in self.name.lower():
            return True
        if q in self.sport.label.lower() or q in self.sport.short_label.lower():
            return True
        return any(p.matches(q) for p in self.players)

    # ---------------------------------------------------------
    # Withers
    # ---------------------------------------------------------

    def with_name(self, name: str) -> "Team":
        return replace(self, name=name, updated_at=utc_now())

    def with_sport(self, sport: SportKind) -> "Team":
        return replace(self, sport=sport, updated_at=utc_now())

    def with_color_index(self, index: int) -> "Team":
        return replace(self, color_index=index, updated_at=utc_now())

    def with_badge_name(self, badge_name: str) -> "Team":
        return replace(self, badge_name=badge_name, updated_at=utc_now())

    def with_players(self, players) -> "Team":
        return replace(self, players=tuple(players), updated_at=utc_now())

    def adding_player(self, player: Player) -> "Team":
        if self.has_player(player.id):
            return self
        return self.with_players(self.players + (player,))

    def updating_player(self, player: Player) -> "Team":
        if not self.has_player(player.id):
            return self.with_players(self.players + (player,))
        return self.with_players(player if p.id == player.id else p for p in self.players)

    def removing_player(self, player_id: str) -> "Team":
        return self.with_players(p for p in self.players if p.id != player_id)

    # ---------------------------------------------------------
    # Serialization
    # ---------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "sport": self.sport.value,
            "color_index": self.color_index,
            "badge_name": self.badge_name,
            "players": [p.to_dict() for p in self.players],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Team":
        return Team(
            id=str(d["id"]),
            name=str(d.get("name", "")),
            sport=SportKind.from_key(d.get("sport", SportKind.FOOTBALL.value)),
            color_index=d.get("color_index"),
            badge_name=str(d.get("badge_name") or DEFAULT_BADGE),
            players=tuple(Player.from_dict(p) for p in (d.get("players") or [])),
            created_at=parse_timestamp(d.get("created_at")),
            updated_at=parse_timestamp(d.get("updated_at")),
        )
