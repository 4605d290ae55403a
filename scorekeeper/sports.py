from enum import Enum


class SportKind(str, Enum):
    """
    Supported sports (including esports).

    Values are the canonical storage keys.
    """

    FOOTBALL = "football"
    BASKETBALL = "basketball"
    VOLLEYBALL = "volleyball"
    TENNIS = "tennis"
    TABLE_TENNIS = "tabletennis"
    HOCKEY = "hockey"
    BADMINTON = "badminton"
    ESPORTS_CS = "esports.cs"
    ESPORTS_DOTA = "esports.dota"
    ESPORTS_LOL = "esports.lol"

    @property
    def key(self) -> str:
        return self.value

    @classmethod
    def from_key(cls, key: str) -> "SportKind":
        """Unknown keys fall back to football."""
        try:
            return cls(str(key).strip().lower())
        except ValueError:
            return cls.FOOTBALL

    @property
    def label(self) -> str:
        return _LABELS[self]

    @property
    def short_label(self) -> str:
        return _SHORT_LABELS.get(self, self.label)

    # ---------------------------------------------------------
    # Gameplay traits
    # ---------------------------------------------------------

    @property
    def supports_sets(self) -> bool:
        return self in (
            SportKind.TENNIS,
            SportKind.TABLE_TENNIS,
            SportKind.VOLLEYBALL,
            SportKind.BADMINTON,
        )

    @property
    def uses_timer_by_default(self) -> bool:
        return self in (SportKind.FOOTBALL, SportKind.BASKETBALL, SportKind.HOCKEY)

    @property
    def is_esport(self) -> bool:
        return self.value.startswith("esports.")


_LABELS = {
    SportKind.FOOTBALL: "Football",
    SportKind.BASKETBALL: "Basketball",
    SportKind.VOLLEYBALL: "Volleyball",
    SportKind.TENNIS: "Tennis",
    SportKind.TABLE_TENNIS: "Table Tennis",
    SportKind.HOCKEY: "Hockey",
    SportKind.BADMINTON: "Badminton",
    SportKind.ESPORTS_CS: "CS",
    SportKind.ESPORTS_DOTA: "Dota",
    SportKind.ESPORTS_LOL: "LoL",
}

_SHORT_LABELS = {
    SportKind.TABLE_TENNIS: "TT",
}
