"""
Belt ledgers and the points policy.

The ledger is the ordered list of ranks a student climbs through. The
points policy says how many points one stripe costs on each belt and how
many stripes make a belt complete. Together they define every threshold
the progression engine checks.
"""

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from .models import Belt


DEFAULT_POINTS_PER_STRIPE = 64
DEFAULT_STRIPES_PER_BELT = 4


class BeltLedger:
    """
    Ordered sequence of belts.

    Order in the ledger is the promotion order: the next belt is always the
    one at the following position, regardless of the `order` values the
    belts were created with.
    """

    def __init__(self, belts: Iterable[Belt]) -> None:
        ordered = sorted(belts, key=lambda b: b.order)
        if not ordered:
            raise ValueError("A belt ledger needs at least one belt")

        ids = [b.id for b in ordered]
        if len(set(ids)) != len(ids):
            raise ValueError("Belt ids must be unique")

        self._belts: list[Belt] = ordered
        self._index: dict[str, int] = {b.id: i for i, b in enumerate(ordered)}

    @classmethod
    def from_names(cls, names: Iterable[str], prefix: str = "belt") -> "BeltLedger":
        """Build a ledger from display names; ids are `<prefix>-1`, `<prefix>-2`, ..."""
        return cls(
            Belt(id=f"{prefix}-{i}", name=name, order=i)
            for i, name in enumerate(names, start=1)
        )

    def __iter__(self) -> Iterator[Belt]:
        return iter(self._belts)

    def __len__(self) -> int:
        return len(self._belts)

    def __getitem__(self, position: int) -> Belt:
        return self._belts[position]

    def __contains__(self, belt_id: object) -> bool:
        return belt_id in self._index

    @property
    def first(self) -> Belt:
        return self._belts[0]

    @property
    def last(self) -> Belt:
        return self._belts[-1]

    def get(self, belt_id: str) -> Optional[Belt]:
        position = self._index.get(belt_id)
        return None if position is None else self._belts[position]

    def index_of(self, belt_id: str) -> int:
        """Position of a belt in the ledger. Raises KeyError for unknown ids."""
        try:
            return self._index[belt_id]
        except KeyError:
            raise KeyError(f"Unknown belt id: {belt_id}") from None

    def next_belt(self, belt_id: str) -> Optional[Belt]:
        """The belt after `belt_id`, or None at the top of the ledger."""
        position = self.index_of(belt_id) + 1
        if position >= len(self._belts):
            return None
        return self._belts[position]

    def find_by_name(self, name: str) -> Optional[Belt]:
        """Case-insensitive exact match on the belt name."""
        wanted = name.strip().lower()
        for belt in self._belts:
            if belt.name.lower() == wanted:
                return belt
        return None


@dataclass(frozen=True)
class PointsPolicy:
    """
    How many points a stripe costs.

    Resolution order is per-belt override, then the global value. An
    override of zero or less counts as missing, so a stripe can never be
    free.
    """
    points_per_stripe: int = DEFAULT_POINTS_PER_STRIPE
    stripes_per_belt: int = DEFAULT_STRIPES_PER_BELT
    per_belt: dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.points_per_stripe < 1:
            raise ValueError("points_per_stripe must be positive")
        if self.stripes_per_belt < 1:
            raise ValueError("stripes_per_belt must be positive")

    def points_required(self, belt_id: Optional[str]) -> int:
        if belt_id is not None:
            override = self.per_belt.get(belt_id)
            if override and override > 0:
                return override
        return self.points_per_stripe

    def stripes_for(self, total_points: int, belt_id: Optional[str]) -> int:
        """Stripes earned on a belt: floor(points / points per stripe)."""
        if total_points < 0:
            raise ValueError("total_points cannot be negative")
        return total_points // self.points_required(belt_id)

    def points_for(self, stripes: int, belt_id: Optional[str]) -> int:
        """Points a student needs to hold exactly `stripes` stripes."""
        return max(0, stripes) * self.points_required(belt_id)


# ---------------------------------------------------------------------------
# Standard ledgers
# ---------------------------------------------------------------------------

def _ledger(prefix: str, belts: list[tuple[str, str, Optional[str]]]) -> BeltLedger:
    return BeltLedger(
        Belt(id=f"{prefix}-{i}", name=name, order=i, color1=c1, color2=c2)
        for i, (name, c1, c2) in enumerate(belts, start=1)
    )


WT_BELTS = _ledger("wt", [
    ("White Belt", "#FFFFFF", None),
    ("White/Yellow Stripe", "#FFFFFF", "#FFD700"),
    ("Yellow Belt", "#FFD700", None),
    ("Yellow/Green Stripe", "#FFD700", "#008000"),
    ("Green Belt", "#008000", None),
    ("Green/Blue Stripe", "#008000", "#0000FF"),
    ("Blue Belt", "#0000FF", None),
    ("Blue/Red Stripe", "#0000FF", "#FF0000"),
    ("Red Belt", "#FF0000", None),
    ("Red/Black Stripe", "#FF0000", "#000000"),
    ("Black Belt", "#000000", None),
])

ITF_BELTS = _ledger("itf", [
    ("White", "#FFFFFF", None),
    ("Yellow", "#FFD700", None),
    ("Orange", "#FFA500", None),
    ("Green", "#008000", None),
    ("Blue", "#0000FF", None),
    ("Purple", "#800080", None),
    ("Brown", "#A52A2A", None),
    ("Red", "#FF0000", None),
    ("Black", "#000000", None),
])

KARATE_BELTS = _ledger("k", [
    ("White", "#FFFFFF", None),
    ("Yellow", "#FFD700", None),
    ("Orange", "#FFA500", None),
    ("Green", "#008000", None),
    ("Blue", "#0000FF", None),
    ("Purple", "#800080", None),
    ("Brown (3rd Kyu)", "#A52A2A", None),
    ("Brown (2nd Kyu)", "#A52A2A", None),
    ("Brown (1st Kyu)", "#A52A2A", None),
    ("Black", "#000000", None),
])

BJJ_BELTS = _ledger("bjj", [
    ("White", "#FFFFFF", None),
    ("Blue", "#0000FF", None),
    ("Purple", "#800080", None),
    ("Brown", "#A52A2A", None),
    ("Black", "#000000", None),
    ("Red", "#FF0000", None),
])

JUDO_BELTS = _ledger("j", [
    ("White", "#FFFFFF", None),
    ("Yellow", "#FFD700", None),
    ("Orange", "#FFA500", None),
    ("Green", "#008000", None),
    ("Blue", "#0000FF", None),
    ("Brown", "#A52A2A", None),
    ("Black", "#000000", None),
])

STANDARD_LEDGERS: dict[str, BeltLedger] = {
    "wt": WT_BELTS,
    "itf": ITF_BELTS,
    "karate": KARATE_BELTS,
    "bjj": BJJ_BELTS,
    "judo": JUDO_BELTS,
}


def standard_ledger(system: str) -> BeltLedger:
    """Look up one of the built-in belt systems by key (wt, itf, karate, bjj, judo)."""
    try:
        return STANDARD_LEDGERS[system.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown belt system '{system}'. Choose one of: {', '.join(STANDARD_LEDGERS)}"
        ) from None
