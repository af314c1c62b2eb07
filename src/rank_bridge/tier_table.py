import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

lib_logger = logging.getLogger("rank_bridge")


@dataclass(frozen=True)
class Tier:
    """An XP threshold paired with the Roblox role rank it unlocks."""

    threshold_xp: int
    rank_key: int


# rank_key is the Roblox role "rank number" (0-255), not the role id.
# There is no tier for rank 6; the jump from 5 to 7 is intentional.
DEFAULT_TIERS: Tuple[Tier, ...] = (
    Tier(0, 1),  # Cadet
    Tier(3, 2),  # Trooper
    Tier(6, 3),  # Specialist
    Tier(12, 4),  # Corporal
    Tier(18, 5),  # Sergeant
    Tier(28, 7),  # Staff Sergeant
    Tier(35, 8),  # Master Sergeant
    Tier(50, 9),  # Sergeant Major
    Tier(75, 10),  # Warrant Officer
)

DEFAULT_MAX_MANAGED_RANK = 10


class TierTable:
    """
    Ordered XP -> rank lookup with an optional ceiling.

    The ceiling keeps the automation out of ranks that are managed by hand:
    anything that would resolve above `max_managed_rank` is truncated to it.
    """

    def __init__(
        self,
        tiers: Sequence[Tier] = DEFAULT_TIERS,
        max_managed_rank: Optional[int] = DEFAULT_MAX_MANAGED_RANK,
    ):
        if not tiers:
            raise ValueError("A tier table needs at least one tier.")
        for tier in tiers:
            if tier.threshold_xp < 0:
                raise ValueError(f"Tier threshold must be non-negative: {tier}")
        for previous, current in zip(tiers, tiers[1:]):
            if current.threshold_xp <= previous.threshold_xp:
                raise ValueError(
                    f"Tier thresholds must be strictly increasing: "
                    f"{previous.threshold_xp} -> {current.threshold_xp}"
                )
        self.tiers: Tuple[Tier, ...] = tuple(tiers)
        self.max_managed_rank = max_managed_rank

    @property
    def lowest_rank(self) -> int:
        return self.tiers[0].rank_key

    def resolve_rank(self, xp: float) -> int:
        """Returns the capped rank of the last tier whose threshold is <= xp."""
        result = self.lowest_rank
        for tier in self.tiers:
            if xp >= tier.threshold_xp:
                result = tier.rank_key
        if self.max_managed_rank is not None and result > self.max_managed_rank:
            result = self.max_managed_rank
        return result


def parse_tiers(value: str) -> List[Tier]:
    """
    Parses a comma separated `threshold:rank` list, e.g. "0:1,3:2,6:3".

    Raises ValueError on malformed entries.
    """
    tiers = []
    for entry in value.split(","):
        entry = entry.strip()
        if not entry:
            continue
        threshold, sep, rank = entry.partition(":")
        if not sep:
            raise ValueError(f"Tier entry '{entry}' is not in 'threshold:rank' form.")
        tiers.append(Tier(int(threshold.strip()), int(rank.strip())))
    return tiers


def tiers_from_env(value: Optional[str]) -> Iterable[Tier]:
    """Tiers from an XP_TIERS override, falling back to the built-in table."""
    if not value or not value.strip():
        return DEFAULT_TIERS
    try:
        tiers = parse_tiers(value)
        # Validate ordering up front so a bad override never reaches the pipeline
        TierTable(tiers, max_managed_rank=None)
        return tiers
    except ValueError as e:
        lib_logger.warning(
            f"Invalid XP_TIERS '{value}': {e}. Falling back to the built-in tier table."
        )
        return DEFAULT_TIERS
