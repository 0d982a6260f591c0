"""
Weighted Loot Generator

Rolls a rarity from a weight table, picks an eligible template, then rolls
concrete stats scaled by rarity. All randomness comes from the caller's
random.Random so a seeded run is reproducible end to end.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Mapping, Optional, Sequence, TypeVar
import random
import uuid

from .tables import (
    ItemCategory,
    LOOT_TABLE,
    LootTableEntry,
    LootTableError,
    Rarity,
    RARITY_ORDER,
    eligible_entries,
)

T = TypeVar('T')


# =============================================================================
# GENERATOR CONSTANTS
# =============================================================================

RARITY_WEIGHTS: Dict[Rarity, float] = {
    Rarity.COMMON: 67,
    Rarity.UNCOMMON: 20,
    Rarity.RARE: 10,
    Rarity.EPIC: 2,
    Rarity.LEGENDARY: 1,
}

RARITY_STAT_MULTIPLIERS: Dict[Rarity, float] = {
    Rarity.COMMON: 1.0,
    Rarity.UNCOMMON: 1.15,
    Rarity.RARE: 1.3,
    Rarity.EPIC: 1.5,
    Rarity.LEGENDARY: 1.8,
}

RARITY_PREFIXES: Dict[Rarity, List[str]] = {
    Rarity.COMMON: ['Standard', 'Basic', 'Worn'],
    Rarity.UNCOMMON: ['Refined', 'Enhanced', 'Improved'],
    Rarity.RARE: ['Superior', 'Advanced', 'Elite'],
    Rarity.EPIC: ['Prototype', 'Experimental', 'Augmented'],
    Rarity.LEGENDARY: ['Mythic', 'Apex', 'Singularity'],
}


@dataclass(frozen=True)
class LootItem:
    """
    A concrete rolled item.

    `stats` shape depends on category: weapons carry damage/fireRate/
    magazineSize/reloadTime/accuracy, armor defense/mobility, shields
    capacity/rechargeRate/rechargeDelay, consumables healing or shieldRestore.
    """

    id: str
    name: str
    description: str
    category: ItemCategory
    rarity: Rarity
    stats: Dict[str, float] = field(default_factory=dict)

    def stat(self, name: str) -> float:
        return self.stats.get(name, 0.0)

    def __hash__(self):
        # stats is a dict; ids are unique so they stand in for the whole item
        return hash(self.id)


# =============================================================================
# SAMPLING
# =============================================================================

def weighted_select(items: Sequence[T], weights: Sequence[float], rng: random.Random) -> T:
    """
    Pick one of `items` with probability proportional to its weight.

    Draws uniformly in [0, total) and subtracts weights in order, returning
    the first item where the remainder drops to zero or below. Falls back
    to the last item if float rounding leaves a positive remainder.
    """
    if not items:
        raise ValueError("weighted_select needs at least one item")

    remaining = rng.random() * sum(weights)
    for item, weight in zip(items, weights):
        remaining -= weight
        if remaining <= 0:
            return item

    return items[-1]


def select_rarity(rng: random.Random, weights: Optional[Mapping[Rarity, float]] = None) -> Rarity:
    """Draw a rarity. Rarities missing from `weights` use the default weight."""
    weights = weights or {}
    values = [weights.get(rarity, RARITY_WEIGHTS[rarity]) for rarity in RARITY_ORDER]
    return weighted_select(RARITY_ORDER, values, rng)


def round_half_up(value: float, places: int = 0) -> float:
    """Round to `places` decimals with exact halves going up, not to even."""
    scale = 10 ** places
    scaled = Decimal(value * scale).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    return float(scaled) / scale


def roll_stats(entry: LootTableEntry, rarity: Rarity, rng: random.Random) -> Dict[str, float]:
    """Roll every stat in the entry's ranges, scaled by rarity, to one decimal."""
    multiplier = RARITY_STAT_MULTIPLIERS[rarity]
    stats = {}
    for name, stat_range in entry.stat_ranges.items():
        base_value = rng.uniform(stat_range.min, stat_range.max)
        stats[name] = round_half_up(base_value * multiplier, 1)
    return stats


def new_item_id(rng: random.Random) -> str:
    """Fresh item id drawn from the run's RNG, so seeded runs repeat their ids."""
    return f"item-{uuid.UUID(int=rng.getrandbits(128)).hex}"


def _build_item(entry: LootTableEntry, rarity: Rarity, rng: random.Random) -> LootItem:
    stats = roll_stats(entry, rarity, rng)
    prefix = rng.choice(RARITY_PREFIXES[rarity])
    return LootItem(
        id=new_item_id(rng),
        name=f"{prefix} {entry.name}",
        description=entry.description,
        category=entry.category,
        rarity=rarity,
        stats=stats,
    )


# =============================================================================
# PUBLIC API
# =============================================================================

def generate_loot(
    rng: random.Random,
    table: Optional[List[LootTableEntry]] = None,
    weights: Optional[Mapping[Rarity, float]] = None,
) -> LootItem:
    """
    Generate one item: weighted rarity draw, uniform template pick, stat roll.

    Args:
        rng: Random source for every draw in this call
        table: Loot catalog (defaults to the main area catalog)
        weights: Per-rarity weights overriding the defaults

    Raises:
        LootTableError: if the table has no template for the drawn rarity
    """
    table = LOOT_TABLE if table is None else table
    rarity = select_rarity(rng, weights)

    candidates = eligible_entries(table, rarity)
    if not candidates:
        raise LootTableError(f"No loot templates allow rarity '{rarity.value}'")

    entry = rng.choice(candidates)
    return _build_item(entry, rarity, rng)


def generate_loot_with_guaranteed_rarity(
    rarity: Rarity,
    rng: random.Random,
    table: Optional[List[LootTableEntry]] = None,
) -> Optional[LootItem]:
    """Generate an item of exactly `rarity`, or None if no template supports it."""
    table = LOOT_TABLE if table is None else table
    candidates = eligible_entries(table, rarity)
    if not candidates:
        return None

    entry = rng.choice(candidates)
    return _build_item(entry, rarity, rng)


def generate_loot_batch(
    count: int,
    rng: random.Random,
    table: Optional[List[LootTableEntry]] = None,
    weights: Optional[Mapping[Rarity, float]] = None,
) -> List[LootItem]:
    return [generate_loot(rng, table, weights) for _ in range(count)]
