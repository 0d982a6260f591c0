"""
Shared fixtures: seeded randomness and hand-built items/states.
"""

import itertools
import random

import pytest

from engine import BATTLE_SLOT_COUNT, EconomyInstance, GameState
from loot import ItemCategory, LootItem, Rarity

_ids = itertools.count(1)


def make_item(
    category: ItemCategory = ItemCategory.RIFLE,
    rarity: Rarity = Rarity.COMMON,
    item_id: str = None,
    **stats,
) -> LootItem:
    """Build an item directly; stats default to a modest rifle."""
    if not stats and category not in (ItemCategory.ARMOR, ItemCategory.SHIELD):
        stats = {'damage': 10.0, 'fireRate': 5.0, 'accuracy': 80.0, 'magazineSize': 30.0}
    return LootItem(
        id=item_id or f"test-item-{next(_ids)}",
        name=f"Test {category.value}",
        description='',
        category=category,
        rarity=rarity,
        stats=stats,
    )


def make_state(area: EconomyInstance = None, **fields) -> GameState:
    """GameState whose main area is `area` (or an EconomyInstance built from fields)."""
    instance = area or EconomyInstance(**fields)
    return GameState(areas=(instance, EconomyInstance()), current_area=1)


def slots_for(*items) -> tuple:
    """Battle slots holding `items` in order, padded with empty slots."""
    ids = [item.id for item in items]
    return tuple(ids + [None] * (BATTLE_SLOT_COUNT - len(ids)))


@pytest.fixture
def rng():
    return random.Random(1234)
