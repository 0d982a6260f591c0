"""
Loot system for the loot economy simulator.

Item catalogs and the weighted generator that rolls items from them.
"""

from .tables import (
    Rarity,
    RARITY_ORDER,
    ItemCategory,
    WEAPON_CATEGORIES,
    EQUIPPABLE_CATEGORIES,
    StatRange,
    LootTableEntry,
    LOOT_TABLE,
    GALAXY_LOOT_TABLE,
    AREA_LOOT_TABLES,
    eligible_entries,
    validate_loot_table,
    LootTableError,
)

from .generator import (
    LootItem,
    RARITY_WEIGHTS,
    RARITY_STAT_MULTIPLIERS,
    weighted_select,
    select_rarity,
    round_half_up,
    generate_loot,
    generate_loot_with_guaranteed_rarity,
    generate_loot_batch,
)

__all__ = [
    'Rarity',
    'RARITY_ORDER',
    'ItemCategory',
    'WEAPON_CATEGORIES',
    'EQUIPPABLE_CATEGORIES',
    'StatRange',
    'LootTableEntry',
    'LOOT_TABLE',
    'GALAXY_LOOT_TABLE',
    'AREA_LOOT_TABLES',
    'eligible_entries',
    'validate_loot_table',
    'LootTableError',
    'LootItem',
    'RARITY_WEIGHTS',
    'RARITY_STAT_MULTIPLIERS',
    'weighted_select',
    'select_rarity',
    'round_half_up',
    'generate_loot',
    'generate_loot_with_guaranteed_rarity',
    'generate_loot_batch',
]
