"""
Loot Catalog - static item templates

Each template names the rarities it may spawn at and a numeric range for
every stat it carries. Two catalogs exist: the main area and the galaxy area.
Nothing in here has behaviour beyond lookups; the generator does the rolling.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Tuple


class Rarity(str, Enum):
    """Item rarity tiers, totally ordered Common < ... < Legendary."""

    COMMON = 'common'
    UNCOMMON = 'uncommon'
    RARE = 'rare'
    EPIC = 'epic'
    LEGENDARY = 'legendary'

    @property
    def rank(self) -> int:
        return RARITY_ORDER.index(self)

    def next_tier(self) -> 'Rarity':
        """Return the next rarity up. Legendary has no next tier."""
        if self is Rarity.LEGENDARY:
            raise ValueError("Legendary is the highest rarity")
        return RARITY_ORDER[self.rank + 1]

    # str already defines every comparison, so each one is overridden by rank
    def __lt__(self, other):
        if not isinstance(other, Rarity):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, Rarity):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, Rarity):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, Rarity):
            return NotImplemented
        return self.rank >= other.rank


RARITY_ORDER: Tuple[Rarity, ...] = (
    Rarity.COMMON,
    Rarity.UNCOMMON,
    Rarity.RARE,
    Rarity.EPIC,
    Rarity.LEGENDARY,
)


class ItemCategory(str, Enum):
    PISTOL = 'pistol'
    RIFLE = 'rifle'
    SMG = 'smg'
    SHOTGUN = 'shotgun'
    SNIPER = 'sniper'
    HEAVY = 'heavy'
    ARMOR = 'armor'
    SHIELD = 'shield'
    CONSUMABLE = 'consumable'
    MOD = 'mod'


WEAPON_CATEGORIES = frozenset({
    ItemCategory.PISTOL,
    ItemCategory.RIFLE,
    ItemCategory.SMG,
    ItemCategory.SHOTGUN,
    ItemCategory.SNIPER,
    ItemCategory.HEAVY,
})

# Anything that may sit in a battle slot
EQUIPPABLE_CATEGORIES = WEAPON_CATEGORIES | {ItemCategory.ARMOR, ItemCategory.SHIELD}


@dataclass(frozen=True)
class StatRange:
    min: float
    max: float


@dataclass(frozen=True)
class LootTableEntry:
    """A template item: identity, stat ranges and the rarities it may roll at."""

    template_id: str
    name: str
    description: str
    category: ItemCategory
    stat_ranges: Dict[str, StatRange] = field(default_factory=dict)
    allowed_rarities: Tuple[Rarity, ...] = ()

    def allows(self, rarity: Rarity) -> bool:
        return rarity in self.allowed_rarities


def _ranges(**stats: Tuple[float, float]) -> Dict[str, StatRange]:
    return {name: StatRange(low, high) for name, (low, high) in stats.items()}


C, U, R, E, L = RARITY_ORDER


# =============================================================================
# MAIN AREA CATALOG
# =============================================================================

LOOT_TABLE: List[LootTableEntry] = [

    # -------------------------------------------------------------------------
    # WEAPONS
    # -------------------------------------------------------------------------

    LootTableEntry(
        'plasma-pistol', 'Plasma Pistol',
        'Standard-issue sidearm firing superheated plasma rounds',
        ItemCategory.PISTOL,
        _ranges(damage=(15, 25), fireRate=(4, 6), magazineSize=(12, 18),
                reloadTime=(1.2, 1.8), accuracy=(70, 85)),
        (C, U, R),
    ),
    LootTableEntry(
        'pulse-rifle', 'Pulse Rifle',
        'Automatic rifle with electromagnetic pulse rounds',
        ItemCategory.RIFLE,
        _ranges(damage=(20, 35), fireRate=(8, 12), magazineSize=(24, 36),
                reloadTime=(2.0, 2.8), accuracy=(60, 80)),
        (C, U, R, E),
    ),
    LootTableEntry(
        'neutron-smg', 'Neutron SMG',
        'Compact submachine gun with high rate of fire',
        ItemCategory.SMG,
        _ranges(damage=(10, 18), fireRate=(14, 20), magazineSize=(30, 45),
                reloadTime=(1.5, 2.2), accuracy=(50, 70)),
        (C, U, R),
    ),
    LootTableEntry(
        'ion-shotgun', 'Ion Shotgun',
        'Devastating close-range ion dispersal weapon',
        ItemCategory.SHOTGUN,
        _ranges(damage=(80, 120), fireRate=(1, 2), magazineSize=(4, 8),
                reloadTime=(2.5, 3.5), accuracy=(40, 60)),
        (U, R, E),
    ),
    LootTableEntry(
        'railgun', 'Railgun',
        'Long-range electromagnetic accelerator cannon',
        ItemCategory.SNIPER,
        _ranges(damage=(150, 250), fireRate=(0.5, 1), magazineSize=(3, 6),
                reloadTime=(3.0, 4.0), accuracy=(90, 98)),
        (R, E, L),
    ),
    LootTableEntry(
        'quantum-disruptor', 'Quantum Disruptor',
        'Experimental weapon that destabilizes matter at the quantum level',
        ItemCategory.HEAVY,
        _ranges(damage=(200, 350), fireRate=(0.3, 0.5), magazineSize=(1, 3),
                reloadTime=(4.0, 5.5), accuracy=(75, 90)),
        (E, L),
    ),
    LootTableEntry(
        'void-cannon', 'Void Cannon',
        'Fires concentrated dark energy projectiles',
        ItemCategory.HEAVY,
        _ranges(damage=(300, 500), fireRate=(0.2, 0.4), magazineSize=(1, 2),
                reloadTime=(5.0, 7.0), accuracy=(80, 95)),
        (L,),
    ),

    # -------------------------------------------------------------------------
    # ARMOR
    # -------------------------------------------------------------------------

    LootTableEntry(
        'tactical-vest', 'Tactical Vest',
        'Standard combat armor with basic protection',
        ItemCategory.ARMOR,
        _ranges(defense=(10, 20), mobility=(90, 100)),
        (C, U),
    ),
    LootTableEntry(
        'exo-suit', 'Exo-Suit',
        'Powered exoskeleton with enhanced protection',
        ItemCategory.ARMOR,
        _ranges(defense=(30, 50), mobility=(70, 85)),
        (U, R, E),
    ),
    LootTableEntry(
        'nanoweave-armor', 'Nanoweave Armor',
        'Advanced nanomaterial armor that adapts to threats',
        ItemCategory.ARMOR,
        _ranges(defense=(60, 80), mobility=(80, 95)),
        (R, E, L),
    ),

    # -------------------------------------------------------------------------
    # SHIELDS
    # -------------------------------------------------------------------------

    LootTableEntry(
        'basic-shield', 'Basic Energy Shield',
        'Entry-level personal shield generator',
        ItemCategory.SHIELD,
        _ranges(capacity=(50, 100), rechargeRate=(10, 20), rechargeDelay=(4, 6)),
        (C, U),
    ),
    LootTableEntry(
        'hardlight-barrier', 'Hardlight Barrier',
        'Solid light projection shield system',
        ItemCategory.SHIELD,
        _ranges(capacity=(120, 180), rechargeRate=(25, 40), rechargeDelay=(3, 5)),
        (R, E),
    ),
    LootTableEntry(
        'singularity-shield', 'Singularity Shield',
        'Creates a micro-black hole field that absorbs incoming fire',
        ItemCategory.SHIELD,
        _ranges(capacity=(200, 300), rechargeRate=(50, 75), rechargeDelay=(2, 3)),
        (L,),
    ),

    # -------------------------------------------------------------------------
    # CONSUMABLES
    # -------------------------------------------------------------------------

    LootTableEntry(
        'medkit', 'Medkit',
        'Standard medical supplies for field treatment',
        ItemCategory.CONSUMABLE,
        _ranges(healing=(25, 50)),
        (C, U),
    ),
    LootTableEntry(
        'nano-injection', 'Nano Injection',
        'Nanobots that rapidly repair tissue damage',
        ItemCategory.CONSUMABLE,
        _ranges(healing=(75, 100)),
        (R, E),
    ),
    LootTableEntry(
        'shield-cell', 'Shield Cell',
        'Emergency shield recharge pack',
        ItemCategory.CONSUMABLE,
        _ranges(shieldRestore=(50, 100)),
        (C, U, R),
    ),
]


# =============================================================================
# GALAXY AREA CATALOG
# =============================================================================

GALAXY_LOOT_TABLE: List[LootTableEntry] = [
    LootTableEntry(
        'jupiter-pistol', 'Jupiter Pistol',
        'Gas giant-powered sidearm with swirling energy rounds',
        ItemCategory.PISTOL,
        _ranges(damage=(15, 25), fireRate=(4, 6), magazineSize=(12, 18),
                reloadTime=(1.2, 1.8), accuracy=(70, 85)),
        (C, U, R),
    ),
    LootTableEntry(
        'saturn-blaster', 'Saturn Blaster',
        'Ring-powered energy weapon with orbital trajectory',
        ItemCategory.PISTOL,
        _ranges(damage=(18, 28), fireRate=(3, 5), magazineSize=(10, 16),
                reloadTime=(1.4, 2.0), accuracy=(75, 90)),
        (U, R, E),
    ),
    LootTableEntry(
        'nebula-rifle', 'Nebula Rifle',
        'Automatic rifle that fires concentrated cosmic gas',
        ItemCategory.RIFLE,
        _ranges(damage=(20, 35), fireRate=(8, 12), magazineSize=(24, 36),
                reloadTime=(2.0, 2.8), accuracy=(60, 80)),
        (C, U, R, E),
    ),
    LootTableEntry(
        'asteroid-smg', 'Asteroid SMG',
        'High-velocity micro-meteorite spray weapon',
        ItemCategory.SMG,
        _ranges(damage=(10, 18), fireRate=(14, 20), magazineSize=(30, 45),
                reloadTime=(1.5, 2.2), accuracy=(50, 70)),
        (C, U, R),
    ),
    LootTableEntry(
        'comet-shotgun', 'Comet Shotgun',
        'Devastating ice and rock fragment dispersal weapon',
        ItemCategory.SHOTGUN,
        _ranges(damage=(80, 120), fireRate=(1, 2), magazineSize=(4, 8),
                reloadTime=(2.5, 3.5), accuracy=(40, 60)),
        (U, R, E),
    ),
    LootTableEntry(
        'mars-carbine', 'Mars Carbine',
        'Red planet dust-powered precision rifle',
        ItemCategory.RIFLE,
        _ranges(damage=(25, 40), fireRate=(6, 10), magazineSize=(20, 30),
                reloadTime=(1.8, 2.5), accuracy=(70, 88)),
        (R, E),
    ),
    LootTableEntry(
        'supernova-sniper', 'Supernova Sniper',
        'Long-range stellar explosion beam rifle',
        ItemCategory.SNIPER,
        _ranges(damage=(150, 250), fireRate=(0.5, 1), magazineSize=(3, 6),
                reloadTime=(3.0, 4.0), accuracy=(90, 98)),
        (R, E, L),
    ),
    LootTableEntry(
        'black-hole-launcher', 'Black Hole Launcher',
        'Creates miniature singularities that consume all matter',
        ItemCategory.HEAVY,
        _ranges(damage=(200, 350), fireRate=(0.3, 0.5), magazineSize=(1, 3),
                reloadTime=(4.0, 5.5), accuracy=(75, 90)),
        (E, L),
    ),
    LootTableEntry(
        'quasar-cannon', 'Quasar Cannon',
        'Fires beams of pure quasar energy from distant galaxies',
        ItemCategory.HEAVY,
        _ranges(damage=(300, 500), fireRate=(0.2, 0.4), magazineSize=(1, 2),
                reloadTime=(5.0, 7.0), accuracy=(80, 95)),
        (L,),
    ),
    LootTableEntry(
        'space-suit', 'Space Suit',
        'Standard galactic exploration armor',
        ItemCategory.ARMOR,
        _ranges(defense=(10, 20), mobility=(90, 100)),
        (C, U),
    ),
    LootTableEntry(
        'meteor-plating', 'Meteor Plating',
        'Armor forged from hardened meteorite fragments',
        ItemCategory.ARMOR,
        _ranges(defense=(30, 50), mobility=(70, 85)),
        (U, R, E),
    ),
    LootTableEntry(
        'dark-matter-armor', 'Dark Matter Armor',
        'Mysterious armor composed of invisible cosmic matter',
        ItemCategory.ARMOR,
        _ranges(defense=(60, 80), mobility=(80, 95)),
        (R, E, L),
    ),
    LootTableEntry(
        'solar-barrier', 'Solar Barrier',
        'Entry-level stellar-powered shield generator',
        ItemCategory.SHIELD,
        _ranges(capacity=(50, 100), rechargeRate=(10, 20), rechargeDelay=(4, 6)),
        (C, U),
    ),
    LootTableEntry(
        'pulsar-shield', 'Pulsar Shield',
        'Rotating neutron star energy defense system',
        ItemCategory.SHIELD,
        _ranges(capacity=(120, 180), rechargeRate=(25, 40), rechargeDelay=(3, 5)),
        (R, E),
    ),
    LootTableEntry(
        'event-horizon-shield', 'Event Horizon Shield',
        'Creates an impenetrable black hole boundary field',
        ItemCategory.SHIELD,
        _ranges(capacity=(200, 300), rechargeRate=(50, 75), rechargeDelay=(2, 3)),
        (L,),
    ),
    LootTableEntry(
        'stardust-medkit', 'Stardust Medkit',
        'Cosmic healing particles for deep space treatment',
        ItemCategory.CONSUMABLE,
        _ranges(healing=(25, 50)),
        (C, U),
    ),
    LootTableEntry(
        'cosmic-injection', 'Cosmic Injection',
        'Universe-sourced nanobots that rapidly repair damage',
        ItemCategory.CONSUMABLE,
        _ranges(healing=(75, 100)),
        (R, E),
    ),
    LootTableEntry(
        'solar-cell', 'Solar Cell',
        'Emergency star-powered shield recharge pack',
        ItemCategory.CONSUMABLE,
        _ranges(shieldRestore=(50, 100)),
        (C, U, R),
    ),
]


# Area number -> catalog
AREA_LOOT_TABLES: Dict[int, List[LootTableEntry]] = {
    1: LOOT_TABLE,
    2: GALAXY_LOOT_TABLE,
}


def eligible_entries(table: List[LootTableEntry], rarity: Rarity) -> List[LootTableEntry]:
    """Return the templates in `table` that may spawn at `rarity`, in table order."""
    return [entry for entry in table if entry.allows(rarity)]


def validate_loot_table(table: List[LootTableEntry]) -> None:
    """
    Check that every rarity has at least one eligible template.

    Raises:
        LootTableError: naming the uncovered rarities
    """
    missing = [rarity.value for rarity in RARITY_ORDER if not eligible_entries(table, rarity)]
    if missing:
        raise LootTableError(f"No loot templates for rarities: {', '.join(missing)}")


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LootTableError(Exception):
    """Raised when a loot table cannot serve a requested rarity."""
    pass
