"""
Loot Economy - State Model

Economy state and the balance math every action is built from.
ECONOMY NUMBERS LIVE HERE. Actions and the validator read these constants
and nothing changes them during a run. Battle tuning lives in battle.py.

This module is the single source of truth for:
- Game-balance constants (rewards, cost curves, box/luck modifiers)
- EconomyInstance / GameState immutable value types
- Leveling, cost and weight calculations
- The initial state factory
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, FrozenSet, Iterator, Optional, Tuple
import random
import uuid

from loot import (
    AREA_LOOT_TABLES,
    LootItem,
    Rarity,
    RARITY_ORDER,
    RARITY_WEIGHTS,
    round_half_up,
    validate_loot_table,
)


# =============================================================================
# BALANCE CONSTANTS - THE LAWS OF THE ECONOMY
# =============================================================================

CENT = Decimal('0.01')
ZERO = Decimal('0')

# Leveling
XP_PER_LEVEL = 100

XP_REWARDS: Dict[Rarity, int] = {
    Rarity.COMMON: 1,
    Rarity.UNCOMMON: 3,
    Rarity.RARE: 8,
    Rarity.EPIC: 35,
    Rarity.LEGENDARY: 125,
}

# Coins credited for opening a chest, by rarity of the drop
COIN_REWARDS: Dict[Rarity, Decimal] = {
    Rarity.COMMON: Decimal('0.1'),
    Rarity.UNCOMMON: Decimal('0.3'),
    Rarity.RARE: Decimal('1'),
    Rarity.EPIC: Decimal('2.5'),
    Rarity.LEGENDARY: Decimal('10'),
}

SELL_PRICES: Dict[Rarity, Decimal] = {
    Rarity.COMMON: Decimal('1'),
    Rarity.UNCOMMON: Decimal('2'),
    Rarity.RARE: Decimal('3'),
    Rarity.EPIC: Decimal('5'),
    Rarity.LEGENDARY: Decimal('10'),
}

# Multiplier bonuses
REBIRTH_COIN_BONUS = Decimal('0.1')    # +10% per rebirth
PRESTIGE_COIN_BONUS = Decimal('1.0')   # +100% per prestige

# Idle generation (per second, per generator level)
IDLE_COINS_PER_LEVEL = Decimal('0.01')

# Upgrade cost curves
GENERATOR_BASE_COST = Decimal('3')
GENERATOR_COST_MULTIPLIER = Decimal('1.05')
LUCK_COST_MULTIPLIER = Decimal('1.07')
LUCK_BASE_COSTS: Dict[int, Decimal] = {1: Decimal('4'), 2: Decimal('6'), 3: Decimal('10')}
MAX_LUCK_LEVEL = 4

# Flat feature costs
AUTO_OPEN_COST = Decimal('50')
AUTO_SELL_COST = Decimal('25')
PETS_UNLOCK_TOKENS = 3  # paid in rebirth tokens

EGG_UPGRADE_COSTS: Dict[Rarity, Decimal] = {
    Rarity.COMMON: Decimal('25'),
    Rarity.UNCOMMON: Decimal('50'),
    Rarity.RARE: Decimal('75'),
    Rarity.EPIC: Decimal('100'),
    Rarity.LEGENDARY: Decimal('250'),
}
EGG_DROP_CHANCE = 0.10

# Box tiers in purchase order
BOX_TIERS: Tuple[str, ...] = ('bronze', 'silver', 'gold')
BOX_COSTS: Dict[str, Decimal] = {
    'bronze': Decimal('50'),
    'silver': Decimal('200'),
    'gold': Decimal('500'),
}
BOX_RARITY_MODIFIERS: Dict[str, Dict[Rarity, float]] = {
    'gold': {Rarity.COMMON: -20, Rarity.EPIC: 15, Rarity.LEGENDARY: 5},
    'silver': {Rarity.COMMON: -15, Rarity.UNCOMMON: 5, Rarity.RARE: 10},
    'bronze': {Rarity.COMMON: -8, Rarity.UNCOMMON: 8},
}

# Rebirth / prestige
REBIRTH_BASE_COST = Decimal('200')
REBIRTH_COST_MULTIPLIER = Decimal('1.25')
PRESTIGE_TOKENS_PER_LEVEL = 5
AREA_2_PRESTIGE_REQUIREMENT = 1

# Pets
PET_TYPES: Tuple[str, ...] = ('dog', 'cat')
PET_DOG_CHANCE = 0.5
MAX_EQUIPPED_PETS = 6
PET_RARITY_SCALE: Dict[Rarity, float] = {
    Rarity.COMMON: 0.1,
    Rarity.UNCOMMON: 0.25,
    Rarity.RARE: 0.5,
    Rarity.EPIC: 0.75,
    Rarity.LEGENDARY: 1.0,
}

# Bounded collections
BATTLE_SLOT_COUNT = 5
MAX_DROPS_HISTORY = 1000


# =============================================================================
# STATE VALUE TYPES
# Frozen: every action returns a new value built with dataclasses.replace.
# =============================================================================

@dataclass(frozen=True)
class LuckUpgrades:
    u1: int = 0
    u2: int = 0
    u3: int = 0

    def level(self, which: int) -> int:
        return getattr(self, f"u{which}")

    def bump(self, which: int) -> 'LuckUpgrades':
        return replace(self, **{f"u{which}": self.level(which) + 1})

    def levels(self) -> Tuple[int, int, int]:
        return (self.u1, self.u2, self.u3)


@dataclass(frozen=True)
class LifetimeStats:
    """Cumulative counters. Survive rebirth and prestige."""

    total_chests_opened: int = 0
    total_coins_earned: Decimal = ZERO
    legendaries_found: int = 0


@dataclass(frozen=True)
class Egg:
    id: str
    rarity: Rarity


@dataclass(frozen=True)
class Pet:
    id: str
    name: str
    type: str  # 'dog' or 'cat'
    rarity: Rarity
    bonus: int
    count: int = 1


@dataclass(frozen=True)
class EconomyInstance:
    """
    One complete economy: currency, inventory, upgrades, battle progress,
    rebirth/prestige counters and pets.

    The live game runs two of these side by side (the main area and the
    galaxy area); GameState keeps both and marks one active.
    """

    # Player progress
    level: int = 1
    xp: int = 0
    coins: Decimal = ZERO

    # Items
    inventory: Tuple[LootItem, ...] = ()
    drops_history: Tuple[LootItem, ...] = ()  # newest first, capped

    # Upgrades
    coin_generator_level: int = 0
    luck_upgrades: LuckUpgrades = field(default_factory=LuckUpgrades)
    purchased_box: Optional[str] = None  # best owned tier
    has_auto_open: bool = False
    has_auto_sell: bool = False
    auto_sell_rarities: FrozenSet[Rarity] = frozenset()

    stats: LifetimeStats = field(default_factory=LifetimeStats)

    # Rebirth / prestige
    rebirth_tokens: int = 0
    rebirth_count: int = 0
    prestige_count: int = 0

    # Pets
    has_pets: bool = False
    egg_upgrades: FrozenSet[Rarity] = frozenset()
    eggs: Tuple[Egg, ...] = ()
    pets: Tuple[Pet, ...] = ()
    equipped_pets: Tuple[str, ...] = ()

    # Battle
    battle_wave: int = 1
    battle_slots: Tuple[Optional[str], ...] = (None,) * BATTLE_SLOT_COUNT
    battle_streak: int = 0

    def find_item(self, item_id: Optional[str]) -> Optional[LootItem]:
        if item_id is None:
            return None
        for item in self.inventory:
            if item.id == item_id:
                return item
        return None

    def equipped_items(self) -> Iterator[Tuple[int, Optional[LootItem]]]:
        """Yield (slot index, item or None) for every battle slot."""
        for index, item_id in enumerate(self.battle_slots):
            yield index, self.find_item(item_id)

    def has_egg_upgrade(self, rarity: Rarity) -> bool:
        return rarity in self.egg_upgrades

    def credit(self, amount: Decimal) -> 'EconomyInstance':
        return replace(self, coins=to_money(self.coins + amount))

    def debit(self, amount: Decimal) -> 'EconomyInstance':
        return replace(self, coins=to_money(self.coins - amount))


@dataclass(frozen=True)
class GameState:
    """Full game: one EconomyInstance per area plus which area is active."""

    areas: Tuple[EconomyInstance, ...] = (EconomyInstance(), EconomyInstance())
    current_area: int = 1

    @property
    def active(self) -> EconomyInstance:
        return self.areas[self.current_area - 1]

    def area(self, number: int) -> EconomyInstance:
        return self.areas[number - 1]

    def with_active(self, instance: EconomyInstance) -> 'GameState':
        """Return a new GameState with the active area replaced."""
        areas = list(self.areas)
        areas[self.current_area - 1] = instance
        return replace(self, areas=tuple(areas))

    def to_dict(self) -> Dict[str, object]:
        """Flat summary of the active area, for logs and JSON output."""
        active = self.active
        return {
            'current_area': self.current_area,
            'level': active.level,
            'xp': active.xp,
            'coins': str(active.coins),
            'inventory_size': len(active.inventory),
            'chests_opened': active.stats.total_chests_opened,
            'rebirth_count': active.rebirth_count,
            'prestige_count': active.prestige_count,
            'pets': len(active.pets),
            'battle_wave': active.battle_wave,
            'battle_streak': active.battle_streak,
        }


def create_initial_state() -> GameState:
    """
    Fresh game: both areas at their starting values, main area active.

    Raises:
        LootTableError: if an area catalog cannot serve every rarity
    """
    for table in AREA_LOOT_TABLES.values():
        validate_loot_table(table)
    return GameState(areas=(EconomyInstance(), EconomyInstance()), current_area=1)


# =============================================================================
# CALCULATIONS
# =============================================================================

def to_money(value) -> Decimal:
    """Coerce to Decimal and round half-up to cents."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def level_up_coin_reward(level: int) -> Decimal:
    """Coins granted for leaving `level`: 2, then 5, then (level-1)*5."""
    if level == 1:
        return Decimal('2')
    if level == 2:
        return Decimal('5')
    return Decimal((level - 1) * 5)


def add_xp(xp: int, level: int, amount: int) -> Tuple[int, int, Decimal]:
    """
    Add XP and resolve any cascade of level-ups.

    Returns:
        (new xp, new level, coins granted by the level-ups)
    """
    xp += amount
    coin_reward = ZERO
    while xp >= level * XP_PER_LEVEL:
        xp -= level * XP_PER_LEVEL
        coin_reward += level_up_coin_reward(level)
        level += 1
    return xp, level, coin_reward


def generator_upgrade_cost(level: int) -> Decimal:
    return to_money(GENERATOR_BASE_COST * GENERATOR_COST_MULTIPLIER ** level)


def luck_upgrade_cost(which: int, level: int) -> Decimal:
    return to_money(LUCK_BASE_COSTS[which] * LUCK_COST_MULTIPLIER ** level)


def rebirth_cost(rebirth_count: int) -> Decimal:
    """floor(200 * 1.25^n)"""
    return Decimal(int(REBIRTH_BASE_COST * REBIRTH_COST_MULTIPLIER ** rebirth_count))


def prestige_cost(prestige_count: int) -> int:
    """Rebirth tokens needed for the next prestige."""
    return PRESTIGE_TOKENS_PER_LEVEL * (prestige_count + 1)


def reward_multiplier(instance: EconomyInstance) -> Decimal:
    """1 + rebirth bonus + prestige bonus"""
    return (Decimal(1)
            + instance.rebirth_count * REBIRTH_COIN_BONUS
            + instance.prestige_count * PRESTIGE_COIN_BONUS)


def total_dog_bonus(instance: EconomyInstance) -> int:
    """Summed coin bonus (percent) of equipped dogs, each weighted by its stack count."""
    equipped = set(instance.equipped_pets)
    return sum(pet.bonus * pet.count for pet in instance.pets
               if pet.id in equipped and pet.type == 'dog')


def coin_generation_multiplier(instance: EconomyInstance) -> Decimal:
    """reward_multiplier plus equipped dogs' bonus, for the coin generator"""
    return reward_multiplier(instance) + Decimal(total_dog_bonus(instance)) / 100


def calculate_rarity_weights(luck: LuckUpgrades) -> Dict[Rarity, float]:
    """Base rarity weights shifted by the three luck upgrades."""
    u1, u2, u3 = luck.levels()
    return {
        Rarity.COMMON: max(0, RARITY_WEIGHTS[Rarity.COMMON] - u1 * 0.5 - u2 * 4 - u3 * 4),
        Rarity.UNCOMMON: RARITY_WEIGHTS[Rarity.UNCOMMON] + u1 * 0.5 + u2 * 2,
        Rarity.RARE: RARITY_WEIGHTS[Rarity.RARE] + u2 * 2,
        Rarity.EPIC: RARITY_WEIGHTS[Rarity.EPIC] + u3 * 3,
        Rarity.LEGENDARY: RARITY_WEIGHTS[Rarity.LEGENDARY] + u3 * 1,
    }


def chest_rarity_weights(instance: EconomyInstance) -> Dict[Rarity, float]:
    """Luck-adjusted weights with the best owned box's modifiers on top."""
    weights = calculate_rarity_weights(instance.luck_upgrades)
    modifiers = BOX_RARITY_MODIFIERS.get(instance.purchased_box or '', {})
    for rarity, delta in modifiers.items():
        weights[rarity] = max(0, weights[rarity] + delta)
    return weights


def next_box_tier(purchased_box: Optional[str]) -> Optional[str]:
    """The box tier after `purchased_box`, or None once gold is owned."""
    if purchased_box is None:
        return BOX_TIERS[0]
    index = BOX_TIERS.index(purchased_box)
    if index + 1 >= len(BOX_TIERS):
        return None
    return BOX_TIERS[index + 1]


def pet_bonus_range(pet_type: str, rarity: Rarity) -> Tuple[float, float]:
    # Dogs: coin generation %, cats: legendary drop chance %
    scale = PET_RARITY_SCALE[rarity]
    if pet_type == 'dog':
        return 5 + scale * 25, 30 + scale * 200
    return 5 + scale * 5, 10 + scale * 45


def roll_pet_bonus(pet_type: str, rarity: Rarity, rng: random.Random) -> int:
    low, high = pet_bonus_range(pet_type, rarity)
    return int(round_half_up(low + rng.random() * (high - low)))


def new_entity_id(prefix: str, rng: random.Random) -> str:
    return f"{prefix}-{uuid.UUID(int=rng.getrandbits(128)).hex}"


def push_history(history: Tuple[LootItem, ...], item: LootItem) -> Tuple[LootItem, ...]:
    """Prepend `item` and trim to MAX_DROPS_HISTORY."""
    return ((item,) + history)[:MAX_DROPS_HISTORY]


def rarity_after(rarity: Rarity) -> Optional[Rarity]:
    if rarity is RARITY_ORDER[-1]:
        return None
    return rarity.next_tier()
