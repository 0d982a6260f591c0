"""
Battle Resolution Engine

Turns item stats into a scalar power, rolls enemy power per slot, and
resolves a five-slot wave battle. Pure: reads an EconomyInstance, returns
a BattleResult; the fightBattle action applies it.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional, Tuple
import logging
import math
import random

from engine import EconomyInstance, reward_multiplier, to_money
from loot import (
    ItemCategory,
    LootItem,
    LootTableEntry,
    Rarity,
    generate_loot_with_guaranteed_rarity,
)

logger = logging.getLogger(__name__)


# =============================================================================
# BATTLE CONSTANTS
# =============================================================================

POWER_RARITY_MULTIPLIERS: Dict[Rarity, float] = {
    Rarity.COMMON: 1,
    Rarity.UNCOMMON: 1.5,
    Rarity.RARE: 2.5,
    Rarity.EPIC: 4,
    Rarity.LEGENDARY: 7,
}

WINS_REQUIRED = 3

# Wave 1 is tuned down so new players can win with starter gear
WAVE_1_BASE_POWER = 25
WAVE_1_VARIANCE = 0.4
WAVE_1_SLOT_BONUS = 3
WAVE_1_MIN_POWER = 15

WAVE_BASE_POWER = 50
POWER_PER_WAVE = 20
WAVE_VARIANCE = 0.6
WAVE_SLOT_BONUS = 8
WAVE_MIN_POWER = 30

# Rewards
BATTLE_BASE_COINS = 5
EARLY_WAVE_THRESHOLD = 3
EARLY_WAVE_BONUS = 3
STREAK_BONUS_PER_WIN = Decimal('0.10')
MAX_STREAK_BONUS = Decimal('1.0')

BASE_DROP_CHANCE = 0.20
DROP_CHANCE_PER_WAVE = 0.02
MAX_DROP_CHANCE = 0.50
LEGENDARY_DROP_MIN_WAVE = 10
LEGENDARY_DROP_CHANCE = 0.10
EPIC_DROP_MIN_WAVE = 5
EPIC_DROP_CHANCE = 0.30


@dataclass(frozen=True)
class SlotResult:
    slot: int
    item_id: Optional[str]
    player_power: float
    enemy_power: float  # after shield reduction
    won: bool


@dataclass(frozen=True)
class BattleResult:
    won: bool
    slot_results: Tuple[SlotResult, ...]
    shield_reduction: float
    streak: int
    coins_earned: Decimal
    drop: Optional[LootItem] = None

    @property
    def slots_won(self) -> int:
        return sum(1 for result in self.slot_results if result.won)


# =============================================================================
# POWER
# =============================================================================

def item_power(item: LootItem) -> float:
    """
    Scalar power of an item.

    Shields are negative: their magnitude is pooled as damage reduction
    against every enemy. Armor is positive and wins ties. Everything else
    uses the weapon formula.
    """
    multiplier = POWER_RARITY_MULTIPLIERS[item.rarity]

    if item.category == ItemCategory.SHIELD:
        shield_power = item.stat('capacity') * 3 + item.stat('rechargeRate') * 2
        return -(shield_power * multiplier)

    if item.category == ItemCategory.ARMOR:
        return (item.stat('defense') * 4 + item.stat('mobility')) * multiplier

    power = (item.stat('damage') * 2
             + item.stat('fireRate')
             + item.stat('accuracy') * 0.5
             + item.stat('magazineSize') * 0.3)
    return power * multiplier


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def enemy_power(wave: int, slot_index: int, rng: random.Random) -> int:
    """Enemy power for one slot; later slots and later waves hit harder."""
    if wave == 1:
        base = WAVE_1_BASE_POWER
        variance = (rng.random() - 0.5) * (base * WAVE_1_VARIANCE)
        slot_bonus = slot_index * WAVE_1_SLOT_BONUS
        return max(WAVE_1_MIN_POWER, _round_half_up(base + variance + slot_bonus))

    base = WAVE_BASE_POWER + (wave - 1) * POWER_PER_WAVE
    variance = (rng.random() - 0.5) * (base * WAVE_VARIANCE)
    slot_bonus = slot_index * WAVE_SLOT_BONUS
    return max(WAVE_MIN_POWER, _round_half_up(base + variance + slot_bonus))


def shield_reduction(instance: EconomyInstance) -> float:
    """Sum of |power| over every shield sitting in a battle slot."""
    total = 0.0
    for _, item in instance.equipped_items():
        if item is not None and item.category == ItemCategory.SHIELD:
            total += abs(item_power(item))
    return total


def slot_wins(item: Optional[LootItem], enemy: float) -> bool:
    if item is None:
        return 0 > enemy
    if item.category == ItemCategory.SHIELD:
        return False
    if item.category == ItemCategory.ARMOR:
        return item_power(item) >= enemy
    return item_power(item) > enemy


# =============================================================================
# REWARDS
# =============================================================================

def battle_coins(instance: EconomyInstance, wave: int, streak: int) -> Decimal:
    """Coins for a win at `wave`, where `streak` already counts this win."""
    base_coins = BATTLE_BASE_COINS + wave
    if wave <= EARLY_WAVE_THRESHOLD:
        base_coins += (EARLY_WAVE_THRESHOLD + 1 - wave) * EARLY_WAVE_BONUS

    streak_bonus = min(streak * STREAK_BONUS_PER_WIN, MAX_STREAK_BONUS)
    return to_money(Decimal(base_coins) * reward_multiplier(instance) * (1 + streak_bonus))


def drop_chance(wave: int) -> float:
    return min(BASE_DROP_CHANCE + wave * DROP_CHANCE_PER_WAVE, MAX_DROP_CHANCE)


def roll_drop_rarity(wave: int, rng: random.Random) -> Rarity:
    roll = rng.random()
    if wave >= LEGENDARY_DROP_MIN_WAVE and roll < LEGENDARY_DROP_CHANCE:
        return Rarity.LEGENDARY
    if wave >= EPIC_DROP_MIN_WAVE and roll < EPIC_DROP_CHANCE:
        return Rarity.EPIC
    return Rarity.RARE


# =============================================================================
# RESOLUTION
# =============================================================================

def resolve_battle(
    instance: EconomyInstance,
    rng: random.Random,
    table: Optional[List[LootTableEntry]] = None,
) -> BattleResult:
    """
    Fight the current wave with whatever sits in the battle slots.

    Each slot faces its own enemy, reduced by the pooled shield power.
    The battle is won with at least WINS_REQUIRED slot wins.

    Returns:
        BattleResult with per-slot outcomes, the new streak, coins earned
        and an optional guaranteed-rarity drop (None on loss or no drop)
    """
    wave = instance.battle_wave
    reduction = shield_reduction(instance)

    slot_results = []
    for index, item in instance.equipped_items():
        enemy = max(0.0, enemy_power(wave, index, rng) - reduction)
        slot_results.append(SlotResult(
            slot=index,
            item_id=item.id if item else None,
            player_power=item_power(item) if item else 0.0,
            enemy_power=enemy,
            won=slot_wins(item, enemy),
        ))

    wins = sum(1 for result in slot_results if result.won)
    if wins < WINS_REQUIRED:
        return BattleResult(
            won=False,
            slot_results=tuple(slot_results),
            shield_reduction=reduction,
            streak=0,
            coins_earned=Decimal('0'),
        )

    streak = instance.battle_streak + 1
    coins = battle_coins(instance, wave, streak)

    drop = None
    if rng.random() < drop_chance(wave):
        rarity = roll_drop_rarity(wave, rng)
        drop = generate_loot_with_guaranteed_rarity(rarity, rng, table)
        if drop is None:
            logger.warning(f"No {rarity.value} template for battle drop at wave {wave}")

    return BattleResult(
        won=True,
        slot_results=tuple(slot_results),
        shield_reduction=reduction,
        streak=streak,
        coins_earned=coins,
        drop=drop,
    )

