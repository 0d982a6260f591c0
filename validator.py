"""
Invariant Validator

Inspects a GameState snapshot after every action and reports what is
wrong with it. Each check is independent and every check runs on every
step, for both areas. Validation never raises: a problem in the state
becomes a BugReport, never an exception.

Report types:
- error: a real invariant breach
- warning: a transient inconsistency the economy heals on its own
- anomaly: unbounded growth worth looking at, not a correctness failure
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterator, List, Optional, Tuple
import logging
import math

from engine import (
    BATTLE_SLOT_COUNT,
    MAX_DROPS_HISTORY,
    MAX_EQUIPPED_PETS,
    MAX_LUCK_LEVEL,
    PET_TYPES,
    EconomyInstance,
    GameState,
    calculate_rarity_weights,
)
from loot import ItemCategory, Rarity

logger = logging.getLogger(__name__)

# Size thresholds for anomaly reports
LARGE_INVENTORY = 10_000
LARGE_HISTORY = 50_000


class BugType(str, Enum):
    ERROR = 'error'
    WARNING = 'warning'
    ANOMALY = 'anomaly'


@dataclass(frozen=True)
class BugReport:
    type: BugType
    category: str
    message: str
    action: str
    area: int = 1

    @property
    def key(self) -> str:
        """Histogram key, e.g. 'error:NaN'."""
        return f"{self.type.value}:{self.category}"

    def to_dict(self) -> dict:
        return {
            'type': self.type.value,
            'category': self.category,
            'message': self.message,
            'action': self.action,
            'area': self.area,
        }


Finding = Tuple[BugType, str, str]

ERROR = BugType.ERROR
WARNING = BugType.WARNING
ANOMALY = BugType.ANOMALY


# =============================================================================
# NUMERIC HELPERS
# Decimal NaN refuses ordering comparisons, so sign checks only run on
# finite values.
# =============================================================================

def _is_number(value) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _is_nan(value) -> bool:
    if isinstance(value, Decimal):
        return value.is_nan()
    return _is_number(value) and math.isnan(value)


def _is_infinite(value) -> bool:
    if isinstance(value, Decimal):
        return value.is_infinite()
    return _is_number(value) and math.isinf(value)


def _is_finite(value) -> bool:
    return _is_number(value) and not _is_nan(value) and not _is_infinite(value)


def _below(value, floor) -> bool:
    return _is_finite(value) and value < floor


# =============================================================================
# CHECKS
# Each yields (type, category, message) findings for one area.
# =============================================================================

def _check_numbers(instance: EconomyInstance) -> Iterator[Finding]:
    for label, value in (('Coins', instance.coins), ('XP', instance.xp), ('Level', instance.level)):
        if _is_nan(value):
            yield ERROR, 'NaN', f"{label} became NaN"
        elif _is_infinite(value):
            yield ERROR, 'Infinity', f"{label} became Infinity"
        elif not _is_number(value):
            yield ERROR, 'NaN', f"{label} is not a number: {value!r}"


def _check_non_negative(instance: EconomyInstance) -> Iterator[Finding]:
    if _below(instance.coins, 0):
        yield ERROR, 'NegativeValue', f"Coins became negative: {instance.coins}"
    if _below(instance.xp, 0):
        yield ERROR, 'NegativeValue', f"XP became negative: {instance.xp}"
    if _below(instance.level, 1):
        yield ERROR, 'NegativeValue', f"Level became less than 1: {instance.level}"
    if _below(instance.rebirth_tokens, 0):
        yield ERROR, 'NegativeValue', f"Rebirth tokens became negative: {instance.rebirth_tokens}"
    if _below(instance.battle_wave, 1):
        yield ERROR, 'NegativeValue', f"Battle wave became less than 1: {instance.battle_wave}"
    if _below(instance.battle_streak, 0):
        yield ERROR, 'NegativeValue', f"Battle streak became negative: {instance.battle_streak}"


def _check_stats(instance: EconomyInstance) -> Iterator[Finding]:
    stats = instance.stats
    if _below(stats.total_chests_opened, 0):
        yield ERROR, 'StatInconsistency', f"Total chests opened is negative: {stats.total_chests_opened}"
    if not _is_finite(stats.total_coins_earned):
        yield ERROR, 'StatInconsistency', f"Total coins earned is not finite: {stats.total_coins_earned}"
    elif stats.total_coins_earned < 0:
        yield ERROR, 'StatInconsistency', f"Total coins earned is negative: {stats.total_coins_earned}"
    if _below(stats.legendaries_found, 0):
        yield ERROR, 'StatInconsistency', f"Legendaries found is negative: {stats.legendaries_found}"


def _check_inventory(instance: EconomyInstance) -> Iterator[Finding]:
    seen = set()
    duplicates = set()
    for item in instance.inventory:
        if not item.id:
            yield ERROR, 'InventoryIntegrity', f"Item has no id: {item.name}"
        elif item.id in seen:
            duplicates.add(item.id)
        seen.add(item.id)

        if not isinstance(item.rarity, Rarity):
            yield ERROR, 'InventoryIntegrity', f"Item has invalid rarity: {item.rarity}"
        if not isinstance(item.category, ItemCategory):
            yield ERROR, 'InventoryIntegrity', f"Item has invalid category: {item.category}"

        for stat, value in (item.stats or {}).items():
            if not _is_finite(value):
                yield ERROR, 'ItemStatNaN', f"Item {item.id} has non-finite {stat}: {value}"
            elif value < 0:
                yield ERROR, 'NegativeValue', f"Item {item.id} has negative {stat}: {value}"

    for item_id in sorted(duplicates):
        yield ERROR, 'DuplicateItemId', f"Duplicate item id in inventory: {item_id}"


def _check_battle_slots(instance: EconomyInstance) -> Iterator[Finding]:
    if len(instance.battle_slots) != BATTLE_SLOT_COUNT:
        yield ERROR, 'BattleSlots', (
            f"Expected {BATTLE_SLOT_COUNT} battle slots, found {len(instance.battle_slots)}"
        )

    inventory_ids = {item.id for item in instance.inventory}
    for index, item_id in enumerate(instance.battle_slots):
        if item_id is not None and item_id not in inventory_ids:
            yield WARNING, 'OrphanedBattleSlot', (
                f"Battle slot {index} references missing item {item_id}"
            )


def _check_eggs(instance: EconomyInstance) -> Iterator[Finding]:
    seen = set()
    for egg in instance.eggs:
        if not egg.id:
            yield ERROR, 'EggIntegrity', "Egg has no id"
        elif egg.id in seen:
            yield ERROR, 'EggIntegrity', f"Duplicate egg id: {egg.id}"
        seen.add(egg.id)
        if not isinstance(egg.rarity, Rarity):
            yield ERROR, 'EggIntegrity', f"Egg has invalid rarity: {egg.rarity}"


def _check_pets(instance: EconomyInstance) -> Iterator[Finding]:
    pet_ids = set()
    for pet in instance.pets:
        if not pet.id:
            yield ERROR, 'PetIntegrity', f"Pet has no id: {pet.name}"
        pet_ids.add(pet.id)
        if pet.type not in PET_TYPES:
            yield ERROR, 'PetIntegrity', f"Pet {pet.id} has invalid type: {pet.type}"
        if not isinstance(pet.rarity, Rarity):
            yield ERROR, 'PetIntegrity', f"Pet {pet.id} has invalid rarity: {pet.rarity}"
        if _below(pet.count, 1) or not _is_finite(pet.count):
            yield ERROR, 'PetIntegrity', f"Pet {pet.id} has invalid count: {pet.count}"
        if _below(pet.bonus, 0) or not _is_finite(pet.bonus):
            yield ERROR, 'PetIntegrity', f"Pet {pet.id} has invalid bonus: {pet.bonus}"

    equipped = instance.equipped_pets
    if len(equipped) > MAX_EQUIPPED_PETS:
        yield ERROR, 'OrphanedPet', f"{len(equipped)} pets equipped, limit is {MAX_EQUIPPED_PETS}"
    if len(set(equipped)) != len(equipped):
        yield ERROR, 'OrphanedPet', "A pet is equipped more than once"
    for pet_id in equipped:
        if pet_id not in pet_ids:
            yield ERROR, 'OrphanedPet', f"Equipped pet {pet_id} does not exist"


def _check_upgrades(instance: EconomyInstance) -> Iterator[Finding]:
    for which, level in enumerate(instance.luck_upgrades.levels(), start=1):
        if _below(level, 0) or (_is_finite(level) and level > MAX_LUCK_LEVEL):
            yield ERROR, 'UpgradeOverflow', f"Luck upgrade {which} out of range: {level}"

    weights = calculate_rarity_weights(instance.luck_upgrades)
    total = sum(weights.values())
    if not total > 0:
        yield ERROR, 'RarityWeights', f"Total rarity weight is zero or negative: {total}"


def _check_sizes(instance: EconomyInstance) -> Iterator[Finding]:
    if len(instance.drops_history) > MAX_DROPS_HISTORY:
        yield ERROR, 'HistoryOverflow', (
            f"Drops history has {len(instance.drops_history)} items, cap is {MAX_DROPS_HISTORY}"
        )
    if len(instance.inventory) > LARGE_INVENTORY:
        yield ANOMALY, 'LargeInventory', (
            f"Inventory has {len(instance.inventory)} items - potential memory issue"
        )
    if len(instance.drops_history) > LARGE_HISTORY:
        yield ANOMALY, 'LargeHistory', (
            f"Drops history has {len(instance.drops_history)} items - potential memory issue"
        )


CHECKS = (
    _check_numbers,
    _check_non_negative,
    _check_stats,
    _check_inventory,
    _check_battle_slots,
    _check_eggs,
    _check_pets,
    _check_upgrades,
    _check_sizes,
)


# =============================================================================
# PUBLIC API
# =============================================================================

def validate_instance(instance: EconomyInstance, action: str, area: int = 1) -> List[BugReport]:
    bugs = []
    for check in CHECKS:
        try:
            for bug_type, category, message in check(instance):
                bugs.append(BugReport(bug_type, category, message, action, area))
        except Exception as e:
            # A state malformed enough to break a check is itself a bug
            logger.exception(f"{check.__name__} failed after {action}")
            bugs.append(BugReport(ERROR, 'ValidatorFailure', f"{check.__name__}: {e}", action, area))
    return bugs


def validate(state: GameState, action: str, areas: Optional[Tuple[int, ...]] = None) -> List[BugReport]:
    """
    Check every invariant on every area of `state`.

    Args:
        state: Snapshot to inspect
        action: Name of the action that produced it (copied onto each report)
        areas: Restrict to these area numbers (default: all)

    Returns:
        All findings, possibly empty. Never raises.
    """
    bugs = []
    numbers = areas or tuple(range(1, len(state.areas) + 1))
    for number in numbers:
        bugs.extend(validate_instance(state.area(number), action, number))
    return bugs


def count_by_type(bugs: List[BugReport]) -> dict:
    counts = {bug_type: 0 for bug_type in BugType}
    for bug in bugs:
        counts[bug.type] += 1
    return counts
