"""
Action Library - every player-causable economy transition

Each action is a pure function (GameState, Random) -> (GameState, name).
Actions operate on the active area only and never raise for an expected
condition: when a precondition fails they return the state unchanged
with a name of the form '<action>_skipped_<reason>'.
"""

from dataclasses import replace
from decimal import Decimal
from enum import Enum
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple, Union
import random

from battle import resolve_battle
from engine import (
    AUTO_OPEN_COST,
    AUTO_SELL_COST,
    AREA_2_PRESTIGE_REQUIREMENT,
    BATTLE_SLOT_COUNT,
    BOX_COSTS,
    COIN_REWARDS,
    EGG_DROP_CHANCE,
    EGG_UPGRADE_COSTS,
    IDLE_COINS_PER_LEVEL,
    MAX_EQUIPPED_PETS,
    MAX_LUCK_LEVEL,
    PET_DOG_CHANCE,
    PETS_UNLOCK_TOKENS,
    SELL_PRICES,
    XP_REWARDS,
    EconomyInstance,
    Egg,
    GameState,
    LifetimeStats,
    LuckUpgrades,
    Pet,
    add_xp,
    chest_rarity_weights,
    coin_generation_multiplier,
    generator_upgrade_cost,
    luck_upgrade_cost,
    new_entity_id,
    next_box_tier,
    prestige_cost,
    push_history,
    rarity_after,
    rebirth_cost,
    reward_multiplier,
    roll_pet_bonus,
    to_money,
)
from loot import (
    AREA_LOOT_TABLES,
    EQUIPPABLE_CATEGORIES,
    LootItem,
    Rarity,
    RARITY_ORDER,
    generate_loot,
    generate_loot_with_guaranteed_rarity,
)

ActionResult = Tuple[GameState, str]
Action = Callable[[GameState, random.Random], ActionResult]


class ActionKind(str, Enum):
    OPEN_CHEST = 'openChest'
    SELL_ITEM = 'sellItem'
    BULK_SELL = 'bulkSell'
    MERGE_ITEMS = 'mergeItems'
    UPGRADE_COIN_GENERATOR = 'upgradeCoinGenerator'
    UPGRADE_LUCK_1 = 'upgradeLuck1'
    UPGRADE_LUCK_2 = 'upgradeLuck2'
    UPGRADE_LUCK_3 = 'upgradeLuck3'
    BUY_AUTO_OPEN = 'buyAutoOpen'
    BUY_AUTO_SELL = 'buyAutoSell'
    TOGGLE_AUTO_SELL = 'toggleAutoSell'
    BUY_BOX = 'buyBox'
    BUY_PETS = 'buyPets'
    BUY_EGG_UPGRADE = 'buyEggUpgrade'
    HATCH_EGG = 'hatchEgg'
    EQUIP_PET = 'equipPet'
    UNEQUIP_PET = 'unequipPet'
    EQUIP_WEAPON = 'equipWeapon'
    FIGHT_BATTLE = 'fightBattle'
    IDLE_COINS = 'idleCoins'
    SWITCH_AREA = 'switchArea'
    REBIRTH = 'rebirth'
    PRESTIGE = 'prestige'


def _skip(state: GameState, action: str, reason: str) -> ActionResult:
    return state, f"{action}_skipped_{reason}"


def _clear_slots(slots: Tuple[Optional[str], ...], removed_ids: Iterable[str]) -> Tuple[Optional[str], ...]:
    """Empty any battle slot that points at a removed item."""
    removed = set(removed_ids)
    return tuple(None if slot in removed else slot for slot in slots)


def _remove_items(instance: EconomyInstance, removed_ids: FrozenSet[str]) -> EconomyInstance:
    return replace(
        instance,
        inventory=tuple(item for item in instance.inventory if item.id not in removed_ids),
        battle_slots=_clear_slots(instance.battle_slots, removed_ids),
    )


def _loot_table(state: GameState):
    return AREA_LOOT_TABLES[state.current_area]


# =============================================================================
# CHESTS
# =============================================================================

def open_chest(state: GameState, rng: random.Random) -> ActionResult:
    """
    Open one chest in the active area.

    Draws with luck/box-adjusted weights, auto-sells the drop if configured,
    grants XP (level-ups cascade and pay coins) and coins scaled by the
    rebirth/prestige multiplier, then rolls for at most one egg.
    """
    instance = state.active
    item = generate_loot(rng, _loot_table(state), chest_rarity_weights(instance))

    auto_sold = instance.has_auto_sell and item.rarity in instance.auto_sell_rarities
    inventory = instance.inventory if auto_sold else instance.inventory + (item,)

    xp, level, level_up_coins = add_xp(instance.xp, instance.level, XP_REWARDS[item.rarity])

    base_coins = COIN_REWARDS[item.rarity] + level_up_coins
    if auto_sold:
        base_coins += SELL_PRICES[item.rarity]
    earned = to_money(base_coins * reward_multiplier(instance))

    # First successful roll wins; later rarities are not checked
    eggs = instance.eggs
    for rarity in RARITY_ORDER:
        if instance.has_egg_upgrade(rarity) and rng.random() < EGG_DROP_CHANCE:
            eggs = eggs + (Egg(id=new_entity_id('egg', rng), rarity=rarity),)
            break

    stats = LifetimeStats(
        total_chests_opened=instance.stats.total_chests_opened + 1,
        total_coins_earned=instance.stats.total_coins_earned + earned,
        legendaries_found=instance.stats.legendaries_found + (item.rarity == Rarity.LEGENDARY),
    )

    instance = replace(
        instance,
        inventory=inventory,
        drops_history=push_history(instance.drops_history, item),
        xp=xp,
        level=level,
        coins=to_money(instance.coins + earned),
        stats=stats,
        eggs=eggs,
    )
    return state.with_active(instance), 'openChest'


# =============================================================================
# SELLING & MERGING
# =============================================================================

def sell_item(state: GameState, rng: random.Random) -> ActionResult:
    instance = state.active
    if not instance.inventory:
        return _skip(state, 'sellItem', 'empty')

    item = rng.choice(instance.inventory)
    instance = _remove_items(instance, frozenset({item.id})).credit(SELL_PRICES[item.rarity])
    return state.with_active(instance), 'sellItem'


def bulk_sell(state: GameState, rng: random.Random) -> ActionResult:
    """Sell every item of one randomly chosen rarity."""
    instance = state.active
    if not instance.inventory:
        return _skip(state, 'bulkSell', 'empty')

    rarity = rng.choice(RARITY_ORDER)
    to_sell = [item for item in instance.inventory if item.rarity == rarity]
    if not to_sell:
        return _skip(state, 'bulkSell', f"no{rarity.value}")

    total = sum((SELL_PRICES[item.rarity] for item in to_sell), Decimal('0'))
    instance = _remove_items(instance, frozenset(item.id for item in to_sell)).credit(total)
    return state.with_active(instance), f"bulkSell_{rarity.value}_{len(to_sell)}items"


def mergeable_groups(instance: EconomyInstance) -> Dict[Rarity, List[LootItem]]:
    """Unequipped, non-legendary items grouped by rarity, in rarity order."""
    equipped = {slot for slot in instance.battle_slots if slot is not None}
    groups: Dict[Rarity, List[LootItem]] = {}
    for rarity in RARITY_ORDER[:-1]:
        groups[rarity] = [
            item for item in instance.inventory
            if item.rarity == rarity and item.id not in equipped
        ]
    return groups


def merge_items(state: GameState, rng: random.Random) -> ActionResult:
    """Merge three unequipped items of the lowest eligible rarity into one of the next tier."""
    instance = state.active
    if len(instance.inventory) < 3:
        return _skip(state, 'mergeItems', 'notEnough')

    candidates = [
        (rarity, items) for rarity, items in mergeable_groups(instance).items()
        if len(items) >= 3
    ]
    if not candidates:
        return _skip(state, 'mergeItems', 'noTriples')

    rarity, items = candidates[0]
    target = rarity_after(rarity)
    merged = generate_loot_with_guaranteed_rarity(target, rng, _loot_table(state))
    if merged is None:
        return _skip(state, 'mergeItems', 'noTemplate')

    consumed = frozenset(item.id for item in items[:3])
    instance = _remove_items(instance, consumed)
    instance = replace(
        instance,
        inventory=instance.inventory + (merged,),
        drops_history=push_history(instance.drops_history, merged),
    )
    return state.with_active(instance), f"mergeItems_{rarity.value}"


# =============================================================================
# UPGRADES & SHOP
# =============================================================================

def upgrade_coin_generator(state: GameState, rng: random.Random) -> ActionResult:
    instance = state.active
    cost = generator_upgrade_cost(instance.coin_generator_level)
    if instance.coins < cost:
        return _skip(state, 'upgradeCoinGenerator', 'insufficient')

    instance = replace(
        instance.debit(cost),
        coin_generator_level=instance.coin_generator_level + 1,
    )
    return state.with_active(instance), 'upgradeCoinGenerator'


def _upgrade_luck(state: GameState, which: int) -> ActionResult:
    name = f"upgradeLuck{which}"
    instance = state.active
    level = instance.luck_upgrades.level(which)
    if level >= MAX_LUCK_LEVEL:
        return _skip(state, name, 'max')

    cost = luck_upgrade_cost(which, level)
    if instance.coins < cost:
        return _skip(state, name, 'insufficient')

    instance = replace(instance.debit(cost), luck_upgrades=instance.luck_upgrades.bump(which))
    return state.with_active(instance), name


def upgrade_luck_1(state: GameState, rng: random.Random) -> ActionResult:
    return _upgrade_luck(state, 1)


def upgrade_luck_2(state: GameState, rng: random.Random) -> ActionResult:
    return _upgrade_luck(state, 2)


def upgrade_luck_3(state: GameState, rng: random.Random) -> ActionResult:
    return _upgrade_luck(state, 3)


def buy_auto_open(state: GameState, rng: random.Random) -> ActionResult:
    instance = state.active
    if instance.has_auto_open:
        return _skip(state, 'buyAutoOpen', 'owned')
    if instance.coins < AUTO_OPEN_COST:
        return _skip(state, 'buyAutoOpen', 'insufficient')

    instance = replace(instance.debit(AUTO_OPEN_COST), has_auto_open=True)
    return state.with_active(instance), 'buyAutoOpen'


def buy_auto_sell(state: GameState, rng: random.Random) -> ActionResult:
    instance = state.active
    if instance.has_auto_sell:
        return _skip(state, 'buyAutoSell', 'owned')
    if instance.coins < AUTO_SELL_COST:
        return _skip(state, 'buyAutoSell', 'insufficient')

    instance = replace(instance.debit(AUTO_SELL_COST), has_auto_sell=True)
    return state.with_active(instance), 'buyAutoSell'


def toggle_auto_sell(state: GameState, rng: random.Random) -> ActionResult:
    instance = state.active
    if not instance.has_auto_sell:
        return _skip(state, 'toggleAutoSell', 'noFeature')

    rarity = rng.choice(RARITY_ORDER)
    rarities = instance.auto_sell_rarities ^ {rarity}
    instance = replace(instance, auto_sell_rarities=frozenset(rarities))
    return state.with_active(instance), f"toggleAutoSell_{rarity.value}"


def buy_box(state: GameState, rng: random.Random) -> ActionResult:
    """Buy the next box tier: bronze, then silver, then gold."""
    instance = state.active
    tier = next_box_tier(instance.purchased_box)
    if tier is None:
        return _skip(state, 'buyBox', 'maxed')
    if instance.coins < BOX_COSTS[tier]:
        return _skip(state, 'buyBox', 'insufficient')

    instance = replace(instance.debit(BOX_COSTS[tier]), purchased_box=tier)
    return state.with_active(instance), f"buyBox_{tier}"


# =============================================================================
# PETS
# =============================================================================

def buy_pets(state: GameState, rng: random.Random) -> ActionResult:
    """Unlock pets for the active area, paid in rebirth tokens."""
    instance = state.active
    if instance.has_pets:
        return _skip(state, 'buyPets', 'owned')
    if instance.rebirth_tokens < PETS_UNLOCK_TOKENS:
        return _skip(state, 'buyPets', 'insufficient')

    instance = replace(
        instance,
        rebirth_tokens=instance.rebirth_tokens - PETS_UNLOCK_TOKENS,
        has_pets=True,
    )
    return state.with_active(instance), 'buyPets'


def buy_egg_upgrade(state: GameState, rng: random.Random) -> ActionResult:
    """Buy the first unowned egg upgrade the player can afford."""
    instance = state.active
    if not instance.has_pets:
        return _skip(state, 'buyEggUpgrade', 'noPets')

    unowned = [rarity for rarity in RARITY_ORDER if not instance.has_egg_upgrade(rarity)]
    if not unowned:
        return _skip(state, 'buyEggUpgrade', 'maxed')

    affordable = [rarity for rarity in unowned if instance.coins >= EGG_UPGRADE_COSTS[rarity]]
    if not affordable:
        return _skip(state, 'buyEggUpgrade', 'insufficient')

    rarity = affordable[0]
    instance = replace(
        instance.debit(EGG_UPGRADE_COSTS[rarity]),
        egg_upgrades=instance.egg_upgrades | {rarity},
    )
    return state.with_active(instance), f"buyEggUpgrade_{rarity.value}"


def hatch_egg(state: GameState, rng: random.Random) -> ActionResult:
    """
    Hatch a random egg into a dog or cat of the egg's rarity.

    A pet matching an owned pet's type and rarity stacks onto it instead of
    taking a new entry; the stack keeps the better bonus.
    """
    instance = state.active
    if not instance.eggs:
        return _skip(state, 'hatchEgg', 'noEggs')

    index = rng.randrange(len(instance.eggs))
    egg = instance.eggs[index]
    eggs = instance.eggs[:index] + instance.eggs[index + 1:]

    pet_type = 'dog' if rng.random() < PET_DOG_CHANCE else 'cat'
    bonus = roll_pet_bonus(pet_type, egg.rarity, rng)

    pets = list(instance.pets)
    for position, pet in enumerate(pets):
        if pet.type == pet_type and pet.rarity == egg.rarity:
            pets[position] = replace(pet, count=pet.count + 1, bonus=max(pet.bonus, bonus))
            break
    else:
        pets.append(Pet(
            id=new_entity_id('pet', rng),
            name=pet_type.capitalize(),
            type=pet_type,
            rarity=egg.rarity,
            bonus=bonus,
        ))

    instance = replace(instance, eggs=eggs, pets=tuple(pets))
    return state.with_active(instance), 'hatchEgg'


def equip_pet(state: GameState, rng: random.Random) -> ActionResult:
    instance = state.active
    if not instance.pets:
        return _skip(state, 'equipPet', 'noPets')

    unequipped = [pet for pet in instance.pets if pet.id not in instance.equipped_pets]
    if not unequipped or len(instance.equipped_pets) >= MAX_EQUIPPED_PETS:
        return _skip(state, 'equipPet', 'allEquipped')

    pet = rng.choice(unequipped)
    instance = replace(instance, equipped_pets=instance.equipped_pets + (pet.id,))
    return state.with_active(instance), 'equipPet'


def unequip_pet(state: GameState, rng: random.Random) -> ActionResult:
    instance = state.active
    if not instance.equipped_pets:
        return _skip(state, 'unequipPet', 'noneEquipped')

    index = rng.randrange(len(instance.equipped_pets))
    equipped = instance.equipped_pets[:index] + instance.equipped_pets[index + 1:]
    instance = replace(instance, equipped_pets=equipped)
    return state.with_active(instance), 'unequipPet'


# =============================================================================
# BATTLE
# =============================================================================

def equip_weapon(state: GameState, rng: random.Random) -> ActionResult:
    """Put a random weapon, armor or shield into a random battle slot."""
    instance = state.active
    equippable = [item for item in instance.inventory if item.category in EQUIPPABLE_CATEGORIES]
    if not equippable:
        return _skip(state, 'equipWeapon', 'noWeapons')

    slot = rng.randrange(BATTLE_SLOT_COUNT)
    item = rng.choice(equippable)

    # An item occupies at most one slot
    slots = list(_clear_slots(instance.battle_slots, [item.id]))
    slots[slot] = item.id
    instance = replace(instance, battle_slots=tuple(slots))
    return state.with_active(instance), f"equipWeapon_slot{slot}"


def fight_battle(state: GameState, rng: random.Random) -> ActionResult:
    """Fight the current wave. A win advances the wave and pays out; a loss resets the streak."""
    instance = state.active
    if all(slot is None for slot in instance.battle_slots):
        return _skip(state, 'battle', 'noWeapons')

    result = resolve_battle(instance, rng, _loot_table(state))
    if not result.won:
        instance = replace(instance, battle_streak=0)
        return state.with_active(instance), 'battle_lost'

    instance = replace(
        instance.credit(result.coins_earned),
        battle_wave=instance.battle_wave + 1,
        battle_streak=result.streak,
    )
    if result.drop is not None:
        instance = replace(
            instance,
            inventory=instance.inventory + (result.drop,),
            drops_history=push_history(instance.drops_history, result.drop),
        )
    return state.with_active(instance), 'battle_won'


# =============================================================================
# IDLE & AREAS
# =============================================================================

def idle_coins(state: GameState, rng: random.Random) -> ActionResult:
    """One second of idle coin generation. Equipped dogs boost the rate."""
    instance = state.active
    if instance.coin_generator_level <= 0:
        return _skip(state, 'idleCoins', 'noGenerator')

    per_second = instance.coin_generator_level * IDLE_COINS_PER_LEVEL * coin_generation_multiplier(instance)
    return state.with_active(instance.credit(per_second)), 'idleCoins'


def switch_area(state: GameState, rng: random.Random) -> ActionResult:
    """Toggle between the main and galaxy areas. The galaxy needs a prestige first."""
    if state.current_area == 1 and state.area(1).prestige_count < AREA_2_PRESTIGE_REQUIREMENT:
        return _skip(state, 'switchArea', 'noPrestige')

    target = 2 if state.current_area == 1 else 1
    return replace(state, current_area=target), f"switchArea_to{target}"


# =============================================================================
# REBIRTH & PRESTIGE
# =============================================================================

def _reset_progress(instance: EconomyInstance) -> EconomyInstance:
    """Wipe everything a rebirth resets. Pets, stats and counters survive."""
    return replace(
        instance,
        level=1,
        xp=0,
        coins=Decimal('0'),
        inventory=(),
        drops_history=(),
        coin_generator_level=0,
        luck_upgrades=LuckUpgrades(),
        purchased_box=None,
        has_auto_open=False,
        has_auto_sell=False,
        auto_sell_rarities=frozenset(),
        egg_upgrades=frozenset(),
        eggs=(),
        battle_wave=1,
        battle_slots=(None,) * BATTLE_SLOT_COUNT,
        battle_streak=0,
    )


def rebirth(state: GameState, rng: random.Random) -> ActionResult:
    instance = state.active
    if instance.coins < rebirth_cost(instance.rebirth_count):
        return _skip(state, 'rebirth', 'insufficient')

    instance = replace(
        _reset_progress(instance),
        rebirth_tokens=instance.rebirth_tokens + 1,
        rebirth_count=instance.rebirth_count + 1,
    )
    return state.with_active(instance), 'rebirth'


def prestige(state: GameState, rng: random.Random) -> ActionResult:
    """Trade rebirth tokens for a permanent prestige level; also unequips pets."""
    instance = state.active
    if instance.rebirth_tokens < prestige_cost(instance.prestige_count):
        return _skip(state, 'prestige', 'insufficient')

    instance = replace(
        _reset_progress(instance),
        rebirth_tokens=0,
        rebirth_count=0,
        equipped_pets=(),
        prestige_count=instance.prestige_count + 1,
    )
    return state.with_active(instance), 'prestige'


# =============================================================================
# REGISTRY & DISPATCH
# =============================================================================

ACTION_REGISTRY: Dict[ActionKind, Action] = {
    ActionKind.OPEN_CHEST: open_chest,
    ActionKind.SELL_ITEM: sell_item,
    ActionKind.BULK_SELL: bulk_sell,
    ActionKind.MERGE_ITEMS: merge_items,
    ActionKind.UPGRADE_COIN_GENERATOR: upgrade_coin_generator,
    ActionKind.UPGRADE_LUCK_1: upgrade_luck_1,
    ActionKind.UPGRADE_LUCK_2: upgrade_luck_2,
    ActionKind.UPGRADE_LUCK_3: upgrade_luck_3,
    ActionKind.BUY_AUTO_OPEN: buy_auto_open,
    ActionKind.BUY_AUTO_SELL: buy_auto_sell,
    ActionKind.TOGGLE_AUTO_SELL: toggle_auto_sell,
    ActionKind.BUY_BOX: buy_box,
    ActionKind.BUY_PETS: buy_pets,
    ActionKind.BUY_EGG_UPGRADE: buy_egg_upgrade,
    ActionKind.HATCH_EGG: hatch_egg,
    ActionKind.EQUIP_PET: equip_pet,
    ActionKind.UNEQUIP_PET: unequip_pet,
    ActionKind.EQUIP_WEAPON: equip_weapon,
    ActionKind.FIGHT_BATTLE: fight_battle,
    ActionKind.IDLE_COINS: idle_coins,
    ActionKind.SWITCH_AREA: switch_area,
    ActionKind.REBIRTH: rebirth,
    ActionKind.PRESTIGE: prestige,
}


def apply_action(
    kind: Union[ActionKind, str],
    state: GameState,
    rng: random.Random,
) -> ActionResult:
    """
    Dispatch one action by kind.

    Raises:
        InvalidActionError: if `kind` names no registered action
    """
    try:
        kind = ActionKind(kind)
    except ValueError:
        raise InvalidActionError(f"Unknown action: {kind}")

    return ACTION_REGISTRY[kind](state, rng)


def base_action_name(action_name: str) -> str:
    """
    Collapse a result name to its action for tallying.

    'upgradeLuck1_skipped_max' -> 'upgradeLuck1', 'bulkSell_rare_4items' ->
    'bulkSell'. Battle outcomes stay distinct: 'battle_won', 'battle_lost'.
    """
    if action_name in ('battle_won', 'battle_lost'):
        return action_name
    return action_name.split('_')[0]


# =============================================================================
# EXCEPTIONS
# =============================================================================

class InvalidActionError(Exception):
    """Raised when an unknown action is dispatched."""
    pass
