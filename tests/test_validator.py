"""
Tests for the invariant validator - every check, and that it never raises
"""

import random
from decimal import Decimal
from actions import ActionKind, apply_action
from engine import (
    EconomyInstance, GameState, LuckUpgrades, Egg, Pet, LifetimeStats,
    create_initial_state, MAX_DROPS_HISTORY,
)
from loot import Rarity
from validator import BugType, BugReport, validate, count_by_type

from conftest import make_item, make_state


def _categories(bugs, bug_type=None):
    return {bug.category for bug in bugs if bug_type is None or bug.type == bug_type}


class TestCleanStates:
    """Valid states produce no reports."""

    def test_initial_state_is_clean(self):
        """A fresh game has nothing to report."""
        assert validate(create_initial_state(), 'init') == []

    def test_random_walks_produce_no_errors(self):
        """Reachable states never violate an invariant."""
        kinds = list(ActionKind)
        for seed in (1, 2, 3):
            rng = random.Random(seed)
            state = create_initial_state()
            for _ in range(1500):
                state, name = apply_action(rng.choice(kinds), state, rng)
                errors = [bug for bug in validate(state, name) if bug.type == BugType.ERROR]
                assert errors == []


class TestNumericChecks:
    """Test NaN, infinity and sign checks."""

    def test_negative_coins(self):
        """Negative coins are an error tagged with the action."""
        bugs = validate(make_state(coins=Decimal('-1')), 'sellItem')
        assert len(bugs) == 1
        assert bugs[0].type == BugType.ERROR
        assert bugs[0].category == 'NegativeValue'
        assert bugs[0].action == 'sellItem'

    def test_decimal_nan_coins(self):
        """Decimal NaN is reported, not raised."""
        bugs = validate(make_state(coins=Decimal('NaN')), 'openChest')
        assert _categories(bugs) == {'NaN'}

    def test_infinite_coins(self):
        """Infinity gets its own category."""
        bugs = validate(make_state(coins=Decimal('Infinity')), 'openChest')
        assert _categories(bugs) == {'Infinity'}

    def test_float_nan_xp(self):
        """Float NaN is caught too."""
        bugs = validate(make_state(xp=float('nan')), 'openChest')
        assert 'NaN' in _categories(bugs)

    def test_level_below_one(self):
        """Level 0 is invalid."""
        assert 'NegativeValue' in _categories(validate(make_state(level=0), 'x'))

    def test_negative_wave_streak_and_tokens(self):
        """Battle wave, streak and tokens all have floors."""
        bugs = validate(make_state(battle_wave=0, battle_streak=-1, rebirth_tokens=-2), 'x')
        assert len([bug for bug in bugs if bug.category == 'NegativeValue']) == 3

    def test_negative_stats(self):
        """Lifetime counters never go negative."""
        state = make_state(stats=LifetimeStats(-1, Decimal('0'), -1))
        bugs = validate(state, 'x')
        assert len([bug for bug in bugs if bug.category == 'StatInconsistency']) == 2

    def test_non_number_does_not_raise(self):
        """Garbage in a numeric field becomes a report."""
        bugs = validate(make_state(level=None), 'x')
        assert bugs and all(bug.type == BugType.ERROR for bug in bugs)


class TestInventoryChecks:
    """Test item-level integrity."""

    def test_duplicate_item_ids(self):
        """Two items sharing an id is an error."""
        first = make_item(item_id='dup')
        second = make_item(item_id='dup')
        bugs = validate(make_state(inventory=(first, second)), 'mergeItems')
        assert _categories(bugs, BugType.ERROR) == {'DuplicateItemId'}

    def test_missing_id_and_bad_enums(self):
        """Items need an id, a known rarity and a known category."""
        item = make_item(item_id='ok')
        broken = make_item(item_id='broken')
        object.__setattr__(broken, 'id', '')
        object.__setattr__(broken, 'rarity', 'mythic')
        object.__setattr__(broken, 'category', 'laser')
        bugs = validate(make_state(inventory=(item, broken)), 'x')
        assert len([bug for bug in bugs if bug.category == 'InventoryIntegrity']) == 3

    def test_nan_and_negative_item_stats(self):
        """Stats must be finite and non-negative."""
        nan_item = make_item(damage=float('nan'))
        negative_item = make_item(damage=-3.0)
        bugs = validate(make_state(inventory=(nan_item, negative_item)), 'openChest')
        assert _categories(bugs) == {'ItemStatNaN', 'NegativeValue'}

    def test_orphaned_battle_slot_is_a_warning(self):
        """A slot pointing at a missing item is a warning, not an error."""
        bugs = validate(make_state(battle_slots=('ghost', None, None, None, None)), 'sellItem')
        assert [bug.type for bug in bugs] == [BugType.WARNING]
        assert bugs[0].category == 'OrphanedBattleSlot'

    def test_wrong_slot_count(self):
        """There are always exactly five battle slots."""
        bugs = validate(make_state(battle_slots=(None, None)), 'x')
        assert _categories(bugs) == {'BattleSlots'}


class TestPetAndEggChecks:
    """Test egg and pet integrity."""

    def test_duplicate_and_invalid_eggs(self):
        """Egg ids are unique and rarities valid."""
        eggs = (Egg('egg-1', Rarity.COMMON), Egg('egg-1', Rarity.RARE), Egg('egg-2', 'shiny'))
        bugs = validate(make_state(eggs=eggs), 'hatchEgg')
        assert len([bug for bug in bugs if bug.category == 'EggIntegrity']) == 2

    def test_invalid_pet(self):
        """Pets need a known type, count >= 1 and a non-negative bonus."""
        pet = Pet('pet-1', 'Bird', 'bird', Rarity.COMMON, bonus=-1, count=0)
        bugs = validate(make_state(pets=(pet,)), 'hatchEgg')
        assert len([bug for bug in bugs if bug.category == 'PetIntegrity']) == 3

    def test_orphaned_equipped_pet(self):
        """Equipped pets must exist."""
        bugs = validate(make_state(equipped_pets=('pet-missing',)), 'equipPet')
        assert _categories(bugs) == {'OrphanedPet'}

    def test_too_many_equipped_pets(self):
        """At most six pets, each once."""
        pets = tuple(Pet(f"pet-{n}", 'Dog', 'dog', Rarity.COMMON, bonus=5) for n in range(7))
        state = make_state(pets=pets, equipped_pets=tuple(pet.id for pet in pets))
        assert _categories(validate(state, 'equipPet')) == {'OrphanedPet'}

        state = make_state(pets=pets, equipped_pets=('pet-0', 'pet-0'))
        assert _categories(validate(state, 'equipPet')) == {'OrphanedPet'}


class TestUpgradeAndSizeChecks:
    """Test upgrade bounds and growth anomalies."""

    def test_luck_overflow(self):
        """Luck upgrades stay within 0..4."""
        bugs = validate(make_state(luck_upgrades=LuckUpgrades(u1=5, u2=-1)), 'upgradeLuck1')
        assert len([bug for bug in bugs if bug.category == 'UpgradeOverflow']) == 2

    def test_history_over_cap_is_an_error(self):
        """More than MAX_DROPS_HISTORY drops means a cap was missed."""
        item = make_item()
        bugs = validate(make_state(drops_history=(item,) * (MAX_DROPS_HISTORY + 1)), 'openChest')
        assert _categories(bugs, BugType.ERROR) == {'HistoryOverflow'}

    def test_huge_history_is_also_an_anomaly(self):
        """Past 50,000 entries the growth anomaly fires as well."""
        item = make_item()
        bugs = validate(make_state(drops_history=(item,) * 50_001), 'openChest')
        assert _categories(bugs, BugType.ANOMALY) == {'LargeHistory'}

    def test_large_inventory_is_an_anomaly(self):
        """Over 10,000 items is flagged but not an error."""
        items = tuple(make_item() for _ in range(10_001))
        bugs = validate(make_state(inventory=items), 'openChest')
        assert [bug.category for bug in bugs] == ['LargeInventory']
        assert bugs[0].type == BugType.ANOMALY


class TestReports:
    """Test report metadata."""

    def test_reports_carry_area(self):
        """Bugs in the galaxy area are tagged area 2."""
        state = GameState(areas=(EconomyInstance(), EconomyInstance(coins=Decimal('-5'))))
        bugs = validate(state, 'openChest')
        assert [bug.area for bug in bugs] == [2]

    def test_restrict_to_areas(self):
        """Callers can validate a subset of areas."""
        state = GameState(areas=(EconomyInstance(), EconomyInstance(coins=Decimal('-5'))))
        assert validate(state, 'x', areas=(1,)) == []

    def test_key_and_dict(self):
        """Reports expose a histogram key and a plain dict form."""
        bug = BugReport(BugType.WARNING, 'OrphanedBattleSlot', 'msg', 'sellItem')
        assert bug.key == 'warning:OrphanedBattleSlot'
        assert bug.to_dict()['type'] == 'warning'

    def test_count_by_type(self):
        """Counts cover all three types."""
        bugs = [
            BugReport(BugType.ERROR, 'NaN', 'a', 'x'),
            BugReport(BugType.ERROR, 'NaN', 'b', 'x'),
            BugReport(BugType.ANOMALY, 'LargeHistory', 'c', 'x'),
        ]
        assert count_by_type(bugs) == {BugType.ERROR: 2, BugType.WARNING: 0, BugType.ANOMALY: 1}
