"""
Tests for battle resolution - power formulas, enemy scaling, rewards
"""

import random
import pytest
from decimal import Decimal
from battle import (
    item_power, enemy_power, shield_reduction, slot_wins, battle_coins,
    drop_chance, roll_drop_rarity, resolve_battle, WINS_REQUIRED,
)
from engine import EconomyInstance
from loot import ItemCategory, Rarity

from conftest import make_item, slots_for


def _weapon(power_damage: float, rarity: Rarity = Rarity.COMMON):
    """A weapon whose power is exactly 2 * damage at common rarity."""
    return make_item(ItemCategory.RIFLE, rarity, damage=power_damage)


class TestItemPower:
    """Test the item power formulas."""

    def test_weapon_power(self):
        """damage*2 + fireRate + accuracy*0.5 + magazineSize*0.3"""
        item = make_item(ItemCategory.RIFLE, damage=10.0, fireRate=5.0, accuracy=80.0, magazineSize=30.0)
        assert item_power(item) == pytest.approx(74)

    def test_rarity_multiplier(self):
        """Rare weapons hit 2.5x as hard."""
        item = make_item(ItemCategory.PISTOL, Rarity.RARE, damage=10.0)
        assert item_power(item) == pytest.approx(50)

    def test_armor_power(self):
        """defense*4 + mobility"""
        item = make_item(ItemCategory.ARMOR, defense=10.0, mobility=5.0)
        assert item_power(item) == pytest.approx(45)

    def test_shield_power_is_negative(self):
        """-(capacity*3 + rechargeRate*2) * multiplier"""
        item = make_item(ItemCategory.SHIELD, Rarity.UNCOMMON, capacity=10.0, rechargeRate=5.0)
        assert item_power(item) == pytest.approx(-60)

    def test_missing_stats_count_as_zero(self):
        """A consumable has no combat stats."""
        item = make_item(ItemCategory.CONSUMABLE, healing=50.0)
        assert item_power(item) == 0


class TestEnemyPower:
    """Test enemy scaling."""

    def test_wave_one_bounds(self):
        """Wave 1: 25 +/- 5 plus 3 per slot, never below 15."""
        rng = random.Random(8)
        for slot in range(5):
            for _ in range(200):
                power = enemy_power(1, slot, rng)
                assert 20 + slot * 3 <= power <= 30 + slot * 3

    def test_later_wave_bounds(self):
        """Wave n: 50 + 20(n-1) +/- 30% plus 8 per slot, never below 30."""
        rng = random.Random(9)
        for _ in range(200):
            power = enemy_power(3, 4, rng)
            assert 63 + 32 <= power <= 117 + 32

    def test_later_waves_are_harder(self):
        """Minimum power grows with the wave."""
        rng = random.Random(10)
        wave_2 = max(enemy_power(2, 0, rng) for _ in range(100))
        wave_10 = min(enemy_power(10, 0, rng) for _ in range(100))
        assert wave_10 > wave_2


class TestSlotWins:
    """Test per-slot comparison rules."""

    def test_weapon_needs_strictly_more(self):
        """Weapons win only by exceeding the enemy."""
        weapon = _weapon(25.0)
        assert slot_wins(weapon, 49.9)
        assert not slot_wins(weapon, 50.0)

    def test_armor_wins_ties(self):
        """Armor wins when equal."""
        armor = make_item(ItemCategory.ARMOR, defense=10.0, mobility=5.0)
        assert slot_wins(armor, 45.0)

    def test_shield_never_wins(self):
        """Shields contribute reduction, never slot wins."""
        shield = make_item(ItemCategory.SHIELD, capacity=1000.0, rechargeRate=0.0)
        assert not slot_wins(shield, 0.0)

    def test_empty_slot_never_wins(self):
        """Nothing beats even a zero-power enemy."""
        assert not slot_wins(None, 0.0)


class TestResolveBattle:
    """Test full battle resolution."""

    def test_five_strong_weapons_win(self):
        """Every slot above its enemy wins the battle."""
        weapons = [_weapon(500.0) for _ in range(5)]
        instance = EconomyInstance(inventory=tuple(weapons), battle_slots=slots_for(*weapons))
        result = resolve_battle(instance, random.Random(1))
        assert result.won
        assert result.slots_won == 5
        assert result.streak == 1

    def test_one_strong_weapon_is_not_enough(self):
        """One weapon of power 1000 at wave 1 wins 1 of 5 slots: a loss."""
        weapon = _weapon(500.0)
        instance = EconomyInstance(inventory=(weapon,), battle_slots=slots_for(weapon))
        result = resolve_battle(instance, random.Random(1))
        assert item_power(weapon) == pytest.approx(1000)
        assert result.slots_won == 1
        assert not result.won
        assert result.streak == 0
        assert result.coins_earned == Decimal('0')
        assert result.drop is None

    def test_win_threshold(self):
        """Exactly WINS_REQUIRED strong slots is enough."""
        weapons = [_weapon(500.0) for _ in range(WINS_REQUIRED)]
        instance = EconomyInstance(inventory=tuple(weapons), battle_slots=slots_for(*weapons))
        assert resolve_battle(instance, random.Random(2)).won

    def test_shields_reduce_every_enemy(self):
        """A big shield drops every enemy to zero so weak weapons win."""
        weak = [_weapon(0.5) for _ in range(3)]
        shield = make_item(ItemCategory.SHIELD, capacity=100.0, rechargeRate=0.0)
        instance = EconomyInstance(
            inventory=tuple(weak) + (shield,),
            battle_slots=slots_for(*weak, shield),
        )
        assert shield_reduction(instance) == pytest.approx(300)
        result = resolve_battle(instance, random.Random(3))
        assert all(slot.enemy_power == 0 for slot in result.slot_results)
        assert result.won

    def test_wave_one_reward(self):
        """Wave 1: (5 + 1 + 9) coins with a 10% first-win streak bonus."""
        weapons = [_weapon(500.0) for _ in range(5)]
        instance = EconomyInstance(inventory=tuple(weapons), battle_slots=slots_for(*weapons))
        result = resolve_battle(instance, random.Random(4))
        assert result.coins_earned == Decimal('16.50')

    def test_dangling_slot_counts_as_empty(self):
        """A slot pointing at a missing item fights with nothing."""
        instance = EconomyInstance(battle_slots=('gone', None, None, None, None))
        result = resolve_battle(instance, random.Random(5))
        assert result.slot_results[0].item_id is None
        assert not result.won


class TestRewards:
    """Test coin and drop tables."""

    def test_coins_include_multipliers_and_capped_streak(self):
        """Wave 5, one rebirth and one prestige, streak bonus capped at 100%."""
        instance = EconomyInstance(rebirth_count=1, prestige_count=1)
        assert battle_coins(instance, 5, 15) == Decimal('42.00')

    def test_drop_chance_is_capped(self):
        """20% + 2% per wave, at most 50%."""
        assert drop_chance(1) == pytest.approx(0.22)
        assert drop_chance(40) == pytest.approx(0.5)

    def test_early_waves_only_drop_rare(self):
        """Epic and legendary drops are wave-gated."""
        rng = random.Random(6)
        assert {roll_drop_rarity(1, rng) for _ in range(200)} == {Rarity.RARE}

    def test_late_waves_can_drop_legendary(self):
        """From wave 10 all three drop rarities appear."""
        rng = random.Random(7)
        rarities = {roll_drop_rarity(10, rng) for _ in range(500)}
        assert rarities == {Rarity.RARE, Rarity.EPIC, Rarity.LEGENDARY}
