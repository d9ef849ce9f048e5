"""Tests for dice math, attack odds and combat resolution."""

import random

import pytest

from factionai.engine.combat import (
    calculate_attack_odds,
    calculate_dice_average,
    calculate_expected_counterattack_damage,
    is_valid_dice_expression,
    resolve_combat,
    roll_dice_expression,
)
from factionai.models.asset import AssetCategory, AttackPattern, CounterattackPattern


class _ScriptedRandom(random.Random):
    """Random whose randint returns queued values."""

    def __init__(self, rolls):
        super().__init__(0)
        self._rolls = list(rolls)

    def randint(self, a, b):
        return self._rolls.pop(0)


_F = AssetCategory.FORCE


class TestDiceAverage:
    def test_plain_dice(self):
        assert calculate_dice_average("1d6") == 3.5

    def test_modifier(self):
        assert calculate_dice_average("2d4+2") == 7.0
        assert calculate_dice_average("1d4-1") == 1.5

    def test_flat_number(self):
        assert calculate_dice_average("5") == 5.0

    def test_empty_expressions_average_zero(self):
        for expr in (None, "", "None", "special", "nonsense"):
            assert calculate_dice_average(expr) == 0.0


class TestDiceValidation:
    def test_valid(self):
        for expr in ("1d6", "2d4+2", "3d10-1", "4", "special", "None", None):
            assert is_valid_dice_expression(expr)

    def test_invalid(self):
        for expr in ("d6", "2x4", "1d", "lots"):
            assert not is_valid_dice_expression(expr)


class TestRollDice:
    def test_rolls_stay_in_range(self):
        rng = random.Random(7)
        for _ in range(200):
            assert 4 <= roll_dice_expression("2d4+2", rng) <= 10

    def test_unparseable_rolls_zero(self):
        assert roll_dice_expression("garbage", random.Random(1)) == 0
        assert roll_dice_expression("special", random.Random(1)) == 0


class TestAttackOdds:
    def test_even_match_is_half(self):
        assert calculate_attack_odds(_F, 3, _F, 3) == pytest.approx(0.5)

    def test_advantage_raises_odds(self):
        assert calculate_attack_odds(_F, 5, _F, 3) > calculate_attack_odds(_F, 4, _F, 3) > 0.5

    def test_odds_are_bounded(self):
        assert 0.0 <= calculate_attack_odds(_F, 0, _F, 20) <= 1.0
        assert 0.0 <= calculate_attack_odds(_F, 20, _F, 0) <= 1.0

    def test_expected_counterattack(self):
        assert calculate_expected_counterattack_damage(None) == 0.0
        assert calculate_expected_counterattack_damage(CounterattackPattern("1d8")) == 4.5


class TestResolveCombat:
    _ATTACK = AttackPattern(_F, _F, "1d6")
    _COUNTER = CounterattackPattern("1d4")

    def test_attacker_wins(self):
        # 5+5 vs 2+3, then 1d6 -> 4
        result = resolve_combat(5, 3, self._ATTACK, self._COUNTER, _ScriptedRandom([5, 2, 4]))
        assert result.attacker_wins
        assert result.attack_damage == 4
        assert result.counterattack_damage == 0

    def test_attacker_loses_takes_counter(self):
        # 1+3 vs 6+3, then 1d4 -> 3
        result = resolve_combat(3, 3, self._ATTACK, self._COUNTER, _ScriptedRandom([1, 6, 3]))
        assert not result.attacker_wins
        assert result.attack_damage == 0
        assert result.counterattack_damage == 3

    def test_tie_both_deal_damage(self):
        # 5+3 vs 3+5, then 1d6 -> 2 and 1d4 -> 3
        result = resolve_combat(3, 5, self._ATTACK, self._COUNTER, _ScriptedRandom([5, 3, 2, 3]))
        assert result.both_succeed
        assert (result.attack_damage, result.counterattack_damage) == (2, 3)

    def test_loss_without_counter_is_harmless(self):
        result = resolve_combat(1, 5, self._ATTACK, None, _ScriptedRandom([1, 9]))
        assert result.attack_damage == 0
        assert result.counterattack_damage == 0

    def test_no_attack_pattern_raises(self):
        with pytest.raises(ValueError):
            resolve_combat(3, 3, None, None, random.Random(0))
