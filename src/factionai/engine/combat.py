"""Combat arithmetic for faction attacks.

An attack is an opposed roll: 1d10 + attacker attribute against
1d10 + defender attribute.

- Attacker higher: the attack hits and deals its damage.
- Tie: both the attack and the defender's counterattack land.
- Defender higher: only the counterattack lands.

The expected-value helpers (``calculate_attack_odds``,
``calculate_expected_damage``) are pure and are what the AI reasons with.
The rolling helpers take an explicit ``random.Random`` so callers control
determinism.
"""

from __future__ import annotations

import logging
import math
import random
import re
from dataclasses import dataclass
from typing import Optional

from factionai.models.asset import AssetCategory, AttackPattern, CounterattackPattern

log = logging.getLogger(__name__)

_DICE_RE = re.compile(r"^(\d+)d(\d+)([+-]\d+)?$", re.IGNORECASE)
_NUMBER_RE = re.compile(r"^(\d+)$")

# Standard deviation of a single d10 roll, sqrt(8.25)
_D10_STDDEV = 2.87


def _is_empty_expression(expression: Optional[str]) -> bool:
    return not expression or expression in ("None", "special")


def is_valid_dice_expression(expression: Optional[str]) -> bool:
    """Whether *expression* is empty, ``special``, a number or ``NdM[+K]``."""
    if _is_empty_expression(expression):
        return True
    expression = expression.strip()
    return bool(_DICE_RE.match(expression) or _NUMBER_RE.match(expression))


def calculate_dice_average(expression: Optional[str]) -> float:
    """Expected value of a dice expression such as ``2d4+2``.

    ``None``, ``"None"``, ``"special"`` and unparseable text average to 0.
    """
    if _is_empty_expression(expression):
        return 0.0
    expression = expression.strip()
    match = _DICE_RE.match(expression)
    if match is None:
        number = _NUMBER_RE.match(expression)
        return float(number.group(1)) if number else 0.0
    num_dice, die_size = int(match.group(1)), int(match.group(2))
    modifier = int(match.group(3)) if match.group(3) else 0
    return num_dice * (die_size + 1) / 2 + modifier


def roll_dice_expression(expression: Optional[str], rng: random.Random) -> int:
    """Roll a dice expression with *rng*.  Unparseable expressions roll 0."""
    if _is_empty_expression(expression):
        return 0
    expression = expression.strip()
    match = _DICE_RE.match(expression)
    if match is None:
        number = _NUMBER_RE.match(expression)
        if number:
            return int(number.group(1))
        log.warning("Unable to parse dice expression: %s", expression)
        return 0
    num_dice, die_size = int(match.group(1)), int(match.group(2))
    total = int(match.group(3)) if match.group(3) else 0
    for _ in range(num_dice):
        total += rng.randint(1, die_size)
    return total


def calculate_attack_odds(
    attacker_attribute: AssetCategory,
    attacker_value: int,
    defender_attribute: AssetCategory,
    defender_value: int,
) -> float:
    """Probability (0-1) that an attack succeeds.

    Uses a normal approximation of the two d10 rolls, squashed with tanh.
    The attribute kinds only select which ratings the caller passes in.
    """
    mean_diff = (5.5 + attacker_value) - (5.5 + defender_value)
    combined_stddev = math.sqrt(_D10_STDDEV ** 2 + _D10_STDDEV ** 2)
    z_score = mean_diff / combined_stddev
    probability = 0.5 * (1 + math.tanh(z_score * 0.8))
    return max(0.0, min(1.0, probability))


def calculate_expected_damage(damage_expression: Optional[str]) -> float:
    """Average damage of an attack."""
    return calculate_dice_average(damage_expression)


def calculate_expected_counterattack_damage(pattern: Optional[CounterattackPattern]) -> float:
    """Average damage of a counterattack, 0 when there is none."""
    if pattern is None or pattern.damage == "None":
        return 0.0
    return calculate_dice_average(pattern.damage)


# -- Rolling -------------------------------------------------------------

@dataclass(frozen=True)
class CombatRollResult:
    """Outcome of the opposed d10 roll."""
    attacker_roll: int
    defender_roll: int
    attacker_total: int
    defender_total: int

    @property
    def margin(self) -> int:
        return self.attacker_total - self.defender_total

    @property
    def success(self) -> bool:
        return self.margin > 0

    @property
    def tie(self) -> bool:
        return self.margin == 0


@dataclass(frozen=True)
class CombatResult:
    """Damage dealt by one resolved attack."""
    roll: CombatRollResult
    attack_damage: int
    counterattack_damage: int

    @property
    def attacker_wins(self) -> bool:
        return self.roll.success

    @property
    def both_succeed(self) -> bool:
        return self.roll.tie


def perform_combat_roll(attacker_value: int, defender_value: int, rng: random.Random) -> CombatRollResult:
    """Roll 1d10 + attribute for both sides."""
    attacker_roll = rng.randint(1, 10)
    defender_roll = rng.randint(1, 10)
    return CombatRollResult(
        attacker_roll=attacker_roll,
        defender_roll=defender_roll,
        attacker_total=attacker_roll + attacker_value,
        defender_total=defender_roll + defender_value,
    )


def resolve_combat(
    attacker_value: int,
    defender_value: int,
    attack: Optional[AttackPattern],
    counterattack: Optional[CounterattackPattern],
    rng: random.Random,
) -> CombatResult:
    """Resolve one attack including counterattack damage.

    Raises:
        ValueError: If the attacker has no attack pattern.
    """
    if attack is None:
        raise ValueError("Cannot resolve combat: attacker has no attack pattern")

    roll = perform_combat_roll(attacker_value, defender_value, rng)
    counter_damage_expr = counterattack.damage if counterattack is not None else None

    attack_damage = 0
    counter_damage = 0
    if roll.tie:
        attack_damage = roll_dice_expression(attack.damage, rng)
        counter_damage = roll_dice_expression(counter_damage_expr, rng)
    elif roll.success:
        attack_damage = roll_dice_expression(attack.damage, rng)
    else:
        counter_damage = roll_dice_expression(counter_damage_expr, rng)

    return CombatResult(roll=roll, attack_damage=attack_damage, counterattack_damage=counter_damage)
