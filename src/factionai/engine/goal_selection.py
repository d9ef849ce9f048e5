"""Goal selection — which faction goal to pursue and the intent behind it.

Each candidate goal gets a weight in 0..100:
- base weight from the attribute the goal relies on
- tag affinity (+20 for a preferred goal, -25 for an avoided one)
- situational modifiers (damage, wealth, asset count, rivals)

The best goal also fixes the turn's StrategicIntent: a primary focus, an
aggression level, a target faction and the systems that matter most.
Nothing here mutates the faction; the controller dispatches the SetGoal.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from factionai.models.faction import FactionGoal, GoalType

if TYPE_CHECKING:
    from factionai.models.faction import Faction
    from factionai.models.sector import StarSystem

log = logging.getLogger(__name__)

GOAL_CHANGE_MARGIN = 30

FOCUS_TYPES = ("military", "economic", "covert", "expansion", "defensive", "balanced")

_FORCE_GOALS = (GoalType.MILITARY_CONQUEST, GoalType.INVINCIBLE_VALOR)
_CUNNING_GOALS = (GoalType.INTELLIGENCE_COUP, GoalType.INSIDE_ENEMY_TERRITORY)
_WEALTH_GOALS = (GoalType.COMMERCIAL_EXPANSION, GoalType.WEALTH_OF_WORLDS)
_HARD_GOALS = (GoalType.DESTROY_THE_FOE, GoalType.PLANETARY_SEIZURE, GoalType.INVINCIBLE_VALOR)

# Evaluation order; ties go to the earlier goal.
ALL_GOALS = (
    GoalType.MILITARY_CONQUEST,
    GoalType.COMMERCIAL_EXPANSION,
    GoalType.INTELLIGENCE_COUP,
    GoalType.PLANETARY_SEIZURE,
    GoalType.EXPAND_INFLUENCE,
    GoalType.BLOOD_THE_ENEMY,
    GoalType.PEACEABLE_KINGDOM,
    GoalType.DESTROY_THE_FOE,
    GoalType.INSIDE_ENEMY_TERRITORY,
    GoalType.INVINCIBLE_VALOR,
    GoalType.WEALTH_OF_WORLDS,
)


@dataclass(frozen=True)
class TagGoalAffinity:
    """How a faction tag bends goal choice and aggression."""

    preferred: tuple[GoalType, ...]
    avoided: tuple[GoalType, ...]
    aggression: int


_G = GoalType
TAG_GOAL_AFFINITIES: dict[str, TagGoalAffinity] = {
    "Colonists": TagGoalAffinity(
        (_G.EXPAND_INFLUENCE, _G.PEACEABLE_KINGDOM), (_G.BLOOD_THE_ENEMY, _G.DESTROY_THE_FOE), -10),
    "Deep Rooted": TagGoalAffinity(
        (_G.PEACEABLE_KINGDOM, _G.EXPAND_INFLUENCE), (_G.MILITARY_CONQUEST,), -5),
    "Eugenics Cult": TagGoalAffinity(
        (_G.INTELLIGENCE_COUP, _G.INSIDE_ENEMY_TERRITORY, _G.BLOOD_THE_ENEMY), (_G.PEACEABLE_KINGDOM,), 10),
    "Exchange Consulate": TagGoalAffinity(
        (_G.COMMERCIAL_EXPANSION, _G.WEALTH_OF_WORLDS, _G.PEACEABLE_KINGDOM),
        (_G.MILITARY_CONQUEST, _G.DESTROY_THE_FOE), -15),
    "Fanatical": TagGoalAffinity(
        (_G.BLOOD_THE_ENEMY, _G.DESTROY_THE_FOE, _G.MILITARY_CONQUEST), (_G.PEACEABLE_KINGDOM,), 20),
    "Imperialists": TagGoalAffinity(
        (_G.PLANETARY_SEIZURE, _G.MILITARY_CONQUEST, _G.EXPAND_INFLUENCE), (_G.PEACEABLE_KINGDOM,), 15),
    "Machiavellian": TagGoalAffinity(
        (_G.INTELLIGENCE_COUP, _G.INSIDE_ENEMY_TERRITORY, _G.BLOOD_THE_ENEMY), (_G.INVINCIBLE_VALOR,), 5),
    "Mercenary Group": TagGoalAffinity(
        (_G.MILITARY_CONQUEST, _G.INVINCIBLE_VALOR, _G.BLOOD_THE_ENEMY),
        (_G.PEACEABLE_KINGDOM, _G.WEALTH_OF_WORLDS), 10),
    "Perimeter Agency": TagGoalAffinity(
        (_G.INTELLIGENCE_COUP, _G.INSIDE_ENEMY_TERRITORY, _G.DESTROY_THE_FOE), (_G.PEACEABLE_KINGDOM,), 5),
    "Pirates": TagGoalAffinity(
        (_G.COMMERCIAL_EXPANSION, _G.BLOOD_THE_ENEMY, _G.WEALTH_OF_WORLDS),
        (_G.PEACEABLE_KINGDOM, _G.PLANETARY_SEIZURE), 10),
    "Planetary Government": TagGoalAffinity(
        (_G.EXPAND_INFLUENCE, _G.PEACEABLE_KINGDOM, _G.PLANETARY_SEIZURE), (_G.DESTROY_THE_FOE,), 0),
    "Plutocratic": TagGoalAffinity(
        (_G.WEALTH_OF_WORLDS, _G.COMMERCIAL_EXPANSION, _G.EXPAND_INFLUENCE),
        (_G.INVINCIBLE_VALOR, _G.MILITARY_CONQUEST), -5),
    "Preceptor Archive": TagGoalAffinity(
        (_G.EXPAND_INFLUENCE, _G.PEACEABLE_KINGDOM, _G.INTELLIGENCE_COUP),
        (_G.BLOOD_THE_ENEMY, _G.DESTROY_THE_FOE), -10),
    "Psychic Academy": TagGoalAffinity(
        (_G.INTELLIGENCE_COUP, _G.INSIDE_ENEMY_TERRITORY, _G.EXPAND_INFLUENCE), (_G.MILITARY_CONQUEST,), 0),
    "Savage": TagGoalAffinity(
        (_G.BLOOD_THE_ENEMY, _G.MILITARY_CONQUEST, _G.INVINCIBLE_VALOR),
        (_G.PEACEABLE_KINGDOM, _G.COMMERCIAL_EXPANSION), 15),
    "Scavengers": TagGoalAffinity(
        (_G.WEALTH_OF_WORLDS, _G.COMMERCIAL_EXPANSION, _G.EXPAND_INFLUENCE), (_G.DESTROY_THE_FOE,), 0),
    "Secretive": TagGoalAffinity(
        (_G.INSIDE_ENEMY_TERRITORY, _G.INTELLIGENCE_COUP, _G.PEACEABLE_KINGDOM),
        (_G.MILITARY_CONQUEST, _G.INVINCIBLE_VALOR), -5),
    "Technical Expertise": TagGoalAffinity(
        (_G.EXPAND_INFLUENCE, _G.WEALTH_OF_WORLDS, _G.COMMERCIAL_EXPANSION), (_G.BLOOD_THE_ENEMY,), -5),
    "Theocratic": TagGoalAffinity(
        (_G.EXPAND_INFLUENCE, _G.PLANETARY_SEIZURE, _G.INTELLIGENCE_COUP), (), 5),
    "Warlike": TagGoalAffinity(
        (_G.MILITARY_CONQUEST, _G.INVINCIBLE_VALOR, _G.BLOOD_THE_ENEMY, _G.DESTROY_THE_FOE),
        (_G.PEACEABLE_KINGDOM, _G.COMMERCIAL_EXPANSION), 20),
}


@dataclass(frozen=True)
class GoalWeight:
    goal_type: GoalType
    base_weight: float
    tag_modifier: int
    situational_modifier: int
    final_weight: float
    reasoning: str


@dataclass
class StrategicIntent:
    """What the faction is trying to do this turn.

    Attributes:
        primary_focus: military, economic, covert, expansion, defensive
            or balanced.
        aggression_level: 0-100; higher means more willing to attack.
        target_faction_id: Rival to focus on, if any.
        priority_system_ids: Homeworld first, then asset locations.
        goal_type: The goal the intent was derived from.
    """

    primary_focus: str = "balanced"
    aggression_level: int = 50
    target_faction_id: Optional[str] = None
    priority_system_ids: list[str] = field(default_factory=list)
    goal_type: Optional[GoalType] = None
    reasoning: str = ""


@dataclass
class GoalEvaluation:
    faction_id: str
    current_goal: Optional[FactionGoal]
    recommended_goal: Optional[GoalType]
    goal_weights: list[GoalWeight]
    strategic_intent: StrategicIntent


def _strength(faction: Faction) -> int:
    return faction.attributes.total


def _hp_ratio(faction: Faction) -> float:
    attrs = faction.attributes
    return attrs.hp / attrs.max_hp if attrs.max_hp > 0 else 0.0


class GoalSelectionService:
    """Weighs faction goals against tags and the current situation."""

    # -- Weights ---------------------------------------------------------

    @staticmethod
    def _base_weight(goal: GoalType, faction: Faction) -> tuple[float, str]:
        attrs = faction.attributes
        if goal in _FORCE_GOALS:
            return 30 + attrs.force * 8, f"Force goal weighted by Force rating ({attrs.force})"
        if goal in _CUNNING_GOALS:
            return 30 + attrs.cunning * 8, f"Cunning goal weighted by Cunning rating ({attrs.cunning})"
        if goal in _WEALTH_GOALS:
            return 30 + attrs.wealth * 8, f"Wealth goal weighted by Wealth rating ({attrs.wealth})"
        if goal is GoalType.PLANETARY_SEIZURE:
            avg = (attrs.force + attrs.cunning) / 2
            return 35 + avg * 6, f"Planetary Seizure weighted by Force+Cunning average ({avg:.1f})"
        if goal is GoalType.BLOOD_THE_ENEMY:
            return 25 + attrs.total * 3, f"Blood the Enemy weighted by total attributes ({attrs.total})"
        if goal is GoalType.DESTROY_THE_FOE:
            return 20 + attrs.total * 4, f"Destroy the Foe weighted by total attributes ({attrs.total})"
        if goal is GoalType.EXPAND_INFLUENCE:
            return 50, "Expand Influence is universally useful"
        if goal is GoalType.PEACEABLE_KINGDOM:
            if _hp_ratio(faction) < 0.5:
                return 60, "Peaceable Kingdom preferred while recovering"
            return 30, "Peaceable Kingdom has base appeal"
        return 40, "Default base weight"

    @staticmethod
    def _tag_modifier(goal: GoalType, faction: Faction) -> tuple[int, str]:
        modifier = 0
        reasons: list[str] = []
        for tag in faction.tags:
            affinity = TAG_GOAL_AFFINITIES.get(tag)
            if affinity is None:
                continue
            if goal in affinity.preferred:
                modifier += 20
                reasons.append(f"+20 from {tag} (preferred)")
            if goal in affinity.avoided:
                modifier -= 25
                reasons.append(f"-25 from {tag} (avoided)")
        return modifier, ", ".join(reasons) if reasons else "No tag modifiers"

    @staticmethod
    def _situational_modifier(goal: GoalType, faction: Faction,
                              factions: list[Faction]) -> tuple[int, str]:
        modifier = 0
        reasons: list[str] = []

        def bump(amount: int, why: str) -> None:
            nonlocal modifier
            modifier += amount
            reasons.append(f"{amount:+d} {why}")

        enemies = [f for f in factions if f.id != faction.id]
        attrs = faction.attributes

        if _hp_ratio(faction) < 0.4:
            if goal is GoalType.PEACEABLE_KINGDOM:
                bump(30, "for low HP recovery")
            if goal in (GoalType.BLOOD_THE_ENEMY, GoalType.DESTROY_THE_FOE, GoalType.MILITARY_CONQUEST):
                bump(-20, "for risky while weakened")

        if faction.fac_creds > 10:
            if goal is GoalType.WEALTH_OF_WORLDS:
                bump(15, "for high FacCreds")
            if goal is GoalType.EXPAND_INFLUENCE:
                bump(10, "can afford expansion")

        if len(faction.assets) < 3 and goal is GoalType.EXPAND_INFLUENCE:
            bump(20, "for few assets")

        if len(enemies) >= 3 and goal is GoalType.PEACEABLE_KINGDOM:
            bump(10, "for many rivals")

        if len(enemies) == 1 and goal is GoalType.DESTROY_THE_FOE:
            if _strength(enemies[0]) < _strength(faction) * 0.7:
                bump(25, "for weak single enemy")

        if attrs.force >= 4 and goal in _FORCE_GOALS:
            bump(10, "for high Force")
        if attrs.cunning >= 4 and goal in _CUNNING_GOALS:
            bump(10, "for high Cunning")
        if attrs.wealth >= 4 and goal in _WEALTH_GOALS:
            bump(10, "for high Wealth")

        return modifier, ", ".join(reasons) if reasons else "No situational modifiers"

    def calculate_goal_weights(self, faction: Faction, factions: list[Faction]) -> list[GoalWeight]:
        """Weight every candidate goal for *faction*."""
        weights = []
        for goal in ALL_GOALS:
            base, base_why = self._base_weight(goal, faction)
            tag, tag_why = self._tag_modifier(goal, faction)
            situation, situation_why = self._situational_modifier(goal, faction, factions)
            weights.append(GoalWeight(
                goal_type=goal,
                base_weight=base,
                tag_modifier=tag,
                situational_modifier=situation,
                final_weight=max(0, min(100, base + tag + situation)),
                reasoning=f"Base: {base_why}. Tags: {tag_why}. Situation: {situation_why}",
            ))
        return weights

    @staticmethod
    def _best(weights: list[GoalWeight]) -> GoalWeight:
        best = weights[0]
        for weight in weights[1:]:
            if weight.final_weight > best.final_weight:
                best = weight
        return best

    # -- Intent ----------------------------------------------------------

    def determine_strategic_intent(self, faction: Faction, goal: Optional[GoalType],
                                   factions: list[Faction],
                                   systems: list[StarSystem]) -> StrategicIntent:
        """Derive focus, aggression, target and priority systems from *goal*."""
        aggression = 50
        for tag in faction.tags:
            affinity = TAG_GOAL_AFFINITIES.get(tag)
            if affinity is not None:
                aggression += affinity.aggression

        hp_ratio = _hp_ratio(faction)
        if hp_ratio < 0.3:
            aggression -= 30
        elif hp_ratio < 0.5:
            aggression -= 15

        focus = "balanced"
        if goal is None:
            focus = "defensive"
        elif goal in _FORCE_GOALS or goal is GoalType.BLOOD_THE_ENEMY:
            focus = "military"
            aggression += 10
        elif goal in _CUNNING_GOALS:
            focus = "covert"
        elif goal in _WEALTH_GOALS:
            focus = "economic"
            aggression -= 10
        elif goal in (GoalType.EXPAND_INFLUENCE, GoalType.PLANETARY_SEIZURE):
            focus = "expansion"
        elif goal is GoalType.PEACEABLE_KINGDOM:
            focus = "defensive"
            aggression -= 20
        elif goal is GoalType.DESTROY_THE_FOE:
            focus = "military"
            aggression += 20

        target: Optional[str] = None
        enemies = [f for f in factions if f.id != faction.id]
        if enemies:
            if goal is GoalType.DESTROY_THE_FOE:
                weakest = enemies[0]
                for enemy in enemies[1:]:
                    if _strength(enemy) < _strength(weakest):
                        weakest = enemy
                target = weakest.id
            elif focus in ("military", "covert"):
                strongest = enemies[0]
                for enemy in enemies[1:]:
                    if _strength(enemy) > _strength(strongest):
                        strongest = enemy
                target = strongest.id

        priority = [faction.homeworld]
        for asset in faction.assets:
            if asset.location not in priority:
                priority.append(asset.location)
        if focus == "expansion":
            held = set(priority)
            for system in systems[:3]:
                if system.id not in held and len(priority) < 5:
                    priority.append(system.id)

        goal_why = f"Pursuing {goal.value} goal" if goal else "No active goal - defensive posture"
        target_why = f"Targeting faction {target}" if target else "No specific target"
        return StrategicIntent(
            primary_focus=focus,
            aggression_level=max(0, min(100, aggression)),
            target_faction_id=target,
            priority_system_ids=priority,
            goal_type=goal,
            reasoning=f"{goal_why}. Primary focus: {focus}. {target_why}.",
        )

    # -- Public API ------------------------------------------------------

    def evaluate_goals(self, faction: Faction, factions: list[Faction],
                       systems: list[StarSystem]) -> GoalEvaluation:
        """Weigh every goal, pick the best and derive the intent.

        The recommended goal is None when every weight is 0.
        """
        weights = self.calculate_goal_weights(faction, factions)
        ranked = sorted(weights, key=lambda w: w.final_weight, reverse=True)
        recommended = ranked[0].goal_type if ranked[0].final_weight > 0 else None
        intent = self.determine_strategic_intent(faction, recommended, factions, systems)
        return GoalEvaluation(
            faction_id=faction.id,
            current_goal=faction.goal,
            recommended_goal=recommended,
            goal_weights=weights,
            strategic_intent=intent,
        )

    def should_change_goal(self, faction: Faction, factions: list[Faction],
                           systems: list[StarSystem]) -> tuple[bool, str]:
        """Whether to replace the active goal.

        Goals stick unless there is none, it is complete, or another goal
        outweighs it by more than GOAL_CHANGE_MARGIN.
        """
        if faction.goal is None:
            return True, "No current goal"
        if faction.goal.is_completed:
            return True, "Current goal completed"

        weights = self.calculate_goal_weights(faction, factions)
        current = next((w for w in weights if w.goal_type is faction.goal.type), None)
        best = self._best(weights)
        if current is not None and best.final_weight - current.final_weight > GOAL_CHANGE_MARGIN:
            return True, (f"Better goal available: {best.goal_type.value} "
                          f"({best.final_weight:g} vs {current.final_weight:g})")
        return False, "Current goal remains optimal"

    @staticmethod
    def create_goal_instance(goal: GoalType, faction: Faction) -> FactionGoal:
        """Build a fresh goal bound to *faction*'s current ratings."""
        force, cunning, wealth = (faction.attributes.force, faction.attributes.cunning,
                                  faction.attributes.wealth)
        target, description = {
            GoalType.MILITARY_CONQUEST: (force, f"Destroy {force} enemy Force assets"),
            GoalType.COMMERCIAL_EXPANSION: (wealth, f"Destroy {wealth} enemy Wealth assets"),
            GoalType.INTELLIGENCE_COUP: (cunning, f"Destroy {cunning} enemy Cunning assets"),
            GoalType.INSIDE_ENEMY_TERRITORY: (cunning, f"Place {cunning} stealthed assets on enemy worlds"),
            GoalType.BLOOD_THE_ENEMY: (force + cunning + wealth,
                                       f"Deal {force + cunning + wealth} HP damage to rival factions"),
            GoalType.WEALTH_OF_WORLDS: (wealth * 4, f"Spend {wealth * 4} FacCreds on bribes and influence"),
            GoalType.PEACEABLE_KINGDOM: (4, "Avoid Attack actions for 4 consecutive turns"),
            GoalType.PLANETARY_SEIZURE: (1, "Seize control of a planet and become its government"),
            GoalType.EXPAND_INFLUENCE: (1, "Establish a new Base of Influence on an unclaimed planet"),
            GoalType.DESTROY_THE_FOE: (1, "Completely eliminate a rival faction"),
            GoalType.INVINCIBLE_VALOR: (1, "Destroy a Force asset with higher rating than your Force"),
        }[goal]
        return FactionGoal(
            id=uuid.uuid4().hex,
            type=goal,
            description=description,
            current=0,
            target=target,
            difficulty=2 if goal in _HARD_GOALS else 1,
        )
