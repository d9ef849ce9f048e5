"""Strategic planner — multi-turn plans for AI factions.

Plans look 2-4 turns ahead depending on difficulty.  Objectives come from
the faction goal and from what the faction can see (weak enemy assets,
enemy bases, low funds, threatened assets).  Each objective is planned
backwards into concrete steps, which are then laid out turn by turn
against a projected FacCred budget.

Plans are shown to players as the faction's visible intent, so an
existing plan is carried forward until the replan policy says otherwise.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Optional, Protocol

from factionai.loaders.ai_config_loader import PlannerConfig
from factionai.models.faction import GoalType
from factionai.models.plan import (
    AIStrategicPlan,
    ContextAsset,
    ContextEnemy,
    ContextEnemyAsset,
    ContextGoal,
    ContextSystem,
    IdentifiedOpportunity,
    IdentifiedThreat,
    PlanContingency,
    PlanEvaluation,
    PlannedAction,
    PlannedExpense,
    PlanningContext,
    ResourceBudget,
    SavingGoal,
    StrategicObjective,
    TurnPlan,
)
from factionai.util.hex_math import system_distance

if TYPE_CHECKING:
    from factionai.engine.asset_catalog import AssetCatalog
    from factionai.engine.goal_selection import StrategicIntent
    from factionai.models.faction import Faction
    from factionai.models.sector import StarSystem

log = logging.getLogger(__name__)

PLAN_HORIZONS = {"expert": 4, "hard": 3}
DEFAULT_HORIZON = 2

_PRIORITY_ORDER = {"primary": 0, "secondary": 1, "opportunistic": 2}
MAX_SECONDARY_OBJECTIVES = 3
SECONDARY_ACTIONS_PER_OBJECTIVE = 2
WEAK_ASSET_HP = 3
LOW_FUNDS = 5
DAMAGE_PER_ATTACK = 4


def plan_horizon(difficulty: str) -> int:
    return PLAN_HORIZONS.get(difficulty, DEFAULT_HORIZON)


def attack_confidence(attacker_hp: int, target_hp: int) -> float:
    """Confidence (0-100) that an attack goes well, from the HP ratio."""
    ratio = attacker_hp / max(1, target_hp)
    if ratio >= 2:
        return 85
    if ratio >= 1.5:
        return 75
    if ratio >= 1:
        return 60
    if ratio >= 0.5:
        return 40
    return 25


# -- Replanning ----------------------------------------------------------

class ReplanPolicy(Protocol):
    """Decides whether a stored plan should be regenerated."""

    def should_replan(self, plan: AIStrategicPlan, current_turn: int,
                      evaluation: PlanEvaluation) -> bool:
        ...


class DefaultReplanPolicy:
    """Replan when the evaluation asks for it, when the plan is old, when
    confidence is low, or when nothing is left to do."""

    def __init__(self, config: Optional[PlannerConfig] = None) -> None:
        self._config = config or PlannerConfig()

    def should_replan(self, plan: AIStrategicPlan, current_turn: int,
                      evaluation: PlanEvaluation) -> bool:
        if evaluation.recommendation == "replan":
            return True
        if current_turn - plan.created_at_turn >= self._config.max_plan_age:
            return True
        if plan.overall_confidence < self._config.min_confidence:
            return True
        return not any(tp.actions for tp in plan.turn_plans)


# -- Planner -------------------------------------------------------------

class AIStrategicPlanner:
    """Builds and evaluates multi-turn plans.

    Args:
        catalog: Asset definitions.
        config: Planner thresholds.
        replan_policy: Gate consulted by ``should_replan``.
        expand_influence_cost: FacCreds a new Base of Influence costs.
    """

    def __init__(self, catalog: AssetCatalog, config: Optional[PlannerConfig] = None,
                 replan_policy: Optional[ReplanPolicy] = None,
                 expand_influence_cost: int = 4) -> None:
        self._catalog = catalog
        self._config = config or PlannerConfig()
        self._policy = replan_policy or DefaultReplanPolicy(self._config)
        self._expand_cost = expand_influence_cost

    # -- Context ---------------------------------------------------------

    def build_planning_context(self, faction: Faction, factions: list[Faction],
                               systems: list[StarSystem], current_turn: int,
                               difficulty: str) -> PlanningContext:
        """Snapshot of everything the planner looks at."""
        assets = []
        for asset in faction.assets:
            definition = self._catalog.definition_of(asset)
            assets.append(ContextAsset(
                id=asset.id,
                definition_id=asset.definition_id,
                name=definition.name if definition else "Unknown",
                location=asset.location,
                hp=asset.hp,
                max_hp=asset.max_hp,
                has_attack=definition is not None and definition.attack is not None,
                has_mobility=definition is not None and definition.is_mobile,
            ))

        enemies = []
        for enemy in factions:
            if enemy.id == faction.id:
                continue
            visible = []
            for asset in enemy.assets:
                if asset.stealthed:
                    continue
                definition = self._catalog.definition_of(asset)
                visible.append(ContextEnemyAsset(
                    id=asset.id,
                    definition_id=asset.definition_id,
                    name=definition.name if definition else "Unknown",
                    location=asset.location,
                    hp=asset.hp,
                    value=definition.cost if definition else 0,
                    is_base=definition is not None and definition.is_base_of_influence,
                ))
            enemies.append(ContextEnemy(
                id=enemy.id,
                name=enemy.name,
                homeworld=enemy.homeworld,
                strength=enemy.attributes.total,
                assets=tuple(visible),
            ))

        enemy_locations = {a.location for e in enemies for a in e.assets}
        our_locations = {a.location for a in faction.assets}
        homeworld = next((s for s in systems if s.id == faction.homeworld), None)
        context_systems = tuple(
            ContextSystem(
                id=s.id,
                name=s.name,
                has_our_assets=s.id in our_locations,
                has_enemy_assets=s.id in enemy_locations,
                distance_from_homeworld=system_distance(homeworld, s) if homeworld else int(s.id != faction.homeworld),
            )
            for s in systems
        )

        goal = None
        if faction.goal is not None:
            goal = ContextGoal(
                type=faction.goal.type.value,
                description=faction.goal.description,
                progress=faction.goal.current,
                target=faction.goal.target,
            )

        attrs = faction.attributes
        return PlanningContext(
            faction_id=faction.id,
            faction_name=faction.name,
            fac_creds=faction.fac_creds,
            force=attrs.force,
            cunning=attrs.cunning,
            wealth=attrs.wealth,
            homeworld=faction.homeworld,
            assets=tuple(assets),
            goal=goal,
            enemies=tuple(enemies),
            systems=context_systems,
            current_turn=current_turn,
            difficulty=difficulty,
        )

    # -- Objectives ------------------------------------------------------

    def identify_objectives(self, context: PlanningContext, intent: StrategicIntent
                            ) -> tuple[StrategicObjective, list[StrategicObjective]]:
        """Primary objective plus up to three secondary ones."""
        objectives: list[StrategicObjective] = []

        goal_objective = self._objective_from_goal(context)
        if goal_objective is not None:
            objectives.append(goal_objective)

        for enemy in context.enemies:
            for asset in enemy.assets:
                if asset.hp <= WEAK_ASSET_HP:
                    objectives.append(StrategicObjective(
                        id=f"destroy-{asset.id}",
                        type="destroy_asset",
                        description=f"Destroy {enemy.name}'s weakened {asset.name}",
                        priority="secondary" if asset.is_base else "opportunistic",
                        estimated_turns_to_complete=self._turns_to_destroy(context, asset),
                        target_faction_id=enemy.id,
                        target_faction_name=enemy.name,
                        target_asset_id=asset.id,
                        target_asset_name=asset.name,
                        required_actions=["position_attacker", "attack"],
                    ))
            for base in (a for a in enemy.assets if a.is_base):
                objectives.append(StrategicObjective(
                    id=f"destroy-base-{base.id}",
                    type="destroy_asset",
                    description=f"Destroy {enemy.name}'s Base of Influence",
                    priority="secondary",
                    estimated_turns_to_complete=self._turns_to_destroy(context, base),
                    target_faction_id=enemy.id,
                    target_faction_name=enemy.name,
                    target_asset_id=base.id,
                    target_asset_name="Base of Influence",
                    target_system_id=base.location,
                    required_actions=["position_attacker", "attack_base"],
                ))

        if context.fac_creds < LOW_FUNDS:
            objectives.append(StrategicObjective(
                id="economic-growth",
                type="economic_growth",
                description="Build economic capacity",
                priority="secondary",
                estimated_turns_to_complete=3,
                required_actions=["save_faccreds", "purchase_income_asset"],
            ))

        if self._threatened_assets(context):
            objectives.append(StrategicObjective(
                id="defensive-posture",
                type="defensive_posture",
                description="Protect threatened assets",
                priority="primary" if intent.aggression_level < 40 else "secondary",
                estimated_turns_to_complete=2,
                required_actions=["reinforce_position", "repair_damaged"],
            ))

        objectives.sort(key=lambda o: _PRIORITY_ORDER[o.priority])
        if not objectives:
            return self._default_objective(), []
        return objectives[0], objectives[1:1 + MAX_SECONDARY_OBJECTIVES]

    @staticmethod
    def _default_objective() -> StrategicObjective:
        return StrategicObjective(
            id="default-build",
            type="build_army",
            description="Build military strength",
            estimated_turns_to_complete=4,
            required_actions=["purchase_assets", "position_forces"],
        )

    @staticmethod
    def _objective_from_goal(context: PlanningContext) -> Optional[StrategicObjective]:
        goal = context.goal
        if goal is None:
            return None
        progress = goal.progress / max(1, goal.target) * 100
        weakest = min(context.enemies, key=lambda e: e.strength, default=None)

        if goal.type in (GoalType.MILITARY_CONQUEST.value, GoalType.BLOOD_THE_ENEMY.value):
            if weakest is None:
                return None
            return StrategicObjective(
                id=f"goal-{goal.type}",
                type="destroy_asset",
                description=f"{goal.type}: Attack {weakest.name}",
                progress=progress,
                estimated_turns_to_complete=math.ceil((goal.target - goal.progress) / 2),
                target_faction_id=weakest.id,
                target_faction_name=weakest.name,
                required_actions=["position_attackers", "attack_enemies"],
            )

        if goal.type == GoalType.DESTROY_THE_FOE.value:
            if weakest is None:
                return None
            return StrategicObjective(
                id="goal-eliminate",
                type="eliminate_faction",
                description=f"Eliminate {weakest.name}",
                progress=max(0, 100 - len(weakest.assets) * 10),
                estimated_turns_to_complete=len(weakest.assets) * 2,
                target_faction_id=weakest.id,
                target_faction_name=weakest.name,
                required_actions=["destroy_all_assets", "destroy_base"],
            )

        if goal.type == GoalType.EXPAND_INFLUENCE.value:
            target = next((s for s in context.systems
                           if not s.has_our_assets and not s.has_enemy_assets), None)
            return StrategicObjective(
                id="goal-expand",
                type="expand_influence",
                description="Establish new Base of Influence",
                progress=progress,
                estimated_turns_to_complete=3,
                target_system_id=target.id if target else None,
                target_system_name=target.name if target else None,
                required_actions=["move_to_system", "build_base"],
            )

        return StrategicObjective(
            id=f"goal-{goal.type}",
            type="build_army",
            description=goal.description or goal.type,
            progress=progress,
            estimated_turns_to_complete=3,
            required_actions=["execute_goal"],
        )

    @staticmethod
    def _turns_to_destroy(context: PlanningContext, target: ContextEnemyAsset) -> int:
        attackers = [a for a in context.assets if a.has_attack]
        if not attackers:
            return 10
        if any(a.location == target.location for a in attackers):
            return math.ceil(target.hp / DAMAGE_PER_ATTACK)
        if any(a.has_mobility for a in attackers):
            return 1 + math.ceil(target.hp / DAMAGE_PER_ATTACK)
        return 5

    @staticmethod
    def _threatened_assets(context: PlanningContext) -> list[str]:
        enemy_locations = {a.location for e in context.enemies for a in e.assets}
        return [a.id for a in context.assets if a.location in enemy_locations]

    # -- Backward planning -----------------------------------------------

    def plan_backward_from_objective(self, objective: StrategicObjective,
                                     context: PlanningContext) -> list[PlannedAction]:
        """Steps that achieve *objective*, prerequisites first."""
        if objective.type == "destroy_asset":
            return self._plan_destroy(objective, context)
        if objective.type == "expand_influence":
            return self._plan_expand(objective, context)
        if objective.type == "economic_growth":
            actions = [PlannedAction(
                id="save-for-income",
                type="save",
                description="Save FacCreds for income asset",
                confidence=95,
                expected_outcome="Accumulate resources",
            )]
            if context.fac_creds >= 4:
                actions.append(PlannedAction(
                    id="purchase-income",
                    type="purchase",
                    description="Purchase income-generating asset",
                    confidence=75,
                    expected_outcome="Increase FacCred income",
                    fac_creds_cost=4,
                ))
            return actions
        if objective.type == "defensive_posture":
            return [
                PlannedAction(
                    id=f"repair-{a.id}",
                    type="repair",
                    description=f"Repair {a.name}",
                    priority="critical" if a.hp <= 2 else "medium",
                    confidence=90 if context.fac_creds >= 2 else 50,
                    expected_outcome=f"Restore {a.name} to full strength",
                    asset_id=a.id,
                    asset_name=a.name,
                    fac_creds_cost=math.ceil((a.max_hp - a.hp) / 2),
                )
                for a in [a for a in context.assets if a.hp < a.max_hp][:2]
            ]
        return [PlannedAction(
            id="generic-action",
            type="defend",
            description="Consolidate position",
            priority="low",
            confidence=80,
            expected_outcome="Maintain current status",
        )]

    @staticmethod
    def _plan_destroy(objective: StrategicObjective, context: PlanningContext) -> list[PlannedAction]:
        enemy = next((e for e in context.enemies if e.id == objective.target_faction_id), None)
        target = None
        if enemy is not None and objective.target_asset_id:
            target = next((a for a in enemy.assets if a.id == objective.target_asset_id), None)
        if target is None:
            return []

        def attack_step(attacker: ContextAsset, depends_on: list[str]) -> PlannedAction:
            return PlannedAction(
                id=f"attack-{target.id}",
                type="attack",
                description=f"Attack {objective.target_faction_name}'s {target.name}",
                priority="high",
                confidence=attack_confidence(attacker.hp, target.hp),
                expected_outcome=f"Deal damage to {target.name}",
                asset_id=attacker.id,
                asset_name=attacker.name,
                target_asset_id=target.id,
                target_asset_name=target.name,
                target_faction_id=objective.target_faction_id,
                target_faction_name=objective.target_faction_name,
                depends_on=depends_on,
            )

        in_place = next((a for a in context.assets if a.has_attack and a.location == target.location), None)
        if in_place is not None:
            return [attack_step(in_place, [])]

        mobile = next((a for a in context.assets if a.has_attack and a.has_mobility), None)
        move_id = f"move-to-{target.location}"
        if mobile is not None:
            location_name = next((s.name for s in context.systems if s.id == target.location), target.location)
            return [
                PlannedAction(
                    id=move_id,
                    type="move",
                    description=f"Move {mobile.name} to {location_name}",
                    priority="high",
                    confidence=90,
                    expected_outcome=f"Position for attack on {target.name}",
                    asset_id=mobile.id,
                    asset_name=mobile.name,
                    target_location=target.location,
                    target_location_name=location_name,
                    enables_actions=[f"attack-{target.id}"],
                    fac_creds_cost=1,
                ),
                attack_step(mobile, [move_id]),
            ]

        return [PlannedAction(
            id="purchase-attacker",
            type="purchase",
            description="Purchase mobile attack asset",
            priority="high",
            confidence=80 if context.fac_creds >= 4 else 40,
            expected_outcome="Gain attack capability",
            enables_actions=[move_id],
            fac_creds_cost=4,
        )]

    def _plan_expand(self, objective: StrategicObjective, context: PlanningContext) -> list[PlannedAction]:
        system = next((s for s in context.systems if s.id == objective.target_system_id), None)
        if system is None:
            return []

        actions = []
        depends_on: list[str] = []
        if not any(a.location == system.id for a in context.assets):
            mobile = next((a for a in context.assets if a.has_mobility), None)
            if mobile is not None:
                move_id = f"move-to-{system.id}"
                actions.append(PlannedAction(
                    id=move_id,
                    type="move",
                    description=f"Move {mobile.name} to {system.name}",
                    priority="high",
                    confidence=85,
                    expected_outcome=f"Establish presence in {system.name}",
                    asset_id=mobile.id,
                    asset_name=mobile.name,
                    target_location=system.id,
                    target_location_name=system.name,
                    enables_actions=[f"expand-{system.id}"],
                    fac_creds_cost=1,
                ))
                depends_on.append(move_id)

        actions.append(PlannedAction(
            id=f"expand-{system.id}",
            type="expand",
            description=f"Expand influence in {system.name}",
            priority="high",
            confidence=70 if context.fac_creds >= self._expand_cost * 2 else 30,
            expected_outcome=f"Establish Base of Influence in {system.name}",
            target_location=system.id,
            target_location_name=system.name,
            depends_on=depends_on,
            fac_creds_cost=self._expand_cost,
        ))
        return actions

    # -- Scheduling ------------------------------------------------------

    def organize_turn_plans(self, actions: list[PlannedAction], context: PlanningContext,
                            horizon: int) -> list[TurnPlan]:
        """Lay *actions* out over *horizon* turns.

        An action is scheduled once it is affordable and everything it
        depends on ran in an earlier turn.  Turn 0 is always present.
        """
        pending = list(actions)
        completed: set[str] = set()
        turn_plans: list[TurnPlan] = []
        creds = context.fac_creds
        limit = self._config.max_actions_per_planned_turn

        for turn in range(horizon):
            if not pending and turn > 0:
                break
            start = creds
            scheduled: list[PlannedAction] = []
            for action in list(pending):
                if len(scheduled) >= limit:
                    break
                if not all(dep in completed for dep in action.depends_on):
                    continue
                if action.fac_creds_cost > creds:
                    continue
                scheduled.append(action)
                creds -= action.fac_creds_cost
                pending.remove(action)

            completed.update(a.id for a in scheduled)
            creds += self._config.income_per_turn

            if scheduled or turn == 0:
                turn_plans.append(TurnPlan(
                    turn=turn,
                    actions=scheduled,
                    expected_fac_creds=start,
                    expected_fac_creds_after=creds,
                    reasoning=self._turn_reasoning(scheduled, turn),
                ))
        return turn_plans

    @staticmethod
    def _turn_reasoning(actions: list[PlannedAction], turn: int) -> str:
        if not actions:
            return "Conserving resources this turn" if turn == 0 else "Building up for future actions"
        return f"Turn {turn}: {', '.join(a.description for a in actions)}"

    @staticmethod
    def generate_contingencies(turn_plans: list[TurnPlan], context: PlanningContext) -> list[PlanContingency]:
        contingencies = []
        for turn_plan in turn_plans:
            for action in turn_plan.actions:
                if action.type == "attack":
                    contingencies.append(PlanContingency(
                        id=f"contingency-{action.id}-fail",
                        triggered_by=f"{action.description} fails",
                        trigger_condition="action_failed",
                        description="Attack failed - retreat and regroup",
                        alternative_actions=[
                            PlannedAction(
                                id=f"retreat-{action.asset_id}",
                                type="move",
                                description=f"Retreat {action.asset_name} to safety",
                                priority="high",
                                confidence=80,
                                expected_outcome="Preserve damaged asset",
                                asset_id=action.asset_id,
                                asset_name=action.asset_name,
                                target_location=context.homeworld,
                                fac_creds_cost=1,
                            ),
                            PlannedAction(
                                id=f"repair-{action.asset_id}",
                                type="repair",
                                description=f"Repair {action.asset_name}",
                                priority="high",
                                confidence=70,
                                expected_outcome="Restore fighting capability",
                                asset_id=action.asset_id,
                                asset_name=action.asset_name,
                                fac_creds_cost=2,
                            ),
                        ],
                        priority=1,
                    ))
                if action.type == "move" and action.enables_actions:
                    contingencies.append(PlanContingency(
                        id=f"contingency-{action.id}-blocked",
                        triggered_by=f"Movement to {action.target_location_name} blocked",
                        trigger_condition="enemy_moved",
                        description="Path blocked - find alternate route or target",
                        alternative_actions=[PlannedAction(
                            id=f"alt-target-{action.id}",
                            type="attack",
                            description="Attack nearest available target instead",
                            confidence=60,
                            expected_outcome="Maintain offensive pressure",
                            asset_id=action.asset_id,
                            asset_name=action.asset_name,
                        )],
                        priority=2,
                    ))

        for asset in [a for a in context.assets if a.hp >= 5][:2]:
            contingencies.append(PlanContingency(
                id=f"contingency-asset-lost-{asset.id}",
                triggered_by=f"{asset.name} destroyed",
                trigger_condition="asset_destroyed",
                description=f"{asset.name} lost - purchase replacement",
                alternative_actions=[PlannedAction(
                    id=f"replace-{asset.id}",
                    type="purchase",
                    description=f"Purchase replacement for {asset.name}",
                    priority="high",
                    confidence=50,
                    expected_outcome="Restore capability",
                    fac_creds_cost=5,
                )],
                priority=1,
            ))
        return contingencies

    def create_resource_budget(self, turn_plans: list[TurnPlan], context: PlanningContext) -> ResourceBudget:
        income = self._config.income_per_turn
        expenses = [
            PlannedExpense(turn=tp.turn, amount=a.fac_creds_cost, purpose=a.description)
            for tp in turn_plans for a in tp.actions if a.fac_creds_cost > 0
        ]
        total = sum(e.amount for e in expenses)
        saving = None
        if total > context.fac_creds:
            saving = SavingGoal(
                target_amount=total,
                target_turn=math.ceil((total - context.fac_creds) / max(1, income)),
                purpose="Fund planned actions",
            )
        return ResourceBudget(
            current_fac_creds=context.fac_creds,
            projected_income=[income] * len(turn_plans),
            planned_expenses=expenses,
            saving_goal=saving,
        )

    @staticmethod
    def analyze_threats(context: PlanningContext) -> list[IdentifiedThreat]:
        threats = []
        for asset in context.assets:
            for enemy in context.enemies:
                if any(a.location == asset.location for a in enemy.assets):
                    threats.append(IdentifiedThreat(
                        description=f"{enemy.name} has forces threatening our {asset.name}",
                        severity="critical" if asset.definition_id == "base_of_influence" else "high",
                        response=f"Reinforce position or retreat {asset.name}",
                    ))
        for enemy in context.enemies:
            if enemy.strength > context.strength * 1.5:
                threats.append(IdentifiedThreat(
                    description=f"{enemy.name} is significantly stronger than us",
                    severity="medium",
                    response="Build up forces before engaging",
                ))
        return threats

    @staticmethod
    def analyze_opportunities(context: PlanningContext) -> list[IdentifiedOpportunity]:
        opportunities = []
        for enemy in context.enemies:
            for asset in enemy.assets:
                if asset.hp <= WEAK_ASSET_HP:
                    opportunities.append(IdentifiedOpportunity(
                        description=f"{enemy.name}'s {asset.name} is weakened ({asset.hp} HP)",
                        value="high" if asset.is_base else "medium",
                        action=f"Attack {asset.name} for easy victory",
                    ))
        for enemy in context.enemies:
            for base in (a for a in enemy.assets if a.is_base):
                defenders = [a for a in enemy.assets if a.location == base.location and not a.is_base]
                if not defenders:
                    opportunities.append(IdentifiedOpportunity(
                        description=f"{enemy.name}'s Base of Influence is undefended",
                        value="high",
                        action="Strike at undefended base",
                    ))
        open_systems = [s for s in context.systems if not s.has_our_assets and not s.has_enemy_assets]
        if open_systems:
            opportunities.append(IdentifiedOpportunity(
                description=f"{len(open_systems)} systems available for expansion",
                value="medium",
                action="Expand to unclaimed territory",
            ))
        return opportunities

    # -- Plans -----------------------------------------------------------

    def generate_strategic_plan(self, faction: Faction, factions: list[Faction],
                                systems: list[StarSystem], current_turn: int,
                                difficulty: str, intent: StrategicIntent) -> AIStrategicPlan:
        """Build a fresh plan for *faction*."""
        context = self.build_planning_context(faction, factions, systems, current_turn, difficulty)
        horizon = plan_horizon(difficulty)

        primary, secondary = self.identify_objectives(context, intent)
        actions = self.plan_backward_from_objective(primary, context)
        for objective in secondary:
            actions.extend(self.plan_backward_from_objective(objective, context)[:SECONDARY_ACTIONS_PER_OBJECTIVE])

        turn_plans = self.organize_turn_plans(actions, context, horizon)
        confidence = sum(a.confidence for a in actions) / len(actions) if actions else 50.0

        plan = AIStrategicPlan(
            faction_id=faction.id,
            faction_name=faction.name,
            created_at_turn=current_turn,
            last_updated_turn=current_turn,
            plan_horizon=horizon,
            overall_confidence=max(0.0, min(100.0, confidence)),
            primary_objective=primary,
            secondary_objectives=secondary,
            turn_plans=turn_plans,
            contingencies=self.generate_contingencies(turn_plans, context),
            resource_budget=self.create_resource_budget(turn_plans, context),
            summary=self._summary(primary, turn_plans),
            detailed_reasoning=self._detailed_reasoning(primary, secondary, turn_plans, context),
            identified_threats=self.analyze_threats(context),
            identified_opportunities=self.analyze_opportunities(context),
        )
        log.debug("[AI_PLAN] %s: %s (confidence %.0f)", faction.name, plan.summary, plan.overall_confidence)
        return plan

    @staticmethod
    def _summary(objective: StrategicObjective, turn_plans: list[TurnPlan]) -> str:
        if not any(tp.actions for tp in turn_plans):
            return "Consolidating position and gathering resources"
        if turn_plans[0].actions:
            return f"{objective.description} - Next: {turn_plans[0].actions[0].description}"
        return objective.description

    @staticmethod
    def _detailed_reasoning(primary: StrategicObjective, secondary: list[StrategicObjective],
                            turn_plans: list[TurnPlan], context: PlanningContext) -> list[str]:
        lines = [f"Primary objective: {primary.description}"]
        if secondary:
            lines.append(f"Secondary objectives: {', '.join(s.description for s in secondary)}")
        lines.append(f"Current resources: {context.fac_creds} FacCreds")
        attackers = sum(1 for a in context.assets if a.has_attack)
        lines.append(f"Available assets: {len(context.assets)} total, {attackers} attackers")
        for tp in turn_plans:
            if tp.actions:
                lines.append(f"Turn {tp.turn + 1}: {tp.reasoning}")
        return lines

    def evaluate_plan(self, plan: AIStrategicPlan, context: PlanningContext) -> PlanEvaluation:
        """Check a stored plan against the current situation."""
        blockers: list[str] = []
        unexpected: list[str] = []
        our_assets = {a.id for a in context.assets}

        for tp in plan.turn_plans:
            for action in tp.actions:
                if action.asset_id and action.asset_id not in our_assets:
                    blockers.append(f"Asset {action.asset_name} no longer available")

        target_id = plan.primary_objective.target_asset_id
        if target_id and not any(a.id == target_id for e in context.enemies for a in e.assets):
            unexpected.append("Target asset has been destroyed")

        planned_cost = sum(a.fac_creds_cost for tp in plan.turn_plans for a in tp.actions)
        if planned_cost > context.fac_creds + self._config.income_per_turn * 3:
            blockers.append("Insufficient resources for planned actions")

        if len(blockers) >= 2 or len(unexpected) >= 2:
            recommendation = "replan"
        elif blockers or unexpected:
            recommendation = "adjust"
        else:
            recommendation = "continue"

        return PlanEvaluation(
            plan_id=plan.faction_id,
            faction_id=plan.faction_id,
            on_track=not blockers and not unexpected,
            progress_percent=max(0, 100 - (len(blockers) + len(unexpected)) * 20),
            blockers=blockers,
            unexpected_events=unexpected,
            recommendation=recommendation,
            reasoning=f"Plan blocked by: {', '.join(blockers)}" if blockers else "Plan progressing as expected",
        )

    def should_replan(self, plan: AIStrategicPlan, current_turn: int, evaluation: PlanEvaluation) -> bool:
        return self._policy.should_replan(plan, current_turn, evaluation)
