"""Strategic plan models: multi-turn plans, objectives and contingencies.

A plan is created by the StrategicPlanner, kept in the PlanStore across
turns and shown to the player as the faction's visible intent.

Turn indices inside ``AIStrategicPlan.turn_plans`` are relative to the
current game turn (0 = this turn) and never decrease along the list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# Value sets used by the string fields below.
ACTION_PRIORITIES = ("critical", "high", "medium", "low")
TRIGGER_CONDITIONS = ("action_failed", "asset_destroyed", "enemy_moved", "low_hp", "custom")
OBJECTIVE_TYPES = (
    "destroy_asset", "capture_system", "eliminate_faction", "expand_influence",
    "build_army", "economic_growth", "defensive_posture",
)
OBJECTIVE_PRIORITIES = ("primary", "secondary", "opportunistic")
RECOMMENDATIONS = ("continue", "adjust", "replan")


# -- Tactical layer ------------------------------------------------------

@dataclass
class PlannedAction:
    """A single planned step.

    Attributes:
        id: Action ID, unique within a plan.
        type: move, attack, defend, expand, purchase, repair or save.
        description: Human-readable summary.
        priority: critical, high, medium or low.
        confidence: 0-100 estimate that the step succeeds.
        expected_outcome: What the faction expects to happen.
        depends_on: IDs of actions that must happen first.
        enables_actions: IDs of actions this one unlocks.
        fac_creds_cost: FacCreds the step needs.
    """

    id: str
    type: str
    description: str
    priority: str = "medium"
    confidence: float = 50.0
    expected_outcome: str = ""
    asset_id: Optional[str] = None
    asset_name: Optional[str] = None
    target_asset_id: Optional[str] = None
    target_asset_name: Optional[str] = None
    target_faction_id: Optional[str] = None
    target_faction_name: Optional[str] = None
    target_location: Optional[str] = None
    target_location_name: Optional[str] = None
    depends_on: list[str] = field(default_factory=list)
    enables_actions: list[str] = field(default_factory=list)
    fac_creds_cost: int = 0


@dataclass
class PlanContingency:
    """Fallback actions for when part of the plan goes wrong."""

    id: str
    triggered_by: str
    trigger_condition: str
    description: str
    alternative_actions: list[PlannedAction] = field(default_factory=list)
    priority: int = 1


@dataclass
class TurnPlan:
    """Actions scheduled for one relative turn.

    Attributes:
        turn: Relative turn index (0 = this turn).
        actions: Actions to take on that turn.
        expected_fac_creds: Projected FacCreds at the start of the turn.
        expected_fac_creds_after: Projected FacCreds after the turn's
            actions plus the next turn's income.
        reasoning: Why these actions were chosen.
    """

    turn: int
    actions: list[PlannedAction] = field(default_factory=list)
    expected_fac_creds: int = 0
    expected_fac_creds_after: int = 0
    reasoning: str = ""


# -- Strategic layer -----------------------------------------------------

@dataclass
class StrategicObjective:
    """Something the faction is working towards over several turns."""

    id: str
    type: str
    description: str
    priority: str = "primary"
    progress: float = 0.0
    estimated_turns_to_complete: int = 1
    target_faction_id: Optional[str] = None
    target_faction_name: Optional[str] = None
    target_asset_id: Optional[str] = None
    target_asset_name: Optional[str] = None
    target_system_id: Optional[str] = None
    target_system_name: Optional[str] = None
    required_actions: list[str] = field(default_factory=list)
    blockers: list[str] = field(default_factory=list)


@dataclass
class PlannedExpense:
    turn: int
    amount: int
    purpose: str


@dataclass
class SavingGoal:
    target_amount: int
    target_turn: int
    purpose: str


@dataclass
class ResourceBudget:
    """FacCreds outlook across the plan horizon."""

    current_fac_creds: int = 0
    projected_income: list[int] = field(default_factory=list)
    planned_expenses: list[PlannedExpense] = field(default_factory=list)
    saving_goal: Optional[SavingGoal] = None


@dataclass
class IdentifiedThreat:
    description: str
    severity: str
    response: str


@dataclass
class IdentifiedOpportunity:
    description: str
    value: str
    action: str


@dataclass
class AIStrategicPlan:
    """Complete multi-turn plan for one AI faction.

    Attributes:
        faction_id: Owning faction.
        created_at_turn: Game turn the plan was generated.
        last_updated_turn: Game turn the plan was last carried forward.
        plan_horizon: Number of turns the plan looks ahead.
        overall_confidence: 0-100 viability estimate.
        turn_plans: Relative turn schedule, ordered by turn.
        summary: One-line summary for display.
        detailed_reasoning: Step-by-step reasoning trace.
    """

    faction_id: str
    faction_name: str
    created_at_turn: int
    last_updated_turn: int
    plan_horizon: int
    overall_confidence: float
    primary_objective: StrategicObjective
    secondary_objectives: list[StrategicObjective] = field(default_factory=list)
    turn_plans: list[TurnPlan] = field(default_factory=list)
    contingencies: list[PlanContingency] = field(default_factory=list)
    resource_budget: ResourceBudget = field(default_factory=ResourceBudget)
    summary: str = ""
    detailed_reasoning: list[str] = field(default_factory=list)
    identified_threats: list[IdentifiedThreat] = field(default_factory=list)
    identified_opportunities: list[IdentifiedOpportunity] = field(default_factory=list)


@dataclass
class PlanEvaluation:
    """How well an existing plan is holding up."""

    plan_id: str
    faction_id: str
    on_track: bool
    progress_percent: float
    blockers: list[str] = field(default_factory=list)
    unexpected_events: list[str] = field(default_factory=list)
    recommendation: str = "continue"
    reasoning: str = ""


# -- Planning snapshot ---------------------------------------------------

@dataclass(frozen=True)
class ContextAsset:
    id: str
    definition_id: str
    name: str
    location: str
    hp: int
    max_hp: int
    has_attack: bool
    has_mobility: bool


@dataclass(frozen=True)
class ContextGoal:
    type: str
    description: str
    progress: int
    target: int


@dataclass(frozen=True)
class ContextEnemyAsset:
    id: str
    definition_id: str
    name: str
    location: str
    hp: int
    value: int
    is_base: bool


@dataclass(frozen=True)
class ContextEnemy:
    id: str
    name: str
    homeworld: str
    strength: int
    assets: tuple[ContextEnemyAsset, ...]


@dataclass(frozen=True)
class ContextSystem:
    id: str
    name: str
    has_our_assets: bool
    has_enemy_assets: bool
    distance_from_homeworld: int


@dataclass(frozen=True)
class PlanningContext:
    """Read-only snapshot the planner works from.

    Enemy assets that are stealthed are left out; the faction cannot plan
    against what it cannot see.
    """

    faction_id: str
    faction_name: str
    fac_creds: int
    force: int
    cunning: int
    wealth: int
    homeworld: str
    assets: tuple[ContextAsset, ...]
    goal: Optional[ContextGoal]
    enemies: tuple[ContextEnemy, ...]
    systems: tuple[ContextSystem, ...]
    current_turn: int
    difficulty: str

    @property
    def strength(self) -> int:
        return self.force + self.cunning + self.wealth
