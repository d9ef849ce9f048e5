"""AI controller — runs one AI faction's turn through its phases.

Phases, in order:
1. analysis: influence map and sector threat overview
2. goal: keep or replace the faction goal, derive the strategic intent
3. planning: carry the stored multi-turn plan forward or replace it
4. economy: one repair or purchase
5. scoring: utility scores adjusted for difficulty
6. execution: drain the action queue with a delay before each action

Every phase except execution is synchronous.  Execution awaits the
injected sleep function before applying each queued action's effects
through the ``EffectDispatcher``; nothing else changes faction state.

Factions are processed strictly one after another.  A faction whose
phases raise only loses its own turn.
"""

from __future__ import annotations

import asyncio
import logging
import random
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from factionai.engine.combat import resolve_combat
from factionai.engine.difficulty_scaler import DifficultyScaler, check_difficulty
from factionai.engine.economy_manager import AIEconomyManager
from factionai.engine.goal_selection import GoalSelectionService
from factionai.engine.influence_map import InfluenceMap, InfluenceMapService
from factionai.engine.strategic_planner import AIStrategicPlanner
from factionai.engine.threat_assessment import SectorThreatOverview, ThreatAssessment
from factionai.engine.utility_scorer import ScoredAction, UtilityScorer
from factionai.loaders.ai_config_loader import AIConfig
from factionai.models.effects import (
    Defend,
    ExpandInfluence,
    InflictDamage,
    MoveAsset,
    PurchaseAsset,
    RepairAsset,
    SetGoal,
)
from factionai.models.turn import (
    AITurnPhase,
    AITurnPlan,
    AITurnStatus,
    AnalysisResult,
    BatchReport,
    GoalResult,
    QueuedAction,
)
from factionai.util.events import (
    AIActionExecuted,
    AITurnsFinished,
    AITurnsStarted,
    AITurnStatusChanged,
    FactionTurnCompleted,
    FactionTurnFailed,
    GoalChanged,
    PlanReplaced,
)

if TYPE_CHECKING:
    from factionai.engine.asset_catalog import AssetCatalog
    from factionai.engine.difficulty_scaler import DifficultyAdjustedResult
    from factionai.engine.economy_manager import EconomicPlan
    from factionai.engine.faction_service import EffectDispatcher
    from factionai.engine.goal_selection import StrategicIntent
    from factionai.models.faction import Faction
    from factionai.models.plan import AIStrategicPlan, PlannedAction
    from factionai.models.sector import StarSystem
    from factionai.persistence.plan_store import PlanStore
    from factionai.util.events import EventBus

log = logging.getLogger(__name__)

MIN_ACTION_DELAY_MS = 200.0

StatusCallback = Callable[[AITurnStatus], None]
SleepFn = Callable[[float], Awaitable[None]]


# -- Faction selection ---------------------------------------------------

def is_ai_controlled(faction: Faction, player_faction_id: Optional[str] = None) -> bool:
    """Every faction is AI-controlled except the designated player faction."""
    if player_faction_id:
        return faction.id != player_faction_id
    return True


def get_ai_factions(factions: list[Faction], player_faction_id: Optional[str] = None) -> list[Faction]:
    return [f for f in factions if is_ai_controlled(f, player_faction_id)]


def create_idle_status(faction: Faction) -> AITurnStatus:
    """Status of a faction whose turn has not started."""
    return AITurnStatus(faction_id=faction.id, faction_name=faction.name, phase=AITurnPhase.IDLE)


def _planning_difficulty(difficulty: str) -> str:
    # medium plans like normal
    return "normal" if difficulty == "medium" else difficulty


# -- Controller ----------------------------------------------------------

class AIController:
    """Plans and executes AI faction turns.

    Args:
        catalog: Asset definitions.
        dispatcher: Applies queued effects to the game state.
        plan_store: Stored strategic plans, keyed by faction.
        event_bus: Receives turn, goal and plan events.
        config: AI configuration; defaults when omitted.
        rng: Random source for delays, noise and combat rolls.
        sleep: Awaited with the delay in seconds before each action.
    """

    def __init__(
        self,
        catalog: AssetCatalog,
        dispatcher: EffectDispatcher,
        plan_store: PlanStore,
        event_bus: EventBus,
        config: Optional[AIConfig] = None,
        rng: Optional[random.Random] = None,
        sleep: Optional[SleepFn] = None,
    ) -> None:
        self._catalog = catalog
        self._dispatcher = dispatcher
        self._plans = plan_store
        self._events = event_bus
        self._config = config or AIConfig()
        self._controller_cfg = self._config.controller
        self._rng = rng or random.Random(self._config.seed)
        self._sleep = sleep or asyncio.sleep
        self._action_log_level = logging.INFO if self._controller_cfg.enable_logging else logging.DEBUG

        self.influence = InfluenceMapService(catalog)
        self.threats = ThreatAssessment(catalog)
        self.goals = GoalSelectionService()
        self.economy = AIEconomyManager(catalog)
        self.scorer = UtilityScorer(catalog, self.influence)
        self.scaler = DifficultyScaler(catalog, self._rng, self._config.difficulty_overrides)
        self.planner = AIStrategicPlanner(catalog, self._config.planner,
                                          expand_influence_cost=self._config.expand_influence_cost)

    # -- Status ----------------------------------------------------------

    def _report(self, status: AITurnStatus, on_status: Optional[StatusCallback]) -> None:
        self._events.emit(AITurnStatusChanged(status=status))
        if on_status is not None:
            on_status(status)

    def _phase(self, faction: Faction, phase: AITurnPhase, on_status: Optional[StatusCallback]) -> None:
        self._report(AITurnStatus(faction_id=faction.id, faction_name=faction.name, phase=phase),
                     on_status)

    # -- Phases ----------------------------------------------------------

    def execute_analysis_phase(self, faction: Faction, factions: list[Faction],
                               systems: list[StarSystem]) -> AnalysisResult:
        """Influence map and threat overview; empty ones without systems."""
        if not systems:
            log.warning("[AI_TURN] No systems available for analysis of %s", faction.name)
            return AnalysisResult(
                influence_map=InfluenceMap.empty(faction.id),
                threat_overview=SectorThreatOverview.empty(faction.id),
            )
        return AnalysisResult(
            influence_map=self.influence.calculate(faction.id, factions, systems),
            threat_overview=self.threats.generate_sector_overview(faction.id, factions, systems),
        )

    def execute_goal_phase(self, faction: Faction, factions: list[Faction],
                           systems: list[StarSystem]) -> GoalResult:
        """Commit a better goal when one clearly outweighs the current one."""
        evaluation = self.goals.evaluate_goals(faction, factions, systems)
        change, reason = self.goals.should_change_goal(faction, factions, systems)

        if change and evaluation.recommended_goal is not None:
            previous = faction.goal.type if faction.goal else None
            goal = self.goals.create_goal_instance(evaluation.recommended_goal, faction)
            self._dispatcher.dispatch(SetGoal(faction_id=faction.id, goal=goal))
            self._events.emit(GoalChanged(faction_id=faction.id, goal_type=goal.type, previous=previous))
            log.info("[AI_TURN] %s changed goal to %s: %s", faction.name, goal.type.value, reason)
            return GoalResult(evaluation.strategic_intent, True, goal.type)

        return GoalResult(evaluation.strategic_intent)

    def execute_planning_phase(self, faction: Faction, factions: list[Faction],
                               systems: list[StarSystem], intent: StrategicIntent,
                               difficulty: str, current_turn: int) -> AIStrategicPlan:
        """Carry the stored plan forward, or replace it when the replan
        policy asks for a new one."""
        planning_difficulty = _planning_difficulty(difficulty)
        existing = self._plans.get_plan(faction.id)

        if existing is not None:
            context = self.planner.build_planning_context(
                faction, factions, systems, current_turn, planning_difficulty)
            evaluation = self.planner.evaluate_plan(existing, context)
            if not self.planner.should_replan(existing, current_turn, evaluation):
                existing.last_updated_turn = current_turn
                log.debug("[AI_PLAN] %s continues plan from turn %d", faction.name, existing.created_at_turn)
                return existing

        plan = self.planner.generate_strategic_plan(
            faction, factions, systems, current_turn, planning_difficulty, intent)
        self._plans.set_plan(plan)
        self._events.emit(PlanReplaced(faction_id=faction.id, turn=current_turn))
        log.info("[AI_PLAN] %s new plan: %s", faction.name, plan.summary)
        return plan

    def execute_economy_phase(self, faction: Faction, systems: list[StarSystem],
                              threat_overview: SectorThreatOverview,
                              intent: StrategicIntent) -> EconomicPlan:
        return self.economy.generate_economic_plan(faction, systems, threat_overview, intent)

    def execute_scoring_phase(self, faction: Faction, factions: list[Faction],
                              systems: list[StarSystem], analysis: AnalysisResult,
                              intent: StrategicIntent, difficulty: str) -> DifficultyAdjustedResult:
        return self.scaler.score_actions_with_difficulty(
            self.scorer, faction, factions, systems,
            analysis.influence_map, analysis.threat_overview, intent, difficulty)

    # -- Action queue ----------------------------------------------------

    def _delay(self) -> float:
        cfg = self._controller_cfg
        variance = self._rng.uniform(-cfg.delay_variance, cfg.delay_variance)
        return max(MIN_ACTION_DELAY_MS, cfg.base_action_delay + variance)

    def _planned_step(self, faction: Faction, matches: Callable[[PlannedAction], bool]) -> Optional[str]:
        for step in self._plans.current_turn_actions(faction.id):
            if matches(step):
                return step.id
        return None

    def build_economy_actions(self, faction: Faction, economy: EconomicPlan) -> list[QueuedAction]:
        """At most one repair or purchase."""
        action = self.economy.get_economy_action(economy)
        queue: list[QueuedAction] = []

        if action.action == "repair" and action.repair is not None:
            repair = action.repair
            if faction.get_asset(repair.asset_id) is not None:
                queue.append(QueuedAction(
                    id=f"repair-{repair.asset_id}",
                    type="repair",
                    description=f"Repair {repair.asset_name}",
                    effects=(RepairAsset(faction.id, repair.asset_id, repair.damage_amount, repair.repair_cost),),
                    delay_ms=self._delay(),
                    planned_action_id=self._planned_step(
                        faction, lambda s: s.type == "repair" and s.asset_id == repair.asset_id),
                ))

        if action.action == "purchase" and action.purchase is not None:
            purchase = action.purchase
            queue.append(QueuedAction(
                id=f"purchase-{purchase.definition.id}",
                type="purchase",
                description=f"Purchase {purchase.definition.name}",
                effects=(PurchaseAsset(faction.id, purchase.definition.id, purchase.location),),
                delay_ms=self._delay(),
                planned_action_id=self._planned_step(faction, lambda s: s.type == "purchase"),
            ))
        return queue

    def build_scored_actions(self, faction: Faction, factions: list[Faction],
                             scoring: DifficultyAdjustedResult) -> list[QueuedAction]:
        """Up to max_actions_per_turn actions of the best action type."""
        if scoring.best_action is None:
            return []
        action_type = scoring.best_action.action.type
        selected = [a for a in scoring.adjusted_actions
                    if a.action.type == action_type and not a.invalid]
        queue: list[QueuedAction] = []
        for scored in selected[:self._controller_cfg.max_actions_per_turn]:
            queued = self._queue_scored(faction, factions, scored)
            if queued is not None:
                queue.append(queued)
        return queue

    def _queue_scored(self, faction: Faction, factions: list[Faction],
                      scored: ScoredAction) -> Optional[QueuedAction]:
        action = scored.action

        if action.type == "move" and action.target_location:
            return QueuedAction(
                id=f"move-{action.acting_asset_id}-{action.target_location}",
                type="move",
                description=action.description,
                effects=(MoveAsset(faction.id, action.acting_asset_id, action.target_location),),
                delay_ms=self._delay(),
                planned_action_id=self._planned_step(
                    faction, lambda s: s.type == "move" and s.asset_id == action.acting_asset_id
                    and s.target_location == action.target_location),
            )

        if action.type == "attack":
            return self._queue_attack(faction, factions, scored)

        if action.type == "defend":
            return QueuedAction(
                id=f"defend-{action.source_location}",
                type="defend",
                description=action.description,
                effects=(Defend(faction.id, action.source_location),),
                delay_ms=self._delay() / 2,
                planned_action_id=self._planned_step(faction, lambda s: s.type == "defend"),
            )

        if action.type == "expand" and action.target_location:
            return QueuedAction(
                id=f"expand-{action.target_location}",
                type="expand",
                description=action.description,
                effects=(ExpandInfluence(faction.id, action.target_location,
                                         self._config.expand_influence_cost),),
                delay_ms=self._delay(),
                planned_action_id=self._planned_step(
                    faction, lambda s: s.type == "expand" and s.target_location == action.target_location),
            )

        log.debug("[AI_TURN] Skipping unqueueable action %s", action.description)
        return None

    def _queue_attack(self, faction: Faction, factions: list[Faction],
                      scored: ScoredAction) -> Optional[QueuedAction]:
        """Resolve the attack now so the queued effects are plain damage."""
        action = scored.action
        target_faction = next((f for f in factions if f.id == action.target_faction_id), None)
        target = target_faction.get_asset(action.target_asset_id) if target_faction else None
        attacker = faction.get_asset(action.acting_asset_id)
        attacker_def = self._catalog.definition_of(attacker) if attacker else None
        target_def = self._catalog.definition_of(target) if target else None
        if target is None or attacker_def is None or attacker_def.attack is None:
            log.debug("[AI_TURN] Dropping attack with missing attacker or target: %s", action.description)
            return None

        pattern = attacker_def.attack
        result = resolve_combat(
            faction.attributes.rating(pattern.attacker_attribute),
            target_faction.attributes.rating(pattern.defender_attribute),
            pattern,
            target_def.counterattack if target_def else None,
            self._rng,
        )
        effects = []
        if result.attack_damage > 0:
            effects.append(InflictDamage(target_faction.id, target.id, result.attack_damage, faction.id))
        if result.counterattack_damage > 0:
            effects.append(InflictDamage(faction.id, attacker.id, result.counterattack_damage,
                                         target_faction.id))

        return QueuedAction(
            id=f"attack-{action.acting_asset_id}-{action.target_asset_id}",
            type="attack",
            description=action.description,
            effects=tuple(effects),
            delay_ms=self._delay(),
            planned_action_id=self._planned_step(
                faction, lambda s: s.type == "attack" and s.target_asset_id == action.target_asset_id),
        )

    # -- Turn ------------------------------------------------------------

    def plan_ai_turn(self, faction: Faction, factions: list[Faction], systems: list[StarSystem],
                     difficulty: Optional[str] = None, current_turn: int = 1,
                     on_status: Optional[StatusCallback] = None) -> AITurnPlan:
        """Run every decision phase and build the action queue.

        Only the goal phase changes state (through a SetGoal effect);
        everything else is queued.
        """
        difficulty = check_difficulty(difficulty or self._config.difficulty)
        reasoning: list[str] = []

        self._phase(faction, AITurnPhase.ANALYSIS, on_status)
        analysis = self.execute_analysis_phase(faction, factions, systems)
        reasoning.append(f"Analysis: Threat level {analysis.threat_overview.overall_threat_level:.0f}%")

        self._phase(faction, AITurnPhase.GOAL, on_status)
        goal = self.execute_goal_phase(faction, factions, systems)
        if goal.goal_changed:
            reasoning.append(f"Goal: Changed to {goal.new_goal_type.value}")
        else:
            reasoning.append(f"Goal: Maintaining {faction.goal.type.value if faction.goal else 'none'}")
        reasoning.append(f"Intent: {goal.strategic_intent.primary_focus} focus")

        self._phase(faction, AITurnPhase.PLANNING, on_status)
        strategic_plan = self.execute_planning_phase(
            faction, factions, systems, goal.strategic_intent, difficulty, current_turn)
        reasoning.append(f"Strategy: {strategic_plan.summary}")
        reasoning.append(f"Confidence: {strategic_plan.overall_confidence:.0f}%")

        self._phase(faction, AITurnPhase.ECONOMY, on_status)
        economy = self.execute_economy_phase(faction, systems, analysis.threat_overview, goal.strategic_intent)
        reasoning.append(f"Economy: {economy.reasoning}")

        self._phase(faction, AITurnPhase.SCORING, on_status)
        scoring = self.execute_scoring_phase(
            faction, factions, systems, analysis, goal.strategic_intent, difficulty)
        reasoning.append(f"Scoring: {scoring.reasoning}")

        queue = self.build_economy_actions(faction, economy) + self.build_scored_actions(
            faction, factions, scoring)
        selected = []
        if scoring.best_action is not None:
            best_type = scoring.best_action.action.type
            selected = [a for a in scoring.adjusted_actions if a.action.type == best_type]

        log.info("[AI_TURN] %s planned %d actions (%s)", faction.name, len(queue), difficulty)
        return AITurnPlan(
            faction=faction,
            difficulty=difficulty,
            analysis=analysis,
            goal=goal,
            strategic_plan=strategic_plan,
            economy=economy,
            scoring=scoring,
            selected_actions=selected,
            action_queue=queue,
            reasoning=reasoning,
        )

    async def execute_ai_turn(self, plan: AITurnPlan, on_status: Optional[StatusCallback] = None) -> None:
        """Drain the plan's action queue in order.

        A failing effect is logged and the remaining actions still run.
        """
        faction = plan.faction
        queue = plan.action_queue
        total = len(queue)

        def status(phase: AITurnPhase, progress: float, current: Optional[str], done: int) -> None:
            self._report(AITurnStatus(
                faction_id=faction.id,
                faction_name=faction.name,
                phase=phase,
                progress=progress,
                current_action=current,
                actions_completed=done,
                total_actions=total,
                is_complete=phase is AITurnPhase.COMPLETE,
            ), on_status)

        status(AITurnPhase.EXECUTION, 0.0, None, 0)
        log.log(self._action_log_level, "[AI_TURN] %s starting turn with %d actions", faction.name, total)

        for i, action in enumerate(queue):
            status(AITurnPhase.EXECUTION, (i + 1) / total * 100, action.description, i)
            log.log(self._action_log_level, "[AI_TURN] %s: %s", faction.name, action.description)

            await self._sleep(action.delay_ms / 1000.0)

            try:
                for effect in action.effects:
                    self._dispatcher.dispatch(effect)
            except Exception as exc:
                log.exception("[AI_TURN] Error executing action: %s", action.description)
                if action.planned_action_id:
                    self._plans.mark_action_failed(faction.id, action.planned_action_id, str(exc))
                continue

            if action.planned_action_id:
                self._plans.mark_action_completed(faction.id, action.planned_action_id)
            self._events.emit(AIActionExecuted(faction.id, faction.name, action.description))

        status(AITurnPhase.COMPLETE, 100.0, None, total)
        log.log(self._action_log_level, "[AI_TURN] %s turn complete", faction.name)

    async def run_ai_turn(self, faction: Faction, factions: list[Faction], systems: list[StarSystem],
                          difficulty: Optional[str] = None, current_turn: int = 1,
                          on_status: Optional[StatusCallback] = None) -> AITurnPlan:
        """Plan and execute one faction's turn."""
        plan = self.plan_ai_turn(faction, factions, systems, difficulty, current_turn, on_status)
        await self.execute_ai_turn(plan, on_status)
        return plan

    async def run_ai_turns(self, factions: list[Faction], systems: list[StarSystem],
                           current_turn: int = 1, difficulty: Optional[str] = None,
                           on_status: Optional[StatusCallback] = None) -> BatchReport:
        """Run the turn of every AI-controlled faction, one at a time.

        A faction whose turn raises is recorded in the report and the
        batch moves on to the next faction.
        """
        ai_factions = get_ai_factions(factions, self._config.player_faction_id)
        report = BatchReport()
        self._events.emit(AITurnsStarted(faction_ids=tuple(f.id for f in ai_factions)))
        log.info("[AI_TURN] Turn %d: running %d AI factions", current_turn, len(ai_factions))

        for faction in ai_factions:
            try:
                await self.run_ai_turn(faction, factions, systems, difficulty, current_turn, on_status)
            except Exception as exc:
                log.exception("[AI_TURN] Turn failed for %s", faction.name)
                report.errors[faction.id] = str(exc) or type(exc).__name__
                self._report(AITurnStatus(
                    faction_id=faction.id,
                    faction_name=faction.name,
                    phase=AITurnPhase.COMPLETE,
                    progress=100.0,
                    is_complete=True,
                    error=report.errors[faction.id],
                ), on_status)
                self._events.emit(FactionTurnFailed(faction.id, faction.name, report.errors[faction.id]))
                continue
            report.completed.append(faction.id)
            self._events.emit(FactionTurnCompleted(faction_id=faction.id))

        self._events.emit(AITurnsFinished(completed=tuple(report.completed), failed=tuple(report.failed)))
        return report
