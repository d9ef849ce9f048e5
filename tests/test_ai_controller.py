"""Tests for the AI controller: phases, action queue and batch execution."""

import random

import pytest

from factionai.engine.ai_controller import (
    AIController,
    create_idle_status,
    get_ai_factions,
    is_ai_controlled,
)
from factionai.engine.asset_catalog import AssetCatalog
from factionai.engine.faction_service import FactionService
from factionai.loaders.ai_config_loader import AIConfig, AIControllerConfig
from factionai.models.asset import (
    AssetCategory,
    AssetDefinition,
    AssetType,
    AttackPattern,
    CounterattackPattern,
)
from factionai.models.effects import Defend, MoveAsset, SetGoal
from factionai.models.faction import Faction, FactionAsset, FactionAttributes
from factionai.models.plan import AIStrategicPlan, PlannedAction, StrategicObjective, TurnPlan
from factionai.models.sector import StarSystem
from factionai.models.turn import AITurnPhase, AITurnPlan, QueuedAction
from factionai.persistence.plan_store import PlanStore
from factionai.util.events import (
    AIActionExecuted,
    AITurnsFinished,
    AITurnsStarted,
    EventBus,
    FactionTurnCompleted,
    FactionTurnFailed,
    GoalChanged,
    PlanReplaced,
)

_F = AssetCategory.FORCE


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_catalog():
    return AssetCatalog([
        AssetDefinition("troops", "Troops", _F, required_rating=1, hp=4, cost=3,
                        asset_type=AssetType.MILITARY_UNIT,
                        attack=AttackPattern(_F, _F, "1d6"), counterattack=CounterattackPattern("1d4")),
        AssetDefinition("base_of_influence", "Base of Influence", AssetCategory.WEALTH),
    ])


def _make_systems():
    return [
        StarSystem(id="home", name="Home", x=0, y=0),
        StarSystem(id="far", name="Far", x=5, y=5),
    ]


def _make_faction(fid, homeworld="home"):
    return Faction(
        id=fid, name=fid.title(), homeworld=homeworld,
        attributes=FactionAttributes(force=3, cunning=2, wealth=3),
        assets=[FactionAsset(f"{fid}-t1", "troops", homeworld, hp=4, max_hp=4)],
    )


class _RecordingSleep:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class _FailingDispatcher:
    """Forwards to a FactionService but raises for chosen effects."""

    def __init__(self, service, fail):
        self._service = service
        self._fail = fail

    def dispatch(self, effect):
        if self._fail(effect):
            raise RuntimeError("boom")
        self._service.dispatch(effect)


def _make_controller(dispatcher=None, service=None, player=None, events=None, store=None):
    catalog = _make_catalog()
    service = service or FactionService(catalog)
    sleep = _RecordingSleep()
    config = AIConfig(player_faction_id=player, controller=AIControllerConfig(delay_variance=0))
    controller = AIController(
        catalog,
        dispatcher or service,
        store or PlanStore(),
        events or EventBus(),
        config=config,
        rng=random.Random(1),
        sleep=sleep,
    )
    return controller, service, sleep


def _plan_for(faction, queue):
    return AITurnPlan(faction=faction, difficulty="normal", analysis=None, goal=None,
                      strategic_plan=None, economy=None, scoring=None, action_queue=queue)


# ---------------------------------------------------------------------------
# Faction selection
# ---------------------------------------------------------------------------

class TestFactionSelection:
    def test_everyone_without_player(self):
        assert is_ai_controlled(_make_faction("a"))
        assert is_ai_controlled(_make_faction("a"), "")

    def test_player_is_excluded(self):
        factions = [_make_faction("a"), _make_faction("player"), _make_faction("b")]
        assert [f.id for f in get_ai_factions(factions, "player")] == ["a", "b"]

    def test_idle_status(self):
        status = create_idle_status(_make_faction("a"))
        assert status.phase is AITurnPhase.IDLE
        assert status.progress == 0.0
        assert not status.is_complete


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------

class TestPlanTurn:
    def test_phases_reported_in_order(self):
        controller, service, _ = _make_controller()
        faction = _make_faction("a")
        service.register(faction)
        phases = []
        controller.plan_ai_turn(faction, [faction], _make_systems(), on_status=lambda s: phases.append(s.phase))
        assert phases == [AITurnPhase.ANALYSIS, AITurnPhase.GOAL, AITurnPhase.PLANNING,
                          AITurnPhase.ECONOMY, AITurnPhase.SCORING]

    def test_lone_faction_defends_and_adopts_goal(self):
        events = EventBus()
        goals, plans = [], []
        events.on(GoalChanged, goals.append)
        events.on(PlanReplaced, plans.append)
        controller, service, _ = _make_controller(events=events)
        faction = _make_faction("a")
        service.register(faction)

        plan = controller.plan_ai_turn(faction, [faction], _make_systems(), current_turn=4)
        assert faction.goal is not None
        assert goals[0].previous is None
        assert plans[0].turn == 4
        assert [a.type for a in plan.action_queue] == ["defend"]
        assert plan.action_queue[0].effects == (Defend("a", "home"),)
        assert plan.action_queue[0].delay_ms == 375.0
        assert plan.strategic_plan is controller._plans.get_plan("a")
        assert plan.reasoning[0].startswith("Analysis:")

    def test_unknown_difficulty(self):
        controller, service, _ = _make_controller()
        faction = _make_faction("a")
        service.register(faction)
        with pytest.raises(ValueError):
            controller.plan_ai_turn(faction, [faction], _make_systems(), difficulty="nightmare")

    def test_no_systems_gives_empty_analysis(self):
        controller, _, _ = _make_controller()
        faction = _make_faction("a")
        analysis = controller.execute_analysis_phase(faction, [faction], [])
        assert analysis.threat_overview.overall_threat_level == 0


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

class TestExecuteTurn:
    @pytest.mark.asyncio
    async def test_status_and_sleep(self):
        controller, service, sleep = _make_controller()
        faction = _make_faction("a")
        service.register(faction)
        statuses = []
        queue = [QueuedAction("d", "defend", "Defend home", (Defend("a", "home"),), delay_ms=400.0)]
        await controller.execute_ai_turn(_plan_for(faction, queue), statuses.append)

        assert sleep.delays == [0.4]
        assert [s.phase for s in statuses] == [AITurnPhase.EXECUTION, AITurnPhase.EXECUTION,
                                               AITurnPhase.COMPLETE]
        assert statuses[1].current_action == "Defend home"
        assert statuses[1].progress == 100.0
        final = statuses[-1]
        assert final.is_complete
        assert final.actions_completed == final.total_actions == 1

    @pytest.mark.asyncio
    async def test_failed_action_does_not_stop_queue(self):
        store = PlanStore()
        store.set_plan(AIStrategicPlan(
            faction_id="a", faction_name="A", created_at_turn=1, last_updated_turn=1,
            plan_horizon=2, overall_confidence=60.0,
            primary_objective=StrategicObjective("o", "build_army", "Build"),
            turn_plans=[TurnPlan(turn=0, actions=[
                PlannedAction("p1", "move", "Move"), PlannedAction("p2", "defend", "Hold"),
            ])],
        ))
        executed = []
        events = EventBus()
        events.on(AIActionExecuted, lambda e: executed.append(e.description))
        catalog_service = FactionService(_make_catalog())
        dispatcher = _FailingDispatcher(catalog_service, lambda e: isinstance(e, MoveAsset))
        controller, service, _ = _make_controller(dispatcher=dispatcher, service=catalog_service,
                                                  events=events, store=store)
        faction = _make_faction("a")
        service.register(faction)

        queue = [
            QueuedAction("m", "move", "Move away", (MoveAsset("a", "a-t1", "far"),), planned_action_id="p1"),
            QueuedAction("d", "defend", "Hold home", (Defend("a", "home"),), planned_action_id="p2"),
        ]
        await controller.execute_ai_turn(_plan_for(faction, queue))

        assert executed == ["Hold home"]
        assert faction.get_asset("a-t1").location == "home"
        assert store.current_turn_actions("a") == []
        assert store.get_plan("a").overall_confidence == 40.0

    @pytest.mark.asyncio
    async def test_planned_queue_runs_to_completion(self):
        controller, service, sleep = _make_controller()
        faction = _make_faction("a")
        service.register(faction)
        plan = controller.plan_ai_turn(faction, [faction], _make_systems())
        total = len(plan.action_queue)
        assert total > 0

        statuses = []
        await controller.execute_ai_turn(plan, statuses.append)
        assert all(s.total_actions == total for s in statuses)
        assert [s.phase for s in statuses] == [AITurnPhase.EXECUTION] * (total + 1) + [AITurnPhase.COMPLETE]
        assert statuses[-1].actions_completed == total
        assert statuses[-1].progress == 100.0
        assert len(sleep.delays) == total

    @pytest.mark.asyncio
    async def test_empty_queue_completes(self):
        controller, _, sleep = _make_controller()
        statuses = []
        await controller.execute_ai_turn(_plan_for(_make_faction("a"), []), statuses.append)
        assert sleep.delays == []
        assert statuses[-1].phase is AITurnPhase.COMPLETE
        assert statuses[-1].total_actions == 0


# ---------------------------------------------------------------------------
# Batch
# ---------------------------------------------------------------------------

class TestRunAITurns:
    @pytest.mark.asyncio
    async def test_sequential_batch(self):
        events = EventBus()
        seen = []
        for event_type in (AITurnsStarted, FactionTurnCompleted, AITurnsFinished):
            events.on(event_type, seen.append)
        controller, service, sleep = _make_controller(events=events, player="player")
        factions = [_make_faction("a"), _make_faction("player", "far"), _make_faction("b", "far")]
        for f in factions:
            service.register(f)

        report = await controller.run_ai_turns(factions, _make_systems())
        assert report.completed == ["a", "b"]
        assert report.failed == []
        assert seen[0] == AITurnsStarted(faction_ids=("a", "b"))
        assert [e.faction_id for e in seen[1:3]] == ["a", "b"]
        assert seen[-1] == AITurnsFinished(completed=("a", "b"), failed=())
        assert sleep.delays and all(d >= 0.1 for d in sleep.delays)

    @pytest.mark.asyncio
    async def test_failing_faction_is_isolated(self):
        events = EventBus()
        failures = []
        events.on(FactionTurnFailed, failures.append)
        service = FactionService(_make_catalog())
        dispatcher = _FailingDispatcher(
            service, lambda e: isinstance(e, SetGoal) and e.faction_id == "bad")
        controller, _, _ = _make_controller(dispatcher=dispatcher, service=service, events=events)
        factions = [_make_faction("bad"), _make_faction("good", "far")]
        for f in factions:
            service.register(f)

        statuses = []
        report = await controller.run_ai_turns(factions, _make_systems(), on_status=statuses.append)
        assert report.completed == ["good"]
        assert report.errors == {"bad": "boom"}
        assert failures[0].faction_name == "Bad"
        failed_status = next(s for s in statuses if s.error)
        assert failed_status.faction_id == "bad"
        assert failed_status.is_complete
        assert factions[1].goal is not None
