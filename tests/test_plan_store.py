"""Tests for the plan store and YAML plan persistence."""

import pytest

from factionai.models.plan import (
    AIStrategicPlan,
    PlanContingency,
    PlannedAction,
    ResourceBudget,
    SavingGoal,
    StrategicObjective,
    TurnPlan,
)
from factionai.persistence.plan_store import PlanStore, load_plans, save_plans


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _action(aid, atype="move", **kw):
    return PlannedAction(id=aid, type=atype, description=f"{atype} {aid}", **kw)


def _make_plan(fid="f1", name="Alpha", confidence=60.0, turn_plans=None, contingencies=None):
    return AIStrategicPlan(
        faction_id=fid,
        faction_name=name,
        created_at_turn=3,
        last_updated_turn=3,
        plan_horizon=2,
        overall_confidence=confidence,
        primary_objective=StrategicObjective(id="obj", type="build_army", description="Build up"),
        turn_plans=turn_plans if turn_plans is not None else [
            TurnPlan(turn=0, actions=[_action("a0")]),
            TurnPlan(turn=1, actions=[_action("a1", "attack", depends_on=["a0"])]),
        ],
        contingencies=contingencies or [],
    )


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class TestPlanStore:
    def test_set_and_get(self):
        store = PlanStore()
        plan = _make_plan()
        store.set_plan(plan)
        assert store.get_plan("f1") is plan
        assert store.last_planning_turn["f1"] == 3
        assert len(store) == 1

    def test_clear(self):
        store = PlanStore()
        store.set_plan(_make_plan())
        store.clear_plan("f1")
        assert store.get_plan("f1") is None
        assert "f1" not in store.last_planning_turn
        store.clear_plan("missing")

    def test_advance_drops_finished_turn(self):
        store = PlanStore()
        store.set_plan(_make_plan())
        store.advance_plans(4)
        plan = store.get_plan("f1")
        assert [tp.turn for tp in plan.turn_plans] == [0]
        assert plan.turn_plans[0].actions[0].id == "a1"
        assert plan.last_updated_turn == 4

    def test_advance_never_below_zero(self):
        store = PlanStore()
        store.set_plan(_make_plan(turn_plans=[TurnPlan(turn=1), TurnPlan(turn=1), TurnPlan(turn=2)]))
        store.advance_plans(4)
        assert [tp.turn for tp in store.get_plan("f1").turn_plans] == [0, 0, 1]
        store.advance_plans(5)
        # only the first turn-0 entry is dropped; the second is clamped at 0
        assert [tp.turn for tp in store.get_plan("f1").turn_plans] == [0, 0]

    def test_confidence_is_clamped(self):
        store = PlanStore()
        store.set_plan(_make_plan(confidence=90.0))
        store.adjust_plan_confidence("f1", 25)
        assert store.get_plan("f1").overall_confidence == 100.0
        store.adjust_plan_confidence("f1", -250)
        assert store.get_plan("f1").overall_confidence == 0.0

    def test_mark_completed_removes_action(self):
        store = PlanStore()
        store.set_plan(_make_plan())
        store.mark_action_completed("f1", "a0")
        assert store.current_turn_actions("f1") == []
        assert [a.id for a in store.next_turn_actions("f1")] == ["a1"]


class TestMarkActionFailed:
    def test_matching_contingency_is_queued(self):
        fallback = _action("fallback", "defend")
        other = PlanContingency(id="c-generic", triggered_by="", trigger_condition="action_failed",
                                description="generic", alternative_actions=[_action("generic", "defend")])
        specific = PlanContingency(id="c-a0", triggered_by="a0", trigger_condition="asset_destroyed",
                                   description="lost the mover", alternative_actions=[fallback])
        store = PlanStore()
        store.set_plan(_make_plan(contingencies=[other, specific]))
        store.mark_action_failed("f1", "a0", "asset gone")

        plan = store.get_plan("f1")
        assert [a.id for a in plan.turn_plans[0].actions] == ["fallback"]
        assert plan.turn_plans[0].reasoning == "Contingency activated: asset gone"
        assert plan.overall_confidence == 40.0

    def test_falls_back_to_action_failed_trigger(self):
        generic = PlanContingency(id="c-generic", triggered_by="", trigger_condition="action_failed",
                                  description="generic", alternative_actions=[_action("generic", "defend")])
        store = PlanStore()
        store.set_plan(_make_plan(contingencies=[generic]))
        store.mark_action_failed("f1", "a1", "blocked")
        plan = store.get_plan("f1")
        assert [a.id for a in plan.turn_plans[0].actions] == ["a0", "generic"]
        assert plan.turn_plans[1].actions == []

    def test_without_contingency_only_confidence_drops(self):
        store = PlanStore()
        store.set_plan(_make_plan(confidence=10.0))
        store.mark_action_failed("f1", "a0", "nope")
        plan = store.get_plan("f1")
        assert plan.turn_plans[0].actions == []
        assert plan.turn_plans[0].reasoning == ""
        assert plan.overall_confidence == 0.0

    def test_unknown_faction_is_ignored(self):
        PlanStore().mark_action_failed("ghost", "a0", "nope")


class TestQueries:
    def test_missing_plan(self):
        store = PlanStore()
        assert store.current_turn_actions("f1") == []
        assert store.next_turn_actions("f1") == []

    def test_upcoming_sorted_by_turn_then_name(self):
        store = PlanStore()
        store.set_plan(_make_plan("f1", "Zeta"))
        store.set_plan(_make_plan("f2", "Alpha", turn_plans=[
            TurnPlan(turn=0, actions=[_action("b0")]),
            TurnPlan(turn=1),
        ]))
        upcoming = store.upcoming_actions()
        assert [(fid, turn) for fid, _, turn, _ in upcoming] == [("f2", 0), ("f1", 0), ("f1", 1)]


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

class TestPlanPersistence:
    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path):
        path = str(tmp_path / "plans.yaml")
        plan = _make_plan(contingencies=[
            PlanContingency(id="c1", triggered_by="a0", trigger_condition="action_failed",
                            description="fallback", alternative_actions=[_action("d", "defend")]),
        ])
        plan.resource_budget = ResourceBudget(current_fac_creds=4, projected_income=[2, 2],
                                              saving_goal=SavingGoal(12, 2, "Save for Fleet"))
        store = PlanStore()
        store.set_plan(plan)
        await save_plans(store, path)

        assert not (tmp_path / "plans.yaml.tmp").exists()
        restored = (await load_plans(path)).get_plan("f1")
        assert restored == plan

    @pytest.mark.asyncio
    async def test_missing_file_gives_empty_store(self, tmp_path):
        store = await load_plans(str(tmp_path / "absent.yaml"))
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_bad_plan_is_skipped(self, tmp_path):
        path = tmp_path / "plans.yaml"
        path.write_text(
            "plans:\n"
            "  - faction_id: broken\n"
            "  - faction_id: ok\n"
            "    primary_objective: {id: o, type: build_army, description: Build}\n",
            encoding="utf-8",
        )
        store = await load_plans(str(path))
        assert store.get_plan("broken") is None
        assert store.get_plan("ok").primary_objective.id == "o"

    @pytest.mark.asyncio
    async def test_loads_into_existing_store(self, tmp_path):
        path = str(tmp_path / "plans.yaml")
        source = PlanStore()
        source.set_plan(_make_plan("f2"))
        await save_plans(source, path)

        target = PlanStore()
        target.set_plan(_make_plan("f1"))
        result = await load_plans(path, target)
        assert result is target
        assert set(target.all_plans()) == {"f1", "f2"}
