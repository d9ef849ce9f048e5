"""Plan store — keeps each AI faction's strategic plan across turns.

Plans are keyed by faction ID.  ``save_plans`` / ``load_plans`` write
and read them as YAML so visible AI intent survives a restart.
"""

from __future__ import annotations

import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import Any, Optional

import yaml

from factionai.models.plan import (
    AIStrategicPlan,
    IdentifiedOpportunity,
    IdentifiedThreat,
    PlanContingency,
    PlannedAction,
    PlannedExpense,
    ResourceBudget,
    SavingGoal,
    StrategicObjective,
    TurnPlan,
)

log = logging.getLogger(__name__)

DEFAULT_PLANS_PATH = "plans.yaml"

FAILED_ACTION_CONFIDENCE_PENALTY = 20


def _clamp_confidence(value: float) -> float:
    return max(0.0, min(100.0, value))


class PlanStore:
    """In-memory plan registry."""

    def __init__(self) -> None:
        self._plans: dict[str, AIStrategicPlan] = {}
        self.last_planning_turn: dict[str, int] = {}

    # -- Basic access ----------------------------------------------------

    def set_plan(self, plan: AIStrategicPlan) -> None:
        """Store or overwrite *plan* for its faction."""
        self._plans[plan.faction_id] = plan
        self.last_planning_turn[plan.faction_id] = plan.created_at_turn

    def get_plan(self, faction_id: str) -> Optional[AIStrategicPlan]:
        return self._plans.get(faction_id)

    def clear_plan(self, faction_id: str) -> None:
        self._plans.pop(faction_id, None)
        self.last_planning_turn.pop(faction_id, None)

    def all_plans(self) -> dict[str, AIStrategicPlan]:
        return dict(self._plans)

    def __len__(self) -> int:
        return len(self._plans)

    # -- Turn bookkeeping ------------------------------------------------

    def advance_plans(self, current_turn: int) -> None:
        """Shift every plan one turn forward.

        The finished turn 0 is dropped and the remaining turn indices are
        decremented (never below 0).
        """
        for plan in self._plans.values():
            if plan.turn_plans and plan.turn_plans[0].turn == 0:
                plan.turn_plans.pop(0)
            for turn_plan in plan.turn_plans:
                turn_plan.turn = max(0, turn_plan.turn - 1)
            plan.last_updated_turn = current_turn

    def adjust_plan_confidence(self, faction_id: str, adjustment: float) -> None:
        """Move the plan's confidence by *adjustment*, kept within 0-100."""
        plan = self._plans.get(faction_id)
        if plan is not None:
            plan.overall_confidence = _clamp_confidence(plan.overall_confidence + adjustment)

    @staticmethod
    def _remove_action(plan: AIStrategicPlan, action_id: str) -> bool:
        for turn_plan in plan.turn_plans:
            for i, action in enumerate(turn_plan.actions):
                if action.id == action_id:
                    del turn_plan.actions[i]
                    return True
        return False

    def mark_action_completed(self, faction_id: str, action_id: str) -> None:
        plan = self._plans.get(faction_id)
        if plan is not None:
            self._remove_action(plan, action_id)

    def mark_action_failed(self, faction_id: str, action_id: str, reason: str) -> None:
        """Drop a failed action, queue its contingency and lower confidence."""
        plan = self._plans.get(faction_id)
        if plan is None:
            return
        self._remove_action(plan, action_id)

        contingency = next(
            (c for c in plan.contingencies if action_id in c.triggered_by or action_id in c.id),
            None,
        )
        if contingency is None:
            contingency = next((c for c in plan.contingencies if c.trigger_condition == "action_failed"), None)
        if contingency is not None and plan.turn_plans:
            first = plan.turn_plans[0]
            first.actions.extend(contingency.alternative_actions)
            first.reasoning = f"Contingency activated: {reason}"
            log.info("[AI_PLAN] %s: contingency %s activated (%s)", plan.faction_name, contingency.id, reason)

        plan.overall_confidence = _clamp_confidence(plan.overall_confidence - FAILED_ACTION_CONFIDENCE_PENALTY)

    # -- Queries ---------------------------------------------------------

    def current_turn_actions(self, faction_id: str) -> list[PlannedAction]:
        return self._actions_for_turn(faction_id, 0)

    def next_turn_actions(self, faction_id: str) -> list[PlannedAction]:
        return self._actions_for_turn(faction_id, 1)

    def _actions_for_turn(self, faction_id: str, turn: int) -> list[PlannedAction]:
        plan = self._plans.get(faction_id)
        if plan is None:
            return []
        turn_plan = next((tp for tp in plan.turn_plans if tp.turn == turn), None)
        return list(turn_plan.actions) if turn_plan else []

    def upcoming_actions(self) -> list[tuple[str, str, int, list[PlannedAction]]]:
        """(faction_id, faction_name, turn, actions) for every non-empty
        turn of every plan, sorted by turn then faction name."""
        result = [
            (faction_id, plan.faction_name, tp.turn, list(tp.actions))
            for faction_id, plan in self._plans.items()
            for tp in plan.turn_plans if tp.actions
        ]
        result.sort(key=lambda item: (item[2], item[1]))
        return result


# ===================================================================
# Persistence
# ===================================================================


async def save_plans(store: PlanStore, path: str = DEFAULT_PLANS_PATH) -> None:
    """Write every stored plan to a YAML file."""
    state: dict[str, Any] = {
        "meta": {"version": 1, "saved_at": time.strftime("%Y-%m-%dT%H:%M:%S")},
        "plans": [asdict(plan) for plan in store.all_plans().values()],
    }

    out = Path(path)
    tmp = out.with_suffix(".yaml.tmp")
    try:
        tmp.write_text(
            yaml.dump(state, default_flow_style=False, allow_unicode=True, sort_keys=False),
            encoding="utf-8",
        )
        tmp.replace(out)
        log.info("AI plans saved to %s (%d plans)", path, len(store))
    except Exception:
        log.exception("Failed to save AI plans to %s", path)
        if tmp.exists():
            tmp.unlink(missing_ok=True)
        raise


async def load_plans(path: str = DEFAULT_PLANS_PATH, store: Optional[PlanStore] = None) -> PlanStore:
    """Load plans from a YAML file into *store* (a new one by default).

    A missing or unreadable file leaves the store empty.  A plan that
    fails to restore is logged and skipped.
    """
    store = store if store is not None else PlanStore()
    plans_file = Path(path)
    if not plans_file.exists():
        log.info("No plans file found at %s", path)
        return store

    try:
        raw = yaml.safe_load(plans_file.read_text(encoding="utf-8"))
    except Exception:
        log.exception("Failed to parse plans file %s", path)
        return store

    if not isinstance(raw, dict):
        log.warning("Plans file %s has unexpected format (not a dict)", path)
        return store

    for plan_dict in raw.get("plans") or []:
        try:
            store.set_plan(_deserialize_plan(plan_dict))
        except Exception:
            log.exception("Failed to restore plan: %s", plan_dict.get("faction_id", "?"))

    log.info("Restored %d AI plans from %s", len(store), path)
    return store


def _deserialize_action(d: dict[str, Any]) -> PlannedAction:
    return PlannedAction(**{k: v for k, v in d.items() if k in PlannedAction.__dataclass_fields__})


def _deserialize_turn_plan(d: dict[str, Any]) -> TurnPlan:
    return TurnPlan(
        turn=d["turn"],
        actions=[_deserialize_action(a) for a in d.get("actions") or []],
        expected_fac_creds=d.get("expected_fac_creds", 0),
        expected_fac_creds_after=d.get("expected_fac_creds_after", 0),
        reasoning=d.get("reasoning", ""),
    )


def _deserialize_objective(d: dict[str, Any]) -> StrategicObjective:
    return StrategicObjective(**{k: v for k, v in d.items() if k in StrategicObjective.__dataclass_fields__})


def _deserialize_contingency(d: dict[str, Any]) -> PlanContingency:
    return PlanContingency(
        id=d["id"],
        triggered_by=d.get("triggered_by", ""),
        trigger_condition=d.get("trigger_condition", "custom"),
        description=d.get("description", ""),
        alternative_actions=[_deserialize_action(a) for a in d.get("alternative_actions") or []],
        priority=d.get("priority", 1),
    )


def _deserialize_budget(d: Optional[dict[str, Any]]) -> ResourceBudget:
    if not d:
        return ResourceBudget()
    saving = d.get("saving_goal")
    return ResourceBudget(
        current_fac_creds=d.get("current_fac_creds", 0),
        projected_income=list(d.get("projected_income") or []),
        planned_expenses=[PlannedExpense(**e) for e in d.get("planned_expenses") or []],
        saving_goal=SavingGoal(**saving) if saving else None,
    )


def _deserialize_plan(d: dict[str, Any]) -> AIStrategicPlan:
    return AIStrategicPlan(
        faction_id=d["faction_id"],
        faction_name=d.get("faction_name", ""),
        created_at_turn=d.get("created_at_turn", 0),
        last_updated_turn=d.get("last_updated_turn", 0),
        plan_horizon=d.get("plan_horizon", 2),
        overall_confidence=_clamp_confidence(d.get("overall_confidence", 50.0)),
        primary_objective=_deserialize_objective(d["primary_objective"]),
        secondary_objectives=[_deserialize_objective(o) for o in d.get("secondary_objectives") or []],
        turn_plans=[_deserialize_turn_plan(tp) for tp in d.get("turn_plans") or []],
        contingencies=[_deserialize_contingency(c) for c in d.get("contingencies") or []],
        resource_budget=_deserialize_budget(d.get("resource_budget")),
        summary=d.get("summary", ""),
        detailed_reasoning=list(d.get("detailed_reasoning") or []),
        identified_threats=[IdentifiedThreat(**t) for t in d.get("identified_threats") or []],
        identified_opportunities=[IdentifiedOpportunity(**o) for o in d.get("identified_opportunities") or []],
    )
