"""AI turn records: phases, progress status and the action queue."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Optional

from factionai.models.effects import Effect
from factionai.models.faction import GoalType

if TYPE_CHECKING:
    from factionai.engine.difficulty_scaler import DifficultyAdjustedResult
    from factionai.engine.economy_manager import EconomicPlan
    from factionai.engine.goal_selection import StrategicIntent
    from factionai.engine.influence_map import InfluenceMap
    from factionai.engine.threat_assessment import SectorThreatOverview
    from factionai.engine.utility_scorer import ScoredAction
    from factionai.models.faction import Faction
    from factionai.models.plan import AIStrategicPlan


class AITurnPhase(Enum):
    """Phases of one faction's AI turn, in order."""

    IDLE = "idle"
    ANALYSIS = "analysis"
    GOAL = "goal"
    PLANNING = "planning"
    ECONOMY = "economy"
    SCORING = "scoring"
    EXECUTION = "execution"
    COMPLETE = "complete"


@dataclass(frozen=True)
class AITurnStatus:
    """Progress report sent to observers during a faction's turn.

    Attributes:
        faction_id: Faction taking the turn.
        faction_name: Its display name.
        phase: Current phase.
        progress: 0-100.
        current_action: Description of the action being executed, if any.
        actions_completed: Actions finished so far.
        total_actions: Length of the action queue.
        is_complete: True once the phase is ``complete``.
        error: Error message when the turn failed.
    """

    faction_id: str
    faction_name: str
    phase: AITurnPhase
    progress: float = 0.0
    current_action: Optional[str] = None
    actions_completed: int = 0
    total_actions: int = 0
    is_complete: bool = False
    error: Optional[str] = None


@dataclass(frozen=True)
class QueuedAction:
    """One entry of a faction's action queue.

    Attributes:
        id: Queue entry ID.
        type: move, attack, defend, expand, repair or purchase.
        description: Human-readable description shown while executing.
        effects: Effects applied, in order, when the action runs.
        delay_ms: Milliseconds to wait before applying the effects.
        planned_action_id: Step of the strategic plan this action carries
            out, if any.
    """

    id: str
    type: str
    description: str
    effects: tuple[Effect, ...] = ()
    delay_ms: float = 0.0
    planned_action_id: Optional[str] = None


@dataclass
class BatchReport:
    """Outcome of one batch of AI turns.

    Attributes:
        completed: Faction IDs whose turn finished, in processing order.
        errors: Faction ID -> error message for failed turns.
    """

    completed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> list[str]:
        return list(self.errors)


# -- Phase results -------------------------------------------------------

@dataclass
class AnalysisResult:
    """Output of the analysis phase."""

    influence_map: InfluenceMap
    threat_overview: SectorThreatOverview


@dataclass
class GoalResult:
    """Output of the goal phase.

    Attributes:
        strategic_intent: Focus and aggression for the rest of the turn.
        goal_changed: Whether a new goal was committed.
        new_goal_type: The committed goal, when one was.
    """

    strategic_intent: StrategicIntent
    goal_changed: bool = False
    new_goal_type: Optional[GoalType] = None


@dataclass
class AITurnPlan:
    """Everything one faction decided this turn, plus its action queue.

    ``execute_ai_turn`` drains ``action_queue`` in order.
    """

    faction: Faction
    difficulty: str
    analysis: AnalysisResult
    goal: GoalResult
    strategic_plan: Optional[AIStrategicPlan]
    economy: EconomicPlan
    scoring: DifficultyAdjustedResult
    selected_actions: list[ScoredAction] = field(default_factory=list)
    action_queue: list[QueuedAction] = field(default_factory=list)
    reasoning: list[str] = field(default_factory=list)
