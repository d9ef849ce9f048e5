"""Turn loop — advances the game one faction turn round at a time.

Each game turn:
1. Run every AI faction's turn (sequentially, via the AIController)
2. Shift stored plans one turn forward
3. Pay faction income
4. Save plans (when a plans file is configured)
"""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING, Optional

from factionai.persistence.plan_store import save_plans

if TYPE_CHECKING:
    from factionai.engine.ai_controller import AIController, StatusCallback
    from factionai.engine.faction_service import FactionService
    from factionai.models.sector import StarSystem
    from factionai.models.turn import BatchReport
    from factionai.persistence.plan_store import PlanStore

log = logging.getLogger(__name__)


class TurnLoop:
    """Drives consecutive game turns.

    Args:
        controller: Runs the AI turns.
        faction_service: Owns faction state and pays income.
        plan_store: Stored plans, advanced after every turn.
        systems: Systems of the sector.
        plans_path: Plans are saved here after every turn when set.
    """

    def __init__(
        self,
        controller: AIController,
        faction_service: FactionService,
        plan_store: PlanStore,
        systems: list[StarSystem],
        plans_path: Optional[str] = None,
    ) -> None:
        self._controller = controller
        self._factions = faction_service
        self._plans = plan_store
        self._systems = systems
        self._plans_path = plans_path
        self._running = False

        # --- Monitoring counters ---
        self.turn: int = max(1, faction_service.current_turn)
        self.last_turn_duration_ms: float = 0.0
        self.reports: list[BatchReport] = []

    @property
    def is_running(self) -> bool:
        return self._running

    def stop(self) -> None:
        """Stop after the turn in progress."""
        self._running = False

    async def run(self, turns: int, difficulty: Optional[str] = None,
                  on_status: Optional[StatusCallback] = None) -> list[BatchReport]:
        """Play *turns* game turns, or fewer when stopped."""
        self._running = True
        played: list[BatchReport] = []
        for _ in range(turns):
            if not self._running:
                break
            played.append(await self.step(difficulty, on_status))
        self._running = False
        return played

    async def step(self, difficulty: Optional[str] = None,
                   on_status: Optional[StatusCallback] = None) -> BatchReport:
        """Play one game turn."""
        t0 = time.monotonic()
        self._factions.current_turn = self.turn

        # 1. AI factions act
        report = await self._controller.run_ai_turns(
            self._factions.all_factions, self._systems, self.turn, difficulty, on_status)

        # 2. Plans move one turn forward
        self._plans.advance_plans(self.turn)

        # 3. Income
        self._factions.process_income()

        # 4. Persist visible intent
        if self._plans_path:
            await save_plans(self._plans, self._plans_path)

        self.last_turn_duration_ms = (time.monotonic() - t0) * 1000
        log.info("Turn %d finished in %.0f ms: %d completed, %d failed",
                 self.turn, self.last_turn_duration_ms, len(report.completed), len(report.failed))
        self.reports.append(report)
        self.turn += 1
        return report
