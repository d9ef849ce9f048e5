"""Faction AI runner entry point.

Initializes all components and plays a number of faction turns:
1. Load configuration (AI settings, asset catalog, scenario)
2. Restore stored AI plans
3. Create engine services (factions, AI controller, turn loop)
4. Wire up event handlers
5. Run the turn loop

Usage:
    python -m factionai.main --turns 5 --difficulty hard
    # or via entry point:
    factionai --scenario config/scenarios/default.yaml
"""

from __future__ import annotations

import asyncio
import logging
import os
import random
import signal
import sys
from dataclasses import dataclass, field
from typing import Optional

from factionai.engine.ai_controller import AIController
from factionai.engine.asset_catalog import AssetCatalog
from factionai.engine.difficulty_scaler import check_difficulty
from factionai.engine.faction_service import FactionService
from factionai.engine.turn_loop import TurnLoop
from factionai.loaders.ai_config_loader import AIConfig, load_ai_config
from factionai.loaders.asset_loader import load_catalog
from factionai.loaders.sector_loader import Scenario, load_scenario
from factionai.persistence.plan_store import PlanStore, load_plans, save_plans
from factionai.util.events import AIActionExecuted, EventBus, FactionTurnFailed, GoalChanged, PlanReplaced

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Default paths — relative to the working directory
# ---------------------------------------------------------------------------
DEFAULT_CONFIG_PATH = "config/ai.yaml"
DEFAULT_ASSETS_PATH = "config/assets.yaml"
DEFAULT_SCENARIO_PATH = "config/scenarios/default.yaml"
DEFAULT_PLANS_PATH = "plans.yaml"

# ---------------------------------------------------------------------------
# Container for all loaded configuration
# ---------------------------------------------------------------------------


@dataclass
class Configuration:
    """Holds all data loaded from config files."""

    ai: AIConfig = field(default_factory=AIConfig)
    catalog: AssetCatalog = field(default_factory=AssetCatalog)
    scenario: Optional[Scenario] = None


# ---------------------------------------------------------------------------
# Container for all services (makes passing around easier)
# ---------------------------------------------------------------------------


@dataclass
class Services:
    """Holds references to all engine services."""

    event_bus: Optional[EventBus] = None
    faction_service: Optional[FactionService] = None
    plan_store: Optional[PlanStore] = None
    controller: Optional[AIController] = None
    turn_loop: Optional[TurnLoop] = None


# ===================================================================
# 1. Load configuration
# ===================================================================


def load_configuration(
    config_path: str = DEFAULT_CONFIG_PATH,
    scenario_path: str = DEFAULT_SCENARIO_PATH,
    assets_path: str = "",
) -> Configuration:
    """Load AI settings, the asset catalog and the scenario.

    Args:
        config_path: AI settings YAML.
        scenario_path: Scenario YAML (sector and factions).
        assets_path: Asset definitions YAML (default: assets.yaml next to
            the AI settings).
    """
    log.info("Loading configuration …")

    if not assets_path:
        assets_path = os.path.join(os.path.dirname(config_path) or ".", "assets.yaml")

    ai_cfg = load_ai_config(config_path)
    log.info("  ai:        difficulty=%s seed=%s", ai_cfg.difficulty, ai_cfg.seed)

    catalog = load_catalog(assets_path)
    log.info("  assets:    %d definitions from %s", len(catalog), assets_path)

    scenario = load_scenario(scenario_path, catalog)
    log.info("  scenario:  %d systems, %d factions from %s",
             len(scenario.sector.systems), len(scenario.factions), scenario_path)

    # A player faction named by the scenario wins over the config file
    if scenario.player_faction_id is not None:
        ai_cfg.player_faction_id = scenario.player_faction_id

    return Configuration(ai=ai_cfg, catalog=catalog, scenario=scenario)


# ===================================================================
# 2. Restore stored plans
# ===================================================================


async def init_persistence(plans_path: str = DEFAULT_PLANS_PATH) -> PlanStore:
    """Load stored AI plans, or start with none."""
    log.info("Initializing persistence …")
    store = await load_plans(plans_path)
    log.info("  plans:     %d restored", len(store))
    return store


# ===================================================================
# 3. Create engine services
# ===================================================================


def create_services(config: Configuration, plan_store: PlanStore, plans_path: str) -> Services:
    """Instantiate all engine services with proper dependency injection."""
    log.info("Creating services …")

    event_bus = EventBus()
    faction_service = FactionService(config.catalog)
    for faction in config.scenario.factions:
        faction_service.register(faction)
    faction_service.current_turn = 1

    rng = random.Random(config.ai.seed)
    controller = AIController(config.catalog, faction_service, plan_store, event_bus,
                              config=config.ai, rng=rng)
    turn_loop = TurnLoop(controller, faction_service, plan_store,
                         config.scenario.sector.systems, plans_path=plans_path)

    log.info("  all services created")
    return Services(
        event_bus=event_bus,
        faction_service=faction_service,
        plan_store=plan_store,
        controller=controller,
        turn_loop=turn_loop,
    )


# ===================================================================
# 4. Wire up event handlers
# ===================================================================


def wire_events(services: Services) -> None:
    """Log AI decisions as they happen."""
    log.info("Wiring event handlers …")
    bus = services.event_bus

    bus.on(GoalChanged, lambda evt: log.info("Goal: %s -> %s", evt.faction_id, evt.goal_type.value))
    bus.on(PlanReplaced, lambda evt: log.info("Plan: %s replanned on turn %d", evt.faction_id, evt.turn))
    bus.on(AIActionExecuted, lambda evt: log.info("Action: %s %s", evt.faction_name, evt.description))
    bus.on(FactionTurnFailed, lambda evt: log.error("Turn failed: %s (%s)", evt.faction_name, evt.error))

    log.info("  event handlers registered")


# ===================================================================
# 5. Run turns
# ===================================================================


async def run_turns(services: Services, turns: int, difficulty: Optional[str] = None) -> None:
    """Play *turns* game turns, stopping early on SIGINT / SIGTERM."""
    log.info("Running %d turns …", turns)
    loop = asyncio.get_running_loop()

    def _request_shutdown() -> None:
        log.info("Shutdown signal received — stopping after this turn …")
        services.turn_loop.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_shutdown)
        except NotImplementedError:
            # No signal handlers on this platform's event loop
            pass

    await services.turn_loop.run(turns, difficulty)

    for faction in services.faction_service.all_factions:
        log.info("  %-24s hp=%d/%d creds=%d assets=%d goal=%s",
                 faction.name, faction.attributes.hp, faction.attributes.max_hp,
                 faction.fac_creds, len(faction.assets),
                 faction.goal.type.value if faction.goal else "-")
    for faction_id, name, turn, actions in services.plan_store.upcoming_actions():
        log.info("  planned  %-24s +%d: %s", name, turn, ", ".join(a.description for a in actions))


# ===================================================================
# Entry points
# ===================================================================


async def _start(config_path: str, scenario_path: str, plans_path: str,
                 turns: Optional[int], difficulty: Optional[str]) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    log.info("=== Faction AI starting ===")

    # 1. Load configuration
    config = load_configuration(config_path, scenario_path)
    if difficulty is not None:
        config.ai.difficulty = check_difficulty(difficulty)

    # 2. Restore plans
    plan_store = await init_persistence(plans_path)

    # 3. Create services
    services = create_services(config, plan_store, plans_path)

    # 4. Wire event handlers
    wire_events(services)

    # 5. Play
    await run_turns(services, turns if turns is not None else config.ai.turns)

    try:
        await save_plans(plan_store, plans_path)
    except Exception:
        log.exception("Plan save failed")
    log.info("  goodbye")


def _arg(name: str) -> Optional[str]:
    """Value following *name* on the command line, or None."""
    if name not in sys.argv:
        return None
    idx = sys.argv.index(name)
    if idx + 1 >= len(sys.argv):
        print(f"Error: {name} requires an argument", file=sys.stderr)
        sys.exit(1)
    return sys.argv[idx + 1]


def main() -> None:
    """Entry point for the faction AI runner.

    Supports command-line arguments:
        --config <path>      AI settings (default: config/ai.yaml)
        --scenario <path>    Scenario (default: config/scenarios/default.yaml)
        --turns <n>          Turns to play (default: from the AI settings)
        --difficulty <name>  easy, normal, medium, hard or expert
        --plans <path>       Plan store file (default: plans.yaml)
    """
    turns_arg = _arg("--turns")
    try:
        turns = int(turns_arg) if turns_arg is not None else None
    except ValueError:
        print("Error: --turns requires an integer", file=sys.stderr)
        sys.exit(1)

    asyncio.run(_start(
        config_path=_arg("--config") or DEFAULT_CONFIG_PATH,
        scenario_path=_arg("--scenario") or DEFAULT_SCENARIO_PATH,
        plans_path=_arg("--plans") or DEFAULT_PLANS_PATH,
        turns=turns,
        difficulty=_arg("--difficulty"),
    ))


if __name__ == "__main__":
    main()
