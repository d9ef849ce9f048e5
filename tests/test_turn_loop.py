"""Tests for the turn loop."""

import random

import pytest

from factionai.engine.ai_controller import AIController
from factionai.engine.asset_catalog import AssetCatalog
from factionai.engine.faction_service import FactionService
from factionai.engine.turn_loop import TurnLoop
from factionai.loaders.ai_config_loader import AIConfig
from factionai.models.asset import AssetCategory, AssetDefinition, AssetType
from factionai.models.faction import Faction, FactionAsset, FactionAttributes
from factionai.models.sector import StarSystem
from factionai.persistence.plan_store import PlanStore, load_plans
from factionai.util.events import EventBus


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _no_sleep(seconds):
    return None


def _make_loop(plans_path=None):
    catalog = AssetCatalog([
        AssetDefinition("troops", "Troops", AssetCategory.FORCE, required_rating=1, hp=4, cost=3,
                        asset_type=AssetType.MILITARY_UNIT),
        AssetDefinition("base_of_influence", "Base of Influence", AssetCategory.WEALTH),
    ])
    service = FactionService(catalog)
    service.register(Faction(
        id="a", name="Alpha", homeworld="home",
        attributes=FactionAttributes(force=3, cunning=2, wealth=3),
        assets=[FactionAsset("t1", "troops", "home", hp=4, max_hp=4)],
    ))
    store = PlanStore()
    controller = AIController(catalog, service, store, EventBus(), config=AIConfig(),
                              rng=random.Random(5), sleep=_no_sleep)
    systems = [StarSystem(id="home", name="Home")]
    return TurnLoop(controller, service, store, systems, plans_path=plans_path), service, store


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestTurnLoop:
    @pytest.mark.asyncio
    async def test_step_runs_turn_and_pays_income(self):
        loop, service, store = _make_loop()
        report = await loop.step()
        assert report.completed == ["a"]
        assert loop.turn == 2
        assert loop.reports == [report]
        assert service.current_turn == 1
        # ceil(3/2) + (3+2)//4
        assert service.get("a").fac_creds == 3
        assert store.get_plan("a").last_updated_turn == 1
        assert loop.last_turn_duration_ms >= 0

    @pytest.mark.asyncio
    async def test_run_plays_requested_turns(self):
        loop, service, _ = _make_loop()
        reports = await loop.run(3)
        assert len(reports) == 3
        assert loop.turn == 4
        assert service.current_turn == 3
        assert not loop.is_running

    @pytest.mark.asyncio
    async def test_stop_ends_after_current_turn(self):
        loop, _, _ = _make_loop()
        reports = await loop.run(5, on_status=lambda status: loop.stop())
        assert len(reports) == 1

    @pytest.mark.asyncio
    async def test_plans_saved_each_turn(self, tmp_path):
        path = str(tmp_path / "plans.yaml")
        loop, _, _ = _make_loop(plans_path=path)
        await loop.step()
        restored = await load_plans(path)
        assert restored.get_plan("a").faction_name == "Alpha"
