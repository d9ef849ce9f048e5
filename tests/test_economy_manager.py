"""Tests for AI repairs and purchases."""

from factionai.engine.asset_catalog import AssetCatalog
from factionai.engine.economy_manager import (
    AIEconomyManager,
    EconomicPlan,
    PurchaseRecommendation,
    RepairDecision,
    calculate_repair_cost,
    calculate_repair_reserve,
    get_valid_purchase_locations,
    select_repairs_within_budget,
)
from factionai.engine.goal_selection import StrategicIntent
from factionai.engine.threat_assessment import SectorThreatOverview, SystemThreatInfo
from factionai.models.asset import (
    AssetCategory,
    AssetDefinition,
    AssetType,
    AttackPattern,
    CounterattackPattern,
)
from factionai.models.faction import Faction, FactionAsset, FactionAttributes
from factionai.models.sector import PrimaryWorld, StarSystem

_F = AssetCategory.FORCE
_W = AssetCategory.WEALTH


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_catalog():
    return AssetCatalog([
        AssetDefinition("troops", "Troops", _F, required_rating=1, hp=4, cost=3,
                        asset_type=AssetType.MILITARY_UNIT,
                        attack=AttackPattern(_F, _F, "1d6"), counterattack=CounterattackPattern("1d4")),
        AssetDefinition("fleet", "Fleet", _F, required_rating=4, hp=8, cost=12, tech_level=4,
                        asset_type=AssetType.STARSHIP, attack=AttackPattern(_F, _F, "2d6")),
        AssetDefinition("dreadnought", "Dreadnought", _F, required_rating=8, hp=20, cost=25),
        AssetDefinition("harvesters", "Harvesters", _W, required_rating=1, hp=4, cost=2,
                        asset_type=AssetType.FACILITY),
        AssetDefinition("base_of_influence", "Base of Influence", _W),
    ])


def _make_faction(assets=(), creds=20, force=4):
    return Faction(
        id="us", name="Us", homeworld="home",
        attributes=FactionAttributes(force=force, cunning=2, wealth=2),
        fac_creds=creds, assets=list(assets),
    )


def _systems(tech_level=4):
    return [StarSystem(id="home", primary_world=PrimaryWorld(tech_level=tech_level))]


def _repair(cost, priority, aid="a1"):
    return RepairDecision(aid, aid, "home", 1, 4, 3, cost, priority, "")


# ---------------------------------------------------------------------------
# Module functions
# ---------------------------------------------------------------------------

class TestRepairMath:
    def test_triangular_cost(self):
        assert calculate_repair_cost(5, 2) == 6
        assert calculate_repair_cost(4, 4) == 1
        assert calculate_repair_cost(0, 3) == 0

    def test_reserve_scales_with_threat(self):
        assert calculate_repair_reserve(10, 0, 100) == 0
        assert calculate_repair_reserve(10, 50, 100) == 4
        assert calculate_repair_reserve(10, 100, 100) == 8
        assert calculate_repair_reserve(10, 100, 3) == 3

    def test_select_repairs_greedily(self):
        chosen = select_repairs_within_budget(
            [_repair(5, 90, "a"), _repair(4, 80, "b"), _repair(3, 70, "c")], 8)
        assert [d.asset_id for d in chosen] == ["a", "c"]


class TestPurchaseLocations:
    def test_homeworld_and_bases(self):
        faction = _make_faction([
            FactionAsset("b1", "base_of_influence", "outpost", hp=4, max_hp=4),
            FactionAsset("t1", "troops", "elsewhere", hp=4, max_hp=4),
        ])
        assert get_valid_purchase_locations(faction) == ["home", "outpost"]


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class TestRepairDecisions:
    def test_sorted_by_priority(self):
        mgr = AIEconomyManager(_make_catalog())
        faction = _make_faction([
            FactionAsset("h1", "harvesters", "home", hp=3, max_hp=4),
            FactionAsset("f1", "fleet", "home", hp=2, max_hp=8),
            FactionAsset("t1", "troops", "home", hp=4, max_hp=4),
        ])
        decisions = mgr.generate_repair_decisions(faction, threat_level=0)
        assert [d.asset_id for d in decisions] == ["f1", "h1"]
        fleet = decisions[0]
        # 6 damage healed 4 per batch -> 2 batches
        assert fleet.repair_cost == 3
        assert fleet.priority >= 50


class TestCanPurchase:
    def test_rating_required(self):
        mgr = AIEconomyManager(_make_catalog())
        ok, reason = mgr.can_purchase(_make_faction(force=2), _make_catalog().get("fleet"), "home", _systems())
        assert not ok
        assert "Requires Force 4" in reason

    def test_tech_level_required(self):
        mgr = AIEconomyManager(_make_catalog())
        ok, reason = mgr.can_purchase(_make_faction(), _make_catalog().get("fleet"), "home", _systems(2))
        assert not ok
        assert "TL2" in reason

    def test_unknown_location_skips_tech_check(self):
        mgr = AIEconomyManager(_make_catalog())
        ok, _ = mgr.can_purchase(_make_faction(), _make_catalog().get("fleet"), "nowhere", _systems(2))
        assert ok

    def test_over_limit_is_flagged(self):
        mgr = AIEconomyManager(_make_catalog())
        faction = _make_faction(
            [FactionAsset(f"t{i}", "troops", "home", hp=4, max_hp=4) for i in range(4)])
        ok, reason = mgr.can_purchase(faction, _make_catalog().get("troops"), "home", _systems())
        assert ok
        assert "exceed" in reason


class TestPurchaseRecommendations:
    def test_budget_rating_and_base_filtering(self):
        mgr = AIEconomyManager(_make_catalog())
        recs = mgr.generate_purchase_recommendations(_make_faction(), _systems(), StrategicIntent(), budget=10)
        ids = {r.definition.id for r in recs}
        assert ids == {"troops", "harvesters"}
        assert recs == sorted(recs, key=lambda r: r.score, reverse=True)
        assert all(r.location == "home" for r in recs)

    def test_military_focus_prefers_attackers(self):
        mgr = AIEconomyManager(_make_catalog())
        recs = mgr.generate_purchase_recommendations(
            _make_faction(), _systems(), StrategicIntent(primary_focus="military", aggression_level=70), budget=30)
        assert recs[0].definition.attack is not None


class TestEconomicPlan:
    def test_threat_reserves_for_repairs(self):
        mgr = AIEconomyManager(_make_catalog())
        faction = _make_faction([FactionAsset("f1", "fleet", "home", hp=2, max_hp=8)], creds=10)
        threats = SectorThreatOverview(faction_id="us", system_threats={
            "home": SystemThreatInfo("home", 100.0, 100.0, 0.0, 0.0),
        })
        plan = mgr.generate_economic_plan(faction, _systems(), threats, StrategicIntent())
        assert plan.threat_level == 100.0
        assert plan.total_repair_cost == 3
        assert plan.repair_reserve == 3
        assert plan.spending_budget == 7

    def test_no_damage_no_reserve(self):
        mgr = AIEconomyManager(_make_catalog())
        plan = mgr.generate_economic_plan(_make_faction(creds=5), _systems(),
                                          SectorThreatOverview.empty("us"), StrategicIntent())
        assert plan.repair_decisions == []
        assert plan.repair_reserve == 0
        assert plan.spending_budget == 5


class TestEconomyAction:
    def _plan(self, repairs=(), reserve=0, budget=0, purchase=None):
        return EconomicPlan("us", 20, 0.0, reserve, budget, list(repairs), purchase)

    def _purchase(self, cost):
        definition = AssetDefinition("x", "X", _F, cost=cost)
        return PurchaseRecommendation(definition, "home", 10, 10, 0, 0, 0, 0, "")

    def test_critical_repair_first(self):
        action = AIEconomyManager.get_economy_action(
            self._plan([_repair(3, 60)], reserve=3, budget=10, purchase=self._purchase(2)))
        assert action.action == "repair"
        assert action.repair.asset_id == "a1"

    def test_repair_needs_reserve(self):
        action = AIEconomyManager.get_economy_action(
            self._plan([_repair(3, 60)], reserve=2, budget=10, purchase=self._purchase(2)))
        assert action.action == "purchase"

    def test_low_priority_repair_skipped(self):
        action = AIEconomyManager.get_economy_action(self._plan([_repair(1, 20)], reserve=5))
        assert action.action == "none"

    def test_purchase_within_budget(self):
        action = AIEconomyManager.get_economy_action(self._plan(budget=4, purchase=self._purchase(4)))
        assert action.action == "purchase"
        assert action.details == "Buy X at home"

    def test_nothing_to_do(self):
        action = AIEconomyManager.get_economy_action(self._plan(budget=1, purchase=self._purchase(4)))
        assert action.action == "none"
