"""Tests for threat assessment."""

import pytest

from factionai.engine.asset_catalog import AssetCatalog
from factionai.engine.threat_assessment import ThreatAssessment, posture_for_ratio
from factionai.models.asset import (
    AssetCategory,
    AssetDefinition,
    AssetType,
    AttackPattern,
    CounterattackPattern,
)
from factionai.models.faction import Faction, FactionAsset, FactionAttributes
from factionai.models.sector import StarSystem

_F = AssetCategory.FORCE


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _make_catalog():
    return AssetCatalog([
        AssetDefinition("fleet", "Fleet", _F, required_rating=4, hp=8,
                        asset_type=AssetType.STARSHIP, attack=AttackPattern(_F, _F, "2d6")),
        AssetDefinition("fort", "Fort", _F, required_rating=2, hp=6,
                        asset_type=AssetType.FACILITY, counterattack=CounterattackPattern("1d6")),
    ])


def _make_systems():
    return [StarSystem(id="a", x=0, y=0), StarSystem(id="b", x=1, y=0), StarSystem(id="c", x=4, y=0)]


def _make_faction(fid, homeworld, assets=(), force=3):
    return Faction(id=fid, name=fid, homeworld=homeworld,
                   attributes=FactionAttributes(force=force, cunning=2, wealth=2),
                   assets=list(assets))


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------

class TestAssetThreatScore:
    def test_full_strength_in_place(self):
        catalog = _make_catalog()
        asset = FactionAsset("e1", "fleet", "a", hp=8, max_hp=8)
        # 4*3 + 8*0.5 + 5 + 7
        assert ThreatAssessment.asset_threat_score(asset, catalog.get("fleet"), 0) == pytest.approx(28.0)

    def test_distance_stealth_and_damage_reduce(self):
        catalog = _make_catalog()
        fleet = catalog.get("fleet")
        full = FactionAsset("e1", "fleet", "a", hp=8, max_hp=8)
        assert ThreatAssessment.asset_threat_score(full, fleet, 1) == pytest.approx(22.4)
        hidden = FactionAsset("e1", "fleet", "a", hp=8, max_hp=8, stealthed=True)
        assert ThreatAssessment.asset_threat_score(hidden, fleet, 0) == pytest.approx(19.6)
        damaged = FactionAsset("e1", "fleet", "a", hp=4, max_hp=8)
        assert ThreatAssessment.asset_threat_score(damaged, fleet, 0) == pytest.approx(13.0)


class TestAssessSystem:
    def test_immediate_threats_within_one_hex(self):
        svc = ThreatAssessment(_make_catalog())
        us = _make_faction("us", "a")
        them = _make_faction("them", "c", assets=[
            FactionAsset("near", "fleet", "b", hp=8, max_hp=8),
            FactionAsset("far", "fleet", "c", hp=8, max_hp=8),
            FactionAsset("wall", "fort", "a", hp=6, max_hp=6),
        ])
        threats = svc.immediate_attack_threats("a", "us", [us, them], _make_systems())
        assert [t.asset_id for t in threats] == ["near"]

    def test_stealthed_assets_hidden_but_counted(self):
        svc = ThreatAssessment(_make_catalog())
        them = _make_faction("them", "c", assets=[
            FactionAsset("ghost", "fleet", "a", hp=8, max_hp=8, stealthed=True),
        ])
        threat = svc.faction_threat(them, _make_systems()[0], _make_systems())
        assert threat.visible_assets == []
        assert threat.military_threat == pytest.approx(19.6 + 6)
        assert threat.closest_asset_distance == 0

    def test_unknown_system(self):
        svc = ThreatAssessment(_make_catalog())
        result = svc.assess_system("zzz", "us", [], _make_systems())
        assert result.system_name == "Unknown"
        assert result.danger_level == 0


class TestSectorOverview:
    def test_missing_faction_gives_empty(self):
        svc = ThreatAssessment(_make_catalog())
        overview = svc.generate_sector_overview("ghost", [], _make_systems())
        assert overview.primary_threat is None
        assert overview.system_threats == {}

    def test_no_enemies_is_aggressive(self):
        svc = ThreatAssessment(_make_catalog())
        us = _make_faction("us", "a", assets=[FactionAsset("u1", "fort", "b", hp=6, max_hp=6)])
        overview = svc.generate_sector_overview("us", [us], _make_systems())
        assert overview.primary_threat is None
        assert overview.recommended_posture == "aggressive"
        assert set(overview.system_threats) == {"a", "b"}
        assert overview.safe_systems == ["a", "b"]

    def test_primary_threat_is_strongest_enemy(self):
        svc = ThreatAssessment(_make_catalog())
        us = _make_faction("us", "a")
        weak = _make_faction("weak", "c", force=1)
        strong = _make_faction("strong", "c", assets=[
            FactionAsset("s1", "fleet", "b", hp=8, max_hp=8),
        ])
        overview = svc.generate_sector_overview("us", [us, weak, strong], _make_systems())
        assert overview.primary_threat.faction_id == "strong"
        assert 0 <= overview.overall_threat_level <= 100


class TestPosture:
    @pytest.mark.parametrize("ratio,posture", [
        (0.0, "aggressive"), (0.5, "aggressive"), (0.8, "balanced"),
        (1.2, "defensive"), (1.6, "turtle"),
    ])
    def test_thresholds(self, ratio, posture):
        assert posture_for_ratio(ratio) == posture


class TestDefense:
    def test_defensive_strength(self):
        svc = ThreatAssessment(_make_catalog())
        us = _make_faction("us", "a", assets=[
            FactionAsset("w1", "fort", "a", hp=6, max_hp=6),
            FactionAsset("w2", "fort", "b", hp=6, max_hp=6),
        ])
        systems = _make_systems()
        # b: (6 + 3.5) * 1.2 in place, half of that from a
        assert svc.calculate_defensive_strength(us, "b", systems) == pytest.approx(11.4 * 1.5)
        assert svc.calculate_defensive_strength(us, "a", systems) == pytest.approx(11.4 * 1.5 * 1.3)
        assert svc.calculate_defensive_strength(us, "zzz", systems) == 0.0

    def test_no_threat_means_no_retreat(self):
        svc = ThreatAssessment(_make_catalog())
        us = _make_faction("us", "a")
        advice = svc.should_consider_retreat("a", us, [us], _make_systems())
        assert not advice.should_retreat
        assert advice.urgency == "low"

    def test_overwhelming_threat_means_retreat(self):
        svc = ThreatAssessment(_make_catalog())
        us = _make_faction("us", "a")
        them = _make_faction("them", "c", assets=[
            FactionAsset(f"e{i}", "fleet", "a", hp=8, max_hp=8) for i in range(3)
        ])
        advice = svc.should_consider_retreat("a", us, [us, them], _make_systems())
        assert advice.should_retreat
        assert advice.urgency == "critical"
