"""Tests for the asset YAML loader and the asset catalog."""

from pathlib import Path

import pytest

from factionai.engine.asset_catalog import AssetCatalog
from factionai.loaders.asset_loader import load_asset_definitions, load_catalog
from factionai.models.asset import AssetCategory, AssetDefinition, AssetType
from factionai.models.faction import Faction, FactionAttributes

CONFIG_ASSETS = Path(__file__).resolve().parent.parent / "config" / "assets.yaml"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _write(tmp_path, text):
    path = tmp_path / "assets.yaml"
    path.write_text(text)
    return path


_SAMPLE = """
force:
  force_1_security_personnel:
    name: Security Personnel
    rating: 1
    hp: 3
    cost: 2
    type: Military Unit
    attack: {attacker: force, defender: Force, damage: 1d3+1}
    counterattack: 1d4
    flags: [A]
  force_4_strike_fleet:
    name: Strike Fleet
    rating: 4
    hp: 8
    cost: 12
    tech_level: 4
    type: Starship
    attack: {attacker: Force, defender: Force, damage: 2d6}
wealth:
  wealth_1_harvesters:
    name: Harvesters
    hp: 4
    cost: 2
    type: Facility
special:
  base_of_influence:
    name: Base of Influence
    category: Wealth
    type: Special
"""


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

class TestLoadAssetDefinitions:
    def test_parses_sections(self, tmp_path):
        defs = {d.id: d for d in load_asset_definitions(_write(tmp_path, _SAMPLE))}
        assert set(defs) == {
            "force_1_security_personnel", "force_4_strike_fleet",
            "wealth_1_harvesters", "base_of_influence",
        }
        assert defs["force_4_strike_fleet"].category is AssetCategory.FORCE
        assert defs["wealth_1_harvesters"].category is AssetCategory.WEALTH
        assert defs["base_of_influence"].category is AssetCategory.WEALTH

    def test_parses_attack_and_counter(self, tmp_path):
        defs = {d.id: d for d in load_asset_definitions(_write(tmp_path, _SAMPLE))}
        security = defs["force_1_security_personnel"]
        assert security.attack.attacker_attribute is AssetCategory.FORCE
        assert security.attack.damage == "1d3+1"
        assert security.counterattack.damage == "1d4"
        assert security.flags.has_action
        assert not security.flags.requires_permission

    def test_defaults(self, tmp_path):
        defs = {d.id: d for d in load_asset_definitions(_write(tmp_path, _SAMPLE))}
        harvesters = defs["wealth_1_harvesters"]
        assert harvesters.attack is None
        assert harvesters.counterattack is None
        assert harvesters.required_rating == 1
        assert harvesters.tech_level == 0

    def test_malformed_dice_rejected(self, tmp_path):
        path = _write(tmp_path, """
force:
  bad:
    attack: {attacker: Force, defender: Force, damage: 2x6}
""")
        with pytest.raises(ValueError, match="malformed dice"):
            load_asset_definitions(path)

    def test_unknown_category_rejected(self, tmp_path):
        path = _write(tmp_path, """
force:
  bad:
    attack: {attacker: Charm, defender: Force, damage: 1d6}
""")
        with pytest.raises(ValueError, match="unknown category"):
            load_asset_definitions(path)

    def test_special_needs_category(self, tmp_path):
        path = _write(tmp_path, "special:\n  odd: {name: Odd}\n")
        with pytest.raises(ValueError):
            load_asset_definitions(path)

    def test_bundled_catalog_loads(self):
        catalog = load_catalog(CONFIG_ASSETS)
        assert len(catalog) > 30
        boi = catalog.get("base_of_influence")
        assert boi is not None
        assert boi.is_base_of_influence


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------

def _make_catalog():
    return AssetCatalog([
        AssetDefinition("f1", "F1", AssetCategory.FORCE, required_rating=1, tech_level=0),
        AssetDefinition("f4", "F4", AssetCategory.FORCE, required_rating=4, tech_level=4,
                        asset_type=AssetType.STARSHIP),
        AssetDefinition("c2", "C2", AssetCategory.CUNNING, required_rating=2),
        AssetDefinition("base_of_influence", "Base of Influence", AssetCategory.WEALTH),
    ])


class TestAssetCatalog:
    def test_lookup(self):
        catalog = _make_catalog()
        assert catalog.get("f4").name == "F4"
        assert catalog.get("missing") is None

    def test_by_category(self):
        ids = {d.id for d in _make_catalog().by_category(AssetCategory.FORCE)}
        assert ids == {"f1", "f4"}

    def test_purchasable_checks_rating_and_tech(self):
        faction = Faction(id="a", attributes=FactionAttributes(force=4, cunning=1, wealth=3))
        catalog = _make_catalog()
        assert {d.id for d in catalog.purchasable(faction, 4)} == {"f1", "f4"}
        assert {d.id for d in catalog.purchasable(faction, 2)} == {"f1"}

    def test_base_of_influence_never_purchasable(self):
        faction = Faction(id="a", attributes=FactionAttributes(force=8, cunning=8, wealth=8))
        assert "base_of_influence" not in {d.id for d in _make_catalog().purchasable(faction, 5)}

    def test_starship_is_mobile(self):
        catalog = _make_catalog()
        assert catalog.get("f4").is_mobile
        assert not catalog.get("f1").is_mobile
