"""Influence map — spatial control analysis over the sector.

Every asset projects influence onto nearby systems:
- Base influence scales with the asset's required rating
- Asset type sets range and a multiplier (starships reach further,
  facilities anchor locally)
- Influence halves per hex of distance, shrinks with damage and is
  mostly hidden while stealthed
- Bases of Influence are fixed anchors worth 10

From the summed influence each system is classified, from one faction's
perspective, as friendly, enemy, contested or unoccupied.

The map is recomputed every analysis phase and never persisted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from factionai.models.asset import AssetCategory, AssetDefinition, AssetType
from factionai.util.hex_math import system_distance

if TYPE_CHECKING:
    from factionai.engine.asset_catalog import AssetCatalog
    from factionai.models.faction import Faction, FactionAsset
    from factionai.models.sector import StarSystem

log = logging.getLogger(__name__)

FALLOFF = 0.5
HOMEWORLD_INFLUENCE = 5
UNOCCUPIED_THRESHOLD = 2
CONTESTED_THRESHOLD = 5

# asset type -> (range, multiplier)
_TYPE_PROJECTION: dict[str, tuple[int, float]] = {
    AssetType.STARSHIP: (2, 1.2),
    AssetType.FACILITY: (0, 1.5),
    AssetType.LOGISTICS_FACILITY: (0, 1.5),
    AssetType.MILITARY_UNIT: (1, 1.3),
    AssetType.SPECIAL_FORCES: (1, 0.8),
    AssetType.TACTIC: (0, 0.5),
}


@dataclass
class HexInfluence:
    """Summed influence on one system.

    Attributes:
        system_id: The system.
        force: Military influence from all factions.
        cunning: Covert influence from all factions.
        wealth: Economic influence from all factions.
        total: force + cunning + wealth.
        controlling_faction_id: Faction with the highest influence, if any.
        contested_level: 0 (uncontested) to 10 (evenly split).
        by_faction: Faction ID -> that faction's influence here,
            including the homeworld bonus.
    """

    system_id: str
    force: float = 0.0
    cunning: float = 0.0
    wealth: float = 0.0
    total: float = 0.0
    controlling_faction_id: Optional[str] = None
    contested_level: int = 0
    by_faction: dict[str, float] = field(default_factory=dict)

    def add(self, category: AssetCategory, amount: float) -> None:
        if category is AssetCategory.FORCE:
            self.force += amount
        elif category is AssetCategory.CUNNING:
            self.cunning += amount
        else:
            self.wealth += amount


@dataclass
class InfluenceMap:
    """One faction's view of who controls which system.

    The four classification lists partition the analysed systems.
    """

    faction_id: str
    hexes: dict[str, HexInfluence] = field(default_factory=dict)
    friendly_controlled: list[str] = field(default_factory=list)
    enemy_controlled: list[str] = field(default_factory=list)
    contested: list[str] = field(default_factory=list)
    unoccupied: list[str] = field(default_factory=list)

    @classmethod
    def empty(cls, faction_id: str) -> InfluenceMap:
        return cls(faction_id=faction_id)

    def get(self, system_id: str) -> Optional[HexInfluence]:
        return self.hexes.get(system_id)


def projection_for(definition: AssetDefinition) -> tuple[int, float]:
    """Return ``(range, base_influence)`` for an asset definition."""
    if definition.is_base_of_influence:
        return 0, 10.0
    hex_range, multiplier = _TYPE_PROJECTION.get(definition.asset_type, (1, 1.0))
    return hex_range, definition.required_rating * 2 * multiplier


def _round_half_up(value: float) -> int:
    return int(value + 0.5)


class InfluenceMapService:
    """Builds influence maps and scores systems for expansion.

    Args:
        catalog: Asset definitions, used to size each asset's projection.
    """

    def __init__(self, catalog: AssetCatalog) -> None:
        self._catalog = catalog

    def calculate(self, faction_id: str, factions: list[Faction],
                  systems: list[StarSystem]) -> InfluenceMap:
        """Compute the influence map from *faction_id*'s perspective.

        Returns the empty map when there are no systems.
        """
        if not systems:
            return InfluenceMap.empty(faction_id)

        system_map = {s.id: s for s in systems}
        hexes = {s.id: HexInfluence(system_id=s.id) for s in systems}

        for faction in factions:
            for asset in faction.assets:
                self._project(faction.id, asset, system_map, hexes)
            home = hexes.get(faction.homeworld)
            if home is not None:
                home.by_faction[faction.id] = home.by_faction.get(faction.id, 0.0) + HOMEWORLD_INFLUENCE

        result = InfluenceMap(faction_id=faction_id, hexes=hexes)
        for system_id, hex_inf in hexes.items():
            hex_inf.total = hex_inf.force + hex_inf.cunning + hex_inf.wealth
            self._resolve_control(hex_inf)

            if hex_inf.total < UNOCCUPIED_THRESHOLD:
                result.unoccupied.append(system_id)
            elif hex_inf.contested_level >= CONTESTED_THRESHOLD:
                result.contested.append(system_id)
            elif hex_inf.controlling_faction_id == faction_id:
                result.friendly_controlled.append(system_id)
            else:
                result.enemy_controlled.append(system_id)

        log.debug("Influence for %s: %d friendly, %d enemy, %d contested, %d unoccupied",
                  faction_id, len(result.friendly_controlled), len(result.enemy_controlled),
                  len(result.contested), len(result.unoccupied))
        return result

    def _project(self, faction_id: str, asset: FactionAsset,
                 system_map: dict[str, StarSystem],
                 hexes: dict[str, HexInfluence]) -> None:
        definition = self._catalog.definition_of(asset)
        origin = system_map.get(asset.location)
        if definition is None or origin is None:
            return

        hex_range, base = projection_for(definition)
        hp_factor = asset.hp / asset.max_hp if asset.max_hp > 0 else 0.0
        stealth_factor = 0.3 if asset.stealthed else 1.0

        for target in system_map.values():
            distance = system_distance(origin, target)
            if distance > hex_range:
                continue
            amount = base * FALLOFF ** distance * hp_factor * stealth_factor
            hex_inf = hexes[target.id]
            hex_inf.add(definition.category, amount)
            hex_inf.by_faction[faction_id] = hex_inf.by_faction.get(faction_id, 0.0) + amount

    @staticmethod
    def _resolve_control(hex_inf: HexInfluence) -> None:
        highest = 0.0
        second = 0.0
        controller: Optional[str] = None
        for fid, amount in hex_inf.by_faction.items():
            if amount > highest:
                second = highest
                highest = amount
                controller = fid
            elif amount > second:
                second = amount

        hex_inf.controlling_faction_id = controller
        if highest > 0 and second > 0:
            hex_inf.contested_level = _round_half_up(second / highest * 10)

    # -- Queries ---------------------------------------------------------

    def find_best_expansion_targets(self, influence_map: InfluenceMap, faction: Faction,
                                    systems: list[StarSystem], limit: int = 5) -> list[StarSystem]:
        """Unoccupied and contested systems ranked for expansion."""
        system_map = {s.id: s for s in systems}
        homeworld = system_map.get(faction.homeworld)

        candidates: list[tuple[float, StarSystem]] = []
        for system_id in influence_map.unoccupied + influence_map.contested:
            system = system_map.get(system_id)
            hex_inf = influence_map.get(system_id)
            if system is None or hex_inf is None:
                continue

            distance = system_distance(system, homeworld) if homeworld else 10
            controller = hex_inf.controlling_faction_id
            friendly = hex_inf.total if controller == faction.id else 0.0
            enemy = hex_inf.total if controller and controller != faction.id else 0.0
            candidates.append((friendly * 2 - enemy * 1.5 - distance * 0.5, system))

        candidates.sort(key=lambda c: c[0], reverse=True)
        return [system for _, system in candidates[:limit]]

    def calculate_strategic_value(self, system: StarSystem, faction: Faction,
                                  influence_map: InfluenceMap,
                                  systems: list[StarSystem]) -> float:
        """How much *system* is worth to *faction* (0 or more).

        Tech level, population, route count, existing control and
        closeness to the homeworld add value; contest subtracts it.
        """
        hex_inf = influence_map.get(system.id)
        if hex_inf is None:
            return 0.0

        world = system.primary_world
        value = world.tech_level * 2 + world.population + len(system.routes) * 1.5
        if hex_inf.controlling_faction_id == faction.id:
            value += 5

        homeworld = next((s for s in systems if s.id == faction.homeworld), None)
        if homeworld is not None:
            value += max(0, 10 - system_distance(system, homeworld) * 2)

        value -= hex_inf.contested_level * 0.5
        return max(0.0, value)
