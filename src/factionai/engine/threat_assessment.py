"""Threat assessment — enemy pressure on a faction's systems.

Scores enemy assets by rating, hit points, attack capability and distance,
rolls them up per enemy faction and per system, and derives a sector-wide
overview with a recommended posture.  Also provides the defensive strength
and retreat heuristics used by economy and scoring.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from factionai.engine.combat import calculate_dice_average
from factionai.models.asset import AssetCategory
from factionai.util.hex_math import system_distance

if TYPE_CHECKING:
    from factionai.engine.asset_catalog import AssetCatalog
    from factionai.models.asset import AssetDefinition
    from factionai.models.faction import Faction, FactionAsset
    from factionai.models.sector import StarSystem

log = logging.getLogger(__name__)

# Raw threat that maps to the top of the 0-10 danger scale
DANGER_CALIBRATION = 100.0
THREATENED_DANGER = 4.0

DEFENSE_LEVELS = ("none", "minimal", "moderate", "heavy", "critical")
POSTURES = ("aggressive", "balanced", "defensive", "turtle")


@dataclass(frozen=True)
class AssetThreat:
    """Threat posed by one visible enemy asset."""

    asset_id: str
    asset_name: str
    category: AssetCategory
    location: str
    distance: int
    threat_score: float
    can_attack: bool
    attack_damage: Optional[str]
    is_stealthed: bool = False


@dataclass
class FactionThreat:
    """Threat posed by one enemy faction relative to a reference system.

    Attributes:
        military_threat: Force asset threat plus force x 2.
        covert_threat: Cunning asset threat plus cunning x 2.
        economic_threat: Wealth asset threat plus wealth x 2.
        visible_assets: Non-stealthed assets; stealthed ones still count
            towards the sums.
        estimated_stealthed_assets: Guess from the cunning rating.
        closest_asset_distance: Hex distance to the nearest asset, -1 if none.
        assets_in_range: Assets within 2 hexes.
    """

    faction_id: str
    faction_name: str
    force: int
    cunning: int
    wealth: int
    military_threat: float = 0.0
    covert_threat: float = 0.0
    economic_threat: float = 0.0
    visible_assets: list[AssetThreat] = field(default_factory=list)
    estimated_stealthed_assets: int = 0
    closest_asset_distance: int = -1
    assets_in_range: int = 0

    @property
    def total_threat(self) -> float:
        return self.military_threat + self.covert_threat + self.economic_threat


@dataclass
class SystemThreatAssessment:
    """Threat against one system.  Danger values are on a 0-10 scale."""

    system_id: str
    system_name: str
    danger_level: float = 0.0
    military_danger: float = 0.0
    covert_danger: float = 0.0
    economic_danger: float = 0.0
    faction_threats: list[FactionThreat] = field(default_factory=list)
    immediate_threats: list[AssetThreat] = field(default_factory=list)
    recommended_defense_level: str = "none"
    should_retreat: bool = False


@dataclass(frozen=True)
class SystemThreatInfo:
    """Per-system threat scaled to 0-100."""

    system_id: str
    overall_danger_level: float
    military_danger: float
    covert_danger: float
    economic_danger: float


@dataclass
class SectorThreatOverview:
    """Sector-wide threat picture for one faction.

    Attributes:
        primary_threat: The most dangerous enemy, measured at the homeworld.
        threatened_systems: Systems with danger level 4 or more.
        safe_systems: The other examined systems.
        overall_threat_level: Average danger, 0-100.
        recommended_posture: aggressive, balanced, defensive or turtle.
        system_threats: Per-system threat keyed by system ID.
    """

    faction_id: str
    primary_threat: Optional[FactionThreat] = None
    threatened_systems: list[str] = field(default_factory=list)
    safe_systems: list[str] = field(default_factory=list)
    overall_threat_level: float = 0.0
    recommended_posture: str = "balanced"
    system_threats: dict[str, SystemThreatInfo] = field(default_factory=dict)

    @classmethod
    def empty(cls, faction_id: str) -> SectorThreatOverview:
        return cls(faction_id=faction_id)


@dataclass(frozen=True)
class RetreatAdvice:
    should_retreat: bool
    reason: str
    urgency: str


def _defense_level(danger: float) -> str:
    if danger < 1:
        return "none"
    if danger < 3:
        return "minimal"
    if danger < 5:
        return "moderate"
    if danger < 7:
        return "heavy"
    return "critical"


def _normalize(raw: float) -> float:
    return min(10.0, raw / DANGER_CALIBRATION * 10)


def posture_for_ratio(threat_ratio: float) -> str:
    """Map primary threat / own strength to a posture."""
    if threat_ratio > 1.5:
        return "turtle"
    if threat_ratio > 1:
        return "defensive"
    if threat_ratio > 0.5:
        return "balanced"
    return "aggressive"


class ThreatAssessment:
    """Threat analysis service.

    Args:
        catalog: Asset definitions for attack and counterattack lookups.
    """

    def __init__(self, catalog: AssetCatalog) -> None:
        self._catalog = catalog

    # -- Asset / faction -------------------------------------------------

    @staticmethod
    def asset_threat_score(asset: FactionAsset, definition: AssetDefinition, distance: int) -> float:
        """Threat of one asset seen from *distance* hexes away."""
        score = definition.required_rating * 3 + asset.hp * 0.5
        if definition.attack is not None:
            score += 5 + calculate_dice_average(definition.attack.damage)
        if definition.counterattack is not None:
            score += 2

        score *= max(0.2, 1 - distance * 0.2)
        if asset.stealthed:
            score *= 0.7
        score *= asset.hp / asset.max_hp if asset.max_hp > 0 else 0.0
        return score

    def faction_threat(self, enemy: Faction, reference: StarSystem,
                       systems: list[StarSystem]) -> FactionThreat:
        """Threat *enemy* poses to *reference*."""
        system_map = {s.id: s for s in systems}
        threat = FactionThreat(
            faction_id=enemy.id,
            faction_name=enemy.name,
            force=enemy.attributes.force,
            cunning=enemy.attributes.cunning,
            wealth=enemy.attributes.wealth,
        )
        closest = math.inf

        for asset in enemy.assets:
            definition = self._catalog.definition_of(asset)
            location = system_map.get(asset.location)
            if definition is None or location is None:
                continue

            distance = system_distance(location, reference)
            closest = min(closest, distance)
            if distance <= 2:
                threat.assets_in_range += 1

            score = self.asset_threat_score(asset, definition, distance)
            if not asset.stealthed:
                threat.visible_assets.append(AssetThreat(
                    asset_id=asset.id,
                    asset_name=definition.name,
                    category=definition.category,
                    location=asset.location,
                    distance=distance,
                    threat_score=score,
                    can_attack=definition.attack is not None,
                    attack_damage=definition.attack.damage if definition.attack else None,
                ))

            if definition.category is AssetCategory.FORCE:
                threat.military_threat += score
            elif definition.category is AssetCategory.CUNNING:
                threat.covert_threat += score
            else:
                threat.economic_threat += score

        threat.military_threat += enemy.attributes.force * 2
        threat.covert_threat += enemy.attributes.cunning * 2
        threat.economic_threat += enemy.attributes.wealth * 2
        threat.estimated_stealthed_assets = enemy.attributes.cunning // 2
        threat.closest_asset_distance = -1 if closest == math.inf else int(closest)
        return threat

    # -- System ----------------------------------------------------------

    def assess_system(self, system_id: str, faction_id: str, factions: list[Faction],
                      systems: list[StarSystem]) -> SystemThreatAssessment:
        """Threat against *system_id* from every faction except *faction_id*."""
        system = next((s for s in systems if s.id == system_id), None)
        if system is None:
            return SystemThreatAssessment(system_id=system_id, system_name="Unknown")

        result = SystemThreatAssessment(system_id=system_id, system_name=system.name)
        military = covert = economic = 0.0
        for enemy in factions:
            if enemy.id == faction_id:
                continue
            threat = self.faction_threat(enemy, system, systems)
            result.faction_threats.append(threat)
            military += threat.military_threat
            covert += threat.covert_threat
            economic += threat.economic_threat
            result.immediate_threats.extend(
                a for a in threat.visible_assets if a.distance <= 1 and a.can_attack
            )

        result.military_danger = _normalize(military)
        result.covert_danger = _normalize(covert)
        result.economic_danger = _normalize(economic)
        result.danger_level = (result.military_danger * 0.5
                               + result.covert_danger * 0.3
                               + result.economic_danger * 0.2)
        result.recommended_defense_level = _defense_level(result.danger_level)

        immediate_sum = sum(t.threat_score for t in result.immediate_threats)
        result.should_retreat = len(result.immediate_threats) >= 3 or immediate_sum > 50
        return result

    def immediate_attack_threats(self, system_id: str, faction_id: str, factions: list[Faction],
                                 systems: list[StarSystem]) -> list[AssetThreat]:
        """Attackers within one hex of *system_id*, most dangerous first."""
        assessment = self.assess_system(system_id, faction_id, factions, systems)
        return sorted(assessment.immediate_threats, key=lambda t: t.threat_score, reverse=True)

    # -- Sector ----------------------------------------------------------

    def generate_sector_overview(self, faction_id: str, factions: list[Faction],
                                 systems: list[StarSystem]) -> SectorThreatOverview:
        """Threat overview over the homeworld and every system holding an asset."""
        faction = next((f for f in factions if f.id == faction_id), None)
        if faction is None or not systems:
            return SectorThreatOverview.empty(faction_id)

        examined = [faction.homeworld]
        for asset in faction.assets:
            if asset.location not in examined:
                examined.append(asset.location)

        overview = SectorThreatOverview(faction_id=faction_id)
        total_danger = 0.0
        for system_id in examined:
            assessment = self.assess_system(system_id, faction_id, factions, systems)
            total_danger += assessment.danger_level
            overview.system_threats[system_id] = SystemThreatInfo(
                system_id=system_id,
                overall_danger_level=assessment.danger_level * 10,
                military_danger=assessment.military_danger * 10,
                covert_danger=assessment.covert_danger * 10,
                economic_danger=assessment.economic_danger * 10,
            )
            if assessment.danger_level >= THREATENED_DANGER:
                overview.threatened_systems.append(system_id)
            else:
                overview.safe_systems.append(system_id)

        overview.overall_threat_level = total_danger / len(examined) * 10

        homeworld = next((s for s in systems if s.id == faction.homeworld), None)
        if homeworld is not None:
            highest = 0.0
            for enemy in factions:
                if enemy.id == faction_id:
                    continue
                threat = self.faction_threat(enemy, homeworld, systems)
                if threat.total_threat > highest:
                    highest = threat.total_threat
                    overview.primary_threat = threat

        ratio = 0.0
        if overview.primary_threat is not None:
            strength = faction.attributes.total
            ratio = overview.primary_threat.total_threat / (strength * 5) if strength > 0 else math.inf
        overview.recommended_posture = posture_for_ratio(ratio)

        log.debug("Threat overview for %s: level=%.1f posture=%s threatened=%s",
                  faction_id, overview.overall_threat_level, overview.recommended_posture,
                  overview.threatened_systems)
        return overview

    # -- Defense ---------------------------------------------------------

    def calculate_defensive_strength(self, faction: Faction, system_id: str,
                                     systems: list[StarSystem]) -> float:
        """Defense *faction* can muster at *system_id* (0 for unknown systems)."""
        system_map = {s.id: s for s in systems}
        reference = system_map.get(system_id)
        if reference is None:
            return 0.0

        strength = 0.0
        for asset in faction.assets:
            definition = self._catalog.definition_of(asset)
            location = system_map.get(asset.location)
            if definition is None or location is None:
                continue
            distance = system_distance(location, reference)
            if distance > 1:
                continue

            value = float(asset.hp)
            if definition.counterattack is not None:
                value += calculate_dice_average(definition.counterattack.damage)
            if definition.is_facility:
                value *= 1.2
            if distance == 1:
                value *= 0.5
            strength += value

        if system_id == faction.homeworld:
            strength *= 1.3
        return strength

    def should_consider_retreat(self, system_id: str, faction: Faction, factions: list[Faction],
                                systems: list[StarSystem]) -> RetreatAdvice:
        """Compare immediate threats against local defense."""
        assessment = self.assess_system(system_id, faction.id, factions, systems)
        defense = self.calculate_defensive_strength(faction, system_id, systems)
        threat_sum = sum(t.threat_score for t in assessment.immediate_threats)

        if defense > 0:
            ratio = threat_sum / defense
        else:
            # nothing to defend with; only a real threat forces a retreat
            ratio = math.inf if threat_sum > 0 else 0.0

        if ratio > 3:
            return RetreatAdvice(True, "Overwhelming enemy force - retreat recommended", "critical")
        if ratio > 2:
            return RetreatAdvice(True, "Significant enemy advantage - retreat advised", "high")
        if ratio > 1.5:
            return RetreatAdvice(assessment.danger_level > 6,
                                 "Enemy has advantage - consider retreat if high value assets at risk",
                                 "medium")
        if ratio > 1:
            return RetreatAdvice(False, "Slight enemy advantage - hold position with caution", "low")
        return RetreatAdvice(False, "Defensive position is strong", "low")
