"""Utility scorer — enumerates and scores a faction's candidate actions.

Candidates:
- move: mobile assets to route-connected or adjacent systems
- attack: assets with an attack pattern against visible enemy assets in
  the same system
- expand: systems holding our assets but no Base of Influence
- defend: every system holding our assets

score = base utility x base_weight + tag modifier x tag_weight
        + goal synergy x goal_weight, never negative.

A faction commits to one action type per turn; the recommended type is
the type of the best-scoring action.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from factionai.engine.combat import calculate_dice_average
from factionai.engine.goal_selection import TAG_GOAL_AFFINITIES
from factionai.util.hex_math import adjacent_offsets

if TYPE_CHECKING:
    from factionai.engine.asset_catalog import AssetCatalog
    from factionai.engine.goal_selection import StrategicIntent
    from factionai.engine.influence_map import InfluenceMap, InfluenceMapService
    from factionai.engine.threat_assessment import SectorThreatOverview
    from factionai.models.faction import Faction
    from factionai.models.sector import StarSystem

log = logging.getLogger(__name__)

ACTION_TYPES = ("move", "attack", "expand", "defend")

# Strategic value (see InfluenceMapService.calculate_strategic_value) above
# which a system counts as a strategic location / high value target.
STRATEGIC_LOCATION_VALUE = 20
HIGH_STRATEGIC_VALUE = 25

_EXPANSION_TAGS = ("Imperialists", "Colonists", "Planetary Government")
_MOBILE_TAGS = ("Mercenary Group", "Pirates")


@dataclass(frozen=True)
class PotentialAction:
    """A candidate action before scoring.

    Attributes:
        type: move, attack, expand or defend.
        acting_asset_id: Asset performing the action ('' for faction-wide).
        source_location: System the action starts from.
        target_location: Destination for move and expand.
        target_faction_id: Defender for attack.
        target_asset_id: Defending asset for attack.
    """

    type: str
    acting_asset_id: str
    acting_asset_name: str
    source_location: str
    description: str
    target_location: Optional[str] = None
    target_faction_id: Optional[str] = None
    target_asset_id: Optional[str] = None
    target_asset_name: Optional[str] = None


@dataclass(frozen=True)
class ScoredAction:
    """A candidate action with its utility breakdown.

    ``invalid`` marks actions whose attacker or target could not be
    resolved; they keep a zero score and stay visible for diagnostics.
    """

    action: PotentialAction
    score: float
    base_utility: float = 0.0
    tag_modifier: float = 0.0
    goal_synergy: float = 0.0
    reasoning: str = ""
    invalid: bool = False


@dataclass
class ActionScoringResult:
    """All scored actions for one faction, best first."""

    faction_id: str
    scored_actions: list[ScoredAction] = field(default_factory=list)
    best_action: Optional[ScoredAction] = None
    actions_by_type: dict[str, list[ScoredAction]] = field(default_factory=dict)
    reasoning: str = ""

    @property
    def recommended_action_type(self) -> Optional[str]:
        return self.best_action.action.type if self.best_action else None

    @classmethod
    def from_actions(cls, faction_id: str, scored: list[ScoredAction],
                     reasoning: str = "") -> ActionScoringResult:
        """Build a result from *scored*, which must already be sorted."""
        by_type: dict[str, list[ScoredAction]] = {t: [] for t in ACTION_TYPES}
        for item in scored:
            by_type.setdefault(item.action.type, []).append(item)
        return cls(
            faction_id=faction_id,
            scored_actions=scored,
            best_action=scored[0] if scored else None,
            actions_by_type=by_type,
            reasoning=reasoning,
        )


@dataclass
class ScorerConfig:
    """Weights applied to the three score components."""

    base_weight: float = 1.0
    tag_weight: float = 1.0
    goal_weight: float = 1.0
    min_score_threshold: float = 0.0


def get_recommended_action_type(result: ActionScoringResult) -> Optional[str]:
    """Type of the best action, or None when there are no actions."""
    return result.recommended_action_type


def get_best_action_of_type(result: ActionScoringResult, action_type: str) -> Optional[ScoredAction]:
    actions = result.actions_by_type.get(action_type, [])
    return actions[0] if actions else None


def get_recommended_actions(result: ActionScoringResult) -> list[ScoredAction]:
    """All actions of the recommended type, best first."""
    action_type = get_recommended_action_type(result)
    if action_type is None:
        return []
    return result.actions_by_type.get(action_type, [])


def get_valid_movement_destinations(location: str, systems: list[StarSystem]) -> list[str]:
    """Systems reachable by route or lying in an adjacent hex."""
    current = next((s for s in systems if s.id == location), None)
    if current is None:
        return []

    destinations: list[str] = []
    for route in current.routes:
        if route.system_id != location and route.system_id not in destinations:
            destinations.append(route.system_id)

    by_offset = {(s.x, s.y): s.id for s in systems}
    for offset in adjacent_offsets(current.x, current.y):
        neighbor = by_offset.get(offset)
        if neighbor is not None and neighbor not in destinations:
            destinations.append(neighbor)
    return destinations


class UtilityScorer:
    """Generates and scores candidate actions.

    Args:
        catalog: Asset definitions.
        influence: Influence service used for strategic system values.
        config: Component weights.
    """

    def __init__(self, catalog: AssetCatalog, influence: InfluenceMapService,
                 config: Optional[ScorerConfig] = None) -> None:
        self._catalog = catalog
        self._influence = influence
        self._config = config or ScorerConfig()

    # -- Generation ------------------------------------------------------

    def generate_move_actions(self, faction: Faction, systems: list[StarSystem]) -> list[PotentialAction]:
        names = {s.id: s.name for s in systems}
        actions = []
        for asset in faction.assets:
            definition = self._catalog.definition_of(asset)
            if definition is None:
                continue
            if not (definition.is_mobile or "Mercenary Group" in faction.tags):
                continue
            for dest in get_valid_movement_destinations(asset.location, systems):
                actions.append(PotentialAction(
                    type="move",
                    acting_asset_id=asset.id,
                    acting_asset_name=definition.name,
                    source_location=asset.location,
                    target_location=dest,
                    description=f"Move {definition.name} to {names.get(dest) or dest}",
                ))
        return actions

    def generate_attack_actions(self, faction: Faction, factions: list[Faction]) -> list[PotentialAction]:
        targets_by_location: dict[str, list[tuple]] = {}
        for enemy in factions:
            if enemy.id == faction.id:
                continue
            for enemy_asset in enemy.assets:
                if enemy_asset.stealthed:
                    continue
                enemy_def = self._catalog.definition_of(enemy_asset)
                if enemy_def is None:
                    continue
                targets_by_location.setdefault(enemy_asset.location, []).append(
                    (enemy, enemy_asset, enemy_def))

        actions = []
        for asset in faction.assets:
            definition = self._catalog.definition_of(asset)
            if definition is None or definition.attack is None:
                continue
            for enemy, enemy_asset, enemy_def in targets_by_location.get(asset.location, []):
                actions.append(PotentialAction(
                    type="attack",
                    acting_asset_id=asset.id,
                    acting_asset_name=definition.name,
                    source_location=asset.location,
                    target_faction_id=enemy.id,
                    target_asset_id=enemy_asset.id,
                    target_asset_name=enemy_def.name,
                    description=f"{definition.name} attacks {enemy.name}'s {enemy_def.name}",
                ))
        return actions

    def generate_expand_actions(self, faction: Faction, systems: list[StarSystem]) -> list[PotentialAction]:
        names = {s.id: s.name for s in systems}
        with_assets: list[str] = []
        with_base = {faction.homeworld}
        for asset in faction.assets:
            if asset.location not in with_assets:
                with_assets.append(asset.location)
            definition = self._catalog.definition_of(asset)
            if definition is not None and definition.is_base_of_influence:
                with_base.add(asset.location)

        return [
            PotentialAction(
                type="expand",
                acting_asset_id="",
                acting_asset_name="Faction",
                source_location=system_id,
                target_location=system_id,
                description=f"Expand influence on {names.get(system_id) or system_id}",
            )
            for system_id in with_assets if system_id not in with_base
        ]

    def generate_defend_actions(self, faction: Faction) -> list[PotentialAction]:
        by_location: dict[str, list[str]] = {}
        for asset in faction.assets:
            definition = self._catalog.definition_of(asset)
            by_location.setdefault(asset.location, []).append(definition.name if definition else "Unknown")

        actions = []
        for location, names in by_location.items():
            more = "..." if len(names) > 3 else ""
            actions.append(PotentialAction(
                type="defend",
                acting_asset_id="",
                acting_asset_name="Garrison",
                source_location=location,
                description=f"Defend {', '.join(names[:3])}{more} at {location}",
            ))
        return actions

    def generate_all_actions(self, faction: Faction, factions: list[Faction],
                             systems: list[StarSystem]) -> list[PotentialAction]:
        return (self.generate_move_actions(faction, systems)
                + self.generate_attack_actions(faction, factions)
                + self.generate_expand_actions(faction, systems)
                + self.generate_defend_actions(faction))

    # -- Base utility ----------------------------------------------------

    def _strategic_value(self, system_id: Optional[str], faction: Faction,
                         influence_map: InfluenceMap, systems: list[StarSystem]) -> float:
        system = next((s for s in systems if s.id == system_id), None)
        if system is None:
            return 0.0
        return self._influence.calculate_strategic_value(system, faction, influence_map, systems)

    def _score_move(self, action: PotentialAction, faction: Faction, factions: list[Faction],
                    systems: list[StarSystem], influence_map: InfluenceMap,
                    threats: SectorThreatOverview) -> tuple[float, list[str]]:
        score = 15.0
        reasons: list[str] = []
        mover = faction.get_asset(action.acting_asset_id)
        mover_def = self._catalog.definition_of(mover) if mover else None
        attack = mover_def.attack if mover_def else None

        at_target = 0
        target_hp = 0
        enemy_base_at_target = False
        at_source = 0
        can_attack_at_target = False
        if mover_def is not None:
            for enemy in factions:
                if enemy.id == faction.id:
                    continue
                for enemy_asset in enemy.assets:
                    if enemy_asset.stealthed:
                        continue
                    if enemy_asset.location == action.target_location:
                        at_target += 1
                        target_hp += enemy_asset.hp
                        enemy_def = self._catalog.definition_of(enemy_asset)
                        if enemy_def is not None:
                            if enemy_def.is_base_of_influence:
                                enemy_base_at_target = True
                            if attack is not None and attack.defender_attribute is enemy_def.category:
                                can_attack_at_target = True
                    if enemy_asset.location == action.source_location:
                        at_source += 1

        if attack is not None and can_attack_at_target:
            score += 60
            reasons.append("ATTACK POSITION")
            if enemy_base_at_target:
                score += 25
                reasons.append("enemy base!")
            if mover.hp >= mover.max_hp * 0.6:
                score += 15
                reasons.append("healthy attacker")
            if target_hp <= 6:
                score += 20
                reasons.append("weak enemy")
        elif attack is not None and at_target > 0:
            score += 30
            reasons.append("approaching enemies")

        if attack is None and at_target > 0:
            score -= 20
            reasons.append("non-combat asset avoiding enemies")

        target_hex = influence_map.get(action.target_location)
        if target_hex is not None and target_hex.by_faction.get(faction.id, 0) < 30 and at_target == 0:
            score += 10
            reasons.append("expanding territory")

        target_threat = threats.system_threats.get(action.target_location)
        if mover is not None and mover.hp < mover.max_hp * 0.4 and at_source > 0:
            if target_threat is None or target_threat.overall_danger_level < 30:
                score += 25
                reasons.append("retreating damaged asset")

        if attack is not None and at_source > 0 and at_target == 0:
            score -= 30
            reasons.append("stay and fight")

        if self._strategic_value(action.target_location, faction, influence_map, systems) > STRATEGIC_LOCATION_VALUE:
            score += 8
            reasons.append("strategic location")

        return max(0.0, score), reasons or ["standard movement"]

    def _score_attack(self, action: PotentialAction, faction: Faction, factions: list[Faction],
                      threats: SectorThreatOverview) -> tuple[float, list[str]]:
        score = 50.0
        reasons: list[str] = []

        attacker = faction.get_asset(action.acting_asset_id)
        attacker_def = self._catalog.definition_of(attacker) if attacker else None
        target_faction = next((f for f in factions if f.id == action.target_faction_id), None)
        target = target_faction.get_asset(action.target_asset_id) if target_faction else None
        target_def = self._catalog.definition_of(target) if target else None
        if attacker is None or attacker_def is None or target is None or target_def is None:
            return 0.0, ["invalid target"]

        our_damage = calculate_dice_average(attacker_def.attack.damage if attacker_def.attack else None)
        if our_damage >= target.hp:
            score += 40
            reasons.append("likely kill shot!")
        elif our_damage >= target.hp * 0.7:
            score += 25
            reasons.append("heavy damage expected")

        if target.hp <= 3:
            score += 30
            reasons.append("target near destruction")
        elif target.hp <= 5:
            score += 15
            reasons.append("target weakened")

        if target_def.cost >= 15:
            score += 25
            reasons.append("high-value target")
        elif target_def.cost >= 8:
            score += 15
            reasons.append("moderate-value target")
        elif target_def.cost >= 4:
            score += 8
            reasons.append("reasonable target")

        if target_def.is_base_of_influence:
            score += 20
            reasons.append("targeting enemy base")

        hp_ratio = attacker.hp / max(1, target.hp)
        if hp_ratio >= 2:
            score += 25
            reasons.append("strong HP advantage")
        elif hp_ratio >= 1.3:
            score += 15
            reasons.append("HP advantage")
        elif hp_ratio < 0.7:
            score -= 10
            reasons.append("HP disadvantage")

        if target_def.counterattack is not None:
            counter = calculate_dice_average(target_def.counterattack.damage)
            if counter >= attacker.hp:
                score -= 20
                reasons.append("risky counterattack")
            elif counter >= attacker.hp * 0.5:
                score -= 8
                reasons.append("moderate counterattack risk")

        location_threat = threats.system_threats.get(action.source_location)
        if location_threat is not None and location_threat.overall_danger_level < 30:
            score += 10
            reasons.append("favorable battlefield")

        if attacker.hp <= 2 and attacker.max_hp > 4:
            score -= 10
            reasons.append("attacker weakened")
        if attacker.hp >= attacker.max_hp * 0.8:
            score += 10
            reasons.append("attacker healthy")

        return max(0.0, score), reasons or ["standard attack"]

    def _score_expand(self, action: PotentialAction, faction: Faction, systems: list[StarSystem],
                      influence_map: InfluenceMap) -> tuple[float, list[str]]:
        score = 40.0
        reasons: list[str] = []

        if self._strategic_value(action.target_location, faction, influence_map, systems) > HIGH_STRATEGIC_VALUE:
            score += 20
            reasons.append("high strategic value")

        target_hex = influence_map.get(action.target_location)
        if target_hex is not None and target_hex.by_faction.get(faction.id, 0) > 50:
            score += 15
            reasons.append("strong existing presence")

        if faction.fac_creds > 10:
            score += 10
            reasons.append("can afford expansion")
        if faction.fac_creds < 5:
            score -= 20
            reasons.append("low on credits")

        return max(0.0, score), reasons or ["standard expansion"]

    @staticmethod
    def _score_defend(action: PotentialAction, faction: Faction,
                      threats: SectorThreatOverview) -> tuple[float, list[str]]:
        score = 5.0
        reasons: list[str] = []
        threat = threats.system_threats.get(action.source_location)
        danger = threat.overall_danger_level if threat is not None else 0.0

        if threat is not None and danger > 70:
            score += 25
            reasons.append("high threat level")
        elif threat is not None and danger > 50:
            score += 12
            reasons.append("moderate threat")

        if action.source_location == faction.homeworld:
            if threat is not None and danger > 40:
                score += 15
                reasons.append("defending threatened homeworld")
            else:
                score += 5
                reasons.append("homeworld garrison")

        if any(a.hp < a.max_hp for a in faction.assets_at(action.source_location)):
            score += 5
            reasons.append("protecting damaged assets")

        return max(0.0, score), reasons or ["passive stance"]

    # -- Modifiers -------------------------------------------------------

    @staticmethod
    def _tag_modifier(action: PotentialAction, faction: Faction) -> tuple[float, list[str]]:
        modifier = 0.0
        reasons = []
        for tag in faction.tags:
            affinity = TAG_GOAL_AFFINITIES.get(tag)
            if affinity is None:
                continue
            if action.type == "attack":
                if affinity.aggression > 10:
                    modifier += 15
                    reasons.append(f"{tag} favors aggression")
                if affinity.aggression < -10:
                    modifier -= 15
                    reasons.append(f"{tag} discourages aggression")
            elif action.type == "defend" and affinity.aggression < 0:
                modifier += 10
                reasons.append(f"{tag} favors caution")
            elif action.type == "expand" and tag in _EXPANSION_TAGS:
                modifier += 15
                reasons.append(f"{tag} favors expansion")
            elif action.type == "move" and tag in _MOBILE_TAGS:
                modifier += 10
                reasons.append(f"{tag} favors mobility")
        return modifier, reasons or ["no tag modifiers"]

    # focus -> action type -> (synergy, reason)
    _FOCUS_SYNERGY: dict[str, dict[str, tuple[int, str]]] = {
        "military": {
            "attack": (40, "military focus strongly favors attacks"),
            "move": (15, "military values positioning"),
            "defend": (-5, "military prefers offense"),
        },
        "economic": {
            "expand": (25, "economic focus favors expansion"),
            "defend": (10, "economic focus protects assets"),
        },
        "covert": {
            "attack": (30, "covert focus supports strikes"),
            "move": (15, "covert focus values positioning"),
        },
        "expansion": {
            "expand": (35, "expansion focus strongly favors BoI"),
            "move": (20, "expansion focus values movement"),
            "attack": (15, "clearing path for expansion"),
        },
        "defensive": {
            "defend": (25, "defensive focus favors defense"),
            "attack": (-10, "defensive focus discourages attacks"),
        },
        "balanced": {
            "attack": (15, "balanced approach allows attacks"),
            "move": (10, "balanced values flexibility"),
        },
    }

    def _goal_synergy(self, action: PotentialAction, intent: StrategicIntent) -> tuple[float, list[str]]:
        synergy = 0.0
        reasons = []

        entry = self._FOCUS_SYNERGY.get(intent.primary_focus, {}).get(action.type)
        if entry is not None:
            synergy += entry[0]
            reasons.append(entry[1])

        if action.type == "attack" and action.target_faction_id == intent.target_faction_id:
            synergy += 30
            reasons.append("targeting primary threat")
        if action.type == "move" and intent.target_faction_id:
            synergy += 10
            reasons.append("moving toward threat")
        if (action.source_location in intent.priority_system_ids
                or (action.target_location and action.target_location in intent.priority_system_ids)):
            synergy += 10
            reasons.append("priority system")

        aggression = intent.aggression_level
        if aggression > 70:
            if action.type == "attack":
                synergy += 25
                reasons.append("high aggression")
            if action.type == "defend":
                synergy -= 10
                reasons.append("too aggressive to defend")
        elif aggression > 50 and action.type == "attack":
            synergy += 10
            reasons.append("moderate aggression")
        if aggression < 30 and action.type == "defend":
            synergy += 15
            reasons.append("low aggression favors defense")

        return synergy, reasons or ["no goal synergy"]

    # -- Scoring ---------------------------------------------------------

    def score_action(self, action: PotentialAction, faction: Faction, factions: list[Faction],
                     systems: list[StarSystem], influence_map: InfluenceMap,
                     threats: SectorThreatOverview, intent: StrategicIntent) -> ScoredAction:
        """Score one candidate action."""
        if action.type == "move":
            base, base_why = self._score_move(action, faction, factions, systems, influence_map, threats)
        elif action.type == "attack":
            base, base_why = self._score_attack(action, faction, factions, threats)
        elif action.type == "expand":
            base, base_why = self._score_expand(action, faction, systems, influence_map)
        elif action.type == "defend":
            base, base_why = self._score_defend(action, faction, threats)
        else:
            base, base_why = 10.0, ["unknown action type"]

        if base_why == ["invalid target"]:
            return ScoredAction(action=action, score=0.0, base_utility=0.0,
                                reasoning="Base: invalid target", invalid=True)

        tag, tag_why = self._tag_modifier(action, faction)
        goal, goal_why = self._goal_synergy(action, intent)
        cfg = self._config
        score = base * cfg.base_weight + tag * cfg.tag_weight + goal * cfg.goal_weight
        return ScoredAction(
            action=action,
            score=max(0.0, score),
            base_utility=base,
            tag_modifier=tag,
            goal_synergy=goal,
            reasoning=f"Base: {', '.join(base_why)}. Tags: {', '.join(tag_why)}. Goal: {', '.join(goal_why)}",
        )

    def score_all_actions(self, faction: Faction, factions: list[Faction], systems: list[StarSystem],
                          influence_map: InfluenceMap, threats: SectorThreatOverview,
                          intent: StrategicIntent) -> ActionScoringResult:
        """Generate and score every action, best first."""
        candidates = self.generate_all_actions(faction, factions, systems)
        scored = [
            self.score_action(a, faction, factions, systems, influence_map, threats, intent)
            for a in candidates
        ]
        scored = [s for s in scored if s.score >= self._config.min_score_threshold]
        scored.sort(key=lambda s: s.score, reverse=True)

        parts = [f"Generated {len(candidates)} potential actions", f"{len(scored)} passed threshold"]
        if scored:
            parts.append(f"Best: {scored[0].action.description} (score: {scored[0].score:.0f})")
        else:
            parts.append("No viable actions found")

        result = ActionScoringResult.from_actions(faction.id, scored, ". ".join(parts))
        log.debug("Scoring for %s: %s", faction.name, result.reasoning)
        return result
