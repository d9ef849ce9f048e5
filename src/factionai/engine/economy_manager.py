"""Economy manager — repairs and purchases for an AI faction's turn.

Spending follows the faction rules:
- one asset purchase per turn, on the homeworld or a world holding a Base
  of Influence
- purchases need the attribute rating and the world's tech level
- repairs cost 1 FacCred for the first batch, 2 for the second, ...

How much to hold back for repairs depends on the threat overview; what to
buy depends on tags, the strategic intent and capability gaps.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from factionai.engine.combat import calculate_dice_average
from factionai.models.asset import BASE_OF_INFLUENCE_ID, AssetCategory, AssetType

if TYPE_CHECKING:
    from factionai.engine.asset_catalog import AssetCatalog
    from factionai.engine.goal_selection import StrategicIntent
    from factionai.engine.threat_assessment import SectorThreatOverview
    from factionai.models.asset import AssetDefinition
    from factionai.models.faction import Faction, FactionAsset
    from factionai.models.sector import StarSystem

log = logging.getLogger(__name__)

CRITICAL_REPAIR_PRIORITY = 50


@dataclass(frozen=True)
class TagAssetSynergy:
    asset_types: tuple[str, ...]
    categories: tuple[AssetCategory, ...]
    bonus: int


_T = AssetType
_F, _C, _W = AssetCategory.FORCE, AssetCategory.CUNNING, AssetCategory.WEALTH
TAG_ASSET_SYNERGIES: dict[str, TagAssetSynergy] = {
    "Colonists": TagAssetSynergy((_T.FACILITY, _T.LOGISTICS_FACILITY), (_W,), 15),
    "Deep Rooted": TagAssetSynergy((_T.FACILITY, _T.MILITARY_UNIT), (_F,), 15),
    "Eugenics Cult": TagAssetSynergy((_T.SPECIAL_FORCES, _T.MILITARY_UNIT), (_F, _C), 20),
    "Exchange Consulate": TagAssetSynergy((_T.FACILITY, _T.STARSHIP), (_W,), 20),
    "Fanatical": TagAssetSynergy((_T.SPECIAL_FORCES, _T.MILITARY_UNIT), (_F,), 15),
    "Imperialists": TagAssetSynergy((_T.MILITARY_UNIT, _T.STARSHIP, _T.FACILITY), (_F,), 20),
    "Machiavellian": TagAssetSynergy((_T.SPECIAL_FORCES, _T.TACTIC), (_C,), 20),
    "Mercenary Group": TagAssetSynergy((_T.MILITARY_UNIT, _T.SPECIAL_FORCES, _T.STARSHIP), (_F,), 15),
    "Perimeter Agency": TagAssetSynergy((_T.SPECIAL_FORCES, _T.TACTIC), (_C, _F), 15),
    "Pirates": TagAssetSynergy((_T.STARSHIP, _T.SPECIAL_FORCES), (_C, _W), 20),
    "Planetary Government": TagAssetSynergy((_T.FACILITY, _T.MILITARY_UNIT), (_F, _W), 15),
    "Plutocratic": TagAssetSynergy((_T.FACILITY, _T.SPECIAL_FORCES), (_W,), 25),
    "Preceptor Archive": TagAssetSynergy((_T.FACILITY, _T.SPECIAL_FORCES), (_W, _C), 15),
    "Psychic Academy": TagAssetSynergy((_T.SPECIAL_FORCES, _T.TACTIC), (_C,), 20),
    "Savage": TagAssetSynergy((_T.MILITARY_UNIT, _T.SPECIAL_FORCES), (_F,), 15),
    "Scavengers": TagAssetSynergy((_T.STARSHIP, _T.FACILITY), (_W,), 20),
    "Secretive": TagAssetSynergy((_T.SPECIAL_FORCES, _T.TACTIC, _T.LOGISTICS_FACILITY), (_C,), 25),
    "Technical Expertise": TagAssetSynergy((_T.FACILITY, _T.STARSHIP), (_W,), 15),
    "Theocratic": TagAssetSynergy((_T.SPECIAL_FORCES, _T.FACILITY), (_C, _F), 15),
    "Warlike": TagAssetSynergy((_T.MILITARY_UNIT, _T.SPECIAL_FORCES, _T.STARSHIP), (_F,), 25),
}

# definition id -> (passive, average FacCreds per turn)
INCOME_GENERATING_ASSETS: dict[str, tuple[bool, float]] = {
    "cunning_4_party_machine": (True, 1.0),
    "wealth_1_harvesters": (False, 0.5),
    "wealth_6_pretech_manufactory": (False, 2.25),
}


# -- Plan records --------------------------------------------------------

@dataclass(frozen=True)
class RepairDecision:
    """Repair proposal for one damaged asset."""

    asset_id: str
    asset_name: str
    location: str
    current_hp: int
    max_hp: int
    damage_amount: int
    repair_cost: int
    priority: float
    reasoning: str


@dataclass(frozen=True)
class PurchaseRecommendation:
    """Best asset to buy, with its score breakdown."""

    definition: AssetDefinition
    location: str
    score: float
    base_score: float
    tag_synergy_score: float
    goal_synergy_score: float
    diversification_score: float
    strategic_needs_score: float
    reasoning: str


@dataclass
class EconomicPlan:
    """Spending plan for one turn.

    Attributes:
        threat_level: Average system danger, 0-100.
        repair_reserve: FacCreds held back for repairs.
        spending_budget: FacCreds left for a purchase.
        repair_decisions: Damaged assets, most urgent first.
        purchase: Best affordable purchase, if any.
    """

    faction_id: str
    available_fac_creds: int
    threat_level: float
    repair_reserve: int
    spending_budget: int
    repair_decisions: list[RepairDecision] = field(default_factory=list)
    purchase: Optional[PurchaseRecommendation] = None
    total_repair_cost: int = 0
    reasoning: str = ""


@dataclass(frozen=True)
class EconomyAction:
    """The single economic action for this turn: repair, purchase or none."""

    action: str
    details: str
    repair: Optional[RepairDecision] = None
    purchase: Optional[PurchaseRecommendation] = None


def calculate_repair_cost(damage: int, healing_per_batch: int) -> int:
    """Triangular repair cost: n batches cost n(n+1)/2 FacCreds."""
    if damage <= 0 or healing_per_batch <= 0:
        return 0
    batches = math.ceil(damage / healing_per_batch)
    return batches * (batches + 1) // 2


def calculate_repair_reserve(total_repair_cost: int, threat_level: float, available: int) -> int:
    """Hold back up to 80% of outstanding repair costs as threat rises."""
    multiplier = min(1.0, threat_level / 100) * 0.8
    desired = math.ceil(total_repair_cost * multiplier)
    return min(desired, available, total_repair_cost)


def select_repairs_within_budget(decisions: list[RepairDecision], budget: int) -> list[RepairDecision]:
    """Greedily take repairs in priority order while they fit *budget*."""
    selected = []
    remaining = budget
    for decision in decisions:
        if decision.repair_cost <= remaining:
            selected.append(decision)
            remaining -= decision.repair_cost
    return selected


def get_valid_purchase_locations(faction: Faction) -> list[str]:
    """Homeworld plus every system holding one of the faction's bases."""
    locations = [faction.homeworld]
    for asset in faction.assets:
        if asset.definition_id == BASE_OF_INFLUENCE_ID and asset.location not in locations:
            locations.append(asset.location)
    return locations


class AIEconomyManager:
    """Economic decision making for AI factions.

    Args:
        catalog: Asset definitions to buy from and to look owned assets up in.
    """

    def __init__(self, catalog: AssetCatalog) -> None:
        self._catalog = catalog

    # -- Repairs ---------------------------------------------------------

    @staticmethod
    def _repair_priority(asset: FactionAsset, definition: Optional[AssetDefinition],
                         threat_level: float) -> tuple[float, str]:
        if definition is None:
            return 0.0, "Unknown asset type"

        damage_share = 1 - asset.hp / asset.max_hp
        reasons = [f"{int(damage_share * 100 + 0.5)}% damaged"]
        priority = damage_share * 50

        if definition.cost >= 15:
            priority += 20
            reasons.append("high-value asset")
        elif definition.cost >= 8:
            priority += 10
            reasons.append("moderate-value asset")

        is_combat = definition.attack is not None or definition.counterattack is not None
        if threat_level > 50 and is_combat:
            priority += 15
            reasons.append("combat asset under threat")
        if asset.hp <= 2:
            priority += 25
            reasons.append("near destruction")
        if not is_combat:
            priority -= 10
            reasons.append("non-combat asset")

        return max(0.0, priority), ", ".join(reasons)

    def generate_repair_decisions(self, faction: Faction, threat_level: float) -> list[RepairDecision]:
        """Repair proposals for every damaged asset, most urgent first."""
        attrs = faction.attributes
        healing_per_batch = max(attrs.force, attrs.cunning, attrs.wealth)

        decisions = []
        for asset in faction.assets:
            if asset.hp >= asset.max_hp:
                continue
            definition = self._catalog.definition_of(asset)
            damage = asset.max_hp - asset.hp
            priority, reasoning = self._repair_priority(asset, definition, threat_level)
            decisions.append(RepairDecision(
                asset_id=asset.id,
                asset_name=definition.name if definition else "Unknown",
                location=asset.location,
                current_hp=asset.hp,
                max_hp=asset.max_hp,
                damage_amount=damage,
                repair_cost=calculate_repair_cost(damage, healing_per_batch),
                priority=priority,
                reasoning=reasoning,
            ))
        decisions.sort(key=lambda d: d.priority, reverse=True)
        return decisions

    # -- Purchase scoring ------------------------------------------------

    @staticmethod
    def _base_score(definition: AssetDefinition) -> float:
        score = math.sqrt(definition.hp) * 5
        if definition.attack is not None:
            score += 10 + calculate_dice_average(definition.attack.damage) * 3
        if definition.counterattack is not None:
            score += 8 + calculate_dice_average(definition.counterattack.damage) * 2
        if definition.flags.has_action:
            score += 8
        if definition.flags.has_special:
            score += 5
        score += definition.required_rating * 3
        score -= definition.maintenance * 8
        if definition.flags.requires_permission:
            score -= 5
        return max(0.0, score)

    @staticmethod
    def _tag_synergy(definition: AssetDefinition, faction: Faction) -> tuple[float, str]:
        score = 0.0
        reasons = []
        for tag in faction.tags:
            synergy = TAG_ASSET_SYNERGIES.get(tag)
            if synergy is None:
                continue
            if definition.asset_type in synergy.asset_types:
                score += synergy.bonus
                reasons.append(f"{tag} favors {definition.asset_type}")
            if definition.category in synergy.categories:
                score += synergy.bonus * 0.5
                reasons.append(f"{tag} favors {definition.category.value}")
        return score, ", ".join(reasons) if reasons else "No tag synergy"

    @staticmethod
    def _goal_synergy(definition: AssetDefinition, intent: StrategicIntent) -> tuple[float, str]:
        score = 0.0
        reasons = []
        focus = intent.primary_focus
        if focus == "military":
            if definition.category is AssetCategory.FORCE:
                score += 30
                reasons.append("Force asset for military focus")
            if definition.attack is not None:
                score += 20
                reasons.append("Has attack capability")
        elif focus == "economic":
            if definition.category is AssetCategory.WEALTH:
                score += 30
                reasons.append("Wealth asset for economic focus")
            if definition.flags.has_action:
                score += 10
                reasons.append("Has special action")
        elif focus == "covert":
            if definition.category is AssetCategory.CUNNING:
                score += 30
                reasons.append("Cunning asset for covert focus")
            if definition.asset_type in (AssetType.SPECIAL_FORCES, AssetType.TACTIC):
                score += 15
                reasons.append("Covert-style asset type")
        elif focus == "expansion":
            if definition.asset_type in (AssetType.LOGISTICS_FACILITY, AssetType.STARSHIP):
                score += 25
                reasons.append("Supports expansion")
        elif focus == "defensive":
            if definition.counterattack is not None:
                score += 25
                reasons.append("Has counterattack for defense")
            if definition.hp >= 10:
                score += 15
                reasons.append("High HP for durability")

        if intent.aggression_level > 60 and definition.attack is not None:
            score += 10
            reasons.append("Aggressive stance favors attackers")
        if intent.aggression_level < 40 and definition.counterattack is not None and definition.attack is None:
            score += 10
            reasons.append("Defensive stance favors pure defenders")
        return score, ", ".join(reasons) if reasons else "No goal synergy"

    def _diversification(self, definition: AssetDefinition, faction: Faction) -> tuple[float, str]:
        score = 0.0
        reasons = []

        owned = sum(1 for a in faction.assets if a.definition_id == definition.id)
        if owned > 0:
            score -= owned * 25
            reasons.append(f"already owns {owned} copy(s) (-{owned * 25})")
        else:
            score += 10
            reasons.append("new asset type (+10)")

        owned_defs = [d for d in (self._catalog.definition_of(a) for a in faction.assets) if d is not None]
        if owned_defs:
            share = sum(1 for d in owned_defs if d.category is definition.category) / len(owned_defs)
            if share < 0.2:
                score += 15
                reasons.append(f"fills gap in {definition.category.value} (+15)")
            elif share < 0.33:
                score += 8
                reasons.append(f"expands {definition.category.value} (+8)")

        if not any(d.asset_type == definition.asset_type for d in owned_defs):
            score += 12
            reasons.append(f"new type: {definition.asset_type} (+12)")
        return score, ", ".join(reasons)

    def _strategic_needs(self, definition: AssetDefinition, faction: Faction,
                         intent: StrategicIntent) -> tuple[float, str]:
        has_force_attacker = False
        has_broad_attacker = False
        has_defender = False
        has_mobility = False
        has_income = False
        homeworld_defender_hp = 0
        attackers = 0

        for asset in faction.assets:
            owned = self._catalog.definition_of(asset)
            if owned is None:
                continue
            if owned.attack is not None:
                attackers += 1
                if owned.attack.defender_attribute is AssetCategory.FORCE:
                    has_force_attacker = True
                    has_broad_attacker = True
                if owned.attack.defender_attribute is AssetCategory.CUNNING:
                    has_broad_attacker = True
            if owned.counterattack is not None:
                has_defender = True
                if asset.location == faction.homeworld:
                    homeworld_defender_hp += asset.hp
            if owned.is_mobile:
                has_mobility = True
            if asset.definition_id in INCOME_GENERATING_ASSETS:
                has_income = True

        score = 0.0
        reasons = []

        def bump(amount: float, why: str) -> None:
            nonlocal score
            score += amount
            reasons.append(f"{why} (+{amount:.0f})")

        attack = definition.attack
        target = attack.defender_attribute if attack is not None else None
        if target is AssetCategory.FORCE:
            if has_force_attacker:
                bump(25, "Force attacker")
            else:
                bump(60, "CRITICAL: Force attacker")
            avg = calculate_dice_average(attack.damage)
            if avg >= 4:
                bump(avg * 3, f"high damage {avg:.1f}")
        elif target is AssetCategory.CUNNING:
            if has_broad_attacker:
                bump(15, "Cunning attacker")
            else:
                bump(40, "Cunning attacker needed")
        elif target is AssetCategory.WEALTH:
            bump(10, "Wealth attacker")

        if attackers == 0 and attack is not None:
            bump(35, "no attackers yet")
        if attack is not None and definition.is_mobile:
            bump(30, "mobile attacker")
        if not has_defender and definition.counterattack is not None:
            bump(20, "fills defender gap")
        if not has_income and definition.id in INCOME_GENERATING_ASSETS:
            passive, _ = INCOME_GENERATING_ASSETS[definition.id]
            bump(20 if passive else 10, "provides income")
        if faction.fac_creds <= 5 and not has_force_attacker and target is AssetCategory.FORCE:
            bump(20, "need attacker even with low funds")

        focus = intent.primary_focus
        if focus == "expansion" and not has_mobility and definition.is_mobile:
            bump(20, "expansion needs mobility")
        if focus == "military" and attack is not None:
            bump(15, "military focus")
        if (focus == "defensive" and homeworld_defender_hp < 10
                and definition.counterattack is not None and definition.hp >= 6):
            bump(15, "homeworld defense")
        if focus == "covert" and definition.asset_type == AssetType.SPECIAL_FORCES:
            bump(10, "covert ops")

        return score, ", ".join(reasons) if reasons else "no urgent needs"

    # -- Purchases -------------------------------------------------------

    def can_purchase(self, faction: Faction, definition: AssetDefinition, location: str,
                     systems: list[StarSystem]) -> tuple[bool, str]:
        """Rating and tech level check; over-limit purchases are allowed but flagged."""
        rating = faction.attributes.rating(definition.category)
        if rating < definition.required_rating:
            return False, f"Requires {definition.category.value} {definition.required_rating}"

        system = next((s for s in systems if s.id == location), None)
        if system is not None and system.primary_world.tech_level < definition.tech_level:
            return False, (f"Location TL{system.primary_world.tech_level} "
                           f"< required TL{definition.tech_level}")

        in_category = 0
        for asset in faction.assets:
            owned = self._catalog.definition_of(asset)
            if owned is not None and owned.category is definition.category:
                in_category += 1
        if in_category >= rating:
            return True, f"Would exceed {definition.category.value} asset limit ({in_category}/{rating})"
        return True, "Meets all requirements"

    def generate_purchase_recommendations(self, faction: Faction, systems: list[StarSystem],
                                          intent: StrategicIntent,
                                          budget: int) -> list[PurchaseRecommendation]:
        """Every affordable purchase, best first."""
        locations = get_valid_purchase_locations(faction)
        recommendations = []

        for definition in self._catalog.definitions.values():
            if definition.is_base_of_influence:
                continue
            if faction.attributes.rating(definition.category) < definition.required_rating:
                continue
            if definition.cost > budget:
                continue

            best_location: Optional[str] = None
            over_limit = False
            for location in locations:
                allowed, reason = self.can_purchase(faction, definition, location, systems)
                if not allowed:
                    continue
                if "exceed" not in reason:
                    best_location, over_limit = location, False
                    break
                if best_location is None:
                    best_location, over_limit = location, True
            if best_location is None:
                continue

            base = self._base_score(definition)
            tag, tag_why = self._tag_synergy(definition, faction)
            goal, goal_why = self._goal_synergy(definition, intent)
            diversity, diversity_why = self._diversification(definition, faction)
            needs, needs_why = self._strategic_needs(definition, faction, intent)
            total = base + tag + goal + diversity + needs
            if over_limit:
                total *= 0.5

            parts = [f"Base: {base:.0f}"]
            if tag:
                parts.append(f"Tags: {tag_why}")
            if goal:
                parts.append(f"Goal: {goal_why}")
            if diversity:
                parts.append(f"Diversity: {diversity_why}")
            if needs:
                parts.append(f"Needs: {needs_why}")

            recommendations.append(PurchaseRecommendation(
                definition=definition,
                location=best_location,
                score=total,
                base_score=base,
                tag_synergy_score=tag,
                goal_synergy_score=goal,
                diversification_score=diversity,
                strategic_needs_score=needs,
                reasoning=" | ".join(parts),
            ))

        recommendations.sort(key=lambda r: r.score, reverse=True)
        return recommendations

    # -- Plan ------------------------------------------------------------

    def generate_economic_plan(self, faction: Faction, systems: list[StarSystem],
                               threat_overview: SectorThreatOverview,
                               intent: StrategicIntent) -> EconomicPlan:
        """Repairs, reserve and the best purchase for this turn."""
        available = faction.fac_creds
        system_threats = list(threat_overview.system_threats.values())
        threat_level = (sum(t.overall_danger_level for t in system_threats) / len(system_threats)
                        if system_threats else 0.0)

        repairs = self.generate_repair_decisions(faction, threat_level)
        total_repair_cost = sum(d.repair_cost for d in repairs)
        reserve = calculate_repair_reserve(total_repair_cost, threat_level, available)
        budget = max(0, available - reserve)

        recommendations = self.generate_purchase_recommendations(faction, systems, intent, budget)
        purchase = recommendations[0] if recommendations else None

        parts = [f"Available: {available} FacCreds", f"Threat level: {threat_level:.0f}%"]
        if repairs:
            parts.append(f"{len(repairs)} damaged assets ({total_repair_cost} FacCreds to fully repair)")
            parts.append(f"Reserving {reserve} FacCreds for repairs")
        if purchase is not None:
            parts.append(f"Recommending {purchase.definition.name} (score: {purchase.score:.0f})")
        elif budget > 0:
            parts.append("No suitable assets available within budget")
        else:
            parts.append("No budget for purchases after repair reserve")

        plan = EconomicPlan(
            faction_id=faction.id,
            available_fac_creds=available,
            threat_level=threat_level,
            repair_reserve=reserve,
            spending_budget=budget,
            repair_decisions=repairs,
            purchase=purchase,
            total_repair_cost=total_repair_cost,
            reasoning=". ".join(parts),
        )
        log.debug("[AI_ECONOMY] %s: %s", faction.name, plan.reasoning)
        return plan

    @staticmethod
    def get_economy_action(plan: EconomicPlan) -> EconomyAction:
        """Reduce the plan to the one economic action to take this turn."""
        critical = [r for r in plan.repair_decisions if r.priority >= CRITICAL_REPAIR_PRIORITY]
        if critical and plan.repair_reserve >= critical[0].repair_cost:
            first = critical[0]
            return EconomyAction("repair", f"Repair {first.asset_name} (priority: {first.priority:.0f})",
                                 repair=first)

        purchase = plan.purchase
        if purchase is not None and purchase.definition.cost <= plan.spending_budget:
            return EconomyAction("purchase",
                                 f"Buy {purchase.definition.name} at {purchase.location}",
                                 purchase=purchase)

        return EconomyAction("none", "Conserve FacCreds for future turns")
