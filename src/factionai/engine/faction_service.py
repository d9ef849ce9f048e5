"""Faction service — the only writer of faction state.

Responsibilities:
- Faction registry
- Applying AI effects (move, repair, purchase, damage, expand, goal)
- Per-turn FacCred income

The AI never touches factions directly; it hands effects to an
``EffectDispatcher``.  ``FactionService`` is the in-memory one.
"""

from __future__ import annotations

import logging
import math
import uuid
from typing import TYPE_CHECKING, Optional, Protocol

from factionai.models.asset import BASE_OF_INFLUENCE_ID
from factionai.models.effects import (
    Defend,
    Effect,
    ExpandInfluence,
    InflictDamage,
    MoveAsset,
    PurchaseAsset,
    RepairAsset,
    SetGoal,
)
from factionai.models.faction import FactionAsset

if TYPE_CHECKING:
    from factionai.engine.asset_catalog import AssetCatalog
    from factionai.models.faction import Faction

log = logging.getLogger(__name__)


class EffectDispatcher(Protocol):
    """Applies effects to the host game state."""

    def dispatch(self, effect: Effect) -> None:
        ...


def calculate_income(faction: Faction) -> int:
    """FacCreds earned per turn: half Wealth (rounded up) plus a quarter of
    Force and Cunning (rounded down)."""
    attrs = faction.attributes
    return math.ceil(attrs.wealth / 2) + (attrs.force + attrs.cunning) // 4


class FactionService:
    """In-memory faction state and effect interpreter.

    Args:
        catalog: Asset definitions used for purchases and bases.
    """

    def __init__(self, catalog: AssetCatalog) -> None:
        self._catalog = catalog
        self._factions: dict[str, Faction] = {}  # id -> Faction
        self.current_turn = 0

    # -- Faction registry ------------------------------------------------

    def register(self, faction: Faction) -> None:
        """Add a faction to the managed set."""
        self._factions[faction.id] = faction
        log.info("Faction registered: id=%s name=%r", faction.id, faction.name)

    def get(self, faction_id: str) -> Optional[Faction]:
        """Look up a faction by ID."""
        return self._factions.get(faction_id)

    @property
    def all_factions(self) -> list[Faction]:
        """Factions in registration order."""
        return list(self._factions.values())

    def _require(self, faction_id: str) -> Faction:
        faction = self._factions.get(faction_id)
        if faction is None:
            raise KeyError(f"Unknown faction {faction_id!r}")
        return faction

    # -- Effects ---------------------------------------------------------

    def dispatch(self, effect: Effect) -> None:
        """Apply one effect.

        Effects that break a game rule are logged and ignored.

        Raises:
            KeyError: The effect names an unknown faction.
        """
        if isinstance(effect, MoveAsset):
            error = self.move_asset(effect)
        elif isinstance(effect, RepairAsset):
            error = self.repair_asset(effect)
        elif isinstance(effect, PurchaseAsset):
            error = self.purchase_asset(effect)
        elif isinstance(effect, InflictDamage):
            error = self.inflict_damage(effect)
        elif isinstance(effect, ExpandInfluence):
            error = self.expand_influence(effect)
        elif isinstance(effect, SetGoal):
            error = self.set_goal(effect)
        elif isinstance(effect, Defend):
            self._require(effect.faction_id)
            error = None
        else:
            error = f"Unsupported effect {type(effect).__name__}"

        if error is not None:
            log.warning("Effect rejected: %s (%s)", error, effect)

    def move_asset(self, effect: MoveAsset) -> Optional[str]:
        faction = self._require(effect.faction_id)
        asset = faction.get_asset(effect.asset_id)
        if asset is None:
            return f"Unknown asset {effect.asset_id}"
        asset.location = effect.new_location
        log.info("%s moved %s to %s", faction.name, asset.id, effect.new_location)
        return None

    def repair_asset(self, effect: RepairAsset) -> Optional[str]:
        faction = self._require(effect.faction_id)
        asset = faction.get_asset(effect.asset_id)
        if asset is None:
            return f"Unknown asset {effect.asset_id}"
        if faction.fac_creds < effect.cost:
            return f"Not enough FacCreds (need {effect.cost}, have {faction.fac_creds})"
        faction.fac_creds -= effect.cost
        asset.hp = min(asset.max_hp, asset.hp + effect.hp_healed)
        log.info("%s repaired %s to %d/%d", faction.name, asset.id, asset.hp, asset.max_hp)
        return None

    def purchase_asset(self, effect: PurchaseAsset) -> Optional[str]:
        faction = self._require(effect.faction_id)
        definition = self._catalog.get(effect.definition_id)
        if definition is None:
            return f"Unknown asset definition {effect.definition_id}"
        if faction.fac_creds < definition.cost:
            return f"Not enough FacCreds (need {definition.cost}, have {faction.fac_creds})"
        if faction.attributes.rating(definition.category) < definition.required_rating:
            return f"{definition.category.value} rating too low for {definition.name}"

        faction.fac_creds -= definition.cost
        turn = effect.purchased_turn if effect.purchased_turn is not None else self.current_turn
        faction.assets.append(FactionAsset(
            id=f"{definition.id}-{uuid.uuid4().hex[:8]}",
            definition_id=definition.id,
            location=effect.location,
            hp=definition.hp,
            max_hp=definition.hp,
            purchased_turn=turn,
        ))
        log.info("%s purchased %s at %s", faction.name, definition.name, effect.location)
        return None

    def inflict_damage(self, effect: InflictDamage) -> Optional[str]:
        """Damage an asset.

        Damage to a Base of Influence also hits faction HP, but never for
        more than the base had left.  A destroyed non-base asset passes its
        overflow damage on to faction HP.
        """
        faction = self._require(effect.faction_id)
        asset = faction.get_asset(effect.asset_id)
        if asset is None:
            return f"Unknown asset {effect.asset_id}"

        definition = self._catalog.definition_of(asset)
        is_base = definition is not None and definition.is_base_of_influence
        hp_before = asset.hp
        asset.hp -= effect.damage
        attrs = faction.attributes

        if is_base:
            attrs.hp = max(0, attrs.hp - min(effect.damage, hp_before))

        if asset.hp <= 0:
            overflow = -asset.hp
            faction.assets.remove(asset)
            log.info("%s lost %s (destroyed by %s)", faction.name, asset.id, effect.source_faction_id)
            if not is_base and overflow > 0:
                attrs.hp = max(0, attrs.hp - overflow)
        return None

    def expand_influence(self, effect: ExpandInfluence) -> Optional[str]:
        """Found a Base of Influence with hp equal to the cost paid."""
        faction = self._require(effect.faction_id)
        here = faction.assets_at(effect.location)
        definitions = [self._catalog.definition_of(a) for a in here]
        if any(d is not None and d.is_base_of_influence for d in definitions):
            return f"{faction.name} already has a Base of Influence at {effect.location}"
        if not any(d is None or not d.is_base_of_influence for d in definitions):
            return f"{faction.name} has no assets at {effect.location}"
        if effect.cost < 1:
            return f"Invalid Base of Influence cost {effect.cost}"
        if faction.fac_creds < effect.cost:
            return f"Not enough FacCreds (need {effect.cost}, have {faction.fac_creds})"

        faction.fac_creds -= effect.cost
        faction.assets.append(FactionAsset(
            id=f"{BASE_OF_INFLUENCE_ID}-{uuid.uuid4().hex[:8]}",
            definition_id=BASE_OF_INFLUENCE_ID,
            location=effect.location,
            hp=effect.cost,
            max_hp=effect.cost,
            purchased_turn=self.current_turn,
        ))
        log.info("%s founded a Base of Influence at %s", faction.name, effect.location)
        return None

    def set_goal(self, effect: SetGoal) -> Optional[str]:
        faction = self._require(effect.faction_id)
        faction.goal = effect.goal
        log.info("%s adopted goal %s", faction.name, effect.goal.type.value)
        return None

    # -- Income ----------------------------------------------------------

    def process_income(self) -> dict[str, int]:
        """Pay every faction its turn income.  Returns id -> amount."""
        paid = {}
        for faction in self._factions.values():
            income = calculate_income(faction)
            faction.fac_creds += income
            paid[faction.id] = income
        log.debug("Income paid: %s", paid)
        return paid
