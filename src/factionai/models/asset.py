"""Asset definition models.

Asset definitions are the shared, read-only templates that faction asset
instances point at (attack/counterattack patterns, cost, hp, category).
Loaded from config/assets.yaml via the asset_loader.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

BASE_OF_INFLUENCE_ID = "base_of_influence"


class AssetCategory(Enum):
    """The faction attribute an asset belongs to."""

    FORCE = "Force"
    CUNNING = "Cunning"
    WEALTH = "Wealth"


class AssetType:
    """Known asset type names."""

    MILITARY_UNIT = "Military Unit"
    SPECIAL_FORCES = "Special Forces"
    STARSHIP = "Starship"
    FACILITY = "Facility"
    TACTIC = "Tactic"
    LOGISTICS_FACILITY = "Logistics Facility"
    SPECIAL = "Special"


@dataclass(frozen=True)
class AttackPattern:
    """How an asset attacks.

    Attributes:
        attacker_attribute: Attribute the attacker rolls with.
        defender_attribute: Attribute the defender rolls with.
        damage: Dice expression, e.g. ``"1d6"``, ``"2d4+2"``, ``"special"``.
    """

    attacker_attribute: AssetCategory
    defender_attribute: AssetCategory
    damage: str


@dataclass(frozen=True)
class CounterattackPattern:
    """Damage dealt back when an attack against the asset fails."""

    damage: str


@dataclass(frozen=True)
class SpecialFlags:
    """Rule flags printed next to an asset (A, S, P)."""

    has_action: bool = False
    has_special: bool = False
    requires_permission: bool = False


@dataclass(frozen=True)
class AssetDefinition:
    """Complete definition of a purchasable faction asset.

    Attributes:
        id: Unique definition ID (e.g. ``force_1_security_personnel``).
        name: Display name.
        category: Force, Cunning or Wealth.
        required_rating: Attribute rating needed to buy it (1-8).
        hp: Maximum hit points.
        cost: Purchase cost in FacCreds.
        tech_level: Minimum world tech level for purchase.
        asset_type: One of the AssetType names.
        attack: Attack pattern, or None when the asset cannot attack.
        counterattack: Counterattack pattern, or None.
        maintenance: FacCreds upkeep per turn.
        flags: A/S/P rule flags.
        movement_range: Hexes the asset's own ability can relocate
            assets, 0 when it has none.
    """

    id: str
    name: str
    category: AssetCategory
    required_rating: int = 1
    hp: int = 1
    cost: int = 1
    tech_level: int = 0
    asset_type: str = AssetType.SPECIAL
    attack: Optional[AttackPattern] = None
    counterattack: Optional[CounterattackPattern] = None
    maintenance: int = 0
    flags: SpecialFlags = field(default_factory=SpecialFlags)
    description: str = ""
    movement_range: int = 0

    @property
    def is_base_of_influence(self) -> bool:
        return self.id == BASE_OF_INFLUENCE_ID or self.name == "Base of Influence"

    @property
    def is_facility(self) -> bool:
        return self.asset_type in (AssetType.FACILITY, AssetType.LOGISTICS_FACILITY)

    @property
    def is_mobile(self) -> bool:
        """Starships and assets with a movement ability can change system."""
        return self.movement_range > 0 or self.asset_type == AssetType.STARSHIP
