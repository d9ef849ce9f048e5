"""Faction model: attributes, goal and owned asset instances.

Factions are host state.  The AI reads them freely but only ever changes
them through effects applied by the FactionService.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from factionai.models.asset import AssetCategory


class GoalType(Enum):
    """Faction goals from the faction turn rules."""

    MILITARY_CONQUEST = "Military Conquest"
    COMMERCIAL_EXPANSION = "Commercial Expansion"
    INTELLIGENCE_COUP = "Intelligence Coup"
    PLANETARY_SEIZURE = "Planetary Seizure"
    EXPAND_INFLUENCE = "Expand Influence"
    BLOOD_THE_ENEMY = "Blood the Enemy"
    PEACEABLE_KINGDOM = "Peaceable Kingdom"
    DESTROY_THE_FOE = "Destroy the Foe"
    INSIDE_ENEMY_TERRITORY = "Inside Enemy Territory"
    INVINCIBLE_VALOR = "Invincible Valor"
    WEALTH_OF_WORLDS = "Wealth of Worlds"


@dataclass
class FactionAttributes:
    """Hit points and the three attribute ratings.

    Attributes:
        hp: Current faction hit points.
        max_hp: Maximum faction hit points.
        force: Force rating (1-8).
        cunning: Cunning rating (1-8).
        wealth: Wealth rating (1-8).
    """

    hp: int = 10
    max_hp: int = 10
    force: int = 1
    cunning: int = 1
    wealth: int = 1

    def rating(self, category: AssetCategory) -> int:
        """Rating for the attribute matching *category*."""
        if category is AssetCategory.FORCE:
            return self.force
        if category is AssetCategory.CUNNING:
            return self.cunning
        return self.wealth

    @property
    def total(self) -> int:
        return self.force + self.cunning + self.wealth


@dataclass
class FactionGoal:
    """An active faction goal.

    Attributes:
        id: Unique goal instance ID.
        type: The goal type.
        description: What completes the goal.
        current: Progress so far.
        target: Progress needed to complete.
        difficulty: XP reward tier.
        is_completed: Whether the goal has been met.
    """

    id: str
    type: GoalType
    description: str = ""
    current: int = 0
    target: int = 1
    difficulty: int = 1
    is_completed: bool = False


@dataclass
class FactionAsset:
    """An asset instance owned by exactly one faction.

    Attributes:
        id: Unique instance ID.
        definition_id: ID of the AssetDefinition template.
        location: System ID where the asset sits.
        hp: Current hit points.
        max_hp: Maximum hit points.
        stealthed: Whether the asset is hidden from rivals.
        purchased_turn: Game turn of purchase, if known.
    """

    id: str
    definition_id: str
    location: str
    hp: int
    max_hp: int
    stealthed: bool = False
    purchased_turn: Optional[int] = None


@dataclass
class Faction:
    """Complete state of one faction.

    Attributes:
        id: Unique faction ID.
        name: Display name.
        faction_type: Government, Corporation, Religion, ...
        homeworld: System ID of the homeworld.
        attributes: HP and attribute ratings.
        fac_creds: Spendable currency.
        tags: Faction tags (Warlike, Pirates, ...).
        goal: Active goal, if any.
        assets: Owned asset instances.
    """

    id: str
    name: str = ""
    faction_type: str = "Other"
    homeworld: str = ""
    attributes: FactionAttributes = field(default_factory=FactionAttributes)
    fac_creds: int = 0
    tags: list[str] = field(default_factory=list)
    goal: Optional[FactionGoal] = None
    assets: list[FactionAsset] = field(default_factory=list)

    # -- Helpers ---------------------------------------------------------

    def get_asset(self, asset_id: str) -> Optional[FactionAsset]:
        """Look up an owned asset by instance ID."""
        for asset in self.assets:
            if asset.id == asset_id:
                return asset
        return None

    def assets_at(self, system_id: str) -> list[FactionAsset]:
        """Owned assets located in *system_id*."""
        return [a for a in self.assets if a.location == system_id]
