"""State effects: the only way the AI changes faction state.

Each effect is plain data.  The AI queues effects while planning a turn and
hands them to an EffectDispatcher during execution, which applies them to
the host state (see engine/faction_service.py).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from factionai.models.faction import FactionGoal


@dataclass(frozen=True)
class MoveAsset:
    """Relocate an asset to another system."""
    faction_id: str
    asset_id: str
    new_location: str


@dataclass(frozen=True)
class RepairAsset:
    """Heal an asset and pay for it."""
    faction_id: str
    asset_id: str
    hp_healed: int
    cost: int


@dataclass(frozen=True)
class PurchaseAsset:
    """Buy a new asset instance at a location."""
    faction_id: str
    definition_id: str
    location: str
    purchased_turn: Optional[int] = None


@dataclass(frozen=True)
class InflictDamage:
    """Damage an asset of *faction_id*."""
    faction_id: str
    asset_id: str
    damage: int
    source_faction_id: str


@dataclass(frozen=True)
class Defend:
    """Hold position.  Applies no state change."""
    faction_id: str
    location: str


@dataclass(frozen=True)
class ExpandInfluence:
    """Claim a system by founding a Base of Influence there."""
    faction_id: str
    location: str
    cost: int


@dataclass(frozen=True)
class SetGoal:
    """Replace the faction's active goal."""
    faction_id: str
    goal: FactionGoal


Effect = Union[MoveAsset, RepairAsset, PurchaseAsset, InflictDamage, Defend, ExpandInfluence, SetGoal]
