"""Sector model: star systems, their primary worlds and routes.

The sector is read-only reference data for the AI.  Loaded from the
scenario YAML via the sector_loader.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from factionai.models.hex import HexCoord


@dataclass(frozen=True)
class Route:
    """A spike-drive route to another system.

    Attributes:
        system_id: ID of the connected system.
        is_trade_route: Whether the route is a trade route.
    """

    system_id: str
    is_trade_route: bool = False


@dataclass(frozen=True)
class PrimaryWorld:
    """The main world of a star system.

    Attributes:
        name: World name.
        tech_level: Tech level 0-5.
        population: Population index 0-6.
    """

    name: str = ""
    tech_level: int = 0
    population: int = 0
    atmosphere: str = "Breathable"
    temperature: str = "Temperate"
    biosphere: str = "None"
    government: str = ""
    tags: tuple[str, ...] = ()
    trade_codes: tuple[str, ...] = ()


@dataclass(frozen=True)
class StarSystem:
    """A star system on the sector grid.

    Attributes:
        id: Unique system ID.
        name: Display name.
        x: Odd-r offset column.
        y: Odd-r offset row.
        primary_world: The system's main world.
        routes: Routes to connected systems.
    """

    id: str
    name: str = ""
    x: int = 0
    y: int = 0
    primary_world: PrimaryWorld = field(default_factory=PrimaryWorld)
    routes: tuple[Route, ...] = ()

    @property
    def hex(self) -> HexCoord:
        """Axial coordinate of this system."""
        return HexCoord.from_offset(self.x, self.y)


@dataclass
class Sector:
    """A named collection of star systems."""

    id: str = "sector"
    name: str = ""
    systems: list[StarSystem] = field(default_factory=list)

    def get(self, system_id: str) -> Optional[StarSystem]:
        """Look up a system by ID."""
        for system in self.systems:
            if system.id == system_id:
                return system
        return None
