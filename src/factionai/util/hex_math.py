"""Hex math utilities for the sector map.

Systems store odd-r offset coordinates; these helpers work on those
directly and delegate the geometry to HexCoord.
Reference: https://www.redblobgames.com/grids/hexagons/
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from factionai.models.hex import HexCoord

if TYPE_CHECKING:
    from factionai.models.sector import StarSystem


def offset_distance(ax: int, ay: int, bx: int, by: int) -> int:
    """Hex distance between two odd-r offset coordinates."""
    return HexCoord.from_offset(ax, ay).distance_to(HexCoord.from_offset(bx, by))


def system_distance(a: StarSystem, b: StarSystem) -> int:
    """Hex distance between two star systems."""
    return a.hex.distance_to(b.hex)


def adjacent_offsets(x: int, y: int) -> list[tuple[int, int]]:
    """Return the odd-r offset coordinates of the 6 hexes around (x, y)."""
    return [n.to_offset() for n in HexCoord.from_offset(x, y).neighbors()]

