"""Hexagonal coordinate system using axial coordinates (q, r).

Star systems are placed on the sector grid with odd-r offset coordinates
(x = column, y = row, odd rows shoved right).  All distance math happens
in axial/cube space, so offsets are converted with ``HexCoord.from_offset``.

Axial coordinates define position on a hex grid where:
- q axis runs roughly east
- r axis runs roughly south-east
- s = -q - r is the implicit third cube coordinate

Reference: https://www.redblobgames.com/grids/hexagons/
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class HexCoord:
    """Immutable axial hex coordinate.

    Attributes:
        q: Column coordinate (east axis).
        r: Row coordinate (south-east axis).
    """

    q: int
    r: int

    # -- Construction ----------------------------------------------------

    @classmethod
    def from_offset(cls, x: int, y: int) -> HexCoord:
        """Convert odd-r offset coordinates (column x, row y) to axial."""
        q = x - (y - (y & 1)) // 2
        return cls(q, y)

    def to_offset(self) -> tuple[int, int]:
        """Convert back to odd-r offset coordinates ``(x, y)``."""
        x = self.q + (self.r - (self.r & 1)) // 2
        return x, self.r

    # -- Cube coordinate -------------------------------------------------

    @property
    def s(self) -> int:
        """Implicit cube coordinate: s = -q - r."""
        return -self.q - self.r

    # -- Geometry --------------------------------------------------------

    def distance_to(self, other: HexCoord) -> int:
        """Hex grid distance (number of steps along hex edges)."""
        dq = abs(self.q - other.q)
        dr = abs(self.r - other.r)
        ds = abs(self.s - other.s)
        return max(dq, dr, ds)

    def neighbors(self) -> list[HexCoord]:
        """Return the 6 adjacent hex coordinates."""
        return [HexCoord(self.q + dq, self.r + dr) for dq, dr in _DIRECTIONS]

    def __repr__(self) -> str:
        return f"Hex({self.q},{self.r})"


# The 6 axial direction vectors
_DIRECTIONS: list[tuple[int, int]] = [
    (1, 0),   # E
    (1, -1),  # NE
    (0, -1),  # NW
    (-1, 0),  # W
    (-1, 1),  # SW
    (0, 1),   # SE
]
