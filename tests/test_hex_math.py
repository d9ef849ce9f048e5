"""Tests for hex coordinates and sector distance helpers."""

from factionai.models.hex import HexCoord
from factionai.models.sector import StarSystem
from factionai.util.hex_math import adjacent_offsets, offset_distance, system_distance


class TestHexDistance:
    def test_distance_to_self_is_zero(self):
        h = HexCoord(3, -2)
        assert h.distance_to(h) == 0

    def test_distance_to_neighbor_is_one(self):
        a = HexCoord(0, 0)
        for n in a.neighbors():
            assert a.distance_to(n) == 1

    def test_distance_is_symmetric(self):
        a, b = HexCoord(1, 2), HexCoord(-3, 5)
        assert a.distance_to(b) == b.distance_to(a)

    def test_distance_known_value(self):
        a, b = HexCoord(0, 0), HexCoord(3, -1)
        assert a.distance_to(b) == 3


class TestOffsetConversion:
    def test_even_row_is_unchanged(self):
        assert HexCoord.from_offset(4, 0) == HexCoord(4, 0)

    def test_round_trip(self):
        for x in range(-3, 4):
            for y in range(-3, 4):
                assert HexCoord.from_offset(x, y).to_offset() == (x, y)


class TestOffsetDistance:
    def test_same_row(self):
        assert offset_distance(0, 0, 3, 0) == 3

    def test_odd_row_is_shoved_right(self):
        # (0,1) and (1,1) on the odd row touch (0,0) differently
        assert offset_distance(0, 0, 0, 1) == 1
        assert offset_distance(0, 0, 1, 1) == 2

    def test_system_distance_uses_coordinates(self):
        a = StarSystem(id="a", x=0, y=0)
        b = StarSystem(id="b", x=2, y=2)
        assert system_distance(a, b) == offset_distance(0, 0, 2, 2)


class TestAdjacentOffsets:
    def test_six_neighbors(self):
        assert len(adjacent_offsets(2, 3)) == 6

    def test_neighbors_are_distance_one(self):
        for x, y in [(0, 0), (3, 1), (2, 4)]:
            for nx, ny in adjacent_offsets(x, y):
                assert offset_distance(x, y, nx, ny) == 1

    def test_even_row_neighbors(self):
        assert set(adjacent_offsets(0, 0)) == {
            (1, 0), (-1, 0), (-1, -1), (0, -1), (-1, 1), (0, 1),
        }
