# tests/core/test_geo_utils.py
"""
Тесты для геоутилит.
"""

from __future__ import annotations

import math

import pytest

from src.services.utils.geo_utils import (
    calculate_distance,
    distance_km,
    unit_direction,
)
from src.shared.models.tracking import Coordinate


SAO_PAULO = Coordinate(lat=-23.55, lng=-46.63)
NEARBY = Coordinate(lat=-23.551, lng=-46.631)


class TestDistance:
    """Тесты для distance_km / calculate_distance."""

    def test_zero_for_same_point(self) -> None:
        """Проверяет нулевое расстояние до самой себя."""
        assert distance_km(SAO_PAULO, SAO_PAULO) == 0

    @pytest.mark.parametrize(
        "a, b",
        [
            (SAO_PAULO, NEARBY),
            (Coordinate(lat=50.4501, lng=30.5234), Coordinate(lat=53.5511, lng=9.9937)),
            (Coordinate(lat=0.0, lng=179.9), Coordinate(lat=0.0, lng=-179.9)),
            (Coordinate(lat=89.9, lng=0.0), Coordinate(lat=-89.9, lng=180.0)),
        ],
    )
    def test_symmetric(self, a: Coordinate, b: Coordinate) -> None:
        """Проверяет симметричность расстояния."""
        assert distance_km(a, b) == distance_km(b, a)

    def test_one_degree_of_latitude(self) -> None:
        """Один градус широты ≈ 111.19 км."""
        d = calculate_distance(0.0, 0.0, 1.0, 0.0)
        assert d == pytest.approx(111.19, abs=0.01)

    def test_short_distance(self) -> None:
        """Проверяет расстояние в сценарии Сан-Паулу (~150 м)."""
        d = distance_km(SAO_PAULO, NEARBY)
        assert 0.1 < d < 0.2

    def test_scalar_and_coordinate_forms_agree(self) -> None:
        """distance_km совпадает с calculate_distance."""
        assert distance_km(SAO_PAULO, NEARBY) == calculate_distance(
            SAO_PAULO.lat, SAO_PAULO.lng, NEARBY.lat, NEARBY.lng
        )


class TestUnitDirection:
    """Тесты для unit_direction."""

    def test_zero_vector_for_same_point(self) -> None:
        """Совпадающие точки дают нулевой вектор."""
        assert unit_direction(SAO_PAULO, SAO_PAULO) == (0.0, 0.0)

    def test_direction_signs(self) -> None:
        """Направление на юго-запад: обе компоненты отрицательные."""
        dlat, dlng = unit_direction(SAO_PAULO, NEARBY)
        assert dlat < 0
        assert dlng < 0

    def test_scaled_by_distance_restores_delta(self) -> None:
        """direction * distance возвращает исходную разницу координат."""
        d = distance_km(SAO_PAULO, NEARBY)
        dlat, dlng = unit_direction(SAO_PAULO, NEARBY)

        assert dlat * d == pytest.approx(NEARBY.lat - SAO_PAULO.lat)
        assert dlng * d == pytest.approx(NEARBY.lng - SAO_PAULO.lng)

    def test_step_moves_closer(self) -> None:
        """Шаг по направлению уменьшает расстояние до цели."""
        dlat, dlng = unit_direction(SAO_PAULO, NEARBY)
        moved = Coordinate(lat=SAO_PAULO.lat + dlat * 0.01, lng=SAO_PAULO.lng + dlng * 0.01)

        assert distance_km(moved, NEARBY) < distance_km(SAO_PAULO, NEARBY)
        assert not math.isnan(moved.lat)
