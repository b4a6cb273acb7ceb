import math

from src.shared.models.tracking import Coordinate

EARTH_RADIUS_KM = 6371.0

# Расстояния меньше этого считаем нулевыми (≈1 мм)
_ZERO_DISTANCE_KM = 1e-9


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Вычисляет расстояние между двумя точками (в км) по формуле Haversine.
    """
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)

    a = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) *
         math.sin(dlon / 2) ** 2)

    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """Расстояние между координатами в км."""
    return calculate_distance(a.lat, a.lng, b.lat, b.lng)


def unit_direction(a: Coordinate, b: Coordinate) -> tuple[float, float]:
    """
    Покомпонентное направление от a к b, нормированное на расстояние в км.

    Для совпадающих точек возвращает (0.0, 0.0): вызывающий код трактует это
    как уже достигнутую цель.
    """
    d = distance_km(a, b)
    if d < _ZERO_DISTANCE_KM:
        return 0.0, 0.0
    return (b.lat - a.lat) / d, (b.lng - a.lng) / d
