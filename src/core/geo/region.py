# src/core/geo/region.py
"""
Геофильтр клиентского представления: круговая область (центр + радиус).
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Mapping, TypeVar

from src.common.exceptions import InvalidInputError

EARTH_RADIUS_KM = 6371.0

K = TypeVar("K")


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


def validate_coordinates(latitude: float, longitude: float) -> None:
    """Проверяет диапазоны широты и долготы."""
    if isinstance(latitude, bool) or isinstance(longitude, bool):
        raise InvalidInputError("Координаты должны быть числами")
    if not isinstance(latitude, (int, float)) or not isinstance(longitude, (int, float)):
        raise InvalidInputError("Координаты должны быть числами")
    if math.isnan(latitude) or math.isnan(longitude):
        raise InvalidInputError("Координаты должны быть числами")
    if not -90.0 <= latitude <= 90.0:
        raise InvalidInputError(f"Широта вне диапазона: {latitude}")
    if not -180.0 <= longitude <= 180.0:
        raise InvalidInputError(f"Долгота вне диапазона: {longitude}")


@dataclass(frozen=True)
class GeoRegion:
    """Круговая область видимости."""
    latitude: float
    longitude: float
    radius_km: float

    def __post_init__(self) -> None:
        validate_coordinates(self.latitude, self.longitude)
        if self.radius_km <= 0:
            raise InvalidInputError(f"Радиус должен быть положительным: {self.radius_km}")

    @classmethod
    def around(cls, latitude: float, longitude: float, radius_km: float | None = None) -> "GeoRegion":
        """Область вокруг точки; радиус по умолчанию из конфига."""
        if radius_km is None:
            from src.config import settings
            radius_km = settings.ride.DEFAULT_SEARCH_RADIUS_KM
        return cls(latitude, longitude, radius_km)

    def distance_to(self, latitude: float, longitude: float) -> float:
        """Расстояние от центра области до точки в км."""
        return calculate_distance(self.latitude, self.longitude, latitude, longitude)

    def contains(self, latitude: float, longitude: float) -> bool:
        """Попадает ли точка в область (граница включительно)."""
        return self.distance_to(latitude, longitude) <= self.radius_km

    def filter(self, records: Mapping[K, object]) -> dict[K, object]:
        """Оставляет записи с атрибутами latitude/longitude внутри области."""
        return {
            key: record
            for key, record in records.items()
            if self.contains(record.latitude, record.longitude)
        }

    def nearest(self, records: Iterable[object]) -> list[object]:
        """Записи внутри области, отсортированные по удалённости от центра."""
        inside = [r for r in records if self.contains(r.latitude, r.longitude)]
        return sorted(inside, key=lambda r: self.distance_to(r.latitude, r.longitude))
