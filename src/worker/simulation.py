# src/worker/simulation.py
"""
Воркер симуляции движения велосипедов.
"""

from __future__ import annotations

import random

from src.common.logger import log_info
from src.config.loader import TrackingSettings
from src.services.bike_tracking.store import TrackedBikeStore
from src.services.utils.geo_utils import distance_km, unit_direction
from src.shared.models.tracking import Coordinate, TrackedBike, now_ms
from src.worker.base import PeriodicWorker


class SimulationWorker(PeriodicWorker):
    """
    Продвигает каждый движущийся велосипед к цели.

    За тик:
    - в пределах порога прибытия — встаём в цель и останавливаемся
    - иначе сдвиг на фиксированный шаг, точка в путь, новая скорость
    - батарея уменьшается на случайную величину, не ниже нуля

    Скорость косметическая: выбирается случайно и не связана со сдвигом.
    Единственный писатель положения, скорости, батареи и пути.
    """

    def __init__(
        self,
        store: TrackedBikeStore,
        tracking: TrackingSettings | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self._tracking = tracking or TrackingSettings()
        super().__init__(self._tracking.SIMULATION_INTERVAL)
        self._store = store
        self._rng = rng or random.Random()

    @property
    def name(self) -> str:
        return "SimulationWorker"

    async def tick(self) -> None:
        arrived: list[int] = []
        now = now_ms()

        def advance(bike: TrackedBike) -> None:
            if self.advance_bike(bike, now):
                arrived.append(bike.bike_id)

        await self._store.apply_all(advance)

        for bike_id in arrived:
            await log_info(f"Велосипед {bike_id} прибыл в пункт назначения", extra={"bike_id": bike_id})

    def advance_bike(self, bike: TrackedBike, now: int) -> bool:
        """
        Один шаг симуляции для велосипеда.

        Returns:
            True если велосипед прибыл на этом шаге
        """
        tracking = self._tracking

        if bike.destination is None:
            bike.speed = 0
            bike.battery = self._drain(bike.battery, tracking.BATTERY_IDLE_DRAIN_MAX)
            bike.last_updated = now
            return False

        destination = bike.destination
        threshold = tracking.ARRIVAL_THRESHOLD_KM
        arrived = False

        if distance_km(bike.last_location, destination) <= threshold:
            bike.arrive(now)
            arrived = True
        else:
            dlat, dlng = unit_direction(bike.last_location, destination)
            stepped = Coordinate(
                lat=bike.last_location.lat + dlat * tracking.SIMULATION_STEP,
                lng=bike.last_location.lng + dlng * tracking.SIMULATION_STEP,
            )
            # Шаг закончился в пределах порога: в путь попадает только цель
            if distance_km(stepped, destination) <= threshold:
                bike.arrive(now)
                arrived = True
            else:
                bike.last_location = stepped
                bike.append_path(stepped, now)
                bike.speed = self._rng.randint(tracking.SPEED_MIN_KMH, tracking.SPEED_MAX_KMH)

        bike.battery = self._drain(bike.battery, tracking.BATTERY_DRAIN_MAX)
        bike.last_updated = now
        return arrived

    def _drain(self, battery: float, max_drain: float) -> float:
        if max_drain <= 0:
            return battery
        return max(0.0, battery - self._rng.uniform(0, max_drain))
