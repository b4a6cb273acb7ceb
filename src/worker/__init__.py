# src/worker/__init__.py
"""
Фоновые периодические воркеры: симуляция движения и рассылка телеметрии.
"""

from src.worker.base import PeriodicWorker
from src.worker.broadcast import BroadcastWorker
from src.worker.simulation import SimulationWorker

__all__ = ["PeriodicWorker", "BroadcastWorker", "SimulationWorker"]
