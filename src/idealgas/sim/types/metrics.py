from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class TickMetrics:
    tick: int
    population: int
    collisions: int
    momentum_x: float
    momentum_y: float
    kinetic_energy: float
    neighbor_checks: int
    tick_duration_ms: float = 0.0
