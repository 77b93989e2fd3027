from __future__ import annotations

from typing import Iterable

from pygame.math import Vector2

from ..core.particle import Particle
from ..types.metrics import TickMetrics


def momentum(particle: Particle) -> Vector2:
    return particle.heading * (particle.mass * particle.speed)


def kinetic_energy(particle: Particle) -> float:
    return 0.5 * particle.mass * particle.speed * particle.speed


def total_momentum(particles: Iterable[Particle]) -> Vector2:
    total = Vector2()
    for particle in particles:
        total += momentum(particle)
    return total


def total_kinetic_energy(particles: Iterable[Particle]) -> float:
    return sum(kinetic_energy(particle) for particle in particles)


def create_metrics(
    tick: int,
    particles: list[Particle],
    collisions: int,
    neighbor_checks: int,
    duration_ms: float,
) -> TickMetrics:
    total = total_momentum(particles)
    return TickMetrics(
        tick=tick,
        population=len(particles),
        collisions=collisions,
        momentum_x=total.x,
        momentum_y=total.y,
        kinetic_energy=total_kinetic_energy(particles),
        neighbor_checks=neighbor_checks,
        tick_duration_ms=duration_ms,
    )
