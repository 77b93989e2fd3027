from __future__ import annotations

from dataclasses import dataclass

from pygame.math import Vector2

# Never a valid particle id; ids are assigned from 0 upwards.
NONE_ID = -1


@dataclass(slots=True)
class Particle:
    id: int
    position: Vector2
    heading: Vector2
    speed: float
    mass: float
    radius: float
    last_partner: int = NONE_ID
    collisions: int = 0

    @property
    def velocity(self) -> Vector2:
        return self.heading * self.speed
