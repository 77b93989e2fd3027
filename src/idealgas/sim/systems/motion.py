from __future__ import annotations

from typing import TYPE_CHECKING

from ..core.particle import Particle

if TYPE_CHECKING:
    from ..core.world import World


def advance(world: World, particle: Particle) -> None:
    # One tick is one time unit, so the displacement is the speed itself.
    if particle.speed != 0.0:
        particle.position += particle.heading * particle.speed
    world.domain.apply_boundary(particle)
