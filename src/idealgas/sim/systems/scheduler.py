from __future__ import annotations

from typing import TYPE_CHECKING

from . import collisions, motion

if TYPE_CHECKING:
    from ..core.world import World


def run_tick(world: World) -> int:
    """Visit every particle once in a fresh random order; return the collisions resolved.

    Steps are sequential: a particle visited later sees partners already
    updated earlier in the same tick.
    """
    registry = world.registry
    resolved = 0
    for particle_id in world.rng.permutation(registry.ids()):
        if collisions.resolve_step(world, particle_id):
            resolved += 1
        motion.advance(world, registry.get(particle_id))
    return resolved
