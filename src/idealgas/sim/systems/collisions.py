from __future__ import annotations

import math
from typing import TYPE_CHECKING

from ..core.particle import NONE_ID, Particle
from ..utils.math2d import contact_basis, from_contact_frame, to_contact_frame

if TYPE_CHECKING:
    from ..core.world import World


def elastic_reflection(m1: float, u1: float, m2: float, u2: float) -> tuple[float, float]:
    """One-dimensional elastic collision: reflect both velocities through the centre of mass."""
    cm = (m1 * u1 + m2 * u2) / (m1 + m2)
    return 2.0 * cm - u1, 2.0 * cm - u2


def collide(me: Particle, her: Particle, theta: float) -> None:
    """Elastic collision of two particles along the contact direction ``theta``.

    Both velocities are rotated into the contact frame, the along-contact
    components are reflected through the centre-of-mass velocity and the
    perpendicular components are left alone. Rotating back conserves the pair's
    momentum and kinetic energy.
    """
    c, s = contact_basis(theta)
    me_vel = me.velocity
    her_vel = her.velocity
    me_along, me_perp = to_contact_frame(me_vel.x, me_vel.y, c, s)
    her_along, her_perp = to_contact_frame(her_vel.x, her_vel.y, c, s)

    me_along, her_along = elastic_reflection(me.mass, me_along, her.mass, her_along)

    _set_velocity(me, *from_contact_frame(me_along, me_perp, c, s))
    _set_velocity(her, *from_contact_frame(her_along, her_perp, c, s))
    me.collisions += 1
    her.collisions += 1


def _set_velocity(particle: Particle, vx: float, vy: float) -> None:
    speed = math.hypot(vx, vy)
    particle.speed = speed
    # A stopped particle keeps its old heading; a zero vector has no direction.
    if speed != 0.0:
        particle.heading.update(vx / speed, vy / speed)


def resolve_step(world: World, me_id: int) -> bool:
    """Resolve at most one collision for ``me_id``. Returns True if velocities changed."""
    registry = world.registry
    me = registry.get(me_id)
    her_id = world.sampler.sample_neighbor(me_id, 2.0 * me.radius)
    if her_id == NONE_ID:
        # Out of contact: the previous partner may be hit again later.
        me.last_partner = NONE_ID
        return False
    # The larger id handles the pair; the guard stops a touching pair juddering.
    if her_id >= me_id or her_id == me.last_partner:
        return False

    her = registry.get(her_id)
    me.last_partner = her_id
    her.last_partner = me_id
    collide(me, her, world.contact_rng.next_angle())
    return True
