from __future__ import annotations

import math

import pytest
from pygame.math import Vector2
from pytest import approx

from conftest import ScriptedSampler, make_particle
from idealgas.sim.core.config import SimulationConfig
from idealgas.sim.core.particle import NONE_ID
from idealgas.sim.core.world import World
from idealgas.sim.systems.collisions import collide, elastic_reflection, resolve_step
from idealgas.sim.systems.metrics import kinetic_energy, momentum


def _empty_world(sampler=None, **overrides) -> World:
    config = SimulationConfig(n_particles=0, **overrides)
    return World(config, sampler=sampler)


def _pair_totals(a, b) -> tuple[Vector2, float]:
    return momentum(a) + momentum(b), kinetic_energy(a) + kinetic_energy(b)


def test_equal_masses_exchange_velocity_head_on():
    me = make_particle(1, velocity=(1.0, 0.0))
    her = make_particle(0, velocity=(-1.0, 0.0))

    collide(me, her, 0.0)

    assert me.velocity.x == approx(-1.0)
    assert me.velocity.y == approx(0.0, abs=1e-12)
    assert her.velocity.x == approx(1.0)
    assert her.velocity.y == approx(0.0, abs=1e-12)
    assert me.speed == approx(1.0)
    assert her.speed == approx(1.0)


def test_heavy_particle_hits_resting_particle():
    heavy = make_particle(1, velocity=(1.0, 0.0), mass=2.0)
    light = make_particle(0, velocity=(0.0, 0.0), mass=1.0)

    collide(heavy, light, 0.0)

    assert heavy.velocity.x == approx(1.0 / 3.0)
    assert light.velocity.x == approx(4.0 / 3.0)
    assert heavy.velocity.y == approx(0.0, abs=1e-12)
    assert light.velocity.y == approx(0.0, abs=1e-12)
    assert light.heading == Vector2(1.0, 0.0)


def test_elastic_reflection_keeps_centre_of_mass_velocity():
    u1, u2 = elastic_reflection(3.0, 2.0, 1.0, -1.0)
    assert (3.0 * u1 + 1.0 * u2) / 4.0 == approx((3.0 * 2.0 - 1.0) / 4.0)
    assert 3.0 * u1 * u1 + u2 * u2 == approx(3.0 * 4.0 + 1.0)


@pytest.mark.parametrize("theta", [0.0, 0.3, math.pi / 2, 2.0, math.pi, 4.7, 6.1])
@pytest.mark.parametrize("masses", [(1.0, 1.0), (2.0, 1.0), (0.5, 7.0)])
def test_collision_conserves_pair_momentum_and_energy(theta, masses):
    me = make_particle(5, velocity=(0.8, -0.3), mass=masses[0])
    her = make_particle(2, velocity=(-0.2, 1.1), mass=masses[1])
    momentum_before, energy_before = _pair_totals(me, her)

    collide(me, her, theta)

    momentum_after, energy_after = _pair_totals(me, her)
    assert momentum_after.x == approx(momentum_before.x, abs=1e-12)
    assert momentum_after.y == approx(momentum_before.y, abs=1e-12)
    assert energy_after == approx(energy_before, rel=1e-12)
    for particle in (me, her):
        if particle.speed > 0:
            assert particle.heading.length() == approx(1.0)


def test_perpendicular_component_is_untouched():
    me = make_particle(1, velocity=(0.0, 1.0))
    her = make_particle(0, velocity=(0.0, -2.0))

    # Contact normal along x: neither particle has velocity along it.
    collide(me, her, 0.0)

    assert me.velocity.x == approx(0.0, abs=1e-12)
    assert me.velocity.y == approx(1.0)
    assert her.velocity.y == approx(-2.0)


def test_stopped_particle_keeps_previous_heading():
    me = make_particle(1, velocity=(1.0, 0.0))
    her = make_particle(0, velocity=(0.0, 0.0))
    her.heading = Vector2(0.0, 1.0)

    collide(me, her, 0.0)

    assert me.speed == 0.0
    assert me.heading == Vector2(1.0, 0.0)
    assert her.speed == approx(1.0)
    assert her.heading.x == approx(1.0)


def test_no_neighbor_clears_last_partner(scripted_sampler):
    world = _empty_world(sampler=scripted_sampler)
    particle = make_particle(0)
    particle.last_partner = 7
    world.registry.add(particle)

    assert resolve_step(world, 0) is False
    assert particle.last_partner == NONE_ID
    assert scripted_sampler.queries == [(0, 2.0)]


def test_only_larger_id_resolves_pair():
    sampler = ScriptedSampler({0: 1, 1: 0})
    world = _empty_world(sampler=sampler)
    low = make_particle(0, velocity=(1.0, 0.0))
    high = make_particle(1, velocity=(-1.0, 0.0))
    world.registry.add(low)
    world.registry.add(high)

    assert resolve_step(world, 0) is False
    assert low.velocity == Vector2(1.0, 0.0)
    assert high.velocity == Vector2(-1.0, 0.0)
    assert low.last_partner == NONE_ID

    assert resolve_step(world, 1) is True
    assert low.last_partner == 1
    assert high.last_partner == 0
    assert low.collisions == 1
    assert high.collisions == 1


def test_contacting_pair_is_not_resolved_twice_until_separated():
    world = _empty_world()
    world.registry.add(make_particle(0, position=(10.0, 10.0), velocity=(0.5, 0.0)))
    world.registry.add(make_particle(1, position=(11.0, 10.0), velocity=(-0.5, 0.2)))
    low, high = world.particles

    world.grid.rebuild(world.particles)
    assert resolve_step(world, 1) is True
    velocities = (low.velocity, high.velocity)

    # Still touching on the following tick: the guard suppresses a second bounce.
    world.grid.rebuild(world.particles)
    assert resolve_step(world, 1) is False
    assert (low.velocity, high.velocity) == velocities

    high.position.update(30.0, 30.0)
    world.grid.rebuild(world.particles)
    assert resolve_step(world, 1) is False
    assert high.last_partner == NONE_ID

    high.position.update(11.0, 10.0)
    world.grid.rebuild(world.particles)
    assert resolve_step(world, 1) is True


def test_guard_only_remembers_most_recent_partner():
    sampler = ScriptedSampler({2: 0})
    world = _empty_world(sampler=sampler)
    for particle_id in range(3):
        world.registry.add(make_particle(particle_id, velocity=(0.1 * (particle_id + 1), 0.0)))

    assert resolve_step(world, 2) is True
    sampler.answers[2] = 1
    assert resolve_step(world, 2) is True
    assert world.particles[2].last_partner == 1
    sampler.answers[2] = 0
    assert resolve_step(world, 2) is True
