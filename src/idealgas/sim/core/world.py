from __future__ import annotations

import logging
from time import perf_counter
from typing import Any, Dict, List

from .config import SimulationConfig
from .domain import Box
from .particle import Particle
from .registry import ParticleRegistry
from .rng import DeterministicRng
from .spatial_grid import NeighborSampler, SpatialGrid
from ..systems import metrics as metrics_system, scheduler
from ..types.metrics import TickMetrics
from ..types.snapshot import Snapshot, SnapshotMetadata, SnapshotWorld

logger = logging.getLogger(__name__)

_CONTACT_RNG_SALT = 0xC0A1F00D5EED1234
_NEIGHBOR_RNG_SALT = 0xA51E0EA7E9CA2311


def _derive_stream_seed(seed: int, salt: int) -> int:
    return (int(seed) ^ int(salt)) & 0xFFFFFFFFFFFFFFFF


class World:
    """Simulation context: particles, domain, spatial index, random sources and tick counter.

    ``sampler`` replaces the built-in :class:`SpatialGrid` as the neighbour
    source, e.g. with a scripted sampler in tests. The grid is still rebuilt
    every tick so it can be queried directly.
    """

    def __init__(self, config: SimulationConfig, sampler: NeighborSampler | None = None):
        config.validate()
        self._config = config
        self._rng = DeterministicRng(config.seed)
        self._contact_rng = DeterministicRng(_derive_stream_seed(config.seed, _CONTACT_RNG_SALT))
        self._neighbor_rng = DeterministicRng(_derive_stream_seed(config.seed, _NEIGHBOR_RNG_SALT))
        width, height = config.extent
        self._domain = Box(width, height, config.periodic)
        self._grid = SpatialGrid(config.resolved_cell_size(), self._domain, self._neighbor_rng)
        self._sampler: NeighborSampler = sampler if sampler is not None else self._grid
        self._registry = ParticleRegistry()
        self._tick = 0
        self._metrics: TickMetrics | None = None
        self._bootstrap_population()
        logger.debug(
            "World created: %d particles in %gx%g box (periodic=%s, seed=%d)",
            len(self._registry),
            width,
            height,
            config.periodic,
            config.seed,
        )

    @property
    def config(self) -> SimulationConfig:
        return self._config

    @property
    def particles(self) -> List[Particle]:
        return self._registry.particles

    @property
    def registry(self) -> ParticleRegistry:
        return self._registry

    @property
    def domain(self) -> Box:
        return self._domain

    @property
    def grid(self) -> SpatialGrid:
        return self._grid

    @property
    def sampler(self) -> NeighborSampler:
        return self._sampler

    @property
    def rng(self) -> DeterministicRng:
        return self._rng

    @property
    def contact_rng(self) -> DeterministicRng:
        return self._contact_rng

    @property
    def tick(self) -> int:
        return self._tick

    @property
    def metrics(self) -> TickMetrics | None:
        return self._metrics

    def reset(self) -> None:
        self._rng.reset()
        self._contact_rng.reset()
        self._neighbor_rng.reset()
        self._grid.clear()
        self._tick = 0
        self._metrics = None
        self._bootstrap_population()
        logger.debug("World reset (seed=%d)", self._config.seed)

    def step(self) -> TickMetrics:
        start = perf_counter()
        particles = self._registry.particles
        self._grid.rebuild(particles)
        collisions = scheduler.run_tick(self)
        elapsed_ms = (perf_counter() - start) * 1000.0
        metrics = metrics_system.create_metrics(
            self._tick, particles, collisions, self._grid.neighbor_checks, elapsed_ms
        )
        self._metrics = metrics
        self._tick += 1
        return metrics

    def snapshot(self) -> Snapshot:
        metrics = self._metrics
        if metrics is None:
            metrics = metrics_system.create_metrics(self._tick, self._registry.particles, 0, 0, 0.0)
        config = self._config
        return Snapshot(
            tick=self._tick,
            metrics=metrics,
            particles=[self._particle_snapshot(particle) for particle in self._registry],
            world=SnapshotWorld(width=self._domain.width, height=self._domain.height, periodic=self._domain.periodic),
            metadata=SnapshotMetadata(
                seed=config.seed,
                config_version=config.config_version,
                n_particles=len(self._registry),
                radius=config.radius,
                masses=list(config.masses),
            ),
        )

    def _bootstrap_population(self) -> None:
        config = self._config
        self._registry.create(
            config.n_particles,
            config.masses,
            config.init_speed,
            config.radius,
            self._domain,
            self._rng,
        )

    @staticmethod
    def _particle_snapshot(particle: Particle) -> Dict[str, Any]:
        velocity = particle.velocity
        return {
            "id": particle.id,
            "x": particle.position.x,
            "y": particle.position.y,
            "vx": velocity.x,
            "vy": velocity.y,
            "heading_x": particle.heading.x,
            "heading_y": particle.heading.y,
            "speed": particle.speed,
            "mass": particle.mass,
            "radius": particle.radius,
            "last_partner": particle.last_partner,
            "collisions": particle.collisions,
        }
