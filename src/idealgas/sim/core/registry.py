from __future__ import annotations

from typing import TYPE_CHECKING, Iterator, List, Sequence

from .errors import InvalidConfiguration
from .particle import NONE_ID, Particle

if TYPE_CHECKING:
    from .domain import Box
    from .rng import DeterministicRng

# Identity and physical constants are set once at creation.
_FIXED_FIELDS = frozenset({"id", "mass", "radius"})


class ParticleRegistry:
    """Owns every particle of a run. Ids are list indices, so lookups are O(1)."""

    def __init__(self) -> None:
        self._particles: List[Particle] = []

    def __len__(self) -> int:
        return len(self._particles)

    def __iter__(self) -> Iterator[Particle]:
        return iter(self._particles)

    @property
    def particles(self) -> List[Particle]:
        return self._particles

    def create(
        self,
        count: int,
        masses: Sequence[float],
        speed: float,
        radius: float,
        domain: "Box",
        rng: "DeterministicRng",
    ) -> None:
        if count < 0:
            raise InvalidConfiguration(f"particle count must be >= 0, got {count}")
        if not masses or any(mass <= 0 for mass in masses):
            raise InvalidConfiguration(f"masses must be a nonempty set of positive values, got {list(masses)!r}")
        if radius <= 0:
            raise InvalidConfiguration(f"radius must be > 0, got {radius}")
        if speed < 0:
            raise InvalidConfiguration(f"speed must be >= 0, got {speed}")

        self._particles.clear()
        for particle_id in range(count):
            self._particles.append(
                Particle(
                    id=particle_id,
                    position=domain.random_position(rng),
                    heading=rng.next_unit_circle(),
                    speed=float(speed),
                    mass=float(rng.choice(masses)),
                    radius=float(radius),
                    last_partner=NONE_ID,
                )
            )

    def add(self, particle: Particle) -> None:
        if particle.id != len(self._particles):
            raise ValueError(f"expected particle id {len(self._particles)}, got {particle.id}")
        self._particles.append(particle)

    def get(self, particle_id: int) -> Particle:
        if particle_id < 0:
            raise KeyError(particle_id)
        try:
            return self._particles[particle_id]
        except IndexError:
            raise KeyError(particle_id) from None

    def update(self, particle_id: int, **fields: object) -> Particle:
        particle = self.get(particle_id)
        for name, value in fields.items():
            if name in _FIXED_FIELDS or name not in Particle.__slots__:
                raise AttributeError(f"Particle has no settable field {name!r}")
            setattr(particle, name, value)
        return particle

    def ids(self) -> List[int]:
        return [particle.id for particle in self._particles]
