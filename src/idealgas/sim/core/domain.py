from __future__ import annotations

from typing import TYPE_CHECKING

from pygame.math import Vector2

if TYPE_CHECKING:
    from .particle import Particle
    from .rng import DeterministicRng


class Box:
    """Rectangular domain ``[0, width) x [0, height)``.

    A periodic box wraps positions and measures distances with the minimum-image
    convention. A closed box mirrors positions back inside and flips the
    matching heading component, which keeps speed (and so kinetic energy) but
    not momentum.
    """

    def __init__(self, width: float, height: float, periodic: bool = True) -> None:
        self.width = float(width)
        self.height = float(height)
        self.periodic = periodic

    def random_position(self, rng: "DeterministicRng") -> Vector2:
        return Vector2(rng.next_range(0.0, self.width), rng.next_range(0.0, self.height))

    def offset_xy(self, ox: float, oy: float, tx: float, ty: float) -> tuple[float, float]:
        dx = tx - ox
        dy = ty - oy
        if self.periodic:
            dx -= self.width * round(dx / self.width)
            dy -= self.height * round(dy / self.height)
        return dx, dy

    def apply_boundary(self, particle: "Particle") -> None:
        if self.periodic:
            particle.position.update(
                self._wrap(particle.position.x, self.width),
                self._wrap(particle.position.y, self.height),
            )
            return
        x, y, hx, hy = self._reflect(
            particle.position.x,
            particle.position.y,
            particle.heading.x,
            particle.heading.y,
        )
        particle.position.update(x, y)
        particle.heading.update(hx, hy)

    @staticmethod
    def _wrap(value: float, size: float) -> float:
        wrapped = value % size
        # -1e-17 % size rounds up to size itself.
        if wrapped >= size:
            return 0.0
        return wrapped

    def _reflect(self, x: float, y: float, hx: float, hy: float) -> tuple[float, float, float, float]:
        while True:
            crossed = False
            if x < 0:
                x = -x
                hx = -hx
                crossed = True
            if x > self.width:
                x = 2 * self.width - x
                hx = -hx
                crossed = True
            if y < 0:
                y = -y
                hy = -hy
                crossed = True
            if y > self.height:
                y = 2 * self.height - y
                hy = -hy
                crossed = True
            if not crossed:
                break

        return x, y, hx, hy
