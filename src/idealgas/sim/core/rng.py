from __future__ import annotations

import math
import random
from typing import Sequence, TypeVar

from pygame.math import Vector2

T = TypeVar("T")


class DeterministicRng:
    def __init__(self, seed: int):
        self._seed = seed
        self._random = random.Random(seed)

    def reset(self) -> None:
        self._random.seed(self._seed)

    def next_range(self, low: float, high: float) -> float:
        return self._random.uniform(low, high)

    def next_angle(self) -> float:
        """Uniform angle in [0, 2*pi)."""
        return self._random.random() * 2.0 * math.pi

    def next_unit_circle(self) -> Vector2:
        angle = self.next_angle()
        return Vector2(math.cos(angle), math.sin(angle))

    def choice(self, items: Sequence[T]) -> T:
        return self._random.choice(items)

    def sample_choice(self, items: list[int], default: int) -> int:
        if not items:
            return default
        return self._random.choice(items)

    def permutation(self, items: Sequence[T]) -> list[T]:
        shuffled = list(items)
        self._random.shuffle(shuffled)
        return shuffled
