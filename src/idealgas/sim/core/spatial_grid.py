from __future__ import annotations

import math
from typing import TYPE_CHECKING, Dict, Iterable, List, Protocol, Tuple

from .particle import NONE_ID

if TYPE_CHECKING:
    from .domain import Box
    from .particle import Particle
    from .rng import DeterministicRng

_Entry = Tuple[int, float, float]


class NeighborSampler(Protocol):
    def sample_neighbor(self, particle_id: int, radius: float) -> int:
        """Return a random id within ``radius`` of ``particle_id`` (itself excluded), or NONE_ID."""
        ...


class SpatialGrid:
    """Uniform bucket grid over the pre-tick positions of every particle.

    Positions are copied in :meth:`rebuild`, so queries made while particles are
    being moved keep answering against the state the tick started from.
    """

    def __init__(self, cell_size: float, domain: "Box", rng: "DeterministicRng") -> None:
        self._domain = domain
        self._rng = rng
        self._cols = max(1, int(domain.width // cell_size))
        self._rows = max(1, int(domain.height // cell_size))
        # Stretch cells so a whole number of them tiles the box; needed for wrapping.
        self._cell_w = domain.width / self._cols
        self._cell_h = domain.height / self._rows
        self._cells: Dict[Tuple[int, int], List[_Entry]] = {}
        self._positions: Dict[int, Tuple[float, float]] = {}
        self._active_keys: List[Tuple[int, int]] = []
        self._neighbor_scratch: List[int] = []
        self.neighbor_checks = 0

    def clear(self) -> None:
        for key in self._active_keys:
            bucket = self._cells.get(key)
            if bucket:
                bucket.clear()
        self._active_keys.clear()
        self._positions.clear()
        self.neighbor_checks = 0

    def insert(self, particle: "Particle") -> None:
        x = particle.position.x
        y = particle.position.y
        key = self._cell_key(x, y)
        bucket = self._cells.get(key)
        if bucket is None:
            bucket = []
            self._cells[key] = bucket
            self._active_keys.append(key)
        elif not bucket:
            # Bucket exists but was cleared at the start of this tick; mark it active again.
            self._active_keys.append(key)
        bucket.append((particle.id, x, y))
        self._positions[particle.id] = (x, y)

    def rebuild(self, particles: Iterable["Particle"]) -> None:
        self.clear()
        for particle in particles:
            self.insert(particle)

    def neighbors(self, particle_id: int, radius: float) -> List[int]:
        """All ids within ``radius`` of ``particle_id``, in grid order. The list is reused between calls."""
        self._neighbor_scratch.clear()
        position = self._positions.get(particle_id)
        if position is None:
            return self._neighbor_scratch
        pos_x, pos_y = position
        base_col, base_row = self._cell_key(pos_x, pos_y)
        radius_sq = radius * radius
        offset_xy = self._domain.offset_xy
        cells = self._cells
        append = self._neighbor_scratch.append

        cols = self._axis_cells(base_col, int(math.ceil(radius / self._cell_w)), self._cols)
        rows = self._axis_cells(base_row, int(math.ceil(radius / self._cell_h)), self._rows)
        for col in cols:
            for row in rows:
                bucket = cells.get((col, row))
                if not bucket:
                    continue
                for other_id, x, y in bucket:
                    if other_id == particle_id:
                        continue
                    dx, dy = offset_xy(pos_x, pos_y, x, y)
                    if dx * dx + dy * dy <= radius_sq:
                        append(other_id)
        self.neighbor_checks += len(self._neighbor_scratch)
        return self._neighbor_scratch

    def sample_neighbor(self, particle_id: int, radius: float) -> int:
        return self._rng.sample_choice(self.neighbors(particle_id, radius), NONE_ID)

    def _axis_cells(self, base: int, cell_range: int, count: int) -> List[int]:
        if not self._domain.periodic:
            return [c for c in range(base - cell_range, base + cell_range + 1) if 0 <= c < count]
        if 2 * cell_range + 1 >= count:
            return list(range(count))
        return [(base + d) % count for d in range(-cell_range, cell_range + 1)]

    def _cell_key(self, x: float, y: float) -> Tuple[int, int]:
        col = min(max(int(x // self._cell_w), 0), self._cols - 1)
        row = min(max(int(y // self._cell_h), 0), self._rows - 1)
        return col, row
