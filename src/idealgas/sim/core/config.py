from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

import yaml

from .errors import InvalidConfiguration

logger = logging.getLogger(__name__)


@dataclass
class SimulationConfig:
    n_particles: int = 50
    masses: List[float] = field(default_factory=lambda: [1.0])
    init_speed: float = 1.0
    radius: float = 1.0
    extent: tuple[float, float] = (100.0, 40.0)
    # Toroidal box when True, reflective walls otherwise.
    periodic: bool = True
    # 0 selects a cell the size of the contact distance.
    cell_size: float = 0.0
    seed: int = 42
    config_version: str = "v1"

    @property
    def contact_distance(self) -> float:
        return 2.0 * self.radius

    def resolved_cell_size(self) -> float:
        if self.cell_size > 0:
            return self.cell_size
        return self.contact_distance

    def validate(self) -> None:
        if self.n_particles < 0:
            raise InvalidConfiguration(f"n_particles must be >= 0, got {self.n_particles}")
        if not self.masses:
            raise InvalidConfiguration("masses must contain at least one candidate mass")
        for mass in self.masses:
            if mass <= 0:
                raise InvalidConfiguration(f"every mass must be > 0, got {mass}")
        if self.init_speed < 0:
            raise InvalidConfiguration(f"init_speed must be >= 0, got {self.init_speed}")
        if self.radius <= 0:
            raise InvalidConfiguration(f"radius must be > 0, got {self.radius}")
        if len(self.extent) != 2:
            raise InvalidConfiguration(f"extent must have two dimensions, got {self.extent!r}")
        width, height = self.extent
        if width <= 0 or height <= 0:
            raise InvalidConfiguration(f"extent dimensions must be > 0, got {self.extent!r}")
        if self.cell_size < 0:
            raise InvalidConfiguration(f"cell_size must be >= 0, got {self.cell_size}")
        if 0 < self.cell_size < self.radius / 4:
            # Queries scan ceil(2r / cell) cells per axis; tiny cells stall every tick.
            raise InvalidConfiguration(
                f"cell_size must be 0 or >= radius / 4 ({self.radius / 4}), got {self.cell_size}"
            )

    @staticmethod
    def from_yaml(path: Path) -> "SimulationConfig":
        data = yaml.safe_load(Path(path).read_text()) or {}
        logger.info("Loaded simulation config from %s", path)
        return load_config(data)


@dataclass
class AppConfig:
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    broadcast_interval: int = 1
    tick_interval: float = 1.0 / 20.0
    # Snapshots a client may hold unacknowledged before frames are skipped for it.
    snapshot_backlog: int = 64


def load_config(raw: dict) -> SimulationConfig:
    def _pair(value: tuple[float, float] | list[float] | None, default: tuple[float, float]) -> tuple[float, float]:
        if isinstance(value, (tuple, list)) and len(value) == 2:
            return (float(value[0]), float(value[1]))
        return default

    defaults = SimulationConfig()
    values = {k: v for k, v in raw.items() if k not in {"extent", "masses"}}
    masses = raw.get("masses", defaults.masses)
    if isinstance(masses, (int, float)):
        masses = [masses]
    config = SimulationConfig(
        extent=_pair(raw.get("extent"), defaults.extent),
        masses=[float(m) for m in masses],
        **values,
    )
    config.validate()
    return config
