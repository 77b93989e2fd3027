import sys
from pathlib import Path

import pytest
from pygame.math import Vector2

ROOT = Path(__file__).resolve().parents[2]
src_root = ROOT / "src"
if str(src_root) not in sys.path:
    sys.path.insert(0, str(src_root))

from idealgas.sim.core.particle import NONE_ID, Particle  # noqa: E402


class ScriptedSampler:
    """Neighbour sampler that answers from a fixed table instead of geometry."""

    def __init__(self, answers: dict[int, int] | None = None) -> None:
        self.answers = dict(answers or {})
        self.queries: list[tuple[int, float]] = []

    def sample_neighbor(self, particle_id: int, radius: float) -> int:
        self.queries.append((particle_id, radius))
        return self.answers.get(particle_id, NONE_ID)


def make_particle(
    particle_id: int,
    position: tuple[float, float] = (0.0, 0.0),
    velocity: tuple[float, float] = (1.0, 0.0),
    mass: float = 1.0,
    radius: float = 1.0,
) -> Particle:
    vel = Vector2(velocity)
    speed = vel.length()
    heading = vel / speed if speed > 0 else Vector2(1.0, 0.0)
    return Particle(
        id=particle_id,
        position=Vector2(position),
        heading=heading,
        speed=speed,
        mass=mass,
        radius=radius,
    )


@pytest.fixture
def scripted_sampler() -> ScriptedSampler:
    return ScriptedSampler()


def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--run-config-tests",
        action="store_true",
        default=False,
        help="run tests that are intended only for configuration changes",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "config_change: marks tests that should only run when configuration files change",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if config.getoption("--run-config-tests"):
        return

    skip_marker = pytest.mark.skip(
        reason="Run only when configuration is modified (use --run-config-tests)",
    )

    for item in items:
        if "config_change" in item.keywords:
            item.add_marker(skip_marker)
