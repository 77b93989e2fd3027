from __future__ import annotations

import argparse
import csv
import json
import logging
import math
from pathlib import Path
from typing import Optional

from ..sim.core.config import SimulationConfig
from ..sim.core.world import World
from ..sim.types.metrics import TickMetrics

logger = logging.getLogger(__name__)

_BASIC_HEADER = [
    "tick",
    "population",
    "collisions",
    "momentum_x",
    "momentum_y",
    "kinetic_energy",
    "tick_ms",
]

_DETAILED_HEADER = _BASIC_HEADER + [
    "momentum_magnitude",
    "momentum_drift",
    "energy_drift",
    "avg_speed",
    "max_speed",
    "stationary",
    "neighbor_checks_per_particle",
]


def _format_basic_row(metrics: TickMetrics, tick_ms: float) -> list[object]:
    return [
        metrics.tick,
        metrics.population,
        metrics.collisions,
        f"{metrics.momentum_x:.9f}",
        f"{metrics.momentum_y:.9f}",
        f"{metrics.kinetic_energy:.9f}",
        f"{tick_ms:.3f}",
    ]


def _format_detailed_row(
    world: World, metrics: TickMetrics, tick_ms: float, initial: tuple[float, float, float]
) -> list[object]:
    initial_px, initial_py, initial_energy = initial
    momentum_drift = math.hypot(metrics.momentum_x - initial_px, metrics.momentum_y - initial_py)
    energy_drift = _relative_drift(metrics.kinetic_energy, initial_energy)

    population = metrics.population
    speed_sum = 0.0
    max_speed = 0.0
    stationary = 0
    for particle in world.particles:
        speed_sum += particle.speed
        if particle.speed > max_speed:
            max_speed = particle.speed
        if particle.speed == 0.0:
            stationary += 1
    avg_speed = 0.0 if population <= 0 else speed_sum / population
    checks_per_particle = 0.0 if population <= 0 else metrics.neighbor_checks / population

    return _format_basic_row(metrics, tick_ms) + [
        f"{math.hypot(metrics.momentum_x, metrics.momentum_y):.9f}",
        f"{momentum_drift:.3e}",
        f"{energy_drift:.3e}",
        f"{avg_speed:.6f}",
        f"{max_speed:.6f}",
        stationary,
        f"{checks_per_particle:.4f}",
    ]


def _relative_drift(value: float, reference: float) -> float:
    if reference == 0.0:
        return abs(value)
    return abs(value - reference) / abs(reference)


def _percentile(sorted_values: list[float], percentile: float) -> float:
    if not sorted_values:
        return 0.0
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    pos = (len(sorted_values) - 1) * percentile
    low = int(math.floor(pos))
    high = int(math.ceil(pos))
    if low == high:
        return float(sorted_values[low])
    weight = pos - low
    return float(sorted_values[low] + (sorted_values[high] - sorted_values[low]) * weight)


def _summary_stats(values: list[float]) -> dict[str, float]:
    if not values:
        return {"min": 0.0, "max": 0.0, "avg": 0.0, "p50": 0.0, "p90": 0.0, "p99": 0.0}
    sorted_values = sorted(values)
    return {
        "min": float(sorted_values[0]),
        "max": float(sorted_values[-1]),
        "avg": float(sum(values) / len(values)),
        "p50": _percentile(sorted_values, 0.50),
        "p90": _percentile(sorted_values, 0.90),
        "p99": _percentile(sorted_values, 0.99),
    }


def run_headless(
    steps: int,
    seed: Optional[int],
    log_path: Optional[Path],
    deterministic_log: bool = False,
    log_format: str = "detailed",
    summary_path: Optional[Path] = None,
    config_path: Optional[Path] = None,
) -> list[TickMetrics]:
    log_mode = log_format.lower().strip()
    if log_mode not in {"basic", "detailed"}:
        raise ValueError(f"Unknown log format: {log_format}")

    config = SimulationConfig.from_yaml(config_path) if config_path else SimulationConfig()
    if seed is not None:
        config.seed = seed
    world = World(config)

    initial = world.snapshot().metrics
    initial_state = (initial.momentum_x, initial.momentum_y, initial.kinetic_energy)

    history: list[TickMetrics] = []
    csv_file = None
    writer = None
    if log_path:
        csv_file = Path(log_path).open("w", newline="")
        writer = csv.writer(csv_file)
        writer.writerow(_DETAILED_HEADER if log_mode == "detailed" else _BASIC_HEADER)

    try:
        for _ in range(steps):
            metrics = world.step()
            history.append(metrics)
            if writer:
                tick_ms = 0.0 if deterministic_log else metrics.tick_duration_ms
                if log_mode == "detailed":
                    writer.writerow(_format_detailed_row(world, metrics, tick_ms, initial_state))
                else:
                    writer.writerow(_format_basic_row(metrics, tick_ms))
    finally:
        if csv_file:
            csv_file.close()

    energy_series = [m.kinetic_energy for m in history]
    momentum_drift_series = [
        math.hypot(m.momentum_x - initial_state[0], m.momentum_y - initial_state[1]) for m in history
    ]
    energy_drift_series = [_relative_drift(value, initial_state[2]) for value in energy_series]
    max_energy_drift = max(energy_drift_series, default=0.0)
    max_momentum_drift = max(momentum_drift_series, default=0.0)
    logger.info(
        "Ran %d ticks (seed=%d): %d collisions, max energy drift %.3e, max momentum drift %.3e",
        steps,
        config.seed,
        sum(m.collisions for m in history),
        max_energy_drift,
        max_momentum_drift,
    )

    if summary_path:
        summary = {
            "steps": steps,
            "seed": config.seed,
            "log_format": log_mode,
            "deterministic_log": deterministic_log,
            "n_particles": config.n_particles,
            "initial": {
                "momentum_x": initial_state[0],
                "momentum_y": initial_state[1],
                "kinetic_energy": initial_state[2],
            },
            "kinetic_energy": _summary_stats(energy_series),
            "momentum_magnitude": _summary_stats([math.hypot(m.momentum_x, m.momentum_y) for m in history]),
            "collisions": _summary_stats([float(m.collisions) for m in history]),
            "total_collisions": sum(m.collisions for m in history),
            "tick_ms": _summary_stats(
                [0.0 if deterministic_log else m.tick_duration_ms for m in history]
            ),
            "drift": {
                "max_energy_relative": max_energy_drift,
                "max_momentum_absolute": max_momentum_drift,
            },
        }
        Path(summary_path).write_text(json.dumps(summary, indent=2))

    return history


def main() -> None:
    parser = argparse.ArgumentParser(description="Headless ideal gas simulation")
    parser.add_argument("--steps", type=int, default=500)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--config", type=Path, default=None, help="YAML file with simulation settings")
    parser.add_argument("--log", type=Path, default=None, help="CSV file to write per-tick conservation metrics")
    parser.add_argument(
        "--log-format",
        choices=["basic", "detailed"],
        default="detailed",
        help="CSV format to write when --log is provided (basic keeps only the summed quantities).",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Optional JSON file to write summary stats for the run.",
    )
    parser.add_argument(
        "--deterministic-log",
        action="store_true",
        help="Write deterministic CSV (tick_ms is forced to 0.000 so identical seeds match).",
    )
    parser.add_argument("--log-level", default="INFO", help="Python logging level")
    args = parser.parse_args()
    logging.basicConfig(level=args.log_level.upper(), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    run_headless(
        args.steps,
        args.seed,
        args.log,
        deterministic_log=args.deterministic_log,
        log_format=args.log_format,
        summary_path=args.summary,
        config_path=args.config,
    )


if __name__ == "__main__":
    main()
