from __future__ import annotations


class InvalidConfiguration(ValueError):
    """Raised when a simulation is configured with values it cannot run with."""
