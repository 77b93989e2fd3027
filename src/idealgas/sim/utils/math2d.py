from __future__ import annotations

import math


def contact_basis(theta: float) -> tuple[float, float]:
    """Cosine and sine of the contact angle; normal is (c, s), tangent (-s, c)."""
    return math.cos(theta), math.sin(theta)


def to_contact_frame(vx: float, vy: float, c: float, s: float) -> tuple[float, float]:
    along = vx * c + vy * s
    perp = -vx * s + vy * c
    return along, perp


def from_contact_frame(along: float, perp: float, c: float, s: float) -> tuple[float, float]:
    return along * c - perp * s, along * s + perp * c
