"""Random-walk proposals for the partitioning search.

Jumps are drawn uniformly from a d-dimensional ball whose radius along
each axis is ``range_i * base_step * 2**step_scale``. Normalizing a
standard-normal vector gives a uniform direction; scaling it by u**(1/d)
with u ~ U(0, 1) spreads the radius so that the point is uniform inside
the ball rather than on its surface.

There is no Metropolis ratio: a candidate is admitted purely on whether
the model returns the same pattern (see psp.search).
"""

from __future__ import annotations

import numpy as np


def sample_unit_ball(rng: np.random.Generator, d: int) -> np.ndarray:
    """Draw one point uniformly from the unit d-ball."""
    direction = rng.standard_normal(d)
    norm = np.linalg.norm(direction)
    # A zero vector has no direction; redraw (probability zero in practice)
    while norm == 0.0:
        direction = rng.standard_normal(d)
        norm = np.linalg.norm(direction)
    radius = rng.random() ** (1.0 / d)
    return radius * direction / norm


def propose(
    rng: np.random.Generator,
    head: np.ndarray,
    ranges: np.ndarray,
    base_step: float,
    step_scale: float,
) -> np.ndarray:
    """Propose a candidate point around the chain head.

    Args:
        rng: numpy random generator instance.
        head: Current chain head, shape (d,).
        ranges: Per-dimension width of the parameter box, shape (d,).
        base_step: Base jump radius as a fraction of each range.
        step_scale: log2 multiplier from the region's tuning state.

    Returns:
        Candidate point, shape (d,). May lie outside the bounds.
    """
    jump = ranges * (base_step * 2.0 ** step_scale) * sample_unit_ball(rng, len(head))
    return head + jump


def in_bounds(point: np.ndarray, lower: np.ndarray, upper: np.ndarray) -> bool:
    """True if every coordinate lies in the closed box [lower, upper]."""
    return bool(np.all(lower <= point) and np.all(point <= upper))
