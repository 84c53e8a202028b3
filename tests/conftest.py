"""Shared test fixtures for the PSP toolkit test suite.

Provides toy models with known partitions:

    HalfPlaneModel: "A" if x0 < 0.5 else "B"
        Two rectangular regions of equal area on the unit square with
        centroids (0.25, 0.5) and (0.75, 0.5).

    DiskModel: "in" inside a disk of radius r around (0.5, 0.5), else "out"
        The "in" region is exactly an ellipsoid (area pi r^2), the "out"
        region is non-convex. Good for volume estimation.

    BandModel: int(x0 * n_bands)
        Vertical bands. Seeding in band 0 forces the search to discover
        the others by walking.

    ThresholdSimulator: simulator protocol (run + param_spec) whose
        "fitness" flips sign when sum(params) crosses a threshold.

All models count their evaluations in ``n_calls``.
"""

import numpy as np
import pytest

from psp.options import PSPOptions


class HalfPlaneModel:
    def __init__(self, split: float = 0.5):
        self.split = split
        self.n_calls = 0

    def __call__(self, x):
        self.n_calls += 1
        return "A" if x[0] < self.split else "B"


class DiskModel:
    def __init__(self, radius: float = 0.3, center=(0.5, 0.5)):
        self.radius = radius
        self.center = np.asarray(center, dtype=float)
        self.n_calls = 0

    def __call__(self, x):
        self.n_calls += 1
        return "in" if np.linalg.norm(x - self.center) < self.radius else "out"

    @property
    def area(self) -> float:
        return np.pi * self.radius ** 2


class BandModel:
    def __init__(self, n_bands: int = 3):
        self.n_bands = n_bands
        self.n_calls = 0

    def __call__(self, x):
        self.n_calls += 1
        return min(int(x[0] * self.n_bands), self.n_bands - 1)


class ThresholdSimulator:
    """Returns +1 fitness if sum(params) > threshold, else -1."""

    def __init__(self, d: int = 2, threshold: float | None = None):
        self.d = d
        self.threshold = d * 0.5 if threshold is None else threshold

    def run(self, params: dict) -> dict:
        total = sum(params[f"x{i}"] for i in range(self.d))
        return {
            "fitness": 1.0 if total > self.threshold else -1.0,
            "sum": float(total),
        }

    def param_spec(self) -> dict[str, tuple[float, float]]:
        return {f"x{i}": (0.0, 1.0) for i in range(self.d)}


UNIT_SQUARE = np.array([[0.0, 1.0], [0.0, 1.0]])


# ---- Pytest fixtures ----

@pytest.fixture
def half_plane():
    """Two-pattern model split at x0 = 0.5."""
    return HalfPlaneModel()


@pytest.fixture
def disk():
    """Disk of radius 0.3 centred in the unit square."""
    return DiskModel()


@pytest.fixture
def bands():
    """Three vertical bands on the unit square."""
    return BandModel(n_bands=3)


@pytest.fixture
def threshold_sim():
    """2-parameter threshold simulator (threshold = 1.0)."""
    return ThresholdSimulator(d=2)


@pytest.fixture
def unit_square():
    return UNIT_SQUARE.copy()


@pytest.fixture
def fast_options():
    """Short cycles so whole searches finish quickly."""
    return PSPOptions(max_psp=2, coarse_cycle=50, fine_cycle=100,
                      volume_sample_size=200)
