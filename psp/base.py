"""Base types and protocols for the partitioning toolkit.

The search engine works on a *model*: any callable that maps a point in
parameter space (a 1-D numpy array) to a discrete, hashable pattern.

Most simulators are not written that way. They follow the simulator
protocol used throughout this toolkit:

    run(params: dict) -> dict
        Execute the simulation with the given parameter values.

    param_spec() -> dict[str, tuple[float, float]]
        Parameter name -> (lower_bound, upper_bound).

SimulatorModel bridges the two: it orders the parameters, turns points into
parameter dicts, runs the simulator and reduces the result dict to a
pattern with a user-supplied pattern function.
"""

from __future__ import annotations

from collections.abc import Hashable
from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class Model(Protocol):
    """Protocol for a pattern oracle.

    Example:
        def model(x: np.ndarray) -> str:
            return "A" if x[0] < 0.5 else "B"

        assert isinstance(model, Model)  # any callable qualifies
    """

    def __call__(self, point: np.ndarray) -> Hashable:
        """Return the qualitative pattern produced at ``point``."""
        ...


@runtime_checkable
class Simulator(Protocol):
    """Protocol for any simulator that can be partitioned.

    Example:
        class MySimulator:
            def run(self, params: dict) -> dict:
                return {"y": params["x"] ** 2}

            def param_spec(self) -> dict[str, tuple[float, float]]:
                return {"x": (0.0, 10.0)}
    """

    def run(self, params: dict) -> dict:
        """Execute the simulation with the given parameters."""
        ...

    def param_spec(self) -> dict[str, tuple[float, float]]:
        """Return parameter name -> (low, high) bounds."""
        ...


class SimulatorModel:
    """Wraps a Simulator and a pattern function into a point oracle.

    The parameter order is the iteration order of ``param_spec()``, so
    point index i corresponds to ``param_names[i]``.

    Args:
        simulator: Any Simulator-compatible object.
        pattern_fn: Callable taking the result dict from
            ``simulator.run()`` and returning a hashable pattern.
            Unhashable return values (lists, dicts, arrays) are converted
            to tuples so they can be registered.

    Example:
        model = SimulatorModel(sim, lambda r: r["fitness"] > 0)
        pattern = model(np.array([0.2, 0.7]))
    """

    def __init__(self, simulator, pattern_fn: callable):
        self.simulator = simulator
        self.pattern_fn = pattern_fn
        self._spec = simulator.param_spec()
        self.param_names = list(self._spec.keys())

    def bounds(self) -> np.ndarray:
        """Return the parameter bounds as an array of shape (d, 2)."""
        return np.array([self._spec[name] for name in self.param_names], dtype=float)

    def to_params(self, point: np.ndarray) -> dict:
        """Convert a point into a simulator parameter dict."""
        return {name: float(point[i]) for i, name in enumerate(self.param_names)}

    def to_point(self, params: dict) -> np.ndarray:
        """Convert a parameter dict into a point.

        Raises:
            KeyError: If a parameter from param_spec() is missing.
        """
        return np.array([float(params[name]) for name in self.param_names])

    def __call__(self, point: np.ndarray) -> Hashable:
        result = self.simulator.run(self.to_params(point))
        return _hashable(self.pattern_fn(result))


def _hashable(value):
    """Coerce common unhashable containers into hashable equivalents."""
    if isinstance(value, np.ndarray):
        return tuple(_hashable(v) for v in value.tolist())
    if isinstance(value, (list, tuple)):
        return tuple(_hashable(v) for v in value)
    if isinstance(value, dict):
        return tuple(sorted(((k, _hashable(v)) for k, v in value.items()), key=repr))
    if isinstance(value, set):
        return frozenset(value)
    if isinstance(value, np.generic):
        return value.item()
    return value
