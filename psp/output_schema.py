"""Result types and the JSON envelope for partitioning runs.

Schema structure::

    {
        "schema_version": "1.0",
        "search": {n_dim, n_regions, n_trials, n_model_calls, elapsed,
                   seed, accurate_volume, options},
        "bounds": [[lo, hi], ...],
        "regions": [{pattern, n_samples, step_scale, mean, cov,
                     log_volume, volume_hits, chain}, ...],
        "discoveries": [{pattern, region, trial, elapsed, point, source}, ...],
    }

Usage::

    from psp import psp_search
    from psp.output_schema import validate_result

    result = psp_search(model, x0, bounds, max_patterns=10, seed=1)
    d = result.to_dict()
    errors = validate_result(d)
"""
from __future__ import annotations

import json
import math
from dataclasses import dataclass, field

import numpy as np


class NumpyEncoder(json.JSONEncoder):
    """JSON encoder that handles numpy types."""

    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, (np.integer,)):
            return int(obj)
        if isinstance(obj, (np.floating,)):
            return float(obj)
        if isinstance(obj, (np.bool_,)):
            return bool(obj)
        return super().default(obj)


def pattern_to_json(pattern):
    """Best-effort JSON form of a pattern (tuples become lists, others repr)."""
    if pattern is None or isinstance(pattern, (str, bool, int, float)):
        return pattern
    if isinstance(pattern, np.generic):
        return pattern.item()
    if isinstance(pattern, tuple):
        return [pattern_to_json(p) for p in pattern]
    return repr(pattern)


def _finite_or_none(value: float | None):
    # JSON has no infinities
    if value is None or not math.isfinite(value):
        return None
    return float(value)


@dataclass(frozen=True, eq=False)
class Discovery:
    """When and where a pattern was first found."""

    pattern: object
    region: int
    trial: int
    elapsed: float
    point: np.ndarray
    source: str = "search"

    def to_dict(self) -> dict:
        return {
            "pattern": pattern_to_json(self.pattern),
            "region": self.region,
            "trial": self.trial,
            "elapsed": self.elapsed,
            "point": self.point.tolist(),
            "source": self.source,
        }


@dataclass(frozen=True, eq=False)
class RegionSummary:
    """Final estimates for one region.

    Attributes:
        pattern: The region's defining pattern.
        chain: Accepted points in order, shape (n, d).
        mean: Mean of the level-2 samples, shape (d,).
        cov: Plug-in covariance of the level-2 samples, shape (d, d).
        log_volume: Natural log of the estimated volume. -inf flags a
            degenerate covariance or a hit-or-miss run with zero hits.
        n_samples: Number of level-2 samples behind mean and cov.
        step_scale: Final log2 jump multiplier.
        volume_hits: Hit count from the refinement, None if not run.
    """

    pattern: object
    chain: np.ndarray
    mean: np.ndarray
    cov: np.ndarray
    log_volume: float
    n_samples: int
    step_scale: float = 0.0
    volume_hits: int | None = None

    @property
    def volume(self) -> float:
        return math.exp(self.log_volume) if self.log_volume != float("-inf") else 0.0

    def to_dict(self, include_chain: bool = True) -> dict:
        d = {
            "pattern": pattern_to_json(self.pattern),
            "n_samples": self.n_samples,
            "step_scale": self.step_scale,
            "mean": self.mean.tolist(),
            "cov": self.cov.tolist(),
            "log_volume": _finite_or_none(self.log_volume),
            "volume_hits": self.volume_hits,
        }
        if include_chain:
            d["chain"] = self.chain.tolist()
        return d


@dataclass(frozen=True, eq=False)
class PSPResult:
    """Immutable summary of one partitioning search."""

    regions: tuple[RegionSummary, ...]
    bounds: np.ndarray
    n_trials: int = 0
    n_model_calls: int = 0
    elapsed: float = 0.0
    discoveries: tuple[Discovery, ...] = ()
    seed: int | None = None
    accurate_volume: bool = False
    options: dict = field(default_factory=dict)

    @property
    def n_dim(self) -> int:
        return int(self.bounds.shape[0])

    @property
    def patterns(self) -> list:
        return [r.pattern for r in self.regions]

    def region_for(self, pattern) -> RegionSummary:
        """Look up a region by pattern.

        Raises:
            KeyError: If no region has this pattern.
        """
        for region in self.regions:
            if region.pattern == pattern:
                return region
        raise KeyError(pattern)

    def log_volumes(self) -> np.ndarray:
        return np.array([r.log_volume for r in self.regions])

    def volume_fractions(self) -> np.ndarray:
        """Each region's estimated volume as a fraction of the bounding box.

        A region with log-volume -inf (degenerate, or no hit-or-miss hits)
        has fraction 0.0, also when a zero-width bound makes the box itself
        volume 0.
        """
        ranges = self.bounds[:, 1] - self.bounds[:, 0]
        log_volumes = self.log_volumes()
        with np.errstate(divide="ignore", invalid="ignore", over="ignore"):
            log_box = float(np.sum(np.log(ranges)))
            fractions = np.exp(log_volumes - log_box)
        return np.where(np.isneginf(log_volumes), 0.0, fractions)

    def to_dict(self, include_chains: bool = True) -> dict:
        """Convert to a JSON-serializable dict following the shared schema."""
        return {
            "schema_version": "1.0",
            "search": {
                "n_dim": self.n_dim,
                "n_regions": len(self.regions),
                "n_trials": self.n_trials,
                "n_model_calls": self.n_model_calls,
                "elapsed": self.elapsed,
                "seed": self.seed,
                "accurate_volume": self.accurate_volume,
                "options": dict(self.options),
            },
            "bounds": self.bounds.tolist(),
            "regions": [r.to_dict(include_chain=include_chains) for r in self.regions],
            "discoveries": [d.to_dict() for d in self.discoveries],
        }

    def to_json(self, include_chains: bool = True, **kwargs) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(include_chains), cls=NumpyEncoder, **kwargs)


def validate_result(d: dict) -> list[str]:
    """Validate a dict against the result schema.

    Returns a list of error messages. Empty list = valid.
    """
    errors = []

    if "schema_version" not in d:
        errors.append("Missing required key: schema_version")
    for section in ["search", "bounds", "regions", "discoveries"]:
        if section not in d:
            errors.append(f"Missing required section: {section}")

    if errors:
        return errors  # can't validate further

    search = d["search"]
    n_dim = search.get("n_dim")
    if n_dim is None:
        errors.append("Missing search.n_dim")
    if len(d["bounds"]) != n_dim:
        errors.append(f"bounds has {len(d['bounds'])} rows, n_dim is {n_dim}")
    if search.get("n_regions") != len(d["regions"]):
        errors.append(
            f"n_regions mismatch: search says {search.get('n_regions')}, "
            f"found {len(d['regions'])} regions"
        )

    seen = set()
    for i, region in enumerate(d["regions"]):
        key = json.dumps(region.get("pattern"), sort_keys=True)
        if key in seen:
            errors.append(f"Duplicate pattern in region #{i}: {region.get('pattern')!r}")
        seen.add(key)

        if len(region.get("mean", [])) != n_dim:
            errors.append(f"Region #{i}: mean has wrong length")
        cov = region.get("cov", [])
        if len(cov) != n_dim or any(len(row) != n_dim for row in cov):
            errors.append(f"Region #{i}: cov is not {n_dim}x{n_dim}")
        chain = region.get("chain")
        if chain is not None:
            if not chain:
                errors.append(f"Region #{i}: empty chain")
            elif any(len(p) != n_dim for p in chain):
                errors.append(f"Region #{i}: chain points have wrong dimension")

    return errors


def compare_results(*outputs: dict, labels: list[str] | None = None) -> dict:
    """Compare several runs (PSPResult.to_dict() outputs) pattern by pattern.

    Useful for model comparison: two models run over the same bounds can
    be compared by which patterns each produces and how much of the space
    each pattern occupies.

    Args:
        *outputs: Result dicts.
        labels: Optional run names. Defaults to "run0", "run1", ...

    Returns:
        Comparison dict with shared/unique patterns and per-pattern
        log-volumes.
    """
    if len(outputs) < 2:
        return {"error": "Need at least 2 outputs to compare"}
    if labels is None:
        labels = [f"run{i}" for i in range(len(outputs))]

    def _key(pattern):
        return json.dumps(pattern, sort_keys=True)

    per_run = []
    for o in outputs:
        per_run.append({_key(r["pattern"]): r for r in o["regions"]})

    all_keys = [set(regions) for regions in per_run]
    shared_keys = set(all_keys[0])
    for ks in all_keys[1:]:
        shared_keys &= ks

    comparison = {
        "runs": list(labels),
        "shared_patterns": [json.loads(k) for k in sorted(shared_keys)],
        "unique_patterns": {
            label: [json.loads(k) for k in sorted(ks - shared_keys)]
            for label, ks in zip(labels, all_keys)
        },
        "per_pattern": {},
    }

    for key in sorted(shared_keys):
        values = [regions[key]["log_volume"] for regions in per_run]
        finite = [v for v in values if v is not None]
        comparison["per_pattern"][key] = {
            "log_volume": dict(zip(labels, values)),
            "range": float(max(finite) - min(finite)) if len(finite) > 1 else None,
        }

    return comparison
