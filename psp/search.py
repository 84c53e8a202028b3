"""MCMC parameter space partitioning (PSP).

An implementation of the Markov chain Monte Carlo PSP algorithm of Pitt,
Kim, Navarro and Myung (2006). The parameter box is partitioned into
regions in which the model produces the same qualitative pattern, and
each region's mean, covariance and volume are estimated.

Method:
    1. Seed one region per distinct pattern among the starting points.
    2. Repeat until every region is tuned and has enough samples:
        a. pick the least mature, least sampled region;
        b. propose a jump from its chain head (uniform in a ball);
        c. out of bounds -> discard; same pattern -> accept; unseen
           pattern -> new region; other known pattern -> discard;
        d. step the region's tuning controller.
    3. Turn each region's running sums into mean/covariance and an
       ellipsoid volume; optionally refine it by hit-or-miss sampling.

Reference:
    Pitt, M.A., Kim, W., Navarro, D.J., & Myung, J.I. (2006). "Global model
    analysis by parameter space partitioning." Psychological Review,
    113(1), 57-83.
"""

from __future__ import annotations

import logging
import time
from dataclasses import replace

import numpy as np

from psp.base import SimulatorModel
from psp.errors import InvalidInputError
from psp.estimate import (
    ellipsoid_log_volume,
    hit_or_miss,
    refine_log_volume,
    region_moments,
)
from psp.options import PSPOptions
from psp.output_schema import Discovery, PSPResult, RegionSummary
from psp.proposal import in_bounds, propose
from psp.regions import RegionStore
from psp.tuning import adapt

logger = logging.getLogger(__name__)


def _validate_inputs(starting_points, bounds, max_patterns):
    """Check and normalize inputs. Never touches the model."""
    bounds = np.asarray(bounds, dtype=float)
    if bounds.ndim != 2 or bounds.shape[1] != 2:
        raise InvalidInputError(
            f"bounds must have shape (d, 2), got {bounds.shape}"
        )

    x0 = np.asarray(starting_points, dtype=float)
    if x0.size == 0:
        raise InvalidInputError("No starting points supplied.")
    if x0.ndim == 1:
        x0 = x0[np.newaxis, :]
    if x0.ndim != 2:
        raise InvalidInputError(
            f"starting_points must have shape (n, d), got {x0.shape}"
        )
    if x0.shape[1] != bounds.shape[0]:
        raise InvalidInputError(
            f"Dimension mismatch: starting points have {x0.shape[1]} "
            f"dimensions, bounds have {bounds.shape[0]}"
        )

    lower, upper = bounds[:, 0], bounds[:, 1]
    if np.any(upper - lower < 0):
        raise InvalidInputError("Invalid bounds: min > max in some dimension.")
    for i, point in enumerate(x0):
        if not in_bounds(point, lower, upper):
            raise InvalidInputError(
                f"Invalid starting point #{i}: {point.tolist()} is outside bounds"
            )

    if max_patterns is None or max_patterns < 1:
        raise InvalidInputError(f"max_patterns must be >= 1, got {max_patterns}")

    return x0, bounds


def psp_search(
    model,
    starting_points,
    bounds,
    max_patterns: int,
    options: PSPOptions | None = None,
    rng: np.random.Generator | None = None,
    seed: int | None = None,
    **overrides,
) -> PSPResult:
    """Partition a parameter box by the patterns a model produces.

    Args:
        model: Callable mapping a point (np.ndarray of shape (d,)) to a
            hashable pattern.
        starting_points: Array of shape (n, d), or a single point of
            shape (d,). Each distinct pattern among them seeds a region.
        bounds: Array of shape (d, 2) with [min, max] per dimension.
        max_patterns: Maximum number of distinct patterns. Finding more
            aborts the search with TooManyPatternsError.
        options: PSPOptions. Unset fields get dimension-dependent defaults.
        rng: numpy random generator. Takes precedence over ``seed``.
        seed: Seed for a new generator. None draws fresh OS entropy; the
            entropy actually used is reported in ``PSPResult.seed``.
        **overrides: Individual PSPOptions fields, e.g. fine_cycle=100.

    Returns:
        PSPResult with one RegionSummary per discovered pattern.

    Raises:
        InvalidInputError: On bad inputs, before the model is evaluated.
        TooManyPatternsError: If more than max_patterns patterns turn up.
    """
    x0, bounds = _validate_inputs(starting_points, bounds, max_patterns)
    n_dim = bounds.shape[0]
    lower, upper = bounds[:, 0], bounds[:, 1]
    ranges = upper - lower

    if options is None:
        options = PSPOptions()
    if overrides:
        options = replace(options, **overrides)
    options = options.resolve(n_dim)

    used_seed = None
    if rng is None:
        seed_seq = np.random.SeedSequence(seed)
        used_seed = seed_seq.entropy
        rng = np.random.default_rng(seed_seq)

    n_calls = 0

    def evaluate(point):
        nonlocal n_calls
        n_calls += 1
        return model(point)

    store = RegionStore(n_dim, max_patterns)
    discoveries = []
    t0 = time.perf_counter()
    n_trials = 0

    logger.info("PSP search starts: %d dimensions, %d starting point(s)",
                n_dim, x0.shape[0])

    for y in x0:
        pattern = evaluate(y)
        if store.try_create_region(y, pattern, n_trials):
            discoveries.append(Discovery(
                pattern=pattern,
                region=len(store) - 1,
                trial=n_trials,
                elapsed=time.perf_counter() - t0,
                point=y.copy(),
                source="seed",
            ))
            logger.info("New pattern %r at starting point %s", pattern, y.tolist())

    while store.should_continue(options.max_psp, options.fine_cycle):
        index = store.select_region()
        region = store[index]
        region.tuning.sample_count += 1

        y = propose(rng, region.head, ranges, options.base_step,
                    region.tuning.step_scale)
        n_trials += 1

        if in_bounds(y, lower, upper):
            pattern = evaluate(y)
            if pattern == region.pattern:
                store.append_accepted(index, y)
            elif store.try_create_region(y, pattern, n_trials):
                elapsed = time.perf_counter() - t0
                discoveries.append(Discovery(
                    pattern=pattern,
                    region=len(store) - 1,
                    trial=n_trials,
                    elapsed=elapsed,
                    point=y.copy(),
                ))
                logger.info("New pattern %r found after %d trials (%.1f s)",
                            pattern, n_trials, elapsed)

        adapt(store, index, options)

    summaries = []
    for region in store:
        mean, cov = region_moments(region.sum_first, region.sum_second,
                                   region.n_collected)
        summaries.append({
            "region": region,
            "mean": mean,
            "cov": cov,
            "log_volume": ellipsoid_log_volume(cov),
            "hits": None,
        })

    if options.accurate_volume_estimate:
        logger.info("Volume estimation by hit-or-miss method begins")
        for i, s in enumerate(summaries):
            logger.debug("Estimating the volume of region #%d", i)
            hits = hit_or_miss(evaluate, s["region"].pattern, s["mean"], s["cov"],
                               lower, upper, options.volume_sample_size, rng)
            s["hits"] = hits
            s["log_volume"] = refine_log_volume(s["log_volume"], hits,
                                                options.volume_sample_size)

    elapsed = time.perf_counter() - t0
    logger.info("PSP search terminated: %d patterns, %d trials, %.1f s",
                len(store), n_trials, elapsed)

    return PSPResult(
        regions=tuple(
            RegionSummary(
                pattern=s["region"].pattern,
                chain=np.array(s["region"].chain),
                mean=s["mean"],
                cov=s["cov"],
                log_volume=s["log_volume"],
                n_samples=s["region"].n_collected,
                step_scale=s["region"].tuning.step_scale,
                volume_hits=s["hits"],
            )
            for s in summaries
        ),
        bounds=bounds,
        n_trials=n_trials,
        n_model_calls=n_calls,
        elapsed=elapsed,
        discoveries=tuple(discoveries),
        seed=used_seed,
        accurate_volume=options.accurate_volume_estimate,
        options=options.to_dict(),
    )


class PSPMapper:
    """Partitions a Simulator's parameter space by qualitative outcome.

    Args:
        simulator: Any Simulator-compatible object.
        pattern_fn: Callable that takes a result dict from simulator.run()
            and returns a categorical outcome (e.g. which species survive,
            the sign of a fitness, an ordering of conditions).

    Example:
        mapper = PSPMapper(my_sim, pattern_fn=lambda r: r["fitness"] > 0)
        result = mapper.partition([{"a": 0.2, "b": 0.5}], max_patterns=10)
        report = mapper.report(result)
    """

    def __init__(self, simulator, pattern_fn: callable):
        self.model = SimulatorModel(simulator, pattern_fn)
        self.param_names = self.model.param_names

    def partition(
        self,
        starting_params: list[dict] | dict,
        max_patterns: int,
        options: PSPOptions | None = None,
        seed: int = 42,
        **overrides,
    ) -> PSPResult:
        """Run psp_search() on the simulator's own parameter spec.

        Args:
            starting_params: One parameter dict or a list of them.
            max_patterns: Maximum number of distinct patterns.
            options: PSPOptions, see psp_search().
            seed: Random seed for reproducibility.
            **overrides: Individual PSPOptions fields.
        """
        if isinstance(starting_params, dict):
            starting_params = [starting_params]
        try:
            x0 = np.array([self.model.to_point(p) for p in starting_params])
        except KeyError as e:
            raise InvalidInputError(f"Starting params missing parameter {e}") from e
        return psp_search(self.model, x0, self.model.bounds(), max_patterns,
                          options=options, seed=seed, **overrides)

    def report(self, result: PSPResult) -> dict:
        """Summarize a result in parameter-name terms.

        Returns:
            Dict with:
                "parameter_names": list[str],
                "n_regions": int,
                "regions": list of {
                    "pattern", "mean_params": {name: float},
                    "std_params": {name: float},
                    "log_volume": float, "volume_fraction": float,
                    "n_samples": int,
                },
                "largest_region": pattern of the largest region (or None),
        """
        fractions = result.volume_fractions()
        regions = []
        for region, fraction in zip(result.regions, fractions):
            std = np.sqrt(np.clip(np.diag(region.cov), 0.0, None))
            regions.append({
                "pattern": region.pattern,
                "mean_params": self.model.to_params(region.mean),
                "std_params": {name: float(std[i])
                               for i, name in enumerate(self.param_names)},
                "log_volume": float(region.log_volume),
                "volume_fraction": float(fraction),
                "n_samples": region.n_samples,
            })
        largest = None
        if regions:
            largest = regions[int(np.argmax(result.log_volumes()))]["pattern"]
        return {
            "parameter_names": list(self.param_names),
            "n_regions": len(regions),
            "regions": regions,
            "largest_region": largest,
        }
