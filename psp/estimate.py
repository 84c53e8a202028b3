"""Region shape and volume estimation.

Closed-form estimate:
    A region is approximated by the ellipsoid whose covariance matches the
    sampled covariance. A uniform distribution over a d-ball of radius r
    has covariance r^2 / (d + 2) * I, so the ellipsoid is
    {x : (x - mean)^T [(d + 2) cov]^-1 (x - mean) <= 1} and

        log V = log V_d + 0.5 * sum_i log((d + 2) * lambda_i)

    with V_d the volume of the unit d-ball and lambda_i the eigenvalues of
    cov.

Hit-or-miss refinement:
    Draw points uniformly inside that ellipsoid and ask the model which
    ones really belong to the region. The fraction of hits corrects the
    closed-form volume for regions that are not ellipsoidal.

Pure numpy implementation (no scipy dependency).
"""

from __future__ import annotations

import logging
import math

import numpy as np

from psp.proposal import in_bounds, sample_unit_ball

logger = logging.getLogger(__name__)


def region_moments(
    sum_first: np.ndarray,
    sum_second: np.ndarray,
    n: int,
) -> tuple[np.ndarray, np.ndarray]:
    """Mean and (biased, plug-in) covariance from running sums.

    Args:
        sum_first: Sum of collected points, shape (d,).
        sum_second: Sum of outer products x x^T, shape (d, d).
        n: Number of collected points.

    Returns:
        (mean, cov). Both are NaN-filled if n == 0.
    """
    d = sum_first.shape[0]
    if n <= 0:
        return np.full(d, np.nan), np.full((d, d), np.nan)
    mean = sum_first / n
    cov = sum_second / n - np.outer(mean, mean)
    # Symmetrize away floating-point drift
    cov = 0.5 * (cov + cov.T)
    return mean, cov


def unit_ball_log_volume(d: int) -> float:
    """Log-volume of the unit d-ball.

    Even d:  (d/2) log(pi) - log((d/2)!)
    Odd d:   d log(2) + log(k!) - log(d!) + k log(pi),  k = floor(d/2)
    """
    half = d / 2
    k = d // 2
    if d % 2 == 0:
        return half * math.log(math.pi) - math.lgamma(half + 1)
    return (d * math.log(2) + math.lgamma(k + 1) - math.lgamma(d + 1)
            + k * math.log(math.pi))


def ellipsoid_log_volume(cov: np.ndarray) -> float:
    """Closed-form log-volume of the (d+2)-scaled covariance ellipsoid.

    Returns -inf for a degenerate (singular or indefinite) covariance and
    NaN only if cov itself contains NaN. Eigenvalues within round-off of
    zero (relative to the largest one) count as singular.
    """
    cov = np.asarray(cov, dtype=float)
    d = cov.shape[0]
    if not np.all(np.isfinite(cov)):
        return float("nan")
    eigenvalues = np.linalg.eigvalsh(cov)
    tol = np.abs(eigenvalues).max() * d * np.finfo(float).eps
    if np.any(eigenvalues <= tol):
        logger.warning(
            "Degenerate covariance (min eigenvalue %.3g); log-volume is -inf",
            float(eigenvalues.min()),
        )
        return float("-inf")
    return unit_ball_log_volume(d) + 0.5 * float(np.sum(np.log(eigenvalues * (d + 2))))


def sqrtm_psd(matrix: np.ndarray) -> np.ndarray:
    """Symmetric square root of a positive semi-definite matrix.

    Small negative eigenvalues from round-off are clipped to zero.
    """
    matrix = 0.5 * (matrix + matrix.T)
    eigenvalues, vectors = np.linalg.eigh(matrix)
    root = np.sqrt(np.clip(eigenvalues, 0.0, None))
    return (vectors * root) @ vectors.T


def hit_or_miss(
    model,
    pattern,
    mean: np.ndarray,
    cov: np.ndarray,
    lower: np.ndarray,
    upper: np.ndarray,
    n_samples: int,
    rng: np.random.Generator,
) -> int:
    """Count ellipsoid draws that the model maps to ``pattern``.

    Draws n_samples points uniformly inside the (d+2)-scaled covariance
    ellipsoid centred at ``mean``. Points outside [lower, upper] are
    misses and are not evaluated.

    Returns:
        Number of hits.
    """
    d = mean.shape[0]
    root = sqrtm_psd((d + 2) * cov)
    hits = 0
    for _ in range(n_samples):
        y = mean + root @ sample_unit_ball(rng, d)
        if in_bounds(y, lower, upper) and model(y) == pattern:
            hits += 1
    return hits


def refine_log_volume(log_volume: float, hits: int, n_samples: int) -> float:
    """Apply the hit-or-miss correction log(hits / n_samples).

    Zero hits means the region's mass inside the ellipsoid could not be
    detected; the refined log-volume is -inf and a warning is logged.
    """
    if hits == 0:
        logger.warning(
            "Hit-or-miss found no hits in %d draws; log-volume is -inf", n_samples
        )
        return float("-inf")
    return log_volume + math.log(hits) - math.log(n_samples)
