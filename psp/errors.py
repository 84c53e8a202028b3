"""Exceptions raised by the partitioning search.

Two kinds of failure abort a run:
    InvalidInputError    -- bad starting points, bounds or settings. Raised
                            before the model is ever evaluated.
    TooManyPatternsError -- the model produced more distinct patterns than
                            the caller allowed. Usually means the model is
                            too irregular for the chosen pattern function.
"""

from __future__ import annotations


class PSPError(Exception):
    """Base class for all partitioning errors."""


class InvalidInputError(PSPError, ValueError):
    """Starting points, bounds, or settings are unusable."""


class TooManyPatternsError(PSPError, RuntimeError):
    """The pattern registry would grow beyond ``max_patterns``.

    Attributes:
        pattern: The pattern whose discovery overflowed the registry.
        point: The parameter point at which it was found.
        max_patterns: The configured limit.
        n_trials: Number of search trials run before the failure
            (0 when the overflow happened while seeding).
    """

    def __init__(self, pattern, point, max_patterns: int, n_trials: int = 0):
        self.pattern = pattern
        self.point = point
        self.max_patterns = max_patterns
        self.n_trials = n_trials
        super().__init__(
            f"Too many patterns: found new pattern {pattern!r} after "
            f"{n_trials} trials, limit is {max_patterns}"
        )
