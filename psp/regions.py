"""Region bookkeeping for the partitioning search.

A RegionStore owns everything the sampling loop mutates:

    - the pattern registry (set of patterns seen so far), which both
      answers "is this pattern new?" and enforces max_patterns;
    - one Region per discovered pattern, holding its Markov chain, the
      running first/second moment sums, and its tuning state.

It also implements the two global decisions of the loop: which region to
advance next (select_region) and whether to keep going (should_continue).

A fresh store is built for every search, so independent searches never
share state.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from psp.errors import TooManyPatternsError


@dataclass
class TuningState:
    """Per-region adaptive tuning state.

    Attributes:
        sample_count: Trials attributed to the region since the last
            level change.
        step_scale: log2 exponent applied to the base jump size.
        level: 0 (coarse tuning), 1 (fine tuning) or 2 (collecting).
        accept_count: Accepted moves in the current tuning cycle.
    """

    sample_count: int = 0
    step_scale: float = 0.0
    level: int = 0
    accept_count: int = 0


@dataclass
class Region:
    """One sampled sub-space sharing a single pattern."""

    pattern: object
    chain: list[np.ndarray]
    sum_first: np.ndarray
    sum_second: np.ndarray
    n_collected: int = 0
    tuning: TuningState = field(default_factory=TuningState)

    @classmethod
    def seeded(cls, point: np.ndarray, pattern) -> Region:
        point = np.array(point, dtype=float)
        d = point.shape[0]
        return cls(
            pattern=pattern,
            chain=[point],
            sum_first=np.zeros(d),
            sum_second=np.zeros((d, d)),
        )

    @property
    def head(self) -> np.ndarray:
        """Current chain head, the origin of the next proposal."""
        return self.chain[-1]

    @property
    def level(self) -> int:
        return self.tuning.level


class RegionStore:
    """Indexed collection of regions plus the pattern registry.

    Args:
        n_dim: Dimensionality of the parameter space.
        max_patterns: Maximum number of distinct patterns allowed.
    """

    def __init__(self, n_dim: int, max_patterns: int):
        self.n_dim = n_dim
        self.max_patterns = max_patterns
        self._regions: list[Region] = []
        self._index: dict = {}

    def __len__(self) -> int:
        return len(self._regions)

    def __getitem__(self, i: int) -> Region:
        return self._regions[i]

    def __iter__(self):
        return iter(self._regions)

    @property
    def patterns(self) -> list:
        """Registered patterns in discovery order."""
        return [r.pattern for r in self._regions]

    def has_pattern(self, pattern) -> bool:
        return pattern in self._index

    def index_of(self, pattern) -> int:
        return self._index[pattern]

    def try_create_region(self, point: np.ndarray, pattern, n_trials: int = 0) -> bool:
        """Register ``pattern`` and seed a new region at ``point`` if it is new.

        Returns:
            True if a region was created, False if the pattern was known.

        Raises:
            TooManyPatternsError: If registering the pattern would exceed
                max_patterns. The store is left unchanged.
        """
        if pattern in self._index:
            return False
        if len(self._index) >= self.max_patterns:
            raise TooManyPatternsError(pattern, np.array(point, dtype=float),
                                       self.max_patterns, n_trials)
        self._index[pattern] = len(self._regions)
        self._regions.append(Region.seeded(point, pattern))
        return True

    def append_accepted(self, i: int, point: np.ndarray) -> None:
        """Extend region i's chain with an accepted point."""
        region = self._regions[i]
        region.chain.append(np.array(point, dtype=float))
        region.tuning.accept_count += 1

    def collect(self, i: int) -> None:
        """Fold region i's chain head into its running moment sums."""
        region = self._regions[i]
        x = region.head
        region.sum_first += x
        region.sum_second += np.outer(x, x)
        region.n_collected += 1

    def min_level(self) -> int:
        return min(r.tuning.level for r in self._regions)

    def select_region(self) -> int:
        """Pick the region to advance next.

        The least mature regions (lowest level) go first; among those the
        one with the fewest trials wins, and ties go to the lowest index.
        """
        best = None
        best_key = None
        for i, region in enumerate(self._regions):
            key = (region.tuning.level, region.tuning.sample_count)
            if best_key is None or key < best_key:
                best, best_key = i, key
        return best

    def should_continue(self, max_psp: int, fine_cycle: int) -> bool:
        """Global stopping rule.

        Keep sampling until every region is collecting (level 2) and the
        least-sampled region has more than max_psp * fine_cycle level-2
        trials.
        """
        if self.min_level() < 2:
            return True
        min_count = min(r.tuning.sample_count for r in self._regions)
        return min_count <= max_psp * fine_cycle
