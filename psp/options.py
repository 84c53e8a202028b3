"""Search settings and their dimension-dependent defaults.

The tuning cycle lengths and the hit-or-miss sample size grow with the
dimensionality d as 1.2**d, matching the values recommended by Pitt, Kim,
Navarro and Myung (2006):

    coarse_cycle        ceil(100 * 1.2**d)   level-0 adaptation cycle
    fine_cycle          ceil(200 * 1.2**d)   level-1 cycle / level-2 monitor
    volume_sample_size  ceil(500 * 1.2**d)   hit-or-miss draws per region

Any field left as None (or set to a non-positive number) is filled in by
resolve().
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class PSPOptions:
    """Settings for psp_search().

    Attributes:
        max_psp: Number of fine cycles worth of level-2 samples every
            region must collect before the search stops.
        base_step: Initial jump radius as a fraction of each parameter's
            range.
        coarse_cycle: Trials per level-0 adaptation cycle.
        fine_cycle: Trials per level-1 adaptation cycle.
        volume_sample_size: Hit-or-miss draws per region.
        accurate_volume_estimate: Run the hit-or-miss refinement.
    """

    max_psp: int | None = None
    base_step: float | None = None
    coarse_cycle: int | None = None
    fine_cycle: int | None = None
    volume_sample_size: int | None = None
    accurate_volume_estimate: bool = False

    def resolve(self, n_dim: int) -> PSPOptions:
        """Return a copy with every unset field filled for ``n_dim`` dimensions."""
        growth = 1.2 ** n_dim
        return replace(
            self,
            max_psp=_positive(self.max_psp, 6),
            base_step=_positive(self.base_step, 0.1),
            coarse_cycle=_positive(self.coarse_cycle, math.ceil(100 * growth)),
            fine_cycle=_positive(self.fine_cycle, math.ceil(200 * growth)),
            volume_sample_size=_positive(
                self.volume_sample_size, math.ceil(500 * growth)
            ),
            accurate_volume_estimate=bool(self.accurate_volume_estimate),
        )

    def to_dict(self) -> dict:
        return {
            "max_psp": self.max_psp,
            "base_step": self.base_step,
            "coarse_cycle": self.coarse_cycle,
            "fine_cycle": self.fine_cycle,
            "volume_sample_size": self.volume_sample_size,
            "accurate_volume_estimate": self.accurate_volume_estimate,
        }


def _positive(value, default):
    if value is None or value <= 0:
        return default
    return value
