"""Three-level adaptive tuning of each region's jump size.

Every region runs its own small controller, stepped once per trial that
the scheduler attributes to it:

    Level 0 (coarse): every coarse_cycle trials, compare the acceptance
        rate with the band [0.12, 0.36). Too cold shrinks the jump by a
        factor of 2, too hot grows it by 2, until the rate lands in the
        band or the jump overshoots (then a half step back and move on).

    Level 1 (fine): every fine_cycle trials, nudge step_scale toward the
        band [0.19, 0.24). Rates just outside the target get a fixed
        1/8 correction and move on; rates far outside get up to four
        cycles of shrinking corrections 0.25 / ceil(cycle / 2).

    Level 2 (collecting): the jump is frozen. Each trial folds the chain
        head into the region's running moment sums.

Levels never go backwards.
"""

from __future__ import annotations

import logging
import math

from psp.options import PSPOptions
from psp.regions import RegionStore

logger = logging.getLogger(__name__)

COARSE_LOW = 0.12
COARSE_HIGH = 0.36
FINE_BANDS = (0.15, 0.19, 0.24, 0.30)
MAX_FINE_CYCLES = 4


def _promote(tuning, level: int) -> None:
    tuning.level = level
    tuning.sample_count = 0
    tuning.accept_count = 0


def adapt_coarse(tuning, index: int, coarse_cycle: int) -> None:
    """Level-0 step: runs at every coarse_cycle boundary."""
    if tuning.sample_count % coarse_cycle != 0:
        return
    cycle = tuning.sample_count // coarse_cycle
    rate = tuning.accept_count / coarse_cycle
    tuning.accept_count = 0
    logger.debug(
        "Coarse adaptation in region #%d: cycle %d, acceptance rate %.3f",
        index, cycle, rate,
    )

    if rate < COARSE_LOW:
        if tuning.step_scale > 0:
            tuning.step_scale -= 0.5
            _promote(tuning, 1)
        else:
            tuning.step_scale -= 1
    elif rate < COARSE_HIGH:
        _promote(tuning, 1)
    else:
        if tuning.step_scale < 0:
            tuning.step_scale += 0.5
            _promote(tuning, 1)
        else:
            tuning.step_scale += 1


def adapt_fine(tuning, index: int, fine_cycle: int) -> None:
    """Level-1 step: runs at every fine_cycle boundary."""
    if tuning.sample_count % fine_cycle != 0:
        return
    cycle = tuning.sample_count // fine_cycle
    rate = tuning.accept_count / fine_cycle
    tuning.accept_count = 0
    logger.debug(
        "Fine adaptation in region #%d: cycle %d, acceptance rate %.3f",
        index, cycle, rate,
    )

    very_cold, cold, warm, very_hot = FINE_BANDS
    if rate < very_cold:
        tuning.step_scale -= 0.25 / math.ceil(cycle / 2)
        if cycle == MAX_FINE_CYCLES:
            _promote(tuning, 2)
    elif rate < cold:
        tuning.step_scale -= 0.125
        _promote(tuning, 2)
    elif rate < warm:
        _promote(tuning, 2)
    elif rate < very_hot:
        tuning.step_scale += 0.125
        _promote(tuning, 2)
    else:
        tuning.step_scale += 0.25 / math.ceil(cycle / 2)
        if cycle == MAX_FINE_CYCLES:
            _promote(tuning, 2)

    if tuning.level == 2:
        logger.debug("Adaptation in region #%d finished (step_scale=%.3f)",
                     index, tuning.step_scale)


def monitor(store: RegionStore, index: int, fine_cycle: int) -> None:
    """Level-2 step: collect the chain head and report progress."""
    store.collect(index)
    tuning = store[index].tuning
    if tuning.sample_count % fine_cycle == 0:
        logger.debug(
            "Monitoring region #%d: cycle %d, cumulative acceptance rate %.3f",
            index, tuning.sample_count // fine_cycle,
            tuning.accept_count / tuning.sample_count,
        )


def adapt(store: RegionStore, index: int, options: PSPOptions) -> None:
    """Advance region ``index``'s tuning controller by one trial.

    ``options`` must already be resolved (see PSPOptions.resolve).
    """
    tuning = store[index].tuning
    if tuning.level == 0:
        adapt_coarse(tuning, index, options.coarse_cycle)
    elif tuning.level == 1:
        adapt_fine(tuning, index, options.fine_cycle)
    else:
        monitor(store, index, options.fine_cycle)
