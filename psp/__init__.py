"""Parameter Space Partitioning (PSP) toolkit.

Partitions the bounded parameter space of a black-box model into regions
that share the same qualitative output ("pattern"), and estimates each
region's mean, covariance and volume. Given any model that maps a point to
a hashable pattern -- or any simulator satisfying the protocol
run(params) -> result_dict, param_spec() -> bounds plus a pattern function --
the toolkit answers: which qualitatively different behaviors can the model
produce, where in parameter space do they live, and how much of the space
does each one occupy.

Based on the MCMC-based PSP algorithm of Pitt, Kim, Navarro and Myung
(2006), "Global model analysis by parameter space partitioning."

Modules:
    base          -- Model and Simulator protocols, SimulatorModel adapter
    errors        -- InvalidInputError, TooManyPatternsError
    options       -- PSPOptions and dimension-dependent defaults
    regions       -- Region store, pattern registry, scheduler, stopping rule
    proposal      -- Ball-uniform random-walk proposals
    tuning        -- Three-level adaptive jump-size controller
    estimate      -- Moments, ellipsoid volume, hit-or-miss refinement
    search        -- psp_search() main loop and PSPMapper front end
    output_schema -- Result types and JSON envelope
"""

from psp.base import Model, Simulator, SimulatorModel
from psp.errors import PSPError, InvalidInputError, TooManyPatternsError
from psp.options import PSPOptions
from psp.search import psp_search, PSPMapper
from psp.estimate import unit_ball_log_volume, ellipsoid_log_volume
from psp.output_schema import (
    PSPResult,
    RegionSummary,
    Discovery,
    NumpyEncoder,
    validate_result,
    compare_results,
)

__version__ = "0.1.0"

__all__ = [
    "Model",
    "Simulator",
    "SimulatorModel",
    "PSPError",
    "InvalidInputError",
    "TooManyPatternsError",
    "PSPOptions",
    "psp_search",
    "PSPMapper",
    "unit_ball_log_volume",
    "ellipsoid_log_volume",
    "PSPResult",
    "RegionSummary",
    "Discovery",
    "NumpyEncoder",
    "validate_result",
    "compare_results",
]
