"""
cicpro - Children in Care PROjection.

A stochastic projection of the children-in-care population: open cases
are extended and new admissions generated over many seeded runs, then
summarised as quantiles of census, placement mix and cost.
"""

__version__ = "0.1.0"

from cicpro.core.scenario import ProjectionScenario
from cicpro.experiment.runner import build_models, run_projection

__all__ = ["ProjectionScenario", "build_models", "run_projection", "__version__"]
