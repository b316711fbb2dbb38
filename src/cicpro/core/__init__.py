"""Core foundation layer: scenario configuration, dates, random streams, distributions."""

from cicpro.core.scenario import PlacementStrategy, ProjectionScenario, ProjectionWindow
from cicpro.core.streams import RandomStream
from cicpro.core.distributions import (
    Bernoulli,
    Beta,
    DirichletCategorical,
    Exponential,
    Gamma,
    Normal,
    SkewCI,
    Uniform,
    UniformInt,
    choose,
)

__all__ = [
    "PlacementStrategy",
    "ProjectionScenario",
    "ProjectionWindow",
    "RandomStream",
    "Bernoulli",
    "Beta",
    "DirichletCategorical",
    "Exponential",
    "Gamma",
    "Normal",
    "SkewCI",
    "Uniform",
    "UniformInt",
    "choose",
]
