"""Model layer: periods, fitted models and single-run projection."""

from cicpro.model.period import Episode, Period, periods_as_at, periods_from_episodes
from cicpro.model.lookup import FuzzyLookup
from cicpro.model.duration import DurationParams, sample_duration
from cicpro.model.joiners import JoinerParams, project_joiners
from cicpro.model.placements import (
    CandidateSpliceModel,
    PhaseMarkovModel,
    PhaseParams,
    PlacementModel,
    build_placement_model,
)
from cicpro.model.projection import ProjectionModels, RunResult, project_one_run

__all__ = [
    "Episode",
    "Period",
    "periods_as_at",
    "periods_from_episodes",
    "FuzzyLookup",
    "DurationParams",
    "sample_duration",
    "JoinerParams",
    "project_joiners",
    "CandidateSpliceModel",
    "PhaseMarkovModel",
    "PhaseParams",
    "PlacementModel",
    "build_placement_model",
    "ProjectionModels",
    "RunResult",
    "project_one_run",
]
