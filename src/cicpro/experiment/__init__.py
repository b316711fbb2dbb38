"""Experimentation layer: multi-run projection and validation."""

from cicpro.experiment.runner import (
    ProjectionReport,
    build_models,
    project_n_runs,
    run_projection,
)
from cicpro.experiment.analysis import (
    compare_placement_sequences,
    compare_projected,
    placement_sequence,
    placement_sequence_proportions,
)

__all__ = [
    "ProjectionReport",
    "build_models",
    "project_n_runs",
    "run_projection",
    "compare_placement_sequences",
    "compare_projected",
    "placement_sequence",
    "placement_sequence_proportions",
]
