"""Multi-run projection runners."""

import logging
from collections import deque
from concurrent.futures import Executor, Future, ProcessPoolExecutor
from dataclasses import dataclass
from datetime import date
from typing import (
    Callable,
    Deque,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)

import pandas as pd

from cicpro.core.dates import financial_year
from cicpro.core.scenario import ProjectionScenario, ProjectionWindow
from cicpro.core.streams import RandomStream
from cicpro.model.birthdays import JoinerBirthdayParams, impute_birthdays
from cicpro.model.duration import DurationParams
from cicpro.model.joiners import JoinerParams
from cicpro.model.period import Period
from cicpro.model.placements import PhaseParams, build_placement_model
from cicpro.model.projection import ProjectionModels, RunResult, project_one_run
from cicpro.results.aggregate import (
    AnnualRow,
    ProjectionRow,
    RunAccumulator,
    annual_rows,
    annual_table,
    projection_rows,
    projection_table,
)
from cicpro.results.costs import PlacementCosts, financial_year_metrics
from cicpro.results.summary import SummaryRow, periods_summary, run_metrics

logger = logging.getLogger(__name__)

RunTask = Tuple[RandomStream, int]
RunContext = Tuple[Sequence[Period], ProjectionWindow, ProjectionModels]

# Shared inputs set once per worker process by _init_worker
_WORKER_CONTEXT: Optional[tuple] = None


def _init_worker(context: tuple) -> None:
    global _WORKER_CONTEXT
    _WORKER_CONTEXT = context


def _worker_context() -> tuple:
    if _WORKER_CONTEXT is None:
        raise RuntimeError("Projection worker is not initialized")
    return _WORKER_CONTEXT


def _project(task: RunTask, context: RunContext) -> RunResult:
    stream, run_id = task
    open_periods, window, models = context
    return project_one_run(open_periods, window, models, stream, run_id)


def _project_in_worker(task: RunTask) -> RunResult:
    return _project(task, _worker_context())


def _in_order(executor: Executor, fn: Callable, tasks: Iterable, window: int) -> Iterator:
    """Results of fn over tasks in task order, with at most window in flight."""
    pending: Deque[Future] = deque()
    for task in tasks:
        pending.append(executor.submit(fn, task))
        if len(pending) >= window:
            yield pending.popleft().result()
    while pending:
        yield pending.popleft().result()


def project_n_runs(
    open_periods: Sequence[Period],
    window: ProjectionWindow,
    models: ProjectionModels,
    seed: Union[int, RandomStream],
    n_runs: int,
    workers: int = 1,
) -> List[RunResult]:
    """Run independent projections from one seed.

    Run i always receives the i-th split of the root stream, so the
    results are the same whether runs execute sequentially or across
    worker processes.

    Args:
        open_periods: Periods open at the start of the window.
        window: Projection window.
        models: Shared fitted models.
        seed: Root seed or stream.
        n_runs: Number of runs.
        workers: Worker processes; 1 runs in this process.

    Returns:
        One RunResult per run, in run order.

    Raises:
        ValueError: If n_runs is negative or workers is not positive.
    """
    if n_runs < 0:
        raise ValueError(f"n_runs must be non-negative, got {n_runs}")
    if workers < 1:
        raise ValueError(f"workers must be >= 1, got {workers}")
    root = seed if isinstance(seed, RandomStream) else RandomStream.from_seed(seed)
    context = (open_periods, window, models)
    tasks = [(stream, run_id) for run_id, stream in enumerate(root.split_n(n_runs))]
    if workers == 1:
        return [_project(task, context) for task in tasks]
    with ProcessPoolExecutor(
        max_workers=workers, initializer=_init_worker, initargs=(context,)
    ) as executor:
        return list(executor.map(_project_in_worker, tasks))


def build_models(
    scenario: ProjectionScenario,
    periods: Sequence[Period],
    duration: DurationParams,
    joiners: Optional[JoinerParams] = None,
    joiner_birthdays: Optional[JoinerBirthdayParams] = None,
    phase_params: Optional[PhaseParams] = None,
) -> ProjectionModels:
    """Fit the shared models for a scenario.

    Closed periods without a birthday get one imputed from the scenario's
    history stream before the placement index is built.
    """
    history_stream, _ = scenario.root_stream.split()
    closed = impute_birthdays([p for p in periods if not p.is_open], history_stream)
    placements = build_placement_model(scenario.placement_strategy, closed, phase_params)
    return ProjectionModels(
        duration=duration,
        placements=placements,
        joiners=joiners,
        joiner_birthdays=joiner_birthdays,
    )


def report_years(window: ProjectionWindow) -> List[int]:
    """Financial years wholly inside the projection window."""
    first = financial_year(window.project_from) + 1
    last = financial_year(window.project_to)
    return [year for year in range(first, last + 1) if date(year, 3, 31) < window.project_to]


@dataclass
class ProjectionReport:
    """Quantile summaries of a multi-run projection.

    Attributes:
        rows: One row per report date.
        annual: One row per financial year in the window.
        n_runs: Runs folded into the summaries.
    """
    rows: List[ProjectionRow]
    annual: List[AnnualRow]
    n_runs: int

    def to_dataframe(self, actuals: Optional[Mapping[date, SummaryRow]] = None) -> pd.DataFrame:
        return projection_table(self.rows, actuals)

    def annual_dataframe(self, actual_joiners: Optional[Mapping[int, int]] = None) -> pd.DataFrame:
        return annual_table(self.annual, actual_joiners)


SummaryContext = Tuple[RunContext, Sequence[date], PlacementCosts, int, Sequence[int]]


def _summarise_run(task: RunTask, context: SummaryContext) -> Tuple[Dict, Dict]:
    """Project one run and reduce it to weekly and annual metrics."""
    run_context, dates, costs, interval_days, years = context
    run = _project(task, run_context)
    weekly = run_metrics(periods_summary(run.periods, dates, costs, interval_days))
    annual = {
        year: summary.metrics()
        for year, summary in financial_year_metrics(run.periods, costs).items()
        if year in years
    }
    return weekly, annual


def _summarise_in_worker(task: RunTask) -> Tuple[Dict, Dict]:
    return _summarise_run(task, _worker_context())


def run_projection(
    scenario: ProjectionScenario,
    periods: Sequence[Period],
    models: ProjectionModels,
    costs: PlacementCosts,
    progress_callback: Optional[Callable[[int, int], None]] = None,
) -> ProjectionReport:
    """Run a scenario's projections and summarise them across runs.

    Each run is summarised and folded into the accumulators in run order,
    then discarded. Worker processes receive the shared inputs once, and at
    most two runs per worker are in flight at a time.

    Args:
        scenario: Projection configuration.
        periods: Historical periods; those still open are projected.
        models: Shared fitted models (see build_models).
        costs: Placement rates.
        progress_callback: Optional callback(completed_runs, total_runs).

    Returns:
        ProjectionReport with weekly and financial-year rows.
    """
    window = scenario.window
    dates = scenario.report_dates()
    years = report_years(window)
    open_periods = [p for p in periods if p.is_open]
    _, runs_stream = scenario.root_stream.split()

    logger.info(
        f"Projecting {len(open_periods)} open periods from {window.project_from} "
        f"to {window.project_to} over {scenario.n_runs} runs"
    )

    context = ((open_periods, window, models), dates, costs, scenario.interval_days, years)
    tasks = [(stream, run_id) for run_id, stream in enumerate(runs_stream.split_n(scenario.n_runs))]

    weekly = RunAccumulator(keys=dates)
    annual = RunAccumulator(keys=years)

    def fold(results: Iterator[Tuple[Dict, Dict]]) -> None:
        for completed, (weekly_metrics, annual_metrics) in enumerate(results, start=1):
            weekly.add(weekly_metrics)
            annual.add(annual_metrics)
            logger.debug(f"Folded run {completed}/{scenario.n_runs}")
            if progress_callback is not None:
                progress_callback(completed, scenario.n_runs)

    if scenario.workers == 1:
        fold(_summarise_run(task, context) for task in tasks)
    else:
        with ProcessPoolExecutor(
            max_workers=scenario.workers, initializer=_init_worker, initargs=(context,)
        ) as executor:
            fold(_in_order(executor, _summarise_in_worker, tasks, 2 * scenario.workers))

    logger.info(f"Completed {weekly.n_runs} runs")
    return ProjectionReport(
        rows=projection_rows(weekly.finalize()),
        annual=annual_rows(annual.finalize()),
        n_runs=weekly.n_runs,
    )
