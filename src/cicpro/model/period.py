"""Period and Episode timeline definitions.

A Period is one child's continuous stay in care. It is made of Episodes,
each recording the placement from a day offset since admission. Periods
are immutable values: projection builds new Periods with
``dataclasses.replace`` rather than editing history.
"""

from dataclasses import dataclass, replace
from datetime import date
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from cicpro.core.dates import day_interval, days_after, years_between
from cicpro.core.entities import normalise_placement


@dataclass(frozen=True)
class Episode:
    """A placement segment within a Period.

    Attributes:
        offset: Days since the Period's admission date.
        placement: Placement code.
    """

    offset: int
    placement: str

    def __post_init__(self) -> None:
        if self.offset < 0:
            raise ValueError(f"Episode offset must be non-negative, got {self.offset}")


@dataclass(frozen=True)
class Period:
    """One continuous stay in care.

    Attributes:
        period_id: Identifier, unique within a run.
        beginning: Admission date.
        episodes: Placement episodes ordered by offset.
        birth_year: Year of birth (all the history records about a child).
        duration: Days in care; elapsed days so far for open periods.
        is_open: Whether the period was still open at the snapshot date.
        birthday: Imputed date of birth (None until imputed).
    """

    period_id: str
    beginning: date
    episodes: Tuple[Episode, ...]
    birth_year: int
    duration: Optional[int] = None
    is_open: bool = False
    birthday: Optional[date] = None

    def __post_init__(self) -> None:
        """Check timeline invariants."""
        if not isinstance(self.episodes, tuple):
            object.__setattr__(self, "episodes", tuple(self.episodes))
        if not self.episodes:
            raise ValueError(f"Period {self.period_id} has no episodes")
        if self.episodes[0].offset != 0:
            raise ValueError(f"Period {self.period_id} must start with an episode at offset 0")
        offsets = [e.offset for e in self.episodes]
        if any(b < a for a, b in zip(offsets, offsets[1:])):
            raise ValueError(f"Period {self.period_id} has episodes out of order: {offsets}")
        if self.duration is not None:
            if self.duration < 0:
                raise ValueError(f"Period {self.period_id} has negative duration {self.duration}")
            if offsets[-1] > self.duration:
                raise ValueError(
                    f"Period {self.period_id} has an episode at offset {offsets[-1]} "
                    f"beyond its duration {self.duration}"
                )
        elif not self.is_open:
            raise ValueError(f"Closed period {self.period_id} needs a duration")
        if self.birthday is not None:
            if self.birthday > self.beginning:
                raise ValueError(
                    f"Period {self.period_id} admits a child before their birthday "
                    f"({self.beginning} < {self.birthday})"
                )
            if self.birthday.year != self.birth_year:
                raise ValueError(
                    f"Period {self.period_id} birthday {self.birthday} is not in "
                    f"birth year {self.birth_year}"
                )

    @property
    def end(self) -> Optional[date]:
        """Last day in care, or None while the period is open."""
        if self.is_open or self.duration is None:
            return None
        return days_after(self.beginning, self.duration)

    @property
    def admission_age(self) -> int:
        """Age in complete years on the admission date.

        Raises:
            ValueError: If no birthday has been imputed yet.
        """
        if self.birthday is None:
            raise ValueError(f"Period {self.period_id} has no birthday to derive an age from")
        return years_between(self.birthday, self.beginning)

    @property
    def last_episode(self) -> Episode:
        return self.episodes[-1]


def in_care(period: Period, day: date) -> bool:
    """Whether the child is in care on the given day (end inclusive)."""
    if period.beginning > day:
        return False
    end = period.end
    return end is None or end >= day


def episode_on(period: Period, day: date) -> Optional[Episode]:
    """The episode in effect on the given day, if any."""
    offset = day_interval(period.beginning, day)
    for episode in reversed(period.episodes):
        if episode.offset <= offset:
            return episode
    return None


def age_on(period: Period, day: date) -> int:
    """Child's age in complete years on the given day."""
    if period.birthday is None:
        raise ValueError(f"Period {period.period_id} has no birthday")
    return years_between(period.birthday, day)


def periods_as_at(periods: Iterable[Period], as_at: date) -> List[Period]:
    """Rewind history to what was known on a snapshot date.

    Periods admitted after the snapshot are dropped. Periods still in care
    on the snapshot become open, with the elapsed duration and only the
    episodes that had started by then.

    Args:
        periods: Historical periods.
        as_at: Snapshot date.

    Returns:
        Periods as they stood on the snapshot date.
    """
    result = []
    for period in periods:
        if period.beginning > as_at:
            continue
        end = period.end
        if end is not None and end <= as_at:
            result.append(period)
            continue
        elapsed = day_interval(period.beginning, as_at)
        episodes = tuple(e for e in period.episodes if e.offset <= elapsed)
        result.append(replace(period, duration=elapsed, episodes=episodes, is_open=True))
    return result


def with_elapsed_duration(period: Period, as_at: date) -> Period:
    """Fill in the elapsed duration of an open period that has none."""
    if not period.is_open or period.duration is not None:
        return period
    elapsed = day_interval(period.beginning, as_at)
    if elapsed < period.last_episode.offset:
        raise ValueError(
            f"Open period {period.period_id} has episodes after the snapshot date {as_at}"
        )
    return replace(period, duration=elapsed)


def _period_from_records(
    period_id: str,
    birth_year: int,
    records: List[Tuple[date, Optional[date], str]],
) -> Period:
    """Build one period from consecutive (start, ceased, placement) records."""
    beginning = records[0][0]
    ceased = records[-1][1]
    episodes = tuple(
        Episode(day_interval(beginning, start), placement)
        for start, _, placement in records
    )
    return Period(
        period_id=period_id,
        beginning=beginning,
        episodes=episodes,
        birth_year=birth_year,
        duration=day_interval(beginning, ceased) if ceased is not None else None,
        is_open=ceased is None,
    )


def periods_from_episodes(episodes: pd.DataFrame) -> List[Period]:
    """Build periods from raw episode records.

    Consecutive records for a child form one period while each record
    begins on the day the previous one ceased. A period whose final record
    has no ceased date is open.

    Args:
        episodes: DataFrame with columns id, report_date, ceased,
            placement and dob (year of birth).

    Returns:
        Periods ordered by child id then admission date.
    """
    required = {"id", "report_date", "ceased", "placement", "dob"}
    missing = required - set(episodes.columns)
    if missing:
        raise ValueError(f"Episode records are missing columns: {sorted(missing)}")

    frame = episodes.copy()
    frame["report_date"] = pd.to_datetime(frame["report_date"])
    frame["ceased"] = pd.to_datetime(frame["ceased"])
    frame = frame.sort_values(["id", "report_date"], kind="stable")

    periods: List[Period] = []
    for child_id, rows in frame.groupby("id", sort=True):
        birth_year = int(rows["dob"].iloc[0])
        n_periods = 0
        records: List[Tuple[date, Optional[date], str]] = []
        for row in rows.itertuples(index=False):
            start = row.report_date.date()
            ceased = None if pd.isna(row.ceased) else row.ceased.date()
            # A gap between ceased and the next start begins a new period
            if records and records[-1][1] is not None and records[-1][1] != start:
                n_periods += 1
                periods.append(_period_from_records(f"{child_id}-{n_periods}", birth_year, records))
                records = []
            records.append((start, ceased, normalise_placement(str(row.placement))))
        if records:
            n_periods += 1
            periods.append(_period_from_records(f"{child_id}-{n_periods}", birth_year, records))
    return periods
