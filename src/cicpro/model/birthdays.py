"""Birthday imputation.

The history only records a child's year of birth, so every run imputes
an arbitrary birthday (and hence an admission age) for each period. Using
fresh birthdays per run lets the projection carry that uncertainty.
"""

from dataclasses import dataclass, replace
from datetime import date, timedelta
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from cicpro.core.dates import day_of_year, years_before
from cicpro.core.distributions import UniformInt
from cicpro.core.streams import RandomStream
from cicpro.model.period import Period


def days_in_year(year: int) -> int:
    return (date(year + 1, 1, 1) - date(year, 1, 1)).days


def sample_birthday(period: Period, stream: RandomStream) -> date:
    """Uniform day within the birth year, no later than admission.

    Raises:
        ValueError: If the period begins before its birth year.
    """
    if period.beginning.year < period.birth_year:
        raise ValueError(
            f"Period {period.period_id} begins in {period.beginning.year}, "
            f"before birth year {period.birth_year}"
        )
    if period.beginning.year == period.birth_year:
        high = day_of_year(period.beginning) + 1
    else:
        high = days_in_year(period.birth_year)
    offset, _ = stream.sample(UniformInt(0, high))
    return date(period.birth_year, 1, 1) + timedelta(days=offset)


def impute_birthdays(periods: Sequence[Period], stream: RandomStream) -> List[Period]:
    """Give every period without a birthday a sampled one.

    The stream is split once per period, whether or not it needs a
    birthday, so draws don't shift when some birthdays are already known.

    Args:
        periods: Periods, some possibly already holding birthdays.
        stream: Stream for this imputation.

    Returns:
        Periods in the same order, all with birthdays.
    """
    result = []
    for period, period_stream in zip(periods, stream.split_n(len(periods))):
        if period.birthday is None:
            period = replace(period, birthday=sample_birthday(period, period_stream))
        result.append(period)
    return result


@dataclass(frozen=True)
class JoinerBirthdayParams:
    """Empirical quantiles of age in days for joiners admitted before their first birthday.

    Attributes:
        days: Age in days at admission, one entry per quantile bucket.
    """

    days: Tuple[int, ...]

    def __post_init__(self) -> None:
        if not self.days:
            raise ValueError("JoinerBirthdayParams needs at least one quantile")
        if any(d < 0 for d in self.days):
            raise ValueError("Ages in days must be non-negative")

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, column: str = "days") -> "JoinerBirthdayParams":
        """Read quantiles from a DataFrame column (one row per quantile)."""
        return cls(days=tuple(int(d) for d in frame[column]))


def joiner_birthday(
    age: int,
    beginning: date,
    stream: RandomStream,
    params: Optional[JoinerBirthdayParams] = None,
) -> date:
    """Birthday for a joiner admitted at the given age.

    Joiners aged one and over are born exactly ``age`` years before
    admission. Age-zero joiners take their age in days from the empirical
    quantiles when available, else uniformly within the first year.
    """
    if age > 0:
        return years_before(beginning, age)
    if params is None:
        days_old, _ = stream.sample(UniformInt(0, 365))
    else:
        bucket, _ = stream.sample(UniformInt(0, len(params.days)))
        days_old = min(params.days[bucket], 364)
    birthday = beginning - timedelta(days=days_old)
    # Still age zero on admission
    if years_before(beginning, 1) >= birthday:
        birthday = years_before(beginning, 1) + timedelta(days=1)
    return birthday
