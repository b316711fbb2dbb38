"""Duration-in-care model.

Durations are sampled from empirical quantile tables fitted externally
(a survival analysis by admission age). Each table row holds the lower
bound, median and upper bound of duration in days for one percentile
bucket; a draw picks a bucket uniformly and samples the skew-aware
normal through its bounds.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import pandas as pd

from cicpro.core.distributions import SkewCI, Uniform, UniformInt
from cicpro.core.entities import ADMISSION_AGES, ADULT_AGE, DAYS_PER_YEAR, clamp_age
from cicpro.core.dates import round_half_up
from cicpro.core.streams import RandomStream

logger = logging.getLogger(__name__)

# Attempts at a draw above the minimum before clamping
MAX_RESAMPLES = 5

Bucket = Tuple[float, float, float]


@dataclass(frozen=True)
class DurationParams:
    """Empirical duration quantiles by admission age.

    Attributes:
        quantiles: Admission age -> (lower, median, upper) days per
            percentile bucket, in ascending percentile order.
    """

    quantiles: Dict[int, Tuple[Bucket, ...]]

    def __post_init__(self) -> None:
        for age, buckets in self.quantiles.items():
            if not buckets:
                raise ValueError(f"No duration quantiles for age {age}")
            for lower, median, upper in buckets:
                if not lower <= median <= upper:
                    raise ValueError(
                        f"Duration quantile for age {age} is not ordered: "
                        f"({lower}, {median}, {upper})"
                    )

    def buckets(self, age: int) -> Tuple[Bucket, ...]:
        """Quantile buckets for an admission age (clamped to 0-17).

        Raises:
            ValueError: If the age is negative or has no table.
        """
        age = clamp_age(age)
        if age not in self.quantiles:
            raise ValueError(f"No duration quantiles for admission age {age}")
        return self.quantiles[age]

    @classmethod
    def constant(cls, days: float) -> "DurationParams":
        """Degenerate table that always returns the same duration."""
        bucket = ((days, days, days),)
        return cls(quantiles={age: bucket for age in ADMISSION_AGES})

    @classmethod
    def from_frames(
        cls, lower: pd.DataFrame, median: pd.DataFrame, upper: pd.DataFrame
    ) -> "DurationParams":
        """Build from three age-by-percentile tables.

        Each frame has the admission age in its first column and one column
        per percentile bucket after it, as written by the survival fit.
        """
        def by_age(frame: pd.DataFrame) -> Dict[int, Tuple[float, ...]]:
            return {
                int(row[0]): tuple(float(v) for v in row[1:])
                for row in frame.itertuples(index=False)
            }

        lows, medians, ups = by_age(lower), by_age(median), by_age(upper)
        quantiles = {}
        for age in sorted(medians):
            if age not in lows or age not in ups:
                raise ValueError(f"Duration tables disagree on age {age}")
            quantiles[age] = tuple(zip(lows[age], medians[age], ups[age]))
        return cls(quantiles=quantiles)


def max_duration_days(admission_age: int) -> int:
    """Days in care available before an 18th birthday, from whole-year age."""
    return max(ADULT_AGE - admission_age, 0) * DAYS_PER_YEAR


def sample_duration(
    params: DurationParams,
    admission_age: int,
    min_days: int,
    stream: RandomStream,
    max_days: Optional[int] = None,
) -> int:
    """Sample a duration in care, in days.

    The result is never below ``min_days`` (a case already open that long
    cannot close sooner) and never beyond ``max_days`` (the 18th birthday).

    Args:
        params: Duration quantile tables.
        admission_age: Age at admission in whole years.
        min_days: Days already spent in care.
        stream: Random stream for this draw.
        max_days: Days until the child turns 18; derived from the age
            when omitted.

    Returns:
        Duration in days within [min_days, max_days].

    Raises:
        ValueError: If the age or the minimum is negative.
    """
    if min_days < 0:
        raise ValueError(f"min_days must be non-negative, got {min_days}")
    buckets = params.buckets(admission_age)
    if max_days is None:
        max_days = max_duration_days(admission_age)
    max_days = max(max_days, min_days)

    skip = sum(1 for _, median, _ in buckets if median < min_days)
    if skip >= len(buckets):
        # Already longer than any modelled duration
        value, _ = stream.sample(Uniform(min_days, max_days))
        return int(min(max(round_half_up(value), min_days), max_days))

    value = float(min_days)
    for attempt in range(MAX_RESAMPLES):
        bucket_stream, draw_stream = stream.substream(attempt).split()
        idx, _ = bucket_stream.sample(UniformInt(skip, len(buckets)))
        value, _ = draw_stream.sample(SkewCI(*buckets[idx]))
        if value >= min_days:
            break
    else:
        logger.debug(
            f"Duration draws for age {admission_age} stayed below {min_days} days; clamping"
        )
    return int(min(max(round_half_up(value), min_days), max_days))
