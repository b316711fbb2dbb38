"""Distribution parameter structs and sampling primitives.

Each distribution is a frozen dataclass holding its parameters and a
``draw(rng)`` method. Sampling always goes through a RandomStream, so a
draw is a pure function of (parameters, stream):

    value, stream = stream.sample(Gamma.from_mean(30.0, 0.5))
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

import numpy as np

from cicpro.core.streams import RandomStream


# Normal 95% two-sided critical value
Z_95 = 1.96


@dataclass(frozen=True)
class Uniform:
    """Continuous uniform on [low, high)."""

    low: float
    high: float

    def __post_init__(self) -> None:
        if self.high < self.low:
            raise ValueError(f"Uniform requires low <= high, got {self.low}, {self.high}")

    def draw(self, rng: np.random.Generator) -> float:
        return float(rng.uniform(self.low, self.high))


@dataclass(frozen=True)
class UniformInt:
    """Discrete uniform on [low, high). Degenerate ranges return low."""

    low: int
    high: int

    def draw(self, rng: np.random.Generator) -> int:
        if self.high <= self.low:
            return int(self.low)
        return int(rng.integers(self.low, self.high))


@dataclass(frozen=True)
class Normal:
    mu: float = 0.0
    sd: float = 1.0

    def __post_init__(self) -> None:
        if self.sd < 0:
            raise ValueError(f"Normal sd must be non-negative, got {self.sd}")

    def draw(self, rng: np.random.Generator) -> float:
        return float(rng.normal(self.mu, self.sd))


STANDARD_NORMAL = Normal()


@dataclass(frozen=True)
class Gamma:
    """Gamma with shape k and scale theta (mean k * theta)."""

    shape: float
    scale: float

    def __post_init__(self) -> None:
        if self.shape <= 0 or self.scale <= 0:
            raise ValueError(
                f"Gamma requires positive shape and scale, got {self.shape}, {self.scale}"
            )

    @classmethod
    def from_mean(cls, mean: float, dispersion: float) -> "Gamma":
        """Gamma parameterised as in a GLM: shape = 1/dispersion, mean preserved."""
        if dispersion <= 0:
            raise ValueError(f"dispersion must be positive, got {dispersion}")
        shape = 1.0 / dispersion
        return cls(shape=shape, scale=mean / shape)

    @property
    def mean(self) -> float:
        return self.shape * self.scale

    def draw(self, rng: np.random.Generator) -> float:
        return float(rng.gamma(self.shape, self.scale))


@dataclass(frozen=True)
class Exponential:
    mean: float

    def __post_init__(self) -> None:
        if self.mean <= 0:
            raise ValueError(f"Exponential mean must be positive, got {self.mean}")

    def draw(self, rng: np.random.Generator) -> float:
        return float(rng.exponential(self.mean))


@dataclass(frozen=True)
class Beta:
    alpha: float
    beta: float

    def __post_init__(self) -> None:
        if self.alpha <= 0 or self.beta <= 0:
            raise ValueError(
                f"Beta requires positive parameters, got {self.alpha}, {self.beta}"
            )

    def draw(self, rng: np.random.Generator) -> float:
        return float(rng.beta(self.alpha, self.beta))


@dataclass(frozen=True)
class Bernoulli:
    p: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.p <= 1.0:
            raise ValueError(f"Bernoulli p must be in [0, 1], got {self.p}")

    def draw(self, rng: np.random.Generator) -> bool:
        return bool(rng.random() < self.p)


@dataclass(frozen=True)
class DirichletCategorical:
    """Categorical outcome with probabilities drawn from a Dirichlet.

    The probability vector is drawn once from Dirichlet(alphas), then a
    single outcome is drawn from it. Both draws use the same generator.

    Attributes:
        outcomes: Possible outcomes, in a fixed order.
        alphas: Dirichlet concentration for each outcome.
    """

    outcomes: Tuple[Any, ...]
    alphas: Tuple[float, ...]

    def __post_init__(self) -> None:
        if len(self.outcomes) != len(self.alphas):
            raise ValueError("outcomes and alphas must have the same length")
        if not self.outcomes:
            raise ValueError("DirichletCategorical needs at least one outcome")
        if any(a <= 0 for a in self.alphas):
            raise ValueError(f"Dirichlet alphas must be positive, got {self.alphas}")

    @classmethod
    def from_weights(cls, weights: dict) -> "DirichletCategorical":
        """Build from an {outcome: alpha} mapping, keeping its order."""
        return cls(outcomes=tuple(weights.keys()), alphas=tuple(float(a) for a in weights.values()))

    def draw(self, rng: np.random.Generator) -> Any:
        probs = rng.dirichlet(self.alphas)
        idx = int(rng.choice(len(self.outcomes), p=probs))
        return self.outcomes[idx]


@dataclass(frozen=True)
class SkewCI:
    """Skew-aware normal reproducing an empirical confidence interval.

    A standard normal z is scaled by the upper half-width when positive
    and by the lower half-width otherwise, treating each bound as 1.96
    standard deviations from the median on its own side.
    """

    lower: float
    median: float
    upper: float

    def __post_init__(self) -> None:
        if not self.lower <= self.median <= self.upper:
            raise ValueError(
                f"SkewCI requires lower <= median <= upper, got "
                f"({self.lower}, {self.median}, {self.upper})"
            )

    def draw(self, rng: np.random.Generator) -> float:
        z = STANDARD_NORMAL.draw(rng)
        if z > 0:
            return self.median + (self.upper - self.median) * z / Z_95
        return self.median + (self.median - self.lower) * z / Z_95


def choose(items: Sequence[Any], stream: RandomStream) -> Tuple[Optional[Any], RandomStream]:
    """Pick one item uniformly at random.

    Returns:
        Tuple of (item or None when items is empty, next stream).
    """
    if len(items) == 0:
        return None, stream
    idx, stream = stream.sample(UniformInt(0, len(items)))
    return items[idx], stream
