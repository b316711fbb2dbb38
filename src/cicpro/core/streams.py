"""Splittable, immutable random streams.

A RandomStream names a point in a deterministic random sequence by a root
seed and a path of integers. Branches of a computation never share a
generator: they split the parent stream and each own a child. Every point
builds its own counter-based generator (Philox keyed by a SeedSequence),
so draws depend only on the seed and the path, never on evaluation order.

Child paths:
    split_n(k)[i]  -> path + (k, i)   (k >= 1)
    substream(i)   -> path + (0, i)
    sample(...)    -> continues at substream(0)
"""

from dataclasses import dataclass
from typing import Any, List, Tuple

import numpy as np


@dataclass(frozen=True)
class RandomStream:
    """Immutable handle on a point in a seeded random sequence.

    Attributes:
        seed: Non-negative root seed.
        path: Split path from the root stream.
    """

    seed: int
    path: Tuple[int, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.seed, (int, np.integer)) or self.seed < 0:
            raise ValueError(f"seed must be a non-negative integer, got {self.seed!r}")

    @classmethod
    def from_seed(cls, seed: int) -> "RandomStream":
        """Root stream for a master seed."""
        return cls(seed=int(seed))

    def split(self) -> Tuple["RandomStream", "RandomStream"]:
        """Two independent children."""
        left, right = self.split_n(2)
        return left, right

    def split_n(self, n: int) -> List["RandomStream"]:
        """n independent children, in a fixed order.

        Raises:
            ValueError: If n is negative.
        """
        if n < 0:
            raise ValueError(f"Cannot split a stream into {n} children")
        return [RandomStream(self.seed, self.path + (n, i)) for i in range(n)]

    def substream(self, index: int) -> "RandomStream":
        """Indexed child, for loops whose length is not known in advance."""
        if index < 0:
            raise ValueError(f"substream index must be non-negative, got {index}")
        return RandomStream(self.seed, self.path + (0, index))

    def generator(self) -> np.random.Generator:
        """Fresh generator positioned at the start of this stream."""
        seq = np.random.SeedSequence(self.seed, spawn_key=self.path)
        return np.random.Generator(np.random.Philox(seq))

    def sample(self, distribution: Any) -> Tuple[Any, "RandomStream"]:
        """Draw one value from a distribution.

        Args:
            distribution: Any object with a ``draw(rng)`` method
                (see ``cicpro.core.distributions``).

        Returns:
            Tuple of (value, stream to use for any further draws).
        """
        value = distribution.draw(self.generator())
        return value, self.substream(0)


def split(stream: RandomStream) -> Tuple[RandomStream, RandomStream]:
    return stream.split()


def split_n(stream: RandomStream, n: int) -> List[RandomStream]:
    return stream.split_n(n)


def sample(stream: RandomStream, distribution: Any) -> Tuple[Any, RandomStream]:
    return stream.sample(distribution)
