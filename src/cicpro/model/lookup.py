"""Fuzzy empirical lookup index.

Historical data is sparse at any exact (age, duration, placement, offset)
combination, so values are inserted under every key near the one they were
observed at. A query is then a single exact lookup:

    >>> lookup = FuzzyLookup()
    >>> lookup.add((5, 2.4), "x")
    >>> lookup.get((4, 3))
    ('x',)
    >>> lookup.get((5, 5))
    ()

Float dimensions expand to their floor and ceiling, integer dimensions to
the value and its two neighbours, anything else (placement codes, flags)
is matched exactly.
"""

import itertools
import math
from collections import defaultdict
from numbers import Integral, Real
from typing import Any, DefaultDict, Dict, Hashable, List, Tuple


def fuzz_dimension(value: Any) -> Tuple[Any, ...]:
    """Candidate values a single key dimension is inserted under."""
    if isinstance(value, bool):
        return (value,)
    if isinstance(value, Integral):
        value = int(value)
        return (value - 1, value, value + 1)
    if isinstance(value, Real):
        lo, hi = int(math.floor(value)), int(math.ceil(value))
        return (lo,) if lo == hi else (lo, hi)
    return (value,)


def fuzz_key(key: Tuple[Any, ...]) -> List[Tuple[Any, ...]]:
    """Every exact key a fuzzy key is inserted under."""
    return list(itertools.product(*(fuzz_dimension(k) for k in key)))


class FuzzyLookup:
    """Append-only index answering queries near, not just at, inserted keys.

    Built once, then only read, so it can be shared by every run and every
    worker process.
    """

    def __init__(self) -> None:
        self._index: DefaultDict[Tuple[Any, ...], List[Any]] = defaultdict(list)
        self._n_values = 0

    def add(self, key: Tuple[Hashable, ...], value: Any) -> None:
        """Insert a value under the fuzzed expansion of key."""
        for exact in fuzz_key(tuple(key)):
            self._index[exact].append(value)
        self._n_values += 1

    def get(self, key: Tuple[Hashable, ...]) -> Tuple[Any, ...]:
        """Values inserted near key, in insertion order."""
        return tuple(self._index.get(tuple(key), ()))

    def __len__(self) -> int:
        """Number of values added (before fuzzing)."""
        return self._n_values

    def __contains__(self, key: Tuple[Hashable, ...]) -> bool:
        return tuple(key) in self._index

    def stats(self) -> Dict[str, int]:
        return {"values": self._n_values, "keys": len(self._index)}
