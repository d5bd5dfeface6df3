from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Iterable, List

from sortedcontainers import SortedList

from bitcoin_fee_model.util.errors import EncodingError, Err

# bucket layout the 2021 models were trained with
DEFAULT_INCREMENT_PERCENT = 50
DEFAULT_UPPER_LIMIT = 500.0  # sat/vB


def create_buckets_limits(increment_percent: int, upper_limit: float) -> List[float]:
    """
    Upper limits of the fee rate buckets, growing geometrically from 1 sat/vB.
    The last limit is the first one reaching `upper_limit`.
    """
    if increment_percent <= 0:
        raise ValueError(f"increment_percent must be positive, got {increment_percent}")
    limits: List[float] = []
    step = 1.0 + increment_percent / 100.0
    current = 1.0
    while current < upper_limit:
        current *= step
        limits.append(current)
    return limits


@dataclass(frozen=True)
class FeeBuckets:
    increment_percent: int = DEFAULT_INCREMENT_PERCENT
    upper_limit: float = DEFAULT_UPPER_LIMIT
    limits: SortedList = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "limits", SortedList(create_buckets_limits(self.increment_percent, self.upper_limit)))

    def __len__(self) -> int:
        return len(self.limits)

    def get_bucket_index(self, fee_rate: float) -> int:
        # first bucket whose limit is strictly greater than the rate, overflow goes to the last one
        return min(self.limits.bisect_right(fee_rate), len(self.limits) - 1)

    def get(self, fee_rates: Iterable[float]) -> List[int]:
        buckets = [0] * len(self.limits)
        for rate in fee_rates:
            if isinstance(rate, bool) or not isinstance(rate, (int, float)) or not math.isfinite(rate) or rate < 0:
                raise EncodingError(Err.INVALID_FEE_BUCKETS, f"invalid fee rate {rate!r} in fee_rates", "fee_rates")
            buckets[self.get_bucket_index(rate)] += 1
        return buckets
