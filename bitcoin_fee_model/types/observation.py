from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from bitcoin_fee_model.util.errors import EncodingError, Err


@dataclass(frozen=True)
class Observation:
    """
    A point-in-time snapshot of the mempool context of a transaction, as captured by the
    external logger. Every field is optional: which ones are required depends on the
    feature schema of the model that consumes the observation, and a missing required
    field is reported by the encoder.

    Attributes:
        fee_rate: fee rate of the transaction being assessed, sat/vB
        timestamp: unix time (seconds) the snapshot was taken
        last_block_ts: unix time (seconds) of the last block header seen
        fee_rates: fee rates (sat/vB) of recently confirmed transactions, bucketed by the encoder
        fee_buckets: precomputed bucket counts, used instead of `fee_rates` when present
        vsize: virtual size of the transaction, vbytes
        ancestor_fee / ancestor_size: aggregates over unconfirmed ancestors, sat / vbytes
        descendant_fee / descendant_size: aggregates over unconfirmed descendants, sat / vbytes
        block_height: chain tip height at snapshot time
        mempool_size: total mempool backlog, vbytes
        mempool_tx_count: number of transactions waiting in the mempool
    """

    fee_rate: Optional[float] = None
    timestamp: Optional[int] = None
    last_block_ts: Optional[int] = None
    fee_rates: Optional[Tuple[float, ...]] = None
    fee_buckets: Optional[Tuple[int, ...]] = None
    vsize: Optional[int] = None
    ancestor_fee: Optional[int] = None
    ancestor_size: Optional[int] = None
    descendant_fee: Optional[int] = None
    descendant_size: Optional[int] = None
    block_height: Optional[int] = None
    mempool_size: Optional[int] = None
    mempool_tx_count: Optional[int] = None

    def __post_init__(self) -> None:
        # keep the snapshot hashable and immutable even when built from lists
        for name in ("fee_rates", "fee_buckets"):
            value = getattr(self, name)
            if value is None or isinstance(value, tuple):
                continue
            if not isinstance(value, list):
                raise EncodingError(
                    Err.INVALID_FEATURE_VALUE, f"{name} must be a list, got {type(value).__name__}", name
                )
            object.__setattr__(self, name, tuple(value))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Observation:
        known = {f.name for f in dataclasses.fields(cls)}
        for key in data.keys():
            if not isinstance(key, str):
                raise EncodingError(
                    Err.UNKNOWN_OBSERVATION_FIELD, f"observation field names must be strings, got {key!r}", str(key)
                )
        unknown = sorted(set(data.keys()) - known)
        if len(unknown) > 0:
            raise EncodingError(
                Err.UNKNOWN_OBSERVATION_FIELD, f"unknown observation fields: {', '.join(unknown)}", unknown[0]
            )
        return cls(**data)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for f in dataclasses.fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            result[f.name] = list(value) if isinstance(value, tuple) else value
        return result
