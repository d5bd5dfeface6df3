from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, FrozenSet, Mapping, Optional, Sequence, Tuple, Type

import numpy as np

from bitcoin_fee_model.encoder.fee_buckets import FeeBuckets
from bitcoin_fee_model.types.confirmation_target import validate_target
from bitcoin_fee_model.types.observation import Observation
from bitcoin_fee_model.util.errors import EncodingError, Err, LoadError
from bitcoin_fee_model.util.ints import uint32, uint64

log = logging.getLogger(__name__)

FEE_BUCKETS = FeeBuckets()
BUCKET_FEATURES: Tuple[str, ...] = tuple(f"b{i}" for i in range(len(FEE_BUCKETS)))

# the features of the 2021 training export, see `extract_v1`
ENCODING_V1_FEATURES: FrozenSet[str] = frozenset(("confirms_in", "delta_last", "day_of_week", "hour") + BUCKET_FEATURES)

# transaction and mempool context copied as-is from the observation
CONTEXT_FEATURES: Tuple[str, ...] = (
    "fee_rate",
    "vsize",
    "ancestor_fee",
    "ancestor_size",
    "descendant_fee",
    "descendant_size",
    "block_height",
    "mempool_size",
    "mempool_tx_count",
)
ENCODING_V2_FEATURES: FrozenSet[str] = ENCODING_V1_FEATURES | frozenset(CONTEXT_FEATURES)

# observation fields each derived feature is computed from, used in error messages
FEATURE_SOURCES: Dict[str, Tuple[str, ...]] = {
    "confirms_in": (),
    "delta_last": ("timestamp", "last_block_ts"),
    "day_of_week": ("timestamp",),
    "hour": ("timestamp",),
    **{name: ("fee_buckets", "fee_rates") for name in BUCKET_FEATURES},
    **{name: (name,) for name in CONTEXT_FEATURES},
}


@dataclass(frozen=True, eq=False)
class FeatureVector:
    fields: Tuple[str, ...]
    values: np.ndarray  # float32, read-only

    def __len__(self) -> int:
        return len(self.fields)

    def to_list(self) -> list[float]:
        return [float(v) for v in self.values]

    @classmethod
    def from_values(cls, fields: Sequence[str], values: Sequence[float]) -> FeatureVector:
        """Wrap an already-normalized vector, e.g. one pinned in a test vector file."""
        array = np.array(values, dtype=np.float32)
        array.setflags(write=False)
        return cls(tuple(fields), array)


@dataclass(frozen=True)
class EncodingScheme:
    version: int
    features: FrozenSet[str]
    extract: Callable[[Observation, int], Dict[str, float]]


@dataclass(frozen=True, eq=False)
class FeatureSchema:
    """
    The numeric preprocessing contract a model bundle was trained with: which features,
    in which order, normalized with which mean and standard deviation. It ships inside
    the bundle, so changing the training pipeline means shipping a new bundle.
    """

    fields: Tuple[str, ...]
    mean: np.ndarray  # float32, ordered as `fields`
    std: np.ndarray  # float32, ordered as `fields`
    encoding: int

    @classmethod
    def create(
        cls, fields: Sequence[str], mean: Mapping[str, float], std: Mapping[str, float], encoding: int = 1
    ) -> FeatureSchema:
        scheme = ENCODINGS.get(encoding)
        if scheme is None:
            raise LoadError(Err.MODEL_UNKNOWN_ENCODING, f"unknown feature encoding {encoding!r}")
        if len(fields) == 0:
            raise LoadError(Err.MODEL_MISSING_DATA, "feature schema lists no fields")
        if len(set(fields)) != len(fields):
            raise LoadError(Err.MODEL_INVALID_NORMALIZATION, f"duplicate fields in feature schema {list(fields)}")
        unknown = [f for f in fields if f not in scheme.features]
        if len(unknown) > 0:
            raise LoadError(
                Err.MODEL_UNKNOWN_ENCODING, f"fields {unknown} are not produced by feature encoding {encoding}"
            )

        means = []
        stds = []
        for field_name in fields:
            if field_name not in mean:
                raise LoadError(Err.MODEL_MISSING_DATA, f"missing mean field {field_name}")
            if field_name not in std:
                raise LoadError(Err.MODEL_MISSING_DATA, f"missing std field {field_name}")
            m = float(mean[field_name])
            s = float(std[field_name])
            if not math.isfinite(m) or not math.isfinite(s) or s == 0.0:
                raise LoadError(
                    Err.MODEL_INVALID_NORMALIZATION, f"invalid normalization for {field_name}: mean={m} std={s}"
                )
            means.append(m)
            stds.append(s)

        mean_array = np.array(means, dtype=np.float32)
        std_array = np.array(stds, dtype=np.float32)
        mean_array.setflags(write=False)
        std_array.setflags(write=False)
        return cls(tuple(fields), mean_array, std_array, encoding)

    def __len__(self) -> int:
        return len(self.fields)

    def normalize(self, raw: Mapping[str, float]) -> FeatureVector:
        values = np.array([raw[f] for f in self.fields], dtype=np.float32)
        result = (values - self.mean) / self.std
        result.setflags(write=False)
        return FeatureVector(self.fields, result)


def _check_int(name: str, value: object, int_type: Type[int] = uint64, positive: bool = False) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise EncodingError(Err.INVALID_FEATURE_VALUE, f"{name} must be an integer, got {value!r}", name)
    try:
        checked = int(int_type(value))
    except (ValueError, OverflowError) as e:
        raise EncodingError(Err.INVALID_FEATURE_VALUE, f"{name} out of range: {value!r}", name) from e
    if positive and checked == 0:
        raise EncodingError(Err.INVALID_FEATURE_VALUE, f"{name} must be positive", name)
    return checked


def _check_fee_rate(name: str, value: object) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise EncodingError(Err.INVALID_FEATURE_VALUE, f"{name} must be a number, got {value!r}", name)
    if not math.isfinite(value) or value < 0:
        raise EncodingError(
            Err.INVALID_FEATURE_VALUE, f"{name} must be a finite non-negative number, got {value}", name
        )
    return float(value)


def validate_observation(observation: Observation) -> None:
    """Checks every value present in the observation against its domain."""
    if observation.fee_rate is not None:
        _check_fee_rate("fee_rate", observation.fee_rate)
    if observation.timestamp is not None:
        _check_int("timestamp", observation.timestamp, uint32)
    if observation.last_block_ts is not None:
        _check_int("last_block_ts", observation.last_block_ts, uint32)
    if observation.vsize is not None:
        _check_int("vsize", observation.vsize, positive=True)
    for name in ("ancestor_fee", "ancestor_size", "descendant_fee", "descendant_size"):
        value = getattr(observation, name)
        if value is not None:
            _check_int(name, value)
    if observation.block_height is not None:
        _check_int("block_height", observation.block_height, uint32)
    if observation.mempool_size is not None:
        _check_int("mempool_size", observation.mempool_size)
    if observation.mempool_tx_count is not None:
        _check_int("mempool_tx_count", observation.mempool_tx_count)
    if observation.fee_buckets is not None:
        if len(observation.fee_buckets) != len(FEE_BUCKETS):
            raise EncodingError(
                Err.INVALID_FEE_BUCKETS,
                f"expected {len(FEE_BUCKETS)} fee buckets, got {len(observation.fee_buckets)}",
                "fee_buckets",
            )
        for count in observation.fee_buckets:
            _check_int("fee_buckets", count)
    if observation.fee_rates is not None:
        for rate in observation.fee_rates:
            _check_fee_rate("fee_rates", rate)


def bucket_counts(observation: Observation) -> Optional[list[int]]:
    if observation.fee_buckets is not None:
        return list(observation.fee_buckets)
    if observation.fee_rates is not None:
        return FEE_BUCKETS.get(observation.fee_rates)
    return None


def extract_v1(observation: Observation, target: int) -> Dict[str, float]:
    """
    Raw (not normalized) features of the 2021 training export: the confirmation
    target, seconds since the last block, UTC day of week (Monday is 0) and hour, and the
    bucketed fee rates of recent transactions.
    """
    raw: Dict[str, float] = {"confirms_in": float(target)}
    if observation.timestamp is not None:
        utc = datetime.fromtimestamp(observation.timestamp, tz=timezone.utc)
        raw["day_of_week"] = float(utc.weekday())
        raw["hour"] = float(utc.hour)
        if observation.last_block_ts is not None:
            raw["delta_last"] = float(observation.timestamp - observation.last_block_ts)
    buckets = bucket_counts(observation)
    if buckets is not None:
        for name, count in zip(BUCKET_FEATURES, buckets):
            raw[name] = float(count)
    return raw


def extract_v2(observation: Observation, target: int) -> Dict[str, float]:
    raw = extract_v1(observation, target)
    for name in CONTEXT_FEATURES:
        value = getattr(observation, name)
        if value is not None:
            raw[name] = float(value)
    return raw


ENCODINGS: Dict[int, EncodingScheme] = {
    1: EncodingScheme(1, ENCODING_V1_FEATURES, extract_v1),
    2: EncodingScheme(2, ENCODING_V2_FEATURES, extract_v2),
}


def encode(observation: Observation, target: int, schema: FeatureSchema) -> FeatureVector:
    target = validate_target(target)
    validate_observation(observation)
    raw = ENCODINGS[schema.encoding].extract(observation, int(target))
    for field_name in schema.fields:
        if field_name not in raw:
            sources = " or ".join(FEATURE_SOURCES[field_name])
            raise EncodingError(
                Err.MISSING_FEATURE, f"observation can't provide feature {field_name} (needs {sources})", field_name
            )
    vector = schema.normalize(raw)
    log.debug(f"encoded target {target} with encoding {schema.encoding}: {vector.to_list()}")
    return vector
