from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import cbor2

from bitcoin_fee_model.encoder.feature_encoder import FeatureSchema, FeatureVector
from bitcoin_fee_model.model.dense_network import DenseNetwork, InferenceEngine
from bitcoin_fee_model.types.confirmation_target import ModelRole
from bitcoin_fee_model.types.prediction import OutputKind
from bitcoin_fee_model.util.errors import Err, LoadError, PredictionError

log = logging.getLogger(__name__)

MODEL_FILENAME = "model.cbor"
TEST_VECTORS_FILENAME = "test_vectors.yaml"

# fee estimation should not go under 1.0 sat/vB. The model is trained with a penalty for
# values under it, which makes them rare but not impossible, so it is enforced here.
DEFAULT_MIN_FEE_RATE = 1.0


@dataclass(frozen=True)
class OutputSpec:
    kind: OutputKind = OutputKind.FEE_RATE
    minimum: float = DEFAULT_MIN_FEE_RATE  # only used for fee rates

    @classmethod
    def from_dict(cls, data: Any) -> OutputSpec:
        if not isinstance(data, dict):
            raise LoadError(Err.MODEL_INVALID_OUTPUT, f"output must be a map, got {type(data).__name__}")
        try:
            kind = OutputKind(data.get("kind", OutputKind.FEE_RATE.value))
        except ValueError as e:
            raise LoadError(Err.MODEL_INVALID_OUTPUT, f"unknown output kind {data.get('kind')!r}") from e
        default_minimum = DEFAULT_MIN_FEE_RATE if kind is OutputKind.FEE_RATE else 0.0
        minimum = data.get("minimum", default_minimum)
        if isinstance(minimum, bool) or not isinstance(minimum, (int, float)) or not math.isfinite(minimum):
            raise LoadError(Err.MODEL_INVALID_OUTPUT, f"invalid output minimum {minimum!r}")
        if minimum < 0:
            raise LoadError(Err.MODEL_INVALID_OUTPUT, f"output minimum must not be negative, got {minimum}")
        if kind is OutputKind.PROBABILITY and minimum > 1:
            raise LoadError(Err.MODEL_INVALID_OUTPUT, f"probability minimum must be at most 1, got {minimum}")
        return cls(kind, float(minimum))

    def apply(self, raw: float) -> float:
        if self.kind is OutputKind.PROBABILITY:
            return min(max(raw, self.minimum), 1.0)
        return max(raw, self.minimum)


@dataclass(frozen=True, eq=False)
class ModelArtifactBundle:
    """
    A loaded, immutable model: its feature schema, the inference engine and how the
    raw output is post-processed. `role` is None for bundles that are loaded for
    verification but never routed to.
    """

    bundle_id: str
    role: Optional[ModelRole]
    schema: FeatureSchema
    engine: InferenceEngine
    output: OutputSpec

    @property
    def input_size(self) -> int:
        return self.engine.input_size

    def infer(self, vector: FeatureVector) -> float:
        if vector.fields != self.schema.fields:
            raise PredictionError(
                Err.INFERENCE_SHAPE_MISMATCH,
                f"feature vector fields {list(vector.fields)} do not match bundle {self.bundle_id}",
            )
        return self.engine.infer(vector.values)

    def postprocess(self, raw: float) -> float:
        return self.output.apply(raw)

    def describe(self) -> Dict[str, Any]:
        return {
            "bundle_id": self.bundle_id,
            "role": None if self.role is None else self.role.value,
            "encoding": self.schema.encoding,
            "fields": list(self.schema.fields),
            "output": self.output.kind.value,
        }


def read_model_bytes(source: Union[Path, str, bytes]) -> bytes:
    if isinstance(source, bytes):
        return source
    path = Path(source)
    if path.is_dir():
        path = path / MODEL_FILENAME
    if not path.is_file():
        raise LoadError(Err.MODEL_NOT_FOUND, f"model file not found: {str(path)!r}")
    try:
        return path.read_bytes()
    except OSError as e:
        raise LoadError(Err.MODEL_NOT_FOUND, f"can't read {str(path)!r}: {e}") from e


def parse_model_data(data: Any, bundle_id: str, role: Optional[ModelRole]) -> ModelArtifactBundle:
    if not isinstance(data, dict):
        raise LoadError(Err.MODEL_MISSING_DATA, f"model data must be a map, got {type(data).__name__}")
    norm = data.get("norm")
    weights = data.get("weights")
    if not isinstance(norm, dict):
        raise LoadError(Err.MODEL_MISSING_DATA, "missing norm section")
    if not isinstance(weights, dict):
        raise LoadError(Err.MODEL_MISSING_DATA, "missing weights section")

    # older exports keep the field list next to `norm` instead of inside it
    fields = norm.get("fields", data.get("fields"))
    if not isinstance(fields, list) or not all(isinstance(f, str) for f in fields):
        raise LoadError(Err.MODEL_MISSING_DATA, "missing or invalid field list")
    mean = norm.get("mean")
    std = norm.get("std")
    if not isinstance(mean, dict) or not isinstance(std, dict):
        raise LoadError(Err.MODEL_MISSING_DATA, "missing mean or std normalization data")

    encoding = data.get("encoding", 1)
    if isinstance(encoding, bool) or not isinstance(encoding, int):
        raise LoadError(Err.MODEL_UNKNOWN_ENCODING, f"invalid feature encoding {encoding!r}")
    alpha = data.get("alpha", 0.0)
    if isinstance(alpha, bool) or not isinstance(alpha, (int, float)) or not math.isfinite(alpha):
        raise LoadError(Err.MODEL_MISSING_DATA, f"invalid activation alpha {alpha!r}")

    schema = FeatureSchema.create(fields, mean, std, encoding)
    network = DenseNetwork.from_weights(weights, alpha)
    if network.input_size != len(schema):
        raise LoadError(
            Err.MODEL_SHAPE_MISMATCH,
            f"model expects {network.input_size} inputs but declares {len(schema)} fields",
        )
    output = OutputSpec.from_dict(data["output"]) if "output" in data else OutputSpec()

    bundle = ModelArtifactBundle(bundle_id=bundle_id, role=role, schema=schema, engine=network, output=output)
    log.info(
        f"Loaded model bundle {bundle_id} role={None if role is None else role.value} "
        f"shape={network.shape} encoding={encoding} output={output.kind.value}"
    )
    return bundle


def load_model_artifact(
    source: Union[Path, str, bytes], bundle_id: str, role: Optional[ModelRole] = None
) -> ModelArtifactBundle:
    """
    Loads a bundle from a bundle directory, a `model.cbor` file or the raw bytes of one.
    Any problem with the artifact is a `LoadError`, nothing is truncated or defaulted.
    """
    content = read_model_bytes(source)
    try:
        data = cbor2.loads(content)
    except cbor2.CBORDecodeError as e:
        raise LoadError(Err.MODEL_DESERIALIZATION_FAILED, f"bundle {bundle_id}: {e}") from e
    try:
        return parse_model_data(data, bundle_id, role)
    except LoadError as e:
        raise LoadError(e.code, f"bundle {bundle_id}: {e.error_msg}") from e
