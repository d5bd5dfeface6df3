from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from bitcoin_fee_model.encoder.feature_encoder import FeatureVector, encode
from bitcoin_fee_model.model.model_artifact import ModelArtifactBundle
from bitcoin_fee_model.model.model_registry import ModelRegistry
from bitcoin_fee_model.types.confirmation_target import role_for_target
from bitcoin_fee_model.types.observation import Observation
from bitcoin_fee_model.types.prediction import PredictionRequest, PredictionResult

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeeModel:
    """
    Routes a prediction request to the hurry model (targets 1 and 2) or the standard
    model (3 to 1008), encodes the observation with that model's own feature schema
    and runs it. Inference is deterministic, so errors are raised to the caller and
    never retried or answered by the other model.
    """

    registry: ModelRegistry

    @classmethod
    def from_config(cls, config: Dict[str, Any], root_path: Optional[Path] = None) -> FeeModel:
        return cls(ModelRegistry.from_config(config, root_path))

    def predict(self, request: PredictionRequest) -> PredictionResult:
        role = role_for_target(request.target)
        bundle = self.registry.resolve(role)
        log.debug(f"target {request.target}: {role.value} model {bundle.bundle_id}")
        vector = encode(request.observation, request.target, bundle.schema)
        return self.run(bundle, vector)

    def run(self, bundle: ModelArtifactBundle, vector: FeatureVector) -> PredictionResult:
        """Runs one bundle on an encoded vector, bypassing routing. Used by the test vector harness."""
        raw = bundle.infer(vector)
        value = bundle.postprocess(raw)
        log.debug(f"bundle {bundle.bundle_id}: raw output {raw} -> {value} {bundle.output.kind.value}")
        return PredictionResult(
            value=value,
            raw_value=raw,
            kind=bundle.output.kind,
            bundle_id=bundle.bundle_id,
            role=bundle.role,
        )

    def estimate(self, observation: Observation, target: int) -> float:
        return self.predict(PredictionRequest(observation, target)).value
