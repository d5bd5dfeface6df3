from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bitcoin_fee_model.types.confirmation_target import ModelRole
from bitcoin_fee_model.types.observation import Observation


class OutputKind(Enum):
    FEE_RATE = "fee_rate"  # sat/vB
    PROBABILITY = "probability"  # of confirming within the target


@dataclass(frozen=True)
class PredictionRequest:
    observation: Observation
    target: int  # confirmation target, blocks


@dataclass(frozen=True)
class PredictionResult:
    """
    value: post-processed model output, a fee rate in sat/vB or a probability depending on `kind`
    raw_value: the network output before clamping
    bundle_id: identifier of the model artifact bundle that produced the value
    """

    value: float
    raw_value: float
    kind: OutputKind
    bundle_id: str
    role: Optional[ModelRole]  # None for bundles that are only loaded for verification
