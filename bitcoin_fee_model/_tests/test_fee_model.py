from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, List

import pytest

from bitcoin_fee_model._tests.util.bundles import HURRY_ID, STANDARD_ID, scaled_model_data, write_bundle
from bitcoin_fee_model._tests.util.misc import DataCase, Marks, datacases
from bitcoin_fee_model.fee_model import FeeModel
from bitcoin_fee_model.model.model_registry import ModelRegistry
from bitcoin_fee_model.types.confirmation_target import ModelRole
from bitcoin_fee_model.types.observation import Observation
from bitcoin_fee_model.types.prediction import OutputKind, PredictionRequest
from bitcoin_fee_model.util.errors import EncodingError, Err, InvalidTargetError, MissingModelError

SUNDAY_EVENING = 1613939479  # 2021-02-21T20:31:19Z


def buckets(b10: int = 128, b11: int = 128) -> List[int]:
    return [2, 0, 0, 2, 5, 6, 14, 20, 95, 394, b10, b11, 282, 193, 33, 19]


def test_routing(test_fee_model: FeeModel) -> None:
    for target in range(1, 1009):
        result = test_fee_model.predict(PredictionRequest(Observation(), target))
        if target <= 2:
            assert (result.role, result.bundle_id, result.value) == (ModelRole.HURRY, HURRY_ID, 2.0 * target)
        else:
            assert (result.role, result.bundle_id, result.value) == (ModelRole.STANDARD, STANDARD_ID, float(target))
        assert result.kind is OutputKind.FEE_RATE


@dataclass
class ShippedModelCase(DataCase):
    description: str
    target: int
    observation: Dict[str, Any]
    bundle_id: str
    role: ModelRole
    value: float
    raw_value: float
    marks: Marks = ()

    @property
    def id(self) -> str:
        return self.description


@datacases(
    ShippedModelCase(
        description="next block",
        target=1,
        observation=dict(
            fee_rate=50, timestamp=SUNDAY_EVENING, last_block_ts=SUNDAY_EVENING - 300, fee_buckets=buckets()
        ),
        bundle_id="20210221-220251",
        role=ModelRole.HURRY,
        value=0.8193359375,
        raw_value=0.8193359375,
    ),
    ShippedModelCase(
        description="six hundred blocks",
        target=600,
        observation=dict(
            fee_rate=5, timestamp=SUNDAY_EVENING, last_block_ts=SUNDAY_EVENING - 300, fee_buckets=buckets()
        ),
        bundle_id="20210221-220141",
        role=ModelRole.STANDARD,
        value=0.08203125,
        raw_value=0.08203125,
    ),
    ShippedModelCase(
        description="three blocks clamped to one",
        target=3,
        observation=dict(
            fee_rate=50, timestamp=SUNDAY_EVENING, last_block_ts=SUNDAY_EVENING - 900, fee_buckets=buckets(320, 128)
        ),
        bundle_id="20210221-220141",
        role=ModelRole.STANDARD,
        value=1.0,
        raw_value=1.5433408,
    ),
)
def test_shipped_models(shipped_fee_model: FeeModel, case: ShippedModelCase) -> None:
    result = shipped_fee_model.predict(PredictionRequest(Observation.from_dict(case.observation), case.target))
    assert result.bundle_id == case.bundle_id
    assert result.role is case.role
    assert result.kind is OutputKind.PROBABILITY
    assert result.value == pytest.approx(case.value, abs=1e-6)
    assert result.raw_value == pytest.approx(case.raw_value, abs=1e-6)


def test_fee_rates_give_the_same_estimate_as_buckets(shipped_fee_model: FeeModel) -> None:
    rates = [1.2, 10.0, 10.0, 100.0, 400.0, 1000.0]
    from_rates = Observation(fee_rate=5, timestamp=SUNDAY_EVENING, last_block_ts=SUNDAY_EVENING, fee_rates=rates)
    counts = [0] * 16
    for index in (0, 5, 5, 11, 14, 15):
        counts[index] += 1
    from_buckets = Observation(fee_rate=5, timestamp=SUNDAY_EVENING, last_block_ts=SUNDAY_EVENING, fee_buckets=counts)
    assert shipped_fee_model.estimate(from_rates, 12) == shipped_fee_model.estimate(from_buckets, 12)


def test_missing_fee_rate(shipped_fee_model: FeeModel) -> None:
    observation = Observation(timestamp=SUNDAY_EVENING, last_block_ts=SUNDAY_EVENING - 300, fee_buckets=buckets())
    with pytest.raises(EncodingError) as e:
        shipped_fee_model.predict(PredictionRequest(observation, 600))
    assert e.value.code == Err.MISSING_FEATURE
    assert e.value.field == "fee_rate"


@pytest.mark.parametrize("target", [0, 1009, -3, True, 6.0])
def test_invalid_target(shipped_fee_model: FeeModel, target: Any) -> None:
    with pytest.raises(InvalidTargetError):
        shipped_fee_model.estimate(Observation(), target)


def test_predictions_are_deterministic(shipped_fee_model: FeeModel) -> None:
    observation = Observation(
        fee_rate=1, timestamp=SUNDAY_EVENING, last_block_ts=SUNDAY_EVENING - 600, fee_buckets=buckets(64, 128)
    )
    values = [shipped_fee_model.estimate(observation, 1008) for _ in range(5)]
    reloaded = FeeModel.from_config({"bundles": {"hurry": "20210221-220251", "standard": "20210221-220141"}})
    values.append(reloaded.estimate(observation, 1008))
    assert len(set(values)) == 1
    assert values[0] == pytest.approx(0.18380767, abs=1e-6)


def test_concurrent_predictions(test_fee_model: FeeModel) -> None:
    targets = list(range(1, 1009)) * 4
    expected = [test_fee_model.estimate(Observation(), target) for target in targets]
    with ThreadPoolExecutor(max_workers=8) as executor:
        assert list(executor.map(lambda t: test_fee_model.estimate(Observation(), t), targets)) == expected


def test_fee_rate_floor(tmp_path: Path) -> None:
    write_bundle(tmp_path, "zero-hurry", scaled_model_data(0.0))
    write_bundle(tmp_path, "zero-standard", scaled_model_data(-1.0, alpha=1.0))
    fee_model = FeeModel.from_config(
        {"models_path": str(tmp_path), "bundles": {"hurry": "zero-hurry", "standard": "zero-standard"}}
    )
    hurry = fee_model.predict(PredictionRequest(Observation(), 1))
    assert (hurry.raw_value, hurry.value) == (0.0, 1.0)
    standard = fee_model.predict(PredictionRequest(Observation(), 100))
    assert (standard.raw_value, standard.value) == (-100.0, 1.0)


def test_no_fallback_to_the_other_model(test_fee_model: FeeModel) -> None:
    standard = test_fee_model.registry.resolve(ModelRole.STANDARD)
    registry = ModelRegistry(
        by_role=MappingProxyType({ModelRole.STANDARD: standard}),
        by_id=MappingProxyType({STANDARD_ID: standard}),
    )
    fee_model = FeeModel(registry)
    assert fee_model.estimate(Observation(), 3) == 3.0
    with pytest.raises(MissingModelError) as e:
        fee_model.estimate(Observation(), 2)
    assert e.value.code == Err.MODEL_NOT_LOADED
