from __future__ import annotations

import pytest

from bitcoin_fee_model.types.observation import Observation
from bitcoin_fee_model.util.errors import EncodingError, Err


def test_lists_become_tuples() -> None:
    observation = Observation(fee_rates=[1.0, 2.0], fee_buckets=[0] * 16)
    assert observation.fee_rates == (1.0, 2.0)
    assert observation.fee_buckets == (0,) * 16
    # hashable, so usable as a cache key
    assert hash(observation) == hash(Observation(fee_rates=(1.0, 2.0), fee_buckets=(0,) * 16))


def test_from_dict() -> None:
    observation = Observation.from_dict({"fee_rate": 12.5, "timestamp": 1613939479, "fee_rates": [3.0]})
    assert observation == Observation(fee_rate=12.5, timestamp=1613939479, fee_rates=(3.0,))


def test_unknown_field() -> None:
    with pytest.raises(EncodingError) as e:
        Observation.from_dict({"fee_rate": 1.0, "feerate": 1.0, "confirmed": True})
    assert e.value.code == Err.UNKNOWN_OBSERVATION_FIELD
    assert e.value.field == "confirmed"
    assert "feerate" in e.value.error_msg


def test_to_dict_skips_missing_fields() -> None:
    observation = Observation(fee_rate=2.0, fee_buckets=[1] * 16, vsize=141)
    assert observation.to_dict() == {"fee_rate": 2.0, "fee_buckets": [1] * 16, "vsize": 141}
    assert Observation().to_dict() == {}


@pytest.mark.parametrize("field_name, value", [("fee_rates", 5), ("fee_buckets", 7), ("fee_rates", "1.0 2.0")])
def test_fee_lists_must_be_lists(field_name: str, value: object) -> None:
    with pytest.raises(EncodingError) as e:
        Observation.from_dict({field_name: value})
    assert e.value.code == Err.INVALID_FEATURE_VALUE
    assert e.value.field == field_name


def test_field_names_must_be_strings() -> None:
    with pytest.raises(EncodingError) as e:
        Observation.from_dict({1: 2, "fee_rate": 1.0})
    assert e.value.code == Err.UNKNOWN_OBSERVATION_FIELD
    assert e.value.field == "1"
