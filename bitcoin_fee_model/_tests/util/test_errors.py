from __future__ import annotations

from bitcoin_fee_model.util.errors import (
    EncodingError,
    Err,
    FeeModelError,
    InvalidTargetError,
    LoadError,
    MissingModelError,
    PredictionError,
    TestVectorMismatch,
)


def test_message_carries_the_code() -> None:
    error = LoadError(Err.MODEL_SHAPE_MISMATCH, "bundle x: layer dense_1 expects 4 inputs")
    assert str(error) == "Error code: MODEL_SHAPE_MISMATCH bundle x: layer dense_1 expects 4 inputs"
    assert error.error_msg == "bundle x: layer dense_1 expects 4 inputs"


def test_hierarchy() -> None:
    assert issubclass(InvalidTargetError, PredictionError)
    assert not issubclass(EncodingError, PredictionError)
    assert MissingModelError("gone").code == Err.MODEL_NOT_LOADED
    for error_class in (EncodingError, LoadError, MissingModelError, PredictionError, TestVectorMismatch):
        assert issubclass(error_class, FeeModelError)


def test_mismatch_report() -> None:
    error = TestVectorMismatch("20210221-220141", "floored", {"features": [0.0]}, 1.0, 0.25, 0.001)
    assert error.code == Err.TEST_VECTOR_MISMATCH
    assert "expected 1.0 got 0.25" in str(error)
    assert "20210221-220141" in str(error)
