from __future__ import annotations

from enum import Enum
from typing import Any, Optional


class Err(Enum):
    UNKNOWN = 1

    # encoding errors, the observation can't be turned into a feature vector
    MISSING_FEATURE = 10
    INVALID_FEATURE_VALUE = 11
    INVALID_FEE_BUCKETS = 12
    UNKNOWN_OBSERVATION_FIELD = 13

    # model artifact errors, the process must not start
    MODEL_NOT_FOUND = 20
    MODEL_DESERIALIZATION_FAILED = 21
    MODEL_MISSING_DATA = 22
    MODEL_SHAPE_MISMATCH = 23
    MODEL_INVALID_NORMALIZATION = 24
    MODEL_UNKNOWN_ENCODING = 25
    MODEL_INVALID_OUTPUT = 26
    MODEL_LOAD_TIMEOUT = 27
    MODEL_ROLE_NOT_CONFIGURED = 28

    # prediction time errors
    MODEL_NOT_LOADED = 30
    INVALID_CONFIRMATION_TARGET = 31
    INFERENCE_SHAPE_MISMATCH = 32
    INFERENCE_NUMERIC_ERROR = 33

    # test vector errors
    TEST_VECTOR_MISMATCH = 40
    TEST_VECTOR_INVALID_FORMAT = 41
    TEST_VECTORS_MISSING = 42


class FeeModelError(Exception):
    def __init__(self, code: Err, error_msg: str = ""):
        super().__init__(f"Error code: {code.name} {error_msg}")
        self.code = code
        self.error_msg = error_msg


class EncodingError(FeeModelError):
    def __init__(self, code: Err, error_msg: str = "", field: Optional[str] = None):
        super().__init__(code, error_msg)
        self.field = field


class LoadError(FeeModelError):
    pass


class MissingModelError(FeeModelError):
    def __init__(self, error_msg: str = "") -> None:
        super().__init__(Err.MODEL_NOT_LOADED, error_msg)


class PredictionError(FeeModelError):
    pass


class InvalidTargetError(PredictionError):
    def __init__(self, target: object) -> None:
        super().__init__(Err.INVALID_CONFIRMATION_TARGET, f"confirmation target {target!r} must be in [1, 1008]")
        self.target = target


##
#  Test vector errors
##


class TestVectorError(FeeModelError):
    __test__ = False


class TestVectorFormatError(TestVectorError):
    def __init__(self, error_msg: str, code: Err = Err.TEST_VECTOR_INVALID_FORMAT) -> None:
        super().__init__(code, error_msg)


class TestVectorMismatch(TestVectorError):
    def __init__(
        self,
        bundle_id: str,
        name: str,
        vector_input: Any,
        expected: float,
        actual: float,
        tolerance: float,
    ) -> None:
        super().__init__(
            Err.TEST_VECTOR_MISMATCH,
            f"bundle {bundle_id} vector {name!r}: expected {expected} got {actual} "
            f"(tolerance {tolerance}) for input {vector_input}",
        )
        self.bundle_id = bundle_id
        self.name = name
        self.vector_input = vector_input
        self.expected = expected
        self.actual = actual
        self.tolerance = tolerance
