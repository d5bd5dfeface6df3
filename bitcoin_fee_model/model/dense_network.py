from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence, Tuple

import numpy as np
from typing_extensions import Protocol

from bitcoin_fee_model.util.errors import Err, LoadError, PredictionError

# tensor names of the keras export, input layer first
LAYER_NAMES: Tuple[str, ...] = ("dense", "dense_1", "dense_2")


class InferenceEngine(Protocol):
    @property
    def input_size(self) -> int:
        """Length of the feature vector the engine accepts"""

    @property
    def output_size(self) -> int:
        """Number of values the engine produces"""

    def infer(self, values: np.ndarray) -> float:
        """Runs the model on one already-normalized feature vector"""


@dataclass(frozen=True, eq=False)
class DenseLayer:
    kernel: np.ndarray  # (inputs, outputs)
    bias: np.ndarray  # (outputs,)

    @classmethod
    def from_weights(cls, name: str, kernel: Any, bias: Any) -> DenseLayer:
        try:
            kernel_array = np.array(kernel, dtype=np.float32)
            bias_array = np.array(bias, dtype=np.float32)
        except (TypeError, ValueError) as e:
            # ragged or non numeric rows
            raise LoadError(Err.MODEL_SHAPE_MISMATCH, f"{name} is not a float matrix: {e}") from e
        if kernel_array.ndim != 2:
            raise LoadError(
                Err.MODEL_SHAPE_MISMATCH, f"{name}/kernel:0 must be 2 dimensional, got {kernel_array.shape}"
            )
        if bias_array.ndim != 1 or bias_array.shape[0] != kernel_array.shape[1]:
            raise LoadError(
                Err.MODEL_SHAPE_MISMATCH,
                f"{name}/bias:0 shape {bias_array.shape} does not match kernel shape {kernel_array.shape}",
            )
        if not (np.all(np.isfinite(kernel_array)) and np.all(np.isfinite(bias_array))):
            raise LoadError(Err.MODEL_SHAPE_MISMATCH, f"{name} contains non finite weights")
        kernel_array.setflags(write=False)
        bias_array.setflags(write=False)
        return cls(kernel_array, bias_array)

    @property
    def input_size(self) -> int:
        return int(self.kernel.shape[0])

    @property
    def output_size(self) -> int:
        return int(self.kernel.shape[1])

    def forward(self, x: np.ndarray) -> np.ndarray:
        return np.dot(x, self.kernel) + self.bias


def leaky_relu(x: np.ndarray, alpha: np.float32) -> np.ndarray:
    return np.where(x < 0, x * alpha, x)


@dataclass(frozen=True, eq=False)
class DenseNetwork:
    """
    Two hidden dense layers with a leaky ReLU activation and a linear output layer,
    evaluated in float32 like the training framework does.
    """

    layers: Tuple[DenseLayer, ...]
    alpha: np.float32

    @classmethod
    def from_weights(cls, weights: Mapping[str, Any], alpha: float = 0.0) -> DenseNetwork:
        layers = []
        for name in LAYER_NAMES:
            kernel_key = f"{name}/kernel:0"
            bias_key = f"{name}/bias:0"
            if kernel_key not in weights or bias_key not in weights:
                raise LoadError(Err.MODEL_MISSING_DATA, f"missing weights for layer {name}")
            layers.append(DenseLayer.from_weights(name, weights[kernel_key], weights[bias_key]))

        for i in range(1, len(layers)):
            layer, previous = layers[i], layers[i - 1]
            if layer.input_size != previous.output_size:
                raise LoadError(
                    Err.MODEL_SHAPE_MISMATCH,
                    f"layer {LAYER_NAMES[i]} expects {layer.input_size} inputs, "
                    f"previous layer has {previous.output_size} neurons",
                )
        if layers[-1].output_size != 1:
            raise LoadError(
                Err.MODEL_SHAPE_MISMATCH, f"output layer should only have one output. Found: {layers[-1].output_size}"
            )
        return cls(tuple(layers), np.float32(alpha))

    @property
    def input_size(self) -> int:
        return self.layers[0].input_size

    @property
    def output_size(self) -> int:
        return self.layers[-1].output_size

    @property
    def shape(self) -> Sequence[int]:
        return [self.input_size] + [layer.output_size for layer in self.layers]

    def infer(self, values: np.ndarray) -> float:
        x = np.asarray(values, dtype=np.float32)
        if x.shape != (self.input_size,):
            raise PredictionError(
                Err.INFERENCE_SHAPE_MISMATCH, f"expected a vector of {self.input_size} features, got shape {x.shape}"
            )
        try:
            with np.errstate(over="raise", invalid="raise"):
                for layer in self.layers[:-1]:
                    x = leaky_relu(layer.forward(x), self.alpha)
                output = self.layers[-1].forward(x)
        except FloatingPointError as e:
            raise PredictionError(Err.INFERENCE_NUMERIC_ERROR, f"numeric error during inference: {e}") from e
        result = float(output[0])
        if not np.isfinite(result):
            raise PredictionError(Err.INFERENCE_NUMERIC_ERROR, f"non finite model output {result}")
        return result
