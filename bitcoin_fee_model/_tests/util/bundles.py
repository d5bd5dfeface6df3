from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import cbor2
import yaml

from bitcoin_fee_model.model.model_artifact import MODEL_FILENAME, TEST_VECTORS_FILENAME

HURRY_ID = "test-hurry"
STANDARD_ID = "test-standard"
EXTRA_ID = "test-extra"


def dense_weights(
    kernels: Sequence[List[List[float]]], biases: Optional[Sequence[List[float]]] = None
) -> Dict[str, Any]:
    weights: Dict[str, Any] = {}
    for i, kernel in enumerate(kernels):
        name = "dense" if i == 0 else f"dense_{i}"
        weights[f"{name}/kernel:0"] = kernel
        weights[f"{name}/bias:0"] = [0.0] * len(kernel[0]) if biases is None else biases[i]
    return weights


def scaled_model_data(scale: float = 1.0, fields: Sequence[str] = ("confirms_in",), **extra: Any) -> Dict[str, Any]:
    """
    Model data for a network that returns `scale` times the sum of its raw features:
    zero mean, unit std and single neuron identity layers.
    """
    data: Dict[str, Any] = {
        "norm": {
            "fields": list(fields),
            "mean": {f: 0.0 for f in fields},
            "std": {f: 1.0 for f in fields},
        },
        "weights": dense_weights([[[scale] for _ in fields], [[1.0]], [[1.0]]]),
    }
    data.update(extra)
    return data


def vectors_document(bundle_id: str, vectors: List[Dict[str, Any]]) -> str:
    return yaml.safe_dump({"format_version": 1, "bundle_id": bundle_id, "vectors": vectors})


def write_bundle(
    models_path: Path,
    bundle_id: str,
    data: Any,
    vectors: Optional[List[Dict[str, Any]]] = None,
) -> Path:
    bundle_path = models_path / bundle_id
    bundle_path.mkdir(parents=True, exist_ok=True)
    (bundle_path / MODEL_FILENAME).write_bytes(data if isinstance(data, bytes) else cbor2.dumps(data))
    if vectors is not None:
        (bundle_path / TEST_VECTORS_FILENAME).write_text(vectors_document(bundle_id, vectors), encoding="utf-8")
    return bundle_path


def write_test_bundles(models_path: Path) -> None:
    """The hurry model returns twice the target, the standard model the target itself."""
    write_bundle(
        models_path,
        HURRY_ID,
        scaled_model_data(2.0),
        vectors=[
            {"name": "twice the target", "target": 1, "observation": {}, "expected": 2.0},
            {"name": "features", "features": [2.0], "expected": 4.0},
        ],
    )
    write_bundle(
        models_path,
        STANDARD_ID,
        scaled_model_data(1.0),
        vectors=[
            {"name": "the target", "target": 600, "observation": {}, "expected": 600.0},
            {"name": "floored", "features": [0.25], "expected": 1.0},
        ],
    )


def model_config_for(models_path: Path, **overrides: Any) -> Dict[str, Any]:
    config: Dict[str, Any] = {
        "models_path": str(models_path),
        "load_timeout": 10,
        "bundles": {"hurry": HURRY_ID, "standard": STANDARD_ID},
        "extra_bundles": [],
    }
    config.update(overrides)
    return config