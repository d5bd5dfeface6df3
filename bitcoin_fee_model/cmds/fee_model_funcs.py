from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict

from bitcoin_fee_model.fee_model import FeeModel
from bitcoin_fee_model.harness.test_vectors import verify_registry
from bitcoin_fee_model.util.config import (
    CONFIG_FILENAME,
    SECTION,
    config_path_for_filename,
    create_default_config,
    load_config,
)
from bitcoin_fee_model.util.errors import FeeModelError, TestVectorMismatch
from bitcoin_fee_model.util.fee_model_logging import initialize_service_logging

SERVICE_NAME = "fee_model"


def init(root_path: Path) -> int:
    path = config_path_for_filename(root_path, CONFIG_FILENAME)
    if path.is_file():
        print(f"{path} already exists, no change")
        return 0
    create_default_config(root_path)
    print(f"Created {path}")
    return 0


def load_fee_model(root_path: Path, config: Dict[str, Any]) -> FeeModel:
    return FeeModel.from_config(config[SECTION], root_path)


def print_mismatch(e: TestVectorMismatch) -> None:
    print(f"Test vector mismatch in bundle {e.bundle_id}")
    print(f"  vector:    {e.name}")
    print(f"  input:     {json.dumps(e.vector_input, sort_keys=True)}")
    print(f"  expected:  {e.expected}")
    print(f"  actual:    {e.actual}")
    print(f"  tolerance: {e.tolerance}")


def verify(root_path: Path) -> int:
    """
    Loads the configured bundles and runs each against its pinned test vectors. Returns
    the process exit code: a changed model must never be deployed when this fails.
    """
    config = load_config(root_path, CONFIG_FILENAME)
    initialize_service_logging(SERVICE_NAME, config, root_path)
    try:
        fee_model = load_fee_model(root_path, config)
        report = verify_registry(fee_model)
    except TestVectorMismatch as e:
        print_mismatch(e)
        return 1
    except FeeModelError as e:
        print(f"Verification failed: {e}")
        return 1

    for result in report.bundles:
        role = "extra" if result.role is None else result.role.value
        print(f"{result.bundle_id} ({role}): {result.vector_count} test vectors passed")
    print(f"OK, {report.vector_count} test vectors in {len(report.bundles)} bundles")
    return 0


def show(root_path: Path) -> int:
    config = load_config(root_path, CONFIG_FILENAME)
    section = config[SECTION]
    models_path = section.get("models_path")
    print(f"Models path: {'embedded' if models_path is None else models_path}")
    try:
        fee_model = load_fee_model(root_path, config)
    except FeeModelError as e:
        print(f"Can't load the configured bundles: {e}")
        return 1
    for bundle in fee_model.registry.bundles():
        info = bundle.describe()
        print(f"{info['bundle_id']}:")
        print(f"  role:     {info['role'] or 'extra'}")
        print(f"  output:   {info['output']}")
        print(f"  encoding: {info['encoding']}")
        print(f"  fields:   {', '.join(info['fields'])}")
    return 0
