from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Iterator

import pytest

from bitcoin_fee_model._tests.util.bundles import model_config_for, write_test_bundles
from bitcoin_fee_model.fee_model import FeeModel
from bitcoin_fee_model.util.config import create_default_config, load_default_config


@pytest.fixture(name="models_path")
def models_path_fixture(tmp_path: Path) -> Path:
    path = tmp_path / "models"
    write_test_bundles(path)
    return path


@pytest.fixture(name="fee_model_config")
def fee_model_config_fixture(models_path: Path) -> Dict[str, Any]:
    return model_config_for(models_path)


@pytest.fixture(name="test_fee_model")
def test_fee_model_fixture(fee_model_config: Dict[str, Any]) -> FeeModel:
    return FeeModel.from_config(fee_model_config)


# the shipped bundles are immutable, loading them once is enough
@pytest.fixture(name="shipped_fee_model", scope="session")
def shipped_fee_model_fixture() -> FeeModel:
    return FeeModel.from_config(load_default_config()["fee_model"])


@pytest.fixture(name="root_path")
def root_path_fixture(tmp_path: Path) -> Path:
    root = tmp_path / "bitcoin_fee_model_root"
    create_default_config(root)
    return root


@pytest.fixture(name="restore_logging")
def restore_logging_fixture() -> Iterator[None]:
    root_logger = logging.getLogger()
    handlers = list(root_logger.handlers)
    level = root_logger.level
    yield
    for handler in root_logger.handlers[:]:
        if handler not in handlers:
            root_logger.removeHandler(handler)
            handler.close()
    root_logger.setLevel(level)
