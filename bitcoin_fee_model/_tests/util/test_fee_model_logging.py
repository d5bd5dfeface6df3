from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict

import colorlog
import pytest
from concurrent_log_handler import ConcurrentRotatingFileHandler

from bitcoin_fee_model.util.config import load_default_config
from bitcoin_fee_model.util.fee_model_logging import initialize_logging, initialize_service_logging, set_log_level

pytestmark = pytest.mark.usefixtures("restore_logging")


def logging_config(**changes: Any) -> Dict[str, Any]:
    config: Dict[str, Any] = load_default_config()["fee_model"]["logging"]
    config.update(changes)
    return config


def new_handlers(before: list[logging.Handler]) -> list[logging.Handler]:
    return [handler for handler in logging.getLogger().handlers if handler not in before]


def test_file_logging(tmp_path: Path) -> None:
    before = list(logging.getLogger().handlers)
    initialize_logging("fee_model", logging_config(log_level="INFO"), tmp_path)
    [handler] = new_handlers(before)
    assert isinstance(handler, ConcurrentRotatingFileHandler)
    assert handler.level == logging.INFO

    logging.getLogger("bitcoin_fee_model.test").info("loaded bundle 20210221-220251")
    handler.flush()
    text = (tmp_path / "log" / "debug.log").read_text()
    assert "fee_model" in text
    assert "loaded bundle 20210221-220251" in text


def test_stdout_logging(tmp_path: Path) -> None:
    before = list(logging.getLogger().handlers)
    initialize_logging("fee_model", logging_config(log_stdout=True, log_level="DEBUG"), tmp_path)
    [handler] = new_handlers(before)
    assert isinstance(handler, colorlog.StreamHandler)
    assert isinstance(handler.formatter, colorlog.ColoredFormatter)
    assert logging.getLogger().level == logging.DEBUG
    assert not (tmp_path / "log").exists()


def test_syslog(tmp_path: Path) -> None:
    before = list(logging.getLogger().handlers)
    initialize_logging("fee_model", logging_config(log_stdout=True, log_syslog=True), tmp_path)
    assert len(new_handlers(before)) == 2


def test_invalid_log_level(tmp_path: Path) -> None:
    before = list(logging.getLogger().handlers)
    initialize_logging("fee_model", logging_config(log_stdout=True), tmp_path)
    errors = set_log_level("LOUD", "fee_model")
    assert len(errors) == len(logging.getLogger().handlers)
    assert all("Invalid log level 'LOUD'" in error for error in errors)
    [handler] = new_handlers(before)
    assert handler.level == logging.WARNING


def test_service_logging(tmp_path: Path) -> None:
    before = list(logging.getLogger().handlers)
    config = load_default_config()
    config["fee_model"]["logging"]["log_filename"] = "log/verify.log"
    initialize_service_logging("fee_model", config, tmp_path)
    [handler] = new_handlers(before)
    logging.getLogger("bitcoin_fee_model.test").warning("bundle 20210221-220141 failed its test vectors")
    handler.flush()
    assert "failed its test vectors" in (tmp_path / "log" / "verify.log").read_text()
