"""Tests for diarysync.core.utils.logging."""

import sys

import pytest
from loguru import logger

from diarysync import open_service
from diarysync.core.config import Config
from diarysync.core.exceptions import ConfigurationError
from diarysync.core.utils import setup_logging, setup_logging_from_config


@pytest.fixture(autouse=True)
def restore_sinks():
    yield
    logger.remove()
    logger.add(sys.stderr)


def test_file_sink_respects_level(tmp_dir):
    log_file = f"{tmp_dir}/diarysync.log"
    setup_logging(level="INFO", log_file=log_file)
    logger.info("card saved")
    logger.debug("not written")
    logger.remove()

    with open(log_file) as f:
        text = f.read()
    assert "card saved" in text
    assert "not written" not in text


def test_from_config(tmp_dir):
    log_file = f"{tmp_dir}/from-config.log"
    config = Config(data_dir=tmp_dir)
    config.set("logging.level", "debug")
    config.set("logging.file", log_file)

    setup_logging_from_config(config)
    logger.debug("detail")
    logger.remove()

    with open(log_file) as f:
        assert "detail" in f.read()


def test_open_service_can_configure_logging(tmp_config_file, tmp_dir):
    log_file = f"{tmp_dir}/service.log"
    config = Config(config_file=tmp_config_file)
    config.set("logging.level", "INFO")
    config.set("logging.file", log_file)

    open_service(config, configure_logging=True)
    logger.info("service ready")
    logger.remove()

    with open(log_file) as f:
        assert "service ready" in f.read()


def test_unknown_level_rejected():
    with pytest.raises(ConfigurationError, match="LOUD"):
        setup_logging(level="loud")
