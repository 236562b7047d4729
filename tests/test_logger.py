"""Tests for logger setup and config-driven log targets."""

import logging
from logging.handlers import RotatingFileHandler

from echoflow.config import Config
from echoflow.logger import configure_logging, get_logger, setup_logger


def _file_handlers(logger):
    return [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]


class TestSetupLogger:

    def test_levels(self):
        assert setup_logger(verbose=True, log_file=False).level == logging.INFO
        assert setup_logger(verbose=False, log_file=False).level == logging.WARNING

    def test_reconfigure_replaces_handlers(self):
        setup_logger(log_file=False)
        logger = setup_logger(log_file=False)
        assert len(logger.handlers) == 1

    def test_custom_file(self, tmp_path):
        target = tmp_path / "logs" / "run.log"
        logger = setup_logger(log_file=str(target))
        assert _file_handlers(logger)[0].baseFilename == str(target)
        assert target.parent.is_dir()

    def test_module_loggers_inherit(self):
        setup_logger(verbose=True, log_file=False)
        child = get_logger("echoflow.workflow.driver")
        assert child.getEffectiveLevel() == logging.INFO


class TestConfigureLogging:

    def test_off(self):
        logger = configure_logging(Config(log_file="off"))
        assert _file_handlers(logger) == []

    def test_default_location(self, isolated_home):
        logger = configure_logging(Config(log_file="default"))
        handler = _file_handlers(logger)[0]
        assert handler.baseFilename == str(isolated_home / "logs" / "echoflow.log")

    def test_verbose_from_config(self):
        logger = configure_logging(Config(verbose=True, log_file="off"))
        assert logger.level == logging.INFO
