"""로깅 설정 테스트"""

import logging
import os

import pytest
import yaml

from trend_collector.utils.logger import PACKAGE_LOGGER, get_logger, setup_logging


# ─── Fixture ────────────────────────────────────────────

def _write_config(directory, log_file=None):
    handlers = {"console": {"class": "logging.StreamHandler", "level": "INFO"}}
    if log_file:
        handlers["file"] = {"class": "logging.FileHandler", "filename": log_file, "level": "DEBUG"}
    data = {
        "version": 1,
        "disable_existing_loggers": False,
        "handlers": handlers,
        "loggers": {PACKAGE_LOGGER: {"level": "DEBUG", "handlers": list(handlers), "propagate": False}},
        "root": {"level": "WARNING", "handlers": ["console"]},
    }
    path = os.path.join(directory, "logging_config.yaml")
    with open(path, "w", encoding="utf-8") as f:
        yaml.dump(data, f)
    return path


@pytest.fixture(autouse=True)
def _restore_logging(monkeypatch):
    monkeypatch.delenv("TREND_COLLECTOR_LOG_CONFIG", raising=False)
    monkeypatch.delenv("TREND_COLLECTOR_LOG_LEVEL", raising=False)
    saved = {}
    for name in (PACKAGE_LOGGER, None):
        logger = logging.getLogger(name)
        saved[name] = (logger.level, logger.handlers[:], logger.propagate)
    yield
    for name, (level, handlers, propagate) in saved.items():
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            if handler not in handlers:
                handler.close()
        logger.setLevel(level)
        logger.handlers = handlers
        logger.propagate = propagate


# ═══════════════════════════════════════════════════════════
# setup_logging
# ═══════════════════════════════════════════════════════════

class TestSetupLogging:
    """설정 파일 / 환경변수 / 대체 동작."""

    def test_config_file_applied(self, tmp_path):
        log_file = os.path.join(str(tmp_path), "logs", "collector.log")
        path = _write_config(str(tmp_path), log_file)

        assert setup_logging(path) == path
        assert os.path.isdir(os.path.join(str(tmp_path), "logs"))
        assert logging.getLogger(PACKAGE_LOGGER).level == logging.DEBUG

    def test_level_argument_sets_package_logger(self, tmp_path):
        setup_logging(_write_config(str(tmp_path)), level="warning")
        assert logging.getLogger(PACKAGE_LOGGER).level == logging.WARNING
        assert logging.getLogger().level == logging.WARNING

    def test_level_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TREND_COLLECTOR_LOG_LEVEL", "ERROR")
        setup_logging(_write_config(str(tmp_path)))
        assert logging.getLogger(PACKAGE_LOGGER).level == logging.ERROR

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        path = _write_config(str(tmp_path))
        monkeypatch.setenv("TREND_COLLECTOR_LOG_CONFIG", path)
        assert setup_logging() == path

    def test_missing_config_falls_back(self, tmp_path):
        assert setup_logging(os.path.join(str(tmp_path), "missing.yaml")) is None

    def test_default_config_is_bundled(self):
        assert setup_logging() is not None

    def test_get_logger_is_module_logger(self):
        assert get_logger("trend_collector.scheduler").name == "trend_collector.scheduler"
