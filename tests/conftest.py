"""Shared fixtures for echoflow tests."""

import logging
import os

import pytest
import yaml

import echoflow.config as config_module
import echoflow.logger as logger_module


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep tests away from the real ~/.echoflow and any ECHOFLOW_* env vars."""
    home = tmp_path / "home"
    monkeypatch.setattr(config_module, "CONFIG_DIR", home)
    monkeypatch.setattr(config_module, "CONFIG_FILE", home / "config.yml")
    monkeypatch.setattr(logger_module, "DEFAULT_LOG_FILE", home / "logs" / "echoflow.log")
    for var in list(os.environ):
        if var.startswith("ECHOFLOW_"):
            monkeypatch.delenv(var, raising=False)
    yield home
    logger = logging.getLogger("echoflow")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def tmp_dir(tmp_path):
    """Provide a temporary project directory and cd into it."""
    project = tmp_path / "project"
    project.mkdir()
    orig = os.getcwd()
    os.chdir(project)
    yield project
    os.chdir(orig)


@pytest.fixture
def sample_config_data():
    """Minimal .echoflow.yml data dict."""
    return {
        "active-model": "local",
        "max-parallel": 4,
        "task-timeout": 30,
        "execution-mode": "hybrid",
        "synthesis-required": True,
        "verbose": False,
        "log-file": "off",
        "models": {
            "local": {
                "provider": "local",
                "model": "openai/model",
                "description": "Local test model",
                "temperature": 0.0,
                "max-tokens": 8192,
                "context-window": 128000,
                "api-base": "http://localhost:8080/v1",
                "api-key": "not-needed",
            }
        },
    }


@pytest.fixture
def config_yaml_file(tmp_dir, sample_config_data):
    """Write a config YAML to tmp_dir and return its Path."""
    path = tmp_dir / ".echoflow.yml"
    with open(path, "w") as f:
        yaml.dump(sample_config_data, f, default_flow_style=False)
    return path
