"""Shared fixtures: keep the user's config, environment and log handlers out of tests."""

from __future__ import annotations

import logging
import os

import pytest

from code_insight.core import config as config_mod
from code_insight.core.logging_config import PACKAGE_LOGGER


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path_factory):
    """No ~/.code-insight file and no CODE_INSIGHT_* variables."""
    home = tmp_path_factory.mktemp("home")
    monkeypatch.setattr(config_mod, "default_config_path", lambda: home / ".code-insight" / "config.yaml")
    for key in list(os.environ):
        if key.startswith(config_mod.ENV_PREFIX):
            monkeypatch.delenv(key)
    return home


@pytest.fixture(autouse=True)
def restore_package_logger():
    logger = logging.getLogger(PACKAGE_LOGGER)
    handlers, level = list(logger.handlers), logger.level
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        if handler not in handlers:
            handler.close()
    for handler in handlers:
        logger.addHandler(handler)
    logger.setLevel(level)
