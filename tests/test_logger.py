#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Tests for the namespaced rich logging mixin.

Author: stepserve contributors
"""

import logging

import pytest
from rich.logging import RichHandler

from stepserve.core.utils.logger import ROOT_LOGGER_NAME, ModernLogger, resolve_level


def test_loggers_are_namespaced_under_package_root():
    component = ModernLogger("Component")
    already_namespaced = ModernLogger("stepserve.Other")

    assert component.logger.name == "stepserve.Component"
    assert already_namespaced.logger.name == "stepserve.Other"


def test_single_rich_handler_installed_on_root():
    ModernLogger("First")
    ModernLogger("Second")

    handlers = [
        handler
        for handler in logging.getLogger(ROOT_LOGGER_NAME).handlers
        if isinstance(handler, RichHandler)
    ]
    assert len(handlers) == 1


def test_component_level_override():
    component = ModernLogger("Quiet", level="error")

    assert component.logger.level == logging.ERROR


def test_resolve_level():
    assert resolve_level("DEBUG") == logging.DEBUG
    assert resolve_level(" warning ") == logging.WARNING
    assert resolve_level(logging.INFO) == logging.INFO
    with pytest.raises(ValueError):
        resolve_level("chatty")
