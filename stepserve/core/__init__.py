#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
stepserve core module exports (lazy-loaded).

Author: stepserve contributors
"""

from importlib import import_module
from typing import Any, Dict, Tuple

_EXPORT_MAP: Dict[str, Tuple[str, str]] = {
    "StepServeConfig": ("stepserve.core.config", "StepServeConfig"),
    "get_config": ("stepserve.core.config", "get_config"),
    "create_config": ("stepserve.core.config", "create_config"),
    "EnvKeys": ("stepserve.core.config", "EnvKeys"),
    "QueryKeys": ("stepserve.core.config", "QueryKeys"),
    "ModernLogger": ("stepserve.core.utils.logger", "ModernLogger"),
    "JSONBackend": ("stepserve.core.data.backends", "JSONBackend"),
    "serialize_error": ("stepserve.core.data.errors", "serialize_error"),
    "deserialize_error": ("stepserve.core.data.errors", "deserialize_error"),
}

__all__ = sorted(_EXPORT_MAP.keys())


def __getattr__(name: str) -> Any:
    if name not in _EXPORT_MAP:
        raise AttributeError("module 'stepserve.core' has no attribute '{0}'".format(name))

    module_name, attr_name = _EXPORT_MAP[name]
    module = import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value
