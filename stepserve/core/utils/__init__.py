#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Utility exports for stepserve core.

Author: stepserve contributors
"""

from .logger import ModernLogger
from .exceptions import *  # noqa: F401,F403
from .exceptions import ExceptionFormatter, ExceptionTranslator
from .concurrency import SetOnceCell

# Common formatter shortcuts
format_exception = ExceptionFormatter.format_exception
format_exception_chain = ExceptionFormatter.format_exception_chain
format_exception_summary = ExceptionFormatter.format_exception_summary

__all__ = [
    "ModernLogger",
    "ExceptionFormatter",
    "ExceptionTranslator",
    "SetOnceCell",
    "format_exception",
    "format_exception_chain",
    "format_exception_summary",
]
