#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Single source of truth for the stepserve package version.

Author: stepserve contributors
"""

__version__ = "0.1.0"
