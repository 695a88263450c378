#!/usr/bin/env python

# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

# -*- coding: utf-8 -*-

"""
Shared observability and error handling for the Planx pipeline engine
"""

__version__ = "1.0.0"

__all__ = [
    "errors",
    "telemetry",
]
