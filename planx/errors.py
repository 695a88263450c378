# SPDX-FileCopyrightText: 2025 Weibo, Inc.
#
# SPDX-License-Identifier: Apache-2.0

"""
Error taxonomy for Planx.

Every Planx error remembers the stack where it was created, so it can be
attached to a span or log record even if it was never raised.
"""

import traceback
from typing import List, Optional, Sequence


class PlanxError(Exception):
    """Base error carrying a message, an optional cause and a creation stack."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.message = message
        self.cause = cause
        self.stack = _caller_stack()
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message

    def stack_trace(self) -> str:
        """Return the creation stack formatted like a traceback."""
        return "".join(traceback.format_list(self.stack))


class ConfigError(PlanxError):
    """Configuration error. Fatal when creating a session."""


class StreamError(PlanxError):
    """Stream error. Terminates the session."""


class BatchError(PlanxError):
    """Batch level error. Partial failure is allowed."""

    def __init__(
        self,
        message: str,
        failed_indices: Optional[Sequence[int]] = None,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause)
        self.failed_indices: List[int] = list(failed_indices or [])


class TransportError(PlanxError):
    """Transport error. The connection may be retried when retryable."""

    def __init__(
        self,
        message: str,
        retryable: bool = False,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message, cause)
        self.retryable = retryable


def _caller_stack() -> traceback.StackSummary:
    """Capture the current stack without the constructor frames of this module."""
    frames = traceback.extract_stack()
    while frames and frames[-1].filename == __file__:
        frames.pop()
    return frames


def wrap(err: Optional[BaseException], message: str) -> Optional[PlanxError]:
    """
    Wrap an existing error with additional context.

    Returns None when err is None so call sites can wrap unconditionally.
    """
    if err is None:
        return None
    return PlanxError(message, cause=err)
