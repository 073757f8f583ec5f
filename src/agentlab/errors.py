"""Exception types raised by the Lab engine."""

from __future__ import annotations


class LabError(Exception):
    """Base class for agentlab errors."""


class HandlerConfigError(LabError, ValueError):
    """Deferred work referenced a handler or method that does not exist."""


class TransformError(LabError):
    """A transform could not be applied to the current result."""
