"""Streaming primitives: event channel and cancellation."""

from .cancellation import CancellationToken, run_cancellable
from .channel import EventChannel

__all__ = ["CancellationToken", "EventChannel", "run_cancellable"]
