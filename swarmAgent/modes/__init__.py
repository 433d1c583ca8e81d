"""Execution modes: one strategy class per mode."""

from .base import (
    CycleRuntime,
    ExecutionMode,
    ExecutionStrategy,
    StepAssignment,
    run_assignment,
    run_step,
)
from .dynamic import DynamicStrategy, remaining_work
from .parallel import ParallelStrategy
from .sequential import SequentialStrategy


def create_strategy(mode, supervisor, continuation=None) -> ExecutionStrategy:
    """Strategy instance for ``mode`` (an ExecutionMode or its string value)."""
    mode = ExecutionMode(mode)
    if mode == ExecutionMode.SEQUENTIAL:
        return SequentialStrategy()
    if mode == ExecutionMode.PARALLEL:
        return ParallelStrategy()
    return DynamicStrategy(supervisor, continuation)


__all__ = [
    "ExecutionMode",
    "ExecutionStrategy",
    "StepAssignment",
    "CycleRuntime",
    "SequentialStrategy",
    "ParallelStrategy",
    "DynamicStrategy",
    "remaining_work",
    "create_strategy",
    "run_assignment",
    "run_step",
]
