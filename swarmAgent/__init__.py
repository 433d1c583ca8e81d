"""Top-level package exports for swarmAgent."""

from .runtime.app import build_orchestrator
from .runtime.orchestrator import Orchestrator

__all__ = ["build_orchestrator", "Orchestrator"]
