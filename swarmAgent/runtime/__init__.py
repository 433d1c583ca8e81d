"""Runtime assembly: orchestrator, model wiring and pricing."""

from .app import build_orchestrator
from .model_resolver import build_model_resolver
from .orchestrator import Orchestrator
from .pricing import calculate_cost

__all__ = ["Orchestrator", "build_orchestrator", "build_model_resolver", "calculate_cost"]
