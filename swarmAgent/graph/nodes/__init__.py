"""Node builders of the cycle graph."""

from .execute import build_execute_node
from .intake import build_clarify_node, build_intake_node
from .plan import build_plan_node
from .summarize import build_summarize_node
from .terminal import build_finish_node, build_interrupt_node

__all__ = [
    "build_intake_node",
    "build_clarify_node",
    "build_plan_node",
    "build_execute_node",
    "build_summarize_node",
    "build_finish_node",
    "build_interrupt_node",
]
