"""Supervisor routing policy."""

from .rules import DEFAULT_RULES, RoutingRule, agent_for_rule, load_routing_rules
from .supervisor import Supervisor

__all__ = [
    "Supervisor",
    "RoutingRule",
    "DEFAULT_RULES",
    "agent_for_rule",
    "load_routing_rules",
]
