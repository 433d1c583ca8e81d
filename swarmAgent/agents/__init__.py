"""Agent roster and specialist invocation wrapper."""

from .interfaces import ModelResolver
from .registry import AgentRegistry
from .scanner import load_agents_config, scan_agents_from_config
from .specialist import SpecialistAgent, SpecialistResponse

__all__ = [
    "ModelResolver",
    "AgentRegistry",
    "SpecialistAgent",
    "SpecialistResponse",
    "load_agents_config",
    "scan_agents_from_config",
]
