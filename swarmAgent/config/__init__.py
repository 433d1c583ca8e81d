"""Configuration package."""

from .settings import (
    ContextSettings,
    ModelRoutingSettings,
    ObservabilitySettings,
    OrchestrationSettings,
    Settings,
    get_settings,
)

__all__ = [
    "Settings",
    "ModelRoutingSettings",
    "ContextSettings",
    "OrchestrationSettings",
    "ObservabilitySettings",
    "get_settings",
]
