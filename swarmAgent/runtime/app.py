"""Application assembly for swarmAgent.

This module builds a ready-to-use Orchestrator by:
1. Loading settings and configuring logging
2. Building the model resolver
3. Scanning the agent roster from agents.yaml
4. Loading the routing rule table (built-in or YAML)
5. Wiring supervisor, context manager and store into the Orchestrator
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from swarmAgent.agents import AgentRegistry, ModelResolver, scan_agents_from_config
from swarmAgent.config import Settings, get_settings
from swarmAgent.persistence import ConversationStore
from swarmAgent.supervisor import DEFAULT_RULES, Supervisor, load_routing_rules
from swarmAgent.utils.logging_utils import setup_logging
from swarmAgent.utils.prompt_builder import PromptBuilder

from .model_resolver import build_model_resolver, has_credentials
from .orchestrator import Orchestrator

LOGGER = logging.getLogger(__name__)


def build_orchestrator(
    settings: Optional[Settings] = None,
    *,
    registry: Optional[AgentRegistry] = None,
    agents_config: Optional[Path | str] = None,
    rules_config: Optional[Path | str] = None,
    model_resolver: Optional[ModelResolver] = None,
    store: Optional[ConversationStore] = None,
    configure_logging: bool = True,
) -> Orchestrator:
    """Build an Orchestrator from settings.

    Args:
        settings: Application settings (default: ``get_settings()``)
        registry: Agent roster (default: scanned from ``agents_config``)
        agents_config: agents.yaml path (default: the package's config/agents.yaml)
        rules_config: Routing rules YAML (default: built-in table)
        model_resolver: Custom model resolver (default: ChatOpenAI over the configured endpoint)
        store: Conversation store (default: in-memory)
        configure_logging: Call ``setup_logging`` with the observability settings

    Returns:
        Orchestrator instance
    """
    # ========== Step 1: Settings & logging ==========
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(
            level=getattr(logging, settings.observability.log_level.upper(), logging.INFO),
            log_dir=settings.observability.log_dir or None,
        )

    # ========== Step 2: Model resolver ==========
    resolver = model_resolver or build_model_resolver(settings)

    # Without credentials (and without a custom resolver) the supervisor stays
    # deterministic; the first run() reports the missing key.
    supervisor_model = None
    if model_resolver is not None or has_credentials(settings):
        supervisor_model = resolver(settings.models.supervisor_model, temperature=settings.models.supervisor_temperature)
    else:
        LOGGER.warning("No model API key configured; supervisor runs without a model")

    # ========== Step 3: Agent roster ==========
    registry = registry if registry is not None else scan_agents_from_config(agents_config)

    # ========== Step 4: Routing rules ==========
    rules = load_routing_rules(rules_config) if rules_config else DEFAULT_RULES

    # ========== Step 5: Orchestrator ==========
    prompt_builder = PromptBuilder()
    supervisor = Supervisor(
        model=supervisor_model,
        rules=rules,
        prompt_builder=prompt_builder,
        timeout=settings.orchestration.agent_timeout_seconds,
    )
    orchestrator = Orchestrator(
        registry,
        model_resolver=resolver,
        settings=settings,
        supervisor=supervisor,
        supervisor_model=supervisor_model,
        store=store,
        prompt_builder=prompt_builder,
    )
    LOGGER.info(
        f"Orchestrator ready: {len(registry)} agent(s), {len(rules)} routing rule(s), "
        f"mode={orchestrator.mode.value}"
    )
    return orchestrator


__all__ = ["build_orchestrator"]
