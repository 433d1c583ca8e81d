"""Logging utilities for swarmAgent."""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

ROOT_LOGGER_NAME = "swarmAgent"


def setup_logging(level: int = logging.INFO, log_dir: Optional[str] = "logs") -> logging.Logger:
    """Setup logging configuration for swarmAgent.

    Args:
        level: Console logging level (default: INFO)
        log_dir: Directory for the detailed log file; None or "" disables it

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(logging.DEBUG)  # Capture all child logs, handlers filter
    logger.propagate = False

    # Clear existing handlers
    logger.handlers = []

    if log_dir:
        logs_path = Path(log_dir)
        logs_path.mkdir(parents=True, exist_ok=True)
        log_file = logs_path / f"swarmagent_{datetime.now().strftime('%Y%m%d_%H%M%S')}.log"

        # File handler (detailed logs)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        logger.addHandler(file_handler)

    # Console handler (user-friendly)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console_handler)

    logger.info("=" * 80)
    logger.info("swarmAgent logging started")
    if log_dir:
        logger.info(f"Log file: {log_file}")
    logger.info("=" * 80)

    return logger


def _preview(text: str, limit: int = 100) -> str:
    return f"{text[:limit]}{'...' if len(text) > limit else ''}"


def log_phase_transition(logger: logging.Logger, session_id: str, from_phase: str, to_phase: str) -> None:
    """Log a phase change of the orchestration state machine.

    Args:
        logger: Logger instance
        session_id: Session identifier
        from_phase: Previous phase
        to_phase: New phase
    """
    logger.info(f"[{session_id[:8]}] Phase: {from_phase} → {to_phase}")


def log_routing_decision(logger: logging.Logger, from_node: str, decision: str, reason: str = "") -> None:
    """Log routing decision.

    Args:
        logger: Logger instance
        from_node: Source node making the decision
        decision: Routing destination
        reason: Reason for the routing decision
    """
    logger.info(f"Routing decision from {from_node}: → {decision}")
    if reason:
        logger.info(f"  → Reason: {reason}")


def log_supervisor_decision(logger: logging.Logger, agent_id: str, tier: str, reasoning: str) -> None:
    """Log which agent the supervisor picked and why.

    Args:
        logger: Logger instance
        agent_id: Selected agent
        tier: Decision tier (mention / rule / model / fallback)
        reasoning: Human readable trace
    """
    logger.info(f"Supervisor selected {agent_id} (tier={tier})")
    logger.debug(f"  Reasoning: {reasoning}")


def log_task_result(logger: logging.Logger, task: Any) -> None:
    """Log the terminal status of a task.

    Args:
        logger: Logger instance
        task: Task instance (id, assigned_agent_id, status, output, error)
    """
    status = getattr(task.status, "value", task.status)
    marker = "✓" if status == "completed" else "✗"
    logger.info(f"Task {task.id} [{task.assigned_agent_id}] {marker} {status}")
    if task.error:
        logger.info(f"  Error: {task.error}")
    if task.output:
        logger.debug(f"  Output: {_preview(task.output, 500)}")


def log_context_window(logger: logging.Logger, original_count: int, kept_count: int, token_count: int, max_tokens: int) -> None:
    """Log the outcome of context trimming.

    Args:
        logger: Logger instance
        original_count: Messages before trimming
        kept_count: Messages in the window
        token_count: Estimated tokens in the window
        max_tokens: Configured budget
    """
    logger.info(
        f"Context window: {kept_count}/{original_count} messages, "
        f"~{token_count:,} / {max_tokens:,} tokens"
    )


def log_error(logger: logging.Logger, error: Exception, context: str = "") -> None:
    """Log error with context.

    Args:
        logger: Logger instance
        error: Exception instance
        context: Additional context about where the error occurred
    """
    logger.error(f"Error occurred: {type(error).__name__}: {str(error)}")
    if context:
        logger.error(f"  Context: {context}")
    logger.debug("Full traceback:", exc_info=error)


def log_user_message(logger: logging.Logger, content: str) -> None:
    """Log user input.

    Args:
        logger: Logger instance
        content: User message content
    """
    logger.info(f"User input: {_preview(content)}")


def log_plan_created(logger: logging.Logger, goals: list, mode: str) -> None:
    """Log the goals produced by the planning phase."""
    logger.info(f"Plan created for {mode} mode: {len(goals)} goal(s)")
    for i, goal in enumerate(goals, 1):
        logger.debug(f"  Goal {i}: {_preview(goal, 200)}")


def log_node_exit(logger: logging.Logger, node_name: str, updates: Dict[str, Any]) -> None:
    """Log node exit with state updates.

    Args:
        logger: Logger instance
        node_name: Name of the node being exited
        updates: State updates returned by the node
    """
    summary = {}
    for key, value in updates.items():
        if isinstance(value, list):
            summary[key] = f"{len(value)} item(s)"
        else:
            summary[key] = value if isinstance(value, (int, float, bool, str, type(None))) else type(value).__name__
    logger.debug(f"Exiting node {node_name}: {json.dumps(summary, ensure_ascii=False, default=str)}")
