"""Markdown export of a conversation."""

from __future__ import annotations

from typing import Mapping, Optional

from langchain_core.messages import AIMessage, HumanMessage, SystemMessage

from swarmAgent.schema import AgentConfig, ConversationState, message_text


def export_to_markdown(state: ConversationState, agents: Optional[Mapping[str, AgentConfig]] = None) -> str:
    """Render the session history as a Markdown document.

    Agent messages are headed with the agent's display name when ``agents``
    knows it, otherwise with its id.
    """
    agents = agents or {}
    lines = [
        "# Multi-Agent Conversation",
        "",
        f"Session ID: {state.session_id}",
        f"Participants: {', '.join(state.participants)}",
        f"Turns: {state.turn_index}",
        "",
        "---",
        "",
    ]

    for message in state.messages:
        text = message_text(message)
        if isinstance(message, HumanMessage):
            lines += ["**User:**", text, ""]
        elif isinstance(message, AIMessage):
            agent = agents.get(message.name or "")
            label = agent.name if agent else (message.name or "Agent")
            lines += [f"**{label}:**", text, ""]
        elif isinstance(message, SystemMessage):
            lines += [f"*System: {text}*", ""]

    return "\n".join(lines)
