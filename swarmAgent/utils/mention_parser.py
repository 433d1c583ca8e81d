"""Parser for @mention syntax in user input."""

from __future__ import annotations

import re
from typing import Iterable, List, Sequence, Tuple

from .error_handler import AgentNotFoundError

# Pattern: @word (word is any Unicode word character or hyphen, so "@产品经理" works too)
MENTION_PATTERN = re.compile(r"@([\w\-]+)")


def parse_mentions(text: str) -> Tuple[List[str], str]:
    """Parse @mentions from user input and return cleaned text.

    Examples:
        "@pm please review" -> (["pm"], "please review")
        "@dev @designer 做一个登录页" -> (["dev", "designer"], "做一个登录页")
        "普通文本" -> ([], "普通文本")

    Args:
        text: User input text

    Returns:
        Tuple of (mention_tokens, cleaned_text)
    """
    mentions = MENTION_PATTERN.findall(text or "")

    # Remove mentions from text, then collapse spaces (line breaks keep numbered steps apart)
    cleaned_text = re.sub(r"[ \t]+", " ", MENTION_PATTERN.sub("", text or ""))
    cleaned_text = "\n".join(line.strip() for line in cleaned_text.splitlines()).strip()

    return mentions, cleaned_text


def resolve_mention(token: str, agents: Sequence) -> str:
    """Bind one mention token to an agent id.

    Lookup order: exact id, alias, then display name (all case-insensitive).

    Raises:
        AgentNotFoundError: no agent in ``agents`` answers to ``token``
    """
    needle = token.lower()
    for agent in agents:
        if agent.id.lower() == needle:
            return agent.id
    for agent in agents:
        if any(alias.lower() == needle for alias in getattr(agent, "aliases", ())):
            return agent.id
    for agent in agents:
        if agent.name.lower() == needle:
            return agent.id
    raise AgentNotFoundError(token)


def resolve_mentions(tokens: Iterable[str], agents: Sequence) -> List[str]:
    """Resolve mention tokens to agent ids, dropping unknown tokens.

    The result keeps first-mention order and contains each agent once.
    """
    resolved: List[str] = []
    for token in tokens:
        try:
            agent_id = resolve_mention(token, agents)
        except AgentNotFoundError:
            continue
        if agent_id not in resolved:
            resolved.append(agent_id)
    return resolved
