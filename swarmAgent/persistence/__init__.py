"""Persistence collaborators."""

from .store import ConversationStore, InMemoryConversationStore

__all__ = ["ConversationStore", "InMemoryConversationStore"]
