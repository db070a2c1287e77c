"""Typed memory payload models."""

from memory.types.agent import Agent, AgentSession
from memory.types.link import LinkType, MemoryLink, NewLink, UNDIRECTED_LINK_TYPES
from memory.types.memory import (
    Memory,
    MemoryType,
    MemoryUpdate,
    NewMemory,
    clamp_importance,
    utc_now,
)

__all__ = [
    "Agent",
    "AgentSession",
    "LinkType",
    "Memory",
    "MemoryLink",
    "MemoryType",
    "MemoryUpdate",
    "NewLink",
    "NewMemory",
    "UNDIRECTED_LINK_TYPES",
    "clamp_importance",
    "utc_now",
]
