"""Agent and session models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class Agent(BaseModel):
    """Owner of a memory corpus."""

    id: str
    name: str
    type: str = "AI_AGENT"
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime
    updated_at: datetime


class AgentSession(BaseModel):
    """A bounded interaction window for one agent."""

    id: str
    agent_id: str
    name: str
    description: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_active: bool = True
    started_at: datetime
    ended_at: datetime | None = None
