"""Paying agents, with ID generation and YAML metadata storage."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from paywarden.config import AGENTS_DIR


class RiskTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Agent(BaseModel):
    agent_id: str
    name: str = "default"
    purpose: str | None = None
    risk_tier: RiskTier = RiskTier.MEDIUM
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


def create_agent(
    name: str = "default",
    purpose: str | None = None,
    risk_tier: RiskTier = RiskTier.MEDIUM,
    agents_dir: Path | None = None,
) -> Agent:
    """Create a new agent with a unique ID and its own directory."""
    agents_dir = agents_dir or AGENTS_DIR
    agent = Agent(agent_id=f"agt_{uuid.uuid4().hex[:8]}", name=name, purpose=purpose, risk_tier=risk_tier)

    agent_dir = agents_dir / agent.agent_id
    agent_dir.mkdir(parents=True, exist_ok=True)
    with open(agent_dir / "metadata.yaml", "w") as f:
        yaml.dump(agent.model_dump(mode="json"), f, default_flow_style=False)

    return agent


def load_agent(agent_id: str, agents_dir: Path | None = None) -> Agent:
    agents_dir = agents_dir or AGENTS_DIR
    metadata_path = agents_dir / agent_id / "metadata.yaml"
    if not metadata_path.exists():
        raise FileNotFoundError(f"Agent not found: {agent_id}")

    with open(metadata_path) as f:
        return Agent(**yaml.safe_load(f))


def list_agents(agents_dir: Path | None = None) -> list[Agent]:
    agents_dir = agents_dir or AGENTS_DIR
    if not agents_dir.exists():
        return []

    agents = []
    for agent_dir in sorted(agents_dir.iterdir()):
        metadata_path = agent_dir / "metadata.yaml"
        if agent_dir.is_dir() and metadata_path.exists():
            with open(metadata_path) as f:
                agents.append(Agent(**yaml.safe_load(f)))
    return agents


def get_or_create_default_agent(agents_dir: Path | None = None) -> Agent:
    """Get the first registered agent, creating one if none exist."""
    agents = list_agents(agents_dir)
    if agents:
        return agents[0]
    return create_agent("default", agents_dir=agents_dir)
