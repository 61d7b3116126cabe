"""
Agent registry.

Agents live in agents/{alias}/agent.md: YAML front matter (name,
description) followed by the system prompt. The dispatcher only needs the
list of known aliases; the definitions themselves are managed elsewhere.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import frontmatter

if TYPE_CHECKING:
    from ..config import Config
    from .models import AgentConfig

log = logging.getLogger("callboard.agent")

AGENT_FILE = "agent.md"


def _parse_agent_file(path: Path) -> "AgentConfig":
    """Parse agents/{alias}/agent.md → AgentConfig."""
    from .models import AgentConfig

    post = frontmatter.load(str(path))
    metadata = dict(post.metadata)
    alias = path.parent.name
    return AgentConfig(
        alias=alias,
        name=str(metadata.get("name", alias)),
        description=str(metadata.get("description", "")),
        system_prompt=post.content.strip(),
    )


class Agent:
    """Domain class wrapping an AgentConfig."""

    def __init__(self, config: "AgentConfig") -> None:
        self.config = config

    @classmethod
    def load(cls, alias: str, config: "Config") -> "Agent":
        """Raises KeyError if the agent has no definition file."""
        path = config.agents_dir / alias / AGENT_FILE
        if not path.is_file():
            raise KeyError(f"Agent not found: {alias}")
        return cls(config=_parse_agent_file(path))

    @classmethod
    def list(cls, config: "Config") -> "list[Agent]":
        """All agents with a readable definition file, sorted by alias."""
        agents = []
        if config.agents_dir.exists():
            for path in sorted(config.agents_dir.glob(f"*/{AGENT_FILE}")):
                try:
                    agents.append(cls(config=_parse_agent_file(path)))
                except Exception as e:
                    log.warning("Failed to load agent %s: %s", path.parent.name, e)
        return agents

    @property
    def alias(self) -> str:
        return self.config.alias

    @property
    def name(self) -> str:
        return self.config.name

    def __repr__(self) -> str:
        return f"Agent(alias={self.alias!r})"


def list_agents(config: "Config") -> "list[AgentConfig]":
    return [a.config for a in Agent.list(config)]


def agent_exists(alias: str, config: "Config") -> bool:
    return (config.agents_dir / alias / AGENT_FILE).is_file()
