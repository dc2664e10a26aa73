"""Shared fixtures for agentic society tests."""

from typing import List, Optional

import pytest

from agentic_society.agents.agent import Agent
from agentic_society.agents.agent_identity import AgentIdentity, create_identity
from agentic_society.agents.organization import OrganizationCoordinator
from agentic_society.agents.responders import GeneratedResponse
from agentic_society.config import SocietyConfig
from agentic_society.memory.agent_memory import SelfModel
from agentic_society.memory.knowledge_graph import KnowledgeGraph
from agentic_society.models import AgentRole


class ScriptedResponseGenerator:
    """Replies with a fixed text and a scripted sequence of confidences."""

    def __init__(self, confidences: Optional[List[float]] = None, default_confidence: float = 0.8):
        self.confidences = list(confidences or [])
        self.default_confidence = default_confidence
        self.calls: List[str] = []

    async def generate(self, identity: AgentIdentity, message: str, self_model: SelfModel) -> GeneratedResponse:
        self.calls.append(message)
        confidence = self.confidences.pop(0) if self.confidences else self.default_confidence
        return GeneratedResponse(content=f"{identity.name} acknowledges", confidence=confidence)


class FailingResponseGenerator:
    """Always raises, to exercise failure paths."""

    async def generate(self, identity: AgentIdentity, message: str, self_model: SelfModel) -> GeneratedResponse:
        raise RuntimeError("generator unavailable")


@pytest.fixture
def config():
    """Config with background reflection effectively disabled."""
    return SocietyConfig(reflection_interval_seconds=3600)


@pytest.fixture
def fast_config():
    """Config that reflects almost immediately."""
    return SocietyConfig(reflection_interval_seconds=0.01)


@pytest.fixture
def generator():
    return ScriptedResponseGenerator()


@pytest.fixture
def failing_generator():
    return FailingResponseGenerator()


@pytest.fixture
def graph():
    return KnowledgeGraph()


@pytest.fixture
def ceo_identity():
    return create_identity("Alice Johnson", AgentRole.CEO, "Executive")


@pytest.fixture
async def agent(ceo_identity, generator, config):
    """Standalone running agent."""
    agent = Agent(ceo_identity, generator=generator, config=config)
    await agent.start()
    yield agent
    await agent.stop()


@pytest.fixture
async def coordinator(generator, config):
    """Coordinator with the default seed roster, all agents running."""
    coordinator = OrganizationCoordinator(config=config, generator=generator)
    await coordinator.initialize_organization()
    await coordinator.start_all_agents()
    yield coordinator
    await coordinator.stop_all_agents()


def agent_by_role(coordinator: OrganizationCoordinator, role: AgentRole) -> Agent:
    return coordinator.get_agents_by_role(role)[0]


@pytest.fixture
def by_role(coordinator):
    """Look up the first agent with a role."""
    return lambda role: agent_by_role(coordinator, role)


@pytest.fixture
def scripted_generator():
    """Factory for generators with custom confidences."""
    return ScriptedResponseGenerator
