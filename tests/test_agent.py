"""Tests for the agent lifecycle, message handling and self-reflection."""

import asyncio

import pytest

from agentic_society.agents.agent import Agent
from agentic_society.agents.agent_communication import AgentMessage
from agentic_society.agents.agent_identity import create_identity
from agentic_society.agents.responders import GeneratedResponse
from agentic_society.config import SocietyConfig
from agentic_society.errors import NotRunningError
from agentic_society.models import AgentRole, AgentStatus


def message_for(agent: Agent, content: str, sender_id: str = "agent-sender", topic: str = None) -> AgentMessage:
    return AgentMessage(
        sender_id=sender_id,
        recipient_id=agent.identity.id,
        content=content,
        metadata={"topic": topic} if topic else {},
    )


async def test_lifecycle_transitions(ceo_identity, generator, config):
    agent = Agent(ceo_identity, generator=generator, config=config)
    assert agent.status == AgentStatus.CREATED

    await agent.initialize()
    assert agent.status == AgentStatus.INITIALIZED
    assert not agent.is_running()

    await agent.start()
    await agent.start()
    assert agent.status == AgentStatus.RUNNING

    await agent.stop()
    await agent.stop()
    assert agent.status == AgentStatus.STOPPED

    # Restart is allowed
    await agent.start()
    assert agent.is_running()
    await agent.stop()


async def test_self_model_seeded_from_identity(agent: Agent):
    self_model = await agent.memory.get_self_model()

    assert self_model.capabilities == list(agent.identity.capabilities)
    assert self_model.personality_traits == list(agent.identity.personality_traits)
    assert self_model.self_assessment.competence == 0.5


async def test_message_to_stopped_agent_raises(ceo_identity, generator, config):
    agent = Agent(ceo_identity, generator=generator, config=config)

    with pytest.raises(NotRunningError):
        await agent.process_message(message_for(agent, "hello"))

    await agent.start()
    await agent.stop()

    with pytest.raises(NotRunningError):
        await agent.process_message(message_for(agent, "hello"))


async def test_process_message_returns_response(agent: Agent):
    response = await agent.process_message(message_for(agent, "Status of the roadmap?"))

    assert response.sender_id == agent.identity.id
    assert response.content == "Alice Johnson acknowledges"
    assert response.metadata["agent_role"] == "CEO"
    assert response.metadata["agent_name"] == "Alice Johnson"
    assert response.metadata["confidence"] == 0.8


async def test_process_message_updates_self_model(agent: Agent):
    message = message_for(agent, "Status of the roadmap?")
    await agent.process_message(message)

    self_model = await agent.memory.get_self_model()

    assert self_model.experience.interactions_count == 1
    assert self_model.self_assessment.competence == pytest.approx(0.53)
    assert list(self_model.decision_patterns) == [message.id]
    assert self_model.decision_patterns[message.id].effectiveness == 0.8
    assert self_model.self_reflections[-1].trigger == "interaction"
    assert self_model.self_reflections[-1].message_content == "Status of the roadmap?"


async def test_competence_is_clamped(ceo_identity, config, scripted_generator):
    agent = Agent(ceo_identity, generator=scripted_generator(default_confidence=1.0), config=config)
    await agent.start()

    for i in range(15):
        await agent.process_message(message_for(agent, f"question {i}"))

    self_model = await agent.memory.get_self_model()
    assert self_model.self_assessment.competence == 1.0
    await agent.stop()


async def test_message_enriched_with_memory_context(agent: Agent, generator):
    await agent.process_message(message_for(agent, "Budget draft for Q3"))
    await agent.process_message(message_for(agent, "Budget"))

    rendered = generator.calls[-1]
    assert rendered.startswith("Budget")
    assert "Relevant context:" in rendered
    assert "Budget draft for Q3" in rendered


async def test_self_reflect_finds_knowledge_gaps(ceo_identity, config, scripted_generator):
    agent = Agent(ceo_identity, generator=scripted_generator([0.2, 0.9]), config=config)
    await agent.start()

    await agent.process_message(message_for(agent, "How do we run kubernetes?", sender_id="agent-cto", topic="kubernetes"))
    await agent.process_message(message_for(agent, "Approve the budget", sender_id="agent-cfo", topic="budget"))

    self_model = await agent.self_reflect()

    assert self_model.knowledge_gaps == ["kubernetes"]
    assert self_model.learning_objectives == ["Improve knowledge in kubernetes area within 30 days"]
    assert self_model.self_assessment.decision_quality == pytest.approx(0.55)
    assert set(self_model.relationships) == {"agent-cto", "agent-cfo"}
    assert self_model.relationships["agent-cto"].average_effectiveness == pytest.approx(0.2)
    assert self_model.last_reflection is not None

    stored = await agent.memory.get_self_model()
    assert stored.knowledge_gaps == ["kubernetes"]

    last_experience = (await agent.memory.get_recent_experiences(1))[0]
    assert last_experience.type == "self-reflection"
    assert last_experience.context == "Internal self-analysis"
    await agent.stop()


async def test_self_reflect_requires_initialization(ceo_identity, generator, config):
    agent = Agent(ceo_identity, generator=generator, config=config)

    with pytest.raises(NotRunningError):
        await agent.self_reflect()


async def test_background_reflection_runs_and_is_cancelled(ceo_identity, generator, fast_config):
    agent = Agent(ceo_identity, generator=generator, config=fast_config)
    await agent.start()

    await asyncio.sleep(0.1)
    reflections = [e for e in agent.memory.experiences if e.type == "self-reflection"]
    assert reflections

    task = agent._reflection_task
    await agent.stop()

    assert task.done()
    assert agent._reflection_task is None

    count = len(agent.memory.experiences)
    await asyncio.sleep(0.05)
    assert len(agent.memory.experiences) == count


async def test_process_message_timeout(ceo_identity, config):
    class SlowGenerator:
        async def generate(self, identity, message, self_model):
            await asyncio.sleep(1)
            return GeneratedResponse(content="late", confidence=0.5)

    agent = Agent(ceo_identity, generator=SlowGenerator(), config=config)
    await agent.start()

    with pytest.raises(asyncio.TimeoutError):
        await agent.process_message(message_for(agent, "hurry"), timeout=0.01)

    await agent.stop()


async def test_concurrent_messages_are_serialized(agent: Agent):
    messages = [message_for(agent, f"parallel {i}") for i in range(5)]

    await asyncio.gather(*[agent.process_message(message) for message in messages])

    self_model = await agent.memory.get_self_model()
    assert self_model.experience.interactions_count == 5
    assert set(self_model.decision_patterns) == {message.id for message in messages}


async def test_generator_failure_propagates(failing_generator, config):
    agent = Agent(create_identity("Dan", AgentRole.SDE1, "Engineering"), generator=failing_generator, config=config)
    await agent.start()

    with pytest.raises(RuntimeError):
        await agent.process_message(message_for(agent, "anything"))

    await agent.stop()


async def test_reflection_waits_for_message_in_flight(ceo_identity, config):
    class SlowGenerator:
        async def generate(self, identity, message, self_model):
            await asyncio.sleep(0.05)
            return GeneratedResponse(content="considered reply", confidence=0.7)

    agent = Agent(ceo_identity, generator=SlowGenerator(), config=config)
    await agent.start()
    message = message_for(agent, "Quarterly plan?")

    await asyncio.gather(agent.process_message(message), agent.self_reflect())

    stored = await agent.memory.get_self_model()
    assert message.id in stored.decision_patterns
    assert stored.experience.interactions_count == 1
    assert stored.last_reflection is not None
    await agent.stop()


async def test_reflection_log_is_bounded(ceo_identity, generator):
    agent = Agent(ceo_identity, generator=generator, config=SocietyConfig(reflection_interval_seconds=3600, self_reflection_limit=3))
    await agent.start()

    for i in range(5):
        await agent.process_message(message_for(agent, f"question {i}"))
    first = await agent.self_reflect()
    second = await agent.self_reflect()

    assert len(second.self_reflections) == 3
    assert second.self_reflections[0].message_content == "question 4"
    assert first.self_assessment.growth_rate == pytest.approx(0.15)
    # Nothing happened between the two reflections
    assert second.self_assessment.growth_rate == pytest.approx(0.0)
    await agent.stop()
