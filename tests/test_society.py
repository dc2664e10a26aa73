"""Tests for the society manager and logging setup."""

import pytest
from loguru import logger

from agentic_society import AgenticSocietyManager, AgenticTask, AgentSpec, SocietyConfig, setup_logging
from agentic_society.agents.organization import ProjectConfig
from agentic_society.agents.responders import DSPyResponseGenerator
from agentic_society.config import OrganizationSeed
from agentic_society.errors import NotFoundError, NotRunningError
from agentic_society.models import AgentRole, TaskPriority


@pytest.fixture
async def society(config, generator):
    society = AgenticSocietyManager(config=config, generator=generator)
    await society.start()
    yield society
    await society.stop()


def member(society: AgenticSocietyManager, role: AgentRole):
    return society.organization.get_agents_by_role(role)[0]


async def test_start_initializes_and_indexes(society: AgenticSocietyManager):
    assert society.is_running()
    assert society.is_initialized
    assert society.organization.get_agent_count() == 4
    assert all(agent.is_running() for agent in society.organization.get_all_agents())
    assert society.knowledge_graph.size()["nodes"] == 8

    # Already initialized, nothing is seeded twice
    await society.initialize()
    assert society.organization.get_agent_count() == 4


async def test_submit_task_requires_running_society(config, generator):
    society = AgenticSocietyManager(config=config, generator=generator)

    with pytest.raises(NotRunningError):
        await society.submit_task(AgenticTask(name="Early", description="Too soon"))


async def test_submit_task_matches_capabilities(society: AgenticSocietyManager):
    cto = member(society, AgentRole.CTO)
    task = AgenticTask(
        name="Architecture review",
        description="Review the service architecture",
        priority=TaskPriority.HIGH,
        required_capabilities=["technology-vision", "technical-architecture"],
        requester="board",
    )

    result = await society.submit_task(task)

    assert result.task_id == task.id
    assert result.status == "assigned"
    assert result.assigned_to == "Bob Smith"
    assert result.assigned_to_id == cto.identity.id
    assert result.message == 'Task "Architecture review" assigned to Bob Smith (CTO)'
    assert result.response.content == "Bob Smith acknowledges"

    delivered = cto.memory.short_term_memory[-1].content
    assert delivered.sender_id == "board"
    assert delivered.metadata["priority"] == "high"

    learned = await society.query_knowledge("acknowledges")
    assert [node.metadata["source_agent"] for node in learned] == [cto.identity.id]


@pytest.mark.parametrize("capabilities", [[], ["underwater-basket-weaving"]])
async def test_submit_task_falls_back_to_ceo(society: AgenticSocietyManager, capabilities):
    result = await society.submit_task(AgenticTask(
        name="Anything", description="Whatever comes up", required_capabilities=capabilities
    ))

    assert result.assigned_to_id == member(society, AgentRole.CEO).identity.id


async def test_submit_task_without_agents(generator):
    society = AgenticSocietyManager(config=SocietyConfig(seed=OrganizationSeed(members=[])), generator=generator)
    await society.start()

    with pytest.raises(NotFoundError):
        await society.submit_task(AgenticTask(name="Lonely", description="Nobody home"))

    await society.stop()


async def test_add_agent_to_running_society(society: AgenticSocietyManager):
    cto = member(society, AgentRole.CTO)

    agent = await society.add_agent_to_society(AgentSpec(
        name="Eve Martin", role=AgentRole.ENGINEERING_MANAGER, department="Technology",
        supervisor_id=cto.identity.id,
    ))

    assert agent.is_running()
    assert agent.identity.level == 2
    assert agent.identity.id in cto.identity.subordinates
    assert agent.identity.id in society.knowledge_service.agent_nodes

    structure = society.get_organizational_structure()
    cto_node = next(node for node in structure.children[0].children if node.id == cto.identity.id)
    assert [node.name for node in cto_node.children] == ["Eve Martin"]


async def test_create_project_is_indexed(society: AgenticSocietyManager):
    ceo = member(society, AgentRole.CEO)

    project = await society.create_project(ProjectConfig(
        name="Market Expansion", description="Open the European office", owner_id=ceo.identity.id
    ))

    assert project.id in society.knowledge_service.project_nodes
    assert [node.type for node in await society.query_knowledge("European")] == ["project"]


async def test_society_stats(society: AgenticSocietyManager):
    stats = society.get_society_stats()

    assert stats["total_agents"] == 4
    assert stats["is_running"] is True
    assert stats["knowledge_graph_size"] == {"nodes": 8, "edges": 3}


async def test_stop_stops_every_agent(config, generator):
    society = AgenticSocietyManager(config=config, generator=generator)
    await society.start()
    await society.start()

    await society.stop()

    assert not society.is_running()
    assert not any(agent.is_running() for agent in society.organization.get_all_agents())


def test_llm_config_selects_dspy_generator():
    society = AgenticSocietyManager(config=SocietyConfig(llm_config={"model": "openai/gpt-4o-mini"}))

    assert isinstance(society.organization.generator, DSPyResponseGenerator)
    assert society.organization.generator.llm_config == {"model": "openai/gpt-4o-mini"}


def test_setup_logging_writes_rotating_file(tmp_path):
    logs_dir = tmp_path / "logs"

    setup_logging("DEBUG", logs_dir)
    logger.info("society booted")
    logger.remove()

    log_file = logs_dir / "agentic_society.log"
    assert log_file.exists()
    assert "society booted" in log_file.read_text()


async def test_manager_applies_configured_logging(tmp_path, generator):
    logs_dir = tmp_path / "logs"
    society = AgenticSocietyManager(
        config=SocietyConfig(reflection_interval_seconds=3600, log_level="DEBUG", logs_dir=logs_dir),
        generator=generator,
    )

    await society.start()
    await society.stop()
    logger.remove()

    assert "Agentic Society started" in (logs_dir / "agentic_society.log").read_text()


async def test_group_chat_requires_running_society(config, generator):
    society = AgenticSocietyManager(config=config, generator=generator)

    with pytest.raises(NotRunningError):
        await society.start_group_chat("Status?")


async def test_group_chat_answers_then_reactions(society: AgenticSocietyManager):
    ceo, cto = member(society, AgentRole.CEO), member(society, AgentRole.CTO)

    result = await society.start_group_chat("What should we prioritize next quarter?")

    assert result.message == "What should we prioritize next quarter?"
    assert [answer.agent_name for answer in result.answers] == [
        "Alice Johnson", "Bob Smith", "Carol Davis", "David Wilson"
    ]
    assert result.answers[1].content == "Bob Smith acknowledges"
    assert all(answer.reacting_to is None for answer in result.answers)

    assert len(result.reactions) == 4
    assert result.reactions[0].agent_id == ceo.identity.id
    assert result.reactions[0].reacting_to == cto.identity.id
    assert result.reactions[0].content == "Alice Johnson acknowledges"
    assert result.reactions[-1].reacting_to == ceo.identity.id

    handed_over = ceo.memory.short_term_memory[-1].content
    assert handed_over.sender_id == cto.identity.id
    assert handed_over.content == "Bob Smith answered: Bob Smith acknowledges"
    assert handed_over.metadata["topic"] == "group-chat"


async def test_group_chat_skips_stopped_members(society: AgenticSocietyManager):
    ceo, cfo, coo = (member(society, role) for role in (AgentRole.CEO, AgentRole.CFO, AgentRole.COO))
    await cfo.stop()

    result = await society.start_group_chat("Hiring plan?")

    assert [answer.agent_id for answer in result.answers] == [
        ceo.identity.id, member(society, AgentRole.CTO).identity.id, coo.identity.id
    ]
    assert len(result.reactions) == 3
    assert result.reactions[-1].agent_id == coo.identity.id
    assert result.reactions[-1].reacting_to == ceo.identity.id


async def test_remove_agent_from_society_drops_knowledge(society: AgenticSocietyManager):
    coo = member(society, AgentRole.COO)
    node_id = society.knowledge_service.agent_nodes[coo.identity.id]

    removed = await society.remove_agent_from_society(coo.identity.id)

    assert removed is coo
    assert not coo.is_running()
    assert society.organization.get_agent_count() == 3
    assert coo.identity.id not in society.knowledge_service.agent_nodes
    assert not await society.knowledge_graph.has_node(node_id)
