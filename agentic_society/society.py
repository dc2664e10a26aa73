
"""
Agentic society manager - ties the organization, its agents and shared knowledge together
"""

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Any, Union
from pydantic import BaseModel, Field
from loguru import logger

from .agents.agent import Agent
from .agents.agent_communication import AgentMessage, AgentResponse
from .agents.agent_identity import create_identity
from .agents.organization import (
    EXECUTIVE_CHANNEL_ID, OrganizationCoordinator, OrganizationNode, Project, ProjectConfig, Task
)
from .agents.responders import DSPyResponseGenerator, ResponseGenerator
from .config import SocietyConfig
from .errors import NotFoundError, NotRunningError
from .memory.knowledge_graph import KnowledgeGraph, KnowledgeNode
from .memory.knowledge_service import OrganizationalKnowledgeService
from .models import AgentRole, TaskPriority, generate_id


GROUP_CHAT_SENDER_ID = "user"


def setup_logging(level: str = "INFO", logs_dir: Optional[Union[str, Path]] = None):
    """Replace loguru's default sink with a console sink and an optional rotating file"""

    logger.remove()  # Remove default handler

    logger.add(
        lambda msg: print(msg, end=""),
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )

    if logs_dir is not None:
        logs_path = Path(logs_dir)
        logs_path.mkdir(parents=True, exist_ok=True)

        logger.add(
            str(logs_path / "agentic_society.log"),
            level="DEBUG",
            rotation="10 MB",
            retention="7 days",
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
        )


class AgenticTask(BaseModel):
    """Task submitted to the society from outside"""

    id: str = Field(default_factory=lambda: generate_id("task"))
    name: str
    description: str
    priority: TaskPriority = TaskPriority.MEDIUM
    required_capabilities: List[str] = Field(default_factory=list)
    context: Optional[str] = None
    deadline: Optional[datetime] = None
    requester: Optional[str] = None


class TaskResult(BaseModel):
    task_id: str
    status: str
    assigned_to: str
    assigned_to_id: str
    message: str
    response: Optional[AgentResponse] = None


class GroupChatEntry(BaseModel):
    agent_id: str
    agent_name: str
    content: str
    reacting_to: Optional[str] = Field(None, description="Member whose answer this reacts to")


class GroupChatResult(BaseModel):
    message: str
    answers: List[GroupChatEntry] = Field(default_factory=list)
    reactions: List[GroupChatEntry] = Field(default_factory=list)


class AgentSpec(BaseModel):
    """Request to add a member to the society"""

    name: str
    role: AgentRole
    department: str
    supervisor_id: Optional[str] = None


class AgenticSocietyManager:
    """
    Entry point for the agentic society.
    Owns the organization coordinator and the knowledge service, both sharing one knowledge graph.
    """

    def __init__(self, config: Optional[SocietyConfig] = None, generator: Optional[ResponseGenerator] = None):
        self.config = config or SocietyConfig()
        setup_logging(self.config.log_level, self.config.logs_dir)

        if generator is None and self.config.llm_config:
            generator = DSPyResponseGenerator(self.config.llm_config)

        self.knowledge_graph = KnowledgeGraph()
        self.organization = OrganizationCoordinator(
            config=self.config,
            generator=generator,
            knowledge_graph=self.knowledge_graph
        )
        self.knowledge_service = OrganizationalKnowledgeService(self.knowledge_graph, self.config.policies)

        self.is_initialized = False
        self._running = False

    async def initialize(self):
        """Create the seed organization and index it"""

        if self.is_initialized:
            logger.info("Agentic Society already initialized")
            return

        logger.info("Initializing Agentic Society...")

        await self.organization.initialize_organization()
        await self.knowledge_service.initialize(self.organization)

        self.is_initialized = True

        stats = self.organization.get_organization_stats()
        logger.info(f"Agentic Society initialized with {stats.total_agents} agents in {stats.department_count} departments")

    async def start(self):
        if self._running:
            logger.info("Agentic Society is already running")
            return

        if not self.is_initialized:
            await self.initialize()

        logger.info("Starting Agentic Society...")
        await self.organization.start_all_agents()

        self._running = True
        logger.info("Agentic Society started")

    async def stop(self):
        if not self._running:
            logger.info("Agentic Society is not running")
            return

        logger.info("Stopping Agentic Society...")
        await self.organization.stop_all_agents()

        self._running = False
        logger.info("Agentic Society stopped")

    def is_running(self) -> bool:
        return self._running

    async def submit_task(self, task: AgenticTask) -> TaskResult:
        """
        Hand a task to the most appropriate agent

        Raises:
            NotRunningError: If the society has not been started
            NotFoundError: If the organization has no agents
        """

        if not self._running:
            raise NotRunningError("Agentic Society is not running")

        logger.info(f"Processing task: {task.description}")

        agent = self._find_appropriate_agent(task)
        if agent is None:
            raise NotFoundError("No suitable agent found for this task")

        response = await self.organization.assign_task(agent.identity.id, Task(
            id=task.id,
            title=task.name,
            description=task.description,
            assigned_by=task.requester,
            priority=task.priority,
            due_date=task.deadline,
            context=task.context
        ))

        await self.knowledge_service.add_knowledge_from_interaction(agent.identity.id, response)

        return TaskResult(
            task_id=task.id,
            status="assigned",
            assigned_to=agent.identity.name,
            assigned_to_id=agent.identity.id,
            message=f'Task "{task.name}" assigned to {agent.identity.name} ({agent.identity.role.value})',
            response=response
        )

    def _find_appropriate_agent(self, task: AgenticTask) -> Optional[Agent]:
        """First agent covering every required capability, else the CEO, else anyone"""

        if task.required_capabilities:
            required = set(task.required_capabilities)
            for agent in self.organization.get_all_agents():
                if required.issubset(agent.identity.capabilities):
                    return agent

        ceo_agents = self.organization.get_agents_by_role(AgentRole.CEO)
        if ceo_agents:
            return ceo_agents[0]

        all_agents = self.organization.get_all_agents()
        return all_agents[0] if all_agents else None

    async def add_agent_to_society(self, spec: AgentSpec) -> Agent:
        """Create an agent from the role table, register it and index it"""

        logger.info(f"Adding new agent to society: {spec.name}")

        identity = create_identity(spec.name, spec.role, spec.department, supervisor_id=spec.supervisor_id)
        agent = await self.organization.add_agent(identity)
        await self.knowledge_service.index_agent(self.organization, identity.id)

        if self._running:
            await agent.start()

        return agent

    async def remove_agent_from_society(self, agent_id: str) -> Agent:
        """Take an agent out of the organization and out of the shared knowledge"""

        agent = await self.organization.remove_agent(agent_id)
        await self.knowledge_service.remove_agent(agent_id)

        logger.info(f"Removed agent from society: {agent.identity.name}")
        return agent

    async def start_group_chat(self, message: str) -> GroupChatResult:
        """
        Run a two-round discussion among the executive channel

        Every member answers the message first. Then each member reacts to the
        answer of the member after it, wrapping around to the first.

        Raises:
            NotRunningError: If the society has not been started
            NotFoundError: If the executive channel does not exist
        """

        if not self._running:
            raise NotRunningError("Agentic Society is not running")

        channel = self.organization.get_channel(EXECUTIVE_CHANNEL_ID)
        logger.info(f"Starting group chat with {len(channel.participants)} members: {message}")

        answers: List[GroupChatEntry] = []
        for member_id in channel.participants:
            try:
                agent = self.organization.resolve(member_id)
                response = await agent.process_message(AgentMessage(
                    sender_id=GROUP_CHAT_SENDER_ID,
                    recipient_id=member_id,
                    content=message,
                    metadata={"channel_id": channel.id, "topic": "group-chat"}
                ))
            except Exception as e:
                logger.warning(f"Group chat member {member_id} did not answer: {e}")
                continue

            answers.append(GroupChatEntry(
                agent_id=member_id,
                agent_name=agent.identity.name,
                content=response.content
            ))

        reactions: List[GroupChatEntry] = []
        for index, answer in enumerate(answers):
            other = answers[(index + 1) % len(answers)]
            if other.agent_id == answer.agent_id:
                break

            # The other member hands its answer over; the reply is the reaction
            other_agent = self.organization.resolve(other.agent_id)
            response = await other_agent.communication.send_message(
                answer.agent_id,
                f"{other.agent_name} answered: {other.content}",
                {"channel_id": channel.id, "topic": "group-chat"}
            )

            reactions.append(GroupChatEntry(
                agent_id=answer.agent_id,
                agent_name=answer.agent_name,
                content=response.content,
                reacting_to=other.agent_id
            ))

        return GroupChatResult(message=message, answers=answers, reactions=reactions)

    async def create_project(self, project_config: ProjectConfig) -> Project:
        """Create a project and index it into the shared knowledge"""

        project = await self.organization.create_project(project_config)
        await self.knowledge_service.index_project(project)
        return project

    async def query_knowledge(self, query: str) -> List[KnowledgeNode]:
        return await self.knowledge_service.search(query)

    def get_organizational_structure(self) -> OrganizationNode:
        return self.organization.get_organizational_hierarchy()

    def get_society_stats(self) -> Dict[str, Any]:
        return {
            **self.organization.get_organization_stats().model_dump(),
            "is_running": self._running,
            "knowledge_graph_size": self.knowledge_graph.size()
        }
