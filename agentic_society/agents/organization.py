
"""
Organization coordinator that owns the agent registry, projects and channels
"""

import asyncio
from datetime import datetime
from typing import Dict, List, Optional, Any, Set
from pydantic import BaseModel, Field
from loguru import logger

from .agent import Agent
from .agent_communication import AgentMessage, AgentResponse
from .agent_identity import AgentIdentity, create_identity
from .responders import ResponseGenerator
from ..config import OrganizationSeed, SocietyConfig
from ..errors import AlreadyExistsError, InvariantViolationError, NotFoundError, PermissionDeniedError
from ..memory.knowledge_graph import KnowledgeGraph
from ..models import AgentRole, ChannelType, ProjectStatus, TaskPriority, TaskStatus, generate_id, utc_now


EXECUTIVE_CHANNEL_ID = "executive-channel"
ALL_HANDS_CHANNEL_ID = "all-hands-channel"
SYSTEM_SENDER_ID = "system"


class Task(BaseModel):
    """Unit of work assigned to an agent"""

    id: str = Field(default_factory=lambda: generate_id("task"))
    title: str
    description: str
    assigned_to: Optional[str] = None
    assigned_by: Optional[str] = None
    project_id: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    priority: TaskPriority = TaskPriority.MEDIUM
    created_date: datetime = Field(default_factory=utc_now)
    due_date: Optional[datetime] = None
    context: Optional[str] = None


class ProjectConfig(BaseModel):
    name: str
    description: str
    owner_id: str
    participant_ids: List[str] = Field(default_factory=list)
    due_date: Optional[datetime] = None
    budget: Optional[float] = None
    resources: Dict[str, Any] = Field(default_factory=dict)


class Project(BaseModel):
    id: str = Field(default_factory=lambda: generate_id("proj"))
    name: str
    description: str
    status: ProjectStatus = ProjectStatus.PLANNING
    created_date: datetime = Field(default_factory=utc_now)
    due_date: Optional[datetime] = None
    owner_id: str
    participants: List[str] = Field(default_factory=list)
    tasks: List[Task] = Field(default_factory=list)
    resources: Dict[str, Any] = Field(default_factory=dict)
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    budget: Optional[float] = None


class CommunicationChannel(BaseModel):
    id: str = Field(default_factory=lambda: generate_id("channel"))
    name: str
    type: ChannelType
    participants: List[str] = Field(default_factory=list)


class OrganizationNode(BaseModel):
    """Node of the organizational chart"""

    id: str
    name: str
    role: str
    department: str
    level: int
    children: List["OrganizationNode"] = Field(default_factory=list)


class OrganizationStats(BaseModel):
    total_agents: int = 0
    department_count: int = 0
    departments: List[str] = Field(default_factory=list)
    role_count: int = 0
    roles: List[str] = Field(default_factory=list)
    average_level: float = 0.0
    active_projects: int = 0


class OrganizationCoordinator:
    """
    Registry and router for the whole organization.

    Acts as the agent directory for every member's CommunicationManager.
    Registry mutations run under one lock; lookups read the registries directly.
    """

    def __init__(
        self,
        config: Optional[SocietyConfig] = None,
        generator: Optional[ResponseGenerator] = None,
        knowledge_graph: Optional[KnowledgeGraph] = None
    ):
        self.config = config or SocietyConfig()
        self.generator = generator
        self.knowledge_graph = knowledge_graph or KnowledgeGraph()

        self.agents: Dict[str, Agent] = {}
        self.agent_registry: Dict[str, AgentIdentity] = {}
        self.active_projects: Dict[str, Project] = {}
        self.communication_channels: Dict[str, CommunicationChannel] = {}

        self._lock = asyncio.Lock()

    # Directory

    def resolve(self, agent_id: str) -> Agent:
        agent = self.agents.get(agent_id)
        if agent is None:
            raise NotFoundError(f"Agent {agent_id} not found")
        return agent

    def _require_identity(self, agent_id: str) -> AgentIdentity:
        identity = self.agent_registry.get(agent_id)
        if identity is None:
            raise NotFoundError(f"Agent {agent_id} not found")
        return identity

    # Organization bootstrap

    async def initialize_organization(self, seed: Optional[OrganizationSeed] = None) -> List[Agent]:
        """
        Create the seed roster and the default channels

        Args:
            seed: Roster to create, defaults to the configured seed

        Returns:
            The seeded agents in roster order

        Raises:
            AlreadyExistsError: If the organization was already initialized
        """

        for channel_id in (EXECUTIVE_CHANNEL_ID, ALL_HANDS_CHANNEL_ID):
            if channel_id in self.communication_channels:
                raise AlreadyExistsError(f"Organization already initialized: channel {channel_id} exists")

        seed = seed or self.config.seed
        logger.info(f"Initializing organizational structure with {len(seed.members)} members")

        ids_by_key: Dict[str, str] = {}
        seeded: List[Agent] = []

        for member in seed.members:
            identity = create_identity(
                member.name,
                member.role,
                member.department,
                supervisor_id=ids_by_key[member.reports_to] if member.reports_to else None
            )
            agent = await self.add_agent(identity)
            ids_by_key[member.key] = identity.id
            seeded.append(agent)

        await self.create_channel(
            "Executive Leadership",
            ChannelType.GROUP,
            [agent.identity.id for agent in seeded],
            channel_id=EXECUTIVE_CHANNEL_ID
        )
        await self.create_channel(
            "All Hands",
            ChannelType.BROADCAST,
            list(self.agent_registry.keys()),
            channel_id=ALL_HANDS_CHANNEL_ID
        )

        logger.info("Organizational structure initialized")
        return seeded

    # Membership

    async def add_agent(self, identity: AgentIdentity) -> Agent:
        """
        Register a new agent and attach it to its supervisor

        Raises:
            AlreadyExistsError: If the ID is taken
            NotFoundError: If the supervisor or a listed subordinate is unknown
            InvariantViolationError: If a listed subordinate reports to someone else
        """

        async with self._lock:
            if identity.id in self.agents:
                raise AlreadyExistsError(f"Agent with ID {identity.id} already exists")

            supervisor = None
            if identity.supervisor_id is not None:
                supervisor = self._require_identity(identity.supervisor_id)

            for subordinate_id in identity.subordinates:
                subordinate = self._require_identity(subordinate_id)
                if subordinate.supervisor_id != identity.id:
                    raise InvariantViolationError(
                        f"Agent {subordinate_id} listed as subordinate of {identity.id} "
                        f"but reports to {subordinate.supervisor_id}"
                    )

            agent = Agent(
                identity,
                directory=self,
                generator=self.generator,
                knowledge_graph=self.knowledge_graph,
                config=self.config
            )
            await agent.initialize()

            self.agents[identity.id] = agent
            self.agent_registry[identity.id] = identity

            if supervisor is not None:
                supervisor.attach_subordinate(identity.id)

            all_hands = self.communication_channels.get(ALL_HANDS_CHANNEL_ID)
            if all_hands is not None and identity.id not in all_hands.participants:
                all_hands.participants.append(identity.id)

        logger.info(f"Agent added: {identity.name} ({identity.role.value}, {identity.department})")
        return agent

    async def remove_agent(self, agent_id: str) -> Agent:
        """
        Stop an agent and take it out of the organization, its channels and projects

        Raises:
            NotFoundError: If the agent is unknown
            InvariantViolationError: If the agent still has subordinates
        """

        async with self._lock:
            identity = self._require_identity(agent_id)

            if identity.subordinates:
                raise InvariantViolationError(
                    f"Agent {agent_id} still has {len(identity.subordinates)} subordinates"
                )

            agent = self.agents[agent_id]
            await agent.stop()

            if identity.supervisor_id is not None:
                supervisor = self.agent_registry.get(identity.supervisor_id)
                if supervisor is not None:
                    supervisor.detach_subordinate(agent_id)

            for channel in self.communication_channels.values():
                if agent_id in channel.participants:
                    channel.participants.remove(agent_id)

            for project in self.active_projects.values():
                if agent_id in project.participants:
                    project.participants.remove(agent_id)

            del self.agents[agent_id]
            del self.agent_registry[agent_id]

        logger.info(f"Agent removed: {identity.name} ({identity.role.value})")
        return agent

    # Projects and tasks

    async def create_project(self, project_config: ProjectConfig) -> Project:
        """Create a project and notify each participant"""

        async with self._lock:
            self._require_identity(project_config.owner_id)

            project = Project(
                name=project_config.name,
                description=project_config.description,
                due_date=project_config.due_date,
                owner_id=project_config.owner_id,
                participants=list(dict.fromkeys(project_config.participant_ids)),
                resources=project_config.resources,
                budget=project_config.budget
            )
            self.active_projects[project.id] = project

        logger.info(f"Project created: {project.name} ({project.id}) with {len(project.participants)} participants")

        # Notifications bypass the communication permission check
        for participant_id in project.participants:
            try:
                agent = self.resolve(participant_id)
                await agent.process_message(AgentMessage(
                    sender_id=project.owner_id,
                    recipient_id=participant_id,
                    content=f'You have been assigned to project "{project.name}": {project.description}',
                    context=[project.model_dump_json()],
                    metadata={"project_ref": project.id, "topic": project.name}
                ))
            except Exception as e:
                logger.warning(f"Could not notify {participant_id} about project {project.id}: {e}")

        return project

    def get_project(self, project_id: str) -> Project:
        project = self.active_projects.get(project_id)
        if project is None:
            raise NotFoundError(f"Project {project_id} not found")
        return project

    async def assign_task(self, agent_id: str, task: Task, timeout: Optional[float] = None) -> AgentResponse:
        """
        Deliver a task to an agent

        Returns:
            The agent's response to the assignment
        """

        agent = self.resolve(agent_id)

        message = AgentMessage(
            sender_id=task.assigned_by or SYSTEM_SENDER_ID,
            recipient_id=agent_id,
            content=f"Task assigned: {task.description}",
            context=[task.context or ""],
            metadata={"task_ref": task.id, "priority": task.priority.value, "topic": task.title}
        )

        response = await agent.process_message(message, timeout=timeout)

        # Only delivered tasks are recorded
        task.assigned_to = agent_id
        task.status = TaskStatus.IN_PROGRESS
        if task.project_id and task.project_id in self.active_projects:
            project = self.active_projects[task.project_id]
            if all(existing.id != task.id for existing in project.tasks):
                project.tasks.append(task)

        logger.info(f"Task {task.id} assigned to {agent.identity.name}")
        return response

    # Communication

    async def facilitate_communication(
        self,
        from_agent_id: str,
        to_agent_id: str,
        message: str,
        timeout: Optional[float] = None
    ) -> AgentResponse:
        """
        Route a message between two agents after checking they may talk

        Allowed when either side has authority over the other or both sit on
        the same level.
        """

        sender_agent = self.resolve(from_agent_id)
        self.resolve(to_agent_id)

        sender = self.agent_registry[from_agent_id]
        recipient = self.agent_registry[to_agent_id]

        if not (
            sender.has_authority_over(recipient)
            or recipient.has_authority_over(sender)
            or sender.level == recipient.level
        ):
            raise PermissionDeniedError(
                f"Agent {from_agent_id} does not have permission to communicate with agent {to_agent_id}"
            )

        logger.debug(f"Routing message {sender.name} -> {recipient.name}")
        return await sender_agent.communication.send_message(to_agent_id, message, timeout=timeout)

    async def create_channel(
        self,
        name: str,
        type: ChannelType,
        participants: List[str],
        channel_id: Optional[str] = None
    ) -> CommunicationChannel:
        async with self._lock:
            if channel_id is not None and channel_id in self.communication_channels:
                raise AlreadyExistsError(f"Channel {channel_id} already exists")

            for participant_id in participants:
                self._require_identity(participant_id)

            channel = CommunicationChannel(name=name, type=type, participants=list(dict.fromkeys(participants)))
            if channel_id is not None:
                channel.id = channel_id

            self.communication_channels[channel.id] = channel

        logger.debug(f"Channel created: {channel.id} ({type.value}, {len(channel.participants)} participants)")
        return channel

    def get_channel(self, channel_id: str) -> CommunicationChannel:
        channel = self.communication_channels.get(channel_id)
        if channel is None:
            raise NotFoundError(f"Channel {channel_id} not found")
        return channel

    async def broadcast_to_channel(self, channel_id: str, from_agent_id: str, content: str) -> List[AgentResponse]:
        """
        Send a message to every other member of a channel

        Only members may post, except on public channels.
        """

        channel = self.get_channel(channel_id)
        sender_agent = self.resolve(from_agent_id)

        if channel.type != ChannelType.PUBLIC and from_agent_id not in channel.participants:
            raise PermissionDeniedError(f"Agent {from_agent_id} is not a member of channel {channel_id}")

        recipients = [participant for participant in channel.participants if participant != from_agent_id]
        return await sender_agent.communication.broadcast_message(
            recipients, content, {"channel_id": channel_id}
        )

    # Hierarchy

    def get_organizational_hierarchy(self) -> OrganizationNode:
        """Organization chart rooted at a synthetic node above every top-level agent"""

        visited: Set[str] = set()
        roots = [
            self._build_hierarchy_node(agent_id, visited)
            for agent_id, identity in self.agent_registry.items()
            if identity.supervisor_id is None
        ]

        return OrganizationNode(
            id="organization-root",
            name="Organizational Structure",
            role="Organization Root",
            department="Enterprise",
            level=-1,
            children=roots
        )

    def _build_hierarchy_node(self, agent_id: str, visited: Set[str]) -> OrganizationNode:
        if agent_id in visited:
            raise InvariantViolationError(f"Agent {agent_id} appears twice in the hierarchy")
        visited.add(agent_id)

        identity = self.agent_registry.get(agent_id)
        if identity is None:
            raise InvariantViolationError(f"Agent identity not found for ID: {agent_id}")

        return OrganizationNode(
            id=identity.id,
            name=identity.name,
            role=identity.role.value,
            department=identity.department,
            level=identity.level,
            children=[self._build_hierarchy_node(sub_id, visited) for sub_id in identity.subordinates]
        )

    # Lifecycle

    async def start_all_agents(self):
        for agent in list(self.agents.values()):
            try:
                await agent.start()
            except Exception as e:
                logger.error(f"Failed to start agent {agent.identity.name}: {e}")

    async def stop_all_agents(self):
        for agent in list(self.agents.values()):
            try:
                await agent.stop()
            except Exception as e:
                logger.error(f"Failed to stop agent {agent.identity.name}: {e}")

    # Queries

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        return self.agents.get(agent_id)

    def get_agent_identity(self, agent_id: str) -> Optional[AgentIdentity]:
        return self.agent_registry.get(agent_id)

    def get_all_agents(self) -> List[Agent]:
        return list(self.agents.values())

    def get_agents_by_role(self, role: AgentRole) -> List[Agent]:
        return [self.agents[agent_id] for agent_id, identity in self.agent_registry.items() if identity.role == role]

    def get_agents_by_department(self, department: str) -> List[Agent]:
        return [
            self.agents[agent_id] for agent_id, identity in self.agent_registry.items()
            if identity.department == department
        ]

    def get_agent_count(self) -> int:
        return len(self.agents)

    def get_organization_stats(self) -> OrganizationStats:
        identities = list(self.agent_registry.values())

        departments = list(dict.fromkeys(identity.department for identity in identities))
        roles = list(dict.fromkeys(identity.role.value for identity in identities))
        average_level = sum(identity.level for identity in identities) / len(identities) if identities else 0.0

        return OrganizationStats(
            total_agents=len(self.agents),
            department_count=len(departments),
            departments=departments,
            role_count=len(roles),
            roles=roles,
            average_level=average_level,
            active_projects=sum(
                1 for project in self.active_projects.values()
                if project.status in (ProjectStatus.PLANNING, ProjectStatus.ACTIVE)
            )
        )
