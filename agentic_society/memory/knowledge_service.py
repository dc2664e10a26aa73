
"""
Organizational knowledge service
Indexes the organization, its policies and projects into the shared knowledge graph
"""

import re
from typing import Dict, List, Optional, Any, TYPE_CHECKING
from pydantic import BaseModel
from loguru import logger

from .knowledge_graph import KnowledgeGraph, KnowledgeNode
from ..config import DEFAULT_POLICIES, PolicyDocument
from ..errors import NotFoundError
from ..models import utc_now

if TYPE_CHECKING:
    from ..agents.organization import OrganizationCoordinator, OrganizationNode, Project


def _slug(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


class OrganizationalKnowledgeService:
    """
    Keeps the knowledge graph in step with the organization.

    Each indexed agent, policy and project maps to exactly one node, so
    initialize can be called again to pick up additions without duplicating nodes.
    """

    def __init__(self, graph: Optional[KnowledgeGraph] = None, policies: Optional[List[PolicyDocument]] = None):
        self.graph = graph or KnowledgeGraph()
        self.policies = list(policies) if policies is not None else list(DEFAULT_POLICIES)

        self.agent_nodes: Dict[str, str] = {}
        self.policy_nodes: Dict[str, str] = {}
        self.project_nodes: Dict[str, str] = {}

    async def initialize(self, coordinator: "OrganizationCoordinator"):
        """Index the organization chart, policies and current projects"""

        await self._index_organizational_structure(coordinator)
        await self._index_organizational_policies()
        await self._index_project_knowledge(coordinator)

        logger.info(
            f"Organizational knowledge indexed: {len(self.agent_nodes)} units, "
            f"{len(self.policy_nodes)} policies, {len(self.project_nodes)} projects"
        )

    async def _index_organizational_structure(self, coordinator: "OrganizationCoordinator"):
        hierarchy = coordinator.get_organizational_hierarchy()

        # The synthetic root is not an agent
        for child in hierarchy.children:
            await self._add_organization_node(child, parent_node_id=None, parent_path="")

    async def _add_organization_node(self, node: "OrganizationNode", parent_node_id: Optional[str], parent_path: str):
        path = f"{parent_path}/{node.name}"
        node_id = self.agent_nodes.get(node.id)

        if node_id is None:
            node_id = await self.graph.add_node(
                content=f"Organizational Unit: {node.name} ({node.role}) in {node.department}",
                type="organizational-unit",
                tags=["organization", node.role, node.department],
                metadata={
                    "agent_id": node.id,
                    "name": node.name,
                    "role": node.role,
                    "department": node.department,
                    "level": node.level,
                    "path": path
                }
            )
            self.agent_nodes[node.id] = node_id

        if parent_node_id is not None:
            await self.graph.add_edge(node_id, parent_node_id, "reports-to")

        for child in node.children:
            await self._add_organization_node(child, parent_node_id=node_id, parent_path=path)

    async def index_agent(self, coordinator: "OrganizationCoordinator", agent_id: str) -> str:
        """Index a single agent added after initialization. Returns its node ID."""

        if agent_id in self.agent_nodes:
            return self.agent_nodes[agent_id]

        identity = coordinator.get_agent_identity(agent_id)
        if identity is None:
            raise NotFoundError(f"Agent {agent_id} is not part of the organization")

        node_id = await self.graph.add_node(
            content=f"Organizational Unit: {identity.name} ({identity.role.value}) in {identity.department}",
            type="organizational-unit",
            tags=["organization", identity.role.value, identity.department],
            metadata={
                "agent_id": identity.id,
                "name": identity.name,
                "role": identity.role.value,
                "department": identity.department,
                "level": identity.level
            }
        )
        self.agent_nodes[agent_id] = node_id

        supervisor_node_id = self.agent_nodes.get(identity.supervisor_id or "")
        if supervisor_node_id is not None:
            await self.graph.add_edge(node_id, supervisor_node_id, "reports-to")

        return node_id

    async def remove_agent(self, agent_id: str) -> bool:
        """Drop an agent's unit node and every edge into it. Returns False if it was never indexed."""

        node_id = self.agent_nodes.pop(agent_id, None)
        if node_id is None:
            return False

        await self.graph.remove_node(node_id)
        return True

    async def _index_organizational_policies(self):
        for policy in self.policies:
            if policy.name in self.policy_nodes:
                continue

            self.policy_nodes[policy.name] = await self.graph.add_node(
                content=policy.content,
                type=policy.type,
                tags=["policy", _slug(policy.name)],
                metadata={"name": policy.name}
            )

    async def _index_project_knowledge(self, coordinator: "OrganizationCoordinator"):
        for project in list(coordinator.active_projects.values()):
            await self.index_project(project)

    async def index_project(self, project: "Project") -> str:
        """Index a project with its participants and owner. Returns its node ID."""

        if project.id in self.project_nodes:
            return self.project_nodes[project.id]

        node_id = await self.graph.add_node(
            content=f"Project: {project.name}: {project.description}",
            type="project",
            tags=["project", project.status.value],
            metadata={"project_id": project.id, "name": project.name, "owner_id": project.owner_id}
        )
        self.project_nodes[project.id] = node_id

        for participant_id in project.participants:
            participant_node_id = self.agent_nodes.get(participant_id)
            if participant_node_id is not None:
                await self.graph.add_edge(participant_node_id, node_id, "participates-in")

        owner_node_id = self.agent_nodes.get(project.owner_id)
        if owner_node_id is not None:
            await self.graph.add_edge(node_id, owner_node_id, "owned-by")

        return node_id

    async def add_knowledge_from_interaction(self, agent_id: str, interaction: Any) -> List[str]:
        """
        Record what an agent learned from an interaction

        Args:
            agent_id: Agent the knowledge came from
            interaction: Message, response or plain dict with `content` or `message`

        Returns:
            IDs of the nodes created
        """

        data = interaction.model_dump() if isinstance(interaction, BaseModel) else dict(interaction)
        node_ids = []

        for segment in self._extract_knowledge_segments(data):
            node_id = await self.graph.add_node(
                content=segment["content"],
                type=segment["type"],
                tags=segment["tags"],
                metadata={
                    "source_agent": agent_id,
                    "source_interaction": data.get("id"),
                    "timestamp": utc_now().isoformat(),
                    **segment["metadata"]
                }
            )

            agent_node_id = self.agent_nodes.get(agent_id)
            if agent_node_id is not None:
                await self.graph.add_edge(node_id, agent_node_id, "sourced-from")

            node_ids.append(node_id)

        return node_ids

    @staticmethod
    def _extract_knowledge_segments(interaction: Dict[str, Any]) -> List[Dict[str, Any]]:
        # One segment per interaction
        return [{
            "content": interaction.get("content") or interaction.get("message") or "General interaction",
            "type": "interaction",
            "tags": ["agent-interaction"],
            "metadata": {"interaction_type": "general"}
        }]

    async def search(self, query: str) -> List[KnowledgeNode]:
        return await self.graph.search_nodes(query)

    async def find_related(self, node_id: str, distance: int = 1) -> List[KnowledgeNode]:
        return await self.graph.get_neighbors(node_id, distance)

    def get_graph(self) -> KnowledgeGraph:
        return self.graph
