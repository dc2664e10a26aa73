
"""
Agents, their identities and the organization that coordinates them
"""

from .agent_identity import AgentIdentity, RoleProfile, ROLE_PROFILES, create_identity
from .agent_communication import AgentMessage, AgentResponse, CommunicationManager, Conversation
from .agent import Agent
from .responders import GeneratedResponse, TemplateResponseGenerator, DSPyResponseGenerator
from .organization import OrganizationCoordinator, Project, ProjectConfig, Task

__all__ = [
    "AgentIdentity",
    "RoleProfile",
    "ROLE_PROFILES",
    "create_identity",
    "AgentMessage",
    "AgentResponse",
    "CommunicationManager",
    "Conversation",
    "Agent",
    "GeneratedResponse",
    "TemplateResponseGenerator",
    "DSPyResponseGenerator",
    "OrganizationCoordinator",
    "Project",
    "ProjectConfig",
    "Task"
]
