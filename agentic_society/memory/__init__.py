
"""
Agent memory and the shared organizational knowledge graph
"""

from .knowledge_graph import KnowledgeGraph, KnowledgeNode, KnowledgeEdge
from .agent_memory import (
    AgentMemory, MemoryEntry, ExperienceEntry, ExperienceSummary, SelfModel, SelfAssessment,
    ExperienceAnalyzer, StaticExperienceAnalyzer
)
from .knowledge_service import OrganizationalKnowledgeService

__all__ = [
    "KnowledgeGraph",
    "KnowledgeNode",
    "KnowledgeEdge",
    "AgentMemory",
    "MemoryEntry",
    "ExperienceEntry",
    "ExperienceSummary",
    "SelfModel",
    "SelfAssessment",
    "ExperienceAnalyzer",
    "StaticExperienceAnalyzer",
    "OrganizationalKnowledgeService"
]
