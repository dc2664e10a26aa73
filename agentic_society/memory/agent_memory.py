
"""
Per-agent memory: short/long-term message log, experiences and the self-model
"""

import json
from datetime import datetime
from typing import Dict, List, Optional, Any, Tuple, Protocol
from pydantic import BaseModel, ConfigDict, Field
from loguru import logger

from .knowledge_graph import KnowledgeGraph, KnowledgeNode
from ..models import generate_id, utc_now


class MemoryEntry(BaseModel):
    """Single message-log record"""

    id: str = Field(default_factory=lambda: generate_id("mem"))
    type: str = Field(default="message", description="message, experience, knowledge, ...")
    timestamp: datetime = Field(default_factory=utc_now)
    content: Any = None
    tags: List[str] = Field(default_factory=list)


class ExperienceEntry(BaseModel):
    """Something the agent did and how it went"""

    id: str = Field(default_factory=lambda: generate_id("exp"))
    type: str = Field(..., description="interaction, self-reflection, task-completion, ...")
    timestamp: datetime = Field(default_factory=utc_now)
    context: str
    action: str
    outcome: str
    feedback: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    counterpart_id: Optional[str] = None


class SuccessPattern(BaseModel):
    pattern: str
    success_rate: float = Field(..., ge=0.0, le=1.0)


class ExperienceSummary(BaseModel):
    interactions_count: int = 0
    last_interaction: Optional[datetime] = None
    common_topics: List[str] = Field(default_factory=list)
    success_patterns: List[SuccessPattern] = Field(default_factory=list)


class SelfAssessment(BaseModel):
    """Scores the agent keeps about itself"""
    model_config = ConfigDict(validate_assignment=True)

    competence: float = Field(default=0.5, ge=0.0, le=1.0)
    growth_rate: float = Field(default=0.0, description="Competence change since the previous reflection")
    collaboration_effectiveness: float = Field(default=0.5, ge=0.0, le=1.0)
    decision_quality: float = Field(default=0.5, ge=0.0, le=1.0)


class SelfReflection(BaseModel):
    timestamp: datetime = Field(default_factory=utc_now)
    trigger: str
    message_content: Optional[str] = None
    response_content: Optional[str] = None
    self_assessment: SelfAssessment


class DecisionPattern(BaseModel):
    """How the agent answered one message"""

    input: str
    response: str
    timestamp: datetime
    context: List[str] = Field(default_factory=list)
    outcome: Optional[str] = None
    effectiveness: float = Field(default=0.5, ge=0.0, le=1.0)
    counterpart_id: Optional[str] = None


class RelationshipModel(BaseModel):
    agent_id: str
    interaction_count: int = 0
    last_interaction: Optional[datetime] = None
    average_effectiveness: float = Field(default=0.5, ge=0.0, le=1.0)


class SelfModel(BaseModel):
    """An agent's record of its own competence, gaps and reflections"""
    model_config = ConfigDict(validate_assignment=True)

    # Seeded from the identity
    capabilities: List[str] = Field(default_factory=list)
    knowledge_areas: List[str] = Field(default_factory=list)
    limitations: List[str] = Field(default_factory=list)
    personality_traits: List[str] = Field(default_factory=list)

    experience: ExperienceSummary = Field(default_factory=ExperienceSummary)
    confidence_levels: Dict[str, float] = Field(default_factory=dict)
    self_reflections: List[SelfReflection] = Field(default_factory=list)
    goals: List[str] = Field(default_factory=list)
    relationships: Dict[str, RelationshipModel] = Field(default_factory=dict)
    decision_patterns: Dict[str, DecisionPattern] = Field(default_factory=dict)

    # Recomputed on reflection
    knowledge_gaps: List[str] = Field(default_factory=list)
    learning_objectives: List[str] = Field(default_factory=list)
    behavioral_patterns: List[str] = Field(default_factory=list)
    improvement_areas: List[str] = Field(default_factory=list)

    self_assessment: SelfAssessment = Field(default_factory=SelfAssessment)
    reflection_competence: Optional[float] = Field(default=None, description="Competence at the last self-reflection")
    last_reflection: Optional[datetime] = None
    last_updated: Optional[datetime] = None


class ExperienceAnalyzer(Protocol):
    """Pluggable analysis of an agent's experience log"""

    def summarize(self, experiences: List[ExperienceEntry]) -> Tuple[List[str], List[SuccessPattern]]:
        ...


class StaticExperienceAnalyzer:
    """Fixed topics and patterns, used until a real analyzer is plugged in"""

    def summarize(self, experiences: List[ExperienceEntry]) -> Tuple[List[str], List[SuccessPattern]]:
        topics = ["general-inquiry", "task-completion", "problem-solving"]
        patterns = [
            SuccessPattern(pattern="detailed-inquiry", success_rate=0.85),
            SuccessPattern(pattern="collaborative-task", success_rate=0.92),
        ]
        return topics, patterns


def stringify_content(content: Any) -> str:
    """Text form of stored content used for substring matching"""
    if isinstance(content, str):
        return content
    if isinstance(content, BaseModel):
        return content.model_dump_json()
    return json.dumps(content, default=str)


class AgentMemory:
    """
    Agent memory with a bounded short-term log that spills into an unbounded
    long-term store, a bounded experience log and a single self-model slot.

    Callers serialize access per agent; the memory itself holds no lock.
    """

    def __init__(
        self,
        agent_id: str,
        short_term_capacity: int = 10,
        experience_limit: int = 100,
        context_limit: int = 5,
        analyzer: Optional[ExperienceAnalyzer] = None,
        knowledge_graph: Optional[KnowledgeGraph] = None
    ):
        self.agent_id = agent_id
        self.short_term_capacity = short_term_capacity
        self.experience_limit = experience_limit
        self.context_limit = context_limit

        self.analyzer = analyzer or StaticExperienceAnalyzer()
        self.knowledge_graph = knowledge_graph or KnowledgeGraph()

        self.short_term_memory: List[MemoryEntry] = []
        self.long_term_memory: Dict[str, MemoryEntry] = {}
        self.experiences: List[ExperienceEntry] = []
        self._self_model: Optional[SelfModel] = None

    async def initialize(self):
        """Prepare the memory system"""
        logger.debug(f"Initializing memory for agent {self.agent_id}")

    async def store_message(self, message: Any) -> MemoryEntry:
        """Append a message to short-term memory, spilling the oldest into long-term"""

        entry = MemoryEntry(type="message", content=message, tags=["message"])
        self.short_term_memory.append(entry)

        if len(self.short_term_memory) > self.short_term_capacity:
            oldest = self.short_term_memory.pop(0)
            self.long_term_memory[oldest.id] = oldest

        return entry

    async def retrieve_relevant_context(self, query: str, limit: Optional[int] = None) -> List[str]:
        """
        Case-insensitive substring scan over stored messages

        Short-term hits come before long-term hits; at most `limit` are returned.
        """

        limit = self.context_limit if limit is None else limit
        query_lower = query.lower()
        relevant: List[str] = []

        for entry in list(self.short_term_memory) + list(self.long_term_memory.values()):
            if len(relevant) >= limit:
                break
            if entry.content is None:
                continue

            text = stringify_content(entry.content)
            if query_lower in text.lower():
                relevant.append(text)

        return relevant

    async def store_self_model(self, self_model: SelfModel):
        stored = self_model.model_copy(deep=True)
        stored.last_updated = utc_now()
        self._self_model = stored

    async def get_self_model(self) -> Optional[SelfModel]:
        """Copy of the current self-model, None before initialization"""
        if self._self_model is None:
            return None
        return self._self_model.model_copy(deep=True)

    async def store_experience(self, experience: ExperienceEntry):
        """Record an experience, keeping only the most recent ones"""

        self.experiences.append(experience)

        if len(self.experiences) > self.experience_limit:
            self.experiences = self.experiences[-self.experience_limit:]

    async def get_recent_experiences(self, count: int = 10) -> List[ExperienceEntry]:
        if count <= 0:
            return []
        return list(self.experiences[-count:])

    async def get_experience_summary(self) -> ExperienceSummary:
        topics, patterns = self.analyzer.summarize(list(self.experiences))

        return ExperienceSummary(
            interactions_count=len(self.experiences),
            last_interaction=self.experiences[-1].timestamp if self.experiences else None,
            common_topics=topics,
            success_patterns=patterns
        )

    async def add_to_knowledge_graph(
        self,
        content: str,
        type: str,
        tags: Optional[List[str]] = None,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """Add a node to the shared graph attributed to this agent"""
        return await self.knowledge_graph.add_node(
            content=content,
            type=type,
            tags=tags,
            metadata={"source_agent": self.agent_id, **(metadata or {})}
        )

    async def query_knowledge_graph(self, query: str) -> List[KnowledgeNode]:
        return await self.knowledge_graph.search_nodes(query)

    def get_all_memories(self) -> Dict[str, List[MemoryEntry]]:
        return {
            "short_term": list(self.short_term_memory),
            "long_term": list(self.long_term_memory.values())
        }
