
"""
Self-aware agent: identity, memory, communication and periodic self-reflection
"""

import asyncio
from statistics import mean
from typing import Dict, List, Optional
from loguru import logger

from .agent_identity import AgentIdentity
from .agent_communication import AgentDirectory, AgentMessage, AgentResponse, CommunicationManager
from .responders import ResponseGenerator, TemplateResponseGenerator
from ..config import SocietyConfig
from ..errors import NotRunningError
from ..memory.agent_memory import (
    AgentMemory, DecisionPattern, ExperienceEntry, RelationshipModel, SelfModel, SelfReflection
)
from ..memory.knowledge_graph import KnowledgeGraph
from ..models import AgentStatus, utc_now


COMPETENCE_STEP = 0.1
KNOWLEDGE_GAP_CONFIDENCE = 0.5
BASELINE_COMPETENCE = 0.5


def _render_message(message: AgentMessage) -> str:
    if not message.context:
        return message.content

    snippets = "\n".join(f"- {snippet}" for snippet in message.context)
    return f"{message.content}\n\nRelevant context:\n{snippets}"


class Agent:
    """
    Agent in the organization.

    Lifecycle is CREATED -> INITIALIZED -> RUNNING -> STOPPED, and a stopped
    agent may be started again. Message handling and self-reflection share one
    lock so the self-model is never updated by both at once.
    """

    def __init__(
        self,
        identity: AgentIdentity,
        directory: Optional[AgentDirectory] = None,
        generator: Optional[ResponseGenerator] = None,
        knowledge_graph: Optional[KnowledgeGraph] = None,
        config: Optional[SocietyConfig] = None
    ):
        self.identity = identity
        self.config = config or SocietyConfig()

        self.memory = AgentMemory(
            identity.id,
            short_term_capacity=self.config.short_term_capacity,
            experience_limit=self.config.experience_limit,
            context_limit=self.config.context_limit,
            knowledge_graph=knowledge_graph
        )
        self.communication = CommunicationManager(
            self,
            directory=directory,
            join_roles=self.config.conversation_join_roles
        )
        self.generator: ResponseGenerator = generator or TemplateResponseGenerator()

        self.status = AgentStatus.CREATED
        self._lock = asyncio.Lock()
        self._reflection_task: Optional[asyncio.Task] = None

    def __repr__(self) -> str:
        return f"Agent({self.identity.name!r}, {self.identity.role.value}, {self.status.value})"

    # Lifecycle

    async def initialize(self):
        """Prepare memory and seed the self-model from the identity"""

        if self.status != AgentStatus.CREATED:
            logger.debug(f"Agent {self.identity.name} already initialized")
            return

        await self.memory.initialize()

        self_model = SelfModel(
            capabilities=list(self.identity.capabilities),
            knowledge_areas=list(self.identity.knowledge_areas),
            limitations=list(self.identity.limitations),
            personality_traits=list(self.identity.personality_traits),
            experience=await self.memory.get_experience_summary()
        )
        await self.memory.store_self_model(self_model)

        self.status = AgentStatus.INITIALIZED
        logger.info(f"Agent {self.identity.name} ({self.identity.role.value}) initialized")

    async def start(self):
        """Start handling messages and reflecting in the background"""

        if self.status == AgentStatus.RUNNING:
            return

        if self.status == AgentStatus.CREATED:
            await self.initialize()

        self.status = AgentStatus.RUNNING
        self._reflection_task = asyncio.create_task(self._reflection_loop())

        logger.info(f"Agent {self.identity.name} started")

    async def stop(self):
        """Stop handling messages and cancel background reflection"""

        if self.status != AgentStatus.RUNNING:
            return

        self.status = AgentStatus.STOPPED

        if self._reflection_task and not self._reflection_task.done():
            self._reflection_task.cancel()
            try:
                await self._reflection_task
            except asyncio.CancelledError:
                pass
        self._reflection_task = None

        logger.info(f"Agent {self.identity.name} stopped")

    def is_running(self) -> bool:
        return self.status == AgentStatus.RUNNING

    async def _reflection_loop(self):
        """Reflect on a fixed interval while running"""

        interval = self.config.reflection_interval_seconds

        try:
            while self.status == AgentStatus.RUNNING:
                await asyncio.sleep(interval)

                if self.status != AgentStatus.RUNNING:
                    break

                try:
                    await self.self_reflect()
                except Exception as e:
                    logger.warning(f"Background reflection failed for {self.identity.name}: {e}")

        except asyncio.CancelledError:
            logger.debug(f"Reflection loop cancelled for {self.identity.name}")

    # Message handling

    async def process_message(self, message: AgentMessage, timeout: Optional[float] = None) -> AgentResponse:
        """
        Handle an incoming message and produce a response

        Args:
            message: Message to handle
            timeout: Optional deadline in seconds

        Raises:
            NotRunningError: If the agent is not running
            asyncio.TimeoutError: If the deadline passes first
        """

        if timeout is not None:
            return await asyncio.wait_for(self._process_message(message), timeout)
        return await self._process_message(message)

    async def _process_message(self, message: AgentMessage) -> AgentResponse:
        if not self.is_running():
            raise NotRunningError(f"Agent {self.identity.name} is not running")

        async with self._lock:
            # Re-check after waiting for the lock
            if not self.is_running():
                raise NotRunningError(f"Agent {self.identity.name} is not running")

            await self.memory.store_message(message)

            snippets = await self.memory.retrieve_relevant_context(message.content)
            enriched = message.model_copy(update={
                "context": [*message.context, *snippets],
                "timestamp": utc_now()
            })

            self_model = await self.memory.get_self_model()
            generated = await self.generator.generate(self.identity, _render_message(enriched), self_model)

            response = AgentResponse(
                sender_id=self.identity.id,
                content=generated.content,
                metadata={
                    "agent_role": self.identity.role.value,
                    "agent_name": self.identity.name,
                    "confidence": generated.confidence,
                    "in_reply_to": message.id
                }
            )

            self._record_interaction(self_model, enriched, response, generated.confidence)
            await self.memory.store_self_model(self_model)

            await self.memory.store_experience(ExperienceEntry(
                type="interaction",
                context=str(message.metadata.get("topic") or message.content[:80]),
                action=f"Responded to message from {message.sender_id}",
                outcome=response.content,
                confidence=generated.confidence,
                counterpart_id=message.sender_id
            ))

        logger.debug(f"Agent {self.identity.name} processed message {message.id}")
        return response

    def _record_interaction(self, self_model: SelfModel, message: AgentMessage, response: AgentResponse, confidence: float):
        self_model.experience.interactions_count += 1
        self_model.experience.last_interaction = response.timestamp

        if message.id not in self_model.decision_patterns:
            self_model.decision_patterns[message.id] = DecisionPattern(
                input=message.content,
                response=response.content,
                timestamp=message.timestamp,
                context=list(message.context),
                effectiveness=confidence,
                counterpart_id=message.sender_id
            )

        assessment = self_model.self_assessment
        assessment.competence = min(1.0, max(0.0, assessment.competence + (confidence - 0.5) * COMPETENCE_STEP))

        self._log_reflection(self_model, SelfReflection(
            trigger="interaction",
            message_content=message.content,
            response_content=response.content,
            self_assessment=assessment.model_copy()
        ))

    def _log_reflection(self, self_model: SelfModel, reflection: SelfReflection):
        """Append to the reflection log, keeping only the newest entries"""
        self_model.self_reflections.append(reflection)
        overflow = len(self_model.self_reflections) - self.config.self_reflection_limit
        if overflow > 0:
            del self_model.self_reflections[:overflow]

    # Self-reflection

    async def self_reflect(self) -> SelfModel:
        """
        Review recent experiences and refresh the self-model

        Returns:
            The updated self-model
        """

        if self.status == AgentStatus.CREATED:
            raise NotRunningError(f"Agent {self.identity.name} has not been initialized")

        async with self._lock:
            experiences = await self.memory.get_recent_experiences(self.config.reflection_window)
            self_model = await self.memory.get_self_model()

            # Interaction counts are kept by process_message; the analyzer only supplies topics and patterns
            summary = await self.memory.get_experience_summary()
            self_model.experience.common_topics = summary.common_topics
            self_model.experience.success_patterns = summary.success_patterns

            self_model.knowledge_gaps = self._identify_knowledge_gaps(experiences)
            self_model.learning_objectives = [
                f"Improve knowledge in {gap} area within 30 days" for gap in self_model.knowledge_gaps
            ]
            self_model.relationships = self._build_relationship_models(self_model)
            self_model.behavioral_patterns = [pattern.pattern for pattern in self_model.experience.success_patterns]

            self._assess_decisions(self_model)
            self_model.improvement_areas = [
                name for name, score in self_model.self_assessment.model_dump(exclude={"growth_rate"}).items()
                if score < BASELINE_COMPETENCE
            ]

            self._log_reflection(self_model, SelfReflection(
                trigger="self-reflection",
                self_assessment=self_model.self_assessment.model_copy()
            ))
            self_model.reflection_competence = self_model.self_assessment.competence
            self_model.last_reflection = utc_now()

            await self.memory.store_self_model(self_model)
            await self.memory.store_experience(ExperienceEntry(
                type="self-reflection",
                context="Internal self-analysis",
                action="Performed self-reflection cycle",
                outcome="Updated self-model with insights",
                feedback="Self-reflection completed successfully"
            ))

        logger.debug(f"Agent {self.identity.name} completed self-reflection")
        return self_model

    @staticmethod
    def _identify_knowledge_gaps(experiences: List[ExperienceEntry]) -> List[str]:
        """Contexts of recent interactions answered with low confidence"""

        gaps = [
            experience.context for experience in experiences
            if experience.type == "interaction"
            and experience.confidence is not None
            and experience.confidence < KNOWLEDGE_GAP_CONFIDENCE
        ]
        return list(dict.fromkeys(gaps))

    @staticmethod
    def _build_relationship_models(self_model: SelfModel) -> Dict[str, RelationshipModel]:
        by_counterpart: Dict[str, List[DecisionPattern]] = {}
        for pattern in self_model.decision_patterns.values():
            if pattern.counterpart_id:
                by_counterpart.setdefault(pattern.counterpart_id, []).append(pattern)

        return {
            agent_id: RelationshipModel(
                agent_id=agent_id,
                interaction_count=len(patterns),
                last_interaction=max(pattern.timestamp for pattern in patterns),
                average_effectiveness=mean(pattern.effectiveness for pattern in patterns)
            )
            for agent_id, patterns in by_counterpart.items()
        }

    @staticmethod
    def _assess_decisions(self_model: SelfModel):
        assessment = self_model.self_assessment

        if self_model.decision_patterns:
            assessment.decision_quality = mean(
                pattern.effectiveness for pattern in self_model.decision_patterns.values()
            )

        if self_model.relationships:
            assessment.collaboration_effectiveness = mean(
                relationship.average_effectiveness for relationship in self_model.relationships.values()
            )

        # Growth is measured against the previous reflection, or the starting baseline
        baseline = self_model.reflection_competence
        if baseline is None:
            baseline = BASELINE_COMPETENCE
        assessment.growth_rate = assessment.competence - baseline
