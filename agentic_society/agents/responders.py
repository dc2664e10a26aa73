
"""
Response generation for agents
Agents consume any object with a matching `generate` coroutine
"""

import asyncio
from typing import Dict, Optional, Any, Callable, Protocol
from pydantic import BaseModel, Field
from loguru import logger
import dspy

from .agent_identity import AgentIdentity
from ..memory.agent_memory import SelfModel
from ..signatures import AgentPersona, AgentResponseSignature


class GeneratedResponse(BaseModel):
    content: str
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)


class ResponseGenerator(Protocol):
    """Produces an agent's reply to an incoming message"""

    async def generate(self, identity: AgentIdentity, message: str, self_model: SelfModel) -> GeneratedResponse:
        ...


class TemplateResponseGenerator:
    """Deterministic reply naming the agent and its role"""

    def __init__(self, confidence: float = 0.8):
        self.confidence = confidence

    async def generate(self, identity: AgentIdentity, message: str, self_model: SelfModel) -> GeneratedResponse:
        return GeneratedResponse(
            content=f"This is a response from {identity.name} ({identity.role.value}).",
            confidence=self.confidence
        )


def _clamp_confidence(value: Any) -> float:
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Unparseable confidence from response model: {value!r}")
        return 0.5
    return min(1.0, max(0.0, confidence))


class DSPyResponseGenerator:
    """
    Replies produced by a DSPY predictor over AgentResponseSignature.

    The predictor is synchronous, so it runs in a worker thread to keep the
    event loop free. When `llm_config` is given the call runs inside a
    dspy.context with an LM built from it; otherwise the globally configured LM is used.
    """

    def __init__(
        self,
        llm_config: Optional[Dict[str, Any]] = None,
        predictor: Optional[Callable[..., Any]] = None
    ):
        self.llm_config = llm_config
        self.predictor = predictor or dspy.Predict(AgentResponseSignature)

    def _predict(self, persona: AgentPersona, message: str, self_assessment: Dict[str, Any]) -> Any:
        if self.llm_config:
            with dspy.context(lm=dspy.LM(**self.llm_config)):
                return self.predictor(persona=persona, message=message, self_assessment=self_assessment)
        return self.predictor(persona=persona, message=message, self_assessment=self_assessment)

    async def generate(self, identity: AgentIdentity, message: str, self_model: SelfModel) -> GeneratedResponse:
        persona = AgentPersona(
            name=identity.name,
            role=identity.role.value,
            department=identity.department,
            capabilities=list(identity.capabilities),
            knowledge_areas=list(identity.knowledge_areas),
            limitations=list(identity.limitations),
            personality_traits=list(identity.personality_traits)
        )

        prediction = await asyncio.to_thread(
            self._predict, persona, message, self_model.self_assessment.model_dump()
        )

        return GeneratedResponse(
            content=str(prediction.response),
            confidence=_clamp_confidence(prediction.confidence)
        )
