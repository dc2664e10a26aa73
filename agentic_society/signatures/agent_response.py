
"""
DSPY Signatures for agent message responses
"""

import dspy
from typing import Dict, List, Any
from pydantic import BaseModel, Field


class AgentPersona(BaseModel):
    """Who the agent is when it answers"""
    name: str
    role: str
    department: str
    capabilities: List[str] = Field(default_factory=list)
    knowledge_areas: List[str] = Field(default_factory=list)
    limitations: List[str] = Field(default_factory=list)
    personality_traits: List[str] = Field(default_factory=list)


class AgentResponseSignature(dspy.Signature):
    """
    Respond to a message as a member of the organization.
    Stay within the persona's role, capabilities and limitations, use the
    provided context where relevant, and rate how confident you are in the answer.
    """

    persona: AgentPersona = dspy.InputField(description="Identity of the responding agent")
    message: str = dspy.InputField(description="Incoming message, including any retrieved context")
    self_assessment: Dict[str, Any] = dspy.InputField(description="Agent's current self-assessment scores")

    response: str = dspy.OutputField(description="Reply to send back to the sender")
    confidence: float = dspy.OutputField(description="Confidence in the reply between 0.0 and 1.0")
