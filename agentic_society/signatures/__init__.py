
"""
DSPY Signature classes for agent responses
"""

from .agent_response import AgentPersona, AgentResponseSignature

__all__ = [
    "AgentPersona",
    "AgentResponseSignature"
]
