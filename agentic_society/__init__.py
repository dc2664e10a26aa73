
"""
Agentic society: a hierarchy of self-aware agents sharing an organizational knowledge graph
"""

from .config import SocietyConfig, load_config
from .errors import (
    AgenticSocietyError, NotFoundError, AlreadyExistsError, PermissionDeniedError,
    NotRunningError, InvariantViolationError
)
from .models import AgentRole, AgentStatus
from .society import (
    AgenticSocietyManager, AgenticTask, AgentSpec, GroupChatEntry, GroupChatResult, TaskResult, setup_logging
)

__all__ = [
    "SocietyConfig",
    "load_config",
    "AgenticSocietyError",
    "NotFoundError",
    "AlreadyExistsError",
    "PermissionDeniedError",
    "NotRunningError",
    "InvariantViolationError",
    "AgentRole",
    "AgentStatus",
    "AgenticSocietyManager",
    "AgenticTask",
    "AgentSpec",
    "GroupChatEntry",
    "GroupChatResult",
    "TaskResult",
    "setup_logging"
]
