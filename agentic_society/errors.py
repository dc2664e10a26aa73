
"""
Error taxonomy for the agentic society
"""


class AgenticSocietyError(Exception):
    """Base class for all society errors"""


class NotFoundError(AgenticSocietyError):
    """Unknown agent, node, conversation or edge endpoint"""


class AlreadyExistsError(AgenticSocietyError):
    """Duplicate agent id on registration"""


class PermissionDeniedError(AgenticSocietyError):
    """Communication or conversation access was not authorized"""


class NotRunningError(AgenticSocietyError):
    """Message delivered to an agent that is not running"""


class InvariantViolationError(AgenticSocietyError):
    """Hierarchy references are dangling or cyclic"""
