
"""
Shared enums and helpers for the agentic society
"""

import uuid
from datetime import datetime, timezone
from enum import Enum


class AgentRole(str, Enum):
    """Roles in the organization"""

    # Executive positions
    CEO = "CEO"
    COO = "COO"
    CTO = "CTO"
    CFO = "CFO"
    CMO = "CMO"
    CHRO = "CHRO"
    CISO = "CISO"
    CAO = "CAO"

    # Management positions
    ENGINEERING_MANAGER = "Engineering Manager"
    PRODUCT_MANAGER = "Product Manager"
    TEAM_LEAD = "Team Lead"
    PROJECT_MANAGER = "Project Manager"
    TECHNICAL_LEAD = "Technical Lead"
    SCRUM_MASTER = "Scrum Master"

    # Individual contributor positions
    SENIOR_DEVELOPER = "Senior Developer"
    SDE1 = "Software Development Engineer I"
    SDE2 = "Software Development Engineer II"
    SDE3 = "Software Development Engineer III"
    JUNIOR_DEVELOPER = "Junior Developer"
    INTERN = "Intern"

    # Specialized individual contributors
    DATA_SCIENTIST = "Data Scientist"
    DEVOPS_ENGINEER = "DevOps Engineer"
    SECURITY_ENGINEER = "Security Engineer"
    QA_ENGINEER = "QA Engineer"
    UX_DESIGNER = "UX Designer"
    SYSTEM_ARCHITECT = "System Architect"
    BUSINESS_ANALYST = "Business Analyst"
    TECHNICAL_WRITER = "Technical Writer"
    RESEARCH_SCIENTIST = "Research Scientist"

    # Support roles
    HR_SPECIALIST = "HR Specialist"
    FINANCIAL_ANALYST = "Financial Analyst"
    OPERATIONS_COORDINATOR = "Operations Coordinator"
    ADMINISTRATIVE_ASSISTANT = "Administrative Assistant"
    ORGANIZATIONAL_COORDINATOR = "Organizational Coordinator"
    KNOWLEDGE_MANAGER = "Knowledge Manager"
    PROCESS_IMPROVEMENT = "Process Improvement Specialist"


class RoleTier(str, Enum):
    """Tiers of the organization, each owning a disjoint level band"""
    EXECUTIVE = "executive"                     # levels 0-1
    MANAGEMENT = "management"                   # levels 2-3
    INDIVIDUAL_CONTRIBUTOR = "individual_contributor"  # levels 4-9
    SUPPORT = "support"                         # level 10


class AgentStatus(str, Enum):
    """Lifecycle of an agent"""
    CREATED = "created"
    INITIALIZED = "initialized"
    RUNNING = "running"
    STOPPED = "stopped"


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"
    CANCELLED = "cancelled"


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ChannelType(str, Enum):
    DIRECT = "direct"
    GROUP = "group"
    BROADCAST = "broadcast"
    PUBLIC = "public"


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    ENDED = "ended"
    PAUSED = "paused"


def utc_now() -> datetime:
    """Timezone-aware current time"""
    return datetime.now(timezone.utc)


def generate_id(prefix: str) -> str:
    """Collision-resistant identifier with a readable prefix"""
    return f"{prefix}-{uuid.uuid4().hex}"
