
"""
Agent identities and the organizational hierarchy
Each identity places an agent in the hierarchy and derives its authority from its role
"""

from typing import Dict, List, Optional, Tuple
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..models import AgentRole, RoleTier, generate_id


class RoleProfile(BaseModel):
    """Fixed attributes derived from a role"""
    model_config = ConfigDict(frozen=True)

    tier: RoleTier
    level: int = Field(..., ge=0, description="Organizational level (0 = top)")
    authority_level: int = Field(..., description="Tie-breaker among peers at the same level")
    capabilities: Tuple[str, ...] = ()
    knowledge_areas: Tuple[str, ...] = ()
    limitations: Tuple[str, ...] = ()
    personality_traits: Tuple[str, ...] = ()


class AgentIdentity(BaseModel):
    """
    Immutable description of an agent's place in the hierarchy.
    Only the subordinate list changes after construction, and only through the coordinator.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: generate_id("agent"))
    name: str = Field(..., description="Human-readable agent name")
    role: AgentRole = Field(..., description="Organizational role")
    department: str = Field(..., description="Department name")
    level: int = Field(default=0, ge=0, description="Organizational level (0 = top)")
    authority_level: int = Field(default=0, description="Role-derived authority")

    # Hierarchy relationships
    supervisor_id: Optional[str] = None
    subordinates: List[str] = Field(default_factory=list)

    # Self-knowledge seeded into the self-model
    capabilities: Tuple[str, ...] = ()
    knowledge_areas: Tuple[str, ...] = ()
    limitations: Tuple[str, ...] = ()
    personality_traits: Tuple[str, ...] = ()

    @field_validator("subordinates")
    @classmethod
    def dedupe_subordinates(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def validate_relationships(self) -> "AgentIdentity":
        if self.supervisor_id == self.id:
            raise ValueError(f"Agent {self.id} cannot supervise itself")
        if self.id in self.subordinates:
            raise ValueError(f"Agent {self.id} cannot be its own subordinate")
        if self.supervisor_id is not None and self.supervisor_id in self.subordinates:
            raise ValueError(f"Agent {self.id} lists its supervisor as a subordinate")
        return self

    @property
    def tier(self) -> RoleTier:
        return ROLE_PROFILES[self.role].tier

    def has_authority_over(self, other: "AgentIdentity") -> bool:
        """
        Check if this agent has authority over another agent.

        A lower level always wins. At the same level the higher authority level wins.
        Peer ordering is not transitive across unrelated branches of the same level.
        """
        if self.level < other.level:
            return True

        if self.level == other.level:
            return self.authority_level > other.authority_level

        return False

    def reports_to(self, other: "AgentIdentity") -> bool:
        """Direct supervisor only"""
        return self.supervisor_id == other.id

    def can_delegate_to(self, other: "AgentIdentity") -> bool:
        """Delegation goes down the hierarchy or sideways to peers"""
        return self.has_authority_over(other) or self.level == other.level

    def attach_subordinate(self, agent_id: str) -> bool:
        """Record a new direct report. Returns False if already listed."""
        if agent_id == self.id:
            raise ValueError(f"Agent {self.id} cannot be its own subordinate")
        if agent_id in self.subordinates:
            return False
        self.subordinates.append(agent_id)
        return True

    def detach_subordinate(self, agent_id: str) -> bool:
        if agent_id not in self.subordinates:
            return False
        self.subordinates.remove(agent_id)
        return True


# Role attribute lists

_EXECUTIVE_BASE_CAPABILITIES = (
    "strategic-planning",
    "organizational-leadership",
    "high-level-decision-making",
    "resource-allocation",
    "stakeholder-management",
)

_EXECUTIVE_DETAILS: Dict[AgentRole, Dict[str, Tuple[str, ...]]] = {
    AgentRole.CEO: {
        "capabilities": ("overall-organizational-direction", "board-communication", "external-relations"),
        "knowledge_areas": ("business-strategy", "organizational-behavior", "market-dynamics", "corporate-governance"),
        "limitations": ("operational-details", "technical-implementation", "day-to-day-execution"),
        "personality_traits": ("visionary", "decisive", "externally-focused", "big-picture-thinking"),
    },
    AgentRole.COO: {
        "capabilities": ("operational-efficiency", "process-optimization", "cross-functional-coordination"),
        "knowledge_areas": ("operations-management", "process-optimization", "quality-assurance", "efficiency-metrics"),
        "limitations": ("technical-deep-dive", "financial-modeling", "marketing-creativity"),
        "personality_traits": ("efficient", "process-oriented", "implementation-focused", "cross-functional"),
    },
    AgentRole.CTO: {
        "capabilities": ("technology-vision", "technical-architecture", "innovation-leadership"),
        "knowledge_areas": ("software-architecture", "emerging-technologies", "technical-leadership", "R&D"),
        "limitations": ("financial-detailed-analysis", "marketing-creative-aspects", "hr-detailed-policies"),
        "personality_traits": ("innovative", "technically-astute", "future-focused", "creative"),
    },
    AgentRole.CFO: {
        "capabilities": ("financial-planning", "risk-management", "investment-strategy"),
        "knowledge_areas": ("financial-analysis", "risk-assessment", "capital-markets", "accounting-principles"),
        "limitations": ("technical-implementation-details", "product-design", "operational-execution"),
        "personality_traits": ("analytical", "risk-conscious", "detail-oriented", "financially-focused"),
    },
    AgentRole.CMO: {
        "capabilities": ("market-analysis", "brand-strategy", "customer-acquisition"),
        "knowledge_areas": ("marketing-strategy", "consumer-behavior", "brand-management", "digital-marketing"),
        "limitations": ("technical-implementation", "operational-details", "financial-detailed-modeling"),
        "personality_traits": ("creative", "customer-focused", "market-aware", "brand-conscious"),
    },
}

_EXECUTIVE_DEFAULTS = {
    "capabilities": (),
    "knowledge_areas": ("leadership", "strategy", "decision-making", "communication"),
    "limitations": ("deep-technical-implementation", "detailed-operational-tasks", "specialized-functional-tasks"),
    "personality_traits": ("strategic", "leadership-oriented", "decision-capable", "visionary"),
}

_TIER_ATTRIBUTES: Dict[RoleTier, Dict[str, Tuple[str, ...]]] = {
    RoleTier.MANAGEMENT: {
        "capabilities": ("team-leadership", "project-management", "performance-evaluation",
                         "resource-coordination", "intermediate-decision-making"),
        "knowledge_areas": ("team-management", "project-planning", "resource-allocation",
                            "performance-metrics", "intermediate-level-execution"),
        "limitations": ("high-level-strategic-planning", "external-stakeholder-management", "major-resource-allocation"),
        "personality_traits": ("organized", "people-oriented", "detail-conscious", "execution-focused"),
    },
    RoleTier.INDIVIDUAL_CONTRIBUTOR: {
        "capabilities": ("specialized-expertise", "task-execution", "problem-solving",
                         "technical-implementation", "collaboration"),
        "knowledge_areas": ("specialized-domain-knowledge", "technical-skills", "best-practices", "tools-and-technologies"),
        "limitations": ("strategic-decision-making", "resource-allocation", "team-leadership", "cross-functional-coordination"),
        "personality_traits": ("technical-focus", "task-oriented", "collaborative", "continuous-learning"),
    },
    RoleTier.SUPPORT: {
        "capabilities": ("operational-support", "process-coordination", "documentation",
                         "scheduling", "collaboration"),
        "knowledge_areas": ("organizational-policies", "internal-processes", "administrative-tools"),
        "limitations": ("strategic-decision-making", "technical-implementation", "team-leadership"),
        "personality_traits": ("reliable", "service-oriented", "organized", "detail-conscious"),
    },
}

# (tier, level, authority_level)
_ROLE_PLACEMENT: Dict[AgentRole, Tuple[RoleTier, int, int]] = {
    AgentRole.CEO: (RoleTier.EXECUTIVE, 0, 10),
    AgentRole.COO: (RoleTier.EXECUTIVE, 1, 9),
    AgentRole.CTO: (RoleTier.EXECUTIVE, 1, 9),
    AgentRole.CFO: (RoleTier.EXECUTIVE, 1, 9),
    AgentRole.CMO: (RoleTier.EXECUTIVE, 1, 9),
    AgentRole.CHRO: (RoleTier.EXECUTIVE, 1, 5),
    AgentRole.CISO: (RoleTier.EXECUTIVE, 1, 5),
    AgentRole.CAO: (RoleTier.EXECUTIVE, 1, 5),

    AgentRole.ENGINEERING_MANAGER: (RoleTier.MANAGEMENT, 2, 8),
    AgentRole.PRODUCT_MANAGER: (RoleTier.MANAGEMENT, 2, 8),
    AgentRole.TEAM_LEAD: (RoleTier.MANAGEMENT, 3, 7),
    AgentRole.TECHNICAL_LEAD: (RoleTier.MANAGEMENT, 3, 7),
    AgentRole.PROJECT_MANAGER: (RoleTier.MANAGEMENT, 3, 5),
    AgentRole.SCRUM_MASTER: (RoleTier.MANAGEMENT, 3, 5),

    AgentRole.SENIOR_DEVELOPER: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 4, 6),
    AgentRole.SYSTEM_ARCHITECT: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 4, 6),
    AgentRole.RESEARCH_SCIENTIST: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 4, 5),
    AgentRole.SDE3: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 5, 5),
    AgentRole.DATA_SCIENTIST: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 5, 5),
    AgentRole.SECURITY_ENGINEER: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 5, 5),
    AgentRole.SDE2: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 6, 5),
    AgentRole.DEVOPS_ENGINEER: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 6, 5),
    AgentRole.QA_ENGINEER: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 6, 5),
    AgentRole.BUSINESS_ANALYST: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 6, 5),
    AgentRole.SDE1: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 7, 5),
    AgentRole.UX_DESIGNER: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 7, 5),
    AgentRole.TECHNICAL_WRITER: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 7, 5),
    AgentRole.JUNIOR_DEVELOPER: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 8, 5),
    AgentRole.INTERN: (RoleTier.INDIVIDUAL_CONTRIBUTOR, 9, 5),

    AgentRole.HR_SPECIALIST: (RoleTier.SUPPORT, 10, 5),
    AgentRole.FINANCIAL_ANALYST: (RoleTier.SUPPORT, 10, 5),
    AgentRole.OPERATIONS_COORDINATOR: (RoleTier.SUPPORT, 10, 5),
    AgentRole.ADMINISTRATIVE_ASSISTANT: (RoleTier.SUPPORT, 10, 5),
    AgentRole.ORGANIZATIONAL_COORDINATOR: (RoleTier.SUPPORT, 10, 5),
    AgentRole.KNOWLEDGE_MANAGER: (RoleTier.SUPPORT, 10, 5),
    AgentRole.PROCESS_IMPROVEMENT: (RoleTier.SUPPORT, 10, 5),
}

TIER_LEVEL_BANDS: Dict[RoleTier, Tuple[int, int]] = {
    RoleTier.EXECUTIVE: (0, 1),
    RoleTier.MANAGEMENT: (2, 3),
    RoleTier.INDIVIDUAL_CONTRIBUTOR: (4, 9),
    RoleTier.SUPPORT: (10, 10),
}


def _build_role_profiles() -> Dict[AgentRole, RoleProfile]:
    profiles = {}

    for role, (tier, level, authority) in _ROLE_PLACEMENT.items():
        low, high = TIER_LEVEL_BANDS[tier]
        if not low <= level <= high:
            raise ValueError(f"Role {role.value} at level {level} is outside the {tier.value} band")

        if tier == RoleTier.EXECUTIVE:
            details = _EXECUTIVE_DETAILS.get(role, _EXECUTIVE_DEFAULTS)
            attributes = {
                "capabilities": _EXECUTIVE_BASE_CAPABILITIES + details["capabilities"],
                "knowledge_areas": details["knowledge_areas"],
                "limitations": details["limitations"],
                "personality_traits": details["personality_traits"],
            }
        else:
            attributes = _TIER_ATTRIBUTES[tier]

        profiles[role] = RoleProfile(tier=tier, level=level, authority_level=authority, **attributes)

    return profiles


ROLE_PROFILES: Dict[AgentRole, RoleProfile] = _build_role_profiles()


def create_identity(
    name: str,
    role: AgentRole,
    department: str,
    supervisor_id: Optional[str] = None,
    agent_id: Optional[str] = None
) -> AgentIdentity:
    """
    Create an identity with level, authority and self-knowledge taken from the role table

    Args:
        name: Human-readable name
        role: Organizational role
        department: Department name
        supervisor_id: ID of the direct supervisor, if any
        agent_id: Explicit ID (generated when omitted)

    Returns:
        The new identity
    """

    profile = ROLE_PROFILES[role]

    config = {
        "name": name,
        "role": role,
        "department": department,
        "level": profile.level,
        "authority_level": profile.authority_level,
        "supervisor_id": supervisor_id,
        "capabilities": profile.capabilities,
        "knowledge_areas": profile.knowledge_areas,
        "limitations": profile.limitations,
        "personality_traits": profile.personality_traits,
    }

    if agent_id is not None:
        config["id"] = agent_id

    return AgentIdentity(**config)


def _create_for_tier(tier: RoleTier, name: str, role: AgentRole, department: str,
                     supervisor_id: Optional[str], agent_id: Optional[str]) -> AgentIdentity:
    if ROLE_PROFILES[role].tier != tier:
        raise ValueError(f"Role {role.value} is not a {tier.value} role")
    return create_identity(name, role, department, supervisor_id=supervisor_id, agent_id=agent_id)


def create_executive_identity(name: str, role: AgentRole, department: str,
                              supervisor_id: Optional[str] = None,
                              agent_id: Optional[str] = None) -> AgentIdentity:
    return _create_for_tier(RoleTier.EXECUTIVE, name, role, department, supervisor_id, agent_id)


def create_management_identity(name: str, role: AgentRole, department: str,
                               supervisor_id: str,
                               agent_id: Optional[str] = None) -> AgentIdentity:
    return _create_for_tier(RoleTier.MANAGEMENT, name, role, department, supervisor_id, agent_id)


def create_individual_contributor_identity(name: str, role: AgentRole, department: str,
                                           supervisor_id: str,
                                           agent_id: Optional[str] = None) -> AgentIdentity:
    return _create_for_tier(RoleTier.INDIVIDUAL_CONTRIBUTOR, name, role, department, supervisor_id, agent_id)


def create_support_identity(name: str, role: AgentRole, department: str,
                            supervisor_id: str,
                            agent_id: Optional[str] = None) -> AgentIdentity:
    return _create_for_tier(RoleTier.SUPPORT, name, role, department, supervisor_id, agent_id)

