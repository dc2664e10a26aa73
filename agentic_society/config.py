
"""
Configuration for the agentic society
Handles the seed roster, memory limits, reflection cadence and logging settings
"""

import os
import json
from typing import Dict, List, Optional, Any
from pathlib import Path
from pydantic import BaseModel, Field, field_validator, model_validator
from loguru import logger

from .models import AgentRole


ENV_PREFIX = "AGENTIC_SOCIETY_"


class SeedMember(BaseModel):
    """One member of the initial organization roster"""

    key: str = Field(..., description="Roster key, referenced by reports_to")
    name: str = Field(..., description="Human-readable agent name")
    role: AgentRole = Field(..., description="Organizational role")
    department: str = Field(..., description="Department name")
    reports_to: Optional[str] = Field(None, description="Key of the supervising member")


class OrganizationSeed(BaseModel):
    """Roster used to bootstrap the organization"""

    members: List[SeedMember] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_reporting_lines(self) -> "OrganizationSeed":
        """Supervisors must be declared before the members reporting to them"""
        seen = set()
        for member in self.members:
            if member.key in seen:
                raise ValueError(f"Duplicate seed member key: {member.key}")
            if member.reports_to is not None and member.reports_to not in seen:
                raise ValueError(
                    f"Seed member {member.key} reports to unknown or later member {member.reports_to}"
                )
            seen.add(member.key)
        return self


class PolicyDocument(BaseModel):
    """Company policy or procedure indexed into the knowledge graph"""

    name: str
    type: str = Field(default="policy", description="policy or procedure")
    content: str


DEFAULT_SEED = OrganizationSeed(members=[
    SeedMember(key="ceo", name="Alice Johnson", role=AgentRole.CEO, department="Executive"),
    SeedMember(key="cto", name="Bob Smith", role=AgentRole.CTO, department="Technology", reports_to="ceo"),
    SeedMember(key="cfo", name="Carol Davis", role=AgentRole.CFO, department="Finance", reports_to="ceo"),
    SeedMember(key="coo", name="David Wilson", role=AgentRole.COO, department="Operations", reports_to="ceo"),
])

DEFAULT_POLICIES = [
    PolicyDocument(name="Code of Conduct", type="policy", content="Company-wide code of conduct and ethical guidelines"),
    PolicyDocument(name="Security Policy", type="policy", content="Information security and data protection policies"),
    PolicyDocument(name="Development Process", type="procedure", content="Software development lifecycle procedures"),
    PolicyDocument(name="Communication Protocol", type="procedure", content="Internal communication standards and protocols"),
]


class SocietyConfig(BaseModel):
    """Top-level configuration for the society"""

    # Agent cadence
    reflection_interval_seconds: float = Field(default=300.0, gt=0, description="Seconds between background self-reflections")

    # Memory limits
    short_term_capacity: int = Field(default=10, ge=1, description="Short-term memory capacity")
    experience_limit: int = Field(default=100, ge=1, description="Experiences retained per agent")
    context_limit: int = Field(default=5, ge=1, description="Context snippets attached to a message")
    reflection_window: int = Field(default=10, ge=1, description="Recent experiences read per reflection")
    self_reflection_limit: int = Field(default=50, ge=1, description="Self-reflection log entries kept in the self-model")

    # Access rules
    conversation_join_roles: List[AgentRole] = Field(
        default_factory=lambda: [AgentRole.CEO, AgentRole.COO],
        description="Roles allowed to join conversations they are not part of"
    )

    # Logging
    log_level: str = Field(default="INFO", description="Console log level")
    logs_dir: Optional[Path] = Field(default=None, description="Directory for the rotating log file")

    # Organization bootstrap
    seed: OrganizationSeed = Field(default_factory=lambda: DEFAULT_SEED.model_copy(deep=True))
    policies: List[PolicyDocument] = Field(default_factory=lambda: list(DEFAULT_POLICIES))

    # Response generation
    llm_config: Optional[Dict[str, Any]] = Field(default=None, description="dspy.LM keyword arguments")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


def load_config(config_path: Optional[str] = None) -> SocietyConfig:
    """
    Load society configuration

    Args:
        config_path: Optional JSON file with SocietyConfig fields

    Returns:
        Configuration with environment overrides applied
    """

    config_data: Dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path, 'r') as f:
                config_data = json.load(f)
            logger.info(f"Loaded society configuration from {path}")
        else:
            logger.warning(f"Configuration file {path} not found, using defaults")

    # Environment variables take precedence over the file
    env_overrides = {
        "log_level": os.getenv(f"{ENV_PREFIX}LOG_LEVEL"),
        "reflection_interval_seconds": os.getenv(f"{ENV_PREFIX}REFLECTION_INTERVAL"),
        "logs_dir": os.getenv(f"{ENV_PREFIX}LOGS_DIR"),
    }

    for key, value in env_overrides.items():
        if value:
            config_data[key] = value

    return SocietyConfig(**config_data)
