"""All shared types and enums. Everything imports from here."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dedupe(values: list[str]) -> list[str]:
    seen: dict[str, None] = {}
    for v in values:
        if v and v not in seen:
            seen[v] = None
    return list(seen)


# ── Enums ──────────────────────────────────────────────────────────────

class ComponentStatus(str, Enum):
    ACTIVE = "active"       # installed and usable
    INACTIVE = "inactive"   # tracked but disabled

class LifecycleState(str, Enum):
    UNKNOWN = "unknown"
    DISCOVERED = "discovered"
    INSTALLING = "installing"
    ACTIVE = "active"
    REMOVING = "removing"


# ── Core Data Shapes ───────────────────────────────────────────────────

class DiscoveredCandidate(BaseModel):
    """A package found via discovery but not installed yet. Never persisted."""
    name: str
    full_name: str                       # canonical vendor/package, required to install
    description: str = "No description available"
    url: str = ""
    topics: list[str] = Field(default_factory=list)
    updated_at: Optional[str] = None
    stars: int = Field(default=0, ge=0)
    language: str = "Unknown"
    license: str = "No license"
    source: str = "github"               # "github" | "local_registry"


class Component(BaseModel):
    """An installed extension tracked by the state store."""
    name: str
    package: str
    description: Optional[str] = None
    version: Optional[str] = None
    commands: list[str] = Field(default_factory=list)
    service_hooks: list[str] = Field(default_factory=list)
    env_vars: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    url: Optional[str] = None
    stars: int = Field(default=0, ge=0)
    status: ComponentStatus = ComponentStatus.ACTIVE
    installed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("commands", "service_hooks", "env_vars", "topics", mode="after")
    @classmethod
    def dedupe(cls, v: list[str]) -> list[str]:
        return _dedupe(v)

    @property
    def is_active(self) -> bool:
        return self.status == ComponentStatus.ACTIVE


class ServiceHookRegistration(BaseModel):
    """One hook identifier owned by exactly one component."""
    hook_id: str
    component_name: str
    enabled: bool = True


class ProcessOutcome(BaseModel):
    """Captured result of one external package-manager invocation."""
    succeeded: bool
    stdout: str = ""
    stderr: str = ""
    exit_code: Optional[int] = None
    timed_out: bool = False
    command: list[str] = Field(default_factory=list)


class ProvenanceReport(BaseModel):
    """Evidence that a candidate may be installed."""
    package_name: str
    marker: str
    evidence: str                        # "index_keywords" | "repository_topics"
    repository_url: Optional[str] = None


class MigrationReport(BaseModel):
    """Counts imported from the legacy storage generations."""
    components_migrated: int = 0
    settings_migrated: int = 0
    hooks_migrated: int = 0
    sources: list[str] = Field(default_factory=list)


class InstallResult(BaseModel):
    """What the orchestrator hands back after a successful install."""
    component: Component
    outcome: ProcessOutcome
