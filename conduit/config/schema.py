"""Pydantic models for YAML file validation.

The registry entries mirror DiscoveredCandidate but accept the looser shape
people write by hand (``package`` instead of ``full_name``, missing fields).
"""

from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator


class RegistryEntryYAML(BaseModel):
    """One component listed in the read-only local registry."""

    package: str
    description: str = "No description available"
    url: str = ""
    topics: list[str] = Field(default_factory=list)
    stars: int = 0
    language: str = "Unknown"
    license: str = "No license"


class RegistryFile(BaseModel):
    """Root schema for registry.yaml: ``components: {name: entry}``."""
    components: dict[str, RegistryEntryYAML] = Field(default_factory=dict)


class LegacyComponentYAML(BaseModel):
    """A component as the first storage generation wrote it."""

    package: str
    description: Optional[str] = None
    version: Optional[str] = None
    commands: list[str] = Field(default_factory=list)
    env_vars: list[str] = Field(default_factory=list)
    service_providers: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    url: Optional[str] = None
    stars: int = 0
    status: str = "active"
    installed_at: Optional[str] = None

    @field_validator("commands", "env_vars", "service_providers", "topics", mode="before")
    @classmethod
    def coerce_list(cls, v):
        # The old writer dumped PHP-style indexed maps ({0: "x", 1: "y"})
        if isinstance(v, dict):
            return [v[k] for k in sorted(v)]
        return v or []


class LegacyConfigFile(BaseModel):
    """Root schema for the legacy components.yaml."""
    installed: dict[str, LegacyComponentYAML] = Field(default_factory=dict)
    settings: dict[str, Any] = Field(default_factory=dict)
