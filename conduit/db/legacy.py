"""Read-only import adapters for the two older storage generations.

Generation 1 kept installed components in a static ``components.yaml``
that the CLI rewrote at runtime. Generation 2 moved everything into a single
``conduit.json`` document. Neither file is written here; the store imports
what they contain and never consults them again.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from conduit.config.loader import load_legacy_config_yaml
from conduit.types import Component

logger = logging.getLogger(__name__)

# Top-level sections generation 2 always wrote
DOCUMENT_SECTIONS = ("installed", "settings")
COMPONENT_REQUIRED_FIELDS = ("package", "status", "installed_at")


@dataclass
class LegacySnapshot:
    """Everything recovered from the legacy files, ready to upsert."""

    components: dict[str, Component] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)
    sources: list[str] = field(default_factory=list)

    def merge(self, other: "LegacySnapshot") -> "LegacySnapshot":
        """Entries of *other* win over entries of self for the same key."""
        return LegacySnapshot(
            components={**self.components, **other.components},
            settings={**self.settings, **other.settings},
            sources=self.sources + other.sources,
        )


def validate_document(document: Any) -> list[str]:
    """Structural checks for a state document.

    Returns:
        List of violation strings. Empty list means the document is valid.
    """
    if not isinstance(document, dict):
        return ["document must be an object"]

    errors: list[str] = []
    for section in DOCUMENT_SECTIONS:
        if section not in document:
            errors.append(f"Missing required section: {section}")
        elif not isinstance(document[section], dict):
            errors.append(f"Section '{section}' must be an object")

    installed = document.get("installed")
    if isinstance(installed, dict):
        for name, component in installed.items():
            if not isinstance(component, dict):
                errors.append(f"Component '{name}' must be an object")
                continue
            for required in COMPONENT_REQUIRED_FIELDS:
                if component.get(required) in (None, ""):
                    errors.append(f"Component '{name}' missing required field: {required}")
    return errors


def _component_from_legacy(name: str, record: dict) -> Optional[Component]:
    from conduit.components.validator import is_valid_package_name

    if not is_valid_package_name(record.get("package")):
        logger.warning(
            "Skipping legacy component '%s': invalid package name %r", name, record.get("package")
        )
        return None
    data = dict(record)
    data["name"] = name
    if "service_providers" in data and "service_hooks" not in data:
        data["service_hooks"] = data.pop("service_providers")
    try:
        return Component.model_validate(data)
    except ValidationError as exc:
        logger.warning("Skipping legacy component '%s': %s", name, exc)
        return None


def read_legacy_config(path: Path) -> LegacySnapshot:
    """Generation 1: ``installed`` and ``settings`` mappings from components.yaml."""
    legacy = load_legacy_config_yaml(path)
    if legacy is None:
        return LegacySnapshot()

    snapshot = LegacySnapshot(sources=[str(path)])
    for name, entry in legacy.installed.items():
        component = _component_from_legacy(name, entry.model_dump())
        if component is not None:
            snapshot.components[name] = component
    snapshot.settings.update(legacy.settings)
    return snapshot


def read_legacy_document(path: Path) -> LegacySnapshot:
    """Generation 2: the conduit.json document.

    ``discovery`` options are carried over as ``discovery.<key>`` settings;
    ``registry`` and ``_meta`` are dropped.
    """
    path = Path(path).expanduser()
    if not path.exists():
        return LegacySnapshot()
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read legacy document %s: %s", path, exc)
        return LegacySnapshot()
    if not isinstance(document, dict):
        logger.warning("Legacy document %s is not a JSON object", path)
        return LegacySnapshot()

    snapshot = LegacySnapshot(sources=[str(path)])
    installed = document.get("installed")
    if isinstance(installed, dict):
        for name, record in installed.items():
            if not isinstance(record, dict):
                logger.warning("Skipping legacy component '%s': not an object", name)
                continue
            component = _component_from_legacy(name, record)
            if component is not None:
                snapshot.components[name] = component

    settings = document.get("settings")
    if isinstance(settings, dict):
        snapshot.settings.update(settings)
    discovery = document.get("discovery")
    if isinstance(discovery, dict):
        for key, value in discovery.items():
            snapshot.settings[f"discovery.{key}"] = value
    return snapshot


def collect_legacy_state(config_path: Optional[Path], document_path: Optional[Path]) -> LegacySnapshot:
    """Both generations merged; the newer document wins on conflicts."""
    snapshot = LegacySnapshot()
    if config_path is not None:
        snapshot = snapshot.merge(read_legacy_config(config_path))
    if document_path is not None:
        snapshot = snapshot.merge(read_legacy_document(document_path))
    return snapshot
