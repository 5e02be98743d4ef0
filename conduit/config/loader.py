"""Load and validate the read-only YAML files Conduit consumes.

Two files, both optional:
  1. registry.yaml — bundled list of known components, used as the discovery
     fallback when the remote search returns nothing.
  2. components.yaml — the first-generation static config, read only by the
     legacy import adapter.

Neither file is ever written by Conduit.
"""

import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import ValidationError

from conduit.config.schema import LegacyConfigFile, RegistryFile
from conduit.types import DiscoveredCandidate

logger = logging.getLogger(__name__)


def _read_yaml(path: Path) -> Optional[dict]:
    """Return the parsed mapping, or None when the file is missing or unusable."""
    if not path.exists():
        return None
    try:
        raw = yaml.safe_load(path.read_text())
    except (yaml.YAMLError, OSError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return None
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        logger.warning("%s must contain a YAML mapping, got %s", path, type(raw).__name__)
        return None
    return raw


def load_registry_yaml(path: Optional[Path]) -> list[DiscoveredCandidate]:
    """Load registry.yaml → list of DiscoveredCandidate with ``source='local_registry'``.

    Args:
        path: Location of registry.yaml. ``None`` or a missing file yields ``[]``.
    """
    if path is None:
        return []
    raw = _read_yaml(Path(path).expanduser())
    if raw is None:
        return []
    try:
        registry = RegistryFile.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Invalid registry file %s: %s", path, exc)
        return []

    candidates = []
    for name, entry in registry.components.items():
        candidates.append(DiscoveredCandidate(
            name=name,
            full_name=entry.package,
            description=entry.description,
            url=entry.url,
            topics=entry.topics,
            stars=max(0, entry.stars),
            language=entry.language,
            license=entry.license,
            source="local_registry",
        ))
    return candidates


def load_legacy_config_yaml(path: Path) -> Optional[LegacyConfigFile]:
    """Load the first-generation components.yaml.

    Returns:
        The validated file, or ``None`` if it does not exist or cannot be parsed.
    """
    raw = _read_yaml(Path(path).expanduser())
    if raw is None:
        return None
    try:
        return LegacyConfigFile.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Invalid legacy config file %s: %s", path, exc)
        return None
