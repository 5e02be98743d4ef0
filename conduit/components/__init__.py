"""Conduit component lifecycle — public API surface."""

from conduit.components.validator import validate_package_name, is_valid_package_name
from conduit.components.runner import SubprocessRunner
from conduit.components.discovery import RegistryDiscoveryClient
from conduit.components.provenance import ProvenanceVerifier
from conduit.components.installer import PackageInstaller, failure_hint
from conduit.components.detector import ServiceHookDetector, extract_command_names
from conduit.components.manager import ComponentManager

__all__ = [
    "validate_package_name",
    "is_valid_package_name",
    "SubprocessRunner",
    "RegistryDiscoveryClient",
    "ProvenanceVerifier",
    "PackageInstaller",
    "failure_hint",
    "ServiceHookDetector",
    "extract_command_names",
    "ComponentManager",
]
