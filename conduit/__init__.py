"""Conduit — component manager for the Conduit CLI.

Usage:
    from conduit import ComponentManager
    from conduit.config import config

    manager = ComponentManager.from_config(config)
    await manager.initialize_storage()
    result = await manager.install("widgets")
"""

from conduit.types import (
    Component, ComponentStatus, DiscoveredCandidate, InstallResult,
    LifecycleState, MigrationReport, ProcessOutcome, ProvenanceReport,
    ServiceHookRegistration,
)
from conduit.exceptions import (
    ConduitError, InvalidPackageName, ProvenanceError, PackageNotFound,
    MissingMarker, VerificationFailed, ProcessFailure, StoreError,
    StoreUninitialized, InvalidComponentRecord, ComponentError,
    ComponentNotInstalled, ComponentNotDiscovered, ComponentAlreadyInstalled,
    InstallCancelled,
)
from conduit.config import ConduitConfig
from conduit.components import ComponentManager
from conduit.db.store import ComponentStateStore
from conduit.version import __version__

__all__ = [
    "Component", "ComponentStatus", "DiscoveredCandidate", "InstallResult",
    "LifecycleState", "MigrationReport", "ProcessOutcome", "ProvenanceReport",
    "ServiceHookRegistration",
    "ConduitError", "InvalidPackageName", "ProvenanceError", "PackageNotFound",
    "MissingMarker", "VerificationFailed", "ProcessFailure", "StoreError",
    "StoreUninitialized", "InvalidComponentRecord", "ComponentError",
    "ComponentNotInstalled", "ComponentNotDiscovered", "ComponentAlreadyInstalled",
    "InstallCancelled",
    "ConduitConfig", "ComponentManager", "ComponentStateStore",
    "__version__",
]
