"""Typed exception hierarchy. Every error the component manager can raise."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from conduit.types import ProcessOutcome


class ConduitError(Exception):
    """Base exception for all Conduit errors."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.details = details or {}


# ── Package names ───────────────────────────────────────────────────────────


class InvalidPackageName(ConduitError):
    """Package identifier fails the vendor/package grammar or length check."""
    def __init__(self, reason: str, input: str = ""):
        super().__init__(
            f"Invalid package name {input!r}: {reason}. "
            "Must follow the vendor/package naming convention "
            "(lowercase letters, digits and single '.', '_' or '-' separators).",
            details={"reason": reason, "input": input},
        )
        self.reason = reason
        self.input = input


# ── Provenance ──────────────────────────────────────────────────────────────


class ProvenanceError(ConduitError):
    """Base class for provenance verification failures."""
    def __init__(self, message: str, package_name: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.package_name = package_name


class PackageNotFound(ProvenanceError):
    """The package index does not know the package."""
    def __init__(self, package_name: str):
        super().__init__(
            f"Package '{package_name}' not found on the package index. "
            "Check the spelling or run 'conduit components discover' to list available components.",
            package_name=package_name,
        )


class MissingMarker(ProvenanceError):
    """The package exists but does not carry the marker topic."""
    def __init__(self, package_name: str, marker: str):
        super().__init__(
            f"Package '{package_name}' exists but does not have the required topic '{marker}'. "
            "Only verified Conduit components can be installed.",
            package_name=package_name,
        )
        self.marker = marker


class VerificationFailed(ProvenanceError):
    """Transport-level failure while verifying provenance. Fails closed."""
    def __init__(self, package_name: str, reason: str):
        super().__init__(
            f"Could not verify package '{package_name}': {reason}. "
            "Installation was blocked; retry once the network is reachable.",
            package_name=package_name,
        )
        self.reason = reason


# ── Processes ───────────────────────────────────────────────────────────────


class ProcessFailure(ConduitError):
    """The external package manager exited non-zero or timed out."""
    def __init__(self, package_name: str, outcome: "ProcessOutcome", action: str = "install"):
        stderr = (outcome.stderr or outcome.stdout or "").strip()
        super().__init__(
            f"Failed to {action} '{package_name}': {stderr[:500] or 'no output captured'}",
            details={"exit_code": outcome.exit_code, "timed_out": outcome.timed_out},
        )
        self.package_name = package_name
        self.outcome = outcome
        self.action = action
        self.stderr = outcome.stderr


# ── Store ───────────────────────────────────────────────────────────────────


class StoreError(ConduitError):
    """Base class for state store failures."""
    pass


class StoreUninitialized(StoreError):
    """The store was used before its tables were created."""
    def __init__(self, location: str = ""):
        super().__init__(
            f"Conduit storage not initialized{f' at {location}' if location else ''}. "
            "Run: conduit storage init",
            details={"location": location},
        )
        self.location = location


class InvalidComponentRecord(StoreError):
    """A component record or state document failed structural validation."""
    def __init__(self, message: str, violations: list = None, **kwargs):
        super().__init__(message, **kwargs)
        self.violations = violations or []


# ── Component lifecycle ─────────────────────────────────────────────────────


class ComponentError(ConduitError):
    """Base class for lifecycle errors about a named component."""
    def __init__(self, message: str, component_name: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.component_name = component_name


class ComponentNotInstalled(ComponentError):
    """Uninstall (or lookup) requested for a name absent from the store."""
    def __init__(self, component_name: str):
        super().__init__(
            f"Component '{component_name}' is not installed. "
            "Run 'conduit components list' to see installed components.",
            component_name=component_name,
        )


class ComponentNotDiscovered(ComponentError):
    """Install requested for a name that discovery did not return."""
    def __init__(self, component_name: str):
        super().__init__(
            f"Component '{component_name}' was not found in discovery results. "
            "Run 'conduit components discover' to list available components.",
            component_name=component_name,
        )


class ComponentAlreadyInstalled(ComponentError):
    """Install requested for a component that is already active."""
    def __init__(self, component_name: str):
        super().__init__(
            f"Component '{component_name}' is already installed. "
            f"Run 'conduit components uninstall {component_name}' first to reinstall.",
            component_name=component_name,
        )


class InstallCancelled(ComponentError):
    """The injected confirmation callback declined the operation."""
    pass
