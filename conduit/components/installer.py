"""PackageInstaller — validate, verify, then run the package manager."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from conduit.components.provenance import ProvenanceVerifier
from conduit.components.runner import SubprocessRunner
from conduit.components.validator import validate_package_name
from conduit.types import DiscoveredCandidate, ProcessOutcome

logger = logging.getLogger(__name__)

# Advisory only: used to append a next step to a failure message, never for control flow
_FAILURE_HINTS: list[tuple[tuple[str, ...], str]] = [
    (("timed out", "timeout"),
     "The package manager took too long. Check your network or raise CONDUIT_INSTALL_TIMEOUT."),
    (("version constraint", "conflict", "requirements could not be resolved"),
     "The component is incompatible with installed dependencies. Try updating Conduit first."),
    (("could not find", "not found"),
     "The package may not be published yet. Run 'conduit components discover' to list installable components."),
    (("could not start",),
     "The package manager binary is missing. Install it or set CONDUIT_PACKAGE_MANAGER."),
]


def failure_hint(stderr: str) -> Optional[str]:
    """Return a user-facing hint for a known failure pattern in *stderr*."""
    text = (stderr or "").lower()
    for needles, hint in _FAILURE_HINTS:
        if any(n in text for n in needles):
            return hint
    return None


class PackageInstaller:
    """Adds and removes component packages through the external package manager.

    Sequence for install (strict, each step short-circuits the rest):
        1. ``validate_package_name`` (before any request or process)
        2. ``ProvenanceVerifier.verify`` (before any process)
        3. ``<package_manager> require <name> --no-interaction --no-progress --prefer-dist``

    Args:
        verifier: Provenance verifier.
        runner: Subprocess runner.
        app_root: Working directory for the package manager.
        package_manager: Executable name or path.
        timeout: Seconds before the package manager is killed.
    """

    def __init__(
        self,
        verifier: ProvenanceVerifier,
        runner: Optional[SubprocessRunner] = None,
        app_root: Path = Path("."),
        package_manager: str = "composer",
        timeout: float = 300.0,
    ) -> None:
        self._verifier = verifier
        self._runner = runner or SubprocessRunner()
        self._app_root = Path(app_root)
        self._package_manager = package_manager
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: Any, runner: Optional[SubprocessRunner] = None) -> "PackageInstaller":
        return cls(
            verifier=ProvenanceVerifier.from_config(config),
            runner=runner,
            app_root=config.app_root,
            package_manager=config.package_manager,
            timeout=config.install_timeout,
        )

    async def install(self, candidate: DiscoveredCandidate) -> ProcessOutcome:
        """Install *candidate.full_name*.

        Returns:
            The captured :class:`ProcessOutcome`. A non-zero exit is returned,
            not raised.

        Raises:
            InvalidPackageName: Name fails the grammar. Nothing else ran.
            ProvenanceError: Verification failed. No process was spawned.
        """
        package_name = validate_package_name(candidate.full_name)
        report = await self._verifier.verify(candidate)
        logger.info("Verified '%s' via %s", package_name, report.evidence)

        argv = [
            self._package_manager, "require", package_name,
            "--no-interaction", "--no-progress", "--prefer-dist",
        ]
        logger.info("Installing component package: %s", package_name)
        return await self._runner.run(argv, self._app_root, self._timeout)

    async def remove(self, package_name: str) -> ProcessOutcome:
        """Remove an installed package. Provenance is not re-checked.

        Raises:
            InvalidPackageName: Name fails the grammar. Nothing ran.
        """
        package_name = validate_package_name(package_name)
        argv = [
            self._package_manager, "remove", package_name,
            "--no-interaction", "--no-progress",
        ]
        logger.info("Removing component package: %s", package_name)
        return await self._runner.run(argv, self._app_root, self._timeout)
