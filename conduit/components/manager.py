"""ComponentManager — the lifecycle facade the CLI talks to.

discover → install → detect → register, and lookup → remove → unregister.
The store is queried afresh on every call; nothing here caches component state.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Union

from conduit.components.detector import ServiceHookDetector
from conduit.components.discovery import RegistryDiscoveryClient
from conduit.components.installer import PackageInstaller
from conduit.config.loader import load_registry_yaml
from conduit.db.store import ComponentStateStore
from conduit.exceptions import (
    ComponentAlreadyInstalled,
    ComponentNotDiscovered,
    ComponentNotInstalled,
    InstallCancelled,
    ProcessFailure,
)
from conduit.types import (
    Component,
    ComponentStatus,
    DiscoveredCandidate,
    InstallResult,
    LifecycleState,
    MigrationReport,
)

logger = logging.getLogger(__name__)

# Confirmation callback: receives a prompt, returns whether to proceed
ConfirmCallback = Callable[[str], Union[bool, Awaitable[bool]]]


async def _ask(confirm: Optional[ConfirmCallback], prompt: str) -> bool:
    if confirm is None:
        return True
    answer = confirm(prompt)
    if asyncio.iscoroutine(answer):
        answer = await answer
    return bool(answer)


class ComponentManager:
    """Single orchestrator for the component lifecycle.

    Per component name only one transition runs at a time; a second install
    or uninstall of the same name waits for the first to finish.

    Args:
        store: Component state store.
        discovery: Remote discovery client.
        installer: Package installer (validation + provenance + subprocess).
        detector: Post-install introspection.
        registry_path: Optional read-only YAML registry used when discovery
            comes back empty.
        fallback_to_local: Whether the local registry may be used at all.
    """

    def __init__(
        self,
        store: ComponentStateStore,
        discovery: RegistryDiscoveryClient,
        installer: PackageInstaller,
        detector: ServiceHookDetector,
        registry_path: Optional[Path] = None,
        fallback_to_local: bool = True,
    ) -> None:
        self._store = store
        self._discovery = discovery
        self._installer = installer
        self._detector = detector
        self._registry_path = registry_path
        self._fallback_to_local = fallback_to_local

        # name -> (lock, number of callers holding or waiting on it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}
        self._transient: dict[str, LifecycleState] = {}

    @classmethod
    def from_config(cls, config: Any, runner=None) -> "ComponentManager":
        return cls(
            store=ComponentStateStore.from_config(config),
            discovery=RegistryDiscoveryClient.from_config(config),
            installer=PackageInstaller.from_config(config, runner=runner),
            detector=ServiceHookDetector.from_config(config),
            registry_path=config.registry_path,
            fallback_to_local=config.discovery_fallback_to_local,
        )

    @property
    def store(self) -> ComponentStateStore:
        return self._store

    @asynccontextmanager
    async def _transition(self, name: str):
        """Hold the lock for *name*; dropped once nobody holds or awaits it."""
        lock, users = self._locks.get(name, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[name] = (lock, users + 1)
        try:
            async with lock:
                yield
        finally:
            lock, users = self._locks[name]
            if users <= 1:
                del self._locks[name]
            else:
                self._locks[name] = (lock, users - 1)

    # ─── Queries ──────────────────────────────────────────────────────────────

    async def list_installed(self) -> dict[str, Component]:
        return await self._store.get_installed()

    async def get_setting(self, key: str, default: Any = None) -> Any:
        return await self._store.get_setting(key, default)

    async def set_setting(self, key: str, value: Any) -> None:
        await self._store.set_setting(key, value)

    async def state_of(self, name: str) -> LifecycleState:
        """Current lifecycle state of *name*.

        In-flight transitions (installing, removing) win over stored state.
        Without a transition, ``DISCOVERED`` is never reported since that
        would need a network call; the answer is ACTIVE or UNKNOWN.
        """
        if name in self._transient:
            return self._transient[name]
        if await self._store.is_installed(name):
            return LifecycleState.ACTIVE
        return LifecycleState.UNKNOWN

    async def initialize_storage(self, migrate: bool = False) -> Optional[MigrationReport]:
        """Create the store tables and optionally import the legacy files."""
        await self._store.initialize_if_needed()
        if migrate:
            return await self._store.migrate_from_legacy_format()
        return None

    # ─── Discovery ────────────────────────────────────────────────────────────

    async def discover(self) -> list[DiscoveredCandidate]:
        """Installable candidates, excluding names already active.

        Raises:
            StoreUninitialized: The store has not been initialized.
        """
        installed = await self._store.get_installed()
        candidates = await self._discovery.discover()
        if not candidates and self._fallback_to_local and self._registry_path:
            candidates = load_registry_yaml(self._registry_path)
            if candidates:
                logger.info("Discovery returned nothing; using %d local registry entries", len(candidates))

        available: list[DiscoveredCandidate] = []
        seen: set[str] = set()
        for candidate in candidates:
            if candidate.name in installed or candidate.name in seen:
                continue
            seen.add(candidate.name)
            available.append(candidate)
        return available

    def _match(self, candidates: list[DiscoveredCandidate], name: str) -> Optional[DiscoveredCandidate]:
        for candidate in candidates:
            if candidate.name == name or candidate.full_name == name:
                return candidate
        return None

    # ─── Install ──────────────────────────────────────────────────────────────

    async def install(self, name: str, confirm: Optional[ConfirmCallback] = None) -> InstallResult:
        """Install the discovered component *name* (alias or vendor/package).

        Raises:
            ComponentAlreadyInstalled: *name* is already active.
            ComponentNotDiscovered: Discovery did not return *name*.
            InstallCancelled: *confirm* declined.
            InvalidPackageName / ProvenanceError: Nothing was executed.
            ProcessFailure: The package manager failed; nothing was stored.
        """
        installed = await self._store.get_installed()
        for component in installed.values():
            if name in (component.name, component.package):
                raise ComponentAlreadyInstalled(component.name)

        candidate = self._match(await self.discover(), name)
        if candidate is None:
            raise ComponentNotDiscovered(name)

        # Alias and vendor/package spellings share one lock
        async with self._transition(candidate.name):
            if await self._store.is_installed(candidate.name):
                raise ComponentAlreadyInstalled(candidate.name)

            if not await _ask(confirm, f"Install {candidate.full_name}?"):
                raise InstallCancelled(
                    f"Installation of '{candidate.name}' cancelled.",
                    component_name=candidate.name,
                )

            self._transient[candidate.name] = LifecycleState.INSTALLING
            try:
                outcome = await self._installer.install(candidate)
                if not outcome.succeeded:
                    raise ProcessFailure(candidate.full_name, outcome, action="install")

                component = self._build_component(candidate)
                component = await self._store.register(candidate.name, component)
            finally:
                self._transient.pop(candidate.name, None)

        logger.info("Installed component '%s' (%s)", candidate.name, candidate.full_name)
        return InstallResult(component=component, outcome=outcome)

    def _build_component(self, candidate: DiscoveredCandidate) -> Component:
        package = candidate.full_name
        hooks: list[str] = []
        commands: list[str] = []
        env_vars: list[str] = []
        try:
            hooks = self._detector.detect_hooks(package)
            commands = self._detector.detect_declared_commands(package)
            commands += self._detector.detect_commands(hooks, package)
            env_vars = self._detector.detect_env_vars(package)
        except Exception as exc:
            logger.warning("Introspection of '%s' failed, registering without hooks: %s", package, exc)

        return Component(
            name=candidate.name,
            package=package,
            description=candidate.description,
            commands=commands,
            service_hooks=hooks,
            env_vars=env_vars,
            topics=candidate.topics,
            url=candidate.url or None,
            stars=candidate.stars,
            status=ComponentStatus.ACTIVE,
        )

    # ─── Uninstall ────────────────────────────────────────────────────────────

    async def uninstall(self, name: str, confirm: Optional[ConfirmCallback] = None) -> Component:
        """Remove the active component *name*.

        The store record is only deleted once the package manager succeeded.

        Raises:
            ComponentNotInstalled: *name* is not active.
            InstallCancelled: *confirm* declined.
            ProcessFailure: The package manager failed; the record is kept.
        """
        async with self._transition(name):
            component = await self._store.get_component(name)
            if component is None or not component.is_active:
                raise ComponentNotInstalled(name)

            if not await _ask(confirm, f"Uninstall {component.package}?"):
                raise InstallCancelled(
                    f"Removal of '{name}' cancelled.", component_name=name
                )

            self._transient[name] = LifecycleState.REMOVING
            try:
                outcome = await self._installer.remove(component.package)
                if not outcome.succeeded:
                    raise ProcessFailure(component.package, outcome, action="remove")
                await self._store.unregister(name)
            finally:
                self._transient.pop(name, None)

        logger.info("Uninstalled component '%s'", name)
        return component
