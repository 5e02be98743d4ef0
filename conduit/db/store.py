"""ComponentStateStore — the only layer that talks to the database.

Owns installed components, global settings and service-hook registrations.
Callers never cache what it returns; every read goes to the database so
changes made by another CLI invocation are always visible.

Every mutation is validated first and then applied inside one transaction.
A failure anywhere rolls the transaction back and re-raises, so readable
state is always either fully the old version or fully the new one.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union

from pydantic import ValidationError
from sqlalchemy import delete, inspect, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from conduit.db.database import create_tables, make_engine, sqlite_url
from conduit.db.legacy import collect_legacy_state, validate_document
from conduit.db.models import ComponentModel, ServiceHookModel, SettingModel
from conduit.exceptions import InvalidComponentRecord, StoreUninitialized
from conduit.types import Component, ComponentStatus, MigrationReport, ServiceHookRegistration

logger = logging.getLogger(__name__)

_TABLES = ("components", "settings", "service_hooks")


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite drops tzinfo; everything stored is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class ComponentStateStore:
    """Persistent component, setting and service-hook storage.

    Args:
        database_path: SQLite file. Its parent directory is created by
            :meth:`initialize_if_needed`, never implicitly.
        engine: Pre-built engine (tests); overrides *database_path*.
        legacy_config_path: First-generation ``components.yaml``.
        legacy_document_path: Second-generation ``conduit.json``.
    """

    def __init__(
        self,
        database_path: Optional[Path] = None,
        *,
        engine: Optional[AsyncEngine] = None,
        legacy_config_path: Optional[Path] = None,
        legacy_document_path: Optional[Path] = None,
    ) -> None:
        if engine is None and database_path is None:
            raise ValueError("ComponentStateStore needs a database_path or an engine")
        self._path = Path(database_path).expanduser() if database_path is not None else None
        self._engine = engine
        self._sessions: Optional[async_sessionmaker[AsyncSession]] = None
        self._legacy_config_path = legacy_config_path
        self._legacy_document_path = legacy_document_path

        # Serializes all writes; transactions alone are not enough for SQLite upserts
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: Any) -> "ComponentStateStore":
        return cls(
            config.resolved_database_path,
            legacy_config_path=config.resolved_legacy_config_path,
            legacy_document_path=config.resolved_legacy_document_path,
        )

    @property
    def location(self) -> str:
        if self._path is not None:
            return str(self._path)
        return str(self._engine.url) if self._engine is not None else ""

    # ─── Lifecycle ────────────────────────────────────────────────────────────

    def _get_engine(self) -> AsyncEngine:
        if self._engine is None:
            self._engine = make_engine(sqlite_url(self._path))
        return self._engine

    def _session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._sessions is None:
            self._sessions = async_sessionmaker(
                self._get_engine(), class_=AsyncSession, expire_on_commit=False
            )
        return self._sessions

    async def initialize_if_needed(self) -> None:
        """Create the storage directory and tables. Idempotent."""
        if self._path is not None and not self._path.parent.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
            logger.info("Created storage directory %s", self._path.parent)
        await create_tables(self._get_engine())
        logger.debug("Component storage ready at %s", self.location)

    async def is_initialized(self) -> bool:
        """True once every table exists. Never creates the database file."""
        if self._path is not None and not self._path.exists():
            return False

        def _has_tables(sync_conn) -> bool:
            inspector = inspect(sync_conn)
            return all(inspector.has_table(t) for t in _TABLES)

        async with self._get_engine().connect() as conn:
            return await conn.run_sync(_has_tables)

    async def _require_initialized(self) -> None:
        if not await self.is_initialized():
            raise StoreUninitialized(self.location)

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()

    # ─── Components ───────────────────────────────────────────────────────────

    async def is_installed(self, name: str) -> bool:
        component = await self.get_component(name)
        return component is not None and component.is_active

    async def get_installed(self) -> dict[str, Component]:
        """All active components keyed by name, sorted by name."""
        await self._require_initialized()
        async with self._session_factory()() as session:
            result = await session.execute(
                select(ComponentModel)
                .where(ComponentModel.status == ComponentStatus.ACTIVE.value)
                .order_by(ComponentModel.name)
            )
            rows = list(result.scalars().all())
            hooks = await self._hooks_by_component(session, [r.name for r in rows])
        return {r.name: self._to_component(r, hooks.get(r.name, [])) for r in rows}

    async def get_component(self, name: str) -> Optional[Component]:
        """Component by name regardless of status, or None."""
        await self._require_initialized()
        async with self._session_factory()() as session:
            row = await self._get_row(session, name)
            if row is None:
                return None
            hooks = await self._hooks_by_component(session, [name])
        return self._to_component(row, hooks.get(name, []))

    async def register(self, name: str, record: Union[Component, dict]) -> Component:
        """Insert or replace the component *name* and its service hooks.

        ``status`` is forced to active. ``installed_at`` keeps the value of an
        existing row unless *record* carries one explicitly.

        Raises:
            StoreUninitialized: Tables missing.
            InvalidComponentRecord: *record* lacks a valid ``package``.
        """
        component = self._validate_record(name, record)
        explicit_installed_at = component.installed_at
        component = component.model_copy(update={"status": ComponentStatus.ACTIVE})

        await self._require_initialized()
        async with self._lock:
            async with self._session_factory()() as session:
                async with session.begin():
                    existing = await self._get_row(session, name)
                    installed_at = (
                        explicit_installed_at
                        or (_as_utc(existing.installed_at) if existing is not None else None)
                        or _now()
                    )
                    component = component.model_copy(update={"installed_at": installed_at})
                    await self._upsert(session, component, existing)

        logger.info(
            "Registered component '%s' (%s, %d commands, %d hooks)",
            name,
            component.package,
            len(component.commands),
            len(component.service_hooks),
        )
        return component

    async def unregister(self, name: str) -> bool:
        """Delete *name* and its hooks. Returns False when it was not stored."""
        await self._require_initialized()
        async with self._lock:
            async with self._session_factory()() as session:
                async with session.begin():
                    existing = await self._get_row(session, name)
                    if existing is None:
                        return False
                    await session.execute(
                        delete(ServiceHookModel).where(ServiceHookModel.component_name == name)
                    )
                    await session.delete(existing)
        logger.info("Unregistered component '%s'", name)
        return True

    async def update_status(self, name: str, status: ComponentStatus) -> bool:
        """Set the status of *name*. Returns False when it was not stored."""
        status = ComponentStatus(status)
        await self._require_initialized()
        async with self._lock:
            async with self._session_factory()() as session:
                async with session.begin():
                    existing = await self._get_row(session, name)
                    if existing is None:
                        return False
                    existing.status = status.value
                    existing.updated_at = _now()
        return True

    # ─── Service hooks ────────────────────────────────────────────────────────

    async def get_service_hooks(self, component_name: Optional[str] = None) -> list[str]:
        """Enabled hooks of active components, optionally for one component."""
        await self._require_initialized()
        query = (
            select(ServiceHookModel.hook_id)
            .join(ComponentModel, ComponentModel.name == ServiceHookModel.component_name)
            .where(
                ServiceHookModel.enabled.is_(True),
                ComponentModel.status == ComponentStatus.ACTIVE.value,
            )
            .order_by(ServiceHookModel.component_name, ServiceHookModel.hook_id)
        )
        if component_name is not None:
            query = query.where(ServiceHookModel.component_name == component_name)
        async with self._session_factory()() as session:
            result = await session.execute(query)
            return list(dict.fromkeys(result.scalars().all()))

    async def get_hook_registrations(
        self, component_name: Optional[str] = None
    ) -> list[ServiceHookRegistration]:
        """Every hook row, enabled or not, regardless of component status."""
        await self._require_initialized()
        query = select(ServiceHookModel).order_by(
            ServiceHookModel.component_name, ServiceHookModel.hook_id
        )
        if component_name is not None:
            query = query.where(ServiceHookModel.component_name == component_name)
        async with self._session_factory()() as session:
            result = await session.execute(query)
            return [
                ServiceHookRegistration(
                    hook_id=row.hook_id,
                    component_name=row.component_name,
                    enabled=bool(row.enabled),
                )
                for row in result.scalars().all()
            ]

    # ─── Settings ─────────────────────────────────────────────────────────────

    async def get_setting(self, key: str, default: Any = None) -> Any:
        await self._require_initialized()
        async with self._session_factory()() as session:
            row = await self._get_setting_row(session, key)
        return default if row is None else row.value

    async def get_all_settings(self) -> dict[str, Any]:
        await self._require_initialized()
        async with self._session_factory()() as session:
            result = await session.execute(select(SettingModel).order_by(SettingModel.key))
            return {row.key: row.value for row in result.scalars().all()}

    async def set_setting(self, key: str, value: Any) -> None:
        """Insert or replace a setting.

        Raises:
            ValueError: *value* is not JSON-serializable.
        """
        _check_json(key, value)
        await self._require_initialized()
        async with self._lock:
            async with self._session_factory()() as session:
                async with session.begin():
                    await self._upsert_setting(session, key, value)

    async def delete_setting(self, key: str) -> bool:
        await self._require_initialized()
        async with self._lock:
            async with self._session_factory()() as session:
                async with session.begin():
                    result = await session.execute(delete(SettingModel).where(SettingModel.key == key))
                    return result.rowcount > 0

    # ─── Migration / export ───────────────────────────────────────────────────

    async def migrate_from_legacy_format(
        self,
        config_path: Optional[Path] = None,
        document_path: Optional[Path] = None,
    ) -> MigrationReport:
        """Import the older storage generations. Upsert-based, so repeatable.

        Missing legacy files are not an error; the report counts zero.
        """
        await self._require_initialized()
        snapshot = collect_legacy_state(
            config_path or self._legacy_config_path,
            document_path or self._legacy_document_path,
        )
        report = MigrationReport(sources=snapshot.sources)
        if not snapshot.components and not snapshot.settings:
            logger.info("No legacy component data found to migrate")
            return report

        components: dict[str, Component] = {}
        for name, component in snapshot.components.items():
            try:
                components[name] = self._validate_record(name, component)
            except InvalidComponentRecord as exc:
                logger.warning("Skipping legacy component '%s': %s", name, exc)
        for key, value in snapshot.settings.items():
            _check_json(key, value)

        async with self._lock:
            async with self._session_factory()() as session:
                async with session.begin():
                    for name, component in components.items():
                        existing = await self._get_row(session, name)
                        if component.installed_at is None:
                            component = component.model_copy(update={
                                "installed_at": (
                                    _as_utc(existing.installed_at) if existing is not None else None
                                ) or _now(),
                            })
                        await self._upsert(session, component, existing)
                        report.components_migrated += 1
                        report.hooks_migrated += len(component.service_hooks)
                    for key, value in snapshot.settings.items():
                        await self._upsert_setting(session, key, value)
                        report.settings_migrated += 1

        logger.info(
            "Migrated %d components and %d settings from %s",
            report.components_migrated,
            report.settings_migrated,
            ", ".join(report.sources),
        )
        return report

    async def export_state(self) -> dict:
        """The whole store as one JSON-safe document."""
        await self._require_initialized()
        async with self._session_factory()() as session:
            result = await session.execute(select(ComponentModel).order_by(ComponentModel.name))
            rows = list(result.scalars().all())
            hooks = await self._hooks_by_component(session, [r.name for r in rows])
        installed = {}
        for row in rows:
            data = self._to_component(row, hooks.get(row.name, [])).model_dump(mode="json")
            data.pop("name")
            installed[row.name] = data
        return {
            "installed": installed,
            "settings": await self.get_all_settings(),
            "service_hooks": {name: data["service_hooks"] for name, data in installed.items()},
        }

    async def import_state(self, document: dict) -> MigrationReport:
        """Apply an exported document. Validated as a whole before any write.

        Raises:
            InvalidComponentRecord: The document fails structural validation.
        """
        errors = validate_document(document)
        if errors:
            raise InvalidComponentRecord(
                "Import validation failed: " + "; ".join(errors), violations=errors
            )
        components = {
            name: self._validate_record(name, data) for name, data in document["installed"].items()
        }
        for key, value in document["settings"].items():
            _check_json(key, value)

        await self._require_initialized()
        report = MigrationReport(sources=["import"])
        async with self._lock:
            async with self._session_factory()() as session:
                async with session.begin():
                    for name, component in components.items():
                        await self._upsert(session, component, await self._get_row(session, name))
                        report.components_migrated += 1
                        report.hooks_migrated += len(component.service_hooks)
                    for key, value in document["settings"].items():
                        await self._upsert_setting(session, key, value)
                        report.settings_migrated += 1
        return report

    # ─── Internals ────────────────────────────────────────────────────────────

    @staticmethod
    def _validate_record(name: str, record: Union[Component, dict]) -> Component:
        from conduit.components.validator import is_valid_package_name

        violations: list[str] = []
        if not isinstance(name, str) or not name.strip():
            violations.append("component name must be a non-empty string")

        if isinstance(record, Component):
            data = record.model_dump()
        elif isinstance(record, dict):
            data = dict(record)
        else:
            violations.append(f"record must be a Component or dict, got {type(record).__name__}")
            data = {}

        package = data.get("package")
        if not package:
            violations.append(f"Component '{name}' missing required field: package")
        elif not is_valid_package_name(package):
            violations.append(f"Component '{name}' has an invalid package name: {package!r}")

        if violations:
            raise InvalidComponentRecord("; ".join(violations), violations=violations)

        data["name"] = name
        try:
            return Component.model_validate(data)
        except ValidationError as exc:
            raise InvalidComponentRecord(
                f"Component '{name}' is invalid: {exc}", violations=[str(exc)]
            ) from exc

    async def _get_row(self, session: AsyncSession, name: str) -> Optional[ComponentModel]:
        result = await session.execute(select(ComponentModel).where(ComponentModel.name == name))
        return result.scalar_one_or_none()

    async def _get_setting_row(self, session: AsyncSession, key: str) -> Optional[SettingModel]:
        result = await session.execute(select(SettingModel).where(SettingModel.key == key))
        return result.scalar_one_or_none()

    async def _hooks_by_component(
        self, session: AsyncSession, names: list[str]
    ) -> dict[str, list[str]]:
        if not names:
            return {}
        result = await session.execute(
            select(ServiceHookModel)
            .where(ServiceHookModel.component_name.in_(names))
            .order_by(ServiceHookModel.created_at, ServiceHookModel.hook_id)
        )
        hooks: dict[str, list[str]] = {}
        for row in result.scalars().all():
            hooks.setdefault(row.component_name, []).append(row.hook_id)
        return hooks

    async def _upsert(
        self,
        session: AsyncSession,
        component: Component,
        existing: Optional[ComponentModel],
    ) -> None:
        """Write *component* and replace its hooks. Caller owns the transaction."""
        values = {
            "package": component.package,
            "description": component.description,
            "version": component.version,
            "commands": list(component.commands),
            "env_vars": list(component.env_vars),
            "topics": list(component.topics),
            "url": component.url,
            "stars": component.stars,
            "status": ComponentStatus(component.status).value,
            "installed_at": _as_utc(component.installed_at),
            "updated_at": _as_utc(component.updated_at),
        }
        if existing is not None:
            for key, value in values.items():
                setattr(existing, key, value)
            existing.updated_at = _now()
        else:
            session.add(ComponentModel(name=component.name, **values))
        await session.flush()

        await session.execute(
            delete(ServiceHookModel).where(ServiceHookModel.component_name == component.name)
        )
        for hook_id in component.service_hooks:
            session.add(ServiceHookModel(hook_id=hook_id, component_name=component.name))
        await session.flush()

    async def _upsert_setting(self, session: AsyncSession, key: str, value: Any) -> None:
        existing = await self._get_setting_row(session, key)
        if existing is not None:
            existing.value = value
            existing.updated_at = _now()
        else:
            session.add(SettingModel(key=key, value=value))
        await session.flush()

    @staticmethod
    def _to_component(row: ComponentModel, hooks: list[str]) -> Component:
        return Component(
            name=row.name,
            package=row.package,
            description=row.description,
            version=row.version,
            commands=row.commands or [],
            service_hooks=hooks,
            env_vars=row.env_vars or [],
            topics=row.topics or [],
            url=row.url,
            stars=row.stars or 0,
            status=ComponentStatus(row.status or ComponentStatus.ACTIVE.value),
            installed_at=_as_utc(row.installed_at),
            updated_at=_as_utc(row.updated_at),
        )


def _check_json(key: str, value: Any) -> None:
    try:
        json.dumps(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Setting '{key}' is not JSON-serializable: {exc}") from exc
