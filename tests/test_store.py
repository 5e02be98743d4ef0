"""ComponentStateStore against a real aiosqlite file database."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from sqlalchemy import delete, func, select

from conduit.db.models import ComponentModel, ServiceHookModel
from conduit.db.store import ComponentStateStore
from conduit.exceptions import InvalidComponentRecord, StoreUninitialized
from conduit.types import Component, ComponentStatus, ServiceHookRegistration


def _record(**overrides) -> dict:
    data = {
        "package": "acme/widgets",
        "description": "Widgets",
        "commands": ["widgets:run"],
        "service_hooks": ["H1", "H2"],
    }
    data.update(overrides)
    return data


async def _hook_rows(store: ComponentStateStore, name: str) -> int:
    async with store._get_engine().connect() as conn:
        result = await conn.execute(
            select(func.count()).select_from(ServiceHookModel).where(ServiceHookModel.component_name == name)
        )
        return result.scalar_one()


# ── Bootstrap ───────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestInitialization:
    async def test_uninitialized_raises_and_creates_nothing(self, tmp_path):
        path = tmp_path / "nowhere" / "conduit.sqlite"
        store = ComponentStateStore(path)

        assert await store.is_initialized() is False
        with pytest.raises(StoreUninitialized) as exc_info:
            await store.get_installed()
        assert "conduit storage init" in str(exc_info.value)
        assert not path.exists()
        await store.close()

    async def test_every_operation_requires_initialization(self, tmp_path):
        store = ComponentStateStore(tmp_path / "conduit.sqlite")
        for call in (
            store.is_installed("x"),
            store.get_component("x"),
            store.register("x", _record()),
            store.unregister("x"),
            store.get_setting("k"),
            store.set_setting("k", 1),
            store.get_service_hooks(),
            store.get_hook_registrations(),
            store.migrate_from_legacy_format(),
        ):
            with pytest.raises(StoreUninitialized):
                await call
        await store.close()

    async def test_initialize_is_idempotent(self, tmp_path):
        store = ComponentStateStore(tmp_path / "a" / "b" / "conduit.sqlite")
        await store.initialize_if_needed()
        await store.register("widgets", _record())
        await store.initialize_if_needed()

        assert await store.is_initialized() is True
        assert await store.is_installed("widgets") is True
        await store.close()

    def test_needs_path_or_engine(self):
        with pytest.raises(ValueError):
            ComponentStateStore()


# ── Components ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestRegister:
    async def test_register_and_read_back(self, store):
        stored = await store.register("widgets", _record())

        assert stored.status == ComponentStatus.ACTIVE
        assert stored.installed_at is not None
        component = await store.get_component("widgets")
        assert component.package == "acme/widgets"
        assert component.commands == ["widgets:run"]
        assert component.service_hooks == ["H1", "H2"]
        assert component.installed_at.tzinfo is not None
        assert await store.is_installed("widgets") is True
        assert list(await store.get_installed()) == ["widgets"]

    async def test_register_twice_keeps_one_row_and_original_installed_at(self, store):
        first = await store.register("widgets", _record())
        second = await store.register("widgets", _record(description="Widgets v2"))

        assert second.installed_at == first.installed_at
        installed = await store.get_installed()
        assert len(installed) == 1
        assert installed["widgets"].description == "Widgets v2"
        assert installed["widgets"].installed_at == first.installed_at
        assert await _hook_rows(store, "widgets") == 2

    async def test_explicit_installed_at_overrides(self, store):
        await store.register("widgets", _record())
        explicit = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)

        await store.register("widgets", _record(installed_at=explicit))

        assert (await store.get_component("widgets")).installed_at == explicit

    async def test_non_utc_installed_at_is_normalized(self, store):
        local = datetime(2024, 1, 2, 12, 0, tzinfo=timezone(timedelta(hours=2)))
        await store.register("widgets", _record(installed_at=local))
        stored = (await store.get_component("widgets")).installed_at
        assert stored == local
        assert stored.utcoffset() == timedelta(0)

    async def test_register_accepts_component_and_forces_active(self, store):
        component = Component(name="ignored", package="acme/widgets", status=ComponentStatus.INACTIVE)
        stored = await store.register("widgets", component)
        assert stored.name == "widgets"
        assert stored.status == ComponentStatus.ACTIVE

    async def test_re_register_replaces_hooks(self, store):
        await store.register("widgets", _record(service_hooks=["H1", "H2"]))
        await store.register("widgets", _record(service_hooks=["H3"]))
        assert await store.get_service_hooks("widgets") == ["H3"]
        assert await _hook_rows(store, "widgets") == 1

    @pytest.mark.parametrize("record", [
        {"description": "no package"},
        {"package": ""},
        {"package": "Not A Package"},
        {"package": "acme/widgets", "stars": -1},
    ])
    async def test_invalid_record_rejected(self, store, record):
        with pytest.raises(InvalidComponentRecord):
            await store.register("widgets", record)
        assert await store.get_component("widgets") is None

    async def test_empty_name_rejected(self, store):
        with pytest.raises(InvalidComponentRecord) as exc_info:
            await store.register("  ", _record())
        assert exc_info.value.violations


@pytest.mark.asyncio
class TestUnregister:
    async def test_cascades_hooks(self, store):
        await store.register("x", _record(service_hooks=["H1", "H2"]))

        assert await store.unregister("x") is True

        assert await store.get_component("x") is None
        assert await store.is_installed("x") is False
        assert await _hook_rows(store, "x") == 0

    async def test_absent_returns_false(self, store):
        assert await store.unregister("ghost") is False

    async def test_foreign_key_cascade_at_database_level(self, store):
        await store.register("x", _record(service_hooks=["H1"]))
        async with store._get_engine().begin() as conn:
            await conn.execute(delete(ComponentModel).where(ComponentModel.name == "x"))
        assert await _hook_rows(store, "x") == 0


@pytest.mark.asyncio
class TestStatus:
    async def test_inactive_components_are_not_installed(self, store):
        await store.register("widgets", _record())

        assert await store.update_status("widgets", ComponentStatus.INACTIVE) is True

        assert await store.is_installed("widgets") is False
        assert await store.get_installed() == {}
        component = await store.get_component("widgets")
        assert component.status == ComponentStatus.INACTIVE
        assert component.updated_at is not None
        assert await store.get_service_hooks() == []

    async def test_update_status_absent(self, store):
        assert await store.update_status("ghost", "inactive") is False

    async def test_hook_registrations_include_inactive_components(self, store):
        await store.register("widgets", _record(service_hooks=["H1", "H2"]))
        await store.register("gadgets", _record(package="acme/gadgets", service_hooks=["G1"]))
        await store.update_status("widgets", ComponentStatus.INACTIVE)

        registrations = await store.get_hook_registrations()

        assert [(r.component_name, r.hook_id) for r in registrations] == [
            ("gadgets", "G1"), ("widgets", "H1"), ("widgets", "H2"),
        ]
        assert all(isinstance(r, ServiceHookRegistration) and r.enabled for r in registrations)
        assert await store.get_service_hooks() == ["G1"]
        only = await store.get_hook_registrations("widgets")
        assert {r.hook_id for r in only} == {"H1", "H2"}


# ── Settings ────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestSettings:
    async def test_round_trip(self, store):
        value = {"a": 1, "b": [True, None]}
        await store.set_setting("k", value)
        assert await store.get_setting("k") == value

    async def test_default_for_missing(self, store):
        assert await store.get_setting("missing", "fallback") == "fallback"
        assert await store.get_setting("missing") is None

    async def test_overwrite_and_list(self, store):
        await store.set_setting("b", 1)
        await store.set_setting("a", "x")
        await store.set_setting("b", 2)
        assert await store.get_all_settings() == {"a": "x", "b": 2}

    async def test_delete(self, store):
        await store.set_setting("k", 1)
        assert await store.delete_setting("k") is True
        assert await store.delete_setting("k") is False
        assert await store.get_setting("k", "gone") == "gone"

    async def test_non_json_value_rejected(self, store):
        with pytest.raises(ValueError):
            await store.set_setting("k", object())
        assert await store.get_setting("k") is None


# ── Durability ──────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestRollback:
    async def test_failed_register_leaves_state_identical(self, store):
        await store.register("widgets", _record())
        await store.set_setting("theme", "dark")
        before = await store.export_state()

        with pytest.raises(InvalidComponentRecord):
            await store.register("widgets", {"description": "package missing"})

        assert await store.export_state() == before

    async def test_failure_mid_transaction_rolls_back(self, store):
        await store.register("widgets", _record(service_hooks=["H1"]))
        before = await store.export_state()
        original = store._upsert
        calls = {"n": 0}

        async def flaky(session, component, existing):
            calls["n"] += 1
            await original(session, component, existing)
            if calls["n"] == 2:
                raise RuntimeError("disk full")

        document = {
            "installed": {
                "widgets": {"package": "acme/widgets", "status": "active",
                            "installed_at": "2024-01-01T00:00:00+00:00", "service_hooks": ["H9"]},
                "gadgets": {"package": "acme/gadgets", "status": "active",
                            "installed_at": "2024-01-01T00:00:00+00:00"},
            },
            "settings": {"theme": "light"},
        }
        with patch.object(store, "_upsert", side_effect=flaky):
            with pytest.raises(RuntimeError):
                await store.import_state(document)

        assert await store.export_state() == before


# ── Export / import ─────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestExportImport:
    async def test_export_import_into_fresh_store(self, store, tmp_path):
        await store.register("widgets", _record())
        await store.set_setting("theme", "dark")
        document = await store.export_state()
        assert document["service_hooks"] == {"widgets": ["H1", "H2"]}

        other = ComponentStateStore(tmp_path / "other.sqlite")
        await other.initialize_if_needed()
        report = await other.import_state(document)

        assert report.components_migrated == 1
        assert report.hooks_migrated == 2
        assert await other.export_state() == document
        await other.close()

    async def test_invalid_document_rejected_before_writes(self, store):
        with pytest.raises(InvalidComponentRecord) as exc_info:
            await store.import_state({"installed": {"w": {"package": "acme/w"}}})
        violations = exc_info.value.violations
        assert "Missing required section: settings" in violations
        assert "Component 'w' missing required field: status" in violations
        assert await store.get_installed() == {}
