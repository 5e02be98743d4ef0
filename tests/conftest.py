"""Shared fixtures: temp config, initialized store, fake vendor tree, mocked httpx.

All tests should use these fixtures for consistency.
"""

import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from conduit.config import ConduitConfig
from conduit.db.store import ComponentStateStore
from conduit.types import DiscoveredCandidate, ProcessOutcome


@pytest.fixture
def conduit_config(tmp_path):
    """Configuration rooted entirely inside tmp_path."""
    app_root = tmp_path / "app"
    app_root.mkdir()
    return ConduitConfig(
        home_dir=tmp_path / "home",
        app_root=app_root,
        package_manager="composer",
        install_timeout=5.0,
        http_timeout=1.0,
        github_token=None,
    )


@pytest.fixture
async def store(tmp_path):
    """File-backed store with tables created (aiosqlite :memory: is per-connection)."""
    s = ComponentStateStore(tmp_path / "state" / "conduit.sqlite")
    await s.initialize_if_needed()
    yield s
    await s.close()


@pytest.fixture
def vendor_dir(tmp_path):
    path = tmp_path / "app" / "vendor"
    path.mkdir(parents=True, exist_ok=True)
    return path


@pytest.fixture
def widgets_candidate():
    return DiscoveredCandidate(
        name="widgets",
        full_name="acme/widgets",
        description="Widgets for Conduit",
        url="https://github.com/acme/widgets",
        topics=["conduit-component"],
        stars=12,
    )


def make_package(
    vendor_dir: Path,
    package: str,
    providers=None,
    command_files: dict = None,
    conduit_extra: dict = None,
    manifest_text: str = None,
) -> Path:
    """Lay out an installed package the way Composer would."""
    root = vendor_dir / package
    root.mkdir(parents=True, exist_ok=True)
    if manifest_text is not None:
        (root / "composer.json").write_text(manifest_text)
    else:
        extra = {}
        if providers is not None:
            extra["laravel"] = {"providers": providers}
        if conduit_extra is not None:
            extra["conduit"] = conduit_extra
        (root / "composer.json").write_text(json.dumps({"name": package, "extra": extra}))
    for rel_path, source in (command_files or {}).items():
        target = root / rel_path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(source)
    return root


def php_command(signature: str, class_name: str = "RunCommand") -> str:
    return (
        "<?php\n\nnamespace Acme\\Widgets\\Commands;\n\n"
        f"class {class_name} extends Command\n{{\n"
        f"    protected $signature = '{signature}';\n"
        "    protected $description = 'Does things';\n}\n"
    )


def ok_outcome(argv=None) -> ProcessOutcome:
    return ProcessOutcome(succeeded=True, stdout="ok", exit_code=0, command=argv or [])


def failed_outcome(stderr: str = "boom", exit_code: int = 1) -> ProcessOutcome:
    return ProcessOutcome(succeeded=False, stderr=stderr, exit_code=exit_code)


def mock_response(payload=None, status: int = 200, raise_exc: Exception = None):
    resp = MagicMock()
    resp.status_code = status
    resp.json = MagicMock(return_value=payload)
    resp.raise_for_status = MagicMock(side_effect=raise_exc)
    return resp


def mock_http_client(get_side_effect) -> AsyncMock:
    """An ``httpx.AsyncClient`` stand-in usable as ``async with``."""
    client = AsyncMock()
    client.get = AsyncMock(side_effect=get_side_effect)
    client.__aenter__ = AsyncMock(return_value=client)
    client.__aexit__ = AsyncMock(return_value=False)
    return client
