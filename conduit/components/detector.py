"""ServiceHookDetector — static introspection of an installed component package.

Reads the package manifest (``composer.json``) and scans command source files
for a declared ``$signature``. Nothing from the package is executed. Every
failure degrades to an empty result and a log line.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable, Optional

from conduit.components.validator import is_valid_package_name

logger = logging.getLogger(__name__)

# Conventional command directories, relative to a package root
_COMMAND_SUBPATHS = ("src/Commands", "app/Commands", "Commands")

_SIGNATURE_PATTERNS = [
    re.compile(r"""(?:protected|public)\s+(?:static\s+)?\$signature\s*=\s*['"]\s*([^'"\s]+)"""),
    re.compile(r"""@Command\(\s*['"]([^'"\s]+)['"]"""),
]

_MANIFEST = "composer.json"


def _dedupe(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(v for v in values if v))


class ServiceHookDetector:
    """Infers the service hooks and commands an installed package contributes.

    Args:
        vendor_dir: Directory the package manager installs packages into.
    """

    def __init__(self, vendor_dir: Path) -> None:
        self._vendor_dir = Path(vendor_dir)

    @classmethod
    def from_config(cls, config: Any) -> "ServiceHookDetector":
        return cls(config.resolved_vendor_dir)

    # ─── Manifest ────────────────────────────────────────────────────────────

    def package_root(self, package_full_name: str) -> Optional[Path]:
        """Installed location of *package_full_name*, or None for an invalid name."""
        if not is_valid_package_name(package_full_name):
            return None
        return self._vendor_dir / package_full_name

    def _read_extra(self, package_full_name: str) -> dict:
        root = self.package_root(package_full_name)
        if root is None:
            logger.debug("Refusing to read manifest for invalid name %r", package_full_name)
            return {}
        manifest = root / _MANIFEST
        if not manifest.is_file():
            return {}
        try:
            data = json.loads(manifest.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read manifest for '%s': %s", package_full_name, exc)
            return {}
        extra = data.get("extra") if isinstance(data, dict) else None
        return extra if isinstance(extra, dict) else {}

    def detect_hooks(self, package_full_name: str) -> list[str]:
        """Service provider classes declared under ``extra.laravel.providers``."""
        laravel = self._read_extra(package_full_name).get("laravel")
        providers = laravel.get("providers") if isinstance(laravel, dict) else None
        if not isinstance(providers, list):
            return []
        return _dedupe(p for p in providers if isinstance(p, str))

    def detect_declared_commands(self, package_full_name: str) -> list[str]:
        """Commands a package declares itself under ``extra.conduit.commands``."""
        return self._conduit_list(package_full_name, "commands")

    def detect_env_vars(self, package_full_name: str) -> list[str]:
        """Environment variables declared under ``extra.conduit.env_vars``."""
        return self._conduit_list(package_full_name, "env_vars")

    def _conduit_list(self, package_full_name: str, key: str) -> list[str]:
        conduit = self._read_extra(package_full_name).get("conduit")
        values = conduit.get(key) if isinstance(conduit, dict) else None
        if not isinstance(values, list):
            return []
        return _dedupe(v.strip() for v in values if isinstance(v, str))

    # ─── Source scan ─────────────────────────────────────────────────────────

    def detect_commands(
        self,
        hooks: Iterable[str],
        package_full_name: Optional[str] = None,
    ) -> list[str]:
        """Scan the command directories belonging to each hook.

        One hook failing never stops the others.
        """
        commands: list[str] = []
        package_root = self.package_root(package_full_name) if package_full_name else None

        for hook in hooks:
            try:
                for root in self._roots_for_hook(hook, package_root):
                    for subpath in _COMMAND_SUBPATHS:
                        commands.extend(self._scan_directory(root / subpath))
            except Exception as exc:
                logger.warning("Error detecting commands from hook %s: %s", hook, exc)

        return _dedupe(commands)

    def _roots_for_hook(self, hook: str, package_root: Optional[Path]) -> list[Path]:
        roots: list[Path] = []
        if package_root is not None:
            roots.append(package_root)
        parts = [p for p in hook.strip("\\").split("\\") if p]
        if len(parts) >= 2:
            derived = f"{parts[0].lower()}/{parts[1].lower()}"
            if is_valid_package_name(derived):
                path = self._vendor_dir / derived
                if path not in roots:
                    roots.append(path)
        return roots

    def _scan_directory(self, directory: Path) -> list[str]:
        if not directory.is_dir():
            return []
        commands: list[str] = []
        for file_path in sorted(directory.glob("*.php")):
            try:
                content = file_path.read_text(encoding="utf-8", errors="replace")
            except OSError as exc:
                logger.debug("Skipping unreadable %s: %s", file_path, exc)
                continue
            commands.extend(extract_command_names(content))
        return commands


def extract_command_names(source: str) -> list[str]:
    """Command names declared in one source file (token before the first whitespace)."""
    names: list[str] = []
    for pattern in _SIGNATURE_PATTERNS:
        for signature in pattern.findall(source):
            name = signature.split()[0] if signature.split() else ""
            if name:
                names.append(name)
    return names
