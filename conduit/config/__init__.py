"""Application configuration + read-only YAML loaders for Conduit.

All env vars defined here with CONDUIT_ prefix.
YAML loaders: load_registry_yaml(), load_legacy_config_yaml()
"""

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings

from conduit.config.loader import load_legacy_config_yaml, load_registry_yaml
from conduit.config.schema import LegacyConfigFile, RegistryEntryYAML, RegistryFile


class ConduitConfig(BaseSettings):
    # ── App ──
    app_name: str = "conduit"
    log_level: str = "WARNING"

    # ── Storage ──
    home_dir: Path = Path.home() / ".conduit"
    database_path: Optional[Path] = None            # default: <home_dir>/conduit.sqlite
    legacy_config_path: Optional[Path] = None       # default: <home_dir>/components.yaml
    legacy_document_path: Optional[Path] = None     # default: <home_dir>/conduit.json
    registry_path: Optional[Path] = None            # read-only local registry, fallback for discovery

    # ── Package manager ──
    app_root: Path = Path.cwd()
    vendor_dir: Optional[Path] = None               # default: <app_root>/vendor
    package_manager: str = "composer"
    install_timeout: float = 300.0                  # seconds, kills the subprocess on expiry

    # ── Discovery / provenance ──
    marker_topic: str = "conduit-component"
    discovery_per_page: int = 50
    discovery_fallback_to_local: bool = True
    github_api_url: str = "https://api.github.com"
    github_token: Optional[str] = None              # raises the search rate limit when set
    packagist_url: str = "https://packagist.org"
    http_timeout: float = 10.0                      # per request, shorter than install_timeout

    model_config = {"env_prefix": "CONDUIT_", "env_file": ".env", "extra": "ignore"}

    @property
    def resolved_database_path(self) -> Path:
        return Path(self.database_path or self.home_dir / "conduit.sqlite").expanduser()

    @property
    def resolved_legacy_config_path(self) -> Path:
        return Path(self.legacy_config_path or self.home_dir / "components.yaml").expanduser()

    @property
    def resolved_legacy_document_path(self) -> Path:
        return Path(self.legacy_document_path or self.home_dir / "conduit.json").expanduser()

    @property
    def resolved_vendor_dir(self) -> Path:
        return Path(self.vendor_dir or self.app_root / "vendor").expanduser()


config = ConduitConfig()


__all__ = [
    "ConduitConfig",
    "config",
    "load_registry_yaml",
    "load_legacy_config_yaml",
    "LegacyConfigFile",
    "RegistryEntryYAML",
    "RegistryFile",
]
