"""Configuration management for Asset Tree.

Provides YAML configuration file loading with environment support.
"""

import sys
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Set
from dataclasses import dataclass, field
from typing_extensions import TypedDict

import yaml

from .asset import MAX_NESTING_DEPTH, AssetNode
from .normalizer import normalize

logger = logging.getLogger(__name__)


class EngineConfig(TypedDict, total=False):
    """Tree engine limits."""
    max_depth: int
    enforce_folder_parents: bool


class StorageConfig(TypedDict, total=False):
    """Storage configuration."""
    directory: str
    cache_size: int


class ProjectConfig(TypedDict, total=False):
    """A project seeded from configuration."""
    id: str
    name: str
    assets: List[Dict[str, Any]]


class DefaultsConfig(TypedDict, total=False):
    """Default configuration applied to all environments."""
    engine: EngineConfig
    storage: StorageConfig


class EnvironmentConfig(TypedDict, total=False):
    """Environment-specific configuration."""
    engine: EngineConfig
    storage: StorageConfig


class AssetTreeConfig(TypedDict, total=False):
    """Main configuration structure."""
    version: str
    defaults: DefaultsConfig
    environments: Dict[str, EnvironmentConfig]
    projects: List[ProjectConfig]


@dataclass
class ResolvedProjectConfig:
    """Seed project with its assets already normalized."""
    id: str
    name: str
    assets: List[AssetNode] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "assets": [asset.to_dict() for asset in self.assets]
        }


@dataclass
class ResolvedConfig:
    """Fully resolved configuration after applying environment."""
    storage_directory: str = "./storage"
    cache_size: int = 128
    max_depth: int = MAX_NESTING_DEPTH
    enforce_folder_parents: bool = True
    projects: List[ResolvedProjectConfig] = field(default_factory=list)


class ConfigLoader:
    """Load and validate Asset Tree configuration files."""

    SUPPORTED_VERSIONS = ["1.0"]

    def __init__(self, config_path: str, warn_on_unknown: bool = True):
        """Initialize config loader.

        Args:
            config_path: Path to the YAML configuration file
            warn_on_unknown: Whether to warn on unknown config keys
        """
        self.config_path = Path(config_path)
        self.warn_on_unknown = warn_on_unknown
        self._raw_config: Optional[AssetTreeConfig] = None
        self._warnings: List[str] = []

    def load(self) -> AssetTreeConfig:
        """Load configuration from file.

        Returns:
            Raw configuration dictionary

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        self._warnings = []

        with open(self.config_path, 'r') as f:
            content = f.read()

        try:
            config = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in config file: {e}")

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ValueError("Configuration root must be a mapping")

        self._validate_keys(config, "root", self._get_schema_keys())
        defaults = config.get("defaults") or {}
        for section in ("engine", "storage"):
            self._validate_keys(
                defaults.get(section, {}) if isinstance(defaults, dict) else {},
                f"defaults.{section}",
                self._get_section_keys(section)
            )

        version = str(config.get("version", "1.0"))
        if version not in self.SUPPORTED_VERSIONS:
            raise ValueError(
                f"Unsupported config version: {version}. "
                f"Supported versions: {self.SUPPORTED_VERSIONS}"
            )

        self._raw_config = config
        return config

    def _get_schema_keys(self) -> Set[str]:
        """Get valid top-level configuration keys."""
        return {"version", "defaults", "environments", "projects"}

    def _get_section_keys(self, section: str) -> Set[str]:
        if section == "engine":
            return {"max_depth", "enforce_folder_parents"}
        return {"directory", "cache_size"}

    def _validate_keys(self, obj: Any, path: str, valid_keys: Set[str]) -> None:
        """Warn about keys that are not part of the schema at this level.

        Args:
            obj: Object to validate
            path: Current path in config (for error messages)
            valid_keys: Set of valid keys at this level
        """
        if not isinstance(obj, dict):
            return

        for key in obj.keys():
            if key not in valid_keys and self.warn_on_unknown:
                self._warnings.append(
                    f"Unknown config key '{path}.{key}' - ignoring"
                )
                logger.warning(f"[Config] Unknown key: {path}.{key}")

    def get_warnings(self) -> List[str]:
        """Get list of configuration warnings."""
        return self._warnings.copy()

    def validate(self) -> bool:
        """Validate configuration structure.

        Returns:
            True if valid

        Raises:
            RuntimeError: If config hasn't been loaded yet
            ValueError: If a section is malformed
        """
        if self._raw_config is None:
            raise RuntimeError("Configuration not loaded. Call load() first.")

        sections = [("defaults", self._raw_config.get("defaults", {}))]
        environments = self._raw_config.get("environments", {})
        if not isinstance(environments, dict):
            raise ValueError("'environments' must be a dictionary")
        sections.extend((f"environments.{name}", env) for name, env in environments.items())

        for where, section in sections:
            if not isinstance(section, dict):
                raise ValueError(f"'{where}' must be a dictionary")
            self._validate_engine(section.get("engine", {}), where)

        projects = self._raw_config.get("projects", [])
        if not isinstance(projects, list):
            raise ValueError("'projects' must be a list")

        seen_ids: Set[str] = set()
        for i, project in enumerate(projects):
            if not isinstance(project, dict):
                raise ValueError(f"Project at index {i} must be a dictionary")

            project_id = project.get("id")
            if not isinstance(project_id, str) or not project_id:
                raise ValueError(f"Project at index {i} missing required 'id' field")
            if project_id in seen_ids:
                raise ValueError(f"Duplicate project id: {project_id}")
            seen_ids.add(project_id)

            assets = project.get("assets", [])
            if not isinstance(assets, list):
                raise ValueError(f"Project {project_id} 'assets' must be a list")
            # MalformedAssetError is a ValueError
            normalize(assets)

        return True

    def _validate_engine(self, engine: Any, where: str) -> None:
        if not isinstance(engine, dict):
            raise ValueError(f"'{where}.engine' must be a dictionary")
        max_depth = engine.get("max_depth")
        if max_depth is not None and (isinstance(max_depth, bool)
                                      or not isinstance(max_depth, int)
                                      or max_depth < 1):
            raise ValueError(f"'{where}.engine.max_depth' must be a positive integer")
        enforce = engine.get("enforce_folder_parents")
        if enforce is not None and not isinstance(enforce, bool):
            raise ValueError(f"'{where}.engine.enforce_folder_parents' must be a boolean")


class ConfigManager:
    """Resolve a loaded configuration for one environment."""

    def __init__(self, config_loader: ConfigLoader):
        """Initialize config manager.

        Args:
            config_loader: Loaded configuration
        """
        self.loader = config_loader
        self._resolved_config: Optional[ResolvedConfig] = None

    def resolve(self, environment: Optional[str] = None) -> ResolvedConfig:
        """Resolve configuration for an environment.

        Args:
            environment: Environment name (dev/staging/production), or None for defaults

        Returns:
            Resolved configuration with environment applied
        """
        if self.loader._raw_config is None:
            raise RuntimeError("Configuration not loaded. Call load() first.")

        raw = self.loader._raw_config

        defaults = raw.get("defaults", {})
        env_configs = raw.get("environments", {})

        env_name = environment or "default"
        env_config = env_configs.get(env_name, {})

        # Merge settings (defaults < environment)
        storage = dict(defaults.get("storage", {}))
        storage.update(env_config.get("storage", {}))
        engine = dict(defaults.get("engine", {}))
        engine.update(env_config.get("engine", {}))

        projects: List[ResolvedProjectConfig] = []
        for project in raw.get("projects", []):
            projects.append(ResolvedProjectConfig(
                id=project["id"],
                name=project.get("name", project["id"]),
                assets=normalize(project.get("assets", []))
            ))

        self._resolved_config = ResolvedConfig(
            storage_directory=storage.get("directory", "./storage"),
            cache_size=storage.get("cache_size", 128),
            max_depth=engine.get("max_depth", MAX_NESTING_DEPTH),
            enforce_folder_parents=engine.get("enforce_folder_parents", True),
            projects=projects
        )

        return self._resolved_config

    def get_resolved_config(self) -> Optional[ResolvedConfig]:
        """Get the resolved configuration, or None if not resolved yet."""
        return self._resolved_config


def load_config(
    config_path: str,
    environment: Optional[str] = None,
    validate: bool = True
) -> ResolvedConfig:
    """Convenience function to load and resolve configuration.

    Args:
        config_path: Path to YAML configuration file
        environment: Environment name (dev/staging/production)
        validate: Whether to validate the configuration

    Returns:
        Resolved configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config is invalid
    """
    loader = ConfigLoader(config_path)
    loader.load()

    if validate:
        loader.validate()

    for warning in loader.get_warnings():
        logger.warning(f"[Config] {warning}")

    manager = ConfigManager(loader)
    return manager.resolve(environment)


# ============= CLI Integration =============

def add_config_args(parser) -> None:
    """Add configuration arguments to argparse parser.

    Args:
        parser: ArgumentParser or add_argument Group
    """
    parser.add_argument(
        "--config", "-c",
        type=str,
        help="Path to configuration YAML file"
    )

    parser.add_argument(
        "--env", "-e",
        type=str,
        default=None,
        help="Environment name (dev/staging/production)"
    )

    parser.add_argument(
        "--validate", "-v",
        action="store_true",
        help="Validate configuration file without running"
    )


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Validate Asset Tree config")
    parser.add_argument("config", nargs="?", help="Path to config file")
    add_config_args(parser)

    args = parser.parse_args()

    if args.config:
        try:
            loader = ConfigLoader(args.config)
            raw = loader.load()
            loader.validate()

            print("✓ Configuration valid")
            print(f"  Version: {raw.get('version', '1.0')}")
            print(f"  Projects: {len(raw.get('projects', []))}")

            if loader.get_warnings():
                print("\nWarnings:")
                for w in loader.get_warnings():
                    print(f"  - {w}")

            manager = ConfigManager(loader)
            for env in ["default"] + list(raw.get("environments", {}).keys()):
                resolved = manager.resolve(env)
                print(f"\n✓ Resolved for '{env}':")
                print(f"  Storage: {resolved.storage_directory}")
                print(f"  Max depth: {resolved.max_depth}")

        except (FileNotFoundError, ValueError) as e:
            print(f"✗ Error: {e}")
            sys.exit(1)
    else:
        print("Usage: python -m asset_tree.config <config.yaml>")
        sys.exit(1)
