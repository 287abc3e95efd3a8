"""Tests for configuration management."""

import os
import tempfile
import pytest

from asset_tree.asset import AssetKind
from asset_tree.config import (
    ConfigLoader,
    ConfigManager,
    load_config,
    ResolvedProjectConfig,
    ResolvedConfig
)


@pytest.fixture
def write_config():
    """Write YAML content to a temp file and clean it up afterwards."""
    paths = []

    def _write(content):
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write(content)
        paths.append(f.name)
        return f.name

    yield _write

    for path in paths:
        os.unlink(path)


FULL_CONFIG = """
version: "1.0"
defaults:
  engine:
    max_depth: 10
  storage:
    directory: ./storage
    cache_size: 64
environments:
  dev:
    storage:
      directory: ./dev-storage
  production:
    engine:
      max_depth: 6
      enforce_folder_parents: true
    storage:
      cache_size: 512
projects:
  - id: campaign
    name: Spring Campaign
    assets:
      - id: designs
        name: Designs
        kind: folder
      - id: hero
        name: hero.png
        parent: designs
        externalLink: https://drive.example.com/hero
  - id: legacy
    assets:
      - id: g1
        asset_name: Old Banner
        gdrive_link: https://drive.example.com/g1
"""


class TestConfigLoader:
    """Tests for ConfigLoader class."""

    def test_load_basic_config(self, write_config):
        """Test loading a basic configuration file."""
        loader = ConfigLoader(write_config(FULL_CONFIG))
        config = loader.load()

        assert config["version"] == "1.0"
        assert len(config["projects"]) == 2
        assert config["defaults"]["storage"]["cache_size"] == 64

    def test_load_missing_file(self):
        """Test loading non-existent file raises error."""
        loader = ConfigLoader("/nonexistent/config.yaml")
        with pytest.raises(FileNotFoundError):
            loader.load()

    def test_load_invalid_yaml(self, write_config):
        """Test loading invalid YAML raises error."""
        loader = ConfigLoader(write_config("version: [unclosed"))
        with pytest.raises(ValueError, match="Invalid YAML"):
            loader.load()

    def test_load_empty_file(self, write_config):
        """Test an empty file loads as an empty config."""
        loader = ConfigLoader(write_config(""))
        assert loader.load() == {}

    def test_non_mapping_root(self, write_config):
        loader = ConfigLoader(write_config("- a\n- b\n"))
        with pytest.raises(ValueError, match="mapping"):
            loader.load()

    def test_unsupported_version(self, write_config):
        """Test unsupported version raises error."""
        loader = ConfigLoader(write_config('version: "2.0"\n'))
        with pytest.raises(ValueError, match="Unsupported config version"):
            loader.load()

    def test_warns_on_unknown_keys(self, write_config):
        """Test unknown keys produce warnings."""
        content = """
version: "1.0"
unknown_key: value
defaults:
  engine:
    max_depth: 5
    color: blue
"""
        loader = ConfigLoader(write_config(content))
        loader.load()

        warnings = loader.get_warnings()
        assert any("unknown_key" in w for w in warnings)
        assert any("color" in w for w in warnings)

    def test_no_warnings_when_disabled(self, write_config):
        loader = ConfigLoader(write_config("unknown_key: 1\n"), warn_on_unknown=False)
        loader.load()
        assert loader.get_warnings() == []


class TestConfigValidation:
    """Tests for ConfigLoader.validate."""

    def test_validate_full_config(self, write_config):
        loader = ConfigLoader(write_config(FULL_CONFIG))
        loader.load()
        assert loader.validate() is True

    def test_validate_before_load(self):
        loader = ConfigLoader("config.yaml")
        with pytest.raises(RuntimeError):
            loader.validate()

    def test_invalid_max_depth(self, write_config):
        content = """
defaults:
  engine:
    max_depth: 0
"""
        loader = ConfigLoader(write_config(content))
        loader.load()
        with pytest.raises(ValueError, match="max_depth"):
            loader.validate()

    def test_bool_max_depth_rejected(self, write_config):
        content = """
environments:
  dev:
    engine:
      max_depth: true
"""
        loader = ConfigLoader(write_config(content))
        loader.load()
        with pytest.raises(ValueError, match="environments.dev.engine.max_depth"):
            loader.validate()

    def test_non_bool_enforce_folder_parents_rejected(self, write_config):
        content = """
defaults:
  engine:
    enforce_folder_parents: "false"
"""
        loader = ConfigLoader(write_config(content))
        loader.load()
        with pytest.raises(ValueError, match="enforce_folder_parents"):
            loader.validate()

    def test_projects_must_be_list(self, write_config):
        loader = ConfigLoader(write_config("projects: {a: 1}\n"))
        loader.load()
        with pytest.raises(ValueError, match="'projects' must be a list"):
            loader.validate()

    def test_project_requires_id(self, write_config):
        loader = ConfigLoader(write_config("projects:\n  - name: Nameless\n"))
        loader.load()
        with pytest.raises(ValueError, match="missing required 'id'"):
            loader.validate()

    def test_duplicate_project_ids(self, write_config):
        loader = ConfigLoader(write_config("projects:\n  - id: a\n  - id: a\n"))
        loader.load()
        with pytest.raises(ValueError, match="Duplicate project id"):
            loader.validate()

    def test_malformed_assets_rejected(self, write_config):
        """Test asset integrity errors surface as ValueError."""
        content = """
projects:
  - id: broken
    assets:
      - id: a
        name: A
        parent: a
"""
        loader = ConfigLoader(write_config(content))
        loader.load()
        with pytest.raises(ValueError, match="own parent"):
            loader.validate()


class TestConfigManager:
    """Tests for ConfigManager.resolve."""

    def test_resolve_defaults(self, write_config):
        loader = ConfigLoader(write_config(FULL_CONFIG))
        loader.load()
        resolved = ConfigManager(loader).resolve()

        assert isinstance(resolved, ResolvedConfig)
        assert resolved.storage_directory == "./storage"
        assert resolved.cache_size == 64
        assert resolved.max_depth == 10
        assert resolved.enforce_folder_parents is True

    def test_environment_overrides_defaults(self, write_config):
        loader = ConfigLoader(write_config(FULL_CONFIG))
        loader.load()
        manager = ConfigManager(loader)

        dev = manager.resolve("dev")
        assert dev.storage_directory == "./dev-storage"
        assert dev.cache_size == 64

        production = manager.resolve("production")
        assert production.storage_directory == "./storage"
        assert production.cache_size == 512
        assert production.max_depth == 6

    def test_resolve_does_not_mutate_defaults(self, write_config):
        loader = ConfigLoader(write_config(FULL_CONFIG))
        loader.load()
        manager = ConfigManager(loader)
        manager.resolve("production")
        assert manager.resolve().cache_size == 64

    def test_unknown_environment_uses_defaults(self, write_config):
        loader = ConfigLoader(write_config(FULL_CONFIG))
        loader.load()
        assert ConfigManager(loader).resolve("staging").cache_size == 64

    def test_projects_are_normalized(self, write_config):
        loader = ConfigLoader(write_config(FULL_CONFIG))
        loader.load()
        resolved = ConfigManager(loader).resolve()

        campaign, legacy = resolved.projects
        assert isinstance(campaign, ResolvedProjectConfig)
        assert campaign.name == "Spring Campaign"
        assert campaign.assets[0].kind == AssetKind.FOLDER
        assert campaign.assets[1].parent == "designs"
        assert legacy.name == "legacy"
        assert legacy.assets[0].name == "Old Banner"
        assert legacy.assets[0].parent is None

    def test_project_to_dict(self, write_config):
        loader = ConfigLoader(write_config(FULL_CONFIG))
        loader.load()
        project = ConfigManager(loader).resolve().projects[0]
        data = project.to_dict()
        assert data["id"] == "campaign"
        assert data["assets"][1]["externalLink"] == "https://drive.example.com/hero"

    def test_get_resolved_config(self, write_config):
        loader = ConfigLoader(write_config(FULL_CONFIG))
        loader.load()
        manager = ConfigManager(loader)
        assert manager.get_resolved_config() is None
        resolved = manager.resolve()
        assert manager.get_resolved_config() is resolved

    def test_resolve_before_load(self):
        with pytest.raises(RuntimeError):
            ConfigManager(ConfigLoader("config.yaml")).resolve()


class TestLoadConfig:
    """Tests for the load_config convenience function."""

    def test_load_config(self, write_config):
        resolved = load_config(write_config(FULL_CONFIG), environment="production")
        assert resolved.max_depth == 6
        assert len(resolved.projects) == 2

    def test_load_config_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_config("/nonexistent/config.yaml")

    def test_empty_config_resolves_to_defaults(self, write_config):
        resolved = load_config(write_config(""))
        assert resolved.storage_directory == "./storage"
        assert resolved.cache_size == 128
        assert resolved.projects == []
