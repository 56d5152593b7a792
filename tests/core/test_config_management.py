# tests/core/test_config_management.py
import pytest
import json

from reconciler.managers.config_manager import ConfigManager
from reconciler.model import ScanPolicy
from reconciler.utils.path_utils import PathUtils

# Een standaard, voorspelbare configuratie voor onze tests
MOCK_SETTINGS_CONTENT = {
    "debug": {
        "level": "WARNING"
    },
    "site": {
        "origin": "https://www.example.org",
        "require_www": True
    },
    "scan": {
        "workers": 1,
        "deny_dirs": ["node_modules"]
    },
    "canonical": {
        "strict": False
    }
}


@pytest.fixture
def config_env(tmp_path, monkeypatch):
    """
    Een fixture die een geïsoleerde testomgeving opzet voor de ConfigManager:
    - Plaatst een nep 'settings.json' bestand in een tijdelijke map.
    - Monkeypatched PathUtils om naar dit bestand te wijzen.
    """
    settings_file = tmp_path / "settings.json"
    settings_file.write_text(json.dumps(MOCK_SETTINGS_CONTENT))

    monkeypatch.setattr(PathUtils, 'get_settings_file', lambda: settings_file)

    # De singleton is al geladen; forceer herladen vanuit ons nep-bestand.
    manager = ConfigManager()
    manager.reset()

    yield manager

    # Herstel de echte settings.json voor de volgende tests.
    monkeypatch.undo()
    manager.reset()


def test_config_manager_is_singleton(config_env):
    assert ConfigManager() is config_env


def test_config_manager_load(config_env):
    """Test of de manager de configuratie correct laadt."""
    assert config_env.get_nested("debug.level") == "WARNING"
    assert config_env.get_nested("site.origin") == "https://www.example.org"


def test_config_manager_get_nested(config_env):
    """Test het ophalen van geneste waarden."""
    assert config_env.get_nested("scan.workers") == 1
    assert config_env.get_nested("non.existent.key", "default") == "default"
    assert config_env.get_nested("debug.level.deeper", "default") == "default"


def test_config_manager_set_nested(config_env):
    """Test het aanpassen van waarden in het geheugen."""
    config_env.set_nested("debug.level", "INFO")
    assert config_env.get_nested("debug.level") == "INFO"

    # Nieuwe sleutel
    config_env.set_nested("new_feature.enabled", "True")
    assert config_env.get_nested("new_feature.enabled")

    # Type-casting: de originele waarde is een int
    config_env.set_nested("scan.workers", "4")
    assert config_env.get_nested("scan.workers") == 4

    # Booleans uit strings
    config_env.set_nested("canonical.strict", "false")
    assert config_env.get_nested("canonical.strict") is False
    config_env.set_nested("canonical.strict", "yes")
    assert config_env.get_nested("canonical.strict") is True


def test_config_manager_reset(config_env):
    """Test of de reset-functie de configuratie herlaadt vanaf schijf."""
    config_env.set_nested("debug.level", "DEBUG")
    config_env.reset()
    assert config_env.get_nested("debug.level") == "WARNING"


def test_load_file_deep_merges(config_env, tmp_path):
    """Een --settings bestand overschrijft alleen de opgegeven sleutels."""
    override = tmp_path / "override.json"
    override.write_text(json.dumps({"site": {"origin": "https://docs.example.org"}, "scan": {"workers": 3}}))

    assert config_env.load_file(override) is True
    assert config_env.get_nested("site.origin") == "https://docs.example.org"
    assert config_env.get_nested("site.require_www") is True
    assert config_env.get_nested("scan.workers") == 3
    assert config_env.get_nested("scan.deny_dirs") == ["node_modules"]


@pytest.mark.parametrize("content", ["{broken", "[]"])
def test_load_file_rejects_unusable_files(config_env, tmp_path, content):
    override = tmp_path / "override.json"
    override.write_text(content)
    assert config_env.load_file(override) is False
    assert config_env.get_nested("debug.level") == "WARNING"


def test_missing_settings_file_gives_empty_config(config_env, tmp_path, monkeypatch):
    monkeypatch.setattr(PathUtils, 'get_settings_file', lambda: tmp_path / "absent.json")
    config_env.reset()
    assert config_env.get_nested("debug.level") is None
    assert config_env.get_nested("site.origin", "fallback") == "fallback"


def test_scan_policy_from_config(config_env):
    policy = ScanPolicy.from_config(config_env, strict=True, site_origin=None)
    assert policy.site_origin == "https://www.example.org"
    assert policy.strict is True
    assert policy.amp_index_pages == ["amp/index.html"]


def test_packaged_settings_file_exists():
    assert PathUtils.get_settings_file().is_file()
