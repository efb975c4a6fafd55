import json

import pytest

from func_emulator.models.config import ProjectConfig
from func_emulator.utils.config_manager import ConfigError, ConfigManager


class TestConfigManager:
    """Smoke tests for ConfigManager functionality."""

    def test_load(self, temp_project_dir):
        manager = ConfigManager(temp_project_dir)

        assert manager.exists()
        assert manager.get_project_id() == "demo"
        assert manager.get_endpoint() == "https://cloud.example.com/v1"
        assert [f.id for f in manager.get_functions()] == ["hello"]
        assert manager.get_settings().debounce_seconds == 0.05

    def test_load_is_cached(self, temp_project_dir):
        manager = ConfigManager(temp_project_dir)
        first = manager.load()
        (temp_project_dir / "functions.json").write_text("{}")
        assert manager.load() is first

    def test_get_function(self, temp_project_dir):
        manager = ConfigManager(temp_project_dir)
        assert manager.get_function("hello").runtime == "node-18"
        assert manager.get_function("missing") is None

    def test_missing_file(self, tmp_path):
        manager = ConfigManager(tmp_path)
        assert not manager.exists()
        with pytest.raises(ConfigError, match="No functions.json"):
            manager.load()

    def test_invalid_json(self, tmp_path):
        (tmp_path / "functions.json").write_text("{not json")
        with pytest.raises(ConfigError, match="not valid JSON"):
            ConfigManager(tmp_path).load()

    def test_invalid_function(self, tmp_path):
        (tmp_path / "functions.json").write_text(json.dumps({
            "functions": [{"$id": "broken"}],
        }))
        with pytest.raises(ConfigError, match="Invalid functions.json"):
            ConfigManager(tmp_path).load()

    def test_save_round_trip_keeps_aliases(self, tmp_path):
        manager = ConfigManager(tmp_path)
        manager.save(ProjectConfig(**{
            "projectId": "demo",
            "functions": [{"$id": "hello", "runtime": "node-18", "entrypoint": "index.js"}],
        }))

        data = json.loads((tmp_path / "functions.json").read_text())
        assert data['projectId'] == "demo"
        assert data['functions'][0]['$id'] == "hello"
        assert "endpoint" not in data
        assert ConfigManager(tmp_path).get_function("hello") is not None
