"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest
import yaml

from buildcast.config import Config


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """Run each test in an empty directory without env overrides."""
    monkeypatch.chdir(tmp_path)
    for name in ('BUILDCAST_LOG_LEVEL', 'BUILDCAST_DB_PATH', 'BUILDCAST_CACHE_TTL'):
        monkeypatch.delenv(name, raising=False)


class TestConfig:
    """Test the configuration manager."""

    def test_defaults(self):
        config = Config()

        assert config.config.forecast.cache_ttl == 3600
        assert config.config.forecast.history_window == 10
        assert config.config.calendar.window_buffer == 1.4
        assert config.config.calendar.max_range_days == 3660
        assert config.config.server.port == 5000
        assert config.db_path() == Path.home() / ".buildcast" / "buildcast.db"

    def test_defaults_not_shared_between_instances(self):
        first = Config()
        first.set('forecast.cache_ttl', 60)

        assert Config().config.forecast.cache_ttl == 3600

    def test_yaml_file_discovered(self, tmp_path):
        (tmp_path / '.buildcast.yaml').write_text(yaml.dump({
            'forecast': {'cache_ttl': 120},
            'storage': {'db_path': str(tmp_path / 'data.db')},
        }))

        config = Config()

        assert config.config.forecast.cache_ttl == 120
        assert config.config.forecast.min_history == 5
        assert config.db_path() == tmp_path / 'data.db'

    def test_explicit_json_file(self, tmp_path):
        path = tmp_path / 'settings.json'
        path.write_text(json.dumps({'server': {'port': 8080}}))

        config = Config(str(path))

        assert config.config.server.port == 8080
        assert config.get('server.host') == '127.0.0.1'

    def test_toml_file(self, tmp_path):
        path = tmp_path / '.buildcast.toml'
        path.write_text('[calendar]\nwindow_buffer = 2.0\n')

        assert Config(str(path)).config.calendar.window_buffer == 2.0

    def test_environment_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv('BUILDCAST_LOG_LEVEL', 'DEBUG')
        monkeypatch.setenv('BUILDCAST_DB_PATH', str(tmp_path / 'env.db'))
        monkeypatch.setenv('BUILDCAST_CACHE_TTL', '90')

        config = Config()

        assert config.config.logging.level == 'DEBUG'
        assert config.db_path() == tmp_path / 'env.db'
        assert config.config.forecast.cache_ttl == 90

    def test_invalid_ttl_override_ignored(self, monkeypatch):
        monkeypatch.setenv('BUILDCAST_CACHE_TTL', 'soon')
        assert Config().config.forecast.cache_ttl == 3600

    def test_get_and_set(self):
        config = Config()

        assert config.get('forecast.min_history') == 5
        assert config.get('forecast.nope', 'fallback') == 'fallback'

        config.set('server.port', 9000)
        assert config.config.server.port == 9000

    def test_save_and_reload(self, tmp_path):
        config = Config()
        config.set('forecast.cache_ttl', 42)
        config.save(str(tmp_path / 'saved.yaml'))

        assert Config(str(tmp_path / 'saved.yaml')).config.forecast.cache_ttl == 42

    def test_validate(self):
        config = Config()
        assert config.validate()

        config.config_data['server']['port'] = 'not a port'
        assert not config.validate()

    def test_create_default(self, tmp_path):
        path = tmp_path / 'fresh.yaml'

        config = Config.create_default(str(path))

        assert path.exists()
        assert yaml.safe_load(path.read_text())['forecast']['cache_ttl'] == 3600
        assert config.config.server.port == 5000
