"""
Tests unitaires pour le chargement de la configuration.
"""

from pathlib import Path

import pytest

from ebios_rm.config import ConfigError, Settings, load_settings


class TestLoadSettings:
    """Tests pour load_settings."""

    def test_defaults_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = load_settings()
        assert settings == Settings()

    def test_yaml_file(self, tmp_path):
        path = tmp_path / 'ebios-rm.yaml'
        path.write_text('data_dir: stockage\nfetch_timeout: 2.5\nlog_level: info\n', encoding='utf-8')
        settings = load_settings(path)
        assert settings.data_dir == Path('stockage')
        assert settings.fetch_timeout == 2.5
        assert settings.log_level == 'INFO'

    def test_environment_overrides_file(self, tmp_path, monkeypatch):
        path = tmp_path / 'ebios-rm.yaml'
        path.write_text('diagram_width: 800\n', encoding='utf-8')
        monkeypatch.setenv('EBIOS_RM_DIAGRAM_WIDTH', '1024')
        monkeypatch.setenv('EBIOS_RM_TECHNIQUE_SOURCE', 'https://example.org/attack.csv')
        settings = load_settings(path)
        assert settings.diagram_width == 1024
        assert settings.technique_source == 'https://example.org/attack.csv'

    def test_environment_without_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv('EBIOS_RM_LOG_LEVEL', 'debug')
        monkeypatch.setenv('EBIOS_RM_DATA_DIR', str(tmp_path / 'etudes'))
        settings = load_settings()
        assert settings.log_level == 'DEBUG'
        assert settings.data_dir == tmp_path / 'etudes'

    def test_invalid_environment_value(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv('EBIOS_RM_FETCH_TIMEOUT', '-1')
        with pytest.raises(ConfigError):
            load_settings()

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(tmp_path / 'absent.yaml')

    @pytest.mark.parametrize('content', ['data_dir: [', '- liste\n', 'fetch_timeout: 0\n', 'log_level: bavard\n'])
    def test_invalid_content(self, tmp_path, content):
        path = tmp_path / 'ebios-rm.yaml'
        path.write_text(content, encoding='utf-8')
        with pytest.raises(ConfigError):
            load_settings(path)
