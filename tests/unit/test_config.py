"""Unit tests for ScribeConfig."""

import pytest
from pathlib import Path

from scribe.config import ScribeConfig
from scribe.errors import ConfigurationError


def write_yaml(directory, text):
    path = Path(directory) / "scribe.yaml"
    path.write_text(text, encoding="utf-8")
    return path


@pytest.mark.unit
class TestScribeConfig:
    """Test cases for the YAML + environment configuration loader."""

    def test_get_with_dot_notation(self):
        config = ScribeConfig.from_dict({"voice": {"ready_timeout_seconds": 30}})

        assert config.get("voice.ready_timeout_seconds") == 30
        assert config.get("voice.missing", "fallback") == "fallback"
        assert config.get("nothing.here") is None

    def test_set_creates_nested_sections(self):
        config = ScribeConfig.from_dict({})

        config.set("gemini.model", "gemini-2.5-pro")

        assert config.get("gemini.model") == "gemini-2.5-pro"

    def test_load_from_yaml(self, temp_data_dir):
        path = write_yaml(temp_data_dir, "discord:\n  target_user_id: '42'\nsummarization:\n  mode: audio\n")

        config = ScribeConfig(str(path), environ={})

        assert config.get_target_user_id() == "42"
        assert config.get("summarization.mode") == "audio"

    def test_environment_overrides_yaml(self, temp_data_dir):
        path = write_yaml(temp_data_dir, "discord:\n  token: from-yaml\n  target_user_id: '1'\n")

        config = ScribeConfig(str(path), environ={"DISCORD_TOKEN": "from-env", "PORT": "8080"})

        assert config.get_discord_token() == "from-env"
        assert config.get_target_user_id() == "1"
        assert config.get("status.port") == "8080"

    def test_empty_environment_values_are_ignored(self):
        config = ScribeConfig.from_dict({"gemini": {"api_key": "yaml-key"}}, environ={"GEMINI_API_KEY": ""})

        assert config.get("gemini.api_key") == "yaml-key"

    def test_relative_paths_resolved_against_config_file(self, temp_data_dir):
        path = write_yaml(temp_data_dir, "storage:\n  data_directory: data\nlogging:\n  file_path: logs/scribe.log\n")

        config = ScribeConfig(str(path), environ={})

        assert config.get("storage.data_directory") == str(Path(temp_data_dir) / "data")
        assert config.get("logging.file_path") == str(Path(temp_data_dir) / "logs/scribe.log")

    def test_require_missing_value_raises(self):
        config = ScribeConfig.from_dict({"discord": {"token": ""}})

        with pytest.raises(ConfigurationError):
            config.get_discord_token()
        with pytest.raises(ConfigurationError):
            config.require("gemini.api_key")

    def test_notes_channel_is_optional(self):
        assert ScribeConfig.from_dict({}).get_notes_channel_id() is None
        config = ScribeConfig.from_dict({}, environ={"MEETING_NOTES_CHANNEL_ID": "123"})
        assert config.get_notes_channel_id() == "123"

    def test_missing_file_raises(self, temp_data_dir):
        with pytest.raises(FileNotFoundError):
            ScribeConfig(str(Path(temp_data_dir) / "nope.yaml"), environ={})

    def test_empty_file_raises(self, temp_data_dir):
        path = write_yaml(temp_data_dir, "")

        with pytest.raises(ConfigurationError):
            ScribeConfig(str(path), environ={})

    def test_invalid_yaml_raises(self, temp_data_dir):
        path = write_yaml(temp_data_dir, "voice: [unclosed\n")

        with pytest.raises(ConfigurationError):
            ScribeConfig(str(path), environ={})
