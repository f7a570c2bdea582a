"""Tests for configuration loading"""

from datetime import timedelta

import pytest

from ektobot.core.config import CONFIG_FILENAME, load_config
from ektobot.core.exceptions import ConfigurationError


class TestLoadConfig:
    """Test load_config defaults and overrides"""

    def test_defaults(self, temp_dir):
        """Without a config file every value has a default"""
        config = load_config(state_dir=temp_dir)
        state_dir = temp_dir.resolve()

        assert config.paths.state_dir == state_dir
        assert config.paths.audio_dir == state_dir / "mp3"
        assert config.paths.video_dir == state_dir / "video"
        assert config.paths.database == state_dir / "state.db"
        assert config.youtube.client_secret == state_dir / "client_secret.json"
        assert config.youtube.token_file == state_dir / "youtube_token.json"
        assert config.youtube.privacy_status == "public"
        assert config.pipeline.retry_attempts == 8
        assert config.pipeline.retry_delay == timedelta(hours=4)
        assert config.pipeline.daemon_sleep == 1.0

    def test_file_in_state_dir(self, temp_dir):
        """config.yaml in the state directory is picked up"""
        (temp_dir / CONFIG_FILENAME).write_text(
            "youtube:\n"
            "  privacy_status: unlisted\n"
            "pipeline:\n"
            "  retry_attempts: 2\n"
            "  retry_delay_hours: 0.5\n"
            "  daemon_sleep_seconds: 0\n"
        )
        config = load_config(state_dir=temp_dir)

        assert config.youtube.privacy_status == "unlisted"
        assert config.pipeline.retry_attempts == 2
        assert config.pipeline.retry_delay == timedelta(minutes=30)
        assert config.pipeline.daemon_sleep == 0.0

    def test_explicit_file_paths(self, temp_dir):
        """Directories can be moved out of the state directory"""
        config_file = temp_dir / "custom.yaml"
        config_file.write_text(
            "paths:\n"
            f"  state_dir: {temp_dir / 'state'}\n"
            f"  audio_dir: {temp_dir / 'music'}\n"
        )
        config = load_config(config_path=config_file)

        assert config.paths.state_dir == (temp_dir / "state").resolve()
        assert config.paths.audio_dir == (temp_dir / "music").resolve()
        assert config.paths.video_dir == (temp_dir / "state").resolve() / "video"

    def test_state_dir_override_wins(self, temp_dir):
        """The -d override beats paths.state_dir"""
        config_file = temp_dir / "custom.yaml"
        config_file.write_text(f"paths:\n  state_dir: {temp_dir / 'elsewhere'}\n")

        config = load_config(config_path=config_file, state_dir=temp_dir)
        assert config.paths.state_dir == temp_dir.resolve()

    def test_empty_file(self, temp_dir):
        """An empty config file means defaults"""
        (temp_dir / CONFIG_FILENAME).write_text("")
        assert load_config(state_dir=temp_dir).pipeline.retry_attempts == 8

    def test_missing_explicit_file(self, temp_dir):
        """An explicitly named config file must exist"""
        with pytest.raises(ConfigurationError, match="not found"):
            load_config(config_path=temp_dir / "missing.yaml")

    @pytest.mark.parametrize("content", [
        "pipeline:\n  retry_attempts: -1\n",
        "pipeline:\n  retry_attempts: yes\n",
        "pipeline:\n  retry_delay_hours: soon\n",
        "youtube:\n  privacy_status: secret\n",
        "paths: [mp3, video]\n",
        "- just\n- a list\n",
        "paths: {audio_dir: ''}\n",
    ])
    def test_invalid_values(self, temp_dir, content):
        """Wrongly typed values are rejected"""
        (temp_dir / CONFIG_FILENAME).write_text(content)
        with pytest.raises(ConfigurationError):
            load_config(state_dir=temp_dir)

    def test_invalid_yaml(self, temp_dir):
        """Broken YAML is a configuration error"""
        (temp_dir / CONFIG_FILENAME).write_text("paths: [unclosed\n")
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(state_dir=temp_dir)
