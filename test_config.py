"""
Settings tests: defaults, environment overrides and .env loading.
"""

import pytest
from pydantic import ValidationError

from core.config import DEFAULT_SETTINGS, ENV_PREFIX, PipelineSettings


ENV_NAMES = [
    f"{ENV_PREFIX}SIMILARITY_THRESHOLD",
    f"{ENV_PREFIX}SNAPSHOT_PATH",
    f"{ENV_PREFIX}LOG_LEVEL",
    f"{ENV_PREFIX}LOG_JSON",
    f"{ENV_PREFIX}ALIAS_FILE",
]


@pytest.fixture
def clean_env(monkeypatch):
    """Unset every pipeline variable; values load_dotenv adds are removed on teardown too."""
    for name in ENV_NAMES:
        monkeypatch.setenv(name, "")
        monkeypatch.delenv(name)
    return monkeypatch


class TestPipelineSettings:
    """Settings resolution."""

    def test_defaults(self):
        assert DEFAULT_SETTINGS.similarity_threshold == 0.8
        assert DEFAULT_SETTINGS.log_level == "INFO"
        assert DEFAULT_SETTINGS.log_json is False
        assert DEFAULT_SETTINGS.alias_file is None
        assert DEFAULT_SETTINGS.snapshot_path.name == "store_snapshot.json"

    def test_from_environment(self, clean_env, tmp_path):
        clean_env.setenv(f"{ENV_PREFIX}SIMILARITY_THRESHOLD", "0.65")
        clean_env.setenv(f"{ENV_PREFIX}LOG_LEVEL", "debug")
        clean_env.setenv(f"{ENV_PREFIX}LOG_JSON", "yes")
        clean_env.setenv(f"{ENV_PREFIX}SNAPSHOT_PATH", str(tmp_path / "s.json"))

        settings = PipelineSettings.from_env(env_file=tmp_path / "missing.env")

        assert settings.similarity_threshold == 0.65
        assert settings.log_level == "DEBUG"
        assert settings.log_json is True
        assert settings.snapshot_path == tmp_path / "s.json"

    def test_env_file_does_not_override_environment(self, clean_env, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            f"{ENV_PREFIX}SIMILARITY_THRESHOLD=0.5\n"
            f"{ENV_PREFIX}ALIAS_FILE=aliases.json\n"
        )
        clean_env.setenv(f"{ENV_PREFIX}SIMILARITY_THRESHOLD", "0.9")

        settings = PipelineSettings.from_env(env_file=env_file)

        assert settings.similarity_threshold == 0.9
        assert str(settings.alias_file) == "aliases.json"

    def test_invalid_values_rejected(self):
        with pytest.raises(ValidationError):
            PipelineSettings(similarity_threshold=1.5)
        with pytest.raises(ValidationError):
            PipelineSettings(log_level="chatty")
