import pytest
from pathlib import Path
from unittest.mock import patch
from pydantic import ValidationError

from auction_assistant.config.settings import Settings


@pytest.fixture
def env(tmp_path):
    return {
        "ANTHROPIC_API_KEY": "sk-ant-api-test-key",
        "OUTPUT_DIR": str(tmp_path / "out"),
        "LOG_DIR": str(tmp_path / "logs"),
    }


def test_real_settings_defaults(env, tmp_path):
    with patch.dict("os.environ", env, clear=True):
        settings = Settings(_env_file=None)

    assert settings.anthropic_api_key.get_secret_value() == "sk-ant-api-test-key"
    assert settings.app_env == "development"
    assert settings.vision_max_tokens == 1500
    assert settings.vision_temperature == 0.3
    assert settings.post_temperature == 0.7
    assert settings.max_retries == 3
    assert settings.report_format == "markdown"
    assert settings.min_confidence_threshold == 50
    assert settings.max_upload_size_bytes == 10 * 1024 * 1024
    # Directories are created on load
    assert settings.output_dir == Path(tmp_path / "out")
    assert settings.output_dir.is_dir()
    assert settings.log_dir.is_dir()


def test_settings_env_overrides(env):
    env.update({"MAX_RETRIES": "5", "REPORT_FORMAT": "html", "VISION_MODEL": "claude-test"})
    with patch.dict("os.environ", env, clear=True):
        settings = Settings(_env_file=None)

    assert settings.max_retries == 5
    assert settings.report_format == "html"
    assert settings.vision_model == "claude-test"


def test_api_key_is_not_rendered(env):
    with patch.dict("os.environ", env, clear=True):
        settings = Settings(_env_file=None)
    assert "sk-ant-api-test-key" not in repr(settings)


@pytest.mark.parametrize("key", ["", "not-a-key"])
def test_invalid_api_key(env, key):
    env["ANTHROPIC_API_KEY"] = key
    with patch.dict("os.environ", env, clear=True):
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


def test_missing_api_key(env):
    del env["ANTHROPIC_API_KEY"]
    with patch.dict("os.environ", env, clear=True):
        with pytest.raises(ValidationError):
            Settings(_env_file=None)


def test_threshold_range(env):
    env["MIN_CONFIDENCE_THRESHOLD"] = "150"
    with patch.dict("os.environ", env, clear=True):
        with pytest.raises(ValidationError, match="between 0 and 100"):
            Settings(_env_file=None)


def test_unknown_report_format(env):
    env["REPORT_FORMAT"] = "pdf"
    with patch.dict("os.environ", env, clear=True):
        with pytest.raises(ValidationError):
            Settings(_env_file=None)
