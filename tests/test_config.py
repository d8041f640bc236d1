from pathlib import Path

import pytest

from sanka_pulse.config import load_app_config


def write_config(tmp_path: Path, content: str) -> Path:
    path = tmp_path / "sanka_pulse_config.toml"
    path.write_text(content, encoding="utf-8")
    return path


def test_load_app_config_full(tmp_path):
    """Every section is read and paths are resolved next to the config file."""
    path = write_config(
        tmp_path,
        """
[database]
engine = "sqlite"
path = "db/pulse.sqlite"

[data]
directory = "records"

[reasoning]
provider = "openai"
model = "gpt-test"
api_key_env = "PULSE_KEY"
base_url = "http://localhost:8080/v1"
temperature = 0.7
timeout_seconds = 15

[insights]
window_days = 14
concurrent = true
""",
    )

    config = load_app_config(str(path))

    assert config.database.engine == "sqlite"
    assert config.database.path == (tmp_path / "db" / "pulse.sqlite").resolve()
    assert config.data_dir == (tmp_path / "records").resolve()
    assert config.reasoning.model == "gpt-test"
    assert config.reasoning.api_key_env == "PULSE_KEY"
    assert config.reasoning.base_url == "http://localhost:8080/v1"
    assert config.reasoning.temperature == pytest.approx(0.7)
    assert config.reasoning.timeout_seconds == pytest.approx(15.0)
    assert config.window_days == 14
    assert config.concurrent is True


def test_load_app_config_defaults(tmp_path):
    """An empty file yields the default configuration."""
    path = write_config(tmp_path, "")

    config = load_app_config(str(path))

    assert config.database.engine == "sqlite"
    assert config.database.path.name == "sanka_pulse.sqlite"
    assert config.data_dir == (tmp_path / "data").resolve()
    assert config.reasoning.provider == "openai"
    assert config.reasoning.api_key_env == "OPENAI_API_KEY"
    assert config.reasoning.base_url is None
    assert config.window_days == 30
    assert config.concurrent is False


def test_load_app_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_app_config(str(tmp_path / "missing.toml"))


def test_load_app_config_invalid_toml(tmp_path):
    path = write_config(tmp_path, "[database\npath = ")

    with pytest.raises(ValueError, match="Failed to parse"):
        load_app_config(str(path))


@pytest.mark.parametrize(
    "content, message",
    [
        ('[insights]\nwindow_days = "a month"\n', "window_days"),
        ("[insights]\nwindow_days = -3\n", "window_days"),
        ('[reasoning]\ntemperature = "warm"\n', "temperature"),
        ("[reasoning]\ntimeout_seconds = 0\n", "timeout_seconds"),
        ('[insights]\nconcurrent = "false"\n', "concurrent"),
        ("[insights]\nconcurrent = 1\n", "concurrent"),
    ],
)
def test_load_app_config_invalid_values(tmp_path, content, message):
    path = write_config(tmp_path, content)

    with pytest.raises(ValueError, match=message):
        load_app_config(str(path))
