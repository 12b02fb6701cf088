"""Tests for config loading."""

import os
import tempfile

import pytest

from snapbite.config import SnapbiteConfig, load_config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("OLLAMA_HOST", raising=False)
    monkeypatch.delenv("SNAPBITE_MODEL", raising=False)


def _load(toml_content: bytes) -> SnapbiteConfig:
    with tempfile.NamedTemporaryFile(suffix=".toml", delete=False) as f:
        f.write(toml_content)
        f.flush()
        config = load_config(f.name)

    os.unlink(f.name)
    return config


def test_load_config_defaults():
    """Loading with no path returns all defaults."""
    config = load_config()
    assert isinstance(config, SnapbiteConfig)
    assert config.camera.index == 0
    assert config.camera.width == 1920
    assert config.camera.height == 1080
    assert config.analysis.path == "ollama"
    assert config.analysis.prompt == "json"
    assert config.analysis.strict_parsing is True
    assert config.ollama.base_url == "http://localhost:11434"
    assert config.ollama.model == "llava:7b-v1.6"
    assert config.ollama.timeout == 120.0
    assert config.ollama.max_attempts == 3
    assert config.classifier.top_k == 3
    assert config.logging.level == "WARNING"


def test_load_config_nonexistent_file():
    """Loading a nonexistent file returns defaults."""
    config = load_config("/nonexistent/path.toml")
    assert config.camera.index == 0


def test_load_config_from_toml():
    """Loading a valid TOML file populates config."""
    config = _load(b"""\
[camera]
index = 1
width = 1280
height = 720
save_dir = "/var/snapbite"

[analysis]
path = "classifier"
prompt = "compact"
strict_parsing = false

[ollama]
base_url = "http://gpu-box:11434"
model = "llava:13b"
timeout = 60
max_attempts = 5

[classifier]
model_path = "/opt/models/food101.onnx"
labels_path = "/opt/models/food101.json"
top_k = 5
scale = 0.00392156862745098
mean = 0.0

[logging]
level = "debug"
""")

    assert config.camera.index == 1
    assert config.camera.width == 1280
    assert config.camera.save_dir == "/var/snapbite"
    assert config.analysis.path == "classifier"
    assert config.analysis.prompt == "compact"
    assert config.analysis.strict_parsing is False
    assert config.ollama.base_url == "http://gpu-box:11434"
    assert config.ollama.model == "llava:13b"
    assert config.ollama.timeout == 60
    assert config.ollama.max_attempts == 5
    assert config.classifier.model_path == "/opt/models/food101.onnx"
    assert config.classifier.top_k == 5
    assert config.classifier.mean == 0.0
    assert config.classifier.std == 1.0
    assert config.logging.level == "DEBUG"


def test_load_config_env_override(monkeypatch):
    """Environment variables fill in the Ollama endpoint and model."""
    monkeypatch.setenv("OLLAMA_HOST", "http://10.0.0.5:11434")
    monkeypatch.setenv("SNAPBITE_MODEL", "llava:34b")

    config = load_config()
    assert config.ollama.base_url == "http://10.0.0.5:11434"
    assert config.ollama.model == "llava:34b"


def test_load_config_ollama_host_without_scheme(monkeypatch):
    monkeypatch.setenv("OLLAMA_HOST", "127.0.0.1:11434")
    config = load_config()
    assert config.ollama.base_url == "http://127.0.0.1:11434"


def test_load_config_file_takes_precedence(monkeypatch):
    """Config file values take precedence over env vars."""
    monkeypatch.setenv("OLLAMA_HOST", "env-host:11434")
    monkeypatch.setenv("SNAPBITE_MODEL", "env-model")

    config = _load(b"""\
[ollama]
base_url = "http://file-host:11434"
model = "file-model"
""")
    assert config.ollama.base_url == "http://file-host:11434"
    assert config.ollama.model == "file-model"


def test_load_config_partial_toml():
    """Partial TOML uses defaults for missing sections."""
    config = _load(b"""\
[camera]
index = 3
""")
    assert config.camera.index == 3
    # Other sections use defaults
    assert config.analysis.path == "ollama"
    assert config.ollama.model == "llava:7b-v1.6"
    assert config.classifier.labels_path == "models/food_labels.json"
