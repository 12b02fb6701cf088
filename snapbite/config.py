"""TOML configuration loader."""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

DEFAULT_OLLAMA_URL = "http://localhost:11434"
DEFAULT_OLLAMA_MODEL = "llava:7b-v1.6"


@dataclass
class CameraConfig:
    index: int = 0
    width: int = 1920
    height: int = 1080
    save_dir: str = "/tmp/snapbite"


@dataclass
class AnalysisConfig:
    path: str = "ollama"  # ollama / classifier
    prompt: str = "json"  # json / compact
    strict_parsing: bool = True


@dataclass
class OllamaConfig:
    base_url: str = DEFAULT_OLLAMA_URL
    model: str = DEFAULT_OLLAMA_MODEL
    timeout: float = 120.0
    max_attempts: int = 3
    backoff: float = 1.0


@dataclass
class ClassifierConfig:
    model_path: str = "models/food_classifier.onnx"
    labels_path: str = "models/food_labels.json"
    top_k: int = 3
    scale: float = 1 / 127.5
    mean: float = 1.0
    std: float = 1.0


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class SnapbiteConfig:
    camera: CameraConfig = field(default_factory=CameraConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)
    ollama: OllamaConfig = field(default_factory=OllamaConfig)
    classifier: ClassifierConfig = field(default_factory=ClassifierConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _ollama_url_from_env() -> str:
    host = os.environ.get("OLLAMA_HOST", "")
    if not host:
        return DEFAULT_OLLAMA_URL
    if not host.startswith(("http://", "https://")):
        host = f"http://{host}"
    return host


def load_config(path: str | Path | None = None) -> SnapbiteConfig:
    """Load configuration from a TOML file.

    Falls back to defaults if no path is given or the file doesn't exist.
    The Ollama URL and model fall back to the OLLAMA_HOST and SNAPBITE_MODEL
    environment variables when the file leaves them unset.
    """
    raw: dict = {}

    if path is not None:
        p = Path(path)
        if p.exists():
            with open(p, "rb") as f:
                raw = tomllib.load(f)

    cam = raw.get("camera", {})
    ana = raw.get("analysis", {})
    oll = raw.get("ollama", {})
    cls = raw.get("classifier", {})
    log = raw.get("logging", {})

    # Resolve Ollama endpoint: config file → environment variable → default
    base_url = oll.get("base_url", "") or _ollama_url_from_env()
    model = oll.get("model", "") or os.environ.get(
        "SNAPBITE_MODEL", DEFAULT_OLLAMA_MODEL
    )

    defaults = ClassifierConfig()

    return SnapbiteConfig(
        camera=CameraConfig(
            index=cam.get("index", 0),
            width=cam.get("width", 1920),
            height=cam.get("height", 1080),
            save_dir=cam.get("save_dir", "/tmp/snapbite"),
        ),
        analysis=AnalysisConfig(
            path=ana.get("path", "ollama"),
            prompt=ana.get("prompt", "json"),
            strict_parsing=ana.get("strict_parsing", True),
        ),
        ollama=OllamaConfig(
            base_url=base_url,
            model=model,
            timeout=oll.get("timeout", 120.0),
            max_attempts=oll.get("max_attempts", 3),
            backoff=oll.get("backoff", 1.0),
        ),
        classifier=ClassifierConfig(
            model_path=cls.get("model_path", defaults.model_path),
            labels_path=cls.get("labels_path", defaults.labels_path),
            top_k=cls.get("top_k", defaults.top_k),
            scale=cls.get("scale", defaults.scale),
            mean=cls.get("mean", defaults.mean),
            std=cls.get("std", defaults.std),
        ),
        logging=LoggingConfig(
            level=str(log.get("level", "WARNING")).upper(),
        ),
    )
