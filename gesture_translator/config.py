"""
Runtime configuration for the gesture translator.

Settings come from three layers, later ones winning:
    1. the defaults below
    2. an optional JSON config file (e.g. models/translator_config.json)
    3. command-line overrides (None values are ignored)
"""

import json
from pathlib import Path

from gesture_translator.errors import ConfigurationError

# Webcam image size fed to the classifier
IMAGE_SIZE = 224
# Predictions per second actually run through the model
TARGET_FPS = 5
# Wake-up rate of the polling loop (roughly the display refresh rate)
WAKEUP_HZ = 60
# Confidence a prediction must strictly exceed to be emitted
CONF_THRESHOLD = 0.5

DEFAULTS = {
    "model_path": "models/model.keras",
    "labels_path": None,
    "image_size": IMAGE_SIZE,
    "pixel_scale": 1.0,
    "bgr_input": True,
    "target_fps": TARGET_FPS,
    "wakeup_hz": WAKEUP_HZ,
    "conf_threshold": CONF_THRESHOLD,
    "camera": 0,
    "tts": True,
    "voice_id": None,
    "pitch": 1.0,
    "rate": 0.9,
    "transcript_dir": "transcripts",
}

NUMERIC_KEYS = ("conf_threshold", "target_fps", "wakeup_hz", "image_size", "pixel_scale", "pitch", "rate")


def load_config(path=None, overrides=None):
    """Build the config dict from defaults, an optional JSON file, and overrides."""
    config = dict(DEFAULTS)

    if path is not None:
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {path}")
        with open(path) as f:
            try:
                file_config = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigurationError(f"{path} must contain a JSON object")
        _merge(config, file_config, source=str(path))

    if overrides:
        _merge(config, {k: v for k, v in overrides.items() if v is not None},
               source="overrides")

    validate_config(config)
    return config


def _merge(config, values, source):
    unknown = sorted(set(values) - set(DEFAULTS))
    if unknown:
        raise ConfigurationError(f"Unknown config keys in {source}: {unknown}")
    config.update(values)


def validate_config(config):
    """Raise ConfigurationError for values the translator cannot run with."""
    for key in NUMERIC_KEYS:
        value = config[key]
        # bool is an int subclass but never a valid setting here
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ConfigurationError(f"{key} must be a number, got {value!r}")
    threshold = config["conf_threshold"]
    if not 0.0 <= threshold < 1.0:
        raise ConfigurationError(f"conf_threshold must be in [0, 1), got {threshold}")
    if config["target_fps"] <= 0:
        raise ConfigurationError(f"target_fps must be positive, got {config['target_fps']}")
    if config["wakeup_hz"] < config["target_fps"]:
        raise ConfigurationError(
            f"wakeup_hz ({config['wakeup_hz']}) must be >= target_fps ({config['target_fps']})"
        )
    if int(config["image_size"]) <= 0:
        raise ConfigurationError(f"image_size must be positive, got {config['image_size']}")
    if config["pixel_scale"] <= 0:
        raise ConfigurationError(f"pixel_scale must be positive, got {config['pixel_scale']}")
    for key in ("pitch", "rate"):
        if config[key] <= 0:
            raise ConfigurationError(f"{key} must be positive, got {config[key]}")
