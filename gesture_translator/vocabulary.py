"""
Gesture vocabulary: the ordered label list aligned with the classifier output.

Index 0 is always the idle label ("no recognizable gesture").
"""

import json
import logging
from pathlib import Path

import joblib

from gesture_translator.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_WORDS = (
    "(idle)",
    "fine",
    "hello",
    "how",
    "i",
    "no",
    "sorry",
    "thank you",
    "what",
    "yes",
    "you",
)

# Class names that mean "no gesture" in label encoders
IDLE_NAMES = ("(idle)", "idle", "none", "nothing", "background", "blank")


class Vocabulary:
    """Immutable ordered sequence of labels; position i matches model output i."""

    def __init__(self, labels):
        labels = tuple(str(label).strip() for label in labels)
        if len(labels) < 2:
            raise ConfigurationError(
                f"Vocabulary needs the idle label plus at least one word, got {list(labels)}"
            )
        if any(not label for label in labels):
            raise ConfigurationError("Vocabulary contains an empty label")
        if len(set(labels)) != len(labels):
            dupes = sorted({l for l in labels if labels.count(l) > 1})
            raise ConfigurationError(f"Duplicate labels in vocabulary: {dupes}")
        self._labels = labels

    @property
    def idle(self):
        return self._labels[0]

    @property
    def labels(self):
        return self._labels

    def is_idle(self, label):
        return label == self._labels[0]

    def __getitem__(self, index):
        return self._labels[index]

    def __len__(self):
        return len(self._labels)

    def __iter__(self):
        return iter(self._labels)

    def __eq__(self, other):
        if isinstance(other, Vocabulary):
            return self._labels == other._labels
        return NotImplemented

    def __hash__(self):
        return hash(self._labels)

    def __repr__(self):
        return f"Vocabulary({list(self._labels)!r})"


def default_vocabulary():
    return Vocabulary(DEFAULT_WORDS)


def load_vocabulary(path):
    """
    Load labels from a .txt (one per line), .json (list or {"classes": [...]}
    / {"class_names": [...]}) or .joblib (fitted LabelEncoder) file.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"Labels file not found: {path}")

    suffix = path.suffix.lower()
    if suffix == ".txt":
        with open(path, encoding="utf-8") as f:
            labels = [line.strip() for line in f if line.strip()]
    elif suffix == ".json":
        with open(path, encoding="utf-8") as f:
            obj = json.load(f)
        labels = _labels_from_json(obj, path)
    elif suffix == ".joblib":
        encoder = joblib.load(path)
        if not hasattr(encoder, "classes_"):
            raise ConfigurationError(f"{path} does not hold a fitted label encoder")
        labels = _labels_from_encoder(encoder, path)
    else:
        raise ConfigurationError(f"Unsupported labels file format: {path}")

    return Vocabulary(labels)


def _labels_from_json(obj, path):
    if isinstance(obj, list):
        return obj
    if isinstance(obj, dict):
        for key in ("classes", "class_names"):
            if key in obj:
                if not isinstance(obj[key], list):
                    raise ConfigurationError(f"\"{key}\" in {path} must be a list of labels")
                return obj[key]
    raise ConfigurationError(f"Unrecognized labels file format: {path}")


def _labels_from_encoder(encoder, path):
    # LabelEncoder sorts its classes, and index 0 is taken as the idle label
    labels = [str(label) for label in encoder.classes_]
    if not labels:
        return labels
    idle = [label for label in labels if label.strip().lower() in IDLE_NAMES]
    if idle and labels[0] not in idle:
        raise ConfigurationError(
            f"{path}: idle class {idle[0]!r} does not sort first, so {labels[0]!r} would be "
            "treated as idle. Rename the idle class to \"(idle)\" and refit the encoder"
        )
    if not idle:
        logger.warning("%s has no idle class; using %r as the idle label", path, labels[0])
    else:
        logger.info("Idle label: %r", labels[0])
    return labels
