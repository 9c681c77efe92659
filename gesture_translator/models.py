"""
Model loading.

Keras models (.keras / .h5 / SavedModel dir) are used as-is; TFLite files are
wrapped so both expose predict(x, verbose=0) and output_shape.
"""

import logging
import os
from pathlib import Path

import numpy as np

from gesture_translator.errors import ConfigurationError

# Suppress TF warnings
os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")

logger = logging.getLogger(__name__)


class TFLiteModel:
    """Keras-like wrapper around tf.lite.Interpreter. Not safe for concurrent calls."""

    def __init__(self, model_path):
        import tensorflow as tf

        self.interpreter = tf.lite.Interpreter(model_path=str(model_path))
        self.interpreter.allocate_tensors()
        self.input_details = self.interpreter.get_input_details()
        self.output_details = self.interpreter.get_output_details()

    @property
    def input_shape(self):
        return tuple(int(d) for d in self.input_details[0]["shape"])

    @property
    def output_shape(self):
        return tuple(int(d) for d in self.output_details[0]["shape"])

    def predict(self, x, verbose=0):
        x = np.asarray(x, dtype=self.input_details[0]["dtype"])
        self.interpreter.set_tensor(self.input_details[0]["index"], x)
        self.interpreter.invoke()
        # Copy out: get_tensor hands back a view into interpreter-owned memory
        return np.array(self.interpreter.get_tensor(self.output_details[0]["index"]))


def load_model(model_path):
    """Load a classification model once at startup."""
    model_path = Path(model_path)
    if not model_path.exists():
        raise ConfigurationError(f"Model not found at {model_path}")

    if model_path.suffix.lower() == ".tflite":
        model = TFLiteModel(model_path)
        logger.info("Loaded TFLite model: %s", model_path)
        return model

    from tensorflow import keras

    model = keras.models.load_model(model_path, compile=False)
    logger.info("Loaded Keras model: %s", model_path)
    return model


def output_size(model):
    """Width of the model's probability vector, or None if it cannot be read."""
    shape = getattr(model, "output_shape", None)
    if isinstance(shape, list):
        # Multi-output models report a list; the first head is the class head
        shape = shape[0] if shape else None
    if not shape:
        return None
    last = shape[-1]
    return int(last) if last is not None else None
