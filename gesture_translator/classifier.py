"""
Classifier wrapper.

The model's blocking predict() runs on a single worker thread so the event
loop keeps polling while inference is in progress.
"""

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor

import numpy as np

from gesture_translator.errors import ClassificationError, ConfigurationError
from gesture_translator.models import output_size

logger = logging.getLogger(__name__)


class PredictionResult:
    """Probability vector plus its max-confidence (label, confidence) pair."""

    def __init__(self, probabilities, label, confidence, index):
        self.probabilities = probabilities
        self.label = label
        self.confidence = confidence
        self.index = index

    def top(self, vocabulary, k=3):
        order = np.argsort(-self.probabilities)[:k]
        return [(vocabulary[int(i)], float(self.probabilities[i])) for i in order]

    def __repr__(self):
        return f"PredictionResult({self.label!r}, {self.confidence:.3f})"


def top_prediction(probabilities, vocabulary):
    """Pick the max-confidence label. Scores are used raw, not re-normalized."""
    probs = np.asarray(probabilities, dtype=np.float32)
    idx = int(np.argmax(probs))
    return PredictionResult(probs, vocabulary[idx], float(probs[idx]), idx)


class Classifier:
    def __init__(self, model, vocabulary, executor=None):
        self.model = model
        self.vocabulary = vocabulary
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="classifier")

    @classmethod
    def from_model(cls, model, vocabulary, executor=None):
        """Build a classifier after checking the model's output width against the labels."""
        width = output_size(model)
        if width is not None and width != len(vocabulary):
            raise ConfigurationError(
                f"Model outputs {width} classes but the vocabulary has {len(vocabulary)} labels"
            )
        if width is None:
            logger.warning("Model does not report an output shape; label count is checked per call")
        return cls(model, vocabulary, executor=executor)

    def _predict(self, tensor):
        preds = self.model.predict(tensor, verbose=0)
        return np.asarray(preds, dtype=np.float32).reshape(-1)

    async def classify(self, tensor):
        """Return the probability vector for one (1, H, W, 3) tensor."""
        loop = asyncio.get_running_loop()
        try:
            probs = await loop.run_in_executor(self._executor, self._predict, tensor)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise ClassificationError(f"Inference failed: {e}") from e

        if probs.shape[0] != len(self.vocabulary):
            raise ClassificationError(
                f"Expected {len(self.vocabulary)} scores, model returned {probs.shape[0]}"
            )
        return probs

    def close(self):
        if self._owns_executor:
            self._executor.shutdown(wait=False)
