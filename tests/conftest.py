import asyncio

import numpy as np
import pytest

from gesture_translator.errors import ClassificationError, FrameUnavailable
from gesture_translator.frame_source import Frame
from gesture_translator.vocabulary import Vocabulary


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeHandle:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeWakeups:
    """Stands in for the display clock: wake-ups fire only when the test says so."""

    def __init__(self):
        self.handles = []

    def __call__(self, delay, callback):
        handle = FakeHandle(delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self):
        live = [h for h in self.handles if not h.cancelled]
        return live[-1] if live else None

    def fire(self):
        handle = self.pending
        self.handles.remove(handle)
        handle.callback()


class FakeFrameSource:
    def __init__(self, ready=True, shape=(48, 64, 3)):
        self.ready = ready
        self.shape = shape
        self.frames = []
        self.unavailable = False

    def is_ready(self):
        return self.ready

    def current_frame(self):
        if self.unavailable:
            raise FrameUnavailable("camera hiccup")
        frame = Frame(np.full(self.shape, 128, dtype=np.uint8))
        self.frames.append(frame)
        return frame


class FakeClassifier:
    """
    Returns scripted probability vectors. An entry that is an exception
    instance is raised instead. With gated=True each call waits for release().
    """

    def __init__(self, vocabulary, outputs, gated=False):
        self.vocabulary = vocabulary
        self.outputs = list(outputs)
        self.calls = 0
        self.tensors = []
        self.gate = asyncio.Event() if gated else None

    def release(self):
        self.gate.set()

    async def classify(self, tensor):
        self.calls += 1
        self.tensors.append(tensor.shape)
        if self.gate is not None:
            await self.gate.wait()
        out = self.outputs.pop(0) if len(self.outputs) > 1 else self.outputs[0]
        if isinstance(out, Exception):
            raise out
        return np.asarray(out, dtype=np.float32)


class FakeModel:
    def __init__(self, outputs, n_classes=None, error=None):
        self.outputs = list(outputs)
        self.error = error
        self.calls = 0
        if n_classes is not None:
            self.output_shape = (None, n_classes)

    def predict(self, x, verbose=0):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return np.array([self.outputs.pop(0)], dtype=np.float32)


class RecordingText:
    def __init__(self):
        self.updates = []
        self.cleared = 0

    def append(self, words):
        self.updates.append(list(words))

    def clear(self):
        self.cleared += 1


class RecordingSpeech:
    def __init__(self):
        self.spoken = []
        self.cleared = 0

    def speak(self, word):
        self.spoken.append(word)

    def clear(self):
        self.cleared += 1


@pytest.fixture
def vocab():
    return Vocabulary(["(idle)", "hello", "yes"])


@pytest.fixture
def clock():
    return FakeClock(100.0)


@pytest.fixture
def wakeups():
    return FakeWakeups()


@pytest.fixture
def text_out():
    return RecordingText()


@pytest.fixture
def speech_out():
    return RecordingSpeech()


@pytest.fixture
def classification_error():
    return ClassificationError("accelerator fell over")
