"""
Output collaborators for emitted words: the text transcript and speech.
"""

import logging
import queue
import threading
import time
from pathlib import Path

logger = logging.getLogger(__name__)

# pyttsx3's default speaking rate in words per minute
BASE_RATE_WPM = 200
# espeak pitch scale is 0-100 with 50 as the neutral voice
BASE_PITCH = 50


class TranscriptOutput:
    """Holds the running transcript and echoes each update to the console."""

    def __init__(self, transcript_dir="transcripts", echo=True):
        self.transcript_dir = Path(transcript_dir)
        self.echo = echo
        self.text = ""

    def append(self, words):
        self.text = " ".join(words)
        if self.echo:
            print(f"[TEXT] {self.text}")

    def clear(self):
        self.text = ""

    def save(self):
        """Write the transcript to a timestamped file and return its path."""
        self.transcript_dir.mkdir(parents=True, exist_ok=True)
        stamp = time.strftime("%Y%m%d_%H%M%S")
        path = self.transcript_dir / f"transcript_{stamp}.txt"
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.text)
        return path


class SpeechOutput:
    """
    Speaks each new word with pyttsx3.

    The engine lives on its own worker thread and words are queued, so a slow
    runAndWait() never stalls the prediction loop.

    Args:
        voice_id: index into the engine's voices, or a voice id / name string.
        pitch: multiplier on the neutral pitch (drivers without pitch control
            report it through the engine's error callback and carry on).
        rate: multiplier on the engine's base words-per-minute.
        engine_factory: zero-arg callable returning a pyttsx3-style engine.
    """

    def __init__(self, voice_id=None, pitch=1.0, rate=0.9, engine_factory=None):
        self.voice_id = voice_id
        self.pitch = float(pitch)
        self.rate = float(rate)
        self.engine_factory = engine_factory
        self.enabled = True
        self._queue = queue.Queue()
        self._thread = None
        self._lock = threading.Lock()

    def speak(self, word):
        if not self.enabled:
            return
        self._ensure_worker()
        self._queue.put(word)

    def clear(self):
        """Drop words that have not been spoken yet."""
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    def close(self, timeout=2.0):
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is not None:
            # Words already queued are spoken before the worker exits
            self._queue.put(None)
            thread.join(timeout=timeout)

    def _ensure_worker(self):
        with self._lock:
            if self._thread is None:
                self._thread = threading.Thread(target=self._worker, name="speech", daemon=True)
                self._thread.start()

    def _create_engine(self):
        if self.engine_factory is not None:
            return self.engine_factory()
        import pyttsx3
        return pyttsx3.init()

    def _worker(self):
        try:
            engine = self._create_engine()
            self.configure(engine)
        except Exception as e:
            logger.warning("TTS unavailable (%s). Run with --no-tts to suppress.", e)
            self.enabled = False
            self.clear()
            return

        while True:
            word = self._queue.get()
            if word is None:
                break
            try:
                engine.say(word)
                engine.runAndWait()
            except Exception as e:
                # Keep the worker alive for the next word
                logger.warning("Error speaking %r: %s", word, e)

    def configure(self, engine):
        """Apply voice, rate and pitch settings to a freshly created engine."""
        engine.connect("error", self._on_error)

        base_rate = engine.getProperty("rate") or BASE_RATE_WPM
        engine.setProperty("rate", int(round(base_rate * self.rate)))

        voice = self.select_voice(engine.getProperty("voices") or [])
        if voice is not None:
            engine.setProperty("voice", voice.id)
            logger.info("Speech voice: %s", getattr(voice, "name", voice.id))

        if self.pitch != 1.0:
            engine.setProperty("pitch", max(0, min(100, int(round(BASE_PITCH * self.pitch)))))

    def select_voice(self, voices):
        voice_id = self.voice_id
        if voice_id is None:
            return None
        if isinstance(voice_id, str) and voice_id.isdigit():
            voice_id = int(voice_id)
        if isinstance(voice_id, int):
            if 0 <= voice_id < len(voices):
                return voices[voice_id]
            logger.warning("Voice index %d not available (%d voices)", voice_id, len(voices))
            return None
        for voice in voices:
            if voice_id in (voice.id, getattr(voice, "name", None)):
                return voice
        logger.warning("Voice %r not found, using the default voice", voice_id)
        return None

    def _on_error(self, name, exception):
        logger.warning("Error speaking %r: %s", name, exception)
