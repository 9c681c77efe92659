"""
Prediction scheduler: the rate-limited polling loop.

The loop wakes up at display rate (60 Hz by default) but only does work once
every 1/target_fps seconds. Each tick pulls a frame, preprocesses it, starts
inference, and hands a confident label to the word emitter.

    IDLE --start()--> RUNNING --pause()--> PAUSED --resume()--> RUNNING
      ^                                                            |
      +-------------------------- stop() --------------------------+

Only one inference is in flight at a time. A tick that comes due while the
previous inference is still running is skipped rather than queued, and a
result that lands after the utterance was reset is discarded.
"""

import asyncio
import functools
import logging
import time

import cv2

from gesture_translator.buffers import BufferScope
from gesture_translator.classifier import top_prediction
from gesture_translator.config import CONF_THRESHOLD, TARGET_FPS, WAKEUP_HZ
from gesture_translator.errors import ClassificationError, FrameUnavailable

logger = logging.getLogger(__name__)

IDLE = "idle"
RUNNING = "running"
PAUSED = "paused"

STATUS_READY = "Status: Ready to Predict!"
STATUS_PREDICTING = "Status: Predicting"
STATUS_PAUSED = "Status: Paused Predicting"
STATUS_ERROR = "Status: Unable to predict"
STATUS_STOPPED = "Status: Stopped"


class PredictionScheduler:
    def __init__(
        self,
        frame_source,
        preprocessor,
        classifier,
        emitter,
        target_fps=TARGET_FPS,
        wakeup_hz=WAKEUP_HZ,
        conf_threshold=CONF_THRESHOLD,
        clock=time.monotonic,
        request_wakeup=None,
        ledger=None,
    ):
        """
        Args:
            frame_source: object with is_ready() and current_frame().
            preprocessor: callable Frame -> (1, S, S, 3) tensor.
            classifier: object with an async classify(tensor) and a vocabulary.
            emitter: WordEmitter receiving labels above the threshold.
            clock: returns the current time in seconds.
            request_wakeup: callable(delay, callback) -> handle with cancel().
                Defaults to the running event loop's call_later.
            ledger: optional BufferLedger shared with the preprocessor.
        """
        self.frame_source = frame_source
        self.preprocessor = preprocessor
        self.classifier = classifier
        self.emitter = emitter
        self.target_interval = 1.0 / float(target_fps)
        self.wakeup_interval = 1.0 / float(wakeup_hz)
        self.conf_threshold = float(conf_threshold)
        self.clock = clock
        self.request_wakeup = request_wakeup
        self.ledger = ledger

        self.state = IDLE
        self.status = STATUS_STOPPED
        self.last_tick = None
        self.last_result = None
        self._handle = None
        self._in_flight = None

        self.ticks = 0
        self.inferences = 0
        self.emissions = 0
        self.skipped = 0
        self.failures = 0
        self.discarded = 0

    # --- Control ---

    def start(self):
        if self.state == RUNNING:
            return
        if self.state == PAUSED:
            self.resume()
            return
        self.last_tick = self.clock()
        self.state = RUNNING
        self.status = STATUS_READY
        logger.info("Prediction started (%.1f ticks/s)", 1.0 / self.target_interval)
        self._schedule()

    def pause(self):
        if self.state != RUNNING:
            return
        self._cancel_wakeup()
        self.state = PAUSED
        self.status = STATUS_PAUSED
        logger.info("Prediction paused")

    def resume(self):
        if self.state != PAUSED:
            return
        # Missed ticks are not replayed
        self.last_tick = self.clock()
        self.state = RUNNING
        self.status = STATUS_READY
        logger.info("Prediction resumed")
        self._schedule()

    def stop(self):
        self._cancel_wakeup()
        self.state = IDLE
        self.status = STATUS_STOPPED
        logger.info("Prediction stopped")

    @property
    def inference_pending(self):
        return self._in_flight is not None and not self._in_flight.done()

    @property
    def in_flight(self):
        return self._in_flight

    # --- Wake-ups ---

    def _schedule(self):
        if self.request_wakeup is None:
            loop = asyncio.get_running_loop()
            self._handle = loop.call_later(self.wakeup_interval, self._on_wakeup)
        else:
            self._handle = self.request_wakeup(self.wakeup_interval, self._on_wakeup)

    def _cancel_wakeup(self):
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _on_wakeup(self):
        self._handle = None
        try:
            self.tick()
        finally:
            if self.state == RUNNING and self._handle is None:
                self._schedule()

    # --- Hot path ---

    def tick(self, now=None):
        """
        Run one wake-up. Returns the inference task if one was started, else None.
        """
        if self.state != RUNNING:
            return None

        now = self.clock() if now is None else now
        elapsed = now - self.last_tick
        if elapsed < self.target_interval:
            return None

        # Keep the remainder so the average rate does not drift below target_fps
        self.last_tick = now - (elapsed % self.target_interval)
        self.ticks += 1

        if self.inference_pending:
            self.skipped += 1
            logger.debug("Inference still running, skipping tick %d", self.ticks)
            return None

        if not self.frame_source.is_ready():
            return None

        tick_scope = BufferScope(self.ledger)
        try:
            with BufferScope(self.ledger) as frame_scope:
                frame = frame_scope.track(self.frame_source.current_frame())
                tensor = tick_scope.track(self.preprocessor(frame))
        except FrameUnavailable:
            tick_scope.release_all()
            return None
        except (ValueError, TypeError, cv2.error) as e:
            # Preprocessing a malformed frame: skip the tick, try again next time
            tick_scope.release_all()
            self.failures += 1
            logger.warning("Could not preprocess frame: %s", e)
            return None

        generation = self.emitter.generation
        task = asyncio.get_running_loop().create_task(self._infer(tensor, generation))
        task.add_done_callback(functools.partial(self._inference_done, tick_scope))
        self._in_flight = task
        return task

    async def _infer(self, tensor, generation):
        self.inferences += 1
        try:
            return await self._classify_and_emit(tensor, generation)
        except ClassificationError as e:
            self._inference_failed()
            logger.warning("Classification failed: %s", e)
        except Exception:
            self._inference_failed()
            logger.exception("Inference failed")
        return None

    def _inference_failed(self):
        self.failures += 1
        self.status = STATUS_ERROR

    async def _classify_and_emit(self, tensor, generation):
        probs = await self.classifier.classify(tensor)
        result = top_prediction(probs, self.classifier.vocabulary)
        self.last_result = result
        if self.state == RUNNING:
            self.status = STATUS_PREDICTING

        if self.state == IDLE or generation != self.emitter.generation:
            self.discarded += 1
            logger.debug("Discarding late result %r", result)
            return result

        if result.confidence > self.conf_threshold:
            if self.emitter.on_label(result.label):
                self.emissions += 1
        return result

    def _inference_done(self, scope, task):
        scope.release_all()
        if self._in_flight is task:
            self._in_flight = None
