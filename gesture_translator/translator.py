"""
Translator: wires the pipeline together and exposes the control surface.

Collaborators (camera, classifier, outputs) are passed in, so the same
translator runs against a webcam in the CLI and against fakes in tests.

Training and translate modes are mutually exclusive: entering training
pauses prediction, entering translate starts or resumes it.
"""

import logging

from gesture_translator.buffers import BufferLedger
from gesture_translator.config import DEFAULTS
from gesture_translator.preprocess import Preprocessor
from gesture_translator.scheduler import IDLE, PredictionScheduler
from gesture_translator.word_emitter import WordEmitter

logger = logging.getLogger(__name__)

TRAINING = "training"
TRANSLATE = "translate"


class Translator:
    def __init__(self, frame_source, classifier, text_output=None, speech_output=None,
                 config=None, clock=None, request_wakeup=None):
        config = dict(DEFAULTS, **(config or {}))
        self.config = config
        self.vocabulary = classifier.vocabulary
        self.frame_source = frame_source
        self.classifier = classifier
        self.text_output = text_output
        self.speech_output = speech_output
        self.ledger = BufferLedger()

        self.preprocessor = Preprocessor(
            image_size=config["image_size"],
            pixel_scale=config["pixel_scale"],
            bgr_input=config["bgr_input"],
            ledger=self.ledger,
        )
        self.emitter = WordEmitter(self.vocabulary, text_output, speech_output)

        scheduler_kwargs = {}
        if clock is not None:
            scheduler_kwargs["clock"] = clock
        self.scheduler = PredictionScheduler(
            frame_source,
            self.preprocessor,
            classifier,
            self.emitter,
            target_fps=config["target_fps"],
            wakeup_hz=config["wakeup_hz"],
            conf_threshold=config["conf_threshold"],
            request_wakeup=request_wakeup,
            ledger=self.ledger,
            **scheduler_kwargs,
        )
        self.mode = TRAINING

    # --- Control surface ---

    def start(self):
        """Begin a new prediction session with an empty utterance."""
        if self.scheduler.state == IDLE:
            self.emitter.reset()
        self.mode = TRANSLATE
        self.scheduler.start()

    def pause(self):
        self.scheduler.pause()

    def resume(self):
        self.mode = TRANSLATE
        self.scheduler.resume()

    def reset(self):
        """Clear the transcript. Prediction keeps running if it was."""
        self.emitter.reset()
        logger.info("Transcript cleared")

    def stop(self):
        self.scheduler.stop()
        self.mode = TRAINING

    # --- Mode switching ---

    def enter_translate(self):
        if self.scheduler.state == IDLE:
            self.start()
        else:
            self.resume()

    def enter_training(self):
        self.mode = TRAINING
        self.pause()

    def toggle_mode(self):
        if self.mode == TRANSLATE:
            self.enter_training()
        else:
            self.enter_translate()

    # --- Read-only views for the UI ---

    @property
    def status(self):
        return self.scheduler.status

    @property
    def words(self):
        return list(self.emitter.words)

    @property
    def transcript(self):
        return self.emitter.utterance

    @property
    def last_result(self):
        return self.scheduler.last_result
