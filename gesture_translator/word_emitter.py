"""Turns the stream of per-tick labels into an utterance of distinct words."""

import logging

logger = logging.getLogger(__name__)


class WordEmitter:
    """
    Drops the idle label and immediate repeats; every other label becomes a
    new word, sent to the text output (whole utterance) and speech output
    (just the new word).

    A sign held in front of the camera for several ticks is emitted once.
    The same word comes out again only after a different word or a reset().
    """

    def __init__(self, vocabulary, text_output=None, speech_output=None):
        self.vocabulary = vocabulary
        self.text_output = text_output
        self.speech_output = speech_output
        self.last_label = None
        self.words = []
        self.generation = 0

    def on_label(self, label):
        """Returns True if the label was emitted as a new word."""
        if self.vocabulary.is_idle(label):
            return False
        if label == self.last_label:
            return False

        self.last_label = label
        self.words.append(label)
        logger.info("Word: %s", label)

        if self.text_output is not None:
            self.text_output.append(list(self.words))
        if self.speech_output is not None:
            self.speech_output.speak(label)
        return True

    def reset(self):
        """Start a new utterance; in-flight results from the old one get discarded."""
        self.last_label = None
        self.words = []
        self.generation += 1
        if self.text_output is not None:
            self.text_output.clear()
        if self.speech_output is not None:
            self.speech_output.clear()

    @property
    def utterance(self):
        return " ".join(self.words)
