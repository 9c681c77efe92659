"""Frame -> model input tensor."""

import cv2
import numpy as np

from gesture_translator.buffers import BufferScope
from gesture_translator.config import IMAGE_SIZE


class Preprocessor:
    """
    Resize a camera frame to image_size x image_size, cast to float32 and
    un-mirror it, returning a (1, image_size, image_size, 3) tensor.

    The input frame is left untouched. Intermediate images are released
    before returning, whether or not preprocessing succeeds.
    """

    def __init__(self, image_size=IMAGE_SIZE, pixel_scale=1.0, bgr_input=True, ledger=None):
        self.image_size = int(image_size)
        self.pixel_scale = float(pixel_scale)
        self.bgr_input = bgr_input
        self.ledger = ledger

    def __call__(self, frame):
        size = (self.image_size, self.image_size)
        with BufferScope(self.ledger) as scope:
            resized = scope.track(cv2.resize(frame.pixels, size, interpolation=cv2.INTER_LINEAR))
            if self.bgr_input and getattr(frame, "bgr", True):
                resized = scope.track(cv2.cvtColor(resized, cv2.COLOR_BGR2RGB))
            cast = scope.track(resized.astype(np.float32))
            if self.pixel_scale != 1.0:
                cast *= self.pixel_scale

            # Reverse the width axis: front cameras deliver a mirrored self-view
            tensor = np.ascontiguousarray(cast[:, ::-1, :])[np.newaxis, ...]
        return tensor
