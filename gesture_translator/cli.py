"""
Live sign-language translation from the webcam.

Classifies webcam frames into gesture words, prints the running transcript
and speaks each new word.

Usage:
    gesture-translate --model models/model.keras --labels models/labels.txt
    gesture-translate --config models/translator_config.json --no-tts
    gesture-translate --threshold 0.7 --fps 8 --voice 1

Keys:
    q: quit
    t: toggle training / translate (pauses or resumes prediction)
    c: clear transcript
    s: save transcript
"""

import argparse
import asyncio
import logging
import os

import cv2

from gesture_translator.classifier import Classifier
from gesture_translator.config import load_config
from gesture_translator.errors import ConfigurationError, FrameUnavailable
from gesture_translator.frame_source import CameraFrameSource
from gesture_translator.models import load_model
from gesture_translator.outputs import SpeechOutput, TranscriptOutput
from gesture_translator.translator import Translator
from gesture_translator.vocabulary import default_vocabulary, load_vocabulary

# Suppress TF warnings
os.environ.setdefault("TF_CPP_MIN_LOG_LEVEL", "2")

WINDOW_NAME = "Sign Language Translator"


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Webcam sign-language gesture translator")
    parser.add_argument("--config", type=str, default=None, help="JSON config file")
    parser.add_argument("--model", type=str, default=None, help="Path to .keras/.h5/.tflite model")
    parser.add_argument("--labels", type=str, default=None,
                        help="Labels file (.txt, .json or .joblib label encoder)")
    parser.add_argument("--camera", type=int, default=None, help="Camera index. Default: 0")
    parser.add_argument("--threshold", "-t", type=float, default=None,
                        help="Confidence a prediction must exceed. Default: 0.5")
    parser.add_argument("--fps", type=float, default=None,
                        help="Predictions per second. Default: 5")
    parser.add_argument("--no-tts", action="store_true", help="Disable text-to-speech")
    parser.add_argument("--voice", type=str, default=None,
                        help="Voice index or voice id for text-to-speech")
    parser.add_argument("--pitch", type=float, default=None, help="Speech pitch multiplier")
    parser.add_argument("--rate", type=float, default=None, help="Speech rate multiplier")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def config_from_args(args):
    overrides = {
        "model_path": args.model,
        "labels_path": args.labels,
        "camera": args.camera,
        "conf_threshold": args.threshold,
        "target_fps": args.fps,
        "voice_id": args.voice,
        "pitch": args.pitch,
        "rate": args.rate,
        "tts": False if args.no_tts else None,
    }
    return load_config(args.config, overrides)


def draw_overlay(panel, translator):
    """Prediction, top-3 bars, status and transcript on top of the preview."""
    h, w = panel.shape[:2]
    result = translator.last_result
    if result is not None:
        color = (0, 255, 0) if result.confidence > translator.scheduler.conf_threshold else (0, 165, 255)
        cv2.putText(panel, f"{result.label}  {result.confidence:.0%}", (10, 40),
                    cv2.FONT_HERSHEY_SIMPLEX, 1.0, color, 2)
        for k, (label, conf) in enumerate(result.top(translator.vocabulary)):
            y = 60 + 22 * k
            cv2.rectangle(panel, (10, y), (10 + int(200 * conf), y + 16), (0, 180, 0), -1)
            cv2.rectangle(panel, (10, y), (210, y + 16), (200, 200, 200), 1)
            cv2.putText(panel, f"{label}: {conf:.0%}", (220, y + 13),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, (220, 240, 220), 1)

    sched = translator.scheduler
    cv2.putText(panel, translator.status, (10, h - 75),
                cv2.FONT_HERSHEY_SIMPLEX, 0.6, (255, 255, 0), 2)
    cv2.putText(panel, f"ticks {sched.ticks}  skipped {sched.skipped}  failed {sched.failures}",
                (w - 330, 25), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (200, 200, 200), 1)

    cv2.rectangle(panel, (10, h - 55), (w - 10, h - 10), (30, 30, 30), -1)
    text = translator.transcript or "[Waiting for prediction...]"
    cv2.putText(panel, text, (20, h - 22), cv2.FONT_HERSHEY_SIMPLEX, 0.9, (255, 255, 255), 2)
    return panel


async def preview_loop(translator, camera, transcript, interval):
    """Render the camera preview and handle keys until 'q' is pressed."""
    while True:
        try:
            frame = camera.current_frame()
        except FrameUnavailable:
            frame = None
        if frame is not None:
            # Show the mirrored self-view; the classifier gets the un-mirrored tensor
            panel = cv2.flip(frame.pixels, 1)
            frame.release()
            cv2.imshow(WINDOW_NAME, draw_overlay(panel, translator))

        key = cv2.waitKey(1) & 0xFF
        if key == ord("q"):
            break
        elif key == ord("t"):
            translator.toggle_mode()
            print(f"Mode: {translator.mode}")
        elif key == ord("c"):
            translator.reset()
        elif key == ord("s"):
            path = transcript.save()
            print(f"Transcript saved: {path}")

        await asyncio.sleep(interval)


async def run(translator, camera, transcript, config):
    translator.enter_translate()
    try:
        await preview_loop(translator, camera, transcript, 1.0 / config["wakeup_hz"])
    finally:
        translator.stop()


def main(argv=None):
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = config_from_args(args)
        if config["labels_path"]:
            vocabulary = load_vocabulary(config["labels_path"])
        else:
            vocabulary = default_vocabulary()
        print("Loading model...")
        model = load_model(config["model_path"])
        classifier = Classifier.from_model(model, vocabulary)
    except ConfigurationError as e:
        print(f"Error: {e}")
        return 1

    print(f"Classes: {list(vocabulary)}")

    transcript = TranscriptOutput(config["transcript_dir"])
    speech = None
    if config["tts"]:
        speech = SpeechOutput(voice_id=config["voice_id"], pitch=config["pitch"], rate=config["rate"])
        print("Text-to-speech enabled.")

    camera = CameraFrameSource(config["camera"])
    try:
        camera.open()
    except RuntimeError as e:
        print(f"Error: {e}")
        classifier.close()
        return 1

    translator = Translator(camera, classifier, transcript, speech, config=config)

    print("=" * 50)
    print("Sign Language Live Translation")
    print("=" * 50)
    print(f"Confidence threshold: {config['conf_threshold']:.0%}")
    print(f"Predicting {config['target_fps']} times per second")
    print("Keys: q=quit | t=training/translate | c=clear | s=save")
    print("=" * 50)

    try:
        asyncio.run(run(translator, camera, transcript, config))
    except KeyboardInterrupt:
        pass
    finally:
        camera.close()
        classifier.close()
        if speech is not None:
            speech.close()
        cv2.destroyAllWindows()
        if translator.transcript:
            print(f"Transcript: {translator.transcript}")
        print("Translation stopped.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
