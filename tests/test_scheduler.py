import asyncio
import random

from conftest import FakeClassifier, FakeClock, FakeFrameSource
from gesture_translator.buffers import BufferLedger
from gesture_translator.errors import ClassificationError
from gesture_translator.preprocess import Preprocessor
from gesture_translator.scheduler import (
    IDLE,
    PAUSED,
    RUNNING,
    STATUS_ERROR,
    STATUS_PAUSED,
    STATUS_PREDICTING,
    PredictionScheduler,
)
from gesture_translator.word_emitter import WordEmitter

HELLO = [0.1, 0.85, 0.05]
YES = [0.05, 0.1, 0.88]
IDLE_PROBS = [0.9, 0.05, 0.05]

# 4 ticks/s keeps the interval exact in binary floating point
INTERVAL = 0.25


def make_scheduler(vocab, outputs, clock, wakeups, text_out=None, speech_out=None,
                   gated=False, source=None, target_fps=4, threshold=0.5):
    ledger = BufferLedger()
    source = source or FakeFrameSource()
    classifier = FakeClassifier(vocab, outputs, gated=gated)
    emitter = WordEmitter(vocab, text_out, speech_out)
    sched = PredictionScheduler(
        source,
        Preprocessor(image_size=32, ledger=ledger),
        classifier,
        emitter,
        target_fps=target_fps,
        wakeup_hz=60,
        conf_threshold=threshold,
        clock=clock,
        request_wakeup=wakeups,
        ledger=ledger,
    )
    return sched, classifier, emitter, source, ledger


async def due_tick(sched, clock):
    clock.advance(INTERVAL)
    task = sched.tick()
    if task is not None:
        await task
    return task


def test_idle_then_held_hello_then_yes(vocab, clock, wakeups, text_out, speech_out):
    outputs = [IDLE_PROBS, HELLO, HELLO, YES]

    async def scenario():
        sched, classifier, emitter, _, _ = make_scheduler(
            vocab, outputs, clock, wakeups, text_out, speech_out)
        sched.start()
        for _ in range(4):
            await due_tick(sched, clock)
        return sched, classifier, emitter

    sched, classifier, emitter = asyncio.run(scenario())
    assert classifier.calls == 4
    assert emitter.words == ["hello", "yes"]
    assert speech_out.spoken == ["hello", "yes"]
    assert text_out.updates == [["hello"], ["hello", "yes"]]
    assert sched.emissions == 2


def test_threshold_is_strict(vocab, clock, wakeups, speech_out):
    outputs = [[0.25, 0.5, 0.25], [0.2, 0.29, 0.51]]

    async def scenario():
        sched, _, emitter, _, _ = make_scheduler(
            vocab, outputs, clock, wakeups, speech_out=speech_out)
        sched.start()
        await due_tick(sched, clock)
        assert speech_out.spoken == []
        await due_tick(sched, clock)
        return emitter

    emitter = asyncio.run(scenario())
    assert emitter.words == ["yes"]


def test_wakeup_before_interval_does_no_work(vocab, clock, wakeups):
    async def scenario():
        sched, classifier, _, source, _ = make_scheduler(vocab, [HELLO], clock, wakeups)
        sched.start()
        clock.advance(INTERVAL / 2)
        assert sched.tick() is None
        return sched, classifier, source

    sched, classifier, source = asyncio.run(scenario())
    assert sched.ticks == 0
    assert classifier.calls == 0
    assert source.frames == []


def test_every_wakeup_reschedules_the_next(vocab, clock, wakeups):
    async def scenario():
        sched, _, _, _, _ = make_scheduler(vocab, [HELLO], clock, wakeups)
        sched.start()
        for _ in range(5):
            clock.advance(0.01)
            wakeups.fire()
            assert wakeups.pending is not None
        return sched

    sched = asyncio.run(scenario())
    assert sched.state == RUNNING
    assert len(wakeups.handles) == 1


def test_long_run_rate_is_drift_corrected(vocab, wakeups):
    clock = FakeClock(0.0)
    rng = random.Random(7)

    async def scenario():
        sched, classifier, _, _, _ = make_scheduler(
            vocab, [IDLE_PROBS], clock, wakeups, target_fps=5)
        sched.start()
        # 60 Hz wake-ups with a few ms of jitter for just over 10 seconds
        while clock.now < 10.05:
            clock.advance(wakeups.pending.delay + rng.uniform(-0.004, 0.004))
            wakeups.fire()
            if sched.in_flight is not None:
                await sched.in_flight
        sched.stop()
        return sched, classifier

    sched, classifier = asyncio.run(scenario())
    assert classifier.calls == 50
    assert sched.ticks == 50
    assert sched.skipped == 0


def test_due_tick_skipped_while_inference_in_flight(vocab, clock, wakeups, speech_out):
    async def scenario():
        sched, classifier, _, source, ledger = make_scheduler(
            vocab, [HELLO], clock, wakeups, speech_out=speech_out, gated=True)
        sched.start()
        clock.advance(INTERVAL)
        first = sched.tick()
        await asyncio.sleep(0)
        assert sched.inference_pending

        clock.advance(INTERVAL)
        assert sched.tick() is None

        classifier.release()
        await first
        return sched, classifier, source, ledger

    sched, classifier, source, ledger = asyncio.run(scenario())
    assert classifier.calls == 1
    assert sched.skipped == 1
    assert len(source.frames) == 1
    assert speech_out.spoken == ["hello"]
    assert ledger.outstanding == 0


def test_late_result_after_reset_is_discarded(vocab, clock, wakeups, speech_out):
    async def scenario():
        sched, classifier, emitter, _, _ = make_scheduler(
            vocab, [HELLO], clock, wakeups, speech_out=speech_out, gated=True)
        sched.start()
        clock.advance(INTERVAL)
        task = sched.tick()
        await asyncio.sleep(0)
        emitter.reset()
        classifier.release()
        await task
        return sched, emitter

    sched, emitter = asyncio.run(scenario())
    assert emitter.words == []
    assert speech_out.spoken == []
    assert sched.discarded == 1


def test_result_landing_after_pause_still_counts(vocab, clock, wakeups, speech_out):
    async def scenario():
        sched, classifier, emitter, _, _ = make_scheduler(
            vocab, [HELLO], clock, wakeups, speech_out=speech_out, gated=True)
        sched.start()
        clock.advance(INTERVAL)
        task = sched.tick()
        await asyncio.sleep(0)
        sched.pause()
        classifier.release()
        await task
        return sched, emitter

    sched, emitter = asyncio.run(scenario())
    assert emitter.words == ["hello"]
    assert sched.status == STATUS_PAUSED


def test_late_result_after_stop_is_discarded(vocab, clock, wakeups, speech_out):
    async def scenario():
        sched, classifier, _, _, _ = make_scheduler(
            vocab, [HELLO], clock, wakeups, speech_out=speech_out, gated=True)
        sched.start()
        clock.advance(INTERVAL)
        task = sched.tick()
        await asyncio.sleep(0)
        sched.stop()
        classifier.release()
        await task
        return sched

    sched = asyncio.run(scenario())
    assert speech_out.spoken == []
    assert sched.state == IDLE


def test_classification_failure_is_not_fatal(vocab, clock, wakeups, speech_out):
    outputs = [ClassificationError("boom"), HELLO]

    async def scenario():
        sched, _, _, source, ledger = make_scheduler(
            vocab, outputs, clock, wakeups, speech_out=speech_out)
        sched.start()
        await due_tick(sched, clock)
        assert sched.status == STATUS_ERROR
        assert sched.state == RUNNING
        assert ledger.outstanding == 0
        await due_tick(sched, clock)
        return sched, source, ledger

    sched, source, ledger = asyncio.run(scenario())
    assert sched.failures == 1
    assert sched.status == STATUS_PREDICTING
    assert speech_out.spoken == ["hello"]


def test_every_buffer_released_exactly_once(vocab, clock, wakeups):
    outputs = [HELLO, ClassificationError("boom"), YES, ClassificationError("boom"), HELLO]

    async def scenario():
        sched, _, _, source, ledger = make_scheduler(vocab, outputs, clock, wakeups)
        sched.start()
        for _ in range(5):
            await due_tick(sched, clock)
        return sched, source, ledger

    sched, source, ledger = asyncio.run(scenario())
    assert sched.inferences == 5
    # frame + resized + rgb + float image + input tensor per tick
    assert ledger.acquired == 5 * 5
    assert ledger.released == ledger.acquired
    assert ledger.double_released == 0
    assert ledger.outstanding == 0
    assert all(frame.released for frame in source.frames)


def test_no_frame_ready_is_a_noop(vocab, clock, wakeups):
    async def scenario():
        source = FakeFrameSource(ready=False)
        sched, classifier, _, _, ledger = make_scheduler(
            vocab, [HELLO], clock, wakeups, source=source)
        sched.start()
        task = await due_tick(sched, clock)
        return sched, classifier, task, ledger

    sched, classifier, task, ledger = asyncio.run(scenario())
    assert task is None
    assert sched.ticks == 1
    assert classifier.calls == 0
    assert ledger.acquired == 0


def test_frame_vanishing_after_ready_is_a_noop(vocab, clock, wakeups):
    async def scenario():
        source = FakeFrameSource()
        source.unavailable = True
        sched, classifier, _, _, ledger = make_scheduler(
            vocab, [HELLO], clock, wakeups, source=source)
        sched.start()
        task = await due_tick(sched, clock)
        return sched, classifier, task, ledger

    sched, classifier, task, ledger = asyncio.run(scenario())
    assert task is None
    assert classifier.calls == 0
    assert sched.failures == 0
    assert ledger.outstanding == 0


def test_pause_cancels_wakeup_and_resume_skips_missed_ticks(vocab, clock, wakeups):
    async def scenario():
        sched, classifier, emitter, _, _ = make_scheduler(vocab, [HELLO], clock, wakeups)
        sched.start()
        await due_tick(sched, clock)
        handle = wakeups.pending

        sched.pause()
        assert handle.cancelled
        assert wakeups.pending is None
        assert sched.state == PAUSED
        clock.advance(INTERVAL)
        assert sched.tick() is None

        clock.advance(5.0)
        sched.resume()
        assert sched.state == RUNNING
        assert wakeups.pending is not None
        # No catch-up burst for the five seconds spent paused
        assert sched.tick() is None

        await due_tick(sched, clock)
        return sched, classifier, emitter

    sched, classifier, emitter = asyncio.run(scenario())
    assert classifier.calls == 2
    assert emitter.words == ["hello"]


def test_start_is_idempotent_and_stop_returns_to_idle(vocab, clock, wakeups):
    async def scenario():
        sched, _, _, _, _ = make_scheduler(vocab, [HELLO], clock, wakeups)
        sched.start()
        sched.start()
        assert len(wakeups.handles) == 1
        sched.stop()
        return sched

    sched = asyncio.run(scenario())
    assert sched.state == IDLE
    assert wakeups.handles[0].cancelled


def test_input_tensor_shape(vocab, clock, wakeups):
    async def scenario():
        sched, classifier, _, _, _ = make_scheduler(vocab, [HELLO], clock, wakeups)
        sched.start()
        await due_tick(sched, clock)
        return classifier

    classifier = asyncio.run(scenario())
    assert classifier.tensors == [(1, 32, 32, 3)]


def test_default_wakeups_use_the_event_loop(vocab):
    """Without an injected wake-up source the loop's own timer drives ticks."""
    source = FakeFrameSource()

    async def scenario():
        classifier = FakeClassifier(vocab, [HELLO])
        emitter = WordEmitter(vocab)
        sched = PredictionScheduler(
            source, Preprocessor(image_size=16), classifier, emitter,
            target_fps=50, wakeup_hz=200,
        )
        sched.start()
        for _ in range(100):
            await asyncio.sleep(0.01)
            if emitter.words:
                break
        sched.stop()
        return emitter

    emitter = asyncio.run(scenario())
    assert emitter.words == ["hello"]


def test_unexpected_inference_error_is_a_failure(vocab, clock, wakeups, speech_out):
    outputs = [RuntimeError("driver crashed"), HELLO]

    async def scenario():
        sched, _, _, _, ledger = make_scheduler(
            vocab, outputs, clock, wakeups, speech_out=speech_out)
        sched.start()
        await due_tick(sched, clock)
        assert sched.failures == 1
        assert sched.status == STATUS_ERROR
        assert sched.state == RUNNING
        assert ledger.outstanding == 0
        await due_tick(sched, clock)
        return sched

    sched = asyncio.run(scenario())
    assert sched.status == STATUS_PREDICTING
    assert speech_out.spoken == ["hello"]


def test_output_error_does_not_stop_the_loop(vocab, clock, wakeups):
    class BrokenSpeech:
        def speak(self, word):
            raise OSError("audio device gone")

        def clear(self):
            pass

    async def scenario():
        sched, _, emitter, _, _ = make_scheduler(
            vocab, [HELLO, YES], clock, wakeups, speech_out=BrokenSpeech())
        sched.start()
        await due_tick(sched, clock)
        await due_tick(sched, clock)
        return sched, emitter

    sched, emitter = asyncio.run(scenario())
    assert sched.failures == 2
    assert sched.state == RUNNING
    assert emitter.words == ["hello", "yes"]
