"""Speech capture adapter around a continuous recognizer."""

import asyncio
import logging
import time
from typing import Callable, Optional

from config.settings import Settings
from schemas.transcript import SegmentKind, TranscriptSegment
from .recognizer import (
    Microphone,
    NullMicrophone,
    RecognitionEvent,
    Recognizer,
    RecognizerFactory,
    RecognizerStartError,
)
from .words import build_segment

logger = logging.getLogger(__name__)


class SpeechCaptureAdapter:
    """
    Owns the microphone and recognizer for one session.

    Handles start/stop, auto-restart after unexpected ends, error backoff
    with full re-initialization, and advisory silence detection.

    The adapter never decides on its own whether capture is wanted: every
    start, including the ones fired from delayed restart tasks, asks the
    ``should_capture`` query at the moment of acting.
    """

    NO_SPEECH = "no-speech"
    RECOVERABLE_ERRORS = frozenset({
        "network",
        "service-not-allowed",
        "aborted",
        "audio-capture",
        "not-allowed",
    })

    def __init__(
        self,
        recognizer_factory: RecognizerFactory,
        should_capture: Callable[[], bool],
        microphone: Optional[Microphone] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize adapter.

        Args:
            recognizer_factory: Creates a fresh recognizer, or None if unsupported
            should_capture: Live query of whether the session wants capture now
            microphone: Audio device (default: NullMicrophone)
            settings: Timing thresholds
            clock: Seconds clock, injectable for tests
        """
        self.recognizer_factory = recognizer_factory
        self.should_capture = should_capture
        self.microphone = microphone or NullMicrophone()
        self.settings = settings or Settings()
        self.clock = clock

        # Event sinks
        self.on_partial: Optional[Callable[[TranscriptSegment], None]] = None
        self.on_final: Optional[Callable[[TranscriptSegment], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None
        self.on_active_changed: Optional[Callable[[bool], None]] = None
        self.on_listening_no_speech: Optional[Callable[[bool], None]] = None
        self.on_fatal: Optional[Callable[[str], None]] = None

        # Owned resources
        self.recognizer: Optional[Recognizer] = None
        self.microphone_acquired = False
        self._restart_task: Optional[asyncio.Task] = None
        self._silence_task: Optional[asyncio.Task] = None
        self._status_task: Optional[asyncio.Task] = None

        # Recognition health
        self.active = False
        self.error_count = 0
        self.reinit_failures = 0
        self.listening_no_speech = False
        self.show_recognition_status = False
        self.last_speech_ts = self.clock()
        self._verify_reinit = False
        self._torn_down = False

    # -- lifecycle -----------------------------------------------------------

    async def acquire_microphone(self):
        """Acquire the microphone; raises MicrophonePermissionError on denial."""
        await self.microphone.acquire()
        self.microphone_acquired = True
        self._torn_down = False
        logger.info("Microphone access granted")

    def initialize(self) -> bool:
        """
        Create (or recreate) the underlying recognizer.

        Returns:
            False if speech recognition is unsupported
        """
        self._detach_recognizer()

        recognizer = self.recognizer_factory()
        if recognizer is None:
            logger.error("Speech recognition not supported in this runtime")
            return False

        recognizer.on_start = self._handle_start
        recognizer.on_end = self._handle_end
        recognizer.on_error = self._handle_error
        recognizer.on_result = self._handle_result
        self.recognizer = recognizer
        logger.info("Created new speech recognition instance")
        return True

    async def start(self) -> bool:
        """
        Start recognition if the session currently wants capture.

        Returns:
            True if the recognizer accepted the start
        """
        if self._torn_down or self.recognizer is None:
            return False
        if self.active or not self.should_capture():
            logger.debug("Start skipped: recognition active or capture not wanted")
            return False

        if self.microphone_acquired:
            await self.microphone.resume()

        try:
            await self.recognizer.start()
            return True
        except RecognizerStartError as e:
            logger.error(f"Error starting speech recognition: {e}")

        # Re-initialize once if the existing instance refused to start
        if not self.initialize():
            self._record_reinit_failure("recognizer could not be recreated")
            return False
        try:
            await self.recognizer.start()
            return True
        except RecognizerStartError as e:
            logger.error(f"Failed to start after re-initialization: {e}")

        # Hand over to the backoff and re-initialization policy
        self.error_count += 1
        self._cancel_restart()
        self._schedule_restart(self._backoff_delay(), reason="start failure")
        return False

    async def suspend(self):
        """Stop recognition and audio capture without tearing down."""
        self._cancel_restart()
        self._stop_silence_detection()
        if self.microphone_acquired:
            await self.microphone.pause()
        if self.recognizer is not None and self.active:
            await self.recognizer.stop()
            logger.info("Speech recognition suspended")

    async def stop(self):
        """Alias for suspend(); kept for symmetry with start()."""
        await self.suspend()

    async def teardown(self):
        """Release recognizer, timers and microphone. Safe to call repeatedly."""
        if self._torn_down:
            return
        self._torn_down = True

        self._cancel_restart()
        self._stop_silence_detection()
        if self._status_task and not self._status_task.done():
            self._status_task.cancel()
        self._status_task = None
        self.show_recognition_status = False

        if self.recognizer is not None and self.active:
            try:
                await self.recognizer.stop()
            except RecognizerStartError as e:
                logger.error(f"Error stopping speech recognition: {e}")
        self._detach_recognizer()

        if self.microphone_acquired:
            await self.microphone.release()
            self.microphone_acquired = False
            logger.info("Audio capture released")

        self.error_count = 0
        self.reinit_failures = 0

    # -- recognizer callbacks ------------------------------------------------

    def _handle_start(self):
        logger.info("Speech recognition started")
        self._set_active(True)
        self.last_speech_ts = self.clock()
        self._set_no_speech(False)
        self._start_silence_detection()

        if self._verify_reinit:
            self._verify_reinit = False
            self.error_count = 0
            self.reinit_failures = 0
            logger.info("Recognition restarted after re-initialization; error counter reset")

    def _handle_end(self):
        logger.info("Speech recognition ended")
        self._set_active(False)
        self._stop_silence_detection()

        if self._torn_down or not self.should_capture():
            logger.debug("Not restarting speech recognition: capture not wanted")
            return

        # An error recovery already scheduled keeps its backoff delay
        if self._restart_pending():
            return

        self._schedule_restart(self.settings.restart_delay_s, reason="unexpected end")

    def _handle_error(self, kind: str):
        if kind == self.NO_SPEECH:
            logger.info("Speech recognition info: No speech detected")
            return

        self.error_count += 1
        if kind in self.RECOVERABLE_ERRORS:
            self._show_status()
        logger.error(f"Speech recognition error: {kind} (error #{self.error_count})")

        self._set_active(False)
        if self.on_error:
            self.on_error(kind)

        if self._torn_down or not self.should_capture():
            return

        self._cancel_restart()
        self._schedule_restart(self._backoff_delay(), reason=f"error {kind}")

    def _handle_result(self, event: RecognitionEvent):
        self.last_speech_ts = self.clock()
        self._set_no_speech(False)
        # A recognizer that delivers speech is healthy again
        self.error_count = 0

        interim = ""
        final = ""
        confidence = 0.0
        for result in event.results[event.result_index:]:
            confidence = result.confidence
            if result.is_final:
                final += result.transcript
            else:
                interim += result.transcript

        now_ms = time.time() * 1000.0
        if interim and self.on_partial:
            self.on_partial(build_segment(SegmentKind.PARTIAL, interim, confidence, now_ms))
        if final and self.on_final:
            self.on_final(build_segment(SegmentKind.FINAL, final, confidence, now_ms))

    # -- restart / recovery --------------------------------------------------

    def _restart_pending(self) -> bool:
        task = self._restart_task
        return task is not None and not task.done() and task is not asyncio.current_task()

    def _cancel_restart(self):
        if self._restart_pending():
            self._restart_task.cancel()
        self._restart_task = None

    def _schedule_restart(self, delay: float, reason: str):
        logger.info(f"Attempting recovery in {delay * 1000:.0f}ms ({reason})")
        self._restart_task = asyncio.get_running_loop().create_task(self._restart_after(delay))

    async def _restart_after(self, delay: float):
        await asyncio.sleep(delay)

        # State may have changed while the timer was pending
        if self._torn_down or self.active or not self.should_capture():
            logger.info("Conditions changed, not restarting speech recognition")
            return

        reinit = self.error_count > self.settings.reinit_after_errors or self.recognizer is None
        if reinit:
            logger.info("Multiple errors detected, fully re-initializing speech recognition")
            if not self.initialize():
                self._record_reinit_failure("recognizer could not be recreated")
                return
            self._verify_reinit = True

        try:
            await self.recognizer.start()
            logger.info("Speech recognition restarted")
        except RecognizerStartError as e:
            logger.error(f"Failed to restart speech recognition: {e}")
            self._verify_reinit = False
            if reinit:
                self._record_reinit_failure(str(e))
                return
            # Counts toward the re-initialization threshold
            self.error_count += 1
            self._schedule_restart(self._backoff_delay(), reason="start failure")

    def _backoff_delay(self) -> float:
        return min(
            self.error_count * self.settings.error_backoff_step_s,
            self.settings.error_backoff_cap_s,
        )

    def _record_reinit_failure(self, details: str):
        self.reinit_failures += 1
        if self.reinit_failures >= self.settings.max_reinit_failures:
            message = (
                "Speech recognition could not be restarted. "
                "Please disconnect and reconnect to try again."
            )
            logger.error(f"Re-initialization failed {self.reinit_failures} times: {details}")
            if self.on_fatal:
                self.on_fatal(message)
            return
        self._schedule_restart(self.settings.error_backoff_cap_s, reason="re-initialization failure")

    # -- silence detection ---------------------------------------------------

    def _start_silence_detection(self):
        self._stop_silence_detection()
        self._silence_task = asyncio.get_running_loop().create_task(self._silence_loop())

    def _stop_silence_detection(self):
        if self._silence_task and not self._silence_task.done():
            self._silence_task.cancel()
        self._silence_task = None
        self._set_no_speech(False)

    async def _silence_loop(self):
        while True:
            await asyncio.sleep(self.settings.silence_check_interval_s)
            self.check_silence()

    def check_silence(self) -> bool:
        """Update and return the advisory "listening, no speech" flag."""
        silent_for = self.clock() - self.last_speech_ts
        flag = (
            silent_for > self.settings.silence_threshold_s
            and self.active
            and self.should_capture()
        )
        self._set_no_speech(flag)
        return flag

    def _set_no_speech(self, flag: bool):
        if flag == self.listening_no_speech:
            return
        self.listening_no_speech = flag
        if self.on_listening_no_speech:
            self.on_listening_no_speech(flag)

    # -- helpers ---------------------------------------------------------------

    def _set_active(self, active: bool):
        if active == self.active:
            return
        self.active = active
        if self.on_active_changed:
            self.on_active_changed(active)

    def _show_status(self):
        self.show_recognition_status = True
        if self._status_task and not self._status_task.done():
            self._status_task.cancel()
        self._status_task = asyncio.get_running_loop().create_task(self._hide_status())

    async def _hide_status(self):
        await asyncio.sleep(self.settings.status_display_s)
        self.show_recognition_status = False

    def _detach_recognizer(self):
        recognizer = self.recognizer
        if recognizer is None:
            return
        recognizer.on_start = None
        recognizer.on_end = None
        recognizer.on_error = None
        recognizer.on_result = None
        self.recognizer = None
        self._set_active(False)
