"""Speech recognition and microphone capability interfaces."""

import logging
from typing import Callable, List, Optional, Protocol
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class RecognitionResult(BaseModel):
    """One alternative of a recognition result."""
    transcript: str
    confidence: float = 0.0
    is_final: bool = False


class RecognitionEvent(BaseModel):
    """Batch of results delivered by a recognizer's result callback."""
    results: List[RecognitionResult] = Field(default_factory=list)
    result_index: int = 0


class RecognizerStartError(Exception):
    """The recognizer refused to start (already started, device busy...)."""


class MicrophonePermissionError(Exception):
    """Microphone access denied or unavailable."""

    NOT_ALLOWED = "not-allowed"
    NOT_FOUND = "not-found"
    NOT_READABLE = "not-readable"
    OTHER = "other"

    REMEDIATION = {
        NOT_ALLOWED: "Please allow microphone access in your system settings.",
        NOT_FOUND: "No microphone device found.",
        NOT_READABLE: "Microphone is already in use by another application.",
    }

    def __init__(self, reason: str = OTHER, details: str = ""):
        self.reason = reason
        self.details = details
        super().__init__(self.user_message)

    @property
    def user_message(self) -> str:
        """Actionable text for the user."""
        hint = self.REMEDIATION.get(self.reason) or self.details or "Please check your audio settings."
        return f"Failed to access microphone. {hint}"


class Recognizer(Protocol):
    """Continuous speech recognizer capability.

    Callbacks are plain callables set by the owner and invoked by the
    recognizer on the event loop thread.
    """
    on_start: Optional[Callable[[], None]]
    on_end: Optional[Callable[[], None]]
    on_error: Optional[Callable[[str], None]]
    on_result: Optional[Callable[[RecognitionEvent], None]]

    async def start(self):
        ...

    async def stop(self):
        ...


RecognizerFactory = Callable[[], Optional[Recognizer]]


class Microphone(Protocol):
    """Audio capture device."""

    async def acquire(self):
        ...

    async def pause(self):
        ...

    async def resume(self):
        ...

    async def release(self):
        ...


class NullMicrophone:
    """Microphone that always grants access and captures nothing."""

    def __init__(self):
        self.acquired = False
        self.paused = False

    async def acquire(self):
        self.acquired = True

    async def pause(self):
        self.paused = True

    async def resume(self):
        self.paused = False

    async def release(self):
        self.acquired = False


class ScriptedRecognizer:
    """
    Recognizer driven by text instead of audio.

    Used by the CLI (typed input stands in for speech) and by tests to
    replay recognition results and errors.
    """

    def __init__(self, fail_starts: int = 0):
        """
        Initialize scripted recognizer.

        Args:
            fail_starts: Number of upcoming start() calls that should fail
        """
        self.on_start: Optional[Callable[[], None]] = None
        self.on_end: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None
        self.on_result: Optional[Callable[[RecognitionEvent], None]] = None
        self.active = False
        self.fail_starts = fail_starts
        self.start_calls = 0
        self.stop_calls = 0

    async def start(self):
        self.start_calls += 1
        if self.active:
            raise RecognizerStartError("recognition has already started")
        if self.fail_starts > 0:
            self.fail_starts -= 1
            raise RecognizerStartError("recognizer failed to start")
        self.active = True
        if self.on_start:
            self.on_start()

    async def stop(self):
        self.stop_calls += 1
        self._end()

    def say(self, text: str, confidence: float = 0.9, is_final: bool = True):
        """Deliver a recognition result."""
        if not self.active:
            logger.debug(f"Dropping scripted speech while inactive: {text!r}")
            return
        if self.on_result:
            self.on_result(RecognitionEvent(
                results=[RecognitionResult(transcript=text, confidence=confidence, is_final=is_final)]
            ))

    def fail(self, kind: str):
        """Deliver an error; like a real recognizer, an end event follows."""
        if self.on_error:
            self.on_error(kind)
        self._end()

    def _end(self):
        if not self.active:
            return
        self.active = False
        if self.on_end:
            self.on_end()
