"""Speech capture: recognizer interfaces and the capture adapter."""

from .recognizer import (
    Recognizer,
    RecognizerFactory,
    RecognitionEvent,
    RecognitionResult,
    RecognizerStartError,
    Microphone,
    MicrophonePermissionError,
    NullMicrophone,
    ScriptedRecognizer,
)
from .capture_adapter import SpeechCaptureAdapter
from .words import synthesize_words, build_segment

__all__ = [
    "Recognizer",
    "RecognizerFactory",
    "RecognitionEvent",
    "RecognitionResult",
    "RecognizerStartError",
    "Microphone",
    "MicrophonePermissionError",
    "NullMicrophone",
    "ScriptedRecognizer",
    "SpeechCaptureAdapter",
    "synthesize_words",
    "build_segment",
]
