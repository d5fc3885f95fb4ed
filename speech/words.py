"""Synthetic word timings for recognized text.

The recognizer only reports whole-phrase text, so word boundaries are
approximated with evenly spaced slots ending at the moment of recognition.
"""

from datetime import datetime
from typing import List

from schemas.transcript import SegmentKind, TranscriptSegment, WordTiming

WORD_SLOT_MS = 50.0


def synthesize_words(text: str, confidence: float, now_ms: float) -> List[WordTiming]:
    """Split on whitespace and assign evenly spaced timestamps ending at now_ms."""
    words = text.split()
    if not words:
        return []

    first_start = now_ms - len(words) * WORD_SLOT_MS
    return [
        WordTiming(
            word=word,
            start_ms=first_start + index * WORD_SLOT_MS,
            end_ms=first_start + (index + 1) * WORD_SLOT_MS,
            confidence=confidence,
        )
        for index, word in enumerate(words)
    ]


def build_segment(kind: SegmentKind, text: str, confidence: float, now_ms: float) -> TranscriptSegment:
    """Build a transcript segment with synthesized word timings."""
    # Finals cover a longer audio window than interim guesses
    window_ms = 2000.0 if kind == SegmentKind.FINAL else 1000.0
    return TranscriptSegment(
        kind=kind,
        text=text,
        words=synthesize_words(text, confidence, now_ms),
        created_at=datetime.now(),
        confidence=confidence,
        audio_start_ms=now_ms - window_ms,
        audio_end_ms=now_ms,
    )
