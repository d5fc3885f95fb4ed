"""Speech transcript schemas."""

from datetime import datetime
from enum import Enum
from typing import List
from pydantic import BaseModel, Field


class SegmentKind(str, Enum):
    """Stability of a transcript segment."""
    PARTIAL = "partial"
    FINAL = "final"


class WordTiming(BaseModel):
    """Word-level breakdown of a segment."""
    word: str
    start_ms: float
    end_ms: float
    confidence: float = 0.0


class TranscriptSegment(BaseModel):
    """A partial or final recognition result."""
    kind: SegmentKind
    text: str
    words: List[WordTiming] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=datetime.now)
    confidence: float = 0.0
    audio_start_ms: float = 0.0
    audio_end_ms: float = 0.0

    @property
    def is_final(self) -> bool:
        return self.kind == SegmentKind.FINAL
