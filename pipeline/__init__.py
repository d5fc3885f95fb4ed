"""Request pipeline: prompt building, retries, repeat suppression and fallbacks."""

from .request_pipeline import RequestPipeline, Ok, Retry, Fatal, AttemptResult
from .request_cache import TTLCache
from .similarity import is_too_similar

__all__ = [
    "RequestPipeline",
    "Ok",
    "Retry",
    "Fatal",
    "AttemptResult",
    "TTLCache",
    "is_too_similar",
]
