"""Word-overlap similarity between consecutive assistant replies."""

DEFAULT_THRESHOLD = 0.7


def is_too_similar(previous: str, candidate: str, threshold: float = DEFAULT_THRESHOLD) -> bool:
    """
    Check whether a new reply mostly repeats the previous one.

    Replies whose character length differs by more than 40% of the previous
    reply, or whose word counts differ by more than half of the shorter one,
    are never considered similar.

    Args:
        previous: Previous assistant reply
        candidate: New assistant reply
        threshold: Overlap ratio above which replies are too similar

    Returns:
        True if the shared-word ratio exceeds the threshold
    """
    if not previous or not candidate:
        return False
    if abs(len(previous) - len(candidate)) > len(previous) * 0.4:
        return False

    words1 = previous.lower().split()
    words2 = candidate.lower().split()
    if not words1 or not words2:
        return False

    if abs(len(words1) - len(words2)) > min(len(words1), len(words2)) * 0.5:
        return False

    vocabulary2 = set(words2)
    common = sum(1 for word in words1 if word in vocabulary2)
    similarity = common / max(len(words1), len(words2))

    return similarity > threshold
