"""
Similarity and keyword helpers for memory retrieval and consolidation.
"""

import math
import re
from typing import Iterable, List, Optional, Sequence

_NON_WORD = re.compile(r"[^\w\s]")


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.

    Returns 0.0 when either vector has zero magnitude.
    """
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions differ: {len(a)} != {len(b)}")
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    # Float error can push identical vectors slightly past 1
    return max(-1.0, min(1.0, similarity))


def word_set(text: str) -> set:
    """Lowercased whitespace-separated words."""
    return set(text.lower().split())


def jaccard_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the two texts' word sets."""
    words_a = word_set(a)
    words_b = word_set(b)
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def extract_keywords(
    text: str,
    stopwords: Iterable[str],
    min_length: int = 3,
    max_keywords: Optional[int] = 10,
) -> List[str]:
    """
    Pull search keywords out of free text.

    Punctuation is stripped, words shorter than min_length and stopwords are
    dropped, order is preserved.
    """
    stop = set(stopwords)
    words = _NON_WORD.sub(" ", text.lower()).split()
    keywords = [w for w in words if len(w) >= min_length and w not in stop]
    return keywords[:max_keywords] if max_keywords else keywords
