"""
Vector similarity scoring.

Search ranks a bounded candidate window in process. The ``SimilarityIndex``
interface keeps that scan swappable for an index-backed implementation.
"""
import math
from abc import ABC, abstractmethod
from typing import List, Sequence, Tuple


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity of two equal-length vectors.
    
    Returns 0.0 when either vector has zero magnitude.
    
    Raises:
        ValueError: If the vectors differ in length
    """
    if len(a) != len(b):
        raise ValueError(f"Vector dimensions must match: {len(a)} vs {len(b)}")
    
    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    
    magnitude = math.sqrt(norm_a) * math.sqrt(norm_b)
    if magnitude == 0:
        return 0.0
    return dot / magnitude


class SimilarityIndex(ABC):
    """Ranks candidate vectors against a query vector."""
    
    @abstractmethod
    def similarity_search(
        self,
        vectors: Sequence[Tuple[str, Sequence[float]]],
        query: Sequence[float],
        k: int
    ) -> List[Tuple[str, float]]:
        """
        Return up to ``k`` (key, score) pairs, best first.
        Only strictly positive scores are returned.
        """
        pass


class InProcessCosineIndex(SimilarityIndex):
    """Linear cosine scan over the candidate window."""
    
    def __init__(self, on_dimension_mismatch=None):
        # Called with (key, expected_dim, actual_dim) for skipped candidates
        self.on_dimension_mismatch = on_dimension_mismatch
    
    def similarity_search(self, vectors, query, k):
        scored: List[Tuple[str, float]] = []
        for key, vector in vectors:
            if len(vector) != len(query):
                if self.on_dimension_mismatch:
                    self.on_dimension_mismatch(key, len(query), len(vector))
                continue
            score = cosine_similarity(query, vector)
            if score > 0:
                scored.append((key, score))
        
        scored.sort(key=lambda pair: pair[1], reverse=True)
        return scored[:k]
