from typing import List, Optional, Tuple

import numpy as np

from glove.vectors import VectorSpace

# Read-only queries over trained vectors: cosine similarity, nearest neighbours and analogy lookups.
# Unknown words are not errors; they produce empty results (or similarity 0).


def cosine(a: Optional[np.ndarray], b: Optional[np.ndarray]) -> float:
    """Cosine similarity between two vectors; 0 if either is missing or has zero norm.

    Args:
        a: First vector or None.
        b: Second vector or None.

    Returns:
        Scalar in [-1, 1].
    """
    if a is None or b is None:
        return 0.0
    norm = np.linalg.norm(a) * np.linalg.norm(b)
    if norm == 0:
        return 0.0
    return float(np.dot(a, b) / norm)


class QueryEngine:
    """Nearest-neighbour and analogy queries against a VectorSpace.

    Attributes:
        space (VectorSpace): Trained vectors (not modified).
        corpus: Object with `index`, `tokens` and `normalize(word)` (see glove.corpus.Corpus).
    """

    def __init__(self, space: VectorSpace, corpus):
        self.space = space
        self.corpus = corpus

    def _resolve(self, word: str, normalized: bool) -> str:
        return word if normalized else self.corpus.normalize(word)

    def vector(self, word: str) -> Optional[np.ndarray]:
        """Vector of an already normalized token, or None if unknown."""
        entry = self.corpus.index.get(word)
        if entry is None:
            return None
        return self.space.vector(entry.id)

    def vector_distance(self, word: str) -> List[Tuple[str, float]]:
        """Cosine of every other token against `word`, sorted by descending similarity.

        Args:
            word: Normalized token.

        Returns:
            List of (token, similarity); empty if word is unknown. Ties keep vocabulary order.
        """
        base = self.vector(word)
        if base is None:
            return []
        scored = [
            (token, cosine(base, self.space.vector(idx)))
            for idx, token in enumerate(self.corpus.tokens)
            if token != word
        ]
        scored.sort(key=lambda item: item[1], reverse=True)
        return scored

    def most_similar(
        self, word: str, num: int = 3, *, normalized: bool = False
    ) -> List[Tuple[str, float]]:
        """The `num` tokens closest to word by cosine similarity (word itself excluded).

        Args:
            word: Query word.
            num: Number of results (>= 0). Defaults to 3.
            normalized: word is already a vocabulary token; skip stemming. Defaults to False.

        Returns:
            List of (token, similarity), most similar first; empty for unknown words.

        Raises:
            ValueError: If num is negative.
        """
        _check_num(num)
        return self.vector_distance(self._resolve(word, normalized))[:num]

    def analogy_words(
        self,
        word1: str,
        word2: str,
        target: str,
        num: int = 3,
        accuracy: float = 0.0001,
        *,
        normalized: bool = False,
    ) -> List[Tuple[str, float]]:
        """Tokens related to target, filtered against the word1/word2 similarity.

        The baseline is cosine(word1, word2). Every token whose |similarity to target| lies within
        `accuracy` of the baseline is dropped; the rest are returned by descending similarity.

        Args:
            word1: First word of the reference pair.
            word2: Second word of the reference pair.
            target: Word to find related tokens for.
            num: Number of results (>= 0). Defaults to 3.
            accuracy: Allowance between the baseline and a candidate's similarity. Defaults to 1e-4.
            normalized: The words are already vocabulary tokens; skip stemming. Defaults to False.

        Returns:
            List of (token, similarity); empty if target is unknown.

        Raises:
            ValueError: If num is negative.
        """
        _check_num(num)
        word1 = self._resolve(word1, normalized)
        word2 = self._resolve(word2, normalized)
        target = self._resolve(target, normalized)

        baseline = cosine(self.vector(word1), self.vector(word2))
        kept = [
            item for item in self.vector_distance(target)
            if abs(abs(item[1]) - baseline) >= accuracy
        ]
        return kept[:num]


def _check_num(num: int) -> None:
    if num < 0:
        raise ValueError(f"num must be >= 0, got {num}")
