import re
from collections import Counter
from typing import Dict, Iterable, List, NamedTuple

from nltk.stem import PorterStemmer

# Default tokenizer / vocabulary collaborator: lowercase regex tokens, optional Porter stemming,
# count-based vocabulary and windowed (id_a, id_b, distance) pairs. The trainer only needs `index`,
# `pairs` and `normalize`, so any object with the same attributes can stand in for Corpus.

_STEMMER = PorterStemmer()


class TokenCount(NamedTuple):
    """Vocabulary entry: dense id and number of occurrences."""

    id: int
    count: int


class TokenPair(NamedTuple):
    """Two token ids observed `distance` positions apart (distance >= 1)."""

    id_a: int
    id_b: int
    distance: int


def tokenize(text: str) -> List[str]:
    """Lowercase and split on non-alphanumeric; keep only letter/digit sequences.

    Args:
        text: Raw input string.

    Returns:
        List of token strings.
    """
    return re.findall(r"[a-zA-Z0-9]+", text.lower())


def normalize_token(token: str, stem: bool = True) -> str:
    """Lowercase a token and optionally reduce it to its Porter stem."""
    token = token.lower()
    return _STEMMER.stem(token) if stem else token


class Corpus:
    """Vocabulary index plus the token pairs observed inside the context window.

    Attributes:
        index (Dict[str, TokenCount]): token -> (id, count); ids are 0..V-1 by descending count.
        tokens (List[str]): id -> token.
        pairs (List[TokenPair]): Each ordered pair (left, right) within the window, once.
        window (int): Context window the pairs were extracted with.
        stem (bool): Whether tokens were stemmed (queries must be normalized the same way).
    """

    def __init__(
        self,
        index: Dict[str, TokenCount],
        pairs: List[TokenPair],
        window: int = 2,
        stem: bool = True,
    ):
        self.index = index
        self.pairs = pairs
        self.window = window
        self.stem = stem
        self.tokens = [""] * len(index)
        for token, entry in index.items():
            self.tokens[entry.id] = token

    def __len__(self) -> int:
        return len(self.index)

    def normalize(self, word: str) -> str:
        """Map a query word onto the vocabulary's token form."""
        return normalize_token(word, self.stem)

    def __repr__(self) -> str:
        return f"Corpus(tokens={len(self.index)}, pairs={len(self.pairs)}, window={self.window})"


def build_index(tokens: Iterable[str], min_count: int = 1) -> Dict[str, TokenCount]:
    """Count tokens and assign dense ids by descending frequency (ties keep first-seen order).

    Args:
        tokens: Normalized token strings.
        min_count: Minimum count to include a token. Defaults to 1.

    Returns:
        Mapping token -> TokenCount(id, count).
    """
    cnt = Counter(tokens)
    kept = [(w, c) for w, c in cnt.most_common() if c >= min_count]
    return {w: TokenCount(i, c) for i, (w, c) in enumerate(kept)}


def extract_pairs(token_ids: List[int], window: int) -> List[TokenPair]:
    """Pair every position with each of the next `window` positions.

    Args:
        token_ids: Corpus as vocabulary ids (out-of-vocabulary tokens already removed).
        window: Half-window size.

    Returns:
        One TokenPair per (left, right) occurrence; the co-occurrence builder symmetrizes them.
    """
    pairs = []
    n = len(token_ids)
    for pos, left in enumerate(token_ids):
        for distance in range(1, window + 1):
            if pos + distance >= n:
                break
            pairs.append(TokenPair(left, token_ids[pos + distance], distance))
    return pairs


def build_corpus(text: str, window: int = 2, min_count: int = 1, stem: bool = True) -> Corpus:
    """Tokenize text, build the vocabulary index and extract windowed token pairs.

    Args:
        text: Raw text.
        window: Symmetric context window. Defaults to 2.
        min_count: Minimum token count for the vocabulary. Defaults to 1.
        stem: Whether to Porter-stem tokens. Defaults to True.

    Returns:
        Corpus with index, pairs and tokens.

    Raises:
        ValueError: If text yields no tokens.
    """
    tokens = [normalize_token(t, stem) for t in tokenize(text)]
    if not tokens:
        raise ValueError("No tokens in text")
    index = build_index(tokens, min_count=min_count)
    # Tokens below min_count are dropped before windowing, so neighbours close the gap.
    token_ids = [index[t].id for t in tokens if t in index]
    return Corpus(index, extract_pairs(token_ids, window), window=window, stem=stem)


def build_corpus_from_file(path: str, **kwargs) -> Corpus:
    """Build a Corpus from a text file (read as a single blob); kwargs go to build_corpus."""
    with open(path) as f:
        text = f.read()
    return build_corpus(text, **kwargs)
