import logging
import os
import pickle
from typing import List, Optional, Tuple, Union

import numpy as np

from glove.config import GloveConfig
from glove.cooccurrence import CooccurrenceMatrix, build_cooccurrence
from glove.corpus import Corpus, build_corpus
from glove.errors import DataIntegrityError, NotFittedError
from glove.query import QueryEngine
from glove.train import Trainer, nonzero_entries
from glove.vectors import VectorSpace

# Public entry point: fit text -> co-occurrence matrix + initial vectors, train, query, save/load.
# Saved artifacts are four files: pickled corpus, then raw row-major float64 cells for the V x V
# co-occurrence matrix, the V x D vectors and the V biases (no headers; shapes come from the corpus).

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]


class Model:
    """GloVe model: owns the corpus, co-occurrence matrix and vector space.

    Attributes:
        config (GloveConfig): Options; corpus options are used by fit(text).
        corpus (Optional[Corpus]): Vocabulary index and token pairs.
        cooc_matrix (Optional[CooccurrenceMatrix]): Built by fit(), read only afterwards.
        vectors (Optional[VectorSpace]): Word vectors, biases and AdaGrad state.
        trainer (Optional[Trainer]): Trainer of the last train() call.
    """

    def __init__(self, config: Optional[GloveConfig] = None, **options):
        """Create a model from a GloveConfig or keyword options (not both).

        Raises:
            InvalidConfigurationError: If an option is out of range.
        """
        if config is not None and options:
            raise TypeError("Pass either a GloveConfig or keyword options, not both")
        self.config = config if config is not None else GloveConfig(**options)
        self.corpus: Optional[Corpus] = None
        self.cooc_matrix: Optional[CooccurrenceMatrix] = None
        self.vectors: Optional[VectorSpace] = None
        self.trainer: Optional[Trainer] = None
        self._entries: Optional[np.ndarray] = None

    # ------------------------------------------------------------------ Fitting / training
    def fit(self, text: Union[str, Corpus]) -> "Model":
        """Build the corpus (unless one is given), the co-occurrence matrix and initial vectors.

        Args:
            text: Raw text, or a pre-built Corpus.

        Returns:
            self.
        """
        cfg = self.config
        if isinstance(text, Corpus):
            self.corpus = text
        else:
            self.corpus = build_corpus(
                text, window=cfg.window, min_count=cfg.min_count, stem=cfg.stem
            )
        vocab_size = len(self.corpus.index)
        logger.info("fitting vocabulary of %i tokens, %i pairs", vocab_size, len(self.corpus.pairs))
        self.cooc_matrix = build_cooccurrence(self.corpus.pairs, vocab_size, threads=cfg.threads)
        self._entries = nonzero_entries(self.cooc_matrix)
        self.vectors = VectorSpace.initialize(vocab_size, cfg.num_components, seed=cfg.seed)
        return self

    def train(self) -> "Model":
        """Run config.epochs training epochs. Requires fit() or load() first."""
        self._require_fitted()
        self.trainer = Trainer(self.config)
        self.trainer.train(self.vectors, self.cooc_matrix, self._entries)
        return self

    @property
    def history(self) -> List[dict]:
        return self.trainer.history if self.trainer is not None else []

    # ------------------------------------------------------------------ Persistence
    def save(
        self,
        corpus_file: PathLike,
        cooc_file: PathLike,
        vec_file: PathLike,
        bias_file: PathLike,
    ) -> None:
        """Write the corpus, co-occurrence matrix, word vectors and biases to four files."""
        self._require_fitted()
        with open(corpus_file, "wb") as f:
            pickle.dump(self.corpus, f)
        self.cooc_matrix.to_dense().tofile(cooc_file)
        self.vectors.word_vec.tofile(vec_file)
        self.vectors.word_biases.tofile(bias_file)
        logger.info("saved model (%i tokens, dim %i)", self.vectors.vocab_size, self.vectors.dim)

    def load(
        self,
        corpus_file: PathLike,
        cooc_file: PathLike,
        vec_file: PathLike,
        bias_file: PathLike,
    ) -> "Model":
        """Read the four files written by save(); D is taken from config.num_components.

        AdaGrad accumulators are not stored and restart from their initial value.

        Raises:
            DataIntegrityError: If a payload does not hold exactly V*V, V*D or V cells, or the
                co-occurrence cells are not finite, non-negative and symmetric.
        """
        with open(corpus_file, "rb") as f:
            corpus = pickle.load(f)
        size = len(corpus.index)
        dim = self.config.num_components

        cooc = _read_cells(cooc_file, (size, size), "co-occurrence matrix")
        _check_cooccurrence(cooc, cooc_file)
        word_vec = _read_cells(vec_file, (size, dim), "word vectors")
        word_biases = _read_cells(bias_file, (size,), "word biases")

        self.corpus = corpus
        self.cooc_matrix = CooccurrenceMatrix.from_dense(cooc)
        self._entries = nonzero_entries(self.cooc_matrix)
        self.vectors = VectorSpace(word_vec, word_biases)
        logger.info("loaded model (%i tokens, dim %i)", size, dim)
        return self

    # ------------------------------------------------------------------ Queries
    def most_similar(
        self, word: str, num: int = 3, *, normalized: bool = False
    ) -> List[Tuple[str, float]]:
        """Most similar tokens to word with their cosine similarity; [] for unknown words.

        Pass normalized=True when word is already a vocabulary token (e.g. from corpus.tokens).
        """
        return self._engine().most_similar(word, num, normalized=normalized)

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
        """Tokens related to target like word1 relates to word2 (see QueryEngine.analogy_words)."""
        return self._engine().analogy_words(
            word1, word2, target, num, accuracy, normalized=normalized
        )

    def visualize(self):
        raise NotImplementedError("visualize() is not implemented")

    # ------------------------------------------------------------------ Helpers
    def _engine(self) -> QueryEngine:
        self._require_fitted()
        return QueryEngine(self.vectors, self.corpus)

    def _require_fitted(self) -> None:
        if self.corpus is None or self.cooc_matrix is None or self.vectors is None:
            raise NotFittedError("Call fit() or load() first")

    def __repr__(self) -> str:
        size = len(self.corpus.index) if self.corpus is not None else 0
        return f"Model(tokens={size}, num_components={self.config.num_components})"


def _read_cells(path: PathLike, shape: Tuple[int, ...], what: str) -> np.ndarray:
    """Read raw float64 cells and reshape; the cell count must match the shape exactly."""
    cells = np.fromfile(path, dtype=np.float64)
    expected = int(np.prod(shape))
    if cells.size != expected:
        raise DataIntegrityError(
            f"{what} in {os.fspath(path)} has {cells.size} cells, expected {expected} for shape {shape}"
        )
    return cells.reshape(shape)


def _check_cooccurrence(dense: np.ndarray, path: PathLike) -> None:
    """Stored weights must be finite, zero or positive, and symmetric."""
    where = os.fspath(path)
    if not np.all(np.isfinite(dense)):
        raise DataIntegrityError(f"co-occurrence matrix in {where} has non-finite cells")
    if np.any(dense < 0):
        raise DataIntegrityError(f"co-occurrence matrix in {where} has negative cells")
    if not np.array_equal(dense, dense.T):
        raise DataIntegrityError(f"co-occurrence matrix in {where} is not symmetric")
