import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Sequence, Tuple

import numpy as np

# Symmetric, distance-weighted co-occurrence matrix. Every observation (i, j, d) adds 1/d to (i, j) and
# to (j, i). The build partitions observations over a thread pool; each worker fills a private matrix
# and the partials are summed once all workers have finished, so no cell is written concurrently.

logger = logging.getLogger(__name__)


class CooccurrenceMatrix:
    """Sparse V x V matrix stored as a dict of nonzero cells.

    Only what the trainer and persistence need: symmetric accumulate, cell and row access, merge,
    nonzero coordinates and conversion to/from the dense row-major layout.

    Attributes:
        size (int): Vocabulary size V.
    """

    def __init__(self, size: int):
        if size < 0:
            raise ValueError(f"Matrix size must be >= 0, got {size}")
        self.size = size
        self._cells: Dict[Tuple[int, int], float] = defaultdict(float)

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.size, self.size)

    @property
    def nnz(self) -> int:
        return len(self._cells)

    def _check(self, i: int, j: int) -> None:
        if not (0 <= i < self.size and 0 <= j < self.size):
            raise IndexError(f"Token id pair ({i}, {j}) outside vocabulary of size {self.size}")

    def add(self, i: int, j: int, weight: float) -> None:
        """Add weight to (i, j) and (j, i); a diagonal cell receives it twice.

        Raises:
            IndexError: If i or j is outside [0, size).
            ValueError: If weight is not strictly positive.
        """
        self._check(i, j)
        if not weight > 0:
            raise ValueError(f"Co-occurrence weight must be positive, got {weight}")
        self._cells[(i, j)] += weight
        self._cells[(j, i)] += weight

    def merge(self, other: "CooccurrenceMatrix") -> "CooccurrenceMatrix":
        """Element-wise accumulate another matrix of the same size into this one."""
        if other.size != self.size:
            raise ValueError(f"Cannot merge {other.shape} into {self.shape}")
        for key, value in other._cells.items():
            self._cells[key] += value
        return self

    def get(self, i: int, j: int) -> float:
        self._check(i, j)
        return self._cells.get((i, j), 0.0)

    def __getitem__(self, key: Tuple[int, int]) -> float:
        return self.get(*key)

    def row(self, i: int) -> np.ndarray:
        """Dense copy of row i."""
        if not 0 <= i < self.size:
            raise IndexError(f"Row {i} outside vocabulary of size {self.size}")
        out = np.zeros(self.size, dtype=np.float64)
        for (r, c), value in self._cells.items():
            if r == i:
                out[c] = value
        return out

    def nonzero(self) -> List[Tuple[int, int]]:
        """Coordinates of all nonzero cells in row-major order."""
        return sorted(self._cells)

    def items(self) -> Iterable[Tuple[Tuple[int, int], float]]:
        return self._cells.items()

    def to_dense(self) -> np.ndarray:
        """Dense (V, V) float64 array."""
        dense = np.zeros(self.shape, dtype=np.float64)
        for (i, j), value in self._cells.items():
            dense[i, j] = value
        return dense

    @classmethod
    def from_dense(cls, dense: np.ndarray) -> "CooccurrenceMatrix":
        """Rebuild from a dense square array; zero cells are not stored.

        Raises:
            ValueError: If the array is not square.
        """
        dense = np.asarray(dense, dtype=np.float64)
        if dense.ndim != 2 or dense.shape[0] != dense.shape[1]:
            raise ValueError(f"Expected a square matrix, got shape {dense.shape}")
        matrix = cls(dense.shape[0])
        rows, cols = np.nonzero(dense)
        for i, j in zip(rows.tolist(), cols.tolist()):
            matrix._cells[(i, j)] = float(dense[i, j])
        return matrix

    def is_symmetric(self) -> bool:
        return all(self._cells.get((j, i)) == value for (i, j), value in self._cells.items())

    def __repr__(self) -> str:
        return f"CooccurrenceMatrix(size={self.size}, nnz={self.nnz})"


def _accumulate(pairs: Sequence, size: int) -> CooccurrenceMatrix:
    """Worker task: fill a private matrix from a slice of observations."""
    partial = CooccurrenceMatrix(size)
    for id_a, id_b, distance in pairs:
        if distance < 1:
            raise ValueError(f"Distance must be >= 1, got {distance} for ({id_a}, {id_b})")
        partial.add(id_a, id_b, 1.0 / distance)
    return partial


def partition(items: Sequence, parts: int) -> List[Sequence]:
    """Split a sequence into `parts` contiguous, disjoint chunks of near-equal length.

    Args:
        items: Sequence to split (list or 1D/2D numpy array).
        parts: Number of chunks; must be > 0.

    Returns:
        List of exactly `parts` chunks (trailing ones may be empty).
    """
    if parts <= 0:
        raise ValueError(f"parts must be > 0, got {parts}")
    n = len(items)
    bounds = [n * k // parts for k in range(parts + 1)]
    return [items[bounds[k]:bounds[k + 1]] for k in range(parts)]


def build_cooccurrence(pairs: Sequence, vocab_size: int, threads: int = 4) -> CooccurrenceMatrix:
    """Build the symmetric harmonic-weighted co-occurrence matrix.

    Args:
        pairs: Observations (id_a, id_b, distance), e.g. Corpus.pairs.
        vocab_size: Vocabulary size V.
        threads: Number of worker threads. Defaults to 4.

    Returns:
        CooccurrenceMatrix of size V.

    Raises:
        IndexError: If an observation references an id outside [0, V).
        ValueError: If an observation has distance < 1.
    """
    pairs = list(pairs)
    chunks = partition(pairs, threads)
    with ThreadPoolExecutor(max_workers=threads) as pool:
        futures = [pool.submit(_accumulate, chunk, vocab_size) for chunk in chunks]
        # result() re-raises a worker's exception here, aborting the build
        partials = [f.result() for f in futures]
    matrix = CooccurrenceMatrix(vocab_size)
    for partial in partials:
        matrix.merge(partial)
    logger.info(
        "built co-occurrence matrix: %i tokens, %i observations, %i nonzero cells",
        vocab_size, len(pairs), matrix.nnz,
    )
    return matrix
