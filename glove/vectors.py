from typing import NamedTuple, Optional

import numpy as np

from glove.errors import DataIntegrityError

# Mutable training state: word vectors (V, D), biases (V,) and their AdaGrad accumulators. The
# accumulators start at a small positive constant so the first update never divides by zero.

ACCUMULATOR_INIT = 1e-8


class Snapshot(NamedTuple):
    """Copies of all four arrays, taken before an epoch."""

    word_vec: np.ndarray
    word_biases: np.ndarray
    grad_sq_vec: np.ndarray
    grad_sq_biases: np.ndarray


class VectorSpace:
    """Word vectors, biases and AdaGrad accumulators for a vocabulary of size V.

    Attributes:
        word_vec (np.ndarray): Word vectors, shape (V, D); row i belongs to token id i.
        word_biases (np.ndarray): One bias per token, shape (V,).
        grad_sq_vec (np.ndarray): Running sum of squared gradients for word_vec, shape (V, D).
        grad_sq_biases (np.ndarray): Running sum of squared gradients for word_biases, shape (V,).
    """

    def __init__(
        self,
        word_vec: np.ndarray,
        word_biases: np.ndarray,
        grad_sq_vec: Optional[np.ndarray] = None,
        grad_sq_biases: Optional[np.ndarray] = None,
    ):
        """Wrap existing arrays; accumulators default to ACCUMULATOR_INIT.

        Raises:
            DataIntegrityError: If shapes disagree on V or D.
        """
        word_vec = np.asarray(word_vec, dtype=np.float64)
        word_biases = np.asarray(word_biases, dtype=np.float64)
        if word_vec.ndim != 2 or word_biases.shape != (word_vec.shape[0],):
            raise DataIntegrityError(
                f"Vector matrix {word_vec.shape} and bias vector {word_biases.shape} disagree"
            )
        if grad_sq_vec is None:
            grad_sq_vec = np.full_like(word_vec, ACCUMULATOR_INIT)
        if grad_sq_biases is None:
            grad_sq_biases = np.full_like(word_biases, ACCUMULATOR_INIT)
        grad_sq_vec = np.asarray(grad_sq_vec, dtype=np.float64)
        grad_sq_biases = np.asarray(grad_sq_biases, dtype=np.float64)
        if grad_sq_vec.shape != word_vec.shape or grad_sq_biases.shape != word_biases.shape:
            raise DataIntegrityError("Accumulator shapes do not match the vectors they track")
        self.word_vec = word_vec
        self.word_biases = word_biases
        self.grad_sq_vec = grad_sq_vec
        self.grad_sq_biases = grad_sq_biases

    @classmethod
    def initialize(cls, vocab_size: int, dim: int, seed: Optional[int] = None) -> "VectorSpace":
        """Uniform random vectors in [-0.5/D, 0.5/D), zero biases.

        Args:
            vocab_size: Vocabulary size V.
            dim: Embedding dimension D.
            seed: Random seed. Defaults to None.

        Returns:
            Freshly allocated VectorSpace.
        """
        if vocab_size < 0 or dim <= 0:
            raise ValueError(f"Need vocab_size >= 0 and dim > 0, got ({vocab_size}, {dim})")
        rng = np.random.default_rng(seed)
        init = 0.5 / dim
        word_vec = rng.uniform(-init, init, size=(vocab_size, dim))
        return cls(word_vec, np.zeros(vocab_size, dtype=np.float64))

    @property
    def vocab_size(self) -> int:
        return self.word_vec.shape[0]

    @property
    def dim(self) -> int:
        return self.word_vec.shape[1]

    def vector(self, token_id: int) -> np.ndarray:
        """Row view for token_id (writes go straight into the matrix)."""
        return self.word_vec[token_id]

    def snapshot(self) -> Snapshot:
        return Snapshot(
            self.word_vec.copy(),
            self.word_biases.copy(),
            self.grad_sq_vec.copy(),
            self.grad_sq_biases.copy(),
        )

    def restore(self, snap: Snapshot) -> None:
        """Copy a snapshot back in place (existing row views stay valid)."""
        self.word_vec[...] = snap.word_vec
        self.word_biases[...] = snap.word_biases
        self.grad_sq_vec[...] = snap.grad_sq_vec
        self.grad_sq_biases[...] = snap.grad_sq_biases

    def __repr__(self) -> str:
        return f"VectorSpace(vocab_size={self.vocab_size}, dim={self.dim})"
