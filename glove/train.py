import logging
import math
from concurrent.futures import ThreadPoolExecutor, wait
from typing import List, Optional, Sequence, Tuple

import numpy as np

from glove.config import GloveConfig
from glove.cooccurrence import CooccurrenceMatrix, partition
from glove.vectors import VectorSpace

# GloVe training: weighted least squares on log co-occurrence, AdaGrad per parameter, gradient
# components clipped to +-gradient_clip. Each epoch shuffles the nonzero entries, splits them over the
# worker pool and joins before the next epoch starts.
#
# Update discipline:
#   deterministic=False  lock-free ("Hogwild"): workers update shared rows without locks; with more
#                        than one thread the result depends on scheduling.
#   deterministic=True   the shuffled list is cut into conflict-free waves (no row appears twice in a
#                        wave); waves run one after another, each split over the workers. Entries that
#                        share a row keep their shuffled order, so the result equals one sequential pass.

logger = logging.getLogger(__name__)

NOT_STARTED = "not_started"
RUNNING = "running"
DONE = "done"
ABORTED = "aborted"


def weighting(x: float, max_count: float, alpha: float) -> float:
    """Weighting function f(x) = (x / max_count)^alpha, capped at 1 for x >= max_count."""
    if x < max_count:
        return (x / max_count) ** alpha
    return 1.0


def update_entry(
    space: VectorSpace,
    i: int,
    j: int,
    x: float,
    *,
    learning_rate: float,
    max_count: float,
    alpha: float,
    gradient_clip: float,
) -> float:
    """Apply one AdaGrad step for the co-occurrence cell (i, j) with weight x.

    Both vector gradients are computed from the rows as they were before this step.

    Args:
        space: VectorSpace mutated in place.
        i: Row token id.
        j: Column token id.
        x: Co-occurrence weight (> 0).
        learning_rate: AdaGrad base learning rate.
        max_count: Weighting cutoff.
        alpha: Weighting exponent.
        gradient_clip: Magnitude bound for every gradient component.

    Returns:
        The weighted squared cost f(x) * (prediction - log x)^2 before the step.
    """
    w_i = space.word_vec[i]
    w_j = space.word_vec[j]
    fx = weighting(x, max_count, alpha)
    cost = float(np.dot(w_i, w_j)) + space.word_biases[i] + space.word_biases[j] - math.log(x)
    weighted_cost = fx * cost

    grad_i = np.clip(weighted_cost * w_j, -gradient_clip, gradient_clip)
    grad_j = np.clip(weighted_cost * w_i, -gradient_clip, gradient_clip)
    grad_b = min(max(weighted_cost, -gradient_clip), gradient_clip)

    space.grad_sq_vec[i] += grad_i**2
    space.word_vec[i] -= learning_rate * grad_i / np.sqrt(space.grad_sq_vec[i])
    space.grad_sq_vec[j] += grad_j**2
    space.word_vec[j] -= learning_rate * grad_j / np.sqrt(space.grad_sq_vec[j])

    space.grad_sq_biases[i] += grad_b**2
    space.word_biases[i] -= learning_rate * grad_b / math.sqrt(space.grad_sq_biases[i])
    space.grad_sq_biases[j] += grad_b**2
    space.word_biases[j] -= learning_rate * grad_b / math.sqrt(space.grad_sq_biases[j])
    return fx * cost * cost


def schedule_waves(entries: np.ndarray, vocab_size: int) -> List[np.ndarray]:
    """Group entries into waves in which no two entries touch the same row.

    An entry goes into the wave right after the latest wave that already uses row i or row j, so
    entries sharing a row stay in their original relative order.

    Args:
        entries: (N, 2) array of (i, j) in processing order.
        vocab_size: Vocabulary size V.

    Returns:
        List of (n_k, 2) arrays, one per wave, to be applied in order.
    """
    if len(entries) == 0:
        return []
    last_wave = [-1] * vocab_size
    wave_of = []
    for i, j in entries.tolist():
        wave = max(last_wave[i], last_wave[j]) + 1
        last_wave[i] = wave
        last_wave[j] = wave
        wave_of.append(wave)
    wave_of = np.asarray(wave_of)
    order = np.argsort(wave_of, kind="stable")
    bounds = np.searchsorted(wave_of[order], np.arange(1, wave_of.max() + 1))
    return np.split(entries[order], bounds)


class Trainer:
    """Runs epochs of parallel AdaGrad over the nonzero co-occurrence entries.

    Attributes:
        config (GloveConfig): Hyperparameters (learning_rate, alpha, max_count, epochs, threads, ...).
        state (str): NOT_STARTED, RUNNING, DONE, or ABORTED after a failed epoch was rolled back.
        epochs_completed (int): Epochs fully applied so far.
        history (list): One {"epoch", "loss"} dict per completed epoch.
    """

    def __init__(self, config: GloveConfig, seed: Optional[int] = None):
        self.config = config
        self.rng = np.random.default_rng(config.seed if seed is None else seed)
        self.state = NOT_STARTED
        self.epochs_completed = 0
        self.history: List[dict] = []

    def _train_chunk(
        self, space: VectorSpace, cooc: CooccurrenceMatrix, chunk: Sequence
    ) -> Tuple[float, int]:
        """Worker task: update every (i, j) in chunk; returns (summed cost, entry count)."""
        cfg = self.config
        total = 0.0
        for i, j in chunk:
            total += update_entry(
                space,
                int(i),
                int(j),
                cooc.get(int(i), int(j)),
                learning_rate=cfg.learning_rate,
                max_count=cfg.max_count,
                alpha=cfg.alpha,
                gradient_clip=cfg.gradient_clip,
            )
        return total, len(chunk)

    def _run_phase(self, pool, space, cooc, entries: np.ndarray) -> float:
        """Split entries over the pool and block until every worker is done (the barrier)."""
        futures = [
            pool.submit(self._train_chunk, space, cooc, chunk)
            for chunk in partition(entries, self.config.threads)
            if len(chunk)
        ]
        # Wait for all workers before looking at failures so nothing writes after a rollback.
        wait(futures)
        return sum(f.result()[0] for f in futures)

    def run_epoch(self, pool, space: VectorSpace, cooc: CooccurrenceMatrix, entries: np.ndarray) -> float:
        """Shuffle, train one epoch and return the mean weighted squared cost.

        On a worker failure the vector space is restored to its state before the epoch and the
        exception propagates.
        """
        shuffled = entries[self.rng.permutation(len(entries))]
        snap = space.snapshot()
        try:
            if self.config.deterministic:
                total = 0.0
                for wave in schedule_waves(shuffled, space.vocab_size):
                    total += self._run_phase(pool, space, cooc, wave)
            else:
                total = self._run_phase(pool, space, cooc, shuffled)
        except Exception:
            space.restore(snap)
            raise
        return total / max(1, len(entries))

    def train(
        self,
        space: VectorSpace,
        cooc: CooccurrenceMatrix,
        entries: Optional[np.ndarray] = None,
    ) -> VectorSpace:
        """Train for config.epochs epochs, mutating space in place.

        Args:
            space: VectorSpace whose vocabulary size matches cooc.
            cooc: Co-occurrence matrix (read only).
            entries: (N, 2) nonzero coordinates; computed from cooc when None.

        Returns:
            The same VectorSpace.

        Raises:
            ValueError: If space and cooc disagree on vocabulary size.
        """
        if space.vocab_size != cooc.size:
            raise ValueError(
                f"Vector space has {space.vocab_size} rows, co-occurrence matrix has {cooc.size}"
            )
        if entries is None:
            entries = nonzero_entries(cooc)
        cfg = self.config
        self.state = RUNNING
        logger.debug("training options: %s", cfg.to_dict())
        logger.info(
            "training %i entries for %i epochs with %i threads (%s updates)",
            len(entries), cfg.epochs, cfg.threads,
            "deterministic" if cfg.deterministic else "lock-free",
        )
        with ThreadPoolExecutor(max_workers=cfg.threads) as pool:
            for epoch in range(1, cfg.epochs + 1):
                try:
                    loss = self.run_epoch(pool, space, cooc, entries)
                except Exception:
                    self.state = ABORTED
                    logger.error(
                        "epoch %i/%i failed; vectors restored to epoch %i",
                        epoch, cfg.epochs, epoch - 1,
                    )
                    raise
                self.epochs_completed += 1
                self.history.append({"epoch": epoch, "loss": loss})
                logger.info("epoch %i/%i loss %.6f", epoch, cfg.epochs, loss)
        self.state = DONE
        return space


def nonzero_entries(cooc: CooccurrenceMatrix) -> np.ndarray:
    """(N, 2) int64 array of the matrix's nonzero coordinates in row-major order."""
    coords = cooc.nonzero()
    if not coords:
        return np.empty((0, 2), dtype=np.int64)
    return np.asarray(coords, dtype=np.int64)


def train(space: VectorSpace, cooc: CooccurrenceMatrix, config: GloveConfig) -> VectorSpace:
    """Convenience wrapper: run a fresh Trainer over cooc."""
    return Trainer(config).train(space, cooc)
