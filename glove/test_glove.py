import itertools
import logging

import numpy as np
import pytest

from glove.config import GloveConfig
from glove.cooccurrence import CooccurrenceMatrix, build_cooccurrence, partition
from glove.corpus import Corpus, TokenCount, TokenPair, build_corpus
from glove.errors import DataIntegrityError, InvalidConfigurationError
from glove.query import QueryEngine, cosine
from glove.train import (
    ABORTED,
    DONE,
    NOT_STARTED,
    Trainer,
    nonzero_entries,
    schedule_waves,
    train,
    update_entry,
    weighting,
)
from glove.vectors import ACCUMULATOR_INIT, VectorSpace

# Unit tests: co-occurrence build, weighting, vector init, training discipline, queries.

DEMO_TEXT = (
    "the quick brown fox jumps over the lazy dog "
    "the dog and the fox are animals quick animals jump over lazy dogs "
    "brown foxes and lazy dogs the quick brown fox runs the lazy dog sleeps "
)


def test_abc_window_two_weights():
    corpus = build_corpus("a b c", window=2)
    cooc = build_cooccurrence(corpus.pairs, len(corpus), threads=2)
    a, b, c = (corpus.index[t].id for t in ("a", "b", "c"))
    assert cooc[a, b] == 1.0 and cooc[b, a] == 1.0
    assert cooc[b, c] == 1.0 and cooc[c, b] == 1.0
    assert cooc[a, c] == 0.5 and cooc[c, a] == 0.5
    assert cooc.nnz == 6
    for i in range(3):
        assert cooc[i, i] == 0.0


def test_cooccurrence_is_symmetric():
    rng = np.random.default_rng(0)
    V = 12
    pairs = [
        TokenPair(int(a), int(b), int(d))
        for a, b, d in zip(rng.integers(0, V, 500), rng.integers(0, V, 500), rng.integers(1, 5, 500))
    ]
    cooc = build_cooccurrence(pairs, V, threads=4)
    dense = cooc.to_dense()
    np.testing.assert_array_equal(dense, dense.T)
    assert cooc.is_symmetric()
    assert all(value > 0 for _, value in cooc.items())


def test_thread_count_does_not_change_weights():
    corpus = build_corpus(DEMO_TEXT, window=3)
    one = build_cooccurrence(corpus.pairs, len(corpus), threads=1).to_dense()
    four = build_cooccurrence(corpus.pairs, len(corpus), threads=4).to_dense()
    np.testing.assert_allclose(one, four, rtol=1e-12)


def test_out_of_vocabulary_id_fails_build():
    with pytest.raises(IndexError):
        build_cooccurrence([TokenPair(0, 1, 1), TokenPair(0, 5, 1)], 3, threads=2)
    with pytest.raises(IndexError):
        build_cooccurrence([TokenPair(-1, 1, 1)], 3, threads=1)


def test_zero_distance_fails_build():
    with pytest.raises(ValueError):
        build_cooccurrence([TokenPair(0, 1, 0)], 3, threads=1)


def test_matrix_dense_roundtrip_and_row():
    cooc = CooccurrenceMatrix(4)
    cooc.add(0, 2, 0.5)
    cooc.add(3, 3, 1.0)
    assert cooc[3, 3] == 2.0  # diagonal receives both halves
    again = CooccurrenceMatrix.from_dense(cooc.to_dense())
    assert again.nonzero() == cooc.nonzero() == [(0, 2), (2, 0), (3, 3)]
    np.testing.assert_array_equal(again.row(2), [0.5, 0.0, 0.0, 0.0])


def test_partition_is_contiguous_and_complete():
    items = list(range(10))
    chunks = partition(items, 3)
    assert len(chunks) == 3
    assert list(itertools.chain.from_iterable(chunks)) == items
    assert len(partition([1], 4)) == 4
    with pytest.raises(ValueError):
        partition(items, 0)


def test_weighting_function():
    assert weighting(1.0, 1, 0.75) == 1.0
    assert weighting(7.5, 1, 0.75) == 1.0
    assert weighting(100.0, 100, 0.75) == 1.0
    assert np.isclose(weighting(50.0, 100, 0.75), 0.5**0.75)
    assert weighting(10.0, 100, 0.75) < weighting(20.0, 100, 0.75)


def test_cosine():
    v = np.array([0.3, -1.2, 4.0])
    assert abs(cosine(v, v) - 1.0) < 1e-6
    assert np.isclose(cosine(v, -v), -1.0)
    assert cosine(None, v) == 0.0
    assert cosine(v, None) == 0.0
    assert cosine(np.zeros(3), v) == 0.0


def test_vector_space_initialize():
    space = VectorSpace.initialize(7, 5, seed=1)
    assert space.word_vec.shape == (7, 5)
    assert space.word_biases.shape == (7,)
    assert np.all(space.word_biases == 0)
    assert np.all(np.abs(space.word_vec) <= 0.5 / 5)
    assert np.all(space.grad_sq_vec == ACCUMULATOR_INIT) and ACCUMULATOR_INIT > 0
    assert np.all(space.grad_sq_biases == ACCUMULATOR_INIT)
    with pytest.raises(DataIntegrityError):
        VectorSpace(np.zeros((3, 2)), np.zeros(4))


def test_vector_space_row_is_a_view():
    space = VectorSpace.initialize(4, 3, seed=0)
    row = space.vector(2)
    np.testing.assert_array_equal(row, space.word_vec[2])
    row[:] = 7.0
    assert np.all(space.word_vec[2] == 7.0)


def test_invalid_configuration():
    for bad in ({"threads": 0}, {"threads": -2}, {"num_components": 0}, {"epochs": -1}):
        with pytest.raises(InvalidConfigurationError):
            GloveConfig(**bad)
    assert issubclass(InvalidConfigurationError, ValueError)


def test_alpha_must_lie_strictly_between_zero_and_one():
    for alpha in (0.0, 1.0, 1.5, -0.25):
        with pytest.raises(InvalidConfigurationError, match="alpha"):
            GloveConfig(alpha=alpha)
    assert GloveConfig(alpha=0.999).alpha == 0.999
    assert GloveConfig().to_dict()["alpha"] == 0.75


def _fitted(window=3):
    corpus = build_corpus(DEMO_TEXT, window=window)
    cooc = build_cooccurrence(corpus.pairs, len(corpus), threads=1)
    return corpus, cooc


def test_zero_epochs_leaves_vectors_untouched():
    _, cooc = _fitted()
    space = VectorSpace.initialize(cooc.size, 8, seed=5)
    before = space.snapshot()
    trainer = Trainer(GloveConfig(epochs=0, num_components=8))
    assert trainer.state == NOT_STARTED
    trainer.train(space, cooc)
    assert trainer.state == DONE and trainer.epochs_completed == 0
    np.testing.assert_array_equal(space.word_vec, before.word_vec)
    np.testing.assert_array_equal(space.word_biases, before.word_biases)


def test_single_thread_runs_are_reproducible():
    _, cooc = _fitted()
    results = []
    for _ in range(2):
        space = VectorSpace.initialize(cooc.size, 8, seed=11)
        Trainer(GloveConfig(epochs=4, threads=1, num_components=8, seed=11)).train(space, cooc)
        results.append(space)
    np.testing.assert_array_equal(results[0].word_vec, results[1].word_vec)
    np.testing.assert_array_equal(results[0].word_biases, results[1].word_biases)


def test_deterministic_mode_matches_sequential_pass():
    _, cooc = _fitted()
    sequential = VectorSpace.initialize(cooc.size, 8, seed=2)
    Trainer(GloveConfig(epochs=3, threads=1, num_components=8, seed=2)).train(sequential, cooc)
    parallel = VectorSpace.initialize(cooc.size, 8, seed=2)
    Trainer(
        GloveConfig(epochs=3, threads=4, num_components=8, seed=2, deterministic=True)
    ).train(parallel, cooc)
    np.testing.assert_array_equal(sequential.word_vec, parallel.word_vec)
    np.testing.assert_array_equal(sequential.word_biases, parallel.word_biases)


def test_schedule_waves_are_conflict_free():
    _, cooc = _fitted()
    entries = nonzero_entries(cooc)
    entries = entries[np.random.default_rng(0).permutation(len(entries))]
    waves = schedule_waves(entries, cooc.size)
    assert sum(len(w) for w in waves) == len(entries)
    position = {}
    for k, wave in enumerate(waves):
        rows = set()
        for i, j in wave.tolist():
            touched = {i, j}
            assert not rows & touched
            rows |= touched
            position[(i, j)] = k
    # entries sharing a row keep their order
    last = {}
    for i, j in entries.tolist():
        for r in {i, j}:
            if r in last:
                assert position[last[r]] < position[(i, j)]
            last[r] = (i, j)
    assert schedule_waves(np.empty((0, 2), dtype=np.int64), 3) == []


def test_training_lowers_objective():
    _, cooc = _fitted()
    space = VectorSpace.initialize(cooc.size, 10, seed=4)
    trainer = Trainer(GloveConfig(epochs=30, threads=2, num_components=10, seed=4))
    trainer.train(space, cooc)
    losses = [h["loss"] for h in trainer.history]
    assert len(losses) == 30
    assert losses[-1] < losses[0]
    assert np.all(np.isfinite(space.word_vec))


def test_update_entry_matches_hand_computation():
    w = np.array([[0.1, 0.2], [0.3, -0.1]])
    b = np.array([0.05, -0.02])
    space = VectorSpace(w.copy(), b.copy())
    lr, x = 0.1, 2.0

    cost = update_entry(space, 0, 1, x, learning_rate=lr, max_count=4, alpha=0.5, gradient_clip=100.0)

    # f(2) = (2/4)^0.5; prediction = 0.03 - 0.02 + 0.05 - 0.02 = 0.04
    fx = 0.5**0.5
    diff = 0.04 - np.log(2.0)
    assert np.isclose(cost, fx * diff * diff)
    g0 = fx * diff * w[1]
    g1 = fx * diff * w[0]
    gb = fx * diff
    acc0 = ACCUMULATOR_INIT + g0**2
    acc1 = ACCUMULATOR_INIT + g1**2
    acc_b = ACCUMULATOR_INIT + gb**2
    np.testing.assert_allclose(space.grad_sq_vec, [acc0, acc1])
    np.testing.assert_allclose(space.grad_sq_biases, [acc_b, acc_b])
    np.testing.assert_allclose(space.word_vec[0], w[0] - lr * g0 / np.sqrt(acc0))
    np.testing.assert_allclose(space.word_vec[1], w[1] - lr * g1 / np.sqrt(acc1))
    np.testing.assert_allclose(space.word_biases, b - lr * gb / np.sqrt(acc_b))


def test_update_entry_clips_each_gradient_component():
    w = np.array([[2.0, -3.0], [4.0, 1.0]])
    space = VectorSpace(w.copy(), np.zeros(2))
    update_entry(space, 0, 1, 1.0, learning_rate=0.1, max_count=100, alpha=0.75, gradient_clip=0.1)
    # cost = 8 - 3 - log 1 = 5, f(1) = 0.01^0.75: raw gradients exceed the clip
    fx = 0.01**0.75
    g0 = np.clip(fx * 5.0 * w[1], -0.1, 0.1)
    g1 = np.clip(fx * 5.0 * w[0], -0.1, 0.1)
    gb = min(fx * 5.0, 0.1)
    assert np.all(np.abs(fx * 5.0 * w) > 0.1) and fx * 5.0 > 0.1
    np.testing.assert_allclose(space.grad_sq_vec, [ACCUMULATOR_INIT + g0**2, ACCUMULATOR_INIT + g1**2])
    np.testing.assert_allclose(space.grad_sq_biases, ACCUMULATOR_INIT + gb**2)


def test_accumulators_keep_growing_across_epochs():
    _, cooc = _fitted()
    space = VectorSpace.initialize(cooc.size, 8, seed=3)
    trainer = Trainer(GloveConfig(epochs=1, threads=1, num_components=8, seed=3))
    trainer.train(space, cooc)
    after_one = space.snapshot()
    trainer.train(space, cooc)
    assert trainer.epochs_completed == 2
    assert np.all(after_one.grad_sq_vec > ACCUMULATOR_INIT)
    assert np.all(space.grad_sq_vec > after_one.grad_sq_vec)
    assert np.all(space.grad_sq_biases > after_one.grad_sq_biases)


def test_training_logs_its_options(caplog):
    _, cooc = _fitted()
    space = VectorSpace.initialize(cooc.size, 4, seed=0)
    with caplog.at_level(logging.DEBUG, logger="glove.train"):
        Trainer(GloveConfig(epochs=1, threads=1, num_components=4)).train(space, cooc)
    assert "'alpha': 0.75" in caplog.text
    assert "epoch 1/1 loss" in caplog.text


def test_gradient_clipping_keeps_updates_finite():
    cooc = CooccurrenceMatrix(2)
    cooc.add(0, 1, 1e-6)
    space = VectorSpace(np.full((2, 3), 1e6), np.zeros(2))
    Trainer(GloveConfig(epochs=2, threads=1, num_components=3, gradient_clip=100.0)).train(space, cooc)
    assert np.all(np.isfinite(space.word_vec))
    assert np.all(np.isfinite(space.word_biases))


def test_worker_failure_restores_previous_epoch(monkeypatch):
    import glove.train as train_module

    _, cooc = _fitted()
    space = VectorSpace.initialize(cooc.size, 8, seed=9)
    before = space.snapshot()
    calls = itertools.count()
    real_update = train_module.update_entry

    def flaky_update(*args, **kwargs):
        if next(calls) == 5:
            raise RuntimeError("worker died")
        return real_update(*args, **kwargs)

    monkeypatch.setattr(train_module, "update_entry", flaky_update)
    trainer = Trainer(GloveConfig(epochs=2, threads=2, num_components=8, seed=9))
    with pytest.raises(RuntimeError, match="worker died"):
        trainer.train(space, cooc)
    assert trainer.state == ABORTED
    assert trainer.epochs_completed == 0
    np.testing.assert_array_equal(space.word_vec, before.word_vec)
    np.testing.assert_array_equal(space.word_biases, before.word_biases)
    np.testing.assert_array_equal(space.grad_sq_vec, before.grad_sq_vec)


def test_train_function_updates_in_place():
    _, cooc = _fitted()
    space = VectorSpace.initialize(cooc.size, 8, seed=6)
    before = space.word_vec.copy()
    returned = train(space, cooc, GloveConfig(epochs=1, threads=2, num_components=8, seed=6))
    assert returned is space
    assert not np.array_equal(space.word_vec, before)
    assert np.all(space.grad_sq_biases > ACCUMULATOR_INIT)


def test_trainer_rejects_mismatched_sizes():
    with pytest.raises(ValueError):
        Trainer(GloveConfig()).train(VectorSpace.initialize(3, 2), CooccurrenceMatrix(4))


def _hand_engine(vectors):
    """QueryEngine over hand-made 2D vectors, no stemming."""
    names = list(vectors)
    index = {name: TokenCount(i, 1) for i, name in enumerate(names)}
    corpus = Corpus(index, [], stem=False)
    space = VectorSpace(np.array([vectors[n] for n in names], dtype=np.float64), np.zeros(len(names)))
    return QueryEngine(space, corpus)


def test_most_similar_orders_and_excludes_query():
    engine = _hand_engine(
        {"king": [1.0, 0.1], "queen": [0.9, 0.2], "apple": [-1.0, 0.3], "man": [0.5, 0.5]}
    )
    result = engine.most_similar("king", 3)
    assert [t for t, _ in result] == ["queen", "man", "apple"]
    assert all(result[k][1] >= result[k + 1][1] for k in range(len(result) - 1))
    assert "king" not in [t for t, _ in engine.most_similar("king", 10)]
    assert engine.most_similar("unknown") == []


def test_analogy_drops_candidates_close_to_baseline():
    vectors = {"w1": [1.0, 0.0], "w2": [1.0, 0.0], "t": [1.0, 0.0], "same": [2.0, 0.0], "ortho": [0.0, 1.0]}
    engine = _hand_engine(vectors)
    # baseline cosine(w1, w2) = 1: every candidate parallel to t is dropped
    assert engine.analogy_words("w1", "w2", "t", num=5) == [("ortho", 0.0)]


def test_analogy_uses_second_word():
    vectors = {"w1": [1.0, 0.0], "w2": [0.0, 1.0], "t": [1.0, 0.0], "same": [2.0, 0.0], "ortho": [0.0, 3.0]}
    engine = _hand_engine(vectors)
    # baseline cosine(w1, w2) = 0: the orthogonal candidates are dropped instead
    result = engine.analogy_words("w1", "w2", "t", num=5)
    assert [t for t, _ in result] == ["w1", "same"]
    assert engine.analogy_words("w1", "w2", "missing") == []


def test_negative_result_count_rejected():
    engine = _hand_engine({"a": [1.0, 0.0], "b": [0.8, 0.2], "c": [0.0, 1.0]})
    with pytest.raises(ValueError):
        engine.most_similar("a", -1)
    with pytest.raises(ValueError):
        engine.analogy_words("a", "b", "c", num=-1)
    assert engine.most_similar("a", 0) == []
    assert engine.analogy_words("a", "b", "c", num=0) == []


def test_normalized_lookup_skips_stemming():
    index = {"running": TokenCount(0, 2), "walking": TokenCount(1, 1), "jumping": TokenCount(2, 1)}
    corpus = Corpus(index, [], stem=True)
    space = VectorSpace(np.array([[1.0, 0.0], [0.7, 0.7], [0.0, 1.0]]), np.zeros(3))
    engine = QueryEngine(space, corpus)
    # "running" is stored as-is; stemming the query would look up "run"
    assert engine.most_similar("running") == []
    result = engine.most_similar("running", normalized=True)
    assert [t for t, _ in result] == ["walking", "jumping"]
    assert engine.analogy_words("running", "jumping", "running") == []
    analogy = engine.analogy_words("running", "jumping", "running", normalized=True)
    assert [t for t, _ in analogy] == ["walking"]


def test_build_corpus_index_and_pairs():
    corpus = build_corpus("Running runs run, the cat ran", window=2, min_count=1)
    assert corpus.index["run"].count == 3
    assert corpus.index["run"].id == 0
    assert corpus.tokens[0] == "run"
    assert corpus.normalize("RUNNING") == "run"
    assert TokenPair(0, 0, 1) in corpus.pairs and TokenPair(0, 0, 2) in corpus.pairs
    assert all(1 <= p.distance <= 2 for p in corpus.pairs)

    filtered = build_corpus("a b a c a b", min_count=2, stem=False)
    assert set(filtered.index) == {"a", "b"}
    with pytest.raises(ValueError):
        build_corpus("  ,,, ")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
