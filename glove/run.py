import argparse
import logging

from glove.config import GloveConfig
from glove.corpus import build_corpus_from_file
from glove.model import Model

# Entry point: train GloVe on the demo corpus, a string or a file, then print neighbours and an
# analogy. Usage: python -m glove.run [--file path] [--save prefix | --load prefix]

DEMO_TEXT = """
the quick brown fox jumps over the lazy dog
the dog and the fox are animals
quick animals jump over lazy dogs
brown foxes and lazy dogs
the quick brown fox runs
the lazy dog sleeps
""".replace("\n", " ").strip()

ARTIFACTS = ("corpus.pkl", "cooc.bin", "vectors.bin", "biases.bin")


def setup_logging(verbose: bool = False) -> None:
    """Log to stderr with timestamps; DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def artifact_paths(prefix: str) -> list:
    return [f"{prefix}.{name}" for name in ARTIFACTS]


def main():
    """Train (or load) a model and print most similar words and an analogy."""
    ap = argparse.ArgumentParser()
    ap.add_argument("--text", type=str, default=None, help="Train on this string")
    ap.add_argument("--file", type=str, default=None, help="Train on file (one big text)")
    ap.add_argument("--epochs", type=int, default=50)
    ap.add_argument("--dim", type=int, default=30)
    ap.add_argument("--lr", type=float, default=0.05)
    ap.add_argument("--alpha", type=float, default=0.75)
    ap.add_argument("--max-count", type=float, default=100)
    ap.add_argument("--window", type=int, default=2)
    ap.add_argument("--min-count", type=int, default=1)
    ap.add_argument("--threads", type=int, default=4)
    ap.add_argument("--seed", type=int, default=42)
    ap.add_argument("--no-stem", action="store_true", help="Do not Porter-stem tokens")
    ap.add_argument(
        "--deterministic",
        action="store_true",
        help="Conflict-free update schedule (reproducible for a given seed)",
    )
    ap.add_argument("--save", type=str, default=None, help="Write the four artifacts to PREFIX.*")
    ap.add_argument("--load", type=str, default=None, help="Load artifacts from PREFIX.* instead of training")
    ap.add_argument("--query", type=str, nargs="*", default=None, help="Words to print neighbours for")
    ap.add_argument("--top", type=int, default=5)
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    setup_logging(args.verbose)
    config = GloveConfig(
        max_count=args.max_count,
        learning_rate=args.lr,
        alpha=args.alpha,
        num_components=args.dim,
        epochs=args.epochs,
        threads=args.threads,
        window=args.window,
        min_count=args.min_count,
        stem=not args.no_stem,
        deterministic=args.deterministic,
        seed=args.seed,
    )
    model = Model(config)

    if args.load:
        model.load(*artifact_paths(args.load))
    else:
        if args.file:
            corpus = build_corpus_from_file(
                args.file, window=config.window, min_count=config.min_count, stem=config.stem
            )
            model.fit(corpus)
        else:
            model.fit(args.text or DEMO_TEXT)
        model.train()
        if args.save:
            model.save(*artifact_paths(args.save))

    print(f"Vocab size {len(model.corpus)}, nonzero co-occurrences {model.cooc_matrix.nnz}")
    # Vocabulary tokens are already stemmed; only user-supplied words go through the stemmer.
    from_vocab = not args.query
    query_words = args.query or model.corpus.tokens[:3]
    for w in query_words:
        similar = model.most_similar(w, args.top, normalized=from_vocab)
        nn_str = ", ".join(f"{t}({s:.3f})" for t, s in similar)
        print(f"  '{w}' -> {nn_str or '(unknown)'}")
    if len(model.corpus) >= 3:
        a, b, c = model.corpus.tokens[:3]
        related = model.analogy_words(a, b, c, num=args.top, normalized=True)
        print(f"Analogy {a}:{b} :: {c} -> " + ", ".join(f"{t}({s:.3f})" for t, s in related))


if __name__ == "__main__":
    main()
