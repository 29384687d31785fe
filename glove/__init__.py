from glove.config import GloveConfig
from glove.cooccurrence import CooccurrenceMatrix, build_cooccurrence
from glove.corpus import Corpus, build_corpus
from glove.errors import DataIntegrityError, GloveError, InvalidConfigurationError, NotFittedError
from glove.model import Model
from glove.query import QueryEngine, cosine
from glove.train import Trainer
from glove.vectors import VectorSpace

# GloVe word embeddings in NumPy: co-occurrence build, parallel AdaGrad training, cosine queries.

__all__ = [
    "Model",
    "GloveConfig",
    "Corpus",
    "build_corpus",
    "CooccurrenceMatrix",
    "build_cooccurrence",
    "VectorSpace",
    "Trainer",
    "QueryEngine",
    "cosine",
    "GloveError",
    "InvalidConfigurationError",
    "DataIntegrityError",
    "NotFittedError",
]
