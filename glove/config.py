from dataclasses import asdict, dataclass
from typing import Optional

from glove.errors import InvalidConfigurationError

# Model configuration. Defaults follow the reference GloVe trainer; corpus options are forwarded to
# glove.corpus.build_corpus.


@dataclass
class GloveConfig:
    """Training and corpus options for a GloVe model.

    Attributes:
        max_count (float): Cutoff in the weighting function; pairs at or above it get weight 1.
        learning_rate (float): Initial AdaGrad learning rate.
        alpha (float): Exponent of the weighting function, in (0, 1).
        num_components (int): Embedding dimension D.
        epochs (int): Number of passes over the nonzero co-occurrence entries.
        threads (int): Worker threads for the co-occurrence build and training. Must be > 0.
        window (int): Symmetric context window used when extracting token pairs.
        min_count (int): Minimum occurrences for a token to enter the vocabulary.
        stem (bool): Whether tokens are Porter-stemmed.
        gradient_clip (float): Magnitude bound applied to every gradient component.
        deterministic (bool): Schedule updates so no two concurrent updates share a row.
        seed (Optional[int]): Seed for vector initialization and per-epoch shuffling.
    """

    max_count: float = 100
    learning_rate: float = 0.05
    alpha: float = 0.75
    num_components: int = 30
    epochs: int = 5
    threads: int = 4
    window: int = 2
    min_count: int = 1
    stem: bool = True
    gradient_clip: float = 100.0
    deterministic: bool = False
    seed: Optional[int] = None

    def __post_init__(self):
        checks = [
            ("threads", self.threads > 0),
            ("num_components", self.num_components > 0),
            ("epochs", self.epochs >= 0),
            ("learning_rate", self.learning_rate > 0),
            ("max_count", self.max_count > 0),
            ("alpha", 0 < self.alpha < 1),
            ("window", self.window > 0),
            ("min_count", self.min_count >= 1),
            ("gradient_clip", self.gradient_clip > 0),
        ]
        for name, ok in checks:
            if not ok:
                raise InvalidConfigurationError(f"Invalid {name}: {getattr(self, name)!r}")

    def to_dict(self) -> dict:
        """Plain dict of all options (for logging)."""
        return asdict(self)
