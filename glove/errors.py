# Exceptions raised by the glove package. Unknown tokens are not errors: queries return empty results.


class GloveError(Exception):
    """Base class for all glove errors."""


class InvalidConfigurationError(GloveError, ValueError):
    """A configuration value is out of range (raised before anything is allocated)."""


class DataIntegrityError(GloveError):
    """Stored or in-memory arrays disagree on vocabulary size or dimensionality."""


class NotFittedError(GloveError, RuntimeError):
    """The model was used before fit() or load()."""
