"""
Errors raised by the recommender.
"""


class RecommenderError(Exception):
    """Base class for recommender errors."""


class NotInitializedError(RecommenderError):
    """Embeddings do not exist yet. Call fit() first."""


class ModelNotFoundError(RecommenderError, FileNotFoundError):
    """No saved model at the given path."""


class CorruptModelError(RecommenderError, ValueError):
    """Saved model could not be parsed or does not match its own config."""


class FitInProgressError(RecommenderError, RuntimeError):
    """fit() was called while another fit() on the same model is suspended."""
