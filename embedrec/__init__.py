"""
Incremental collaborative filtering with growable embeddings.
"""

from embedrec.config import RecommenderConfig
from embedrec.data.interactions import Interaction
from embedrec.exceptions import (
    CorruptModelError,
    FitInProgressError,
    ModelNotFoundError,
    NotInitializedError,
    RecommenderError,
)
from embedrec.models.recommender import Recommender
from embedrec.storage import IdentityIndex, InMemoryIdentityIndex

__version__ = "1.0.0"

__all__ = [
    "CorruptModelError",
    "FitInProgressError",
    "IdentityIndex",
    "InMemoryIdentityIndex",
    "Interaction",
    "ModelNotFoundError",
    "NotInitializedError",
    "Recommender",
    "RecommenderConfig",
    "RecommenderError",
]
