"""
Incremental matrix-factorization recommender.

Users and entities get learned embeddings whose dot product approximates the
interaction rating. `fit` can be called repeatedly: new ids get fresh rows,
existing rows and optimizer state carry over.

Usage:
    model = Recommender(RecommenderConfig(epoch=3))
    await model.fit([{"user": "alice", "entity": "matrix_1999", "rating": 4.9}])
    await model.get_entities("alice", 10)
"""

import asyncio
import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

import torch

from embedrec.config import RecommenderConfig
from embedrec.data.interactions import InteractionLike, coerce_interactions
from embedrec.exceptions import CorruptModelError, FitInProgressError, NotInitializedError
from embedrec.models.embeddings import EmbeddingStore
from embedrec.models.scoring import score_and_rank
from embedrec.models.serialization import (
    MODEL_FORMAT_VERSION,
    SerializedModel,
    check_version,
    parse_document,
    read_document,
    write_document,
)
from embedrec.storage import Id, IdentityIndex, InMemoryIdentityIndex
from embedrec.training.loop import register_interactions, resize_embeddings, run_epochs

logger = logging.getLogger(__name__)


class Recommender:
    """Collaborative filtering with dot-product scoring over growable embeddings."""

    def __init__(self, config: Optional[RecommenderConfig] = None, storage: Optional[IdentityIndex] = None):
        self.config = config if config is not None else RecommenderConfig()
        self.storage = storage if storage is not None else InMemoryIdentityIndex()
        self.embeddings = EmbeddingStore(self.config.embedding_size, self.config.batch_size)
        self.optimizer: Optional[torch.optim.Optimizer] = None
        self._fit_lock = asyncio.Lock()

    @property
    def initialized(self) -> bool:
        return self.embeddings.initialized

    @property
    def user_embeddings(self) -> Optional[torch.Tensor]:
        return self.embeddings.users.weight

    @property
    def entity_embeddings(self) -> Optional[torch.Tensor]:
        return self.embeddings.entities.weight

    def _ensure_optimizer(self) -> torch.optim.Optimizer:
        # Created once per instance; moment state lives as long as the model
        if self.optimizer is None:
            self.optimizer = torch.optim.Adam(self.embeddings.parameters(), lr=self.config.learning_rate)
        return self.optimizer

    async def fit(self, data: Iterable[InteractionLike] = ()) -> List[float]:
        """
        Train on interactions, extending what the model already knows.

        Args:
            data: Interaction objects or {"user", "entity", "rating"} mappings.
                  A missing rating counts as 1.0.

        Returns:
            Mean loss of each epoch ([] when there was nothing to train on)
        """
        if self._fit_lock.locked():
            raise FitInProgressError("fit() is already running on this model")

        async with self._fit_lock:
            interactions = coerce_interactions(data)
            if not interactions:
                return []

            await register_interactions(self.storage, interactions, self.config.batch_size)

            if not self.initialized:
                num_users = len(await self.storage.get_all_users())
                num_entities = len(await self.storage.get_all_entities())
                await self.embeddings.initialize(num_users, num_entities)
                logger.info(f"Initialized embeddings: {num_users} users, {num_entities} entities")
            else:
                await resize_embeddings(self.embeddings, self.storage, self.optimizer)

            optimizer = self._ensure_optimizer()
            return await run_epochs(
                self.embeddings,
                self.storage,
                interactions,
                optimizer,
                self.config.epoch,
                self.config.batch_size,
            )

    async def get_entities(self, user: Id, count: int = 10) -> List[Id]:
        """Top entities for a user, best first. Unknown users get []."""
        user_idx = await self.storage.get_user_index(user)
        # Rows may lag the index while a suspended fit() is between phases
        if user_idx is None or not self.initialized or user_idx >= self.embeddings.users.num_rows:
            return []

        user_vec = self.embeddings.users.read_row(user_idx)
        entity_ids = await self.storage.get_all_entities()
        return score_and_rank(user_vec, self.embeddings.entities.weight, entity_ids, count)

    async def get_users(self, entity: Id, count: int = 10) -> List[Id]:
        """Users most likely to interact with an entity, best first. Unknown entities get []."""
        entity_idx = await self.storage.get_entity_index(entity)
        if entity_idx is None or not self.initialized or entity_idx >= self.embeddings.entities.num_rows:
            return []

        entity_vec = self.embeddings.entities.read_row(entity_idx)
        user_ids = await self.storage.get_all_users()
        return score_and_rank(entity_vec, self.embeddings.users.weight, user_ids, count)

    async def export(self) -> SerializedModel:
        if not self.initialized:
            raise NotInitializedError("Model must be initialized before export. Call fit() first.")
        # The index runs ahead of the matrices until a fit finishes sizing
        if self._fit_lock.locked():
            raise FitInProgressError("Cannot export while fit() is running; await it first")

        snapshot = await self.storage.export_data()
        return SerializedModel(
            version=MODEL_FORMAT_VERSION,
            config=self.config.to_wire(),
            userEmbeddings=self.embeddings.users.to_list(),
            entityEmbeddings=self.embeddings.entities.to_list(),
            userMap=snapshot["userMap"],
            entityMap=snapshot["entityMap"],
            reverseUserMap=snapshot["reverseUserMap"],
            reverseEntityMap=snapshot["reverseEntityMap"],
            initialized=True,
        )

    async def save(self, file_path: Union[str, Path]) -> Path:
        document = await self.export()
        return await asyncio.to_thread(write_document, file_path, document)

    @classmethod
    async def from_document(
        cls,
        document: Union[SerializedModel, dict, str],
        storage: Optional[IdentityIndex] = None,
    ) -> "Recommender":
        """Rebuild a model from an exported document. No training happens."""
        document = parse_document(document)
        check_version(document)
        document.check_shapes()

        try:
            config = RecommenderConfig.from_wire(document.config.model_dump(by_alias=True))
            model = cls(config, storage)
            await model.storage.import_data({
                "userMap": document.user_map,
                "entityMap": document.entity_map,
                "reverseUserMap": document.reverse_user_map,
                "reverseEntityMap": document.reverse_entity_map,
            })
        except (TypeError, ValueError) as e:
            raise CorruptModelError(f"Invalid model document: {e}") from e

        if document.initialized:
            model.embeddings.users.load(cls._to_matrix(document.user_embeddings, config.embedding_size))
            model.embeddings.entities.load(cls._to_matrix(document.entity_embeddings, config.embedding_size))
        return model

    @classmethod
    async def from_path(cls, file_path: Union[str, Path], storage: Optional[IdentityIndex] = None) -> "Recommender":
        document = await asyncio.to_thread(read_document, file_path)
        return await cls.from_document(document, storage)

    @staticmethod
    def _to_matrix(rows: List[List[float]], width: int) -> torch.Tensor:
        if not rows:
            return torch.zeros((0, width))
        return torch.tensor(rows, dtype=torch.float32)
