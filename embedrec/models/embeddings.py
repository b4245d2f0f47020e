"""
Growable user/entity embedding matrices.

    user_slot   -> user row   -> \
                                  dot product -> score
    entity_slot -> entity row -> /

Each matrix is a single float32 `nn.Parameter`, one row per slot. Growing
builds a new parameter (old rows copied, new rows drawn from N(0, 1)) and
swaps it in, so readers never see a half-built matrix.
"""

import asyncio
from typing import Optional, Tuple

import torch
import torch.nn as nn

from embedrec.exceptions import NotInitializedError

# Yield to the event loop after this many random chunks
INIT_YIELD_EVERY = 10


async def random_rows(num_rows: int, embedding_dim: int, chunk_size: int) -> torch.Tensor:
    """
    Draw a (num_rows, embedding_dim) standard normal matrix chunk by chunk.

    Chunks of `chunk_size` rows are concatenated at the end, which keeps each
    allocation small and lets other tasks run between chunks.
    """
    if num_rows == 0:
        return torch.zeros((0, embedding_dim))

    chunk_size = min(chunk_size, num_rows)
    chunks = []
    for start in range(0, num_rows, chunk_size):
        rows = min(chunk_size, num_rows - start)
        chunks.append(torch.randn(rows, embedding_dim))
        if len(chunks) % INIT_YIELD_EVERY == 0:
            await asyncio.sleep(0)

    matrix = torch.cat(chunks, dim=0)
    del chunks
    return matrix


class EmbeddingTable:
    """One embedding matrix addressed by slot."""

    def __init__(self, embedding_dim: int, chunk_size: int):
        self.embedding_dim = embedding_dim
        self.chunk_size = chunk_size
        self.weight: Optional[nn.Parameter] = None

    @property
    def initialized(self) -> bool:
        return self.weight is not None

    @property
    def num_rows(self) -> int:
        return 0 if self.weight is None else self.weight.shape[0]

    async def initialize(self, num_rows: int) -> nn.Parameter:
        if self.initialized:
            raise RuntimeError("Embedding table is already initialized")
        self.weight = nn.Parameter(await random_rows(num_rows, self.embedding_dim, self.chunk_size))
        return self.weight

    async def grow(self, new_row_count: int) -> Tuple[nn.Parameter, nn.Parameter]:
        """
        Append `new_row_count` random rows.

        Returns (old, new) parameters; callers holding references to the old
        parameter (the optimizer) must switch to the new one.
        """
        if not self.initialized:
            raise NotInitializedError("Cannot grow an uninitialized embedding table")
        if new_row_count < 0:
            raise ValueError(f"new_row_count must be >= 0, got {new_row_count}")

        old = self.weight
        if new_row_count == 0:
            return old, old

        fresh = await random_rows(new_row_count, self.embedding_dim, self.chunk_size)
        with torch.no_grad():
            new = nn.Parameter(torch.cat([old.detach(), fresh], dim=0))
        self.weight = new
        return old, new

    def load(self, matrix: torch.Tensor) -> None:
        if matrix.dim() != 2 or matrix.shape[1] != self.embedding_dim:
            raise ValueError(
                f"Expected a (n, {self.embedding_dim}) matrix, got shape {tuple(matrix.shape)}"
            )
        self.weight = nn.Parameter(matrix.detach().to(torch.float32).clone())

    def _check_slot(self, slot: int) -> None:
        if not self.initialized:
            raise NotInitializedError("Embedding table is not initialized")
        if not 0 <= slot < self.num_rows:
            raise IndexError(f"Slot {slot} out of range for {self.num_rows} rows")

    def read_row(self, slot: int) -> torch.Tensor:
        self._check_slot(slot)
        return self.weight.detach()[slot].clone()

    def write_row(self, slot: int, vector) -> None:
        self._check_slot(slot)
        vector = torch.as_tensor(vector, dtype=torch.float32)
        if vector.shape != (self.embedding_dim,):
            raise ValueError(
                f"Row must have shape ({self.embedding_dim},), got {tuple(vector.shape)}"
            )
        with torch.no_grad():
            self.weight[slot] = vector

    def to_list(self) -> list:
        if not self.initialized:
            raise NotInitializedError("Embedding table is not initialized")
        return self.weight.detach().tolist()


class EmbeddingStore:
    """User and entity tables sharing one embedding width."""

    def __init__(self, embedding_dim: int = 16, chunk_size: int = 1000):
        self.embedding_dim = embedding_dim
        self.users = EmbeddingTable(embedding_dim, chunk_size)
        self.entities = EmbeddingTable(embedding_dim, chunk_size)

    @property
    def initialized(self) -> bool:
        return self.users.initialized and self.entities.initialized

    async def initialize(self, num_users: int, num_entities: int) -> None:
        await self.users.initialize(num_users)
        await self.entities.initialize(num_entities)

    def parameters(self) -> list:
        return [self.users.weight, self.entities.weight]

    def score(self, user_slot: int, entity_slot: int) -> torch.Tensor:
        """Differentiable dot product of one user row and one entity row."""
        user_emb = self.users.weight[user_slot]  # (dim,)
        entity_emb = self.entities.weight[entity_slot]  # (dim,)
        return (user_emb * entity_emb).sum()
