"""
Incremental training loop.

A fit call runs three phases: register new ids, size the embedding tables to
the index, then optimize for the configured number of epochs. Updates are
applied one interaction at a time so every step sees the rows left by the
previous one.
"""

import asyncio
import logging
from typing import List, Sequence

import torch
import torch.nn as nn
import torch.nn.functional as F

from embedrec.data.interactions import Interaction
from embedrec.models.embeddings import EmbeddingStore
from embedrec.storage import IdentityIndex

logger = logging.getLogger(__name__)

# Yield to the event loop after this many processed chunks
REGISTRATION_YIELD_EVERY = 10
TRAINING_YIELD_EVERY = 5


def _chunks(data: Sequence, size: int):
    for start in range(0, len(data), size):
        yield data[start:start + size]


async def register_interactions(
    index: IdentityIndex,
    interactions: Sequence[Interaction],
    batch_size: int,
) -> None:
    """Make sure every user and entity in `interactions` has a slot."""
    for chunk_no, chunk in enumerate(_chunks(interactions, batch_size), start=1):
        for interaction in chunk:
            await index.get_or_create_user_index(interaction.user)
            await index.get_or_create_entity_index(interaction.entity)

        if chunk_no % REGISTRATION_YIELD_EVERY == 0:
            await asyncio.sleep(0)


def replace_parameter(optimizer: torch.optim.Optimizer, old: nn.Parameter, new: nn.Parameter) -> None:
    """
    Point `optimizer` at `new` instead of `old`, keeping its state.

    Per-row moment buffers are zero-padded for the rows `new` added; scalar
    state such as the step count is kept as is.
    """
    if old is new:
        return

    for group in optimizer.param_groups:
        group["params"] = [new if p is old else p for p in group["params"]]

    state = optimizer.state.pop(old, None)
    if not state:
        return

    extra_rows = new.shape[0] - old.shape[0]
    migrated = {}
    for key, value in state.items():
        if torch.is_tensor(value) and value.dim() > 0 and value.shape == old.shape:
            padding = value.new_zeros((extra_rows,) + tuple(value.shape[1:]))
            value = torch.cat([value, padding], dim=0)
        migrated[key] = value
    optimizer.state[new] = migrated


async def resize_embeddings(store: EmbeddingStore, index: IdentityIndex, optimizer=None) -> tuple:
    """
    Grow both tables to the index population.

    Returns (new_users, new_entities), the number of rows appended.
    """
    user_count = len(await index.get_all_users())
    entity_count = len(await index.get_all_entities())

    grown = []
    for table, count in ((store.users, user_count), (store.entities, entity_count)):
        new_rows = max(0, count - table.num_rows)
        if new_rows:
            old, new = await table.grow(new_rows)
            if optimizer is not None:
                replace_parameter(optimizer, old, new)
        grown.append(new_rows)

    if any(grown):
        logger.info(f"Grew embeddings by {grown[0]} users, {grown[1]} entities")
    return tuple(grown)


async def train_epoch(
    store: EmbeddingStore,
    index: IdentityIndex,
    interactions: Sequence[Interaction],
    optimizer: torch.optim.Optimizer,
    batch_size: int,
) -> float:
    """Train for one epoch, return average loss over the applied updates."""
    total_loss = 0.0
    steps = 0

    for chunk_no, chunk in enumerate(_chunks(interactions, batch_size), start=1):
        for interaction in chunk:
            user_idx = await index.get_user_index(interaction.user)
            entity_idx = await index.get_entity_index(interaction.entity)
            if user_idx is None or entity_idx is None:
                continue

            optimizer.zero_grad()
            pred = store.score(user_idx, entity_idx)
            target = torch.tensor(interaction.target, dtype=pred.dtype)
            loss = F.mse_loss(pred, target)
            loss.backward()
            optimizer.step()

            total_loss += loss.item()
            steps += 1

        if chunk_no % TRAINING_YIELD_EVERY == 0:
            await asyncio.sleep(0)

    return total_loss / steps if steps else 0.0


async def run_epochs(
    store: EmbeddingStore,
    index: IdentityIndex,
    interactions: Sequence[Interaction],
    optimizer: torch.optim.Optimizer,
    epochs: int,
    batch_size: int,
) -> List[float]:
    losses = []
    for epoch in range(epochs):
        loss = await train_epoch(store, index, interactions, optimizer, batch_size)
        losses.append(loss)
        logger.info(f"Epoch {epoch+1}/{epochs} - Loss: {loss:.4f}")
    return losses
