"""
Dot-product scoring and top-K ranking.
"""

from typing import List, Sequence

import numpy as np
import torch

from embedrec.storage import Id


def score_and_rank(
    query: torch.Tensor,
    candidates: torch.Tensor,
    candidate_ids: Sequence[Id],
    k: int,
) -> List[Id]:
    """
    Rank every candidate row by its dot product with `query`.

    Args:
        query: (dim,) query embedding
        candidates: (num_candidates, dim) embedding matrix
        candidate_ids: external id of each candidate row, index = slot
        k: Number of ids to return

    Returns:
        Up to k ids, best first. Equal scores keep slot order.
    """
    if k <= 0 or candidates.shape[0] == 0:
        return []

    with torch.no_grad():
        scores = (candidates @ query).cpu().numpy()  # (num_candidates,)

    # Stable sort so ties keep their original slot order
    ranked = np.argsort(-scores, kind="stable")[:k]
    return [candidate_ids[idx] for idx in ranked]
