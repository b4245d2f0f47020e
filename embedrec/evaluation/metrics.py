"""
Ranking metrics for holdout evaluation.

Recall@K: What fraction of a user's held-out entities appear in the top-K?
NDCG@K: How early do they appear?
"""

from typing import Dict, Iterable, List, Sequence, Set

import numpy as np

from embedrec.data.interactions import Interaction
from embedrec.storage import Id


def recall_at_k(ranked: Sequence[Id], relevant: Set[Id], k: int) -> float:
    """
    Fraction of relevant ids found in the first k of `ranked`.

    Returns 0.0 when there is nothing relevant.
    """
    if not relevant:
        return 0.0
    return len(set(ranked[:k]) & relevant) / len(relevant)


def ndcg_at_k(ranked: Sequence[Id], relevant: Set[Id], k: int) -> float:
    """Binary-relevance NDCG of the first k ids."""
    # positions are 1-indexed in NDCG, hence log2(i + 2)
    dcg = sum(1.0 / np.log2(i + 2) for i, id in enumerate(ranked[:k]) if id in relevant)
    idcg = sum(1.0 / np.log2(i + 2) for i in range(min(len(relevant), k)))
    return dcg / idcg if idcg > 0 else 0.0


def group_by_user(interactions: Iterable[Interaction]) -> Dict[Id, Set[Id]]:
    user_entities: Dict[Id, Set[Id]] = {}
    for interaction in interactions:
        user_entities.setdefault(interaction.user, set()).add(interaction.entity)
    return user_entities


async def evaluate_model(model, user_entities_test: Dict[Id, Set[Id]], k_values: List[int] = [10, 20]) -> dict:
    """
    Average Recall@K and NDCG@K over test users.

    Users the model has never seen rank nothing and score 0, which is how a
    cold-start user would be served.
    """
    results = {f"recall@{k}": [] for k in k_values}
    results.update({f"ndcg@{k}": [] for k in k_values})

    max_k = max(k_values)
    for user, relevant in user_entities_test.items():
        ranked = await model.get_entities(user, max_k)
        for k in k_values:
            results[f"recall@{k}"].append(recall_at_k(ranked, relevant, k))
            results[f"ndcg@{k}"].append(ndcg_at_k(ranked, relevant, k))

    return {metric: float(np.mean(scores)) if scores else 0.0 for metric, scores in results.items()}
