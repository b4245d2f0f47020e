"""
Evaluate a saved model on held-out interactions.

Usage:
    python -m embedrec.evaluation.evaluate --model-path outputs/model.json --test-data data/test.jsonl
"""

import argparse
import asyncio
import json
import logging
from pathlib import Path

from embedrec.data.interactions import load_interactions
from embedrec.evaluation.metrics import evaluate_model, group_by_user
from embedrec.models.recommender import Recommender

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Evaluate a trained model")
    parser.add_argument("--model-path", type=str, required=True, help="Path to model.json")
    parser.add_argument("--test-data", type=str, required=True, help="Held-out interactions file")
    parser.add_argument("--k-values", type=str, default="10,20", help="Comma-separated K values")
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> dict:
    k_values = [int(k) for k in args.k_values.split(",")]

    model = await Recommender.from_path(args.model_path)
    logger.info(f"Loaded model from {args.model_path}")

    user_entities_test = group_by_user(load_interactions(args.test_data))
    logger.info(f"Test set: {len(user_entities_test)} users")

    results = await evaluate_model(model, user_entities_test, k_values)

    logger.info("Results:")
    for metric, score in results.items():
        logger.info(f"  {metric}: {score:.4f}")

    output_path = Path(args.model_path).parent / "eval_results.json"
    with open(output_path, "w") as f:
        json.dump(results, f, indent=2)
    logger.info(f"Saved results to {output_path}")
    return results


def main(argv=None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s"
    )
    asyncio.run(run(parse_args(argv)))


if __name__ == "__main__":
    main()
