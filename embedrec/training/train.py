"""
Training script for the incremental recommender.

Trains from scratch, or continues from a saved model with --resume so the new
interactions extend what the model already knows.

Usage:
    python -m embedrec.training.train --input data/ratings.jsonl --epochs 10
    python -m embedrec.training.train --input data/new.csv --resume outputs/model.json
"""

import argparse
import asyncio
import logging
import time
from pathlib import Path

import mlflow

from embedrec.config import config_from_file
from embedrec.data.interactions import load_interactions
from embedrec.models.recommender import Recommender

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Train the embedding recommender")
    parser.add_argument("--input", type=str, required=True, help="Interactions file (JSONL, CSV or CSV.GZ)")
    parser.add_argument("--config", type=str, default=None, help="YAML file with a `model` section")
    parser.add_argument("--resume", type=str, default=None, help="Saved model to continue training")
    parser.add_argument("--epochs", type=int, default=None, help="Number of epochs")
    parser.add_argument("--batch-size", type=int, default=None, help="Batch size")
    parser.add_argument("--lr", type=float, default=None, help="Learning rate")
    parser.add_argument("--embedding-dim", type=int, default=None, help="Embedding dimension")
    parser.add_argument("--output", type=str, default="outputs/model.json", help="Where to save the model")
    parser.add_argument("--no-mlflow", action="store_true", help="Disable MLflow tracking")
    return parser.parse_args(argv)


async def train(args: argparse.Namespace) -> Recommender:
    interactions = load_interactions(args.input)

    if args.resume:
        model = await Recommender.from_path(args.resume)
        logger.info(f"Resuming from {args.resume}")
    else:
        config = config_from_file(
            args.config,
            epoch=args.epochs,
            embedding_size=args.embedding_dim,
            learning_rate=args.lr,
            batch_size=args.batch_size,
        )
        model = Recommender(config)

    config = model.config
    logger.info(
        f"Config: epochs={config.epoch}, embedding_size={config.embedding_size}, "
        f"lr={config.learning_rate}, batch_size={config.batch_size}"
    )

    start_time = time.time()
    losses = await model.fit(interactions)
    total_time = time.time() - start_time
    throughput = len(interactions) * config.epoch / total_time if total_time > 0 else 0.0

    num_users = len(await model.storage.get_all_users())
    num_entities = len(await model.storage.get_all_entities())
    logger.info(f"Training complete in {total_time:.2f}s ({throughput:.0f} samples/sec)")
    logger.info(f"Model: {num_users} users, {num_entities} entities")

    output_path = await model.save(args.output)

    if not args.no_mlflow:
        log_run(args, model, losses, total_time, throughput, num_users, num_entities, output_path)

    return model


def log_run(args, model, losses, total_time, throughput, num_users, num_entities, output_path: Path) -> None:
    config = model.config
    mlflow.set_experiment("embedrec-training")
    with mlflow.start_run():
        mlflow.log_params({
            "num_users": num_users,
            "num_entities": num_entities,
            "embedding_size": config.embedding_size,
            "batch_size": config.batch_size,
            "lr": config.learning_rate,
            "epochs": config.epoch,
            "resumed": bool(args.resume),
        })
        for epoch, loss in enumerate(losses):
            mlflow.log_metrics({"train_loss": loss}, step=epoch)
        mlflow.log_metrics({
            "total_time": total_time,
            "throughput_samples_per_sec": throughput,
        })
        mlflow.log_artifact(str(output_path))


def main(argv=None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s"
    )
    asyncio.run(train(parse_args(argv)))


if __name__ == "__main__":
    main()
