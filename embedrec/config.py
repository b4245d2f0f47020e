"""
Model configuration.

Training hyper-parameters are fixed at construction. The wire form (camelCase
keys) is what gets written into saved models.
"""

import math
from dataclasses import dataclass, fields
from pathlib import Path

import yaml

WIRE_KEYS = {
    "epoch": "epoch",
    "embedding_size": "embeddingSize",
    "learning_rate": "learningRate",
    "batch_size": "batchSize",
}


@dataclass(frozen=True)
class RecommenderConfig:
    """Hyper-parameters of a recommender instance."""

    epoch: int = 5
    embedding_size: int = 16
    learning_rate: float = 0.05
    batch_size: int = 1000

    def __post_init__(self):
        for name in ("epoch", "embedding_size", "batch_size"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be an integer, got {value!r}")
        if self.epoch < 0:
            raise ValueError(f"epoch must be >= 0, got {self.epoch}")
        if self.embedding_size < 1:
            raise ValueError(f"embedding_size must be >= 1, got {self.embedding_size}")
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {self.batch_size}")
        if not (math.isfinite(self.learning_rate) and self.learning_rate > 0):
            raise ValueError(f"learning_rate must be finite and > 0, got {self.learning_rate}")

    def to_wire(self) -> dict:
        return {WIRE_KEYS[f.name]: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_wire(cls, data: dict) -> "RecommenderConfig":
        kwargs = {name: data[key] for name, key in WIRE_KEYS.items() if key in data}
        return cls(**kwargs)


def load_config(config_path: str) -> dict:
    """Load a YAML config file. Returns {} for an empty file."""
    with open(config_path) as f:
        return yaml.safe_load(f) or {}


def config_from_file(config_path: str, **overrides) -> RecommenderConfig:
    """
    Build a config from the `model` section of a YAML file.

    Keys may be given in snake_case or camelCase. Overrides that are None
    are ignored, so argparse defaults of None fall through to the file.
    """
    raw = load_config(config_path).get("model", {}) if config_path else {}
    reverse = {wire: name for name, wire in WIRE_KEYS.items()}
    values = {reverse.get(key, key): value for key, value in raw.items()}

    unknown = set(values) - set(WIRE_KEYS)
    if unknown:
        raise ValueError(f"Unknown model config keys in {Path(config_path).name}: {sorted(unknown)}")

    values.update({k: v for k, v in overrides.items() if v is not None})
    return RecommenderConfig(**values)
