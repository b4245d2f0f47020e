"""
Interaction records and loaders.

Supports JSONL and CSV input formats. Each record needs a user and an entity
column; a rating column is optional and missing ratings count as implicit
positive feedback (1.0).
"""

import json
import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Union

import pandas as pd

from embedrec.storage import Id, validate_id

logger = logging.getLogger(__name__)

IMPLICIT_RATING = 1.0


@dataclass(frozen=True)
class Interaction:
    """One observed (user, entity, rating) triple."""

    user: Id
    entity: Id
    rating: Optional[float] = None

    def __post_init__(self):
        validate_id(self.user)
        validate_id(self.entity)
        if self.rating is not None and not math.isfinite(self.rating):
            raise ValueError(f"rating must be finite, got {self.rating!r}")

    @property
    def target(self) -> float:
        return IMPLICIT_RATING if self.rating is None else float(self.rating)


InteractionLike = Union[Interaction, Mapping]


def coerce_interactions(data: Iterable[InteractionLike]) -> List[Interaction]:
    """Accept Interaction objects or mappings with user/entity/rating keys."""
    interactions = []
    for record in data:
        if isinstance(record, Interaction):
            interactions.append(record)
        elif isinstance(record, Mapping):
            rating = record.get("rating")
            interactions.append(
                Interaction(
                    user=record["user"],
                    entity=record["entity"],
                    rating=None if rating is None else float(rating),
                )
            )
        else:
            raise TypeError(f"Expected Interaction or mapping, got {type(record).__name__}")
    return interactions


# Amazon reviews carry both; parent_asin groups product variants
PREFERRED_COLUMNS = {"entity": "parent_asin"}


def _column_target(col_lower: str):
    if "user" in col_lower:
        return "user"
    if any(key in col_lower for key in ("entity", "item", "product", "asin", "movie")):
        return "entity"
    if "rating" in col_lower or "score" in col_lower:
        return "rating"
    return None


def _normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """
    Rename common column variants to user / entity / rating.

    An exact user / entity / rating column always wins. Otherwise a target
    must match exactly one column (or its preferred variant); several
    candidates raise ValueError instead of picking one silently.
    """
    candidates = {}
    for col in df.columns:
        target = _column_target(str(col).lower())
        if target is not None:
            candidates.setdefault(target, []).append(col)

    col_map = {}
    for target, cols in candidates.items():
        if target in df.columns:
            continue
        if len(cols) > 1:
            preferred = [c for c in cols if str(c).lower() == PREFERRED_COLUMNS.get(target)]
            if len(preferred) != 1:
                raise ValueError(f"Ambiguous {target} columns: {[str(c) for c in cols]}")
            cols = preferred
        col_map[cols[0]] = target
    df = df.rename(columns=col_map)

    missing = {"user", "entity"} - set(df.columns)
    if missing:
        raise ValueError(f"Interaction data is missing columns: {sorted(missing)}")
    return df


def _to_python(value):
    # numpy scalars -> int / str so ids round-trip through JSON unchanged
    if hasattr(value, "item"):
        value = value.item()
    return value


def frame_to_interactions(df: pd.DataFrame) -> List[Interaction]:
    df = _normalize_columns(df)
    has_rating = "rating" in df.columns

    interactions = []
    for row in df.itertuples(index=False):
        rating = row.rating if has_rating else None
        if rating is not None and pd.isna(rating):
            rating = None
        interactions.append(
            Interaction(
                user=_to_python(row.user),
                entity=_to_python(row.entity),
                rating=None if rating is None else float(rating),
            )
        )
    return interactions


def load_interactions(path: str) -> List[Interaction]:
    """Load interactions from JSONL, CSV, or CSV.GZ."""
    path = Path(path)
    logger.info(f"Loading interactions from {path}")

    suffixes = path.suffixes  # e.g. ['.csv', '.gz'] for file.csv.gz

    if path.suffix == ".jsonl":
        with open(path, "r", encoding="utf-8") as f:
            records = [json.loads(line) for line in f if line.strip()]
        df = pd.DataFrame.from_records(records)
    elif path.suffix == ".csv" or suffixes[-2:] == [".csv", ".gz"]:
        # Pandas auto-detects gzip from .gz extension
        df = pd.read_csv(path)
    else:
        raise ValueError(f"Unsupported file format: {path.suffix}. Use .jsonl, .csv, or .csv.gz")

    interactions = frame_to_interactions(df)
    logger.info(f"Loaded {len(interactions):,} interactions")
    return interactions
