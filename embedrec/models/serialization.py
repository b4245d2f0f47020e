"""
Saved model document.

A model is persisted as one JSON document holding the config, both embedding
matrices (row = slot) and the identity index snapshot:

    {version, config, userEmbeddings, entityEmbeddings, userMap, entityMap,
     reverseUserMap, reverseEntityMap, initialized}
"""

import json
import logging
from pathlib import Path
from typing import List, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, StrictInt, StrictStr, ValidationError

from embedrec.exceptions import CorruptModelError, ModelNotFoundError

logger = logging.getLogger(__name__)

MODEL_FORMAT_VERSION = "1.0.0"

WireId = Union[StrictStr, StrictInt]


class ModelConfig(BaseModel):
    epoch: int
    embedding_size: int = Field(alias="embeddingSize")
    learning_rate: float = Field(alias="learningRate")
    batch_size: int = Field(alias="batchSize")

    model_config = ConfigDict(populate_by_name=True)


class SerializedModel(BaseModel):
    version: str
    config: ModelConfig
    user_embeddings: List[List[float]] = Field(alias="userEmbeddings")
    entity_embeddings: List[List[float]] = Field(alias="entityEmbeddings")
    user_map: List[Tuple[WireId, int]] = Field(alias="userMap")
    entity_map: List[Tuple[WireId, int]] = Field(alias="entityMap")
    reverse_user_map: List[WireId] = Field(alias="reverseUserMap")
    reverse_entity_map: List[WireId] = Field(alias="reverseEntityMap")
    initialized: bool

    model_config = ConfigDict(populate_by_name=True)

    def check_shapes(self) -> None:
        """Raise CorruptModelError if the matrices disagree with config or maps."""
        width = self.config.embedding_size
        for name, matrix, ids in (
            ("userEmbeddings", self.user_embeddings, self.reverse_user_map),
            ("entityEmbeddings", self.entity_embeddings, self.reverse_entity_map),
        ):
            if len(matrix) != len(ids):
                raise CorruptModelError(f"{name} has {len(matrix)} rows but {len(ids)} ids are mapped")
            bad = next((i for i, row in enumerate(matrix) if len(row) != width), None)
            if bad is not None:
                raise CorruptModelError(
                    f"{name} row {bad} has width {len(matrix[bad])}, expected embeddingSize={width}"
                )

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True))


def parse_document(document: Union[SerializedModel, dict, str]) -> SerializedModel:
    """Validate a document given as a model, a dict, or JSON text."""
    if isinstance(document, SerializedModel):
        return document
    try:
        if isinstance(document, (str, bytes)):
            return SerializedModel.model_validate_json(document)
        return SerializedModel.model_validate(document)
    except ValidationError as e:
        raise CorruptModelError(f"Invalid model document: {e}") from e


def check_version(document: SerializedModel) -> None:
    if document.version != MODEL_FORMAT_VERSION:
        logger.warning(
            f"Loading model with version {document.version}, expected {MODEL_FORMAT_VERSION}. "
            "Some features may not work correctly."
        )


def write_document(path: Union[str, Path], document: SerializedModel) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(document.to_json(), encoding="utf-8")
    logger.info(f"Model saved to {path}")
    return path


def read_document(path: Union[str, Path]) -> SerializedModel:
    path = Path(path)
    if not path.is_file():
        raise ModelNotFoundError(f"Model file not found: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise CorruptModelError(f"Model file is not UTF-8 text: {path}") from e
    document = parse_document(text)
    logger.info(f"Loaded model from {path}")
    return document
