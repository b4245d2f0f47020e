"""
FastAPI inference service for recommendations.

Serves top-K entities for a user, top-K users for an entity, and accepts new
interactions which are trained into the running model incrementally.

Usage:
    EMBEDREC_MODEL_PATH=outputs/model.json uvicorn embedrec.serving.app:app --host 0.0.0.0 --port 8000
"""

import logging
import os
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from embedrec.exceptions import FitInProgressError, ModelNotFoundError
from embedrec.models.recommender import Recommender
from embedrec.models.serialization import WireId

logger = logging.getLogger(__name__)

# Config
MODEL_PATH = os.environ.get("EMBEDREC_MODEL_PATH", "outputs/model.json")

app = FastAPI(
    title="Recommendation API",
    description="Incremental embedding recommender",
    version="1.0.0",
)

# Global model (loaded once at startup)
model: Optional[Recommender] = None


class RecommendRequest(BaseModel):
    user_id: WireId
    top_k: int = Field(10, ge=1)


class RecommendResponse(BaseModel):
    user_id: WireId
    recommendations: List[WireId]


class AudienceRequest(BaseModel):
    entity_id: WireId
    top_k: int = Field(10, ge=1)


class AudienceResponse(BaseModel):
    entity_id: WireId
    users: List[WireId]


class InteractionIn(BaseModel):
    user: WireId
    entity: WireId
    rating: Optional[float] = None


class FitRequest(BaseModel):
    interactions: List[InteractionIn]


class FitResponse(BaseModel):
    trained: int
    epoch_losses: List[float]
    num_users: int
    num_entities: int


@app.on_event("startup")
async def load_model():
    """Load the saved model, or start empty if there is none yet."""
    global model

    try:
        model = await Recommender.from_path(MODEL_PATH)
    except ModelNotFoundError:
        logger.warning(f"No model at {MODEL_PATH}, starting with an empty model")
        model = Recommender()


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    if model is None:
        return {"status": "healthy", "model_loaded": False, "num_users": 0, "num_entities": 0}
    return {
        "status": "healthy",
        "model_loaded": model.initialized,
        "num_users": len(await model.storage.get_all_users()),
        "num_entities": len(await model.storage.get_all_entities()),
    }


@app.post("/recommend", response_model=RecommendResponse)
async def recommend(request: RecommendRequest):
    """Get top-K entities for a user."""
    if model is None or await model.storage.get_user_index(request.user_id) is None:
        raise HTTPException(status_code=404, detail=f"User '{request.user_id}' not found")

    recommendations = await model.get_entities(request.user_id, request.top_k)
    return RecommendResponse(user_id=request.user_id, recommendations=recommendations)


@app.post("/audience", response_model=AudienceResponse)
async def audience(request: AudienceRequest):
    """Get the top-K users most likely to interact with an entity."""
    if model is None or await model.storage.get_entity_index(request.entity_id) is None:
        raise HTTPException(status_code=404, detail=f"Entity '{request.entity_id}' not found")

    users = await model.get_users(request.entity_id, request.top_k)
    return AudienceResponse(entity_id=request.entity_id, users=users)


@app.post("/interactions", response_model=FitResponse)
async def add_interactions(request: FitRequest):
    """Train new interactions into the running model."""
    if model is None:
        raise HTTPException(status_code=503, detail="Model not loaded")

    try:
        losses = await model.fit([i.model_dump() for i in request.interactions])
    except FitInProgressError as e:
        raise HTTPException(status_code=409, detail=str(e))

    return FitResponse(
        trained=len(request.interactions),
        epoch_losses=losses,
        num_users=len(await model.storage.get_all_users()),
        num_entities=len(await model.storage.get_all_entities()),
    )
