from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from stylecheck.api.dependencies import get_pipeline, get_scoring_engine
from stylecheck.models.evaluation import PairEvaluation
from stylecheck.models.finalized import FinalizedMatches
from stylecheck.models.item import Item
from stylecheck.services.pipeline import MatchPipeline
from stylecheck.services.scoring import ScoringEngine

router = APIRouter(prefix="/matches", tags=["matches"])


class EvaluateRequest(BaseModel):
    target: Item
    candidates: list[Item] = Field(min_length=1, description="Wardrobe items to score against the target")


class FinalizeRequest(EvaluateRequest):
    user_id: str | None = Field(default=None, description="User or anonymous id used for rollout gating")
    request_id: str | None = Field(default=None, description="Slot id; a newer request with the same id wins")


@router.post("/evaluate", response_model=list[PairEvaluation])
async def evaluate_matches(
    payload: EvaluateRequest, engine: ScoringEngine = Depends(get_scoring_engine)
) -> list[PairEvaluation]:
    return engine.evaluate_candidates(payload.target, payload.candidates)


@router.post("/finalize", response_model=FinalizedMatches)
async def finalize_matches(
    payload: FinalizeRequest, pipeline: MatchPipeline = Depends(get_pipeline)
) -> FinalizedMatches:
    result = await pipeline.run(payload.target, payload.candidates, payload.user_id, payload.request_id)
    if result is None:
        raise HTTPException(status_code=409, detail="Superseded by a newer request for the same target.")
    return result
