"""Viewer comment route: one comment in, one persona reply out."""

from fastapi import APIRouter, Depends, HTTPException

from schemas import CommentRequest, CommentResponse
from llm_service import TextGenerationError
from pipeline import CommentPipeline
from deps import get_pipeline

router = APIRouter(prefix="/api", tags=["comments"])


@router.post("/comments", response_model=CommentResponse)
async def handle_comment(
    comment_data: CommentRequest,
    pipeline: CommentPipeline = Depends(get_pipeline),
):
    try:
        return await pipeline.run(comment_data)
    except TextGenerationError as exc:
        raise HTTPException(
            status_code=502,
            detail={"stage": exc.stage, "error": exc.detail or "text generation unavailable"},
        )
