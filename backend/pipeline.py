"""Per-comment pipeline: resolve viewer, filter, build context, generate, archive."""

import time
from enum import Enum

from comment_filter import should_respond
from context_builder import build_context
from conversation_archiver import archive_turn
from llm_service import LLMService, TextGenerationError
from reply_generator import generate_reply
from schemas import CommentRequest, CommentResponse, ViewerResolution
from session_store import SessionStore
from telemetry import append_pipeline_telemetry
from viewer_resolver import resolve_viewer


class PipelineStage(str, Enum):
    RESOLVING_VIEWER = "resolving_viewer"
    FILTERING = "filtering"
    REJECTED = "rejected"
    BUILDING_CONTEXT = "building_context"
    GENERATING = "generating"
    ARCHIVING = "archiving"
    DONE = "done"


def rejected_response(resolution: ViewerResolution) -> CommentResponse:
    return CommentResponse(
        segments=[],
        response="",
        emotion="neutral",
        username_reading=resolution.username_reading,
        is_first_time=resolution.is_first_time,
        should_respond=False,
    )


class CommentPipeline:
    """Runs one comment through every stage in order.

    The store and text-generation service are built once by the caller and
    shared by every run. Stages never retry; a ``TextGenerationError`` from
    viewer resolution or reply generation ends the turn before anything is
    archived.
    """

    def __init__(self, store: SessionStore, llm: LLMService):
        self.store = store
        self.llm = llm

    async def run(self, request: CommentRequest) -> CommentResponse:
        started = time.perf_counter()
        stage = PipelineStage.RESOLVING_VIEWER
        try:
            resolution = await resolve_viewer(
                self.store, self.llm, request.session_id, request.username, request.comment
            )

            stage = PipelineStage.FILTERING
            if not await should_respond(self.llm, resolution.comment, resolution.is_first_time):
                stage = PipelineStage.REJECTED
                append_pipeline_telemetry(
                    "turn_rejected",
                    {"stage": stage.value, "session_id": resolution.session_id, "username": resolution.username},
                )
                return rejected_response(resolution)

            stage = PipelineStage.BUILDING_CONTEXT
            context = build_context(self.store, resolution)

            stage = PipelineStage.GENERATING
            segments = await generate_reply(self.llm, context, resolution.is_first_time)

            stage = PipelineStage.ARCHIVING
            result = archive_turn(self.store, resolution, segments)
        except TextGenerationError as exc:
            append_pipeline_telemetry(
                "turn_failed",
                {"stage": stage.value, "session_id": request.session_id, "detail": exc.detail},
            )
            raise

        append_pipeline_telemetry(
            "turn_completed",
            {
                "session_id": resolution.session_id,
                "username": resolution.username,
                "first_time": resolution.is_first_time,
                "segments": len(result.segments),
                "latency_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        return result
