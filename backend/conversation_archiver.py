"""Persist a finished turn and shape the public result."""

from schemas import CommentResponse, Segment, ViewerResolution
from session_store import SessionStore


def join_segments(segments: list[Segment]) -> str:
    return " ".join(s.text for s in segments)


def archive_turn(store: SessionStore, resolution: ViewerResolution, segments: list[Segment]) -> CommentResponse:
    full_reply = join_segments(segments)
    # Retention trim runs inside add_conversation on every insert.
    store.add_conversation(resolution.session_id, resolution.username, resolution.comment, full_reply)

    main_emotion = segments[0].emotion if segments and segments[0].emotion else "neutral"
    return CommentResponse(
        segments=segments,
        response=full_reply,
        emotion=main_emotion,
        username_reading=resolution.username_reading,
        is_first_time=resolution.is_first_time,
        should_respond=True,
    )
