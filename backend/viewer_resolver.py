"""Viewer identity resolution, including reading inference for first-time viewers."""

from agent_configs import AgentType, get_agent_config
from llm_service import LLMService, TextGenerationError, ensure_generated
from schemas import ViewerResolution
from session_store import SessionStore
from telemetry import append_pipeline_telemetry

STAGE = "resolving_viewer"


async def infer_username_reading(llm: LLMService, username: str) -> str:
    """Ask the reading generator for the katakana reading of ``username``."""
    config = get_agent_config(AgentType.READING_GENERATOR)
    try:
        raw = await llm.generate(
            prompt=username,
            system_prompt=str(config["system_prompt"]),
            temperature=float(config["temperature"]),
            max_tokens=int(config["max_tokens"]),
        )
    except Exception as exc:
        raise TextGenerationError(STAGE, f"{type(exc).__name__}: {exc}") from exc
    reading = ensure_generated(raw, STAGE).strip()
    return reading or username


async def resolve_viewer(
    store: SessionStore,
    llm: LLMService,
    session_id: str,
    username: str,
    comment: str,
) -> ViewerResolution:
    session = store.get_or_create_session(session_id)

    existing = store.get_viewer(session.id, username)
    if existing:
        return ViewerResolution(
            session_id=session.id,
            username=username,
            username_reading=existing.username_reading,
            comment=comment,
            is_first_time=False,
            stream_title=session.stream_title,
        )

    reading = await infer_username_reading(llm, username)
    # A concurrent first comment may have stored a different reading already;
    # this turn keeps the locally inferred one.
    store.add_viewer(session.id, username, reading)
    append_pipeline_telemetry("viewer_created", {"session_id": session.id, "username": username})

    return ViewerResolution(
        session_id=session.id,
        username=username,
        username_reading=reading,
        comment=comment,
        is_first_time=True,
        stream_title=session.stream_title,
    )
