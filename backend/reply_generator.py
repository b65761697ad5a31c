"""Persona reply generation and output-format recovery.

The persona agent is asked for ``{"segments": [{"text", "emotion"}]}`` but the
model does not always comply. ``parse_reply`` classifies the raw output into
one of four shapes and every shape has its own conversion:

* ``segments`` - the current structured shape
* ``legacy``   - ``{"response": ..., "emotion": ...}`` from the single-reply prompt
* ``plain``    - not JSON at all; the trimmed text becomes one neutral segment
* ``empty``    - JSON of some other shape; yields nothing

``normalize_segments`` then guarantees a non-empty list of non-blank segments.
"""

import json
from enum import Enum
from typing import Any

from pydantic import BaseModel

from agent_configs import AgentType, get_agent_config
from llm_service import LLMService, TextGenerationError, ensure_generated
from schemas import Segment
from telemetry import append_pipeline_telemetry
from text_utils import preview, strip_code_fence

STAGE = "generating"
DEFAULT_EMOTION = "neutral"
PLACEHOLDER_TEXT = "..."
FIRST_TIME_NOTICE = "※この視聴者は初見です"


class ReplyShape(str, Enum):
    SEGMENTS = "segments"
    LEGACY = "legacy"
    PLAIN = "plain"
    EMPTY = "empty"


class ParsedReply(BaseModel):
    kind: ReplyShape
    segments: list[Segment]


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _segment_from_entry(entry: Any) -> Segment:
    if not isinstance(entry, dict):
        return Segment(text="", emotion=DEFAULT_EMOTION)
    return Segment(
        text=_as_text(entry.get("text")),
        emotion=_as_text(entry.get("emotion")) or DEFAULT_EMOTION,
    )


def parse_reply(raw: str) -> ParsedReply:
    body = strip_code_fence(raw)
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        return ParsedReply(
            kind=ReplyShape.PLAIN,
            segments=[Segment(text=(raw or "").strip(), emotion=DEFAULT_EMOTION)],
        )

    if isinstance(parsed, dict):
        entries = parsed.get("segments")
        if isinstance(entries, list):
            return ParsedReply(
                kind=ReplyShape.SEGMENTS,
                segments=[_segment_from_entry(e) for e in entries],
            )
        response = parsed.get("response")
        if response and not isinstance(response, (dict, list)):
            return ParsedReply(
                kind=ReplyShape.LEGACY,
                segments=[
                    Segment(
                        text=_as_text(response),
                        emotion=_as_text(parsed.get("emotion")) or DEFAULT_EMOTION,
                    )
                ],
            )

    return ParsedReply(kind=ReplyShape.EMPTY, segments=[])


def normalize_segments(segments: list[Segment]) -> list[Segment]:
    kept = [s for s in segments if s.text.strip()]
    if not kept:
        return [Segment(text=PLACEHOLDER_TEXT, emotion=DEFAULT_EMOTION)]
    return kept


def build_reply_prompt(context: str, is_first_time: bool) -> str:
    if is_first_time:
        return f"{context}\n\n{FIRST_TIME_NOTICE}"
    return context


async def generate_reply(llm: LLMService, context: str, is_first_time: bool) -> list[Segment]:
    config = get_agent_config(AgentType.AITUBER)
    try:
        raw = await llm.generate(
            prompt=build_reply_prompt(context, is_first_time),
            system_prompt=str(config["system_prompt"]),
            temperature=float(config["temperature"]),
            max_tokens=int(config["max_tokens"]),
        )
    except Exception as exc:
        raise TextGenerationError(STAGE, f"{type(exc).__name__}: {exc}") from exc
    raw = ensure_generated(raw, STAGE)

    parsed = parse_reply(raw)
    if parsed.kind != ReplyShape.SEGMENTS:
        append_pipeline_telemetry("reply_parse_fallback", {"kind": parsed.kind.value, "raw": preview(raw)})
    return normalize_segments(parsed.segments)
