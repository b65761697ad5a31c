"""Decide whether a viewer comment deserves a reply.

First-time viewers are always answered. For everyone else the classifier
agent is asked; anything short of a clear boolean ``false`` means respond.
"""

from typing import Optional

from agent_configs import AgentType, get_agent_config
from llm_service import LLMService, is_llm_error, parse_llm_error
from telemetry import append_pipeline_telemetry
from text_utils import extract_json_object, preview


def parse_filter_verdict(raw: str) -> Optional[bool]:
    """Return the classifier's boolean, or None when the output carries none."""
    parsed = extract_json_object(raw)
    if parsed is None:
        return None
    verdict = parsed.get("shouldRespond")
    return verdict if isinstance(verdict, bool) else None


async def should_respond(llm: LLMService, comment: str, is_first_time: bool) -> bool:
    if is_first_time:
        return True

    config = get_agent_config(AgentType.COMMENT_FILTER)
    try:
        raw = await llm.generate(
            prompt=comment,
            system_prompt=str(config["system_prompt"]),
            temperature=float(config["temperature"]),
            max_tokens=int(config["max_tokens"]),
        )
    except Exception as exc:
        append_pipeline_telemetry("filter_fail_open", {"reason": "exception", "detail": f"{type(exc).__name__}: {exc}"})
        return True

    if is_llm_error(raw):
        append_pipeline_telemetry("filter_fail_open", {"reason": "llm_error", **parse_llm_error(raw)})
        return True

    verdict = parse_filter_verdict(raw)
    if verdict is None:
        append_pipeline_telemetry("filter_fail_open", {"reason": "unparseable", "raw": preview(raw)})
        return True
    return verdict
