"""Shared fixtures: a throwaway SQLite store and a scripted text-generation fake."""
from __future__ import annotations

import asyncio
import os
import sys
from typing import Callable, Optional, Union

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from agent_configs import AgentType, get_agent_config  # noqa: E402
from database import build_engine  # noqa: E402
from session_store import SessionStore  # noqa: E402

Reply = Union[str, Exception, Callable[[str], str]]


class ScriptedLLM:
    """Answers per agent, recognised by the system prompt it is called with.

    A reply may be a string, an exception instance to raise, or a callable
    receiving the prompt.
    """

    def __init__(self, replies: Optional[dict[AgentType, Reply]] = None):
        self.replies: dict[AgentType, Reply] = {
            AgentType.READING_GENERATOR: "  ヤマダ  ",
            AgentType.COMMENT_FILTER: '{"shouldRespond": true}',
            AgentType.AITUBER: '{"segments": [{"text": "こんにちは！", "emotion": "happy"}]}',
        }
        self.replies.update(replies or {})
        self.calls: list[tuple[AgentType, str]] = []

    @staticmethod
    def _agent_for(system_prompt: Optional[str]) -> AgentType:
        for agent_type in AgentType:
            if get_agent_config(agent_type)["system_prompt"] == system_prompt:
                return agent_type
        raise AssertionError(f"unexpected system prompt: {system_prompt!r}")

    def calls_for(self, agent_type: AgentType) -> list[str]:
        return [prompt for agent, prompt in self.calls if agent == agent_type]

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        agent = self._agent_for(system_prompt)
        self.calls.append((agent, prompt))
        # Yield so concurrent runs interleave at the same points a real call would.
        await asyncio.sleep(0)
        reply = self.replies[agent]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(prompt)
        return reply


@pytest.fixture(autouse=True)
def telemetry_log(tmp_path, monkeypatch):
    path = tmp_path / "pipeline_telemetry.log"
    monkeypatch.setenv("PIPELINE_TELEMETRY_LOG", str(path))
    monkeypatch.setenv("PIPELINE_TELEMETRY_ENABLED", "1")
    return path


@pytest.fixture
def store(tmp_path):
    handle = SessionStore(build_engine(f"sqlite:///{tmp_path / 'test.db'}"))
    handle.initialize()
    yield handle
    handle.close()


@pytest.fixture
def llm():
    return ScriptedLLM()


def run(coro):
    return asyncio.run(coro)
