import asyncio
import time

import pytest

from conftest import run
from llm_service import LLMConfig, LLMService, TextGenerationError, ensure_generated


@pytest.fixture
def make_service(monkeypatch, tmp_path):
    monkeypatch.setenv("LLM_CALL_LOG", str(tmp_path / "llm_call_log.txt"))

    def _make(min_interval_sec=0.0):
        monkeypatch.setenv("LLM_MIN_CALL_INTERVAL_SEC", str(min_interval_sec))
        svc = LLMService(LLMConfig(api_url="http://llm.test/v1/chat/completions", provider="openai"))
        starts = []

        async def slow_chat(prompt, system_prompt, temp, token_limit):
            starts.append(time.perf_counter())
            await asyncio.sleep(0.3)
            return prompt

        monkeypatch.setattr(svc, "_generate_chat", slow_chat)
        return svc, starts

    return _make


def _generate_all(svc, prompts):
    async def go():
        return await asyncio.gather(*(svc.generate(p) for p in prompts))

    return run(go())


def test_concurrent_calls_overlap(make_service):
    svc, _ = make_service()

    t0 = time.perf_counter()
    results = _generate_all(svc, ["a", "b", "c"])
    elapsed = time.perf_counter() - t0

    assert results == ["a", "b", "c"]
    assert elapsed < 0.6


def test_min_call_interval_spaces_call_starts(make_service):
    svc, starts = make_service(min_interval_sec=0.2)

    _generate_all(svc, ["a", "b", "c"])

    gaps = [later - earlier for earlier, later in zip(starts, starts[1:])]
    assert all(gap >= 0.15 for gap in gaps)
    # The second call starts before the first one finishes.
    assert starts[1] - starts[0] < 0.3


def test_ensure_generated_raises_on_sentinel():
    with pytest.raises(TextGenerationError) as excinfo:
        ensure_generated("__LLM_ERR__rate_limit|http=429 after 3 attempts", "generating")

    assert excinfo.value.stage == "generating"
    assert "rate_limit" in excinfo.value.detail
    assert ensure_generated("こんにちは", "generating") == "こんにちは"
