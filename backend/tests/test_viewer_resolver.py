import pytest

from agent_configs import AgentType
from conftest import ScriptedLLM, run
from llm_service import TextGenerationError
from session_store import DEFAULT_STREAM_TITLE
from viewer_resolver import resolve_viewer


def test_new_viewer_gets_trimmed_reading_and_is_stored(store, llm):
    resolution = run(resolve_viewer(store, llm, "s", "山田", "こんにちは"))

    assert resolution.is_first_time is True
    assert resolution.username_reading == "ヤマダ"
    assert resolution.stream_title == DEFAULT_STREAM_TITLE
    assert llm.calls_for(AgentType.READING_GENERATOR) == ["山田"]
    assert store.get_viewer("s", "山田").username_reading == "ヤマダ"


def test_returning_viewer_uses_stored_reading(store, llm):
    store.create_session("歌枠", session_id="s")
    store.add_viewer("s", "山田", "ヤマダ")

    resolution = run(resolve_viewer(store, llm, "s", "山田", "また来たよ"))

    assert resolution.is_first_time is False
    assert resolution.username_reading == "ヤマダ"
    assert resolution.stream_title == "歌枠"
    assert llm.calls == []


def test_blank_reading_falls_back_to_username(store):
    llm = ScriptedLLM({AgentType.READING_GENERATOR: "   "})

    resolution = run(resolve_viewer(store, llm, "s", "xX_neko_Xx", "hi"))

    assert resolution.username_reading == "xX_neko_Xx"


@pytest.mark.parametrize(
    "failure",
    ["__LLM_ERR__exception|connect timeout", ConnectionError("refused")],
)
def test_reading_failure_is_fatal_and_stores_nothing(store, failure):
    llm = ScriptedLLM({AgentType.READING_GENERATOR: failure})

    with pytest.raises(TextGenerationError) as excinfo:
        run(resolve_viewer(store, llm, "s", "山田", "こんにちは"))

    assert excinfo.value.stage == "resolving_viewer"
    assert store.get_viewer("s", "山田") is None
