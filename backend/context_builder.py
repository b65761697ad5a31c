"""Conversation context assembly for the reply prompt."""

from agent_configs import PERSONA_NAME
from schemas import ConversationRecord, ViewerResolution
from session_store import SessionStore

CONTEXT_HISTORY_LIMIT = 50
NO_HISTORY_MARKER = "(まだ会話はありません)"
FIRST_TIME_MARKER = "【初見】"


def render_turn(conversation: ConversationRecord) -> str:
    return f"{conversation.username}: {conversation.comment}\n{PERSONA_NAME}: {conversation.response}"


def render_context(
    stream_title: str,
    history: list[ConversationRecord],
    username: str,
    username_reading: str,
    comment: str,
    is_first_time: bool,
) -> str:
    """Render the prompt block. ``history`` must already be oldest first."""
    history_text = "\n\n".join(render_turn(c) for c in history)
    first_marker = FIRST_TIME_MARKER if is_first_time else ""
    return (
        f"【配信タイトル】{stream_title}\n"
        "\n"
        "【直近の会話】\n"
        f"{history_text or NO_HISTORY_MARKER}\n"
        "\n"
        "【今回のコメント】\n"
        f"{username}さん（読み: {username_reading}）{first_marker}: {comment}"
    ).strip()


def build_context(store: SessionStore, resolution: ViewerResolution) -> str:
    # Store hands back newest first; the prompt reads in spoken order.
    recent = store.get_conversations(resolution.session_id, CONTEXT_HISTORY_LIMIT)
    history = list(reversed(recent))
    return render_context(
        stream_title=resolution.stream_title,
        history=history,
        username=resolution.username,
        username_reading=resolution.username_reading,
        comment=resolution.comment,
        is_first_time=resolution.is_first_time,
    )
