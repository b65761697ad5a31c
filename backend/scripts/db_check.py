"""Print sessions, viewer counts, and conversation retention per session."""
import sys
sys.path.insert(0, ".")
from sqlalchemy import func

from database import build_engine, build_session_factory
from models import Conversation, StreamSession, Viewer
from session_store import CONVERSATION_RETENTION_LIMIT

db = build_session_factory(build_engine())()

try:
    print("=== SESSIONS ===")
    sessions = db.query(StreamSession).order_by(StreamSession.started_at.desc()).all()
    print(f"Total: {len(sessions)} records")
    for s in sessions:
        state = "ENDED" if s.ended_at else "LIVE"
        viewers = db.query(func.count(Viewer.id)).filter(Viewer.session_id == s.id).scalar() or 0
        convs = db.query(func.count(Conversation.id)).filter(Conversation.session_id == s.id).scalar() or 0
        print(f"  [{state}] id={s.id} | title={s.stream_title}")
        print(f"           started={s.started_at} ended={s.ended_at}")
        print(f"           viewers={viewers} conversations={convs}")
        if convs > CONVERSATION_RETENTION_LIMIT:
            print(f"  [WARNING] retention exceeded ({convs} > {CONVERSATION_RETENTION_LIMIT})")
        print()

    print("=== RECENT CONVERSATIONS ===")
    recent = db.query(Conversation).order_by(Conversation.timestamp.desc()).limit(10).all()
    for c in recent:
        print(f"  {c.timestamp} | session={c.session_id} | {c.username}: {(c.comment or '')[:80]}")
        print(f"      -> {(c.response or '')[:140]}")

    print("\n=== DUPLICATE VIEWER CHECK ===")
    dupes = (
        db.query(Viewer.session_id, Viewer.username, func.count(Viewer.id))
        .group_by(Viewer.session_id, Viewer.username)
        .having(func.count(Viewer.id) > 1)
        .all()
    )
    if dupes:
        for session_id, username, n in dupes:
            print(f"  [WARNING] session={session_id} username={username} rows={n}")
    else:
        print("  [OK] one viewer row per (session, username)")
finally:
    db.close()
