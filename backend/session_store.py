"""Session, viewer, and conversation persistence.

One ``SessionStore`` is built at process start and handed to every pipeline
component. Each call opens its own ORM session, commits, and returns detached
pydantic records, so callers never hold database state across awaits.
"""

import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import Base, build_engine, build_session_factory
from models import Conversation, StreamSession, Viewer
from schemas import ConversationRecord, SessionRecord, ViewerRecord

DEFAULT_STREAM_TITLE = "配信"
CONVERSATION_RETENTION_LIMIT = 100


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionStore:
    """CRUD over sessions, viewers and conversations."""

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine or build_engine()
        self._session_factory = build_session_factory(self.engine)

    def initialize(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def close(self) -> None:
        self.engine.dispose()

    @contextmanager
    def _db(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    # --------------- Sessions ---------------

    def create_session(self, stream_title: str, session_id: Optional[str] = None) -> SessionRecord:
        row = StreamSession(
            id=session_id or str(uuid.uuid4()),
            stream_title=stream_title,
            started_at=_utcnow(),
        )
        with self._db() as db:
            db.add(row)
            db.commit()
            return SessionRecord.model_validate(row)

    def get_session(self, session_id: str) -> Optional[SessionRecord]:
        with self._db() as db:
            row = db.query(StreamSession).filter(StreamSession.id == session_id).first()
            return SessionRecord.model_validate(row) if row else None

    def end_session(self, session_id: str) -> Optional[SessionRecord]:
        with self._db() as db:
            row = db.query(StreamSession).filter(StreamSession.id == session_id).first()
            if row is None:
                return None
            row.ended_at = _utcnow()
            db.commit()
            return SessionRecord.model_validate(row)

    def get_or_create_session(self, session_id: str, stream_title: str = DEFAULT_STREAM_TITLE) -> SessionRecord:
        existing = self.get_session(session_id)
        if existing:
            return existing
        try:
            return self.create_session(stream_title, session_id=session_id)
        except IntegrityError:
            # Another request created it between the read and the insert.
            existing = self.get_session(session_id)
            if existing is None:
                raise
            return existing

    # --------------- Viewers ---------------

    def get_viewer(self, session_id: str, username: str) -> Optional[ViewerRecord]:
        with self._db() as db:
            row = (
                db.query(Viewer)
                .filter(Viewer.session_id == session_id, Viewer.username == username)
                .first()
            )
            return ViewerRecord.model_validate(row) if row else None

    def add_viewer(self, session_id: str, username: str, username_reading: str) -> None:
        """Insert the viewer unless (session_id, username) already exists."""
        if self.get_viewer(session_id, username) is not None:
            return
        with self._db() as db:
            db.add(Viewer(session_id=session_id, username=username, username_reading=username_reading))
            try:
                db.commit()
            except IntegrityError:
                db.rollback()
                # Lost the first-contact race: the surviving row wins.
                winner = (
                    db.query(Viewer)
                    .filter(Viewer.session_id == session_id, Viewer.username == username)
                    .first()
                )
                if winner is None:
                    raise

    def get_all_viewers(self, session_id: str) -> list[ViewerRecord]:
        with self._db() as db:
            rows = (
                db.query(Viewer)
                .filter(Viewer.session_id == session_id)
                .order_by(Viewer.id.asc())
                .all()
            )
            return [ViewerRecord.model_validate(r) for r in rows]

    # --------------- Conversations ---------------

    def add_conversation(self, session_id: str, username: str, comment: str, response: str) -> ConversationRecord:
        row = Conversation(
            session_id=session_id,
            username=username,
            comment=comment,
            response=response,
            timestamp=_utcnow(),
        )
        with self._db() as db:
            db.add(row)
            db.commit()
            record = ConversationRecord.model_validate(row)
            self._trim_conversations(db, session_id)
            return record

    def _trim_conversations(self, db: Session, session_id: str) -> None:
        keep_ids = (
            select(Conversation.id)
            .where(Conversation.session_id == session_id)
            .order_by(Conversation.timestamp.desc(), Conversation.id.desc())
            .limit(CONVERSATION_RETENTION_LIMIT)
        )
        (
            db.query(Conversation)
            .filter(Conversation.session_id == session_id)
            .filter(Conversation.id.not_in(keep_ids))
            .delete(synchronize_session=False)
        )
        db.commit()

    def get_conversations(self, session_id: str, limit: int = CONVERSATION_RETENTION_LIMIT) -> list[ConversationRecord]:
        """Most recent conversations first."""
        with self._db() as db:
            rows = (
                db.query(Conversation)
                .filter(Conversation.session_id == session_id)
                .order_by(Conversation.timestamp.desc(), Conversation.id.desc())
                .limit(limit)
                .all()
            )
            return [ConversationRecord.model_validate(r) for r in rows]

    def count_conversations(self, session_id: str) -> int:
        with self._db() as db:
            return (
                db.query(func.count(Conversation.id))
                .filter(Conversation.session_id == session_id)
                .scalar()
            ) or 0
