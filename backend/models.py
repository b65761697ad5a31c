from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base


class StreamSession(Base):
    __tablename__ = "sessions"

    id = Column(String(64), primary_key=True, index=True)
    stream_title = Column(String(255), nullable=False)
    started_at = Column(DateTime(timezone=True), nullable=False)
    ended_at = Column(DateTime(timezone=True), nullable=True)

    # Relationships
    viewers = relationship("Viewer", back_populates="session")
    conversations = relationship("Conversation", back_populates="session")


class Viewer(Base):
    __tablename__ = "viewers"
    __table_args__ = (UniqueConstraint("session_id", "username", name="uq_viewers_session_username"),)

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(64), ForeignKey("sessions.id"), nullable=False, index=True)
    username = Column(String(255), nullable=False)
    username_reading = Column(String(255), nullable=False)

    session = relationship("StreamSession", back_populates="viewers")


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String(64), ForeignKey("sessions.id"), nullable=False, index=True)
    username = Column(String(255), nullable=False)
    comment = Column(Text, nullable=False)
    response = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False, index=True)

    session = relationship("StreamSession", back_populates="conversations")
