from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime

# Segmented reply shape; bump when CommentResponse changes incompatibly.
COMMENT_RESPONSE_SCHEMA_VERSION = 2


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Store records
class SessionRecord(CamelModel):
    id: str
    stream_title: str
    started_at: datetime
    ended_at: Optional[datetime] = None


class ViewerRecord(CamelModel):
    id: int
    session_id: str
    username: str
    username_reading: str


class ConversationRecord(CamelModel):
    id: int
    session_id: str
    username: str
    comment: str
    response: str
    timestamp: datetime


class SessionCreate(CamelModel):
    stream_title: str = Field(min_length=1)
    session_id: Optional[str] = None


# Pipeline schemas
class CommentRequest(CamelModel):
    session_id: str = Field(min_length=1)
    username: str = Field(min_length=1)
    comment: str


class Segment(BaseModel):
    text: str
    emotion: str = "neutral"


class ViewerResolution(CamelModel):
    session_id: str
    username: str
    username_reading: str
    comment: str
    is_first_time: bool
    stream_title: str


class CommentResponse(CamelModel):
    segments: list[Segment]
    # Legacy single-reply fields
    response: Optional[str] = None
    emotion: Optional[str] = None
    username_reading: str
    is_first_time: bool
    should_respond: bool
    schema_version: int = COMMENT_RESPONSE_SCHEMA_VERSION
