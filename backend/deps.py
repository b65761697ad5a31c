"""Shared FastAPI dependencies used across route modules."""

from fastapi import Request

from pipeline import CommentPipeline
from session_store import SessionStore


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def get_pipeline(request: Request) -> CommentPipeline:
    return request.app.state.pipeline
