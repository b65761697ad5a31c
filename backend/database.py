from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load backend/.env early so DATABASE_URL is honored consistently.
env_path = Path(__file__).resolve().parent / ".env"
load_dotenv(dotenv_path=env_path, override=False)

# SQLite by default; any SQLAlchemy URL (e.g. PostgreSQL) works through DATABASE_URL.
DEFAULT_DATABASE_URL = "sqlite:///./aituber.db"

Base = declarative_base()


def get_database_url() -> str:
    return os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL


def build_engine(database_url: Optional[str] = None) -> Engine:
    url = database_url or get_database_url()
    return create_engine(
        url,
        connect_args={"check_same_thread": False} if "sqlite" in url else {}
    )


def build_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
