"""
Single place to:
- Create a SQLAlchemy Engine from DATABASE_URL (SQLite by default, MySQL via PyMySQL)
- Create a Session factory for short-lived storage sessions
- Hold the declarative Base for ORM models

Why: centralizing this keeps connection logic consistent and testable.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase


class Base(DeclarativeBase):
    pass


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    # pool_pre_ping=True = auto-detect dead connections (long-lived process).
    connect_args = {}
    if database_url.startswith("sqlite"):
        # FastAPI runs sync routes in a threadpool
        connect_args["check_same_thread"] = False
    return create_engine(
        database_url,
        pool_pre_ping=True,
        echo=echo,
        future=True,
        connect_args=connect_args,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    # autocommit=False, autoflush=False are the usual SQLAlchemy defaults.
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
