from __future__ import annotations

from collections.abc import Callable
from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

SessionFactory = Callable[[], Session]


def create_sqlalchemy_engine(database_url: str, **engine_kwargs: Any) -> Engine:
    return create_engine(database_url, future=True, **engine_kwargs)


def create_sqlalchemy_session_factory(engine: Engine) -> SessionFactory:
    """Build a SessionFactory producing SQLAlchemy sessions bound to ``engine``.

    ``expire_on_commit`` is off so that ORM rows can still be converted to
    domain models after the transaction ends.
    """

    SessionLocal = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False, class_=Session)

    def _factory() -> Session:
        return SessionLocal()

    return _factory
