from __future__ import annotations

import logging
from typing import Optional

from src.evidence.config import settings
from src.evidence.infra.db.inmemory import InMemoryMediaFileRepository
from src.evidence.infra.db.models import Base
from src.evidence.infra.db.repositories import MediaFileRepository
from src.evidence.infra.db.session import create_sqlalchemy_engine, create_sqlalchemy_session_factory
from src.evidence.infra.db.sql_media_files import SqlMediaFileRepository

logger = logging.getLogger(__name__)


def init_sql_repositories(database_url: Optional[str] = None) -> Optional[MediaFileRepository]:
    """Build the SQL-backed repository when USE_SQL_REPOS is enabled.

    Returns ``None`` when SQL repositories are disabled or DATABASE_URL is
    missing, in which case callers keep the in-memory repository.
    """

    if not settings.use_sql_repos:
        return None

    db_url = database_url or settings.database_url
    if not db_url:
        logger.error("USE_SQL_REPOS is true but DATABASE_URL is not set; using in-memory repository")
        return None

    engine = create_sqlalchemy_engine(db_url)
    # Convenient for early deployments; real environments should run migrations.
    Base.metadata.create_all(engine)
    return SqlMediaFileRepository(create_sqlalchemy_session_factory(engine))


def build_media_file_repository() -> MediaFileRepository:
    return init_sql_repositories() or InMemoryMediaFileRepository()
