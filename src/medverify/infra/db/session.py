from __future__ import annotations

import logging
from collections.abc import Callable
from threading import Lock
from typing import Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from src.medverify.errors import ConfigurationError
from src.medverify.infra.db.models import Base

logger = logging.getLogger("medverify.db")

SessionFactory = Callable[[], Session]


class Database:
    """Process-wide owner of the SQLAlchemy engine.

    The engine is created on first use and released by :meth:`dispose`, which
    the application calls on shutdown. Repositories receive
    :meth:`session_factory` rather than touching the engine directly.
    """

    def __init__(self, database_url: Optional[str]) -> None:
        if not database_url:
            raise ConfigurationError("DATABASE_URL must be set to use SQL repositories")
        self._database_url = database_url
        self._engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker[Session]] = None
        self._lock = Lock()

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            with self._lock:
                if self._engine is None:
                    self._engine = create_engine(self._database_url, future=True, pool_pre_ping=True)
                    self._sessionmaker = sessionmaker(
                        bind=self._engine,
                        autoflush=False,
                        autocommit=False,
                        expire_on_commit=False,
                        class_=Session,
                    )
                    logger.info("Database engine created for %s", self._engine.url.render_as_string(hide_password=True))
        return self._engine

    def session_factory(self) -> Session:
        if self._sessionmaker is None:
            _ = self.engine
        assert self._sessionmaker is not None
        return self._sessionmaker()

    def create_all(self) -> None:
        """Create tables if they do not exist.

        Convenient for early deployments and tests; real deployments should
        manage the schema with migrations.
        """

        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
                logger.info("Database engine disposed")
            self._engine = None
            self._sessionmaker = None
