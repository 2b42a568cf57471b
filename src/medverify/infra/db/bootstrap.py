from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from src.medverify.config import Settings
from src.medverify.errors import ConfigurationError
from src.medverify.infra.db.inmemory import (
    InMemoryClinicianRepository,
    InMemoryPatientProfileRepository,
    InMemoryQueryRepository,
)
from src.medverify.infra.db.repositories import (
    ClinicianRepository,
    PatientProfileRepository,
    QueryRepository,
)
from src.medverify.infra.db.session import Database
from src.medverify.infra.db.sql_repositories import (
    SqlClinicianRepository,
    SqlPatientProfileRepository,
    SqlQueryRepository,
)

logger = logging.getLogger("medverify.db")


@dataclass
class Repositories:
    queries: QueryRepository
    patients: PatientProfileRepository
    clinicians: ClinicianRepository
    # Set only when the repositories are SQL-backed; owned by the caller.
    database: Optional[Database] = None

    def close(self) -> None:
        if self.database is not None:
            self.database.dispose()


def in_memory_repositories() -> Repositories:
    return Repositories(
        queries=InMemoryQueryRepository(),
        patients=InMemoryPatientProfileRepository(),
        clinicians=InMemoryClinicianRepository(),
    )


def sql_repositories(database: Database, *, create_tables: bool = True) -> Repositories:
    if create_tables:
        # Convenient for early deployments; real ones should run migrations.
        database.create_all()
    return Repositories(
        queries=SqlQueryRepository(database.session_factory),
        patients=SqlPatientProfileRepository(database.session_factory),
        clinicians=SqlClinicianRepository(database.session_factory),
        database=database,
    )


def init_repositories(settings: Settings) -> Repositories:
    """Select repository implementations from settings.

    With USE_SQL_REPOS disabled (tests, local development) the in-memory
    repositories are returned. Requesting SQL repositories without a
    DATABASE_URL is a configuration error.
    """

    if not settings.use_sql_repos:
        logger.info("Using in-memory repositories")
        return in_memory_repositories()

    if not settings.database_url:
        raise ConfigurationError("USE_SQL_REPOS is enabled but DATABASE_URL is not set")

    logger.info("Using SQL repositories")
    return sql_repositories(Database(settings.database_url))
