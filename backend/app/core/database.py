"""
Configurazione Database - SQLAlchemy 2.0 Async
Progetto: Agency Manager (Gestionale Agenzia)

Engine, session factory e dependency injection per FastAPI.

In produzione il database è PostgreSQL (asyncpg); i test usano SQLite
(aiosqlite). Le opzioni del pool valgono solo per PostgreSQL: con SQLite
le letture con lock (FOR UPDATE) vengono ignorate e la concorrenza è
garantita dagli UPDATE condizionali dei service.
"""

import logging
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings

logger = logging.getLogger(__name__)


def engine_options(database_url: str) -> dict[str, Any]:
    """Parametri di create_async_engine in base al driver."""
    options: dict[str, Any] = {"echo": settings.debug}
    if make_url(database_url).get_backend_name() == "sqlite":
        # Attesa sul lock di scrittura invece di "database is locked"
        options["connect_args"] = {"timeout": 30}
    else:
        options["pool_pre_ping"] = True
        options["pool_size"] = settings.db_pool_size
        options["max_overflow"] = settings.db_max_overflow
    return options


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory dell'applicazione.

    expire_on_commit=False: ricevute e batch restano leggibili dopo i commit
    intermedi della generazione (una transazione per artista).
    """
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# ------------------------------------------------------------
# Engine e Session Factory
# ------------------------------------------------------------
engine: AsyncEngine = create_async_engine(
    settings.database_url,
    **engine_options(settings.database_url),
)

AsyncSessionLocal = create_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency injection per FastAPI.

    Una sessione per richiesta: in caso di errore non gestito la
    transazione aperta viene annullata.

    Yields:
        AsyncSession: Sessione database async
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Verifica all'avvio che il database sia raggiungibile."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info(
            "Connessione al database stabilita (%s)",
            make_url(settings.database_url).get_backend_name(),
        )
    except Exception as e:
        logger.error("Errore connessione database: %s", e)
        raise


async def close_db() -> None:
    """Chiude le connessioni al database (shutdown)."""
    await engine.dispose()
    logger.info("Connessioni database chiuse")
