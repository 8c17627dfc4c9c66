"""
Reset dello schema database (sviluppo)
Progetto: Agency Manager (Gestionale Agenzia)

Elimina e ricrea tutte le tabelle: agibilità, artisti, batch, ricevute,
progressivi e distinte. L'archivio PDF su disco non viene toccato.

Uso:
    python reset_db.py
"""

import asyncio
import logging
import os
import sys

# Aggiungi backend/ alla PYTHONPATH per importare app.*
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from app.core.config import settings
from app.core.database import engine
from app.models import Base

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger("reset_db")


async def reset() -> None:
    if settings.is_production:
        raise SystemExit("Reset non consentito in produzione")

    logger.info("Eliminazione tabelle (%d)...", len(Base.metadata.tables))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        logger.info("Creazione tabelle...")
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    logger.info("Database resettato. Archivio ricevute: %s", settings.receipts_dir)


if __name__ == "__main__":
    asyncio.run(reset())
