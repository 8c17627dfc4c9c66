"""
Router FastAPI per i Solleciti
Progetto: Agency Manager (Gestionale Agenzia)
"""

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.payment import ReminderActionRequest, ReminderActionResult, ReminderOverview
from app.services.reminder_service import ReminderService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/reminders",
    tags=["Solleciti"],
)


def get_reminder_service() -> ReminderService:
    """Dependency per ottenere un'istanza del ReminderService."""
    return ReminderService()


@router.get(
    "/",
    name="solleciti_riepilogo",
    summary="Riepilogo solleciti",
    description=(
        "Ricevute da sollecitare, link scaduti e ricevute PAGABILE "
        "in scadenza o scadute."
    ),
    response_model=ReminderOverview,
    status_code=status.HTTP_200_OK,
)
async def get_overview(
    db: AsyncSession = Depends(get_db),
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderOverview:
    return await service.overview(db)


@router.post(
    "/",
    name="solleciti_azione",
    summary="Esegui azione solleciti",
    description="remind: invia i solleciti di firma. expire: marca SCADUTA le ricevute con link scaduto.",
    response_model=ReminderActionResult,
    status_code=status.HTTP_200_OK,
)
async def run_action(
    data: ReminderActionRequest,
    db: AsyncSession = Depends(get_db),
    service: ReminderService = Depends(get_reminder_service),
) -> ReminderActionResult:
    result = await service.run(db, data.action)
    logger.info("Azione solleciti '%s': %d ricevute", data.action.value, result.processed)
    return result
