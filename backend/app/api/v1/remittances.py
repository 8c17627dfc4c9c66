"""
Router FastAPI per le Distinte Bonifici
Progetto: Agency Manager (Gestionale Agenzia)
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.models import Remittance
from app.schemas.payment import RemittanceCreate, RemittanceList, RemittanceRead
from app.services.remittance_service import RemittanceService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/remittances",
    tags=["Distinte Bonifici"],
)


def get_remittance_service() -> RemittanceService:
    """Dependency per ottenere un'istanza del RemittanceService."""
    return RemittanceService()


def csv_response(remittance: Remittance, status_code: int = status.HTTP_200_OK) -> Response:
    """Risposta CSV con i riferimenti della distinta negli header."""
    return Response(
        content=remittance.csv_content,
        status_code=status_code,
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="{remittance.code}.csv"',
            "X-Remittance-Id": str(remittance.id),
            "X-Remittance-Code": remittance.code,
        },
    )


@router.post(
    "/",
    name="distinta_genera",
    summary="Genera distinta",
    description=(
        "Genera il CSV dei bonifici per le ricevute selezionate (tutte PAGABILE) "
        "e le segna come PAGATA. Se una sola ricevuta non è pagabile non viene modificato nulla."
    ),
    response_class=Response,
    status_code=status.HTTP_201_CREATED,
)
async def create_remittance(
    data: RemittanceCreate,
    db: AsyncSession = Depends(get_db),
    service: RemittanceService = Depends(get_remittance_service),
) -> Response:
    """
    Raises:
        NotFoundError: Ricevute inesistenti (404)
        ConflictError: Ricevute non PAGABILE (409)
        BusinessValidationError: IBAN mancante (422)
    """
    remittance = await service.create(db, data.receipt_ids)
    return csv_response(remittance, status.HTTP_201_CREATED)


@router.get(
    "/",
    name="distinte_lista",
    summary="Lista distinte",
    response_model=RemittanceList,
    status_code=status.HTTP_200_OK,
)
async def get_remittances(
    db: AsyncSession = Depends(get_db),
    service: RemittanceService = Depends(get_remittance_service),
) -> RemittanceList:
    remittances, total = await service.get_all(db)
    return RemittanceList(
        items=[RemittanceRead.model_validate(r) for r in remittances],
        total=total,
    )


@router.get(
    "/{remittance_id}/csv",
    name="distinta_csv",
    summary="Scarica CSV distinta",
    response_class=Response,
    status_code=status.HTTP_200_OK,
)
async def get_remittance_csv(
    remittance_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: RemittanceService = Depends(get_remittance_service),
) -> Response:
    remittance = await service.get_by_id(db, remittance_id)
    return csv_response(remittance)
