"""
Router FastAPI per i Batch di Pagamento
Progetto: Agency Manager (Gestionale Agenzia)

Definisce gli endpoint per anteprima, generazione e consultazione
dei batch di ricevute di prestazione occasionale.
"""

import logging
import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.payment import (
    BatchGenerationResponse,
    BatchPreviewResponse,
    PaymentBatchCreate,
    PaymentBatchList,
    PaymentBatchRead,
)
from app.services.batch_service import PaymentBatchService, to_excluded

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/payment-batches",
    tags=["Batch Pagamenti"],
)


# -------------------------------------------------------------------
# Dependency Injection
# -------------------------------------------------------------------

def get_payment_batch_service() -> PaymentBatchService:
    """Dependency per ottenere un'istanza del PaymentBatchService."""
    return PaymentBatchService()


# -------------------------------------------------------------------
# Endpoints
# -------------------------------------------------------------------

@router.get(
    "/",
    name="batch_lista",
    summary="Lista batch",
    description="Ultimi batch di pagamento generati, più recenti prima.",
    response_model=PaymentBatchList,
    status_code=status.HTTP_200_OK,
)
async def get_batches(
    limit: int = Query(20, ge=1, le=100, description="Numero massimo di batch"),
    db: AsyncSession = Depends(get_db),
    service: PaymentBatchService = Depends(get_payment_batch_service),
) -> PaymentBatchList:
    batches, total = await service.get_all(db=db, limit=limit)
    return PaymentBatchList(
        items=[PaymentBatchRead.model_validate(b) for b in batches],
        total=total,
    )


@router.get(
    "/preview",
    name="batch_anteprima",
    summary="Anteprima generazione",
    description="Artisti pronti, incompleti ed esclusi per la finestra corrente. Non scrive nulla.",
    response_model=BatchPreviewResponse,
    status_code=status.HTTP_200_OK,
)
async def preview_batch(
    force: bool = Query(False, description="Usa la finestra di recupero (ultimi due mesi)"),
    db: AsyncSession = Depends(get_db),
    service: PaymentBatchService = Depends(get_payment_batch_service),
) -> BatchPreviewResponse:
    return await service.preview(db=db, force=force)


@router.post(
    "/",
    name="batch_genera",
    summary="Genera batch",
    description=(
        "Genera le ricevute per gli artisti idonei della finestra corrente "
        "e invia i link di firma. Gli errori di consegna sono riportati per artista."
    ),
    response_model=BatchGenerationResponse,
    status_code=status.HTTP_201_CREATED,
)
async def generate_batch(
    data: PaymentBatchCreate,
    db: AsyncSession = Depends(get_db),
    service: PaymentBatchService = Depends(get_payment_batch_service),
) -> BatchGenerationResponse:
    """
    Genera un nuovo batch di pagamento.

    Raises:
        NoEligiblePerformersError: Nessun artista pronto (422)
        ConflictError: Errore di integrità (409)
    """
    run = await service.generate(
        db=db,
        performer_ids=data.performer_ids,
        force=data.force,
    )

    return BatchGenerationResponse(
        batch=PaymentBatchRead.model_validate(run.batch),
        receipts_generated=len(run.receipts),
        emails_sent=run.emails_sent,
        emails_failed=run.emails_failed,
        deliveries=run.deliveries,
        incomplete=[to_excluded(g, "Dati mancanti") for g in run.incomplete],
        excluded=[to_excluded(g, "Contratto non occasionale") for g in run.excluded],
    )


@router.get(
    "/{batch_id}",
    name="batch_dettaglio",
    summary="Dettaglio batch",
    response_model=PaymentBatchRead,
    status_code=status.HTTP_200_OK,
)
async def get_batch(
    batch_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: PaymentBatchService = Depends(get_payment_batch_service),
) -> PaymentBatchRead:
    batch = await service.get_by_id(db, batch_id)
    return PaymentBatchRead.model_validate(batch)
