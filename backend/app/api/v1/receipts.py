"""
Router FastAPI per le Ricevute
Progetto: Agency Manager (Gestionale Agenzia)

Consultazione ricevute, download PDF, reinvio link di firma e
approvazione delle ricevute firmate.
"""

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.payment import (
    DeliveryOutcomeRead,
    ReceiptList,
    ReceiptRead,
    ReceiptStatus,
)
from app.services.receipt_service import ReceiptService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/receipts",
    tags=["Ricevute"],
)


def get_receipt_service() -> ReceiptService:
    """Dependency per ottenere un'istanza del ReceiptService."""
    return ReceiptService()


@router.get(
    "/",
    name="ricevute_lista",
    summary="Lista ricevute",
    description="Lista paginata delle ricevute con filtri per stato e batch e riepilogo per stato.",
    response_model=ReceiptList,
    status_code=status.HTTP_200_OK,
)
async def get_receipts(
    status_filter: Optional[ReceiptStatus] = Query(None, alias="status", description="Filtra per stato"),
    batch_id: Optional[uuid.UUID] = Query(None, description="Filtra per batch"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(50, ge=1, le=200, description="Elementi per pagina"),
    db: AsyncSession = Depends(get_db),
    service: ReceiptService = Depends(get_receipt_service),
) -> ReceiptList:
    receipts, total = await service.get_all(
        db=db,
        status_filter=status_filter,
        batch_id=batch_id,
        page=page,
        per_page=per_page,
    )
    return ReceiptList(
        items=[ReceiptRead.model_validate(r) for r in receipts],
        total=total,
        summary=await service.summary(db),
    )


@router.get(
    "/{receipt_id}",
    name="ricevuta_dettaglio",
    summary="Dettaglio ricevuta",
    response_model=ReceiptRead,
    status_code=status.HTTP_200_OK,
)
async def get_receipt(
    receipt_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ReceiptService = Depends(get_receipt_service),
) -> ReceiptRead:
    receipt = await service.get_by_id(db, receipt_id)
    return ReceiptRead.model_validate(receipt)


@router.get(
    "/{receipt_id}/pdf",
    name="ricevuta_pdf",
    summary="PDF ricevuta",
    description="Scarica il PDF della ricevuta; se manca in archivio viene rigenerato.",
    response_class=Response,
    status_code=status.HTTP_200_OK,
)
async def get_receipt_pdf(
    receipt_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ReceiptService = Depends(get_receipt_service),
) -> Response:
    filename, pdf_bytes = await service.get_pdf(db, receipt_id)
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post(
    "/{receipt_id}/resend",
    name="ricevuta_reinvio_link",
    summary="Reinvia link di firma",
    description=(
        "Reinvia all'artista il link di firma con il PDF allegato. "
        "Se il link è scaduto ne viene generato uno nuovo."
    ),
    response_model=DeliveryOutcomeRead,
    status_code=status.HTTP_200_OK,
)
async def resend_link(
    receipt_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ReceiptService = Depends(get_receipt_service),
) -> DeliveryOutcomeRead:
    return await service.resend_link(db, receipt_id)


@router.post(
    "/{receipt_id}/approve",
    name="ricevuta_approva",
    summary="Approva ricevuta firmata",
    description="Porta una ricevuta FIRMATA a PAGABILE.",
    response_model=ReceiptRead,
    status_code=status.HTTP_200_OK,
)
async def approve_receipt(
    receipt_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    service: ReceiptService = Depends(get_receipt_service),
) -> ReceiptRead:
    receipt = await service.approve(db, receipt_id)
    return ReceiptRead.model_validate(receipt)
