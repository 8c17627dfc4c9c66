"""
Router FastAPI pubblico per la firma delle ricevute
Progetto: Agency Manager (Gestionale Agenzia)

Endpoint raggiungibili dall'artista tramite il link ricevuto via email.
Il token del link è l'unica credenziale.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.schemas.payment import SignatureConfirmation, SignatureForm, SignatureRequest
from app.services.signature_service import SignatureService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/firma",
    tags=["Firma Ricevute"],
)


def get_signature_service() -> SignatureService:
    """Dependency per ottenere un'istanza del SignatureService."""
    return SignatureService()


def client_ip(request: Request) -> Optional[str]:
    """IP del client, considerando eventuali proxy (X-Forwarded-For, X-Real-IP)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


@router.get(
    "/{token}",
    name="firma_modulo",
    summary="Dati per la firma",
    description=(
        "Riepilogo della ricevuta e opzioni di firma. "
        "Se la ricevuta è già firmata restituisce solo codice e data firma."
    ),
    response_model=SignatureForm,
    status_code=status.HTTP_200_OK,
)
async def get_signature_form(
    token: str = Path(..., min_length=16, max_length=128, description="Token del link di firma"),
    db: AsyncSession = Depends(get_db),
    service: SignatureService = Depends(get_signature_service),
) -> SignatureForm:
    """
    Raises:
        NotFoundError: Token inesistente (404)
        LinkExpiredError: Link scaduto (410)
    """
    return await service.get_form(db, token)


@router.post(
    "/{token}",
    name="firma_invio",
    summary="Firma ricevuta",
    description=(
        "Firma la ricevuta con le scelte dell'artista (tempistica, rimborso, "
        "numero ricevuta) e restituisce gli importi finali."
    ),
    response_model=SignatureConfirmation,
    status_code=status.HTTP_200_OK,
)
async def sign_receipt(
    data: SignatureRequest,
    request: Request,
    token: str = Path(..., min_length=16, max_length=128, description="Token del link di firma"),
    db: AsyncSession = Depends(get_db),
    service: SignatureService = Depends(get_signature_service),
) -> SignatureConfirmation:
    """
    Raises:
        NotFoundError: Token inesistente (404)
        AlreadySignedError: Ricevuta già firmata (409)
        LinkExpiredError: Link scaduto (410)
        BusinessValidationError: Dati non validi (422)
    """
    return await service.sign(
        db,
        token,
        data,
        client_ip=client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
