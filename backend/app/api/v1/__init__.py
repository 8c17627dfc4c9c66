"""
API v1 Routes
Progetto: Agency Manager (Gestionale Agenzia)

Router versione 1 dell'API.
"""

from fastapi import APIRouter

from app.api.v1 import payment_batches, receipts, reminders, remittances, signatures

# Router aggregato per v1
api_v1_router = APIRouter(prefix="/api/v1")

# Includi i router dei moduli
api_v1_router.include_router(payment_batches.router)
api_v1_router.include_router(receipts.router)
api_v1_router.include_router(signatures.router)
api_v1_router.include_router(remittances.router)
api_v1_router.include_router(reminders.router)

# Esportazione
__all__ = ["api_v1_router"]
