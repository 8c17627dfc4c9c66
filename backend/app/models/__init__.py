"""
Modelli Database SQLAlchemy
Progetto: Agency Manager (Gestionale Agenzia)

Import centralizzato di tutti i modelli per Alembic e usage generico.

Anagrafiche e agibilità (lette dal motore pagamenti, mai modificate):
- Client: Committenti (con flag a rischio incasso)
- Venue: Locali
- Performer: Artisti con profilo fiscale e tipo contratto
- Booking / BookingPerformer: Agibilità e compensi per artista

Motore pagamenti prestazioni occasionali:
- PaymentBatch: Batch di generazione
- Receipt: Ricevute di prestazione occasionale
- ReceiptCounter: Progressivo ricevute per artista/anno
- Remittance: Distinte bonifici
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class per tutti i modelli SQLAlchemy."""
    pass


from app.models.client import Client, Venue
from app.models.performer import Performer
from app.models.booking import Booking, BookingPerformer
from app.models.payment import PaymentBatch, Receipt, ReceiptCounter, Remittance

# Esportazione di tutti i modelli per Alembic
__all__ = [
    "Base",
    "Client",
    "Venue",
    "Performer",
    "Booking",
    "BookingPerformer",
    "PaymentBatch",
    "Receipt",
    "ReceiptCounter",
    "Remittance",
]
