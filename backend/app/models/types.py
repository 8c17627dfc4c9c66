"""
Tipi di colonna personalizzati
Progetto: Agency Manager (Gestionale Agenzia)

Contiene:
- BookingSnapshot: riga di agibilità congelata dentro una ricevuta
- BookingSnapshotList: colonna JSON tipizzata che restituisce tuple di BookingSnapshot
"""

import uuid
from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from sqlalchemy import JSON
from sqlalchemy.types import TypeDecorator


class BookingSnapshot(BaseModel):
    """
    Agibilità inclusa in una ricevuta, fotografata alla generazione.

    Immutabile: modifiche successive all'agibilità di origine non
    alterano le ricevute già emesse.
    """

    model_config = ConfigDict(frozen=True)

    booking_id: uuid.UUID = Field(..., description="UUID dell'agibilità di origine")
    code: str = Field(..., description="Codice agibilità")
    venue: str = Field(..., description="Nome del locale")
    event_date: date = Field(..., description="Data dell'evento")
    gross_amount: Decimal = Field(..., description="Compenso lordo")
    net_amount: Decimal = Field(..., description="Compenso netto")
    withholding: Decimal = Field(..., description="Ritenuta d'acconto")


_snapshot_list_adapter = TypeAdapter(tuple[BookingSnapshot, ...])


class BookingSnapshotList(TypeDecorator):
    """
    Lista di BookingSnapshot salvata come JSON.

    - process_bind_param: sequenza di BookingSnapshot -> lista JSON
    - process_result_value: lista JSON -> tuple[BookingSnapshot, ...]
    """

    impl = JSON
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return _snapshot_list_adapter.dump_python(tuple(value), mode="json")

    def process_result_value(self, value, dialect):
        if value is None:
            return ()
        return _snapshot_list_adapter.validate_python(value)
