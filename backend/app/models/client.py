"""
Modelli SQLAlchemy per committenti e locali
Progetto: Agency Manager (Gestionale Agenzia)

Anagrafiche di supporto alle agibilità. Il motore pagamenti le legge
soltanto: del committente interessa il flag di rischio incasso,
del locale il nome per causali e ricevute.
"""


from __future__ import annotations
from typing import Optional, TYPE_CHECKING, List

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.booking import Booking


class Client(Base, UUIDMixin, TimestampMixin):
    """
    Modello per l'anagrafica committenti.

    Attributes:
        id: UUID primary key
        name: Ragione sociale
        vat_number: Partita IVA
        at_risk: Committente a rischio incasso: gli artisti vengono pagati
            solo dopo che la fattura dell'agenzia è stata incassata

    Relationships:
        bookings: Agibilità del committente
    """

    __tablename__ = "clients"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        doc="Ragione sociale",
    )

    vat_number: Mapped[Optional[str]] = mapped_column(
        String(11),
        nullable=True,
        index=True,
        doc="Partita IVA (11 cifre)",
    )

    at_risk: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        doc="Committente a rischio incasso",
    )

    bookings: Mapped[List["Booking"]] = relationship(
        "Booking",
        back_populates="client",
        lazy="noload",
        doc="Agibilità del committente",
    )

    def __repr__(self) -> str:
        return f"<Client(id={self.id}, name={self.name}, at_risk={self.at_risk})>"


class Venue(Base, UUIDMixin, TimestampMixin):
    """Locale in cui si svolge l'evento."""

    __tablename__ = "venues"

    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
        doc="Nome del locale",
    )

    city: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        doc="Città",
    )

    def __repr__(self) -> str:
        return f"<Venue(id={self.id}, name={self.name})>"
