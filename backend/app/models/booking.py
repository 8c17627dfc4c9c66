"""
Modelli SQLAlchemy per le Agibilità
Progetto: Agency Manager (Gestionale Agenzia)

Contiene:
- Booking: Agibilità (evento datato presso un locale per un committente)
- BookingPerformer: Compenso di un artista per un'agibilità
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, List

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin

if TYPE_CHECKING:
    from app.models.client import Client, Venue
    from app.models.performer import Performer


class Booking(Base, UUIDMixin, TimestampMixin):
    """
    Modello per le agibilità.

    Attributes:
        code: Codice agibilità
        event_date: Data dell'evento
        status: Stato (COMPLETATA = evento concluso, pagabile agli artisti)
        invoice_status: Stato della fattura al committente (PAGATA = incassata)
        client_id: Committente
        venue_id: Locale

    Relationships:
        client: Committente
        venue: Locale
        performers: Compensi per artista
    """

    __tablename__ = "bookings"

    code: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        unique=True,
        doc="Codice agibilità",
    )

    event_date: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        doc="Data dell'evento",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="BOZZA",
        doc="Stato dell'agibilità",
    )

    invoice_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="DA_FATTURARE",
        doc="Stato della fattura al committente",
    )

    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("clients.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    venue_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("venues.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    client: Mapped["Client"] = relationship(
        "Client",
        back_populates="bookings",
        lazy="joined",
    )

    venue: Mapped["Venue"] = relationship(
        "Venue",
        lazy="joined",
    )

    performers: Mapped[List["BookingPerformer"]] = relationship(
        "BookingPerformer",
        back_populates="booking",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("ix_bookings_status_date", "status", "event_date"),
        CheckConstraint(
            "status IN ('BOZZA', 'DA_COMPLETARE', 'PRONTA', 'INVIATA_INPS', 'COMPLETATA', 'ANNULLATA')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "invoice_status IN ('DA_FATTURARE', 'FATTURATA', 'PAGATA')",
            name="ck_bookings_invoice_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, code={self.code}, date={self.event_date}, status={self.status})>"


class BookingPerformer(Base, UUIDMixin, TimestampMixin):
    """
    Compenso di un artista per una singola agibilità.

    Attributes:
        gross_amount: Compenso lordo
        net_amount: Compenso netto
        withholding: Ritenuta d'acconto
    """

    __tablename__ = "booking_performers"

    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    performer_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("performers.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    gross_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, doc="Compenso lordo")
    net_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, doc="Compenso netto")
    withholding: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, doc="Ritenuta d'acconto")

    booking: Mapped["Booking"] = relationship(
        "Booking",
        back_populates="performers",
    )

    performer: Mapped["Performer"] = relationship(
        "Performer",
        lazy="joined",
    )

    __table_args__ = (
        UniqueConstraint("booking_id", "performer_id", name="uq_booking_performers_booking_performer"),
        CheckConstraint("net_amount >= 0", name="ck_booking_performers_net_positive"),
    )

    def __repr__(self) -> str:
        return f"<BookingPerformer(booking_id={self.booking_id}, performer_id={self.performer_id}, net={self.net_amount})>"
