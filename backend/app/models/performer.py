"""
Modello SQLAlchemy per l'entità Performer
Progetto: Agency Manager (Gestionale Agenzia)

Rappresenta l'anagrafica degli artisti con il profilo fiscale
necessario all'emissione delle ricevute di prestazione occasionale.
"""


from __future__ import annotations
from typing import Optional

from sqlalchemy import CheckConstraint, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models import Base
from app.models.mixins import TimestampMixin, UUIDMixin


class Performer(Base, UUIDMixin, TimestampMixin):
    """
    Modello per l'anagrafica artisti.

    Solo gli artisti con contratto PRESTAZIONE_OCCASIONALE partecipano
    ai batch di pagamento. Un artista entra in un batch solo se tutti i
    campi del profilo fiscale sono valorizzati (vedi REQUIRED_PROFILE_FIELDS).

    Attributes:
        id: UUID primary key
        first_name: Nome
        last_name: Cognome
        stage_name: Nome d'arte
        tax_code: Codice Fiscale
        address: Indirizzo di residenza
        postal_code: CAP
        city: Città
        province: Sigla provincia
        iban: IBAN per i bonifici
        email: Email per il link di firma
        contract_type: Tipo di contratto
    """

    __tablename__ = "performers"

    first_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Nome",
    )

    last_name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        doc="Cognome",
    )

    stage_name: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
        doc="Nome d'arte",
    )

    # ------------------------------------------------------------
    # Profilo fiscale
    # ------------------------------------------------------------
    tax_code: Mapped[Optional[str]] = mapped_column(
        String(16),
        nullable=True,
        index=True,
        doc="Codice Fiscale",
    )

    address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, doc="Indirizzo")
    postal_code: Mapped[Optional[str]] = mapped_column(String(10), nullable=True, doc="CAP")
    city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True, doc="Città")
    province: Mapped[Optional[str]] = mapped_column(String(2), nullable=True, doc="Sigla provincia")

    iban: Mapped[Optional[str]] = mapped_column(
        String(34),
        nullable=True,
        doc="IBAN per i bonifici",
    )

    email: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Email a cui inviare il link di firma",
    )

    contract_type: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        default="PRESTAZIONE_OCCASIONALE",
        doc="Tipo di contratto dell'artista",
    )

    __table_args__ = (
        CheckConstraint(
            "contract_type IN ('PRESTAZIONE_OCCASIONALE', 'PARTITA_IVA', 'FULL_TIME', 'CHIAMATA')",
            name="ck_performers_contract_type",
        ),
    )

    @property
    def full_name(self) -> str:
        """Cognome e nome, come stampati su ricevute e distinte."""
        return f"{self.last_name} {self.first_name}".strip()

    def __repr__(self) -> str:
        return f"<Performer(id={self.id}, name={self.full_name}, contract={self.contract_type})>"
