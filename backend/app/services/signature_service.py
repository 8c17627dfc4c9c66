"""
Service Layer per la firma delle ricevute (endpoint pubblico)
Progetto: Agency Manager (Gestionale Agenzia)

Il token nel link è l'unica autorizzazione. Controlli e transizione di
stato avvengono nella stessa transazione: l'UPDATE è condizionato allo
stato firmabile, per cui di due firme concorrenti sullo stesso token
ne riesce esattamente una.
"""

import asyncio
import base64
import binascii
import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy import and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.clock import as_utc, is_expired, utcnow
from app.core.config import settings
from app.core.exceptions import (
    AlreadySignedError,
    BusinessValidationError,
    ConflictError,
    LinkExpiredError,
    NotFoundError,
)
from app.models import Receipt
from app.schemas.payment import (
    SIGNABLE_STATUSES,
    SIGNED_STATUSES,
    PaymentTiming,
    ReceiptStatus,
    SignatureConfirmation,
    SignatureForm,
    SignatureOptions,
    SignatureRequest,
)
from app.services.amount_service import advance_allowed, compute_receipt_amounts, max_reimbursement
from app.services.numbering_service import ReceiptNumberingService, format_receipt_code
from app.services.storage_service import ReceiptStorage

logger = logging.getLogger(__name__)


def _normalize_name(value: Optional[str]) -> str:
    return " ".join((value or "").split()).casefold()


def payment_due_date(signed_on: date, timing: PaymentTiming) -> date:
    """Data di pagamento prevista: subito se anticipato, altrimenti dopo i giorni standard."""
    if timing == PaymentTiming.ANTICIPATO:
        return signed_on
    return signed_on + timedelta(days=settings.standard_payment_days)


class SignatureService:
    """Lettura e firma della ricevuta tramite token."""

    def __init__(
        self,
        storage: Optional[ReceiptStorage] = None,
        numbering: Optional[ReceiptNumberingService] = None,
    ) -> None:
        self.storage = storage or ReceiptStorage()
        self.numbering = numbering or ReceiptNumberingService()

    async def _get_by_token(
        self,
        db: AsyncSession,
        token: str,
        for_update: bool = False,
    ) -> Receipt:
        query = select(Receipt).where(Receipt.signature_token == token)
        if for_update:
            query = query.with_for_update(of=Receipt)

        result = await db.execute(query)
        receipt = result.unique().scalar_one_or_none()
        if not receipt:
            logger.warning("Token di firma non valido")
            raise NotFoundError("Link di firma non valido")
        return receipt

    def _ensure_signable(self, receipt: Receipt) -> None:
        """
        Verifica che la ricevuta sia ancora firmabile.

        Raises:
            AlreadySignedError: Ricevuta già firmata
            LinkExpiredError: Token scaduto o ricevuta SCADUTA
            ConflictError: Stato non firmabile
        """
        status = ReceiptStatus(receipt.status)
        if status in SIGNED_STATUSES:
            raise AlreadySignedError(
                "Ricevuta già firmata",
                extra={"signed_at": receipt.signed_at.isoformat() if receipt.signed_at else None},
            )
        if status == ReceiptStatus.SCADUTA or is_expired(receipt.token_expires_at):
            raise LinkExpiredError("Il link di firma è scaduto")
        if status not in SIGNABLE_STATUSES:
            raise ConflictError(f"La ricevuta in stato '{status.value}' non può essere firmata")

    async def get_form(self, db: AsyncSession, token: str) -> SignatureForm:
        """
        Dati del modulo di firma.

        Una ricevuta già firmata restituisce solo l'avviso con la data
        di firma, anche a link scaduto.
        """
        receipt = await self._get_by_token(db, token)

        if ReceiptStatus(receipt.status) in SIGNED_STATUSES:
            return SignatureForm(
                already_signed=True,
                code=receipt.code,
                signed_at=receipt.signed_at,
                status=receipt.status,
            )

        self._ensure_signable(receipt)

        performer = receipt.performer
        original_net = receipt.original_net_amount
        return SignatureForm(
            already_signed=False,
            code=receipt.code,
            status=receipt.status,
            number=receipt.number,
            year=receipt.year,
            performer_first_name=performer.first_name,
            performer_last_name=performer.last_name,
            tax_code=performer.tax_code,
            iban=performer.iban,
            bookings=list(receipt.bookings),
            gross_amount=receipt.original_gross_amount,
            net_amount=original_net,
            withholding=receipt.original_withholding,
            token_expires_at=as_utc(receipt.token_expires_at),
            company_name=settings.company_name,
            options=SignatureOptions(
                advance_allowed=advance_allowed(original_net),
                advance_fee=settings.advance_fee,
                advance_ceiling=settings.advance_ceiling,
                max_reimbursement=max_reimbursement(original_net),
                withholding_rate=settings.withholding_rate,
                standard_payment_days=settings.standard_payment_days,
            ),
        )

    def _validate_request(self, receipt: Receipt, data: SignatureRequest) -> None:
        if not data.accepted:
            raise BusinessValidationError("È necessario accettare la ricevuta per firmarla")
        if not data.first_name or not data.last_name:
            raise BusinessValidationError("Nome e cognome del firmatario sono obbligatori")

        performer = receipt.performer
        if (
            _normalize_name(data.first_name) != _normalize_name(performer.first_name)
            or _normalize_name(data.last_name) != _normalize_name(performer.last_name)
        ):
            raise BusinessValidationError(
                "Nome e cognome non corrispondono all'intestatario della ricevuta"
            )

    def _decode_documents(self, data: SignatureRequest) -> list[tuple[str, bytes]]:
        documents = []
        for doc in data.documents:
            content = doc.content_base64
            if "," in content and content.startswith("data:"):
                content = content.split(",", 1)[1]
            try:
                documents.append((doc.filename, base64.b64decode(content, validate=True)))
            except (binascii.Error, ValueError):
                raise BusinessValidationError(f"Giustificativo non valido: {doc.filename}")
        return documents

    async def _discard_files(self, paths: list[str]) -> None:
        """Rimuove i giustificativi scritti da una firma non andata a buon fine."""
        for path in paths:
            await asyncio.to_thread(self.storage.delete, path)

    async def _check_number_available(
        self,
        db: AsyncSession,
        receipt: Receipt,
        number: int,
    ) -> None:
        result = await db.execute(
            select(Receipt.id).where(
                and_(
                    Receipt.performer_id == receipt.performer_id,
                    Receipt.year == receipt.year,
                    Receipt.number == number,
                    Receipt.id != receipt.id,
                )
            )
        )
        if result.first() is not None:
            raise ConflictError(
                f"Il numero ricevuta {number} è già utilizzato per l'anno {receipt.year}"
            )

    async def sign(
        self,
        db: AsyncSession,
        token: str,
        data: SignatureRequest,
        client_ip: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> SignatureConfirmation:
        """
        Firma la ricevuta e ricalcola gli importi.

        Args:
            db: Sessione database
            token: Token del link di firma
            data: Scelte e dati del firmatario
            client_ip: IP del firmatario (audit)
            user_agent: User agent del firmatario (audit)

        Returns:
            SignatureConfirmation: importi finali e data di pagamento

        Raises:
            NotFoundError: Token inesistente
            AlreadySignedError: Ricevuta già firmata (anche in caso di corsa)
            LinkExpiredError: Link scaduto
            BusinessValidationError: Dati mancanti o non validi
            ConflictError: Numero ricevuta già utilizzato
        """
        receipt = await self._get_by_token(db, token, for_update=True)
        self._ensure_signable(receipt)
        self._validate_request(receipt, data)

        amounts = compute_receipt_amounts(
            receipt.original_net_amount,
            data.reimbursement,
            data.payment_timing,
        )
        if amounts.reimbursement > 0 and not data.documents:
            raise BusinessValidationError(
                "Il rimborso spese richiede almeno un giustificativo"
            )
        documents = self._decode_documents(data) if amounts.reimbursement > 0 else []

        number = receipt.number
        code = receipt.code
        if data.receipt_number is not None and data.receipt_number != receipt.number:
            await self._check_number_available(db, receipt, data.receipt_number)
            number = data.receipt_number
            code = format_receipt_code(
                receipt.year, receipt.performer.tax_code, number, receipt.performer_id
            )

        now = utcnow()
        target_status = (
            ReceiptStatus.FIRMATA if settings.signature_requires_approval else ReceiptStatus.PAGABILE
        )
        due_date = payment_due_date(now.date(), amounts.payment_timing)

        # Path univoci decisi prima dell'UPDATE; i file si scrivono solo se la firma vince
        pending_documents = [
            (self.storage.supporting_document_path(receipt, receipt.performer, i, name, code=code), content)
            for i, (name, content) in enumerate(documents, start=1)
        ]
        document_paths = [path for path, _ in pending_documents]
        previous_code = receipt.code
        previous_pdf_path = receipt.pdf_path

        stmt = (
            update(Receipt)
            .where(
                and_(
                    Receipt.id == receipt.id,
                    Receipt.signature_token == token,
                    Receipt.status.in_([s.value for s in SIGNABLE_STATUSES]),
                )
            )
            .values(
                number=number,
                code=code,
                status=target_status.value,
                payment_timing=amounts.payment_timing.value,
                reimbursement=amounts.reimbursement,
                advance_fee=amounts.advance_fee,
                net_amount=amounts.net_amount,
                gross_amount=amounts.gross_amount,
                withholding=amounts.withholding,
                total_paid=amounts.total_paid,
                signed_at=now,
                signer_first_name=data.first_name,
                signer_last_name=data.last_name,
                signer_ip=client_ip,
                signer_user_agent=(user_agent or "")[:500] or None,
                supporting_documents=document_paths,
                payment_due_date=due_date,
                # Il PDF archiviato riporta numero e importi pre-firma: va rigenerato
                pdf_path=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )

        receipt_id = receipt.id
        written: list[str] = []
        try:
            result = await db.execute(stmt)
            if result.rowcount != 1:
                await db.rollback()
                logger.warning("Firma concorrente respinta per la ricevuta %s", receipt_id)
                raise AlreadySignedError("Ricevuta già firmata")

            if number > receipt.number:
                await self.numbering.raise_to(db, receipt.performer_id, receipt.year, number)

            for path, content in pending_documents:
                written.append(path)
                await asyncio.to_thread(self.storage.write, path, content)

            await db.commit()
        except IntegrityError as e:
            await db.rollback()
            await self._discard_files(written)
            logger.error("Errore di integrità durante la firma della ricevuta %s: %s", receipt_id, e)
            raise ConflictError(f"Il numero ricevuta {number} è già utilizzato")
        except OSError:
            await db.rollback()
            await self._discard_files(written)
            logger.error("Salvataggio giustificativi fallito per la ricevuta %s", receipt_id, exc_info=True)
            raise

        if previous_pdf_path and code != previous_code:
            await asyncio.to_thread(self.storage.delete, previous_pdf_path)

        await db.refresh(receipt)
        logger.info(
            "Ricevuta %s firmata: %s, totale %s, pagamento %s",
            receipt.code,
            receipt.status,
            receipt.total_paid,
            receipt.payment_due_date,
        )

        return SignatureConfirmation(
            code=receipt.code,
            number=receipt.number,
            status=receipt.status,
            payment_timing=receipt.payment_timing,
            gross_amount=receipt.gross_amount,
            net_amount=receipt.net_amount,
            withholding=receipt.withholding,
            reimbursement=receipt.reimbursement,
            advance_fee=receipt.advance_fee,
            total_paid=receipt.total_paid,
            payment_due_date=receipt.payment_due_date,
            signed_at=as_utc(receipt.signed_at),
        )

