"""
Archivio su disco di ricevute PDF e giustificativi
Progetto: Agency Manager (Gestionale Agenzia)

Struttura:
    <receipts_dir>/<COGNOME_NOME>_<CF>/<YYYY-MM>/Ricevuta_<codice>.pdf
    <receipts_dir>/<COGNOME_NOME>_<CF>/<YYYY-MM>/giustificativi/<codice>_<n>_<uid>_<file>

Sul database si salva sempre il path relativo a receipts_dir.
"""

import logging
import os
import re
import uuid
from datetime import date
from typing import Optional

from app.core.config import settings
from app.core.exceptions import BusinessValidationError, NotFoundError
from app.models.payment import Receipt
from app.models.performer import Performer

logger = logging.getLogger(__name__)

_NAME_CLEAN_RE = re.compile(r"[^A-Z0-9_]")
_FILENAME_CLEAN_RE = re.compile(r"[^A-Za-z0-9._-]")


def performer_folder(performer: Performer) -> str:
    """Cartella dell'artista: COGNOME_NOME_CF (solo A-Z, 0-9 e underscore)."""
    name = f"{performer.last_name}_{performer.first_name}".upper()
    name = _NAME_CLEAN_RE.sub("", name.replace(" ", ""))
    tax_code = (performer.tax_code or "NOCODE").upper()
    return f"{name}_{tax_code}"


def month_folder(receipt: Receipt) -> str:
    """Mese di riferimento (YYYY-MM) dalla prima agibilità della ricevuta."""
    reference: Optional[date] = receipt.bookings[0].event_date if receipt.bookings else None
    if reference is None:
        reference = receipt.issued_at.date() if receipt.issued_at else date.today()
    return f"{reference.year}-{reference.month:02d}"


class ReceiptStorage:
    """Scrittura e lettura dei file delle ricevute sotto una cartella base."""

    def __init__(self, base_dir: Optional[str] = None) -> None:
        self.base_dir = base_dir or settings.receipts_dir

    def _absolute(self, relative_path: str) -> str:
        base = os.path.abspath(self.base_dir)
        full = os.path.abspath(os.path.join(base, relative_path))
        if os.path.commonpath([base, full]) != base:
            raise BusinessValidationError(f"Percorso non valido: {relative_path}")
        return full

    def _write(self, relative_path: str, content: bytes) -> str:
        full = self._absolute(relative_path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        with open(full, "wb") as f:
            f.write(content)
        return relative_path

    def receipt_dir(self, receipt: Receipt, performer: Performer) -> str:
        return os.path.join(performer_folder(performer), month_folder(receipt))

    def save_receipt_pdf(self, receipt: Receipt, performer: Performer, pdf_bytes: bytes) -> str:
        """
        Salva il PDF della ricevuta.

        Returns:
            str: Path relativo da salvare su receipt.pdf_path
        """
        relative = os.path.join(self.receipt_dir(receipt, performer), f"Ricevuta_{receipt.code}.pdf")
        self._write(relative, pdf_bytes)
        logger.debug("PDF ricevuta %s salvato in %s", receipt.code, relative)
        return relative

    def supporting_document_path(
        self,
        receipt: Receipt,
        performer: Performer,
        index: int,
        filename: str,
        code: Optional[str] = None,
    ) -> str:
        """
        Path relativo di un giustificativo.

        Il suffisso casuale rende unico ogni file: due firme concorrenti
        non scrivono mai sullo stesso path.
        """
        safe_name = _FILENAME_CLEAN_RE.sub("_", os.path.basename(filename)) or "documento"
        return os.path.join(
            self.receipt_dir(receipt, performer),
            "giustificativi",
            f"{code or receipt.code}_{index}_{uuid.uuid4().hex[:8]}_{safe_name}",
        )

    def write(self, relative_path: str, content: bytes) -> str:
        """Scrive un file nell'archivio e restituisce il path relativo."""
        return self._write(relative_path, content)

    def delete(self, relative_path: Optional[str]) -> None:
        """Rimuove un file archiviato (nessun errore se non esiste)."""
        if self.exists(relative_path):
            os.remove(self._absolute(relative_path))
            logger.debug("File rimosso dall'archivio: %s", relative_path)

    def read(self, relative_path: str) -> bytes:
        """Legge un file archiviato."""
        full = self._absolute(relative_path)
        if not os.path.isfile(full):
            raise NotFoundError(f"File non trovato: {relative_path}")
        with open(full, "rb") as f:
            return f.read()

    def exists(self, relative_path: Optional[str]) -> bool:
        if not relative_path:
            return False
        return os.path.isfile(self._absolute(relative_path))
