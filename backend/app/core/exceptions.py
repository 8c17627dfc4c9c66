"""
Eccezioni Custom per l'applicazione.
Progetto: Agency Manager (Gestionale Agenzia)

Definisce eccezioni specifiche del dominio per una gestione
centralizzata degli errori.

Le esclusioni di idoneità (artisti con dati incompleti) e i fallimenti di
consegna (PDF, file, email) non sono eccezioni: compaiono nel riepilogo
della generazione batch.

NOTA: BusinessValidationError è volutamente distinta da pydantic.ValidationError.
- pydantic.ValidationError: errori di formato/tipo nei dati di input (gestiti da FastAPI → 422)
- BusinessValidationError: violazioni delle regole di business logic (gestiti dal nostro handler → 422)
"""

from typing import Any, Dict, Optional

__all__ = [
    "AppException",
    "NotFoundError",
    "BusinessValidationError",
    "ValidationError",       # alias di BusinessValidationError
    "ConflictError",
    "AlreadySignedError",
    "LinkExpiredError",
    "NoEligiblePerformersError",
]


class AppException(Exception):
    """
    Base exception per l'applicazione.

    Tutte le eccezioni custom ereditano da questa classe base.

    Attributes:
        status_code: HTTP status code da restituire al client
        error_code: Identificativo univoco dell'errore per il frontend
        detail: Messaggio di errore leggibile per l'utente
        extra: Dizionario con dati aggiuntivi per il frontend
    """

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        detail: str,
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Inizializza l'eccezione.

        Args:
            detail: Messaggio di errore dettagliato
            error_code: Identificativo univoco (default: quello di classe)
            extra: Dati aggiuntivi da passare al frontend (default: None)
        """
        self.detail = detail
        self.error_code = error_code if error_code is not None else self.error_code
        self.extra = extra
        self.status_code = self.__class__.status_code
        super().__init__(detail)


class NotFoundError(AppException):
    """
    Eccezione sollevata quando una risorsa non viene trovata.

    Utilizzata anche per i token di firma inesistenti.
    """

    status_code: int = 404
    error_code: str = "RESOURCE_NOT_FOUND"

    def __init__(
        self,
        detail: str = "Risorsa non trovata",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class BusinessValidationError(ValueError, AppException):
    """
    Eccezione sollevata per violazioni delle regole di business logic.

    Eredita da ValueError per essere catturata dai validatori Pydantic.
    Nessuna modifica di stato avviene quando viene sollevata.

    Esempi di utilizzo:
        - "Nome e cognome non corrispondono ai dati registrati"
        - "Il rimborso spese richiede almeno un giustificativo"
        - "Devi accettare le condizioni per firmare"
    """

    status_code: int = 422
    error_code: str = "BUSINESS_VALIDATION_ERROR"

    def __init__(
        self,
        detail: str = "Validazione dati fallita",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        # Chiama AppException.__init__ direttamente per evitare ValueError
        AppException.__init__(self, detail, error_code, extra)


# Alias per compatibilità
ValidationError = BusinessValidationError


class ConflictError(AppException):
    """
    Eccezione sollevata per conflitti di stato.

    Utilizzata quando un'operazione non può essere eseguita
    a causa dello stato corrente della risorsa (già firmata,
    non ancora pagabile, già inserita in distinta).
    """

    status_code: int = 409
    error_code: str = "CONFLICT_STATE"

    def __init__(
        self,
        detail: str = "Conflitto di stato",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class AlreadySignedError(ConflictError):
    """La prestazione è già stata firmata: il link non accetta una seconda firma."""

    error_code: str = "ALREADY_SIGNED"

    def __init__(
        self,
        detail: str = "Prestazione già firmata",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class LinkExpiredError(ConflictError):
    """Il link di firma è scaduto senza che la prestazione sia stata firmata."""

    status_code: int = 410
    error_code: str = "LINK_EXPIRED"

    def __init__(
        self,
        detail: str = "Il link è scaduto",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)


class NoEligiblePerformersError(AppException):
    """
    Nessun artista idoneo per la generazione del batch.

    Unico caso in cui la generazione fallisce per intero senza errori
    del database; il dettaglio degli artisti esclusi è in `extra`.
    """

    status_code: int = 422
    error_code: str = "NO_ELIGIBLE_PERFORMERS"

    def __init__(
        self,
        detail: str = "Nessuna prestazione pronta per la generazione",
        error_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(detail, error_code, extra)
