"""
Utility per data/ora
Progetto: Agency Manager (Gestionale Agenzia)

Tutti i timestamp sono salvati in UTC. Alcuni driver (SQLite) restituiscono
datetime naive: as_utc li interpreta come UTC prima dei confronti.
"""

import datetime


def utcnow() -> datetime.datetime:
    """Data/ora corrente in UTC (timezone-aware)."""
    return datetime.datetime.now(datetime.timezone.utc)


def as_utc(value: datetime.datetime | None) -> datetime.datetime | None:
    """Rende un datetime timezone-aware in UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


def is_expired(expires_at: datetime.datetime | None, now: datetime.datetime | None = None) -> bool:
    """True se la scadenza è già passata."""
    if expires_at is None:
        return False
    return as_utc(expires_at) < (now or utcnow())
