"""
Tests per la numerazione progressiva di ricevute e batch.
"""

import asyncio
import uuid

from app.services.numbering_service import (
    ReceiptNumberingService,
    format_batch_code,
    format_receipt_code,
)


class TestCodeFormat:
    """Tests per il formato dei codici."""

    def test_receipt_code_uses_tax_code_prefix(self):
        assert format_receipt_code(2025, "rssmra85t10a562x", 7) == "PO-2025-RSSMRA-007"

    def test_receipt_code_falls_back_to_performer_id(self):
        performer_id = uuid.UUID("abcdef12-0000-0000-0000-000000000000")
        assert format_receipt_code(2025, None, 12, performer_id) == "PO-2025-ABCDEF-012"

    def test_batch_code(self):
        assert format_batch_code(2025, 3) == "BP-2025-03"


class TestReceiptNumbering:
    """Tests per il progressivo per artista e anno."""

    async def test_sequential_numbers_per_year(self, db, performer):
        service = ReceiptNumberingService()

        first = await service.next_number(db, performer.id, 2025)
        second = await service.next_number(db, performer.id, 2025)
        other_year = await service.next_number(db, performer.id, 2026)
        await db.commit()

        assert (first, second, other_year) == (1, 2, 1)
        assert await service.current(db, performer.id, 2025) == 2

    async def test_raise_to_never_lowers(self, db, performer):
        service = ReceiptNumberingService()
        await service.raise_to(db, performer.id, 2025, 10)
        await service.raise_to(db, performer.id, 2025, 4)
        await db.commit()

        assert await service.current(db, performer.id, 2025) == 10
        assert await service.next_number(db, performer.id, 2025) == 11

    async def test_concurrent_sessions_get_distinct_numbers(self, session_factory, performer):
        """Test transazioni concorrenti: nessun numero duplicato né saltato."""
        service = ReceiptNumberingService()

        async def take_number() -> int:
            async with session_factory() as session:
                number = await service.next_number(session, performer.id, 2025)
                await session.commit()
                return number

        numbers = await asyncio.gather(*(take_number() for _ in range(8)))

        assert sorted(numbers) == list(range(1, 9))

    async def test_batch_code_sequence(self, db):
        assert await ReceiptNumberingService().next_batch_code(db, 2025) == "BP-2025-01"
