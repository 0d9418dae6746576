"""Ledger append-only de intentos de escaneo"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime
from uuid import UUID
import uuid

from shared.database.models import TicketScan
from services.ticket_validation.services.admission import ScanHistory, Verdict


class ScanLedger:
    """
    Única puerta de escritura a ticket_scans.

    Solo expone lectura del historial y append: no hay update ni delete.
    """

    async def history(self, db: AsyncSession, ticket_id: UUID) -> ScanHistory:
        """Historial completo del ticket (todos los eventos), ordenado por scanned_at"""
        stmt = (
            select(TicketScan)
            .where(TicketScan.order_id == ticket_id)
            .order_by(TicketScan.scanned_at.asc(), TicketScan.id.asc())
        )
        result = await db.execute(stmt)
        return ScanHistory.from_models(result.scalars().all())

    async def append(
        self,
        db: AsyncSession,
        ticket_id: UUID,
        event_id: UUID,
        scanner_id: UUID,
        verdict: Verdict,
        scanned_at: datetime
    ) -> TicketScan:
        """Agregar una fila y hacer flush (el commit lo hace el coordinador)"""
        scan = TicketScan(
            id=uuid.uuid4(),
            order_id=ticket_id,
            event_id=event_id,
            scanner_id=scanner_id,
            is_valid=verdict.is_valid,
            scan_result=verdict.result,
            notes=verdict.notes,
            scanned_at=scanned_at,
        )
        db.add(scan)
        await db.flush()
        return scan
