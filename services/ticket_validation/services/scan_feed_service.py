"""Consultas de solo lectura sobre el ledger de escaneos (dashboards de operadores)"""
from dataclasses import dataclass, field
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.orm import selectinload
from typing import Dict, List, Optional, Union
from uuid import UUID
import math

from shared.database.models import Order, ScanResult, TicketScan
from services.ticket_validation.services.errors import TicketNotFound
from services.ticket_validation.services.ticket_store import parse_uuid


@dataclass
class ScanPage:
    items: List[TicketScan]
    total_pages: int
    total: int
    page: int
    page_size: int


@dataclass
class ScanSummary:
    event_id: Optional[UUID]
    total: int
    admitted: int
    by_result: Dict[str, int] = field(default_factory=dict)


class ScanFeedService:
    """Feed paginado de escaneos por evento, más recientes primero"""

    def __init__(self, max_page_size: int = 100):
        self.max_page_size = max_page_size

    async def list_scans(
        self,
        db: AsyncSession,
        event_id: Union[str, UUID],
        page: int = 1,
        page_size: int = 10,
        valid_only: bool = False,
        scan_result: Optional[ScanResult] = None
    ) -> ScanPage:
        """
        Listar escaneos de un evento

        Una página fuera de rango devuelve items vacíos con total_pages correcto.
        """
        if page < 1:
            raise ValueError("page debe ser >= 1")
        if page_size < 1:
            raise ValueError("page_size debe ser >= 1")
        page_size = min(page_size, self.max_page_size)

        event_uuid = parse_uuid(event_id)
        if event_uuid is None:
            return ScanPage(items=[], total_pages=0, total=0, page=page, page_size=page_size)

        filters = [TicketScan.event_id == event_uuid]
        if valid_only:
            filters.append(TicketScan.is_valid.is_(True))
        if scan_result is not None:
            filters.append(TicketScan.scan_result == scan_result)

        count_stmt = select(func.count(TicketScan.id)).where(*filters)
        total = (await db.execute(count_stmt)).scalar() or 0

        stmt = (
            select(TicketScan)
            .options(
                selectinload(TicketScan.scanner),
                selectinload(TicketScan.order).selectinload(Order.buyer),
            )
            .where(*filters)
            .order_by(TicketScan.scanned_at.desc(), TicketScan.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        result = await db.execute(stmt)

        return ScanPage(
            items=list(result.scalars().all()),
            total_pages=math.ceil(total / page_size),
            total=total,
            page=page,
            page_size=page_size,
        )

    async def get_scan_summary(self, db: AsyncSession, event_id: Union[str, UUID]) -> ScanSummary:
        """Totales por resultado para un evento"""
        event_uuid = parse_uuid(event_id)
        by_result = {result.value: 0 for result in ScanResult}

        if event_uuid is not None:
            stmt = (
                select(TicketScan.scan_result, func.count(TicketScan.id))
                .where(TicketScan.event_id == event_uuid)
                .group_by(TicketScan.scan_result)
            )
            for scan_result, count in (await db.execute(stmt)).all():
                by_result[ScanResult(scan_result).value] = count

        return ScanSummary(
            event_id=event_uuid,
            total=sum(by_result.values()),
            admitted=by_result[ScanResult.VALID.value],
            by_result=by_result,
        )

    async def get_ticket_with_scans(self, db: AsyncSession, ticket_id: Union[str, UUID]) -> Order:
        """Ticket con evento, comprador y su historial completo de escaneos"""
        ticket_uuid = parse_uuid(ticket_id)
        if ticket_uuid is None:
            raise TicketNotFound("Ticket not found")

        stmt = (
            select(Order)
            .options(
                selectinload(Order.event),
                selectinload(Order.buyer),
                selectinload(Order.scans).selectinload(TicketScan.scanner),
            )
            .where(Order.id == ticket_uuid)
        )
        ticket = (await db.execute(stmt)).scalar_one_or_none()
        if ticket is None or ticket.event is None:
            raise TicketNotFound("Ticket not found")
        return ticket
