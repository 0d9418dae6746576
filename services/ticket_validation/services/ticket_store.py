"""Lecturas del ticket store: identidad del scanner, ticket y evento"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Iterable, Optional, Tuple, Union
from uuid import UUID
import logging

from shared.database.models import User, Event, Order
from services.ticket_validation.services.errors import (
    UnauthorizedScanner,
    TicketNotFound,
    EventNotFound,
)

logger = logging.getLogger(__name__)


def parse_uuid(value: Union[str, UUID]) -> Optional[UUID]:
    """UUID o None si el identificador está mal formado"""
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value).strip())
    except (ValueError, AttributeError):
        return None


class TicketStore:
    """Acceso de solo lectura a usuarios, eventos y tickets (orders)"""

    def __init__(self, scanner_roles: Iterable[str]):
        self.scanner_roles = frozenset(scanner_roles)

    async def resolve_scanner(self, db: AsyncSession, scanner_id: Union[str, UUID]) -> User:
        """Resolver el scanner a un usuario con rol habilitado"""
        scanner_uuid = parse_uuid(scanner_id)
        if scanner_uuid is None:
            raise UnauthorizedScanner("Invalid scanner ID")

        result = await db.execute(select(User).where(User.id == scanner_uuid))
        scanner = result.scalar_one_or_none()

        if scanner is None:
            raise UnauthorizedScanner("Invalid scanner ID")

        if scanner.role not in self.scanner_roles:
            logger.warning(f"Usuario {scanner.id} con rol '{scanner.role}' intentó escanear")
            raise UnauthorizedScanner(f"User role '{scanner.role}' is not allowed to scan tickets")

        return scanner

    async def fetch_ticket(
        self,
        db: AsyncSession,
        ticket_id: Union[str, UUID],
        for_update: bool = False
    ) -> Tuple[Order, Event]:
        """
        Obtener ticket y su evento.

        Con for_update=True toma un row lock sobre el ticket (PostgreSQL) que
        se mantiene hasta el commit/rollback de la transacción.
        """
        ticket_uuid = parse_uuid(ticket_id)
        if ticket_uuid is None:
            raise TicketNotFound("Ticket not found")

        stmt = select(Order).where(Order.id == ticket_uuid)
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        ticket = result.scalar_one_or_none()

        if ticket is None:
            raise TicketNotFound("Ticket not found")

        event = await db.get(Event, ticket.event_id)
        if event is None:
            # Ticket huérfano: se trata igual que un ticket inexistente
            logger.error(f"Ticket {ticket.id} referencia un evento inexistente {ticket.event_id}")
            raise TicketNotFound("Ticket not found")

        return ticket, event

    async def get_event(self, db: AsyncSession, event_id: Union[str, UUID]) -> Event:
        event_uuid = parse_uuid(event_id)
        event = await db.get(Event, event_uuid) if event_uuid else None
        if event is None:
            raise EventNotFound("Event not found")
        return event
