"""Coordinador de escaneos: límite transaccional de cada validación en la puerta"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional, Union
from uuid import UUID
import logging

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError, OperationalError, InterfaceError
from redis.exceptions import RedisError

from app.core.config import settings
from shared.cache.redis_client import LockNotAcquired, cache_delete
from shared.database.models import ScanResult, TicketScan
from shared.utils.retry import retry_with_backoff
from services.ticket_validation.services.admission import (
    EventRecord,
    TicketRecord,
    Verdict,
    evaluate,
)
from services.ticket_validation.services.errors import StorageConflict, StorageUnavailable
from services.ticket_validation.services.scan_ledger import ScanLedger
from services.ticket_validation.services.ticket_locks import build_ticket_locks
from services.ticket_validation.services.ticket_store import TicketStore

logger = logging.getLogger(__name__)

# Errores de infraestructura: fallan el request sin escribir en el ledger
STORAGE_ERRORS = (OperationalError, InterfaceError, OSError, RedisError, LockNotAcquired)


@dataclass
class ScanOutcome:
    success: bool
    message: str
    result: ScanResult
    ticket_id: UUID
    event_id: UUID
    scanner_id: UUID
    scan_id: UUID
    scanned_at: datetime
    scan: Optional[TicketScan] = None  # Solo en admisiones válidas


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScanCoordinator:
    """
    Orquesta un escaneo completo:

    precondiciones (scanner, ticket, evento) -> lock por ticket ->
    leer historial -> evaluar -> append en el ledger -> commit.

    Cada llamada que pasa las precondiciones escribe exactamente una fila,
    válida o rechazada.
    """

    def __init__(
        self,
        store: TicketStore,
        ledger: ScanLedger,
        locks,
        conflict_retries: int = 3,
        on_scan_recorded: Optional[Callable[[ScanOutcome], Awaitable[None]]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.ledger = ledger
        self.locks = locks
        self.conflict_retries = conflict_retries
        self.on_scan_recorded = on_scan_recorded
        self.clock = clock

    async def submit_scan(
        self,
        db: AsyncSession,
        ticket_id: Union[str, UUID],
        scanner_id: Union[str, UUID],
        event_id: Union[str, UUID]
    ) -> ScanOutcome:
        """
        Validar un ticket en la puerta de un evento

        Raises:
            UnauthorizedScanner, TicketNotFound, EventNotFound: antes de escribir nada
            StorageUnavailable: falla de infraestructura, sin escritura parcial
        """
        try:
            scanner = await self.store.resolve_scanner(db, scanner_id)
            ticket, _ = await self.store.fetch_ticket(db, ticket_id)
            target_event = await self.store.get_event(db, event_id)

            ticket_uuid, event_uuid, scanner_uuid = ticket.id, target_event.id, scanner.id
            # Cerrar la transacción de lectura antes de esperar el lock
            await db.commit()
        except STORAGE_ERRORS as e:
            await self._rollback_quietly(db)
            logger.error(f"Storage no disponible leyendo precondiciones de escaneo: {e}", exc_info=True)
            raise StorageUnavailable("Storage unavailable, please retry")

        async def attempt():
            return await self._record(db, ticket_uuid, event_uuid, scanner_uuid)

        try:
            async with self.locks.hold(ticket_uuid):
                scan, verdict = await retry_with_backoff(
                    attempt,
                    max_retries=self.conflict_retries,
                    initial_delay=0.01,
                    max_delay=0.2,
                    exceptions=(StorageConflict,)
                )
        except StorageConflict:
            logger.error(f"Conflictos repetidos registrando escaneo de ticket {ticket_uuid}")
            raise StorageUnavailable("Could not record scan, please retry")
        except STORAGE_ERRORS as e:
            await self._rollback_quietly(db)
            logger.error(f"Storage no disponible registrando escaneo de ticket {ticket_uuid}: {e}", exc_info=True)
            raise StorageUnavailable("Storage unavailable, please retry")

        outcome = ScanOutcome(
            success=verdict.is_valid,
            message=verdict.message,
            result=verdict.result,
            ticket_id=ticket_uuid,
            event_id=event_uuid,
            scanner_id=scanner_uuid,
            scan_id=scan.id,
            scanned_at=scan.scanned_at,
            scan=scan if verdict.is_valid else None,
        )

        log = logger.info if verdict.is_valid else logger.warning
        log(f"Escaneo {verdict.result.value}: ticket={ticket_uuid} evento={event_uuid} scanner={scanner_uuid}")

        await self._notify(outcome)
        return outcome

    async def _record(
        self,
        db: AsyncSession,
        ticket_id: UUID,
        event_id: UUID,
        scanner_id: UUID
    ) -> tuple:
        """Leer historial, evaluar y escribir una fila en una sola transacción"""
        try:
            ticket, home_event = await self.store.fetch_ticket(db, ticket_id, for_update=True)
            history = await self.ledger.history(db, ticket.id)
            now = self.clock()

            verdict: Verdict = evaluate(
                TicketRecord.from_model(ticket),
                EventRecord.from_model(home_event),
                history,
                event_id,
                now,
            )

            scan = await self.ledger.append(db, ticket.id, event_id, scanner_id, verdict, now)
            await db.commit()
        except IntegrityError as e:
            # Otra admisión válida ganó la carrera (índice único parcial)
            await db.rollback()
            logger.warning(f"Conflicto concurrente en ticket {ticket_id}, re-evaluando: {e.orig}")
            raise StorageConflict("Concurrent admission recorded for this ticket")
        except Exception:
            await db.rollback()
            raise

        return scan, verdict

    async def _notify(self, outcome: ScanOutcome):
        if self.on_scan_recorded is None:
            return
        try:
            await self.on_scan_recorded(outcome)
        except Exception as e:
            logger.warning(f"Hook post-escaneo falló para evento {outcome.event_id}: {e}")

    @staticmethod
    async def _rollback_quietly(db: AsyncSession):
        try:
            await db.rollback()
        except STORAGE_ERRORS as e:
            logger.warning(f"Rollback falló: {e}")


def summary_cache_key(event_id) -> str:
    return f"scans:summary:{event_id}"


async def invalidate_scan_summary(outcome: ScanOutcome):
    """Invalidar el resumen cacheado del evento tras cada escaneo"""
    await cache_delete(summary_cache_key(outcome.event_id))


def build_scan_coordinator() -> ScanCoordinator:
    """Coordinador configurado desde settings"""
    return ScanCoordinator(
        store=TicketStore(settings.scanner_roles),
        ledger=ScanLedger(),
        locks=build_ticket_locks(
            settings.SCAN_LOCK_BACKEND,
            timeout=settings.SCAN_LOCK_TIMEOUT,
            expire=settings.SCAN_LOCK_EXPIRE,
        ),
        conflict_retries=settings.SCAN_CONFLICT_RETRIES,
        on_scan_recorded=invalidate_scan_summary,
    )
