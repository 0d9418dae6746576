"""Evaluador de admisión: decide si un ticket puede entrar a un evento.

Función pura, sin I/O ni reloj: recibe el ticket, su evento, el historial
de escaneos y el instante actual, y devuelve siempre el mismo veredicto
para las mismas entradas. La garantía de "una sola admisión válida" la
da el coordinador al serializar leer historial -> evaluar -> escribir.

Orden de prioridad (el primero que aplica gana):
    1. WRONG_EVENT      el ticket es de otro evento
    2. ALREADY_SCANNED  ya existe un escaneo válido para este evento
    3. EXPIRED          el evento ya terminó
    4. VALID
"""
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Iterator, Optional, Tuple
from uuid import UUID

from shared.database.models import ScanResult


def as_utc(value: datetime) -> datetime:
    """Normalizar a UTC (algunos drivers devuelven datetimes naive)"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_timestamp(value: datetime) -> str:
    return as_utc(value).strftime("%Y-%m-%d %H:%M:%S UTC")


@dataclass(frozen=True)
class TicketRecord:
    id: UUID
    event_id: UUID

    @classmethod
    def from_model(cls, order) -> "TicketRecord":
        return cls(id=order.id, event_id=order.event_id)


@dataclass(frozen=True)
class EventRecord:
    id: UUID
    end_date_time: datetime

    @classmethod
    def from_model(cls, event) -> "EventRecord":
        return cls(id=event.id, end_date_time=as_utc(event.end_date_time))


@dataclass(frozen=True)
class ScanRecord:
    """Vista tipada e inmutable de una fila del ledger"""
    id: UUID
    order_id: UUID
    event_id: UUID
    is_valid: bool
    scan_result: ScanResult
    scanned_at: datetime

    @classmethod
    def from_model(cls, scan) -> "ScanRecord":
        return cls(
            id=scan.id,
            order_id=scan.order_id,
            event_id=scan.event_id,
            is_valid=bool(scan.is_valid),
            scan_result=ScanResult(scan.scan_result),
            scanned_at=as_utc(scan.scanned_at),
        )


class ScanHistory:
    """Secuencia ordenada (por scanned_at) de escaneos de un ticket"""

    def __init__(self, scans: Iterable[ScanRecord] = ()):
        self._scans: Tuple[ScanRecord, ...] = tuple(
            sorted(scans, key=lambda scan: (scan.scanned_at, str(scan.id)))
        )

    @classmethod
    def from_models(cls, scans) -> "ScanHistory":
        return cls(ScanRecord.from_model(scan) for scan in scans)

    def __iter__(self) -> Iterator[ScanRecord]:
        return iter(self._scans)

    def __len__(self) -> int:
        return len(self._scans)

    def __getitem__(self, index: int) -> ScanRecord:
        return self._scans[index]

    def for_event(self, event_id: UUID) -> "ScanHistory":
        return ScanHistory(scan for scan in self._scans if scan.event_id == event_id)

    def valid_only(self) -> "ScanHistory":
        return ScanHistory(scan for scan in self._scans if scan.is_valid)

    def valid_admission(self, event_id: UUID) -> Optional[ScanRecord]:
        """Primer escaneo válido para el evento, si existe"""
        for scan in self._scans:
            if scan.is_valid and scan.event_id == event_id:
                return scan
        return None


@dataclass(frozen=True)
class Verdict:
    result: ScanResult
    notes: str
    message: str
    reference_scan: Optional[ScanRecord] = None

    @property
    def is_valid(self) -> bool:
        return self.result is ScanResult.VALID


def evaluate(
    ticket: TicketRecord,
    event: EventRecord,
    prior_scans: ScanHistory,
    event_id_being_scanned: UUID,
    now: datetime,
) -> Verdict:
    """Producir el veredicto de admisión para un escaneo"""
    if ticket.event_id != event_id_being_scanned:
        return Verdict(
            result=ScanResult.WRONG_EVENT,
            notes=f"Ticket is for event {ticket.event_id}, but scanned at event {event_id_being_scanned}",
            message="Invalid ticket: This ticket is for a different event",
        )

    previous = prior_scans.valid_admission(event_id_being_scanned)
    if previous is not None:
        return Verdict(
            result=ScanResult.ALREADY_SCANNED,
            notes=f"Ticket already scanned at {previous.scanned_at.isoformat()}",
            message=f"Ticket already scanned at {format_timestamp(previous.scanned_at)}",
            reference_scan=previous,
        )

    ends_at = as_utc(event.end_date_time)
    if as_utc(now) > ends_at:
        return Verdict(
            result=ScanResult.EXPIRED,
            notes=f"Event ended at {ends_at.isoformat()}",
            message=f"Event already ended at {format_timestamp(ends_at)}",
        )

    return Verdict(
        result=ScanResult.VALID,
        notes="Valid ticket entry",
        message="Ticket validated successfully!",
    )
