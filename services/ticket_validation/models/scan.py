"""Modelos Pydantic para validación de tickets"""
from pydantic import BaseModel, Field, model_validator
from typing import Dict, List, Optional
from datetime import datetime

from shared.database.models import ScanResult


class ScanRequest(BaseModel):
    event_id: str
    ticket_id: Optional[str] = None
    raw_code: Optional[str] = None  # Contenido crudo del QR / código de barras

    @model_validator(mode="after")
    def require_ticket_reference(self):
        if not (self.ticket_id or (self.raw_code and self.raw_code.strip())):
            raise ValueError("Se requiere ticket_id o raw_code")
        return self


class ScanAttemptResponse(BaseModel):
    """Fila del ledger de escaneos"""
    id: str
    order_id: str
    event_id: str
    scanner_id: str
    is_valid: bool
    scan_result: ScanResult
    notes: Optional[str] = None
    scanned_at: datetime
    scanner_name: Optional[str] = None
    buyer_name: Optional[str] = None

    @classmethod
    def from_model(cls, scan) -> "ScanAttemptResponse":
        scanner = scan.__dict__.get("scanner")
        order = scan.__dict__.get("order")
        buyer = order.__dict__.get("buyer") if order is not None else None
        return cls(
            id=str(scan.id),
            order_id=str(scan.order_id),
            event_id=str(scan.event_id),
            scanner_id=str(scan.scanner_id),
            is_valid=scan.is_valid,
            scan_result=scan.scan_result,
            notes=scan.notes,
            scanned_at=scan.scanned_at,
            scanner_name=(scanner.name or scanner.email) if scanner is not None else None,
            buyer_name=(buyer.name or buyer.email) if buyer is not None else None,
        )


class ScanResponse(BaseModel):
    success: bool
    message: str
    result: ScanResult
    ticket_id: str
    event_id: str
    scan_id: str  # Fila del ledger escrita, también en rechazos
    scan: Optional[ScanAttemptResponse] = None


class ScanFeedResponse(BaseModel):
    items: List[ScanAttemptResponse]
    total_pages: int
    total: int
    page: int
    page_size: int


class ScanSummaryResponse(BaseModel):
    event_id: Optional[str] = None
    total: int
    admitted: int
    by_result: Dict[str, int] = Field(default_factory=dict)


class TicketScanHistoryResponse(BaseModel):
    id: str
    event_id: str
    event_title: str
    event_ends_at: datetime
    buyer_name: Optional[str] = None
    quantity: int
    created_at: datetime
    admitted: bool
    scans: List[ScanAttemptResponse]
