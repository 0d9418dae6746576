"""Rutas de escaneo y validación de tickets en la puerta"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Optional
import logging

from app.core.config import settings
from shared.cache.redis_client import cache_get, cache_set
from shared.database.models import ScanResult
from shared.database.session import get_db
from shared.auth.dependencies import get_current_scanner
from shared.utils.qr_payload import extract_ticket_id
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from services.ticket_validation.models.scan import (
    ScanRequest,
    ScanResponse,
    ScanAttemptResponse,
    ScanFeedResponse,
    ScanSummaryResponse,
    TicketScanHistoryResponse,
)
from services.ticket_validation.services.errors import (
    UnauthorizedScanner,
    TicketNotFound,
    EventNotFound,
    StorageUnavailable,
)
from services.ticket_validation.services.scan_feed_service import ScanFeedService
from services.ticket_validation.services.scan_service import (
    ScanCoordinator,
    build_scan_coordinator,
    summary_cache_key,
)

logger = logging.getLogger(__name__)

router = APIRouter()

_coordinator: Optional[ScanCoordinator] = None


def get_scan_coordinator() -> ScanCoordinator:
    '''Coordinador compartido por el proceso (los locks locales viven en él)'''
    global _coordinator
    if _coordinator is None:
        _coordinator = build_scan_coordinator()
    return _coordinator


def get_scan_feed() -> ScanFeedService:
    return ScanFeedService(max_page_size=settings.SCAN_FEED_MAX_PAGE_SIZE)


@router.post("", response_model=ScanResponse)
@limiter.limit(RATE_LIMITS["validation"])  # Scanners validando tickets
async def submit_scan(
    request: Request,
    payload: ScanRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_scanner),
    coordinator: ScanCoordinator = Depends(get_scan_coordinator)
):
    """
    Escanear un ticket en la puerta de un evento

    El scanner es el usuario autenticado. Rechazos de negocio (otro evento,
    ya escaneado, evento terminado) responden 200 con success=false y
    quedan registrados en el ledger.
    """
    ticket_id = payload.ticket_id or extract_ticket_id(payload.raw_code)

    try:
        outcome = await coordinator.submit_scan(
            db=db,
            ticket_id=ticket_id,
            scanner_id=current_user["user_id"],
            event_id=payload.event_id
        )
    except UnauthorizedScanner as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    except (TicketNotFound, EventNotFound) as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except StorageUnavailable as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    return ScanResponse(
        success=outcome.success,
        message=outcome.message,
        result=outcome.result,
        ticket_id=str(outcome.ticket_id),
        event_id=str(outcome.event_id),
        scan_id=str(outcome.scan_id),
        scan=ScanAttemptResponse.from_model(outcome.scan) if outcome.scan is not None else None
    )


@router.get("/events/{event_id}", response_model=ScanFeedResponse)
@limiter.limit(RATE_LIMITS["feed"])
async def list_event_scans(
    request: Request,
    event_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.SCAN_FEED_DEFAULT_PAGE_SIZE, ge=1),
    valid_only: bool = False,
    scan_result: Optional[ScanResult] = None,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_scanner),
    feed: ScanFeedService = Depends(get_scan_feed)
):
    """Feed de escaneos del evento, más recientes primero"""
    scan_page = await feed.list_scans(
        db,
        event_id,
        page=page,
        page_size=page_size,
        valid_only=valid_only,
        scan_result=scan_result
    )
    return ScanFeedResponse(
        items=[ScanAttemptResponse.from_model(scan) for scan in scan_page.items],
        total_pages=scan_page.total_pages,
        total=scan_page.total,
        page=scan_page.page,
        page_size=scan_page.page_size
    )


@router.get("/events/{event_id}/summary", response_model=ScanSummaryResponse)
@limiter.limit(RATE_LIMITS["feed"])
async def get_event_scan_summary(
    request: Request,
    event_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_scanner),
    feed: ScanFeedService = Depends(get_scan_feed)
):
    """Resumen de escaneos por resultado (cacheado en Redis)"""
    cache_key = summary_cache_key(event_id)
    try:
        cached = await cache_get(cache_key)
        if cached:
            return ScanSummaryResponse(**cached)
    except Exception as e:
        logger.warning(f"Cache no disponible leyendo {cache_key}: {e}")

    summary = await feed.get_scan_summary(db, event_id)
    response = ScanSummaryResponse(
        event_id=str(summary.event_id) if summary.event_id else None,
        total=summary.total,
        admitted=summary.admitted,
        by_result=summary.by_result
    )

    try:
        await cache_set(cache_key, response.model_dump(), expire=settings.SCAN_SUMMARY_CACHE_TTL)
    except Exception as e:
        logger.warning(f"Cache no disponible guardando {cache_key}: {e}")

    return response


@router.get("/tickets/{ticket_id}", response_model=TicketScanHistoryResponse)
@limiter.limit(RATE_LIMITS["feed"])
async def get_ticket_scans(
    request: Request,
    ticket_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_scanner),
    feed: ScanFeedService = Depends(get_scan_feed)
):
    """Ticket con su historial completo de escaneos"""
    try:
        ticket = await feed.get_ticket_with_scans(db, ticket_id)
    except TicketNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    buyer = ticket.buyer
    return TicketScanHistoryResponse(
        id=str(ticket.id),
        event_id=str(ticket.event_id),
        event_title=ticket.event.title,
        event_ends_at=ticket.event.end_date_time,
        buyer_name=(buyer.name or buyer.email) if buyer is not None else None,
        quantity=ticket.quantity,
        created_at=ticket.created_at,
        admitted=any(scan.is_valid and scan.event_id == ticket.event_id for scan in ticket.scans),
        scans=[ScanAttemptResponse.from_model(scan) for scan in ticket.scans]
    )
