import uuid
from datetime import datetime, timedelta, timezone

from shared.database.models import ScanResult
from services.ticket_validation.services.admission import (
    EventRecord,
    ScanHistory,
    ScanRecord,
    TicketRecord,
    as_utc,
    evaluate,
)

NOW = datetime(2026, 5, 1, 20, 0, tzinfo=timezone.utc)


def make_scan(order_id, event_id, is_valid, result, minutes_ago):
    return ScanRecord(
        id=uuid.uuid4(),
        order_id=order_id,
        event_id=event_id,
        is_valid=is_valid,
        scan_result=result,
        scanned_at=NOW - timedelta(minutes=minutes_ago),
    )


def setup_ticket(ends_at=NOW + timedelta(hours=3)):
    event = EventRecord(id=uuid.uuid4(), end_date_time=ends_at)
    ticket = TicketRecord(id=uuid.uuid4(), event_id=event.id)
    return ticket, event


def test_fresh_ticket_is_valid():
    ticket, event = setup_ticket()

    verdict = evaluate(ticket, event, ScanHistory(), event.id, NOW)

    assert verdict.result is ScanResult.VALID
    assert verdict.is_valid
    assert verdict.notes == "Valid ticket entry"
    assert verdict.reference_scan is None


def test_wrong_event_names_the_real_event():
    ticket, event = setup_ticket()
    other_event_id = uuid.uuid4()

    verdict = evaluate(ticket, event, ScanHistory(), other_event_id, NOW)

    assert verdict.result is ScanResult.WRONG_EVENT
    assert not verdict.is_valid
    assert str(ticket.event_id) in verdict.notes
    assert str(other_event_id) in verdict.notes
    assert verdict.message == "Invalid ticket: This ticket is for a different event"


def test_wrong_event_wins_over_expired():
    ticket, event = setup_ticket(ends_at=NOW - timedelta(days=1))

    verdict = evaluate(ticket, event, ScanHistory(), uuid.uuid4(), NOW)

    assert verdict.result is ScanResult.WRONG_EVENT


def test_already_scanned_references_first_valid_scan():
    ticket, event = setup_ticket()
    first = make_scan(ticket.id, event.id, True, ScanResult.VALID, minutes_ago=30)
    history = ScanHistory([
        make_scan(ticket.id, event.id, False, ScanResult.ALREADY_SCANNED, minutes_ago=10),
        first,
    ])

    verdict = evaluate(ticket, event, history, event.id, NOW)

    assert verdict.result is ScanResult.ALREADY_SCANNED
    assert verdict.reference_scan == first
    assert first.scanned_at.isoformat() in verdict.notes
    assert verdict.message.startswith("Ticket already scanned at 2026-05-01 19:30:00")


def test_already_scanned_wins_over_expired():
    ticket, event = setup_ticket(ends_at=NOW - timedelta(minutes=5))
    history = ScanHistory([make_scan(ticket.id, event.id, True, ScanResult.VALID, minutes_ago=60)])

    verdict = evaluate(ticket, event, history, event.id, NOW)

    assert verdict.result is ScanResult.ALREADY_SCANNED


def test_rejected_scans_do_not_block_admission():
    ticket, event = setup_ticket()
    history = ScanHistory([
        make_scan(ticket.id, event.id, False, ScanResult.EXPIRED, minutes_ago=5),
        make_scan(ticket.id, uuid.uuid4(), False, ScanResult.WRONG_EVENT, minutes_ago=3),
    ])

    verdict = evaluate(ticket, event, history, event.id, NOW)

    assert verdict.result is ScanResult.VALID


def test_valid_scan_at_another_event_is_not_an_admission_here():
    ticket, event = setup_ticket()
    history = ScanHistory([make_scan(ticket.id, uuid.uuid4(), True, ScanResult.VALID, minutes_ago=5)])

    verdict = evaluate(ticket, event, history, event.id, NOW)

    assert verdict.result is ScanResult.VALID


def test_expired_event():
    ends_at = NOW - timedelta(days=1)
    ticket, event = setup_ticket(ends_at=ends_at)

    verdict = evaluate(ticket, event, ScanHistory(), event.id, NOW)

    assert verdict.result is ScanResult.EXPIRED
    assert ends_at.isoformat() in verdict.notes
    assert verdict.message == "Event already ended at 2026-04-30 20:00:00 UTC"


def test_scan_exactly_at_end_time_is_still_valid():
    ticket, event = setup_ticket(ends_at=NOW)

    assert evaluate(ticket, event, ScanHistory(), event.id, NOW).result is ScanResult.VALID


def test_naive_datetimes_are_treated_as_utc():
    ticket, event = setup_ticket(ends_at=datetime(2026, 5, 1, 19, 0))

    verdict = evaluate(ticket, event, ScanHistory(), event.id, NOW)

    assert verdict.result is ScanResult.EXPIRED
    assert as_utc(datetime(2026, 5, 1, 19, 0)).tzinfo is timezone.utc


def test_evaluate_is_deterministic():
    ticket, event = setup_ticket()
    history = ScanHistory([make_scan(ticket.id, event.id, True, ScanResult.VALID, minutes_ago=1)])

    verdicts = {evaluate(ticket, event, history, event.id, NOW) for _ in range(5)}

    assert len(verdicts) == 1


def test_history_is_ordered_and_filterable():
    order_id, event_a, event_b = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    late = make_scan(order_id, event_a, False, ScanResult.ALREADY_SCANNED, minutes_ago=1)
    early = make_scan(order_id, event_a, True, ScanResult.VALID, minutes_ago=20)
    other = make_scan(order_id, event_b, False, ScanResult.WRONG_EVENT, minutes_ago=10)

    history = ScanHistory([late, early, other])

    assert list(history) == [early, other, late]
    assert list(history.for_event(event_a)) == [early, late]
    assert list(history.valid_only()) == [early]
    assert history.valid_admission(event_a) == early
    assert history.valid_admission(event_b) is None
    assert len(history) == 3
