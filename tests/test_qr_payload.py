import pytest

from shared.utils.qr_payload import extract_ticket_id

TICKET_ID = "5b8e6a1c-3f2d-4c1e-9a77-0d2f4b6c8e10"


@pytest.mark.parametrize(
    "raw",
    [
        f'{{"id": "{TICKET_ID}", "event": "x"}}',
        f'{{"ticketId": "{TICKET_ID}"}}',
        f'{{"orderId": "{TICKET_ID}"}}',
    ],
)
def test_json_payloads(raw):
    assert extract_ticket_id(raw) == TICKET_ID


def test_json_field_priority():
    assert extract_ticket_id('{"orderId": "c", "ticketId": "b", "id": "a"}') == "a"


def test_json_without_known_fields_falls_back_to_raw():
    assert extract_ticket_id('{"foo":"bar"}') == '{"foo":"bar"}'


def test_url_suffix():
    assert extract_ticket_id(f"https://tickets.example.com/tickets/{TICKET_ID}") == TICKET_ID
    assert extract_ticket_id(f"https://tickets.example.com/tickets/{TICKET_ID}/?src=qr") == TICKET_ID


def test_text_with_spaces_is_not_treated_as_url():
    assert extract_ticket_id("ticket de a/b") == "ticket de a/b"


def test_raw_fallback_is_stripped():
    assert extract_ticket_id(f"  {TICKET_ID}\n") == TICKET_ID


def test_empty_code():
    with pytest.raises(ValueError):
        extract_ticket_id("   ")
