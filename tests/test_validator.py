import pytest

from chat_proxy.core.exceptions import InvalidInput
from chat_proxy.services.validator import MAX_MESSAGE_CHARS, parse_body, validate_chat_payload

MISSING = 'Request body must include a "message" string.'
BLANK = '"message" must not be blank.'
TOO_LONG = '"message" must be 1000 characters or fewer.'


@pytest.mark.parametrize(
    "payload, expected",
    [
        ({}, MISSING),
        ({"msg": "hi"}, MISSING),
        ({"message": None}, MISSING),
        ({"message": 7}, MISSING),
        ({"message": {"text": "hi"}}, MISSING),
        ({"message": ""}, MISSING),
        ([], MISSING),
        ("hello", MISSING),
        ({"message": " "}, BLANK),
        ({"message": "\n\t  \r"}, BLANK),
        ({"message": "a" * 1001}, TOO_LONG),
        ({"message": " " + "a" * 1001 + " "}, TOO_LONG),
    ],
)
def test_invalid_payloads(payload, expected):
    with pytest.raises(InvalidInput) as exc:
        validate_chat_payload(payload)
    assert exc.value.message == expected
    assert exc.value.status_code == 400


def test_valid_message_is_trimmed():
    assert validate_chat_payload({"message": "  hello \n"}) == "hello"


def test_length_is_measured_after_trimming():
    padded = "   " + "b" * MAX_MESSAGE_CHARS + "   "
    assert validate_chat_payload({"message": padded}) == "b" * MAX_MESSAGE_CHARS


def test_parse_body():
    assert parse_body(b'{"message": "hi"}') == {"message": "hi"}
    assert parse_body(b"") == {}
    assert parse_body(b"  ") == {}
    with pytest.raises(InvalidInput):
        parse_body(b"{oops")
    with pytest.raises(InvalidInput):
        parse_body(b"\xff\xff")
