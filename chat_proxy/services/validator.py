from __future__ import annotations

import json
from typing import Any

from chat_proxy.core.exceptions import InvalidInput

MAX_MESSAGE_CHARS = 1000


def parse_body(raw: bytes) -> Any:
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidInput("Request body must be valid JSON.") from exc


def validate_chat_payload(payload: Any) -> str:
    """Return the trimmed visitor message or raise InvalidInput.

    Checks run in order and stop at the first failure. An empty string is
    reported the same way as a missing field.
    """
    message = payload.get("message") if isinstance(payload, dict) else None
    if not message or not isinstance(message, str):
        raise InvalidInput('Request body must include a "message" string.')

    trimmed = message.strip()
    if not trimmed:
        raise InvalidInput('"message" must not be blank.')
    if len(trimmed) > MAX_MESSAGE_CHARS:
        raise InvalidInput(f'"message" must be {MAX_MESSAGE_CHARS} characters or fewer.')
    return trimmed
