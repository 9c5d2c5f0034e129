"""Status code helpers."""

from __future__ import annotations

NO_CONTENT = 204
NOT_MODIFIED = 304


def normalize_status(raw: int) -> int:
    """
    Clamp a transport status code to a valid value.

    Some transports report a malformed status line as a negative sentinel;
    those become 0 so they never look like real HTTP semantics.
    """
    return max(0, raw)


def has_no_body(status_code: int) -> bool:
    """Whether the status is defined to carry no message body (1xx, 204, 304)."""
    return 100 <= status_code < 200 or status_code in (NO_CONTENT, NOT_MODIFIED)


def is_success(status_code: int) -> bool:
    return 200 <= status_code < 300
