from __future__ import annotations

from urllib.parse import urlparse


def parse_url(url: str):
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https"):
        raise ValueError("Only http and https schemes are supported")
    host = parsed.hostname or ""
    port = parsed.port or (443 if parsed.scheme == "https" else 80)
    path = parsed.path or "/"
    if parsed.query:
        path = f"{path}?{parsed.query}"
    return parsed, host, port, path


def format_byte_count(count: int) -> str:
    """Render a byte count for humans: "1 byte", "18,000 bytes"."""
    if count == 1:
        return "1 byte"
    return f"{count:,} bytes"


def parse_media_type(content_type: str | None) -> tuple[str | None, dict[str, str]]:
    """
    Split a Content-Type value into its lower-cased media type and parameters.

    >>> parse_media_type("Application/JSON; charset=UTF-8")
    ('application/json', {'charset': 'UTF-8'})
    """
    if not content_type:
        return None, {}
    media_type, _, rest = content_type.partition(";")
    params: dict[str, str] = {}
    for part in rest.split(";"):
        name, sep, value = part.partition("=")
        if sep:
            params[name.strip().lower()] = value.strip().strip('"')
    return media_type.strip().lower() or None, params
