"""
Tagged outcomes of Response.parse_outcome().

Callers can match on these instead of catching exceptions::

    match response.parse_outcome(Item):
        case Parsed(value=item): ...
        case NoContent(): ...
        case Unsupported(error=err) | IOFailure(error=err): ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Parsed:
    value: Any


@dataclass(frozen=True)
class NoContent:
    """The status carries no body (1xx, 204, 304)."""


@dataclass(frozen=True)
class Unsupported:
    """No codec for the content type, or no target type given."""

    error: Exception


@dataclass(frozen=True)
class IOFailure:
    """Reading or decoding the content failed."""

    error: Exception


ParseOutcome = Union[Parsed, NoContent, Unsupported, IOFailure]
