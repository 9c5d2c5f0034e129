"""
Response codecs: turn decoded body bytes into Python objects.

A codec is picked by the media type of the response Content-Type.
"""

from __future__ import annotations

import dataclasses
import json
from typing import Any, BinaryIO, Protocol

from .utils import parse_media_type

_PLAIN_TYPES = (dict, list, str, int, float, bool)


class Codec(Protocol):
    def can_handle(self, content_type: str | None) -> bool: ...

    def parse(self, stream: BinaryIO, target_type: Any, charset: str) -> Any: ...


def _convert(data: Any, target_type: Any) -> Any:
    if target_type is object or target_type is Any:
        return data
    if target_type in _PLAIN_TYPES:
        if not isinstance(data, target_type):
            raise TypeError(
                f"Expected {target_type.__name__}, got {type(data).__name__}"
            )
        return data
    if not isinstance(data, dict):
        raise TypeError(
            f"Cannot build {getattr(target_type, '__name__', target_type)} "
            f"from {type(data).__name__}"
        )
    if dataclasses.is_dataclass(target_type):
        names = {f.name for f in dataclasses.fields(target_type) if f.init}
        # Unknown keys are ignored so new server fields don't break old clients.
        return target_type(**{k: v for k, v in data.items() if k in names})
    return target_type(**data)


class JsonCodec:
    """application/json and any ``+json`` structured syntax suffix."""

    def can_handle(self, content_type: str | None) -> bool:
        media_type, _ = parse_media_type(content_type)
        if media_type is None:
            return False
        return media_type == "application/json" or media_type.endswith("+json")

    def parse(self, stream: BinaryIO, target_type: Any, charset: str) -> Any:
        raw = stream.read()
        return _convert(json.loads(raw.decode(charset)), target_type)


class TextCodec:
    """Any text/* media type, parsed to str."""

    def can_handle(self, content_type: str | None) -> bool:
        media_type, _ = parse_media_type(content_type)
        return media_type is not None and media_type.startswith("text/")

    def parse(self, stream: BinaryIO, target_type: Any, charset: str) -> Any:
        if target_type not in (str, object):
            raise TypeError(f"text content can only be parsed as str, not {target_type!r}")
        return stream.read().decode(charset, errors="replace")


class CodecRegistry:
    """Ordered codec lookup; the most recently registered codec wins."""

    def __init__(self, codecs: list[Codec] | None = None) -> None:
        self._codecs: list[Codec] = list(codecs or [])

    def register(self, codec: Codec) -> CodecRegistry:
        self._codecs.insert(0, codec)
        return self

    def codec_for(self, content_type: str | None) -> Codec | None:
        for codec in self._codecs:
            if codec.can_handle(content_type):
                return codec
        return None

    def __contains__(self, content_type: object) -> bool:
        return isinstance(content_type, str) and self.codec_for(content_type) is not None

    def __len__(self) -> int:
        return len(self._codecs)


def default_codecs() -> CodecRegistry:
    return CodecRegistry([JsonCodec(), TextCodec()])
