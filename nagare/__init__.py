from nagare.request import Request
from nagare.models import Response, ResponseState
from nagare.headers import Cardinality, HeaderField, Headers, bind_headers
from nagare.codecs import CodecRegistry, JsonCodec, TextCodec, default_codecs
from nagare.connection import HTTPTransport
from nagare.transport import MockResponse, MockTransport
from nagare.results import IOFailure, NoContent, Parsed, Unsupported
from nagare.errors import (
    NagareError,
    ContentDecodingError,
    HTTPResponseError,
    MissingTargetTypeError,
    ResponseClosedError,
    UnsupportedContentError,
    UnsupportedMediaTypeError,
)

__version__ = "0.1.0"

__all__ = [
    "Request",
    "Response",
    "ResponseState",
    "Cardinality",
    "HeaderField",
    "Headers",
    "bind_headers",
    "CodecRegistry",
    "JsonCodec",
    "TextCodec",
    "default_codecs",
    "HTTPTransport",
    "MockResponse",
    "MockTransport",
    "IOFailure",
    "NoContent",
    "Parsed",
    "Unsupported",
    "NagareError",
    "ContentDecodingError",
    "HTTPResponseError",
    "MissingTargetTypeError",
    "ResponseClosedError",
    "UnsupportedContentError",
    "UnsupportedMediaTypeError",
]
