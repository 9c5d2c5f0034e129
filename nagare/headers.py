from __future__ import annotations

import enum
from collections.abc import Callable, Iterable, Iterator
from typing import Any, TypeVar

from .errors import ProtocolError


def _sanitize_header(name: str, value: str) -> tuple[str, str]:
    """
    Sanitize header name and value to prevent HTTP header injection (CRLF injection).
    Strips CR, LF, and null bytes from both name and value.
    """
    clean_name = name.replace("\r", "").replace("\n", "").replace("\x00", "")
    clean_value = value.replace("\r", "").replace("\n", "").replace("\x00", "")
    return clean_name, clean_value


def canonicalize_headers(
    default_headers: Iterable[tuple[str, str]],
    user_headers: dict[str, str] | None,
    order: Iterable[str],
) -> list[tuple[str, str]]:
    """
    Merge user headers with defaults while respecting a deterministic order.
    User headers override defaults with the same (case-insensitive) name.
    Headers missing from the order list are appended in insertion order.
    """
    merged: dict[str, tuple[str, str]] = {}
    for name, value in default_headers:
        name, value = _sanitize_header(name, value)
        merged[name.lower()] = (name, value)
    if user_headers:
        for name, value in user_headers.items():
            name, value = _sanitize_header(name, value)
            merged[name.lower()] = (name, value)

    ordered: list[tuple[str, str]] = []
    for name in order:
        key = name.lower()
        if key in merged:
            ordered.append(merged.pop(key))
    ordered.extend(merged.values())
    return ordered


class Cardinality(enum.Enum):
    """How many received values a typed header field keeps."""

    SCALAR = "scalar"  # first value only
    ARRAY = "array"  # all values, as a tuple
    LIST = "list"  # all values, as a list


class HeaderField:
    """
    Declares a typed attribute on a Headers subclass bound from a response header.

    The header name defaults to the attribute name with underscores turned
    into dashes (``content_type`` -> ``content-type``).
    """

    def __init__(
        self,
        name: str | None = None,
        cardinality: Cardinality = Cardinality.SCALAR,
        convert: Callable[[str], Any] = str,
    ) -> None:
        self.name = name
        self.cardinality = cardinality
        self.convert = convert
        self.attr = ""

    def __set_name__(self, owner: type, attr: str) -> None:
        self.attr = attr
        if self.name is None:
            self.name = attr.replace("_", "-")

    def __get__(self, instance: Any, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return instance.__dict__.get(self.attr)

    def __set__(self, instance: Any, value: Any) -> None:
        instance.__dict__[self.attr] = value

    def bind(self, instance: Headers, value: str) -> None:
        current = instance.__dict__.get(self.attr)
        if self.cardinality is Cardinality.SCALAR and current is not None:
            # Later values of a scalar field are kept untyped only.
            return
        try:
            converted = self.convert(value)
        except (TypeError, ValueError) as exc:
            raise ProtocolError(f"Invalid {self.name} header value: {value!r}") from exc
        if self.cardinality is Cardinality.SCALAR:
            instance.__dict__[self.attr] = converted
        elif self.cardinality is Cardinality.ARRAY:
            instance.__dict__[self.attr] = (current or ()) + (converted,)
        else:
            if current is None:
                current = instance.__dict__[self.attr] = []
            current.append(converted)

    def __repr__(self) -> str:
        return f"<HeaderField {self.name!r} {self.cardinality.value}>"


class Headers:
    """
    Ordered, case-insensitive header multimap.

    Subclasses declare HeaderField attributes to get typed access to
    specific headers; every header, typed or not, stays available through
    get(). The name -> field table is built once per class.
    """

    _fields: dict[str, HeaderField] = {}

    accept = HeaderField()
    etag = HeaderField()
    age = HeaderField(convert=int)
    cache_control = HeaderField()
    content_encoding = HeaderField()
    content_length = HeaderField(convert=int)
    content_type = HeaderField()
    last_modified = HeaderField()
    location = HeaderField()
    set_cookie = HeaderField(cardinality=Cardinality.LIST)
    www_authenticate = HeaderField(cardinality=Cardinality.LIST)

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls._fields = cls._build_field_table()

    @classmethod
    def _build_field_table(cls) -> dict[str, HeaderField]:
        table: dict[str, HeaderField] = {}
        # Walk base classes first so subclasses can redeclare a header.
        for klass in reversed(cls.__mro__):
            for value in vars(klass).values():
                if isinstance(value, HeaderField):
                    assert value.name is not None
                    table[value.name.lower()] = value
        return table

    def __init__(self, headers: Iterable[tuple[str, str]] = ()) -> None:
        self._raw: list[tuple[str, str]] = []
        self._values: dict[str, list[str]] = {}
        for name, value in headers:
            self.add(name, value)

    def add(self, name: str, value: str) -> None:
        name, value = _sanitize_header(name, value)
        key = name.lower()
        self._raw.append((name, value))
        self._values.setdefault(key, []).append(value)
        field = self._fields.get(key)
        if field is not None:
            field.bind(self, value)

    def get(self, name: str) -> list[str]:
        """All values received for ``name``, in receipt order."""
        return list(self._values.get(name.lower(), ()))

    def get_first(self, name: str, default: str | None = None) -> str | None:
        values = self._values.get(name.lower())
        return values[0] if values else default

    def items(self) -> list[tuple[str, str]]:
        """Raw (name, value) pairs in receipt order with original casing."""
        return list(self._raw)

    def names(self) -> list[str]:
        return list(self._values)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self._raw!r}>"


Headers._fields = Headers._build_field_table()

H = TypeVar("H", bound=Headers)


def bind_headers(raw_headers: Iterable[tuple[str, str]], container: H) -> H:
    """Add transport header pairs, in receipt order, to ``container``."""
    for name, value in raw_headers:
        container.add(name, value)
    return container
