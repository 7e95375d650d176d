"""
Multipart decoding for IDS responses.

Peer connectors answer with a ``multipart/form-data`` (or ``multipart/mixed``)
document holding a ``header`` part and an optional ``payload`` part. Outbound
messages are encoded by httpx (``files=``); responses are read with
python-multipart's streaming parser, the same parser Starlette uses for
inbound form data.
"""

from __future__ import annotations

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from dsconnector.modules.ids.errors import MultipartDecodeError


class _PartCollector:
    """Accumulates python-multipart callbacks into ``{name: text}``."""

    def __init__(self) -> None:
        self.parts: dict[str, str] = {}
        self._headers: dict[bytes, bytes] = {}
        self._header_field = b""
        self._header_value = b""
        self._data = bytearray()

    def callbacks(self) -> dict[str, object]:
        return {
            "on_part_begin": self.on_part_begin,
            "on_part_data": self.on_part_data,
            "on_part_end": self.on_part_end,
            "on_header_field": self.on_header_field,
            "on_header_value": self.on_header_value,
            "on_header_end": self.on_header_end,
        }

    def on_part_begin(self) -> None:
        self._headers = {}
        self._data = bytearray()

    def on_header_field(self, data: bytes, start: int, end: int) -> None:
        self._header_field += data[start:end]

    def on_header_value(self, data: bytes, start: int, end: int) -> None:
        self._header_value += data[start:end]

    def on_header_end(self) -> None:
        self._headers[self._header_field.strip().lower()] = self._header_value.strip()
        self._header_field = b""
        self._header_value = b""

    def on_part_data(self, data: bytes, start: int, end: int) -> None:
        self._data.extend(data[start:end])

    def on_part_end(self) -> None:
        _, disposition = parse_options_header(self._headers.get(b"content-disposition", b""))
        raw_name = disposition.get(b"name")
        if not raw_name:
            raise MultipartDecodeError("Multipart part without a name")
        _, content_params = parse_options_header(self._headers.get(b"content-type", b""))
        charset = content_params.get(b"charset", b"utf-8").decode("latin-1")
        try:
            text = bytes(self._data).decode(charset)
        except (LookupError, UnicodeDecodeError) as exc:
            raise MultipartDecodeError(f"Cannot decode multipart part {raw_name!r}") from exc
        self.parts[raw_name.decode("utf-8")] = text


def decode_multipart(body: bytes, content_type: str) -> dict[str, str]:
    """
    Decode a multipart document into a mapping of part name to text.

    Raises:
        MultipartDecodeError: The content type is not multipart, has no
            boundary, or the body cannot be parsed.
    """
    mime_type, params = parse_options_header(content_type)
    if not mime_type.startswith(b"multipart/"):
        raise MultipartDecodeError(f"Expected a multipart response, got {content_type!r}")
    boundary = params.get(b"boundary")
    if not boundary:
        raise MultipartDecodeError("Multipart content type without boundary")

    collector = _PartCollector()
    parser = MultipartParser(boundary, collector.callbacks())
    try:
        parser.write(body)
        parser.finalize()
    except MultipartParseError as exc:
        raise MultipartDecodeError(f"Malformed multipart body: {exc}") from exc
    return collector.parts
