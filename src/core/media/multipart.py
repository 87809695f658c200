"""
multipart/form-data decoding for upload requests.

Byte-level framing of each part is delegated to python-multipart's
streaming parser, the same component Starlette uses for request.form().
This module splits the body on the delimiter and interprets part
headers, which lets it keep the lenient contract the upload clients
rely on:

- a part the parser rejects is dropped; the parts around it survive
- parts without a form-data Content-Disposition or without a name are
  dropped, never reported as errors
- a part is a file only if it has both a filename and its own
  Content-Type; anything else is a plain text field
- repeated names overwrite earlier ones (one file per field name)

Payload sizes are measured on raw bytes, so binary content survives
untouched. Boundary text that happens to occur inside a file payload is
not protected against.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from python_multipart.exceptions import MultipartParseError
from python_multipart.multipart import MultipartParser, parse_options_header

from .errors import MissingBoundaryError
from .models import ParsedForm, UploadedFile

logger = logging.getLogger(__name__)


@dataclass
class _Part:
    """Accumulates one part while the parser streams through it."""
    headers: dict[bytes, bytes] = field(default_factory=dict)
    data: bytearray = field(default_factory=bytearray)
    complete: bool = False


def extract_boundary(content_type: Optional[str]) -> str:
    """
    Return the boundary token from a Content-Type header value.

    Raises MissingBoundaryError if the header is absent or carries no
    boundary parameter.
    """
    _, options = parse_options_header(content_type or "")
    boundary = options.get(b"boundary", b"")
    if not boundary:
        raise MissingBoundaryError()
    return boundary.decode("latin-1")


def parse_multipart(body: bytes, content_type: Optional[str]) -> ParsedForm:
    """
    Decode a complete multipart/form-data body into fields and files.

    The boundary is checked before any byte of the body is looked at.
    An empty or whitespace-only body yields an empty form.

    The body is split on the delimiter first and every part is framed by
    its own parser, so a damaged part is dropped without taking its
    neighbours with it. A preamble before the first delimiter and an
    epilogue after the closing one are ignored; a body missing the
    closing delimiter still yields its last part.
    """
    boundary = extract_boundary(content_type)
    form = ParsedForm()

    if not body.strip():
        return form

    delimiter = b"--" + boundary.encode("latin-1")
    start = body.find(delimiter)
    if start < 0:
        logger.warning("Multipart body contains no boundary delimiter")
        return form

    closed = False
    for segment in body[start + len(delimiter):].split(delimiter):
        if segment.startswith(b"--"):
            closed = True
            break
        if not segment.strip():
            continue

        try:
            parts = _frame_segment(segment, delimiter, boundary)
        except MultipartParseError as e:
            logger.warning(
                "Dropping malformed multipart part",
                extra={"error": str(e)},
            )
            continue

        for part in parts:
            _collect_part(part, form)

    if not closed:
        logger.warning(
            "Multipart body has no closing delimiter",
            extra={"fields": list(form.fields), "files": list(form.files)},
        )

    return form


def _frame_segment(segment: bytes, delimiter: bytes, boundary: str) -> list[_Part]:
    """
    Run python-multipart over a single part.

    The segment is wrapped back into a one-part body. A segment cut off
    by the end of the request gets the CRLF the next delimiter would
    have carried.
    """
    if not segment.endswith(b"\r\n"):
        segment += b"\r\n"

    parts: list[_Part] = []
    header_field = bytearray()
    header_value = bytearray()

    def on_part_begin() -> None:
        parts.append(_Part())

    def on_header_field(data: bytes, start: int, end: int) -> None:
        header_field.extend(data[start:end])

    def on_header_value(data: bytes, start: int, end: int) -> None:
        header_value.extend(data[start:end])

    def on_header_end() -> None:
        parts[-1].headers[bytes(header_field).strip().lower()] = bytes(header_value).strip()
        header_field.clear()
        header_value.clear()

    def on_part_data(data: bytes, start: int, end: int) -> None:
        parts[-1].data.extend(data[start:end])

    def on_part_end() -> None:
        parts[-1].complete = True

    parser = MultipartParser(
        boundary,
        callbacks={
            "on_part_begin": on_part_begin,
            "on_part_data": on_part_data,
            "on_part_end": on_part_end,
            "on_header_field": on_header_field,
            "on_header_value": on_header_value,
            "on_header_end": on_header_end,
        },
    )
    parser.write(delimiter + segment + delimiter + b"--\r\n")
    parser.finalize()

    return [part for part in parts if part.complete]


def _collect_part(part: _Part, form: ParsedForm) -> None:
    """Classify a finished part and store it on the form."""
    disposition, params = parse_options_header(part.headers.get(b"content-disposition", b""))
    if disposition.lower() != b"form-data":
        logger.debug("Dropping part without form-data disposition")
        return

    name = _decode_param(params.get(b"name"))
    if not name:
        logger.debug("Dropping form-data part without a name")
        return

    filename = _decode_param(params.get(b"filename"))
    mime_type = part.headers.get(b"content-type", b"").decode("latin-1")

    if filename and mime_type:
        form.files[name] = UploadedFile(
            original_filename=filename,
            mime_type=mime_type,
            raw_bytes=bytes(part.data),
        )
    else:
        form.fields[name] = part.data.decode("utf-8", errors="replace")


def _decode_param(value: Optional[bytes]) -> str:
    # parse_options_header hands back the raw header bytes; clients send UTF-8
    if not value:
        return ""
    return value.decode("utf-8", errors="replace")
