"""
=============================================================================
MULTIPART/FORM-DATA PARSER
=============================================================================

Decodes a fully buffered multipart body into text fields and file payloads.
This is how the "add book" and "register" forms deliver a cover image or a
profile photo together with ordinary fields in one request.

=============================================================================
MULTIPART BODY ANATOMY
=============================================================================

    Content-Type: multipart/form-data; boundary=XyZ

    ┌─────────────────────────────────────────────────────────────────────┐
    │                     MULTIPART BODY STRUCTURE                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   (preamble, usually empty)                                          │
    │   --XyZ\r\n                                 ← delimiter              │
    │   Content-Disposition: form-data; name="title"\r\n                  │
    │   \r\n                                      ← end of part headers    │
    │   Dune\r\n                                  ← content + framing CRLF │
    │   --XyZ\r\n                                                          │
    │   Content-Disposition: form-data; name="image"; filename="d.png"\r\n│
    │   Content-Type: image/png\r\n                                        │
    │   \r\n                                                               │
    │   \x89PNG\r\n\x1a\n....(binary)....\r\n     ← raw bytes, any value   │
    │   --XyZ--\r\n                               ← closing delimiter      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

=============================================================================
SCANNER STATES
=============================================================================

The parser walks the byte buffer once, as a small state machine:

        ┌──────────┐  first "--XyZ"   ┌──────────┐  "\r\n\r\n" +        ┌──────┐
        │ PREAMBLE │ ───────────────► │ HEADERS  │  Content-Disposition │ BODY │
        └──────────┘                  └──────────┘ ───────────────────► └──────┘
                                        ▲    │                              │
                                        │    │ no headers / no             │
                                        │    │ Content-Disposition         │
                                        │    ▼ (segment skipped)           │
                                        └──────── next "--XyZ" ◄───────────┘

Rules applied per segment (the bytes between two delimiters):

    1. Headers end at the FIRST "\r\n\r\n"; content starts right after it.
    2. Content ends at the LAST "\r\n" of the segment. That CRLF belongs to
       the framing, not to the payload.
    3. Content end must be strictly after content start, otherwise the
       segment is dropped (a part with no content).
    4. `name` is required. `filename` present and non-empty makes a file
       part; `filename=""` (a file input left empty) produces nothing.
    5. A repeated field name overwrites the earlier value.

The body is never decoded as a whole. Only part headers are decoded
(latin-1, one byte per character) and only text-field content is decoded
as UTF-8, so file payloads come out byte for byte.

=============================================================================
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)


class ScanState(Enum):
    """Where the scanner is inside the buffer."""

    PREAMBLE = "preamble"  # Before the first delimiter
    HEADERS = "headers"    # Just after a delimiter, reading part headers
    BODY = "body"          # Headers accepted, extracting the content


@dataclass
class ParsedFile:
    """
    A file part pulled out of a multipart body.

    Attributes:
        field_name: Form field the file was sent under ("image", "photo").
        filename: File name as the client reported it.
        payload: Raw file bytes, exactly as sent.
        content_type: Declared part Content-Type (informational only).
    """

    field_name: str
    filename: str
    payload: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.payload)


@dataclass
class MultipartForm:
    """Result of parsing: text fields and files, each keyed by field name."""

    fields: Dict[str, str] = field(default_factory=dict)
    files: Dict[str, ParsedFile] = field(default_factory=dict)

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.fields.get(name, default)

    def file(self, name: str) -> Optional[ParsedFile]:
        """The file sent under `name`, or None when no file was supplied."""
        return self.files.get(name)


@dataclass
class _RawPart:
    headers: Dict[str, str]
    content: bytes


class MultipartParser:
    """
    Byte-level multipart/form-data parser.

    Usage:
        parser = MultipartParser()
        form = parser.parse(request.body, "XyZ")
        form.fields["title"]          # "Dune"
        form.files["image"].payload   # b"\\x89PNG..."

    Malformed segments are skipped, never raised: the request goes on with
    whatever fields and files could be recovered.
    """

    HEADER_TERMINATOR = b"\r\n\r\n"
    LINE_BREAK = b"\r\n"

    # name="value" or name=value inside a Content-Disposition header
    DISPOSITION_PARAM = re.compile(
        r';\s*([^\s=;]+)\s*=\s*("(?:[^"\\]|\\.)*"|[^;]*)'
    )

    def parse(self, body: bytes, boundary: str) -> MultipartForm:
        """
        Split `body` on `--{boundary}` and collect fields and files.

        Args:
            body: Complete request body.
            boundary: Boundary token from the Content-Type header.

        Returns:
            MultipartForm with text fields and non-empty file parts.
        """
        form = MultipartForm()
        if not boundary:
            return form

        delimiter = b"--" + boundary.encode("latin-1")

        for part in self._scan(body, delimiter):
            disposition = part.headers.get("content-disposition", "")
            params = self._disposition_params(disposition)

            name = params.get("name")
            if not name:
                logger.debug("Skipping multipart segment without a field name")
                continue

            if "filename" in params:
                filename = params["filename"]
                if not filename:
                    # File input submitted with nothing selected
                    continue
                form.files[name] = ParsedFile(
                    field_name=name,
                    filename=filename,
                    payload=part.content,
                    content_type=part.headers.get("content-type", "application/octet-stream"),
                )
            else:
                form.fields[name] = part.content.decode("utf-8", errors="replace")

        return form

    # =========================================================================
    # SCANNER
    # =========================================================================

    def _scan(self, body: bytes, delimiter: bytes) -> Iterator[_RawPart]:
        """
        Walk the buffer and yield every well-formed part.

        `position` always points just past the delimiter that opened the
        current segment; `segment_end` is the start of the next delimiter
        (or the end of the buffer).
        """
        state = ScanState.PREAMBLE
        position = 0
        segment_end = 0
        next_delimiter = -1
        header_end = -1
        headers: Dict[str, str] = {}

        while True:
            if state is ScanState.PREAMBLE:
                first = body.find(delimiter)
                if first == -1:
                    return
                position = first + len(delimiter)
                state = ScanState.HEADERS

            elif state is ScanState.HEADERS:
                next_delimiter = body.find(delimiter, position)
                segment_end = next_delimiter if next_delimiter != -1 else len(body)

                header_end = body.find(self.HEADER_TERMINATOR, position, segment_end)
                if header_end != -1:
                    headers = self._parse_headers(body[position:header_end])
                    if "content-disposition" in headers:
                        state = ScanState.BODY
                        continue

                # Preamble, epilogue, closing "--", or a part with no headers
                if next_delimiter == -1:
                    return
                position = next_delimiter + len(delimiter)

            elif state is ScanState.BODY:
                content_start = header_end + len(self.HEADER_TERMINATOR)
                content_end = body.rfind(self.LINE_BREAK, position, segment_end)

                if content_end > content_start:
                    yield _RawPart(headers=headers, content=body[content_start:content_end])
                else:
                    logger.debug("Skipping multipart segment with no content")

                if next_delimiter == -1:
                    return
                position = next_delimiter + len(delimiter)
                state = ScanState.HEADERS

    # =========================================================================
    # HEADER HELPERS
    # =========================================================================

    def _parse_headers(self, block: bytes) -> Dict[str, str]:
        """
        Parse a part's header block into a lowercase-keyed dict.

        Decoded as latin-1 so every byte maps to exactly one character and
        nothing is lost; names and filenames are re-decoded as UTF-8 later.
        """
        headers: Dict[str, str] = {}
        for line in block.decode("latin-1").split("\r\n"):
            if not line or ":" not in line:
                continue
            name, _, value = line.partition(":")
            headers[name.strip().lower()] = value.strip()
        return headers

    def _disposition_params(self, disposition: str) -> Dict[str, str]:
        """
        Extract the parameters of a Content-Disposition value.

            'form-data; name="image"; filename="cover.png"'
            → {"name": "image", "filename": "cover.png"}

        Parameters are matched as `key=value` pairs, so `filename="..."` is
        never confused with `name="..."` whatever their order.
        """
        params: Dict[str, str] = {}
        for key, raw_value in self.DISPOSITION_PARAM.findall(disposition):
            value = raw_value.strip()
            if len(value) >= 2 and value[0] == value[-1] == '"':
                value = value[1:-1].replace('\\"', '"')
            params[key.lower()] = _latin1_to_utf8(value)
        return params


def _latin1_to_utf8(text: str) -> str:
    """Browsers send UTF-8 filenames as raw bytes; undo the latin-1 decode."""
    try:
        return text.encode("latin-1").decode("utf-8")
    except (UnicodeEncodeError, UnicodeDecodeError):
        return text


def parse_boundary(content_type: str) -> Optional[str]:
    """
    Extract the boundary parameter from a Content-Type header value.

        >>> parse_boundary('multipart/form-data; boundary="----abc"')
        '----abc'
        >>> parse_boundary("application/json") is None
        True
    """
    for param in content_type.split(";")[1:]:
        key, _, value = param.strip().partition("=")
        if key.strip().lower() == "boundary":
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] == '"':
                value = value[1:-1]
            return value or None
    return None


def parse_multipart(body: bytes, boundary: str) -> Tuple[Dict[str, str], Dict[str, ParsedFile]]:
    """
    Convenience wrapper returning the `(fields, files)` pair directly.
    """
    form = MultipartParser().parse(body, boundary)
    return form.fields, form.files
