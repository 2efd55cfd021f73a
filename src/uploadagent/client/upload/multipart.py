"""Streaming multipart/form-data encoder for the transfer phase.

Pre-signed upload targets expect a classic HTML form POST: every field
returned by the server, in order, followed by a single ``file`` part. The
body is built by hand so that the file itself is streamed from disk and
the exact Content-Length is known before the first byte is sent.

Wire layout::

    --<boundary>\\r\\n
    Content-Disposition: form-data; name="<field>"\\r\\n
    \\r\\n
    <value>\\r\\n
    ... (one block per field)
    --<boundary>\\r\\n
    Content-Disposition: form-data; name="file"; filename="<name>"\\r\\n
    Content-Type: <mime type>\\r\\n
    \\r\\n
    <file bytes>
    \\r\\n--<boundary>--\\r\\n
"""

from __future__ import annotations

import secrets
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

FILE_FIELD_NAME = "file"


def make_boundary() -> str:
    """Generate a random multipart boundary."""
    return f"----FormBoundary{secrets.token_hex(12)}"


def _quote(value: str) -> str:
    """Escape a value for use inside a quoted Content-Disposition parameter."""
    return value.replace("\\", "\\\\").replace('"', "%22").replace("\r", "%0D").replace("\n", "%0A")


@dataclass
class MultipartEnvelope:
    """Everything around the file bytes of a multipart body.

    Attributes:
        boundary: Boundary string (without leading dashes).
        head: Bytes sent before the file content (fields + file part headers).
        tail: Bytes sent after the file content (closing boundary).
    """

    boundary: str
    head: bytes
    tail: bytes

    @property
    def content_type(self) -> str:
        """Content-Type header value for the request."""
        return f"multipart/form-data; boundary={self.boundary}"

    def content_length(self, file_size: int) -> int:
        """Exact body length for a file of the given size."""
        return len(self.head) + file_size + len(self.tail)


def encode_multipart_envelope(
    fields: dict[str, str],
    filename: str,
    content_type: str,
    boundary: str | None = None,
) -> MultipartEnvelope:
    """Build the parts of a multipart body surrounding the file content.

    Args:
        fields: Additional form fields, sent in insertion order before the file.
        filename: File name announced in the file part.
        content_type: MIME type announced in the file part.
        boundary: Boundary to use (random when omitted).

    Returns:
        MultipartEnvelope with head/tail bytes.
    """
    boundary = boundary or make_boundary()
    parts: list[bytes] = []

    for name, value in fields.items():
        parts.append(f"--{boundary}\r\n".encode())
        parts.append(f'Content-Disposition: form-data; name="{_quote(name)}"\r\n\r\n'.encode())
        parts.append(f"{value}\r\n".encode())

    parts.append(f"--{boundary}\r\n".encode())
    parts.append(
        f'Content-Disposition: form-data; name="{FILE_FIELD_NAME}"; '
        f'filename="{_quote(filename)}"\r\n'.encode()
    )
    parts.append(f"Content-Type: {content_type}\r\n\r\n".encode())

    return MultipartEnvelope(
        boundary=boundary,
        head=b"".join(parts),
        tail=f"\r\n--{boundary}--\r\n".encode(),
    )


def iter_multipart_body(
    envelope: MultipartEnvelope,
    file_path: Path | str,
    chunk_size: int,
    on_chunk: Callable[[int], None] | None = None,
) -> Iterator[bytes]:
    """Yield a multipart body, streaming the file between head and tail.

    Args:
        envelope: Envelope from encode_multipart_envelope.
        file_path: File to stream.
        chunk_size: Bytes read per chunk.
        on_chunk: Called after each chunk is read with the total file bytes read so far.

    Yields:
        Body chunks in wire order.
    """
    yield envelope.head
    read = 0
    with open(file_path, "rb") as f:
        for block in iter(lambda: f.read(chunk_size), b""):
            read += len(block)
            if on_chunk:
                on_chunk(read)
            yield block
    yield envelope.tail
