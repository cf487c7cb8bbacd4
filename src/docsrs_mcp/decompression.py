"""Content-encoding detection and decoding for docs.rs responses.

docs.rs serves rustdoc JSON zstd-compressed regardless of what the client
advertises, so bodies are read raw and decoded here rather than by the HTTP
client. The codec is picked from ``content-encoding`` first; only when that is
absent (or ``identity``) do ``content-type`` tokens get a say.
"""

from __future__ import annotations

import gzip
import io
import zlib
from enum import StrEnum

import brotli
import structlog
import zstandard

from docsrs_mcp.errors import DecompressionError

log = structlog.get_logger()

GZIP_MAGIC = b"\x1f\x8b"


class Compression(StrEnum):
    IDENTITY = "identity"
    GZIP = "gzip"
    DEFLATE = "deflate"
    BROTLI = "brotli"
    ZSTD = "zstd"
    UNKNOWN = "unknown"


_ENCODING_ALIASES: dict[str, Compression] = {
    "": Compression.IDENTITY,
    "identity": Compression.IDENTITY,
    "gzip": Compression.GZIP,
    "x-gzip": Compression.GZIP,
    "deflate": Compression.DEFLATE,
    "br": Compression.BROTLI,
    "brotli": Compression.BROTLI,
    "zstd": Compression.ZSTD,
}

# Checked in order; zstd first because docs.rs is the common case.
_CONTENT_TYPE_HINTS: tuple[tuple[str, Compression], ...] = (
    ("zstd", Compression.ZSTD),
    ("gzip", Compression.GZIP),
    ("deflate", Compression.DEFLATE),
)


def detect_compression(content_encoding: str | None, content_type: str | None) -> Compression:
    """Map response headers to a ``Compression`` member.

    A declared, non-identity ``content-encoding`` always wins over
    ``content-type``, even when the two disagree.
    """
    encoding = (content_encoding or "").strip().lower()
    if encoding and encoding != "identity":
        return _ENCODING_ALIASES.get(encoding, Compression.UNKNOWN)

    media_type = (content_type or "").lower()
    for token, compression in _CONTENT_TYPE_HINTS:
        if token in media_type:
            return compression
    return Compression.IDENTITY


def _inflate(data: bytes) -> bytes:
    # HTTP "deflate" is supposed to be zlib-wrapped, but raw deflate streams
    # are common enough in the wild to accept both.
    try:
        return zlib.decompress(data)
    except zlib.error:
        return zlib.decompress(data, -zlib.MAX_WBITS)


def _unzstd(data: bytes) -> bytes:
    # decompressobj copes with frames that omit the content size header, which
    # ZstdDecompressor.decompress() refuses. Concatenated frames are decoded
    # one after another.
    output = io.BytesIO()
    decompressor = zstandard.ZstdDecompressor().decompressobj()
    output.write(decompressor.decompress(data))
    while decompressor.eof and decompressor.unused_data:
        unused_data = decompressor.unused_data
        decompressor = zstandard.ZstdDecompressor().decompressobj()
        output.write(decompressor.decompress(unused_data))
    if not decompressor.eof:
        raise zstandard.ZstdError("zstd data is incomplete")
    return output.getvalue()


_DECODERS = {
    Compression.IDENTITY: bytes,
    Compression.GZIP: gzip.decompress,
    Compression.DEFLATE: _inflate,
    Compression.BROTLI: brotli.decompress,
    Compression.ZSTD: _unzstd,
}

_CODEC_ERRORS: tuple[type[Exception], ...] = (
    OSError,
    EOFError,
    zlib.error,
    brotli.error,
    zstandard.ZstdError,
)


def decompress(
    data: bytes,
    compression: Compression,
    *,
    url: str = "",
    encoding: str | None = None,
) -> bytes:
    """Decode ``data`` with the codec for ``compression``.

    Raises DecompressionError for ``Compression.UNKNOWN`` (naming the offending
    ``encoding``) and for corrupt streams (carrying the codec's own message).
    """
    label = encoding or str(compression)
    decoder = _DECODERS.get(compression)
    if decoder is None:
        raise DecompressionError(url, label, f"Unsupported compression format: {label}")
    try:
        return decoder(data)
    except _CODEC_ERRORS as exc:
        raise DecompressionError(url, label, str(exc) or type(exc).__name__) from exc


def decode_body(
    body: bytes,
    *,
    content_encoding: str | None,
    content_type: str | None,
    url: str = "",
) -> str:
    """Turn a raw response body into text, decompressing as the headers say.

    Bodies that declare no encoding but start with the gzip magic bytes are
    gunzipped anyway.
    """
    compression = detect_compression(content_encoding, content_type)

    if compression is Compression.IDENTITY:
        if body.startswith(GZIP_MAGIC):
            log.info("gzip_magic_detected", url=url)
            body = decompress(body, Compression.GZIP, url=url, encoding="gzip")
        return body.decode("utf-8", errors="replace")

    log.info(
        "decompressing_content",
        url=url,
        encoding=content_encoding,
        compression=compression,
        buffer_size=len(body),
    )
    decoded = decompress(body, compression, url=url, encoding=content_encoding or None)
    text = decoded.decode("utf-8", errors="replace")
    log.info(
        "decompression_complete",
        url=url,
        compression=compression,
        decompressed_size=len(text),
    )
    return text
