"""Content-type detection from the leading bytes of a payload.

Follows the WHATWG MIME sniffing table: markup signatures tolerate leading
whitespace and are matched case-insensitively, binary signatures are exact
(optionally masked) prefixes, and anything without binary control bytes is
reported as UTF-8 text.
"""

from collections.abc import Callable
from typing import Final

SNIFF_LEN: Final[int] = 512
TEXT_PLAIN: Final[str] = "text/plain; charset=utf-8"
OCTET_STREAM: Final[str] = "application/octet-stream"

_WHITESPACE = b"\t\n\x0c\r "
_TAG_TERMINATORS = b" >"
_BINARY_BYTES = frozenset(
    list(range(0x00, 0x09)) + [0x0B] + list(range(0x0E, 0x1B)) + list(range(0x1C, 0x20))
)

Matcher = Callable[[bytes], bool]


def _skip_whitespace(data: bytes) -> bytes:
    return data.lstrip(_WHITESPACE)


def _html(tag: bytes) -> Matcher:
    def match(data: bytes) -> bool:
        data = _skip_whitespace(data)
        if len(data) < len(tag) + 1:
            return False
        return data[: len(tag)].upper() == tag and data[len(tag)] in _TAG_TERMINATORS

    return match


def _exact(prefix: bytes) -> Matcher:
    return lambda data: data.startswith(prefix)


def _masked(pattern: bytes, mask: bytes, skip_ws: bool = False) -> Matcher:
    def match(data: bytes) -> bool:
        if skip_ws:
            data = _skip_whitespace(data)
        if len(data) < len(pattern):
            return False
        return all((b & m) == p for b, m, p in zip(data, mask, pattern))

    return match


def _riff(form: bytes) -> Matcher:
    # RIFF....<form>
    return lambda data: len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == form


def _mp4(data: bytes) -> bool:
    if len(data) < 12:
        return False
    box_size = int.from_bytes(data[:4], "big")
    if len(data) < box_size or box_size % 4 != 0 or data[4:8] != b"ftyp":
        return False
    for start in range(8, box_size, 4):
        if start == 12:
            # minor version
            continue
        if data[start : start + 3] == b"mp4":
            return True
    return False


def _text(data: bytes) -> bool:
    return not any(b in _BINARY_BYTES for b in data)


_HTML_TAGS = (
    b"<!DOCTYPE HTML",
    b"<HTML",
    b"<HEAD",
    b"<SCRIPT",
    b"<IFRAME",
    b"<H1",
    b"<DIV",
    b"<FONT",
    b"<TABLE",
    b"<A",
    b"<STYLE",
    b"<TITLE",
    b"<B",
    b"<BODY",
    b"<BR",
    b"<P",
    b"<!--",
)

SIGNATURES: Final[tuple[tuple[Matcher, str], ...]] = (
    *((_html(tag), "text/html; charset=utf-8") for tag in _HTML_TAGS),
    (_masked(b"<?xml", b"\xff" * 5, skip_ws=True), "text/xml; charset=utf-8"),
    (_exact(b"%PDF-"), "application/pdf"),
    (_exact(b"%!PS-Adobe-"), "application/postscript"),
    # byte order marks
    (_exact(b"\xfe\xff"), "text/plain; charset=utf-16be"),
    (_exact(b"\xff\xfe"), "text/plain; charset=utf-16le"),
    (_exact(b"\xef\xbb\xbf"), TEXT_PLAIN),
    # images
    (_exact(b"\x00\x00\x01\x00"), "image/x-icon"),
    (_exact(b"\x00\x00\x02\x00"), "image/x-icon"),
    (_exact(b"BM"), "image/bmp"),
    (_exact(b"GIF87a"), "image/gif"),
    (_exact(b"GIF89a"), "image/gif"),
    (lambda data: _riff(b"WEBP")(data) and data[12:14] == b"VP", "image/webp"),
    (_exact(b"\x89PNG\r\n\x1a\n"), "image/png"),
    (_exact(b"\xff\xd8\xff"), "image/jpeg"),
    # audio and video
    (lambda data: data[:4] == b"FORM" and data[8:12] == b"AIFF", "audio/aiff"),
    (_exact(b"ID3"), "audio/mpeg"),
    (_exact(b"OggS\x00"), "application/ogg"),
    (_exact(b"MThd\x00\x00\x00\x06"), "audio/midi"),
    (_riff(b"AVI "), "video/avi"),
    (_riff(b"WAVE"), "audio/wave"),
    (_mp4, "video/mp4"),
    (_exact(b"\x1a\x45\xdf\xa3"), "video/webm"),
    # fonts
    (_exact(b"OTTO"), "font/otf"),
    (_exact(b"\x00\x01\x00\x00"), "font/ttf"),
    (_exact(b"ttcf"), "font/collection"),
    (_exact(b"wOFF"), "font/woff"),
    (_exact(b"wOF2"), "font/woff2"),
    # archives
    (_exact(b"\x1f\x8b\x08"), "application/x-gzip"),
    (_exact(b"PK\x03\x04"), "application/zip"),
    (_exact(b"Rar!\x1a\x07\x00"), "application/x-rar-compressed"),
    (_exact(b"Rar!\x1a\x07\x01\x00"), "application/x-rar-compressed"),
    (_exact(b"7z\xbc\xaf\x27\x1c"), "application/x-7z-compressed"),
    (_exact(b"\x00asm"), "application/wasm"),
)


def detect_content_type(data: bytes) -> str:
    """Return the MIME type of ``data`` judged by at most its first 512 bytes.

    Always returns a valid type; unrecognised binary content falls back to
    ``application/octet-stream``.
    """
    head = bytes(data[:SNIFF_LEN])
    for matcher, content_type in SIGNATURES:
        if matcher(head):
            return content_type
    if _text(head):
        return TEXT_PLAIN
    return OCTET_STREAM
