"""Byte-level helpers: calendar sniffing and text decoding of export payloads.

TraiNex serves its iCal export as UTF-16 (with BOM), UTF-8, or Windows-1252
depending on server state, so both checks work on raw bytes.
"""

_MARKER = "BEGIN:VCALENDAR"

BOM_UTF16_LE = b"\xff\xfe"
BOM_UTF16_BE = b"\xfe\xff"
BOM_UTF8 = b"\xef\xbb\xbf"

# Characters that show up when UTF-8 encoded umlauts are read as cp1252 and
# re-encoded (e.g. "Ã¼" for "ü").
_MOJIBAKE_CHARS = ("Ã", "Â")


def _has_marker(text: str) -> bool:
    return _MARKER in text.upper()


def _swap_byte_pairs(data: bytes) -> bytes:
    """Swap every byte pair, turning UTF-16BE into UTF-16LE."""
    swapped = bytearray(data[: len(data) - len(data) % 2])
    swapped[0::2], swapped[1::2] = swapped[1::2], swapped[0::2]
    return bytes(swapped)


def looks_like_calendar(data: bytes) -> bool:
    """Return True if the buffer contains an iCalendar ``BEGIN:VCALENDAR`` marker.

    Checks, in order: plain ASCII, UTF-16LE after an ``FF FE`` BOM, and
    UTF-16BE after an ``FE FF`` BOM (byte-swapped to little-endian first).
    """
    if _has_marker(data.decode("ascii", errors="ignore")):
        return True

    if data.startswith(BOM_UTF16_LE):
        return _has_marker(data[2:].decode("utf-16-le", errors="ignore"))

    if data.startswith(BOM_UTF16_BE):
        return _has_marker(_swap_byte_pairs(data[2:]).decode("utf-16-le", errors="ignore"))

    return False


def _mojibake_count(text: str) -> int:
    return sum(text.count(ch) for ch in _MOJIBAKE_CHARS)


def decode_calendar_bytes(data: bytes) -> str:
    """Decode an export payload to text.

    BOMs win (UTF-16LE, UTF-16BE, UTF-8). Without one the bytes are read as
    UTF-8; replacement characters switch to cp1252, and mojibake pairs switch
    to cp1252 only when that decoding carries fewer of them.
    """
    if data.startswith(BOM_UTF16_LE):
        return data[2:].decode("utf-16-le", errors="replace")
    if data.startswith(BOM_UTF16_BE):
        return data[2:].decode("utf-16-be", errors="replace")
    if data.startswith(BOM_UTF8):
        return data[3:].decode("utf-8", errors="replace")

    as_utf8 = data.decode("utf-8", errors="replace")
    if "\ufffd" in as_utf8:
        return data.decode("cp1252", errors="replace")

    utf8_mojibake = _mojibake_count(as_utf8)
    if utf8_mojibake:
        as_cp1252 = data.decode("cp1252", errors="replace")
        if _mojibake_count(as_cp1252) < utf8_mojibake:
            return as_cp1252
    return as_utf8
