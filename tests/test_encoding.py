"""Tests for calendar byte sniffing and text decoding."""

from trainex_sync.encoding import decode_calendar_bytes, looks_like_calendar

ICS_TEXT = "BEGIN:VCALENDAR\r\nVERSION:2.0\r\nEND:VCALENDAR\r\n"


class TestLooksLikeCalendar:
    def test_plain_ascii_marker(self):
        assert looks_like_calendar(ICS_TEXT.encode("ascii"))

    def test_marker_is_case_insensitive(self):
        assert looks_like_calendar(b"begin:vcalendar\nEND:VCALENDAR")

    def test_marker_after_leading_noise(self):
        assert looks_like_calendar(b"\xef\xbb\xbf\r\nBEGIN:VCALENDAR\r\n")

    def test_utf16_le_with_bom(self):
        data = b"\xff\xfe" + ICS_TEXT.encode("utf-16-le")
        assert looks_like_calendar(data)

    def test_utf16_be_with_bom(self):
        data = b"\xfe\xff" + ICS_TEXT.encode("utf-16-be")
        assert looks_like_calendar(data)

    def test_utf16_without_bom_is_not_detected(self):
        # only BOM-marked UTF-16 is sniffed
        assert not looks_like_calendar(ICS_TEXT.encode("utf-16-le"))

    def test_html_login_page_rejected(self):
        assert not looks_like_calendar(b"<html><body>Anmelden</body></html>")

    def test_empty_buffer_rejected(self):
        assert not looks_like_calendar(b"")

    def test_odd_length_utf16_be_does_not_raise(self):
        data = b"\xfe\xff" + ICS_TEXT.encode("utf-16-be") + b"\x00"
        assert looks_like_calendar(data)


class TestDecodeCalendarBytes:
    def test_utf16_le_bom(self):
        data = b"\xff\xfe" + "SUMMARY:Übung".encode("utf-16-le")
        assert decode_calendar_bytes(data) == "SUMMARY:Übung"

    def test_utf16_be_bom(self):
        data = b"\xfe\xff" + "SUMMARY:Übung".encode("utf-16-be")
        assert decode_calendar_bytes(data) == "SUMMARY:Übung"

    def test_utf8_bom_is_stripped(self):
        data = b"\xef\xbb\xbf" + "LOCATION:Hörsaal".encode("utf-8")
        assert decode_calendar_bytes(data) == "LOCATION:Hörsaal"

    def test_plain_utf8(self):
        assert decode_calendar_bytes("Prüfung".encode("utf-8")) == "Prüfung"

    def test_cp1252_fallback_on_invalid_utf8(self):
        data = "Prüfung Größe".encode("cp1252")
        assert decode_calendar_bytes(data) == "Prüfung Größe"

    def test_mojibake_prefers_less_garbled_decoding(self):
        # valid UTF-8 that happens to contain "Ã" stays UTF-8 when cp1252 is worse
        data = "Ã".encode("utf-8")
        assert decode_calendar_bytes(data) == "Ã"

    def test_ascii_passthrough(self):
        assert decode_calendar_bytes(ICS_TEXT.encode("ascii")) == ICS_TEXT
