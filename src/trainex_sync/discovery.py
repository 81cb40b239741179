"""Export-link and session-token discovery on TraiNex pages.

The iCal export script (einsatzplan_listenansicht_iCal.cfm) only answers with
calendar data when called with the session tokens of the browser that logged
in, so most of the work here is pulling those tokens and links out of URLs
and HTML, then re-stamping them with the requested month/day.

Query parameters understood by the export script:
  ics=1      -> return iCal instead of the HTML list
  utag       -> day of month, empty for the whole month
  umonat     -> month (1-12)
  ujahr      -> year
"""

import re
from collections.abc import Iterable, Mapping
from urllib.parse import parse_qsl, urlencode, urljoin, urlsplit, urlunsplit

from trainex_sync.models import SessionTokens

EXPORT_SCRIPT = "einsatzplan_listenansicht_iCal.cfm"

# ColdFusion session tokens (CFTOKEN/CFID, optionally numbered) and the
# portal's own security parameters (sec...).
TOKEN_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"^cftoken\d*$", re.IGNORECASE),
    re.compile(r"^cfid\d*$", re.IGNORECASE),
    re.compile(r"^sec\w*$", re.IGNORECASE),
)

_HTML_ENTITIES: tuple[tuple[str, str], ...] = (
    ("&amp;", "&"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&lt;", "<"),
    ("&gt;", ">"),
)

_ABSOLUTE_URL_RE = re.compile(r"^https?://", re.IGNORECASE)

REDACTED_VALUE = "***"

# name=value pairs of a query string, also inside longer text
_QUERY_PAIR_RE = re.compile(r"([?&])([^=&#\s'\"<>]+)=([^&#\s'\"<>]*)")


def _export_link_re(script: str) -> re.Pattern[str]:
    return re.compile(
        r"href\s*=\s*['\"]([^'\"\s>]*" + re.escape(script) + r"\?[^'\"\s>]*ics=1[^'\"\s>]*)",
        re.IGNORECASE,
    )


def _bare_link_re(script: str) -> re.Pattern[str]:
    return re.compile(
        r"href\s*=\s*['\"]([^'\"\s>]*" + re.escape(script) + r"(?:\?[^'\"\s>]*)?)['\"]",
        re.IGNORECASE,
    )


def decode_html_entities(text: str) -> str:
    """Decode the five entities TraiNex uses inside href attributes."""
    for entity, char in _HTML_ENTITIES:
        text = text.replace(entity, char)
    return text


def normalize_url(url: str, base_url: str) -> str:
    """Resolve a possibly relative URL against the portal base URL."""
    if _ABSOLUTE_URL_RE.match(url):
        return url
    return urljoin(base_url, url)


def is_token_param(name: str) -> bool:
    return any(pattern.match(name) for pattern in TOKEN_PATTERNS)


def redact_url(text: str) -> str:
    """Mask session-token values in a URL or in text that contains URLs.

    ``...?CFID=42&CFTOKEN=abc&umonat=1`` becomes
    ``...?CFID=***&CFTOKEN=***&umonat=1``; names and other parameters stay.
    """

    def _mask(match: re.Match[str]) -> str:
        sep, name, value = match.groups()
        if value and is_token_param(name):
            return f"{sep}{name}={REDACTED_VALUE}"
        return match.group(0)

    return _QUERY_PAIR_RE.sub(_mask, text)


def find_session_tokens(url: str) -> SessionTokens:
    """Return the session-token query parameters of a portal URL.

    Args:
        url: Any URL, typically page.url after navigating inside the portal.

    Returns:
        Mapping of token name to value; every other parameter is dropped.
    """
    query = urlsplit(url).query
    return {
        name: value
        for name, value in parse_qsl(query, keep_blank_values=True)
        if is_token_param(name)
    }


def find_export_urls(html: str, base_url: str, script: str = EXPORT_SCRIPT) -> list[str]:
    """All export links (``ics=1``) in document order, resolved to absolute URLs."""
    decoded = decode_html_entities(html)
    return [
        normalize_url(match.group(1), base_url)
        for match in _export_link_re(script).finditer(decoded)
    ]


def find_export_url(html: str, base_url: str, script: str = EXPORT_SCRIPT) -> str | None:
    """Pick the export link to try from an HTML document.

    A link carrying session tokens beats the first link in the document.
    """
    urls = find_export_urls(html, base_url, script)
    if not urls:
        return None
    return next((url for url in urls if find_session_tokens(url)), urls[0])


def find_bare_export_url(html: str, base_url: str, script: str = EXPORT_SCRIPT) -> str | None:
    """First link to the export script, with or without ``ics=1``."""
    match = _bare_link_re(script).search(decode_html_entities(html))
    if match is None:
        return None
    return normalize_url(match.group(1), base_url)


def first_export_href(
    hrefs: Iterable[str | None], base_url: str, script: str = EXPORT_SCRIPT
) -> str | None:
    """First anchor href pointing at the export script with ``ics=1``."""
    script_lower = script.lower()
    for href in hrefs:
        if not href:
            continue
        decoded = decode_html_entities(href)
        lowered = decoded.lower()
        if script_lower in lowered and "ics=1" in lowered:
            return normalize_url(decoded, base_url)
    return None


def with_date_params(url: str, day: int, month: int, year: int) -> str:
    """Set ``ics``, ``umonat``, ``ujahr`` and ``utag`` on an export URL.

    Existing values are overridden (case-insensitively), other parameters are
    kept in place. ``day == 0`` is sent as an empty ``utag`` (whole month).
    """
    stamped = {
        "ics": "1",
        "utag": str(day) if day else "",
        "umonat": str(month),
        "ujahr": str(year),
    }
    parts = urlsplit(url)
    params = [
        (name, value)
        for name, value in parse_qsl(parts.query, keep_blank_values=True)
        if name.lower() not in stamped
    ]
    params.extend(stamped.items())
    return urlunsplit(parts._replace(query=urlencode(params)))


def build_export_url(
    export_url: str,
    tokens: Mapping[str, str],
    day: int,
    month: int,
    year: int,
) -> str:
    """Export URL carrying the given session tokens and date parameters."""
    url = f"{export_url}?{urlencode(dict(tokens))}" if tokens else export_url
    return with_date_params(url, day, month, year)
