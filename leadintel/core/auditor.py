"""Self-hosted website audit.

Fetches a page once with a mobile user agent, measures timing and size, reads
structural signals out of the HTML and turns them into issue/positive
statements plus a 0-100 score. The audit never raises: network trouble is
reported as an issue and still produces a score.
"""

from __future__ import annotations

import logging
import math
import re
import socket
import threading
import time
from typing import Callable, Mapping, Optional, Union

import requests
import urllib3.exceptions
from bs4 import BeautifulSoup

from leadintel.models import AuditResult

logger = logging.getLogger(__name__)

MOBILE_USER_AGENT = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 16_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/16.0 Mobile/15E148 Safari/604.1"
)
AUDIT_TIMEOUT = 15.0
CHUNK_SIZE = 64 * 1024
TITLE_MAX_LENGTH = 120
DESCRIPTION_MAX_LENGTH = 200
SECURITY_HEADERS = (
    "strict-transport-security",
    "x-content-type-options",
    "x-frame-options",
    "content-security-policy",
)

MAX_COUNTED_ISSUES = 10
ISSUE_WEIGHT = 80

_VIEWPORT = re.compile(r"^viewport$", re.IGNORECASE)
_DESCRIPTION = re.compile(r"^description$", re.IGNORECASE)
_CHARSET = re.compile(r"charset=[\"']?([\w.:-]+)", re.IGNORECASE)


class AuditTimeout(Exception):
    """The fetch overran the audit deadline."""


_TIMEOUT_ERRORS = (AuditTimeout, requests.Timeout, urllib3.exceptions.TimeoutError, socket.timeout)


def _is_timeout(exc: BaseException) -> bool:
    """True when ``exc`` or anything it wraps is a timeout.

    requests re-raises a body read timeout as ``ConnectionError`` around
    urllib3's ``ReadTimeoutError``, so the wrapped chain has to be walked.
    """
    pending = [exc]
    seen = set()
    while pending:
        current = pending.pop()
        if current is None or id(current) in seen:
            continue
        seen.add(id(current))
        if isinstance(current, _TIMEOUT_ERRORS):
            return True
        pending.extend(arg for arg in current.args if isinstance(arg, BaseException))
        pending.append(current.__cause__)
        pending.append(current.__context__)
    return False


def _socket_of(response: requests.Response) -> Optional[socket.socket]:
    raw = getattr(response, "raw", None)
    sock = getattr(getattr(raw, "_connection", None), "sock", None)
    if sock is None:
        # With "Connection: close" http.client hands the socket to the response file.
        fp = getattr(getattr(raw, "_fp", None), "fp", None)
        sock = getattr(getattr(fp, "raw", None), "_sock", None)
    return sock


def _abort_fetch(response: requests.Response, expired: threading.Event) -> None:
    """Watchdog callback: cut the connection under a body read that is still running."""
    expired.set()
    sock = _socket_of(response)
    if sock is None:
        response.close()
        return
    try:
        # Wakes the blocked recv() in the reading thread.
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as exc:
        logger.debug("Socket shutdown after audit deadline failed: %s", exc)


def normalize_audit_url(url: str) -> str:
    value = (url or "").strip()
    if not value.lower().startswith("http"):
        value = f"https://{value}"
    return value


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _elapsed_ms(start: float, now: float) -> int:
    return _round_half_up((now - start) * 1000)


def load_time_penalty(load_time_ms: int) -> int:
    if load_time_ms > 5000:
        return 15
    if load_time_ms > 3000:
        return 8
    return 0


def compute_overall_score(issue_count: int, load_time_ms: int) -> int:
    issue_weight = min(issue_count, MAX_COUNTED_ISSUES) / MAX_COUNTED_ISSUES
    raw = 100 - issue_weight * ISSUE_WEIGHT - load_time_penalty(load_time_ms)
    return max(0, min(100, _round_half_up(raw)))


def _read_body(response: requests.Response, deadline: float, clock: Callable[[], float]) -> bytes:
    chunks = []
    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
        if clock() > deadline:
            raise AuditTimeout()
        if chunk:
            chunks.append(chunk)
    return b"".join(chunks)


def declared_charset(headers: Mapping[str, str]) -> Optional[str]:
    """Charset from an explicit ``Content-Type`` parameter, or None.

    A bare ``text/html`` is left to the parser, which sniffs ``<meta charset>``
    and the bytes themselves.
    """
    match = _CHARSET.search(headers.get("content-type") or "")
    return match.group(1) if match else None


def _has_rel(tag, value: str) -> bool:
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return value in (item.lower() for item in rel)


def extract_signals(
    result: AuditResult,
    html: Union[str, bytes],
    headers: Mapping[str, str],
    encoding: Optional[str] = None,
) -> None:
    """Fill structural fields of ``result`` from the page HTML and response headers."""
    if isinstance(html, bytes) and encoding:
        soup = BeautifulSoup(html, "html.parser", from_encoding=encoding)
    else:
        soup = BeautifulSoup(html, "html.parser")

    viewport = soup.find("meta", attrs={"name": _VIEWPORT})
    result.has_viewport = viewport is not None
    result.has_responsive_meta = bool(viewport) and "width=device-width" in (viewport.get("content") or "")

    title = soup.find("title")
    if title is not None:
        result.has_title = True
        result.title = title.get_text().strip()[:TITLE_MAX_LENGTH]

    description = soup.find("meta", attrs={"name": _DESCRIPTION, "content": True})
    if description is not None:
        result.has_description = True
        result.description = description["content"].strip()[:DESCRIPTION_MAX_LENGTH]

    result.h1_count = len(soup.find_all("h1"))
    result.has_h1 = result.h1_count > 0
    result.image_count = len(soup.find_all("img"))
    result.script_count = len(soup.find_all("script"))
    result.stylesheet_count = sum(1 for link in soup.find_all("link") if _has_rel(link, "stylesheet"))
    result.inline_style_count = len(soup.find_all(style=True))

    result.security_headers = {name: name in headers for name in SECURITY_HEADERS}


def _seconds(ms: int) -> str:
    return f"{ms / 1000:.1f}s"


def evaluate_audit(result: AuditResult) -> AuditResult:
    """Translate measured signals into issues, positives and the overall score."""
    issues = result.issues
    positives = result.positives

    if result.load_time_ms > 3000:
        issues.append(f"Page takes {_seconds(result.load_time_ms)} to load, should be under 3s")
    else:
        positives.append(f"Page loads in {_seconds(result.load_time_ms)}")

    if result.ttfb_ms > 1000:
        issues.append(f"Server response time is {result.ttfb_ms}ms, should be under 600ms")
    else:
        positives.append(f"Server responds in {result.ttfb_ms}ms")

    if result.page_size_kb > 2000:
        issues.append(f"Page is {result.page_size_kb}KB, should be under 2000KB for fast mobile loading")
    elif result.page_size_kb > 500:
        issues.append(f"Page is {result.page_size_kb}KB, could be lighter for mobile")
    else:
        positives.append(f"Page size is lean at {result.page_size_kb}KB")

    if not result.has_viewport:
        issues.append("No mobile viewport tag, site will look broken on phones")
    else:
        positives.append("Has mobile viewport meta tag")

    if not result.has_title:
        issues.append("Missing title tag, invisible to Google search")
    elif len(result.title) < 20:
        issues.append(f"Title tag is too short ({len(result.title)} chars), should be 50-60")
    else:
        positives.append("Has a proper title tag")

    if not result.has_description:
        issues.append("Missing meta description, no preview in Google results")
    else:
        positives.append("Has a meta description")

    if not result.has_h1:
        issues.append("No H1 heading, hurts SEO ranking")
    elif result.h1_count > 1:
        issues.append(f"Has {result.h1_count} H1 tags, should only have 1")
    else:
        positives.append("Has a single H1 heading")

    if not result.https:
        issues.append('Not using HTTPS, browsers show a "Not Secure" warning')
    else:
        positives.append("Uses HTTPS")

    if result.image_count > 20:
        issues.append(f"{result.image_count} images on the page, likely unoptimized")
    if result.script_count > 10:
        issues.append(f"{result.script_count} scripts loaded, slows the page down")
    if result.inline_style_count > 30:
        issues.append(f"{result.inline_style_count} inline styles, poor code quality")

    result.overall_score = compute_overall_score(len(issues), result.load_time_ms)
    return result


def audit_website(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    timeout: float = AUDIT_TIMEOUT,
    clock: Callable[[], float] = time.monotonic,
) -> AuditResult:
    target = normalize_audit_url(url)
    result = AuditResult(url=target, https=target.lower().startswith("https"))

    owns_session = session is None
    session = session or requests.Session()
    response = None
    watchdog = None
    expired = threading.Event()
    start = clock()
    deadline = start + timeout

    try:
        response = session.get(
            target,
            headers={"User-Agent": MOBILE_USER_AGENT},
            timeout=(timeout, timeout),
            allow_redirects=True,
            stream=True,
        )
        result.ttfb_ms = _elapsed_ms(start, clock())
        result.status_code = response.status_code
        remaining = deadline - clock()
        if remaining < 0:
            raise AuditTimeout()

        # The per-read timeout alone never fires on a server that trickles bytes.
        watchdog = threading.Timer(remaining, _abort_fetch, args=(response, expired))
        watchdog.daemon = True
        watchdog.start()

        body = _read_body(response, deadline, clock)
        watchdog.cancel()
        if expired.is_set():
            raise AuditTimeout()
        result.load_time_ms = _elapsed_ms(start, clock())
        result.page_size_kb = _round_half_up(len(body) / 1024)

        extract_signals(result, body, response.headers, declared_charset(response.headers))
        return evaluate_audit(result)
    except Exception as exc:  # noqa: BLE001
        if expired.is_set() or _is_timeout(exc):
            logger.warning("Audit of %s exceeded %.0fs", target, timeout)
            result.load_time_ms = int(timeout * 1000)
            result.issues.append(f"Site took over {timeout:.0f} seconds to respond, extremely slow")
        else:
            logger.warning("Audit of %s failed: %s", target, exc)
            result.issues.append(f"Could not load site: {exc}")
    finally:
        if watchdog is not None:
            watchdog.cancel()
        # Closing the streamed response releases the pooled connection.
        if response is not None:
            response.close()
        if owns_session:
            session.close()

    result.overall_score = compute_overall_score(len(result.issues), result.load_time_ms)
    return result
