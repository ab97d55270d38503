"""Range-preserving stream proxy for resolved download URLs."""

from __future__ import annotations

import http.client
import logging
from collections.abc import Iterator
from typing import Any
from urllib import request as urllib_request
from urllib.error import HTTPError

from ctfile_relay.config import DEFAULT_REQUEST_TIMEOUT, DEFAULT_STREAM_CHUNK_SIZE
from ctfile_relay.errors import UpstreamError

logger = logging.getLogger(__name__)

# The download origin rejects non-browser clients
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

# Only these response headers are relayed to the client
ALLOWED_RESPONSE_HEADERS = (
    "Content-Type",
    "Content-Length",
    "Content-Range",
    "Accept-Ranges",
    "ETag",
    "Last-Modified",
)


class ProxiedDownload:
    """An open response from the download origin.

    The body is read lazily in chunks; nothing beyond one chunk is held in
    memory. ``close`` is idempotent; the HTTP layer calls it once the
    response ends, including when the client disconnects mid-stream.
    """

    def __init__(
        self,
        response: Any,
        status: int,
        chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE,
    ) -> None:
        self._response = response
        self._chunk_size = chunk_size
        self.status = status
        self.headers = filter_response_headers(response.headers)

    def iter_bytes(self) -> Iterator[bytes]:
        """Yield the body chunk by chunk, closing the upstream response at the end."""
        try:
            while True:
                chunk = self._response.read(self._chunk_size)
                if not chunk:
                    break
                yield chunk
        finally:
            self.close()

    def close(self) -> None:
        self._response.close()


def filter_response_headers(headers: Any) -> dict[str, str]:
    """Return only the allow-listed headers present in ``headers``."""
    filtered: dict[str, str] = {}
    for name in ALLOWED_RESPONSE_HEADERS:
        value = headers.get(name)
        if value is not None:
            filtered[name] = value
    return filtered


def build_request_headers(range_header: str | None, if_range_header: str | None) -> dict[str, str]:
    """Build outbound headers; Range and If-Range are only sent when given."""
    headers = {"User-Agent": BROWSER_USER_AGENT}
    if range_header:
        headers["Range"] = range_header
    if if_range_header:
        headers["If-Range"] = if_range_header
    return headers


def open_download(
    url: str,
    range_header: str | None = None,
    if_range_header: str | None = None,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
    chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE,
) -> ProxiedDownload:
    """Open the final-hop GET for a resolved download URL.

    The upstream status is kept as-is. Client-side statuses the origin
    answers to range or conditional requests (304, 412, 416 and the like)
    are relayed with their headers and body rather than raised.

    Args:
        url: Resolved, time-limited download URL.
        range_header: Client Range header, forwarded verbatim.
        if_range_header: Client If-Range header, forwarded verbatim.
        timeout: Timeout in seconds for connecting and for each read.
        chunk_size: Size of the body chunks yielded by iter_bytes.

    Returns:
        ProxiedDownload holding the open response.

    Raises:
        UpstreamError: If the origin is unreachable or answers with a 5xx.
    """
    req = urllib_request.Request(
        url,
        headers=build_request_headers(range_header, if_range_header),
        method="GET",
    )
    try:
        resp = urllib_request.urlopen(req, timeout=timeout)
    except HTTPError as exc:
        if exc.code >= 500:
            exc.close()
            logger.warning("[open_download] download origin failed; status:%d", exc.code)
            raise UpstreamError(exc.code, str(exc.reason)) from exc
        logger.info("[open_download] relaying origin client error; status:%d", exc.code)
        return ProxiedDownload(exc, exc.code, chunk_size)
    except (OSError, http.client.HTTPException) as exc:
        # URLError, timeouts and connections dropped before the status line
        logger.warning("[open_download] download origin unreachable; error:%s", exc)
        raise UpstreamError(None, str(getattr(exc, "reason", exc))) from exc

    logger.info(
        "[open_download] download opened; status:%d;ranged:%s", resp.status, bool(range_header)
    )
    return ProxiedDownload(resp, resp.status, chunk_size)
