"""CTFile REST API client — the only authenticated channel to the upstream."""

from __future__ import annotations

import http.client
import json
import logging
from typing import TYPE_CHECKING, Any
from urllib import request as urllib_request
from urllib.error import HTTPError

from ctfile_relay.config import DEFAULT_REQUEST_TIMEOUT, DEFAULT_UPSTREAM_HOST
from ctfile_relay.errors import MissingDownloadUrl, UpstreamError
from ctfile_relay.upstream.models import (
    FIELD_DOWNLOAD_URL,
    FIELD_FILE_ID,
    FIELD_FOLDER_ID,
    FIELD_RELOAD,
    FIELD_RESULTS,
    FIELD_TOKEN,
    FIELD_XTLINK,
    ListingEntry,
)

if TYPE_CHECKING:
    from ctfile_relay.config import AppConfig

logger = logging.getLogger(__name__)

LIST_ENDPOINT = "/p2/browser/file/list"
FETCH_URL_ENDPOINT = "/p2/browser/file/fetch_url"

# Fixed synthetic identity presented to the API instead of the end user's
CLIENT_USER_AGENT = "okhttp/4.9.2"


class UpstreamClient:
    """Stateless client for the CTFile browser API.

    Credentials are passed per call, so one instance can serve concurrent
    requests that use different tokens.
    """

    def __init__(
        self,
        host: str = DEFAULT_UPSTREAM_HOST,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        """Initialise the client.

        Args:
            host: Upstream API host name, without scheme.
            timeout: Timeout in seconds applied to every upstream call.
        """
        self._base_url = f"https://{host}"
        self._timeout = timeout

    def post(self, endpoint: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Perform a JSON POST to the upstream API.

        Args:
            endpoint: URL path relative to the upstream host (must start with '/').
            payload: JSON-serializable request body.

        Returns:
            Parsed JSON response body as a dict.

        Raises:
            UpstreamError: If the API returns a non-2xx status, cannot be
                reached, or answers with a body that is not JSON.
        """
        url = f"{self._base_url}{endpoint}"
        req = urllib_request.Request(
            url,
            data=json.dumps(payload).encode("utf-8"),
            headers={
                "User-Agent": CLIENT_USER_AGENT,
                "Content-Type": "application/json",
            },
            method="POST",
        )
        try:
            with urllib_request.urlopen(req, timeout=self._timeout) as resp:
                status = resp.status
                body = resp.read()
        except HTTPError as exc:
            logger.warning(
                "[post] upstream returned error; endpoint:%s;status:%d", endpoint, exc.code
            )
            raise UpstreamError(exc.code, str(exc.reason)) from exc
        except (OSError, http.client.HTTPException) as exc:
            # URLError, timeouts and dropped connections during read
            logger.warning("[post] upstream unreachable; endpoint:%s;error:%s", endpoint, exc)
            raise UpstreamError(None, str(getattr(exc, "reason", exc))) from exc

        try:
            decoded = json.loads(body)
        except ValueError as exc:
            raise UpstreamError(status, "response body is not valid JSON") from exc
        if not isinstance(decoded, dict):
            raise UpstreamError(status, "response body is not a JSON object")
        return decoded

    def list_raw(self, link: str, credential: str, folder_id: str | None = None) -> dict[str, Any]:
        """Return the undecoded upstream listing of the link root or one folder."""
        payload: dict[str, Any] = {FIELD_XTLINK: link, FIELD_TOKEN: credential, FIELD_RELOAD: False}
        if folder_id is not None:
            payload[FIELD_FOLDER_ID] = folder_id
        return self.post(LIST_ENDPOINT, payload)

    def list_directory(
        self,
        link: str,
        credential: str,
        folder_id: str | None = None,
    ) -> list[ListingEntry]:
        """List the entries of a share link's root or of one of its folders.

        Issues exactly one upstream POST. Entry order is the upstream's.

        Args:
            link: Normalized share link.
            credential: Upstream token for this request.
            folder_id: Container id to list, or None for the link root.

        Returns:
            List of ListingEntry objects.

        Raises:
            UpstreamError: If the upstream call fails.
        """
        response = self.list_raw(link, credential, folder_id)
        entries = [ListingEntry.from_upstream(raw) for raw in response.get(FIELD_RESULTS) or []]
        logger.debug(
            "[list_directory] listed folder; folder_id:%s;entry_count:%d",
            folder_id or "<root>",
            len(entries),
        )
        return entries

    def resolve_download_url(self, link: str, file_id: str, credential: str) -> str:
        """Resolve one file id to its direct, time-limited download URL.

        Raises:
            UpstreamError: If the upstream call fails.
            MissingDownloadUrl: If the response carries no download_url.
        """
        payload = {FIELD_XTLINK: link, FIELD_FILE_ID: file_id, FIELD_TOKEN: credential}
        response = self.post(FETCH_URL_ENDPOINT, payload)
        url = response.get(FIELD_DOWNLOAD_URL)
        if not url:
            raise MissingDownloadUrl(file_id)
        return str(url)


def upstream_client_from_config(config: AppConfig) -> UpstreamClient:
    """Construct an UpstreamClient from application configuration."""
    return UpstreamClient(host=config.upstream_host, timeout=config.request_timeout)
