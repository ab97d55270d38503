"""Share service — drives the relay pipeline for one inbound request."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from ctfile_relay.config import DEFAULT_REQUEST_TIMEOUT, DEFAULT_STREAM_CHUNK_SIZE
from ctfile_relay.relay.expander import expand_listing
from ctfile_relay.relay.proxy import ProxiedDownload, open_download
from ctfile_relay.relay.resolver import resolve_many
from ctfile_relay.upstream.client import UpstreamClient, upstream_client_from_config
from ctfile_relay.upstream.links import normalize_share_link, require_param
from ctfile_relay.upstream.models import FlatFile, ResolvedDownload
from ctfile_relay.upstream.tokens import TokenPool, token_pool_from_config

if TYPE_CHECKING:
    from ctfile_relay.config import AppConfig

logger = logging.getLogger(__name__)


class ShareService:
    """Request-scoped entry points over the upstream client and token pool.

    The service holds no per-request state; every method selects its own
    credential and normalizes its own link.
    """

    def __init__(
        self,
        client: UpstreamClient,
        token_pool: TokenPool,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE,
    ) -> None:
        """Initialise the share service.

        Args:
            client: Upstream client for list and fetch_url calls.
            token_pool: Pool of upstream tokens injected into each call.
            timeout: Timeout in seconds for the final-hop download GET.
            chunk_size: Chunk size for proxied download bodies.
        """
        self._client = client
        self._tokens = token_pool
        self._timeout = timeout
        self._chunk_size = chunk_size

    def _prepare(self, xtlink: str | None, token: str | None) -> tuple[str, str]:
        """Validate the link, pick a credential, and normalize the link.

        The credential is selected before the link is touched so an empty
        pool fails without any upstream call.
        """
        raw = require_param(xtlink, "xtlink")
        credential = self._tokens.select(token)
        return normalize_share_link(raw), credential

    async def list_origin(self, xtlink: str | None, token: str | None = None) -> dict[str, Any]:
        """Return the upstream's own listing of the link root, unmodified."""
        link, credential = self._prepare(xtlink, token)
        return await asyncio.to_thread(self._client.list_raw, link, credential)

    async def list_files(self, xtlink: str | None, token: str | None = None) -> list[FlatFile]:
        """Return every file under the share link with its folder path."""
        link, credential = self._prepare(xtlink, token)
        return await expand_listing(self._client, link, credential)

    async def download_info(
        self,
        xtlink: str | None,
        file_ids: Sequence[str] = (),
        resolve: bool = False,
        token: str | None = None,
    ) -> list[FlatFile] | list[ResolvedDownload]:
        """List or resolve a set of files under a share link.

        Explicit ids are taken verbatim, without checking that they belong
        to the link. With no ids, the full recursive listing is used.

        Args:
            xtlink: Share link as supplied by the caller.
            file_ids: Explicit file ids; empty means every file.
            resolve: Whether to resolve each file to a download URL.
            token: Caller-supplied credential overriding the pool.

        Returns:
            FlatFile objects when ``resolve`` is False, otherwise one
            ResolvedDownload per target. A file that fails to resolve has
            no URL but does not fail the request.
        """
        link, credential = self._prepare(xtlink, token)
        ids = [i for i in file_ids if i]
        if ids:
            targets = [FlatFile(id=i, path=None) for i in ids]
        else:
            targets = await expand_listing(self._client, link, credential)

        if not resolve:
            return targets
        return await resolve_many(self._client, link, targets, credential)

    async def resolve_file(
        self,
        xtlink: str | None,
        file_id: str | None,
        token: str | None = None,
    ) -> str:
        """Resolve a single file to its direct download URL.

        Raises:
            MissingParameter: If xtlink or file_id is absent.
            UpstreamError: If the upstream call fails.
            MissingDownloadUrl: If the upstream omitted the URL.
        """
        require_param(file_id, "file_id")
        link, credential = self._prepare(xtlink, token)
        return await asyncio.to_thread(
            self._client.resolve_download_url, link, file_id, credential
        )

    async def open_file(
        self,
        xtlink: str | None,
        file_id: str | None,
        token: str | None = None,
        range_header: str | None = None,
        if_range_header: str | None = None,
    ) -> ProxiedDownload:
        """Resolve a single file and open its body for streaming to the client."""
        url = await self.resolve_file(xtlink, file_id, token)
        download = await asyncio.to_thread(
            open_download,
            url,
            range_header,
            if_range_header,
            self._timeout,
            self._chunk_size,
        )
        logger.info(
            "[open_file] proxying download; file_id:%s;status:%d", file_id, download.status
        )
        return download


def share_service_from_config(config: AppConfig) -> ShareService:
    """Construct a ShareService from application configuration.

    Args:
        config: Application configuration instance.

    Returns:
        Configured ShareService instance.
    """
    return ShareService(
        client=upstream_client_from_config(config),
        token_pool=token_pool_from_config(config),
        timeout=config.request_timeout,
        chunk_size=config.stream_chunk_size,
    )
