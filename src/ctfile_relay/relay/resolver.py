"""Batch resolution of file ids to download URLs with per-item failures."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from ctfile_relay.errors import MissingDownloadUrl, UpstreamError
from ctfile_relay.upstream.models import FlatFile, ResolvedDownload

if TYPE_CHECKING:
    from ctfile_relay.upstream.client import UpstreamClient

logger = logging.getLogger(__name__)


async def resolve_many(
    client: UpstreamClient,
    link: str,
    targets: Sequence[FlatFile],
    credential: str,
) -> list[ResolvedDownload]:
    """Resolve every target concurrently.

    A target that fails to resolve yields a ResolvedDownload without a URL
    and with the error message; it never aborts the other targets.

    Args:
        client: Upstream client used for the fetch_url calls.
        link: Normalized share link.
        targets: Files to resolve; ids are used verbatim.
        credential: Upstream token for this request.

    Returns:
        One ResolvedDownload per target, in target order.
    """
    results = await asyncio.gather(
        *(_resolve_one(client, link, target, credential) for target in targets)
    )
    failed = sum(1 for r in results if not r.resolved)
    logger.info(
        "[resolve_many] batch resolved; target_count:%d;failed_count:%d", len(results), failed
    )
    return list(results)


async def _resolve_one(
    client: UpstreamClient,
    link: str,
    target: FlatFile,
    credential: str,
) -> ResolvedDownload:
    try:
        url = await asyncio.to_thread(client.resolve_download_url, link, target.id, credential)
    except (UpstreamError, MissingDownloadUrl) as exc:
        logger.warning("[_resolve_one] resolution failed; file_id:%s;error:%s", target.id, exc)
        return ResolvedDownload(id=target.id, path=target.path, error=str(exc))
    return ResolvedDownload(id=target.id, path=target.path, url=url)
