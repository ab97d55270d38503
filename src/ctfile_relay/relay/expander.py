"""Recursive listing expansion — flattens a share link's folder tree."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from ctfile_relay.upstream.models import FlatFile

if TYPE_CHECKING:
    from ctfile_relay.upstream.client import UpstreamClient

logger = logging.getLogger(__name__)


@dataclass
class _Folder:
    """A container discovered during expansion and the children listed under it."""

    folder_id: str | None
    prefix: tuple[str, ...]
    children: list[_Folder | FlatFile] = field(default_factory=list)


async def expand_listing(client: UpstreamClient, link: str, credential: str) -> list[FlatFile]:
    """Walk every folder reachable from a share link and return its files.

    Folders are listed one level at a time; all containers found on a level
    are listed concurrently. The collected tree is then flattened so the
    result is in depth-first order, following the order the upstream
    returned at each level.

    The upstream is trusted to return an acyclic tree: a folder that
    contains itself would make expansion run forever.

    Args:
        client: Upstream client used for the list calls.
        link: Normalized share link.
        credential: Upstream token for this request.

    Returns:
        FlatFile objects whose path is the '/'-joined folder names from the
        link root down to the file.

    Raises:
        UpstreamError: If any list call fails; no partial listing is returned.
    """
    root = _Folder(folder_id=None, prefix=())
    pending = [root]
    depth = 0

    while pending:
        listings = await asyncio.gather(
            *(
                asyncio.to_thread(client.list_directory, link, credential, folder.folder_id)
                for folder in pending
            )
        )

        next_level: list[_Folder] = []
        for folder, entries in zip(pending, listings):
            for entry in entries:
                if entry.is_container:
                    child = _Folder(
                        folder_id=entry.id,
                        prefix=(*folder.prefix, entry.display_name),
                    )
                    folder.children.append(child)
                    next_level.append(child)
                else:
                    path = "/".join((*folder.prefix, entry.display_name))
                    folder.children.append(FlatFile(id=entry.id, path=path))

        logger.debug(
            "[expand_listing] expanded level; depth:%d;folder_count:%d", depth, len(pending)
        )
        pending = next_level
        depth += 1

    files = _flatten(root)
    logger.info("[expand_listing] expansion complete; depth:%d;file_count:%d", depth, len(files))
    return files


def _flatten(root: _Folder) -> list[FlatFile]:
    """Depth-first walk of the collected tree using an explicit stack."""
    files: list[FlatFile] = []
    stack = [iter(root.children)]
    while stack:
        child = next(stack[-1], None)
        if child is None:
            stack.pop()
        elif isinstance(child, _Folder):
            stack.append(iter(child.children))
        else:
            files.append(child)
    return files
