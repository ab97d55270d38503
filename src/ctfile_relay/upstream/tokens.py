"""Upstream token pool — picks the credential injected into upstream calls."""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ctfile_relay.errors import NoCredentialAvailable

if TYPE_CHECKING:
    from ctfile_relay.config import AppConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPool:
    """Read-only set of upstream tokens shared by all requests."""

    tokens: tuple[str, ...] = ()

    def select(self, explicit_token: str | None = None) -> str:
        """Return the credential to use for one request.

        A non-empty explicit token bypasses the pool. Otherwise a pool
        member is picked uniformly at random on every call.

        Args:
            explicit_token: Token supplied by the caller, if any.

        Returns:
            The credential string.

        Raises:
            NoCredentialAvailable: If no explicit token was given and the
                pool is empty.
        """
        if explicit_token:
            return explicit_token
        if not self.tokens:
            logger.error("[select] token pool is empty and no explicit token was given")
            raise NoCredentialAvailable()
        return random.choice(self.tokens)

    def __len__(self) -> int:
        return len(self.tokens)


def token_pool_from_config(config: AppConfig) -> TokenPool:
    """Construct a TokenPool from application configuration."""
    return TokenPool(tokens=tuple(config.tokens))
