"""Share link normalization and query parameter guards."""

from ctfile_relay.errors import MissingParameter

SHARE_LINK_PREFIX = "ctfile://"


def normalize_share_link(raw: str) -> str:
    """Return the share link in the scheme-prefixed form the upstream expects.

    Idempotent: a link that already carries the prefix is returned as-is.
    """
    return raw if raw.startswith(SHARE_LINK_PREFIX) else SHARE_LINK_PREFIX + raw


def require_param(value: str | None, name: str) -> str:
    """Return ``value`` or raise MissingParameter when it is absent or blank."""
    if value is None or not value.strip():
        raise MissingParameter(f'Missing "{name}" parameter')
    return value
