"""Application configuration loaded from environment variables."""

import json
import os
from dataclasses import dataclass, field

DOWNLOAD_MODE_REDIRECT = "redirect"
DOWNLOAD_MODE_PROXY = "proxy"
DOWNLOAD_MODES = frozenset({DOWNLOAD_MODE_REDIRECT, DOWNLOAD_MODE_PROXY})

DEFAULT_UPSTREAM_HOST = "rest.ctfile.com"
DEFAULT_REQUEST_TIMEOUT = 30.0
DEFAULT_STREAM_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class AppConfig:
    """Centralized application configuration.

    Every field has a default so the relay can start with an empty token
    pool; in that case callers must pass their own ``token`` on each request.
    The instance is read-only after startup and shared by all requests.
    """

    tokens: tuple[str, ...] = field(default_factory=tuple)
    upstream_host: str = DEFAULT_UPSTREAM_HOST
    password: str | None = None
    download_mode: str = DOWNLOAD_MODE_REDIRECT
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    stream_chunk_size: int = DEFAULT_STREAM_CHUNK_SIZE


def parse_tokens(raw: str | None) -> tuple[str, ...]:
    """Parse the token pool from its environment representation.

    Accepts a JSON array, a JSON object (its values are used, keys are
    labels for operators) or a comma-separated list. Blank entries are
    dropped.

    Args:
        raw: Raw value of CR_TOKENS, or None when unset.

    Returns:
        Tuple of token strings, possibly empty.
    """
    if raw is None or not raw.strip():
        return ()

    text = raw.strip()
    if text[0] in "[{":
        parsed = json.loads(text)
        values = parsed.values() if isinstance(parsed, dict) else parsed
        candidates = [str(v) for v in values]
    else:
        candidates = text.split(",")

    return tuple(c.strip() for c in candidates if c.strip())


def load_config() -> AppConfig:
    """Construct an AppConfig from environment variables.

    Optional environment variables (with defaults):
        CR_TOKENS: Upstream token pool (JSON array/object or comma-separated).
        CR_UPSTREAM_HOST: Upstream API host (default: rest.ctfile.com).
        CR_PASSWORD: Shared secret required as ?password= on every route.
        CR_DOWNLOAD_MODE: "redirect" (default) or "proxy" for /download.
        CR_REQUEST_TIMEOUT: Per upstream call timeout in seconds (default: 30).
        CR_STREAM_CHUNK_SIZE: Chunk size for proxied bodies in bytes (default: 65536).

    Returns:
        Configured AppConfig instance.

    Raises:
        ValueError: If CR_DOWNLOAD_MODE is not a known mode or a numeric
            variable cannot be parsed.
    """
    download_mode = os.environ.get("CR_DOWNLOAD_MODE", DOWNLOAD_MODE_REDIRECT).strip().lower()
    if download_mode not in DOWNLOAD_MODES:
        raise ValueError(f"Unknown CR_DOWNLOAD_MODE: {download_mode}")

    return AppConfig(
        tokens=parse_tokens(os.environ.get("CR_TOKENS")),
        upstream_host=os.environ.get("CR_UPSTREAM_HOST", DEFAULT_UPSTREAM_HOST),
        password=os.environ.get("CR_PASSWORD") or None,
        download_mode=download_mode,
        request_timeout=float(os.environ.get("CR_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)),
        stream_chunk_size=int(os.environ.get("CR_STREAM_CHUNK_SIZE", DEFAULT_STREAM_CHUNK_SIZE)),
    )
