"""Data models for CTFile listings and resolved downloads."""

from dataclasses import dataclass

# Upstream JSON field names
FIELD_RESULTS = "results"
FIELD_KEY = "key"
FIELD_NAME = "name"
FIELD_DOWNLOAD_URL = "download_url"

# Request body field names
FIELD_XTLINK = "xtlink"
FIELD_FOLDER_ID = "folder_id"
FIELD_FILE_ID = "file_id"
FIELD_TOKEN = "token"
FIELD_RELOAD = "reload"

# Folder keys are prefixed with "d", file keys with "f"
CONTAINER_KEY_PREFIX = "d"


@dataclass(frozen=True)
class ListingEntry:
    """One item returned by a single upstream list call."""

    id: str
    display_name: str
    is_container: bool

    @classmethod
    def from_upstream(cls, raw: dict) -> "ListingEntry":  # type: ignore[type-arg]
        """Map a raw upstream result dict to a ListingEntry."""
        key = str(raw.get(FIELD_KEY, ""))
        return cls(
            id=key,
            display_name=str(raw.get(FIELD_NAME, "")),
            is_container=key.startswith(CONTAINER_KEY_PREFIX),
        )


@dataclass(frozen=True)
class FlatFile:
    """A downloadable leaf with its path relative to the share link root.

    ``path`` is None for ids supplied explicitly by the caller, since they
    were never located in a listing.
    """

    id: str
    path: str | None

    def to_dict(self) -> dict[str, str | None]:
        return {"id": self.id, "path": self.path}


@dataclass(frozen=True)
class ResolvedDownload:
    """Outcome of resolving one file id to a direct download URL."""

    id: str
    path: str | None
    url: str | None = None
    error: str | None = None

    @property
    def resolved(self) -> bool:
        return self.url is not None

    def to_dict(self) -> dict[str, str | None]:
        """Serialize for the JSON response; absent fields are omitted."""
        body: dict[str, str | None] = {"id": self.id, "path": self.path}
        if self.url is not None:
            body["downloadUrl"] = self.url
        if self.error is not None:
            body["error"] = self.error
        return body
