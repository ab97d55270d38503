"""Error taxonomy shared by the relay pipeline and the HTTP surface."""


class RelayError(Exception):
    """Base class for errors scoped to a single relay request.

    Attributes:
        http_status: Status code reported to the inbound caller.
    """

    http_status = 500


class MissingParameter(RelayError):
    """Raised when a required query parameter is absent or invalid."""

    http_status = 400


class NoCredentialAvailable(RelayError):
    """Raised when no explicit token was given and the token pool is empty."""

    http_status = 400

    def __init__(self) -> None:
        super().__init__("No token configured")


class WrongPassword(RelayError):
    """Raised when the shared-secret password gate rejects a request."""

    http_status = 403

    def __init__(self) -> None:
        super().__init__("Wrong password")


class UpstreamError(RelayError):
    """Raised when an upstream call fails or returns a non-2xx response.

    ``status_code`` is the upstream HTTP status, or None when the upstream
    could not be reached at all.
    """

    http_status = 502

    def __init__(self, status_code: int | None, message: str) -> None:
        if status_code is None:
            super().__init__(f"Upstream error: {message}")
        else:
            super().__init__(f"Upstream error {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class MissingDownloadUrl(RelayError):
    """Raised when the upstream answered but omitted the download URL."""

    http_status = 502

    def __init__(self, file_id: str) -> None:
        super().__init__(f"No download_url returned for file_id:{file_id}")
        self.file_id = file_id
