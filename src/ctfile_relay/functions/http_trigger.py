"""HTTP trigger blueprint — share link listing, resolution and download endpoints."""

import logging
from typing import Any

import azure.functions as func
from azurefunctions.extensions.http.fastapi import (
    JSONResponse,
    RedirectResponse,
    Request,
    Response,
    StreamingResponse,
)

from ctfile_relay import __version__
from ctfile_relay.config import DOWNLOAD_MODE_PROXY, AppConfig, load_config
from ctfile_relay.errors import MissingParameter, RelayError, UpstreamError, WrongPassword
from ctfile_relay.orchestration.share_service import share_service_from_config
from ctfile_relay.relay.proxy import ProxiedDownload

logger = logging.getLogger(__name__)

bp = func.Blueprint()

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "*",
}

_METHODS = [func.HttpMethod.GET, func.HttpMethod.OPTIONS]


class ProxiedStreamingResponse(StreamingResponse):
    """Streams a proxied download.

    The upstream is closed however the ASGI call ends, including when the
    client disconnects mid-body and no background task would run.
    """

    def __init__(self, proxied: ProxiedDownload) -> None:
        super().__init__(
            proxied.iter_bytes(),
            status_code=proxied.status,
            headers=proxied.headers,
        )
        self._proxied = proxied

    async def __call__(self, scope: Any, receive: Any, send: Any) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self._proxied.close()


def _with_cors(response: Response) -> Response:
    for name, value in CORS_HEADERS.items():
        response.headers[name] = value
    return response


def _preflight() -> Response:
    return _with_cors(Response(status_code=204))


def _check_password(req: Request, config: AppConfig) -> None:
    """Reject the request unless it carries the configured shared secret."""
    if config.password and req.query_params.get("password") != config.password:
        raise WrongPassword()


def _error_response(exc: RelayError) -> Response:
    body: dict[str, object] = {"status": "error", "message": str(exc)}
    if isinstance(exc, UpstreamError) and exc.status_code is not None:
        body["upstream_status"] = exc.status_code
    return _with_cors(JSONResponse(body, status_code=exc.http_status))


def _internal_error() -> Response:
    body = {"status": "error", "message": "Internal server error"}
    return _with_cors(JSONResponse(body, status_code=500))


@bp.route(route="health", methods=_METHODS, auth_level=func.AuthLevel.ANONYMOUS)
async def health_check(req: Request) -> Response:
    """Health check endpoint. Returns service status and version."""
    if req.method == "OPTIONS":
        return _preflight()
    logger.info("[health_check] health check requested")
    return _with_cors(JSONResponse({"status": "ok", "version": __version__}))


@bp.route(route="origin/list", methods=_METHODS, auth_level=func.AuthLevel.ANONYMOUS)
async def origin_list(req: Request) -> Response:
    """Return the upstream listing of the share link root without reshaping it."""
    if req.method == "OPTIONS":
        return _preflight()
    logger.info("[origin_list] origin listing requested")

    try:
        config = load_config()
        _check_password(req, config)
        service = share_service_from_config(config)
        result = await service.list_origin(
            req.query_params.get("xtlink"), req.query_params.get("token")
        )
        return _with_cors(JSONResponse(result))

    except RelayError as exc:
        logger.warning("[origin_list] request rejected; error:%s", exc)
        return _error_response(exc)
    except Exception:
        logger.error("[origin_list] origin listing failed", exc_info=True)
        return _internal_error()


@bp.route(route="list", methods=_METHODS, auth_level=func.AuthLevel.ANONYMOUS)
async def list_files(req: Request) -> Response:
    """Recursively list every file under a share link as ``[{id, path}]``."""
    if req.method == "OPTIONS":
        return _preflight()
    logger.info("[list_files] recursive listing requested")

    try:
        config = load_config()
        _check_password(req, config)
        service = share_service_from_config(config)
        files = await service.list_files(
            req.query_params.get("xtlink"), req.query_params.get("token")
        )
        logger.info("[list_files] listing complete; file_count:%d", len(files))
        return _with_cors(JSONResponse([f.to_dict() for f in files]))

    except RelayError as exc:
        logger.warning("[list_files] request rejected; error:%s", exc)
        return _error_response(exc)
    except Exception:
        logger.error("[list_files] recursive listing failed", exc_info=True)
        return _internal_error()


@bp.route(route="download_info", methods=_METHODS, auth_level=func.AuthLevel.ANONYMOUS)
async def download_info(req: Request) -> Response:
    """List or resolve files under a share link.

    ``file_id`` may be repeated to select files; without it every file in
    the recursive listing is used. ``download=true`` resolves each file to
    a ``downloadUrl``; files that fail to resolve are returned without one.
    """
    if req.method == "OPTIONS":
        return _preflight()
    logger.info("[download_info] download info requested")

    try:
        config = load_config()
        _check_password(req, config)
        service = share_service_from_config(config)
        results = await service.download_info(
            req.query_params.get("xtlink"),
            file_ids=req.query_params.getlist("file_id"),
            resolve=req.query_params.get("download", "").lower() == "true",
            token=req.query_params.get("token"),
        )
        return _with_cors(JSONResponse([r.to_dict() for r in results]))

    except RelayError as exc:
        logger.warning("[download_info] request rejected; error:%s", exc)
        return _error_response(exc)
    except Exception:
        logger.error("[download_info] download info failed", exc_info=True)
        return _internal_error()


@bp.route(route="download", methods=_METHODS, auth_level=func.AuthLevel.ANONYMOUS)
async def download(req: Request) -> Response:
    """Download a single file.

    In redirect mode the client is sent a 302 to the resolved URL. In
    proxy mode the body is streamed through, honouring Range and If-Range.
    """
    if req.method == "OPTIONS":
        return _preflight()
    logger.info("[download] download requested")

    try:
        config = load_config()
        _check_password(req, config)
        file_ids = req.query_params.getlist("file_id")
        if len(file_ids) > 1:
            raise MissingParameter('Expected exactly one "file_id" parameter')
        file_id = file_ids[0] if file_ids else None
        xtlink = req.query_params.get("xtlink")
        token = req.query_params.get("token")
        service = share_service_from_config(config)

        if config.download_mode != DOWNLOAD_MODE_PROXY:
            url = await service.resolve_file(xtlink, file_id, token)
            return _with_cors(RedirectResponse(url, status_code=302))

        proxied = await service.open_file(
            xtlink,
            file_id,
            token,
            range_header=req.headers.get("range"),
            if_range_header=req.headers.get("if-range"),
        )
        return _with_cors(ProxiedStreamingResponse(proxied))

    except RelayError as exc:
        logger.warning("[download] request rejected; error:%s", exc)
        return _error_response(exc)
    except Exception:
        logger.error("[download] download failed", exc_info=True)
        return _internal_error()
