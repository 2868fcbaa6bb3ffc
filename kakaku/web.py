"""HTTP boundary: client bootstrap config and the static frontend."""

from __future__ import annotations

import logging
from pathlib import Path

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import FileResponse, JSONResponse
from starlette.routing import Route

from .config import KakakuConfig, is_placeholder_key

logger = logging.getLogger(__name__)


def _resolve_static_dir(config: KakakuConfig, static_dir: str | Path | None) -> Path | None:
    if config.server.environment != "production":
        return None
    candidate = Path(static_dir or config.server.static_dir).expanduser().resolve()
    if (candidate / "index.html").is_file():
        logger.info("静的ファイルを配信します: %s", candidate)
        return candidate
    logger.warning("フロントエンドのビルドが見つかりません: %s", candidate)
    return None


def create_app(
    config: KakakuConfig,
    *,
    static_dir: str | Path | None = None,
) -> Starlette:
    """Create the Starlette app serving ``/api/*`` and, in production, the SPA."""

    async def client_config(_: Request) -> JSONResponse:
        return JSONResponse(
            {
                "database": {"path": config.database.path},
                "mapsApiKey": config.maps.api_key,
                "aiApiKey": config.ai.api_key,
                "aiBackend": config.ai.backend,
                "aiConfigured": not is_placeholder_key(config.ai.api_key),
                "environment": config.server.environment,
            }
        )

    async def extract(_: Request) -> JSONResponse:
        return JSONResponse(
            {
                "error": "NOT_IMPLEMENTED: レシート解析はクライアント側で実行してください。",
            },
            status_code=501,
        )

    routes = [
        Route("/api/config", client_config, methods=["GET"]),
        Route("/api/extract", extract, methods=["POST"]),
    ]

    root = _resolve_static_dir(config, static_dir)
    if root is not None:
        index = root / "index.html"

        async def frontend(request: Request) -> FileResponse:
            path = request.path_params.get("path", "")
            candidate = (root / path).resolve()
            if path and candidate.is_file() and root in candidate.parents:
                return FileResponse(candidate)
            return FileResponse(index)

        routes.append(Route("/", frontend, methods=["GET"]))
        routes.append(Route("/{path:path}", frontend, methods=["GET"]))

    return Starlette(debug=False, routes=routes)


__all__ = ["create_app"]
