"""
FastAPI application entry point for the portal backend.

Every ``<api_prefix>/...`` request goes through one catch-all endpoint that
resolves the handler from the static route table in ``portal.routes``.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, Request
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from portal.config import Settings, get_settings
from portal.dependencies import build_storage
from portal.errors import PortalError
from portal.routes import RequestContext, build_route_table, error_response, router
from portal.storage import Storage

logger = logging.getLogger(__name__)

# Unmatched methods reach the route table too, so they get the JSON 404.
DISPATCH_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE"]


def create_app(
    settings: Optional[Settings] = None, storage: Optional[Storage] = None
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(title="Site Content Portal", version="0.1.0")
    app.state.settings = settings
    app.state.storage = storage if storage is not None else build_storage(settings)
    app.state.routes = build_route_table(settings.api_prefix)
    app.include_router(router)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        response = error_response(str(exc.detail), exc.status_code)
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    prefix = settings.api_prefix.rstrip("/")

    @app.api_route(f"{prefix}/{{path:path}}", methods=DISPATCH_METHODS)
    async def dispatch(path: str, request: Request):
        method, url_path = request.method, request.url.path
        try:
            match = app.state.routes.match(method, url_path)
            ctx = RequestContext(
                method=method,
                path=url_path,
                host=request.headers.get("host"),
                body=await request.body(),
                storage=app.state.storage,
                settings=settings,
            )
            return await run_in_threadpool(match.route.handler, ctx, match.params)
        except PortalError as exc:
            return error_response(exc.message, exc.status_code)
        except Exception:
            logger.exception("API error on %s %s", method, url_path)
            return error_response("Internal server error", 500)

    return app


app = create_app()
