"""
HTTP handlers for the portal API and the route table that dispatches to them.

Handlers are plain synchronous functions taking a ``RequestContext`` and the
path parameters bound by the router. They raise ``PortalError`` subclasses for
expected failures; the dispatch endpoint in ``portal.app`` renders those.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from portal.config import Settings
from portal.dependencies import get_storage
from portal.errors import InvalidCredentials, NotFound, ValidationFailed
from portal.routing import Route, RouteTable
from portal.schemas import (
    ContentPayload,
    ContentUpdateResponse,
    CreateUserRequest,
    HealthResponse,
    LoginRequest,
    LoginResponse,
)
from portal.sites import resolve_site_id
from portal.storage import Storage

logger = logging.getLogger(__name__)

router = APIRouter()


@dataclass
class RequestContext:
    method: str
    path: str
    host: Optional[str]
    body: bytes
    storage: Storage
    settings: Settings

    def json(self) -> Any:
        if not self.body:
            raise ValidationFailed("Request body is required")
        try:
            return json.loads(self.body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValidationFailed("Request body must be valid JSON") from exc

    @property
    def site_id(self) -> str:
        return resolve_site_id(self.host, self.settings)


def json_response(payload: Any, status_code: int = 200) -> JSONResponse:
    return JSONResponse(content=payload, status_code=status_code)


def error_response(message: str, status_code: int = 500) -> JSONResponse:
    return json_response({"error": message}, status_code)


def login(ctx: RequestContext, params: Dict[str, str]) -> JSONResponse:
    body = ctx.json()
    if not isinstance(body, dict):
        raise ValidationFailed("Username and password are required")
    try:
        payload = LoginRequest.model_validate(body)
    except ValidationError as exc:
        raise ValidationFailed("Username and password are required") from exc
    if not payload.identifier or not payload.password:
        raise ValidationFailed("Username and password are required")

    user = ctx.storage.verify_password(payload.identifier, payload.password)
    if user is None:
        logger.warning("Failed login for %r", payload.identifier)
        raise InvalidCredentials()
    logger.info("User %s logged in", user.id)
    return json_response(LoginResponse().model_dump())


def get_user(ctx: RequestContext, params: Dict[str, str]) -> JSONResponse:
    user = ctx.storage.get_user(params["id"])
    if not user:
        raise NotFound("User not found")
    return json_response(user.to_safe().model_dump())


def get_user_by_username(ctx: RequestContext, params: Dict[str, str]) -> JSONResponse:
    user = ctx.storage.get_user_by_username(params["username"])
    if not user:
        raise NotFound("User not found")
    return json_response(user.to_safe().model_dump())


def create_user(ctx: RequestContext, params: Dict[str, str]) -> JSONResponse:
    try:
        payload = CreateUserRequest.model_validate(ctx.json())
    except ValidationError as exc:
        raise ValidationFailed() from exc
    user = ctx.storage.create_user(payload.username, payload.password)
    logger.info("Created user %s (%s)", user.id, user.username)
    return json_response(user.to_safe().model_dump(), status_code=201)


def get_content(ctx: RequestContext, params: Dict[str, str]) -> JSONResponse:
    return json_response(ctx.storage.get_content(ctx.site_id))


def put_content(ctx: RequestContext, params: Dict[str, str]) -> JSONResponse:
    try:
        payload = ContentPayload.model_validate(ctx.json())
    except ValidationError as exc:
        raise ValidationFailed("Content must be an object of string values") from exc
    site_id = ctx.site_id
    ctx.storage.upsert_content(site_id, payload.root)
    logger.info("Updated %d content keys for site %s", len(payload.root), site_id)
    return json_response(ContentUpdateResponse().model_dump())


def build_route_table(prefix: str = "/api") -> RouteTable:
    prefix = prefix.rstrip("/")
    return RouteTable(
        [
            Route("POST", f"{prefix}/auth/login", login, name="login"),
            Route("GET", f"{prefix}/users/:id", get_user, name="get_user"),
            Route(
                "GET",
                f"{prefix}/users/username/:username",
                get_user_by_username,
                name="get_user_by_username",
            ),
            Route("POST", f"{prefix}/users", create_user, name="create_user"),
            Route("GET", f"{prefix}/content", get_content, name="get_content"),
            Route("PUT", f"{prefix}/content", put_content, name="put_content"),
        ]
    )


@router.get("/health", response_model=HealthResponse)
def health(storage: Storage = Depends(get_storage)):
    return HealthResponse(storage=storage.__class__.__name__)
