#!/usr/bin/env python3
"""HTTP surface for registry admission: publish, update and device login."""

import time
import uuid
from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any

import structlog
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .auth.models import AuthMethod, SessionState
from .auth.service import AuthService
from .config import get_github_config, get_server_settings
from .errors import AdmissionError, InvalidInput
from .logging import configure_logging, get_uvicorn_log_config
from .registry.models import PublishMode, ServerRecord
from .registry.publisher import PublishController
from .registry.store import InMemoryRegistryStore

logger = structlog.get_logger()

Handler = Callable[[Request], Awaitable[JSONResponse]]


def access_log(endpoint: str) -> Callable[[Handler], Handler]:
    """Decorator to add access logging to HTTP handlers."""

    def decorator(func: Handler) -> Handler:
        @wraps(func)
        async def wrapper(request: Request) -> JSONResponse:
            start_time = time.time()
            logger.info(f"Request received: {endpoint}", endpoint=endpoint)

            try:
                response = await func(request)
            except AdmissionError as e:
                duration_ms = round((time.time() - start_time) * 1000, 2)
                logger.warning(
                    f"Request rejected: {endpoint}",
                    endpoint=endpoint,
                    duration_ms=duration_ms,
                    error=e.kind.value,
                    retryable=e.retryable,
                )
                raise

            duration_ms = round((time.time() - start_time) * 1000, 2)
            logger.info(
                f"Request completed: {endpoint}",
                endpoint=endpoint,
                duration_ms=duration_ms,
                status=response.status_code,
            )
            return response

        return wrapper

    return decorator


async def admission_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render an AdmissionError with the status code of its kind."""
    if not isinstance(exc, AdmissionError):
        raise exc
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind.value, "detail": exc.message},
    )


async def _json_body(request: Request) -> dict[str, Any]:
    raw = await request.body()
    if not raw:
        return {}
    try:
        body = await request.json()
    except ValueError as e:
        raise InvalidInput("Request body is not valid JSON") from e
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return body


def _server_id(request: Request) -> str:
    server_id = request.path_params["server_id"]
    try:
        uuid.UUID(server_id)
    except ValueError as e:
        raise InvalidInput("Invalid server ID format") from e
    return server_id


def _record_from_body(body: dict[str, Any]) -> ServerRecord:
    fields = {}
    for field in ("name", "version", "description", "repository_url"):
        value = body.get(field, "")
        if not isinstance(value, str):
            raise InvalidInput(f"Field '{field}' must be a string")
        fields[field] = value
    return ServerRecord(**fields)


def create_app(auth_service: AuthService, controller: PublishController) -> Starlette:
    """Build the ASGI application around the admission components."""
    started_at = time.time()

    async def _admit(
        request: Request, mode: PublishMode, existing_id: str | None
    ) -> ServerRecord:
        record = _record_from_body(await _json_body(request))
        if not record.name:
            raise InvalidInput("Name is required")
        if not record.version:
            raise InvalidInput("Version is required")

        await auth_service.authorize(request.headers.get("Authorization"), record.name)
        return await controller.submit(record, mode, existing_id)

    @access_log("publish")
    async def publish(request: Request) -> JSONResponse:
        stored = await _admit(request, PublishMode.CREATE, None)
        return JSONResponse(stored.to_dict(), status_code=201)

    @access_log("update")
    async def update(request: Request) -> JSONResponse:
        stored = await _admit(request, PublishMode.UPDATE, _server_id(request))
        return JSONResponse(stored.to_dict())

    @access_log("get_server")
    async def get_server(request: Request) -> JSONResponse:
        record = await controller.store.get(_server_id(request))
        return JSONResponse(record.to_dict())

    @access_log("start_device_auth")
    async def start_device_auth(request: Request) -> JSONResponse:
        body = await _json_body(request)
        try:
            method = AuthMethod(body.get("method", AuthMethod.GITHUB.value))
        except ValueError as e:
            raise InvalidInput(f"Unknown auth method: {body.get('method')}") from e

        instructions, handle = await auth_service.start_auth_flow(
            method, body.get("scope")
        )
        return JSONResponse({"handle": handle, "instructions": instructions})

    @access_log("check_device_auth")
    async def check_device_auth(request: Request) -> JSONResponse:
        handle = request.path_params["handle"]
        status = await auth_service.check_auth_status(handle)
        content: dict[str, Any] = {"status": status}
        if status == SessionState.AUTHORIZED.value:
            content["access_token"] = auth_service.access_token(handle)
        return JSONResponse(content)

    async def health(request: Request) -> JSONResponse:
        return JSONResponse(
            {"status": "healthy", "uptime_seconds": time.time() - started_at}
        )

    return Starlette(
        routes=[
            Route("/health", health, methods=["GET"]),
            Route("/v0/publish", publish, methods=["POST"]),
            Route("/v0/servers/{server_id}", get_server, methods=["GET"]),
            Route("/v0/servers/{server_id}", update, methods=["PUT"]),
            Route("/v0/auth/device", start_device_auth, methods=["POST"]),
            Route("/v0/auth/device/{handle}", check_device_auth, methods=["GET"]),
        ],
        exception_handlers={AdmissionError: admission_error_handler},
    )


def main() -> None:
    """Main entry point for the server."""
    import uvicorn

    configure_logging()

    github_config = get_github_config()
    if not github_config.client_id:
        logger.warning(
            "GITHUB_CLIENT_ID is not set; device login for io.github namespaces will fail"
        )

    settings = get_server_settings()
    app = create_app(
        AuthService(github_config), PublishController(InMemoryRegistryStore())
    )
    logger.info(
        "Starting registry admission server", host=settings.host, port=settings.port
    )

    try:
        uvicorn.run(
            app,
            host=settings.host,
            port=settings.port,
            timeout_graceful_shutdown=settings.shutdown_timeout_seconds,
            log_level="info",
            log_config=get_uvicorn_log_config(),
        )
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully...")
    except Exception as e:
        logger.error(f"Server error: {e}")
        raise


if __name__ == "__main__":
    main()
