"""
FastAPI Application Entry Point.

Usage:
    # Run with uvicorn
    uvicorn piper_server.main:app --host 0.0.0.0 --port 3000

    # Or through the CLI (honours HOST / PORT)
    piper-server --serve
"""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from piper_server import __version__
from piper_server.api.routes import error_response, new_request_id, router
from piper_server.core.logging import configure_logging, get_logger, info, warn
from piper_server.services.speech_service import InvalidInputError, reset_service

_LOG = get_logger("piper-server.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    info(_LOG, "startup", version=__version__)
    yield
    reset_service()
    info(_LOG, "shutdown")


async def _validation_error_handler(request: Request, exc: RequestValidationError):
    """Report malformed JSON bodies in the standard error format."""
    rid = new_request_id()
    errors = exc.errors()
    fields = [".".join(str(p) for p in e.get("loc", ()) if p != "body") for e in errors]
    warn(_LOG, "request_invalid", path=request.url.path, fields=fields)
    message = "; ".join(f"{f or 'body'}: {e.get('msg', 'invalid')}" for f, e in zip(fields, errors))
    return error_response(InvalidInputError(message or "Invalid request body"), rid)


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

        1. Configures structured logging
        2. Allows cross-origin GET/POST with a JSON body from any origin
        3. Registers the API router and the request validation handler
    """
    configure_logging()

    app = FastAPI(title="piper-tts-server", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST"],
        allow_headers=["content-type"],
        expose_headers=["X-Request-Id", "X-Sample-Rate"],
    )

    app.include_router(router)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    return app


# Global application instance for ASGI servers
app = create_app()
