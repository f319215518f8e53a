"""FastAPI application answering forward-auth checks by client IP address."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from anyio import to_thread
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import PlainTextResponse

from ipgate.allow_list import AllowList
from ipgate.config import get_settings
from ipgate.gatekeeper import Gatekeeper
from ipgate.logging_config import configure_logging
from ipgate.pruner import Pruner
from ipgate.store import AccessStore
from ipgate.utils import FORWARDED_FOR, IPAddress, client_address

settings = get_settings()
configure_logging(settings.log_level)
LOGGER = logging.getLogger(__name__)

store = AccessStore(settings.schedule)
gatekeeper = Gatekeeper(store, AllowList(settings.allow_list), settings.headers)
pruner = Pruner(store, settings.prune_interval)

# The forward-auth hook may use any verb.
METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    to_thread.current_default_thread_limiter().total_tokens = settings.threads
    pruner.start()
    LOGGER.info("server started", extra={"listen_address": settings.listen_address})
    try:
        yield
    finally:
        pruner.stop()
        LOGGER.info("server exit")


app = FastAPI(title="ipgate", lifespan=lifespan)


@app.middleware("http")
async def log_unhandled_errors(request: Request, call_next):  # type: ignore[override]
    client_ip = request.client.host if request.client else "unknown"
    try:
        response = await call_next(request)
    except Exception as exc:  # noqa: BLE001
        LOGGER.exception("Unhandled exception", extra={"client_ip": client_ip})
        raise exc
    return response


def get_gatekeeper() -> Gatekeeper:
    """Provide the process-wide gatekeeper."""

    return gatekeeper


def _client_address(request: Request) -> Optional[IPAddress]:
    peer = request.client.host if request.client else None
    return client_address(request.headers, peer)


def _client_label(request: Request, address: Optional[IPAddress]) -> str:
    if address is not None:
        return str(address)
    peer = request.client.host if request.client else None
    return request.headers.get(FORWARDED_FOR) or peer or "unknown"


@app.api_route("/allowed", methods=METHODS, response_class=PlainTextResponse)
def allowed(request: Request, keeper: Gatekeeper = Depends(get_gatekeeper)) -> PlainTextResponse:
    """Tell the proxy whether the client address currently has access."""

    address = _client_address(request)
    result = keeper.check(address)
    if not result.authorized:
        LOGGER.debug("forbidden request", extra={"client_ip": _client_label(request, address)})
        return PlainTextResponse("Please (re)authenticate yourself", status_code=403)
    LOGGER.debug("allowed request", extra={"client_ip": str(address)})
    return PlainTextResponse("Ok", headers=result.headers)


@app.api_route("/authorize", methods=METHODS, response_class=PlainTextResponse)
def authorize(request: Request, keeper: Gatekeeper = Depends(get_gatekeeper)) -> PlainTextResponse:
    """Grant the client address access and remember the configured headers."""

    address = _client_address(request)
    if address is None:
        LOGGER.warning("unparsable client address", extra={"client_ip": _client_label(request, address)})
        raise HTTPException(status_code=400, detail="Unable to determine client address.")
    keeper.authorize(address, request.headers)
    return PlainTextResponse("Ok")


def serve() -> None:
    """Run the application with uvicorn on the configured address."""

    host, port = settings.bind_address
    uvicorn.run(app, host=host, port=port, log_config=None)


if __name__ == "__main__":
    serve()
