"""FastAPI application exposing interaction sessions and the JSON-RPC tool gateway."""

from __future__ import annotations

import json
import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse, Response

from pallet_interactor import mcp
from pallet_interactor.config import default_config
from pallet_interactor.gateway_api import default_client
from pallet_interactor.interactor import (
    Category,
    Dispatcher,
    InvalidParamIndexError,
    InvalidTransitionError,
    MetadataView,
    SubmissionState,
    SubmissionStatus,
    TransferForm,
    UnknownSessionError,
    list_callables,
    list_namespaces,
    submission_error,
)
from pallet_interactor.interactor.validators import is_valid_amount, is_valid_ss58_address
from pallet_interactor.metadata_source import default_metadata_cache
from pallet_interactor.metrics import default_metrics
from pallet_interactor.rate_limiter import PerKeyRateLimiter
from pallet_interactor.sessions import InteractionSession, default_store
from pallet_interactor.tools import describe_callable_tool, list_accounts_tool, transfer_choices_tool

logger = logging.getLogger(__name__)
LOG_EXTRA_FIELDS = ("request_id", "session_id", "category", "error")


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "message": record.getMessage(),
            "name": record.name,
        }
        for key in LOG_EXTRA_FIELDS:
            if hasattr(record, key):
                payload[key] = getattr(record, key)
        return json.dumps(payload)


def _configure_logging() -> None:
    level = getattr(logging, default_config.log_level.upper(), logging.INFO)
    if default_config.log_format.lower() == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(JsonFormatter())
        logging.basicConfig(level=level, handlers=[handler])
    else:
        logging.basicConfig(level=level)


_configure_logging()
rate_limiter = PerKeyRateLimiter(
    rate_per_sec=default_config.rate_limit_qps,
    overrides=default_config.per_key_rate_limits,
)
dispatcher = Dispatcher(default_client)
HEALTH_STATUS = {"status": "ok"}
APP_VERSION = "0.1.0"
MCP_SERVER_NAME = mcp.SERVER_NAME
MCP_SERVER_VERSION = mcp.SERVER_VERSION


@asynccontextmanager
async def lifespan(_app: FastAPI):
    yield
    await default_client.aclose()
    default_metadata_cache.invalidate()


app = FastAPI(
    title="Pallet Interactor",
    description="Metadata-driven query, extrinsic, RPC and constant interaction service.",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.middleware("http")
async def add_request_context(request: Request, call_next):
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id
    start = time.time()
    default_metrics.incr_request()
    response = await call_next(request)
    duration_ms = (time.time() - start) * 1000
    default_metrics.record_duration(request_id, duration_ms)
    response.headers["X-Request-ID"] = request_id
    return response


@app.exception_handler(UnknownSessionError)
async def unknown_session_handler(_request: Request, exc: UnknownSessionError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": str(exc), "code": exc.code})


@app.exception_handler(InvalidTransitionError)
async def invalid_transition_handler(_request: Request, exc: InvalidTransitionError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": str(exc), "code": exc.code})


@app.exception_handler(InvalidParamIndexError)
async def invalid_index_handler(request: Request, exc: InvalidParamIndexError) -> JSONResponse:
    # Signals a client that is out of sync with the derived parameter list.
    logger.warning(
        "invalid parameter index error=%s",
        exc,
        extra={"request_id": getattr(request.state, "request_id", None), "error": str(exc)},
    )
    return JSONResponse(status_code=422, content={"error": str(exc), "code": exc.code})


async def _allow(key: str) -> bool:
    if await rate_limiter.allow(key):
        return True
    logger.warning("key=%s outcome=rate_limited", key)
    default_metrics.incr_rate_limited()
    return False


async def _enforce_rate_limit(key: str) -> Optional[JSONResponse]:
    if await _allow(key):
        return None
    return JSONResponse(status_code=429, content={"error": "Rate limit exceeded"})


async def _current_metadata() -> Optional[MetadataView]:
    view = await default_metadata_cache.get()
    if view is not default_store.metadata:
        default_store.set_metadata(view)
    return view


def _parse_category(raw: Any) -> Optional[Category]:
    try:
        return Category.parse(raw)
    except ValueError:
        return None


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


def _log_transition(session: InteractionSession, transition: str, request: Request) -> None:
    state = session.form.state
    default_metrics.record_transition(transition)
    logger.info(
        "session=%s transition=%s category=%s namespace=%s callable=%s",
        session.session_id,
        transition,
        state.category.value if state.category else None,
        state.namespace,
        state.callable,
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "session_id": session.session_id,
            "category": state.category.value if state.category else None,
        },
    )


@app.get("/health")
async def health() -> JSONResponse:
    """Lightweight health endpoint for monitoring."""
    return JSONResponse(content=HEALTH_STATUS)


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Return in-process metrics snapshot."""
    return JSONResponse(content=default_metrics.snapshot())


@app.post("/metadata/refresh")
async def refresh_metadata() -> JSONResponse:
    """Reload the metadata document from the gateway and rebind every session."""
    limited = await _enforce_rate_limit("metadata_refresh")
    if limited:
        return limited
    view = await default_metadata_cache.refresh()
    default_store.set_metadata(view)
    default_metrics.incr_metadata_refresh()
    return JSONResponse(content={"available": view is not None})


@app.get("/metadata/{category}/namespaces")
async def namespaces(category: str) -> JSONResponse:
    parsed = _parse_category(category)
    if parsed is None:
        return _bad_request("Unknown category.")
    view = await _current_metadata()
    return JSONResponse(
        content={"category": parsed.value, "namespaces": [ref.name for ref in list_namespaces(view, parsed)]}
    )


@app.get("/metadata/{category}/{namespace}/callables")
async def callables(category: str, namespace: str) -> JSONResponse:
    parsed = _parse_category(category)
    if parsed is None:
        return _bad_request("Unknown category.")
    view = await _current_metadata()
    return JSONResponse(
        content={
            "category": parsed.value,
            "namespace": namespace,
            "callables": [ref.name for ref in list_callables(view, parsed, namespace)],
        }
    )


@app.get("/metadata/{category}/{namespace}/{callable_name}/parameters")
async def parameters(category: str, namespace: str, callable_name: str) -> JSONResponse:
    await _current_metadata()
    result = await describe_callable_tool(category, namespace, callable_name)
    if "error" in result:
        status_code = 400 if result["error"] == "Unknown category." else 404
        return JSONResponse(status_code=status_code, content=result)
    return JSONResponse(content=result)


@app.post("/sessions")
async def create_session(request: Request, category: Optional[str] = Body(None, embed=True)) -> JSONResponse:
    """Open a new interaction session, optionally pre-selecting a category."""
    limited = await _enforce_rate_limit("create_session")
    if limited:
        return limited
    raw_category = category or default_config.default_category
    parsed = _parse_category(raw_category)
    if parsed is None:
        return _bad_request("Unknown category.")
    await _current_metadata()
    session = default_store.create(category=parsed)
    default_metrics.incr_sessions_created()
    _log_transition(session, "create", request)
    return JSONResponse(status_code=201, content=session.to_dict())


@app.get("/sessions")
async def list_sessions() -> JSONResponse:
    return JSONResponse(content={"sessions": default_store.ids()})


@app.get("/sessions/{session_id}")
async def get_session(session_id: str) -> JSONResponse:
    session = default_store.get(session_id)
    return JSONResponse(content=session.to_dict())


@app.delete("/sessions/{session_id}")
async def delete_session(session_id: str) -> Response:
    default_store.delete(session_id)
    return Response(status_code=204)


@app.post("/sessions/{session_id}/category")
async def select_category(
    session_id: str, request: Request, category: str = Body(..., embed=True)
) -> JSONResponse:
    session = default_store.get(session_id)
    parsed = _parse_category(category)
    if parsed is None:
        return _bad_request("Unknown category.")
    await _current_metadata()
    session.select_category(parsed)
    _log_transition(session, "select_category", request)
    return JSONResponse(content=session.to_dict())


@app.post("/sessions/{session_id}/namespace")
async def select_namespace(
    session_id: str, request: Request, namespace: str = Body(..., embed=True)
) -> JSONResponse:
    session = default_store.get(session_id)
    session.select_namespace(namespace)
    _log_transition(session, "select_namespace", request)
    return JSONResponse(content=session.to_dict())


@app.post("/sessions/{session_id}/callable")
async def select_callable(
    session_id: str, request: Request, callable_name: str = Body(..., embed=True, alias="callable")
) -> JSONResponse:
    session = default_store.get(session_id)
    session.select_callable(callable_name)
    _log_transition(session, "select_callable", request)
    return JSONResponse(content=session.to_dict())


@app.put("/sessions/{session_id}/params/{index}")
async def set_param(session_id: str, index: int, value: str = Body(..., embed=True)) -> JSONResponse:
    session = default_store.get(session_id)
    session.set_param_value(index, value)
    return JSONResponse(content=session.to_dict())


def _record_outcome(
    session_id: str, category: Category, status: SubmissionStatus, request_id: Optional[str]
) -> None:
    if not status.done:
        return
    succeeded = status.state is SubmissionState.SUCCEEDED
    default_metrics.record_submission(category.value, success=succeeded)
    logger.info(
        "session=%s outcome=%s",
        session_id,
        "success" if succeeded else "error",
        extra={"request_id": request_id, "session_id": session_id, "category": category.value},
    )


@app.post("/sessions/{session_id}/submit")
async def submit_session(
    session_id: str,
    request: Request,
    mode: Optional[str] = Body(None),
    signer: Optional[str] = Body(None),
    wait: bool = Body(True),
) -> JSONResponse:
    """
    Resolve the session's form into a call descriptor and hand it to the gateway.

    With ``wait`` false the submission runs in the background and the reply is
    202 with the pending status; poll the session to see the outcome.
    """
    session = default_store.get(session_id)
    category = session.form.state.category
    if category is None or not session.form.state.callable:
        return JSONResponse(status_code=409, content={"error": "Select a callable before submitting."})
    invalid = submission_error(category, mode, signer)
    if invalid:
        return _bad_request(invalid)
    limited = await _enforce_rate_limit(f"submit:{category.value}")
    if limited:
        return limited

    request_id = getattr(request.state, "request_id", None)
    if wait:
        status = await session.submit(dispatcher, mode=mode, signer=signer)
        _record_outcome(session_id, category, status, request_id)
        status_code = 200
    else:
        task = session.start(dispatcher, mode=mode, signer=signer)
        status = session.status
        task.add_done_callback(lambda _task: _record_outcome(session_id, category, status, request_id))
        status_code = 202
    return JSONResponse(
        status_code=status_code,
        content={
            "sessionId": session_id,
            "call": status.descriptor.to_dict() if status.descriptor else None,
            **status.to_dict(),
        },
    )


@app.get("/accounts")
async def accounts() -> JSONResponse:
    result = await list_accounts_tool()
    return JSONResponse(content=result)


@app.get("/transfer")
async def transfer_form() -> JSONResponse:
    """Destination choices and hints for the transfer panel."""
    return JSONResponse(content=await transfer_choices_tool())


@app.post("/transfer")
async def transfer(
    request: Request,
    to: str = Body(...),
    amount: str = Body(...),
    signer: str = Body(...),
) -> JSONResponse:
    """Send a signed balances transfer."""
    if not is_valid_ss58_address(to):
        return _bad_request("Invalid destination address.")
    if not is_valid_amount(amount):
        return _bad_request("Invalid amount; must be a non-negative integer.")
    limited = await _enforce_rate_limit(f"submit:{Category.EXTRINSIC.value}")
    if limited:
        return limited

    form = TransferForm()
    form.set_destination(to)
    form.set_amount(amount)
    status = await form.submit(dispatcher, signer=signer)
    default_metrics.record_submission(
        Category.EXTRINSIC.value, success=status.state is SubmissionState.SUCCEEDED
    )
    logger.info(
        "transfer outcome=%s",
        status.state.value,
        extra={"request_id": getattr(request.state, "request_id", None), "category": Category.EXTRINSIC.value},
    )
    return JSONResponse(content={"call": form.to_descriptor().to_dict(), **status.to_dict()})


@app.post("/mcp")
async def mcp_gateway(request: Request) -> Response:
    """JSON-RPC 2.0 entry point for MCP-style tool clients (initialize, tools/list, tools/call)."""
    start_time = time.time()
    try:
        body = await request.json()
    except ValueError:
        reply = mcp.error_reply(None, mcp.PARSE_ERROR, "Parse error", status_code=400)
    else:
        reply = await mcp.handle_request(body, allow=_allow)
    logger.debug(
        "mcp outcome=%s status=%s duration_ms=%.2f",
        reply.outcome,
        reply.status_code,
        (time.time() - start_time) * 1000,
        extra={"request_id": getattr(request.state, "request_id", None)},
    )
    if reply.payload is None:
        return Response(status_code=reply.status_code)
    return JSONResponse(status_code=reply.status_code, content=reply.payload)


# Run with: uvicorn pallet_interactor.server:app --reload
