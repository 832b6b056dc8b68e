"""
Lightweight JSON-RPC surface for MCP-style tooling.

Maps tool names to the stateless tool implementations and answers the
JSON-RPC 2.0 methods (initialize, tools/list, tools/call) on their behalf. The
caller must handle authentication to the HTTP server hosting this adapter.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pallet_interactor.interactor import Category
from pallet_interactor.interactor.dispatch import EXTRINSIC_MODES
from pallet_interactor.interactor.validators import ADDRESS_REGEX
from pallet_interactor.tools import (
    call_callable_tool,
    describe_callable_tool,
    list_accounts_tool,
    list_callables_tool,
    list_namespaces_tool,
    transfer_choices_tool,
)

logger = logging.getLogger(__name__)

CATEGORY_SCHEMA: Dict[str, Any] = {
    "type": "string",
    "description": "Interaction category",
    "enum": [category.value for category in Category],
}
NAMESPACE_SCHEMA: Dict[str, Any] = {"type": "string", "minLength": 1, "description": "Pallet or RPC section"}
CALLABLE_SCHEMA: Dict[str, Any] = {"type": "string", "minLength": 1, "description": "Callable name"}
SUBMIT_MODES: List[str] = [*EXTRINSIC_MODES] + [c.value for c in Category if c is not Category.EXTRINSIC]

ToolCallable = Callable[..., Awaitable[Any]] | Callable[..., Any]


@dataclass(slots=True)
class ToolDefinition:
    name: str
    description: str
    params: Dict[str, Any]
    input_schema: Dict[str, Any]
    callable: ToolCallable


TOOL_REGISTRY: Dict[str, ToolDefinition] = {
    "list_namespaces": ToolDefinition(
        name="list_namespaces",
        description="List namespaces (pallets / RPC sections) with at least one callable.",
        params={"category": "string (required)"},
        input_schema={
            "type": "object",
            "properties": {"category": CATEGORY_SCHEMA},
            "required": ["category"],
            "additionalProperties": False,
        },
        callable=list_namespaces_tool,
    ),
    "list_callables": ToolDefinition(
        name="list_callables",
        description="List callables inside a namespace, sorted by name.",
        params={"category": "string (required)", "namespace": "string (required)"},
        input_schema={
            "type": "object",
            "properties": {"category": CATEGORY_SCHEMA, "namespace": NAMESPACE_SCHEMA},
            "required": ["category", "namespace"],
            "additionalProperties": False,
        },
        callable=list_callables_tool,
    ),
    "describe_callable": ToolDefinition(
        name="describe_callable",
        description="Return the ordered, typed parameters a callable requires.",
        params={
            "category": "string (required)",
            "namespace": "string (required)",
            "callable": "string (required)",
        },
        input_schema={
            "type": "object",
            "properties": {
                "category": CATEGORY_SCHEMA,
                "namespace": NAMESPACE_SCHEMA,
                "callable": CALLABLE_SCHEMA,
            },
            "required": ["category", "namespace", "callable"],
            "additionalProperties": False,
        },
        callable=describe_callable_tool,
    ),
    "call_callable": ToolDefinition(
        name="call_callable",
        description="Submit a callable with positional arguments through the gateway.",
        params={
            "category": "string (required)",
            "namespace": "string (required)",
            "callable": "string (required)",
            "args": "array of strings (optional, positional)",
            "mode": "string (optional, SIGNED-TX/UNSIGNED-TX for extrinsics, else the category)",
            "signer": "string (optional, signing account address)",
        },
        input_schema={
            "type": "object",
            "properties": {
                "category": CATEGORY_SCHEMA,
                "namespace": NAMESPACE_SCHEMA,
                "callable": CALLABLE_SCHEMA,
                "args": {"type": "array", "items": {"type": "string"}},
                "mode": {"type": "string", "enum": SUBMIT_MODES},
                "signer": {
                    "type": "string",
                    "description": "SS58 account address",
                    "pattern": ADDRESS_REGEX.pattern,
                },
            },
            "required": ["category", "namespace", "callable"],
            "additionalProperties": False,
        },
        callable=call_callable_tool,
    ),
    "list_accounts": ToolDefinition(
        name="list_accounts",
        description="List keyring accounts known to the gateway.",
        params={},
        input_schema={
            "type": "object",
            "properties": {},
            "required": [],
            "additionalProperties": False,
        },
        callable=list_accounts_tool,
    ),
    "transfer_choices": ToolDefinition(
        name="transfer_choices",
        description="Destination choices and hints for a balances transfer.",
        params={},
        input_schema={
            "type": "object",
            "properties": {},
            "required": [],
            "additionalProperties": False,
        },
        callable=transfer_choices_tool,
    ),
}


def list_tools() -> List[Dict[str, Any]]:
    """Return a simple list of available tools."""
    return [
        {
            "name": tool.name,
            "description": tool.description,
            "params": tool.params,
            "inputSchema": tool.input_schema,
        }
        for tool in TOOL_REGISTRY.values()
    ]


async def call_tool(tool_name: str, params: Optional[Dict[str, Any]] = None) -> Any:
    """Dispatch to a tool by name."""
    params = params or {}
    tool = TOOL_REGISTRY.get(tool_name)
    if tool is None:
        return {"error": f"Unknown tool: {tool_name}"}

    # Match parameters by name; tools already handle validation and error shaping.
    try:
        result = tool.callable(**params)
        if isinstance(result, Awaitable):
            return await result  # type: ignore[return-value]
        return result
    except TypeError:
        return {"error": "Invalid parameters."}
    except Exception:
        logger.exception("Unexpected error calling tool %s", tool_name)
        return {"error": "Unexpected error while calling tool."}


# JSON-RPC 2.0 handling

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602

SERVER_NAME = "pallet-interactor"
SERVER_VERSION = "0.1.0"
NOTIFICATION_METHODS = frozenset({"notifications/initialized", "initialized"})

RateCheck = Callable[[str], Awaitable[bool]]


@dataclass(slots=True)
class RpcReply:
    """HTTP status plus JSON body; a None payload means the reply has no body."""

    status_code: int = 200
    payload: Optional[Dict[str, Any]] = None
    outcome: str = "success"


class RpcFailure(Exception):
    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class RateLimited(Exception):
    pass


def success_reply(rpc_id: Any, result: Any) -> RpcReply:
    return RpcReply(payload={"jsonrpc": "2.0", "id": rpc_id, "result": result})


def error_reply(rpc_id: Any, code: int, message: str, *, status_code: int = 200) -> RpcReply:
    return RpcReply(
        status_code=status_code,
        payload={"jsonrpc": "2.0", "id": rpc_id, "error": {"code": code, "message": message}},
        outcome="error",
    )


def wrap_tool_result(result: Any) -> Dict[str, Any]:
    """Shape a tool output into an MCP content array; in-band errors set isError."""
    if isinstance(result, str):
        return {"content": [{"type": "text", "text": result}]}
    if isinstance(result, dict) and "error" in result:
        text = str(result.get("error") or "Error")
        return {"content": [{"type": "text", "text": text}], "isError": True, "structuredContent": result}
    try:
        text = json.dumps(result, ensure_ascii=True)
    except (TypeError, ValueError):
        text = str(result)
    return {"content": [{"type": "text", "text": text}], "structuredContent": result}


async def _initialize(params: Dict[str, Any], _allow: RateCheck) -> Dict[str, Any]:
    protocol_version = params.get("protocolVersion")
    if not isinstance(protocol_version, str) or not protocol_version:
        raise RpcFailure(INVALID_PARAMS, "Invalid params")
    return {
        "protocolVersion": protocol_version,
        "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
        "capabilities": {"tools": {"listChanged": False}},
    }


async def _tools_list(_params: Dict[str, Any], allow: RateCheck) -> Dict[str, Any]:
    if not await allow("list_tools"):
        raise RateLimited()
    return {"tools": list_tools()}


async def _tools_call(params: Dict[str, Any], allow: RateCheck) -> Dict[str, Any]:
    tool_name = params.get("tool") or params.get("name")
    arguments = params.get("params")
    if arguments is None:
        arguments = params.get("arguments") or {}
    if not isinstance(tool_name, str) or not tool_name.strip() or not isinstance(arguments, dict):
        raise RpcFailure(INVALID_PARAMS, "Invalid params")
    if not await allow(tool_name):
        raise RateLimited()
    return wrap_tool_result(await call_tool(tool_name, arguments))


RPC_METHODS: Dict[str, Callable[[Dict[str, Any], RateCheck], Awaitable[Dict[str, Any]]]] = {
    "initialize": _initialize,
    "list_tools": _tools_list,
    "tools/list": _tools_list,
    "call_tool": _tools_call,
    "tools/call": _tools_call,
}


async def handle_request(body: Any, *, allow: RateCheck) -> RpcReply:
    """Answer one decoded JSON-RPC request body."""
    if not isinstance(body, dict):
        return error_reply(None, INVALID_REQUEST, "Invalid request", status_code=400)
    rpc_id = body.get("id")
    method = body.get("method")
    params = body.get("params")
    if params is None:
        params = {}
    if not isinstance(params, dict):
        return error_reply(rpc_id, INVALID_PARAMS, "Invalid params")
    if not isinstance(method, str) or not method:
        return error_reply(rpc_id, INVALID_REQUEST, "Invalid request")
    if method in NOTIFICATION_METHODS:
        return RpcReply(status_code=204)

    handler = RPC_METHODS.get(method)
    if handler is None:
        return error_reply(rpc_id, METHOD_NOT_FOUND, "Method not found")
    try:
        result = await handler(params, allow)
    except RateLimited:
        return RpcReply(status_code=429, payload={"error": "Rate limit exceeded"}, outcome="rate_limited")
    except RpcFailure as exc:
        return error_reply(rpc_id, exc.code, exc.message)
    return success_reply(rpc_id, result)
