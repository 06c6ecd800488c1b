"""JSON-RPC 2.0 command router for the runtime server.

Dispatches incoming WebSocket messages to registered handlers.
"""

from __future__ import annotations

import json
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, ValidationError

from acp_runtime.errors import RuntimeFault, error_text
from acp_runtime.logging import get_logger

log = get_logger("server.rpc")

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
HANDLER_ERROR = -32000

Handler = Callable[[Any], Awaitable[Any]]


class RpcRouter:
    """Method table plus request/response framing."""

    def __init__(self) -> None:
        self._handlers: dict[str, tuple[Handler, type[BaseModel] | None]] = {}

    def register(
        self,
        method: str,
        handler: Handler,
        params: type[BaseModel] | None = None,
    ) -> None:
        """Register a handler.

        With a ``params`` model the handler receives the validated model,
        otherwise the raw params value.
        """
        self._handlers[method] = (handler, params)

    def clear(self) -> None:
        self._handlers.clear()

    @property
    def methods(self) -> list[str]:
        return sorted(self._handlers)

    async def handle_message(self, raw: str) -> str | None:
        """Handle one incoming message.

        Returns:
            The serialized response, or None for notifications.
        """
        try:
            request = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            return _error(PARSE_ERROR, "Parse error", None)

        if not isinstance(request, dict):
            return _error(INVALID_REQUEST, "Invalid request: expected an object", None)

        msg_id = request.get("id")
        is_notification = "id" not in request
        method = request.get("method")

        if not method or not isinstance(method, str):
            return _error(INVALID_REQUEST, "Invalid request: missing method", msg_id)

        entry = self._handlers.get(method)
        if entry is None:
            if is_notification:
                return None
            return _error(METHOD_NOT_FOUND, f"Method not found: {method}", msg_id)

        handler, params_model = entry
        params = request.get("params")

        try:
            if params_model is not None:
                params = params_model.model_validate(params if params is not None else {})
        except ValidationError as e:
            log.debug("Invalid params for %s: %s", method, e)
            if is_notification:
                return None
            return _error(INVALID_PARAMS, f"Invalid params: {_first_error(e)}", msg_id)

        try:
            result = await handler(params)
        except RuntimeFault as e:
            log.debug("%s failed: %s", method, e.message)
            if is_notification:
                return None
            return _error(HANDLER_ERROR, e.message, msg_id, {"type": e.code})
        except Exception as e:
            log.exception("Handler for %s raised", method)
            if is_notification:
                return None
            return _error(HANDLER_ERROR, error_text(e), msg_id)

        if is_notification:
            return None
        return json.dumps({"jsonrpc": "2.0", "result": result, "id": msg_id})


def _error(code: int, message: str, msg_id: Any, data: Any = None) -> str:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return json.dumps({"jsonrpc": "2.0", "error": error, "id": msg_id})


def _first_error(e: ValidationError) -> str:
    errors = e.errors()
    if not errors:
        return str(e)
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
