"""
request_api.py — RequestApi (CallExternalEndpoint): один исходящий HTTP-запрос.

Все поля запроса интерполируются заранее; onStart выполняется до запроса,
затем onSuccess или onFailure. В локальной области ветки доступны
response {status, headers, body, url, ok}, error {message, code, name, status, body}
и ok. Превышение таймаута считается неуспехом (код TIMEOUT), а не исключением.
"""

import asyncio
import json
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

import aiohttp
import structlog

from actions.base import BaseAction
from dialog.exceptions import EndpointTimeout, EvaluationError
from functions.base import parse_number
from interpolation.engine import format_value

if TYPE_CHECKING:
    from dialog.context_manager import ProcessingContext

logger = structlog.get_logger("scenario_bot.actions.request_api")

METHODS_WITHOUT_BODY = ("GET", "HEAD")


@dataclass
class PreparedRequest:
    method: str
    url: str
    query: List[Tuple[str, str]] = field(default_factory=list)
    headers: Dict[str, str] = field(default_factory=dict)
    data: Optional[str] = None
    timeout: float = 15


def error_info(message: str, code: str, name: str, status: Optional[int] = None, body: Any = None) -> Dict[str, Any]:
    return {"message": message, "code": code, "name": name, "status": status, "body": body}


def build_request(params: Dict[str, Any], default_timeout: float) -> PreparedRequest:
    method = str(params.get("method") or "GET").upper()

    url = params.get("url")
    if not url:
        base = format_value(params.get("baseUrl")).rstrip("/")
        path = format_value(params.get("path"))
        if not base and not path.startswith(("http://", "https://")):
            raise EvaluationError('RequestApi action requires "url" or "baseUrl"')
        if base and path and not path.startswith("/"):
            path = "/" + path
        url = base + path
    url = str(url)

    query: List[Tuple[str, str]] = []
    for key, value in (params.get("params") or {}).items():
        if value is None:
            continue
        for item in value if isinstance(value, list) else [value]:
            query.append((str(key), format_value(item)))

    headers = {str(k): format_value(v) for k, v in (params.get("headers") or {}).items()}

    data = None
    body = params.get("body")
    if body is not None and method not in METHODS_WITHOUT_BODY:
        data = body if isinstance(body, str) else json.dumps(body, ensure_ascii=False)
        if not any(name.lower() == "content-type" for name in headers):
            headers["Content-Type"] = "application/json"

    timeout = default_timeout
    if params.get("timeout") is not None:
        timeout = parse_number(params["timeout"])
    elif params.get("timeoutMs") is not None:
        milliseconds = parse_number(params["timeoutMs"])
        timeout = milliseconds / 1000 if milliseconds is not None else None
    if timeout is None or timeout <= 0:
        raise EvaluationError("RequestApi action: timeout must be a positive number")

    return PreparedRequest(method=method, url=url, query=query, headers=headers, data=data, timeout=timeout)


def _parse_body(text: str, content_type: str) -> Any:
    if not text:
        return None
    if "json" in content_type or text[:1] in ("{", "["):
        try:
            return json.loads(text)
        except ValueError:
            return text
    return text


class RequestApiAction(BaseAction):
    action_type = "RequestApi"
    aliases = ("CallExternalEndpoint",)
    graph_fields = frozenset({"onStart", "onSuccess", "onFailure"})

    async def execute(self, params: Dict[str, Any], ctx: "ProcessingContext") -> None:
        settings = ctx.processor.settings
        try:
            request = build_request(params, settings.request_timeout_sec)
        except EvaluationError as e:
            logger.warning("request_prepare_failed", session_id=ctx.session.id, error=e.message)
            error = error_info(e.message, "PRE_REQUEST_ERROR", "PreRequestError")
            await self._finish(params, ctx, None, error)
            return

        await self.run_graph(params.get("onStart"), ctx)

        response, error = await self.perform(request, ctx)
        await self._finish(params, ctx, response, error)

    async def perform(self, request: PreparedRequest, ctx: "ProcessingContext"):
        """(response, error); error is None при успехе."""
        logger.info("request_started", session_id=ctx.session.id, method=request.method, url=request.url)
        try:
            response = await self._send(request, ctx)
        except EndpointTimeout as e:
            logger.warning("request_timeout", url=request.url, timeout=request.timeout)
            return None, error_info(str(e), "TIMEOUT", "TimeoutError")
        except aiohttp.ClientConnectorError as e:
            logger.warning("request_connection_error", url=request.url, error=str(e))
            return None, error_info(str(e), "CONNECTION_ERROR", "ConnectionError")
        except aiohttp.ClientError as e:
            logger.warning("request_failed", url=request.url, error=str(e))
            return None, error_info(str(e) or type(e).__name__, "REQUEST_FAILED", "RequestError")

        status, body = response["status"], response["body"]
        if status >= 400:
            message = f"HTTP {status}: {response.get('reason') or 'error'}"
            return response, error_info(message, f"HTTP_{status}", "HttpError", status, body)
        if isinstance(body, dict) and "ok" in body and body.get("ok") is not True:
            code = str(body.get("error_code") or body.get("code") or "REQUEST_FAILED")
            message = str(body.get("description") or body.get("message") or "Request failed")
            return response, error_info(message, code, "RequestError", status, body)
        return response, None

    async def _send(self, request: PreparedRequest, ctx: "ProcessingContext") -> Dict[str, Any]:
        factory = ctx.processor.http_session_factory or aiohttp.ClientSession
        timeout = aiohttp.ClientTimeout(total=request.timeout)

        async def do_request():
            async with factory(timeout=timeout) as http:
                async with http.request(request.method, request.url, params=request.query or None,
                                        headers=request.headers, data=request.data) as resp:
                    # Тело может быть не в UTF-8: битые байты заменяются
                    text = await resp.text(errors="replace")
                    return {
                        "status": resp.status,
                        "reason": resp.reason,
                        "headers": dict(resp.headers),
                        "body": _parse_body(text, resp.headers.get("Content-Type", "")),
                        "url": str(resp.url),
                    }

        try:
            return await asyncio.wait_for(do_request(), timeout=request.timeout)
        except asyncio.TimeoutError as e:
            raise EndpointTimeout(f"Request to {request.url} timed out after {request.timeout}s") from e

    async def _finish(self, params: Dict[str, Any], ctx: "ProcessingContext",
                      response: Optional[Dict[str, Any]], error: Optional[Dict[str, Any]]) -> None:
        ok = error is None
        if response is not None:
            response["ok"] = ok
        local = {"response": response, "error": error, "ok": ok}
        for name, value in local.items():
            ctx.scope.set_variable(name, value)
        logger.info("request_finished", session_id=ctx.session.id, ok=ok,
                    status=(response or {}).get("status"), code=(error or {}).get("code"))
        await self.run_graph(params.get("onSuccess") if ok else params.get("onFailure"), ctx, local)
