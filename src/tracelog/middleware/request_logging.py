"""HTTP request logging middleware.

Logs every exchange twice: "Request received" before the application runs
and "Request completed" once it has responded. Client and server errors
additionally carry the (masked, size-limited) request and response bodies.

The middleware is a plain ASGI callable so the response is never buffered:
each body chunk is recorded and forwarded in the same ``send`` call, and the
request body read for logging is replayed to the application unchanged.
"""

from __future__ import annotations

import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send
from uuid6 import uuid7

from tracelog.config import HTTPLoggingSettings
from tracelog.observability import RequestContext, RequestContextManager, get_logger
from tracelog.redaction import compile_rules, redact_body, truncate, truncate_text
from tracelog.routing import Severity, route

# Methods whose request body is never captured
BODYLESS_METHODS = frozenset({"GET", "HEAD", "OPTIONS", "TRACE"})

COMPLETION_MESSAGES = {
    Severity.INFO: "Request completed",
    Severity.WARNING: "Request completed with client error",
    Severity.ERROR: "Request completed with server error",
}


@dataclass(frozen=True)
class ResponseFailure:
    """Server error outcome of an exchange, used for severity routing."""

    status_code: int


@dataclass
class InterceptedExchange:
    """State of one request/response cycle, owned by a single middleware call."""

    request_id: str
    method: str
    path: str
    query: str = ""
    client_ip: str = ""
    user_agent: str = ""
    protocol: str = ""
    host: str = ""
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    start: float = field(default_factory=time.perf_counter)
    status_code: int | None = None
    duration_ms: float = 0.0
    request_body: str = ""
    request_body_truncated: bool = False
    response_buffer: bytearray = field(default_factory=bytearray)
    response_size: int = 0
    user_id: str | None = None
    errors: list[Any] = field(default_factory=list)

    def record_response_chunk(self, chunk: bytes, limit: int | None) -> None:
        """Account for a response chunk, keeping at most ``limit + 1`` bytes.

        The extra byte is enough to tell that the body exceeded the limit.
        """
        self.response_size += len(chunk)
        if limit is None:
            return
        room = limit + 1 - len(self.response_buffer)
        if room > 0:
            self.response_buffer += chunk[:room]

    def response_snapshot(self, limit: int) -> tuple[str, bool]:
        return truncate(bytes(self.response_buffer), limit)


def format_errors(errors: list[Any]) -> list[str]:
    """Serialize handler-reported errors for logging."""
    formatted = []
    for error in errors:
        if isinstance(error, BaseException):
            formatted.append(f"{type(error).__name__}: {error}")
        else:
            formatted.append(str(error))
    return formatted


def get_request_id(request: Request) -> str | None:
    """Get the request ID assigned by RequestLoggingMiddleware."""
    return getattr(request.state, "request_id", None)


def report_error(request: Request, error: Any) -> None:
    """Attach an error to the current exchange's completion event.

    Handlers that recover from an error (and still return a response) can
    use this so the error shows up in the request log.
    """
    errors = getattr(request.state, "errors", None)
    if errors is None:
        errors = []
        request.state.errors = errors
    errors.append(error)


class RequestLoggingMiddleware:
    """Middleware logging HTTP exchanges with correlation IDs.

    Usage:
        app.add_middleware(
            RequestLoggingMiddleware,
            settings=HTTPLoggingSettings(mask_patterns=["password", "token"]),
        )
    """

    def __init__(
        self,
        app: ASGIApp,
        settings: HTTPLoggingSettings | None = None,
        logger: Any = None,
    ):
        self.app = app
        self.settings = settings or HTTPLoggingSettings()
        self.logger = logger or get_logger("tracelog.http")

        self._header = self.settings.request_id_header
        self._max_body = self.settings.max_body_size
        self._skip_paths = frozenset(self.settings.skip_paths)
        self._ignored_statuses = frozenset(self.settings.ignore_status_codes)
        self._rules = compile_rules(self.settings.mask_patterns)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http" or scope.get("path", "") in self._skip_paths:
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        request_id = self._resolve_request_id(headers)
        exchange = InterceptedExchange(
            request_id=request_id,
            method=scope.get("method", ""),
            path=scope.get("path", ""),
            query=scope.get("query_string", b"").decode("latin-1"),
            client_ip=self._client_ip(scope, headers),
            user_agent=headers.get("user-agent", ""),
            protocol=f"HTTP/{scope.get('http_version', '1.1')}",
            host=headers.get("host", ""),
        )

        # Expose the ID to handlers via request.state
        context = RequestContext(request_id=request_id)
        state = scope.setdefault("state", {})
        state["request_id"] = request_id
        state["log_context"] = context
        state.setdefault("errors", [])

        if self.settings.log_request_body and exchange.method not in BODYLESS_METHODS:
            receive = await self._capture_request_body(exchange, receive)

        self.logger.info(
            "Request received",
            request_id=request_id,
            method=exchange.method,
            path=exchange.path,
            query=exchange.query,
            client_ip=exchange.client_ip,
            user_agent=exchange.user_agent,
        )

        capture_limit = self._max_body if self.settings.log_response_body else None

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                exchange.status_code = message["status"]
                message.setdefault("headers", [])
                MutableHeaders(scope=message)[self._header] = request_id
            elif message["type"] == "http.response.body":
                exchange.record_response_chunk(message.get("body", b""), capture_limit)
            await send(message)

        # An exception from the app propagates and skips the completion event
        with RequestContextManager.from_context(context):
            await self.app(scope, receive, send_wrapper)

        try:
            self._log_completion(exchange, state)
        except Exception as e:
            self.logger.warning(
                "Request logging failed",
                request_id=request_id,
                error=str(e),
            )

    def _resolve_request_id(self, headers: Headers) -> str:
        """Reuse the caller's request ID or generate a new one."""
        request_id = headers.get(self._header, "")
        if request_id:
            return request_id
        if self.settings.use_uuid7:
            return str(uuid7())
        return str(uuid.uuid4())

    def _client_ip(self, scope: Scope, headers: Headers) -> str:
        if self.settings.trust_forwarded_headers:
            forwarded = headers.get("x-forwarded-for", "").split(",")[0].strip()
            if forwarded:
                return forwarded
            real_ip = headers.get("x-real-ip", "").strip()
            if real_ip:
                return real_ip
        client = scope.get("client")
        return client[0] if client else ""

    async def _capture_request_body(
        self, exchange: InterceptedExchange, receive: Receive
    ) -> Receive:
        """Read the request body for logging and return a replaying receive.

        Every message read here is handed to the application again, in order,
        before further messages are pulled from the server.
        """
        messages: list[Message] = []
        try:
            while True:
                message = await receive()
                messages.append(message)
                if message["type"] != "http.request" or not message.get("more_body", False):
                    break
        except Exception as e:
            self.logger.debug(
                "Request body capture failed",
                request_id=exchange.request_id,
                error=str(e),
            )
        else:
            body = b"".join(
                m.get("body", b"") for m in messages if m["type"] == "http.request"
            )
            exchange.request_body, exchange.request_body_truncated = truncate(
                body, self._max_body
            )

        pending = deque(messages)

        async def replay() -> Message:
            if pending:
                return pending.popleft()
            return await receive()

        return replay

    def _is_ignorable(self, failure: ResponseFailure) -> bool:
        return failure.status_code in self._ignored_statuses

    def _body_for_log(self, body: str, truncated: bool) -> str:
        masked = redact_body(body, self._rules)
        if truncated:
            return masked
        return truncate_text(masked, self._max_body)

    def _log_completion(self, exchange: InterceptedExchange, state: dict[str, Any]) -> None:
        exchange.duration_ms = (time.perf_counter() - exchange.start) * 1000
        status = exchange.status_code if exchange.status_code is not None else 500

        user_id = state.get("user_id")
        if user_id not in (None, ""):
            exchange.user_id = str(user_id)
        exchange.errors = list(state.get("errors") or [])

        client_error = 400 <= status < 500
        if client_error and status in self._ignored_statuses:
            return
        server_error = ResponseFailure(status) if status >= 500 else None

        severity = route(
            exchange.duration_ms,
            None,
            server_error,
            is_ignorable=self._is_ignorable,
            verbosity=self.settings.level,
            degraded=client_error,
        )
        if severity is None:
            return

        fields: dict[str, Any] = {
            "request_id": exchange.request_id,
            "method": exchange.method,
            "path": exchange.path,
            "status_code": status,
            "duration_ms": round(exchange.duration_ms, 2),
            "client_ip": exchange.client_ip,
            "protocol": exchange.protocol,
            "host": exchange.host,
        }
        if exchange.query:
            fields["query"] = exchange.query
        if exchange.user_id:
            fields["user_id"] = exchange.user_id
        if exchange.response_size > 0:
            fields["response_size"] = exchange.response_size

        # Bodies only for client and server errors
        if severity in (Severity.WARNING, Severity.ERROR):
            if self.settings.log_response_body:
                fields["response_body"] = self._body_for_log(
                    *exchange.response_snapshot(self._max_body)
                )
            if self.settings.log_request_body and exchange.request_body:
                fields["request_body"] = self._body_for_log(
                    exchange.request_body, exchange.request_body_truncated
                )

        if exchange.errors:
            fields["handler_errors"] = format_errors(exchange.errors)

        getattr(self.logger, severity.value)(COMPLETION_MESSAGES[severity], **fields)
