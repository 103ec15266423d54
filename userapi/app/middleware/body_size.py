"""Request body size limit middleware.

Bounds the memory and processing cost of request ingestion before any
handler or deserializer sees the body. Bytes are counted as chunks arrive,
so chunked transfer encoding cannot bypass the limit.
"""

from starlette.requests import ClientDisconnect
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from userapi.app.api.errors import build_error_response
from userapi.app.core.logging import get_log_context, get_logger
from userapi.app.exceptions import PayloadTooLargeError

logger = get_logger(__name__)

DEFAULT_MAX_BODY_SIZE = 10 * 1024 * 1024

# Methods without a meaningful body skip byte counting entirely.
BODYLESS_METHODS = frozenset({"GET", "HEAD", "DELETE"})


class BoundedBodyReader:
    """Reads an ASGI request body, refusing to buffer past ``max_size``.

    The running total is checked before each chunk is buffered; once it
    exceeds the limit no further messages are pulled from the transport.
    """

    def __init__(self, receive: Receive, max_size: int):
        """Initialize the reader.

        Args:
            receive: The ASGI receive callable
            max_size: Maximum number of bytes allowed
        """
        self._receive = receive
        self._max_size = max_size
        self.bytes_received = 0

    async def read(self) -> bytes:
        """Drain the body.

        Returns:
            The complete body

        Raises:
            PayloadTooLargeError: On the chunk that takes the total past max_size
            ClientDisconnect: If the client goes away before the body ends
        """
        chunks: list[bytes] = []
        while True:
            message = await self._receive()

            if message["type"] == "http.disconnect":
                raise ClientDisconnect()
            if message["type"] != "http.request":
                continue

            chunk = message.get("body", b"")
            self.bytes_received += len(chunk)
            if self.bytes_received > self._max_size:
                raise PayloadTooLargeError(self._max_size)
            chunks.append(chunk)

            if not message.get("more_body", False):
                return b"".join(chunks)


def _replay_receive(body: bytes, receive: Receive) -> Receive:
    """Hand a buffered body to the downstream app as a single message.

    Later calls fall through to the transport so disconnects still surface.
    """
    delivered = False

    async def replay() -> Message:
        nonlocal delivered
        if not delivered:
            delivered = True
            return {"type": "http.request", "body": body, "more_body": False}
        return await receive()

    return replay


class BodySizeLimitMiddleware:
    """ASGI middleware to limit request body size.

    Returns HTTP 413 (Payload Too Large) with the standard error envelope as
    soon as the limit is crossed; the route handler is never invoked. A body
    of exactly ``max_body_size`` bytes is accepted.

    Implemented as raw ASGI middleware so it wraps the receive callable
    before Starlette's Request is constructed.

    Usage:
        app.add_middleware(BodySizeLimitMiddleware, max_body_size=10*1024*1024)
    """

    def __init__(self, app: ASGIApp, max_body_size: int | None = None):
        """Initialize the middleware.

        Args:
            app: The ASGI application
            max_body_size: Maximum allowed body size in bytes (default: 10MB)
        """
        self.app = app
        self.max_body_size = max_body_size or DEFAULT_MAX_BODY_SIZE

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Process the ASGI request with size limit enforcement."""
        if scope["type"] != "http" or scope["method"] in BODYLESS_METHODS:
            await self.app(scope, receive, send)
            return

        reader = BoundedBodyReader(receive, self.max_body_size)
        try:
            body = await reader.read()
        except PayloadTooLargeError as exc:
            logger.warning(
                f"Rejected oversize body: {scope['method']} {scope['path']}",
                extra=get_log_context(
                    bytes_received=reader.bytes_received,
                    max_body_size=self.max_body_size,
                ),
            )
            response = build_error_response(
                exc.status_code,
                exc.message,
                scope["path"],
                scope["method"],
                error=exc.error,
            )
            await response(scope, receive, send)
            return

        await self.app(scope, _replay_receive(body, receive), send)
