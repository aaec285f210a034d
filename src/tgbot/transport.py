from __future__ import annotations

import httpx

from .errors import TransportError
from .logging import get_logger
from .redact import Redactor
from .request import RequestBody

logger = get_logger(__name__)


class HttpTransport:
    """Single-shot HTTP exchange with the Bot API.

    No retries, and the status line is not interpreted: the platform puts
    success or failure in the JSON body, so the body is returned for any
    status code.
    """

    def __init__(
        self,
        redactor: Redactor,
        *,
        timeout_s: float = 120,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._redact = redactor
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout_s)
        self._owns_http_client = http_client is None

    async def close(self) -> None:
        if self._owns_http_client:
            await self._http_client.aclose()

    def _wrap(self, exc: Exception, *, method: str | None) -> TransportError:
        message = self._redact(f"{exc.__class__.__name__}: {exc}")
        logger.error(
            "transport.network_error",
            method=method,
            error=message,
            error_type=exc.__class__.__name__,
        )
        return TransportError(message, method=method)

    async def send(
        self, url: str, body: RequestBody, *, method: str | None = None
    ) -> bytes:
        try:
            request = body.build_request(self._http_client, url)
            resp = await self._http_client.send(request)
        except (httpx.HTTPError, httpx.StreamError, OSError) as exc:
            raise self._wrap(exc, method=method) from None
        if not resp.is_success:
            logger.debug(
                "transport.http_status",
                method=method,
                status=resp.status_code,
            )
        return resp.content

    async def get(self, url: str) -> bytes:
        try:
            resp = await self._http_client.get(url)
        except (httpx.HTTPError, httpx.StreamError, OSError) as exc:
            raise self._wrap(exc, method="download") from None
        if not resp.is_success:
            raise self._wrap(
                RuntimeError(f"download failed with HTTP {resp.status_code}"),
                method="download",
            )
        return resp.content
