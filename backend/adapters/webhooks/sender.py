"""
Outbound webhook sender.

Performs exactly one signed HTTP POST per call and reports what happened.
Retrying is the scheduler's job; this adapter never loops.
"""

import asyncio
import json
import logging
import time
from collections.abc import Callable
from typing import Optional

import httpx

from core.domain.delivery import AttemptResult, DeliveryTask, ErrorKind
from core.interfaces.services import DeliveryExecutor
from core.security.signing import SIGNATURE_HEADER, sign_payload
from infrastructure.config.settings import settings

logger = logging.getLogger(__name__)

DEFAULT_EVENT_TYPE = "article.published"
UNREADABLE_BODY = "Unable to read response body"
NETWORK_ERROR_MESSAGE = "Network error or invalid URL"


class WebhookSender(DeliveryExecutor):
    """
    Delivers webhook payloads to project endpoints.

    Every request carries ``Content-Type``, ``User-Agent``, ``X-Webhook-Event``
    and ``X-Webhook-Timestamp`` headers. ``X-Webhook-Signature`` is added only
    when the task has a signing secret.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        max_body_chars: Optional[int] = None,
        client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize webhook sender.

        Args:
            timeout: Hard limit for the whole attempt in seconds
            user_agent: User-Agent header value
            max_body_chars: Longest response body kept on the task record
            client: Shared HTTP client; a short-lived one is used per attempt if omitted
            clock: Source of the Unix timestamp header
        """
        self.timeout = timeout or settings.webhook_timeout_seconds
        self.user_agent = user_agent or settings.webhook_user_agent
        self.max_body_chars = max_body_chars or settings.webhook_max_response_body
        self._client = client
        self._clock = clock

    def serialize(self, task: DeliveryTask) -> str:
        """Body to send: the stored string as-is, dicts serialized as JSON."""
        if isinstance(task.payload, str):
            return task.payload
        return json.dumps(task.payload)

    def build_headers(self, task: DeliveryTask, body: str) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
            "X-Webhook-Event": task.event_type or DEFAULT_EVENT_TYPE,
            "X-Webhook-Timestamp": str(int(self._clock())),
        }
        if task.secret:
            headers[SIGNATURE_HEADER] = sign_payload(body, task.secret)
        return headers

    async def attempt(self, task: DeliveryTask) -> AttemptResult:
        """
        POST the task payload once.

        Returns:
            AttemptResult; HTTP error statuses come back as ``ok=False`` with
            ``http_status`` set, transport failures as ``error_kind`` set.
        """
        body = self.serialize(task)
        headers = self.build_headers(task, body)
        start = time.perf_counter()

        try:
            status_code, reason, response_body = await asyncio.wait_for(
                self._send(task.target, body, headers), timeout=self.timeout
            )
        except (TimeoutError, httpx.TimeoutException) as e:
            return self._failure(
                start, ErrorKind.TIMEOUT, f"Request timeout ({int(self.timeout)} seconds)", e
            )
        except (httpx.TransportError, httpx.InvalidURL) as e:
            return self._failure(start, ErrorKind.NETWORK, NETWORK_ERROR_MESSAGE, e)
        except Exception as e:
            return self._failure(start, ErrorKind.UNKNOWN, str(e) or type(e).__name__, e)

        duration_ms = self._elapsed_ms(start)
        response_body = response_body[: self.max_body_chars]

        if 200 <= status_code < 300:
            return AttemptResult(
                ok=True,
                duration_ms=duration_ms,
                http_status=status_code,
                response_body=response_body,
            )

        return AttemptResult(
            ok=False,
            duration_ms=duration_ms,
            http_status=status_code,
            response_body=response_body,
            error_message=f"HTTP {status_code}: {reason}",
            error_kind=ErrorKind.HTTP,
        )

    async def _send(self, url: str, body: str, headers: dict[str, str]) -> tuple[int, str, str]:
        if self._client is not None:
            return await self._post(self._client, url, body, headers)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._post(client, url, body, headers)

    async def _post(
        self,
        client: httpx.AsyncClient,
        url: str,
        body: str,
        headers: dict[str, str],
    ) -> tuple[int, str, str]:
        async with client.stream(
            "POST", url, content=body.encode(), headers=headers, follow_redirects=True
        ) as response:
            try:
                await response.aread()
                text = response.text
            except (httpx.HTTPError, UnicodeDecodeError) as e:
                logger.warning("Could not read webhook response body from %s: %s", url, e)
                text = UNREADABLE_BODY
            return response.status_code, response.reason_phrase, text

    def _failure(
        self, start: float, kind: ErrorKind, message: str, exc: Exception
    ) -> AttemptResult:
        return AttemptResult(
            ok=False,
            duration_ms=self._elapsed_ms(start),
            error_message=message,
            error_kind=kind,
            error_details={"error": str(exc) or type(exc).__name__},
        )

    @staticmethod
    def _elapsed_ms(start: float) -> int:
        return int((time.perf_counter() - start) * 1000)
