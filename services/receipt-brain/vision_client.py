"""HTTP client for the hosted vision model.

The model is a black box: send an image plus a text prompt, receive text.
Uses httpx with configurable timeouts and tenacity for retry with
exponential backoff on 503 and connection errors. A caller-supplied timeout
bounds the whole call including retries.
"""

import asyncio
import base64
import logging

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from config import settings

logger = logging.getLogger(__name__)


class VisionClientConfigError(RuntimeError):
    """Vision model endpoint or credential missing (deployment error)."""


class VisionClientError(Exception):
    """Base class for per-request vision model failures."""


class VisionServiceUnavailable(VisionClientError):
    """Vision model is temporarily unavailable (retryable: 503, connection error, timeout)."""


class VisionServiceError(VisionClientError):
    """Vision model returned a non-retryable error or an unusable answer."""


class VisionClient:
    """Async HTTP client for the vision model with retry and backoff."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: int | None = None,
        connect_timeout: int | None = None,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
        retry_backoff: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        base_url = base_url if base_url is not None else settings.VISION_SERVICE_URL
        api_key = api_key if api_key is not None else settings.VISION_API_KEY
        if not base_url:
            raise VisionClientConfigError("VISION_SERVICE_URL is not configured")
        if not api_key:
            raise VisionClientConfigError("VISION_API_KEY is not configured")

        self._base_url = base_url.rstrip("/")
        self._retry_attempts = retry_attempts if retry_attempts is not None else settings.VISION_RETRY_ATTEMPTS
        self._retry_delay = retry_delay if retry_delay is not None else settings.VISION_RETRY_DELAY
        self._retry_backoff = retry_backoff if retry_backoff is not None else settings.VISION_RETRY_BACKOFF

        read_timeout = timeout if timeout is not None else settings.VISION_TIMEOUT_SECONDS
        conn_timeout = connect_timeout if connect_timeout is not None else settings.VISION_CONNECT_TIMEOUT

        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=httpx.Timeout(
                connect=float(conn_timeout),
                read=float(read_timeout),
                write=30.0,
                pool=30.0,
            ),
            transport=transport,
        )

    async def aclose(self):
        await self._client.aclose()

    async def infer(
        self,
        image_bytes: bytes,
        mime_type: str,
        prompt: str,
        *,
        max_tokens: int,
        temperature: float | None = None,
        timeout: float | None = None,
    ) -> tuple[str, int]:
        """Send an image and prompt to the vision model.

        Returns (raw_text, inference_time_ms).
        Raises VisionServiceUnavailable (retryable, also on timeout) or
        VisionServiceError (non-retryable).
        """
        payload = {
            "image_b64": base64.b64encode(image_bytes).decode(),
            "mime_type": mime_type,
            "prompt": prompt,
            "max_tokens": max_tokens,
            "temperature": temperature if temperature is not None else settings.VISION_TEMPERATURE,
        }

        if timeout is None:
            return await self._infer_with_retry(payload)

        try:
            return await asyncio.wait_for(self._infer_with_retry(payload), timeout)
        except asyncio.TimeoutError as e:
            logger.warning("Vision model call exceeded %.1fs", timeout)
            raise VisionServiceUnavailable(f"Vision model call timed out after {timeout:.1f}s") from e

    async def _infer_with_retry(self, payload: dict) -> tuple[str, int]:
        """Retry wrapper, configured from the instance settings."""

        @retry(
            retry=retry_if_exception_type(VisionServiceUnavailable),
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(
                multiplier=self._retry_delay,
                exp_base=self._retry_backoff,
                max=30,
            ),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                "Vision model unavailable, retrying in %.1fs (attempt %d/%d)",
                state.next_action.sleep,  # type: ignore[union-attr]
                state.attempt_number,
                self._retry_attempts,
            ),
        )
        async def _do_infer() -> tuple[str, int]:
            return await self._send_infer(payload)

        return await _do_infer()

    async def _send_infer(self, payload: dict) -> tuple[str, int]:
        """Send a single inference request."""
        try:
            resp = await self._client.post("/infer", json=payload)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            logger.warning("Vision model connection failed: %s", e)
            raise VisionServiceUnavailable(f"Cannot connect to vision model: {e}") from e
        except httpx.ReadTimeout as e:
            logger.warning("Vision model read timeout: %s", e)
            raise VisionServiceUnavailable(f"Vision model read timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.error("Vision model HTTP error: %s", e)
            raise VisionServiceError(f"Vision model HTTP error: {e}") from e

        if resp.status_code == 503:
            detail = _detail(resp, "Service unavailable")
            logger.warning("Vision model returned 503: %s", detail)
            raise VisionServiceUnavailable(detail)

        if resp.status_code != 200:
            detail = _detail(resp, f"HTTP {resp.status_code}")
            logger.error("Vision model error %d: %s", resp.status_code, detail)
            raise VisionServiceError(detail)

        try:
            data = resp.json()
        except ValueError as e:
            raise VisionServiceError("Vision model answered with a non-JSON body") from e

        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str):
            raise VisionServiceError("Vision model answer has no text")
        inference_ms = data.get("inference_time_ms")
        return text, inference_ms if isinstance(inference_ms, int) else 0

    async def health(self) -> dict:
        """Check vision model health. Returns a health dict, never raises."""
        try:
            resp = await self._client.get("/health", timeout=10.0)
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Vision model health check failed: %s", e)
            return {"status": "unreachable", "error": str(e)}


def _detail(resp: httpx.Response, default: str) -> str:
    try:
        body = resp.json()
    except ValueError:
        return default
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return default
