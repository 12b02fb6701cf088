"""HTTP gateway to a local Ollama generative vision backend."""

from __future__ import annotations

import base64
import logging
import re
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from ..errors import EmptyResponseError, TransportError
from .prompts import NUTRITION_PROMPT

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llava:7b-v1.6"

_DATA_URI_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")


def strip_data_uri(image: str) -> str:
    """Remove a ``data:image/*;base64,`` prefix; bare base64 passes through."""
    return _DATA_URI_PREFIX.sub("", image, count=1)


def encode_image(image: bytes | str) -> str:
    """Return the bare base64 form the backend expects."""
    if isinstance(image, (bytes, bytearray)):
        return base64.b64encode(image).decode("ascii")
    return strip_data_uri(image)


def _is_retryable(exc: BaseException) -> bool:
    # Connection failures, timeouts and 5xx: the server may still be warming up.
    return isinstance(exc, TransportError) and (
        exc.status_code is None or exc.status_code >= 500
    )


class OllamaGateway:
    """Send one image plus a prompt to ``/api/generate`` and return the text.

    The answer is returned verbatim; interpreting it is the parser's job so the
    same gateway can serve different prompt strategies.

    Example:
        >>> async with OllamaGateway() as gateway:
        ...     text = await gateway.analyze(jpeg_bytes)
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 120.0,
        max_attempts: int = 3,
        backoff: float = 1.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._url = f"{base_url.rstrip('/')}/api/generate"
        self._timeout = timeout
        self._max_attempts = max_attempts
        self._backoff = backoff
        self._client = client
        self._owns_client = client is None

    @property
    def url(self) -> str:
        return self._url

    async def __aenter__(self) -> OllamaGateway:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def analyze(
        self,
        image: bytes | str,
        prompt: str = NUTRITION_PROMPT,
        model: str = DEFAULT_MODEL,
        *,
        json_format: bool = True,
    ) -> str:
        """Return the backend's ``response`` text for one image.

        Raises:
            TransportError: non-2xx status, connection failure or timeout
                (after retries).
            EmptyResponseError: 2xx reply without a ``response`` string.
        """
        payload: dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "images": [encode_image(image)],
            "stream": False,
        }
        if json_format:
            payload["format"] = "json"

        logger.info(
            "Sending %.1fkb image to model=%s at %s",
            len(payload["images"][0]) / 1024,
            model,
            self._url,
        )

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_exponential(multiplier=self._backoff, max=10),
            retry=retry_if_exception(_is_retryable),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        ):
            with attempt:
                response = await self._post(payload)

        return self._extract_text(response)

    async def _post(self, payload: dict[str, Any]) -> httpx.Response:
        if self._client is None:
            self._client = httpx.AsyncClient()
        try:
            response = await self._client.post(
                self._url, json=payload, timeout=self._timeout
            )
        except httpx.TimeoutException as e:
            raise TransportError(None, f"request timed out ({e})") from e
        except httpx.HTTPError as e:
            raise TransportError(None, str(e) or type(e).__name__) from e

        if not response.is_success:
            logger.warning(
                "Backend returned %s: %s", response.status_code, response.text
            )
            raise TransportError(response.status_code, response.text)
        return response

    @staticmethod
    def _extract_text(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError as e:
            raise EmptyResponseError(
                f"Backend reply is not JSON: {response.text[:200]!r}"
            ) from e

        text = data.get("response") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text:
            raise EmptyResponseError("No response from inference backend")

        logger.info("Backend response received, length: %s", len(text))
        return text
