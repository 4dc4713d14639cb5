"""Anthropic Messages API client for purchase agreement extraction."""

import json
import re
from typing import Any, Optional

import httpx

from src.config.settings import AnthropicConfig
from src.services.prompts import (
    EXTRACTION_PROMPT_VERSION,
    EXTRACTION_SYSTEM_PROMPT,
    EXTRACTION_TASK_TEXT,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)

RATE_LIMIT_STATUSES = frozenset({429, 529})

# Optional language tag after the opening fence, e.g. ```json
_CODE_FENCE = re.compile(r"^\s*```[\w-]*[ \t]*\n?(.*?)\n?```\s*$", re.DOTALL)


class ExtractionError(Exception):
    """Base class for extraction endpoint failures."""

    pass


class RateLimitedError(ExtractionError):
    """Endpoint signalled rate limiting or overload (429/529)."""

    def __init__(self, status: int) -> None:
        self.status = status
        super().__init__(f"Rate limited by extraction endpoint (HTTP {status})")


class UpstreamError(ExtractionError):
    """Non-retryable endpoint failure."""

    def __init__(self, status: int, message: str) -> None:
        self.status = status
        self.message = message
        super().__init__(f"Extraction endpoint error {status}: {message}")


class MalformedResponseError(ExtractionError):
    """Endpoint answered but the payload is not a JSON object."""

    pass


def strip_code_fence(text: str) -> str:
    """Remove a surrounding ``` fence (with optional language tag)."""
    match = _CODE_FENCE.match(text)
    if match:
        return match.group(1).strip()
    return text.strip()


def parse_extraction_payload(text: str) -> dict[str, Any]:
    """
    Parse model output into an extraction result.

    Raises:
        MalformedResponseError: If the text is not a JSON object
    """
    cleaned = strip_code_fence(text)
    try:
        payload = json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise MalformedResponseError(f"Response is not valid JSON: {e.msg}") from e

    if not isinstance(payload, dict):
        raise MalformedResponseError(
            f"Expected a JSON object, got {type(payload).__name__}"
        )
    return payload


def _error_message(response: httpx.Response) -> str:
    """Embedded error message when the body is JSON, raw body otherwise."""
    try:
        body = response.json()
    except ValueError:
        return response.text

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if body.get("message"):
            return str(body["message"])
    return response.text


def _first_text_block(body: dict[str, Any]) -> Optional[str]:
    for block in body.get("content") or []:
        if isinstance(block, dict) and block.get("type") == "text":
            return block.get("text", "")
    return None


class ExtractionService:
    """Single-shot document analysis. Retries are the caller's concern."""

    def __init__(
        self,
        config: AnthropicConfig,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.config = config
        self.url = f"{config.api_url.rstrip('/')}/v1/messages"
        self.headers = {
            "x-api-key": config.api_key.get_secret_value(),
            "anthropic-version": config.api_version,
            "content-type": "application/json",
        }
        self._client = http_client
        logger.info(
            "Extraction service initialized",
            model=config.model,
            prompt_version=EXTRACTION_PROMPT_VERSION,
        )

    def build_request(self, encoded_document: str) -> dict[str, Any]:
        """Request body for one base64-encoded PDF."""
        return {
            "model": self.config.model,
            "max_tokens": self.config.max_tokens,
            "system": EXTRACTION_SYSTEM_PROMPT,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {
                            "type": "document",
                            "source": {
                                "type": "base64",
                                "media_type": "application/pdf",
                                "data": encoded_document,
                            },
                        },
                        {"type": "text", "text": EXTRACTION_TASK_TEXT},
                    ],
                }
            ],
        }

    async def analyze_document(self, encoded_document: str) -> dict[str, Any]:
        """
        Extract purchase agreement fields from a base64-encoded PDF.

        Args:
            encoded_document: Base64 text of the PDF bytes

        Returns:
            Parsed extraction result

        Raises:
            RateLimitedError: On HTTP 429 or 529
            UpstreamError: On any other non-2xx status or transport failure
            MalformedResponseError: If the response carries no parsable JSON
        """
        payload = self.build_request(encoded_document)

        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=payload, headers=self.headers)
            else:
                async with httpx.AsyncClient(timeout=self.config.timeout_seconds) as client:
                    response = await client.post(self.url, json=payload, headers=self.headers)
        except httpx.TimeoutException as e:
            logger.error("Extraction endpoint timeout", error=str(e))
            raise UpstreamError(0, "Request timed out") from e
        except httpx.HTTPError as e:
            logger.error("Extraction endpoint connection failed", error=str(e))
            raise UpstreamError(0, f"Connection failed: {e}") from e

        if response.status_code in RATE_LIMIT_STATUSES:
            logger.warning("Extraction endpoint rate limited", status=response.status_code)
            raise RateLimitedError(response.status_code)

        if not 200 <= response.status_code < 300:
            message = _error_message(response)
            logger.error(
                "Extraction endpoint error",
                status=response.status_code,
                error=message[:200],
            )
            raise UpstreamError(response.status_code, message)

        try:
            body = response.json()
        except ValueError as e:
            raise MalformedResponseError("Response body is not JSON") from e

        text = _first_text_block(body) if isinstance(body, dict) else None
        if text is None:
            raise MalformedResponseError("Response contains no text block")

        result = parse_extraction_payload(text)

        if isinstance(body, dict) and body.get("usage"):
            logger.info(
                "Document analyzed",
                input_tokens=body["usage"].get("input_tokens"),
                output_tokens=body["usage"].get("output_tokens"),
            )
        return result
