"""Client for the n8n image-generation webhooks.

n8n workflows wrap several image providers and do not agree on where the
generated image URL lives in the response. RESULT_URL_PATHS lists the known
locations in priority order; add new provider shapes there.
"""

import os
import time
from typing import Any

import httpx
import structlog

from designvault.utils.exceptions import ExternalServiceError, GenerationFailedError

logger = structlog.get_logger()

N8N_BASE_URL = os.environ.get("N8N_BASE_URL", "https://n8n.empowerbuilding.ai")
STYLE_SWAP_WEBHOOK_PATH = os.environ.get(
    "STYLE_SWAP_WEBHOOK_PATH", "78eb9ad8-765f-4a20-8823-96a2e49d5f73"
)
FLOOR_PLAN_EDIT_WEBHOOK_PATH = os.environ.get("FLOOR_PLAN_EDIT_WEBHOOK_PATH", "floor-plan-edit")
ENHANCE_PROMPT_WEBHOOK_PATH = os.environ.get("ENHANCE_PROMPT_WEBHOOK_PATH", "enhance-prompt")

# Image generation is slow; keep well under the Lambda timeout
GENERATION_TIMEOUT_SECONDS = float(os.environ.get("GENERATION_TIMEOUT_SECONDS", "120"))

# Dotted paths into the response body, first non-empty string wins.
# Numeric segments index into lists (n8n often wraps output in a list).
RESULT_URL_PATHS: tuple[str, ...] = (
    "resultUrl",
    "result_url",
    "imageUrl",
    "image_url",
    "outputUrl",
    "output_url",
    "url",
    "output",
    "data.resultUrl",
    "data.url",
    "data.0.url",
    "images.0.url",
    "images.0",
    "output.0",
    "0.resultUrl",
    "0.imageUrl",
    "0.url",
)


def _resolve_path(data: Any, path: str) -> Any:
    """Walk a dotted path through nested dicts and lists."""
    current = data
    for segment in path.split("."):
        if isinstance(current, dict):
            current = current.get(segment)
        elif isinstance(current, list) and segment.isdigit():
            index = int(segment)
            current = current[index] if index < len(current) else None
        else:
            return None
        if current is None:
            return None
    return current


def extract_result_url(data: Any, paths: tuple[str, ...] = RESULT_URL_PATHS) -> str | None:
    """Find the generated image URL in a provider response.

    Args:
        data: Parsed JSON response body.
        paths: Candidate locations in priority order.

    Returns:
        The first non-empty string found, or None.
    """
    for path in paths:
        value = _resolve_path(data, path)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


class ImageGenerator:
    """Calls n8n webhooks for image generation and prompt enhancement."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        result_url_paths: tuple[str, ...] = RESULT_URL_PATHS,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the generator client.

        Args:
            base_url: n8n base URL. Defaults to N8N_BASE_URL.
            timeout: Request timeout in seconds.
            result_url_paths: Ordered result URL locations.
            transport: Optional httpx transport (used by tests).
        """
        self.base_url = (base_url or N8N_BASE_URL).rstrip("/")
        self.timeout = timeout or GENERATION_TIMEOUT_SECONDS
        self.result_url_paths = result_url_paths
        self._transport = transport

    def call_webhook(self, webhook_path: str, payload: dict[str, Any]) -> Any:
        """POST a payload to an n8n webhook and return the parsed JSON body.

        Args:
            webhook_path: Path segment after /webhook/.
            payload: JSON payload.

        Returns:
            Parsed response body.

        Raises:
            ExternalServiceError: On timeout, transport error, non-2xx status
                or a body that is not JSON.
        """
        url = f"{self.base_url}/webhook/{webhook_path}"
        start = time.monotonic()

        logger.info("Calling n8n webhook", webhook_path=webhook_path)

        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.post(url, json=payload)
        except httpx.TimeoutException as e:
            logger.warning("n8n webhook timed out", webhook_path=webhook_path, timeout=self.timeout)
            raise ExternalServiceError("n8n", message="Webhook request timed out", original_error=str(e))
        except httpx.HTTPError as e:
            logger.warning("n8n webhook transport error", webhook_path=webhook_path, error=str(e))
            raise ExternalServiceError("n8n", original_error=str(e))

        elapsed_ms = int((time.monotonic() - start) * 1000)

        if not response.is_success:
            logger.warning(
                "n8n webhook failed",
                webhook_path=webhook_path,
                status_code=response.status_code,
                elapsed_ms=elapsed_ms,
                body=response.text[:500],
            )
            raise ExternalServiceError(
                "n8n",
                message=f"Webhook returned {response.status_code}",
                original_error=response.text[:500],
            )

        try:
            data = response.json()
        except ValueError:
            logger.warning("n8n webhook returned non-JSON body", webhook_path=webhook_path)
            raise ExternalServiceError("n8n", message="Webhook returned a non-JSON body")

        logger.info("n8n webhook succeeded", webhook_path=webhook_path, elapsed_ms=elapsed_ms)
        return data

    def generate_image(self, webhook_path: str, payload: dict[str, Any]) -> str:
        """Run a generation webhook and return the resulting image URL.

        Args:
            webhook_path: Generation webhook path.
            payload: Generation request.

        Returns:
            Result image URL.

        Raises:
            GenerationFailedError: If the call failed or no result URL was found.
        """
        try:
            data = self.call_webhook(webhook_path, payload)
        except ExternalServiceError as e:
            raise GenerationFailedError(e.message, original_error=e.details.get("original_error")) from e

        result_url = extract_result_url(data, self.result_url_paths)
        if not result_url:
            logger.warning(
                "n8n response has no result URL",
                webhook_path=webhook_path,
                keys=sorted(data.keys()) if isinstance(data, dict) else type(data).__name__,
            )
            raise GenerationFailedError("Response contained no result URL")
        return result_url

    def enhance_prompt(self, prompt: str, image_url: str | None = None) -> str:
        """Ask n8n to rewrite a free-text edit instruction.

        Falls back to the original prompt when the webhook answers without
        an enhancedPrompt field.

        Raises:
            ExternalServiceError: If the webhook call fails.
        """
        data = self.call_webhook(
            ENHANCE_PROMPT_WEBHOOK_PATH,
            {"prompt": prompt, "imageUrl": image_url},
        )
        enhanced = _resolve_path(data, "enhancedPrompt") or _resolve_path(data, "0.enhancedPrompt")
        if isinstance(enhanced, str) and enhanced.strip():
            return enhanced.strip()
        return prompt


def get_image_generator() -> ImageGenerator:
    """Factory function for ImageGenerator."""
    return ImageGenerator()
