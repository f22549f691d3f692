"""Best-effort lead delivery to builder CRMs and the design-saved automation.

Nothing in this module raises to its caller: a capture must succeed even
when a downstream webhook is down.
"""

import os
from typing import Any

import httpx
import structlog

from designvault.models.builder import BuilderConfig
from designvault.utils.exceptions import CrmForwardingFailed

logger = structlog.get_logger()

CRM_TIMEOUT_SECONDS = 10.0
DESIGN_SAVED_WEBHOOK_URL = os.environ.get("N8N_DESIGN_SAVED_WEBHOOK", "")
SCHEDULER_URL = os.environ.get(
    "SCHEDULER_URL", "https://crm.empowerbuilding.ai/book/30-minute-consultation"
)


class LeadForwarder:
    """Posts captured leads to external webhooks."""

    def __init__(
        self,
        design_saved_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.design_saved_url = DESIGN_SAVED_WEBHOOK_URL if design_saved_url is None else design_saved_url
        self._transport = transport

    def _post(self, url: str, payload: dict[str, Any], headers: dict[str, str] | None = None) -> int:
        with httpx.Client(timeout=CRM_TIMEOUT_SECONDS, transport=self._transport) as client:
            response = client.post(url, json=payload, headers=headers or {})
        return response.status_code

    @staticmethod
    def _log_failure(failure: CrmForwardingFailed) -> None:
        logger.warning(
            "CRM forwarding failed",
            builder_slug=failure.builder_slug,
            error_code=failure.error_code,
            error=failure.details.get("original_error"),
        )

    def forward_to_crm(self, builder: BuilderConfig | None, payload: dict[str, Any]) -> bool:
        """Send a lead to the builder's CRM webhook.

        Args:
            builder: Builder configuration (None or no webhook means skip).
            payload: Lead payload.

        Returns:
            True if the CRM accepted the lead.
        """
        if builder is None or not builder.webhook_url:
            return False

        headers = {}
        if builder.webhook_api_key:
            headers["x-api-key"] = builder.webhook_api_key

        try:
            status_code = self._post(builder.webhook_url, payload, headers)
            if status_code >= 400:
                raise CrmForwardingFailed(builder.slug, f"HTTP {status_code}")
        except httpx.HTTPError as e:
            self._log_failure(CrmForwardingFailed(builder.slug, str(e)))
            return False
        except CrmForwardingFailed as e:
            self._log_failure(e)
            return False

        logger.info("Lead forwarded to CRM", builder_slug=builder.slug, status_code=status_code)
        return True

    def notify_design_saved(self, payload: dict[str, Any]) -> bool:
        """Trigger the "design saved" email automation, if configured."""
        if not self.design_saved_url:
            return False

        try:
            status_code = self._post(
                self.design_saved_url,
                {**payload, "scheduler_url": SCHEDULER_URL},
            )
        except httpx.HTTPError as e:
            logger.warning("Design saved webhook failed", error=str(e))
            return False

        if status_code >= 400:
            logger.warning("Design saved webhook rejected", status_code=status_code)
            return False
        return True
