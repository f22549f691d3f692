"""Builder registry and per-builder metering configuration."""

import os

import structlog

from designvault.models.builder import BuilderConfig
from designvault.services.metering_policy import DEFAULT_MAX_FREE, MeteringConfig

logger = structlog.get_logger()

BUILDERS: dict[str, BuilderConfig] = {
    "barnhaus": BuilderConfig(
        slug="barnhaus",
        name="Barnhaus Steel Builders",
        webhook_url="https://crm.empowerbuilding.ai/api/leads/webhook",
        brand_color="#B8860B",
    ),
    "cw": BuilderConfig(
        slug="cw",
        name="CW Custom Builders",
        webhook_url="https://crm.cw-custombuilders.com/api/leads/webhook",
        brand_color="#C8A962",
    ),
    "showcase": BuilderConfig(
        slug="showcase",
        name="Showcase Builders",
        webhook_url="https://crm.showcasebuilders.com/api/leads/webhook",
        brand_color="#C5A572",
    ),
}


def _env_prefix(slug: str) -> str:
    return slug.upper().replace("-", "_")


def get_builder(slug: str) -> BuilderConfig | None:
    """Get a builder's configuration with environment overrides applied.

    Recognised overrides, for slug "barnhaus":
        BARNHAUS_WEBHOOK_API_KEY
        BARNHAUS_MAX_FREE_INTERACTIONS

    Args:
        slug: Builder slug.

    Returns:
        BuilderConfig, or None for an unknown builder.
    """
    builder = BUILDERS.get(slug)
    if builder is None:
        return None

    prefix = _env_prefix(slug)
    updates: dict = {}

    api_key = os.environ.get(f"{prefix}_WEBHOOK_API_KEY")
    if api_key:
        updates["webhook_api_key"] = api_key

    max_free = os.environ.get(f"{prefix}_MAX_FREE_INTERACTIONS")
    if max_free:
        try:
            updates["max_free_interactions"] = int(max_free)
        except ValueError:
            logger.warning("Ignoring invalid max free override", builder_slug=slug, value=max_free)

    return builder.model_copy(update=updates) if updates else builder


def get_metering_config(slug: str) -> MeteringConfig:
    """Get the quota settings for a builder site.

    Unknown builders and builders without an override use the deployment
    default (MAX_FREE_INTERACTIONS).
    """
    builder = get_builder(slug)
    if builder is None or builder.max_free_interactions is None:
        return MeteringConfig(max_free=DEFAULT_MAX_FREE)
    return MeteringConfig(max_free=builder.max_free_interactions)
